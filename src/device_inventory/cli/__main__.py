"""
Allow running inventoryctl as a module: python -m device_inventory.cli
"""

import sys
from .inventoryctl import main

if __name__ == "__main__":
    sys.exit(main())

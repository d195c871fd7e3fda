"""
Device Inventory - persistence layer for per-device attribute collections

Stores device records in a document store and merges partial attribute
updates into them without disturbing fields the update does not mention.

Main modules:
- core: configuration and exception hierarchy
- inventory: device models, merge engine, document stores and device store
- cli: operational command line (inventoryctl)
"""

__version__ = "0.1.0"

from device_inventory.core.errors import (
    DuplicateKeyError,
    InvalidInputError,
    InventoryError,
    StoreConnectionError,
    StoreUnavailableError,
)
from device_inventory.inventory import (
    Attribute,
    Device,
    DeviceDataStore,
    PartialAttribute,
    open_datastore,
)

__all__ = [
    "__version__",
    "Attribute",
    "Device",
    "DeviceDataStore",
    "PartialAttribute",
    "open_datastore",
    "DuplicateKeyError",
    "InvalidInputError",
    "InventoryError",
    "StoreConnectionError",
    "StoreUnavailableError",
]

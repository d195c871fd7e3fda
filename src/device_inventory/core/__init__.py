"""
Core module for the device inventory store.

Contains configuration and the exception hierarchy shared by all modules.
"""

from device_inventory.core.config import AppConfig, StoreConfig, get_config, reload_config
from device_inventory.core.errors import (
    DuplicateKeyError,
    InvalidInputError,
    InventoryError,
    StoreConnectionError,
    StoreUnavailableError,
)

__all__ = [
    "AppConfig",
    "StoreConfig",
    "get_config",
    "reload_config",
    "DuplicateKeyError",
    "InvalidInputError",
    "InventoryError",
    "StoreConnectionError",
    "StoreUnavailableError",
]

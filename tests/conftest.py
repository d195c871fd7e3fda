"""
Shared fixtures: every test gets its own, empty document store.
"""

import pytest

from device_inventory.core import config as config_module
from device_inventory.inventory.documents import MemoryDocumentStore, SqliteDocumentStore
from device_inventory.inventory.store import DEVICES_COLLECTION, DeviceDataStore


@pytest.fixture(params=["memory", "sqlite"])
def documents(request, tmp_path):
    """An isolated document store for each backend."""
    if request.param == "memory":
        store = MemoryDocumentStore()
    else:
        store = SqliteDocumentStore(str(tmp_path / "inventory.db"))
    yield store
    store.close()


@pytest.fixture
def store(documents):
    return DeviceDataStore(documents)


@pytest.fixture
def seed(documents):
    """Insert raw device documents directly, bypassing the device store."""

    def _seed(*docs):
        for doc in docs:
            documents.insert(DEVICES_COLLECTION, doc)

    return _seed


@pytest.fixture
def clean_config():
    """Drop any configuration cached from a patched environment."""
    yield
    config_module._config = None

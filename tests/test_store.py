"""
Tests for the device store: lookups, inserts and attribute upserts.

Every test runs against a fresh memory store and a fresh SQLite file.
"""

import threading

import pytest

from device_inventory.core.errors import (
    DuplicateKeyError,
    InvalidInputError,
    StoreConnectionError,
    StoreUnavailableError,
)
from device_inventory.inventory.documents import SqliteDocumentStore
from device_inventory.inventory.models import Attribute, Device, PartialAttribute
from device_inventory.inventory.store import DEVICES_COLLECTION, DeviceDataStore, open_datastore


def device_0003():
    return {
        "_id": "0003",
        "attributes": {
            "mac": {"name": "mac", "value": "0003-mac", "description": "descr"},
            "sn": {"name": "sn", "value": "0003-sn", "description": "descr"},
        },
    }


def attrs(**fields):
    """Expected attributes from name=(value, description) pairs."""
    return {
        name: Attribute(name=name, value=value, description=description)
        for name, (value, description) in fields.items()
    }


class TestGetDevice:
    """Point lookups."""

    def test_no_device_and_no_id(self, store):
        assert store.get_device("") is None

    def test_device_does_not_exist(self, store):
        assert store.get_device("123") is None

    def test_device_exists(self, store, seed):
        seed({"_id": "0002", "attributes": {"mac": {"name": "mac", "value": "0002-mac"}}})

        device = store.get_device("0002")

        assert device is not None
        assert device.id == "0002"
        assert device.attributes == attrs(mac=("0002-mac", None))

    def test_id_must_be_string(self, store):
        with pytest.raises(InvalidInputError):
            store.get_device(None)


class TestAddDevice:
    """Construction-only inserts."""

    def test_no_device_given(self, store, documents):
        with pytest.raises(InvalidInputError):
            store.add_device(None)
        assert documents.find_one(DEVICES_COLLECTION) is None

    @pytest.mark.parametrize(
        "device",
        [
            pytest.param(Device(id="0002", attributes={"mac": Attribute(name="mac", value="0002-mac")}), id="one attribute"),
            pytest.param(
                Device(
                    id="0003",
                    attributes={
                        "mac": Attribute(name="mac", value="0002-mac"),
                        "sn": Attribute(name="sn", value="0002-sn"),
                    },
                ),
                id="two attributes",
            ),
            pytest.param(Device(id="0004", attributes={"mac": Attribute(name="mac")}), id="attribute without value"),
            pytest.param(Device(id="0005", attributes={"mac": Attribute(name="mac", value=[123, 456])}), id="array value"),
            pytest.param(Device(id="0007"), id="no attributes"),
        ],
    )
    def test_valid_device(self, store, documents, device):
        store.add_device(device)

        stored = documents.find_one(DEVICES_COLLECTION)
        assert stored is not None
        assert stored["_id"] == device.id
        assert store.get_device(device.id) == device

    def test_mapping_input(self, store):
        store.add_device({"_id": "0002", "attributes": {"mac": {"value": "0002-mac"}}})
        assert store.get_device("0002").attributes == attrs(mac=("0002-mac", None))

    @pytest.mark.parametrize(
        "device",
        [
            {"attributes": {}},
            {"_id": ""},
            {"_id": "0002", "attributes": {"mac": {"value": {"bad": "type"}}}},
            "0002",
            42,
        ],
    )
    def test_malformed_device(self, store, documents, device):
        with pytest.raises(InvalidInputError):
            store.add_device(device)
        assert documents.find_one(DEVICES_COLLECTION) is None

    def test_duplicate_device(self, store):
        store.add_device(Device(id="0002", attributes={"mac": Attribute(name="mac", value="0002-mac")}))

        with pytest.raises(DuplicateKeyError):
            store.add_device(Device(id="0002"))

        assert store.get_device("0002").attributes["mac"].value == "0002-mac"


UPSERT_CASES = [
    pytest.param(
        [device_0003()],
        "0003",
        {
            "mac": {"description": "mac description", "value": "0003-newmac"},
            "sn": {"description": "sn description", "value": "0003-newsn"},
        },
        attrs(mac=("0003-newmac", "mac description"), sn=("0003-newsn", "sn description")),
        id="update both attrs (descr + val)",
    ),
    pytest.param(
        [device_0003()],
        "0003",
        {"sn": {"description": "sn description", "value": "0003-newsn"}},
        attrs(mac=("0003-mac", "descr"), sn=("0003-newsn", "sn description")),
        id="update one attr (descr + val)",
    ),
    pytest.param(
        [device_0003()],
        "0003",
        {"sn": {"description": "sn description"}},
        attrs(mac=("0003-mac", "descr"), sn=("0003-sn", "sn description")),
        id="update one attr (descr only)",
    ),
    pytest.param(
        [device_0003()],
        "0003",
        {"sn": {"value": "0003-newsn"}},
        attrs(mac=("0003-mac", "descr"), sn=("0003-newsn", "descr")),
        id="update one attr (value only)",
    ),
    pytest.param(
        [device_0003()],
        "0003",
        {"sn": {"value": ["0003-sn-1", "0003-sn-2"]}},
        attrs(mac=("0003-mac", "descr"), sn=(["0003-sn-1", "0003-sn-2"], "descr")),
        id="update one attr (value only, change type)",
    ),
    pytest.param(
        [{"_id": "0003"}],
        "0003",
        {
            "ip": {"value": ["1.2.3.4", "1.2.3.5"], "description": "ip addr array"},
            "mac": {"value": "0006-mac", "description": "mac addr"},
        },
        attrs(ip=(["1.2.3.4", "1.2.3.5"], "ip addr array"), mac=("0006-mac", "mac addr")),
        id="dev exists without attributes, upsert new attrs",
    ),
    pytest.param(
        [],
        "0099",
        {"ip": {"description": "ip addr array", "value": ["1.2.3.4", "1.2.3.5"]}},
        attrs(ip=(["1.2.3.4", "1.2.3.5"], "ip addr array")),
        id="dev does not exist, upsert new attr (descr + val)",
    ),
    pytest.param(
        [],
        "0099",
        {"ip": {"value": ["1.2.3.4", "1.2.3.5"]}},
        attrs(ip=(["1.2.3.4", "1.2.3.5"], None)),
        id="dev does not exist, upsert new attr (val only)",
    ),
    pytest.param(
        [],
        "0099",
        {
            "ip": {"value": ["1.2.3.4", "1.2.3.5"], "description": "ip addr array"},
            "mac": {"value": "0099-mac", "description": "mac addr"},
        },
        attrs(ip=(["1.2.3.4", "1.2.3.5"], "ip addr array"), mac=("0099-mac", "mac addr")),
        id="dev does not exist, upsert new attrs (val + descr)",
    ),
]


class TestUpsertAttributes:
    """Field-level attribute merges."""

    @pytest.mark.parametrize("devices,device_id,incoming,expected", UPSERT_CASES)
    def test_upsert(self, store, seed, devices, device_id, incoming, expected):
        seed(*devices)

        store.upsert_attributes(device_id, incoming)

        device = store.get_device(device_id)
        assert device is not None
        assert device.attributes == expected

    @pytest.mark.parametrize("incoming", [{}, None])
    def test_empty_update_creates_device(self, store, incoming):
        plan = store.upsert_attributes("0100", incoming)

        assert plan.is_noop
        device = store.get_device("0100")
        assert device is not None
        assert device.attributes == {}

    def test_empty_update_leaves_existing_device(self, store, seed):
        seed(device_0003())
        store.upsert_attributes("0003", {})
        assert store.get_device("0003") == Device.from_document(device_0003())

    def test_attribute_with_nothing_supplied(self, store, seed):
        seed(device_0003())
        store.upsert_attributes("0003", {"mac": {}, "ip": PartialAttribute()})
        assert store.get_device("0003") == Device.from_document(device_0003())

    def test_idempotent(self, store, seed):
        seed(device_0003())
        incoming = {"sn": {"value": ["a", "b"]}, "ip": {"description": "ip addr"}}

        store.upsert_attributes("0003", incoming)
        once = store.get_device("0003")
        store.upsert_attributes("0003", incoming)

        assert store.get_device("0003") == once

    def test_accepts_models(self, store):
        store.upsert_attributes(
            "0099",
            {
                "ip": PartialAttribute(value=["1.2.3.4"]),
                "mac": Attribute(name="mac", description="mac addr"),
            },
        )
        assert store.get_device("0099").attributes == attrs(
            ip=(["1.2.3.4"], None), mac=(None, "mac addr")
        )

    def test_matching_name_field_is_accepted(self, store):
        store.upsert_attributes("0099", {"mac": {"name": "mac", "value": "0099-mac"}})
        assert store.get_device("0099").attributes["mac"].value == "0099-mac"

    @pytest.mark.parametrize(
        "device_id,incoming",
        [
            ("", {"mac": {"value": "x"}}),
            (None, {}),
            ("0099", {"": {"value": "x"}}),
            ("0099", {"mac": {"value": None}}),
            ("0099", {"mac": {"value": {"nested": 1}}}),
            ("0099", {"mac": {"name": "sn", "value": "x"}}),
            ("0099", {"mac": Attribute(name="sn", value="x")}),
            ("0099", {"mac": "0099-mac"}),
            ("0099", [("mac", {"value": "x"})]),
        ],
    )
    def test_invalid_input(self, store, documents, device_id, incoming):
        with pytest.raises(InvalidInputError):
            store.upsert_attributes(device_id, incoming)
        assert documents.find_one(DEVICES_COLLECTION) is None

    def test_concurrent_disjoint_updates_all_land(self, store):
        names = [f"attr{i}" for i in range(16)]
        barrier = threading.Barrier(len(names))
        errors = []

        def worker(name):
            barrier.wait()
            try:
                store.upsert_attributes("0042", {name: {"value": name, "description": "concurrent"}})
            except Exception as e:  # surfaced through the errors list
                errors.append(e)

        threads = [threading.Thread(target=worker, args=(name,)) for name in names]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert errors == []
        assert set(store.get_device("0042").attributes) == set(names)


class TestStoreFailures:
    """Document store failures surface unchanged."""

    def test_closed_store(self, documents):
        store = DeviceDataStore(documents)
        store.close()

        with pytest.raises(StoreUnavailableError):
            store.get_device("0002")
        with pytest.raises(StoreUnavailableError):
            store.add_device(Device(id="0002"))
        with pytest.raises(StoreUnavailableError):
            store.upsert_attributes("0002", {"mac": {"value": "x"}})
        with pytest.raises(StoreUnavailableError):
            store.ping()

    def test_sqlite_driver_failure(self, tmp_path):
        path = tmp_path / "inventory.db"
        store = DeviceDataStore(SqliteDocumentStore(str(path)))
        path.unlink(missing_ok=True)
        path.mkdir()

        with pytest.raises(StoreUnavailableError):
            store.upsert_attributes("0002", {"mac": {"value": "x"}})
        with pytest.raises(StoreUnavailableError):
            store.ping()


class TestOpenDatastore:
    """Opening a device store from a connection target."""

    def test_illegal_url(self):
        with pytest.raises(StoreConnectionError) as excinfo:
            open_datastore("illegal url")
        assert str(excinfo.value) == "failed to open document store session"

    def test_memory_target(self):
        with open_datastore("memory://") as store:
            store.upsert_attributes("0099", {"ip": {"value": "1.2.3.4"}})
            assert store.get_device("0099").attributes["ip"].value == "1.2.3.4"

    def test_sqlite_target_with_collection(self, tmp_path):
        target = f"sqlite:///{tmp_path}/inventory.db"

        with DeviceDataStore.open(target, collection="lab_devices") as store:
            store.add_device(Device(id="0002"))

        with open_datastore(target, collection="lab_devices") as store:
            assert store.get_device("0002") == Device(id="0002")
        with open_datastore(target) as store:
            assert store.get_device("0002") is None

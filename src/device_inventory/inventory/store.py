"""
Device inventory persistent storage.
"""

import logging
from typing import Any, Dict, Mapping, Optional

from pydantic import ValidationError

from ..core.errors import InvalidInputError
from .documents import DocumentStore, open_document_store
from .merge import UpsertPlan, plan_upsert
from .models import Attribute, Device, DeviceID, PartialAttribute

logger = logging.getLogger(__name__)

DEVICES_COLLECTION = "devices"


def _check_device_id(device_id: Any) -> DeviceID:
    if not isinstance(device_id, str) or not device_id:
        raise InvalidInputError(f"device id must be a non-empty string, got {device_id!r}")
    return device_id


def _to_partial(name: Any, raw: Any) -> PartialAttribute:
    """Turn one incoming attribute update into a PartialAttribute."""
    if not isinstance(name, str) or not name:
        raise InvalidInputError(f"attribute name must be a non-empty string, got {name!r}")

    if isinstance(raw, PartialAttribute):
        return raw

    if isinstance(raw, Attribute):
        if raw.name != name:
            raise InvalidInputError(
                f"attribute {name!r} carries a different name: {raw.name!r}"
            )
        return PartialAttribute.from_attribute(raw)

    if isinstance(raw, Mapping):
        data = dict(raw)
        given_name = data.pop("name", name)
        if given_name != name:
            raise InvalidInputError(
                f"attribute {name!r} carries a different name: {given_name!r}"
            )
        try:
            return PartialAttribute.model_validate(data)
        except ValidationError as e:
            raise InvalidInputError(f"invalid attribute {name!r}: {e}") from e

    raise InvalidInputError(
        f"attribute {name!r} must be a mapping or attribute, got {type(raw).__name__}"
    )


class DeviceDataStore:
    """
    Persistent storage for device records on top of a document store.

    Provides point lookups, construction-only inserts and attribute upserts.
    Holds no state of its own beyond the document store handle; every call
    is a single round trip and failures from the document store propagate
    unchanged.
    """

    def __init__(self, documents: DocumentStore, collection: str = DEVICES_COLLECTION):
        """
        Initialize the device store.

        Args:
            documents: Open document store
            collection: Collection holding device documents
        """
        self.documents = documents
        self.collection = collection

    @classmethod
    def open(
        cls,
        target: str,
        collection: str = DEVICES_COLLECTION,
        timeout: float = 5.0,
    ) -> "DeviceDataStore":
        """
        Open a device store from a connection target.

        Args:
            target: Document store target (``sqlite:///<path>`` or ``memory://``)
            collection: Collection holding device documents
            timeout: Seconds to wait on a busy store

        Returns:
            A usable device store

        Raises:
            StoreConnectionError: If the target cannot be parsed or opened
        """
        documents = open_document_store(target, timeout=timeout)
        logger.info(f"Device store ready on {target} (collection {collection})")
        return cls(documents, collection=collection)

    def get_device(self, device_id: DeviceID) -> Optional[Device]:
        """
        Get device by identifier.

        Args:
            device_id: Device identifier

        Returns:
            Device or None if not found
        """
        if not isinstance(device_id, str):
            raise InvalidInputError(f"device id must be a string, got {device_id!r}")

        document = self.documents.find_by_id(self.collection, device_id)
        if document is None:
            logger.debug(f"Device {device_id!r} not found")
            return None

        return Device.from_document(document)

    def add_device(self, device: Any) -> Device:
        """
        Insert a new device record.

        This only constructs records; it never merges into an existing one.

        Args:
            device: Device, or a mapping in document shape

        Returns:
            The device as stored

        Raises:
            InvalidInputError: If no device or a malformed device is given
            DuplicateKeyError: If a device with the same id already exists
        """
        if device is None:
            logger.warning("Rejected add_device call without a device")
            raise InvalidInputError("failed to store device: no device given")

        if isinstance(device, Mapping):
            try:
                device = Device.model_validate(dict(device))
            except ValidationError as e:
                raise InvalidInputError(f"failed to store device: {e}") from e

        if not isinstance(device, Device):
            raise InvalidInputError(
                f"failed to store device: expected a Device, got {type(device).__name__}"
            )

        self.documents.insert(self.collection, device.to_document())

        logger.info(f"Added device {device.id} with {len(device.attributes)} attribute(s)")
        return device

    def upsert_attributes(
        self,
        device_id: DeviceID,
        attributes: Optional[Mapping[str, Any]] = None,
    ) -> UpsertPlan:
        """
        Merge attribute updates into a device, creating the device if needed.

        Supplied fields overwrite, omitted fields and attributes are kept.
        The device is created even when ``attributes`` is empty.

        Args:
            device_id: Device identifier
            attributes: Updates keyed by attribute name; each is a
                PartialAttribute, an Attribute or a mapping with optional
                ``value`` and ``description``

        Returns:
            The plan that was written
        """
        device_id = _check_device_id(device_id)
        if attributes is not None and not isinstance(attributes, Mapping):
            raise InvalidInputError(
                f"attributes must be a mapping, got {type(attributes).__name__}"
            )

        incoming: Dict[str, PartialAttribute] = {
            name: _to_partial(name, raw) for name, raw in (attributes or {}).items()
        }
        plan = plan_upsert(device_id, incoming)

        logger.debug(f"Upserting device {device_id}: {plan.describe()}")
        self.documents.upsert(self.collection, device_id, plan.field_paths())

        return plan

    def ping(self) -> None:
        """Check the document store is reachable."""
        self.documents.ping()

    def close(self) -> None:
        self.documents.close()

    def __enter__(self) -> "DeviceDataStore":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


def open_datastore(
    target: str, collection: str = DEVICES_COLLECTION, timeout: float = 5.0
) -> DeviceDataStore:
    """Open a device store; see :meth:`DeviceDataStore.open`."""
    return DeviceDataStore.open(target, collection=collection, timeout=timeout)

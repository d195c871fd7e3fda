"""
Device inventory storage module.

Stores device records and merges incremental attribute updates into them.
"""

from .documents import (
    DocumentStore,
    MemoryDocumentStore,
    SqliteDocumentStore,
    open_document_store,
)
from .merge import (
    AttributeField,
    FieldWrite,
    UpsertPlan,
    apply_plan,
    merge_attributes,
    plan_upsert,
)
from .models import Attribute, Device, DeviceID, PartialAttribute, values_equal
from .store import DEVICES_COLLECTION, DeviceDataStore, open_datastore

__all__ = [
    "DocumentStore",
    "MemoryDocumentStore",
    "SqliteDocumentStore",
    "open_document_store",
    "AttributeField",
    "FieldWrite",
    "UpsertPlan",
    "apply_plan",
    "merge_attributes",
    "plan_upsert",
    "Attribute",
    "Device",
    "DeviceID",
    "PartialAttribute",
    "values_equal",
    "DEVICES_COLLECTION",
    "DeviceDataStore",
    "open_datastore",
]

"""
Attribute merge engine.

Turns a partial attribute update into the field-level writes needed to
overlay it on a device record. The engine never reads or writes storage and
never raises; the document store executes the resulting plan natively as one
upsert, and :func:`apply_plan` gives the equivalent in-memory result.

Merge semantics are an overlay:
- a supplied field replaces the stored field wholesale (lists included)
- an omitted field is left untouched
- attributes not mentioned in the update are left untouched
"""

import copy
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Tuple

from .models import Attribute, DeviceID, PartialAttribute

ATTRIBUTES_FIELD = "attributes"


class AttributeField(str, Enum):
    """Fields of an attribute that a write can address."""

    NAME = "name"
    VALUE = "value"
    DESCRIPTION = "description"


@dataclass(frozen=True)
class FieldWrite:
    """Set one field of one attribute."""

    attribute: str
    field: AttributeField
    value: Any

    @property
    def path(self) -> Tuple[str, str, str]:
        """Field path inside the device document."""
        return (ATTRIBUTES_FIELD, self.attribute, self.field.value)


@dataclass(frozen=True)
class UpsertPlan:
    """
    Field-level writes for one device, applied as a single upsert.

    ``create_if_absent`` is always set for attribute upserts: the device is
    created even when there is nothing to write.
    """

    device_id: DeviceID
    writes: Tuple[FieldWrite, ...] = ()
    create_if_absent: bool = True

    @property
    def is_noop(self) -> bool:
        return not self.writes

    def field_paths(self) -> Dict[Tuple[str, ...], Any]:
        """Writes keyed by document field path, as the document store takes them."""
        return {write.path: write.value for write in self.writes}

    def describe(self) -> str:
        if self.is_noop:
            return "no field writes"
        return ", ".join(".".join(write.path) for write in self.writes)


def field_writes(incoming: Mapping[str, PartialAttribute]) -> Tuple[FieldWrite, ...]:
    """
    Compute the writes for an incoming partial attribute set.

    Each attribute supplying at least one field gets its ``name`` written
    (so a new attribute is created under its key) followed by the supplied
    fields. Attributes supplying nothing produce no writes.
    """
    writes: List[FieldWrite] = []
    for name in sorted(incoming):
        partial = incoming[name]
        if partial.is_empty:
            continue
        writes.append(FieldWrite(name, AttributeField.NAME, name))
        if partial.has_value:
            writes.append(FieldWrite(name, AttributeField.VALUE, copy.deepcopy(partial.value)))
        if partial.has_description:
            writes.append(FieldWrite(name, AttributeField.DESCRIPTION, partial.description))
    return tuple(writes)


def plan_upsert(device_id: DeviceID, incoming: Mapping[str, PartialAttribute]) -> UpsertPlan:
    """Build the upsert plan for one device."""
    return UpsertPlan(device_id=device_id, writes=field_writes(incoming))


def apply_plan(
    existing: Optional[Mapping[str, Attribute]], plan: UpsertPlan
) -> Dict[str, Attribute]:
    """
    Apply a plan to an attribute mapping without touching storage.

    Args:
        existing: Current attributes, or None for a device that does not exist
        plan: Plan from :func:`plan_upsert`

    Returns:
        New attribute mapping; ``existing`` is not modified
    """
    merged = {name: attribute.model_copy(deep=True) for name, attribute in (existing or {}).items()}

    updates: Dict[str, Dict[str, Any]] = {}
    for write in plan.writes:
        updates.setdefault(write.attribute, {})[write.field.value] = copy.deepcopy(write.value)

    for name, fields in updates.items():
        current = merged.get(name)
        if current is None:
            merged[name] = Attribute(**fields)
        else:
            merged[name] = current.model_copy(update=fields)

    return merged


def merge_attributes(
    existing: Optional[Mapping[str, Attribute]],
    incoming: Mapping[str, PartialAttribute],
) -> Dict[str, Attribute]:
    """Merged attribute set for ``incoming`` overlaid on ``existing``."""
    return apply_plan(existing, UpsertPlan(device_id="", writes=field_writes(incoming)))

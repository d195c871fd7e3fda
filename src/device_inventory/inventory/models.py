"""
Device inventory data models.
"""

from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

# Opaque device identifier, the primary key of a device record.
DeviceID = str

_SCALAR_TYPES = (str, int, float, bool)


def normalize_value(value: Any) -> Any:
    """
    Check that a value is a scalar or a (possibly nested) sequence of scalars.

    Tuples are returned as lists so stored and compared values share a shape.
    Scalars are returned as-is; no coercion between types takes place.

    Raises:
        ValueError: If the value (or any element) is of an unsupported type
    """
    if isinstance(value, (list, tuple)):
        return [normalize_value(item) for item in value]
    if isinstance(value, _SCALAR_TYPES):
        return value
    raise ValueError(f"Unsupported attribute value type: {type(value).__name__}")


def values_equal(left: Any, right: Any) -> bool:
    """
    Compare two attribute values by type and content.

    Sequences are compared element-wise and in order. ``1``, ``1.0``, ``True``
    and ``"1"`` are all different values.
    """
    if type(left) is not type(right):
        return False
    if isinstance(left, list):
        return len(left) == len(right) and all(
            values_equal(a, b) for a, b in zip(left, right)
        )
    return left == right


class Attribute(BaseModel):
    """
    A named device attribute with an optional value and description.

    An attribute may exist with a description only. The value type is free
    to change between updates.
    """

    name: str = Field(..., min_length=1, description="Attribute name, unique within a device")
    value: Optional[Any] = Field(
        None,
        description="Scalar (str, int, float, bool) or ordered list of values",
    )
    description: Optional[str] = Field(None, description="Free-form description")

    model_config = ConfigDict(
        extra="forbid",
        json_schema_extra={
            "example": {
                "name": "ip",
                "value": ["192.168.1.10", "192.168.1.11"],
                "description": "ip addr array",
            }
        },
    )

    @field_validator("value")
    @classmethod
    def validate_value(cls, v: Any) -> Any:
        if v is None:
            return v
        return normalize_value(v)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Attribute):
            return NotImplemented
        return (
            self.name == other.name
            and self.description == other.description
            and values_equal(self.value, other.value)
        )

    def to_document(self) -> Dict[str, Any]:
        """Persisted form; unset fields are left out."""
        return self.model_dump(exclude_none=True)


class PartialAttribute(BaseModel):
    """
    An incoming update for one attribute.

    Each field is either supplied or omitted. Omitted fields leave the stored
    field alone; there is no way to clear a field, so an explicit null is
    rejected rather than read as "omitted".
    """

    value: Optional[Any] = None
    description: Optional[str] = None

    model_config = ConfigDict(extra="forbid")

    @field_validator("value")
    @classmethod
    def validate_value(cls, v: Any) -> Any:
        if v is None:
            raise ValueError("value may be omitted but not null")
        return normalize_value(v)

    @field_validator("description")
    @classmethod
    def validate_description(cls, v: Optional[str]) -> str:
        if v is None:
            raise ValueError("description may be omitted but not null")
        return v

    @property
    def has_value(self) -> bool:
        return "value" in self.model_fields_set

    @property
    def has_description(self) -> bool:
        return "description" in self.model_fields_set

    @property
    def is_empty(self) -> bool:
        """True when neither field is supplied."""
        return not (self.has_value or self.has_description)

    @classmethod
    def from_attribute(cls, attribute: Attribute) -> "PartialAttribute":
        """Build a partial supplying whichever fields the attribute has set."""
        supplied = attribute.model_dump(exclude_none=True, exclude={"name"})
        return cls(**supplied)


class Device(BaseModel):
    """
    A device record: identifier plus its attributes keyed by name.

    Every attribute key must match the attribute's own name. A device with no
    attributes is valid.
    """

    id: DeviceID = Field(..., alias="_id", min_length=1, description="Device identifier")
    attributes: Dict[str, Attribute] = Field(
        default_factory=dict,
        description="Attributes keyed by attribute name",
    )

    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "_id": "0003",
                "attributes": {
                    "mac": {"name": "mac", "value": "0003-mac", "description": "descr"},
                    "sn": {"name": "sn", "value": "0003-sn", "description": "descr"},
                },
            }
        },
    )

    @field_validator("attributes", mode="before")
    @classmethod
    def fill_attribute_names(cls, v: Any) -> Any:
        """Missing attributes become an empty mapping; nameless entries take their key."""
        if v is None:
            return {}
        if not isinstance(v, dict):
            return v
        filled = {}
        for key, attribute in v.items():
            if isinstance(attribute, dict) and "name" not in attribute:
                attribute = {**attribute, "name": key}
            filled[key] = attribute
        return filled

    @model_validator(mode="after")
    def check_attribute_keys(self) -> "Device":
        for key, attribute in self.attributes.items():
            if key != attribute.name:
                raise ValueError(
                    f"Attribute key {key!r} does not match attribute name {attribute.name!r}"
                )
        return self

    def to_document(self) -> Dict[str, Any]:
        """Persisted document shape: ``{"_id": ..., "attributes": {...}}``."""
        return {
            "_id": self.id,
            "attributes": {
                name: attribute.to_document() for name, attribute in self.attributes.items()
            },
        }

    @classmethod
    def from_document(cls, document: Dict[str, Any]) -> "Device":
        """Build a device from a stored document."""
        return cls.model_validate(document)

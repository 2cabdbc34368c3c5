# File: fleetdispatch/models.py
"""
fleetdispatch - Core Data Models
=================================
Pydantic V2 models describing the ten fleet-dispatch entity kinds and the
records that flow through the validation pipeline:

    Payload → Field Validation → Business Rules → Integrity → AcceptedRecord

The schema models are declarative: adding a new entity kind is a matter of
registering one more ``EntitySchema`` in ``fleetdispatch.registry``; no new
control flow is required anywhere else.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Dict, List, Optional, Set

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    PrivateAttr,
    computed_field,
    model_validator,
)

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("fleetdispatch.models")

# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class EntityKind(str, Enum):
    """The ten entity kinds managed by the dispatch API (values are table names)."""

    DRIVER = "Driver"
    PASSENGER = "Passenger"
    VEHICLE = "Vehicle"
    PROMOTION = "Promotion"
    SCHEDULE = "Schedule"
    MAINTENANCE = "Maintenance"
    SUPPORT_REQ = "SupportReq"
    FEEDBACK = "Feedback"
    RIDE = "Ride"
    PAYMENT = "Payment"


class FieldType(str, Enum):
    """Abstract value types a payload field may carry."""

    NUMBER = "number"
    STRING = "string"
    DATE = "date"


# ---------------------------------------------------------------------------
# Shared model configuration
# ---------------------------------------------------------------------------

_SHARED_CONFIG: ConfigDict = ConfigDict(
    strict=False,
    populate_by_name=True,
    validate_assignment=True,
    frozen=False,
    extra="forbid",
)


# ---------------------------------------------------------------------------
# Field-level primitives
# ---------------------------------------------------------------------------


class NumericRange(BaseModel):
    """
    Declarative bound predicate for a numeric field.

    Any combination of ``ge``/``gt``/``le``/``lt`` may be set; at least one
    is required.  ``violation()`` returns a human-readable reason for the
    first bound that fails, or ``None`` when the value is in range.
    """

    model_config = _SHARED_CONFIG

    ge: Optional[float] = Field(default=None, description="Inclusive lower bound.")
    gt: Optional[float] = Field(default=None, description="Exclusive lower bound.")
    le: Optional[float] = Field(default=None, description="Inclusive upper bound.")
    lt: Optional[float] = Field(default=None, description="Exclusive upper bound.")

    @model_validator(mode="after")
    def _at_least_one_bound(self) -> "NumericRange":
        if self.ge is None and self.gt is None and self.le is None and self.lt is None:
            raise ValueError("NumericRange requires at least one bound.")
        return self

    def violation(self, value: float) -> Optional[str]:
        if self.ge is not None and not value >= self.ge:
            return f"must be >= {_fmt_bound(self.ge)}"
        if self.gt is not None and not value > self.gt:
            return f"must be > {_fmt_bound(self.gt)}"
        if self.le is not None and not value <= self.le:
            return f"must be <= {_fmt_bound(self.le)}"
        if self.lt is not None and not value < self.lt:
            return f"must be < {_fmt_bound(self.lt)}"
        return None

    def __repr__(self) -> str:
        parts: List[str] = [
            f"{op}={getattr(self, op)}"
            for op in ("ge", "gt", "le", "lt")
            if getattr(self, op) is not None
        ]
        return f"<NumericRange {' '.join(parts)}>"


def _fmt_bound(bound: float) -> str:
    return str(int(bound)) if float(bound).is_integer() else str(bound)


class FieldDescriptor(BaseModel):
    """
    Complete description of a single payload field.

    Every field of every entity kind becomes exactly one
    ``FieldDescriptor`` in the registry.
    """

    model_config = _SHARED_CONFIG

    name: str = Field(..., min_length=1, description="Payload / column name.")
    field_type: FieldType = Field(..., description="Abstract value type.")
    required: bool = Field(default=True, description="Must be present and non-empty.")
    integral: bool = Field(
        default=False,
        description="Number fields only: value must be a whole number.",
    )
    constraint: Optional[NumericRange] = Field(
        default=None, description="Range predicate for number fields."
    )
    label: Optional[str] = Field(
        default=None, description="Human noun used in messages, e.g. 'Driver ID'."
    )
    max_length: Optional[int] = Field(
        default=255,
        ge=1,
        description="Storage hint for string columns (None = unbounded TEXT).",
    )

    @model_validator(mode="after")
    def _validate_numeric_only_options(self) -> "FieldDescriptor":
        if self.field_type != FieldType.NUMBER and (self.integral or self.constraint):
            raise ValueError(
                f"Field '{self.name}' is of type '{self.field_type.value}' but "
                f"declares 'integral' or 'constraint', which apply to numbers only."
            )
        return self

    def __repr__(self) -> str:
        req: str = "" if self.required else " optional"
        return f"<Field {self.name} {self.field_type.value}{req}>"


# ---------------------------------------------------------------------------
# Foreign keys
# ---------------------------------------------------------------------------


class ForeignKeyDescriptor(BaseModel):
    """Describes a reference from one field to another kind's key field."""

    model_config = _SHARED_CONFIG

    field: str = Field(..., min_length=1, description="Local field name.")
    referenced_kind: EntityKind = Field(..., description="Target entity kind.")
    referenced_key_field: str = Field(
        ..., min_length=1, description="Target key field (usually its primary key)."
    )
    label_columns: Dict[str, str] = Field(
        default_factory=dict,
        description="Referenced columns joined into read results, keyed by alias source.",
    )

    def __repr__(self) -> str:
        return (
            f"<FK {self.field} → "
            f"{self.referenced_kind.value}.{self.referenced_key_field}>"
        )


# ---------------------------------------------------------------------------
# Entity schema
# ---------------------------------------------------------------------------


class EntitySchema(BaseModel):
    """
    Declarative description of one entity kind.

    Field order is significant: the field validator reports the first
    violation in declaration order, and the integrity resolver checks
    foreign keys in ``foreign_keys`` order.
    """

    model_config = _SHARED_CONFIG

    kind: EntityKind = Field(..., description="Entity kind this schema describes.")
    resource: str = Field(
        ..., min_length=1, description="REST resource segment, e.g. 'drivers'."
    )
    fields: List[FieldDescriptor] = Field(..., min_length=1)
    primary_key: str = Field(..., min_length=1, description="Primary key field name.")
    foreign_keys: List[ForeignKeyDescriptor] = Field(default_factory=list)
    created_message: str = Field(
        default="Record created successfully",
        description="Message returned after a successful create.",
    )
    response_key: str = Field(
        default="id", description="JSON key carrying the new primary key value."
    )
    list_order: Optional[str] = Field(
        default=None, description="Column that list reads are ordered by."
    )
    list_descending: bool = Field(default=False)

    _field_map: Dict[str, FieldDescriptor] = PrivateAttr(default_factory=dict)

    @model_validator(mode="after")
    def _build_field_map(self) -> "EntitySchema":
        names: List[str] = [f.name for f in self.fields]
        if len(names) != len(set(names)):
            dupes: Set[str] = {n for n in names if names.count(n) > 1}
            raise ValueError(
                f"Schema '{self.kind.value}' declares duplicate fields: {sorted(dupes)}"
            )
        self._field_map = {f.name: f for f in self.fields}
        return self

    @model_validator(mode="after")
    def _validate_key_fields_exist(self) -> "EntitySchema":
        by_name: Dict[str, FieldDescriptor] = {f.name: f for f in self.fields}
        if self.primary_key not in by_name:
            raise ValueError(
                f"Primary key '{self.primary_key}' is not a field of "
                f"'{self.kind.value}'."
            )
        if not by_name[self.primary_key].required:
            raise ValueError(
                f"Primary key '{self.primary_key}' of '{self.kind.value}' "
                f"must be a required field."
            )
        for fk in self.foreign_keys:
            if fk.field not in by_name:
                raise ValueError(
                    f"Foreign key field '{fk.field}' is not a field of "
                    f"'{self.kind.value}'. Available: {sorted(by_name)}"
                )
        if self.list_order is not None and self.list_order not in by_name:
            raise ValueError(
                f"list_order column '{self.list_order}' is not a field of "
                f"'{self.kind.value}'."
            )
        return self

    def get_field(self, name: str) -> Optional[FieldDescriptor]:
        """O(1) field lookup by name."""
        return self._field_map.get(name)

    @property
    def key_field(self) -> FieldDescriptor:
        return self._field_map[self.primary_key]

    @computed_field  # type: ignore[misc]
    @property
    def field_names(self) -> List[str]:
        return [f.name for f in self.fields]

    @computed_field  # type: ignore[misc]
    @property
    def required_fields(self) -> List[str]:
        return [f.name for f in self.fields if f.required]

    @computed_field  # type: ignore[misc]
    @property
    def referenced_kinds(self) -> List[EntityKind]:
        return [fk.referenced_kind for fk in self.foreign_keys]

    def describe(self) -> Dict[str, Any]:
        """JSON-friendly summary used by the CLI and ``GET /api/schemas``."""
        return {
            "kind": self.kind.value,
            "resource": self.resource,
            "primary_key": self.primary_key,
            "fields": [
                {
                    "name": f.name,
                    "type": f.field_type.value,
                    "required": f.required,
                    "integral": f.integral,
                    "constraint": f.constraint.model_dump(exclude_none=True)
                    if f.constraint
                    else None,
                }
                for f in self.fields
            ],
            "foreign_keys": [
                {
                    "field": fk.field,
                    "references": f"{fk.referenced_kind.value}.{fk.referenced_key_field}",
                }
                for fk in self.foreign_keys
            ],
        }

    def __repr__(self) -> str:
        return (
            f"<EntitySchema {self.kind.value} "
            f"({len(self.fields)} fields, {len(self.foreign_keys)} FKs)>"
        )


# ---------------------------------------------------------------------------
# Pipeline output
# ---------------------------------------------------------------------------


class AcceptedRecord(BaseModel):
    """
    A normalized, fully validated record ready for durable creation.

    ``values`` holds every declared field of the kind: numbers coerced to
    ``int``/``float``, dates to naive UTC ``datetime``, optional absent
    fields as ``None``.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    kind: EntityKind
    primary_key: str
    key_value: Any
    values: Dict[str, Any]

    def as_row(self) -> Dict[str, Any]:
        """Return a fresh column → value mapping for the storage layer."""
        return dict(self.values)

    def __repr__(self) -> str:
        return f"<AcceptedRecord {self.kind.value} {self.primary_key}={self.key_value!r}>"


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "EntityKind",
    "FieldType",
    "NumericRange",
    "FieldDescriptor",
    "ForeignKeyDescriptor",
    "EntitySchema",
    "AcceptedRecord",
]

logger.debug("fleetdispatch.models loaded — %d public symbols.", len(__all__))

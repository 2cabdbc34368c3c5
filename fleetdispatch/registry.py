# File: fleetdispatch/registry.py
"""
fleetdispatch - Schema Registry
================================
Static, process-wide, read-only mapping from ``EntityKind`` to its
``EntitySchema``.  Built once at import time and exposed through a
``MappingProxyType`` so concurrent readers never need a lock.

Usage::

    from fleetdispatch.registry import schema_for
    schema = schema_for("Driver")
"""

from __future__ import annotations

import logging
from types import MappingProxyType
from typing import Dict, List, Mapping, Optional, Union

from fleetdispatch.exceptions import UnknownKind
from fleetdispatch.models import (
    EntityKind,
    EntitySchema,
    FieldDescriptor,
    FieldType,
    ForeignKeyDescriptor,
    NumericRange,
)

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("fleetdispatch.registry")

KindLike = Union[EntityKind, str]


# ---------------------------------------------------------------------------
# Descriptor shorthands
# ---------------------------------------------------------------------------


def _id(name: str, label: str, required: bool = True) -> FieldDescriptor:
    return FieldDescriptor(
        name=name,
        field_type=FieldType.NUMBER,
        integral=True,
        required=required,
        label=label,
    )


def _num(
    name: str,
    label: str,
    integral: bool = False,
    constraint: Optional[NumericRange] = None,
) -> FieldDescriptor:
    return FieldDescriptor(
        name=name,
        field_type=FieldType.NUMBER,
        integral=integral,
        constraint=constraint,
        label=label,
    )


def _str(
    name: str,
    required: bool = True,
    max_length: Optional[int] = 255,
) -> FieldDescriptor:
    return FieldDescriptor(
        name=name,
        field_type=FieldType.STRING,
        required=required,
        max_length=max_length,
    )


def _date(name: str) -> FieldDescriptor:
    return FieldDescriptor(name=name, field_type=FieldType.DATE)


def _fk(
    field: str,
    kind: EntityKind,
    key: str,
    labels: Optional[Dict[str, str]] = None,
) -> ForeignKeyDescriptor:
    return ForeignKeyDescriptor(
        field=field,
        referenced_kind=kind,
        referenced_key_field=key,
        label_columns=labels or {},
    )


_DRIVER_LABELS: Dict[str, str] = {"dname": "DriverName"}
_PASSENGER_LABELS: Dict[str, str] = {"pname": "PassengerName"}
_VEHICLE_LABELS: Dict[str, str] = {"vtype": "VehicleType", "LicencePlate": "LicencePlate"}


# ---------------------------------------------------------------------------
# Schema declarations
# ---------------------------------------------------------------------------

_SCHEMAS: List[EntitySchema] = [
    EntitySchema(
        kind=EntityKind.DRIVER,
        resource="drivers",
        primary_key="D_ID",
        fields=[
            _id("D_ID", "Driver ID"),
            _str("dname"),
            _num("contactnum", "Contact number", integral=True),
            _str("insuranceDoc"),
            _str("PaymentMethod"),
            _num("Statuss", "Status", integral=True),
            _num("LicenceNumber", "Licence number", integral=True),
        ],
        created_message="Driver registered",
        response_key="driverId",
    ),
    EntitySchema(
        kind=EntityKind.PASSENGER,
        resource="passengers",
        primary_key="P_ID",
        fields=[
            _id("P_ID", "Passenger ID"),
            _str("pname"),
            _num("contactnum", "Contact number", integral=True),
            _str("CreditCardInfo"),
        ],
        created_message="Passenger registered successfully",
        response_key="passengerId",
    ),
    EntitySchema(
        kind=EntityKind.VEHICLE,
        resource="vehicles",
        primary_key="V_ID",
        fields=[
            _id("V_ID", "Vehicle ID"),
            _str("vtype"),
            _str("LicencePlate"),
            _str("MaintenanceStat"),
            _num("ChildSeat", "Child seat", integral=True),
        ],
        created_message="Vehicle registered successfully",
        response_key="vehicleId",
    ),
    EntitySchema(
        kind=EntityKind.PROMOTION,
        resource="promotions",
        primary_key="P_Code",
        fields=[
            _str("P_Code", max_length=64),
            _str("PDescription", max_length=None),
            _num("Percentage", "Percentage"),
            _date("Startt"),
            _date("Endd"),
            _num("Statuss", "Status", integral=True),
        ],
        created_message="Promotion created",
        response_key="promotionCode",
        list_order="Startt",
        list_descending=True,
    ),
    EntitySchema(
        kind=EntityKind.SCHEDULE,
        resource="schedules",
        primary_key="Sch_ID",
        fields=[
            _id("Sch_ID", "Schedule ID"),
            _id("D_ID", "Driver ID"),
            _id("V_ID", "Vehicle ID"),
            _date("StartTime"),
            _date("EndTime"),
            _str("Statuss"),
        ],
        foreign_keys=[
            _fk("D_ID", EntityKind.DRIVER, "D_ID", _DRIVER_LABELS),
            _fk("V_ID", EntityKind.VEHICLE, "V_ID", _VEHICLE_LABELS),
        ],
        created_message="Schedule created successfully",
        response_key="scheduleId",
        list_order="StartTime",
        list_descending=True,
    ),
    EntitySchema(
        kind=EntityKind.MAINTENANCE,
        resource="maintenance",
        primary_key="M_ID",
        fields=[
            _id("M_ID", "Maintenance ID"),
            _id("V_ID", "Vehicle ID"),
            _str("Description", max_length=None),
            _date("DatePerformed"),
            _num("Cost", "Cost", constraint=NumericRange(ge=0)),
            _str("Statuss"),
        ],
        foreign_keys=[
            _fk("V_ID", EntityKind.VEHICLE, "V_ID", _VEHICLE_LABELS),
        ],
        created_message="Maintenance record created successfully",
        response_key="maintenanceId",
        list_order="DatePerformed",
        list_descending=True,
    ),
    EntitySchema(
        kind=EntityKind.SUPPORT_REQ,
        resource="support",
        primary_key="S_ID",
        fields=[
            _id("S_ID", "Support ID"),
            _str("SubmittedBy"),
            _str("IssueType"),
            _str("IssueDesc", max_length=None),
            _str("IssueStatus"),
            _id("D_ID", "Driver ID", required=False),
            _id("P_ID", "Passenger ID", required=False),
        ],
        foreign_keys=[
            _fk("D_ID", EntityKind.DRIVER, "D_ID", _DRIVER_LABELS),
            _fk("P_ID", EntityKind.PASSENGER, "P_ID", _PASSENGER_LABELS),
        ],
        created_message="Support request submitted successfully",
        response_key="supportId",
        list_order="S_ID",
        list_descending=True,
    ),
    EntitySchema(
        kind=EntityKind.FEEDBACK,
        resource="feedback",
        primary_key="F_ID",
        fields=[
            _id("F_ID", "Feedback ID"),
            _num("Rating", "Rating", constraint=NumericRange(ge=1, le=5)),
            _str("Comment", required=False, max_length=None),
            _str("SubmittedTo"),
            _str("SubmittedBy"),
            _id("P_ID", "Passenger ID"),
            _id("D_ID", "Driver ID"),
        ],
        foreign_keys=[
            _fk("P_ID", EntityKind.PASSENGER, "P_ID", _PASSENGER_LABELS),
            _fk("D_ID", EntityKind.DRIVER, "D_ID", _DRIVER_LABELS),
        ],
        created_message="Feedback submitted successfully",
        response_key="feedbackId",
    ),
    EntitySchema(
        kind=EntityKind.RIDE,
        resource="rides",
        primary_key="Ride_ID",
        fields=[
            _id("Ride_ID", "Ride ID"),
            _str("PickupLocation"),
            _str("Dropoff"),
            _date("TimeStamp"),
            _num("Statuss", "Status", integral=True),
            _id("V_ID", "Vehicle ID"),
            _id("D_ID", "Driver ID"),
            _id("P_ID", "Passenger ID"),
            _id("F_ID", "Feedback ID", required=False),
        ],
        foreign_keys=[
            _fk("V_ID", EntityKind.VEHICLE, "V_ID", _VEHICLE_LABELS),
            _fk("D_ID", EntityKind.DRIVER, "D_ID", _DRIVER_LABELS),
            _fk("P_ID", EntityKind.PASSENGER, "P_ID", _PASSENGER_LABELS),
            _fk("F_ID", EntityKind.FEEDBACK, "F_ID", {"Rating": "FeedbackRating"}),
        ],
        created_message="Ride created successfully",
        response_key="rideId",
        list_order="TimeStamp",
        list_descending=True,
    ),
    EntitySchema(
        kind=EntityKind.PAYMENT,
        resource="payments",
        primary_key="Payment_ID",
        fields=[
            _id("Payment_ID", "Payment ID"),
            _num("Amount", "Amount", constraint=NumericRange(gt=0)),
            _str("PaymentMethod"),
            _num("Statuss", "Status", integral=True),
            _date("TimeStamp"),
            _str("PromoUsed", required=False, max_length=64),
            _id("P_ID", "Passenger ID"),
            _id("Ride_ID", "Ride ID"),
        ],
        foreign_keys=[
            _fk("P_ID", EntityKind.PASSENGER, "P_ID", _PASSENGER_LABELS),
            _fk(
                "Ride_ID",
                EntityKind.RIDE,
                "Ride_ID",
                {"PickupLocation": "PickupLocation", "Dropoff": "Dropoff"},
            ),
            _fk("PromoUsed", EntityKind.PROMOTION, "P_Code"),
        ],
        created_message="Payment processed successfully",
        response_key="paymentId",
        list_order="TimeStamp",
        list_descending=True,
    ),
]

SCHEMA_REGISTRY: Mapping[EntityKind, EntitySchema] = MappingProxyType(
    {schema.kind: schema for schema in _SCHEMAS}
)

# Lowercase kind values and REST resource names both resolve to a kind.
_RESOURCE_INDEX: Mapping[str, EntityKind] = MappingProxyType(
    {
        **{schema.kind.value.lower(): schema.kind for schema in _SCHEMAS},
        **{schema.resource: schema.kind for schema in _SCHEMAS},
    }
)


def _check_references() -> None:
    """Every foreign key must point at a registered kind and one of its fields."""
    for schema in _SCHEMAS:
        for fk in schema.foreign_keys:
            target: Optional[EntitySchema] = SCHEMA_REGISTRY.get(fk.referenced_kind)
            if target is None or target.get_field(fk.referenced_key_field) is None:
                raise RuntimeError(
                    f"{schema.kind.value}.{fk.field} references unknown "
                    f"{fk.referenced_kind.value}.{fk.referenced_key_field}"
                )
            for column in fk.label_columns:
                if target.get_field(column) is None:
                    raise RuntimeError(
                        f"{schema.kind.value}.{fk.field} label column '{column}' "
                        f"is not a field of {fk.referenced_kind.value}"
                    )


_check_references()


# ---------------------------------------------------------------------------
# Public lookup API
# ---------------------------------------------------------------------------


def resolve_kind(kind: KindLike) -> EntityKind:
    """
    Turn an ``EntityKind``, a kind value (``"Driver"``) or a REST resource
    name (``"drivers"``) into an ``EntityKind``.

    Raises:
        UnknownKind: if nothing matches.
    """
    if isinstance(kind, EntityKind):
        return kind
    if isinstance(kind, str):
        try:
            return EntityKind(kind)
        except ValueError:
            pass
        by_resource: Optional[EntityKind] = _RESOURCE_INDEX.get(kind.lower())
        if by_resource is not None:
            return by_resource
    raise UnknownKind(kind)


def schema_for(kind: KindLike) -> EntitySchema:
    """Return the schema registered for *kind*, or raise ``UnknownKind``."""
    resolved: EntityKind = resolve_kind(kind)
    schema: Optional[EntitySchema] = SCHEMA_REGISTRY.get(resolved)
    if schema is None:
        raise UnknownKind(kind)
    return schema


def all_schemas() -> List[EntitySchema]:
    """All schemas in declaration order."""
    return list(_SCHEMAS)


def dependency_order() -> List[EntityKind]:
    """
    Kinds ordered so that every referenced kind precedes its referrers.

    Kahn's algorithm over the foreign-key graph, O(V + E).  Ties keep
    declaration order.
    """
    in_degree: Dict[EntityKind, int] = {s.kind: 0 for s in _SCHEMAS}
    dependants: Dict[EntityKind, List[EntityKind]] = {s.kind: [] for s in _SCHEMAS}

    for schema in _SCHEMAS:
        for target in dict.fromkeys(fk.referenced_kind for fk in schema.foreign_keys):
            if target != schema.kind:
                dependants[target].append(schema.kind)
                in_degree[schema.kind] += 1

    queue: List[EntityKind] = [s.kind for s in _SCHEMAS if in_degree[s.kind] == 0]
    ordered: List[EntityKind] = []

    while queue:
        node: EntityKind = queue.pop(0)
        ordered.append(node)
        for dependant in dependants[node]:
            in_degree[dependant] -= 1
            if in_degree[dependant] == 0:
                queue.append(dependant)

    if len(ordered) != len(_SCHEMAS):
        raise RuntimeError("Circular foreign-key dependency in the schema registry.")
    return ordered


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "KindLike",
    "SCHEMA_REGISTRY",
    "resolve_kind",
    "schema_for",
    "all_schemas",
    "dependency_order",
]

logger.debug("fleetdispatch.registry loaded — %d entity kinds.", len(SCHEMA_REGISTRY))

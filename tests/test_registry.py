"""
tests/test_registry.py
Unit tests for fleetdispatch.registry and the schema models it builds.

Tests cover:
- Kind resolution (enum, value, resource name, unknown)
- Schema shapes for every kind (primary keys, foreign keys, constraints)
- Dependency ordering of the foreign-key graph
- Model-level validation of malformed schema declarations
"""

from __future__ import annotations

from typing import List

import pytest
from pydantic import ValidationError

from fleetdispatch.exceptions import UnknownKind
from fleetdispatch.models import (
    EntityKind,
    EntitySchema,
    FieldDescriptor,
    FieldType,
    ForeignKeyDescriptor,
    NumericRange,
)
from fleetdispatch.registry import (
    SCHEMA_REGISTRY,
    all_schemas,
    dependency_order,
    resolve_kind,
    schema_for,
)


# ===========================================================================
# Kind resolution
# ===========================================================================


class TestResolveKind:
    """Tests for resolve_kind() and schema_for()."""

    def test_enum_member_resolves_to_itself(self) -> None:
        assert resolve_kind(EntityKind.RIDE) is EntityKind.RIDE

    def test_kind_value_resolves(self) -> None:
        assert resolve_kind("SupportReq") is EntityKind.SUPPORT_REQ

    @pytest.mark.parametrize(
        "name, expected",
        [
            ("drivers", EntityKind.DRIVER),
            ("support", EntityKind.SUPPORT_REQ),
            ("maintenance", EntityKind.MAINTENANCE),
            ("payment", EntityKind.PAYMENT),
        ],
    )
    def test_resource_and_lowercase_names_resolve(self, name: str, expected: EntityKind) -> None:
        assert resolve_kind(name) is expected

    def test_unknown_kind_raises(self) -> None:
        with pytest.raises(UnknownKind) as exc_info:
            schema_for("Spaceship")
        assert exc_info.value.kind == "Spaceship"
        assert exc_info.value.http_status == 404
        assert exc_info.value.stage == "registry"

    def test_non_string_kind_raises(self) -> None:
        with pytest.raises(UnknownKind):
            schema_for(42)

    def test_schema_for_returns_registered_schema(self) -> None:
        schema: EntitySchema = schema_for("Driver")
        assert schema is SCHEMA_REGISTRY[EntityKind.DRIVER]
        assert schema.primary_key == "D_ID"


# ===========================================================================
# Registered schemas
# ===========================================================================


class TestRegisteredSchemas:
    """The ten declared schemas match the dispatch data model."""

    def test_every_kind_is_registered(self) -> None:
        assert set(SCHEMA_REGISTRY) == set(EntityKind)
        assert len(all_schemas()) == 10

    def test_registry_is_read_only(self) -> None:
        with pytest.raises(TypeError):
            SCHEMA_REGISTRY[EntityKind.DRIVER] = schema_for("Passenger")  # type: ignore[index]

    def test_primary_keys(self) -> None:
        keys = {schema.kind: schema.primary_key for schema in all_schemas()}
        assert keys == {
            EntityKind.DRIVER: "D_ID",
            EntityKind.PASSENGER: "P_ID",
            EntityKind.VEHICLE: "V_ID",
            EntityKind.PROMOTION: "P_Code",
            EntityKind.SCHEDULE: "Sch_ID",
            EntityKind.MAINTENANCE: "M_ID",
            EntityKind.SUPPORT_REQ: "S_ID",
            EntityKind.FEEDBACK: "F_ID",
            EntityKind.RIDE: "Ride_ID",
            EntityKind.PAYMENT: "Payment_ID",
        }

    def test_ride_foreign_keys_in_declaration_order(self) -> None:
        ride: EntitySchema = schema_for(EntityKind.RIDE)
        assert [fk.field for fk in ride.foreign_keys] == ["V_ID", "D_ID", "P_ID", "F_ID"]
        assert ride.referenced_kinds == [
            EntityKind.VEHICLE,
            EntityKind.DRIVER,
            EntityKind.PASSENGER,
            EntityKind.FEEDBACK,
        ]

    def test_optional_fields(self) -> None:
        support: EntitySchema = schema_for(EntityKind.SUPPORT_REQ)
        assert not support.get_field("D_ID").required
        assert not support.get_field("P_ID").required
        assert not schema_for(EntityKind.RIDE).get_field("F_ID").required
        assert not schema_for(EntityKind.PAYMENT).get_field("PromoUsed").required
        assert not schema_for(EntityKind.FEEDBACK).get_field("Comment").required

    def test_numeric_constraints(self) -> None:
        rating = schema_for(EntityKind.FEEDBACK).get_field("Rating").constraint
        cost = schema_for(EntityKind.MAINTENANCE).get_field("Cost").constraint
        amount = schema_for(EntityKind.PAYMENT).get_field("Amount").constraint
        assert (rating.ge, rating.le) == (1, 5)
        assert cost.ge == 0
        assert amount.gt == 0

    def test_payment_promo_references_promotion_code(self) -> None:
        payment: EntitySchema = schema_for(EntityKind.PAYMENT)
        promo: ForeignKeyDescriptor = payment.foreign_keys[-1]
        assert promo.field == "PromoUsed"
        assert promo.referenced_kind is EntityKind.PROMOTION
        assert promo.referenced_key_field == "P_Code"

    def test_describe_is_json_friendly(self) -> None:
        summary = schema_for(EntityKind.FEEDBACK).describe()
        assert summary["kind"] == "Feedback"
        assert summary["resource"] == "feedback"
        rating = next(f for f in summary["fields"] if f["name"] == "Rating")
        assert rating["constraint"] == {"ge": 1.0, "le": 5.0}
        assert summary["foreign_keys"][0]["references"] == "Passenger.P_ID"


# ===========================================================================
# Dependency order
# ===========================================================================


class TestDependencyOrder:
    """Tests for dependency_order()."""

    def test_contains_every_kind_once(self) -> None:
        order: List[EntityKind] = dependency_order()
        assert sorted(order, key=lambda k: k.value) == sorted(EntityKind, key=lambda k: k.value)

    def test_referenced_kinds_come_first(self) -> None:
        order: List[EntityKind] = dependency_order()
        position = {kind: index for index, kind in enumerate(order)}
        for schema in all_schemas():
            for target in schema.referenced_kinds:
                assert position[target] < position[schema.kind], (
                    f"{target.value} must precede {schema.kind.value}"
                )

    def test_order_is_stable(self) -> None:
        assert dependency_order() == dependency_order()


# ===========================================================================
# Schema model validation
# ===========================================================================


class TestSchemaModels:
    """Malformed declarations are rejected when the models are built."""

    def test_numeric_range_needs_a_bound(self) -> None:
        with pytest.raises(ValidationError):
            NumericRange()

    def test_numeric_range_violation_messages(self) -> None:
        bounds = NumericRange(ge=1, le=5)
        assert bounds.violation(3) is None
        assert bounds.violation(0) == "must be >= 1"
        assert bounds.violation(6) == "must be <= 5"
        assert NumericRange(gt=0).violation(0) == "must be > 0"

    def test_constraint_on_string_field_rejected(self) -> None:
        with pytest.raises(ValidationError):
            FieldDescriptor(
                name="dname",
                field_type=FieldType.STRING,
                constraint=NumericRange(ge=0),
            )

    def test_unknown_primary_key_rejected(self) -> None:
        with pytest.raises(ValidationError):
            EntitySchema(
                kind=EntityKind.DRIVER,
                resource="drivers",
                primary_key="missing",
                fields=[FieldDescriptor(name="D_ID", field_type=FieldType.NUMBER)],
            )

    def test_duplicate_field_names_rejected(self) -> None:
        with pytest.raises(ValidationError):
            EntitySchema(
                kind=EntityKind.DRIVER,
                resource="drivers",
                primary_key="D_ID",
                fields=[
                    FieldDescriptor(name="D_ID", field_type=FieldType.NUMBER),
                    FieldDescriptor(name="D_ID", field_type=FieldType.NUMBER),
                ],
            )

    def test_foreign_key_on_undeclared_field_rejected(self) -> None:
        with pytest.raises(ValidationError):
            EntitySchema(
                kind=EntityKind.SCHEDULE,
                resource="schedules",
                primary_key="Sch_ID",
                fields=[FieldDescriptor(name="Sch_ID", field_type=FieldType.NUMBER)],
                foreign_keys=[
                    ForeignKeyDescriptor(
                        field="D_ID",
                        referenced_kind=EntityKind.DRIVER,
                        referenced_key_field="D_ID",
                    )
                ],
            )

# File: fleetdispatch/validators.py
"""
fleetdispatch - Field & Business-Rule Validators
=================================================
Pure functions that check a raw creation payload against one
``EntitySchema``:

- ``validate_fields``  — presence, type and numeric-domain checks, plus
  normalization into a plain record dict.  Kind-agnostic: everything it
  knows comes from the schema.
- ``validate_rules``   — predicates spanning more than one field (e.g.
  ``Schedule.StartTime < Schedule.EndTime``), registered per kind.

Neither function performs I/O.  Both are fail-fast: the first violation
in field declaration order is raised and later fields are not examined.

Complexity: O(F) where F = number of fields in the schema.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Mapping, Optional

from fleetdispatch.exceptions import (
    ConstraintViolation,
    InvalidRange,
    InvalidType,
    MissingField,
)
from fleetdispatch.models import EntityKind, EntitySchema, FieldDescriptor, FieldType
from fleetdispatch.utils import (
    Number,
    is_absent,
    is_whole,
    parse_datetime,
    parse_number,
    to_text,
)

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("fleetdispatch.validators")

INT64_MIN: int = -(2**63)
INT64_MAX: int = 2**63 - 1


# ---------------------------------------------------------------------------
# Field validation
# ---------------------------------------------------------------------------


def _coerce_number(descriptor: FieldDescriptor, raw: Any) -> Number:
    try:
        number: Number = parse_number(raw)
    except ValueError:
        raise InvalidType(descriptor.name, "number", descriptor.label) from None

    if descriptor.integral and not is_whole(number):
        raise InvalidType(descriptor.name, "integer", descriptor.label)

    # Integral columns are BIGINT.
    if descriptor.integral and not INT64_MIN <= number <= INT64_MAX:
        raise ConstraintViolation(
            descriptor.name,
            f"must be between {INT64_MIN} and {INT64_MAX}",
            descriptor.label,
        )

    if descriptor.constraint is not None:
        reason: Optional[str] = descriptor.constraint.violation(number)
        if reason is not None:
            raise ConstraintViolation(descriptor.name, reason, descriptor.label)

    return number


def coerce_value(descriptor: FieldDescriptor, raw: Any) -> Any:
    """
    Coerce one present value according to *descriptor*.

    Raises:
        InvalidType: if the value cannot be read as the declared type.
        ConstraintViolation: if a numeric value falls outside its range.
    """
    if descriptor.field_type == FieldType.NUMBER:
        return _coerce_number(descriptor, raw)

    if descriptor.field_type == FieldType.DATE:
        try:
            return parse_datetime(raw)
        except ValueError:
            raise InvalidType(descriptor.name, "date", descriptor.label) from None

    try:
        return to_text(raw)
    except ValueError:
        raise InvalidType(descriptor.name, "string", descriptor.label) from None


def validate_fields(schema: EntitySchema, payload: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Check *payload* against every field of *schema*, in declaration order.

    Returns a normalized record holding exactly the schema's fields:
    numbers as ``int``/``float``, dates as naive UTC ``datetime``, strings
    stripped, optional absent fields as ``None``.

    Raises:
        MissingField: a required field is missing, ``None`` or blank.
        InvalidType: a present value has the wrong type.
        ConstraintViolation: a numeric value breaks its declared range.
    """
    record: Dict[str, Any] = {}

    for descriptor in schema.fields:
        raw: Any = payload.get(descriptor.name)

        if is_absent(raw):
            if descriptor.required:
                raise MissingField(descriptor.name)
            record[descriptor.name] = None
            continue

        record[descriptor.name] = coerce_value(descriptor, raw)

    extra: List[str] = [key for key in payload if schema.get_field(key) is None]
    if extra:
        logger.debug(
            "Ignoring %d undeclared key(s) for %s: %s",
            len(extra),
            schema.kind.value,
            extra,
        )

    return record


# ---------------------------------------------------------------------------
# Business rules
# ---------------------------------------------------------------------------

# A rule inspects a normalized record and raises on violation.
RuleFn = Callable[[Dict[str, Any]], None]


def strictly_before(start_field: str, end_field: str) -> RuleFn:
    """Build a rule requiring ``record[start_field] < record[end_field]``."""

    def _rule(record: Dict[str, Any]) -> None:
        start: Any = record.get(start_field)
        end: Any = record.get(end_field)
        if start is None or end is None:
            return
        if not start < end:
            raise InvalidRange(start_field, end_field)

    _rule.__name__ = f"{start_field}_before_{end_field}"
    return _rule


_RULES: Dict[EntityKind, List[RuleFn]] = {
    EntityKind.SCHEDULE: [strictly_before("StartTime", "EndTime")],
}


def rules_for(kind: EntityKind) -> List[RuleFn]:
    return list(_RULES.get(kind, []))


def validate_rules(kind: EntityKind, record: Dict[str, Any]) -> None:
    """
    Run every cross-field rule registered for *kind* against *record*.

    Raises:
        InvalidRange: a time-ordering rule failed.
    """
    for rule in _RULES.get(kind, []):
        logger.debug("Running rule %s for %s", rule.__name__, kind.value)
        rule(record)


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "RuleFn",
    "coerce_value",
    "validate_fields",
    "strictly_before",
    "rules_for",
    "validate_rules",
]

logger.debug("fleetdispatch.validators loaded — %d public symbols.", len(__all__))

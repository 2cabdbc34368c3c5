# File: fleetdispatch/pipeline.py
"""
fleetdispatch - Validation Pipeline (Orchestrator)
===================================================

Connects every stage into one deterministic outcome per creation request:

    Registry lookup → Field Validation → Business Rules → Integrity → AcceptedRecord

Workflow::

    1. Resolve the entity kind to its ``EntitySchema`` (registry.py).
    2. Validate and normalize fields (validators.py).
    3. Run cross-field business rules (validators.py).
    4. Check primary-key uniqueness and foreign keys (integrity.py).
    5. Return an ``AcceptedRecord`` for the storage collaborator.

Error handling strategy:
    - The first failure short-circuits; later stages never run.
    - Every failure is a ``RecordValidationError`` tagged with ``stage``
      and ``code``.
    - No lookup call happens before field and rule checks pass.

The pipeline has no state of its own; it is safe to call from any number
of concurrent request handlers.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from fleetdispatch.exceptions import InvalidType, RecordValidationError
from fleetdispatch.integrity import ExistenceLookup, RecordStore, resolve_integrity
from fleetdispatch.models import AcceptedRecord, EntitySchema
from fleetdispatch.registry import schema_for
from fleetdispatch.utils import StageTimer
from fleetdispatch.validators import validate_fields, validate_rules

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("fleetdispatch.pipeline")


# ---------------------------------------------------------------------------
# Non-raising outcome
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class ValidationOutcome:
    """Result of ``check()``: exactly one of ``record`` / ``error`` is set."""

    kind: str
    record: Optional[AcceptedRecord] = None
    error: Optional[RecordValidationError] = None

    @property
    def accepted(self) -> bool:
        return self.error is None

    def to_dict(self) -> Dict[str, Any]:
        if self.error is not None:
            return {"kind": self.kind, "accepted": False, **self.error.to_dict()}
        return {
            "kind": self.kind,
            "accepted": True,
            "key": self.record.key_value if self.record is not None else None,
        }


# ---------------------------------------------------------------------------
# Pipeline entry points
# ---------------------------------------------------------------------------


def validate(kind: Any, payload: Any, lookup: ExistenceLookup) -> AcceptedRecord:
    """
    **Master validation entry point.**

    Args:
        kind: ``EntityKind``, kind name (``"Driver"``) or resource name.
        payload: untyped request body.
        lookup: existence capability backed by the current store.

    Returns:
        The normalized ``AcceptedRecord``.

    Raises:
        RecordValidationError: the first failed check, tagged with its stage.
    """
    schema: EntitySchema = schema_for(kind)

    if not isinstance(payload, Mapping):
        raise InvalidType("payload", "object", "Request body")

    timer: StageTimer = StageTimer(schema.kind.value)
    try:
        with timer.stage("fields"):
            record: Dict[str, Any] = validate_fields(schema, payload)
        with timer.stage("rules"):
            validate_rules(schema.kind, record)
        with timer.stage("integrity"):
            resolve_integrity(schema, record, lookup)
    except RecordValidationError as exc:
        logger.info(
            "Rejected %s at stage '%s': %s %s",
            schema.kind.value,
            exc.stage,
            exc.code,
            exc.context,
        )
        raise
    finally:
        logger.debug("Stage timings for %s: %s", schema.kind.value, timer.summary())

    accepted: AcceptedRecord = AcceptedRecord(
        kind=schema.kind,
        primary_key=schema.primary_key,
        key_value=record[schema.primary_key],
        values=record,
    )
    logger.info(
        "Accepted %s %s=%r",
        schema.kind.value,
        schema.primary_key,
        accepted.key_value,
    )
    return accepted


def check(kind: Any, payload: Any, lookup: ExistenceLookup) -> ValidationOutcome:
    """Like ``validate()`` but returns a ``ValidationOutcome`` instead of raising."""
    label: str = str(getattr(kind, "value", kind))
    try:
        record: AcceptedRecord = validate(kind, payload, lookup)
    except RecordValidationError as exc:
        return ValidationOutcome(kind=label, error=exc)
    return ValidationOutcome(kind=record.kind.value, record=record)


def validate_and_create(kind: Any, payload: Any, store: RecordStore) -> AcceptedRecord:
    """
    Validate against *store* and, on success, hand the record to
    ``store.create``.

    Raises:
        RecordValidationError: validation failed; nothing was written.
        StorageError: the store failed to persist the accepted record.
    """
    accepted: AcceptedRecord = validate(kind, payload, store)
    store.create(accepted.kind, accepted.as_row())
    return accepted


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "ValidationOutcome",
    "validate",
    "check",
    "validate_and_create",
]

# File: fleetdispatch/exceptions.py
"""
fleetdispatch - Error Taxonomy
===============================
Every failure the validation pipeline can produce is one of the
``RecordValidationError`` subclasses below.  Each instance carries:

- ``code``        — stable, kind-agnostic identifier (``MISSING_FIELD`` …)
- ``stage``       — pipeline stage that raised it
- ``http_status`` — status the transport layer must answer with
- ``message``     — precise user-facing text
- ``context``     — field name and/or referenced kind/value

Errors are terminal for the request that produced them; the pipeline stops
at the first one.

HTTP mapping::

    MissingField / InvalidType / ConstraintViolation / InvalidRange → 400
    DuplicateKey                                                    → 409
    ReferenceNotFound / UnknownKind                                 → 404
    StorageUnavailable / StorageError                               → 500
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

# ---------------------------------------------------------------------------
# Pipeline stages
# ---------------------------------------------------------------------------

STAGE_REGISTRY: str = "registry"
STAGE_FIELDS: str = "fields"
STAGE_RULES: str = "rules"
STAGE_INTEGRITY: str = "integrity"


class FleetDispatchError(Exception):
    """Base class for every error raised by this package."""


class RecordValidationError(FleetDispatchError):
    """A creation request was rejected by the validation pipeline."""

    code: str = "VALIDATION_ERROR"
    stage: str = STAGE_FIELDS
    http_status: int = 400

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message: str = message
        self.context: Dict[str, Any] = context or {}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": self.message,
            "code": self.code,
            "stage": self.stage,
            "context": self.context,
        }

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.code}: {self.message}>"


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------


class UnknownKind(RecordValidationError):
    code = "UNKNOWN_KIND"
    stage = STAGE_REGISTRY
    http_status = 404

    def __init__(self, kind: Any) -> None:
        self.kind: str = str(getattr(kind, "value", kind))
        super().__init__(
            f"Unknown entity kind '{self.kind}'.",
            {"kind": self.kind},
        )


# ---------------------------------------------------------------------------
# Field stage
# ---------------------------------------------------------------------------


class MissingField(RecordValidationError):
    code = "MISSING_FIELD"
    stage = STAGE_FIELDS

    def __init__(self, field: str) -> None:
        self.field: str = field
        super().__init__(f"Field '{field}' is required.", {"field": field})


class InvalidType(RecordValidationError):
    code = "INVALID_TYPE"
    stage = STAGE_FIELDS

    def __init__(self, field: str, expected: str, label: Optional[str] = None) -> None:
        self.field: str = field
        self.expected: str = expected
        article: str = "an" if expected[:1] in "aeiou" else "a"
        super().__init__(
            f"{label or field} must be {article} {expected}.",
            {"field": field, "expected": expected},
        )


class ConstraintViolation(RecordValidationError):
    code = "CONSTRAINT_VIOLATION"
    stage = STAGE_FIELDS

    def __init__(self, field: str, reason: str, label: Optional[str] = None) -> None:
        self.field: str = field
        self.reason: str = reason
        super().__init__(
            f"{label or field} {reason}.",
            {"field": field, "reason": reason},
        )


# ---------------------------------------------------------------------------
# Rule stage
# ---------------------------------------------------------------------------


class InvalidRange(RecordValidationError):
    code = "INVALID_RANGE"
    stage = STAGE_RULES

    def __init__(self, start_field: str, end_field: str) -> None:
        self.start_field: str = start_field
        self.end_field: str = end_field
        super().__init__(
            f"{end_field} must be after {start_field}.",
            {"start_field": start_field, "end_field": end_field},
        )


# ---------------------------------------------------------------------------
# Integrity stage
# ---------------------------------------------------------------------------


class DuplicateKey(RecordValidationError):
    code = "DUPLICATE_KEY"
    stage = STAGE_INTEGRITY
    http_status = 409

    def __init__(self, kind: Any, value: Any) -> None:
        self.kind: str = str(getattr(kind, "value", kind))
        self.value: Any = value
        super().__init__(
            f"{self.kind} {value!r} already exists.",
            {"kind": self.kind, "value": value},
        )


class ReferenceNotFound(RecordValidationError):
    code = "REFERENCE_NOT_FOUND"
    stage = STAGE_INTEGRITY
    http_status = 404

    def __init__(self, kind: Any, value: Any, field: Optional[str] = None) -> None:
        self.kind: str = str(getattr(kind, "value", kind))
        self.value: Any = value
        self.field: Optional[str] = field
        context: Dict[str, Any] = {"kind": self.kind, "value": value}
        if field is not None:
            context["field"] = field
        super().__init__(f"{self.kind} not found.", context)


class StorageUnavailable(RecordValidationError):
    code = "STORAGE_UNAVAILABLE"
    stage = STAGE_INTEGRITY
    http_status = 500

    def __init__(self, detail: str) -> None:
        super().__init__("Database error", {"details": detail})


# ---------------------------------------------------------------------------
# Storage collaborator
# ---------------------------------------------------------------------------


class StorageError(FleetDispatchError):
    """The storage collaborator failed to read or write."""

    http_status: int = 500

    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail: str = detail

    def to_dict(self) -> Dict[str, Any]:
        return {"error": "Database error", "details": self.detail}


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "STAGE_REGISTRY",
    "STAGE_FIELDS",
    "STAGE_RULES",
    "STAGE_INTEGRITY",
    "FleetDispatchError",
    "RecordValidationError",
    "UnknownKind",
    "MissingField",
    "InvalidType",
    "ConstraintViolation",
    "InvalidRange",
    "DuplicateKey",
    "ReferenceNotFound",
    "StorageUnavailable",
    "StorageError",
]

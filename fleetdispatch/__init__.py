# File: fleetdispatch/__init__.py
"""
fleetdispatch — Fleet Dispatch Record Validation & Integrity Core
===================================================================

Validates creation requests for the ten record kinds of a ride-hailing
fleet (drivers, passengers, vehicles, schedules, maintenance, support
requests, feedback, rides, promotions, payments) before they are
persisted, and serves them over a small REST API.

Architecture overview::

    ┌──────────────┐     ┌───────────────┐     ┌──────────────────┐
    │ HTTP / CLI   │────▶│   pipeline    │────▶│  RecordStore     │
    │ (api, cli)   │     │ (pipeline.py) │     │  (storage.py)    │
    └──────────────┘     └───────┬───────┘     └──────────────────┘
                                 │
                    ┌────────────┼────────────┐
                    ▼            ▼            ▼
             ┌──────────┐ ┌───────────┐ ┌───────────┐
             │ registry │ │validators │ │ integrity │
             │  (.py)   │ │  (.py)    │ │  (.py)    │
             └──────────┘ └───────────┘ └───────────┘

Usage::

    # As a library
    from fleetdispatch import validate, InMemoryRecordStore
    record = validate("Driver", payload, InMemoryRecordStore())

    # From the command line
    python -m fleetdispatch serve --port 3000

Public API:
    - validate / check / validate_and_create — pipeline entry points
    - schema_for / all_schemas               — registry lookups
    - SQLRecordStore / InMemoryRecordStore   — storage collaborators
    - ServiceConfig                          — runtime settings
    - RecordValidationError and subclasses   — error taxonomy
"""

from __future__ import annotations

__version__: str = "1.0.0"
__author__: str = "Fleet Dispatch Team"
__license__: str = "MIT"

from fleetdispatch.config import ServiceConfig
from fleetdispatch.exceptions import (
    ConstraintViolation,
    DuplicateKey,
    FleetDispatchError,
    InvalidRange,
    InvalidType,
    MissingField,
    RecordValidationError,
    ReferenceNotFound,
    StorageError,
    StorageUnavailable,
    UnknownKind,
)
from fleetdispatch.models import (
    AcceptedRecord,
    EntityKind,
    EntitySchema,
    FieldDescriptor,
    FieldType,
    ForeignKeyDescriptor,
    NumericRange,
)
from fleetdispatch.pipeline import ValidationOutcome, check, validate, validate_and_create
from fleetdispatch.registry import all_schemas, dependency_order, resolve_kind, schema_for
from fleetdispatch.storage import InMemoryRecordStore, SQLRecordStore

# ---------------------------------------------------------------------------
# Public API surface
# ---------------------------------------------------------------------------

__all__: list[str] = [
    # Version info
    "__version__",
    "__author__",
    "__license__",
    # Pipeline
    "validate",
    "check",
    "validate_and_create",
    "ValidationOutcome",
    # Registry
    "schema_for",
    "resolve_kind",
    "all_schemas",
    "dependency_order",
    # Models
    "EntityKind",
    "FieldType",
    "NumericRange",
    "FieldDescriptor",
    "ForeignKeyDescriptor",
    "EntitySchema",
    "AcceptedRecord",
    # Errors
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
    # Storage & config
    "SQLRecordStore",
    "InMemoryRecordStore",
    "ServiceConfig",
]

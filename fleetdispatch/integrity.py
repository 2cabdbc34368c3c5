# File: fleetdispatch/integrity.py
"""
fleetdispatch - Integrity Resolver
===================================
Checks a field-validated record against the persisted entity graph through
an injected ``ExistenceLookup`` capability:

1. Primary-key uniqueness: ``exists(kind, pk, record[pk])`` must be False.
2. Each foreign key, in schema declaration order, whose value is not
   ``None``: ``exists(referenced_kind, referenced_key, value)`` must be True.

The first failed check is raised; nothing after it is looked up.  Any
exception escaping ``lookup.exists`` is reported as ``StorageUnavailable``
and never mistaken for a passing check.

Each ``exists`` call is an independent read.  No lock or transaction spans
the checks and the later insert, so two concurrent requests for the same
key can both pass uniqueness; the SQL store turns the losing insert into
``DuplicateKey`` (see ``fleetdispatch.storage``).
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Protocol, runtime_checkable

from fleetdispatch.exceptions import DuplicateKey, ReferenceNotFound, StorageUnavailable
from fleetdispatch.models import EntityKind, EntitySchema

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("fleetdispatch.integrity")


# ---------------------------------------------------------------------------
# Capabilities provided by the storage collaborator
# ---------------------------------------------------------------------------


@runtime_checkable
class ExistenceLookup(Protocol):
    """Read-only key existence check against the store's current state."""

    def exists(self, kind: EntityKind, key_field: str, value: Any) -> bool:
        ...


@runtime_checkable
class RecordStore(ExistenceLookup, Protocol):
    """Existence checks plus durable creation of accepted records."""

    def create(self, kind: EntityKind, record: Dict[str, Any]) -> None:
        ...


# ---------------------------------------------------------------------------
# Resolver
# ---------------------------------------------------------------------------


def _exists(lookup: ExistenceLookup, kind: EntityKind, key_field: str, value: Any) -> bool:
    try:
        return bool(lookup.exists(kind, key_field, value))
    except Exception as exc:
        logger.error(
            "Existence lookup failed for %s.%s=%r: %s",
            kind.value,
            key_field,
            value,
            exc,
        )
        raise StorageUnavailable(str(exc)) from exc


def check_unique(schema: EntitySchema, record: Dict[str, Any], lookup: ExistenceLookup) -> None:
    """Raise ``DuplicateKey`` if the record's primary key is already taken."""
    value: Any = record[schema.primary_key]
    if _exists(lookup, schema.kind, schema.primary_key, value):
        raise DuplicateKey(schema.kind, value)


def check_references(
    schema: EntitySchema,
    record: Dict[str, Any],
    lookup: ExistenceLookup,
) -> None:
    """Raise ``ReferenceNotFound`` for the first dangling foreign key."""
    for fk in schema.foreign_keys:
        value: Any = record.get(fk.field)
        if value is None:
            continue
        if not _exists(lookup, fk.referenced_kind, fk.referenced_key_field, value):
            raise ReferenceNotFound(fk.referenced_kind, value, fk.field)


def resolve_integrity(
    schema: EntitySchema,
    record: Dict[str, Any],
    lookup: ExistenceLookup,
) -> None:
    """
    Run uniqueness, then every foreign-key check, stopping at the first failure.

    Complexity: O(K) lookups where K = 1 + number of non-null foreign keys.

    Raises:
        DuplicateKey: the primary key already exists.
        ReferenceNotFound: a non-null foreign key has no target.
        StorageUnavailable: the lookup itself failed.
    """
    check_unique(schema, record, lookup)
    check_references(schema, record, lookup)


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "ExistenceLookup",
    "RecordStore",
    "check_unique",
    "check_references",
    "resolve_integrity",
]

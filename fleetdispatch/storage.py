# File: fleetdispatch/storage.py
"""
fleetdispatch - Storage Collaborators
======================================
Two implementations of the ``RecordStore`` capability consumed by the
validation pipeline, plus the read surface used by the HTTP layer:

- ``SQLRecordStore``      — SQLAlchemy 2.0 Core over any supported dialect.
  Tables are derived from the schema registry, one per entity kind.
- ``InMemoryRecordStore`` — dict-backed, for tests, dry runs and the
  offline CLI mode.

Both expose::

    exists(kind, key_field, value) -> bool
    create(kind, record) -> None
    fetch_all(kind) -> List[dict]       # referenced labels joined in
    fetch_one(kind, key) -> dict | None
    ping() -> bool

Write semantics: ``create`` relies on the table's primary key.  If a
concurrent request inserted the same key after validation passed, the
insert's ``IntegrityError`` is raised as ``DuplicateKey``.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import (
    BigInteger,
    Column,
    DateTime,
    Float,
    MetaData,
    String,
    Table,
    Text,
    create_engine,
    insert,
    select,
    text,
)
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.pool import StaticPool
from sqlalchemy.sql import Select

from fleetdispatch.config import ServiceConfig
from fleetdispatch.exceptions import DuplicateKey, StorageError
from fleetdispatch.models import EntityKind, EntitySchema, FieldDescriptor, FieldType
from fleetdispatch.registry import all_schemas, dependency_order, schema_for

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("fleetdispatch.storage")

Row = Dict[str, Any]


# ---------------------------------------------------------------------------
# Table construction
# ---------------------------------------------------------------------------


def _column_type(descriptor: FieldDescriptor) -> Any:
    if descriptor.field_type == FieldType.NUMBER:
        return BigInteger() if descriptor.integral else Float()
    if descriptor.field_type == FieldType.DATE:
        return DateTime()
    if descriptor.max_length is None:
        return Text()
    return String(descriptor.max_length)


def build_table(schema: EntitySchema, metadata: MetaData) -> Table:
    """Create the SQLAlchemy ``Table`` for one entity kind."""
    columns: List[Column] = [
        Column(
            f.name,
            _column_type(f),
            primary_key=f.name == schema.primary_key,
            nullable=not f.required,
            autoincrement=False,
        )
        for f in schema.fields
    ]
    return Table(schema.kind.value, metadata, *columns)


def build_metadata() -> Tuple[MetaData, Dict[EntityKind, Table]]:
    """
    Build one ``Table`` per registered kind, in dependency order so
    ``create_all`` emits referenced tables first.
    """
    metadata: MetaData = MetaData()
    tables: Dict[EntityKind, Table] = {}
    for kind in dependency_order():
        tables[kind] = build_table(schema_for(kind), metadata)
    return metadata, tables


def create_engine_from_config(config: ServiceConfig) -> Engine:
    """Create a SQLAlchemy engine honouring the pool settings in *config*."""
    url: str = config.database_url
    kwargs: Dict[str, Any] = {"echo": config.echo_sql, "pool_pre_ping": True}

    if url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
        if url in ("sqlite://", "sqlite:///:memory:"):
            # In-memory SQLite lives in a single shared connection.
            kwargs["poolclass"] = StaticPool
    else:
        kwargs["pool_size"] = config.pool_size
        kwargs["max_overflow"] = 0

    logger.info("Creating engine for %s", _redact(url))
    return create_engine(url, **kwargs)


def _redact(url: str) -> str:
    if "@" not in url or "://" not in url:
        return url
    scheme, rest = url.split("://", 1)
    return f"{scheme}://***@{rest.split('@', 1)[1]}"


# ---------------------------------------------------------------------------
# SQL store
# ---------------------------------------------------------------------------


class SQLRecordStore:
    """
    ``RecordStore`` backed by a SQLAlchemy engine.

    Every call checks out its own connection, so an instance may be shared
    between request-handling threads.
    """

    def __init__(self, engine: Engine) -> None:
        self._engine: Engine = engine
        self._metadata, self._tables = build_metadata()

    @classmethod
    def from_config(cls, config: ServiceConfig) -> "SQLRecordStore":
        return cls(create_engine_from_config(config))

    def create_all(self) -> None:
        """Create any missing tables."""
        try:
            self._metadata.create_all(self._engine)
        except SQLAlchemyError as exc:
            raise StorageError(str(exc)) from exc
        logger.info("Ensured %d tables exist.", len(self._tables))

    # -- RecordStore capability ---------------------------------------------

    def exists(self, kind: EntityKind, key_field: str, value: Any) -> bool:
        table: Table = self._tables[kind]
        column: Column = table.c[key_field]
        stmt: Select = select(column).where(column == value).limit(1)
        try:
            with self._engine.connect() as conn:
                return conn.execute(stmt).first() is not None
        except SQLAlchemyError as exc:
            raise StorageError(str(exc)) from exc

    def create(self, kind: EntityKind, record: Row) -> None:
        schema: EntitySchema = schema_for(kind)
        stmt = insert(self._tables[kind]).values(**record)
        try:
            with self._engine.begin() as conn:
                conn.execute(stmt)
        except IntegrityError as exc:
            logger.warning(
                "Insert of %s %s=%r lost a race: %s",
                kind.value,
                schema.primary_key,
                record.get(schema.primary_key),
                exc.orig,
            )
            raise DuplicateKey(kind, record.get(schema.primary_key)) from exc
        except SQLAlchemyError as exc:
            raise StorageError(str(exc)) from exc
        logger.debug("Inserted %s %s=%r", kind.value, schema.primary_key, record[schema.primary_key])

    # -- Read surface -------------------------------------------------------

    def _select(self, schema: EntitySchema) -> Select:
        base: Table = self._tables[schema.kind]
        columns: List[Any] = list(base.c)
        joined: Any = base

        for index, fk in enumerate(schema.foreign_keys):
            if not fk.label_columns:
                continue
            target = self._tables[fk.referenced_kind].alias(f"ref_{index}")
            joined = joined.outerjoin(
                target, base.c[fk.field] == target.c[fk.referenced_key_field]
            )
            columns.extend(
                target.c[source].label(alias) for source, alias in fk.label_columns.items()
            )

        return select(*columns).select_from(joined)

    def fetch_all(self, kind: EntityKind) -> List[Row]:
        schema: EntitySchema = schema_for(kind)
        base: Table = self._tables[schema.kind]
        stmt: Select = self._select(schema)
        if schema.list_order is not None:
            order_col = base.c[schema.list_order]
            stmt = stmt.order_by(order_col.desc() if schema.list_descending else order_col)
        else:
            stmt = stmt.order_by(base.c[schema.primary_key])
        try:
            with self._engine.connect() as conn:
                return [dict(row._mapping) for row in conn.execute(stmt)]
        except SQLAlchemyError as exc:
            raise StorageError(str(exc)) from exc

    def fetch_one(self, kind: EntityKind, key: Any) -> Optional[Row]:
        schema: EntitySchema = schema_for(kind)
        base: Table = self._tables[schema.kind]
        stmt: Select = self._select(schema).where(base.c[schema.primary_key] == key)
        try:
            with self._engine.connect() as conn:
                row = conn.execute(stmt).first()
        except SQLAlchemyError as exc:
            raise StorageError(str(exc)) from exc
        return dict(row._mapping) if row is not None else None

    def ping(self) -> bool:
        try:
            with self._engine.connect() as conn:
                conn.execute(text("SELECT 1"))
        except SQLAlchemyError as exc:
            logger.warning("Database ping failed: %s", exc)
            return False
        return True

    def dispose(self) -> None:
        self._engine.dispose()

    def __repr__(self) -> str:
        return f"<SQLRecordStore {_redact(str(self._engine.url))}>"


# ---------------------------------------------------------------------------
# In-memory store
# ---------------------------------------------------------------------------


class InMemoryRecordStore:
    """Dict-backed ``RecordStore`` with the same read surface as the SQL store."""

    def __init__(self) -> None:
        self._rows: Dict[EntityKind, Dict[Any, Row]] = {
            schema.kind: {} for schema in all_schemas()
        }
        self._lock: threading.Lock = threading.Lock()

    def exists(self, kind: EntityKind, key_field: str, value: Any) -> bool:
        schema: EntitySchema = schema_for(kind)
        with self._lock:
            rows: Dict[Any, Row] = self._rows[schema.kind]
            if key_field == schema.primary_key:
                return value in rows
            return any(row.get(key_field) == value for row in rows.values())

    def create(self, kind: EntityKind, record: Row) -> None:
        schema: EntitySchema = schema_for(kind)
        key: Any = record[schema.primary_key]
        with self._lock:
            rows: Dict[Any, Row] = self._rows[schema.kind]
            if key in rows:
                raise DuplicateKey(schema.kind, key)
            rows[key] = {f.name: record.get(f.name) for f in schema.fields}

    def _with_labels(self, schema: EntitySchema, row: Row) -> Row:
        # Caller holds self._lock.
        out: Row = dict(row)
        for fk in schema.foreign_keys:
            if not fk.label_columns:
                continue
            target: Optional[Row] = None
            value: Any = row.get(fk.field)
            if value is not None:
                target = next(
                    (
                        candidate
                        for candidate in self._rows[fk.referenced_kind].values()
                        if candidate.get(fk.referenced_key_field) == value
                    ),
                    None,
                )
            for source, alias in fk.label_columns.items():
                out[alias] = target.get(source) if target is not None else None
        return out

    def fetch_all(self, kind: EntityKind) -> List[Row]:
        schema: EntitySchema = schema_for(kind)
        with self._lock:
            rows: List[Row] = list(self._rows[schema.kind].values())
            labelled: List[Row] = [self._with_labels(schema, row) for row in rows]
        order_by: str = schema.list_order or schema.primary_key
        descending: bool = schema.list_descending if schema.list_order else False
        present: List[Row] = [r for r in labelled if r.get(order_by) is not None]
        missing: List[Row] = [r for r in labelled if r.get(order_by) is None]
        present.sort(key=lambda r: r[order_by], reverse=descending)
        # NULLs sort first ascending and last descending, as in SQLite/MySQL.
        return present + missing if descending else missing + present

    def fetch_one(self, kind: EntityKind, key: Any) -> Optional[Row]:
        schema: EntitySchema = schema_for(kind)
        with self._lock:
            row: Optional[Row] = self._rows[schema.kind].get(key)
            return self._with_labels(schema, row) if row is not None else None

    def ping(self) -> bool:
        return True

    def count(self, kind: EntityKind) -> int:
        return len(self._rows[schema_for(kind).kind])

    def __repr__(self) -> str:
        total: int = sum(len(rows) for rows in self._rows.values())
        return f"<InMemoryRecordStore {total} rows>"


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "Row",
    "build_table",
    "build_metadata",
    "create_engine_from_config",
    "SQLRecordStore",
    "InMemoryRecordStore",
]

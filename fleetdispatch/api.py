# File: fleetdispatch/api.py
"""
fleetdispatch - HTTP Transport (FastAPI)
=========================================
Thin FastAPI layer over the validation pipeline and a ``RecordStore``.

For every entity kind, under ``/api/<resource>``::

    POST /api/<resource>          validate + create  → 201 | 400 | 404 | 409 | 500
    GET  /api/<resource>          list (referenced labels joined in)
    GET  /api/<resource>/{key}    single record      → 200 | 404

Plus ``GET /api/schemas`` and ``GET /health``.  When ``static_dir`` is
configured, the static front-end is mounted at ``/``.

Error bodies come straight from ``RecordValidationError.to_dict()`` and
the status from its ``http_status``.
"""

from __future__ import annotations

import json
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, List, Optional

from fastapi import APIRouter, FastAPI, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from fleetdispatch import __version__
from fleetdispatch.config import ServiceConfig
from fleetdispatch.exceptions import RecordValidationError, StorageError
from fleetdispatch.integrity import RecordStore
from fleetdispatch.models import AcceptedRecord, EntitySchema
from fleetdispatch.pipeline import validate_and_create
from fleetdispatch.registry import all_schemas
from fleetdispatch.storage import Row, SQLRecordStore
from fleetdispatch.validators import coerce_value

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("fleetdispatch.api")

_FORM_TYPES: tuple = ("application/x-www-form-urlencoded", "multipart/form-data")


# ---------------------------------------------------------------------------
# Request helpers
# ---------------------------------------------------------------------------


async def _read_payload(request: Request) -> Any:
    """Return the request body as JSON, or as a flat dict for HTML form posts."""
    content_type: str = request.headers.get("content-type", "")
    if content_type.startswith(_FORM_TYPES):
        form = await request.form()
        return {key: value for key, value in form.items()}
    raw: bytes = await request.body()
    if not raw.strip():
        return {}
    return json.loads(raw)


def _not_found(schema: EntitySchema) -> JSONResponse:
    return JSONResponse(status_code=404, content={"error": f"{schema.kind.value} not found"})


# ---------------------------------------------------------------------------
# Route factory
# ---------------------------------------------------------------------------


def _register_routes(router: APIRouter, schema: EntitySchema) -> None:
    """Attach create / list / get routes for one entity kind."""
    path: str = f"/{schema.resource}"
    tag: str = schema.kind.value

    async def create_record(request: Request) -> JSONResponse:
        try:
            payload: Any = await _read_payload(request)
        except (json.JSONDecodeError, UnicodeDecodeError):
            return JSONResponse(status_code=400, content={"error": "Malformed JSON body"})

        store: RecordStore = request.app.state.store
        accepted: AcceptedRecord = await run_in_threadpool(
            validate_and_create, schema.kind, payload, store
        )
        return JSONResponse(
            status_code=201,
            content={
                "message": schema.created_message,
                schema.response_key: accepted.key_value,
            },
        )

    def list_records(request: Request) -> List[Row]:
        return request.app.state.store.fetch_all(schema.kind)

    def get_record(key: str, request: Request) -> Any:
        try:
            coerced: Any = coerce_value(schema.key_field, key)
        except RecordValidationError:
            return _not_found(schema)
        row: Optional[Row] = request.app.state.store.fetch_one(schema.kind, coerced)
        if row is None:
            return _not_found(schema)
        return row

    router.add_api_route(
        path,
        create_record,
        methods=["POST"],
        status_code=201,
        name=f"create_{schema.resource}",
        tags=[tag],
    )
    router.add_api_route(
        path,
        list_records,
        methods=["GET"],
        name=f"list_{schema.resource}",
        tags=[tag],
    )
    router.add_api_route(
        f"{path}/{{key}}",
        get_record,
        methods=["GET"],
        name=f"get_{schema.resource}",
        tags=[tag],
    )


# ---------------------------------------------------------------------------
# Application factory
# ---------------------------------------------------------------------------


def create_app(
    config: Optional[ServiceConfig] = None,
    store: Optional[RecordStore] = None,
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        config: service settings (defaults to ``ServiceConfig.from_env()``).
        store: storage collaborator; a ``SQLRecordStore`` built from
            *config* when omitted.  Tables are created on startup for SQL
            stores.
    """
    config = config or ServiceConfig.from_env()
    owns_store: bool = store is None
    active_store: RecordStore = store if store is not None else SQLRecordStore.from_config(config)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if isinstance(active_store, SQLRecordStore):
            await run_in_threadpool(active_store.create_all)
        logger.info("fleetdispatch API ready (%r).", active_store)
        yield
        if owns_store and isinstance(active_store, SQLRecordStore):
            active_store.dispose()

    app: FastAPI = FastAPI(
        title="Fleet Dispatch API",
        version=__version__,
        description="Create-and-read administration API for fleet dispatch records.",
        lifespan=lifespan,
    )
    app.state.store = active_store
    app.state.config = config

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(RecordValidationError)
    async def _validation_error(request: Request, exc: RecordValidationError) -> JSONResponse:
        return JSONResponse(status_code=exc.http_status, content=exc.to_dict())

    @app.exception_handler(StorageError)
    async def _storage_error(request: Request, exc: StorageError) -> JSONResponse:
        logger.error("Storage error on %s %s: %s", request.method, request.url.path, exc)
        return JSONResponse(status_code=exc.http_status, content=exc.to_dict())

    router: APIRouter = APIRouter(prefix="/api")
    for schema in all_schemas():
        _register_routes(router, schema)

    @router.get("/schemas", tags=["Meta"])
    def list_schemas() -> List[Dict[str, Any]]:
        return [schema.describe() for schema in all_schemas()]

    app.include_router(router)

    @app.get("/health", tags=["Meta"])
    def health_check(request: Request) -> JSONResponse:
        healthy: bool = request.app.state.store.ping()
        return JSONResponse(
            status_code=200 if healthy else 503,
            content={"status": "ok" if healthy else "degraded", "version": __version__},
        )

    if config.static_dir:
        app.mount("/", StaticFiles(directory=config.static_dir, html=True), name="static")

    return app


__all__: List[str] = ["create_app"]

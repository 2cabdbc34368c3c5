# File: fleetdispatch/cli.py
"""
fleetdispatch - Command-Line Interface
=======================================

Usage examples::

    # Run the HTTP API
    python -m fleetdispatch serve --port 3000 --database-url sqlite:///./fleet.db

    # Create the tables
    python -m fleetdispatch init-db --database-url mysql+pymysql://u:p@db/fleet

    # Check one or more payloads against the live database
    python -m fleetdispatch -v validate Driver drivers.yaml

    # Check payloads without a database (integrity checks see an empty store)
    python -m fleetdispatch validate rides ride.json --offline

    # Show the registered schemas
    python -m fleetdispatch schemas

Exit codes:
    0 — success
    1 — validation error (at least one payload rejected)
    2 — storage error
    4 — input/argument error
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, NoReturn, Optional, Sequence

import yaml

from fleetdispatch.config import ServiceConfig
from fleetdispatch.exceptions import (
    RecordValidationError,
    StorageError,
    StorageUnavailable,
)
from fleetdispatch.integrity import ExistenceLookup
from fleetdispatch.models import EntitySchema
from fleetdispatch.pipeline import ValidationOutcome, check
from fleetdispatch.registry import all_schemas, schema_for
from fleetdispatch.storage import InMemoryRecordStore, SQLRecordStore
from fleetdispatch.utils import StageTimer

# ---------------------------------------------------------------------------
# Logger (configured in _setup_logging)
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("fleetdispatch")


# ---------------------------------------------------------------------------
# Exit codes
# ---------------------------------------------------------------------------

EXIT_SUCCESS: int = 0
EXIT_VALIDATION_ERROR: int = 1
EXIT_STORAGE_ERROR: int = 2
EXIT_INPUT_ERROR: int = 4


# ---------------------------------------------------------------------------
# Logging setup
# ---------------------------------------------------------------------------


def _setup_logging(verbosity: int, quiet: bool = False) -> None:
    """
    Attach a stderr handler to the ``fleetdispatch`` logger.

    The base level is ``FLEETDISPATCH_LOG_LEVEL`` (``.env`` included); each
    ``-v`` lowers it one step, never below DEBUG.  ``-q`` silences logging
    entirely.  Invalid settings fall back to WARNING here and are reported
    by the command that loads them.
    """
    try:
        base: int = logging.getLevelName(ServiceConfig.from_env().log_level)
    except ValueError:
        base = logging.WARNING
    level: int = max(logging.DEBUG, base - 10 * verbosity)

    handler: logging.StreamHandler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        logging.Formatter("%(asctime)s %(levelname)-8s [%(name)s] %(message)s", datefmt="%H:%M:%S")
    )

    package_logger: logging.Logger = logging.getLogger("fleetdispatch")
    package_logger.setLevel(level)
    package_logger.handlers[:] = [handler]
    package_logger.propagate = False

    if quiet:
        logging.disable(logging.CRITICAL)


# ---------------------------------------------------------------------------
# Argument parser
# ---------------------------------------------------------------------------


def _add_database_option(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--database-url",
        type=str,
        default=None,
        metavar="URL",
        help="SQLAlchemy database URL (default: environment or local SQLite).",
    )


def _build_parser() -> argparse.ArgumentParser:
    """Build and return the argument parser."""
    from fleetdispatch import __version__

    parser: argparse.ArgumentParser = argparse.ArgumentParser(
        prog="fleetdispatch",
        description=(
            "Fleet dispatch administration service.\n\n"
            "Validates driver, vehicle, ride, payment and related records "
            "and serves them over a small REST API."
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "Examples:\n"
            "  %(prog)s serve --port 3000\n"
            "  %(prog)s init-db --database-url sqlite:///./fleet.db\n"
            "  %(prog)s validate Driver drivers.yaml --offline\n"
            "  %(prog)s schemas\n"
        ),
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"fleetdispatch v{__version__}",
    )

    # --- Verbosity ---
    verbosity_group = parser.add_argument_group("verbosity")
    verbosity_group.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="Lower the log level one step per flag (WARNING -> INFO -> DEBUG).",
    )
    verbosity_group.add_argument(
        "-q", "--quiet",
        action="store_true",
        default=False,
        help="Suppress all output except errors.",
    )

    commands = parser.add_subparsers(dest="command", metavar="COMMAND")
    commands.required = True

    # --- serve ---
    serve = commands.add_parser("serve", help="Run the HTTP API with uvicorn.")
    serve.add_argument("--host", type=str, default=None, help="Bind address.")
    serve.add_argument("--port", type=int, default=None, help="Bind port.")
    serve.add_argument(
        "--static-dir",
        type=str,
        default=None,
        metavar="DIR",
        help="Serve static HTML pages from DIR at '/'.",
    )
    _add_database_option(serve)

    # --- init-db ---
    init_db = commands.add_parser("init-db", help="Create any missing tables.")
    _add_database_option(init_db)

    # --- validate ---
    validate = commands.add_parser(
        "validate",
        help="Validate payloads from a JSON or YAML file.",
    )
    validate.add_argument("kind", help="Entity kind or resource name, e.g. 'Driver'.")
    validate.add_argument(
        "file",
        type=str,
        help="JSON/YAML file holding one payload mapping or a list of them.",
    )
    source = validate.add_mutually_exclusive_group()
    source.add_argument(
        "--database-url",
        type=str,
        default=None,
        metavar="URL",
        help="Check keys and references against this database.",
    )
    source.add_argument(
        "--offline",
        action="store_true",
        default=False,
        help="Check against an empty in-memory store instead of a database.",
    )

    # --- schemas ---
    schemas = commands.add_parser("schemas", help="Print the registered entity schemas.")
    schemas.add_argument(
        "--json",
        dest="as_json",
        action="store_true",
        default=False,
        help="Print the schemas as JSON.",
    )

    return parser


# ---------------------------------------------------------------------------
# Payload files
# ---------------------------------------------------------------------------


def load_payload_file(path: Path) -> List[Any]:
    """
    Load creation payloads from a JSON or YAML file.

    A top-level mapping is one payload; a top-level list is many.

    Raises:
        FileNotFoundError: If the file doesn't exist.
        ValueError: If the file can't be parsed or has the wrong shape.
    """
    if not path.exists():
        raise FileNotFoundError(f"Payload file not found: {path}")
    if not path.is_file():
        raise ValueError(f"Payload path is not a file: {path}")

    text: str = path.read_text(encoding="utf-8")
    try:
        if path.suffix.lower() == ".json":
            data: Any = json.loads(text)
        else:
            data = yaml.safe_load(text)
    except (json.JSONDecodeError, yaml.YAMLError) as exc:
        raise ValueError(f"Cannot parse {path.name}: {exc}") from exc

    if isinstance(data, dict):
        return [data]
    if isinstance(data, list):
        return data
    raise ValueError(
        f"{path.name} must contain a mapping or a list of mappings, "
        f"got {type(data).__name__}."
    )


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


def _run_serve(args: argparse.Namespace) -> int:
    import uvicorn

    from fleetdispatch.api import create_app

    config: ServiceConfig = ServiceConfig.from_env(
        host=args.host,
        port=args.port,
        database_url=args.database_url,
        static_dir=args.static_dir,
    )
    logger.info("Serving on http://%s:%d", config.host, config.port)
    uvicorn.run(
        create_app(config),
        host=config.host,
        port=config.port,
        log_level=config.log_level.lower(),
    )
    return EXIT_SUCCESS


def _run_init_db(args: argparse.Namespace) -> int:
    config: ServiceConfig = ServiceConfig.from_env(database_url=args.database_url)
    store: SQLRecordStore = SQLRecordStore.from_config(config)
    try:
        store.create_all()
    except StorageError as exc:
        logger.error("Could not create tables: %s", exc)
        return EXIT_STORAGE_ERROR
    finally:
        store.dispose()
    print(f"Tables ready for {len(all_schemas())} entity kinds.")
    return EXIT_SUCCESS


def _print_outcome(index: int, outcome: ValidationOutcome) -> None:
    if outcome.accepted and outcome.record is not None:
        print(f"  [{index}] ✓ accepted  {outcome.record.primary_key}={outcome.record.key_value!r}")
    elif outcome.error is not None:
        print(f"  [{index}] ✗ {outcome.error.code:<20} {outcome.error.message}")


def _run_validate(args: argparse.Namespace) -> int:
    try:
        schema: EntitySchema = schema_for(args.kind)
    except RecordValidationError as exc:
        logger.error("%s", exc.message)
        return EXIT_INPUT_ERROR

    payload_path: Path = Path(args.file).resolve()
    try:
        payloads: List[Any] = load_payload_file(payload_path)
    except (FileNotFoundError, ValueError) as exc:
        logger.error("Failed to load payloads: %s", exc)
        return EXIT_INPUT_ERROR

    sql_store: Optional[SQLRecordStore] = None
    if args.offline:
        lookup: ExistenceLookup = InMemoryRecordStore()
    else:
        config: ServiceConfig = ServiceConfig.from_env(database_url=args.database_url)
        sql_store = SQLRecordStore.from_config(config)
        lookup = sql_store

    outcomes: List[ValidationOutcome] = []
    try:
        timer: StageTimer = StageTimer(payload_path.name)
        with timer.stage("validate"):
            for payload in payloads:
                outcomes.append(check(schema.kind, payload, lookup))
    finally:
        if sql_store is not None:
            sql_store.dispose()

    rejected: int = sum(1 for o in outcomes if not o.accepted)

    print(f"\n{'='*50}")
    print("  Payload Validation Report")
    print(f"{'='*50}")
    print(f"  File:      {payload_path.name}")
    print(f"  Kind:      {schema.kind.value}")
    print(f"  Payloads:  {len(outcomes)}")
    print(f"  Rejected:  {rejected}")
    print(f"  Time:      {timer.total:.3f}s\n")
    for index, outcome in enumerate(outcomes):
        _print_outcome(index, outcome)
    print(f"{'='*50}\n")

    if any(isinstance(o.error, StorageUnavailable) for o in outcomes):
        return EXIT_STORAGE_ERROR
    return EXIT_VALIDATION_ERROR if rejected else EXIT_SUCCESS


def _run_schemas(args: argparse.Namespace) -> int:
    schemas: List[EntitySchema] = all_schemas()
    if args.as_json:
        print(json.dumps([s.describe() for s in schemas], indent=2))
        return EXIT_SUCCESS

    for schema in schemas:
        print(f"{schema.kind.value}  (/api/{schema.resource}, key {schema.primary_key})")
        for descriptor in schema.fields:
            flags: List[str] = [descriptor.field_type.value]
            if not descriptor.required:
                flags.append("optional")
            if descriptor.constraint is not None:
                flags.append(repr(descriptor.constraint))
            print(f"    {descriptor.name:<16} {' '.join(flags)}")
        for fk in schema.foreign_keys:
            print(f"    → {fk.field} references {fk.referenced_kind.value}.{fk.referenced_key_field}")
    return EXIT_SUCCESS


_COMMANDS: Dict[str, Any] = {
    "serve": _run_serve,
    "init-db": _run_init_db,
    "validate": _run_validate,
    "schemas": _run_schemas,
}


# ---------------------------------------------------------------------------
# Main entry point
# ---------------------------------------------------------------------------


def cli_main(argv: Optional[Sequence[str]] = None) -> NoReturn:
    """
    Main CLI entry point.

    Can be called from ``__main__.py`` or directly for testing.

    Args:
        argv: Optional argument list (defaults to sys.argv[1:]).
    """
    parser: argparse.ArgumentParser = _build_parser()
    args: argparse.Namespace = parser.parse_args(argv)

    _setup_logging(args.verbose, quiet=args.quiet)

    try:
        exit_code: int = _COMMANDS[args.command](args)
    except ValueError as exc:
        # Bad settings from flags or the environment (pydantic ValidationError).
        logger.error("Invalid configuration: %s", exc)
        exit_code = EXIT_INPUT_ERROR

    if exit_code != EXIT_SUCCESS:
        logger.error("'%s' failed with exit code %d.", args.command, exit_code)

    sys.exit(exit_code)


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "cli_main",
    "load_payload_file",
    "EXIT_SUCCESS",
    "EXIT_VALIDATION_ERROR",
    "EXIT_STORAGE_ERROR",
    "EXIT_INPUT_ERROR",
]

logger.debug("fleetdispatch.cli loaded.")

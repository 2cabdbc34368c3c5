# File: fleetdispatch/config.py
"""
fleetdispatch - Service Configuration
======================================
A single ``ServiceConfig`` model controls the storage and HTTP
collaborators.  The validation core itself needs no configuration.

Resolution order (later wins): field defaults → ``.env`` file → process
environment → explicit overrides (CLI flags).

Environment variables::

    FLEETDISPATCH_DATABASE_URL / DATABASE_URL   full SQLAlchemy URL
    DB_HOST, DB_USER, DB_PASS, DB_NAME          MySQL URL pieces (fallback)
    PORT                                        HTTP port
    FLEETDISPATCH_HOST                          bind address
    FLEETDISPATCH_LOG_LEVEL                     DEBUG / INFO / WARNING / ...
    FLEETDISPATCH_STATIC_DIR                    static front-end directory
    FLEETDISPATCH_CORS_ORIGINS                  comma-separated origins
"""

from __future__ import annotations

import logging
import os
from typing import Any, Dict, List, Mapping, Optional, Union
from urllib.parse import quote_plus

from dotenv import dotenv_values
from pydantic import BaseModel, ConfigDict, Field, field_validator

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("fleetdispatch.config")

_LOG_LEVELS: frozenset = frozenset({"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"})


class ServiceConfig(BaseModel):
    """Runtime settings for the storage and HTTP layers."""

    model_config = ConfigDict(
        strict=False,
        validate_assignment=True,
        extra="forbid",
    )

    # -- Database -----------------------------------------------------------
    database_url: str = Field(
        default="sqlite:///./fleetdispatch.db",
        min_length=1,
        description="SQLAlchemy connection URL.",
    )
    pool_size: int = Field(default=10, ge=1, description="Connection pool size.")
    echo_sql: bool = Field(default=False, description="Log every SQL statement.")

    # -- HTTP ---------------------------------------------------------------
    host: str = Field(default="127.0.0.1", description="Bind address.")
    port: int = Field(default=3000, ge=1, le=65535, description="Bind port.")
    cors_origins: List[str] = Field(
        default_factory=lambda: ["*"], description="Allowed CORS origins."
    )
    static_dir: Optional[str] = Field(
        default=None, description="Directory of static HTML pages served at '/'."
    )

    # -- Logging ------------------------------------------------------------
    log_level: str = Field(default="WARNING", description="Root package log level.")

    @field_validator("log_level")
    @classmethod
    def _known_level(cls, v: str) -> str:
        level: str = v.upper()
        if level not in _LOG_LEVELS:
            raise ValueError(f"Unknown log level '{v}'. Use one of {sorted(_LOG_LEVELS)}.")
        return level

    @classmethod
    def from_env(
        cls,
        environ: Optional[Mapping[str, str]] = None,
        env_file: Union[str, os.PathLike, None] = ".env",
        **overrides: Any,
    ) -> "ServiceConfig":
        """
        Build a config from environment variables plus explicit overrides.

        ``None`` overrides are ignored so CLI flags that were not given do
        not mask the environment.

        When *environ* is omitted, the process environment is layered over
        the dotenv file *env_file* (relative to the working directory); a
        missing file is skipped and real variables always win.
        """
        env: Mapping[str, str] = _process_env(env_file) if environ is None else environ
        values: Dict[str, Any] = {}

        url: Optional[str] = _database_url_from_env(env)
        if url:
            values["database_url"] = url
        if env.get("PORT"):
            values["port"] = env["PORT"]
        if env.get("FLEETDISPATCH_HOST"):
            values["host"] = env["FLEETDISPATCH_HOST"]
        if env.get("FLEETDISPATCH_LOG_LEVEL"):
            values["log_level"] = env["FLEETDISPATCH_LOG_LEVEL"]
        if env.get("FLEETDISPATCH_STATIC_DIR"):
            values["static_dir"] = env["FLEETDISPATCH_STATIC_DIR"]
        if env.get("FLEETDISPATCH_CORS_ORIGINS"):
            values["cors_origins"] = [
                origin.strip()
                for origin in env["FLEETDISPATCH_CORS_ORIGINS"].split(",")
                if origin.strip()
            ]

        values.update({k: v for k, v in overrides.items() if v is not None})
        config: ServiceConfig = cls(**values)
        logger.debug("Loaded config: host=%s port=%d", config.host, config.port)
        return config


def _process_env(env_file: Union[str, os.PathLike, None]) -> Dict[str, str]:
    env: Dict[str, str] = {}
    if env_file is not None and os.path.isfile(env_file):
        logger.debug("Reading environment file %s", env_file)
        env.update({k: v for k, v in dotenv_values(env_file).items() if v is not None})
    env.update(os.environ)
    return env


def _database_url_from_env(env: Mapping[str, str]) -> Optional[str]:
    explicit: Optional[str] = env.get("FLEETDISPATCH_DATABASE_URL") or env.get("DATABASE_URL")
    if explicit:
        return explicit

    host: Optional[str] = env.get("DB_HOST")
    name: Optional[str] = env.get("DB_NAME")
    if not host or not name:
        return None

    user: str = quote_plus(env.get("DB_USER", ""))
    password: str = quote_plus(env.get("DB_PASS", ""))
    auth: str = f"{user}:{password}@" if password else (f"{user}@" if user else "")
    return f"mysql+pymysql://{auth}{host}/{name}"


__all__: List[str] = ["ServiceConfig"]

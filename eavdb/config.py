"""
Configuration management for eavdb.

Settings are read from environment variables with the ``EAV_`` prefix
(for example ``EAV_DATABASE_PATH``), falling back to defaults suitable for
local development.

Invariants:
    - All settings have sensible defaults for local development
    - attribute_type_policy is either "warn" or "strict"

How to change safely:
    - Add new settings with defaults that keep existing deployments working
    - Keep env names stable; they are the only configuration surface
"""

from __future__ import annotations

import logging
from typing import Literal

import json_log_formatter
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

# Executed SQL is logged here when trace_sql is enabled
SQL_LOGGER_NAME = "eavdb.sql"


class Settings(BaseSettings):
    """eavdb configuration.

    Attributes:
        database_path: SQLite database file
        wal_mode: Enable SQLite WAL journal mode
        busy_timeout_ms: SQLite busy timeout in milliseconds
        cache_size_pages: SQLite cache size in pages (negative = KB)
        attribute_type_policy: What to do when an attribute is requested with a
            type that differs from its registered one ("warn" or "strict")
        trace_sql: Log every executed statement to the eavdb.sql logger
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_format: Log format (text, json)
    """

    database_path: str = Field(default="eav.db")
    wal_mode: bool = Field(default=True)
    busy_timeout_ms: int = Field(default=5000, ge=0)
    cache_size_pages: int = Field(default=-64000)
    attribute_type_policy: Literal["warn", "strict"] = Field(default="warn")
    trace_sql: bool = Field(default=False)
    log_level: str = Field(default="INFO")
    log_format: Literal["text", "json"] = Field(default="text")

    model_config = SettingsConfigDict(env_prefix="EAV_")


def setup_logging(settings: Settings) -> None:
    """Configure root logging based on settings.

    Args:
        settings: eavdb settings
    """
    level = getattr(logging, settings.log_level.upper(), logging.INFO)

    if settings.log_format == "json":
        # extra={...} fields become top-level JSON keys
        formatter = json_log_formatter.JSONFormatter()
    else:
        formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers = [handler]

    # Statement tracing is opt-in and very chatty
    if not settings.trace_sql:
        logging.getLogger(SQL_LOGGER_NAME).setLevel(logging.WARNING)


def log_settings(settings: Settings) -> None:
    """Log the effective configuration."""
    logger.info(
        "eavdb configuration loaded",
        extra={
            "database_path": settings.database_path,
            "wal_mode": settings.wal_mode,
            "attribute_type_policy": settings.attribute_type_policy,
            "trace_sql": settings.trace_sql,
            "log_level": settings.log_level,
        },
    )

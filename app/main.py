"""
app/main.py

FastAPI entrypoint for the Results America admin import API.

Startup order: environment checks, logging, then (in the lifespan) database
connectivity and schema presence. Any failure aborts startup.
"""

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from collections.abc import AsyncIterator

from fastapi import FastAPI

from app.api.errors import register_exception_handlers

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

DATABASE_URL_VARS = ("DATABASE_URL", "CLOUD_DATABASE_URL", "LOCAL_DATABASE_URL")

# Optional numeric tuning variables; when set they must parse.
_INT_VARS = (
    "CSV_IMPORT_MAX_FILE_SIZE_BYTES",
    "CSV_IMPORT_ERROR_SUMMARY_LIMIT",
    "CSV_IMPORT_HISTORY_PAGE_SIZE",
)
_RATIO_VARS = (
    "CSV_IMPORT_MIN_MATCH_SCORE",
    "CSV_IMPORT_STATE_MATCH_THRESHOLD",
    "CSV_IMPORT_ENTITY_MATCH_THRESHOLD",
)


def _env_problems() -> list[str]:
    problems: list[str] = []

    if not any(os.getenv(name, "").strip() for name in DATABASE_URL_VARS):
        problems.append(f"No database URL configured. Set one of {', '.join(DATABASE_URL_VARS)}.")

    for name in _INT_VARS:
        raw = os.getenv(name, "").strip()
        if raw and (not raw.isdigit() or int(raw) <= 0):
            problems.append(f"{name}={raw!r} must be a positive integer.")

    for name in _RATIO_VARS:
        raw = os.getenv(name, "").strip()
        if not raw:
            continue
        try:
            ratio = float(raw)
        except ValueError:
            problems.append(f"{name}={raw!r} is not a number.")
            continue
        if not 0.0 <= ratio <= 1.0:
            problems.append(f"{name}={raw!r} must be between 0 and 1.")

    return problems


def _validate_env() -> None:
    """
    Load .env files and refuse to start on a broken configuration.

    Every problem is reported at once.
    """

    from db.config import load_env_files

    load_env_files()
    problems = _env_problems()
    if problems:
        raise RuntimeError(
            "Startup validation failed:\n" + "\n".join(f"  - {problem}" for problem in problems)
        )


def _configure_logging() -> None:
    level_name = os.getenv("LOG_LEVEL", "INFO").strip().upper()
    logging.basicConfig(level=getattr(logging, level_name, logging.INFO), format=LOG_FORMAT)


def _verify_database() -> None:
    """
    SELECT 1 against the configured database, then confirm every mapped table exists.
    """
    from sqlalchemy import inspect, text
    from sqlalchemy.exc import SQLAlchemyError

    import db.models  # noqa: F401 registers all ORM models on Base.metadata
    from db.base import Base
    from db.session import get_engine

    engine = get_engine()
    try:
        with engine.connect() as connection:
            connection.execute(text("SELECT 1"))
            present = set(inspect(connection).get_table_names())
    except SQLAlchemyError as exc:
        raise RuntimeError("Database unavailable.") from exc
    logger.info("Database connectivity confirmed")

    missing = sorted(set(Base.metadata.tables) - present)
    if missing:
        logger.critical(
            "Import tables absent from the database: %s. Run 'alembic upgrade head' and restart.",
            ", ".join(missing),
        )
        raise RuntimeError(f"Schema mismatch: missing tables {', '.join(missing)}.")
    logger.info("Database schema validated (%d tables)", len(Base.metadata.tables))


@asynccontextmanager
async def _lifespan(application: FastAPI) -> AsyncIterator[None]:
    _verify_database()
    yield


def create_app() -> FastAPI:
    _validate_env()
    _configure_logging()

    application = FastAPI(
        title="Results America Import API",
        version="1.0.0",
        lifespan=_lifespan,
    )

    from app.api.routers import csv_imports_router, csv_templates_router

    application.include_router(csv_imports_router)
    application.include_router(csv_templates_router)
    register_exception_handlers(application)

    @application.get("/health")
    def healthcheck() -> dict[str, str]:
        return {"status": "ok"}

    return application


app = create_app()

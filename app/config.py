"""
app/config.py

Settings for the CSV import pipeline, read from ``CSV_IMPORT_*`` variables.

Unparseable values fall back to the default instead of failing here;
``app.main`` rejects them at startup.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Callable, TypeVar

from db.config import load_env_files

T = TypeVar("T")

_TRUTHY = frozenset({"1", "true", "yes", "on"})


@lru_cache(maxsize=1)
def _load_env_once() -> None:
    load_env_files()


def _env(name: str, parse: Callable[[str], T], default: T) -> T:
    _load_env_once()
    raw_value = os.getenv(name, "").strip()
    if not raw_value:
        return default
    try:
        return parse(raw_value)
    except ValueError:
        return default


def _parse_bool(raw_value: str) -> bool:
    return raw_value.lower() in _TRUTHY


def _clamp_ratio(value: float) -> float:
    return min(1.0, max(0.0, value))


@dataclass(frozen=True)
class CSVImportSettings:
    """
    Runtime settings for the CSV import pipeline.

    ``min_match_score`` is the floor below which the fuzzy matcher returns
    nothing at all; the two thresholds decide whether a returned match is
    accepted for states and for categories/statistics respectively.
    """

    max_file_size_bytes: int = 10 * 1024 * 1024
    min_match_score: float = 0.5
    state_match_threshold: float = 0.8
    entity_match_threshold: float = 0.7
    large_value_threshold: float = 1_000_000_000.0
    error_summary_limit: int = 5
    history_page_size: int = 50
    log_row_issues: bool = True


@lru_cache(maxsize=1)
def get_csv_import_settings() -> CSVImportSettings:
    """
    Return cached CSV import settings from environment variables.
    """

    return CSVImportSettings(
        max_file_size_bytes=max(1, _env("CSV_IMPORT_MAX_FILE_SIZE_BYTES", int, 10 * 1024 * 1024)),
        min_match_score=_clamp_ratio(_env("CSV_IMPORT_MIN_MATCH_SCORE", float, 0.5)),
        state_match_threshold=_clamp_ratio(_env("CSV_IMPORT_STATE_MATCH_THRESHOLD", float, 0.8)),
        entity_match_threshold=_clamp_ratio(_env("CSV_IMPORT_ENTITY_MATCH_THRESHOLD", float, 0.7)),
        large_value_threshold=_env("CSV_IMPORT_LARGE_VALUE_THRESHOLD", float, 1_000_000_000.0),
        error_summary_limit=max(1, _env("CSV_IMPORT_ERROR_SUMMARY_LIMIT", int, 5)),
        history_page_size=max(1, _env("CSV_IMPORT_HISTORY_PAGE_SIZE", int, 50)),
        log_row_issues=_env("CSV_IMPORT_LOG_ROW_ISSUES", _parse_bool, True),
    )

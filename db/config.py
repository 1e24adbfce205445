"""
db/config.py

Database URL resolution from the environment and optional ``.env`` files.
"""

from __future__ import annotations

import os
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
ENV_FILES = (".env", ".env.local")
CLOUD_ENVIRONMENTS = frozenset({"prod", "production", "staging", "cloud"})
POSTGRES_PREFIXES = ("postgres://", "postgresql://")
PSYCOPG_PREFIX = "postgresql+psycopg://"


def _parse_env_file(env_path: Path) -> dict[str, str]:
    pairs: dict[str, str] = {}
    for raw_line in env_path.read_text(encoding="utf-8").splitlines():
        key, sep, value = raw_line.strip().partition("=")
        key = key.strip()
        if not sep or not key or key.startswith("#"):
            continue
        pairs[key] = value.strip().strip('"').strip("'")
    return pairs


def load_env_files() -> None:
    """
    Load KEY=VALUE pairs from the project's env files. Variables already in
    the process environment win.
    """

    for filename in ENV_FILES:
        env_path = PROJECT_ROOT / filename
        if env_path.is_file():
            for key, value in _parse_env_file(env_path).items():
                os.environ.setdefault(key, value)


def normalize_postgres_url(url: str) -> str:
    """
    Rewrite bare postgres URLs to the psycopg driver form.
    """

    for prefix in POSTGRES_PREFIXES:
        if url.startswith(prefix):
            return PSYCOPG_PREFIX + url[len(prefix):]
    return url


def resolve_database_url() -> str:
    """
    Resolve the database URL.

    Priority:
    1) DATABASE_URL
    2) CLOUD_DATABASE_URL when ENVIRONMENT is cloud-like
    3) LOCAL_DATABASE_URL
    """

    load_env_files()

    environment = os.getenv("ENVIRONMENT", "local").strip().lower()
    candidates = ["DATABASE_URL"]
    if environment in CLOUD_ENVIRONMENTS:
        candidates.append("CLOUD_DATABASE_URL")
    candidates.append("LOCAL_DATABASE_URL")

    for name in candidates:
        url = os.getenv(name, "").strip()
        if url:
            return normalize_postgres_url(url)

    raise RuntimeError(f"No database URL configured. Tried {', '.join(candidates)}.")

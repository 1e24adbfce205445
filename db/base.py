"""
db/base.py

Declarative base, portable column types and timestamp mixins.

Models are created on PostgreSQL in every deployed environment; the test
suite builds the same metadata on in-memory SQLite, so JSON columns go
through ``JSONType`` rather than naming JSONB directly.
"""

from datetime import datetime, timezone
from typing import Any

from sqlalchemy import JSON, DateTime, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

JSONType = JSON().with_variant(JSONB(), "postgresql")


def utc_now() -> datetime:
    """Timezone-aware current time used for every application-set timestamp."""
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    type_annotation_map: dict[type, Any] = {
        datetime: DateTime(timezone=True),
    }


class CreatedAtMixin:
    created_at: Mapped[datetime] = mapped_column(
        nullable=False,
        server_default=func.now(),
    )


class TimestampMixin(CreatedAtMixin):
    """
    created_at plus an updated_at that is refreshed on every ORM UPDATE.
    """

    updated_at: Mapped[datetime] = mapped_column(
        nullable=False,
        server_default=func.now(),
        onupdate=utc_now,
    )

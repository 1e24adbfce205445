"""
db/models/import_session.py

Production data: import sessions and the data points each one produced.
"""

from __future__ import annotations

from sqlalchemy import Boolean, Float, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from db.base import Base, CreatedAtMixin


class ImportSession(Base, CreatedAtMixin):
    __tablename__ = "import_sessions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    data_source_id: Mapped[int | None] = mapped_column(
        Integer,
        ForeignKey("data_sources.id"),
        nullable=True,
    )
    data_year: Mapped[int | None] = mapped_column(Integer, nullable=True)
    record_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    csv_import_id: Mapped[int | None] = mapped_column(
        Integer,
        ForeignKey("csv_imports.id"),
        nullable=True,
        comment="Upload that produced this session",
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    __table_args__ = (
        Index("ix_import_sessions_csv_import_id", "csv_import_id"),
    )


class DataPoint(Base):
    __tablename__ = "data_points"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    import_session_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("import_sessions.id"),
        nullable=False,
    )
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    state_id: Mapped[int] = mapped_column(Integer, ForeignKey("states.id"), nullable=False)
    statistic_id: Mapped[int] = mapped_column(Integer, ForeignKey("statistics.id"), nullable=False)
    value: Mapped[float] = mapped_column(Float, nullable=False)

    __table_args__ = (
        Index("ix_data_points_import_session_id", "import_session_id"),
        Index("ix_data_points_state_statistic_year", "state_id", "statistic_id", "year"),
    )

"""
db/models/csv_import_template.py

Named CSV import templates: column schema plus field validation rules.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy import Boolean, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from db.base import Base, JSONType, TimestampMixin


class CsvImportTemplate(Base, TimestampMixin):
    __tablename__ = "csv_import_templates"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(
        String(120),
        nullable=False,
        unique=True,
        comment="Human-readable template name",
    )
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    category_id: Mapped[int | None] = mapped_column(
        Integer,
        ForeignKey("categories.id"),
        nullable=True,
    )
    data_source_id: Mapped[int | None] = mapped_column(
        Integer,
        ForeignKey("data_sources.id"),
        nullable=True,
    )
    template_schema: Mapped[dict[str, Any]] = mapped_column(
        JSONType,
        nullable=False,
        comment="columns, expectedHeaders, flexibleColumns",
    )
    validation_rules: Mapped[dict[str, Any] | None] = mapped_column(
        JSONType,
        nullable=True,
        comment="stateName, year, value, custom rule lists",
    )
    sample_data: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_by: Mapped[int | None] = mapped_column(
        Integer,
        ForeignKey("users.id"),
        nullable=True,
    )

    __table_args__ = (
        Index("ix_csv_import_templates_is_active", "is_active"),
    )

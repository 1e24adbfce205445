"""
db/models/csv_import.py

Upload attempts, their metadata, and the per-row staging area.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import (
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column

from db.base import Base, JSONType, TimestampMixin


class CsvImportStatus:
    UPLOADED = "uploaded"
    STAGED = "staged"
    VALIDATED = "validated"
    FAILED = "failed"
    PUBLISHED = "published"
    ROLLED_BACK = "rolled_back"


class StagingValidationStatus:
    STAGED = "staged"
    VALID = "valid"
    INVALID = "invalid"


class CsvImport(Base, TimestampMixin):
    __tablename__ = "csv_imports"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    filename: Mapped[str] = mapped_column(String(255), nullable=False)
    file_size: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    file_hash: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        comment="SHA-256 of the normalized file text",
    )
    duplicate_of: Mapped[int | None] = mapped_column(
        Integer,
        ForeignKey("csv_imports.id"),
        nullable=True,
        comment="Earliest import with the same file hash",
    )
    template_id: Mapped[int | None] = mapped_column(
        Integer,
        ForeignKey("csv_import_templates.id"),
        nullable=True,
    )
    status: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        default=CsvImportStatus.UPLOADED,
        comment="uploaded, staged, validated, failed, published, rolled_back",
    )
    uploaded_by: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("users.id"),
        nullable=False,
    )
    metadata_json: Mapped[dict[str, Any] | None] = mapped_column(JSONType, nullable=True)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    total_rows: Mapped[int | None] = mapped_column(Integer, nullable=True)
    valid_rows: Mapped[int | None] = mapped_column(Integer, nullable=True)
    invalid_rows: Mapped[int | None] = mapped_column(Integer, nullable=True)
    uploaded_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )
    staged_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    validated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    published_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    rolled_back_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("ix_csv_imports_file_hash", "file_hash"),
        Index("ix_csv_imports_status", "status"),
        Index("ix_csv_imports_uploaded_by", "uploaded_by"),
        Index("ix_csv_imports_uploaded_at", "uploaded_at"),
    )


class CsvImportMetadata(Base):
    __tablename__ = "csv_import_metadata"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    csv_import_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("csv_imports.id"),
        nullable=False,
    )
    key: Mapped[str] = mapped_column(String(120), nullable=False)
    value: Mapped[str] = mapped_column(Text, nullable=False)
    data_type: Mapped[str] = mapped_column(
        String(16),
        nullable=False,
        default="string",
        comment="string, number, date, boolean",
    )

    __table_args__ = (
        UniqueConstraint("csv_import_id", "key", name="uq_csv_import_metadata_import_key"),
    )


class CsvImportStaging(Base):
    __tablename__ = "csv_import_staging"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    csv_import_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("csv_imports.id"),
        nullable=False,
    )
    row_number: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        comment="1-based CSV line number; the header is line 1",
    )
    state_name: Mapped[str | None] = mapped_column(String(120), nullable=True)
    state_id: Mapped[int | None] = mapped_column(Integer, ForeignKey("states.id"), nullable=True)
    year: Mapped[int | None] = mapped_column(Integer, nullable=True)
    category_name: Mapped[str | None] = mapped_column(String(120), nullable=True)
    category_id: Mapped[int | None] = mapped_column(
        Integer,
        ForeignKey("categories.id"),
        nullable=True,
    )
    statistic_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    statistic_id: Mapped[int | None] = mapped_column(
        Integer,
        ForeignKey("statistics.id"),
        nullable=True,
    )
    value: Mapped[float | None] = mapped_column(Float, nullable=True)
    raw_data: Mapped[dict[str, Any]] = mapped_column(
        JSONType,
        nullable=False,
        comment="Original row plus additional_columns for flexible templates",
    )
    validation_status: Mapped[str] = mapped_column(
        String(16),
        nullable=False,
        default=StagingValidationStatus.STAGED,
        comment="staged, valid, invalid",
    )
    validation_errors: Mapped[list[dict[str, Any]] | None] = mapped_column(JSONType, nullable=True)
    is_processed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    processed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("ix_csv_import_staging_import", "csv_import_id"),
        Index("ix_csv_import_staging_import_row", "csv_import_id", "row_number"),
    )

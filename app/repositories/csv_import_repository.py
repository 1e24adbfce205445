"""
app/repositories/csv_import_repository.py

Persistence for CSV imports, their metadata rows and staged rows.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Mapping, Sequence

from sqlalchemy import Select, func, insert, select, update
from sqlalchemy.orm import Session

from db.base import utc_now
from db.models.csv_import import (
    CsvImport,
    CsvImportMetadata,
    CsvImportStaging,
    CsvImportStatus,
    StagingValidationStatus,
)
from db.models.user import User


@dataclass(frozen=True)
class ImportHistoryPage:
    items: list[tuple[CsvImport, str | None]]
    total: int
    page: int
    limit: int


def _metadata_data_type(value: Any) -> str:
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        try:
            datetime.fromisoformat(value)
        except ValueError:
            return "string"
        return "date"
    return "string"


def _metadata_text(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    return json.dumps(value)


class CsvImportRepository:
    def __init__(self, session: Session) -> None:
        self._session = session

    def get_user(self, user_id: int) -> User | None:
        return self._session.get(User, user_id)

    def get_import(self, import_id: int) -> CsvImport | None:
        return self._session.get(CsvImport, import_id)

    def get_import_for_update(self, import_id: int) -> CsvImport | None:
        stmt = select(CsvImport).where(CsvImport.id == import_id).with_for_update()
        return self._session.execute(stmt).scalars().first()

    def find_first_by_hash(self, file_hash: str) -> CsvImport | None:
        stmt = (
            select(CsvImport)
            .where(CsvImport.file_hash == file_hash)
            .order_by(CsvImport.id)
            .limit(1)
        )
        return self._session.execute(stmt).scalars().first()

    def create_import(
        self,
        *,
        name: str,
        filename: str,
        file_size: int,
        file_hash: str,
        uploaded_by: int,
        template_id: int | None,
        description: str | None = None,
        duplicate_of: int | None = None,
        metadata_json: dict[str, Any] | None = None,
    ) -> CsvImport:
        csv_import = CsvImport(
            name=name,
            description=description,
            filename=filename,
            file_size=file_size,
            file_hash=file_hash,
            duplicate_of=duplicate_of,
            template_id=template_id,
            status=CsvImportStatus.UPLOADED,
            uploaded_by=uploaded_by,
            metadata_json=metadata_json,
            uploaded_at=utc_now(),
        )
        self._session.add(csv_import)
        self._session.flush()
        return csv_import

    def add_metadata(
        self,
        *,
        csv_import_id: int,
        metadata: Mapping[str, Any],
    ) -> list[CsvImportMetadata]:
        rows = [
            CsvImportMetadata(
                csv_import_id=csv_import_id,
                key=str(key),
                value=_metadata_text(value),
                data_type=_metadata_data_type(value),
            )
            for key, value in metadata.items()
            if value is not None
        ]
        self._session.add_all(rows)
        self._session.flush()
        return rows

    def list_metadata(self, import_id: int) -> list[CsvImportMetadata]:
        stmt = (
            select(CsvImportMetadata)
            .where(CsvImportMetadata.csv_import_id == import_id)
            .order_by(CsvImportMetadata.key)
        )
        return list(self._session.scalars(stmt).all())

    def bulk_insert_staging(self, rows: Sequence[dict[str, Any]]) -> int:
        """
        Insert all staged rows for one import in a single statement.
        """

        if not rows:
            return 0
        self._session.execute(insert(CsvImportStaging), list(rows))
        return len(rows)

    def list_staged_rows(self, import_id: int) -> list[CsvImportStaging]:
        stmt = (
            select(CsvImportStaging)
            .where(CsvImportStaging.csv_import_id == import_id)
            .order_by(CsvImportStaging.row_number, CsvImportStaging.id)
        )
        return list(self._session.scalars(stmt).all())

    def list_publishable_rows(self, import_id: int) -> list[CsvImportStaging]:
        stmt = (
            select(CsvImportStaging)
            .where(
                CsvImportStaging.csv_import_id == import_id,
                CsvImportStaging.validation_status == StagingValidationStatus.VALID,
                CsvImportStaging.is_processed.is_(False),
            )
            .order_by(CsvImportStaging.row_number)
        )
        return list(self._session.scalars(stmt).all())

    def list_invalid_rows(self, import_id: int) -> list[CsvImportStaging]:
        stmt = (
            select(CsvImportStaging)
            .where(
                CsvImportStaging.csv_import_id == import_id,
                CsvImportStaging.validation_status == StagingValidationStatus.INVALID,
            )
            .order_by(CsvImportStaging.row_number)
        )
        return list(self._session.scalars(stmt).all())

    def mark_rows_processed(self, import_id: int) -> int:
        stmt = (
            update(CsvImportStaging)
            .where(
                CsvImportStaging.csv_import_id == import_id,
                CsvImportStaging.is_processed.is_(False),
            )
            .values(is_processed=True, processed_at=utc_now())
        )
        result = self._session.execute(stmt)
        return int(result.rowcount or 0)

    def list_imports(
        self,
        *,
        page: int = 1,
        limit: int = 50,
        status: str | None = None,
        uploaded_by: int | None = None,
    ) -> ImportHistoryPage:
        """
        Return one page of imports, newest first, with the uploader's name.
        """

        page = max(1, page)
        limit = max(1, limit)

        stmt: Select[tuple[CsvImport, str | None]] = select(CsvImport, User.name).outerjoin(
            User, User.id == CsvImport.uploaded_by
        )
        count_stmt = select(func.count(CsvImport.id))
        if status:
            stmt = stmt.where(CsvImport.status == status)
            count_stmt = count_stmt.where(CsvImport.status == status)
        if uploaded_by is not None:
            stmt = stmt.where(CsvImport.uploaded_by == uploaded_by)
            count_stmt = count_stmt.where(CsvImport.uploaded_by == uploaded_by)

        stmt = (
            stmt.order_by(CsvImport.uploaded_at.desc(), CsvImport.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        items = [(row[0], row[1]) for row in self._session.execute(stmt).all()]
        total = int(self._session.execute(count_stmt).scalar_one())
        return ImportHistoryPage(items=items, total=total, page=page, limit=limit)

    def mark_staged(
        self,
        csv_import: CsvImport,
        *,
        total_rows: int,
        valid_rows: int,
        invalid_rows: int,
    ) -> CsvImport:
        csv_import.status = CsvImportStatus.STAGED
        csv_import.staged_at = utc_now()
        csv_import.total_rows = total_rows
        csv_import.valid_rows = valid_rows
        csv_import.invalid_rows = invalid_rows
        return csv_import

    def mark_validation_outcome(
        self,
        csv_import: CsvImport,
        *,
        is_valid: bool,
        error_message: str | None,
        total_rows: int,
        valid_rows: int,
        invalid_rows: int,
    ) -> CsvImport:
        csv_import.status = CsvImportStatus.VALIDATED if is_valid else CsvImportStatus.FAILED
        csv_import.validated_at = utc_now()
        csv_import.error_message = error_message
        csv_import.total_rows = total_rows
        csv_import.valid_rows = valid_rows
        csv_import.invalid_rows = invalid_rows
        return csv_import

    def mark_published(self, csv_import: CsvImport) -> CsvImport:
        csv_import.status = CsvImportStatus.PUBLISHED
        csv_import.published_at = utc_now()
        return csv_import

    def mark_rolled_back(self, csv_import: CsvImport, *, note: str | None = None) -> CsvImport:
        csv_import.status = CsvImportStatus.ROLLED_BACK
        csv_import.rolled_back_at = utc_now()
        csv_import.error_message = note
        return csv_import

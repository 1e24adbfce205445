"""
app/services/import_publish_service.py

Moves validated staged rows into production data points, and undoes a
publish by rolling its import session back.

A publish writes the import session, its data points, the processed flags on
the staged rows and the import status in one transaction. The import row is
read with ``FOR UPDATE`` so two publishes of the same import serialize and
the second sees the ``published`` status.
"""

from __future__ import annotations

import logging
import math
from datetime import datetime, timezone
from functools import lru_cache
from typing import Any, Mapping

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.domain.csv_import import PublishResult, RollbackResult
from app.repositories.csv_import_repository import CsvImportRepository
from app.repositories.data_point_repository import DataPointRepository
from app.repositories.reference_repository import ReferenceRepository
from app.repositories.template_repository import TemplateRepository
from app.services.csv_import_service import ImportNotFoundError
from app.services.import_validation_service import ImportStateError
from db.models.csv_import import CsvImport, CsvImportStaging, CsvImportStatus

logger = logging.getLogger(__name__)

NOT_VALIDATED_MESSAGE = "Import must be validated before publishing"
NO_VALID_DATA_MESSAGE = "No valid data to publish"


class ImportPublishError(RuntimeError):
    """
    Raised when a publish or rollback cannot be written; nothing is kept.
    """


def _metadata_int(metadata: Mapping[str, Any] | None, key: str) -> int | None:
    if not metadata:
        return None
    value = metadata.get(key)
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(str(value).strip())
    except (ValueError, OverflowError):
        return None
    if not math.isfinite(number):
        return None
    return int(number)


class ImportPublishService:
    def publish_import(
        self,
        db: Session,
        import_id: int,
        *,
        published_by: int | None = None,
    ) -> PublishResult:
        """
        Publish the valid, unprocessed staged rows of a validated import.
        """

        repository = CsvImportRepository(db)
        csv_import = repository.get_import_for_update(import_id)
        if csv_import is None:
            db.rollback()
            raise ImportNotFoundError(import_id)

        if csv_import.status != CsvImportStatus.VALIDATED:
            logger.info(
                "Publish rejected for import id=%s in status %s",
                import_id,
                csv_import.status,
            )
            db.rollback()
            return PublishResult(success=False, message=NOT_VALIDATED_MESSAGE)

        rows = repository.list_publishable_rows(import_id)
        if not rows:
            db.rollback()
            return PublishResult(success=False, message=NO_VALID_DATA_MESSAGE)

        data_points = DataPointRepository(db)
        try:
            import_session = data_points.create_session(
                name=f"CSV Import: {csv_import.name}",
                description=self._session_description(csv_import, published_by),
                data_source_id=self._data_source_id(db, csv_import),
                data_year=self._data_year(csv_import, rows),
                csv_import_id=csv_import.id,
            )
            current_year = datetime.now(timezone.utc).year
            payload = [
                {
                    "import_session_id": import_session.id,
                    "year": row.year if row.year is not None else current_year,
                    "state_id": row.state_id,
                    "statistic_id": row.statistic_id,
                    "value": row.value,
                }
                for row in rows
                if row.state_id is not None and row.statistic_id is not None and row.value is not None
            ]
            inserted = data_points.bulk_insert(payload)
            import_session.record_count = inserted
            repository.mark_rows_processed(import_id)
            repository.mark_published(csv_import)
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            logger.exception("Failed to publish import id=%s", import_id)
            raise ImportPublishError("Publish failed") from exc

        logger.info(
            "Published import id=%s session=%s rows=%s",
            import_id,
            import_session.id,
            inserted,
        )
        return PublishResult(
            success=True,
            message=f"Successfully published {inserted} rows",
            published_rows=inserted,
            import_session_id=import_session.id,
        )

    def rollback_import(self, db: Session, import_id: int, *, user_id: int | None = None) -> RollbackResult:
        """
        Remove the data points a published import produced.

        Staged rows stay processed, so a rolled-back import cannot be
        published again; re-uploading the file starts a new import.
        """

        repository = CsvImportRepository(db)
        csv_import = repository.get_import_for_update(import_id)
        if csv_import is None:
            db.rollback()
            raise ImportNotFoundError(import_id)
        if csv_import.status != CsvImportStatus.PUBLISHED:
            status = csv_import.status
            db.rollback()
            raise ImportStateError(
                import_id=import_id,
                status=status,
                message="Only published imports can be rolled back",
            )

        data_points = DataPointRepository(db)
        try:
            import_session = data_points.get_active_session_for_import(import_id)
            removed = 0
            if import_session is not None:
                removed = data_points.delete_for_session(import_session.id)
                import_session.is_active = False
            note = f"Rolled back by user {user_id}" if user_id is not None else "Rolled back"
            repository.mark_rolled_back(csv_import, note=note)
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            logger.exception("Failed to roll back import id=%s", import_id)
            raise ImportPublishError("Rollback failed") from exc

        session_id = import_session.id if import_session is not None else None
        logger.info(
            "Rolled back import id=%s session=%s removed=%s",
            import_id,
            session_id,
            removed,
        )
        return RollbackResult(
            import_id=import_id,
            import_session_id=session_id,
            removed_rows=removed,
            message=f"Rolled back {removed} data points",
        )

    @staticmethod
    def _session_description(csv_import: CsvImport, published_by: int | None) -> str:
        description = csv_import.description or f"Published from {csv_import.filename}"
        if published_by is not None:
            description = f"{description} (published by user {published_by})"
        return description

    @staticmethod
    def _data_source_id(db: Session, csv_import: CsvImport) -> int | None:
        data_source_id = _metadata_int(csv_import.metadata_json, "dataSourceId")
        if data_source_id is not None:
            if ReferenceRepository(db).get_data_source(data_source_id) is not None:
                return data_source_id
            logger.warning(
                "Import id=%s names unknown data source id=%s; using the template's",
                csv_import.id,
                data_source_id,
            )
        if csv_import.template_id is None:
            return None
        template = TemplateRepository(db).get(csv_import.template_id)
        return template.data_source_id if template is not None else None

    @staticmethod
    def _data_year(csv_import: CsvImport, rows: list[CsvImportStaging]) -> int:
        data_year = _metadata_int(csv_import.metadata_json, "dataYear")
        if data_year is not None:
            return data_year
        years = [row.year for row in rows if row.year is not None]
        if years:
            return max(years)
        return datetime.now(timezone.utc).year


@lru_cache(maxsize=1)
def get_import_publish_service() -> ImportPublishService:
    return ImportPublishService()

"""
app/services/csv_import_service.py

Service layer for CSV upload and staging.

An upload is accepted or rejected as a whole on structural grounds (unknown
uploader, unknown template, unreadable file, missing expected headers). Once
accepted, every data row is staged, including rows that fail mapping,
reference resolution or field rules; those rows are stored as ``invalid`` with
their issues so the problems stay auditable.
"""

from __future__ import annotations

import csv
import io
import logging
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Mapping, Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.config import get_csv_import_settings
from app.domain.csv_import import (
    FailureCategory,
    MappedRecord,
    RowIssue,
    StagingStats,
    UploadResult,
    normalize_target_field,
)
from app.domain.import_template import ImportTemplate, TemplateSchema
from app.mappers.csv_record_mapper import CSVRecordMapper, parse_csv_content
from app.mappers.reference_resolver import ReferenceResolver, ReferenceSnapshot
from app.repositories.csv_import_repository import CsvImportRepository, ImportHistoryPage
from app.repositories.reference_repository import ReferenceRepository
from app.services.template_registry import TemplateRegistry, get_template_registry
from app.validators.header_validator import validate_headers
from app.validators.rule_validator import FieldRuleValidator, evaluate_record_rules
from db.models.csv_import import (
    CsvImport,
    CsvImportMetadata,
    CsvImportStaging,
    StagingValidationStatus,
)

logger = logging.getLogger(__name__)

FAILED_ROWS_HEADER: tuple[str, ...] = (
    "Row Number",
    "Field Name",
    "Field Value",
    "Failure Category",
    "Message",
)

# Fields a row needs before it can become a data point.
CORE_RECORD_FIELDS: tuple[str, ...] = ("state_name", "year", "statistic_name", "value")


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class UploaderNotFoundError(ValueError):
    def __init__(self, user_id: int) -> None:
        super().__init__(f"User {user_id} not found")
        self.user_id = user_id

    def to_dict(self) -> dict[str, Any]:
        return {"message": str(self), "user_id": self.user_id}


class ImportNotFoundError(ValueError):
    def __init__(self, import_id: int) -> None:
        super().__init__(f"Import {import_id} not found")
        self.import_id = import_id

    def to_dict(self) -> dict[str, Any]:
        return {"message": str(self), "import_id": self.import_id}


class CSVImportPersistenceError(RuntimeError):
    """
    Raised when an accepted upload cannot be written to the database.
    """


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ImportDetails:
    csv_import: CsvImport
    uploader_name: str | None
    metadata: list[CsvImportMetadata]
    staged_rows: list[CsvImportStaging]


class CSVImportService:
    """
    Coordinates CSV parsing, reference resolution, rule checks and staging.
    """

    def __init__(
        self,
        *,
        min_match_score: float,
        state_match_threshold: float,
        entity_match_threshold: float,
        log_row_issues: bool,
        history_page_size: int = 50,
        registry: TemplateRegistry | None = None,
        mapper: CSVRecordMapper | None = None,
        rule_validator: FieldRuleValidator | None = None,
    ) -> None:
        self._min_match_score = min_match_score
        self._state_match_threshold = state_match_threshold
        self._entity_match_threshold = entity_match_threshold
        self._log_row_issues = log_row_issues
        self._history_page_size = max(1, history_page_size)
        self._registry = registry or get_template_registry()
        self._rule_validator = rule_validator or FieldRuleValidator()
        self._mapper = mapper or CSVRecordMapper(rule_validator=self._rule_validator)

    def upload_csv(
        self,
        db: Session,
        *,
        file_content: bytes | str,
        filename: str,
        template_id: int,
        metadata: Mapping[str, Any] | None,
        uploaded_by: int,
    ) -> UploadResult:
        """
        Accept one CSV file, stage all of its rows and commit once.
        """

        repository = CsvImportRepository(db)
        metadata = dict(metadata or {})

        if repository.get_user(uploaded_by) is None:
            raise UploaderNotFoundError(uploaded_by)
        template = self._registry.get_template(db, template_id)

        parsed = parse_csv_content(file_content)
        duplicate = repository.find_first_by_hash(parsed.file_hash)
        validate_headers(parsed.headers, template.schema.expected_headers)
        records = self._mapper.map_rows(parsed.rows, template.schema)

        file_size = len(file_content if isinstance(file_content, bytes) else file_content.encode("utf-8"))
        try:
            csv_import = repository.create_import(
                name=str(metadata.get("name") or filename),
                description=metadata.get("description"),
                filename=filename,
                file_size=file_size,
                file_hash=parsed.file_hash,
                uploaded_by=uploaded_by,
                template_id=template.id,
                duplicate_of=duplicate.id if duplicate is not None else None,
                metadata_json=metadata or None,
            )
            repository.add_metadata(csv_import_id=csv_import.id, metadata=metadata)
            stats = self.stage_data(db, csv_import.id, records, template, metadata)
            repository.mark_staged(
                csv_import,
                total_rows=stats.total_rows,
                valid_rows=stats.valid_rows,
                invalid_rows=stats.invalid_rows,
            )
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            logger.exception("Failed to stage CSV upload filename=%s", filename)
            raise CSVImportPersistenceError("Upload failed") from exc

        if duplicate is not None:
            logger.info(
                "Import id=%s has the same content as import id=%s",
                csv_import.id,
                duplicate.id,
            )
        logger.info(
            "Staged import id=%s template=%s rows=%s valid=%s invalid=%s",
            csv_import.id,
            template.id,
            stats.total_rows,
            stats.valid_rows,
            stats.invalid_rows,
        )

        return UploadResult(
            import_id=csv_import.id,
            message=f"Successfully uploaded and staged {stats.total_rows} rows",
            stats=stats,
            duplicate_of=duplicate.id if duplicate is not None else None,
        )

    def stage_data(
        self,
        db: Session,
        import_id: int,
        records: Sequence[MappedRecord],
        template: ImportTemplate,
        metadata: Mapping[str, Any] | None = None,
    ) -> StagingStats:
        """
        Resolve, check and bulk-insert mapped records for one import.

        Does not commit; the caller owns the transaction.
        """

        resolver = ReferenceResolver(
            ReferenceSnapshot.load(ReferenceRepository(db)),
            min_match_score=self._min_match_score,
            state_threshold=self._state_match_threshold,
            entity_threshold=self._entity_match_threshold,
        )
        metadata = metadata or {}

        staged_rows: list[dict[str, Any]] = []
        warnings: list[str] = []
        valid_rows = 0
        invalid_rows = 0

        for record in records:
            row, issues = self._stage_record(
                import_id=import_id,
                record=record,
                template=template,
                metadata=metadata,
                resolver=resolver,
            )
            for issue in issues:
                if not issue.is_error:
                    warnings.append(issue.describe())
                self._log_issue(import_id, issue)

            if row["validation_status"] == StagingValidationStatus.VALID:
                valid_rows += 1
            else:
                invalid_rows += 1
            staged_rows.append(row)

        CsvImportRepository(db).bulk_insert_staging(staged_rows)
        return StagingStats(
            total_rows=len(staged_rows),
            valid_rows=valid_rows,
            invalid_rows=invalid_rows,
            warnings=tuple(warnings),
        )

    def _stage_record(
        self,
        *,
        import_id: int,
        record: MappedRecord,
        template: ImportTemplate,
        metadata: Mapping[str, Any],
        resolver: ReferenceResolver,
    ) -> tuple[dict[str, Any], list[RowIssue]]:
        state_id = category_id = statistic_id = None
        issues: list[RowIssue] = list(record.issues)
        try:
            self._apply_single_category_defaults(record, template, metadata, resolver)
            if not record.has_errors and self._is_incomplete(record, template.schema):
                issues.append(
                    RowIssue(
                        row_number=record.row_number,
                        message="Missing or invalid required fields",
                        category=FailureCategory.MISSING_REQUIRED,
                    )
                )
            resolution = resolver.resolve_record(record)
            state_id = resolution.state_id
            category_id = resolution.category_id
            statistic_id = resolution.statistic_id
            issues.extend(resolution.issues)
            issues.extend(
                evaluate_record_rules(
                    record,
                    template.validation_rules,
                    validator=self._rule_validator,
                )
            )
        except (ValueError, TypeError) as exc:
            issues.append(
                RowIssue(
                    row_number=record.row_number,
                    message=f"Row could not be processed: {exc}",
                    category=FailureCategory.DATA_TYPE,
                )
            )

        has_errors = any(issue.is_error for issue in issues)
        row = {
            "csv_import_id": import_id,
            "row_number": record.row_number,
            "state_name": record.state_name,
            "state_id": state_id,
            "year": record.year,
            "category_name": record.category_name,
            "category_id": category_id,
            "statistic_name": record.statistic_name,
            "statistic_id": statistic_id,
            "value": record.value,
            "raw_data": record.raw_data(),
            "validation_status": (
                StagingValidationStatus.INVALID if has_errors else StagingValidationStatus.VALID
            ),
            "validation_errors": [issue.to_dict() for issue in issues] or None,
            "is_processed": False,
            "processed_at": None,
        }
        return row, issues

    @staticmethod
    def _apply_single_category_defaults(
        record: MappedRecord,
        template: ImportTemplate,
        metadata: Mapping[str, Any],
        resolver: ReferenceResolver,
    ) -> None:
        if not record.category_name:
            category_name = metadata.get("categoryName")
            if not category_name and template.category_id is not None:
                category_name = resolver.snapshot.category_name(template.category_id)
            if category_name:
                record.category_name = str(category_name).strip()
        if not record.statistic_name and metadata.get("statisticName"):
            record.statistic_name = str(metadata["statisticName"]).strip()

    @staticmethod
    def _is_incomplete(record: MappedRecord, schema: TemplateSchema) -> bool:
        """
        A core field is missing and nothing allows it to be blank.

        Fields fed only by optional columns may stay empty; such rows pass
        validation and are skipped at publish. Fields no column feeds (for
        example the statistic of a single-category template) must be
        supplied by metadata or the template.
        """

        targets: dict[str, bool] = {}
        for column in schema.columns:
            field_name = normalize_target_field(column.target)
            targets[field_name] = targets.get(field_name, False) or column.required

        for field_name in CORE_RECORD_FIELDS:
            if targets.get(field_name) is False:
                continue
            if getattr(record, field_name) in (None, ""):
                return True
        return False

    def _log_issue(self, import_id: int, issue: RowIssue) -> None:
        if not self._log_row_issues:
            return
        logger.warning(
            "CSV import issue import=%s row=%s severity=%s category=%s message=%s",
            import_id,
            issue.row_number,
            issue.severity,
            issue.category,
            issue.message,
        )

    # ------------------------------------------------------------------
    # History and details
    # ------------------------------------------------------------------

    def list_imports(
        self,
        db: Session,
        *,
        page: int = 1,
        limit: int | None = None,
        status: str | None = None,
        uploaded_by: int | None = None,
    ) -> ImportHistoryPage:
        return CsvImportRepository(db).list_imports(
            page=page,
            limit=limit or self._history_page_size,
            status=status,
            uploaded_by=uploaded_by,
        )

    def get_import_details(self, db: Session, import_id: int) -> ImportDetails:
        repository = CsvImportRepository(db)
        csv_import = repository.get_import(import_id)
        if csv_import is None:
            raise ImportNotFoundError(import_id)
        uploader = repository.get_user(csv_import.uploaded_by)
        return ImportDetails(
            csv_import=csv_import,
            uploader_name=uploader.name if uploader is not None else None,
            metadata=repository.list_metadata(import_id),
            staged_rows=repository.list_staged_rows(import_id),
        )

    def failed_rows_csv(self, db: Session, import_id: int) -> str:
        """
        Render one CSV line per error on the import's invalid staged rows.
        """

        repository = CsvImportRepository(db)
        if repository.get_import(import_id) is None:
            raise ImportNotFoundError(import_id)

        buffer = io.StringIO()
        writer = csv.writer(buffer, lineterminator="\n")
        writer.writerow(FAILED_ROWS_HEADER)
        for row in repository.list_invalid_rows(import_id):
            for item in row.validation_errors or []:
                issue = RowIssue.from_dict(item, row_number=row.row_number)
                if not issue.is_error:
                    continue
                writer.writerow(
                    (
                        issue.row_number,
                        issue.field or "",
                        issue.value or "",
                        issue.category,
                        issue.message,
                    )
                )
        return buffer.getvalue()


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------


@lru_cache(maxsize=1)
def get_csv_import_service() -> CSVImportService:
    """
    Build and cache the import service with env-driven settings.
    """
    settings = get_csv_import_settings()
    return CSVImportService(
        min_match_score=settings.min_match_score,
        state_match_threshold=settings.state_match_threshold,
        entity_match_threshold=settings.entity_match_threshold,
        log_row_issues=settings.log_row_issues,
        history_page_size=settings.history_page_size,
    )

"""
app/services/import_validation_service.py

Re-validation of staged rows before publishing.

Issues recorded at staging time (mapping and field rules) are carried over.
Reference checks and business checks (duplicates against production data,
value sanity) are recomputed on every run, so validating twice gives the same
result as validating once.
"""

from __future__ import annotations

import logging
from collections import Counter
from functools import lru_cache
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.config import get_csv_import_settings
from app.domain.csv_import import (
    RECOMPUTED_STAGES,
    FailureCategory,
    IssueSeverity,
    IssueStage,
    RowIssue,
    ValidationReport,
    ValidationStats,
)
from app.repositories.csv_import_repository import CsvImportRepository
from app.repositories.data_point_repository import DataPointRepository
from app.services.csv_import_service import ImportNotFoundError
from db.models.csv_import import CsvImportStaging, CsvImportStatus, StagingValidationStatus

logger = logging.getLogger(__name__)

NON_REVALIDATABLE_STATUSES = frozenset({CsvImportStatus.PUBLISHED, CsvImportStatus.ROLLED_BACK})


class ImportStateError(ValueError):
    """
    Raised when an operation is not allowed in the import's current status.
    """

    def __init__(self, *, import_id: int, status: str, message: str) -> None:
        super().__init__(message)
        self.import_id = import_id
        self.status = status
        self.message = message

    def to_dict(self) -> dict[str, Any]:
        return {"message": self.message, "import_id": self.import_id, "status": self.status}


class ImportValidationError(RuntimeError):
    """
    Raised when validation results cannot be saved.
    """


class ImportValidationService:
    def __init__(
        self,
        *,
        large_value_threshold: float,
        error_summary_limit: int,
        log_row_issues: bool = True,
    ) -> None:
        self._large_value_threshold = large_value_threshold
        self._error_summary_limit = max(1, error_summary_limit)
        self._log_row_issues = log_row_issues

    def validate_import(self, db: Session, import_id: int) -> ValidationReport:
        """
        Validate every staged row of one import and persist the outcome.
        """

        repository = CsvImportRepository(db)
        csv_import = repository.get_import(import_id)
        if csv_import is None:
            raise ImportNotFoundError(import_id)
        if csv_import.status in NON_REVALIDATABLE_STATUSES:
            raise ImportStateError(
                import_id=import_id,
                status=csv_import.status,
                message=f"Import cannot be validated in status '{csv_import.status}'",
            )

        rows = repository.list_staged_rows(import_id)
        existing_keys = DataPointRepository(db).find_existing_keys(
            (row.state_id, row.statistic_id, row.year)
            for row in rows
            if row.state_id is not None and row.statistic_id is not None and row.year is not None
        )

        all_issues: list[RowIssue] = []
        valid_rows = 0
        invalid_rows = 0
        for row in rows:
            row_issues = self._carried_issues(row) + self._reference_issues(row)
            row_issues += self._business_issues(row, existing_keys)

            has_errors = any(issue.is_error for issue in row_issues)
            row.validation_status = (
                StagingValidationStatus.INVALID if has_errors else StagingValidationStatus.VALID
            )
            row.validation_errors = [issue.to_dict() for issue in row_issues] or None
            if has_errors:
                invalid_rows += 1
            else:
                valid_rows += 1
            all_issues.extend(row_issues)

        errors = [issue.describe() for issue in all_issues if issue.is_error]
        warnings = [issue.describe() for issue in all_issues if not issue.is_error]
        is_valid = not errors
        error_message = None
        if errors:
            error_message = "; ".join(errors[: self._error_summary_limit])

        try:
            repository.mark_validation_outcome(
                csv_import,
                is_valid=is_valid,
                error_message=error_message,
                total_rows=len(rows),
                valid_rows=valid_rows,
                invalid_rows=invalid_rows,
            )
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            logger.exception("Failed to save validation results for import id=%s", import_id)
            raise ImportValidationError("Validation failed") from exc

        if self._log_row_issues and errors:
            logger.warning(
                "Import id=%s failed validation with %d error(s); first: %s",
                import_id,
                len(errors),
                errors[0],
            )
        logger.info(
            "Validated import id=%s valid=%s rows=%s invalid=%s warnings=%s",
            import_id,
            is_valid,
            len(rows),
            invalid_rows,
            len(warnings),
        )

        breakdown = Counter(issue.category for issue in all_issues if issue.is_error)
        return ValidationReport(
            import_id=import_id,
            is_valid=is_valid,
            errors=tuple(errors),
            warnings=tuple(warnings),
            issues=tuple(all_issues),
            stats=ValidationStats(
                total_rows=len(rows),
                valid_rows=valid_rows,
                invalid_rows=invalid_rows,
                warning_count=len(warnings),
            ),
            failure_breakdown=dict(breakdown),
        )

    @staticmethod
    def _carried_issues(row: CsvImportStaging) -> list[RowIssue]:
        issues = [
            RowIssue.from_dict(item, row_number=row.row_number)
            for item in row.validation_errors or []
        ]
        return [issue for issue in issues if issue.stage not in RECOMPUTED_STAGES]

    @staticmethod
    def _reference_issues(row: CsvImportStaging) -> list[RowIssue]:
        issues: list[RowIssue] = []
        for kind, name, entity_id in (
            ("state", row.state_name, row.state_id),
            ("category", row.category_name, row.category_id),
            ("statistic", row.statistic_name, row.statistic_id),
        ):
            if name and entity_id is None:
                issues.append(
                    RowIssue(
                        row_number=row.row_number,
                        message=f'{kind.capitalize()} "{name}" not found in database',
                        stage=IssueStage.REFERENCE,
                        category=FailureCategory.INVALID_REFERENCE,
                        field=kind,
                        value=name,
                    )
                )
        return issues

    def _business_issues(
        self,
        row: CsvImportStaging,
        existing_keys: set[tuple[int, int, int]],
    ) -> list[RowIssue]:
        issues: list[RowIssue] = []
        if (row.state_id, row.statistic_id, row.year) in existing_keys:
            issues.append(
                RowIssue(
                    row_number=row.row_number,
                    message="Data already exists for this state/statistic/year combination",
                    severity=IssueSeverity.WARNING,
                    stage=IssueStage.BUSINESS,
                    category=FailureCategory.DUPLICATE,
                )
            )
        if row.value is not None and row.value < 0:
            issues.append(
                RowIssue(
                    row_number=row.row_number,
                    message=f"Negative value {row.value:g}",
                    severity=IssueSeverity.WARNING,
                    stage=IssueStage.BUSINESS,
                    category=FailureCategory.VALUE_SANITY,
                    field="value",
                    value=str(row.value),
                )
            )
        if row.value is not None and row.value > self._large_value_threshold:
            issues.append(
                RowIssue(
                    row_number=row.row_number,
                    message=f"Unusually large value {row.value:g}",
                    severity=IssueSeverity.WARNING,
                    stage=IssueStage.BUSINESS,
                    category=FailureCategory.VALUE_SANITY,
                    field="value",
                    value=str(row.value),
                )
            )
        return issues


@lru_cache(maxsize=1)
def get_import_validation_service() -> ImportValidationService:
    settings = get_csv_import_settings()
    return ImportValidationService(
        large_value_threshold=settings.large_value_threshold,
        error_summary_limit=settings.error_summary_limit,
        log_row_issues=settings.log_row_issues,
    )

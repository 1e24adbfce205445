"""
app/domain/csv_import.py

Domain models shared by the upload, staging, validation and publish steps.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


class IssueSeverity:
    ERROR = "error"
    WARNING = "warning"


class IssueStage:
    MAPPING = "mapping"
    RULE = "rule"
    REFERENCE = "reference"
    BUSINESS = "business"


class FailureCategory:
    MISSING_REQUIRED = "missing_required"
    DATA_TYPE = "data_type"
    BUSINESS_RULE = "business_rule"
    INVALID_REFERENCE = "invalid_reference"
    DUPLICATE = "duplicate"
    VALUE_SANITY = "value_sanity"
    FUZZY_MATCH = "fuzzy_match"


# Stages recomputed by the validator on every run; the rest come from staging.
RECOMPUTED_STAGES = frozenset({IssueStage.REFERENCE, IssueStage.BUSINESS})


@dataclass(frozen=True)
class RowIssue:
    """
    One problem found on one CSV row.
    """

    row_number: int
    message: str
    severity: str = IssueSeverity.ERROR
    stage: str = IssueStage.MAPPING
    category: str = FailureCategory.DATA_TYPE
    field: str | None = None
    value: str | None = None

    @property
    def is_error(self) -> bool:
        return self.severity == IssueSeverity.ERROR

    def describe(self) -> str:
        return f"Row {self.row_number}: {self.message}"

    def to_dict(self) -> dict[str, Any]:
        return {
            "row_number": self.row_number,
            "message": self.message,
            "severity": self.severity,
            "stage": self.stage,
            "category": self.category,
            "field": self.field,
            "value": self.value,
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any], *, row_number: int) -> "RowIssue":
        return cls(
            row_number=int(payload.get("row_number") or row_number),
            message=str(payload.get("message") or ""),
            severity=str(payload.get("severity") or IssueSeverity.ERROR),
            stage=str(payload.get("stage") or IssueStage.MAPPING),
            category=str(payload.get("category") or FailureCategory.DATA_TYPE),
            field=payload.get("field"),
            value=payload.get("value"),
        )


@dataclass
class MappedRecord:
    """
    A CSV data row after column mapping and type coercion.
    """

    row_number: int
    raw_row: dict[str, str]
    state_name: str | None = None
    year: int | None = None
    category_name: str | None = None
    statistic_name: str | None = None
    value: float | None = None
    extra_fields: dict[str, Any] = field(default_factory=dict)
    additional_columns: dict[str, str] | None = None
    issues: list[RowIssue] = field(default_factory=list)

    @property
    def has_errors(self) -> bool:
        return any(issue.is_error for issue in self.issues)

    def raw_data(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"row": dict(self.raw_row)}
        if self.extra_fields:
            payload["extra_fields"] = dict(self.extra_fields)
        if self.additional_columns is not None:
            payload["additional_columns"] = dict(self.additional_columns)
        return payload


@dataclass(frozen=True)
class StagingStats:
    total_rows: int
    valid_rows: int
    invalid_rows: int
    warnings: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_rows": self.total_rows,
            "valid_rows": self.valid_rows,
            "invalid_rows": self.invalid_rows,
            "warnings": list(self.warnings),
        }


@dataclass(frozen=True)
class UploadResult:
    import_id: int
    message: str
    stats: StagingStats
    duplicate_of: int | None = None


@dataclass(frozen=True)
class ValidationStats:
    total_rows: int
    valid_rows: int
    invalid_rows: int
    warning_count: int


@dataclass(frozen=True)
class ValidationReport:
    """
    Outcome of one validation run over a staged import.
    """

    import_id: int
    is_valid: bool
    errors: tuple[str, ...]
    warnings: tuple[str, ...]
    issues: tuple[RowIssue, ...]
    stats: ValidationStats
    failure_breakdown: dict[str, int] = field(default_factory=dict)


@dataclass(frozen=True)
class PublishResult:
    success: bool
    message: str
    published_rows: int = 0
    import_session_id: int | None = None


@dataclass(frozen=True)
class RollbackResult:
    import_id: int
    import_session_id: int | None
    removed_rows: int
    message: str


RECORD_FIELDS = frozenset({"state_name", "year", "category_name", "statistic_name", "value"})

TARGET_FIELD_ALIASES: dict[str, str] = {
    "state": "state_name",
    "statename": "state_name",
    "year": "year",
    "category": "category_name",
    "categoryname": "category_name",
    "measure": "statistic_name",
    "measurename": "statistic_name",
    "statistic": "statistic_name",
    "statisticname": "statistic_name",
    "value": "value",
}


def normalize_target_field(target: str) -> str:
    """
    Map a template ``mapping`` target onto a ``MappedRecord`` attribute name.

    Unknown targets are returned unchanged and end up in ``extra_fields``.
    """

    key = "".join(ch for ch in target.strip().lower() if ch.isalnum())
    return TARGET_FIELD_ALIASES.get(key, target.strip())

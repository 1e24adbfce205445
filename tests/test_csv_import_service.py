"""
tests/test_csv_import_service.py

Upload and staging tests for CSVImportService against in-memory SQLite.

Coverage
--------
- Whole-file rejection: unknown uploader, unknown template, missing headers
- Every data row staged, valid or not, with its issues
- Direct, abbreviation and fuzzy state resolution
- Single-category and flexible templates
- Duplicate detection by content hash
- History paging and the failed-rows export
"""

from __future__ import annotations

import csv
import io

import pytest
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from app.domain.csv_import import UploadResult
from app.services.csv_import_service import (
    FAILED_ROWS_HEADER,
    CSVImportService,
    UploaderNotFoundError,
)
from app.services.template_registry import TemplateNotFoundError
from app.validators.header_validator import CSVHeaderValidationError
from db.models import CsvImport, CsvImportStaging
from db.models.csv_import import CsvImportStatus, StagingValidationStatus

HEADER = "State,Year,Category,Measure,Value"


def _upload(
    service: CSVImportService,
    db: Session,
    content: str,
    *,
    template_id: int = 1,
    metadata: dict | None = None,
    uploaded_by: int = 1,
) -> UploadResult:
    return service.upload_csv(
        db,
        file_content=content.encode("utf-8"),
        filename="states.csv",
        template_id=template_id,
        metadata=metadata,
        uploaded_by=uploaded_by,
    )


def _staged(db: Session, import_id: int) -> list[CsvImportStaging]:
    stmt = (
        select(CsvImportStaging)
        .where(CsvImportStaging.csv_import_id == import_id)
        .order_by(CsvImportStaging.row_number)
    )
    return list(db.scalars(stmt).all())


# ---------------------------------------------------------------------------
# Happy path
# ---------------------------------------------------------------------------


def test_single_valid_row_is_staged(db_session: Session, import_service: CSVImportService) -> None:
    result = _upload(import_service, db_session, f"{HEADER}\nAlabama,2023,Economy,GDP,200000\n")

    assert result.message == "Successfully uploaded and staged 1 rows"
    assert (result.stats.total_rows, result.stats.valid_rows, result.stats.invalid_rows) == (1, 1, 0)
    assert result.duplicate_of is None

    csv_import = db_session.get(CsvImport, result.import_id)
    assert csv_import.status == CsvImportStatus.STAGED
    assert csv_import.name == "states.csv"
    assert csv_import.staged_at is not None

    [row] = _staged(db_session, result.import_id)
    assert row.row_number == 2
    assert (row.state_id, row.category_id, row.statistic_id) == (1, 1, 1)
    assert row.year == 2023
    assert row.value == 200000.0
    assert row.validation_status == StagingValidationStatus.VALID
    assert row.validation_errors is None
    assert row.is_processed is False


def test_every_data_row_is_staged(db_session: Session, import_service: CSVImportService) -> None:
    content = "\n".join(
        [
            HEADER,
            "Alabama,2023,Economy,GDP,1",
            "Texas,abc,Economy,GDP,2",
            "New York,2021,Education,Graduation Rate,88.5",
        ]
    )

    result = _upload(import_service, db_session, content)

    assert result.stats.total_rows == 3
    assert result.stats.valid_rows == 2
    assert result.stats.invalid_rows == 1
    count = db_session.scalar(
        select(func.count(CsvImportStaging.id)).where(CsvImportStaging.csv_import_id == result.import_id)
    )
    assert count == 3


def test_state_abbreviation_and_spacing_resolve_directly(
    db_session: Session,
    import_service: CSVImportService,
) -> None:
    content = f"{HEADER}\nTX,2022,Economy,GDP,5\nNewYork,2022,Economy,GDP,6\n"

    result = _upload(import_service, db_session, content)

    rows = _staged(db_session, result.import_id)
    assert [(row.state_name, row.state_id) for row in rows] == [("Texas", 3), ("New York", 4)]
    assert result.stats.warnings == ()


def test_fuzzy_state_match_is_corrected_with_warning(
    db_session: Session,
    import_service: CSVImportService,
) -> None:
    result = _upload(import_service, db_session, f"{HEADER}\nCalfornia,2023,Economy,GDP,7\n")

    [row] = _staged(db_session, result.import_id)
    assert row.state_name == "California"
    assert row.state_id == 2
    assert row.validation_status == StagingValidationStatus.VALID
    assert result.stats.warnings == ('Row 2: State "Calfornia" matched to "California" (similarity 0.90)',)


def test_metadata_is_stored_and_names_the_import(
    db_session: Session,
    import_service: CSVImportService,
) -> None:
    result = _upload(
        import_service,
        db_session,
        f"{HEADER}\nAlabama,2023,Economy,GDP,1\n",
        metadata={"name": "BEA GDP 2023", "dataYear": 2023, "verified": True},
    )

    details = import_service.get_import_details(db_session, result.import_id)
    assert details.csv_import.name == "BEA GDP 2023"
    assert details.uploader_name == "Admin User"
    assert {(item.key, item.value, item.data_type) for item in details.metadata} == {
        ("name", "BEA GDP 2023", "string"),
        ("dataYear", "2023", "number"),
        ("verified", "true", "boolean"),
    }
    assert len(details.staged_rows) == 1


# ---------------------------------------------------------------------------
# Invalid rows
# ---------------------------------------------------------------------------


def test_unknown_state_is_staged_as_invalid(db_session: Session, import_service: CSVImportService) -> None:
    result = _upload(import_service, db_session, f"{HEADER}\nInvalidState,2023,Economy,GDP,200000\n")

    assert result.stats.invalid_rows == 1
    [row] = _staged(db_session, result.import_id)
    assert row.state_id is None
    assert row.validation_status == StagingValidationStatus.INVALID
    messages = [item["message"] for item in row.validation_errors]
    assert 'State "InvalidState" not found in database' in messages


def test_template_rule_failure_marks_row_invalid(
    db_session: Session,
    import_service: CSVImportService,
) -> None:
    result = _upload(import_service, db_session, f"{HEADER}\nAlabama,1850,Economy,GDP,1\n")

    [row] = _staged(db_session, result.import_id)
    assert row.validation_status == StagingValidationStatus.INVALID
    assert row.validation_errors[0]["message"] == "Year must be at least 1990"
    assert row.validation_errors[0]["category"] == "business_rule"


# ---------------------------------------------------------------------------
# Template variants
# ---------------------------------------------------------------------------


def test_single_category_template_uses_defaults(
    db_session: Session,
    import_service: CSVImportService,
) -> None:
    result = _upload(
        import_service,
        db_session,
        "State,Year,Value\nTexas,2022,5\nAlabama,2022,-3\n",
        template_id=2,
        metadata={"statisticName": "GDP"},
    )

    first, second = _staged(db_session, result.import_id)
    assert (first.category_name, first.category_id) == ("Economy", 1)
    assert (first.statistic_name, first.statistic_id) == ("GDP", 1)
    assert first.validation_status == StagingValidationStatus.VALID
    assert second.validation_status == StagingValidationStatus.INVALID
    assert second.validation_errors[0]["message"] == "Value cannot be negative"


def test_single_category_without_statistic_is_incomplete(
    db_session: Session,
    import_service: CSVImportService,
) -> None:
    result = _upload(import_service, db_session, "State,Year,Value\nTexas,2022,5\n", template_id=2)

    [row] = _staged(db_session, result.import_id)
    assert row.validation_status == StagingValidationStatus.INVALID
    assert row.validation_errors[0]["message"] == "Missing or invalid required fields"
    assert row.validation_errors[0]["category"] == "missing_required"


def test_flexible_template_keeps_extra_columns(
    db_session: Session,
    import_service: CSVImportService,
) -> None:
    result = _upload(
        import_service,
        db_session,
        "State,Year,Measure,Value,Notes\nTexas,2022,GDP,5,preliminary\n",
        template_id=3,
    )

    [row] = _staged(db_session, result.import_id)
    assert row.raw_data["additional_columns"] == {"Notes": "preliminary"}
    assert row.category_id == 1
    assert row.validation_status == StagingValidationStatus.VALID


# ---------------------------------------------------------------------------
# Whole-file rejection
# ---------------------------------------------------------------------------


def test_missing_headers_reject_the_file(db_session: Session, import_service: CSVImportService) -> None:
    with pytest.raises(CSVHeaderValidationError) as exc_info:
        _upload(import_service, db_session, "State,Year,Value\nAlabama,2023,1\n")

    assert list(exc_info.value.errors) == [
        "Missing required column: Category",
        "Missing required column: Measure",
    ]
    assert db_session.scalar(select(func.count(CsvImport.id))) == 0


def test_unknown_uploader(db_session: Session, import_service: CSVImportService) -> None:
    with pytest.raises(UploaderNotFoundError):
        _upload(import_service, db_session, f"{HEADER}\nAlabama,2023,Economy,GDP,1\n", uploaded_by=42)


def test_unknown_template(db_session: Session, import_service: CSVImportService) -> None:
    with pytest.raises(TemplateNotFoundError):
        _upload(import_service, db_session, f"{HEADER}\nAlabama,2023,Economy,GDP,1\n", template_id=99)


def test_same_content_is_flagged_as_duplicate(db_session: Session, import_service: CSVImportService) -> None:
    content = f"{HEADER}\nAlabama,2023,Economy,GDP,1\n"

    first = _upload(import_service, db_session, content)
    second = _upload(import_service, db_session, content.replace("\n", "\r\n"))

    assert second.duplicate_of == first.import_id
    assert second.import_id != first.import_id


# ---------------------------------------------------------------------------
# History and failed rows
# ---------------------------------------------------------------------------


def test_history_is_newest_first_and_filterable(
    db_session: Session,
    import_service: CSVImportService,
) -> None:
    ids = [
        _upload(import_service, db_session, f"{HEADER}\nAlabama,{year},Economy,GDP,1\n").import_id
        for year in (2020, 2021, 2022)
    ]

    page = import_service.list_imports(db_session, page=1, limit=2)
    assert page.total == 3
    assert [item.id for item, _ in page.items] == [ids[2], ids[1]]
    assert page.items[0][1] == "Admin User"

    second_page = import_service.list_imports(db_session, page=2, limit=2)
    assert [item.id for item, _ in second_page.items] == [ids[0]]

    assert import_service.list_imports(db_session, status=CsvImportStatus.PUBLISHED).total == 0
    assert import_service.list_imports(db_session, uploaded_by=1).total == 3


def test_failed_rows_csv_lists_each_error(db_session: Session, import_service: CSVImportService) -> None:
    content = f"{HEADER}\nAlabama,2023,Economy,GDP,1\nTexas,abc,Economy,GDP,2\n"
    result = _upload(import_service, db_session, content)

    rows = list(csv.reader(io.StringIO(import_service.failed_rows_csv(db_session, result.import_id))))

    assert rows[0] == list(FAILED_ROWS_HEADER)
    assert rows[1:] == [["3", "Year", "abc", "data_type", 'Invalid number value "abc" for column "Year"']]


def test_failed_rows_csv_without_failures_has_only_header(
    db_session: Session,
    import_service: CSVImportService,
) -> None:
    result = _upload(import_service, db_session, f"{HEADER}\nAlabama,2023,Economy,GDP,1\n")

    assert import_service.failed_rows_csv(db_session, result.import_id) == ",".join(FAILED_ROWS_HEADER) + "\n"

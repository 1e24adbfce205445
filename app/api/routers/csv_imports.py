"""
app/api/routers/csv_imports.py

Admin endpoints for the CSV import lifecycle: upload, history, details,
validation, publish, rollback and the failed-rows export.
"""

from __future__ import annotations

import json
import math
from typing import Any

from fastapi import APIRouter, Body, Depends, Form, Query, Response, status
from sqlalchemy.orm import Session

from app.api.dependencies import CSVUpload, read_csv_upload
from app.api.errors import APIError
from app.domain.csv_import import RowIssue, ValidationReport
from app.domain.import_template import TemplateDefinitionError
from app.schemas.csv_import import (
    ImportActionRequest,
    ImportDetailsResponseData,
    ImportHistoryResponseData,
    ImportSummaryResponse,
    MetadataEntryResponse,
    PublishResponseData,
    RollbackResponseData,
    RowIssueResponse,
    StagedRowResponse,
    StagingStatsResponse,
    SuccessResponse,
    UploadResponseData,
    ValidationReportResponse,
    ValidationStatsResponse,
)
from app.services.csv_import_service import (
    CSVImportPersistenceError,
    CSVImportService,
    ImportNotFoundError,
    UploaderNotFoundError,
    get_csv_import_service,
)
from app.services.import_publish_service import (
    ImportPublishError,
    ImportPublishService,
    get_import_publish_service,
)
from app.services.import_validation_service import (
    ImportStateError,
    ImportValidationError,
    ImportValidationService,
    get_import_validation_service,
)
from app.services.template_registry import TemplateNotFoundError
from app.validators.header_validator import CSVHeaderValidationError
from db.models.csv_import import CsvImport, CsvImportStaging
from db.session import get_db

router = APIRouter(prefix="/api/admin/csv-imports", tags=["csv-imports"])


def _parse_metadata(raw: str | None) -> dict[str, Any]:
    if raw is None or not raw.strip():
        return {}
    try:
        metadata = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise APIError(status_code=status.HTTP_400_BAD_REQUEST, error="Invalid metadata JSON") from exc
    if not isinstance(metadata, dict):
        raise APIError(status_code=status.HTTP_400_BAD_REQUEST, error="Metadata must be a JSON object")
    return metadata


def _issue_response(issue: RowIssue) -> RowIssueResponse:
    return RowIssueResponse(**issue.to_dict())


def _summary_response(csv_import: CsvImport, uploader_name: str | None) -> ImportSummaryResponse:
    return ImportSummaryResponse(
        id=csv_import.id,
        name=csv_import.name,
        description=csv_import.description,
        filename=csv_import.filename,
        file_size=csv_import.file_size,
        file_hash=csv_import.file_hash,
        status=csv_import.status,
        template_id=csv_import.template_id,
        duplicate_of=csv_import.duplicate_of,
        uploaded_by=csv_import.uploaded_by,
        uploader_name=uploader_name,
        error_message=csv_import.error_message,
        total_rows=csv_import.total_rows,
        valid_rows=csv_import.valid_rows,
        invalid_rows=csv_import.invalid_rows,
        uploaded_at=csv_import.uploaded_at,
        staged_at=csv_import.staged_at,
        validated_at=csv_import.validated_at,
        published_at=csv_import.published_at,
        rolled_back_at=csv_import.rolled_back_at,
    )


def _staged_row_response(row: CsvImportStaging) -> StagedRowResponse:
    return StagedRowResponse(
        id=row.id,
        row_number=row.row_number,
        state_name=row.state_name,
        state_id=row.state_id,
        year=row.year,
        category_name=row.category_name,
        category_id=row.category_id,
        statistic_name=row.statistic_name,
        statistic_id=row.statistic_id,
        value=row.value,
        raw_data=row.raw_data or {},
        validation_status=row.validation_status,
        validation_errors=[
            _issue_response(RowIssue.from_dict(item, row_number=row.row_number))
            for item in row.validation_errors or []
        ],
        is_processed=row.is_processed,
        processed_at=row.processed_at,
    )


def _report_response(report: ValidationReport) -> ValidationReportResponse:
    return ValidationReportResponse(
        import_id=report.import_id,
        is_valid=report.is_valid,
        errors=list(report.errors),
        warnings=list(report.warnings),
        issues=[_issue_response(issue) for issue in report.issues],
        stats=ValidationStatsResponse(
            total_rows=report.stats.total_rows,
            valid_rows=report.stats.valid_rows,
            invalid_rows=report.stats.invalid_rows,
            warning_count=report.stats.warning_count,
        ),
        failure_breakdown=dict(report.failure_breakdown),
    )


def _not_found(exc: ImportNotFoundError) -> APIError:
    return APIError(status_code=status.HTTP_404_NOT_FOUND, error=str(exc))


@router.post("", response_model=SuccessResponse[UploadResponseData])
def upload_csv_import(
    upload: CSVUpload = Depends(read_csv_upload),
    template_id: int = Form(..., alias="templateId"),
    user_id: int = Form(..., alias="userId"),
    metadata: str | None = Form(default=None),
    db: Session = Depends(get_db),
    import_service: CSVImportService = Depends(get_csv_import_service),
) -> SuccessResponse[UploadResponseData]:
    """
    Upload one CSV file against a template and stage its rows.
    """

    try:
        result = import_service.upload_csv(
            db,
            file_content=upload.content,
            filename=upload.filename,
            template_id=template_id,
            metadata=_parse_metadata(metadata),
            uploaded_by=user_id,
        )
    except CSVHeaderValidationError as exc:
        raise APIError(
            status_code=status.HTTP_400_BAD_REQUEST,
            error=exc.message,
            errors=list(exc.errors) or None,
            details={"headers": list(exc.headers)} if exc.headers else None,
        ) from exc
    except (TemplateNotFoundError, UploaderNotFoundError) as exc:
        raise APIError(status_code=status.HTTP_400_BAD_REQUEST, error=str(exc)) from exc
    except TemplateDefinitionError as exc:
        raise APIError(
            status_code=status.HTTP_400_BAD_REQUEST,
            error=exc.message,
            details=exc.to_dict(),
        ) from exc
    except CSVImportPersistenceError as exc:
        raise APIError(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, error=str(exc)) from exc

    return SuccessResponse[UploadResponseData](
        message=result.message,
        data=UploadResponseData(
            import_id=result.import_id,
            message=result.message,
            stats=StagingStatsResponse(**result.stats.to_dict()),
            duplicate_of=result.duplicate_of,
        ),
    )


@router.get("", response_model=SuccessResponse[ImportHistoryResponseData])
def list_csv_imports(
    page: int = Query(default=1, ge=1),
    limit: int | None = Query(default=None, ge=1, le=500),
    status_filter: str | None = Query(default=None, alias="status"),
    uploaded_by: int | None = Query(default=None, alias="uploadedBy"),
    db: Session = Depends(get_db),
    import_service: CSVImportService = Depends(get_csv_import_service),
) -> SuccessResponse[ImportHistoryResponseData]:
    history = import_service.list_imports(
        db,
        page=page,
        limit=limit,
        status=status_filter,
        uploaded_by=uploaded_by,
    )
    return SuccessResponse[ImportHistoryResponseData](
        data=ImportHistoryResponseData(
            items=[_summary_response(item, uploader) for item, uploader in history.items],
            page=history.page,
            limit=history.limit,
            total=history.total,
            total_pages=math.ceil(history.total / history.limit) if history.limit else 0,
        )
    )


@router.get("/{import_id}", response_model=SuccessResponse[ImportDetailsResponseData])
def get_csv_import(
    import_id: int,
    db: Session = Depends(get_db),
    import_service: CSVImportService = Depends(get_csv_import_service),
) -> SuccessResponse[ImportDetailsResponseData]:
    try:
        details = import_service.get_import_details(db, import_id)
    except ImportNotFoundError as exc:
        raise _not_found(exc) from exc

    return SuccessResponse[ImportDetailsResponseData](
        data=ImportDetailsResponseData(
            csv_import=_summary_response(details.csv_import, details.uploader_name),
            metadata=[
                MetadataEntryResponse(key=item.key, value=item.value, data_type=item.data_type)
                for item in details.metadata
            ],
            staged_rows=[_staged_row_response(row) for row in details.staged_rows],
        )
    )


@router.post("/{import_id}/validate", response_model=SuccessResponse[ValidationReportResponse])
def validate_csv_import(
    import_id: int,
    db: Session = Depends(get_db),
    validation_service: ImportValidationService = Depends(get_import_validation_service),
) -> SuccessResponse[ValidationReportResponse]:
    """
    Re-check every staged row; answers 400 with the errors when any row fails.
    """

    try:
        report = validation_service.validate_import(db, import_id)
    except ImportNotFoundError as exc:
        raise _not_found(exc) from exc
    except ImportStateError as exc:
        raise APIError(
            status_code=status.HTTP_400_BAD_REQUEST,
            error=exc.message,
            details=exc.to_dict(),
        ) from exc
    except ImportValidationError as exc:
        raise APIError(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, error=str(exc)) from exc

    payload = _report_response(report)
    if not report.is_valid:
        raise APIError(
            status_code=status.HTTP_400_BAD_REQUEST,
            error="Validation failed",
            errors=list(report.errors),
            details=payload.model_dump(mode="json", by_alias=True),
        )
    return SuccessResponse[ValidationReportResponse](message="Validation passed", data=payload)


@router.post("/{import_id}/publish", response_model=SuccessResponse[PublishResponseData])
def publish_csv_import(
    import_id: int,
    request: ImportActionRequest | None = Body(default=None),
    db: Session = Depends(get_db),
    publish_service: ImportPublishService = Depends(get_import_publish_service),
) -> SuccessResponse[PublishResponseData]:
    try:
        result = publish_service.publish_import(
            db,
            import_id,
            published_by=request.user_id if request is not None else None,
        )
    except ImportNotFoundError as exc:
        raise _not_found(exc) from exc
    except ImportPublishError as exc:
        raise APIError(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, error=str(exc)) from exc

    if not result.success:
        raise APIError(
            status_code=status.HTTP_400_BAD_REQUEST,
            error=result.message,
            details={"publishedRows": result.published_rows},
        )

    return SuccessResponse[PublishResponseData](
        message=result.message,
        data=PublishResponseData(
            published_rows=result.published_rows,
            import_session_id=result.import_session_id,
        ),
    )


@router.post("/{import_id}/rollback", response_model=SuccessResponse[RollbackResponseData])
def rollback_csv_import(
    import_id: int,
    request: ImportActionRequest | None = Body(default=None),
    db: Session = Depends(get_db),
    publish_service: ImportPublishService = Depends(get_import_publish_service),
) -> SuccessResponse[RollbackResponseData]:
    try:
        result = publish_service.rollback_import(
            db,
            import_id,
            user_id=request.user_id if request is not None else None,
        )
    except ImportNotFoundError as exc:
        raise _not_found(exc) from exc
    except ImportStateError as exc:
        raise APIError(
            status_code=status.HTTP_400_BAD_REQUEST,
            error=exc.message,
            details=exc.to_dict(),
        ) from exc
    except ImportPublishError as exc:
        raise APIError(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, error=str(exc)) from exc

    return SuccessResponse[RollbackResponseData](
        message=result.message,
        data=RollbackResponseData(
            import_id=result.import_id,
            import_session_id=result.import_session_id,
            removed_rows=result.removed_rows,
        ),
    )


@router.get("/{import_id}/failed-rows", response_class=Response)
def download_failed_rows(
    import_id: int,
    db: Session = Depends(get_db),
    import_service: CSVImportService = Depends(get_csv_import_service),
) -> Response:
    try:
        content = import_service.failed_rows_csv(db, import_id)
    except ImportNotFoundError as exc:
        raise _not_found(exc) from exc

    return Response(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="import-{import_id}-failed-rows.csv"'},
    )

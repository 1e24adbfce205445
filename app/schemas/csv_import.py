"""
app/schemas/csv_import.py

Request and response schemas for CSV import and template endpoints.

All payloads use camelCase keys on the wire.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

DataT = TypeVar("DataT")


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SuccessResponse(CamelModel, Generic[DataT]):
    """
    Envelope for every successful response.
    """

    success: bool = True
    message: str | None = None
    data: DataT


class ErrorResponse(CamelModel):
    """
    Envelope for every failed response.
    """

    success: bool = False
    error: str
    errors: list[str] | None = None
    details: Any | None = None


class ImportActionRequest(CamelModel):
    user_id: int | None = None


class RowIssueResponse(CamelModel):
    row_number: int = Field(..., ge=1)
    message: str
    severity: str
    stage: str
    category: str
    field: str | None = None
    value: str | None = None


class StagingStatsResponse(CamelModel):
    total_rows: int = Field(..., ge=0)
    valid_rows: int = Field(..., ge=0)
    invalid_rows: int = Field(..., ge=0)
    warnings: list[str] = Field(default_factory=list)


class UploadResponseData(CamelModel):
    import_id: int
    message: str
    stats: StagingStatsResponse
    duplicate_of: int | None = None


class ImportSummaryResponse(CamelModel):
    id: int
    name: str
    description: str | None = None
    filename: str
    file_size: int
    file_hash: str
    status: str
    template_id: int | None = None
    duplicate_of: int | None = None
    uploaded_by: int
    uploader_name: str | None = None
    error_message: str | None = None
    total_rows: int | None = None
    valid_rows: int | None = None
    invalid_rows: int | None = None
    uploaded_at: datetime | None = None
    staged_at: datetime | None = None
    validated_at: datetime | None = None
    published_at: datetime | None = None
    rolled_back_at: datetime | None = None


class ImportHistoryResponseData(CamelModel):
    items: list[ImportSummaryResponse]
    page: int = Field(..., ge=1)
    limit: int = Field(..., ge=1)
    total: int = Field(..., ge=0)
    total_pages: int = Field(..., ge=0)


class MetadataEntryResponse(CamelModel):
    key: str
    value: str
    data_type: str


class StagedRowResponse(CamelModel):
    id: int
    row_number: int
    state_name: str | None = None
    state_id: int | None = None
    year: int | None = None
    category_name: str | None = None
    category_id: int | None = None
    statistic_name: str | None = None
    statistic_id: int | None = None
    value: float | None = None
    raw_data: dict[str, Any] = Field(default_factory=dict)
    validation_status: str
    validation_errors: list[RowIssueResponse] = Field(default_factory=list)
    is_processed: bool
    processed_at: datetime | None = None


class ImportDetailsResponseData(CamelModel):
    csv_import: ImportSummaryResponse
    metadata: list[MetadataEntryResponse]
    staged_rows: list[StagedRowResponse]


class ValidationStatsResponse(CamelModel):
    total_rows: int = Field(..., ge=0)
    valid_rows: int = Field(..., ge=0)
    invalid_rows: int = Field(..., ge=0)
    warning_count: int = Field(..., ge=0)


class ValidationReportResponse(CamelModel):
    import_id: int
    is_valid: bool
    errors: list[str]
    warnings: list[str]
    issues: list[RowIssueResponse]
    stats: ValidationStatsResponse
    failure_breakdown: dict[str, int] = Field(default_factory=dict)


class PublishResponseData(CamelModel):
    published_rows: int = Field(..., ge=0)
    import_session_id: int | None = None


class RollbackResponseData(CamelModel):
    import_id: int
    import_session_id: int | None = None
    removed_rows: int = Field(..., ge=0)


class TemplateColumnResponse(CamelModel):
    name: str
    type: str
    required: bool
    mapping: str | None = None
    validation: dict[str, Any] | None = None


class TemplateSchemaResponse(CamelModel):
    columns: list[TemplateColumnResponse]
    expected_headers: list[str]
    flexible_columns: bool


class TemplateResponse(CamelModel):
    id: int
    name: str
    description: str | None = None
    category_id: int | None = None
    data_source_id: int | None = None
    template_schema: TemplateSchemaResponse
    validation_rules: dict[str, list[dict[str, Any]]] = Field(default_factory=dict)
    sample_data: str | None = None

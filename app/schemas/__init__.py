"""
app/schemas package marker.
"""

from app.schemas.csv_import import (
    ErrorResponse,
    ImportDetailsResponseData,
    ImportHistoryResponseData,
    PublishResponseData,
    RollbackResponseData,
    SuccessResponse,
    TemplateResponse,
    UploadResponseData,
    ValidationReportResponse,
)

__all__ = [
    "ErrorResponse",
    "ImportDetailsResponseData",
    "ImportHistoryResponseData",
    "PublishResponseData",
    "RollbackResponseData",
    "SuccessResponse",
    "TemplateResponse",
    "UploadResponseData",
    "ValidationReportResponse",
]

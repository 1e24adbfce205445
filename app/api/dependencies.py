"""
app/api/dependencies.py

Upload dependencies for the import endpoints: CSV detection and the size cap.
"""

from __future__ import annotations

from dataclasses import dataclass

from fastapi import Depends, File, UploadFile, status

from app.api.errors import APIError
from app.config import CSVImportSettings, get_csv_import_settings

CSV_CONTENT_TYPES = frozenset(
    {
        "text/csv",
        "application/csv",
        "application/vnd.ms-excel",
    }
)


@dataclass(frozen=True)
class CSVUpload:
    filename: str
    content: bytes


def _is_csv(file: UploadFile) -> bool:
    media_type = (file.content_type or "").partition(";")[0].strip().lower()
    return (file.filename or "").strip().lower().endswith(".csv") or media_type in CSV_CONTENT_TYPES


def get_csv_upload(file: UploadFile = File(...)) -> UploadFile:
    """
    Accept the upload when either its extension or its media type says CSV.
    """

    if not _is_csv(file):
        raise APIError(status_code=status.HTTP_400_BAD_REQUEST, error="Only CSV files are allowed.")
    return file


def read_csv_upload(
    file: UploadFile = Depends(get_csv_upload),
    settings: CSVImportSettings = Depends(get_csv_import_settings),
) -> CSVUpload:
    """
    Read the upload into memory, rejecting files over the configured size.
    """

    try:
        content = file.file.read(settings.max_file_size_bytes + 1)
    finally:
        file.file.close()

    if len(content) > settings.max_file_size_bytes:
        limit_mb = settings.max_file_size_bytes / (1024 * 1024)
        raise APIError(
            status_code=status.HTTP_400_BAD_REQUEST,
            error=f"File too large. Maximum size is {limit_mb:g}MB.",
        )
    if not content.strip():
        raise APIError(status_code=status.HTTP_400_BAD_REQUEST, error="Uploaded file is empty.")

    return CSVUpload(filename=file.filename or "upload.csv", content=content)

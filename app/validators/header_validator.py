"""
app/validators/header_validator.py

Upload-level checks on CSV structure: encoding, presence of a header row, and
the template's expected headers.
"""

from __future__ import annotations

from typing import Any, Sequence

INVALID_CSV_FORMAT = "Invalid CSV format"


class CSVHeaderValidationError(ValueError):
    """
    Raised when a CSV file cannot be accepted as a whole.
    """

    def __init__(
        self,
        *,
        message: str = INVALID_CSV_FORMAT,
        errors: Sequence[str] = (),
        headers: Sequence[str] = (),
    ) -> None:
        super().__init__(message)
        self.message = message
        self.errors = tuple(errors)
        self.headers = tuple(headers)

    def to_dict(self) -> dict[str, Any]:
        return {
            "message": self.message,
            "errors": list(self.errors),
            "headers": list(self.headers),
        }


def find_missing_headers(headers: Sequence[str], expected_headers: Sequence[str]) -> list[str]:
    """
    Return expected headers that do not appear, case-insensitively, inside
    any actual header.
    """

    actual = [header.strip().lower() for header in headers]
    missing: list[str] = []
    for expected in expected_headers:
        needle = expected.strip().lower()
        if not needle:
            continue
        if not any(needle in header for header in actual):
            missing.append(expected)
    return missing


def validate_headers(headers: Sequence[str], expected_headers: Sequence[str]) -> None:
    """
    Raise ``CSVHeaderValidationError`` listing every missing expected header.
    """

    if not any(header.strip() for header in headers):
        raise CSVHeaderValidationError(errors=["CSV file has no header row"], headers=headers)

    missing = find_missing_headers(headers, expected_headers)
    if missing:
        raise CSVHeaderValidationError(
            errors=[f"Missing required column: {header}" for header in missing],
            headers=headers,
        )

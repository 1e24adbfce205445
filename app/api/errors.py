"""
app/api/errors.py

Failure envelope for the admin API.

Routers translate service exceptions into ``APIError``; the handlers here
render it, and FastAPI request validation failures, as
``{success: false, error, errors?, details?}``.
"""

from __future__ import annotations

import logging
from typing import Any, Sequence

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from app.schemas.csv_import import ErrorResponse

logger = logging.getLogger(__name__)


class APIError(Exception):
    def __init__(
        self,
        *,
        status_code: int,
        error: str,
        errors: Sequence[str] | None = None,
        details: Any | None = None,
    ) -> None:
        super().__init__(error)
        self.status_code = status_code
        self.error = error
        self.errors = list(errors) if errors is not None else None
        self.details = details

    def to_response(self) -> ErrorResponse:
        return ErrorResponse(error=self.error, errors=self.errors, details=self.details)


def _render(status_code: int, payload: ErrorResponse) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=jsonable_encoder(payload.model_dump(by_alias=True, exclude_none=True)),
    )


async def api_error_handler(request: Request, exc: APIError) -> JSONResponse:
    if exc.status_code >= status.HTTP_500_INTERNAL_SERVER_ERROR:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.error)
    return _render(exc.status_code, exc.to_response())


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    messages = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        messages.append(f"{location}: {error.get('msg')}" if location else str(error.get("msg")))
    return _render(
        status.HTTP_400_BAD_REQUEST,
        ErrorResponse(error="Invalid request", errors=messages),
    )


def register_exception_handlers(application: FastAPI) -> None:
    application.add_exception_handler(APIError, api_error_handler)
    application.add_exception_handler(RequestValidationError, request_validation_handler)

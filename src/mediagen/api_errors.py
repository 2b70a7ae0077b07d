"""Translate domain errors into HTTP responses."""

from __future__ import annotations

from fastapi import HTTPException, status

from .exceptions import (
    GenerationError,
    InvalidInputError,
    JobNotFoundError,
    ModelDisabledError,
    ModelNotFoundError,
    NotCancelableError,
    ProviderUnavailableError,
    SchemaSyncError,
    SignatureInvalidError,
    WebhookPayloadError,
)

_STATUS_CODES: dict[type[GenerationError], int] = {
    ModelNotFoundError: status.HTTP_404_NOT_FOUND,
    JobNotFoundError: status.HTTP_404_NOT_FOUND,
    ModelDisabledError: status.HTTP_409_CONFLICT,
    NotCancelableError: status.HTTP_409_CONFLICT,
    InvalidInputError: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ProviderUnavailableError: status.HTTP_502_BAD_GATEWAY,
    SchemaSyncError: status.HTTP_502_BAD_GATEWAY,
    SignatureInvalidError: status.HTTP_401_UNAUTHORIZED,
    WebhookPayloadError: status.HTTP_400_BAD_REQUEST,
}


def http_error(exc: GenerationError) -> HTTPException:
    """Build an ``HTTPException`` with the standard error body for ``exc``."""
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    for error_type, code in _STATUS_CODES.items():
        if isinstance(exc, error_type):
            status_code = code
            break
    detail: dict[str, object] = {
        "status": "error",
        "failure_reason": exc.failure_reason,
        "message": str(exc),
    }
    if isinstance(exc, InvalidInputError) and exc.errors:
        detail["errors"] = exc.errors
    return HTTPException(status_code=status_code, detail=detail)

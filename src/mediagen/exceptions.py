"""Domain level exceptions and helpers for repository layers."""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Iterator

from sqlalchemy import exc as sa_exc

__all__ = [
    "AppError",
    "RepositoryError",
    "NotFoundError",
    "ConcurrentUpdateError",
    "IntegrityConstraintViolation",
    "DatabaseOperationError",
    "GenerationError",
    "ProviderUnavailableError",
    "InvalidInputError",
    "ModelNotFoundError",
    "ModelDisabledError",
    "NotCancelableError",
    "SignatureInvalidError",
    "JobNotFoundError",
    "WebhookPayloadError",
    "NormalizationError",
    "SchemaSyncError",
    "ensure_found",
    "handle_sqlalchemy_errors",
]


class AppError(Exception):
    """Base class for application specific errors."""


class RepositoryError(AppError):
    """Base class for persistence layer failures."""


class NotFoundError(RepositoryError):
    """Raised when a record could not be located."""


class ConcurrentUpdateError(RepositoryError):
    """Raised when a conditional update lost the race on the row version."""


class IntegrityConstraintViolation(RepositoryError):
    """Raised when a database constraint is violated."""


class DatabaseOperationError(RepositoryError):
    """Raised for unexpected database errors."""


class GenerationError(AppError):
    """Base class for generation workflow failures surfaced to callers."""

    failure_reason = "generation_error"


class ProviderUnavailableError(GenerationError):
    """Transport or auth failure talking to a provider. Retryable by the caller."""

    failure_reason = "provider_unavailable"

    def __init__(self, message: str, *, provider: str | None = None, status_code: int | None = None) -> None:
        super().__init__(message)
        self.provider = provider
        self.status_code = status_code


class InvalidInputError(GenerationError):
    """The input payload was rejected, either locally or by the provider."""

    failure_reason = "invalid_input"

    def __init__(self, message: str, *, errors: list[dict[str, Any]] | None = None) -> None:
        super().__init__(message)
        self.errors = errors or []


class ModelNotFoundError(GenerationError):
    failure_reason = "model_not_found"


class ModelDisabledError(GenerationError):
    failure_reason = "model_disabled"


class NotCancelableError(GenerationError):
    """The provider (or the local record) says the job already finished."""

    failure_reason = "not_cancelable"


class SignatureInvalidError(GenerationError):
    failure_reason = "invalid_signature"


class JobNotFoundError(GenerationError):
    failure_reason = "job_not_found"


class WebhookPayloadError(GenerationError):
    """Notification body could not be decoded into a prediction update."""

    failure_reason = "invalid_payload"


class NormalizationError(GenerationError):
    """Provider output could not be turned into media descriptors."""

    failure_reason = "normalization_failed"


class SchemaSyncError(GenerationError):
    failure_reason = "schema_sync_failed"


@dataclass(slots=True)
class _EntityContext:
    """Internal helper describing the entity for error messages."""

    entity: str | None = None

    def format(self, message: str) -> str:
        if self.entity:
            return f"{self.entity}: {message}"
        return message


def ensure_found(record: object | None, *, entity: str, identifier: str) -> object:
    """Ensure a record exists, otherwise raise :class:`NotFoundError`."""

    if record is None:
        raise NotFoundError(f"{entity} '{identifier}' not found")
    return record


def _translate_sqlalchemy_error(exc: Exception, *, context: _EntityContext) -> RepositoryError:
    if isinstance(exc, sa_exc.IntegrityError):
        return IntegrityConstraintViolation(context.format("integrity constraint violated"))
    if isinstance(exc, sa_exc.DBAPIError):
        return DatabaseOperationError(context.format("database operation failed"))
    return RepositoryError(context.format(str(exc)))


@contextmanager
def handle_sqlalchemy_errors(*, entity: str | None = None) -> Iterator[None]:
    """Translate SQLAlchemy errors into domain specific ones."""

    context = _EntityContext(entity)
    try:
        yield
    except (sa_exc.IntegrityError, sa_exc.DBAPIError) as exc:
        raise _translate_sqlalchemy_error(exc, context=context) from exc

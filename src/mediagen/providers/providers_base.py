"""Abstract provider adapter definition.

Every provider integration implements the same four capabilities: submit a
prediction, read its status, cancel it and validate a pushed notification.
The lifecycle manager and the reconciliation paths only talk to this
interface, so adding a provider never touches job orchestration.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import Any, Mapping

from ..jobs.jobs_models import JobMetrics, JobStatus, StatusUpdate
from ..registry.registry_models import InputSchema, ModelRoute


class CancelResult(StrEnum):
    OK = "ok"
    ALREADY_TERMINAL = "already_terminal"


@dataclass(slots=True)
class ProviderStatus:
    """Provider view of a prediction, already mapped to :class:`JobStatus`.

    ``status`` is ``None`` when the provider reported a value outside the
    known vocabulary; ``native_status`` keeps the raw string for logging.
    """

    external_id: str
    status: JobStatus | None
    native_status: str
    output: Any = None
    error: str | None = None
    metrics: JobMetrics | None = None
    logs: str | None = None
    created_at: datetime | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None
    stream_url: str | None = None

    def to_update(self, *, source: str) -> StatusUpdate | None:
        """Lifecycle update for this status, or ``None`` for unmapped statuses."""
        if self.status is None:
            return None
        return StatusUpdate(
            status=self.status,
            output=self.output,
            error=self.error,
            metrics=self.metrics,
            source=source,
        )


@dataclass(slots=True)
class SubmitResult:
    external_id: str
    status: ProviderStatus
    extra: dict[str, Any] = field(default_factory=dict)


class ProviderAdapter(ABC):
    """Base interface for provider adapters."""

    provider: str

    @abstractmethod
    async def submit(
        self,
        route: ModelRoute,
        input_payload: Mapping[str, Any],
        callback_url: str | None = None,
        *,
        stream: bool = False,
    ) -> SubmitResult:
        """Submit a prediction and return the provider-assigned id."""

    @abstractmethod
    async def get_status(self, external_id: str) -> ProviderStatus:
        """Fetch the current provider status. Must not change remote state."""

    @abstractmethod
    async def cancel(self, external_id: str) -> CancelResult:
        """Ask the provider to stop the prediction."""

    @abstractmethod
    def validate_notification(self, signature_header: str | None, raw_body: bytes) -> bool:
        """Verify a pushed notification over the raw, unparsed body."""

    @abstractmethod
    def map_status(self, native_status: str | None) -> JobStatus | None:
        """Translate provider status vocabulary into :class:`JobStatus`."""

    @abstractmethod
    def parse_notification(self, payload: Mapping[str, Any]) -> ProviderStatus:
        """Build a :class:`ProviderStatus` from a decoded notification body."""

    async def fetch_schema(self, route: ModelRoute) -> tuple[InputSchema, str | None]:
        """Return the provider input schema and the version it belongs to."""
        raise NotImplementedError(f"Schema sync is not supported by '{self.provider}'")

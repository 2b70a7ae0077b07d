"""Data structures for the generation job lifecycle."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import Any

from ..media.media_models import MediaDescriptor


class JobStatus(StrEnum):
    """Lifecycle statuses for generation_job records."""

    PENDING = "pending"
    STARTING = "starting"
    PROCESSING = "processing"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELED = "canceled"

    @property
    def rank(self) -> int:
        return _STATUS_RANK[self]

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


# Terminal states share the highest rank: none of them may follow another.
_STATUS_RANK = {
    JobStatus.PENDING: 0,
    JobStatus.STARTING: 1,
    JobStatus.PROCESSING: 2,
    JobStatus.SUCCEEDED: 3,
    JobStatus.FAILED: 3,
    JobStatus.CANCELED: 3,
}

TERMINAL_STATUSES = frozenset({JobStatus.SUCCEEDED, JobStatus.FAILED, JobStatus.CANCELED})

DEFAULT_FAILURE_MESSAGES = {
    JobStatus.FAILED: "Prediction failed",
    JobStatus.CANCELED: "Prediction was canceled",
}


class TransitionOutcome(StrEnum):
    """Result of feeding a status update into the lifecycle manager."""

    APPLIED = "applied"
    DUPLICATE = "duplicate"
    STALE = "stale"
    CONFLICT = "conflict"
    NOT_FOUND = "not_found"


@dataclass(slots=True)
class JobMetrics:
    """Timing information reported by the provider."""

    predict_time: float | None = None
    total_time: float | None = None

    @property
    def duration(self) -> float | None:
        return self.total_time if self.total_time is not None else self.predict_time

    def to_dict(self) -> dict[str, float]:
        data: dict[str, float] = {}
        if self.predict_time is not None:
            data["predict_time"] = self.predict_time
        if self.total_time is not None:
            data["total_time"] = self.total_time
        return data

    @classmethod
    def from_mapping(cls, raw: Any) -> "JobMetrics | None":
        if not isinstance(raw, dict):
            return None
        metrics = cls(
            predict_time=_as_float(raw.get("predict_time")),
            total_time=_as_float(raw.get("total_time")),
        )
        if metrics.predict_time is None and metrics.total_time is None:
            return None
        return metrics


def _as_float(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    return None


@dataclass(slots=True)
class StatusUpdate:
    """A status notification, whether pushed by webhook or pulled by poll."""

    status: JobStatus
    output: Any = None
    error: str | None = None
    metrics: JobMetrics | None = None
    source: str = "poll"


@dataclass(slots=True)
class GenerationJob:
    """Snapshot of a generation_job row."""

    id: str
    model_identifier: str
    status: JobStatus
    user_id: str
    input: dict[str, Any] = field(default_factory=dict)
    external_id: str | None = None
    output: Any = None
    error: str | None = None
    metrics: JobMetrics | None = None
    submitted_at: datetime | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None
    duration_seconds: float | None = None
    project_id: str | None = None
    field_id: str | None = None
    webhook_url: str | None = None
    version: int = 1
    updated_at: datetime | None = None
    media: list[MediaDescriptor] = field(default_factory=list)

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal


@dataclass(slots=True)
class TransitionResult:
    outcome: TransitionOutcome
    job: GenerationJob | None = None
    media_created: int = 0

"""Pydantic schemas for the predictions API."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from ..media.media_models import MediaDescriptor
from .jobs_models import GenerationJob


class PredictionCreateRequest(BaseModel):
    model: str = Field(..., min_length=1)
    input: dict[str, Any]
    user_id: str = Field(..., min_length=1)
    project_id: str | None = None
    field_id: str | None = None
    webhook_url: str | None = None
    stream: bool = False


class MediaPayload(BaseModel):
    ordinal: int
    url: str
    kind: str
    format: str
    name: str

    @classmethod
    def from_domain(cls, media: MediaDescriptor) -> "MediaPayload":
        return cls(
            ordinal=media.ordinal,
            url=media.url,
            kind=media.kind.value,
            format=media.format,
            name=media.name,
        )


class PredictionCreateResponse(BaseModel):
    job_id: str
    prediction_id: str | None
    status: str
    estimated_cost: float | None = None
    estimated_time: float | None = None
    stream_url: str | None = None
    webhook_url: str | None = None


class PredictionStatusResponse(BaseModel):
    job_id: str
    prediction_id: str | None
    model: str
    status: str
    output: Any = None
    error: str | None = None
    metrics: dict[str, float] | None = None
    submitted_at: datetime | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None
    duration_seconds: float | None = None
    updated_at: datetime | None = None
    media: list[MediaPayload] = Field(default_factory=list)

    @classmethod
    def from_domain(cls, job: GenerationJob) -> "PredictionStatusResponse":
        return cls(
            job_id=job.id,
            prediction_id=job.external_id,
            model=job.model_identifier,
            status=job.status.value,
            output=job.output,
            error=job.error,
            metrics=job.metrics.to_dict() if job.metrics else None,
            submitted_at=job.submitted_at,
            started_at=job.started_at,
            completed_at=job.completed_at,
            duration_seconds=job.duration_seconds,
            updated_at=job.updated_at,
            media=[MediaPayload.from_domain(media) for media in job.media],
        )


class PredictionCancelResponse(BaseModel):
    job_id: str
    status: str
    canceled: bool


class StaleJobPayload(BaseModel):
    job_id: str
    prediction_id: str | None
    model: str
    status: str
    updated_at: datetime | None


class StaleJobsResponse(BaseModel):
    threshold_seconds: int
    jobs: list[StaleJobPayload]

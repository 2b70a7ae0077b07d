"""HTTP routes for submitting, polling and canceling predictions."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request, Response, status

from ..api_errors import http_error
from ..exceptions import GenerationError
from .jobs_schemas import (
    PredictionCancelResponse,
    PredictionCreateRequest,
    PredictionCreateResponse,
    PredictionStatusResponse,
    StaleJobPayload,
    StaleJobsResponse,
)
from .jobs_service import GenerationService

router = APIRouter(prefix="/api/predictions", tags=["predictions"])
logger = logging.getLogger(__name__)

# Status payloads change between calls for the same URL; no layer may cache them.
NO_CACHE_HEADERS = {
    "Cache-Control": "no-store, no-cache, must-revalidate, proxy-revalidate",
    "Pragma": "no-cache",
    "Expires": "0",
    "Surrogate-Control": "no-store",
}


def get_generation_service(request: Request) -> GenerationService:
    """Fetch generation service from application state."""
    try:
        return request.app.state.generation_service  # type: ignore[attr-defined]
    except AttributeError as exc:  # pragma: no cover - app misconfigured
        raise RuntimeError("GenerationService is not configured") from exc


@router.post("", status_code=status.HTTP_201_CREATED, response_model=PredictionCreateResponse)
async def create_prediction(
    payload: PredictionCreateRequest,
    service: GenerationService = Depends(get_generation_service),
) -> PredictionCreateResponse:
    try:
        result = await service.submit(
            model_identifier=payload.model,
            input_payload=payload.input,
            user_id=payload.user_id,
            project_id=payload.project_id,
            field_id=payload.field_id,
            webhook_url=payload.webhook_url,
            stream=payload.stream,
        )
    except GenerationError as exc:
        logger.warning(
            "predictions.create.failed",
            extra={"model": payload.model, "reason": exc.failure_reason},
        )
        raise http_error(exc) from exc

    return PredictionCreateResponse(
        job_id=result.job.id,
        prediction_id=result.job.external_id,
        status=result.job.status.value,
        estimated_cost=result.estimated_cost,
        estimated_time=result.estimated_time,
        stream_url=result.stream_url,
        webhook_url=result.webhook_url,
    )


@router.get("/stale", response_model=StaleJobsResponse)
def list_stale_predictions(
    limit: int = 100,
    service: GenerationService = Depends(get_generation_service),
) -> StaleJobsResponse:
    """Unresolved jobs nobody has touched for longer than the stale threshold."""
    jobs = service.find_stale_jobs(limit=limit)
    return StaleJobsResponse(
        threshold_seconds=service.stale_after_seconds,
        jobs=[
            StaleJobPayload(
                job_id=job.id,
                prediction_id=job.external_id,
                model=job.model_identifier,
                status=job.status.value,
                updated_at=job.updated_at,
            )
            for job in jobs
        ],
    )


@router.get("/{job_id}", response_model=PredictionStatusResponse)
async def get_prediction(
    job_id: str,
    response: Response,
    service: GenerationService = Depends(get_generation_service),
) -> PredictionStatusResponse:
    response.headers.update(NO_CACHE_HEADERS)
    try:
        job = await service.check_status(job_id)
    except GenerationError as exc:
        error = http_error(exc)
        error.headers = dict(NO_CACHE_HEADERS)
        raise error from exc
    return PredictionStatusResponse.from_domain(job)


@router.delete("/{job_id}", response_model=PredictionCancelResponse)
async def cancel_prediction(
    job_id: str,
    service: GenerationService = Depends(get_generation_service),
) -> PredictionCancelResponse:
    try:
        outcome = await service.cancel(job_id)
    except GenerationError as exc:
        logger.info(
            "predictions.cancel.rejected",
            extra={"job_id": job_id, "reason": exc.failure_reason},
        )
        raise http_error(exc) from exc
    return PredictionCancelResponse(
        job_id=outcome.job.id,
        status=outcome.job.status.value,
        canceled=outcome.canceled,
    )

"""Generation workflow: submit, poll, cancel and reconcile jobs."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any

from ..exceptions import (
    AppError,
    GenerationError,
    JobNotFoundError,
    ModelNotFoundError,
    NotCancelableError,
)
from ..pricing.cost import CostEstimator
from ..providers.providers_base import CancelResult, ProviderAdapter
from ..providers.providers_factory import AdapterDirectory
from ..registry.registry_service import ModelRegistry
from .jobs_models import GenerationJob, JobStatus, StatusUpdate, TransitionOutcome
from .lifecycle import JobLifecycleManager

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class SubmissionResult:
    job: GenerationJob
    estimated_cost: float | None = None
    estimated_time: float | None = None
    stream_url: str | None = None
    webhook_url: str | None = None


@dataclass(slots=True)
class CancelOutcome:
    """``canceled`` is False when the provider had already finished the job."""

    job: GenerationJob
    canceled: bool


@dataclass(slots=True)
class ReconcileReport:
    checked: int = 0
    updated: int = 0
    errors: int = 0
    outcomes: dict[str, int] = field(default_factory=dict)

    def record(self, outcome: TransitionOutcome) -> None:
        self.outcomes[outcome.value] = self.outcomes.get(outcome.value, 0) + 1
        if outcome is TransitionOutcome.APPLIED:
            self.updated += 1


@dataclass(slots=True)
class GenerationService:
    """Coordinates the registry, the provider adapters and the lifecycle manager."""

    registry: ModelRegistry
    lifecycle: JobLifecycleManager
    adapters: AdapterDirectory
    cost_estimator: CostEstimator = field(default_factory=CostEstimator)
    default_webhook_url: str | None = None
    stale_after_seconds: int = 900
    log: logging.Logger = field(default_factory=lambda: logger)

    async def submit(
        self,
        *,
        model_identifier: str,
        input_payload: dict[str, Any],
        user_id: str,
        project_id: str | None = None,
        field_id: str | None = None,
        webhook_url: str | None = None,
        stream: bool = False,
    ) -> SubmissionResult:
        """Create a job and hand it to the provider.

        Routing failures are raised before any job row exists. Provider
        failures mark the freshly created job as failed and are re-raised
        to the caller without retrying.
        """
        route = self.registry.resolve(model_identifier)
        adapter = self.adapters.get(route.provider)
        callback_url = webhook_url or self.default_webhook_url

        job = self.lifecycle.create_job(
            model_identifier=route.identifier,
            input_payload=input_payload,
            user_id=user_id,
            project_id=project_id,
            field_id=field_id,
            webhook_url=callback_url if route.supports_webhook else None,
        )

        try:
            submitted = await adapter.submit(route, input_payload, callback_url, stream=stream)
        except GenerationError as exc:
            self.log.warning(
                "jobs.submit.failed",
                extra={"job_id": job.id, "model": route.identifier, "reason": exc.failure_reason},
            )
            await self.lifecycle.apply_status(
                StatusUpdate(status=JobStatus.FAILED, error=str(exc), source="submit"),
                job_id=job.id,
            )
            raise

        job = self.lifecycle.attach_external_id(job.id, submitted.external_id)
        update = submitted.status.to_update(source="submit")
        if update is not None:
            result = await self.lifecycle.apply_status(update, job_id=job.id)
            job = result.job or job

        return SubmissionResult(
            job=job,
            estimated_cost=self.cost_estimator.estimate(route, input_payload),
            estimated_time=route.avg_latency_seconds,
            stream_url=submitted.status.stream_url,
            webhook_url=job.webhook_url,
        )

    def get_job(self, job_ref: str) -> GenerationJob:
        job = self.lifecycle.get_job(job_ref)
        if job is None:
            raise JobNotFoundError(f"Job '{job_ref}' not found")
        return job

    async def check_status(self, job_ref: str) -> GenerationJob:
        """Return the job, polling the provider first while it is unresolved.

        Provider errors during the poll are logged and the stored state is
        returned unchanged; the next poll or webhook will catch up.
        """
        job = self.get_job(job_ref)
        if job.is_terminal or not job.external_id:
            return job
        polled = await self._poll(job)
        return polled.job if polled is not None else job

    async def cancel(self, job_ref: str) -> CancelOutcome:
        job = self.get_job(job_ref)
        if job.is_terminal:
            raise NotCancelableError(f"Job '{job.id}' already {job.status.value}")
        if not job.external_id:
            raise NotCancelableError(f"Job '{job.id}' has not been submitted to the provider yet")

        route = self.registry.lookup(job.model_identifier)
        if route is not None and not route.supports_cancel:
            raise NotCancelableError(f"Model '{job.model_identifier}' does not support cancellation")

        adapter = self._adapter_for(job)
        result = await adapter.cancel(job.external_id)
        if result is CancelResult.ALREADY_TERMINAL:
            self.log.info(
                "jobs.cancel.noop",
                extra={"job_id": job.id, "prediction_id": job.external_id},
            )
            return CancelOutcome(job=job, canceled=False)

        transition = await self.lifecycle.apply_status(
            StatusUpdate(status=JobStatus.CANCELED, source="cancel"),
            job_id=job.id,
        )
        self.log.info(
            "jobs.cancel.done",
            extra={"job_id": job.id, "outcome": transition.outcome.value},
        )
        return CancelOutcome(
            job=transition.job or job,
            canceled=transition.outcome is TransitionOutcome.APPLIED,
        )

    async def refresh_pending(
        self, *, model_identifier: str | None = None, limit: int = 100
    ) -> ReconcileReport:
        """Poll every unresolved job once; used by the periodic task and the script."""
        report = ReconcileReport()
        for job in self.lifecycle.repo.list_active_jobs(model_identifier=model_identifier, limit=limit):
            if not job.external_id:
                continue
            report.checked += 1
            result = await self._poll(job, source="reconcile")
            if result is None:
                report.errors += 1
            elif result.outcome is not None:
                report.record(result.outcome)

        self.log.info(
            "jobs.reconcile.done",
            extra={"checked": report.checked, "updated": report.updated, "errors": report.errors},
        )
        return report

    def find_stale_jobs(self, *, now: datetime | None = None, limit: int = 100) -> list[GenerationJob]:
        """Unresolved jobs whose row has not changed for ``stale_after_seconds``."""
        cutoff = (now or datetime.utcnow()) - timedelta(seconds=self.stale_after_seconds)
        return list(self.lifecycle.repo.list_stale_jobs(cutoff, limit=limit))

    async def _poll(self, job: GenerationJob, *, source: str = "poll") -> _PollResult | None:
        """Fetch provider status and apply it; ``None`` means the poll failed."""
        assert job.external_id is not None
        try:
            status = await self._adapter_for(job).get_status(job.external_id)
            update = status.to_update(source=source)
            if update is None:
                self.log.info(
                    "jobs.poll.unknown_status",
                    extra={"job_id": job.id, "native_status": status.native_status},
                )
                return _PollResult(job=job)
            result = await self.lifecycle.apply_status(update, job_id=job.id)
        except AppError as exc:
            self.log.warning(
                "jobs.poll.failed",
                extra={"job_id": job.id, "prediction_id": job.external_id, "error": str(exc)},
            )
            return None
        return _PollResult(job=result.job or job, outcome=result.outcome)

    def _adapter_for(self, job: GenerationJob) -> ProviderAdapter:
        route = self.registry.lookup(job.model_identifier)
        if route is None:
            raise ModelNotFoundError(f"Model '{job.model_identifier}' not found")
        return self.adapters.get(route.provider)


@dataclass(slots=True)
class _PollResult:
    job: GenerationJob
    outcome: TransitionOutcome | None = None

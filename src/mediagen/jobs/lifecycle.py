"""Job lifecycle state machine.

Every status change, whether pushed by a webhook or pulled by the poller,
goes through :meth:`JobLifecycleManager.apply_status`.
"""

from __future__ import annotations

import asyncio
import logging
import weakref
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from ..exceptions import ConcurrentUpdateError, NormalizationError
from ..media.media_models import MediaDescriptor
from ..media.normalizer import normalize_output
from .jobs_models import (
    DEFAULT_FAILURE_MESSAGES,
    GenerationJob,
    JobStatus,
    StatusUpdate,
    TransitionOutcome,
    TransitionResult,
)
from .jobs_repository import GenerationJobRepository, JobTransition

logger = logging.getLogger(__name__)

_IN_FLIGHT = frozenset({JobStatus.STARTING, JobStatus.PROCESSING})


def decide_transition(current: JobStatus, requested: JobStatus) -> TransitionOutcome:
    """Classify moving from ``current`` to ``requested``.

    Only strictly forward moves are applied. A terminal status is final: a
    repeat of it is a duplicate, a different terminal status is a conflict
    and anything earlier is stale. A repeated in-flight status is stale too.
    """
    if current.is_terminal:
        if requested == current:
            return TransitionOutcome.DUPLICATE
        return TransitionOutcome.CONFLICT if requested.is_terminal else TransitionOutcome.STALE
    if requested.rank <= current.rank:
        return TransitionOutcome.STALE
    return TransitionOutcome.APPLIED


@dataclass(slots=True)
class JobLifecycleManager:
    """Owns creation and every status transition of generation jobs."""

    repo: GenerationJobRepository
    max_attempts: int = 3
    clock: Callable[[], datetime] = datetime.utcnow
    _locks: weakref.WeakValueDictionary = field(default_factory=weakref.WeakValueDictionary)
    log: logging.Logger = field(default_factory=lambda: logger)

    def create_job(
        self,
        *,
        model_identifier: str,
        input_payload: dict[str, Any],
        user_id: str,
        project_id: str | None = None,
        field_id: str | None = None,
        webhook_url: str | None = None,
    ) -> GenerationJob:
        job = self.repo.create_job(
            model_identifier=model_identifier,
            input_payload=input_payload,
            user_id=user_id,
            project_id=project_id,
            field_id=field_id,
            webhook_url=webhook_url,
            submitted_at=self.clock(),
        )
        self.log.info(
            "jobs.created",
            extra={"job_id": job.id, "model": model_identifier, "user_id": user_id},
        )
        return job

    def attach_external_id(self, job_id: str, external_id: str) -> GenerationJob:
        job = self.repo.attach_external_id(job_id, external_id)
        self.log.info(
            "jobs.external_id.attached",
            extra={"job_id": job_id, "prediction_id": external_id},
        )
        return job

    def get_job(self, job_ref: str) -> GenerationJob | None:
        """Look a job up by internal id first, then by provider id."""
        return self.repo.get_job_by_id(job_ref) or self.repo.get_job_by_external_id(job_ref)

    async def apply_status(
        self,
        update: StatusUpdate,
        *,
        job_id: str | None = None,
        external_id: str | None = None,
    ) -> TransitionResult:
        """Feed one status notification into the state machine.

        Exactly one of ``job_id`` / ``external_id`` identifies the job. The
        read-decide-write cycle runs under a per-job lock and is committed
        with a version check, so two notifications for the same job can
        never both win. Unknown jobs yield ``NOT_FOUND`` instead of raising.
        """
        if (job_id is None) == (external_id is None):
            raise ValueError("Provide exactly one of job_id or external_id")

        if job_id is not None:
            job = self.repo.get_job_by_id(job_id)
        else:
            job = self.repo.get_job_by_external_id(external_id)  # type: ignore[arg-type]
        if job is None:
            self.log.info(
                "jobs.transition.not_found",
                extra={
                    "job_id": job_id,
                    "prediction_id": external_id,
                    "status": update.status.value,
                    "source": update.source,
                },
            )
            return TransitionResult(outcome=TransitionOutcome.NOT_FOUND)

        async with self._lock_for(job.id):
            for attempt in range(1, self.max_attempts + 1):
                job = self.repo.get_job_by_id(job.id) or job
                outcome = decide_transition(job.status, update.status)
                if outcome is not TransitionOutcome.APPLIED:
                    self._log_skipped(job, update, outcome)
                    return TransitionResult(outcome=outcome, job=job)

                transition, media = self._build_transition(job, update)
                try:
                    updated = self.repo.update_job_status(
                        job.id,
                        expected_version=job.version,
                        transition=transition,
                        media=media,
                    )
                except ConcurrentUpdateError:
                    self.log.warning(
                        "jobs.transition.retry",
                        extra={"job_id": job.id, "attempt": attempt, "status": update.status.value},
                    )
                    continue

                self.log.info(
                    "jobs.transition.applied",
                    extra={
                        "job_id": job.id,
                        "prediction_id": job.external_id,
                        "from_status": job.status.value,
                        "status": updated.status.value,
                        "source": update.source,
                        "media": len(media),
                    },
                )
                return TransitionResult(
                    outcome=TransitionOutcome.APPLIED,
                    job=updated,
                    media_created=len(media),
                )

        raise ConcurrentUpdateError(
            f"generation_job '{job.id}' kept changing after {self.max_attempts} attempts"
        )

    def _lock_for(self, job_id: str) -> asyncio.Lock:
        lock = self._locks.get(job_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[job_id] = lock
        return lock

    def _build_transition(
        self, job: GenerationJob, update: StatusUpdate
    ) -> tuple[JobTransition, list[MediaDescriptor]]:
        now = self.clock()
        status = update.status
        metrics = update.metrics or job.metrics
        transition = JobTransition(
            status=status,
            metrics=metrics,
            started_at=job.started_at,
            completed_at=job.completed_at,
            duration_seconds=metrics.duration if metrics else job.duration_seconds,
        )
        if status in _IN_FLIGHT and transition.started_at is None:
            transition.started_at = now
        if not status.is_terminal:
            return transition, []

        transition.completed_at = now
        if status is JobStatus.SUCCEEDED:
            if update.output is None:
                self.log.warning("jobs.transition.empty_output", extra={"job_id": job.id})
            transition.output = update.output if update.output is not None else {}
            return transition, self._normalize(job, transition.output)

        message = (update.error or "").strip()
        transition.error = message or DEFAULT_FAILURE_MESSAGES[status]
        return transition, []

    def _normalize(self, job: GenerationJob, output: Any) -> list[MediaDescriptor]:
        try:
            return normalize_output(job.id, output, job.input)
        except NormalizationError:
            # The remote generation succeeded; keep the job succeeded without media.
            self.log.exception(
                "jobs.normalize.failed",
                extra={"job_id": job.id, "prediction_id": job.external_id},
            )
            return []

    def _log_skipped(self, job: GenerationJob, update: StatusUpdate, outcome: TransitionOutcome) -> None:
        extra = {
            "job_id": job.id,
            "prediction_id": job.external_id,
            "current": job.status.value,
            "status": update.status.value,
            "source": update.source,
        }
        if outcome is TransitionOutcome.CONFLICT:
            self.log.warning("jobs.transition.conflict", extra=extra)
        elif outcome is TransitionOutcome.DUPLICATE:
            self.log.info("jobs.transition.duplicate", extra=extra)
        else:
            self.log.debug("jobs.transition.stale", extra=extra)

"""Background reconciliation wired into FastAPI startup."""

from __future__ import annotations

import asyncio
import logging

from .jobs.jobs_service import GenerationService, ReconcileReport

logger = logging.getLogger(__name__)


async def reconcile_once(*, service: GenerationService, limit: int = 100) -> ReconcileReport:
    """Poll every unresolved job a single time and report stale ones."""
    report = await service.refresh_pending(limit=limit)
    stale = service.find_stale_jobs(limit=limit)
    if stale:
        logger.warning(
            "jobs.reconcile.stale_jobs",
            extra={"count": len(stale), "job_ids": [job.id for job in stale]},
        )
    return report


async def run_periodic_reconciliation(
    *,
    service: GenerationService,
    shutdown_event: asyncio.Event,
    interval_seconds: float = 60.0,
) -> None:
    """Execute reconciliation until ``shutdown_event`` is signalled."""

    interval = max(1.0, float(interval_seconds))
    try:
        while not shutdown_event.is_set():
            try:
                report = await reconcile_once(service=service)
            except Exception:  # pragma: no cover - next tick retries
                logger.exception("jobs.reconcile.iteration_failed")
            else:
                if report.updated:
                    logger.info(
                        "Reconciled %s of %s unresolved jobs",
                        report.updated,
                        report.checked,
                    )
            try:
                await asyncio.wait_for(shutdown_event.wait(), timeout=interval)
            except asyncio.TimeoutError:
                continue
    except asyncio.CancelledError:  # pragma: no cover - shutdown path
        raise


__all__ = [
    "reconcile_once",
    "run_periodic_reconciliation",
]

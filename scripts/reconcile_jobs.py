"""Cron entry point reconciling unresolved generation jobs with their provider."""

from __future__ import annotations

import argparse
import asyncio
import sys
from dataclasses import dataclass, field

from src.mediagen.config import load_config
from src.mediagen.dependencies import build_services
from src.mediagen.jobs.jobs_service import GenerationService
from src.mediagen.logging import configure_logging


@dataclass(slots=True)
class ReconcileSummary:
    checked: int = 0
    updated: int = 0
    errors: int = 0
    stale_job_ids: list[str] = field(default_factory=list)
    dry_run: bool = False


async def perform_reconcile(
    service: GenerationService,
    *,
    dry_run: bool,
    model: str | None = None,
    limit: int = 100,
    report_stale: bool = False,
) -> ReconcileSummary:
    """Poll unresolved jobs (or only count them when ``dry_run``)."""
    summary = ReconcileSummary(dry_run=dry_run)
    if dry_run:
        active = service.lifecycle.repo.list_active_jobs(model_identifier=model, limit=limit)
        summary.checked = sum(1 for job in active if job.external_id)
    else:
        report = await service.refresh_pending(model_identifier=model, limit=limit)
        summary.checked = report.checked
        summary.updated = report.updated
        summary.errors = report.errors

    if report_stale:
        summary.stale_job_ids = [job.id for job in service.find_stale_jobs(limit=limit)]
    return summary


def parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Poll providers for jobs still awaiting a result.")
    parser.add_argument("--dry-run", action="store_true", help="Only count unresolved jobs without polling.")
    parser.add_argument("--model", default=None, help="Restrict to one model identifier.")
    parser.add_argument("--limit", type=int, default=100, help="Maximum number of jobs to inspect.")
    parser.add_argument("--stale", action="store_true", help="Also list jobs past the stale threshold.")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv or [])
    configure_logging()
    try:
        service = build_services(load_config()).generation
        summary = asyncio.run(
            perform_reconcile(
                service,
                dry_run=args.dry_run,
                model=args.model,
                limit=args.limit,
                report_stale=args.stale,
            )
        )
    except Exception as exc:
        print(f"reconcile failed: {exc}", file=sys.stderr)
        return 2

    if summary.dry_run:
        print(f"reconcile dry-run, unresolved={summary.checked}", file=sys.stdout)
    else:
        print(
            f"reconcile done, checked={summary.checked}, updated={summary.updated}, errors={summary.errors}",
            file=sys.stdout,
        )
    if args.stale:
        print(f"stale jobs ({len(summary.stale_job_ids)}): {', '.join(summary.stale_job_ids) or '-'}")
    return 0


if __name__ == "__main__":
    sys.exit(main(sys.argv[1:]))

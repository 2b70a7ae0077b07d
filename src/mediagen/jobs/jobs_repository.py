"""Persistence layer for generation_job and media_descriptor records."""

from __future__ import annotations

import json
import uuid
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from sqlalchemy import update
from sqlalchemy.orm import Session, selectinload

from ..db.db_models import GenerationJobModel, MediaDescriptorModel
from ..exceptions import (
    ConcurrentUpdateError,
    IntegrityConstraintViolation,
    NotFoundError,
    handle_sqlalchemy_errors,
)
from ..media.media_models import MediaDescriptor, MediaKind
from .jobs_models import TERMINAL_STATUSES, GenerationJob, JobMetrics, JobStatus


@dataclass(slots=True)
class JobTransition:
    """Column values written by a single status transition."""

    status: JobStatus
    output: Any = None
    error: str | None = None
    metrics: JobMetrics | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None
    duration_seconds: float | None = None


class GenerationJobRepository:
    """Manage generation_job rows and the media produced by them."""

    def __init__(self, session_factory: Callable[[], Session]) -> None:
        self._session_factory = session_factory

    def create_job(
        self,
        *,
        model_identifier: str,
        input_payload: dict[str, Any],
        user_id: str,
        project_id: str | None = None,
        field_id: str | None = None,
        webhook_url: str | None = None,
        submitted_at: datetime | None = None,
    ) -> GenerationJob:
        job_id = uuid.uuid4().hex
        now = submitted_at or datetime.utcnow()
        with self._session_factory() as session, handle_sqlalchemy_errors(entity="generation_job"):
            model = GenerationJobModel(
                id=job_id,
                model_identifier=model_identifier,
                input_json=json.dumps(input_payload),
                status=JobStatus.PENDING.value,
                user_id=user_id,
                project_id=project_id,
                field_id=field_id,
                webhook_url=webhook_url,
                submitted_at=now,
                version=1,
                created_at=now,
                updated_at=now,
            )
            session.add(model)
            session.commit()
            return self._to_domain(model, media=[])

    def attach_external_id(self, job_id: str, external_id: str) -> GenerationJob:
        """Bind the provider id once; a different id for the same job is rejected."""
        with self._session_factory() as session, handle_sqlalchemy_errors(entity="generation_job"):
            result = session.execute(
                update(GenerationJobModel)
                .where(
                    GenerationJobModel.id == job_id,
                    GenerationJobModel.external_id.is_(None),
                )
                .values(external_id=external_id, updated_at=datetime.utcnow())
                .execution_options(synchronize_session=False)
            )
            session.commit()
            if result.rowcount != 1:
                model = session.get(GenerationJobModel, job_id)
                if model is None:
                    raise NotFoundError(f"generation_job '{job_id}' not found")
                if model.external_id != external_id:
                    raise IntegrityConstraintViolation(
                        f"generation_job '{job_id}' already bound to '{model.external_id}'"
                    )
        job = self.get_job_by_id(job_id)
        assert job is not None
        return job

    def get_job_by_id(self, job_id: str) -> GenerationJob | None:
        with self._session_factory() as session, handle_sqlalchemy_errors(entity="generation_job"):
            model = (
                session.query(GenerationJobModel)
                .options(selectinload(GenerationJobModel.media))
                .filter(GenerationJobModel.id == job_id)
                .one_or_none()
            )
            return self._to_domain(model) if model is not None else None

    def get_job_by_external_id(self, external_id: str) -> GenerationJob | None:
        with self._session_factory() as session, handle_sqlalchemy_errors(entity="generation_job"):
            model = (
                session.query(GenerationJobModel)
                .options(selectinload(GenerationJobModel.media))
                .filter(GenerationJobModel.external_id == external_id)
                .one_or_none()
            )
            return self._to_domain(model) if model is not None else None

    def update_job_status(
        self,
        job_id: str,
        *,
        expected_version: int,
        transition: JobTransition,
        media: Iterable[MediaDescriptor] = (),
    ) -> GenerationJob:
        """Write ``transition`` only if the row still has ``expected_version``.

        Media descriptors are inserted in the same transaction, so a job is
        never observed as succeeded without its media. Raises
        :class:`ConcurrentUpdateError` when another writer got there first.
        """
        now = datetime.utcnow()
        values: dict[str, Any] = {
            "status": transition.status.value,
            "output_json": json.dumps(transition.output) if transition.output is not None else None,
            "error": transition.error,
            "metrics_json": json.dumps(transition.metrics.to_dict()) if transition.metrics else None,
            "started_at": transition.started_at,
            "completed_at": transition.completed_at,
            "duration_seconds": transition.duration_seconds,
            "version": expected_version + 1,
            "updated_at": now,
        }
        with self._session_factory() as session, handle_sqlalchemy_errors(entity="generation_job"):
            result = session.execute(
                update(GenerationJobModel)
                .where(
                    GenerationJobModel.id == job_id,
                    GenerationJobModel.version == expected_version,
                )
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                session.rollback()
                raise ConcurrentUpdateError(
                    f"generation_job '{job_id}' changed since version {expected_version}"
                )
            for descriptor in media:
                session.add(
                    MediaDescriptorModel(
                        id=uuid.uuid4().hex,
                        job_id=job_id,
                        ordinal=descriptor.ordinal,
                        url=descriptor.url,
                        kind=descriptor.kind.value,
                        format=descriptor.format,
                        name=descriptor.name,
                        created_at=now,
                    )
                )
            session.commit()

        job = self.get_job_by_id(job_id)
        if job is None:  # pragma: no cover - deleted between statements
            raise NotFoundError(f"generation_job '{job_id}' not found")
        return job

    def list_media(self, job_id: str) -> list[MediaDescriptor]:
        with self._session_factory() as session, handle_sqlalchemy_errors(entity="media_descriptor"):
            rows = (
                session.query(MediaDescriptorModel)
                .filter(MediaDescriptorModel.job_id == job_id)
                .order_by(MediaDescriptorModel.ordinal)
                .all()
            )
            return [self._media_to_domain(row) for row in rows]

    def list_jobs(
        self,
        *,
        statuses: Iterable[JobStatus] | None = None,
        model_identifier: str | None = None,
        limit: int = 100,
    ) -> Sequence[GenerationJob]:
        with self._session_factory() as session, handle_sqlalchemy_errors(entity="generation_job"):
            query = session.query(GenerationJobModel).options(selectinload(GenerationJobModel.media))
            if statuses is not None:
                query = query.filter(GenerationJobModel.status.in_([status.value for status in statuses]))
            if model_identifier:
                query = query.filter(GenerationJobModel.model_identifier == model_identifier)
            rows = query.order_by(GenerationJobModel.submitted_at.desc()).limit(limit).all()
            return [self._to_domain(row) for row in rows]

    def list_active_jobs(self, *, model_identifier: str | None = None, limit: int = 100) -> Sequence[GenerationJob]:
        active = [status for status in JobStatus if status not in TERMINAL_STATUSES]
        return self.list_jobs(statuses=active, model_identifier=model_identifier, limit=limit)

    def list_stale_jobs(self, before: datetime, *, limit: int = 100) -> Sequence[GenerationJob]:
        """Non-terminal jobs whose row has not changed since ``before``."""
        active = [status.value for status in JobStatus if status not in TERMINAL_STATUSES]
        with self._session_factory() as session, handle_sqlalchemy_errors(entity="generation_job"):
            rows = (
                session.query(GenerationJobModel)
                .filter(
                    GenerationJobModel.status.in_(active),
                    GenerationJobModel.updated_at < before,
                )
                .order_by(GenerationJobModel.updated_at)
                .limit(limit)
                .all()
            )
            return [self._to_domain(row, media=[]) for row in rows]

    @classmethod
    def _to_domain(
        cls, model: GenerationJobModel, media: list[MediaDescriptor] | None = None
    ) -> GenerationJob:
        metrics = None
        if model.metrics_json:
            metrics = JobMetrics.from_mapping(json.loads(model.metrics_json))
        return GenerationJob(
            id=model.id,
            external_id=model.external_id,
            model_identifier=model.model_identifier,
            status=JobStatus(model.status),
            user_id=model.user_id,
            input=json.loads(model.input_json or "{}"),
            output=json.loads(model.output_json) if model.output_json is not None else None,
            error=model.error,
            metrics=metrics,
            submitted_at=model.submitted_at,
            started_at=model.started_at,
            completed_at=model.completed_at,
            duration_seconds=model.duration_seconds,
            project_id=model.project_id,
            field_id=model.field_id,
            webhook_url=model.webhook_url,
            version=model.version,
            updated_at=model.updated_at,
            media=media if media is not None else [cls._media_to_domain(row) for row in model.media],
        )

    @staticmethod
    def _media_to_domain(model: MediaDescriptorModel) -> MediaDescriptor:
        try:
            kind = MediaKind(model.kind)
        except ValueError:
            kind = MediaKind.UNKNOWN
        return MediaDescriptor(
            id=model.id,
            job_id=model.job_id,
            ordinal=model.ordinal,
            url=model.url,
            kind=kind,
            format=model.format,
            name=model.name,
        )

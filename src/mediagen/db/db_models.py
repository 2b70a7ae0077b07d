"""SQLAlchemy ORM models."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import (
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    """Base declarative class."""


class ModelRouteModel(Base):
    __tablename__ = "model_route"

    identifier: Mapped[str] = mapped_column(String(128), primary_key=True)
    provider: Mapped[str] = mapped_column(String(32), nullable=False)
    model_type: Mapped[str] = mapped_column(String(16), nullable=False, default="image")
    display_name: Mapped[str] = mapped_column(String(128), nullable=False, default="")
    remote_model: Mapped[str | None] = mapped_column(String(256))
    remote_version: Mapped[str | None] = mapped_column(String(128))
    input_schema_json: Mapped[str] = mapped_column(Text, nullable=False, default="{}")
    supports_webhook: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    supports_cancel: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    webhook_events_json: Mapped[str] = mapped_column(Text, nullable=False, default="[]")
    is_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    cost_per_use: Mapped[float | None] = mapped_column(Float)
    avg_latency_seconds: Mapped[float | None] = mapped_column(Float)
    schema_synced_at: Mapped[datetime | None] = mapped_column(DateTime)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)

    jobs: Mapped[list["GenerationJobModel"]] = relationship(back_populates="route")


class GenerationJobModel(Base):
    __tablename__ = "generation_job"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    external_id: Mapped[str | None] = mapped_column(String(128), unique=True, index=True)
    model_identifier: Mapped[str] = mapped_column(
        String(128), ForeignKey("model_route.identifier"), nullable=False, index=True
    )
    input_json: Mapped[str] = mapped_column(Text, nullable=False, default="{}")
    status: Mapped[str] = mapped_column(String(16), nullable=False, index=True)
    output_json: Mapped[str | None] = mapped_column(Text)
    error: Mapped[str | None] = mapped_column(Text)
    metrics_json: Mapped[str | None] = mapped_column(Text)
    submitted_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    started_at: Mapped[datetime | None] = mapped_column(DateTime)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime)
    duration_seconds: Mapped[float | None] = mapped_column(Float)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    project_id: Mapped[str | None] = mapped_column(String(64))
    field_id: Mapped[str | None] = mapped_column(String(64))
    webhook_url: Mapped[str | None] = mapped_column(String(512))
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)

    route: Mapped[ModelRouteModel] = relationship(back_populates="jobs")
    media: Mapped[list["MediaDescriptorModel"]] = relationship(
        back_populates="job",
        cascade="all, delete-orphan",
        order_by="MediaDescriptorModel.ordinal",
    )


class MediaDescriptorModel(Base):
    __tablename__ = "media_descriptor"
    __table_args__ = (UniqueConstraint("job_id", "ordinal", name="uq_media_descriptor_job_ordinal"),)

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    job_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("generation_job.id"), nullable=False, index=True
    )
    ordinal: Mapped[int] = mapped_column(Integer, nullable=False)
    url: Mapped[str] = mapped_column(String(2048), nullable=False)
    kind: Mapped[str] = mapped_column(String(16), nullable=False)
    format: Mapped[str] = mapped_column(String(16), nullable=False, default="unknown")
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)

    job: Mapped[GenerationJobModel] = relationship(back_populates="media")

"""Pydantic schemas for the model catalog API."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel

from .registry_models import ModelRoute


class ModelRouteResponse(BaseModel):
    identifier: str
    display_name: str
    provider: str
    model_type: str
    remote_model: str | None
    remote_version: str | None
    supports_webhook: bool
    supports_cancel: bool
    is_enabled: bool
    cost_per_use: float | None
    avg_latency_seconds: float | None
    schema_synced_at: datetime | None
    input_schema: dict[str, dict[str, Any]]

    @classmethod
    def from_domain(cls, route: ModelRoute) -> "ModelRouteResponse":
        return cls(
            identifier=route.identifier,
            display_name=route.display_name or route.identifier,
            provider=route.provider,
            model_type=route.model_type.value,
            remote_model=route.remote_model,
            remote_version=route.remote_version,
            supports_webhook=route.supports_webhook,
            supports_cancel=route.supports_cancel,
            is_enabled=route.is_enabled,
            cost_per_use=route.cost_per_use,
            avg_latency_seconds=route.avg_latency_seconds,
            schema_synced_at=route.schema_synced_at,
            input_schema={name: field.to_dict() for name, field in route.input_schema.items()},
        )


class ModelRouteListResponse(BaseModel):
    models: list[ModelRouteResponse]


class ModelToggleRequest(BaseModel):
    is_enabled: bool

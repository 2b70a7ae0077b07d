"""HTTP routes exposing the model catalog."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request

from ..api_errors import http_error
from ..exceptions import GenerationError, ModelNotFoundError
from .registry_schemas import ModelRouteListResponse, ModelRouteResponse, ModelToggleRequest
from .registry_service import ModelRegistry

router = APIRouter(prefix="/api/models", tags=["models"])
logger = logging.getLogger(__name__)


def get_model_registry(request: Request) -> ModelRegistry:
    try:
        return request.app.state.model_registry  # type: ignore[attr-defined]
    except AttributeError as exc:  # pragma: no cover - app misconfigured
        raise RuntimeError("ModelRegistry is not configured") from exc


@router.get("", response_model=ModelRouteListResponse)
def list_models(
    type: str | None = None,
    provider: str | None = None,
    search: str | None = None,
    include_disabled: bool = False,
    registry: ModelRegistry = Depends(get_model_registry),
) -> ModelRouteListResponse:
    routes = registry.list_routes(
        enabled_only=not include_disabled,
        model_type=type,
        provider=provider,
        search=search,
    )
    return ModelRouteListResponse(models=[ModelRouteResponse.from_domain(route) for route in routes])


@router.get("/capabilities")
def get_capabilities(registry: ModelRegistry = Depends(get_model_registry)) -> dict[str, list[str]]:
    return registry.capabilities()


# Identifiers look like "owner/name", hence the path converters.
@router.post("/{identifier:path}/sync", response_model=ModelRouteResponse)
async def sync_model_schema(
    identifier: str,
    registry: ModelRegistry = Depends(get_model_registry),
) -> ModelRouteResponse:
    try:
        route = await registry.refresh_schema(identifier)
    except GenerationError as exc:
        logger.warning(
            "models.sync.failed",
            extra={"model": identifier, "reason": exc.failure_reason},
        )
        raise http_error(exc) from exc
    return ModelRouteResponse.from_domain(route)


@router.patch("/{identifier:path}", response_model=ModelRouteResponse)
def toggle_model(
    identifier: str,
    payload: ModelToggleRequest,
    registry: ModelRegistry = Depends(get_model_registry),
) -> ModelRouteResponse:
    try:
        route = registry.set_enabled(identifier, payload.is_enabled)
    except GenerationError as exc:
        raise http_error(exc) from exc
    return ModelRouteResponse.from_domain(route)


@router.get("/{identifier:path}", response_model=ModelRouteResponse)
def get_model(
    identifier: str,
    registry: ModelRegistry = Depends(get_model_registry),
) -> ModelRouteResponse:
    route = registry.lookup(identifier)
    if route is None:
        raise http_error(ModelNotFoundError(f"Model '{identifier}' not found"))
    return ModelRouteResponse.from_domain(route)

"""Model registry: resolves model identifiers to provider routes."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import datetime

from ..exceptions import ModelDisabledError, ModelNotFoundError, NotFoundError, SchemaSyncError
from ..providers.providers_factory import AdapterDirectory
from .registry_models import ModelRoute
from .registry_repository import ModelRouteRepository

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class _CacheEntry:
    route: ModelRoute
    loaded_at: float


@dataclass(slots=True)
class ModelRegistry:
    """Resolve routes with a short-lived cache in front of the catalog."""

    repo: ModelRouteRepository
    adapters: AdapterDirectory
    cache_seconds: float = 300.0
    clock: Callable[[], float] = time.monotonic
    _cache: dict[str, _CacheEntry] = field(default_factory=dict)
    log: logging.Logger = field(default_factory=lambda: logger)

    def resolve(self, identifier: str) -> ModelRoute:
        """Return the route for ``identifier``.

        Raises :class:`ModelNotFoundError` for unknown identifiers and
        :class:`ModelDisabledError` for routes switched off by an operator.
        """
        route = self.lookup(identifier)
        if route is None:
            raise ModelNotFoundError(f"Model '{identifier}' not found")
        if not route.is_enabled:
            raise ModelDisabledError(f"Model '{identifier}' is disabled")
        return route

    def lookup(self, identifier: str) -> ModelRoute | None:
        """Cached route for ``identifier`` regardless of its enabled flag."""
        entry = self._cache.get(identifier)
        now = self.clock()
        if entry is not None and now - entry.loaded_at < self.cache_seconds:
            return entry.route

        route = self.repo.get_route_by_identifier(identifier)
        if route is None:
            self._cache.pop(identifier, None)
            return None
        self._cache[identifier] = _CacheEntry(route=route, loaded_at=now)
        return route

    async def refresh_schema(self, identifier: str) -> ModelRoute:
        """Re-fetch provider schema metadata and merge it into the stored route.

        Jobs already submitted keep the input they were validated with.
        """
        route = self.lookup(identifier)
        if route is None:
            raise ModelNotFoundError(f"Model '{identifier}' not found")

        adapter = self.adapters.get(route.provider)
        try:
            schema, version = await adapter.fetch_schema(route)
        except NotImplementedError as exc:
            raise SchemaSyncError(str(exc)) from exc

        updated = self.repo.update_schema(
            identifier,
            input_schema=schema,
            remote_version=version,
            synced_at=datetime.utcnow(),
        )
        self._cache[identifier] = _CacheEntry(route=updated, loaded_at=self.clock())
        self.log.info(
            "registry.schema.synced",
            extra={"model": identifier, "fields": len(schema), "version": version},
        )
        return updated

    async def refresh_all(self) -> list[str]:
        """Sync schemas of every enabled route; failures are logged and skipped."""
        synced: list[str] = []
        for route in self.repo.list_enabled_routes():
            try:
                await self.refresh_schema(route.identifier)
            except SchemaSyncError as exc:
                self.log.warning(
                    "registry.schema.sync_failed",
                    extra={"model": route.identifier, "error": str(exc)},
                )
                continue
            synced.append(route.identifier)
        return synced

    def list_routes(
        self,
        *,
        enabled_only: bool = True,
        model_type: str | None = None,
        provider: str | None = None,
        search: str | None = None,
    ) -> Sequence[ModelRoute]:
        return self.repo.list_routes(
            enabled_only=enabled_only,
            model_type=model_type,
            provider=provider,
            search=search,
        )

    def capabilities(self) -> dict[str, list[str]]:
        """Summarize providers and model types available in the catalog."""
        routes = self.repo.list_enabled_routes()
        return {
            "providers": sorted({route.provider for route in routes}),
            "model_types": sorted({route.model_type.value for route in routes}),
            "webhook_models": sorted(r.identifier for r in routes if r.supports_webhook),
            "cancelable_models": sorted(r.identifier for r in routes if r.supports_cancel),
        }

    def invalidate(self, identifier: str | None = None) -> None:
        if identifier is None:
            self._cache.clear()
        else:
            self._cache.pop(identifier, None)

    def set_enabled(self, identifier: str, enabled: bool) -> ModelRoute:
        """Switch a route on or off; disabled routes stop accepting new jobs."""
        try:
            route = self.repo.set_enabled(identifier, enabled)
        except NotFoundError as exc:
            raise ModelNotFoundError(f"Model '{identifier}' not found") from exc
        self.invalidate(identifier)
        self.log.info("registry.route.toggled", extra={"model": identifier, "enabled": enabled})
        return route

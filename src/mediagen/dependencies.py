"""Dependency wiring helpers."""

from dataclasses import dataclass

from fastapi import FastAPI

from .config import AppConfig
from .jobs.jobs_api import router as predictions_router
from .jobs.jobs_repository import GenerationJobRepository
from .jobs.jobs_service import GenerationService
from .jobs.lifecycle import JobLifecycleManager
from .pricing.cost import CostEstimator
from .providers.providers_base import ProviderAdapter
from .providers.providers_factory import AdapterDirectory
from .registry.registry_api import router as models_router
from .registry.registry_repository import ModelRouteRepository
from .registry.registry_service import ModelRegistry
from .webhooks.webhook_service import WebhookReceiver
from .webhooks.webhooks_api import router as webhooks_router

WEBHOOK_PROVIDERS = ("replicate",)


@dataclass(slots=True)
class Services:
    """Process-wide service instances, built once at startup."""

    adapters: AdapterDirectory
    registry: ModelRegistry
    lifecycle: JobLifecycleManager
    generation: GenerationService
    webhook_receivers: dict[str, WebhookReceiver]


def build_services(
    config: AppConfig,
    *,
    adapters: dict[str, ProviderAdapter] | None = None,
) -> Services:
    """Construct services from ``config``; ``adapters`` overrides providers by name."""
    adapter_directory = AdapterDirectory(config, adapters)
    registry = ModelRegistry(
        repo=ModelRouteRepository(config.session_factory),
        adapters=adapter_directory,
        cache_seconds=config.registry_cache_seconds,
    )
    lifecycle = JobLifecycleManager(repo=GenerationJobRepository(config.session_factory))
    generation = GenerationService(
        registry=registry,
        lifecycle=lifecycle,
        adapters=adapter_directory,
        cost_estimator=CostEstimator(),
        default_webhook_url=config.replicate.webhook_url,
        stale_after_seconds=config.stale_job_seconds,
    )
    webhook_receivers = {
        provider: WebhookReceiver(
            lifecycle=lifecycle,
            adapter=adapter_directory.get(provider),
            strict=config.strict_webhook_validation,
        )
        for provider in WEBHOOK_PROVIDERS
    }
    return Services(
        adapters=adapter_directory,
        registry=registry,
        lifecycle=lifecycle,
        generation=generation,
        webhook_receivers=webhook_receivers,
    )


def include_routers(
    app: FastAPI,
    config: AppConfig,
    *,
    adapters: dict[str, ProviderAdapter] | None = None,
) -> None:
    """Mount module routers and attach services."""
    services = build_services(config, adapters=adapters)

    app.state.config = config
    app.state.adapters = services.adapters
    app.state.model_registry = services.registry
    app.state.lifecycle = services.lifecycle
    app.state.generation_service = services.generation
    app.state.webhook_receivers = services.webhook_receivers

    app.include_router(predictions_router)
    app.include_router(webhooks_router)
    app.include_router(models_router)

    @app.get("/healthz", tags=["health"])
    def healthz() -> dict[str, str]:
        return {"status": "ok", "environment": config.environment}

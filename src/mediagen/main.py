"""FastAPI application entry point."""

import asyncio
import contextlib

from fastapi import FastAPI

from .config import AppConfig, load_config
from .dependencies import include_routers
from .lifecycle_tasks import run_periodic_reconciliation
from .logging import configure_logging
from .providers.providers_base import ProviderAdapter


def create_app(
    config: AppConfig | None = None,
    *,
    adapters: dict[str, ProviderAdapter] | None = None,
) -> FastAPI:
    """Build FastAPI instance with configured dependencies."""
    cfg = config or load_config()
    configure_logging(cfg.log_level, json_output=cfg.log_json)

    @contextlib.asynccontextmanager
    async def lifespan(app: FastAPI):
        if cfg.reconcile_interval_seconds <= 0:
            yield
            return
        shutdown_event = asyncio.Event()
        task = asyncio.create_task(
            run_periodic_reconciliation(
                service=app.state.generation_service,
                shutdown_event=shutdown_event,
                interval_seconds=cfg.reconcile_interval_seconds,
            )
        )
        try:
            yield
        finally:
            shutdown_event.set()
            await task

    app = FastAPI(title="mediagen", lifespan=lifespan)
    include_routers(app, cfg, adapters=adapters)
    return app

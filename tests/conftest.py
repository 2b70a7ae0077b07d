from __future__ import annotations

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from src.mediagen.config import AppConfig, ReplicateSettings
from src.mediagen.db.db_init import init_db
from src.mediagen.jobs.jobs_repository import GenerationJobRepository
from src.mediagen.jobs.jobs_service import GenerationService
from src.mediagen.jobs.lifecycle import JobLifecycleManager
from src.mediagen.providers.providers_factory import AdapterDirectory
from src.mediagen.registry.registry_repository import ModelRouteRepository
from src.mediagen.registry.registry_service import ModelRegistry
from tests.mocks.providers import WEBHOOK_SECRET, FakeReplicateAdapter

FLUX = "black-forest-labs/flux-dev"
ZEROSCOPE = "anotherjesse/zeroscope-v2-xl"


@pytest.fixture
def engine():
    # One shared connection so TestClient threads see the same in-memory database.
    engine = create_engine(
        "sqlite://",
        future=True,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    factory = sessionmaker(bind=engine, expire_on_commit=False)
    init_db(engine, factory)
    return factory


@pytest.fixture
def job_repo(session_factory) -> GenerationJobRepository:
    return GenerationJobRepository(session_factory)


@pytest.fixture
def route_repo(session_factory) -> ModelRouteRepository:
    return ModelRouteRepository(session_factory)


@pytest.fixture
def lifecycle(job_repo) -> JobLifecycleManager:
    return JobLifecycleManager(repo=job_repo)


@pytest.fixture
def fake_adapter() -> FakeReplicateAdapter:
    return FakeReplicateAdapter()


@pytest.fixture
def adapter_directory(fake_adapter) -> AdapterDirectory:
    return AdapterDirectory(None, {"replicate": fake_adapter})  # type: ignore[arg-type]


@pytest.fixture
def registry(route_repo, adapter_directory) -> ModelRegistry:
    return ModelRegistry(repo=route_repo, adapters=adapter_directory)


@pytest.fixture
def generation_service(registry, lifecycle, adapter_directory) -> GenerationService:
    return GenerationService(
        registry=registry,
        lifecycle=lifecycle,
        adapters=adapter_directory,
        default_webhook_url="https://app.test/api/webhooks/replicate",
    )


@pytest.fixture
def app_config(engine, session_factory):
    def build(*, strict: bool = True, environment: str = "test") -> AppConfig:
        return AppConfig(
            environment=environment,
            database_url="sqlite://",
            engine=engine,
            session_factory=session_factory,
            replicate=ReplicateSettings(
                api_token="test-token",
                base_url="https://api.replicate.test/v1",
                timeout_seconds=5,
                webhook_url="https://app.test/api/webhooks/replicate",
                webhook_secret=WEBHOOK_SECRET,
            ),
            strict_webhook_validation=strict,
            registry_cache_seconds=300,
            stale_job_seconds=900,
            reconcile_interval_seconds=0,
        )

    return build


@pytest.fixture
def make_client(app_config, fake_adapter):
    from fastapi.testclient import TestClient

    from src.mediagen.main import create_app

    def build(*, strict: bool = True) -> TestClient:
        app = create_app(app_config(strict=strict), adapters={"replicate": fake_adapter})
        return TestClient(app)

    return build

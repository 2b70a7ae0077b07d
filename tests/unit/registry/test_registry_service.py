from __future__ import annotations

import pytest

from src.mediagen.exceptions import ModelDisabledError, ModelNotFoundError, SchemaSyncError
from src.mediagen.registry.registry_models import FieldType, ModelRoute, ModelType, SchemaField
from src.mediagen.registry.registry_service import ModelRegistry
from tests.conftest import FLUX, ZEROSCOPE


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def cached_registry(route_repo, adapter_directory, clock) -> ModelRegistry:
    return ModelRegistry(repo=route_repo, adapters=adapter_directory, cache_seconds=60, clock=clock)


@pytest.mark.unit
def test_resolve_returns_seeded_route(registry):
    route = registry.resolve(FLUX)

    assert route.provider == "replicate"
    assert route.model_type is ModelType.IMAGE
    assert route.input_schema["prompt"].required


@pytest.mark.unit
def test_resolve_unknown_and_disabled(registry, route_repo):
    with pytest.raises(ModelNotFoundError):
        registry.resolve("nobody/nothing")

    route_repo.set_enabled(ZEROSCOPE, False)
    with pytest.raises(ModelDisabledError):
        registry.resolve(ZEROSCOPE)
    assert registry.lookup(ZEROSCOPE) is not None


@pytest.mark.unit
def test_cache_serves_until_expiry(cached_registry, route_repo, clock):
    assert cached_registry.resolve(FLUX).is_enabled

    route_repo.set_enabled(FLUX, False)
    assert cached_registry.resolve(FLUX).is_enabled

    clock.now += 61
    with pytest.raises(ModelDisabledError):
        cached_registry.resolve(FLUX)


@pytest.mark.unit
def test_set_enabled_invalidates_cache(cached_registry):
    cached_registry.resolve(FLUX)

    route = cached_registry.set_enabled(FLUX, False)

    assert not route.is_enabled
    with pytest.raises(ModelDisabledError):
        cached_registry.resolve(FLUX)
    with pytest.raises(ModelNotFoundError):
        cached_registry.set_enabled("nobody/nothing", True)


@pytest.mark.unit
def test_list_routes_filters(registry, route_repo):
    route_repo.set_enabled(ZEROSCOPE, False)

    enabled = [route.identifier for route in registry.list_routes()]
    every = [route.identifier for route in registry.list_routes(enabled_only=False)]
    videos = registry.list_routes(enabled_only=False, model_type="video")
    searched = registry.list_routes(enabled_only=False, search="ZEROSCOPE")

    assert ZEROSCOPE not in enabled and FLUX in enabled
    assert ZEROSCOPE in every
    assert [route.identifier for route in videos] == [ZEROSCOPE]
    assert [route.identifier for route in searched] == [ZEROSCOPE]


@pytest.mark.unit
def test_capabilities_summarize_enabled_routes(registry, route_repo):
    route_repo.upsert_route(
        ModelRoute(
            identifier="acme/tts",
            provider="replicate",
            model_type=ModelType.AUDIO,
            supports_cancel=False,
            supports_webhook=False,
        )
    )

    capabilities = registry.capabilities()

    assert capabilities["providers"] == ["replicate"]
    assert {"image", "video", "audio"} <= set(capabilities["model_types"])
    assert "acme/tts" not in capabilities["cancelable_models"]
    assert "acme/tts" not in capabilities["webhook_models"]
    assert FLUX in capabilities["cancelable_models"]


@pytest.mark.unit
@pytest.mark.asyncio
async def test_refresh_schema_merges_provider_metadata(registry, fake_adapter, monkeypatch):
    seen: list[str] = []

    async def fake_fetch(route):
        seen.append(route.identifier)
        return {"prompt": SchemaField(type=FieldType.STRING, required=True), "seed": SchemaField(type=FieldType.INTEGER)}, "v9"

    monkeypatch.setattr(fake_adapter, "fetch_schema", fake_fetch)
    registry.resolve(FLUX)

    updated = await registry.refresh_schema(FLUX)

    assert seen == [FLUX]
    assert updated.remote_version == "v9"
    assert set(updated.input_schema) == {"prompt", "seed"}
    assert updated.schema_synced_at is not None
    assert registry.resolve(FLUX).remote_version == "v9"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_refresh_all_skips_failures(registry, fake_adapter, monkeypatch):
    async def flaky_fetch(route):
        if route.identifier == ZEROSCOPE:
            raise SchemaSyncError("upstream schema missing")
        return {"prompt": SchemaField(required=True)}, None

    monkeypatch.setattr(fake_adapter, "fetch_schema", flaky_fetch)

    synced = await registry.refresh_all()

    assert FLUX in synced
    assert ZEROSCOPE not in synced
    with pytest.raises(ModelNotFoundError):
        await registry.refresh_schema("nobody/nothing")

from __future__ import annotations

import pytest

from src.mediagen.config import load_config
from src.mediagen.registry.registry_repository import ModelRouteRepository

ENV_KEYS = (
    "APP_ENV",
    "DATABASE_URL",
    "REPLICATE_API_TOKEN",
    "REPLICATE_WEBHOOK_URL",
    "REPLICATE_WEBHOOK_SECRET",
    "STRICT_WEBHOOK_VALIDATION",
    "RECONCILE_INTERVAL_SECONDS",
    "LOG_LEVEL",
    "LOG_JSON",
)


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    for key in ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv("DATABASE_URL", "sqlite://")
    return monkeypatch


@pytest.mark.unit
def test_defaults_seed_catalog_and_relax_webhooks_outside_production(clean_env):
    config = load_config()

    assert config.environment == "development"
    assert config.strict_webhook_validation is False
    assert config.replicate.webhook_url is None
    assert config.reconcile_interval_seconds == 0
    routes = ModelRouteRepository(config.session_factory).list_enabled_routes()
    assert routes


@pytest.mark.unit
def test_production_is_strict_unless_overridden(clean_env):
    clean_env.setenv("APP_ENV", "Production")
    assert load_config().strict_webhook_validation is True

    clean_env.setenv("STRICT_WEBHOOK_VALIDATION", "off")
    assert load_config().strict_webhook_validation is False


@pytest.mark.unit
def test_replicate_settings_from_env(clean_env):
    clean_env.setenv("REPLICATE_API_TOKEN", "r8-token")
    clean_env.setenv("REPLICATE_WEBHOOK_URL", "https://app.example/api/webhooks/replicate")
    clean_env.setenv("REPLICATE_WEBHOOK_SECRET", "whsec")
    clean_env.setenv("RECONCILE_INTERVAL_SECONDS", "30")

    config = load_config()

    assert config.replicate.api_token == "r8-token"
    assert config.replicate.webhook_url == "https://app.example/api/webhooks/replicate"
    assert config.replicate.webhook_secret == "whsec"
    assert config.reconcile_interval_seconds == 30


@pytest.mark.unit
def test_log_format_follows_environment(clean_env):
    clean_env.setenv("LOG_LEVEL", " debug ")
    development = load_config()

    clean_env.setenv("APP_ENV", "production")
    production = load_config()
    clean_env.setenv("LOG_JSON", "false")
    overridden = load_config()

    assert development.log_level == "DEBUG"
    assert development.log_json is False
    assert production.log_json is True
    assert overridden.log_json is False

"""Application configuration builder."""

from __future__ import annotations

import os
from dataclasses import dataclass

from dotenv import load_dotenv
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from .db.db_init import init_db

_TRUE_VALUES = {"1", "true", "yes", "on"}
DEFAULT_DATABASE_URL = "sqlite:///mediagen.db"


@dataclass(slots=True)
class ReplicateSettings:
    api_token: str
    base_url: str
    timeout_seconds: float
    webhook_url: str | None
    webhook_secret: str


@dataclass(slots=True)
class AppConfig:
    environment: str
    database_url: str
    engine: Engine
    session_factory: sessionmaker[Session]
    replicate: ReplicateSettings
    strict_webhook_validation: bool
    registry_cache_seconds: int
    stale_job_seconds: int
    reconcile_interval_seconds: int
    log_level: str = "INFO"
    log_json: bool = True

    @property
    def is_production(self) -> bool:
        return self.environment == "production"


def _env_flag(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in _TRUE_VALUES


def load_config() -> AppConfig:
    """Load configuration from environment; SQLite file database by default."""
    load_dotenv(".env", override=False)

    environment = os.getenv("APP_ENV", "development").strip().lower()

    replicate = ReplicateSettings(
        api_token=os.getenv("REPLICATE_API_TOKEN", ""),
        base_url=os.getenv("REPLICATE_BASE_URL", "https://api.replicate.com/v1"),
        timeout_seconds=float(os.getenv("REPLICATE_TIMEOUT", 30)),
        webhook_url=os.getenv("REPLICATE_WEBHOOK_URL") or None,
        webhook_secret=os.getenv("REPLICATE_WEBHOOK_SECRET", ""),
    )

    database_url = os.getenv("DATABASE_URL", DEFAULT_DATABASE_URL)
    engine = create_engine(database_url, future=True)
    session_factory: sessionmaker[Session] = sessionmaker(bind=engine, expire_on_commit=False)

    init_db(engine, session_factory)

    return AppConfig(
        environment=environment,
        database_url=database_url,
        engine=engine,
        session_factory=session_factory,
        replicate=replicate,
        strict_webhook_validation=_env_flag(
            "STRICT_WEBHOOK_VALIDATION", default=environment == "production"
        ),
        registry_cache_seconds=int(os.getenv("REGISTRY_CACHE_SECONDS", 300)),
        stale_job_seconds=int(os.getenv("STALE_JOB_SECONDS", 900)),
        reconcile_interval_seconds=int(os.getenv("RECONCILE_INTERVAL_SECONDS", 0)),
        log_level=os.getenv("LOG_LEVEL", "INFO").strip().upper(),
        log_json=_env_flag("LOG_JSON", default=environment == "production"),
    )

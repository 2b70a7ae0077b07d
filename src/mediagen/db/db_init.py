"""Database initialization helpers."""

from __future__ import annotations

import json
from datetime import datetime

from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from .db_models import Base, ModelRouteModel

DEFAULT_ROUTES = [
    {
        "identifier": "black-forest-labs/flux-dev",
        "display_name": "FLUX.1 [dev]",
        "provider": "replicate",
        "model_type": "image",
        "remote_model": "black-forest-labs/flux-dev",
        "remote_version": None,
        "cost_per_use": 0.055,
        "input_schema": {
            "prompt": {"type": "string", "required": True, "description": "Text description of the image to generate"},
            "aspect_ratio": {
                "type": "enum",
                "options": ["1:1", "16:9", "9:16", "4:3", "3:4", "2:3", "3:2"],
                "default": "1:1",
            },
            "num_outputs": {"type": "integer", "minimum": 1, "maximum": 4, "default": 1},
            "guidance": {"type": "number", "minimum": 1, "maximum": 10, "default": 3.5},
            "output_format": {"type": "enum", "options": ["webp", "png", "jpg"], "default": "webp"},
            "seed": {"type": "integer"},
        },
        "webhook_events": ["start", "completed"],
    },
    {
        "identifier": "anotherjesse/zeroscope-v2-xl",
        "display_name": "Zeroscope v2 XL",
        "provider": "replicate",
        "model_type": "video",
        "remote_model": "anotherjesse/zeroscope-v2-xl",
        "remote_version": "9f747673945c62801b13b84701c783929c0ee784e4748ec062204894dda1a351",
        "cost_per_use": 0.12,
        "input_schema": {
            "prompt": {"type": "string", "required": True},
            "num_frames": {"type": "integer", "minimum": 1, "maximum": 48, "default": 24},
            "fps": {"type": "integer", "minimum": 1, "maximum": 30, "default": 8},
        },
        "webhook_events": ["start", "completed"],
    },
]


def init_db(engine: Engine, session_factory: sessionmaker[Session]) -> None:
    """Create tables and seed default routes if the catalog is empty."""
    Base.metadata.create_all(engine)

    with session_factory() as session:
        _seed_routes(session)
        session.commit()


def _seed_routes(session: Session) -> None:
    if session.query(ModelRouteModel).count():
        return
    now = datetime.utcnow()
    for route in DEFAULT_ROUTES:
        session.add(
            ModelRouteModel(
                identifier=route["identifier"],
                display_name=route["display_name"],
                provider=route["provider"],
                model_type=route["model_type"],
                remote_model=route["remote_model"],
                remote_version=route["remote_version"],
                input_schema_json=json.dumps(route["input_schema"]),
                webhook_events_json=json.dumps(route["webhook_events"]),
                supports_webhook=True,
                supports_cancel=True,
                is_enabled=True,
                cost_per_use=route["cost_per_use"],
                created_at=now,
                updated_at=now,
            )
        )

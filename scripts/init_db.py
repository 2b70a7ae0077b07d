"""Create the mediagen tables and seed the default model catalog."""

from __future__ import annotations

from src.mediagen.config import load_config
from src.mediagen.registry.registry_repository import ModelRouteRepository


def main() -> int:
    config = load_config()
    routes = ModelRouteRepository(config.session_factory).list_routes()
    enabled = sum(1 for route in routes if route.is_enabled)
    database = config.engine.url.render_as_string(hide_password=True)
    print(f"Database initialized at {database}: {len(routes)} model routes, {enabled} enabled.")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())

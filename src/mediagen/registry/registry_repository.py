"""Model route catalog backed by SQLAlchemy."""

from __future__ import annotations

import json
from collections.abc import Callable, Sequence
from datetime import datetime

from sqlalchemy import or_
from sqlalchemy.orm import Session

from ..db.db_models import ModelRouteModel
from ..exceptions import ensure_found, handle_sqlalchemy_errors
from .input_schema import schema_from_json, schema_to_json
from .registry_models import InputSchema, ModelRoute, ModelType


class ModelRouteRepository:
    """Read and maintain the catalog of routable models."""

    def __init__(self, session_factory: Callable[[], Session]) -> None:
        self._session_factory = session_factory

    def get_route_by_identifier(self, identifier: str) -> ModelRoute | None:
        with self._session_factory() as session, handle_sqlalchemy_errors(entity="model_route"):
            model = session.get(ModelRouteModel, identifier)
            return self._to_domain(model) if model is not None else None

    def list_enabled_routes(self) -> Sequence[ModelRoute]:
        return self.list_routes(enabled_only=True)

    def list_routes(
        self,
        *,
        enabled_only: bool = False,
        model_type: str | None = None,
        provider: str | None = None,
        search: str | None = None,
    ) -> Sequence[ModelRoute]:
        with self._session_factory() as session, handle_sqlalchemy_errors(entity="model_route"):
            query = session.query(ModelRouteModel)
            if enabled_only:
                query = query.filter(ModelRouteModel.is_enabled.is_(True))
            if model_type:
                query = query.filter(ModelRouteModel.model_type == model_type)
            if provider:
                query = query.filter(ModelRouteModel.provider == provider)
            if search:
                pattern = f"%{search.lower()}%"
                query = query.filter(
                    or_(
                        ModelRouteModel.identifier.ilike(pattern),
                        ModelRouteModel.display_name.ilike(pattern),
                        ModelRouteModel.model_type.ilike(pattern),
                    )
                )
            rows = query.order_by(ModelRouteModel.identifier).all()
            return [self._to_domain(row) for row in rows]

    def upsert_route(self, route: ModelRoute) -> ModelRoute:
        now = datetime.utcnow()
        with self._session_factory() as session, handle_sqlalchemy_errors(entity="model_route"):
            model = session.get(ModelRouteModel, route.identifier)
            if model is None:
                model = ModelRouteModel(identifier=route.identifier, created_at=now)
                session.add(model)
            model.provider = route.provider
            model.model_type = route.model_type.value
            model.display_name = route.display_name or route.identifier
            model.remote_model = route.remote_model
            model.remote_version = route.remote_version
            model.input_schema_json = schema_to_json(route.input_schema)
            model.supports_webhook = route.supports_webhook
            model.supports_cancel = route.supports_cancel
            model.webhook_events_json = json.dumps(route.webhook_events)
            model.is_enabled = route.is_enabled
            model.cost_per_use = route.cost_per_use
            model.avg_latency_seconds = route.avg_latency_seconds
            model.schema_synced_at = route.schema_synced_at
            model.updated_at = now
            session.commit()
            return self._to_domain(model)

    def update_schema(
        self,
        identifier: str,
        *,
        input_schema: InputSchema,
        remote_version: str | None,
        synced_at: datetime,
    ) -> ModelRoute:
        """Merge refreshed provider metadata into an existing route."""
        with self._session_factory() as session, handle_sqlalchemy_errors(entity="model_route"):
            model = ensure_found(
                session.get(ModelRouteModel, identifier), entity="model_route", identifier=identifier
            )
            model.input_schema_json = schema_to_json(input_schema)
            if remote_version:
                model.remote_version = remote_version
            model.schema_synced_at = synced_at
            model.updated_at = synced_at
            session.commit()
            return self._to_domain(model)

    def set_enabled(self, identifier: str, enabled: bool) -> ModelRoute:
        with self._session_factory() as session, handle_sqlalchemy_errors(entity="model_route"):
            model = ensure_found(
                session.get(ModelRouteModel, identifier), entity="model_route", identifier=identifier
            )
            model.is_enabled = enabled
            model.updated_at = datetime.utcnow()
            session.commit()
            return self._to_domain(model)

    @staticmethod
    def _to_domain(model: ModelRouteModel) -> ModelRoute:
        try:
            model_type = ModelType(model.model_type)
        except ValueError:
            model_type = ModelType.UTILITY
        return ModelRoute(
            identifier=model.identifier,
            provider=model.provider,
            model_type=model_type,
            display_name=model.display_name,
            remote_model=model.remote_model,
            remote_version=model.remote_version,
            input_schema=schema_from_json(model.input_schema_json),
            supports_webhook=model.supports_webhook,
            supports_cancel=model.supports_cancel,
            webhook_events=json.loads(model.webhook_events_json or "[]"),
            is_enabled=model.is_enabled,
            cost_per_use=model.cost_per_use,
            avg_latency_seconds=model.avg_latency_seconds,
            schema_synced_at=model.schema_synced_at,
        )

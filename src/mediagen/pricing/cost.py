"""Pluggable cost estimation keyed by model route."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

from ..registry.registry_models import ModelRoute, ModelType

CostFunction = Callable[[ModelRoute, Mapping[str, Any]], "float | None"]


def catalog_cost(route: ModelRoute, input_payload: Mapping[str, Any]) -> float | None:
    """Report the catalog price hint, scaled by the number of requested images."""
    if route.cost_per_use is None:
        return None
    cost = route.cost_per_use
    outputs = input_payload.get("num_outputs")
    if route.model_type is ModelType.IMAGE and isinstance(outputs, int) and not isinstance(outputs, bool):
        cost *= max(outputs, 1)
    return round(cost, 5)


@dataclass(slots=True)
class CostEstimator:
    """Dispatch to a per-route cost function, falling back to ``default``."""

    estimators: dict[str, CostFunction] = field(default_factory=dict)
    default: CostFunction = catalog_cost

    def register(self, identifier: str, func: CostFunction) -> None:
        self.estimators[identifier] = func

    def estimate(self, route: ModelRoute, input_payload: Mapping[str, Any]) -> float | None:
        func = self.estimators.get(route.identifier, self.default)
        return func(route, input_payload)

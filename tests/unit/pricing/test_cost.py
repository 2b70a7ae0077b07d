from __future__ import annotations

import pytest

from src.mediagen.pricing.cost import CostEstimator, catalog_cost
from src.mediagen.registry.registry_models import ModelRoute, ModelType


def make_route(**overrides) -> ModelRoute:
    values = {"identifier": "acme/model", "provider": "replicate", "cost_per_use": 0.055}
    values.update(overrides)
    return ModelRoute(**values)


@pytest.mark.unit
def test_catalog_cost_scales_image_outputs():
    route = make_route(model_type=ModelType.IMAGE)

    assert catalog_cost(route, {"prompt": "p"}) == 0.055
    assert catalog_cost(route, {"num_outputs": 3}) == 0.165
    assert catalog_cost(route, {"num_outputs": 0}) == 0.055
    assert catalog_cost(route, {"num_outputs": True}) == 0.055


@pytest.mark.unit
def test_catalog_cost_ignores_outputs_for_other_types_and_missing_price():
    assert catalog_cost(make_route(model_type=ModelType.VIDEO, cost_per_use=0.12), {"num_outputs": 4}) == 0.12
    assert catalog_cost(make_route(cost_per_use=None), {"num_outputs": 2}) is None


@pytest.mark.unit
def test_registered_estimator_overrides_default():
    estimator = CostEstimator()
    estimator.register("acme/model", lambda route, payload: 1.5 * len(payload.get("prompt", "")))

    assert estimator.estimate(make_route(), {"prompt": "ab"}) == 3.0
    assert estimator.estimate(make_route(identifier="acme/other"), {}) == 0.055

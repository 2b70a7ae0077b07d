"""Deterministic provider adapter for contract and integration tests."""

from __future__ import annotations

from typing import Any, Mapping

from src.mediagen.providers.providers_base import CancelResult, ProviderStatus, SubmitResult
from src.mediagen.providers.providers_replicate import ReplicateAdapter
from src.mediagen.providers.webhook_signature import compute_signature
from src.mediagen.registry.input_schema import validate_input
from src.mediagen.registry.registry_models import ModelRoute

WEBHOOK_SECRET = "whsec-test"


class FakeReplicateAdapter(ReplicateAdapter):
    """Replicate adapter with the network replaced by in-memory state.

    Notification parsing, status mapping and signature checks are the real
    Replicate implementations.
    """

    def __init__(self, *, webhook_secret: str = WEBHOOK_SECRET) -> None:
        super().__init__(api_token="test-token", webhook_secret=webhook_secret)
        self.submitted: list[dict[str, Any]] = []
        self.status_calls: list[str] = []
        self.cancel_calls: list[str] = []
        self.remote: dict[str, dict[str, Any]] = {}
        self.cancel_results: dict[str, CancelResult | Exception] = {}
        self.submit_error: Exception | None = None
        self.status_error: Exception | None = None
        self.initial_status = "starting"

    async def submit(
        self,
        route: ModelRoute,
        input_payload: Mapping[str, Any],
        callback_url: str | None = None,
        *,
        stream: bool = False,
    ) -> SubmitResult:
        if self.submit_error is not None:
            raise self.submit_error
        sanitized = validate_input(route.input_schema, input_payload)
        external_id = f"pred-{len(self.submitted) + 1}"
        self.submitted.append(
            {
                "external_id": external_id,
                "model": route.identifier,
                "input": sanitized,
                "webhook": callback_url,
                "stream": stream,
            }
        )
        payload: dict[str, Any] = {"id": external_id, "status": self.initial_status}
        if stream:
            payload["urls"] = {"stream": f"https://stream.test/{external_id}"}
        self.remote[external_id] = payload
        return SubmitResult(external_id=external_id, status=self.parse_notification(payload))

    async def get_status(self, external_id: str) -> ProviderStatus:
        self.status_calls.append(external_id)
        if self.status_error is not None:
            raise self.status_error
        payload = self.remote.get(external_id, {"id": external_id, "status": "processing"})
        return self.parse_notification(payload)

    async def cancel(self, external_id: str) -> CancelResult:
        self.cancel_calls.append(external_id)
        result = self.cancel_results.get(external_id, CancelResult.OK)
        if isinstance(result, Exception):
            raise result
        if result is CancelResult.OK:
            self.remote[external_id] = {"id": external_id, "status": "canceled"}
        return result

    def set_remote(self, external_id: str, status: str, **fields: Any) -> dict[str, Any]:
        payload = {"id": external_id, "status": status, **fields}
        self.remote[external_id] = payload
        return payload


def sign(body: bytes, secret: str = WEBHOOK_SECRET) -> str:
    return f"sha256={compute_signature(secret, body)}"

"""Replicate provider adapter implementation."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Mapping

import httpx

from ..exceptions import (
    InvalidInputError,
    NotCancelableError,
    ProviderUnavailableError,
    SchemaSyncError,
)
from ..jobs.jobs_models import JobMetrics, JobStatus
from ..registry.input_schema import coerce_input, parse_openapi_schema, validate_input
from ..registry.registry_models import InputSchema, ModelRoute
from .providers_base import CancelResult, ProviderAdapter, ProviderStatus, SubmitResult
from .webhook_signature import verify_signature

logger = logging.getLogger(__name__)

STATUS_MAP = {
    "starting": JobStatus.STARTING,
    "processing": JobStatus.PROCESSING,
    "succeeded": JobStatus.SUCCEEDED,
    "failed": JobStatus.FAILED,
    "canceled": JobStatus.CANCELED,
    "cancelled": JobStatus.CANCELED,
}


@dataclass(slots=True)
class ReplicateAdapter(ProviderAdapter):
    """Call the Replicate predictions API."""

    api_token: str = ""
    base_url: str = "https://api.replicate.com/v1"
    timeout_seconds: float = 30.0
    webhook_secret: str = ""
    provider: str = "replicate"
    log: logging.Logger = field(default_factory=lambda: logger)

    async def submit(
        self,
        route: ModelRoute,
        input_payload: Mapping[str, Any],
        callback_url: str | None = None,
        *,
        stream: bool = False,
    ) -> SubmitResult:
        sanitized = validate_input(route.input_schema, coerce_input(route.input_schema, input_payload))
        body: dict[str, Any] = {"input": sanitized}

        if route.remote_version:
            url = self._url("/predictions")
            body["version"] = route.remote_version
        elif route.remote_model:
            url = self._url(f"/models/{route.remote_model}/predictions")
        else:
            raise InvalidInputError(
                f"Model '{route.identifier}' has neither a version nor a remote model configured"
            )

        if callback_url and route.supports_webhook:
            body["webhook"] = callback_url
            if route.webhook_events:
                body["webhook_events_filter"] = list(route.webhook_events)
        if stream:
            body["stream"] = True

        response = await self._post(url, json=body, action="create_prediction")
        status = self._parse_prediction(self._json(response, action="create_prediction"))
        self.log.info(
            "replicate.prediction.created",
            extra={
                "model": route.identifier,
                "prediction_id": status.external_id,
                "status": status.native_status,
                "webhook": bool(body.get("webhook")),
            },
        )
        return SubmitResult(external_id=status.external_id, status=status)

    async def get_status(self, external_id: str) -> ProviderStatus:
        response = await self._get(self._url(f"/predictions/{external_id}"), action="get_prediction")
        status = self._parse_prediction(self._json(response, action="get_prediction"))
        self.log.debug(
            "replicate.prediction.status",
            extra={
                "prediction_id": external_id,
                "status": status.native_status,
                "has_output": status.output is not None,
                "has_error": bool(status.error),
            },
        )
        return status

    async def cancel(self, external_id: str) -> CancelResult:
        # The cancel endpoint answers "canceled" whether or not this call did the canceling,
        # so the prior status decides ALREADY_TERMINAL.
        current = await self.get_status(external_id)
        self._ensure_cancelable(current)
        if current.status is JobStatus.CANCELED:
            return CancelResult.ALREADY_TERMINAL

        response = await self._post(
            self._url(f"/predictions/{external_id}/cancel"), json=None, action="cancel_prediction"
        )
        status = self._parse_prediction(self._json(response, action="cancel_prediction"))
        self._ensure_cancelable(status)
        self.log.info(
            "replicate.prediction.canceled",
            extra={"prediction_id": external_id, "previous_status": current.native_status},
        )
        return CancelResult.OK

    def validate_notification(self, signature_header: str | None, raw_body: bytes) -> bool:
        if not self.webhook_secret:
            self.log.warning("replicate.webhook.secret_missing")
            return False
        return verify_signature(self.webhook_secret, signature_header, raw_body)

    def map_status(self, native_status: str | None) -> JobStatus | None:
        if not native_status:
            return None
        return STATUS_MAP.get(native_status.strip().lower())

    def parse_notification(self, payload: Mapping[str, Any]) -> ProviderStatus:
        return self._parse_prediction(payload)

    async def fetch_schema(self, route: ModelRoute) -> tuple[InputSchema, str | None]:
        if not route.remote_model:
            raise SchemaSyncError(f"Schema sync not supported for model '{route.identifier}'")
        try:
            model_info = self._json(
                await self._get(self._url(f"/models/{route.remote_model}"), action="get_model"),
                action="get_model",
            )
            version = route.remote_version or (model_info.get("latest_version") or {}).get("id")
            if not version:
                raise SchemaSyncError(f"No version available for model '{route.identifier}'")
            version_info = self._json(
                await self._get(
                    self._url(f"/models/{route.remote_model}/versions/{version}"),
                    action="get_model_version",
                ),
                action="get_model_version",
            )
            schema = parse_openapi_schema(version_info.get("openapi_schema"))
        except (ProviderUnavailableError, InvalidInputError, ValueError, AttributeError) as exc:
            raise SchemaSyncError(f"Failed to fetch schema for '{route.identifier}': {exc}") from exc
        return schema, version

    async def health_check(self) -> bool:
        try:
            await self._get(self._url("/models"), action="health_check")
        except (ProviderUnavailableError, InvalidInputError):
            return False
        return True

    def _url(self, path: str) -> str:
        return f"{self.base_url.rstrip('/')}{path}"

    def _headers(self) -> dict[str, str]:
        if not self.api_token:
            raise ProviderUnavailableError("REPLICATE_API_TOKEN is not configured", provider=self.provider)
        return {
            "Authorization": f"Bearer {self.api_token}",
            "Content-Type": "application/json",
        }

    async def _post(self, url: str, *, json: dict[str, Any] | None, action: str) -> httpx.Response:
        headers = self._headers()
        try:
            async with httpx.AsyncClient(timeout=self.timeout_seconds) as client:
                response = await client.post(url, headers=headers, json=json)
        except httpx.HTTPError as exc:
            raise ProviderUnavailableError(
                f"Replicate {action} request failed: {exc}", provider=self.provider
            ) from exc
        return self._check_response(response, action=action)

    async def _get(self, url: str, *, action: str) -> httpx.Response:
        headers = self._headers()
        try:
            async with httpx.AsyncClient(timeout=self.timeout_seconds) as client:
                response = await client.get(url, headers=headers)
        except httpx.HTTPError as exc:
            raise ProviderUnavailableError(
                f"Replicate {action} request failed: {exc}", provider=self.provider
            ) from exc
        return self._check_response(response, action=action)

    def _check_response(self, response: httpx.Response, *, action: str) -> httpx.Response:
        code = response.status_code
        if code < 400:
            return response
        detail = _error_detail(response)
        if code in (400, 422):
            raise InvalidInputError(detail or f"Replicate rejected {action}")
        self.log.warning(
            "replicate.request.failed",
            extra={"action": action, "status_code": code, "detail": detail},
        )
        raise ProviderUnavailableError(
            f"Replicate {action} failed with status {code}: {detail}",
            provider=self.provider,
            status_code=code,
        )

    def _json(self, response: httpx.Response, *, action: str) -> Any:
        try:
            return response.json()
        except ValueError as exc:
            self.log.warning(
                "replicate.response.invalid_json",
                extra={"action": action, "status_code": response.status_code},
            )
            raise ProviderUnavailableError(
                f"Replicate {action} returned a body that is not valid JSON", provider=self.provider
            ) from exc

    @staticmethod
    def _ensure_cancelable(status: ProviderStatus) -> None:
        if status.status in (JobStatus.SUCCEEDED, JobStatus.FAILED):
            raise NotCancelableError(
                f"Prediction '{status.external_id}' already finished with status '{status.native_status}'"
            )

    def _parse_prediction(self, payload: Mapping[str, Any]) -> ProviderStatus:
        if not isinstance(payload, Mapping):
            raise ProviderUnavailableError("Replicate response is not a prediction object", provider=self.provider)
        prediction_id = payload.get("id")
        if not prediction_id:
            raise ProviderUnavailableError("Replicate response is missing prediction id", provider=self.provider)
        native = str(payload.get("status") or "")
        logs = payload.get("logs")
        urls = payload.get("urls") or {}
        return ProviderStatus(
            external_id=str(prediction_id),
            status=self.map_status(native),
            native_status=native,
            output=payload.get("output"),
            error=_stringify_error(payload.get("error")),
            metrics=JobMetrics.from_mapping(payload.get("metrics")),
            logs=logs if isinstance(logs, str) else None,
            created_at=_parse_timestamp(payload.get("created_at")),
            started_at=_parse_timestamp(payload.get("started_at")),
            completed_at=_parse_timestamp(payload.get("completed_at")),
            stream_url=urls.get("stream") if isinstance(urls, Mapping) else None,
        )


def _error_detail(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text
    if isinstance(body, Mapping):
        return str(body.get("detail") or body.get("error") or body.get("title") or body)
    return str(body)


def _stringify_error(value: Any) -> str | None:
    if value is None or value == "":
        return None
    return value if isinstance(value, str) else str(value)


def _parse_timestamp(value: Any) -> datetime | None:
    """Parse provider ISO timestamps into naive UTC datetimes."""
    if not isinstance(value, str) or not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed

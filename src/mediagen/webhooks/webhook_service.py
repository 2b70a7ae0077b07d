"""Webhook half of the reconciliation protocol."""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field

from ..exceptions import AppError, SignatureInvalidError, WebhookPayloadError
from ..jobs.lifecycle import JobLifecycleManager
from ..providers.providers_base import ProviderAdapter

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class WebhookAck:
    """Response for the provider. Anything but a bad signature or body is accepted."""

    accepted: bool
    outcome: str
    job_id: str | None = None
    prediction_id: str | None = None


@dataclass(slots=True)
class WebhookReceiver:
    """Validate a pushed notification and feed it to the lifecycle manager.

    With ``strict`` off (local development) a bad signature is logged and the
    notification is processed anyway.
    """

    lifecycle: JobLifecycleManager
    adapter: ProviderAdapter
    strict: bool = True
    log: logging.Logger = field(default_factory=lambda: logger)

    async def handle(self, signature_header: str | None, raw_body: bytes) -> WebhookAck:
        provider = self.adapter.provider
        # Signature covers the raw bytes; re-serialized JSON would not match.
        if not self.adapter.validate_notification(signature_header, raw_body):
            if self.strict:
                self.log.warning(
                    "webhooks.signature.invalid",
                    extra={"provider": provider, "has_signature": bool(signature_header)},
                )
                raise SignatureInvalidError("Invalid webhook signature")
            self.log.warning(
                "webhooks.signature.unverified",
                extra={"provider": provider, "has_signature": bool(signature_header)},
            )

        payload = self._decode(raw_body)
        status = self.adapter.parse_notification(payload)
        update = status.to_update(source="webhook")
        if update is None:
            self.log.info(
                "webhooks.status.unknown",
                extra={"provider": provider, "prediction_id": status.external_id, "native_status": status.native_status},
            )
            return WebhookAck(accepted=True, outcome="ignored", prediction_id=status.external_id)

        try:
            result = await self.lifecycle.apply_status(update, external_id=status.external_id)
        except AppError:
            # Provider retries non-2xx responses; the poller will repair this job.
            self.log.exception(
                "webhooks.apply.failed",
                extra={"provider": provider, "prediction_id": status.external_id},
            )
            return WebhookAck(accepted=True, outcome="error", prediction_id=status.external_id)

        self.log.info(
            "webhooks.processed",
            extra={
                "provider": provider,
                "prediction_id": status.external_id,
                "status": update.status.value,
                "outcome": result.outcome.value,
            },
        )
        return WebhookAck(
            accepted=True,
            outcome=result.outcome.value,
            job_id=result.job.id if result.job else None,
            prediction_id=status.external_id,
        )

    @staticmethod
    def _decode(raw_body: bytes) -> Mapping:
        try:
            payload = json.loads(raw_body)
        except (UnicodeDecodeError, ValueError) as exc:
            raise WebhookPayloadError("Webhook body is not valid JSON") from exc
        if not isinstance(payload, Mapping) or not payload.get("id"):
            raise WebhookPayloadError("Webhook body must be an object with a prediction id")
        return payload

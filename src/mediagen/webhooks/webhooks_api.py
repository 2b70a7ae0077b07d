"""HTTP route receiving provider notifications."""

from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException, Request, status

from ..api_errors import http_error
from ..exceptions import SignatureInvalidError, WebhookPayloadError
from .webhook_service import WebhookReceiver

router = APIRouter(prefix="/api/webhooks", tags=["webhooks"])
logger = logging.getLogger(__name__)

SIGNATURE_HEADERS = ("webhook-signature", "x-signature")


def get_webhook_receiver(request: Request, provider: str) -> WebhookReceiver:
    receivers: dict[str, WebhookReceiver] = getattr(request.app.state, "webhook_receivers", {})
    receiver = receivers.get(provider.lower())
    if receiver is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"status": "error", "failure_reason": "unknown_provider", "provider": provider},
        )
    return receiver


@router.post("/{provider}")
async def receive_webhook(provider: str, request: Request) -> dict[str, object]:
    """Acknowledge a provider notification.

    Replies 2xx for known and unknown jobs alike so the provider stops
    retrying; only a rejected signature (strict mode) or an undecodable body
    are refused.
    """
    receiver = get_webhook_receiver(request, provider)
    raw_body = await request.body()
    signature = next(
        (request.headers[name] for name in SIGNATURE_HEADERS if name in request.headers),
        None,
    )
    try:
        ack = await receiver.handle(signature, raw_body)
    except (SignatureInvalidError, WebhookPayloadError) as exc:
        raise http_error(exc) from exc

    return {
        "status": "ok",
        "accepted": ack.accepted,
        "outcome": ack.outcome,
        "job_id": ack.job_id,
        "prediction_id": ack.prediction_id,
    }

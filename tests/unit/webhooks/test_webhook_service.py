from __future__ import annotations

import json

import pytest

from src.mediagen.exceptions import ConcurrentUpdateError, SignatureInvalidError, WebhookPayloadError
from src.mediagen.jobs.jobs_models import JobStatus
from src.mediagen.jobs.lifecycle import JobLifecycleManager
from src.mediagen.webhooks.webhook_service import WebhookReceiver
from tests.conftest import FLUX
from tests.mocks.database import FlakySessionFactory
from tests.mocks.providers import sign


@pytest.fixture
def receiver(lifecycle, fake_adapter) -> WebhookReceiver:
    return WebhookReceiver(lifecycle=lifecycle, adapter=fake_adapter)


@pytest.fixture
def bound_job(lifecycle):
    job = lifecycle.create_job(model_identifier=FLUX, input_payload={"prompt": "a cat"}, user_id="user-1")
    return lifecycle.attach_external_id(job.id, "pred-42")


def body_for(**payload) -> bytes:
    return json.dumps(payload).encode("utf-8")


@pytest.mark.unit
@pytest.mark.asyncio
async def test_signed_success_is_applied_with_media(receiver, bound_job, job_repo):
    body = body_for(id="pred-42", status="succeeded", output=["https://x/a.png", "https://x/b.png"])

    ack = await receiver.handle(sign(body), body)

    assert ack.accepted
    assert ack.outcome == "applied"
    assert ack.job_id == bound_job.id
    stored = job_repo.get_job_by_id(bound_job.id)
    assert stored.status is JobStatus.SUCCEEDED
    assert [media.url for media in stored.media] == ["https://x/a.png", "https://x/b.png"]


@pytest.mark.unit
@pytest.mark.asyncio
async def test_redelivery_is_duplicate(receiver, bound_job, job_repo):
    body = body_for(id="pred-42", status="succeeded", output="https://x/a.png")

    await receiver.handle(sign(body), body)
    ack = await receiver.handle(sign(body), body)

    assert ack.outcome == "duplicate"
    assert len(job_repo.list_media(bound_job.id)) == 1


@pytest.mark.unit
@pytest.mark.asyncio
async def test_invalid_signature_strict_changes_nothing(receiver, bound_job, job_repo):
    body = body_for(id="pred-42", status="failed", error="boom")

    with pytest.raises(SignatureInvalidError):
        await receiver.handle(sign(body, "wrong-secret"), body)
    with pytest.raises(SignatureInvalidError):
        await receiver.handle(None, body)

    assert job_repo.get_job_by_id(bound_job.id).status is JobStatus.PENDING


@pytest.mark.unit
@pytest.mark.asyncio
async def test_lenient_mode_processes_unsigned_notifications(lifecycle, fake_adapter, bound_job, caplog):
    receiver = WebhookReceiver(lifecycle=lifecycle, adapter=fake_adapter, strict=False)
    body = body_for(id="pred-42", status="processing")

    with caplog.at_level("WARNING"):
        ack = await receiver.handle("sha256=deadbeef", body)

    assert ack.outcome == "applied"
    assert any(record.getMessage() == "webhooks.signature.unverified" for record in caplog.records)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_unknown_prediction_is_acknowledged(receiver, job_repo):
    body = body_for(id="pred-unknown", status="succeeded", output="https://x/a.png")

    ack = await receiver.handle(sign(body), body)

    assert ack.accepted
    assert ack.outcome == "not_found"
    assert ack.job_id is None
    assert job_repo.list_jobs() == []


@pytest.mark.unit
@pytest.mark.asyncio
async def test_unmapped_status_is_ignored(receiver, bound_job, job_repo):
    body = body_for(id="pred-42", status="queued")

    ack = await receiver.handle(sign(body), body)

    assert ack.outcome == "ignored"
    assert job_repo.get_job_by_id(bound_job.id).version == bound_job.version


@pytest.mark.unit
@pytest.mark.asyncio
@pytest.mark.parametrize("body", [b"not json", b"[1, 2]", b'{"status": "succeeded"}', b"\xff\xfe"])
async def test_undecodable_body_is_rejected(receiver, body):
    with pytest.raises(WebhookPayloadError):
        await receiver.handle(sign(body), body)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_lifecycle_failure_is_acknowledged(receiver, bound_job, lifecycle, monkeypatch):
    async def exhausted(self, update, **kwargs):
        raise ConcurrentUpdateError("kept changing")

    monkeypatch.setattr(JobLifecycleManager, "apply_status", exhausted)
    body = body_for(id="pred-42", status="processing")

    ack = await receiver.handle(sign(body), body)

    assert ack.accepted
    assert ack.outcome == "error"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_database_failure_during_lookup_is_acknowledged(receiver, bound_job, job_repo, monkeypatch):
    flaky = FlakySessionFactory(job_repo._session_factory)
    monkeypatch.setattr(job_repo, "_session_factory", flaky)
    flaky.arm()
    body = body_for(id="pred-42", status="succeeded", output="https://x/a.png")

    ack = await receiver.handle(sign(body), body)

    assert ack.accepted
    assert ack.outcome == "error"
    assert ack.prediction_id == "pred-42"
    # The retried delivery lands once the database is back.
    ack = await receiver.handle(sign(body), body)
    assert ack.outcome == "applied"
    assert job_repo.get_job_by_id(bound_job.id).status is JobStatus.SUCCEEDED

from __future__ import annotations

from datetime import datetime, timedelta

import pytest

from src.mediagen.exceptions import (
    InvalidInputError,
    JobNotFoundError,
    ModelDisabledError,
    ModelNotFoundError,
    NotCancelableError,
    ProviderUnavailableError,
)
from src.mediagen.jobs.jobs_models import JobStatus
from src.mediagen.providers.providers_base import CancelResult
from tests.conftest import FLUX
from tests.mocks.database import FlakySessionFactory


async def submit(service, **overrides):
    params = {
        "model_identifier": FLUX,
        "input_payload": {"prompt": "a red bicycle", "num_outputs": 2},
        "user_id": "user-1",
    }
    params.update(overrides)
    return await service.submit(**params)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_submit_creates_job_and_attaches_prediction(generation_service, fake_adapter, job_repo):
    result = await submit(generation_service, project_id="proj-1")

    job = result.job
    assert job.external_id == "pred-1"
    assert job.status is JobStatus.STARTING
    assert job.project_id == "proj-1"
    assert job.webhook_url == "https://app.test/api/webhooks/replicate"
    assert result.estimated_cost == pytest.approx(0.11)
    assert fake_adapter.submitted[0]["webhook"] == "https://app.test/api/webhooks/replicate"
    assert job_repo.get_job_by_external_id("pred-1").id == job.id


@pytest.mark.unit
@pytest.mark.asyncio
async def test_submit_passes_stream_flag_and_returns_stream_url(generation_service, fake_adapter):
    result = await submit(generation_service, stream=True, webhook_url="https://caller.test/hook")

    assert result.stream_url == "https://stream.test/pred-1"
    assert fake_adapter.submitted[0]["stream"] is True
    assert fake_adapter.submitted[0]["webhook"] == "https://caller.test/hook"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_unknown_model_creates_no_job(generation_service, job_repo, fake_adapter):
    with pytest.raises(ModelNotFoundError):
        await submit(generation_service, model_identifier="nobody/nothing")

    assert job_repo.list_jobs() == []
    assert fake_adapter.submitted == []


@pytest.mark.unit
@pytest.mark.asyncio
async def test_disabled_model_is_rejected(generation_service, registry, job_repo):
    registry.set_enabled(FLUX, False)

    with pytest.raises(ModelDisabledError):
        await submit(generation_service)
    assert job_repo.list_jobs() == []


@pytest.mark.unit
@pytest.mark.asyncio
async def test_provider_failure_marks_job_failed_and_propagates(generation_service, fake_adapter, job_repo):
    fake_adapter.submit_error = ProviderUnavailableError("replicate down", provider="replicate")

    with pytest.raises(ProviderUnavailableError):
        await submit(generation_service)

    [job] = job_repo.list_jobs()
    assert job.status is JobStatus.FAILED
    assert job.error == "replicate down"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_invalid_input_is_surfaced(generation_service, job_repo):
    with pytest.raises(InvalidInputError) as excinfo:
        await submit(generation_service, input_payload={"num_outputs": 9})

    fields = {error["field"] for error in excinfo.value.errors}
    assert {"prompt", "num_outputs"} <= fields
    [job] = job_repo.list_jobs()
    assert job.status is JobStatus.FAILED


@pytest.mark.unit
@pytest.mark.asyncio
async def test_check_status_polls_until_terminal(generation_service, fake_adapter):
    job = (await submit(generation_service)).job
    fake_adapter.set_remote(
        "pred-1",
        "succeeded",
        output=["https://cdn.test/1.webp", "https://cdn.test/2.webp"],
        metrics={"predict_time": 3.2},
    )

    polled = await generation_service.check_status(job.id)
    again = await generation_service.check_status("pred-1")

    assert polled.status is JobStatus.SUCCEEDED
    assert [media.format for media in polled.media] == ["webp", "webp"]
    assert polled.duration_seconds == pytest.approx(3.2)
    assert again.id == job.id
    # Terminal jobs are served from storage.
    assert fake_adapter.status_calls == ["pred-1"]


@pytest.mark.unit
@pytest.mark.asyncio
async def test_check_status_absorbs_provider_errors(generation_service, fake_adapter):
    job = (await submit(generation_service)).job
    fake_adapter.status_error = ProviderUnavailableError("timeout")

    polled = await generation_service.check_status(job.id)

    assert polled.status is JobStatus.STARTING


@pytest.mark.unit
@pytest.mark.asyncio
async def test_check_status_unknown_job(generation_service):
    with pytest.raises(JobNotFoundError):
        await generation_service.check_status("does-not-exist")


@pytest.mark.unit
@pytest.mark.asyncio
async def test_cancel_records_canceled(generation_service, fake_adapter):
    job = (await submit(generation_service)).job

    outcome = await generation_service.cancel(job.id)

    assert outcome.canceled is True
    assert outcome.job.status is JobStatus.CANCELED
    assert outcome.job.error == "Prediction was canceled"
    assert fake_adapter.cancel_calls == ["pred-1"]


@pytest.mark.unit
@pytest.mark.asyncio
async def test_cancel_on_succeeded_job_is_rejected_and_state_kept(generation_service, fake_adapter, job_repo):
    job = (await submit(generation_service)).job
    fake_adapter.set_remote("pred-1", "succeeded", output="https://cdn.test/x.png")
    await generation_service.check_status(job.id)
    before = job_repo.get_job_by_id(job.id)

    with pytest.raises(NotCancelableError):
        await generation_service.cancel(job.id)

    after = job_repo.get_job_by_id(job.id)
    assert after.status is JobStatus.SUCCEEDED
    assert after.version == before.version
    assert fake_adapter.cancel_calls == []


@pytest.mark.unit
@pytest.mark.asyncio
async def test_cancel_rejected_by_provider_leaves_state(generation_service, fake_adapter, job_repo):
    job = (await submit(generation_service)).job
    fake_adapter.cancel_results["pred-1"] = NotCancelableError("already succeeded")

    with pytest.raises(NotCancelableError):
        await generation_service.cancel(job.id)

    assert job_repo.get_job_by_id(job.id).status is JobStatus.STARTING


@pytest.mark.unit
@pytest.mark.asyncio
async def test_cancel_already_terminal_remote_is_noop(generation_service, fake_adapter, job_repo):
    job = (await submit(generation_service)).job
    fake_adapter.cancel_results["pred-1"] = CancelResult.ALREADY_TERMINAL

    outcome = await generation_service.cancel(job.id)

    assert outcome.canceled is False
    assert job_repo.get_job_by_id(job.id).status is JobStatus.STARTING


@pytest.mark.unit
@pytest.mark.asyncio
async def test_refresh_pending_reconciles_every_unresolved_job(generation_service, fake_adapter):
    first = (await submit(generation_service)).job
    second = (await submit(generation_service)).job
    fake_adapter.set_remote(first.external_id, "failed", error="NSFW content detected")
    fake_adapter.set_remote(second.external_id, "processing")

    report = await generation_service.refresh_pending()

    assert report.checked == 2
    assert report.updated == 2
    assert report.errors == 0
    assert report.outcomes == {"applied": 2}
    assert generation_service.get_job(first.id).error == "NSFW content detected"
    assert generation_service.get_job(second.id).status is JobStatus.PROCESSING


@pytest.mark.unit
@pytest.mark.asyncio
async def test_refresh_pending_counts_poll_errors(generation_service, fake_adapter):
    await submit(generation_service)
    fake_adapter.status_error = ProviderUnavailableError("down")

    report = await generation_service.refresh_pending()

    assert report.checked == 1
    assert report.errors == 1
    assert report.updated == 0


@pytest.mark.unit
@pytest.mark.asyncio
async def test_refresh_pending_survives_database_failure(generation_service, fake_adapter, job_repo, monkeypatch):
    first = (await submit(generation_service)).job
    second = (await submit(generation_service)).job
    fake_adapter.set_remote(first.external_id, "succeeded", output="https://x/a.png")
    fake_adapter.set_remote(second.external_id, "succeeded", output="https://x/b.png")
    flaky = FlakySessionFactory(job_repo._session_factory)
    monkeypatch.setattr(job_repo, "_session_factory", flaky)
    real_get_status = fake_adapter.get_status

    async def get_status_then_lock(external_id):
        status = await real_get_status(external_id)
        if external_id == first.external_id:
            flaky.arm()
        return status

    monkeypatch.setattr(fake_adapter, "get_status", get_status_then_lock)

    report = await generation_service.refresh_pending()

    assert report.checked == 2
    assert report.errors == 1
    assert report.outcomes == {"applied": 1}
    assert job_repo.get_job_by_id(first.id).status is JobStatus.STARTING
    assert job_repo.get_job_by_id(second.id).status is JobStatus.SUCCEEDED


@pytest.mark.unit
@pytest.mark.asyncio
async def test_find_stale_jobs(generation_service):
    job = (await submit(generation_service)).job

    assert generation_service.find_stale_jobs() == []
    later = datetime.utcnow() + timedelta(seconds=generation_service.stale_after_seconds + 1)
    assert [stale.id for stale in generation_service.find_stale_jobs(now=later)] == [job.id]

"""Tests for durable job storage."""

from datetime import timedelta

import pytest

from optimized_versions.core.errors import JobConflictError, JobNotFoundError
from optimized_versions.models.job import Job, TranscodeStatus, utcnow
from optimized_versions.models.output_file import OutputFile
from optimized_versions.repositories.job_repository import JobRepository
from optimized_versions.services.job_store import JobStore


def make_job(job_id: str, **fields) -> Job:
    values = {
        "source_item_id": "item-1",
        "source_path": "/media/in.mkv",
        "output_path": f"/out/item-1/{job_id}.mp4",
    }
    values.update(fields)
    return Job(job_id=job_id, **values)


async def test_create_and_get(store):
    created = await store.create(make_job("job-1", device_id="tv"))

    fetched = await store.get("job-1")
    assert fetched == created
    assert fetched.status == TranscodeStatus.PENDING
    assert fetched.device_id == "tv"


async def test_get_unknown(store):
    assert await store.get("missing") is None


async def test_create_conflict(store):
    await store.create(make_job("job-1"))

    with pytest.raises(JobConflictError):
        await store.create(make_job("job-1"))


async def test_update_replaces_row(store):
    job = await store.create(make_job("job-1"))

    job.status = TranscodeStatus.PROCESSING
    job.progress = 12.5
    job.current_fps = 48.0
    await store.update(job)

    fetched = await store.get("job-1")
    assert fetched.status == TranscodeStatus.PROCESSING
    assert fetched.progress == 12.5
    assert fetched.current_fps == 48.0


async def test_update_missing_row_never_upserts(store):
    with pytest.raises(JobNotFoundError):
        await store.update(make_job("ghost"))

    assert await store.get("ghost") is None


async def test_returned_jobs_are_copies(store):
    await store.create(make_job("job-1"))

    first = await store.get("job-1")
    first.status = TranscodeStatus.FAILED

    assert (await store.get("job-1")).status == TranscodeStatus.PENDING


async def test_list_ordered_and_filtered(store):
    now = utcnow()
    await store.create(make_job("b", device_id="tv", created_at=now))
    await store.create(make_job("a", device_id="tv", created_at=now))
    await store.create(make_job("c", device_id="phone", created_at=now - timedelta(minutes=1)))

    assert [j.job_id for j in await store.list_jobs()] == ["c", "a", "b"]
    assert [j.job_id for j in await store.list_jobs("tv")] == ["a", "b"]
    assert await store.list_jobs("watch") == []


async def test_list_active(store):
    await store.create(make_job("pending"))
    await store.create(make_job("processing", status=TranscodeStatus.PROCESSING))
    await store.create(make_job("done", status=TranscodeStatus.COMPLETED))
    await store.create(make_job("canceled", status=TranscodeStatus.CANCELED))

    active = {j.job_id for j in await store.list_active()}
    assert active == {"pending", "processing"}


async def test_output_files(store):
    await store.create(make_job("job-1"))
    await store.create_output_file(
        OutputFile(
            id="file-1",
            source_item_id="item-1",
            job_id="job-1",
            file_path="/out/item-1/job-1.mp4",
            profile_name="default",
            file_size=1024,
        )
    )
    await store.create_output_file(
        OutputFile(id="file-2", source_item_id="item-2", file_path="/out/x.mp4", file_size=1)
    )

    files = await store.list_output_files("item-1")
    assert [f.id for f in files] == ["file-1"]
    assert files[0].job_id == "job-1"
    assert files[0].file_size == 1024
    assert len(await store.list_output_files()) == 2


async def test_clear_all(store):
    await store.create(make_job("job-1"))
    await store.get("job-1")
    await store.create_output_file(
        OutputFile(id="file-1", source_item_id="item-1", job_id="job-1", file_path="/x", file_size=1)
    )

    await store.clear_all()

    assert await store.get("job-1") is None
    assert await store.list_jobs() == []
    assert await store.list_output_files() == []


async def test_cache_disabled_reads_database(session_factory):
    store = JobStore(session_factory, cache_enabled=False)
    other = JobStore(session_factory, cache_enabled=False)

    await store.create(make_job("job-1"))
    job = await other.get("job-1")
    job.status = TranscodeStatus.PROCESSING
    await other.update(job)

    # No stale cached copy
    assert (await store.get("job-1")).status == TranscodeStatus.PROCESSING


async def test_state_survives_new_store(session_factory):
    await JobStore(session_factory).create(make_job("job-1"))

    reopened = JobStore(session_factory)
    assert (await reopened.get("job-1")).job_id == "job-1"


async def test_cache_is_bounded(session_factory):
    store = JobStore(session_factory, cache_size=5)

    for i in range(20):
        await store.create(make_job(f"job-{i}"))

    assert len(store._cache) == 5
    assert "job-0" not in store._cache
    # Evicted jobs are still read from the database
    assert (await store.get("job-0")).job_id == "job-0"
    assert len(store._cache) == 5


async def test_update_racing_clear_is_not_cached(store, monkeypatch):
    await store.create(make_job("job-1"))
    job = await store.get("job-1")
    original_replace = JobRepository.replace

    async def replace_then_clear(repo, updated):
        result = await original_replace(repo, updated)
        # A clear_all that finished while this update was in flight
        store._generation += 1
        store._cache.clear()
        return result

    monkeypatch.setattr(JobRepository, "replace", replace_then_clear)
    job.status = TranscodeStatus.PROCESSING
    await store.update(job)

    assert "job-1" not in store._cache


async def test_create_racing_clear_is_not_cached(store, monkeypatch):
    original_create = JobRepository.create_from_pydantic

    async def create_then_clear(repo, job):
        result = await original_create(repo, job)
        store._generation += 1
        return result

    monkeypatch.setattr(JobRepository, "create_from_pydantic", create_then_clear)
    await store.create(make_job("job-1"))

    assert "job-1" not in store._cache

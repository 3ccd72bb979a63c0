"""Tests for JobStore."""

from datetime import datetime, timezone

from app.jobs import JobStatus, JobStore
from app.schemas.responses import PollCycleResult


def _result():
    return PollCycleResult(started_at=datetime.now(timezone.utc), processed=2)


def test_job_lifecycle():
    store = JobStore()
    job = store.create_job()
    assert job.status == JobStatus.pending
    assert store.active_job() is job

    store.mark_running(job.job_id)
    assert store.get_job(job.job_id).status == JobStatus.running

    store.mark_completed(job.job_id, _result())
    done = store.get_job(job.job_id)
    assert done.status == JobStatus.completed
    assert done.result.processed == 2
    assert done.finished_at is not None
    assert store.active_job() is None


def test_failed_job_keeps_error():
    store = JobStore()
    job = store.create_job()
    store.mark_failed(job.job_id, "Some error")

    failed = store.get_job(job.job_id)
    assert failed.status == JobStatus.failed
    assert failed.error == "Some error"


def test_unknown_job_ids_are_ignored():
    store = JobStore()
    store.mark_running("missing")
    store.mark_completed("missing", _result())
    assert store.get_job("missing") is None


def test_evicts_oldest_finished_jobs():
    store = JobStore(max_jobs=2)
    first = store.create_job()
    store.mark_completed(first.job_id, _result())
    second = store.create_job()
    third = store.create_job()

    assert store.get_job(first.job_id) is None
    assert store.get_job(second.job_id) is not None
    assert store.get_job(third.job_id) is not None


def test_active_jobs_are_never_evicted():
    store = JobStore(max_jobs=1)
    first = store.create_job()
    second = store.create_job()

    assert store.get_job(first.job_id) is not None
    assert store.get_job(second.job_id) is not None

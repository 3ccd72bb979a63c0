import asyncio
import logging

from fastapi import APIRouter, HTTPException

from app.dependencies import JobStoreDep, SchedulerDep
from app.jobs import JobStore
from app.scheduler import PollingScheduler
from app.schemas.responses import (
    IntervalRequest,
    JobStatusResponse,
    JobSubmittedResponse,
    PollCycleResult,
    PollingStatus,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/polling")

_background_tasks: set[asyncio.Task] = set()


def _require(scheduler: PollingScheduler | None) -> PollingScheduler:
    if scheduler is None:
        raise HTTPException(status_code=503, detail="Call polling not configured")
    return scheduler


async def _run_poll(job_id: str, scheduler: PollingScheduler, store: JobStore) -> None:
    store.mark_running(job_id)
    try:
        result = await scheduler.trigger_poll()
        store.mark_completed(job_id, result)
    except Exception as exc:
        logger.exception("Poll job %s failed", job_id)
        store.mark_failed(job_id, str(exc))


@router.get("/status", response_model=PollingStatus)
async def polling_status(scheduler: SchedulerDep) -> PollingStatus:
    return _require(scheduler).get_status()


@router.post("/start", response_model=PollingStatus)
async def start_polling(scheduler: SchedulerDep) -> PollingStatus:
    scheduler = _require(scheduler)
    scheduler.start()
    return scheduler.get_status()


@router.post("/stop", response_model=PollingStatus)
async def stop_polling(scheduler: SchedulerDep) -> PollingStatus:
    scheduler = _require(scheduler)
    scheduler.stop()
    return scheduler.get_status()


@router.put("/interval", response_model=PollingStatus)
async def set_polling_interval(request: IntervalRequest, scheduler: SchedulerDep) -> PollingStatus:
    scheduler = _require(scheduler)
    if not scheduler.set_interval(request.interval_seconds):
        raise HTTPException(
            status_code=400,
            detail=f"Interval too short, minimum is {scheduler.min_interval:g} seconds",
        )
    return scheduler.get_status()


@router.post("/trigger", response_model=JobSubmittedResponse, status_code=202)
async def trigger_poll(scheduler: SchedulerDep, store: JobStoreDep) -> JobSubmittedResponse:
    scheduler = _require(scheduler)

    existing = store.active_job()
    if existing:
        raise HTTPException(
            status_code=409,
            detail=f"A poll job is already active (job_id={existing.job_id})",
        )

    job = store.create_job()
    task = asyncio.create_task(_run_poll(job.job_id, scheduler, store))
    _background_tasks.add(task)
    task.add_done_callback(_background_tasks.discard)
    return JobSubmittedResponse(
        job_id=job.job_id,
        status=job.status,
        message="Poll job submitted",
    )


@router.post("/trigger/sync", response_model=PollCycleResult)
async def trigger_poll_sync(scheduler: SchedulerDep) -> PollCycleResult:
    return await _require(scheduler).trigger_poll()


@router.get("/jobs/{job_id}", response_model=JobStatusResponse)
async def get_job_status(job_id: str, store: JobStoreDep) -> JobStatusResponse:
    job = store.get_job(job_id)
    if job is None:
        raise HTTPException(status_code=404, detail="Job not found")
    return JobStatusResponse(**job.model_dump())


@router.delete("/cache", response_model=PollingStatus)
async def clear_processed_cache(scheduler: SchedulerDep) -> PollingStatus:
    scheduler = _require(scheduler)
    scheduler.clear_processed_cache()
    return scheduler.get_status()

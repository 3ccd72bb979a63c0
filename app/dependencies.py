from typing import Annotated

from fastapi import Depends, Request

from app.jobs import JobStore
from app.scheduler import PollingScheduler


def get_scheduler(request: Request) -> PollingScheduler | None:
    return getattr(request.app.state, "scheduler", None)


def get_job_store(request: Request) -> JobStore:
    return request.app.state.job_store


SchedulerDep = Annotated[PollingScheduler | None, Depends(get_scheduler)]
JobStoreDep = Annotated[JobStore, Depends(get_job_store)]

import asyncio
import logging
from datetime import datetime

from app.schemas.responses import PollCycleResult, PollingStatus
from app.services.call_sync import CallSyncService

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL = 120.0  # seconds
MIN_INTERVAL = 30.0  # seconds


class PollingScheduler:
    """Runs ``CallSyncService.poll_completed_calls`` on a fixed interval.

    Cycles never overlap: a tick that fires while a cycle is still running is
    skipped, and a manual trigger waits for the running cycle to finish.
    """

    def __init__(
        self,
        sync: CallSyncService,
        interval: float = DEFAULT_INTERVAL,
        min_interval: float = MIN_INTERVAL,
    ) -> None:
        if interval < min_interval:
            fallback = max(DEFAULT_INTERVAL, min_interval)
            logger.warning(
                "Polling interval %.0fs too short, minimum is %.0fs; using %.0fs",
                interval,
                min_interval,
                fallback,
            )
            interval = fallback
        self._sync = sync
        self._interval = interval
        self._min_interval = min_interval
        self._loop_task: asyncio.Task | None = None
        self._cycle_tasks: set[asyncio.Task] = set()
        self._cycle_lock = asyncio.Lock()
        self._last_poll_time: datetime | None = None

    @property
    def is_running(self) -> bool:
        return self._loop_task is not None

    @property
    def interval(self) -> float:
        return self._interval

    @property
    def min_interval(self) -> float:
        return self._min_interval

    def start(self) -> None:
        if self.is_running:
            logger.info("Call polling already running")
            return
        logger.info("Starting call polling (interval: %.0fs)", self._interval)
        self._loop_task = asyncio.get_running_loop().create_task(self._run_loop())

    def stop(self) -> None:
        if self._loop_task is not None:
            self._loop_task.cancel()
            self._loop_task = None
            logger.info("Stopped call polling")

    def set_interval(self, seconds: float) -> bool:
        if seconds < self._min_interval:
            logger.warning(
                "Polling interval %.0fs too short, minimum is %.0fs",
                seconds,
                self._min_interval,
            )
            return False

        self._interval = seconds
        logger.info("Polling interval set to %.0fs", seconds)
        if self.is_running:
            self.stop()
            self.start()
        return True

    async def trigger_poll(self) -> PollCycleResult:
        logger.info("Manual poll triggered")
        async with self._cycle_lock:
            return await self._run_cycle()

    def get_status(self) -> PollingStatus:
        return PollingStatus(
            is_running=self.is_running,
            last_poll_time=self._last_poll_time,
            polling_interval_seconds=self._interval,
            processed_calls_count=len(self._sync.cache),
            cycle_in_progress=self._cycle_lock.locked(),
        )

    def clear_processed_cache(self) -> None:
        self._sync.cache.clear()
        logger.info("Cleared processed calls cache")

    async def shutdown(self) -> None:
        self.stop()
        if self._cycle_tasks:
            await asyncio.gather(*self._cycle_tasks, return_exceptions=True)

    async def _run_loop(self) -> None:
        while True:
            task = asyncio.create_task(self._tick())
            self._cycle_tasks.add(task)
            task.add_done_callback(self._cycle_tasks.discard)
            await asyncio.sleep(self._interval)

    async def _tick(self) -> None:
        if self._cycle_lock.locked():
            logger.warning("Previous polling cycle still running, skipping tick")
            return
        async with self._cycle_lock:
            await self._run_cycle()

    async def _run_cycle(self) -> PollCycleResult:
        result = await self._sync.poll_completed_calls()
        if result.error is None:
            self._last_poll_time = result.started_at
        return result

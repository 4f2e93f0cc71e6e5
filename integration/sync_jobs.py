"""
Integration Manager - Sync Job Processing.

============================================================
RESPONSIBILITY
============================================================
Runs data sync jobs in the background.

- SyncEngine: the thing that actually moves records
- SimulatedSyncEngine: stepped placeholder engine
- SyncJobProcessor: drives one job through its state machine
- SyncJobQueue: work queue + worker tasks; creating a job
  enqueues it and returns immediately

============================================================
STATE MACHINE
============================================================
pending -> running -> completed   (progress 100,
                                   records_processed = total)
                   -> failed      (error_message, completed_at)

Progress written while running never decreases. A running job
cannot be cancelled; one interrupted by shutdown is marked
failed with SHUTDOWN_MESSAGE before the worker exits.

============================================================
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Awaitable, Callable, List, Optional

from analytics.tracker import AnalyticsTracker, safe_track
from core.error_reporter import ErrorReporter, get_error_reporter
from core.exceptions import ErrorCategory, SyncJobError
from integration.models import DataSyncJob
from integration.repository import SyncJobRepository


logger = logging.getLogger(__name__)


ProgressCallback = Callable[[int, int], Awaitable[None]]

SHUTDOWN_MESSAGE = "Interrupted by shutdown"


# =============================================================
# ENGINES
# =============================================================


class SyncEngine(ABC):
    """Moves the records of one sync job."""

    @abstractmethod
    async def run(self, job: DataSyncJob, report_progress: ProgressCallback) -> None:
        """
        Process the job, calling report_progress(percentage,
        records_processed) as work advances. Raise to fail the job.
        """


class SimulatedSyncEngine(SyncEngine):
    """
    Stand-in engine: walks 0..100% in fixed steps.

    records_processed at each step is floor(total * pct / 100).
    """

    def __init__(
        self,
        step: int = 10,
        step_delay_seconds: float = 0.1,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._step = step
        self._step_delay_seconds = step_delay_seconds
        self._sleep = sleep

    async def run(self, job: DataSyncJob, report_progress: ProgressCallback) -> None:
        total = job.total_records
        percentages = list(range(0, 101, self._step))
        if percentages[-1] != 100:
            percentages.append(100)

        for i, pct in enumerate(percentages):
            await report_progress(pct, total * pct // 100)
            if i < len(percentages) - 1:
                await self._sleep(self._step_delay_seconds)


# =============================================================
# PROCESSOR
# =============================================================


class SyncJobProcessor:
    """Drives a single job from pending to a terminal state."""

    def __init__(
        self,
        jobs: SyncJobRepository,
        engine: SyncEngine,
        analytics: Optional[AnalyticsTracker] = None,
        error_reporter: Optional[ErrorReporter] = None,
    ) -> None:
        self._jobs = jobs
        self._engine = engine
        self._analytics = analytics
        self._error_reporter = error_reporter if error_reporter is not None else get_error_reporter()

    async def process(self, job_id: str) -> Optional[DataSyncJob]:
        """
        Run the job to completion or failure.

        Returns:
            The job in its terminal state, or None if it was not
            pending when picked up
        """
        try:
            job = await self._jobs.mark_running(job_id)
        except SyncJobError as e:
            logger.warning(f"Skipping sync job {job_id}: {e}")
            return None

        logger.info(f"Processing sync job {job_id} ({job.job_type.value}, {job.total_records} records)")
        last_pct = 0

        async def report_progress(percentage: int, records_processed: int) -> None:
            nonlocal last_pct
            pct = max(last_pct, min(100, percentage))
            last_pct = pct
            await self._jobs.update_progress(job_id, pct, records_processed)

        try:
            await self._engine.run(job, report_progress)
            completed = await self._jobs.mark_completed(job_id, job.total_records)
        except asyncio.CancelledError:
            await self._jobs.mark_failed(job_id, SHUTDOWN_MESSAGE)
            logger.warning(f"Sync job {job_id} interrupted by shutdown")
            raise
        except Exception as e:
            message = str(e) or type(e).__name__
            self._error_reporter.handle_error(
                e, category=ErrorCategory.API, metadata={"job_id": job_id}
            )
            await self._jobs.mark_failed(job_id, message)
            logger.error(f"Sync job {job_id} failed: {message}")
            return await self._jobs.get(job_id)

        logger.info(f"Sync job {job_id} completed: {completed.records_processed} records")
        await safe_track(self._analytics, "sync_job_completed", "integration", {
            "job_id": job_id,
            "job_type": job.job_type.value,
            "records_processed": completed.records_processed,
        })
        return completed


# =============================================================
# QUEUE
# =============================================================


class SyncJobQueue:
    """
    Work queue for sync jobs.

    Workers start on the first enqueue and keep pulling job ids
    until stop() is called.
    """

    def __init__(self, processor: SyncJobProcessor, worker_count: int = 2) -> None:
        self._processor = processor
        self._worker_count = worker_count
        self._queue: "asyncio.Queue[str]" = asyncio.Queue()
        self._workers: List[asyncio.Task] = []

    @property
    def pending(self) -> int:
        """Job ids waiting for a worker."""
        return self._queue.qsize()

    @property
    def running(self) -> bool:
        return any(not w.done() for w in self._workers)

    def start(self) -> None:
        if self.running:
            return
        self._workers = [
            asyncio.create_task(self._worker(i), name=f"sync-worker-{i}")
            for i in range(self._worker_count)
        ]
        logger.info(f"Started {self._worker_count} sync job worker(s)")

    def enqueue(self, job_id: str) -> None:
        """Hand a job to the workers without waiting for it."""
        self.start()
        self._queue.put_nowait(job_id)
        logger.debug(f"Enqueued sync job {job_id}")

    async def join(self) -> None:
        """Wait until every enqueued job has been processed."""
        await self._queue.join()

    async def stop(self) -> None:
        """
        Cancel the workers. Jobs still queued stay pending; a job
        a worker was running ends failed.
        """
        for worker in self._workers:
            worker.cancel()
        await asyncio.gather(*self._workers, return_exceptions=True)
        self._workers = []
        logger.info("Stopped sync job workers")

    async def _worker(self, index: int) -> None:
        while True:
            job_id = await self._queue.get()
            try:
                await self._processor.process(job_id)
            except Exception:
                # Store unreachable while recording the outcome
                logger.exception(f"Sync worker {index} could not finish job {job_id}")
            finally:
                self._queue.task_done()


__all__ = [
    "ProgressCallback",
    "SHUTDOWN_MESSAGE",
    "SyncEngine",
    "SimulatedSyncEngine",
    "SyncJobProcessor",
    "SyncJobQueue",
]

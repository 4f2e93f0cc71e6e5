"""
Tests for Sync Job Processing.

============================================================
PURPOSE
============================================================
Drive sync jobs through their state machine against a real
SQLite store.

TEST PRINCIPLES:
- Progress written while running never decreases
- A job always ends completed (100%, all records) or failed
  (error message, completed_at)
- Creating a job returns before it is processed

============================================================
"""

import asyncio
from typing import List
from unittest.mock import patch

import pytest

from core.exceptions import ErrorCategory, ValidationError
from integration.manager import IntegrationManager
from integration.models import DataSyncJob, JobStatus, JobType
from integration.repository import IntegrationRepository, SyncJobRepository
from integration.sync_jobs import (
    SHUTDOWN_MESSAGE,
    SimulatedSyncEngine,
    SyncEngine,
    SyncJobProcessor,
    SyncJobQueue,
)
from storage.exceptions import IntegrityError


# ============================================================
# ENGINE DOUBLES
# ============================================================

async def _no_sleep(seconds: float) -> None:
    return None


class ScriptedEngine(SyncEngine):
    """Reports a fixed sequence of percentages."""

    def __init__(self, percentages: List[int]) -> None:
        self.percentages = percentages

    async def run(self, job: DataSyncJob, report_progress) -> None:
        for pct in self.percentages:
            await report_progress(pct, job.total_records * pct // 100)


class StallingEngine(SyncEngine):
    """Reports 30% and then waits on an upstream that never answers."""

    def __init__(self) -> None:
        self.started = asyncio.Event()

    async def run(self, job: DataSyncJob, report_progress) -> None:
        await report_progress(30, job.total_records * 30 // 100)
        self.started.set()
        await asyncio.sleep(10)


class FailingEngine(SyncEngine):
    """Gets to 40% and then loses the upstream."""

    async def run(self, job: DataSyncJob, report_progress) -> None:
        await report_progress(0, 0)
        await report_progress(40, job.total_records * 40 // 100)
        raise RuntimeError("upstream unavailable")


# ============================================================
# FIXTURES
# ============================================================

@pytest.fixture
def integrations(store, clock):
    return IntegrationRepository(store, clock)


@pytest.fixture
def jobs(store, clock):
    return SyncJobRepository(store, clock)


async def _create_integration(integrations) -> str:
    integration = await integrations.create("Mailing list", "external", "https://lists.example.org")
    return integration.id


# ============================================================
# SIMULATED ENGINE
# ============================================================

class TestSimulatedSyncEngine:

    @pytest.mark.asyncio
    async def test_steps_and_record_counts(self, clock):
        calls = []

        async def report(pct, records):
            calls.append((pct, records))

        job = DataSyncJob(
            id="job-1", integration_id="int-1", job_type=JobType.SYNC, status=JobStatus.RUNNING,
            created_at=clock.now(), total_records=95,
        )
        await SimulatedSyncEngine(step=10, sleep=_no_sleep).run(job, report)

        assert [pct for pct, _ in calls] == list(range(0, 101, 10))
        assert calls[5] == (50, 47)
        assert calls[-1] == (100, 95)

    @pytest.mark.asyncio
    async def test_uneven_step_still_ends_at_100(self, clock):
        calls = []

        async def report(pct, records):
            calls.append(pct)

        job = DataSyncJob(
            id="job-1", integration_id="int-1", job_type=JobType.SYNC, status=JobStatus.RUNNING,
            created_at=clock.now(), total_records=10,
        )
        await SimulatedSyncEngine(step=30, sleep=_no_sleep).run(job, report)

        assert calls == [0, 30, 60, 90, 100]

    @pytest.mark.asyncio
    async def test_sleeps_between_steps_only(self, clock):
        sleeps = []

        async def fake_sleep(seconds):
            sleeps.append(seconds)

        async def report(pct, records):
            pass

        job = DataSyncJob(
            id="job-1", integration_id="int-1", job_type=JobType.SYNC, status=JobStatus.RUNNING,
            created_at=clock.now(),
        )
        await SimulatedSyncEngine(step=50, step_delay_seconds=0.25, sleep=fake_sleep).run(job, report)

        assert sleeps == [0.25, 0.25]


# ============================================================
# REPOSITORY
# ============================================================

class TestSyncJobRepository:

    @pytest.mark.asyncio
    async def test_create_is_pending_with_zeroed_counters(self, integrations, jobs):
        integration_id = await _create_integration(integrations)

        job = await jobs.create(integration_id, "import", 250)

        assert job.status == JobStatus.PENDING
        assert job.progress_percentage == 0
        assert job.records_processed == 0
        assert job.total_records == 250
        assert job.started_at is None

    @pytest.mark.asyncio
    async def test_missing_total_defaults_to_zero(self, integrations, jobs):
        integration_id = await _create_integration(integrations)
        job = await jobs.create(integration_id, "backup")
        assert job.total_records == 0

    @pytest.mark.asyncio
    async def test_rejects_bad_input(self, integrations, jobs):
        integration_id = await _create_integration(integrations)

        with pytest.raises(ValidationError):
            await jobs.create(integration_id, "teleport", 10)
        with pytest.raises(ValidationError):
            await jobs.create(integration_id, "sync", -1)

    @pytest.mark.asyncio
    async def test_unknown_integration(self, jobs):
        with pytest.raises(IntegrityError):
            await jobs.create("no-such-integration", "sync", 10)

    @pytest.mark.asyncio
    async def test_list_filters_newest_first(self, integrations, jobs, clock):
        integration_id = await _create_integration(integrations)
        first = await jobs.create(integration_id, "sync", 1)
        clock.advance(minutes=1)
        second = await jobs.create(integration_id, "export", 1)
        clock.advance(minutes=1)
        third = await jobs.create(integration_id, "sync", 1)

        assert [j.id for j in await jobs.list()] == [third.id, second.id, first.id]
        assert [j.id for j in await jobs.list(job_type="sync")] == [third.id, first.id]
        assert [j.id for j in await jobs.list(limit=1)] == [third.id]
        assert await jobs.list(status="running") == []


# ============================================================
# PROCESSOR
# ============================================================

class TestSyncJobProcessor:

    @pytest.mark.asyncio
    async def test_completes_job(self, integrations, jobs, analytics, error_reporter, clock):
        integration_id = await _create_integration(integrations)
        job = await jobs.create(integration_id, "sync", 95)
        processor = SyncJobProcessor(
            jobs, SimulatedSyncEngine(sleep=_no_sleep), analytics, error_reporter
        )

        done = await processor.process(job.id)

        assert done.status == JobStatus.COMPLETED
        assert done.progress_percentage == 100
        assert done.records_processed == 95
        assert done.started_at == clock.now()
        assert done.completed_at == clock.now()
        assert await analytics.count_events_since(clock.start_of_day(), "sync_job_completed") == 1

    @pytest.mark.asyncio
    async def test_progress_never_decreases(self, integrations, jobs, error_reporter):
        integration_id = await _create_integration(integrations)
        job = await jobs.create(integration_id, "import", 200)
        processor = SyncJobProcessor(jobs, ScriptedEngine([0, 50, 30, 80, 120]), None, error_reporter)

        with patch.object(jobs, "update_progress", wraps=jobs.update_progress) as spy:
            done = await processor.process(job.id)

        written = [c.args[1] for c in spy.call_args_list]
        assert written == [0, 50, 50, 80, 100]
        assert written == sorted(written)
        assert done.status == JobStatus.COMPLETED
        assert done.records_processed == 200

    @pytest.mark.asyncio
    async def test_engine_failure_marks_job_failed(self, integrations, jobs, error_reporter, clock):
        integration_id = await _create_integration(integrations)
        job = await jobs.create(integration_id, "export", 50)
        processor = SyncJobProcessor(jobs, FailingEngine(), None, error_reporter)

        failed = await processor.process(job.id)

        assert failed.status == JobStatus.FAILED
        assert failed.error_message == "upstream unavailable"
        assert failed.completed_at == clock.now()
        assert failed.progress_percentage == 40

        reports = error_reporter.get_reports()
        assert len(reports) == 1
        assert reports[0].category == ErrorCategory.API
        assert reports[0].metadata == {"job_id": job.id}

    @pytest.mark.asyncio
    async def test_only_pending_jobs_are_processed(self, integrations, jobs, error_reporter):
        integration_id = await _create_integration(integrations)
        job = await jobs.create(integration_id, "sync", 10)
        processor = SyncJobProcessor(jobs, SimulatedSyncEngine(sleep=_no_sleep), None, error_reporter)

        await processor.process(job.id)

        assert await processor.process(job.id) is None
        assert await processor.process("missing") is None

    @pytest.mark.asyncio
    async def test_zero_records(self, integrations, jobs, error_reporter):
        integration_id = await _create_integration(integrations)
        job = await jobs.create(integration_id, "backup")
        processor = SyncJobProcessor(jobs, SimulatedSyncEngine(sleep=_no_sleep), None, error_reporter)

        done = await processor.process(job.id)

        assert done.status == JobStatus.COMPLETED
        assert done.records_processed == 0
        assert done.progress_percentage == 100


# ============================================================
# QUEUE
# ============================================================

class TestSyncJobQueue:

    @pytest.mark.asyncio
    async def test_enqueued_jobs_reach_terminal_state(self, integrations, jobs, error_reporter):
        integration_id = await _create_integration(integrations)
        processor = SyncJobProcessor(jobs, SimulatedSyncEngine(sleep=_no_sleep), None, error_reporter)
        queue = SyncJobQueue(processor, worker_count=2)

        created = [await jobs.create(integration_id, "sync", n) for n in (10, 20, 30)]
        try:
            for job in created:
                queue.enqueue(job.id)
            assert queue.running

            await queue.join()
        finally:
            await queue.stop()

        assert not queue.running
        for job in created:
            stored = await jobs.get(job.id)
            assert stored.status == JobStatus.COMPLETED
            assert stored.records_processed == job.total_records

    @pytest.mark.asyncio
    async def test_worker_survives_processor_crash(self, integrations, jobs, error_reporter):
        integration_id = await _create_integration(integrations)
        processor = SyncJobProcessor(jobs, SimulatedSyncEngine(sleep=_no_sleep), None, error_reporter)
        queue = SyncJobQueue(processor, worker_count=1)
        good = await jobs.create(integration_id, "sync", 5)

        original = processor.process
        calls = []

        async def flaky(job_id):
            calls.append(job_id)
            if job_id == "explode":
                raise RuntimeError("store unreachable")
            return await original(job_id)

        try:
            with patch.object(processor, "process", side_effect=flaky):
                queue.enqueue("explode")
                queue.enqueue(good.id)
                await queue.join()
        finally:
            await queue.stop()

        assert calls == ["explode", good.id]
        assert (await jobs.get(good.id)).status == JobStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_manager_create_returns_pending(self, manager):
        integration = await manager.create_integration("Donor CRM", "third_party")

        job = await manager.create_sync_job(integration.id, "import", 40)
        assert job.status == JobStatus.PENDING

        await manager.wait_for_sync_jobs()

        jobs = await manager.list_sync_jobs(integration_id=integration.id)
        assert len(jobs) == 1
        assert jobs[0].status == JobStatus.COMPLETED
        assert jobs[0].progress_percentage == 100
        assert jobs[0].records_processed == 40

    @pytest.mark.asyncio
    async def test_stop_fails_the_running_job(self, integrations, jobs, error_reporter, clock):
        integration_id = await _create_integration(integrations)
        engine = StallingEngine()
        queue = SyncJobQueue(SyncJobProcessor(jobs, engine, None, error_reporter), worker_count=1)
        running = await jobs.create(integration_id, "import", 50)
        waiting = await jobs.create(integration_id, "import", 10)

        queue.enqueue(running.id)
        queue.enqueue(waiting.id)
        await asyncio.wait_for(engine.started.wait(), timeout=5)
        await queue.stop()

        stopped = await jobs.get(running.id)
        assert stopped.status == JobStatus.FAILED
        assert stopped.error_message == SHUTDOWN_MESSAGE
        assert stopped.completed_at == clock.now()
        assert stopped.progress_percentage == 30
        assert (await jobs.get(waiting.id)).status == JobStatus.PENDING

    @pytest.mark.asyncio
    async def test_manager_close_leaves_nothing_running(
        self, store, registry, fast_config, clock, error_reporter
    ):
        engine = StallingEngine()
        manager = IntegrationManager(
            store,
            registry,
            config=fast_config,
            clock=clock,
            error_reporter=error_reporter,
            sync_engine=engine,
        )
        integration = await manager.create_integration("Donor CRM", "third_party")
        job = await manager.create_sync_job(integration.id, "sync", 20)

        await asyncio.wait_for(engine.started.wait(), timeout=5)
        await manager.close()

        assert await manager.list_sync_jobs(status="running") == []
        closed = (await manager.list_sync_jobs(integration_id=integration.id))[0]
        assert closed.id == job.id
        assert closed.status == JobStatus.FAILED
        assert closed.completed_at is not None

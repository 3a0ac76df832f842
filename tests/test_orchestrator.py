import asyncio
from datetime import timedelta

import pytest

from clinic_automation.core.errors import ConflictError, NotFoundError
from clinic_automation.db.enums import JobState
from clinic_automation.jobs.orchestrator import SchedulerOrchestrator
from clinic_automation.jobs.schedules import IntervalSchedule
from conftest import NOW


class RecordingJob:
    """Callback that records calls; fails while `failures` > 0, blocks while `gate` is unset."""

    def __init__(self, failures=0, gate=None):
        self.calls = []
        self.failures = failures
        self.gate = gate

    async def __call__(self, now):
        self.calls.append(now)
        if self.gate is not None:
            await self.gate.wait()
        if self.failures:
            self.failures -= 1
            raise RuntimeError("boom")
        return {"ok": True}


@pytest.fixture
def scheduler(clock):
    return SchedulerOrchestrator(clock, poll_interval=1, settle_seconds=2.0, autopoll=False)


def test_register_rejects_duplicate_names(scheduler):
    scheduler.register("tick", IntervalSchedule(60), RecordingJob())
    with pytest.raises(ValueError):
        scheduler.register("tick", IntervalSchedule(30), RecordingJob())


def test_start_activates_jobs_with_next_run(scheduler):
    scheduler.register("tick", IntervalSchedule(60), RecordingJob(), "every minute")

    scheduler.start()

    status = scheduler.get_status("tick")
    assert scheduler.running
    assert status.active is True
    assert status.state == JobState.RUNNING
    assert status.next_run == NOW + timedelta(seconds=60)
    assert status.schedule == "every 60s"
    assert scheduler.started_at == NOW


@pytest.mark.asyncio
async def test_run_pending_invokes_due_jobs_only(scheduler, clock):
    job = RecordingJob()
    scheduler.register("tick", IntervalSchedule(60), job)
    scheduler.start()

    assert await scheduler.run_pending() == []

    due_at = clock.advance(seconds=60)
    assert await scheduler.run_pending() == ["tick"]
    await scheduler.wait_idle()

    status = scheduler.get_status("tick")
    assert job.calls == [due_at]
    assert status.total_runs == 1
    assert status.last_run == due_at
    assert status.next_run == due_at + timedelta(seconds=60)
    assert status.last_result == {"ok": True}


@pytest.mark.asyncio
async def test_overlapping_run_is_skipped(scheduler, clock):
    gate = asyncio.Event()
    job = RecordingJob(gate=gate)
    scheduler.register("slow", IntervalSchedule(60), job)
    scheduler.start()

    clock.advance(seconds=60)
    await scheduler.run_pending()
    clock.advance(seconds=60)
    assert await scheduler.run_pending() == []

    gate.set()
    await scheduler.wait_idle()

    status = scheduler.get_status("slow")
    assert len(job.calls) == 1
    assert status.skipped_overlaps == 1
    assert status.total_runs == 1
    assert not scheduler.is_in_flight("slow")


@pytest.mark.asyncio
async def test_exclusive_work_conflicts_with_in_flight_tick(scheduler, clock):
    gate = asyncio.Event()
    scheduler.register("slow", IntervalSchedule(60), RecordingJob(gate=gate))
    scheduler.start()
    clock.advance(seconds=60)
    await scheduler.run_pending()

    async def manual_run():
        return "done"

    with pytest.raises(ConflictError):
        await scheduler.run_exclusive("slow", manual_run)

    gate.set()
    await scheduler.wait_idle()
    assert await scheduler.run_exclusive("slow", manual_run) == "done"


@pytest.mark.asyncio
async def test_tick_skipped_while_exclusive_work_runs(scheduler, clock):
    job = RecordingJob()
    scheduler.register("tick", IntervalSchedule(60), job)
    scheduler.start()
    gate = asyncio.Event()

    async def manual_run():
        await gate.wait()
        return "done"

    manual = asyncio.create_task(scheduler.run_exclusive("tick", manual_run))
    await asyncio.sleep(0)
    clock.advance(seconds=60)

    assert await scheduler.run_pending() == []

    gate.set()
    assert await manual == "done"
    assert job.calls == []
    status = scheduler.get_status("tick")
    assert status.skipped_overlaps == 1
    assert status.total_runs == 0


@pytest.mark.asyncio
async def test_failing_job_is_recorded_and_recovers(scheduler, clock):
    flaky = RecordingJob(failures=1)
    steady = RecordingJob()
    scheduler.register("flaky", IntervalSchedule(60), flaky)
    scheduler.register("steady", IntervalSchedule(60), steady)
    scheduler.start()

    clock.advance(seconds=60)
    await scheduler.run_pending()
    await scheduler.wait_idle()

    status = scheduler.get_status("flaky")
    assert status.state == JobState.ERROR
    assert status.total_errors == 1
    assert status.last_error == "RuntimeError: boom"
    assert scheduler.get_status("steady").total_runs == 1
    assert scheduler.health_check()["status"] == "degraded"

    clock.advance(seconds=60)
    await scheduler.run_pending()
    await scheduler.wait_idle()

    assert status.state == JobState.RUNNING
    assert status.total_runs == 2
    assert status.last_error == "RuntimeError: boom"
    assert scheduler.health_check()["status"] == "healthy"


@pytest.mark.asyncio
async def test_run_now_leaves_schedule_untouched(scheduler):
    job = RecordingJob()
    scheduler.register("tick", IntervalSchedule(60), job)
    scheduler.start()
    next_run = scheduler.get_status("tick").next_run

    result = await scheduler.run_now("tick")

    assert result.success is True
    assert result.result == {"ok": True}
    assert job.calls == [NOW]
    assert scheduler.get_status("tick").next_run == next_run


@pytest.mark.asyncio
async def test_run_now_reports_failure(scheduler):
    scheduler.register("broken", IntervalSchedule(60), RecordingJob(failures=1))

    result = await scheduler.run_now("broken")

    assert result.success is False
    assert result.error == "RuntimeError: boom"
    # Not started: the job is inactive, so it does not enter the error state
    assert scheduler.get_status("broken").state == JobState.STOPPED


@pytest.mark.asyncio
async def test_run_now_unknown_or_busy_job(scheduler):
    gate = asyncio.Event()
    scheduler.register("slow", IntervalSchedule(60), RecordingJob(gate=gate))

    with pytest.raises(NotFoundError):
        await scheduler.run_now("missing")

    pending = asyncio.ensure_future(scheduler.run_now("slow"))
    await asyncio.sleep(0)
    with pytest.raises(ConflictError):
        await scheduler.run_now("slow")

    gate.set()
    assert (await pending).success is True


@pytest.mark.asyncio
async def test_stop_prevents_further_ticks(scheduler, clock):
    job = RecordingJob()
    scheduler.register("tick", IntervalSchedule(60), job)
    scheduler.start()

    scheduler.stop()
    clock.advance(seconds=600)

    assert await scheduler.run_pending() == []
    status = scheduler.get_status("tick")
    assert status.state == JobState.STOPPED
    assert status.next_run is None
    assert not scheduler.running


@pytest.mark.asyncio
async def test_restart_waits_for_settle_interval(scheduler, clock):
    scheduler.register("tick", IntervalSchedule(60), RecordingJob())
    scheduler.start()

    await scheduler.restart()

    assert clock.sleeps == [2.0]
    assert scheduler.running
    restarted_at = NOW + timedelta(seconds=2)
    assert scheduler.started_at == restarted_at
    assert scheduler.get_status("tick").next_run == restarted_at + timedelta(seconds=60)


@pytest.mark.asyncio
async def test_maintenance_mode_pauses_all_jobs(scheduler, clock):
    job = RecordingJob()
    scheduler.register("tick", IntervalSchedule(60), job)
    scheduler.start()

    scheduler.set_maintenance(True)
    clock.advance(seconds=120)

    assert await scheduler.run_pending() == []
    assert scheduler.maintenance
    assert scheduler.get_status("tick").state == JobState.MAINTENANCE
    health = scheduler.health_check()
    assert health["status"] == "unhealthy"
    assert health["maintenance"] is True

    scheduler.set_maintenance(False)

    assert not scheduler.maintenance
    assert scheduler.get_status("tick").state == JobState.RUNNING


def test_health_with_no_jobs_is_healthy(scheduler):
    health = scheduler.health_check()

    assert health["status"] == "healthy"
    assert health["jobs"] == []
    assert health["checked_at"] == NOW


def test_health_before_start_is_unhealthy(scheduler):
    scheduler.register("tick", IntervalSchedule(60), RecordingJob())

    health = scheduler.health_check()

    assert health["status"] == "unhealthy"
    assert health["jobs"][0]["healthy"] is False


@pytest.mark.asyncio
async def test_stats_aggregate_job_counters(scheduler, clock):
    scheduler.register("ok", IntervalSchedule(60), RecordingJob())
    scheduler.register("bad", IntervalSchedule(60), RecordingJob(failures=5))
    scheduler.start()

    for _ in range(2):
        clock.advance(seconds=60)
        await scheduler.run_pending()
        await scheduler.wait_idle()

    stats = scheduler.stats()
    assert stats["total_jobs"] == 2
    assert stats["active_jobs"] == 2
    assert stats["in_flight"] == 0
    assert stats["total_runs"] == 4
    assert stats["total_errors"] == 2
    assert stats["started_at"] == NOW


@pytest.mark.asyncio
async def test_poll_loop_drives_ticks(clock):
    job = RecordingJob()
    scheduler = SchedulerOrchestrator(clock, poll_interval=30)
    scheduler.register("tick", IntervalSchedule(60), job)

    scheduler.start()
    for _ in range(100):
        await asyncio.sleep(0)
        if job.calls:
            break
    await scheduler.shutdown()

    assert len(job.calls) >= 1
    assert not scheduler.running

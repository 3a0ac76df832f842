"""Scheduler orchestrator - owns the periodic jobs of the automation core.

Single-process, cooperative scheduling on asyncio. A polling loop calls
`run_pending` every `poll_interval` seconds; each due job runs as its own
task. A job whose previous invocation is still in flight is skipped for
that tick (never double-invoked). Callback exceptions are caught here and
recorded on the job; they never stop the loop or other jobs.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable, Coroutine
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Protocol, TypeVar

from clinic_automation.core.errors import ConflictError, NotFoundError
from clinic_automation.core.structured_logging import build_log_context
from clinic_automation.db.enums import HealthStatus, JobState
from clinic_automation.jobs.schedules import Clock, Schedule, SystemClock

logger = logging.getLogger(__name__)

JobCallback = Callable[[datetime], Awaitable[Any]]
T = TypeVar("T")


@dataclass
class JobStatus:
    name: str
    description: str
    schedule: str
    active: bool = False
    state: JobState = JobState.STOPPED
    last_run: datetime | None = None
    next_run: datetime | None = None
    total_runs: int = 0
    total_errors: int = 0
    skipped_overlaps: int = 0
    last_error: str | None = None
    last_result: Any = None
    last_duration_ms: int | None = None


@dataclass
class ScheduledJob:
    name: str
    schedule: Schedule
    callback: JobCallback
    status: JobStatus


@dataclass
class JobRunResult:
    job: str
    success: bool
    result: Any = None
    error: str | None = None


class Scheduler(Protocol):
    """Port the runtime registers jobs against."""

    def register(
        self, name: str, schedule: Schedule, callback: JobCallback, description: str = ""
    ) -> None: ...

    def start(self) -> None: ...

    def stop(self) -> None: ...


class SchedulerOrchestrator:
    def __init__(
        self,
        clock: Clock | None = None,
        *,
        poll_interval: float = 10.0,
        settle_seconds: float = 2.0,
        autopoll: bool = True,
    ) -> None:
        self.clock = clock or SystemClock()
        self.poll_interval = poll_interval
        self.settle_seconds = settle_seconds
        # False: no background loop; the caller drives ticks through run_pending
        self.autopoll = autopoll
        self._jobs: dict[str, ScheduledJob] = {}
        self._in_flight: dict[str, asyncio.Task] = {}
        self._loop_task: asyncio.Task | None = None
        self._running = False
        self._maintenance = False
        self.started_at: datetime | None = None

    # =========================================================================
    # Registration
    # =========================================================================

    def register(
        self, name: str, schedule: Schedule, callback: JobCallback, description: str = ""
    ) -> None:
        if name in self._jobs:
            raise ValueError(f"Job already registered: {name}")
        self._jobs[name] = ScheduledJob(
            name=name,
            schedule=schedule,
            callback=callback,
            status=JobStatus(name=name, description=description, schedule=schedule.describe()),
        )

    @property
    def job_names(self) -> list[str]:
        return list(self._jobs)

    @property
    def running(self) -> bool:
        return self._running

    @property
    def maintenance(self) -> bool:
        return self._maintenance

    def _get_job(self, name: str) -> ScheduledJob:
        job = self._jobs.get(name)
        if job is None:
            raise NotFoundError(f"Unknown job: {name}")
        return job

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def start(self) -> None:
        now = self.clock.now()
        self._maintenance = False
        for job in self._jobs.values():
            job.status.active = True
            job.status.state = JobState.RUNNING
            job.status.last_run = None
            job.status.next_run = job.schedule.next_after(now)
        self._running = True
        self.started_at = now
        self._launch_loop()
        logger.info("Scheduler started with %d jobs", len(self._jobs))

    def stop(self) -> None:
        """Prevent further ticks. In-flight invocations run to completion."""
        self._deactivate(JobState.STOPPED)
        logger.info("Scheduler stopped")

    async def restart(self) -> None:
        self.stop()
        await self.clock.sleep(self.settle_seconds)
        self.start()

    def set_maintenance(self, enabled: bool) -> None:
        if enabled:
            self._deactivate(JobState.MAINTENANCE)
            self._maintenance = True
            logger.warning("Scheduler entered maintenance mode")
        else:
            self.start()

    def _deactivate(self, state: JobState) -> None:
        for job in self._jobs.values():
            job.status.active = False
            job.status.state = state
            job.status.next_run = None
        self._running = False
        if self._loop_task is not None and not self._loop_task.done():
            self._loop_task.cancel()
        self._loop_task = None

    def _launch_loop(self) -> None:
        if not self.autopoll:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No event loop (CLI, sync tests): ticks are driven by run_pending.
            return
        if self._loop_task is None or self._loop_task.done():
            self._loop_task = loop.create_task(self._poll_loop())

    async def _poll_loop(self) -> None:
        while self._running:
            try:
                await self.run_pending()
            except Exception:
                logger.exception("Scheduler tick failed")
            await self.clock.sleep(self.poll_interval)

    async def wait_idle(self) -> None:
        """Wait for every in-flight invocation to finish."""
        tasks = list(self._in_flight.values())
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    async def shutdown(self) -> None:
        self.stop()
        await self.wait_idle()

    # =========================================================================
    # Execution
    # =========================================================================

    def is_in_flight(self, name: str) -> bool:
        task = self._in_flight.get(name)
        return task is not None and not task.done()

    def _track(self, name: str, work: Coroutine[Any, Any, T]) -> asyncio.Task[T]:
        task = asyncio.get_running_loop().create_task(work)
        self._in_flight[name] = task

        def _clear(done: asyncio.Task, name: str = name) -> None:
            if self._in_flight.get(name) is done:
                del self._in_flight[name]

        task.add_done_callback(_clear)
        return task

    def _spawn(self, job: ScheduledJob, now: datetime) -> asyncio.Task:
        return self._track(job.name, self._invoke(job, now))

    async def run_exclusive(
        self, name: str, work: Callable[[], Coroutine[Any, Any, T]]
    ) -> T:
        """Run ad-hoc work under job `name`'s overlap guard.

        Scheduled ticks of that job are skipped while `work` runs. Job
        status and stats are not touched.

        Raises:
            ConflictError: the job is already running.
        """
        if self.is_in_flight(name):
            raise ConflictError(f"Job {name} is already running")
        return await self._track(name, work())

    async def run_pending(self, now: datetime | None = None) -> list[str]:
        """Launch every active job that is due at `now`; returns the names launched."""
        now = now or self.clock.now()
        launched = []
        for job in self._jobs.values():
            status = job.status
            if not status.active or status.next_run is None or status.next_run > now:
                continue
            status.next_run = job.schedule.next_after(now)
            if self.is_in_flight(job.name):
                status.skipped_overlaps += 1
                logger.warning(
                    "Job %s still running; skipping this interval",
                    job.name,
                    extra=build_log_context(job=job.name),
                )
                continue
            self._spawn(job, now)
            launched.append(job.name)
        return launched

    async def run_now(self, name: str) -> JobRunResult:
        """Run a job out-of-band. `next_run` is left untouched."""
        job = self._get_job(name)
        if self.is_in_flight(name):
            raise ConflictError(f"Job {name} is already running")
        return await self._spawn(job, self.clock.now())

    async def _invoke(self, job: ScheduledJob, now: datetime) -> JobRunResult:
        status = job.status
        started = time.monotonic()
        try:
            result = await job.callback(now)
        except Exception as e:
            status.total_errors += 1
            status.last_error = f"{type(e).__name__}: {e}"
            if status.active:
                status.state = JobState.ERROR
            logger.exception("Job %s failed", job.name, extra=build_log_context(job=job.name))
            return JobRunResult(job=job.name, success=False, error=status.last_error)
        finally:
            status.total_runs += 1
            status.last_run = now
            status.last_duration_ms = int((time.monotonic() - started) * 1000)

        status.last_result = result
        if status.active and status.state == JobState.ERROR:
            status.state = JobState.RUNNING
        logger.info("Job %s completed", job.name, extra=build_log_context(job=job.name))
        return JobRunResult(job=job.name, success=True, result=result)

    # =========================================================================
    # Introspection
    # =========================================================================

    def statuses(self) -> list[JobStatus]:
        return [job.status for job in self._jobs.values()]

    def get_status(self, name: str) -> JobStatus:
        return self._get_job(name).status

    def health_check(self) -> dict[str, Any]:
        """healthy: every job active and not in error; unhealthy: none are; else degraded."""
        jobs = []
        unhealthy = 0
        for status in self.statuses():
            ok = status.active and status.state != JobState.ERROR
            if not ok:
                unhealthy += 1
            jobs.append(
                {
                    "name": status.name,
                    "state": status.state.value,
                    "active": status.active,
                    "healthy": ok,
                    "last_run": status.last_run,
                    "next_run": status.next_run,
                    "last_error": status.last_error,
                }
            )

        if unhealthy == 0:
            overall = HealthStatus.HEALTHY
        elif unhealthy == len(jobs):
            overall = HealthStatus.UNHEALTHY
        else:
            overall = HealthStatus.DEGRADED

        return {
            "status": overall.value,
            "running": self._running,
            "maintenance": self._maintenance,
            "checked_at": self.clock.now(),
            "jobs": jobs,
        }

    def stats(self) -> dict[str, Any]:
        statuses = self.statuses()
        return {
            "total_jobs": len(statuses),
            "active_jobs": sum(1 for s in statuses if s.active),
            "in_flight": sum(1 for name in self._jobs if self.is_in_flight(name)),
            "total_runs": sum(s.total_runs for s in statuses),
            "total_errors": sum(s.total_errors for s in statuses),
            "skipped_overlaps": sum(s.skipped_overlaps for s in statuses),
            "started_at": self.started_at,
        }

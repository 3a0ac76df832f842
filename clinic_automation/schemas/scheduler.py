"""Pydantic schemas for scheduler introspection."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel

from clinic_automation.db.enums import HealthStatus, JobState


class JobStatusRead(BaseModel):
    name: str
    description: str
    schedule: str
    active: bool
    state: JobState
    last_run: datetime | None
    next_run: datetime | None
    total_runs: int
    total_errors: int
    skipped_overlaps: int
    last_error: str | None
    last_duration_ms: int | None

    model_config = {"from_attributes": True}


class JobHealth(BaseModel):
    name: str
    state: JobState
    active: bool
    healthy: bool
    last_run: datetime | None
    next_run: datetime | None
    last_error: str | None


class SchedulerHealth(BaseModel):
    status: HealthStatus
    running: bool
    maintenance: bool
    checked_at: datetime
    jobs: list[JobHealth]


class SchedulerStats(BaseModel):
    total_jobs: int
    active_jobs: int
    in_flight: int
    total_runs: int
    total_errors: int
    skipped_overlaps: int
    started_at: datetime | None


class MaintenanceRequest(BaseModel):
    enabled: bool


class JobRunRead(BaseModel):
    job: str
    success: bool
    result: Any = None
    error: str | None = None

    model_config = {"from_attributes": True}

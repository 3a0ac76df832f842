"""Scheduler API - health, job status, lifecycle control and manual runs."""

from fastapi import APIRouter, Depends

from clinic_automation.core.deps import get_runtime, verify_internal_secret
from clinic_automation.runtime import Runtime
from clinic_automation.schemas.scheduler import (
    JobRunRead,
    JobStatusRead,
    MaintenanceRequest,
    SchedulerHealth,
    SchedulerStats,
)

router = APIRouter(
    prefix="/scheduler",
    tags=["scheduler"],
    dependencies=[Depends(verify_internal_secret)],
)

# Handlers are async so start() sees the running event loop and launches the poll loop.


@router.get("/health")
async def scheduler_health(runtime: Runtime = Depends(get_runtime)):
    return {"success": True, "data": SchedulerHealth.model_validate(runtime.scheduler.health_check())}


@router.get("/jobs")
async def list_jobs(runtime: Runtime = Depends(get_runtime)):
    jobs = [JobStatusRead.model_validate(s) for s in runtime.scheduler.statuses()]
    return {"success": True, "total": len(jobs), "data": jobs}


@router.get("/stats")
async def scheduler_stats(runtime: Runtime = Depends(get_runtime)):
    return {"success": True, "data": SchedulerStats.model_validate(runtime.scheduler.stats())}


@router.post("/start")
async def start_scheduler(runtime: Runtime = Depends(get_runtime)):
    runtime.scheduler.start()
    return {"success": True, "running": runtime.scheduler.running}


@router.post("/stop")
async def stop_scheduler(runtime: Runtime = Depends(get_runtime)):
    runtime.scheduler.stop()
    return {"success": True, "running": runtime.scheduler.running}


@router.post("/restart")
async def restart_scheduler(runtime: Runtime = Depends(get_runtime)):
    await runtime.scheduler.restart()
    return {"success": True, "running": runtime.scheduler.running}


@router.post("/maintenance")
async def set_maintenance(payload: MaintenanceRequest, runtime: Runtime = Depends(get_runtime)):
    runtime.scheduler.set_maintenance(payload.enabled)
    return {"success": True, "maintenance": runtime.scheduler.maintenance}


@router.post("/jobs/{name}/run")
async def run_job_now(name: str, runtime: Runtime = Depends(get_runtime)):
    """Run a job out-of-band; its next scheduled run is unchanged."""
    result = await runtime.scheduler.run_now(name)
    return {
        "success": result.success,
        "data": JobRunRead.model_validate(result),
        "error": result.error,
    }

"""No-show follow-up API - cases, lifecycle transitions, protocol and reports."""

from uuid import UUID

from fastapi import APIRouter, Depends, Query

from clinic_automation.core.constants import NOSHOW_ALERT_THRESHOLD_DAYS
from clinic_automation.core.deps import get_runtime, verify_internal_secret
from clinic_automation.core.motive_catalog import MOTIVE_CATALOG
from clinic_automation.db.enums import FollowUpState, SchedulerJob
from clinic_automation.runtime import Runtime
from clinic_automation.schemas.noshow import (
    ContactAttemptRequest,
    DeadlineStatusRead,
    MarkLostRequest,
    MotiveRead,
    MotiveRequest,
    NoShowCaseCreate,
    NoShowCaseRead,
    ProtocolResultRead,
    RescheduleRequest,
    UpcomingDeadline,
)
from clinic_automation.services import noshow_lifecycle as lifecycle
from clinic_automation.services.recovery_campaigns import run_recovery_campaign

router = APIRouter(
    prefix="/noshow",
    tags=["noshow"],
    dependencies=[Depends(verify_internal_secret)],
)


def _case(case) -> NoShowCaseRead:
    return NoShowCaseRead.model_validate(case)


def _deadline_pairs(pairs) -> list[UpcomingDeadline]:
    return [
        UpcomingDeadline(case=_case(case), status=DeadlineStatusRead.model_validate(status))
        for case, status in pairs
    ]


# =============================================================================
# Cases
# =============================================================================


@router.get("/cases")
def list_cases(
    state: FollowUpState | None = None,
    runtime: Runtime = Depends(get_runtime),
):
    cases = [_case(c) for c in runtime.noshow.list_by_state(state)]
    return {"success": True, "total": len(cases), "data": cases}


@router.post("/cases", status_code=201)
def register_case(payload: NoShowCaseCreate, runtime: Runtime = Depends(get_runtime)):
    case = runtime.noshow.register_no_show(**payload.model_dump(), now=runtime.now())
    return {"success": True, "data": _case(case)}


@router.get("/cases/{case_id}")
def get_case(case_id: UUID, runtime: Runtime = Depends(get_runtime)):
    case = runtime.noshow.get_case(case_id)
    status = lifecycle.evaluate_deadline(case, runtime.now())
    return {
        "success": True,
        "data": _case(case),
        "deadline": DeadlineStatusRead.model_validate(status),
    }


@router.post("/cases/{case_id}/contact-attempts")
def register_contact_attempt(
    case_id: UUID,
    payload: ContactAttemptRequest,
    runtime: Runtime = Depends(get_runtime),
):
    case = runtime.noshow.register_contact_attempt(
        case_id,
        payload.note,
        succeeded=payload.succeeded,
        patient_response=payload.patient_response,
        performed_by=payload.performed_by,
        now=runtime.now(),
    )
    return {"success": True, "data": _case(case)}


@router.post("/cases/{case_id}/motive")
def assign_motive(case_id: UUID, payload: MotiveRequest, runtime: Runtime = Depends(get_runtime)):
    case = runtime.noshow.assign_motive(case_id, payload.motive, payload.detail, now=runtime.now())
    return {"success": True, "data": _case(case)}


@router.post("/cases/{case_id}/reschedule")
def register_reschedule(
    case_id: UUID,
    payload: RescheduleRequest,
    runtime: Runtime = Depends(get_runtime),
):
    case = runtime.noshow.register_reschedule(
        case_id, payload.new_appointment_id, now=runtime.now(), notes=payload.notes
    )
    return {"success": True, "data": _case(case)}


@router.post("/cases/{case_id}/lost")
def mark_lost(case_id: UUID, payload: MarkLostRequest, runtime: Runtime = Depends(get_runtime)):
    case = runtime.noshow.mark_lost(case_id, payload.reason, now=runtime.now())
    return {"success": True, "data": _case(case)}


# =============================================================================
# Protocol, deadlines and recovery
# =============================================================================


@router.post("/protocol")
async def run_protocol(runtime: Runtime = Depends(get_runtime)):
    now = runtime.now()

    async def _protocol():
        return runtime.noshow.process_protocol(now)

    result = await runtime.scheduler.run_exclusive(SchedulerJob.NOSHOW_PROTOCOL.value, _protocol)
    return {"success": result.success, "data": ProtocolResultRead.model_validate(result)}


@router.get("/deadlines")
def upcoming_deadlines(
    days: int = Query(NOSHOW_ALERT_THRESHOLD_DAYS, ge=1, le=7),
    runtime: Runtime = Depends(get_runtime),
):
    upcoming = _deadline_pairs(runtime.noshow.upcoming_deadlines(runtime.now(), days))
    return {"success": True, "total": len(upcoming), "data": upcoming}


@router.get("/reschedulable")
def reschedulable(runtime: Runtime = Depends(get_runtime)):
    candidates = _deadline_pairs(runtime.noshow.reschedulable(runtime.now()))
    return {"success": True, "total": len(candidates), "data": candidates}


@router.post("/recovery/run")
async def run_recovery(runtime: Runtime = Depends(get_runtime)):
    now = runtime.now()
    result = await runtime.scheduler.run_exclusive(
        SchedulerJob.RECOVERY_CAMPAIGN.value,
        lambda: run_recovery_campaign(
            runtime.noshow,
            runtime.selector,
            runtime.messaging,
            now,
            limit=runtime.config.RECOVERY_DAILY_LIMIT,
            timeout_seconds=runtime.config.MESSAGING_TIMEOUT_SECONDS,
        ),
    )
    return {
        "success": True,
        "data": {"sent": result.sent, "skipped": result.skipped, "failed": result.failed},
        "errors": result.errors,
    }


# =============================================================================
# Reports and catalog
# =============================================================================


@router.get("/reports/lost")
def lost_report(branch_id: str | None = None, runtime: Runtime = Depends(get_runtime)):
    return {"success": True, "data": runtime.noshow.lost_report(branch_id)}


@router.get("/patients/{patient_id}/history")
def patient_history(patient_id: UUID, runtime: Runtime = Depends(get_runtime)):
    history = runtime.noshow.patient_history(patient_id)
    history["cases"] = [_case(c) for c in history["cases"]]
    return {"success": True, "data": history}


@router.get("/motives")
def list_motives():
    motives = [MotiveRead.model_validate(descriptor) for descriptor in MOTIVE_CATALOG.values()]
    return {"success": True, "data": motives}

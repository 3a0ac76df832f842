"""Automation rules API - CRUD, preview, execution logs and manual runs."""

from uuid import UUID

from fastapi import APIRouter, Depends, Query

from clinic_automation.core.constants import DEFAULT_LOG_LIMIT, MAX_LOG_LIMIT
from clinic_automation.core.deps import get_runtime, verify_internal_secret
from clinic_automation.db.enums import SchedulerJob
from clinic_automation.runtime import Runtime
from clinic_automation.schemas.automation import RuleCreate, RulePreviewResult, RuleUpdate

router = APIRouter(
    prefix="/automation",
    tags=["automation"],
    dependencies=[Depends(verify_internal_secret)],
)


# =============================================================================
# Rule CRUD
# =============================================================================


@router.get("/rules")
def list_rules(runtime: Runtime = Depends(get_runtime)):
    rules = runtime.rules.list_rules()
    return {"success": True, "total": len(rules), "data": rules}


@router.post("/rules", status_code=201)
def create_rule(payload: RuleCreate, runtime: Runtime = Depends(get_runtime)):
    return {"success": True, "data": runtime.rules.create_rule(payload)}


@router.get("/rules/{rule_id}")
def get_rule(rule_id: UUID, runtime: Runtime = Depends(get_runtime)):
    return {"success": True, "data": runtime.rules.get_rule(rule_id)}


@router.patch("/rules/{rule_id}")
def update_rule(rule_id: UUID, payload: RuleUpdate, runtime: Runtime = Depends(get_runtime)):
    return {"success": True, "data": runtime.rules.update_rule(rule_id, payload)}


@router.delete("/rules/{rule_id}")
def delete_rule(rule_id: UUID, runtime: Runtime = Depends(get_runtime)):
    runtime.rules.delete_rule(rule_id)
    return {"success": True}


@router.post("/rules/{rule_id}/preview")
def preview_rule(rule_id: UUID, runtime: Runtime = Depends(get_runtime)):
    """Which contact requests the rule would match right now. Runs no actions."""
    rule = runtime.rules.get_rule(rule_id)
    records = runtime.contacts.get_all()
    matched = runtime.engine.preview(rule, records, runtime.now())
    result = RulePreviewResult(rule_id=rule.id, matched_ids=matched, total_evaluated=len(records))
    return {"success": True, "data": result}


# =============================================================================
# Execution
# =============================================================================


@router.get("/logs")
def list_logs(
    rule_id: UUID | None = None,
    limit: int = Query(DEFAULT_LOG_LIMIT, ge=1, le=MAX_LOG_LIMIT),
    runtime: Runtime = Depends(get_runtime),
):
    logs = runtime.rules.list_logs(rule_id=rule_id, limit=limit)
    return {"success": True, "total": len(logs), "data": logs}


@router.post("/run")
async def run_automation(runtime: Runtime = Depends(get_runtime)):
    """Run every active rule once; 409 while a scheduled tick is in flight."""
    now = runtime.now()
    result = await runtime.scheduler.run_exclusive(
        SchedulerJob.AUTOMATION_RULES.value, lambda: runtime.engine.run_once(now)
    )
    return {"success": result.success, "total": result.total, "data": result.logs}

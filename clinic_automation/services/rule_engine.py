"""Rule engine - evaluates automation rules against contact requests.

One engine is built per process (see `clinic_automation.runtime`) and
holds its collaborators explicitly: rule store, record store, messaging
port and RNG. Nothing here is module-global.

Evaluation order: for each record, active rules by priority (high to
low), oldest `updated_at` first on ties. A rule is skipped outside its
active hours or inside its pause window; otherwise all conditions must
match (AND). Matching rules run their actions in order and produce one
execution log. Failures are isolated to the (rule, record) pair.
"""

from __future__ import annotations

import logging
import random
import uuid
from datetime import datetime
from typing import Any

from clinic_automation.core.errors import UnsupportedActionError
from clinic_automation.core.structured_logging import build_log_context
from clinic_automation.db.enums import ExecutionOutcome, MessagingChannel
from clinic_automation.schemas.automation import (
    AutomationRunResult,
    ExecutionLog,
    RuleRead,
)
from clinic_automation.services.messaging import MessagingPort
from clinic_automation.services.record_store import RecordStore
from clinic_automation.services.rule_actions import ActionContext, execute_action
from clinic_automation.services.rule_conditions import evaluate_conditions
from clinic_automation.services.rule_store import RuleStore
from clinic_automation.utils.business_hours import is_paused, is_within_active_hours
from clinic_automation.utils.datetime_utils import utcnow

logger = logging.getLogger(__name__)


def sort_rules(rules: list[RuleRead]) -> list[RuleRead]:
    """Active rules, priority descending, then oldest update first."""
    active = [rule for rule in rules if rule.active]
    return sorted(active, key=lambda rule: (-rule.priority_rank, rule.updated_at))


class RuleEngine:
    """Condition/action interpreter over the record store."""

    def __init__(
        self,
        rule_store: RuleStore,
        records: RecordStore,
        messaging: MessagingPort,
        *,
        appointments: RecordStore | None = None,
        default_channel: MessagingChannel = MessagingChannel.WHATSAPP,
        timezone: str = "UTC",
        messaging_timeout: float = 10.0,
        rng: random.Random | None = None,
    ) -> None:
        self.rule_store = rule_store
        self.records = records
        self.messaging = messaging
        self.appointments = appointments
        self.default_channel = default_channel
        self.timezone = timezone
        self.messaging_timeout = messaging_timeout
        self.rng = rng or random.Random()

    def rule_matches(self, rule: RuleRead, record: Any, now: datetime) -> bool:
        """Time windows first, then every condition."""
        if not is_within_active_hours(rule.active_hours, now, self.timezone):
            return False
        if is_paused(rule.pause, now):
            return False
        return evaluate_conditions(record, rule.conditions, now)

    async def evaluate(
        self, rules: list[RuleRead], records: list[Any], now: datetime
    ) -> list[ExecutionLog]:
        """Evaluate every sorted rule against every record; one log per match."""
        ordered = sort_rules(rules)
        logs: list[ExecutionLog] = []

        for record in records:
            current = record
            for rule in ordered:
                try:
                    matched = self.rule_matches(rule, current, now)
                except Exception as e:
                    logger.warning(
                        "Condition evaluation failed for rule %s: %s",
                        rule.id,
                        e,
                        extra=build_log_context(rule_id=rule.id, target_id=current.id),
                    )
                    logs.append(
                        self._build_log(
                            rule, current, now, ExecutionOutcome.FAILURE,
                            [f"Condition evaluation failed: {e}"], {},
                        )
                    )
                    continue
                if not matched:
                    continue
                log, current = await self._run_actions(rule, current, now)
                logs.append(log)

        return logs

    async def _run_actions(
        self, rule: RuleRead, record: Any, now: datetime
    ) -> tuple[ExecutionLog, Any]:
        ctx = ActionContext(
            record=record,
            records=self.records,
            messaging=self.messaging,
            now=now,
            rng=self.rng,
            default_channel=self.default_channel,
            messaging_timeout=self.messaging_timeout,
            ab_test=rule.ab_test,
            appointments=self.appointments,
        )
        notes: list[str] = []
        outcome = ExecutionOutcome.SUCCESS

        for action in rule.actions:
            try:
                notes.append(await execute_action(ctx, action))
            except UnsupportedActionError as e:
                outcome = ExecutionOutcome.PARTIAL
                notes.append(f"{action.summary} not applied: {e}")
            except Exception as e:
                outcome = ExecutionOutcome.FAILURE
                notes.append(f"{action.summary} failed: {e}")
                logger.warning(
                    "Action %s failed for rule %s: %s",
                    action.type,
                    rule.id,
                    type(e).__name__,
                    extra=build_log_context(rule_id=rule.id, target_id=record.id),
                )
                break

        extra = {**ctx.details, "variant": ctx.variant}
        return self._build_log(rule, ctx.record, now, outcome, notes, extra), ctx.record

    @staticmethod
    def _build_log(
        rule: RuleRead,
        record: Any,
        now: datetime,
        outcome: ExecutionOutcome,
        notes: list[str],
        extra: dict,
    ) -> ExecutionLog:
        return ExecutionLog(
            id=uuid.uuid4(),
            rule_id=rule.id,
            rule_name=rule.name,
            target_id=record.id,
            target_name=getattr(record, "full_name", None),
            action_summary=", ".join(action.summary for action in rule.actions),
            outcome=outcome.value,
            message=" | ".join(notes),
            timestamp=now,
            details={
                "conditions": [c.model_dump(mode="json") for c in rule.conditions],
                "actions": [a.model_dump(mode="json") for a in rule.actions],
                "notes": notes,
                **extra,
            },
        )

    async def run_once(self, now: datetime | None = None) -> AutomationRunResult:
        """Load rules and records, evaluate, and append every log to the rule store."""
        now = now or utcnow()
        rules = self.rule_store.list_rules()
        records = self.records.get_all()
        logs = await self.evaluate(rules, records, now)
        for log in logs:
            self.rule_store.append_log(log)
        logger.info(
            "Automation run: rules=%d records=%d matches=%d", len(rules), len(records), len(logs)
        )
        return AutomationRunResult(total=len(logs), logs=logs)

    def preview(self, rule: RuleRead, records: list[Any], now: datetime) -> list:
        """Dry run: ids of records the rule would match. Runs no actions."""
        return [record.id for record in records if self.rule_matches(rule, record, now)]

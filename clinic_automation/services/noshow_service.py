"""No-show service - use cases on top of the lifecycle and the case store.

Every mutation follows the same shape: load the case, apply a lifecycle
transition in memory, persist the changed fields with the version that
was read. A concurrent change surfaces as ConflictError.
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError

from clinic_automation.core.constants import (
    NOSHOW_ALERT_THRESHOLD_DAYS,
    NOSHOW_AUTO_LOST_REASON,
    NOSHOW_AUTO_MOTIVE_ATTEMPTS,
    SYSTEM_ACTOR,
)
from clinic_automation.core.errors import AutomationError, ConflictError, NotFoundError
from clinic_automation.core.structured_logging import build_log_context
from clinic_automation.db.enums import FollowUpState, NoShowMotive, ProtocolAction
from clinic_automation.db.models import NoShowCase
from clinic_automation.services import noshow_lifecycle as lifecycle
from clinic_automation.services.record_store import RecordStore
from clinic_automation.utils.datetime_utils import ensure_utc, timestamp_note

logger = logging.getLogger(__name__)

OPEN_STATES = (FollowUpState.PENDING_CONTACT, FollowUpState.IN_FOLLOW_UP)
AUTO_MOTIVE_DETAIL = "Multiple attempts without response"


@dataclass
class ProtocolDetail:
    case_id: UUID
    patient_id: UUID
    days_elapsed: int
    action: ProtocolAction


@dataclass
class ProtocolResult:
    success: bool = True
    processed: int = 0
    marked_lost: int = 0
    upcoming_alerts: int = 0
    failed: int = 0
    details: list[ProtocolDetail] = field(default_factory=list)


class NoShowService:
    def __init__(self, cases: RecordStore[NoShowCase]) -> None:
        self.cases = cases

    def _save(self, case: NoShowCase) -> NoShowCase:
        return self.cases.update(
            case.id, lifecycle.lifecycle_fields(case), expected_version=case.version
        )

    # =========================================================================
    # Registration
    # =========================================================================

    def register_no_show(
        self,
        *,
        appointment_id: UUID,
        patient_id: UUID,
        patient_name: str,
        missed_at: datetime,
        branch_id: str | None = None,
        patient_phone: str | None = None,
        contact_channel: str | None = None,
        social_sender_id: str | None = None,
        created_by: str = SYSTEM_ACTOR,
        now: datetime,
    ) -> NoShowCase:
        """Open a case for a missed appointment. One case per appointment."""
        if self.cases.find_one(appointment_id=appointment_id) is not None:
            raise ConflictError(f"A no-show case already exists for appointment {appointment_id}")

        missed_at = ensure_utc(missed_at)
        case = self.cases.create(
            {
                "appointment_id": appointment_id,
                "patient_id": patient_id,
                "patient_name": patient_name,
                "patient_phone": patient_phone,
                "contact_channel": contact_channel,
                "social_sender_id": social_sender_id,
                "branch_id": branch_id,
                "missed_at": missed_at,
                "response_deadline": lifecycle.response_deadline_for(missed_at),
                "follow_up_state": FollowUpState.PENDING_CONTACT.value,
                "contact_notes": [timestamp_note(f"No-show registered by {created_by}", now)],
                "created_by": created_by,
            }
        )
        logger.info(
            "No-show case opened for appointment %s",
            appointment_id,
            extra=build_log_context(case_id=case.id),
        )
        return case

    # =========================================================================
    # Single-case transitions
    # =========================================================================

    def get_case(self, case_id: UUID) -> NoShowCase:
        return self.cases.get_by_id(case_id)

    def register_contact_attempt(
        self,
        case_id: UUID,
        note: str,
        *,
        succeeded: bool,
        now: datetime,
        patient_response: str | None = None,
        performed_by: str = SYSTEM_ACTOR,
    ) -> NoShowCase:
        """Log an attempt; after repeated silence the NoResponde motive is assigned."""
        case = self.cases.get_by_id(case_id)
        lifecycle.register_contact_attempt(
            case,
            note,
            succeeded=succeeded,
            now=now,
            patient_response=patient_response,
            performed_by=performed_by,
        )
        if (
            not succeeded
            and not case.motive
            and case.contact_attempts >= NOSHOW_AUTO_MOTIVE_ATTEMPTS
        ):
            lifecycle.assign_motive(case, NoShowMotive.NO_RESPONDE, AUTO_MOTIVE_DETAIL, now=now)
        return self._save(case)

    def assign_motive(
        self,
        case_id: UUID,
        motive: NoShowMotive | str,
        detail: str | None = None,
        *,
        now: datetime,
    ) -> NoShowCase:
        case = self.cases.get_by_id(case_id)
        lifecycle.assign_motive(case, motive, detail, now=now)
        return self._save(case)

    def register_reschedule(
        self,
        case_id: UUID,
        new_appointment_id: UUID,
        *,
        now: datetime,
        notes: str | None = None,
    ) -> NoShowCase:
        case = self.cases.get_by_id(case_id)
        lifecycle.register_reschedule(case, new_appointment_id, now=now, notes=notes)
        return self._save(case)

    def mark_lost(self, case_id: UUID, reason: str, *, now: datetime) -> NoShowCase:
        case = self.cases.get_by_id(case_id)
        lifecycle.mark_lost(case, reason, now=now)
        return self._save(case)

    # =========================================================================
    # 7-day protocol
    # =========================================================================

    def process_protocol(self, now: datetime) -> ProtocolResult:
        """Close overdue open cases as lost and count upcoming deadlines.

        Safe to re-run: closed cases are skipped. A case whose update
        fails stays open and is picked up again on the next tick.
        """
        result = ProtocolResult()
        for case in self.cases.find(follow_up_state=list(OPEN_STATES)):
            if lifecycle.is_terminal(case):
                continue
            result.processed += 1
            status = lifecycle.evaluate_deadline(case, now)

            if status.days_until_deadline <= 0:
                try:
                    lifecycle.mark_lost(case, NOSHOW_AUTO_LOST_REASON, now=now)
                    self._save(case)
                except (AutomationError, SQLAlchemyError) as e:
                    result.failed += 1
                    logger.warning(
                        "Protocol could not close case %s: %s",
                        case.id,
                        e,
                        extra=build_log_context(job="noshow_protocol", case_id=case.id),
                    )
                    continue
                result.marked_lost += 1
                action = ProtocolAction.MARKED_LOST
            elif status.days_until_deadline <= NOSHOW_ALERT_THRESHOLD_DAYS:
                result.upcoming_alerts += 1
                action = ProtocolAction.UPCOMING_ALERT
            else:
                action = ProtocolAction.WITHIN_DEADLINE

            result.details.append(
                ProtocolDetail(
                    case_id=case.id,
                    patient_id=case.patient_id,
                    days_elapsed=status.days_since_missed,
                    action=action,
                )
            )

        logger.info(
            "No-show protocol: processed=%d lost=%d alerts=%d failed=%d",
            result.processed,
            result.marked_lost,
            result.upcoming_alerts,
            result.failed,
        )
        return result

    def upcoming_deadlines(
        self, now: datetime, days: int = NOSHOW_ALERT_THRESHOLD_DAYS
    ) -> list[tuple[NoShowCase, lifecycle.DeadlineStatus]]:
        """Open cases whose deadline is within `days` (but not yet passed)."""
        upcoming = []
        for case in self.cases.find(follow_up_state=list(OPEN_STATES)):
            if lifecycle.is_terminal(case):
                continue
            status = lifecycle.evaluate_deadline(case, now)
            if 0 < status.days_until_deadline <= days:
                upcoming.append((case, status))
        upcoming.sort(key=lambda item: item[1].days_until_deadline)
        return upcoming

    # =========================================================================
    # Queries and reports
    # =========================================================================

    def list_by_state(self, state: FollowUpState | str | None = None) -> list[NoShowCase]:
        if state is None:
            return self.cases.get_all()
        return self.cases.find(follow_up_state=FollowUpState(state).value)

    def reschedulable(self, now: datetime) -> list[tuple[NoShowCase, lifecycle.DeadlineStatus]]:
        """Open, unblocked cases still inside the deadline, most urgent first."""
        candidates = []
        for case in self.cases.find(follow_up_state=list(OPEN_STATES)):
            if lifecycle.is_terminal(case):
                continue
            status = lifecycle.evaluate_deadline(case, now)
            if status.days_until_deadline > 0:
                candidates.append((case, status))
        candidates.sort(key=lambda item: item[1].days_until_deadline)
        return candidates

    def lost_report(self, branch_id: str | None = None) -> dict[str, Any]:
        """Lost cases counted by motive and by month (YYYY-MM of lost_at)."""
        criteria: dict[str, Any] = {"follow_up_state": FollowUpState.LOST.value}
        if branch_id:
            criteria["branch_id"] = branch_id
        lost = self.cases.find(**criteria)
        by_motive = Counter(case.motive or "unassigned" for case in lost)
        by_month = Counter(
            ensure_utc(case.lost_at).strftime("%Y-%m") for case in lost if case.lost_at
        )
        return {
            "total": len(lost),
            "by_motive": dict(by_motive),
            "by_month": dict(sorted(by_month.items())),
        }

    def patient_history(self, patient_id: UUID) -> dict[str, Any]:
        """All cases for a patient plus the share that ended rescheduled."""
        cases = self.cases.find(patient_id=patient_id)
        if not cases:
            raise NotFoundError(f"No no-show cases for patient {patient_id}")
        rescheduled = sum(1 for c in cases if c.follow_up_state == FollowUpState.RESCHEDULED.value)
        return {
            "patient_id": patient_id,
            "total": len(cases),
            "rescheduled": rescheduled,
            "lost": sum(1 for c in cases if c.lost_flag),
            "blocked": any(c.blocked_flag for c in cases),
            "recovery_rate": round(rescheduled / len(cases) * 100, 1),
            "cases": cases,
        }

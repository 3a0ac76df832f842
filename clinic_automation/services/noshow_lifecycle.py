"""No-show follow-up state machine (the 7-day protocol).

States: PendingContact (initial), InFollowUp, and the terminal states
Rescheduled, Lost and Blocked. Transition functions are pure apart from
mutating the case passed in, and take `now` explicitly. A rejected
transition raises before touching the case.

    PendingContact --contact attempt / motive--> InFollowUp
    (non-terminal) --motive RazaBrava----------> Blocked
    (non-terminal) --reschedule----------------> Rescheduled
    (non-terminal) --mark lost-----------------> Lost
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any
from uuid import UUID

from clinic_automation.core.constants import NOSHOW_ALERT_THRESHOLD_DAYS, NOSHOW_RESPONSE_WINDOW_DAYS, SYSTEM_ACTOR
from clinic_automation.core.errors import ConflictError, StateError, ValidationError
from clinic_automation.core.motive_catalog import MotiveDescriptor, campaign_id_for, get_motive
from clinic_automation.db.enums import FollowUpState, NoShowMotive, TERMINAL_FOLLOW_UP_STATES
from clinic_automation.utils.datetime_utils import ensure_utc, timestamp_note, whole_days_between

BLOCKED_MESSAGE = "patient blocked, no further contact"
DIFFICULT_PATIENT_REASON = "difficult patient"

# Fields a transition may change; persisted together with the version token.
LIFECYCLE_FIELDS = (
    "follow_up_state",
    "motive",
    "motive_detail",
    "contact_attempts",
    "last_attempt_at",
    "next_attempt_at",
    "contact_notes",
    "in_recovery_list",
    "recovery_listed_at",
    "campaign_id",
    "lost_flag",
    "lost_at",
    "blocked_flag",
    "block_reason",
    "blocked_at",
    "new_appointment_id",
    "rescheduled_at",
)


def lifecycle_fields(case: Any) -> dict[str, Any]:
    return {name: getattr(case, name) for name in LIFECYCLE_FIELDS}


def response_deadline_for(missed_at: datetime) -> datetime:
    return ensure_utc(missed_at) + timedelta(days=NOSHOW_RESPONSE_WINDOW_DAYS)


def state_of(case: Any) -> FollowUpState:
    return FollowUpState(case.follow_up_state)


def is_terminal(case: Any) -> bool:
    return case.blocked_flag or case.lost_flag or state_of(case) in TERMINAL_FOLLOW_UP_STATES


def _resolve_motive(motive: NoShowMotive | str) -> MotiveDescriptor:
    try:
        return get_motive(motive)
    except (KeyError, ValueError) as exc:
        raise ValidationError(f"Unknown no-show motive: {motive}") from exc


def _guard_contactable(case: Any) -> None:
    if case.blocked_flag or state_of(case) == FollowUpState.BLOCKED:
        raise StateError(BLOCKED_MESSAGE)
    if is_terminal(case):
        raise StateError(f"Case is {case.follow_up_state}; no further contact")


def _append_note(case: Any, text: str, now: datetime) -> None:
    case.contact_notes = [*(case.contact_notes or []), timestamp_note(text, now)]


def _leave_recovery(case: Any) -> None:
    case.in_recovery_list = False


def _schedule_next_attempt(case: Any, descriptor: MotiveDescriptor, now: datetime) -> None:
    if descriptor.recontact_delay_days > 0:
        case.next_attempt_at = now + timedelta(days=descriptor.recontact_delay_days)


# =============================================================================
# Transitions
# =============================================================================


def register_contact_attempt(
    case: Any,
    note: str,
    *,
    succeeded: bool,
    now: datetime,
    patient_response: str | None = None,
    performed_by: str = SYSTEM_ACTOR,
) -> None:
    """Record a contact attempt and move the case into follow-up."""
    _guard_contactable(case)

    if succeeded:
        text = f"[{performed_by}] CONTACT SUCCEEDED - {note}"
        if patient_response:
            text += f" | Response: {patient_response}"
    else:
        text = f"[{performed_by}] No response - {note}"

    case.contact_attempts = (case.contact_attempts or 0) + 1
    case.last_attempt_at = now
    _append_note(case, text, now)
    if case.motive:
        _schedule_next_attempt(case, _resolve_motive(case.motive), now)
    case.follow_up_state = FollowUpState.IN_FOLLOW_UP.value


def assign_motive(
    case: Any,
    motive: NoShowMotive | str,
    detail: str | None = None,
    *,
    now: datetime,
) -> None:
    """Assign (or reassign) the no-show motive.

    A difficult patient (RazaBrava) is blocked from all further contact
    and taken off the recovery list. Other motives that require recovery
    put the case on the list under RECOVERY_<motive>.
    """
    _guard_contactable(case)
    descriptor = _resolve_motive(motive)

    case.motive = descriptor.motive.value
    case.motive_detail = detail

    if descriptor.motive == NoShowMotive.RAZA_BRAVA:
        case.blocked_flag = True
        case.block_reason = DIFFICULT_PATIENT_REASON
        case.blocked_at = now
        case.follow_up_state = FollowUpState.BLOCKED.value
        _leave_recovery(case)
        _append_note(case, f"BLOCKED FROM MARKETING: {DIFFICULT_PATIENT_REASON}", now)
        return

    if descriptor.requires_recovery:
        case.in_recovery_list = True
        case.recovery_listed_at = now
        case.campaign_id = campaign_id_for(descriptor.motive)
    else:
        _leave_recovery(case)
    _schedule_next_attempt(case, descriptor, now)
    case.follow_up_state = FollowUpState.IN_FOLLOW_UP.value
    suffix = f" - {detail}" if detail else ""
    _append_note(case, f"Motive assigned: {descriptor.motive.value}{suffix}", now)


def register_reschedule(
    case: Any,
    new_appointment_id: UUID,
    *,
    now: datetime,
    notes: str | None = None,
) -> None:
    """Close the case as recovered with a new appointment."""
    if case.new_appointment_id is not None:
        raise ConflictError(f"Case already rescheduled to appointment {case.new_appointment_id}")
    if case.blocked_flag:
        raise StateError(f"{BLOCKED_MESSAGE}; cannot reschedule")
    if is_terminal(case):
        raise StateError(f"Case is {case.follow_up_state}; cannot reschedule")

    case.new_appointment_id = new_appointment_id
    case.rescheduled_at = now
    case.follow_up_state = FollowUpState.RESCHEDULED.value
    _leave_recovery(case)
    text = f"RESCHEDULED - new appointment: {new_appointment_id}"
    if notes:
        text += f" | {notes}"
    _append_note(case, text, now)


def mark_lost(case: Any, reason: str, *, now: datetime) -> None:
    if is_terminal(case):
        raise StateError(f"Case is {case.follow_up_state}; cannot mark lost")
    case.lost_flag = True
    case.lost_at = now
    case.follow_up_state = FollowUpState.LOST.value
    _leave_recovery(case)
    _append_note(case, f"MARKED LOST: {reason}", now)


# =============================================================================
# Deadline evaluation
# =============================================================================


@dataclass(frozen=True)
class DeadlineStatus:
    state: FollowUpState
    days_since_missed: int
    days_until_deadline: int
    action_required: bool
    message: str


_TERMINAL_MESSAGES = {
    FollowUpState.BLOCKED: "Patient blocked - no further contact",
    FollowUpState.LOST: "Case lost - protocol closed",
    FollowUpState.RESCHEDULED: "Recovered - appointment rescheduled",
}


def evaluate_deadline(case: Any, now: datetime) -> DeadlineStatus:
    """Where the case stands against its 7-day response deadline."""
    state = state_of(case)
    days_since = whole_days_between(case.missed_at, now)
    days_left = whole_days_between(now, case.response_deadline)

    if state in _TERMINAL_MESSAGES:
        return DeadlineStatus(state, days_since, days_left, False, _TERMINAL_MESSAGES[state])
    if days_left <= 0:
        return DeadlineStatus(state, days_since, days_left, True, "mark lost: response deadline reached")
    if days_left <= NOSHOW_ALERT_THRESHOLD_DAYS:
        return DeadlineStatus(state, days_since, days_left, True, f"alert: {days_left} days left")
    if case.next_attempt_at and ensure_utc(case.next_attempt_at) <= ensure_utc(now):
        return DeadlineStatus(state, days_since, days_left, True, "needs new contact attempt")
    return DeadlineStatus(state, days_since, days_left, False, f"in follow-up, {days_left} days left")

import uuid
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest

from clinic_automation.core.errors import ConflictError, StateError, ValidationError
from clinic_automation.services import noshow_lifecycle as lifecycle

MISSED_AT = datetime(2026, 1, 20, 10, 0, tzinfo=timezone.utc)


def _case(**overrides):
    fields = {
        "id": uuid.uuid4(),
        "missed_at": MISSED_AT,
        "response_deadline": lifecycle.response_deadline_for(MISSED_AT),
        "follow_up_state": "PendingContact",
        "motive": None,
        "motive_detail": None,
        "contact_attempts": 0,
        "last_attempt_at": None,
        "next_attempt_at": None,
        "contact_notes": [],
        "in_recovery_list": False,
        "recovery_listed_at": None,
        "campaign_id": None,
        "lost_flag": False,
        "lost_at": None,
        "blocked_flag": False,
        "block_reason": None,
        "blocked_at": None,
        "new_appointment_id": None,
        "rescheduled_at": None,
    }
    fields.update(overrides)
    return SimpleNamespace(**fields)


def test_response_deadline_is_seven_days_after_missed():
    assert lifecycle.response_deadline_for(MISSED_AT) == datetime(
        2026, 1, 27, 10, 0, tzinfo=timezone.utc
    )


def test_contact_attempt_moves_case_into_follow_up():
    case = _case()
    now = MISSED_AT + timedelta(days=1)

    lifecycle.register_contact_attempt(case, "Called, voicemail", succeeded=False, now=now)

    assert case.follow_up_state == "InFollowUp"
    assert case.contact_attempts == 1
    assert case.last_attempt_at == now
    assert case.contact_notes == [f"[{now.isoformat()}] [System] No response - Called, voicemail"]


def test_successful_attempt_records_patient_response():
    case = _case()
    now = MISSED_AT + timedelta(days=1)

    lifecycle.register_contact_attempt(
        case, "Reached on WhatsApp", succeeded=True, now=now,
        patient_response="Will call back", performed_by="Agent Ruiz",
    )

    assert case.contact_notes[-1].endswith(
        "[Agent Ruiz] CONTACT SUCCEEDED - Reached on WhatsApp | Response: Will call back"
    )


def test_economico_motive_puts_case_on_recovery_list():
    case = _case()
    now = MISSED_AT + timedelta(days=1)

    lifecycle.assign_motive(case, "Economico", "Cannot pay this month", now=now)

    assert case.motive == "Economico"
    assert case.in_recovery_list is True
    assert case.recovery_listed_at == now
    assert case.campaign_id == "RECOVERY_Economico"
    assert case.next_attempt_at == now + timedelta(days=2)
    assert case.follow_up_state == "InFollowUp"


def test_motive_without_recovery_leaves_the_list():
    case = _case(in_recovery_list=True, campaign_id="RECOVERY_Olvido")

    lifecycle.assign_motive(case, "Competencia", now=MISSED_AT + timedelta(days=1))

    assert case.in_recovery_list is False
    assert case.next_attempt_at is None


def test_unknown_motive_is_rejected():
    case = _case()
    with pytest.raises(ValidationError):
        lifecycle.assign_motive(case, "Weather", now=MISSED_AT)
    assert case.motive is None


def test_difficult_patient_is_blocked_for_good():
    case = _case(in_recovery_list=True)
    now = MISSED_AT + timedelta(days=2)

    lifecycle.assign_motive(case, "RazaBrava", now=now)

    assert case.follow_up_state == "Blocked"
    assert case.blocked_flag is True
    assert case.block_reason == "difficult patient"
    assert case.in_recovery_list is False

    with pytest.raises(StateError, match="patient blocked"):
        lifecycle.register_contact_attempt(case, "Try again", succeeded=False, now=now)
    with pytest.raises(StateError):
        lifecycle.assign_motive(case, "Olvido", now=now)
    with pytest.raises(StateError):
        lifecycle.register_reschedule(case, uuid.uuid4(), now=now)
    with pytest.raises(StateError):
        lifecycle.mark_lost(case, "manual", now=now)


def test_reschedule_is_terminal_and_not_repeatable():
    case = _case(in_recovery_list=True)
    now = MISSED_AT + timedelta(days=3)
    new_appointment = uuid.uuid4()

    lifecycle.register_reschedule(case, new_appointment, now=now, notes="Moved to Friday")

    assert case.follow_up_state == "Rescheduled"
    assert case.new_appointment_id == new_appointment
    assert case.in_recovery_list is False
    assert "Moved to Friday" in case.contact_notes[-1]

    with pytest.raises(ConflictError):
        lifecycle.register_reschedule(case, uuid.uuid4(), now=now)
    with pytest.raises(StateError):
        lifecycle.mark_lost(case, "late", now=now)
    with pytest.raises(StateError):
        lifecycle.register_contact_attempt(case, "follow-up", succeeded=True, now=now)


def test_mark_lost_twice_is_rejected():
    case = _case()
    now = MISSED_AT + timedelta(days=8)

    lifecycle.mark_lost(case, "No answer", now=now)

    assert case.follow_up_state == "Lost"
    assert case.lost_flag is True
    assert case.lost_at == now
    with pytest.raises(StateError):
        lifecycle.mark_lost(case, "again", now=now)


def test_deadline_status_within_window():
    status = lifecycle.evaluate_deadline(_case(), MISSED_AT + timedelta(days=2))

    assert status.days_since_missed == 2
    assert status.days_until_deadline == 5
    assert status.action_required is False


def test_deadline_status_alert_when_two_days_left():
    status = lifecycle.evaluate_deadline(_case(), MISSED_AT + timedelta(days=5))

    assert status.days_until_deadline == 2
    assert status.action_required is True
    assert status.message.startswith("alert")


def test_deadline_status_overdue():
    status = lifecycle.evaluate_deadline(_case(), MISSED_AT + timedelta(days=7))

    assert status.days_until_deadline == 0
    assert status.action_required is True
    assert "mark lost" in status.message


def test_deadline_status_one_second_past_deadline():
    status = lifecycle.evaluate_deadline(_case(), MISSED_AT + timedelta(days=7, seconds=1))

    assert status.days_until_deadline < 0
    assert status.action_required is True
    assert "mark lost" in status.message


def test_lost_case_rejects_motive_and_contact_without_moving():
    case = _case()
    lifecycle.mark_lost(case, "No answer", now=MISSED_AT + timedelta(days=7))

    with pytest.raises(StateError):
        lifecycle.assign_motive(case, "Salud", now=MISSED_AT + timedelta(days=8))
    with pytest.raises(StateError):
        lifecycle.register_contact_attempt(
            case, "late call", succeeded=False, now=MISSED_AT + timedelta(days=8)
        )

    assert case.follow_up_state == "Lost"
    assert case.motive is None
    assert case.contact_attempts == 0
    assert sum("MARKED LOST" in note for note in case.contact_notes) == 1


def test_deadline_status_due_recontact():
    now = MISSED_AT + timedelta(days=1)
    case = _case(follow_up_state="InFollowUp", next_attempt_at=now - timedelta(hours=1))

    status = lifecycle.evaluate_deadline(case, now)

    assert status.action_required is True
    assert status.message == "needs new contact attempt"


def test_deadline_status_terminal_needs_no_action():
    case = _case(follow_up_state="Rescheduled")

    status = lifecycle.evaluate_deadline(case, MISSED_AT + timedelta(days=30))

    assert status.action_required is False
    assert status.state.value == "Rescheduled"

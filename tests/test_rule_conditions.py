from datetime import timedelta
from decimal import Decimal
from types import SimpleNamespace

import pytest
from pydantic import ValidationError as PydanticValidationError

from clinic_automation.schemas.automation import (
    BranchCondition,
    ChannelCondition,
    DaysWithoutResponseCondition,
    FreeTextCondition,
    MessagingWindowCondition,
    NumericThresholdCondition,
    SourceCondition,
    StatusCondition,
    TagCondition,
    TimeInStatusCondition,
)
from clinic_automation.services.rule_conditions import (
    days_since_last_response,
    evaluate_condition,
    evaluate_conditions,
    hours_in_current_status,
)
from conftest import NOW


def _record(**overrides):
    fields = {
        "status": "new",
        "origin": "WhatsApp",
        "tags": [],
        "branch_id": None,
        "branch_name": None,
        "campaign": None,
        "service": None,
        "source": None,
        "reason_detail": None,
        "notes": None,
        "lead_value": None,
        "attempt_count": 0,
        "last_response_at": None,
        "status_changed_at": None,
        "created_at": NOW - timedelta(days=2),
    }
    fields.update(overrides)
    return SimpleNamespace(**fields)


def test_status_comparison_is_trimmed_and_case_insensitive():
    condition = StatusCondition(type="status", operator="=", value=" NEW ")
    assert evaluate_condition(_record(status="New"), condition, NOW)


def test_status_in_accepts_csv_values():
    condition = StatusCondition(type="status", operator="in", value="new, contacting")
    assert evaluate_condition(_record(status="contacting"), condition, NOW)
    assert not evaluate_condition(_record(status="lost"), condition, NOW)


def test_channel_social_alias_expands_to_facebook_and_instagram():
    condition = ChannelCondition(type="channel", operator="in", value="social")
    assert evaluate_condition(_record(origin="Instagram"), condition, NOW)
    assert evaluate_condition(_record(origin="Facebook"), condition, NOW)
    assert not evaluate_condition(_record(origin="WhatsApp"), condition, NOW)


def test_tag_contains_and_not_contains():
    record = _record(tags=["No show", "Hot"])
    assert evaluate_condition(record, TagCondition(type="tag", operator="contains", value="no"), NOW)
    assert evaluate_condition(
        record, TagCondition(type="tag", operator="not-contains", value="Lead"), NOW
    )
    assert not evaluate_condition(record, TagCondition(type="tag", operator="=", value="Lead"), NOW)


def test_branch_matches_id_or_name():
    record = _record(branch_id="north", branch_name="Norte Centro")
    assert evaluate_condition(record, BranchCondition(type="branch", operator="=", value="north"), NOW)
    assert evaluate_condition(
        record, BranchCondition(type="branch", operator="=", value="norte centro"), NOW
    )


def test_branch_negative_operator_must_hold_for_id_and_name():
    record = _record(branch_id="north", branch_name="Norte Centro")
    condition = BranchCondition(type="branch", operator="!=", value="north")
    assert not evaluate_condition(record, condition, NOW)


def test_source_falls_back_to_origin():
    condition = SourceCondition(type="source", operator="=", value="facebook")
    assert evaluate_condition(_record(source=None, origin="Facebook"), condition, NOW)
    assert not evaluate_condition(_record(source="Google Ads", origin="Facebook"), condition, NOW)


def test_free_text_searches_reason_and_notes():
    condition = FreeTextCondition(type="free-text-contains", operator="contains", value="price")
    assert evaluate_condition(_record(reason_detail="Asked about PRICE list"), condition, NOW)
    assert evaluate_condition(_record(notes="price too high"), condition, NOW)
    assert not evaluate_condition(_record(), condition, NOW)


def test_numeric_threshold_uses_lead_value():
    condition = NumericThresholdCondition(type="numeric-threshold", operator=">=", value=1500)
    assert evaluate_condition(_record(lead_value=Decimal("1500.00")), condition, NOW)
    assert not evaluate_condition(_record(lead_value=None), condition, NOW)


def test_days_without_response_falls_back_to_created_at():
    assert days_since_last_response(_record(last_response_at=NOW - timedelta(days=9)), NOW) == 9
    assert days_since_last_response(_record(created_at=NOW - timedelta(hours=47)), NOW) == 1

    condition = DaysWithoutResponseCondition(type="days-without-response", operator=">", value=7)
    assert evaluate_condition(_record(last_response_at=NOW - timedelta(days=8)), condition, NOW)
    assert not evaluate_condition(_record(), condition, NOW)


def test_days_without_response_never_negative():
    record = _record(last_response_at=NOW + timedelta(days=1))
    assert days_since_last_response(record, NOW) == 0


def test_messaging_window_only_applies_to_social_channels():
    condition = MessagingWindowCondition(type="messaging-window", operator="<=", value=7)
    stale = NOW - timedelta(days=30)

    assert evaluate_condition(_record(origin="WhatsApp", last_response_at=stale), condition, NOW)
    assert not evaluate_condition(_record(origin="Instagram", last_response_at=stale), condition, NOW)
    assert evaluate_condition(
        _record(origin="Instagram", last_response_at=NOW - timedelta(days=3)), condition, NOW
    )


def test_time_in_status_counts_whole_hours():
    record = _record(status_changed_at=NOW - timedelta(hours=24, minutes=59))
    assert hours_in_current_status(record, NOW) == 24

    condition = TimeInStatusCondition(type="time-in-status", operator=">", value=24)
    assert not evaluate_condition(record, condition, NOW)
    assert evaluate_condition(_record(status_changed_at=NOW - timedelta(hours=25)), condition, NOW)


def test_conditions_are_anded():
    conditions = [
        StatusCondition(type="status", operator="=", value="new"),
        ChannelCondition(type="channel", operator="=", value="WhatsApp"),
    ]
    assert evaluate_conditions(_record(), conditions, NOW)
    assert not evaluate_conditions(_record(origin="Email"), conditions, NOW)


def test_operator_must_fit_condition_kind():
    with pytest.raises(PydanticValidationError):
        TagCondition(type="tag", operator=">", value="Lead")
    with pytest.raises(PydanticValidationError):
        FreeTextCondition(type="free-text-contains", operator="=", value="price")
    with pytest.raises(PydanticValidationError):
        DaysWithoutResponseCondition(type="days-without-response", operator="contains", value=3)


def test_list_operator_requires_values():
    with pytest.raises(PydanticValidationError):
        StatusCondition(type="status", operator="in", value=" , ")

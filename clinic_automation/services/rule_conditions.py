"""Condition evaluation for automation rules.

Every evaluator is a pure function of (record, condition, now). There is
exactly one evaluator per condition kind; the table is checked against
the closed condition union at import time.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Callable

from clinic_automation.core.constants import SOCIAL_CHANNEL_ALIAS, SOCIAL_CHANNELS
from clinic_automation.db.enums import ConditionOperator
from clinic_automation.schemas.automation import (
    CONDITION_CLASSES,
    CONDITION_TYPES,
    AttemptCountCondition,
    BranchCondition,
    CampaignCondition,
    ChannelCondition,
    DaysWithoutResponseCondition,
    FreeTextCondition,
    MessagingWindowCondition,
    NumericThresholdCondition,
    ServiceCondition,
    SourceCondition,
    StatusCondition,
    TagCondition,
    TimeInStatusCondition,
    split_list_value,
    type_tag,
)
from clinic_automation.utils.datetime_utils import whole_days_between, whole_hours_between

_NEGATIVE_OPERATORS = frozenset(
    {ConditionOperator.NOT_EQUALS, ConditionOperator.NOT_CONTAINS, ConditionOperator.NOT_IN}
)
_SOCIAL_NORMALIZED = frozenset(c.casefold() for c in SOCIAL_CHANNELS)


def _normalize(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip().casefold()


# =============================================================================
# Derived facts
# =============================================================================


def days_since_last_response(record: Any, now: datetime) -> int:
    """Whole days since the last response (or creation), never negative."""
    reference = record.last_response_at or record.created_at
    return max(0, whole_days_between(reference, now))


def hours_in_current_status(record: Any, now: datetime) -> int:
    """Whole hours since the last status change (or creation), never negative."""
    reference = record.status_changed_at or record.created_at
    return max(0, whole_hours_between(reference, now))


def is_social_origin(record: Any) -> bool:
    return _normalize(record.origin) in _SOCIAL_NORMALIZED


# =============================================================================
# Comparisons
# =============================================================================


def compare_text(actual: Any, operator: ConditionOperator, expected: Any) -> bool:
    """String comparison on normalized (trimmed, case-folded) values."""
    value = _normalize(actual)

    if operator == ConditionOperator.EQUALS:
        return value == _normalize(expected)
    if operator == ConditionOperator.NOT_EQUALS:
        return value != _normalize(expected)
    if operator == ConditionOperator.CONTAINS:
        return _normalize(expected) in value
    if operator == ConditionOperator.NOT_CONTAINS:
        return _normalize(expected) not in value
    if operator == ConditionOperator.IN:
        return value in {_normalize(v) for v in split_list_value(expected)}
    if operator == ConditionOperator.NOT_IN:
        return value not in {_normalize(v) for v in split_list_value(expected)}
    return False


def compare_number(actual: float, operator: ConditionOperator, expected: float) -> bool:
    if operator == ConditionOperator.GREATER_THAN:
        return actual > expected
    if operator == ConditionOperator.LESS_THAN:
        return actual < expected
    if operator == ConditionOperator.GREATER_OR_EQUAL:
        return actual >= expected
    if operator == ConditionOperator.LESS_OR_EQUAL:
        return actual <= expected
    if operator == ConditionOperator.EQUALS:
        return actual == expected
    if operator == ConditionOperator.NOT_EQUALS:
        return actual != expected
    return False


def expand_channels(values: list[str]) -> list[str]:
    """Replace the "social" pseudo-value with Facebook and Instagram."""
    expanded: list[str] = []
    for value in values:
        if _normalize(value) == SOCIAL_CHANNEL_ALIAS:
            expanded.extend(SOCIAL_CHANNELS)
        else:
            expanded.append(value)
    return expanded


# =============================================================================
# Evaluators (one per condition kind)
# =============================================================================


def _status(record: Any, condition: StatusCondition, now: datetime) -> bool:
    return compare_text(record.status, condition.operator, condition.value)


def _channel(record: Any, condition: ChannelCondition, now: datetime) -> bool:
    value: Any = condition.value
    if condition.operator in (ConditionOperator.IN, ConditionOperator.NOT_IN):
        value = expand_channels(split_list_value(value))
    return compare_text(record.origin, condition.operator, value)


def _tag(record: Any, condition: TagCondition, now: datetime) -> bool:
    tags = {_normalize(t) for t in (record.tags or [])}
    operator = condition.operator

    if operator in (ConditionOperator.IN, ConditionOperator.NOT_IN):
        wanted = {_normalize(v) for v in split_list_value(condition.value)}
        present = bool(tags & wanted)
        return present if operator == ConditionOperator.IN else not present

    expected = _normalize(condition.value)
    if operator == ConditionOperator.EQUALS:
        return expected in tags
    if operator == ConditionOperator.NOT_EQUALS:
        return expected not in tags
    if operator == ConditionOperator.CONTAINS:
        return any(expected in tag for tag in tags)
    if operator == ConditionOperator.NOT_CONTAINS:
        return not any(expected in tag for tag in tags)
    return False


def _branch(record: Any, condition: BranchCondition, now: datetime) -> bool:
    # A branch is identified by id or by name; negative operators must hold for both.
    candidates = [v for v in (record.branch_id, record.branch_name) if v] or [None]
    results = (compare_text(c, condition.operator, condition.value) for c in candidates)
    if condition.operator in _NEGATIVE_OPERATORS:
        return all(results)
    return any(results)


def _campaign(record: Any, condition: CampaignCondition, now: datetime) -> bool:
    return compare_text(record.campaign, condition.operator, condition.value)


def _service(record: Any, condition: ServiceCondition, now: datetime) -> bool:
    return compare_text(record.service, condition.operator, condition.value)


def _source(record: Any, condition: SourceCondition, now: datetime) -> bool:
    return compare_text(record.source or record.origin, condition.operator, condition.value)


def _free_text(record: Any, condition: FreeTextCondition, now: datetime) -> bool:
    text = f"{record.reason_detail or ''} {record.notes or ''}"
    return compare_text(text, condition.operator, condition.value)


def _numeric_threshold(record: Any, condition: NumericThresholdCondition, now: datetime) -> bool:
    return compare_number(float(record.lead_value or 0), condition.operator, condition.value)


def _attempt_count(record: Any, condition: AttemptCountCondition, now: datetime) -> bool:
    return compare_number(float(record.attempt_count or 0), condition.operator, condition.value)


def _days_without_response(
    record: Any, condition: DaysWithoutResponseCondition, now: datetime
) -> bool:
    return compare_number(days_since_last_response(record, now), condition.operator, condition.value)


def _messaging_window(record: Any, condition: MessagingWindowCondition, now: datetime) -> bool:
    # Only Messenger/Instagram have a reply window; other channels always pass.
    if not is_social_origin(record):
        return True
    return compare_number(days_since_last_response(record, now), condition.operator, condition.value)


def _time_in_status(record: Any, condition: TimeInStatusCondition, now: datetime) -> bool:
    return compare_number(hours_in_current_status(record, now), condition.operator, condition.value)


CONDITION_EVALUATORS: dict[type, Callable[[Any, Any, datetime], bool]] = {
    StatusCondition: _status,
    NumericThresholdCondition: _numeric_threshold,
    ChannelCondition: _channel,
    TagCondition: _tag,
    BranchCondition: _branch,
    CampaignCondition: _campaign,
    ServiceCondition: _service,
    SourceCondition: _source,
    AttemptCountCondition: _attempt_count,
    DaysWithoutResponseCondition: _days_without_response,
    MessagingWindowCondition: _messaging_window,
    FreeTextCondition: _free_text,
    TimeInStatusCondition: _time_in_status,
}


def _check_exhaustive() -> None:
    missing = [cls.__name__ for cls in CONDITION_CLASSES if cls not in CONDITION_EVALUATORS]
    tags = {type_tag(cls) for cls in CONDITION_CLASSES}
    if missing or tags != CONDITION_TYPES:
        raise RuntimeError(
            f"Condition dispatch out of sync: missing={missing}, "
            f"unmapped={sorted(CONDITION_TYPES - tags)}"
        )


_check_exhaustive()


def evaluate_condition(record: Any, condition: Any, now: datetime) -> bool:
    return CONDITION_EVALUATORS[type(condition)](record, condition, now)


def evaluate_conditions(record: Any, conditions: list, now: datetime) -> bool:
    """AND semantics; stops at the first failing condition."""
    return all(evaluate_condition(record, condition, now) for condition in conditions)

"""Pydantic schemas for automation rules and execution logs."""

from __future__ import annotations

import re
import uuid
from datetime import datetime
from typing import Annotated, ClassVar, Literal, Union, get_args
from uuid import UUID
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from clinic_automation.core.constants import PRIORITY_RANK
from clinic_automation.db.enums import (
    ActionType,
    ConditionOperator,
    ConditionType,
    PauseScope,
    RulePriority,
)
from clinic_automation.utils.datetime_utils import ensure_utc


WEEKDAYS = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")
_HHMM_RE = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")

_STRING_OPERATORS = frozenset(
    {
        ConditionOperator.EQUALS,
        ConditionOperator.NOT_EQUALS,
        ConditionOperator.CONTAINS,
        ConditionOperator.NOT_CONTAINS,
        ConditionOperator.IN,
        ConditionOperator.NOT_IN,
    }
)
_TEXT_OPERATORS = frozenset({ConditionOperator.CONTAINS, ConditionOperator.NOT_CONTAINS})
_NUMERIC_OPERATORS = frozenset(
    {
        ConditionOperator.GREATER_THAN,
        ConditionOperator.LESS_THAN,
        ConditionOperator.GREATER_OR_EQUAL,
        ConditionOperator.LESS_OR_EQUAL,
        ConditionOperator.EQUALS,
        ConditionOperator.NOT_EQUALS,
    }
)
_LIST_OPERATORS = frozenset({ConditionOperator.IN, ConditionOperator.NOT_IN})


def _new_id() -> str:
    return uuid.uuid4().hex[:12]


def split_list_value(value: object) -> list[str]:
    """Normalize an in/not-in value (list or comma-separated string) to a list."""
    if value is None:
        return []
    if isinstance(value, list):
        return [str(v).strip() for v in value if str(v).strip()]
    if isinstance(value, str):
        return [v.strip() for v in value.split(",") if v.strip()]
    return [str(value).strip()] if str(value).strip() else []


# =============================================================================
# Condition Schemas
# =============================================================================


class _ConditionBase(BaseModel):
    allowed_operators: ClassVar[frozenset[ConditionOperator]] = frozenset()

    id: str = Field(default_factory=_new_id)
    operator: ConditionOperator
    label: str | None = None

    @model_validator(mode="after")
    def check_operator(self):
        if self.operator not in self.allowed_operators:
            allowed = sorted(op.value for op in self.allowed_operators)
            raise ValueError(
                f"Operator '{self.operator.value}' is not valid for condition "
                f"'{self.type}'. Allowed: {allowed}"
            )
        return self


class _StringCondition(_ConditionBase):
    """Condition on a string field; in/not-in take a list or CSV string."""

    allowed_operators: ClassVar[frozenset[ConditionOperator]] = _STRING_OPERATORS

    value: str | list[str]

    @model_validator(mode="after")
    def check_value(self):
        if self.operator in _LIST_OPERATORS:
            if not split_list_value(self.value):
                raise ValueError(f"Condition '{self.type}' needs at least one value for '{self.operator.value}'")
        elif isinstance(self.value, list) or not self.value.strip():
            raise ValueError(f"Condition '{self.type}' needs a single non-empty value")
        return self


class _NumericCondition(_ConditionBase):
    allowed_operators: ClassVar[frozenset[ConditionOperator]] = _NUMERIC_OPERATORS

    value: float


class StatusCondition(_StringCondition):
    type: Literal["status"]


class ChannelCondition(_StringCondition):
    """Origin channel. The value "social" stands for Facebook + Instagram."""

    type: Literal["channel"]


class TagCondition(_StringCondition):
    type: Literal["tag"]


class BranchCondition(_StringCondition):
    type: Literal["branch"]


class CampaignCondition(_StringCondition):
    type: Literal["campaign"]


class ServiceCondition(_StringCondition):
    type: Literal["service"]


class SourceCondition(_StringCondition):
    type: Literal["source"]


class FreeTextCondition(_ConditionBase):
    """Substring match on the reason detail and notes."""

    allowed_operators: ClassVar[frozenset[ConditionOperator]] = _TEXT_OPERATORS

    type: Literal["free-text-contains"]
    value: str = Field(min_length=1)


class NumericThresholdCondition(_NumericCondition):
    type: Literal["numeric-threshold"]


class AttemptCountCondition(_NumericCondition):
    type: Literal["attempt-count"]


class DaysWithoutResponseCondition(_NumericCondition):
    type: Literal["days-without-response"]


class MessagingWindowCondition(_NumericCondition):
    """Days since last response, only enforced on social channels."""

    type: Literal["messaging-window"]


class TimeInStatusCondition(_NumericCondition):
    """Hours since the last status change."""

    type: Literal["time-in-status"]


Condition = Annotated[
    Union[
        StatusCondition,
        NumericThresholdCondition,
        ChannelCondition,
        TagCondition,
        BranchCondition,
        CampaignCondition,
        ServiceCondition,
        SourceCondition,
        AttemptCountCondition,
        DaysWithoutResponseCondition,
        MessagingWindowCondition,
        FreeTextCondition,
        TimeInStatusCondition,
    ],
    Field(discriminator="type"),
]


# =============================================================================
# Action Schemas
# =============================================================================


class _ActionBase(BaseModel):
    id: str = Field(default_factory=_new_id)
    description: str | None = None
    value: str | None = None

    @property
    def summary(self) -> str:
        return self.description or self.type


class _ValueRequiredAction(_ActionBase):
    value: str = Field(min_length=1)


class MoveStatusAction(_ValueRequiredAction):
    type: Literal["move-status"]


class AssignOwnerAction(_ValueRequiredAction):
    type: Literal["assign-owner"]


class AddTagAction(_ValueRequiredAction):
    type: Literal["add-tag"]


class RemoveTagAction(_ValueRequiredAction):
    type: Literal["remove-tag"]


class NotifyAction(_ActionBase):
    """Message text in `value`; A/B variants override it when enabled."""

    type: Literal["notify"]


class CreateTaskAction(_ActionBase):
    type: Literal["create-task"]


class NotifySupervisorAction(_ActionBase):
    type: Literal["notify-supervisor"]


class BlockConversationAction(_ActionBase):
    type: Literal["block-conversation"]


class IntegrationAction(_ValueRequiredAction):
    type: Literal["integration"]


class ConfirmAppointmentAction(_ActionBase):
    type: Literal["confirm-appointment"]


class RescheduleAppointmentAction(_ActionBase):
    type: Literal["reschedule-appointment"]


class MarkArrivalAction(_ActionBase):
    type: Literal["mark-arrival"]


Action = Annotated[
    Union[
        MoveStatusAction,
        AssignOwnerAction,
        AddTagAction,
        RemoveTagAction,
        NotifyAction,
        CreateTaskAction,
        NotifySupervisorAction,
        BlockConversationAction,
        IntegrationAction,
        ConfirmAppointmentAction,
        RescheduleAppointmentAction,
        MarkArrivalAction,
    ],
    Field(discriminator="type"),
]


# =============================================================================
# Rule Options
# =============================================================================


class ABTestConfig(BaseModel):
    """A/B split for notify actions: ratio is the percentage sent variant A."""

    enabled: bool = False
    ratio: float = Field(default=50, ge=0, le=100)
    variant_a: str = ""
    variant_b: str = ""

    @model_validator(mode="after")
    def check_variants(self):
        if self.enabled and not (self.variant_a.strip() and self.variant_b.strip()):
            raise ValueError("A/B test requires both variant_a and variant_b")
        return self


class ActiveHours(BaseModel):
    """Days/time range (inclusive) during which a rule may fire."""

    days: list[str] = Field(default_factory=list)
    start: str = "00:00"
    end: str = "23:59"
    timezone: str | None = None  # Defaults to the scheduler timezone

    @field_validator("days")
    @classmethod
    def validate_days(cls, v: list[str]) -> list[str]:
        normalized = []
        for day in v:
            name = day.strip()[:3].title()
            if name not in WEEKDAYS:
                raise ValueError(f"Unknown day '{day}'. Allowed: {list(WEEKDAYS)}")
            normalized.append(name)
        return normalized

    @field_validator("start", "end")
    @classmethod
    def validate_time(cls, v: str) -> str:
        if not _HHMM_RE.match(v):
            raise ValueError(f"Time '{v}' must be HH:MM")
        return v

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, v: str | None) -> str | None:
        if v is None:
            return v
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"Unknown timezone '{v}'") from exc
        return v


class PauseWindow(BaseModel):
    """Rule is suspended while from <= now <= to."""

    model_config = ConfigDict(populate_by_name=True)

    scope: PauseScope = PauseScope.GLOBAL
    id: str | None = None  # branch id / agent name for scoped pauses
    starts_at: datetime = Field(alias="from")
    ends_at: datetime = Field(alias="to")

    @field_validator("starts_at", "ends_at")
    @classmethod
    def as_utc(cls, value: datetime) -> datetime:
        # Naive bounds are read as UTC
        return ensure_utc(value)

    @model_validator(mode="after")
    def check_range(self):
        if self.starts_at > self.ends_at:
            raise ValueError("Pause window 'from' must not be after 'to'")
        return self


# =============================================================================
# Rule CRUD Schemas
# =============================================================================


class RuleBase(BaseModel):
    name: str = Field(min_length=1, max_length=150)
    description: str | None = None
    active: bool = True
    priority: RulePriority = RulePriority.MEDIUM
    allowed_roles: list[str] | None = None
    ab_test: ABTestConfig | None = None
    active_hours: ActiveHours | None = None
    pause: PauseWindow | None = None
    sla_thresholds: dict[str, float] | None = None  # stage -> hours
    conditions: list[Condition] = Field(default_factory=list)
    actions: list[Action] = Field(default_factory=list)

    @field_validator("sla_thresholds")
    @classmethod
    def validate_sla(cls, v: dict[str, float] | None) -> dict[str, float] | None:
        if v and any(hours <= 0 for hours in v.values()):
            raise ValueError("SLA thresholds must be positive hours")
        return v

    @model_validator(mode="after")
    def check_active_rule(self):
        if self.active and (not self.conditions or not self.actions):
            raise ValueError("An active rule needs at least one condition and one action")
        ab_enabled = bool(self.ab_test and self.ab_test.enabled)
        for action in self.actions:
            if isinstance(action, NotifyAction) and not ab_enabled and not (action.value or "").strip():
                raise ValueError("Notify action needs message text unless an A/B test is enabled")
        return self


class RuleCreate(RuleBase):
    """Schema for creating a rule."""


class RuleUpdate(BaseModel):
    """Partial update. Merged with the stored rule and re-validated."""

    name: str | None = Field(default=None, min_length=1, max_length=150)
    description: str | None = None
    active: bool | None = None
    priority: RulePriority | None = None
    allowed_roles: list[str] | None = None
    ab_test: ABTestConfig | None = None
    active_hours: ActiveHours | None = None
    pause: PauseWindow | None = None
    sla_thresholds: dict[str, float] | None = None
    conditions: list[Condition] | None = None
    actions: list[Action] | None = None


class RuleRead(RuleBase):
    """Stored rule, as consumed by the rule engine."""

    id: UUID
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}

    @property
    def priority_rank(self) -> int:
        return PRIORITY_RANK.get(self.priority.value, PRIORITY_RANK["medium"])


# =============================================================================
# Execution Log Schemas
# =============================================================================


class ExecutionLog(BaseModel):
    id: UUID
    rule_id: UUID
    rule_name: str
    target_id: UUID
    target_name: str | None
    action_summary: str
    outcome: str
    message: str
    timestamp: datetime
    details: dict

    model_config = {"from_attributes": True}


class AutomationRunResult(BaseModel):
    success: bool = True
    total: int
    logs: list[ExecutionLog]


class RulePreviewResult(BaseModel):
    rule_id: UUID
    matched_ids: list[UUID]
    total_evaluated: int


CONDITION_TYPES = frozenset(t.value for t in ConditionType)
ACTION_TYPES = frozenset(t.value for t in ActionType)

# Concrete classes of the closed unions, for exhaustive dispatch tables
CONDITION_CLASSES: tuple[type[BaseModel], ...] = get_args(get_args(Condition)[0])
ACTION_CLASSES: tuple[type[BaseModel], ...] = get_args(get_args(Action)[0])


def type_tag(model_cls: type[BaseModel]) -> str:
    """Literal value of a union member's `type` field."""
    return get_args(model_cls.model_fields["type"].annotation)[0]

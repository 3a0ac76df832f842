"""Automation rule enums."""

from enum import Enum


class RulePriority(str, Enum):
    """Rule priority. Higher priorities are evaluated first."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class ConditionType(str, Enum):
    """Kinds of condition a rule can test against a record."""

    STATUS = "status"
    NUMERIC_THRESHOLD = "numeric-threshold"
    CHANNEL = "channel"
    TAG = "tag"
    BRANCH = "branch"
    CAMPAIGN = "campaign"
    SERVICE = "service"
    SOURCE = "source"
    ATTEMPT_COUNT = "attempt-count"
    DAYS_WITHOUT_RESPONSE = "days-without-response"
    MESSAGING_WINDOW = "messaging-window"
    FREE_TEXT_CONTAINS = "free-text-contains"
    TIME_IN_STATUS = "time-in-status"


class ConditionOperator(str, Enum):
    """Operators for rule conditions."""

    GREATER_THAN = ">"
    LESS_THAN = "<"
    GREATER_OR_EQUAL = ">="
    LESS_OR_EQUAL = "<="
    EQUALS = "="
    NOT_EQUALS = "!="
    CONTAINS = "contains"
    NOT_CONTAINS = "not-contains"
    IN = "in"
    NOT_IN = "not-in"


class ActionType(str, Enum):
    """Actions a rule can execute on a matching record."""

    MOVE_STATUS = "move-status"
    ASSIGN_OWNER = "assign-owner"
    ADD_TAG = "add-tag"
    REMOVE_TAG = "remove-tag"
    NOTIFY = "notify"
    CREATE_TASK = "create-task"
    NOTIFY_SUPERVISOR = "notify-supervisor"
    BLOCK_CONVERSATION = "block-conversation"
    INTEGRATION = "integration"
    CONFIRM_APPOINTMENT = "confirm-appointment"
    RESCHEDULE_APPOINTMENT = "reschedule-appointment"
    MARK_ARRIVAL = "mark-arrival"


class ExecutionOutcome(str, Enum):
    """Outcome of one rule applied to one record."""

    SUCCESS = "success"
    FAILURE = "failure"
    PARTIAL = "partial"


class PauseScope(str, Enum):
    """What a pause window was created for (informational)."""

    GLOBAL = "global"
    BRANCH = "branch"
    AGENT = "agent"

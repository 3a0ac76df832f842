"""Error taxonomy shared by the automation core."""


class AutomationError(Exception):
    """Base error for the automation core."""


class ValidationError(AutomationError):
    """Malformed rule, condition or action rejected at save time."""


class NotFoundError(AutomationError):
    """Rule, record, no-show case or job does not exist."""


class ConflictError(AutomationError):
    """Duplicate, double transition, or stale version token."""


class TransientDeliveryError(AutomationError):
    """Messaging call failed or timed out. Not retried within the core."""


class StateError(AutomationError):
    """Operation not allowed for the current lifecycle state."""


class UnsupportedActionError(AutomationError):
    """Action cannot be applied to this target record."""

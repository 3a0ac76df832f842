"""Action execution for automation rules.

Each action kind has exactly one effect:
- record mutations (status, owner, tags) go through the record store
  with the record's version token;
- notes (task, supervisor, conversation block) are appended to `notes`;
- notify sends one message through the messaging port;
- appointment actions update the appointment linked to the lead;
- integration only records that it ran.

Executors return a short human-readable note for the execution log.
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Awaitable, Callable

from clinic_automation.core.errors import UnsupportedActionError
from clinic_automation.db.enums import AppointmentStatus, ContactPreference, MessagingChannel
from clinic_automation.schemas.automation import (
    ACTION_CLASSES,
    ACTION_TYPES,
    ABTestConfig,
    AddTagAction,
    AssignOwnerAction,
    BlockConversationAction,
    ConfirmAppointmentAction,
    CreateTaskAction,
    IntegrationAction,
    MarkArrivalAction,
    MoveStatusAction,
    NotifyAction,
    NotifySupervisorAction,
    RemoveTagAction,
    RescheduleAppointmentAction,
    type_tag,
)
from clinic_automation.services.messaging import MessagingPort, channel_for_origin, deliver
from clinic_automation.services.record_store import RecordStore
from clinic_automation.utils.datetime_utils import timestamp_note

logger = logging.getLogger(__name__)


@dataclass
class ActionContext:
    """Mutable state for one rule applied to one record."""

    record: Any
    records: RecordStore
    messaging: MessagingPort
    now: datetime
    rng: random.Random
    default_channel: MessagingChannel = MessagingChannel.WHATSAPP
    messaging_timeout: float = 10.0
    ab_test: ABTestConfig | None = None
    appointments: RecordStore | None = None
    variant: str | None = None
    details: dict[str, Any] = field(default_factory=dict)

    def apply(self, fields: dict[str, Any]) -> None:
        """Persist a partial update and continue with the stored copy."""
        self.record = self.records.update(
            self.record.id, fields, expected_version=self.record.version
        )

    def append_note(self, text: str) -> None:
        line = timestamp_note(text, self.now)
        existing = self.record.notes or ""
        self.apply({"notes": f"{existing}\n{line}" if existing else line})


def choose_variant(ab_test: ABTestConfig, draw: float) -> str:
    """Variant "A" when draw*100 < ratio (ratio clamped to 0..100), else "B"."""
    ratio = min(100.0, max(0.0, ab_test.ratio))
    return "A" if draw * 100 < ratio else "B"


def render_message(template: str, record: Any) -> str:
    first_name = (getattr(record, "full_name", None) or "").split(" ")[0]
    return template.replace("{name}", first_name)


# =============================================================================
# Record mutations
# =============================================================================


async def _move_status(ctx: ActionContext, action: MoveStatusAction) -> str:
    ctx.apply({"status": action.value, "status_changed_at": ctx.now})
    return f"Status moved to {action.value}"


async def _assign_owner(ctx: ActionContext, action: AssignOwnerAction) -> str:
    ctx.apply({"owner_name": action.value})
    return f"Assigned to {action.value}"


async def _add_tag(ctx: ActionContext, action: AddTagAction) -> str:
    tags = list(ctx.record.tags or [])
    if action.value in tags:
        return f"Tag '{action.value}' already present"
    ctx.apply({"tags": tags + [action.value]})
    return f"Tag '{action.value}' added"


async def _remove_tag(ctx: ActionContext, action: RemoveTagAction) -> str:
    tags = list(ctx.record.tags or [])
    if action.value not in tags:
        return f"Tag '{action.value}' not present"
    ctx.apply({"tags": [t for t in tags if t != action.value]})
    return f"Tag '{action.value}' removed"


# =============================================================================
# Notes
# =============================================================================


async def _create_task(ctx: ActionContext, action: CreateTaskAction) -> str:
    text = action.value or action.summary
    ctx.append_note(f"Task: {text}")
    return f"Task created: {text}"


async def _notify_supervisor(ctx: ActionContext, action: NotifySupervisorAction) -> str:
    text = action.value or action.summary
    ctx.append_note(f"Supervisor: {text}")
    return f"Supervisor notified: {text}"


async def _block_conversation(ctx: ActionContext, action: BlockConversationAction) -> str:
    text = action.value or action.summary
    ctx.append_note(f"Conversation blocked: {text}")
    return f"Conversation blocked: {text}"


# =============================================================================
# Messaging
# =============================================================================


async def _notify(ctx: ActionContext, action: NotifyAction) -> str:
    record = ctx.record
    if (record.contact_preference or "").lower() == ContactPreference.EMAIL.value.lower():
        return "Notification skipped: contact prefers email"

    template = action.value or ""
    if ctx.ab_test and ctx.ab_test.enabled:
        ctx.variant = choose_variant(ctx.ab_test, ctx.rng.random())
        template = ctx.ab_test.variant_a if ctx.variant == "A" else ctx.ab_test.variant_b

    channel = channel_for_origin(record.origin, ctx.default_channel)
    if channel == MessagingChannel.WHATSAPP:
        recipient = record.whatsapp or record.phone
    else:
        recipient = record.social_sender_id or record.phone

    message_id = await deliver(
        ctx.messaging,
        channel,
        recipient,
        render_message(template, record),
        ctx.messaging_timeout,
    )
    ctx.details["message_id"] = message_id
    variant = f" (variant {ctx.variant})" if ctx.variant else ""
    return f"Notification sent via {channel.value}{variant}"


async def _integration(ctx: ActionContext, action: IntegrationAction) -> str:
    logger.info("Integration action '%s' executed for record %s", action.value, ctx.record.id)
    return f"Integration executed: {action.value}"


# =============================================================================
# Appointment actions
# =============================================================================


def _set_appointment_status(ctx: ActionContext, status: AppointmentStatus) -> str:
    appointment_id = getattr(ctx.record, "appointment_id", None)
    if ctx.appointments is None or appointment_id is None:
        raise UnsupportedActionError("record has no linked appointment")
    appointment = ctx.appointments.get_by_id(appointment_id)
    ctx.appointments.update(
        appointment.id, {"status": status.value}, expected_version=appointment.version
    )
    return f"Appointment {appointment.id} set to {status.value}"


async def _confirm_appointment(ctx: ActionContext, action: ConfirmAppointmentAction) -> str:
    return _set_appointment_status(ctx, AppointmentStatus.CONFIRMED)


async def _reschedule_appointment(ctx: ActionContext, action: RescheduleAppointmentAction) -> str:
    return _set_appointment_status(ctx, AppointmentStatus.RESCHEDULE_REQUESTED)


async def _mark_arrival(ctx: ActionContext, action: MarkArrivalAction) -> str:
    return _set_appointment_status(ctx, AppointmentStatus.ARRIVED)


ActionExecutor = Callable[[ActionContext, Any], Awaitable[str]]

ACTION_EXECUTORS: dict[type, ActionExecutor] = {
    MoveStatusAction: _move_status,
    AssignOwnerAction: _assign_owner,
    AddTagAction: _add_tag,
    RemoveTagAction: _remove_tag,
    NotifyAction: _notify,
    CreateTaskAction: _create_task,
    NotifySupervisorAction: _notify_supervisor,
    BlockConversationAction: _block_conversation,
    IntegrationAction: _integration,
    ConfirmAppointmentAction: _confirm_appointment,
    RescheduleAppointmentAction: _reschedule_appointment,
    MarkArrivalAction: _mark_arrival,
}


def _check_exhaustive() -> None:
    missing = [cls.__name__ for cls in ACTION_CLASSES if cls not in ACTION_EXECUTORS]
    tags = {type_tag(cls) for cls in ACTION_CLASSES}
    if missing or tags != ACTION_TYPES:
        raise RuntimeError(
            f"Action dispatch out of sync: missing={missing}, "
            f"unmapped={sorted(ACTION_TYPES - tags)}"
        )


_check_exhaustive()


async def execute_action(ctx: ActionContext, action: Any) -> str:
    return await ACTION_EXECUTORS[type(action)](ctx, action)

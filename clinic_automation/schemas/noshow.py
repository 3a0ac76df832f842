"""Pydantic schemas for no-show cases and the follow-up protocol."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from clinic_automation.db.enums import FollowUpState, MotivePriority, NoShowMotive, ProtocolAction


class NoShowCaseCreate(BaseModel):
    appointment_id: UUID
    patient_id: UUID
    patient_name: str = Field(min_length=1, max_length=255)
    missed_at: datetime
    patient_phone: str | None = None
    contact_channel: str | None = None
    social_sender_id: str | None = None
    branch_id: str | None = None
    created_by: str = "System"


class ContactAttemptRequest(BaseModel):
    note: str = Field(min_length=1)
    succeeded: bool = False
    patient_response: str | None = None
    performed_by: str = "System"


class MotiveRequest(BaseModel):
    motive: NoShowMotive
    detail: str | None = None


class RescheduleRequest(BaseModel):
    new_appointment_id: UUID
    notes: str | None = None


class MarkLostRequest(BaseModel):
    reason: str = Field(min_length=1)


class NoShowCaseRead(BaseModel):
    id: UUID
    appointment_id: UUID
    patient_id: UUID
    patient_name: str
    patient_phone: str | None
    contact_channel: str | None
    social_sender_id: str | None = None
    branch_id: str | None
    missed_at: datetime
    response_deadline: datetime
    follow_up_state: FollowUpState
    motive: NoShowMotive | None
    motive_detail: str | None
    contact_attempts: int
    last_attempt_at: datetime | None
    next_attempt_at: datetime | None
    contact_notes: list[str]
    in_recovery_list: bool
    campaign_id: str | None
    lost_flag: bool
    lost_at: datetime | None
    blocked_flag: bool
    block_reason: str | None
    new_appointment_id: UUID | None
    rescheduled_at: datetime | None
    version: int

    model_config = {"from_attributes": True}


class DeadlineStatusRead(BaseModel):
    state: FollowUpState
    days_since_missed: int
    days_until_deadline: int
    action_required: bool
    message: str

    model_config = {"from_attributes": True}


class UpcomingDeadline(BaseModel):
    case: NoShowCaseRead
    status: DeadlineStatusRead


class MotiveRead(BaseModel):
    motive: NoShowMotive
    description: str
    requires_recovery: bool
    recontact_delay_days: int
    priority: MotivePriority

    model_config = {"from_attributes": True}


class ProtocolDetailRead(BaseModel):
    case_id: UUID
    patient_id: UUID
    days_elapsed: int
    action: ProtocolAction

    model_config = {"from_attributes": True}


class ProtocolResultRead(BaseModel):
    success: bool
    processed: int
    marked_lost: int
    upcoming_alerts: int
    failed: int
    details: list[ProtocolDetailRead]

    model_config = {"from_attributes": True}

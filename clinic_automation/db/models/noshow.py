"""No-show case model."""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import Boolean, Index, Integer, String, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from clinic_automation.db.base import Base
from clinic_automation.db.enums import FollowUpState
from clinic_automation.db.types import JSONType
from clinic_automation.utils.datetime_utils import utcnow


class NoShowCase(Base):
    """
    Follow-up case for a missed appointment (the 7-day protocol).

    One case per appointment. Cases are never deleted; they are retired
    once they reach Rescheduled, Lost or Blocked. Transitions live in
    `clinic_automation.services.noshow_lifecycle`.
    """

    __tablename__ = "noshow_cases"
    __table_args__ = (
        UniqueConstraint("appointment_id", name="uq_noshow_appointment"),
        Index("idx_noshow_state", "follow_up_state"),
        Index("idx_noshow_patient", "patient_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    appointment_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    patient_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    patient_name: Mapped[str] = mapped_column(String(255), nullable=False)
    patient_phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    contact_channel: Mapped[str | None] = mapped_column(String(30), nullable=True)
    social_sender_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    branch_id: Mapped[str | None] = mapped_column(String(50), nullable=True)
    missed_at: Mapped[datetime] = mapped_column(nullable=False)

    # Motive
    motive: Mapped[str | None] = mapped_column(String(30), nullable=True)
    motive_detail: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Follow-up
    follow_up_state: Mapped[str] = mapped_column(
        String(30), default=FollowUpState.PENDING_CONTACT.value, nullable=False
    )
    contact_attempts: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    last_attempt_at: Mapped[datetime | None] = mapped_column(nullable=True)
    next_attempt_at: Mapped[datetime | None] = mapped_column(nullable=True)
    contact_notes: Mapped[list] = mapped_column(JSONType, default=list, nullable=False)

    # Recovery list
    in_recovery_list: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    recovery_listed_at: Mapped[datetime | None] = mapped_column(nullable=True)
    campaign_id: Mapped[str | None] = mapped_column(String(60), nullable=True)

    # Fixed at creation: missed_at + 7 days
    response_deadline: Mapped[datetime] = mapped_column(nullable=False)

    # Terminal markers
    lost_flag: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    lost_at: Mapped[datetime | None] = mapped_column(nullable=True)
    blocked_flag: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    block_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    blocked_at: Mapped[datetime | None] = mapped_column(nullable=True)
    new_appointment_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)
    rescheduled_at: Mapped[datetime | None] = mapped_column(nullable=True)

    created_by: Mapped[str | None] = mapped_column(String(150), nullable=True)
    version: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)

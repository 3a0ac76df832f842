"""Appointment model (narrow: fields read/written by automation)."""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import Index, Integer, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from clinic_automation.db.base import Base
from clinic_automation.db.enums import DEFAULT_APPOINTMENT_STATUS
from clinic_automation.utils.datetime_utils import utcnow


class Appointment(Base):
    __tablename__ = "appointments"
    __table_args__ = (Index("idx_appointment_status_time", "status", "scheduled_at"),)

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    patient_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    patient_name: Mapped[str] = mapped_column(String(255), nullable=False)
    patient_phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    branch_id: Mapped[str | None] = mapped_column(String(50), nullable=True)
    channel: Mapped[str | None] = mapped_column(String(30), nullable=True)  # patient's origin channel
    scheduled_at: Mapped[datetime] = mapped_column(nullable=False)
    status: Mapped[str] = mapped_column(
        String(30), default=DEFAULT_APPOINTMENT_STATUS.value, nullable=False
    )
    reminder_sent_at: Mapped[datetime | None] = mapped_column(nullable=True)

    version: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)

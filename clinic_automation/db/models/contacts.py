"""Contact request (lead) model."""

from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import Index, Integer, Numeric, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from clinic_automation.db.base import Base
from clinic_automation.db.enums import DEFAULT_LEAD_STATUS, ContactOrigin
from clinic_automation.db.types import JSONType
from clinic_automation.utils.datetime_utils import utcnow


class ContactRequest(Base):
    """
    Inbound contact request (lead). Target record of the rule engine.

    Only the fields automation reads or writes are modelled here.
    """

    __tablename__ = "contact_requests"
    __table_args__ = (
        Index("idx_contact_status", "status"),
        Index("idx_contact_branch", "branch_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    full_name: Mapped[str] = mapped_column(String(255), nullable=False)

    # Contact
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    whatsapp: Mapped[str | None] = mapped_column(String(50), nullable=True)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    social_sender_id: Mapped[str | None] = mapped_column(
        String(100), nullable=True
    )  # Messenger PSID / Instagram IGSID
    contact_preference: Mapped[str | None] = mapped_column(String(20), nullable=True)

    # Attribution
    origin: Mapped[str] = mapped_column(String(30), default=ContactOrigin.WEB.value, nullable=False)
    source: Mapped[str | None] = mapped_column(String(100), nullable=True)
    campaign: Mapped[str | None] = mapped_column(String(150), nullable=True)
    service: Mapped[str | None] = mapped_column(String(150), nullable=True)
    branch_id: Mapped[str | None] = mapped_column(String(50), nullable=True)
    branch_name: Mapped[str | None] = mapped_column(String(150), nullable=True)

    # Pipeline
    status: Mapped[str] = mapped_column(
        String(40), default=DEFAULT_LEAD_STATUS.value, nullable=False
    )
    status_changed_at: Mapped[datetime | None] = mapped_column(nullable=True)
    tags: Mapped[list] = mapped_column(JSONType, default=list, nullable=False)
    owner_name: Mapped[str | None] = mapped_column(String(150), nullable=True)
    lead_value: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    attempt_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    last_response_at: Mapped[datetime | None] = mapped_column(nullable=True)
    reason_detail: Mapped[str | None] = mapped_column(Text, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    appointment_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)

    # Optimistic concurrency token, bumped on every store update
    version: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)

"""Automation rule and execution log models."""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import Boolean, Index, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from clinic_automation.db.base import Base
from clinic_automation.db.enums import RulePriority
from clinic_automation.db.types import JSONType
from clinic_automation.utils.datetime_utils import utcnow


class AutomationRule(Base):
    """
    Automation rule definition.

    Rules are evaluated on every automation tick against all contact
    requests; when every condition matches, actions run in order.
    Conditions and actions are stored as JSON and validated through
    the schemas in `clinic_automation.schemas.automation` before save.
    """

    __tablename__ = "automation_rules"
    __table_args__ = (Index("idx_rule_active_priority", "active", "priority"),)

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    # Metadata
    name: Mapped[str] = mapped_column(String(150), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    priority: Mapped[str] = mapped_column(
        String(10), default=RulePriority.MEDIUM.value, nullable=False
    )
    allowed_roles: Mapped[list | None] = mapped_column(JSONType, nullable=True)

    # Scheduling constraints
    ab_test: Mapped[dict | None] = mapped_column(JSONType, nullable=True)
    active_hours: Mapped[dict | None] = mapped_column(JSONType, nullable=True)
    pause: Mapped[dict | None] = mapped_column(JSONType, nullable=True)
    sla_thresholds: Mapped[dict | None] = mapped_column(JSONType, nullable=True)  # stage -> hours

    # Logic
    conditions: Mapped[list] = mapped_column(JSONType, default=list, nullable=False)
    actions: Mapped[list] = mapped_column(JSONType, default=list, nullable=False)

    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)


class AutomationLog(Base):
    """
    Execution log: one row per (rule, record) match.

    Append-only. Rows are never updated or deleted by the application.
    """

    __tablename__ = "automation_logs"
    __table_args__ = (
        Index("idx_automation_log_rule_ts", "rule_id", "timestamp"),
        Index("idx_automation_log_ts", "timestamp"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    # No FK: logs outlive deleted rules
    rule_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    rule_name: Mapped[str] = mapped_column(String(150), nullable=False)
    target_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    target_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    action_summary: Mapped[str] = mapped_column(Text, default="", nullable=False)
    outcome: Mapped[str] = mapped_column(String(20), nullable=False)
    message: Mapped[str] = mapped_column(Text, default="", nullable=False)
    timestamp: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
    details: Mapped[dict] = mapped_column(JSONType, default=dict, nullable=False)

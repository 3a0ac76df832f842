"""Rule store - persistence for automation rules and their execution logs."""

from __future__ import annotations

import logging
from typing import Protocol
from uuid import UUID

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import select
from sqlalchemy.orm import Session, sessionmaker

from clinic_automation.core.constants import DEFAULT_LOG_LIMIT, MAX_LOG_LIMIT
from clinic_automation.core.errors import NotFoundError, ValidationError
from clinic_automation.db.models import AutomationLog, AutomationRule
from clinic_automation.schemas.automation import (
    ExecutionLog,
    RuleCreate,
    RuleRead,
    RuleUpdate,
)
from clinic_automation.utils.datetime_utils import utcnow

logger = logging.getLogger(__name__)

_READ_ONLY_FIELDS = {"id", "created_at", "updated_at"}


class RuleStore(Protocol):
    def list_rules(self) -> list[RuleRead]: ...

    def get_rule(self, rule_id: UUID) -> RuleRead: ...

    def create_rule(self, data: RuleCreate | dict) -> RuleRead: ...

    def update_rule(self, rule_id: UUID, patch: RuleUpdate | dict) -> RuleRead: ...

    def delete_rule(self, rule_id: UUID) -> None: ...

    def append_log(self, log: ExecutionLog) -> ExecutionLog: ...

    def list_logs(
        self, rule_id: UUID | None = None, limit: int = DEFAULT_LOG_LIMIT
    ) -> list[ExecutionLog]: ...


def format_validation_error(exc: PydanticValidationError) -> str:
    """Flatten pydantic errors into one operator-readable line."""
    parts = []
    for error in exc.errors():
        location = ".".join(str(p) for p in error.get("loc", ()))
        message = error.get("msg", "invalid value")
        parts.append(f"{location}: {message}" if location else message)
    return "; ".join(parts)


def _validate(model: type, data) -> object:
    if isinstance(data, model):
        return data
    try:
        return model.model_validate(data)
    except PydanticValidationError as exc:
        raise ValidationError(format_validation_error(exc)) from exc


def _storable(rule: RuleCreate) -> dict:
    return rule.model_dump(mode="json", by_alias=True)


class SqlRuleStore:
    """SQLAlchemy-backed rule store. Logs are append-only."""

    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self.session_factory = session_factory

    def _get_row(self, db: Session, rule_id: UUID) -> AutomationRule:
        row = db.get(AutomationRule, rule_id)
        if row is None:
            raise NotFoundError(f"Rule {rule_id} not found")
        return row

    def list_rules(self) -> list[RuleRead]:
        """All rules, oldest update first. Rows that no longer validate are skipped."""
        with self.session_factory() as db:
            rows = db.scalars(select(AutomationRule).order_by(AutomationRule.updated_at)).all()
        rules = []
        for row in rows:
            try:
                rules.append(RuleRead.model_validate(row))
            except PydanticValidationError as exc:
                logger.error("Skipping invalid rule %s: %s", row.id, format_validation_error(exc))
        return rules

    def get_rule(self, rule_id: UUID) -> RuleRead:
        with self.session_factory() as db:
            return RuleRead.model_validate(self._get_row(db, rule_id))

    def create_rule(self, data: RuleCreate | dict) -> RuleRead:
        rule = _validate(RuleCreate, data)
        now = utcnow()
        with self.session_factory() as db:
            row = AutomationRule(**_storable(rule), created_at=now, updated_at=now)
            db.add(row)
            db.commit()
            db.refresh(row)
            logger.info("Created automation rule %s (%s)", row.id, row.name)
            return RuleRead.model_validate(row)

    def update_rule(self, rule_id: UUID, patch: RuleUpdate | dict) -> RuleRead:
        """Merge a partial update into the stored rule and re-validate the result."""
        changes = _validate(RuleUpdate, patch)
        with self.session_factory() as db:
            row = self._get_row(db, rule_id)
            current = RuleRead.model_validate(row).model_dump(
                mode="json", by_alias=True, exclude=_READ_ONLY_FIELDS
            )
            current.update(changes.model_dump(mode="json", by_alias=True, exclude_unset=True))
            merged = _validate(RuleCreate, current)
            for name, value in _storable(merged).items():
                setattr(row, name, value)
            row.updated_at = utcnow()
            db.commit()
            db.refresh(row)
            return RuleRead.model_validate(row)

    def delete_rule(self, rule_id: UUID) -> None:
        with self.session_factory() as db:
            db.delete(self._get_row(db, rule_id))
            db.commit()
        logger.info("Deleted automation rule %s", rule_id)

    def append_log(self, log: ExecutionLog) -> ExecutionLog:
        with self.session_factory() as db:
            row = AutomationLog(**log.model_dump(mode="python"))
            db.add(row)
            db.commit()
        return log

    def list_logs(
        self, rule_id: UUID | None = None, limit: int = DEFAULT_LOG_LIMIT
    ) -> list[ExecutionLog]:
        """Newest first, optionally for one rule."""
        limit = max(1, min(limit, MAX_LOG_LIMIT))
        stmt = select(AutomationLog)
        if rule_id is not None:
            stmt = stmt.where(AutomationLog.rule_id == rule_id)
        stmt = stmt.order_by(AutomationLog.timestamp.desc(), AutomationLog.id).limit(limit)
        with self.session_factory() as db:
            return [ExecutionLog.model_validate(row) for row in db.scalars(stmt)]

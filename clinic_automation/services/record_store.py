"""Record store: narrow read/write contract over target records.

Each operation runs in its own short session; there is no transaction
spanning a whole job. Updates are optimistic: callers pass the version
they read and a mismatch raises ConflictError instead of silently
overwriting a concurrent change.
"""

from __future__ import annotations

import logging
from typing import Any, Generic, Protocol, TypeVar
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from clinic_automation.core.errors import ConflictError, NotFoundError
from clinic_automation.db.base import Base
from clinic_automation.utils.datetime_utils import utcnow

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=Base)


class RecordStore(Protocol[ModelT]):
    """Contract consumed by the rule engine and the no-show jobs."""

    def get_all(self) -> list[ModelT]: ...

    def get_by_id(self, record_id: UUID) -> ModelT: ...

    def update(
        self,
        record_id: UUID,
        fields: dict[str, Any],
        expected_version: int | None = None,
    ) -> ModelT: ...

    def create(self, fields: dict[str, Any]) -> ModelT: ...

    def find(self, **criteria: Any) -> list[ModelT]: ...

    def find_one(self, **criteria: Any) -> ModelT | None: ...


class SqlRecordStore(Generic[ModelT]):
    """SQLAlchemy-backed record store for one ORM model.

    Models must expose `id`, `version` and `updated_at` columns.
    Returned rows are detached (the session factory keeps loaded state
    after commit).
    """

    def __init__(self, session_factory: sessionmaker[Session], model: type[ModelT]) -> None:
        self.session_factory = session_factory
        self.model = model

    def _criteria(self, criteria: dict[str, Any]) -> list:
        clauses = []
        for name, value in criteria.items():
            column = getattr(self.model, name)
            if isinstance(value, (list, tuple, set, frozenset)):
                clauses.append(column.in_([getattr(v, "value", v) for v in value]))
            else:
                clauses.append(column == getattr(value, "value", value))
        return clauses

    def get_all(self) -> list[ModelT]:
        with self.session_factory() as db:
            return list(db.scalars(select(self.model).order_by(self.model.created_at)))

    def get_by_id(self, record_id: UUID) -> ModelT:
        with self.session_factory() as db:
            record = db.get(self.model, record_id)
            if record is None:
                raise NotFoundError(f"{self.model.__name__} {record_id} not found")
            return record

    def find(self, **criteria: Any) -> list[ModelT]:
        with self.session_factory() as db:
            stmt = select(self.model).where(*self._criteria(criteria)).order_by(self.model.created_at)
            return list(db.scalars(stmt))

    def find_one(self, **criteria: Any) -> ModelT | None:
        with self.session_factory() as db:
            stmt = select(self.model).where(*self._criteria(criteria)).limit(1)
            return db.scalars(stmt).first()

    def create(self, fields: dict[str, Any]) -> ModelT:
        with self.session_factory() as db:
            record = self.model(**fields)
            db.add(record)
            try:
                db.commit()
            except IntegrityError as exc:
                db.rollback()
                raise ConflictError(f"{self.model.__name__} violates a uniqueness constraint") from exc
            db.refresh(record)
            return record

    def update(
        self,
        record_id: UUID,
        fields: dict[str, Any],
        expected_version: int | None = None,
    ) -> ModelT:
        """Partial update. Bumps `version`; raises ConflictError on a stale token."""
        values = {k: v for k, v in fields.items() if k not in ("id", "version", "created_at")}
        values["version"] = self.model.version + 1
        values["updated_at"] = utcnow()

        with self.session_factory() as db:
            stmt = update(self.model).where(self.model.id == record_id)
            if expected_version is not None:
                stmt = stmt.where(self.model.version == expected_version)
            result = db.execute(stmt.values(**values).execution_options(synchronize_session=False))
            if result.rowcount == 0:
                db.rollback()
                if db.get(self.model, record_id) is None:
                    raise NotFoundError(f"{self.model.__name__} {record_id} not found")
                logger.info(
                    "Version conflict on %s %s (expected %s)",
                    self.model.__name__,
                    record_id,
                    expected_version,
                )
                raise ConflictError(
                    f"{self.model.__name__} {record_id} was modified concurrently "
                    f"(expected version {expected_version})"
                )
            db.commit()
            record = db.get(self.model, record_id)
            return record

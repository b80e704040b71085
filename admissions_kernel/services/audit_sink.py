"""
Audit sink -- fire-and-forget before/after snapshots of ledger writes.

The storage policy of the audit trail belongs to the host application;
the ledger only promises to hand every write to an ``AuditSink``.  A sink
must never fail the write it is describing.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Protocol
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from admissions_kernel.logging_config import get_logger
from admissions_kernel.models import AuditAction, AuditLog

logger = get_logger("services.audit")


def _json_safe(value: Any) -> Any:
    if isinstance(value, (UUID, Decimal)):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    return value


def snapshot(row: Any) -> dict[str, Any] | None:
    """Column values of an ORM row as a JSON-safe dict."""
    if row is None:
        return None
    return {col.key: _json_safe(getattr(row, col.key)) for col in row.__table__.columns}


@dataclass(frozen=True)
class AuditEvent:
    actor_id: UUID
    action: AuditAction
    entity_type: str
    entity_id: UUID | None = None
    branch_id: UUID | None = None
    before: dict[str, Any] | None = None
    after: dict[str, Any] | None = None


class AuditSink(Protocol):
    def record(self, event: AuditEvent) -> None: ...


class NullAuditSink:
    """Discards every event."""

    def record(self, event: AuditEvent) -> None:
        return None


class LoggingAuditSink:
    """Writes each event to the structured log."""

    def record(self, event: AuditEvent) -> None:
        logger.info(
            "audit_event",
            extra={
                "actor_id": str(event.actor_id),
                "action": AuditAction(event.action).value,
                "entity_type": event.entity_type,
                "entity_id": str(event.entity_id) if event.entity_id else None,
                "before": event.before,
                "after": event.after,
            },
        )


class DatabaseAuditSink:
    """
    Persists each event as an AuditLog row inside a savepoint.

    A failed insert rolls back only its savepoint and is logged.
    """

    def __init__(self, session: Session):
        self._session = session

    def record(self, event: AuditEvent) -> None:
        savepoint = self._session.begin_nested()
        try:
            self._session.add(
                AuditLog(
                    actor_id=event.actor_id,
                    action=AuditAction(event.action).value,
                    entity_type=event.entity_type,
                    entity_id=event.entity_id,
                    branch_id=event.branch_id,
                    before=event.before,
                    after=event.after,
                    created_by_id=event.actor_id,
                )
            )
            self._session.flush()
            savepoint.commit()
        except SQLAlchemyError:
            savepoint.rollback()
            logger.warning(
                "audit_write_failed",
                extra={
                    "entity_type": event.entity_type,
                    "entity_id": str(event.entity_id) if event.entity_id else None,
                    "action": AuditAction(event.action).value,
                },
                exc_info=True,
            )

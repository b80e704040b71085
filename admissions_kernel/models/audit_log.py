"""
Module: admissions_kernel.models.audit_log
Responsibility: ORM persistence for the audit log (before/after snapshots of
    ledger writes) and the bookkeeping tables of the kernel itself: the
    locked sequence counters and the durable recompute retry queue.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - AuditLog rows are append-only.
    - SequenceCounter.name is unique; current_value only increases.
    - PendingRecompute.admission_id is unique: an admission is queued at
      most once however many writes fail to reconcile it.
"""

from datetime import datetime
from enum import Enum
from typing import Any
from uuid import UUID

from sqlalchemy import JSON, BigInteger, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from admissions_kernel.db.base import Base, TrackedBase


class AuditAction(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    PRINT = "print"
    CLEAR = "clear"


class AuditLog(TrackedBase):
    """Before/after snapshot of one ledger write."""

    __tablename__ = "audit_logs"

    __table_args__ = (
        Index("idx_audit_entity", "entity_type", "entity_id"),
        Index("idx_audit_actor", "actor_id"),
    )

    actor_id: Mapped[UUID] = mapped_column(nullable=False)
    action: Mapped[AuditAction] = mapped_column(String(20), nullable=False)
    entity_type: Mapped[str] = mapped_column(String(50), nullable=False)
    entity_id: Mapped[UUID | None] = mapped_column(nullable=True)
    branch_id: Mapped[UUID | None] = mapped_column(nullable=True)

    before: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    after: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)

    def __repr__(self) -> str:
        return f"<AuditLog {self.action} {self.entity_type}:{self.entity_id}>"


class SequenceCounter(Base):
    """
    Named sequence counter.

    One row per numbering scope ("voucher:HQ:2024", "admission:2024",
    "cashbook:<branch id>").  Row-level locking serializes allocations.
    """

    __tablename__ = "sequence_counters"

    __table_args__ = (UniqueConstraint("name", name="uq_sequence_counter_name"),)

    name: Mapped[str] = mapped_column(String(100), nullable=False)

    current_value: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)


class PendingRecompute(TrackedBase):
    """
    An admission whose summary failed to recompute after a successful write.

    Drained by RetryService; deleted once a recompute succeeds.
    """

    __tablename__ = "pending_recomputes"

    __table_args__ = (UniqueConstraint("admission_id", name="uq_pending_recompute_admission"),)

    admission_id: Mapped[UUID] = mapped_column(nullable=False)
    attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_error: Mapped[str | None] = mapped_column(String(2000), nullable=True)
    first_failed_at: Mapped[datetime] = mapped_column(nullable=False)
    last_attempted_at: Mapped[datetime | None] = mapped_column(nullable=True)

    def __repr__(self) -> str:
        return f"<PendingRecompute {self.admission_id} attempts={self.attempts}>"

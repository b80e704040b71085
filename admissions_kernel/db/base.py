"""
Module: admissions_kernel.db.base
Responsibility: Declarative base shared by every ledger table.
Architecture position: Kernel > DB.  Imported by models/ only; imports
    nothing from the kernel.

Conventions:
    - Primary keys are uuid4 values stored as 36-character strings, so the
      same schema runs on PostgreSQL and SQLite.
    - Money columns are Numeric(38, 9) via the Decimal annotation; floats are
      never used for amounts.
    - Every TrackedBase row records who created it (created_by_id NOT NULL).
    - Rows carrying SoftDeleteMixin are hidden by the selectors rather than
      removed.  A hard cashbook clear is the only physical delete.
"""

from datetime import datetime
from decimal import Decimal
from typing import ClassVar
from uuid import UUID as PyUUID, uuid4

from sqlalchemy import BigInteger, Boolean, DateTime, Numeric, String, false, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator

UUID = PyUUID


class UUIDString(TypeDecorator):
    """uuid.UUID on the Python side, String(36) in the database."""

    impl = String(36)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        return None if value is None else str(value)

    def process_result_value(self, value, dialect):
        return None if value is None else PyUUID(value)


def _timestamp(**kwargs) -> Mapped[datetime]:
    return mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False, **kwargs)


class Base(DeclarativeBase):
    type_annotation_map: ClassVar[dict] = {
        Decimal: Numeric(38, 9),
        datetime: DateTime(timezone=True),
        PyUUID: UUIDString(),
        # counters and print counts
        int: BigInteger,
    }

    id: Mapped[PyUUID] = mapped_column(UUIDString(), primary_key=True, default=uuid4)


class TrackedBase(Base):
    """
    Timestamps and provenance.

    ``created_at`` is the server time of the INSERT; ``updated_at`` moves on
    every UPDATE.  Timestamps come from the database, not the Clock, and on
    SQLite have one-second resolution.
    """

    __abstract__ = True

    created_at: Mapped[datetime] = _timestamp()
    updated_at: Mapped[datetime] = _timestamp(onupdate=func.now())
    created_by_id: Mapped[PyUUID] = mapped_column(UUIDString(), nullable=False)
    updated_by_id: Mapped[PyUUID | None] = mapped_column(UUIDString(), nullable=True)


class SoftDeleteMixin:
    is_deleted: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=false(), index=True
    )
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    deleted_by_id: Mapped[PyUUID | None] = mapped_column(UUIDString(), nullable=True)

    def mark_deleted(self, actor_id: PyUUID, at: datetime) -> None:
        self.is_deleted = True
        self.deleted_at = at
        self.deleted_by_id = actor_id

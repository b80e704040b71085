"""
Module: admissions_kernel.models.daybook
Responsibility: ORM persistence for the daybook (one row per payment, agent
    payment, or manual office income/expense) and the per-branch cashbook.
Architecture position: Kernel > Models.  May import from db/ and domain/.

Invariants enforced:
    - Cashbook rows of a branch are totally ordered by (entry_date, seq);
      seq is allocated from the branch's locked counter.
    - running_balance[n] = running_balance[n-1] + credited[n] - debited[n],
      base 0, at the time the row was written.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import BigInteger, Date, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from admissions_kernel.db.base import SoftDeleteMixin, TrackedBase
from admissions_kernel.domain.values import DaybookCategory, DaybookType, PaymentMode


class DaybookEntry(SoftDeleteMixin, TrackedBase):
    """
    Daybook row.  ``entry_type`` memo rows are recorded for completeness but
    are excluded from income/expense summaries.
    """

    __tablename__ = "daybook_entries"

    __table_args__ = (
        Index("idx_daybook_branch_date", "branch_id", "entry_date"),
        Index("idx_daybook_payment", "payment_id"),
    )

    entry_date: Mapped[date] = mapped_column(Date, nullable=False)
    branch_id: Mapped[UUID] = mapped_column(ForeignKey("branches.id"), nullable=False)
    category: Mapped[DaybookCategory] = mapped_column(String(50), nullable=False)
    entry_type: Mapped[DaybookType] = mapped_column(String(20), nullable=False)
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    due_amount: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    payment_mode: Mapped[PaymentMode | None] = mapped_column(String(20), nullable=True)
    description: Mapped[str | None] = mapped_column(String(2000), nullable=True)
    remarks: Mapped[str | None] = mapped_column(String(2000), nullable=True)

    admission_id: Mapped[UUID | None] = mapped_column(ForeignKey("admissions.id"), nullable=True)
    payment_id: Mapped[UUID | None] = mapped_column(ForeignKey("payments.id"), nullable=True)
    agent_payment_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("agent_payments.id"), nullable=True
    )
    voucher_id: Mapped[UUID | None] = mapped_column(nullable=True)

    def __repr__(self) -> str:
        return f"<DaybookEntry {self.entry_date} {self.entry_type}/{self.category} {self.amount}>"


class CashbookEntry(SoftDeleteMixin, TrackedBase):
    """Cash movement of a branch with the running balance after it."""

    __tablename__ = "cashbook_entries"

    __table_args__ = (
        UniqueConstraint("branch_id", "seq", name="uq_cashbook_branch_seq"),
        Index("idx_cashbook_branch_order", "branch_id", "entry_date", "seq"),
    )

    entry_date: Mapped[date] = mapped_column(Date, nullable=False)
    branch_id: Mapped[UUID] = mapped_column(ForeignKey("branches.id"), nullable=False)
    seq: Mapped[int] = mapped_column(BigInteger, nullable=False)
    category: Mapped[str | None] = mapped_column(String(50), nullable=True)
    description: Mapped[str | None] = mapped_column(String(2000), nullable=True)
    credited: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    debited: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    running_balance: Mapped[Decimal] = mapped_column(nullable=False)
    remarks: Mapped[str | None] = mapped_column(String(2000), nullable=True)

    voucher_id: Mapped[UUID | None] = mapped_column(nullable=True)
    daybook_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("daybook_entries.id"), nullable=True
    )

    def __repr__(self) -> str:
        return (
            f"<CashbookEntry {self.entry_date}#{self.seq} "
            f"+{self.credited} -{self.debited} = {self.running_balance}>"
        )

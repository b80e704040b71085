"""
Module: admissions_kernel.models.voucher
Responsibility: ORM persistence for printed vouchers (receipts, payment
    vouchers, agent payment vouchers, expense vouchers).
Architecture position: Kernel > Models.  May import from db/ and domain/.

Invariants enforced:
    - voucher_no is unique ({BRANCH}-{YEAR}-{SEQ:06d}).
    - A voucher is immutable after issue except for the print counters
      (print_count, last_printed_at, last_printed_by_id).
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Date, ForeignKey, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from admissions_kernel.db.base import SoftDeleteMixin, TrackedBase
from admissions_kernel.domain.values import (
    PaymentMode,
    ReferenceKind,
    VoucherReference,
    VoucherType,
)


class Voucher(SoftDeleteMixin, TrackedBase):
    """Voucher issued for a payment, an agent payment or a daybook entry."""

    __tablename__ = "vouchers"

    __table_args__ = (
        UniqueConstraint("voucher_no", name="uq_voucher_no"),
        Index("idx_voucher_branch_date", "branch_id", "voucher_date"),
        Index("idx_voucher_reference", "reference_kind", "reference_id"),
    )

    voucher_no: Mapped[str] = mapped_column(String(30), nullable=False)
    branch_id: Mapped[UUID] = mapped_column(ForeignKey("branches.id"), nullable=False)
    voucher_date: Mapped[date] = mapped_column(Date, nullable=False)
    voucher_type: Mapped[VoucherType] = mapped_column(String(20), nullable=False)

    reference_kind: Mapped[ReferenceKind] = mapped_column(String(20), nullable=False)
    reference_id: Mapped[UUID] = mapped_column(nullable=False)

    admission_id: Mapped[UUID | None] = mapped_column(ForeignKey("admissions.id"), nullable=True)
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    payment_mode: Mapped[PaymentMode | None] = mapped_column(String(20), nullable=True)
    transaction_ref: Mapped[str | None] = mapped_column(String(100), nullable=True)
    description: Mapped[str | None] = mapped_column(String(2000), nullable=True)
    party_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    party_type: Mapped[str | None] = mapped_column(String(20), nullable=True)

    print_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_printed_at: Mapped[datetime | None] = mapped_column(nullable=True)
    last_printed_by_id: Mapped[UUID | None] = mapped_column(nullable=True)

    @property
    def reference(self) -> VoucherReference:
        return VoucherReference(kind=ReferenceKind(self.reference_kind), id=self.reference_id)

    def __repr__(self) -> str:
        return f"<Voucher {self.voucher_no} {self.voucher_type} {self.amount}>"

"""
Module: admissions_kernel.models.payment
Responsibility: ORM persistence for payments between the four parties of an
    admission and for the legacy agent commission records.
Architecture position: Kernel > Models.  May import from db/ and domain/.

Invariants enforced:
    - amount > 0 (validated before any write).
    - A non-empty transaction_ref is unique among live payments
      (partial unique index; the service checks first and raises
      DuplicateTransactionRefError).
    - The derived columns (service_charge_deducted, amount_due_to_college,
      agent_fee_deducted, amount_transferred_to_consultancy, paid_to_agent_id,
      flow) are written by the flow classifier only.
"""

from datetime import date
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import BigInteger, Boolean, Date, ForeignKey, Index, String, text
from sqlalchemy.orm import Mapped, mapped_column

from admissions_kernel.db.base import SoftDeleteMixin, TrackedBase
from admissions_kernel.domain.values import Attachment, PayerType, PaymentMode, ReceiverType

_LIVE_REF = "transaction_ref IS NOT NULL AND transaction_ref <> ''"


def _amount() -> Any:
    return mapped_column(nullable=False, default=Decimal("0"))


class Payment(SoftDeleteMixin, TrackedBase):
    """
    A single money movement attached to an admission.

    Guarantees:
        - payer_type and receiver_type never change after creation.
        - The derived columns reflect the admission state at creation time
          (or at the last amount edit).
    """

    __tablename__ = "payments"

    __table_args__ = (
        Index("idx_payment_admission", "admission_id"),
        Index("idx_payment_branch_date", "branch_id", "payment_date"),
        Index(
            "uq_payment_live_transaction_ref",
            "transaction_ref",
            unique=True,
            postgresql_where=text(f"is_deleted = false AND {_LIVE_REF}"),
            sqlite_where=text(f"is_deleted = 0 AND {_LIVE_REF}"),
        ),
    )

    admission_id: Mapped[UUID] = mapped_column(ForeignKey("admissions.id"), nullable=False)
    branch_id: Mapped[UUID] = mapped_column(ForeignKey("branches.id"), nullable=False)

    payer_type: Mapped[PayerType] = mapped_column(String(20), nullable=False)
    receiver_type: Mapped[ReceiverType] = mapped_column(String(20), nullable=False)
    flow: Mapped[str] = mapped_column(String(40), nullable=False)

    payment_date: Mapped[date] = mapped_column(Date, nullable=False)
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    payment_mode: Mapped[PaymentMode] = mapped_column(String(20), nullable=False)
    transaction_ref: Mapped[str | None] = mapped_column(String(100), nullable=True)
    notes: Mapped[str | None] = mapped_column(String(2000), nullable=True)

    # Opaque attachment metadata
    attachment_filename: Mapped[str | None] = mapped_column(String(255), nullable=True)
    attachment_original_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    attachment_mime_type: Mapped[str | None] = mapped_column(String(100), nullable=True)
    attachment_size: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    attachment_path: Mapped[str | None] = mapped_column(String(500), nullable=True)

    voucher_id: Mapped[UUID | None] = mapped_column(nullable=True)

    # Request flags
    is_service_charge_payment: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_agent_collection: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_agent_fee_payment: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    deduct_service_charge: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    deduct_agent_fee: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    collecting_agent_id: Mapped[UUID | None] = mapped_column(ForeignKey("agents.id"), nullable=True)
    agent_id_for_fee_payment: Mapped[UUID | None] = mapped_column(
        ForeignKey("agents.id"), nullable=True
    )

    # Derived at creation
    service_charge_deducted: Mapped[Decimal] = _amount()
    amount_due_to_college: Mapped[Decimal] = _amount()
    agent_fee_deducted: Mapped[Decimal] = _amount()
    amount_transferred_to_consultancy: Mapped[Decimal] = _amount()
    paid_to_agent_id: Mapped[UUID | None] = mapped_column(ForeignKey("agents.id"), nullable=True)

    @property
    def attachment(self) -> Attachment | None:
        if not self.attachment_filename:
            return None
        return Attachment(
            filename=self.attachment_filename,
            original_name=self.attachment_original_name,
            mime_type=self.attachment_mime_type,
            size=self.attachment_size,
            path=self.attachment_path,
        )

    @attachment.setter
    def attachment(self, value: Attachment | None) -> None:
        self.attachment_filename = value.filename if value else None
        self.attachment_original_name = value.original_name if value else None
        self.attachment_mime_type = value.mime_type if value else None
        self.attachment_size = value.size if value else None
        self.attachment_path = value.path if value else None

    def __repr__(self) -> str:
        return f"<Payment {self.payer_type}->{self.receiver_type} {self.amount}>"


class AgentPayment(SoftDeleteMixin, TrackedBase):
    """
    Commission paid to an agent, recorded outside the payment flow table.

    Always counts towards the admission's agent_paid.
    """

    __tablename__ = "agent_payments"

    __table_args__ = (
        Index("idx_agent_payment_admission", "admission_id"),
        Index("idx_agent_payment_agent", "agent_id"),
    )

    admission_id: Mapped[UUID] = mapped_column(ForeignKey("admissions.id"), nullable=False)
    agent_id: Mapped[UUID] = mapped_column(ForeignKey("agents.id"), nullable=False)
    branch_id: Mapped[UUID] = mapped_column(ForeignKey("branches.id"), nullable=False)

    payment_date: Mapped[date] = mapped_column(Date, nullable=False)
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    payment_mode: Mapped[PaymentMode] = mapped_column(String(20), nullable=False)
    transaction_ref: Mapped[str | None] = mapped_column(String(100), nullable=True)
    notes: Mapped[str | None] = mapped_column(String(2000), nullable=True)

    voucher_id: Mapped[UUID | None] = mapped_column(nullable=True)

    def __repr__(self) -> str:
        return f"<AgentPayment {self.agent_id} {self.amount}>"

"""
DTOs -- immutable data structures crossing the kernel boundary.

Responsibility:
    Request objects (PaymentRequest, AgentPaymentRequest) validated at the
    edge, and the read-side records returned by the facade (PaymentInfo,
    VoucherInfo, AdmissionSummary, ...).

Architecture position:
    Kernel > Domain.  ``from_model`` classmethods are boundary converters
    invoked from services and selectors; domain logic never sees ORM rows.

Failure modes:
    - ValidationError / InvalidAmountError from ``from_dict`` on bad input.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Any, Generic, TypeVar
from uuid import UUID

from admissions_kernel.db.types import ZERO, round_money, to_money
from admissions_kernel.domain.parsing import clean_ref, parse_amount, parse_date, parse_flag, parse_uuid
from admissions_kernel.domain.values import (
    Attachment,
    PayerType,
    PaymentMode,
    ReceiverType,
    VoucherReference,
    coerce_enum,
)

if TYPE_CHECKING:
    from admissions_kernel.models import (
        Admission,
        AgentPayment,
        CashbookEntry,
        DaybookEntry,
        Payment,
        Voucher,
    )

T = TypeVar("T")


def _enum_value(value: Any) -> Any:
    return value.value if isinstance(value, Enum) else value


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PaymentRequest:
    """
    A validated request to record a payment.

    ``service_charge_deducted`` and ``agent_fee_deducted`` are the amounts
    the user asked for; the stored figures come from the flow classifier.
    """

    admission_id: UUID
    payer_type: PayerType
    receiver_type: ReceiverType
    amount: Decimal
    payment_mode: PaymentMode
    payment_date: date
    transaction_ref: str | None = None
    notes: str | None = None
    attachment: Attachment | None = None
    is_service_charge_payment: bool = False
    is_agent_collection: bool = False
    is_agent_fee_payment: bool = False
    deduct_service_charge: bool = False
    deduct_agent_fee: bool = False
    service_charge_deducted: Decimal = ZERO
    agent_fee_deducted: Decimal = ZERO
    collecting_agent_id: UUID | None = None
    agent_id_for_fee_payment: UUID | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any], today: date | None = None) -> PaymentRequest:
        return cls(
            admission_id=parse_uuid(data.get("admission_id"), "admission_id", required=True),
            payer_type=coerce_enum(PayerType, data.get("payer_type"), "payer_type"),
            receiver_type=coerce_enum(ReceiverType, data.get("receiver_type"), "receiver_type"),
            amount=parse_amount(data.get("amount"), "amount"),
            payment_mode=coerce_enum(PaymentMode, data.get("payment_mode"), "payment_mode"),
            payment_date=parse_date(data.get("payment_date"), "payment_date", today),
            transaction_ref=clean_ref(data.get("transaction_ref")),
            notes=data.get("notes"),
            attachment=Attachment.from_dict(data.get("attachment")),
            is_service_charge_payment=parse_flag(
                data.get("is_service_charge_payment"), "is_service_charge_payment"
            ),
            is_agent_collection=parse_flag(data.get("is_agent_collection"), "is_agent_collection"),
            is_agent_fee_payment=parse_flag(
                data.get("is_agent_fee_payment"), "is_agent_fee_payment"
            ),
            deduct_service_charge=parse_flag(
                data.get("deduct_service_charge"), "deduct_service_charge"
            ),
            deduct_agent_fee=parse_flag(data.get("deduct_agent_fee"), "deduct_agent_fee"),
            service_charge_deducted=parse_amount(
                data.get("service_charge_deducted"), "service_charge_deducted", positive=False
            ),
            agent_fee_deducted=parse_amount(
                data.get("agent_fee_deducted"), "agent_fee_deducted", positive=False
            ),
            collecting_agent_id=parse_uuid(data.get("collecting_agent_id"), "collecting_agent_id"),
            agent_id_for_fee_payment=parse_uuid(
                data.get("agent_id_for_fee_payment"), "agent_id_for_fee_payment"
            ),
        )

    @classmethod
    def from_payment(cls, payment: Payment, **changes: Any) -> PaymentRequest:
        """Rebuild the request a stored payment was created from."""
        values: dict[str, Any] = {
            "admission_id": payment.admission_id,
            "payer_type": PayerType(payment.payer_type),
            "receiver_type": ReceiverType(payment.receiver_type),
            "amount": to_money(payment.amount),
            "payment_mode": PaymentMode(payment.payment_mode),
            "payment_date": payment.payment_date,
            "transaction_ref": payment.transaction_ref,
            "notes": payment.notes,
            "attachment": payment.attachment,
            "is_service_charge_payment": payment.is_service_charge_payment,
            "is_agent_collection": payment.is_agent_collection,
            "is_agent_fee_payment": payment.is_agent_fee_payment,
            "deduct_service_charge": payment.deduct_service_charge,
            "deduct_agent_fee": payment.deduct_agent_fee,
            "service_charge_deducted": to_money(payment.service_charge_deducted),
            "agent_fee_deducted": to_money(payment.agent_fee_deducted),
            "collecting_agent_id": payment.collecting_agent_id,
            "agent_id_for_fee_payment": payment.agent_id_for_fee_payment,
        }
        values.update(changes)
        return cls(**values)


@dataclass(frozen=True)
class AgentPaymentRequest:
    admission_id: UUID
    agent_id: UUID
    amount: Decimal
    payment_mode: PaymentMode
    payment_date: date
    transaction_ref: str | None = None
    notes: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any], today: date | None = None) -> AgentPaymentRequest:
        return cls(
            admission_id=parse_uuid(data.get("admission_id"), "admission_id", required=True),
            agent_id=parse_uuid(data.get("agent_id"), "agent_id", required=True),
            amount=parse_amount(data.get("amount"), "amount"),
            payment_mode=coerce_enum(PaymentMode, data.get("payment_mode"), "payment_mode"),
            payment_date=parse_date(data.get("payment_date"), "payment_date", today),
            transaction_ref=clean_ref(data.get("transaction_ref")),
            notes=data.get("notes"),
        )


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class BranchRef:
    id: UUID
    code: str
    name: str


@dataclass(frozen=True)
class PaymentInfo:
    id: UUID
    admission_id: UUID
    branch_id: UUID
    payer_type: str
    receiver_type: str
    flow: str
    payment_date: date
    amount: Decimal
    payment_mode: str
    transaction_ref: str | None
    notes: str | None
    attachment: Attachment | None
    voucher_id: UUID | None
    service_charge_deducted: Decimal
    amount_due_to_college: Decimal
    agent_fee_deducted: Decimal
    amount_transferred_to_consultancy: Decimal
    paid_to_agent_id: UUID | None
    collecting_agent_id: UUID | None
    is_deleted: bool

    @classmethod
    def from_model(cls, payment: Payment) -> PaymentInfo:
        return cls(
            id=payment.id,
            admission_id=payment.admission_id,
            branch_id=payment.branch_id,
            payer_type=str(PayerType(payment.payer_type).value),
            receiver_type=str(ReceiverType(payment.receiver_type).value),
            flow=payment.flow,
            payment_date=payment.payment_date,
            amount=round_money(payment.amount),
            payment_mode=str(PaymentMode(payment.payment_mode).value),
            transaction_ref=payment.transaction_ref,
            notes=payment.notes,
            attachment=payment.attachment,
            voucher_id=payment.voucher_id,
            service_charge_deducted=round_money(payment.service_charge_deducted),
            amount_due_to_college=round_money(payment.amount_due_to_college),
            agent_fee_deducted=round_money(payment.agent_fee_deducted),
            amount_transferred_to_consultancy=round_money(
                payment.amount_transferred_to_consultancy
            ),
            paid_to_agent_id=payment.paid_to_agent_id,
            collecting_agent_id=payment.collecting_agent_id,
            is_deleted=bool(payment.is_deleted),
        )


@dataclass(frozen=True)
class AgentPaymentInfo:
    """
    Agent payment as listed.  ``source`` is ``agent_payment`` for legacy
    commission rows and ``payment`` for Consultancy -> Agent payments merged
    into the same listing.
    """

    id: UUID
    admission_id: UUID
    agent_id: UUID | None
    branch_id: UUID
    payment_date: date
    amount: Decimal
    payment_mode: str
    transaction_ref: str | None
    notes: str | None
    voucher_id: UUID | None
    source: str = "agent_payment"

    @classmethod
    def from_model(cls, agent_payment: AgentPayment) -> AgentPaymentInfo:
        return cls(
            id=agent_payment.id,
            admission_id=agent_payment.admission_id,
            agent_id=agent_payment.agent_id,
            branch_id=agent_payment.branch_id,
            payment_date=agent_payment.payment_date,
            amount=round_money(agent_payment.amount),
            payment_mode=str(PaymentMode(agent_payment.payment_mode).value),
            transaction_ref=agent_payment.transaction_ref,
            notes=agent_payment.notes,
            voucher_id=agent_payment.voucher_id,
        )

    @classmethod
    def from_payment(cls, payment: Payment) -> AgentPaymentInfo:
        return cls(
            id=payment.id,
            admission_id=payment.admission_id,
            agent_id=payment.paid_to_agent_id,
            branch_id=payment.branch_id,
            payment_date=payment.payment_date,
            amount=round_money(payment.amount),
            payment_mode=str(PaymentMode(payment.payment_mode).value),
            transaction_ref=payment.transaction_ref,
            notes=payment.notes,
            voucher_id=payment.voucher_id,
            source="payment",
        )


@dataclass(frozen=True)
class VoucherInfo:
    id: UUID
    voucher_no: str
    branch_id: UUID
    voucher_date: date
    voucher_type: str
    reference: VoucherReference
    admission_id: UUID | None
    amount: Decimal
    payment_mode: str | None
    transaction_ref: str | None
    description: str | None
    party_name: str | None
    party_type: str | None
    print_count: int
    last_printed_at: datetime | None

    @classmethod
    def from_model(cls, voucher: Voucher) -> VoucherInfo:
        return cls(
            id=voucher.id,
            voucher_no=voucher.voucher_no,
            branch_id=voucher.branch_id,
            voucher_date=voucher.voucher_date,
            voucher_type=_enum_value(voucher.voucher_type),
            reference=voucher.reference,
            admission_id=voucher.admission_id,
            amount=round_money(voucher.amount),
            payment_mode=_enum_value(voucher.payment_mode),
            transaction_ref=voucher.transaction_ref,
            description=voucher.description,
            party_name=voucher.party_name,
            party_type=voucher.party_type,
            print_count=voucher.print_count or 0,
            last_printed_at=voucher.last_printed_at,
        )


@dataclass(frozen=True)
class DaybookEntryInfo:
    id: UUID
    entry_date: date
    branch_id: UUID
    category: str
    entry_type: str
    amount: Decimal
    due_amount: Decimal
    description: str | None
    admission_id: UUID | None
    payment_id: UUID | None
    agent_payment_id: UUID | None
    voucher_id: UUID | None

    @classmethod
    def from_model(cls, entry: DaybookEntry) -> DaybookEntryInfo:
        return cls(
            id=entry.id,
            entry_date=entry.entry_date,
            branch_id=entry.branch_id,
            category=_enum_value(entry.category),
            entry_type=_enum_value(entry.entry_type),
            amount=round_money(entry.amount),
            due_amount=round_money(entry.due_amount),
            description=entry.description,
            admission_id=entry.admission_id,
            payment_id=entry.payment_id,
            agent_payment_id=entry.agent_payment_id,
            voucher_id=entry.voucher_id,
        )


@dataclass(frozen=True)
class CashbookEntryInfo:
    id: UUID
    entry_date: date
    branch_id: UUID
    seq: int
    category: str | None
    description: str | None
    credited: Decimal
    debited: Decimal
    running_balance: Decimal
    voucher_id: UUID | None
    daybook_id: UUID | None

    @classmethod
    def from_model(cls, entry: CashbookEntry) -> CashbookEntryInfo:
        return cls(
            id=entry.id,
            entry_date=entry.entry_date,
            branch_id=entry.branch_id,
            seq=entry.seq,
            category=entry.category,
            description=entry.description,
            credited=round_money(entry.credited),
            debited=round_money(entry.debited),
            running_balance=round_money(entry.running_balance),
            voucher_id=entry.voucher_id,
            daybook_id=entry.daybook_id,
        )


@dataclass(frozen=True)
class AdmissionSummary:
    """The reconciled money view of an admission."""

    admission_id: UUID
    admission_no: str
    total_fee: Decimal
    student_paid: Decimal
    student_due: Decimal
    agent_paid: Decimal
    agent_due: Decimal
    service_charge_agreed: Decimal
    service_charge_received_from_college: Decimal
    service_charge_deducted_from_student: Decimal
    service_charge_deducted_by_agent: Decimal
    service_charge_paid_back_to_college: Decimal
    service_charge_received: Decimal
    service_charge_due: Decimal
    total_due_to_college: Decimal
    paid_to_college: Decimal
    balance_due_to_college: Decimal
    total_agent_fee: Decimal
    total_agent_fee_paid: Decimal
    total_agent_fee_due: Decimal

    @classmethod
    def from_model(cls, admission: Admission) -> AdmissionSummary:
        def m(name: str) -> Decimal:
            return round_money(getattr(admission, name))

        return cls(
            admission_id=admission.id,
            admission_no=admission.admission_no,
            total_fee=m("total_fee"),
            student_paid=m("student_paid"),
            student_due=m("student_due"),
            agent_paid=m("agent_paid"),
            agent_due=m("agent_due"),
            service_charge_agreed=m("service_charge_agreed"),
            service_charge_received_from_college=m("service_charge_received_from_college"),
            service_charge_deducted_from_student=m("service_charge_deducted_from_student"),
            service_charge_deducted_by_agent=m("service_charge_deducted_by_agent"),
            service_charge_paid_back_to_college=m("service_charge_paid_back_to_college"),
            service_charge_received=m("service_charge_received"),
            service_charge_due=m("service_charge_due"),
            total_due_to_college=m("total_due_to_college"),
            paid_to_college=m("paid_to_college"),
            balance_due_to_college=m("balance_due_to_college"),
            total_agent_fee=m("total_agent_fee"),
            total_agent_fee_paid=m("total_agent_fee_paid"),
            total_agent_fee_due=m("total_agent_fee_due"),
        )


@dataclass(frozen=True)
class AdmissionInfo:
    id: UUID
    admission_no: str
    branch_id: UUID
    college_id: UUID | None
    course_id: UUID | None
    academic_year: str | None
    admission_date: date
    admission_status: str
    student_name: str
    student_phone: str | None
    student_email: str | None
    groups: dict[str, Any]

    @classmethod
    def from_model(cls, admission: Admission, include_service_charge: bool = True) -> AdmissionInfo:
        return cls(
            id=admission.id,
            admission_no=admission.admission_no,
            branch_id=admission.branch_id,
            college_id=admission.college_id,
            course_id=admission.course_id,
            academic_year=admission.academic_year,
            admission_date=admission.admission_date,
            admission_status=_enum_value(admission.admission_status),
            student_name=admission.student_name,
            student_phone=admission.student_phone,
            student_email=admission.student_email,
            groups=admission.to_groups(include_service_charge=include_service_charge),
        )


@dataclass(frozen=True)
class Page(Generic[T]):
    items: tuple[T, ...]
    total: int
    page: int
    limit: int

    @property
    def pages(self) -> int:
        if self.limit <= 0:
            return 0
        return (self.total + self.limit - 1) // self.limit


@dataclass(frozen=True)
class PaymentOutcome:
    """Everything one payment write produced."""

    payment: PaymentInfo
    voucher: VoucherInfo | None = None
    daybook_entry: DaybookEntryInfo | None = None
    cashbook_entry: CashbookEntryInfo | None = None
    summary: AdmissionSummary | None = None
    recompute_pending: bool = False


@dataclass(frozen=True)
class AgentPaymentOutcome:
    agent_payment: AgentPaymentInfo
    voucher: VoucherInfo | None = None
    daybook_entry: DaybookEntryInfo | None = None
    cashbook_entry: CashbookEntryInfo | None = None
    summary: AdmissionSummary | None = None
    recompute_pending: bool = False


@dataclass(frozen=True)
class TransactionRefCheck:
    exists: bool
    payment: PaymentInfo | None = None


@dataclass(frozen=True)
class AdmissionDetails:
    admission: AdmissionInfo
    payments: tuple[PaymentInfo, ...] = ()
    agent_payments: tuple[AgentPaymentInfo, ...] = ()
    vouchers: tuple[VoucherInfo, ...] = ()


@dataclass(frozen=True)
class CashbookSummary:
    total_credited: Decimal
    total_debited: Decimal
    entry_count: int
    current_balance: Decimal


@dataclass(frozen=True)
class DaybookSummary:
    total_income: Decimal
    total_expense: Decimal
    net: Decimal
    by_category: dict[str, Decimal] = field(default_factory=dict)


@dataclass(frozen=True)
class DaybookOutcome:
    """A manual daybook entry with the voucher and cash row it produced."""

    daybook_entry: DaybookEntryInfo
    voucher: VoucherInfo | None = None
    cashbook_entry: CashbookEntryInfo | None = None

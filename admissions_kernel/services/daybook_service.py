"""
DaybookService -- the voucher, daybook and cashbook side of every transaction.

Responsibility:
    For a payment or agent payment: issue exactly one voucher, write exactly
    one daybook row, and append to the branch cashbook when the money moved
    in cash through the consultancy.  Also owns the manual daybook entries
    (office rent, salaries, ...) which follow the same voucher / cashbook
    rules.

Architecture position:
    Kernel > Services -- imperative shell.  Called by PaymentService,
    AgentPaymentService and the ledger facade.

Invariants enforced:
    - Memo rows (money between third parties) get a voucher and a daybook
      row but never a cashbook row.
    - Cash income credits the cashbook, cash expense debits it.
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Any
from uuid import UUID

from admissions_kernel.db.types import ZERO, round_money
from admissions_kernel.domain.parsing import parse_amount, parse_date
from admissions_kernel.domain.flow_classifier import CashbookSide, RecordingPlan
from admissions_kernel.domain.values import (
    DaybookCategory,
    DaybookType,
    PaymentMode,
    ReferenceKind,
    VoucherReference,
    VoucherType,
    coerce_enum,
)
from admissions_kernel.exceptions import DaybookEntryNotFoundError, ValidationError
from admissions_kernel.logging_config import get_logger
from admissions_kernel.models import AgentPayment, CashbookEntry, DaybookEntry, Payment, Voucher
from admissions_kernel.selectors import DaybookSelector
from admissions_kernel.services.base import BaseService
from admissions_kernel.services.cashbook_service import CashbookService
from admissions_kernel.services.voucher_service import VoucherService

logger = get_logger("services.daybook")

DEFAULT_CASH_MODE = PaymentMode.CASH.value


@dataclass
class RecordedEntries:
    """Rows written for one transaction."""

    voucher: Voucher
    daybook_entry: DaybookEntry
    cashbook_entry: CashbookEntry | None = None


class DaybookService(BaseService[DaybookEntry]):
    def __init__(
        self,
        session,
        clock=None,
        vouchers: VoucherService | None = None,
        cashbook: CashbookService | None = None,
        cash_payment_mode: str = DEFAULT_CASH_MODE,
    ):
        super().__init__(session, clock)
        self._vouchers = vouchers or VoucherService(session, self.clock)
        self._cashbook = cashbook or CashbookService(session, self.clock)
        self._selector = DaybookSelector(session)
        self._cash_mode = cash_payment_mode

    def is_cash(self, payment_mode: Any) -> bool:
        mode = payment_mode.value if isinstance(payment_mode, PaymentMode) else payment_mode
        return mode == self._cash_mode

    # -- transaction recording ------------------------------------------------

    def record_payment(
        self,
        payment: Payment,
        plan: RecordingPlan,
        actor_id: UUID,
        *,
        party_name: str | None = None,
        party_type: str | None = None,
        description: str | None = None,
    ) -> RecordedEntries:
        """Voucher, daybook row and (cash) cashbook row for a payment."""
        voucher = self._vouchers.issue(
            branch_id=payment.branch_id,
            voucher_date=payment.payment_date,
            voucher_type=plan.voucher_type,
            reference=VoucherReference(ReferenceKind.PAYMENT, payment.id),
            amount=payment.amount,
            actor_id=actor_id,
            admission_id=payment.admission_id,
            payment_mode=payment.payment_mode,
            transaction_ref=payment.transaction_ref,
            description=description,
            party_name=party_name,
            party_type=party_type,
        )
        payment.voucher_id = voucher.id

        entry = self._write_entry(
            entry_date=payment.payment_date,
            branch_id=payment.branch_id,
            entry_type=plan.daybook_type,
            category=plan.category,
            amount=payment.amount,
            due_amount=payment.amount_due_to_college,
            payment_mode=payment.payment_mode,
            description=description,
            admission_id=payment.admission_id,
            payment_id=payment.id,
            voucher_id=voucher.id,
            actor_id=actor_id,
        )

        cash_entry = None
        if plan.cashbook_side is not None and self.is_cash(payment.payment_mode):
            cash_entry = self._post_cash(entry, plan.cashbook_side, actor_id)
        self.session.flush()
        return RecordedEntries(voucher, entry, cash_entry)

    def record_agent_payment(
        self,
        agent_payment: AgentPayment,
        actor_id: UUID,
        *,
        party_name: str | None = None,
        description: str | None = None,
    ) -> RecordedEntries:
        """Agent commission: agent_payment voucher, paid_to_agent expense."""
        voucher = self._vouchers.issue(
            branch_id=agent_payment.branch_id,
            voucher_date=agent_payment.payment_date,
            voucher_type=VoucherType.AGENT_PAYMENT,
            reference=VoucherReference(ReferenceKind.AGENT_PAYMENT, agent_payment.id),
            amount=agent_payment.amount,
            actor_id=actor_id,
            admission_id=agent_payment.admission_id,
            payment_mode=agent_payment.payment_mode,
            transaction_ref=agent_payment.transaction_ref,
            description=description,
            party_name=party_name,
            party_type="Agent",
        )
        agent_payment.voucher_id = voucher.id

        entry = self._write_entry(
            entry_date=agent_payment.payment_date,
            branch_id=agent_payment.branch_id,
            entry_type=DaybookType.EXPENSE,
            category=DaybookCategory.PAID_TO_AGENT,
            amount=agent_payment.amount,
            payment_mode=agent_payment.payment_mode,
            description=description,
            admission_id=agent_payment.admission_id,
            agent_payment_id=agent_payment.id,
            voucher_id=voucher.id,
            actor_id=actor_id,
        )

        cash_entry = None
        if self.is_cash(agent_payment.payment_mode):
            cash_entry = self._post_cash(entry, CashbookSide.DEBIT, actor_id)
        self.session.flush()
        return RecordedEntries(voucher, entry, cash_entry)

    # -- manual entries -------------------------------------------------------

    def create_entry(self, data: dict[str, Any], actor_id: UUID) -> RecordedEntries:
        """
        Manual office income or expense.

        Expected keys: branch_id, entry_date, entry_type (income|expense),
        category, amount, payment_mode; optional due_amount, description,
        remarks.
        """
        entry_type = coerce_enum(DaybookType, data.get("entry_type"), "entry_type")
        if entry_type == DaybookType.MEMO:
            raise ValidationError(
                "Manual daybook entries must be income or expense",
                field_errors=[{"field": "entry_type", "message": "Must be income or expense"}],
            )
        category = coerce_enum(DaybookCategory, data.get("category", "misc"), "category")
        payment_mode = coerce_enum(
            PaymentMode, data.get("payment_mode", DEFAULT_CASH_MODE), "payment_mode"
        )
        amount = parse_amount(data.get("amount"), "amount")
        due_amount = parse_amount(data.get("due_amount"), "due_amount", positive=False)
        entry_date = parse_date(data.get("entry_date"), "entry_date", self.clock.today())
        branch_id = data.get("branch_id")
        if branch_id is None:
            raise ValidationError(
                "branch_id is required",
                field_errors=[{"field": "branch_id", "message": "Required"}],
            )
        branch_id = branch_id if isinstance(branch_id, UUID) else UUID(str(branch_id))

        entry = self._write_entry(
            entry_date=entry_date,
            branch_id=branch_id,
            entry_type=entry_type,
            category=category,
            amount=amount,
            due_amount=due_amount,
            payment_mode=payment_mode,
            description=data.get("description"),
            remarks=data.get("remarks"),
            actor_id=actor_id,
        )

        voucher = self._vouchers.issue(
            branch_id=branch_id,
            voucher_date=entry_date,
            voucher_type=(
                VoucherType.EXPENSE if entry_type == DaybookType.EXPENSE else VoucherType.RECEIPT
            ),
            reference=VoucherReference(ReferenceKind.DAYBOOK, entry.id),
            amount=amount,
            actor_id=actor_id,
            payment_mode=payment_mode,
            description=data.get("description"),
            party_name=data.get("party_name"),
            party_type=data.get("party_type"),
        )
        entry.voucher_id = voucher.id

        cash_entry = None
        if self.is_cash(payment_mode):
            side = CashbookSide.CREDIT if entry_type == DaybookType.INCOME else CashbookSide.DEBIT
            cash_entry = self._post_cash(entry, side, actor_id)
        self.session.flush()
        return RecordedEntries(voucher, entry, cash_entry)

    def _require(self, entry_id: UUID) -> DaybookEntry:
        entry = self._selector.get(entry_id)
        if entry is None:
            raise DaybookEntryNotFoundError(entry_id)
        return entry

    def update_entry(self, entry_id: UUID, data: dict[str, Any], actor_id: UUID) -> DaybookEntry:
        """Edit description, remarks, category, due amount or amount of an entry."""
        entry = self._require(entry_id)
        if "amount" in data:
            entry.amount = parse_amount(data["amount"], "amount")
        if "due_amount" in data:
            entry.due_amount = parse_amount(data["due_amount"], "due_amount", positive=False)
        if "category" in data:
            entry.category = coerce_enum(DaybookCategory, data["category"], "category").value
        for name in ("description", "remarks"):
            if name in data:
                setattr(entry, name, data[name])
        entry.updated_by_id = actor_id
        self.session.flush()
        logger.info("daybook_entry_updated", extra={"entry_id": str(entry.id)})
        return entry

    def delete_entry(self, entry_id: UUID, actor_id: UUID) -> DaybookEntry:
        entry = self._require(entry_id)
        entry.mark_deleted(actor_id, self.clock.now())
        self.session.flush()
        logger.info("daybook_entry_deleted", extra={"entry_id": str(entry.id)})
        return entry

    # -- internals ------------------------------------------------------------

    def _write_entry(
        self,
        *,
        entry_date: date,
        branch_id: UUID,
        entry_type: DaybookType,
        category: DaybookCategory,
        amount: Decimal,
        actor_id: UUID,
        due_amount: Decimal = ZERO,
        payment_mode: Any = None,
        description: str | None = None,
        remarks: str | None = None,
        admission_id: UUID | None = None,
        payment_id: UUID | None = None,
        agent_payment_id: UUID | None = None,
        voucher_id: UUID | None = None,
    ) -> DaybookEntry:
        entry = DaybookEntry(
            entry_date=entry_date,
            branch_id=branch_id,
            entry_type=DaybookType(entry_type).value,
            category=DaybookCategory(category).value,
            amount=round_money(amount),
            due_amount=round_money(due_amount or ZERO),
            payment_mode=PaymentMode(payment_mode).value if payment_mode else None,
            description=description,
            remarks=remarks,
            admission_id=admission_id,
            payment_id=payment_id,
            agent_payment_id=agent_payment_id,
            voucher_id=voucher_id,
            created_by_id=actor_id,
        )
        self.session.add(entry)
        self.session.flush()
        logger.info(
            "daybook_recorded",
            extra={
                "daybook_id": str(entry.id),
                "entry_type": entry.entry_type,
                "category": entry.category,
                "amount": str(entry.amount),
            },
        )
        return entry

    def _post_cash(self, entry: DaybookEntry, side: CashbookSide, actor_id: UUID) -> CashbookEntry:
        amount = round_money(entry.amount)
        return self._cashbook.append(
            entry.branch_id,
            entry.entry_date,
            actor_id,
            credited=amount if side == CashbookSide.CREDIT else ZERO,
            debited=amount if side == CashbookSide.DEBIT else ZERO,
            category=entry.category,
            description=entry.description,
            voucher_id=entry.voucher_id,
            daybook_id=entry.id,
        )

"""
Module: admissions_kernel.selectors.payment_selector
Responsibility: Read access to payments and agent payments, including the
    named flow sums the aggregator folds into an admission's summary.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - Every sum covers live rows only (is_deleted = false) and is rounded
      with round_money.
    - One named query per flow category; the aggregator never sums in Python
      over loaded rows.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, or_, select
from sqlalchemy.orm import InstrumentedAttribute

from admissions_kernel.db.types import ZERO, round_money
from admissions_kernel.domain.dtos import AgentPaymentInfo, Page, PaymentInfo
from admissions_kernel.domain.reconciliation import FlowTotals
from admissions_kernel.domain.values import PayerType, ReceiverType
from admissions_kernel.models import AgentPayment, Payment
from admissions_kernel.selectors.base import BaseSelector, date_range

# Payment columns the aggregator may sum through ``sum_derived``.
SUMMABLE_COLUMNS = frozenset(
    {
        "amount",
        "service_charge_deducted",
        "amount_due_to_college",
        "agent_fee_deducted",
        "amount_transferred_to_consultancy",
    }
)


class PaymentSelector(BaseSelector[Payment]):
    """Queries over the payments table."""

    model = Payment

    # -- lookups --------------------------------------------------------------

    def find_by_transaction_ref(
        self,
        transaction_ref: str | None,
        exclude_id: UUID | None = None,
    ) -> Payment | None:
        """Live payment carrying ``transaction_ref``; empty refs never match."""
        ref = (transaction_ref or "").strip()
        if not ref:
            return None
        stmt = self._live(select(Payment).where(Payment.transaction_ref == ref))
        if exclude_id is not None:
            stmt = stmt.where(Payment.id != exclude_id)
        return self.session.execute(stmt.limit(1)).scalar_one_or_none()

    def list_for_admission(self, admission_id: UUID) -> list[Payment]:
        stmt = self._live(
            select(Payment)
            .where(Payment.admission_id == admission_id)
            .order_by(Payment.payment_date, Payment.created_at)
        )
        return list(self.session.execute(stmt).scalars())

    def list_payments(
        self,
        *,
        admission_id: UUID | None = None,
        branch_id: UUID | None = None,
        payer_type: PayerType | None = None,
        receiver_type: ReceiverType | None = None,
        start_date: date | None = None,
        end_date: date | None = None,
        page: int | None = None,
        limit: int | None = None,
    ) -> Page[PaymentInfo]:
        stmt = self._live(select(Payment))
        if admission_id is not None:
            stmt = stmt.where(Payment.admission_id == admission_id)
        if branch_id is not None:
            stmt = stmt.where(Payment.branch_id == branch_id)
        if payer_type is not None:
            stmt = stmt.where(Payment.payer_type == PayerType(payer_type).value)
        if receiver_type is not None:
            stmt = stmt.where(Payment.receiver_type == ReceiverType(receiver_type).value)
        stmt = date_range(stmt, Payment.payment_date, start_date, end_date)
        stmt = stmt.order_by(Payment.payment_date.desc(), Payment.created_at.desc())

        rows, total, page, limit = self._paginate(stmt, page, limit)
        return Page(
            items=tuple(PaymentInfo.from_model(p) for p in rows),
            total=total,
            page=page,
            limit=limit,
        )

    # -- named flow sums ------------------------------------------------------

    def _sum(self, column: InstrumentedAttribute, *criteria) -> Decimal:
        stmt = self._live(select(func.coalesce(func.sum(column), 0)).where(*criteria))
        return round_money(self.session.execute(stmt).scalar_one() or ZERO)

    def sum_payments(
        self,
        admission_id: UUID,
        payer: PayerType,
        receiver: ReceiverType,
    ) -> Decimal:
        """Total amount paid by ``payer`` to ``receiver`` on the admission."""
        return self._sum(
            Payment.amount,
            Payment.admission_id == admission_id,
            Payment.payer_type == payer.value,
            Payment.receiver_type == receiver.value,
        )

    def sum_service_charge_from_college(self, admission_id: UUID) -> Decimal:
        return self._sum(
            Payment.amount,
            Payment.admission_id == admission_id,
            Payment.payer_type == PayerType.COLLEGE.value,
            Payment.receiver_type == ReceiverType.CONSULTANCY.value,
            Payment.is_service_charge_payment.is_(True),
        )

    def sum_derived(self, admission_id: UUID, column_name: str) -> Decimal:
        """Sum one derived payment column over the admission's live payments."""
        if column_name not in SUMMABLE_COLUMNS:
            raise ValueError(f"Column is not summable: {column_name}")
        return self._sum(getattr(Payment, column_name), Payment.admission_id == admission_id)

    def sum_agent_payments(self, admission_id: UUID) -> Decimal:
        stmt = select(func.coalesce(func.sum(AgentPayment.amount), 0)).where(
            AgentPayment.admission_id == admission_id,
            AgentPayment.is_deleted.is_(False),
        )
        return round_money(self.session.execute(stmt).scalar_one() or ZERO)

    def sum_paid_to_agent(self, admission_id: UUID, agent_id: UUID) -> Decimal:
        """
        Amount attributable to one agent: Consultancy -> Agent payments to it,
        its commission rows, and agent fees it deducted while collecting.
        """
        paid = self._sum(
            Payment.amount,
            Payment.admission_id == admission_id,
            Payment.payer_type == PayerType.CONSULTANCY.value,
            Payment.receiver_type == ReceiverType.AGENT.value,
            Payment.paid_to_agent_id == agent_id,
        )
        deducted = self._sum(
            Payment.agent_fee_deducted,
            Payment.admission_id == admission_id,
            Payment.collecting_agent_id == agent_id,
        )
        commission = round_money(
            self.session.execute(
                select(func.coalesce(func.sum(AgentPayment.amount), 0)).where(
                    AgentPayment.admission_id == admission_id,
                    AgentPayment.agent_id == agent_id,
                    AgentPayment.is_deleted.is_(False),
                )
            ).scalar_one()
            or ZERO
        )
        return round_money(paid + deducted + commission)

    def flow_totals(self, admission_id: UUID, agent_ids: list[UUID] | None = None) -> FlowTotals:
        """Every total the reconciliation needs, one named query each."""
        return FlowTotals(
            student_to_consultancy=self.sum_payments(
                admission_id, PayerType.STUDENT, ReceiverType.CONSULTANCY
            ),
            student_to_agent=self.sum_payments(admission_id, PayerType.STUDENT, ReceiverType.AGENT),
            student_to_college=self.sum_payments(
                admission_id, PayerType.STUDENT, ReceiverType.COLLEGE
            ),
            consultancy_to_agent=self.sum_payments(
                admission_id, PayerType.CONSULTANCY, ReceiverType.AGENT
            ),
            consultancy_to_college=self.sum_payments(
                admission_id, PayerType.CONSULTANCY, ReceiverType.COLLEGE
            ),
            college_service_charge=self.sum_service_charge_from_college(admission_id),
            service_charge_deducted=self.sum_derived(admission_id, "service_charge_deducted"),
            agent_fee_deducted=self.sum_derived(admission_id, "agent_fee_deducted"),
            amount_due_to_college=self.sum_derived(admission_id, "amount_due_to_college"),
            agent_payments=self.sum_agent_payments(admission_id),
            paid_by_agent={
                agent_id: self.sum_paid_to_agent(admission_id, agent_id)
                for agent_id in dict.fromkeys(agent_ids or [])
                if agent_id is not None
            },
        )


class AgentPaymentSelector(BaseSelector[AgentPayment]):
    """Queries over the legacy agent commission table."""

    model = AgentPayment

    def list_for_admission(self, admission_id: UUID) -> list[AgentPayment]:
        stmt = self._live(
            select(AgentPayment)
            .where(AgentPayment.admission_id == admission_id)
            .order_by(AgentPayment.payment_date, AgentPayment.created_at)
        )
        return list(self.session.execute(stmt).scalars())

    def list_agent_payments(
        self,
        *,
        admission_id: UUID | None = None,
        agent_id: UUID | None = None,
        branch_id: UUID | None = None,
        start_date: date | None = None,
        end_date: date | None = None,
        page: int | None = None,
        limit: int | None = None,
    ) -> Page[AgentPaymentInfo]:
        """
        Merged listing of commission rows and Consultancy -> Agent payments,
        newest first.
        """
        legacy = self._live(select(AgentPayment))
        flows = select(Payment).where(
            Payment.is_deleted.is_(False),
            Payment.payer_type == PayerType.CONSULTANCY.value,
            Payment.receiver_type == ReceiverType.AGENT.value,
        )
        if admission_id is not None:
            legacy = legacy.where(AgentPayment.admission_id == admission_id)
            flows = flows.where(Payment.admission_id == admission_id)
        if agent_id is not None:
            legacy = legacy.where(AgentPayment.agent_id == agent_id)
            flows = flows.where(
                or_(Payment.paid_to_agent_id == agent_id, Payment.agent_id_for_fee_payment == agent_id)
            )
        if branch_id is not None:
            legacy = legacy.where(AgentPayment.branch_id == branch_id)
            flows = flows.where(Payment.branch_id == branch_id)
        legacy = date_range(legacy, AgentPayment.payment_date, start_date, end_date)
        flows = date_range(flows, Payment.payment_date, start_date, end_date)

        items = [AgentPaymentInfo.from_model(r) for r in self.session.execute(legacy).scalars()]
        items += [AgentPaymentInfo.from_payment(r) for r in self.session.execute(flows).scalars()]
        items.sort(key=lambda i: (i.payment_date, str(i.id)), reverse=True)

        page, limit = self.normalize_paging(page, limit)
        start = (page - 1) * limit
        return Page(
            items=tuple(items[start : start + limit]),
            total=len(items),
            page=page,
            limit=limit,
        )

"""
AgentPaymentService -- commission payments recorded against an agent.

These rows live outside the payment flow table and always count towards
the admission's ``agent_paid``.  Each one gets an ``agent_payment``
voucher, a ``paid_to_agent`` expense row and, when paid in cash, a
cashbook debit.
"""

from dataclasses import dataclass
from typing import Any
from uuid import UUID

from admissions_kernel.domain.dtos import AgentPaymentRequest
from admissions_kernel.domain.parsing import clean_ref, parse_amount, parse_date
from admissions_kernel.domain.values import PaymentMode, coerce_enum
from admissions_kernel.exceptions import (
    AdmissionNotFoundError,
    AgentNotFoundError,
    AgentPaymentNotFoundError,
)
from admissions_kernel.logging_config import get_logger
from admissions_kernel.models import AgentPayment
from admissions_kernel.selectors import AdmissionSelector, AgentPaymentSelector, AgentSelector
from admissions_kernel.services.base import BaseService
from admissions_kernel.services.daybook_service import DaybookService, RecordedEntries

logger = get_logger("services.agent_payment")


@dataclass
class RecordedAgentPayment:
    agent_payment: AgentPayment
    entries: RecordedEntries


class AgentPaymentService(BaseService[AgentPayment]):
    def __init__(self, session, clock=None, recorder: DaybookService | None = None):
        super().__init__(session, clock)
        self._recorder = recorder or DaybookService(session, self.clock)
        self._selector = AgentPaymentSelector(session)
        self._admissions = AdmissionSelector(session)
        self._agents = AgentSelector(session)

    def get(self, agent_payment_id: UUID) -> AgentPayment:
        agent_payment = self._selector.get(agent_payment_id)
        if agent_payment is None:
            raise AgentPaymentNotFoundError(agent_payment_id)
        return agent_payment

    def create(self, request: AgentPaymentRequest, actor_id: UUID) -> RecordedAgentPayment:
        admission = self._admissions.get(request.admission_id)
        if admission is None:
            raise AdmissionNotFoundError(request.admission_id)
        agent = self._agents.get(request.agent_id)
        if agent is None:
            raise AgentNotFoundError(request.agent_id)

        agent_payment = AgentPayment(
            admission_id=admission.id,
            agent_id=agent.id,
            branch_id=admission.branch_id,
            payment_date=request.payment_date,
            amount=request.amount,
            payment_mode=request.payment_mode.value,
            transaction_ref=request.transaction_ref,
            notes=request.notes,
            created_by_id=actor_id,
        )
        self.session.add(agent_payment)
        self.session.flush()

        entries = self._recorder.record_agent_payment(
            agent_payment, actor_id, party_name=agent.name, description=request.notes
        )
        logger.info(
            "agent_payment_created",
            extra={
                "agent_payment_id": str(agent_payment.id),
                "admission_id": str(admission.id),
                "agent_id": str(agent.id),
                "amount": str(agent_payment.amount),
                "voucher_no": entries.voucher.voucher_no,
            },
        )
        return RecordedAgentPayment(agent_payment, entries)

    def update(self, agent_payment_id: UUID, data: dict[str, Any], actor_id: UUID) -> AgentPayment:
        agent_payment = self.get(agent_payment_id)
        if "amount" in data:
            agent_payment.amount = parse_amount(data["amount"], "amount")
        if "payment_date" in data:
            agent_payment.payment_date = parse_date(data["payment_date"], "payment_date")
        if "payment_mode" in data:
            agent_payment.payment_mode = coerce_enum(
                PaymentMode, data["payment_mode"], "payment_mode"
            ).value
        if "transaction_ref" in data:
            agent_payment.transaction_ref = clean_ref(data["transaction_ref"])
        if "notes" in data:
            agent_payment.notes = data["notes"]
        agent_payment.updated_by_id = actor_id
        self.session.flush()
        logger.info(
            "agent_payment_updated",
            extra={"agent_payment_id": str(agent_payment.id), "amount": str(agent_payment.amount)},
        )
        return agent_payment

    def delete(self, agent_payment_id: UUID, actor_id: UUID) -> AgentPayment:
        agent_payment = self.get(agent_payment_id)
        agent_payment.mark_deleted(actor_id, self.clock.now())
        self.session.flush()
        logger.info("agent_payment_deleted", extra={"agent_payment_id": str(agent_payment.id)})
        return agent_payment

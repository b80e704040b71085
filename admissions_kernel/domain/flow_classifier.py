"""
Payment flow classifier -- pure mapping from a payment request to its flow.

Responsibility:
    Classifies a (payer, receiver, flags) triple into a FlowKind, derives the
    per-transaction figures stored on the payment (service charge deducted,
    amount due to the college, agent fee deducted, amount transferred to the
    consultancy, agent paid), and says how the payment is to be recorded
    (voucher type, daybook type and category, cashbook side).

Architecture position:
    Kernel > Domain -- pure, zero I/O.  Called by PaymentService before the
    payment row is written.

Precedence (first match wins):
    1. Student -> Consultancy, not a service-charge payment, not an agent collection
    2. Agent -> Consultancy
    3. Student -> Agent
    4. College -> Consultancy flagged as a service-charge payment
    5. Consultancy -> Agent
    6. Consultancy -> College
    7. any other distinct pair (pass-through, nothing derived)

Failure modes:
    - InvalidFlowError when payer and receiver are the same party or either
      side is not a known party.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Protocol
from uuid import UUID

from admissions_kernel.db.types import ZERO, clamp_non_negative, round_money
from admissions_kernel.domain.values import (
    DaybookCategory,
    DaybookType,
    PayerType,
    ReceiverType,
    VoucherType,
)
from admissions_kernel.exceptions import InvalidFlowError


class FlowKind(str, Enum):
    STUDENT_TO_CONSULTANCY = "student_to_consultancy"
    AGENT_TO_CONSULTANCY = "agent_to_consultancy"
    STUDENT_TO_AGENT = "student_to_agent"
    COLLEGE_SERVICE_CHARGE = "college_service_charge"
    CONSULTANCY_TO_AGENT = "consultancy_to_agent"
    CONSULTANCY_TO_COLLEGE = "consultancy_to_college"
    PASS_THROUGH = "pass_through"


class CashbookSide(str, Enum):
    CREDIT = "credit"
    DEBIT = "debit"


class FlowRequest(Protocol):
    """The attributes of a payment request the classifier reads."""

    payer_type: PayerType
    receiver_type: ReceiverType
    amount: Decimal
    is_service_charge_payment: bool
    is_agent_collection: bool
    deduct_service_charge: bool
    deduct_agent_fee: bool
    service_charge_deducted: Decimal
    agent_fee_deducted: Decimal
    agent_id_for_fee_payment: UUID | None


@dataclass(frozen=True)
class AdmissionFlowState:
    """Admission figures the derivation depends on, read at write time."""

    service_charge_agreed: Decimal = ZERO
    service_charge_due: Decimal = ZERO
    total_agent_fee: Decimal = ZERO


@dataclass(frozen=True)
class FlowDerivation:
    flow: FlowKind
    service_charge_deducted: Decimal = ZERO
    amount_due_to_college: Decimal = ZERO
    agent_fee_deducted: Decimal = ZERO
    amount_transferred_to_consultancy: Decimal = ZERO
    paid_to_agent_id: UUID | None = None


@dataclass(frozen=True)
class RecordingPlan:
    """How a payment appears in the voucher book, daybook and cashbook."""

    voucher_type: VoucherType
    daybook_type: DaybookType
    category: DaybookCategory
    cashbook_side: CashbookSide | None

    @property
    def touches_consultancy(self) -> bool:
        return self.daybook_type != DaybookType.MEMO


def classify_flow(request: FlowRequest) -> FlowKind:
    """Return the FlowKind of ``request``.  Raises InvalidFlowError."""
    payer = request.payer_type
    receiver = request.receiver_type

    if not isinstance(payer, PayerType):
        raise InvalidFlowError(str(payer), str(receiver), "unknown payer type")
    if not isinstance(receiver, ReceiverType):
        raise InvalidFlowError(payer.value, str(receiver), "unknown receiver type")
    if payer.value == receiver.value:
        raise InvalidFlowError(payer.value, receiver.value, "payer and receiver must differ")

    if (
        payer == PayerType.STUDENT
        and receiver == ReceiverType.CONSULTANCY
        and not request.is_service_charge_payment
        and not request.is_agent_collection
    ):
        return FlowKind.STUDENT_TO_CONSULTANCY
    if payer == PayerType.AGENT and receiver == ReceiverType.CONSULTANCY:
        return FlowKind.AGENT_TO_CONSULTANCY
    if payer == PayerType.STUDENT and receiver == ReceiverType.AGENT:
        return FlowKind.STUDENT_TO_AGENT
    if (
        payer == PayerType.COLLEGE
        and receiver == ReceiverType.CONSULTANCY
        and request.is_service_charge_payment
    ):
        return FlowKind.COLLEGE_SERVICE_CHARGE
    if payer == PayerType.CONSULTANCY and receiver == ReceiverType.AGENT:
        return FlowKind.CONSULTANCY_TO_AGENT
    if payer == PayerType.CONSULTANCY and receiver == ReceiverType.COLLEGE:
        return FlowKind.CONSULTANCY_TO_COLLEGE
    return FlowKind.PASS_THROUGH


def derive_payment_fields(
    request: FlowRequest,
    state: AdmissionFlowState,
) -> FlowDerivation:
    """
    Compute the derived figures stored on a payment.

    ``state.service_charge_due`` must be the admission's due *before* this
    payment; on an amount edit the caller adds the payment's previous
    deduction back so the payment can re-claim what it already took.
    """
    flow = classify_flow(request)
    amount = round_money(request.amount)

    if flow == FlowKind.STUDENT_TO_CONSULTANCY:
        deducted = ZERO
        if request.deduct_service_charge and state.service_charge_due > ZERO:
            requested = request.service_charge_deducted or ZERO
            cap = requested if requested > ZERO else state.service_charge_due
            deducted = round_money(min(cap, state.service_charge_due, amount))
        return FlowDerivation(
            flow=flow,
            service_charge_deducted=deducted,
            amount_due_to_college=round_money(amount - deducted),
        )

    if flow == FlowKind.AGENT_TO_CONSULTANCY:
        retained = clamp_non_negative(state.service_charge_agreed - state.total_agent_fee)
        deducted = round_money(min(retained, amount))
        agent_fee = ZERO
        if request.deduct_agent_fee:
            agent_fee = round_money(request.agent_fee_deducted or ZERO)
        return FlowDerivation(
            flow=flow,
            service_charge_deducted=deducted,
            amount_due_to_college=clamp_non_negative(amount - deducted),
            agent_fee_deducted=agent_fee,
            amount_transferred_to_consultancy=amount,
        )

    if flow == FlowKind.CONSULTANCY_TO_AGENT:
        return FlowDerivation(flow=flow, paid_to_agent_id=request.agent_id_for_fee_payment)

    # Student -> Agent leaves the college due to be settled when the agent
    # forwards the money; college service charge is counted by the aggregator.
    return FlowDerivation(flow=flow)


def recording_plan(request: FlowRequest, flow: FlowKind) -> RecordingPlan:
    """Voucher type, daybook placement and cashbook side for a classified payment."""
    voucher_type = (
        VoucherType.PAYMENT if request.payer_type == PayerType.CONSULTANCY else VoucherType.RECEIPT
    )

    if flow == FlowKind.COLLEGE_SERVICE_CHARGE:
        return RecordingPlan(
            voucher_type,
            DaybookType.INCOME,
            DaybookCategory.RECEIVED_FROM_COLLEGE_SERVICE_CHARGE,
            CashbookSide.CREDIT,
        )
    if request.receiver_type == ReceiverType.CONSULTANCY:
        return RecordingPlan(
            voucher_type,
            DaybookType.INCOME,
            DaybookCategory.RECEIVED_FROM_STUDENT,
            CashbookSide.CREDIT,
        )
    if flow == FlowKind.CONSULTANCY_TO_COLLEGE:
        return RecordingPlan(
            voucher_type,
            DaybookType.EXPENSE,
            DaybookCategory.PAID_TO_COLLEGE,
            CashbookSide.DEBIT,
        )
    if flow == FlowKind.CONSULTANCY_TO_AGENT:
        return RecordingPlan(
            voucher_type,
            DaybookType.EXPENSE,
            DaybookCategory.PAID_TO_AGENT,
            CashbookSide.DEBIT,
        )
    return RecordingPlan(voucher_type, DaybookType.MEMO, DaybookCategory.MISC, None)

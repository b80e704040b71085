"""
Property-based checks of the pure payment arithmetic.

Boundaries fuzzed here:
- Amounts and service-charge dues from 0 to 10M, two decimal places
- Student -> Consultancy deductions never exceed the due or the amount
- Agent -> Consultancy splits the amount between retained charge and college due
- Reconciliation keeps paid-back service charge inside what was retained

Boundaries not fuzzed here (covered by explicit tests):
- Flow precedence and same-party rejection (tests/unit/test_flow_classifier.py)
- Persistence and recompute (tests/services)
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

from hypothesis import given, settings
from hypothesis import strategies as st

from admissions_kernel.db.types import ZERO
from admissions_kernel.domain.dtos import PaymentRequest
from admissions_kernel.domain.flow_classifier import (
    AdmissionFlowState,
    FlowKind,
    derive_payment_fields,
)
from admissions_kernel.domain.reconciliation import FlowTotals, reconcile
from admissions_kernel.domain.values import PayerType, PaymentMode, ReceiverType

money = st.decimals(
    min_value=Decimal("0"),
    max_value=Decimal("10000000"),
    places=2,
    allow_nan=False,
    allow_infinity=False,
)
positive_money = money.filter(lambda d: d > ZERO)


def _request(payer, receiver, amount, **kwargs) -> PaymentRequest:
    return PaymentRequest(
        admission_id=uuid4(),
        payer_type=payer,
        receiver_type=receiver,
        amount=amount,
        payment_mode=PaymentMode.CASH,
        payment_date=date(2024, 1, 1),
        **kwargs,
    )


class TestStudentDeductionProperties:
    @given(amount=positive_money, due=money, requested=money)
    @settings(max_examples=200)
    def test_deduction_bounded(self, amount, due, requested):
        request = _request(
            PayerType.STUDENT,
            ReceiverType.CONSULTANCY,
            amount,
            deduct_service_charge=True,
            service_charge_deducted=requested,
        )
        derived = derive_payment_fields(
            request, AdmissionFlowState(service_charge_agreed=due, service_charge_due=due)
        )

        assert derived.flow == FlowKind.STUDENT_TO_CONSULTANCY
        assert ZERO <= derived.service_charge_deducted <= min(due, amount)
        assert derived.service_charge_deducted + derived.amount_due_to_college == amount

    @given(amount=positive_money, due=money)
    def test_no_deduction_without_flag(self, amount, due):
        request = _request(PayerType.STUDENT, ReceiverType.CONSULTANCY, amount)
        derived = derive_payment_fields(request, AdmissionFlowState(service_charge_due=due))
        assert derived.service_charge_deducted == ZERO
        assert derived.amount_due_to_college == amount


class TestAgentCollectionProperties:
    @given(amount=positive_money, agreed=money, agent_fee=money)
    @settings(max_examples=200)
    def test_amount_split(self, amount, agreed, agent_fee):
        request = _request(PayerType.AGENT, ReceiverType.CONSULTANCY, amount)
        derived = derive_payment_fields(
            request,
            AdmissionFlowState(service_charge_agreed=agreed, total_agent_fee=agent_fee),
        )

        assert derived.service_charge_deducted >= ZERO
        assert derived.service_charge_deducted <= max(agreed - agent_fee, ZERO)
        assert derived.service_charge_deducted + derived.amount_due_to_college == amount
        assert derived.amount_transferred_to_consultancy == amount


class TestReconcileProperties:
    @given(
        to_college=money,
        due_to_college=money,
        deducted=money,
        agent_fee_deducted=money,
        s_to_c=money,
        s_to_a=money,
    )
    @settings(max_examples=200)
    def test_paid_back_bounded(
        self, to_college, due_to_college, deducted, agent_fee_deducted, s_to_c, s_to_a
    ):
        totals = FlowTotals(
            student_to_consultancy=s_to_c,
            student_to_agent=s_to_a,
            consultancy_to_college=to_college,
            amount_due_to_college=due_to_college,
            service_charge_deducted=deducted,
            agent_fee_deducted=agent_fee_deducted,
        )

        result = reconcile(totals, [])

        assert result.service_charge_paid_back_to_college >= ZERO
        assert result.service_charge_paid_back_to_college <= deducted + agent_fee_deducted
        assert result.service_charge_paid_back_to_college <= max(
            to_college - due_to_college, ZERO
        )
        assert result.student_paid == s_to_c + s_to_a
        assert result.agent_paid == agent_fee_deducted
        assert result.slot_fee_paid == {}

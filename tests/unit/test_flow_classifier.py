"""
Unit tests for the payment flow classifier.

Covers:
- Classification precedence over (payer, receiver, flags)
- Same-party and unknown-party rejection
- Per-transaction derived figures (service charge, college due, agent fee)
- Recording plan (voucher type, daybook placement, cashbook side)
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from admissions_kernel.domain.dtos import PaymentRequest
from admissions_kernel.domain.flow_classifier import (
    AdmissionFlowState,
    CashbookSide,
    FlowKind,
    classify_flow,
    derive_payment_fields,
    recording_plan,
)
from admissions_kernel.domain.values import (
    DaybookCategory,
    DaybookType,
    PayerType,
    PaymentMode,
    ReceiverType,
    VoucherType,
)
from admissions_kernel.exceptions import InvalidFlowError


def _request(payer, receiver, amount="100000", **kwargs) -> PaymentRequest:
    return PaymentRequest(
        admission_id=uuid4(),
        payer_type=PayerType(payer),
        receiver_type=ReceiverType(receiver),
        amount=Decimal(amount),
        payment_mode=PaymentMode.CASH,
        payment_date=date(2024, 1, 1),
        **kwargs,
    )


class TestClassifyFlow:
    @pytest.mark.parametrize(
        "payer, receiver, flags, expected",
        [
            ("Student", "Consultancy", {}, FlowKind.STUDENT_TO_CONSULTANCY),
            ("Agent", "Consultancy", {}, FlowKind.AGENT_TO_CONSULTANCY),
            ("Student", "Agent", {}, FlowKind.STUDENT_TO_AGENT),
            (
                "College",
                "Consultancy",
                {"is_service_charge_payment": True},
                FlowKind.COLLEGE_SERVICE_CHARGE,
            ),
            ("Consultancy", "Agent", {}, FlowKind.CONSULTANCY_TO_AGENT),
            ("Consultancy", "College", {}, FlowKind.CONSULTANCY_TO_COLLEGE),
            ("Student", "College", {}, FlowKind.PASS_THROUGH),
            ("College", "Consultancy", {}, FlowKind.PASS_THROUGH),
            ("College", "Agent", {}, FlowKind.PASS_THROUGH),
        ],
    )
    def test_flow_table(self, payer, receiver, flags, expected):
        assert classify_flow(_request(payer, receiver, **flags)) == expected

    def test_agent_collection_is_not_a_student_receipt(self):
        request = _request("Student", "Consultancy", is_agent_collection=True)
        assert classify_flow(request) == FlowKind.PASS_THROUGH

    def test_service_charge_flag_is_not_a_student_receipt(self):
        request = _request("Student", "Consultancy", is_service_charge_payment=True)
        assert classify_flow(request) == FlowKind.PASS_THROUGH

    @pytest.mark.parametrize(
        "payer, receiver",
        [("Consultancy", "Consultancy"), ("Agent", "Agent"), ("College", "College")],
    )
    def test_same_party_rejected(self, payer, receiver):
        with pytest.raises(InvalidFlowError) as exc_info:
            classify_flow(_request(payer, receiver))
        assert exc_info.value.code == "INVALID_FLOW"
        assert exc_info.value.field_errors[0]["field"] == "receiver_type"

    def test_unknown_party_rejected(self):
        request = PaymentRequest(
            admission_id=uuid4(),
            payer_type="Bank",
            receiver_type=ReceiverType.CONSULTANCY,
            amount=Decimal("100"),
            payment_mode=PaymentMode.CASH,
            payment_date=date(2024, 1, 1),
        )
        with pytest.raises(InvalidFlowError, match="unknown payer type"):
            classify_flow(request)


class TestStudentToConsultancy:
    def test_deducts_full_due(self):
        """100,000 with 30,000 service charge due -> 30,000 retained, 70,000 owed."""
        derivation = derive_payment_fields(
            _request("Student", "Consultancy", deduct_service_charge=True),
            AdmissionFlowState(service_charge_due=Decimal("30000")),
        )
        assert derivation.flow == FlowKind.STUDENT_TO_CONSULTANCY
        assert derivation.service_charge_deducted == Decimal("30000.00")
        assert derivation.amount_due_to_college == Decimal("70000.00")

    def test_requested_amount_caps_deduction(self):
        derivation = derive_payment_fields(
            _request(
                "Student",
                "Consultancy",
                deduct_service_charge=True,
                service_charge_deducted=Decimal("10000"),
            ),
            AdmissionFlowState(service_charge_due=Decimal("30000")),
        )
        assert derivation.service_charge_deducted == Decimal("10000.00")
        assert derivation.amount_due_to_college == Decimal("90000.00")

    def test_deduction_never_exceeds_amount(self):
        derivation = derive_payment_fields(
            _request("Student", "Consultancy", amount="20000", deduct_service_charge=True),
            AdmissionFlowState(service_charge_due=Decimal("30000")),
        )
        assert derivation.service_charge_deducted == Decimal("20000.00")
        assert derivation.amount_due_to_college == Decimal("0.00")

    def test_no_deduction_without_flag(self):
        derivation = derive_payment_fields(
            _request("Student", "Consultancy"),
            AdmissionFlowState(service_charge_due=Decimal("30000")),
        )
        assert derivation.service_charge_deducted == Decimal("0")
        assert derivation.amount_due_to_college == Decimal("100000.00")

    def test_no_deduction_when_nothing_due(self):
        derivation = derive_payment_fields(
            _request("Student", "Consultancy", deduct_service_charge=True),
            AdmissionFlowState(service_charge_due=Decimal("0")),
        )
        assert derivation.service_charge_deducted == Decimal("0")
        assert derivation.amount_due_to_college == Decimal("100000.00")


class TestAgentToConsultancy:
    def test_retains_agreed_minus_agent_fee(self):
        """115,000 with 75,000 agreed and 40,000 agent fee -> 35,000 / 80,000."""
        derivation = derive_payment_fields(
            _request("Agent", "Consultancy", amount="115000"),
            AdmissionFlowState(
                service_charge_agreed=Decimal("75000"),
                total_agent_fee=Decimal("40000"),
            ),
        )
        assert derivation.flow == FlowKind.AGENT_TO_CONSULTANCY
        assert derivation.service_charge_deducted == Decimal("35000.00")
        assert derivation.amount_due_to_college == Decimal("80000.00")
        assert derivation.amount_transferred_to_consultancy == Decimal("115000.00")

    def test_agent_fee_above_agreed_retains_nothing(self):
        derivation = derive_payment_fields(
            _request("Agent", "Consultancy", amount="50000"),
            AdmissionFlowState(
                service_charge_agreed=Decimal("20000"),
                total_agent_fee=Decimal("25000"),
            ),
        )
        assert derivation.service_charge_deducted == Decimal("0.00")
        assert derivation.amount_due_to_college == Decimal("50000.00")

    def test_retained_capped_by_amount(self):
        derivation = derive_payment_fields(
            _request("Agent", "Consultancy", amount="20000"),
            AdmissionFlowState(service_charge_agreed=Decimal("75000")),
        )
        assert derivation.service_charge_deducted == Decimal("20000.00")
        assert derivation.amount_due_to_college == Decimal("0.00")

    def test_agent_fee_deducted_only_when_flagged(self):
        state = AdmissionFlowState(service_charge_agreed=Decimal("0"))
        unflagged = derive_payment_fields(
            _request("Agent", "Consultancy", agent_fee_deducted=Decimal("5000")), state
        )
        flagged = derive_payment_fields(
            _request(
                "Agent",
                "Consultancy",
                deduct_agent_fee=True,
                agent_fee_deducted=Decimal("5000"),
            ),
            state,
        )
        assert unflagged.agent_fee_deducted == Decimal("0")
        assert flagged.agent_fee_deducted == Decimal("5000.00")


class TestOtherFlows:
    def test_consultancy_to_agent_records_agent(self):
        agent_id = uuid4()
        derivation = derive_payment_fields(
            _request("Consultancy", "Agent", agent_id_for_fee_payment=agent_id),
            AdmissionFlowState(),
        )
        assert derivation.paid_to_agent_id == agent_id
        assert derivation.amount_due_to_college == Decimal("0")

    def test_student_to_agent_defers_college_due(self):
        derivation = derive_payment_fields(_request("Student", "Agent"), AdmissionFlowState())
        assert derivation.flow == FlowKind.STUDENT_TO_AGENT
        assert derivation.amount_due_to_college == Decimal("0")
        assert derivation.service_charge_deducted == Decimal("0")

    def test_college_service_charge_derives_nothing(self):
        derivation = derive_payment_fields(
            _request("College", "Consultancy", is_service_charge_payment=True),
            AdmissionFlowState(service_charge_due=Decimal("30000")),
        )
        assert derivation.flow == FlowKind.COLLEGE_SERVICE_CHARGE
        assert derivation.service_charge_deducted == Decimal("0")


class TestRecordingPlan:
    def _plan(self, payer, receiver, **flags):
        request = _request(payer, receiver, **flags)
        return recording_plan(request, classify_flow(request))

    def test_student_receipt(self):
        plan = self._plan("Student", "Consultancy")
        assert plan.voucher_type == VoucherType.RECEIPT
        assert plan.daybook_type == DaybookType.INCOME
        assert plan.category == DaybookCategory.RECEIVED_FROM_STUDENT
        assert plan.cashbook_side == CashbookSide.CREDIT

    def test_college_service_charge(self):
        plan = self._plan("College", "Consultancy", is_service_charge_payment=True)
        assert plan.voucher_type == VoucherType.RECEIPT
        assert plan.category == DaybookCategory.RECEIVED_FROM_COLLEGE_SERVICE_CHARGE
        assert plan.cashbook_side == CashbookSide.CREDIT

    def test_paid_to_college(self):
        plan = self._plan("Consultancy", "College")
        assert plan.voucher_type == VoucherType.PAYMENT
        assert plan.daybook_type == DaybookType.EXPENSE
        assert plan.category == DaybookCategory.PAID_TO_COLLEGE
        assert plan.cashbook_side == CashbookSide.DEBIT

    def test_paid_to_agent(self):
        plan = self._plan("Consultancy", "Agent")
        assert plan.voucher_type == VoucherType.PAYMENT
        assert plan.category == DaybookCategory.PAID_TO_AGENT
        assert plan.cashbook_side == CashbookSide.DEBIT

    @pytest.mark.parametrize("payer, receiver", [("Student", "Agent"), ("Student", "College")])
    def test_third_party_money_is_memo(self, payer, receiver):
        plan = self._plan(payer, receiver)
        assert plan.daybook_type == DaybookType.MEMO
        assert plan.cashbook_side is None
        assert not plan.touches_consultancy

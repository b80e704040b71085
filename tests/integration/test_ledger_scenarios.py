"""
End-to-end scenarios through AdmissionsLedger.

Covers:
- A full admission lifecycle: fees, student payments, agent collection,
  college remittance and agent settlement, ending in a consistent summary
- Atomic writes: a failure while recording rolls the whole payment back
- A failed recompute keeps the write and queues the admission
- Deleting a payment lowers the derived totals
- Listing page limits are clamped by settings
"""

from decimal import Decimal

import pytest

from admissions_config import AdmissionsSettings
from admissions_services import AdmissionsLedger


class TestAdmissionLifecycle:
    def test_full_cycle(
        self, ledger, admin_actor, create_admission, create_payment, main_agent_id, branch_id
    ):
        admission = create_admission(
            fees={"tuition_fee_year1": 100000, "tuition_fee_year2": 100000},
            service_charge={"agreed": 30000},
            agents={"main": {"agent_id": main_agent_id, "agent_fee": 20000}},
        )
        assert admission.groups["fees"]["total_fee"] == Decimal("200000.00")

        # Student pays the consultancy; the service charge is taken first
        create_payment(admission.id, 50000, deduct_service_charge=True)
        # Student pays the agent directly; no consultancy cash moves
        create_payment(admission.id, 60000, receiver_type="Agent", payment_mode="UPI")
        # Consultancy forwards the college's share
        create_payment(admission.id, 20000, payer_type="Consultancy", receiver_type="College")
        # Consultancy settles part of the agent fee
        ledger.create_agent_payment(
            {
                "admission_id": admission.id,
                "agent_id": main_agent_id,
                "amount": 5000,
                "payment_mode": "Cash",
            },
            admin_actor,
        )

        summary = ledger.recompute_admission_summary(admission.id)

        assert summary.student_paid == Decimal("110000.00")
        assert summary.student_due == Decimal("90000.00")
        assert summary.service_charge_deducted_from_student == Decimal("30000.00")
        assert summary.service_charge_due == Decimal("0.00")
        assert summary.total_agent_fee == Decimal("20000.00")
        assert summary.agent_paid == Decimal("5000.00")
        assert summary.agent_due == Decimal("15000.00")
        assert summary.paid_to_college == Decimal("20000.00")

        # Cash in: 50000, cash out: 20000 + 5000
        assert ledger.get_cash_balance(branch_id) == Decimal("25000.00")
        cash = ledger.cashbook_summary(branch_id)
        assert cash.entry_count == 3
        assert cash.current_balance == Decimal("25000.00")

        day = ledger.daybook_summary(branch_id)
        assert day.total_income == Decimal("50000.00")
        assert day.total_expense == Decimal("25000.00")

        details = ledger.get_admission_details(admission.id, admin_actor)
        assert len(details.payments) == 3
        assert len(details.agent_payments) == 1
        assert details.admission.admission_no == admission.admission_no

    def test_delete_lowers_student_paid(self, ledger, admin_actor, create_admission, create_payment):
        admission = create_admission(fees={"tuition_fee_year1": 100000})
        keep = create_payment(admission.id, 30000)
        drop = create_payment(admission.id, 50000)
        assert drop.summary.student_paid == Decimal("80000.00")

        outcome = ledger.delete_payment(drop.payment.id, admin_actor)

        assert outcome.summary.student_paid == Decimal("30000.00")
        assert outcome.summary.student_due == Decimal("70000.00")
        assert [p.id for p in ledger.list_payments(admission_id=admission.id).items] == [
            keep.payment.id
        ]


class TestAtomicity:
    def test_recording_failure_rolls_back_payment(
        self, ledger, create_admission, create_payment, monkeypatch, captured_logs
    ):
        admission = create_admission()

        def fail(*args, **kwargs):
            raise RuntimeError("voucher printer on fire")

        monkeypatch.setattr(ledger.daybook, "record_payment", fail)

        with pytest.raises(RuntimeError):
            create_payment(admission.id, 1000)

        assert ledger.list_payments(admission_id=admission.id).total == 0
        assert ledger.list_vouchers().total == 0
        record = next(r for r in captured_logs() if r["message"] == "operation_rolled_back")
        assert record["operation"] == "create_payment"
        assert record["level"] == "WARNING"

    def test_recompute_failure_keeps_write(self, ledger, create_admission, create_payment, monkeypatch):
        admission = create_admission(fees={"tuition_fee_year1": 10000})

        def fail(admission_id):
            raise RuntimeError("deadlock detected")

        monkeypatch.setattr(ledger.aggregator, "recompute", fail)
        outcome = create_payment(admission.id, 4000)

        assert outcome.recompute_pending is True
        assert outcome.voucher is not None
        assert ledger.retry.get(admission.id).last_error == "deadlock detected"

        monkeypatch.undo()
        result = ledger.drain_pending_recomputes()

        assert result.recomputed == [admission.id]
        assert ledger.retry.pending() == []
        assert ledger.recompute_admission_summary(admission.id).student_due == Decimal("6000.00")


class TestPaging:
    def test_limit_clamped_by_settings(self, session, deterministic_clock, admin_actor, branch_id):
        ledger = AdmissionsLedger(
            session,
            clock=deterministic_clock,
            settings=AdmissionsSettings(default_page_limit=2, max_page_limit=2),
        )
        admission = ledger.create_admission(
            {"branch_id": branch_id, "student_name": "Asha Verma"}, admin_actor
        )
        for amount in (100, 200, 300):
            ledger.create_payment(
                {
                    "admission_id": admission.id,
                    "payer_type": "Student",
                    "receiver_type": "Consultancy",
                    "amount": amount,
                    "payment_mode": "Cash",
                },
                admin_actor,
            )

        first = ledger.list_payments(limit=50)
        assert first.limit == 2
        assert len(first.items) == 2
        assert first.total == 3
        assert first.pages == 2

        second = ledger.list_payments(page=2)
        assert len(second.items) == 1

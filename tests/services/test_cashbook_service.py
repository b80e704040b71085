"""
Tests for the per-branch cashbook.

Covers:
- Running balance across appends
- Amount validation (negative, both zero, non-finite)
- Per-branch seq and balances
- Edits recompute only the edited row
- Soft delete, clear and hard clear
- Summary
"""

from datetime import date
from decimal import Decimal

import pytest

from admissions_kernel.exceptions import CashbookEntryNotFoundError, InvalidAmountError, ValidationError


def _append(ledger, actor, branch_id, **data):
    payload = {"branch_id": branch_id}
    payload.update(data)
    return ledger.append_cashbook_entry(payload, actor)


class TestAppend:
    def test_running_balance(self, ledger, admin_actor, branch_id):
        first = _append(ledger, admin_actor, branch_id, credited=1000, category="opening")
        second = _append(ledger, admin_actor, branch_id, debited=300)
        third = _append(ledger, admin_actor, branch_id, credited="50.50")

        assert first.running_balance == Decimal("1000.00")
        assert second.running_balance == Decimal("700.00")
        assert third.running_balance == Decimal("750.50")
        assert ledger.get_cash_balance(branch_id) == Decimal("750.50")

    def test_balance_may_go_negative(self, ledger, admin_actor, branch_id):
        entry = _append(ledger, admin_actor, branch_id, debited=500)
        assert entry.running_balance == Decimal("-500.00")

    def test_entry_date_defaults_to_today(self, ledger, admin_actor, branch_id):
        entry = _append(ledger, admin_actor, branch_id, credited=10)
        assert entry.entry_date == date(2024, 1, 1)

    def test_seq_per_branch(self, ledger, admin_actor, branch_id, other_branch_id):
        hq1 = _append(ledger, admin_actor, branch_id, credited=100)
        hq2 = _append(ledger, admin_actor, branch_id, credited=100)
        blr1 = _append(ledger, admin_actor, other_branch_id, credited=999)

        assert (hq1.seq, hq2.seq, blr1.seq) == (1, 2, 1)
        assert ledger.cash_balances_by_branch() == {
            branch_id: Decimal("200.00"),
            other_branch_id: Decimal("999.00"),
        }

    def test_both_zero_rejected(self, ledger, admin_actor, branch_id):
        with pytest.raises(InvalidAmountError):
            _append(ledger, admin_actor, branch_id)

    def test_negative_rejected(self, ledger, admin_actor, branch_id):
        with pytest.raises(InvalidAmountError):
            _append(ledger, admin_actor, branch_id, credited=-5)

    def test_service_rejects_negative(self, ledger, admin_actor, branch_id):
        with pytest.raises(InvalidAmountError):
            ledger.cashbook.append(branch_id, date(2024, 1, 1), admin_actor.id, debited="-1")

    @pytest.mark.parametrize("amount", ["NaN", "Infinity", float("nan")])
    def test_service_rejects_non_finite(self, ledger, admin_actor, branch_id, amount):
        with pytest.raises(ValidationError) as exc_info:
            ledger.cashbook.append(branch_id, date(2024, 1, 1), admin_actor.id, credited=amount)
        assert exc_info.value.field_errors[0]["field"] == "credited"

    def test_earlier_date_does_not_become_latest(self, ledger, admin_actor, branch_id):
        _append(ledger, admin_actor, branch_id, credited=1000, entry_date="2024-01-10")
        back_dated = _append(ledger, admin_actor, branch_id, credited=10, entry_date="2024-01-05")
        assert back_dated.running_balance == Decimal("1010.00")
        # latest row by (entry_date, seq) is still the 10 January one
        assert ledger.get_cash_balance(branch_id) == Decimal("1000.00")


class TestEditAndDelete:
    def test_update_recomputes_only_edited_row(self, ledger, admin_actor, branch_id):
        first = _append(ledger, admin_actor, branch_id, credited=1000)
        second = _append(ledger, admin_actor, branch_id, credited=500)

        edited = ledger.update_cashbook_entry(
            first.id, {"credited": "2000", "description": "corrected"}, admin_actor
        )

        assert edited.running_balance == Decimal("2000.00")
        assert edited.description == "corrected"
        later = ledger.list_cashbook(branch_id=branch_id).items[1]
        assert later.id == second.id
        assert later.running_balance == Decimal("1500.00")

    def test_update_from_predecessor(self, ledger, admin_actor, branch_id):
        _append(ledger, admin_actor, branch_id, credited=1000)
        second = _append(ledger, admin_actor, branch_id, debited=100)
        edited = ledger.update_cashbook_entry(second.id, {"debited": 400}, admin_actor)
        assert edited.running_balance == Decimal("600.00")

    def test_update_rejects_negative(self, ledger, admin_actor, branch_id):
        entry = _append(ledger, admin_actor, branch_id, credited=1000)
        with pytest.raises(InvalidAmountError):
            ledger.update_cashbook_entry(entry.id, {"credited": -1}, admin_actor)

    def test_update_rejects_non_finite(self, ledger, admin_actor, branch_id):
        entry = _append(ledger, admin_actor, branch_id, credited=1000)
        with pytest.raises(ValidationError):
            ledger.update_cashbook_entry(entry.id, {"debited": "Infinity"}, admin_actor)

    def test_delete_hides_row(self, ledger, admin_actor, branch_id):
        _append(ledger, admin_actor, branch_id, credited=1000)
        second = _append(ledger, admin_actor, branch_id, credited=500)

        ledger.delete_cashbook_entry(second.id, admin_actor)

        assert ledger.get_cash_balance(branch_id) == Decimal("1000.00")
        assert ledger.list_cashbook(branch_id=branch_id).total == 1
        with pytest.raises(CashbookEntryNotFoundError):
            ledger.delete_cashbook_entry(second.id, admin_actor)

    def test_next_append_continues_from_live_latest(self, ledger, admin_actor, branch_id):
        _append(ledger, admin_actor, branch_id, credited=1000)
        second = _append(ledger, admin_actor, branch_id, credited=500)
        ledger.delete_cashbook_entry(second.id, admin_actor)

        third = _append(ledger, admin_actor, branch_id, debited=200)
        assert third.seq == 3
        assert third.running_balance == Decimal("800.00")


class TestClear:
    def test_soft_clear_one_branch(self, ledger, admin_actor, branch_id, other_branch_id):
        _append(ledger, admin_actor, branch_id, credited=100)
        _append(ledger, admin_actor, branch_id, credited=100)
        _append(ledger, admin_actor, other_branch_id, credited=50)

        assert ledger.clear_cashbook(admin_actor, branch_id) == 2
        assert ledger.get_cash_balance(branch_id) == Decimal("0")
        assert ledger.get_cash_balance(other_branch_id) == Decimal("50.00")

    def test_hard_clear_removes_deleted_rows_too(self, ledger, admin_actor, branch_id):
        entry = _append(ledger, admin_actor, branch_id, credited=100)
        _append(ledger, admin_actor, branch_id, credited=100)
        ledger.delete_cashbook_entry(entry.id, admin_actor)

        assert ledger.clear_cashbook(admin_actor, branch_id, hard=True) == 2
        assert ledger.cashbook_summary(branch_id).entry_count == 0

    def test_clear_logged(self, ledger, admin_actor, branch_id, captured_logs):
        _append(ledger, admin_actor, branch_id, credited=100)
        ledger.clear_cashbook(admin_actor)
        record = next(r for r in captured_logs() if r["message"] == "cashbook_cleared")
        assert record["level"] == "WARNING"
        assert record["count"] == 1


class TestSummary:
    def test_totals_and_balance(self, ledger, admin_actor, branch_id, other_branch_id):
        _append(ledger, admin_actor, branch_id, credited=1000, entry_date="2024-01-01")
        _append(ledger, admin_actor, branch_id, debited=250, entry_date="2024-01-02")
        _append(ledger, admin_actor, other_branch_id, credited=40, entry_date="2024-01-02")

        branch = ledger.cashbook_summary(branch_id)
        assert branch.total_credited == Decimal("1000.00")
        assert branch.total_debited == Decimal("250.00")
        assert branch.entry_count == 2
        assert branch.current_balance == Decimal("750.00")

        everything = ledger.cashbook_summary()
        assert everything.entry_count == 3
        assert everything.current_balance == Decimal("790.00")

    def test_date_range(self, ledger, admin_actor, branch_id):
        _append(ledger, admin_actor, branch_id, credited=1000, entry_date="2024-01-01")
        _append(ledger, admin_actor, branch_id, credited=5, entry_date="2024-02-01")

        january = ledger.cashbook_summary(
            branch_id, start_date=date(2024, 1, 1), end_date=date(2024, 1, 31)
        )
        assert january.total_credited == Decimal("1000.00")
        assert january.entry_count == 1

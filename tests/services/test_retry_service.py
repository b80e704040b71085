"""
Tests for the durable recompute retry queue.

Covers:
- Enqueue counts attempts, one row per admission
- Discard after an out-of-band recompute
- Drain: success, repeated failure, exhaustion
- A failed recompute after a payment write queues instead of failing the write
"""

from decimal import Decimal

import pytest

from admissions_kernel.exceptions import RecomputeRetryExhaustedError
from admissions_kernel.services import RetryService
from admissions_kernel.services.retry_service import SYSTEM_ACTOR_ID


def _broken_recompute(admission_id):
    raise RuntimeError("summary table locked")


class TestQueue:
    def test_enqueue_counts_attempts(self, ledger, create_admission):
        admission = create_admission()

        first = ledger.retry.enqueue(admission.id, RuntimeError("boom"))
        second = ledger.retry.enqueue(admission.id, "boom again")

        assert first is second
        assert second.attempts == 2
        assert second.last_error == "boom again"
        assert second.created_by_id == SYSTEM_ACTOR_ID
        assert len(ledger.retry.pending()) == 1

    def test_discard(self, ledger, create_admission):
        admission = create_admission()
        ledger.retry.enqueue(admission.id, "boom")

        assert ledger.retry.discard(admission.id) is True
        assert ledger.retry.discard(admission.id) is False
        assert ledger.retry.get(admission.id) is None

    def test_manual_recompute_clears_queue(self, ledger, create_admission):
        admission = create_admission()
        ledger.retry.enqueue(admission.id, "boom")
        ledger.recompute_admission_summary(admission.id)
        assert ledger.retry.get(admission.id) is None

    def test_enqueue_logged(self, ledger, create_admission, captured_logs):
        admission = create_admission()
        ledger.retry.enqueue(admission.id, "boom")
        record = next(r for r in captured_logs() if r["message"] == "recompute_queued")
        assert record["level"] == "WARNING"
        assert record["attempts"] == 1


class TestDrain:
    def test_success_removes_entry(self, ledger, create_admission, create_payment):
        admission = create_admission()
        create_payment(admission.id, 1000)
        ledger.retry.enqueue(admission.id, "boom")

        result = ledger.drain_pending_recomputes()

        assert result.recomputed == [admission.id]
        assert result.remaining == 0
        assert ledger.retry.pending() == []

    def test_failure_bumps_attempts(self, ledger, create_admission, monkeypatch):
        admission = create_admission()
        ledger.retry.enqueue(admission.id, "boom")
        monkeypatch.setattr(ledger.aggregator, "recompute", _broken_recompute)

        result = ledger.drain_pending_recomputes()

        assert result.failed == [admission.id]
        entry = ledger.retry.get(admission.id)
        assert entry.attempts == 2
        assert entry.last_error == "summary table locked"

    def test_exhausted_entries_reported(self, session, ledger, deterministic_clock, create_admission):
        admission = create_admission()
        retry = RetryService(
            session, deterministic_clock, aggregator=ledger.aggregator, max_attempts=2
        )
        retry.enqueue(admission.id, "boom")
        entry = retry.enqueue(admission.id, "boom")

        with pytest.raises(RecomputeRetryExhaustedError) as exc_info:
            retry.retry(entry)
        assert exc_info.value.attempts == 2

        result = retry.drain()
        assert result.exhausted == [admission.id]
        assert result.remaining == 1
        assert retry.get(admission.id) is not None

    def test_one_failure_does_not_block_others(
        self, ledger, create_admission, create_payment, monkeypatch
    ):
        good = create_admission()
        bad = create_admission(student_name="Rahul Nair")
        create_payment(good.id, 500)
        ledger.retry.enqueue(good.id, "boom")
        ledger.retry.enqueue(bad.id, "boom")
        real_recompute = ledger.aggregator.recompute

        def flaky(admission_id):
            if admission_id == bad.id:
                raise RuntimeError("still broken")
            return real_recompute(admission_id)

        monkeypatch.setattr(ledger.aggregator, "recompute", flaky)

        result = ledger.drain_pending_recomputes()

        assert set(result.recomputed) == {good.id}
        assert set(result.failed) == {bad.id}
        assert ledger.retry.get(good.id) is None


class TestWriteWithFailedRecompute:
    def test_payment_kept_and_queued(self, ledger, create_admission, create_payment, monkeypatch, captured_logs):
        admission = create_admission()
        monkeypatch.setattr(ledger.aggregator, "recompute", _broken_recompute)

        outcome = create_payment(admission.id, 25000)

        assert outcome.recompute_pending is True
        assert outcome.summary is None
        assert ledger.get_payment(outcome.payment.id).amount == Decimal("25000.00")
        assert ledger.retry.get(admission.id).attempts == 1
        assert any(r["message"] == "recompute_failed" for r in captured_logs())

        monkeypatch.undo()
        result = ledger.drain_pending_recomputes()

        assert result.recomputed == [admission.id]
        summary = ledger.recompute_admission_summary(admission.id)
        assert summary.student_paid == Decimal("25000.00")

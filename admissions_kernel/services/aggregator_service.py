"""
AggregatorService -- rebuilds an admission's money summary from its history.

Responsibility:
    Re-reads every live payment and agent payment of one admission, folds
    the flow totals through ``reconcile`` and writes the results onto the
    admission, then re-applies the fee derivation.  This is the only writer
    of the payment summary, the service-charge inputs, the college payment
    totals and the per-slot ``fee_paid`` figures.

Architecture position:
    Kernel > Services -- imperative shell.

Invariants enforced:
    - Idempotent: two consecutive recomputes with no writes between them
      produce identical rows.
    - The admission row is locked (SELECT ... FOR UPDATE) for the rest of the
      caller's transaction, so concurrent recomputes of one admission
      serialize instead of interleaving their reads and writes.
    - A missing or soft-deleted admission is a no-op returning None.
"""

from uuid import UUID

from sqlalchemy import select

from admissions_kernel.domain.dtos import AdmissionSummary
from admissions_kernel.domain.reconciliation import reconcile
from admissions_kernel.logging_config import get_logger
from admissions_kernel.models import Admission
from admissions_kernel.selectors import PaymentSelector
from admissions_kernel.services.base import BaseService

logger = get_logger("services.aggregator")


class AggregatorService(BaseService[Admission]):
    def __init__(self, session, clock=None):
        super().__init__(session, clock)
        self._payments = PaymentSelector(session)

    def _lock_admission(self, admission_id: UUID) -> Admission | None:
        return self.session.execute(
            select(Admission)
            .where(Admission.id == admission_id, Admission.is_deleted.is_(False))
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def recompute(self, admission_id: UUID) -> AdmissionSummary | None:
        """
        Recompute the admission's summary from all live transactions.

        Returns:
            The reconciled summary, or None when the admission is missing or
            soft-deleted.
        """
        admission = self._lock_admission(admission_id)
        if admission is None:
            logger.info("recompute_skipped", extra={"admission_id": str(admission_id)})
            return None

        allocations = admission.agent_allocations()
        totals = self._payments.flow_totals(
            admission.id, [a.agent_id for a in allocations if a.agent_id is not None]
        )
        reconciled = reconcile(totals, allocations)

        admission.student_paid = reconciled.student_paid
        admission.agent_paid = reconciled.agent_paid
        admission.service_charge_received_from_college = (
            reconciled.service_charge_received_from_college
        )
        admission.service_charge_deducted_from_student = (
            reconciled.service_charge_deducted_from_student
        )
        admission.service_charge_deducted_by_agent = reconciled.service_charge_deducted_by_agent
        admission.service_charge_paid_back_to_college = (
            reconciled.service_charge_paid_back_to_college
        )
        admission.total_due_to_college = reconciled.total_due_to_college
        admission.paid_to_college = reconciled.paid_to_college
        for role, paid in reconciled.slot_fee_paid.items():
            admission.set_slot_fee_paid(role, paid)

        admission.apply_derivation()
        self.session.flush()

        summary = AdmissionSummary.from_model(admission)
        logger.info(
            "recompute_completed",
            extra={
                "admission_id": str(admission.id),
                "student_paid": str(summary.student_paid),
                "student_due": str(summary.student_due),
                "service_charge_due": str(summary.service_charge_due),
                "balance_due_to_college": str(summary.balance_due_to_college),
            },
        )
        return summary

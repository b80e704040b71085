"""
Reconciliation -- pure fold of an admission's flow totals into its summary.

The aggregator gathers one total per flow category from the live payment
history (FlowTotals) and hands them here.  ``reconcile`` is the single place
the summary formulas live; it has no notion of rows, sessions or locks.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

from admissions_kernel.db.types import ZERO, clamp_non_negative, round_money
from admissions_kernel.domain.agent_allocation import AgentAllocation
from admissions_kernel.domain.values import AgentType


@dataclass(frozen=True)
class FlowTotals:
    """Sums over all live payments and agent payments of one admission."""

    student_to_consultancy: Decimal = ZERO
    student_to_agent: Decimal = ZERO
    student_to_college: Decimal = ZERO
    consultancy_to_agent: Decimal = ZERO
    consultancy_to_college: Decimal = ZERO
    college_service_charge: Decimal = ZERO
    service_charge_deducted: Decimal = ZERO
    agent_fee_deducted: Decimal = ZERO
    amount_due_to_college: Decimal = ZERO
    agent_payments: Decimal = ZERO
    # Per-agent paid amounts keyed by agent id
    paid_by_agent: dict = field(default_factory=dict)


@dataclass(frozen=True)
class ReconciledTotals:
    student_paid: Decimal
    agent_paid: Decimal
    service_charge_received_from_college: Decimal
    service_charge_deducted_from_student: Decimal
    service_charge_deducted_by_agent: Decimal
    service_charge_paid_back_to_college: Decimal
    total_due_to_college: Decimal
    paid_to_college: Decimal
    slot_fee_paid: dict[AgentType, Decimal]


def reconcile(totals: FlowTotals, allocations: list[AgentAllocation]) -> ReconciledTotals:
    """
    Compute the stored summary inputs of an admission from its flow totals.

    ``paid_back_to_college`` is the part of the consultancy's payments to the
    college that exceeded what was owed, capped by what the consultancy
    actually retained (service charge plus agent fee deductions).
    """
    student_paid = (
        totals.student_to_consultancy + totals.student_to_agent + totals.student_to_college
    )
    agent_paid = totals.agent_fee_deducted + totals.consultancy_to_agent + totals.agent_payments

    paid_from_service_charge = clamp_non_negative(
        totals.consultancy_to_college - totals.amount_due_to_college
    )
    paid_back = min(
        paid_from_service_charge,
        round_money(totals.service_charge_deducted + totals.agent_fee_deducted),
    )

    slot_fee_paid = {
        a.role: round_money(totals.paid_by_agent.get(a.agent_id, ZERO))
        for a in allocations
        if not a.legacy
    }

    return ReconciledTotals(
        student_paid=round_money(student_paid),
        agent_paid=round_money(agent_paid),
        service_charge_received_from_college=round_money(totals.college_service_charge),
        service_charge_deducted_from_student=round_money(totals.service_charge_deducted),
        service_charge_deducted_by_agent=round_money(totals.agent_fee_deducted),
        service_charge_paid_back_to_college=round_money(paid_back),
        total_due_to_college=round_money(totals.amount_due_to_college),
        paid_to_college=round_money(totals.consultancy_to_college),
        slot_fee_paid=slot_fee_paid,
    )

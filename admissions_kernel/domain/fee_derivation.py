"""
Fee & service-charge derivation -- pure function over an admission's inputs.

Responsibility:
    Computes every derived figure on an admission (total fee, service charge
    received and due, balance due to the college, student and agent dues,
    per-slot agent dues) from its stored inputs.  ``Admission.apply_derivation``
    calls this on every write path so the derived columns can never drift
    from their inputs.

Architecture position:
    Kernel > Domain -- pure, zero I/O.

Invariants enforced:
    - total_fee = offered + admission + sum(tuition) + sum(hostel) iff hostel_included
    - every "due" is max(0, owed - received), rounded with round_money
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

from admissions_kernel.db.types import ZERO, clamp_non_negative, round_money
from admissions_kernel.domain.agent_allocation import AgentAllocation, effective_agent_fee


@dataclass(frozen=True)
class FeeInputs:
    """Stored inputs of an admission that feed the derivation."""

    offered_fee: Decimal = ZERO
    admission_fee: Decimal = ZERO
    tuition_fees: tuple[Decimal, ...] = ()
    hostel_included: bool = False
    hostel_fees: tuple[Decimal, ...] = ()

    service_charge_agreed: Decimal = ZERO
    service_charge_received_from_college: Decimal = ZERO
    service_charge_deducted_from_student: Decimal = ZERO
    service_charge_deducted_by_agent: Decimal = ZERO
    service_charge_paid_back_to_college: Decimal = ZERO

    total_due_to_college: Decimal = ZERO
    paid_to_college: Decimal = ZERO

    student_paid: Decimal = ZERO
    agent_paid: Decimal = ZERO

    allocations: list[AgentAllocation] = field(default_factory=list)


@dataclass(frozen=True)
class AdmissionFinancials:
    total_fee: Decimal
    service_charge_received: Decimal
    service_charge_due: Decimal
    balance_due_to_college: Decimal
    student_due: Decimal
    total_agent_fee: Decimal
    agent_due: Decimal
    slot_fee_due: dict
    slots_total_fee: Decimal
    slots_total_fee_paid: Decimal
    slots_total_fee_due: Decimal


def compute_total_fee(inputs: FeeInputs) -> Decimal:
    total = inputs.offered_fee + inputs.admission_fee + sum(inputs.tuition_fees, ZERO)
    if inputs.hostel_included:
        total += sum(inputs.hostel_fees, ZERO)
    return round_money(total)


def derive_admission_financials(inputs: FeeInputs) -> AdmissionFinancials:
    """Derive every computed admission figure from ``inputs``."""
    total_fee = compute_total_fee(inputs)

    gross_received = (
        inputs.service_charge_received_from_college
        + inputs.service_charge_deducted_from_student
        + inputs.service_charge_deducted_by_agent
    )
    sc_received = clamp_non_negative(gross_received - inputs.service_charge_paid_back_to_college)
    sc_due = clamp_non_negative(inputs.service_charge_agreed - sc_received)

    balance_due_to_college = clamp_non_negative(
        inputs.total_due_to_college - inputs.paid_to_college
    )
    student_due = clamp_non_negative(total_fee - inputs.student_paid)

    # Legacy allocations are flagged; the slot rollups only cover real slots.
    total_agent_fee = round_money(effective_agent_fee(inputs.allocations))
    agent_due = clamp_non_negative(total_agent_fee - inputs.agent_paid)

    slots = [a for a in inputs.allocations if not a.legacy]
    slot_fee_due = {a.role: clamp_non_negative(a.agent_fee - a.fee_paid) for a in slots}
    slots_total_fee = round_money(sum((a.agent_fee for a in slots), ZERO))
    slots_total_fee_paid = round_money(inputs.agent_paid) if slots else ZERO

    return AdmissionFinancials(
        total_fee=total_fee,
        service_charge_received=sc_received,
        service_charge_due=sc_due,
        balance_due_to_college=balance_due_to_college,
        student_due=student_due,
        total_agent_fee=total_agent_fee,
        agent_due=agent_due,
        slot_fee_due=slot_fee_due,
        slots_total_fee=slots_total_fee,
        slots_total_fee_paid=slots_total_fee_paid,
        slots_total_fee_due=clamp_non_negative(slots_total_fee - slots_total_fee_paid),
    )

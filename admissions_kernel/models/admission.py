"""
Module: admissions_kernel.models.admission
Responsibility: ORM persistence for an admission and its denormalized money
    summary (fees, service charge, college payment, agents, payment summary).
Architecture position: Kernel > Models.  May import from db/ and domain/.
    MUST NOT import from services/, selectors/, or outer layers.

Invariants enforced:
    - admission_no is unique and immutable once assigned.
    - Every derived column is recomputed by ``apply_derivation`` on every
      write path; nothing else assigns them.
    - The payment summary and service-charge inputs are written only by the
      aggregator (from the live payment history).

Storage layout:
    The nested groups of the admission record are stored as flat columns.
    ``to_groups`` rebuilds the nested shape and ``WRITABLE_GROUP_FIELDS``
    names the group keys an update may set.
"""

from datetime import date
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import Boolean, Date, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from admissions_kernel.db.base import SoftDeleteMixin, TrackedBase
from admissions_kernel.db.types import ZERO, to_money
from admissions_kernel.domain.agent_allocation import (
    SLOT_ORDER,
    AgentAllocation,
    LegacyAgent,
    normalize_agent_allocations,
)
from admissions_kernel.domain.fee_derivation import (
    AdmissionFinancials,
    FeeInputs,
    derive_admission_financials,
)
from admissions_kernel.domain.flow_classifier import AdmissionFlowState
from admissions_kernel.domain.values import AdmissionStatus, AgentType

YEARS = (1, 2, 3, 4)

SLOT_PREFIX: dict[AgentType, str] = {
    AgentType.MAIN: "main_agent",
    AgentType.COLLEGE: "college_agent",
    AgentType.SUB: "sub_agent",
}

SLOT_GROUP_KEY: dict[AgentType, str] = {
    AgentType.MAIN: "main",
    AgentType.COLLEGE: "college",
    AgentType.SUB: "sub",
}


def _amount() -> Any:
    return mapped_column(nullable=False, default=Decimal("0"))


# group -> {group key: column attribute}
FEE_FIELDS: dict[str, str] = {
    "offered_fee": "offered_fee",
    "admission_fee": "admission_fee",
    **{f"tuition_fee_year{y}": f"tuition_fee_year{y}" for y in YEARS},
    "hostel_included": "hostel_included",
    **{f"hostel_fee_year{y}": f"hostel_fee_year{y}" for y in YEARS},
}

SERVICE_CHARGE_FIELDS: dict[str, str] = {
    "agreed": "service_charge_agreed",
    "received_from_college": "service_charge_received_from_college",
    "deducted_from_student": "service_charge_deducted_from_student",
    "deducted_by_agent": "service_charge_deducted_by_agent",
    "paid_back_to_college": "service_charge_paid_back_to_college",
    "received": "service_charge_received",
    "due": "service_charge_due",
}

COLLEGE_PAYMENT_FIELDS: dict[str, str] = {
    "total_due_to_college": "total_due_to_college",
    "paid_to_college": "paid_to_college",
    "balance_due_to_college": "balance_due_to_college",
}

LEGACY_AGENT_FIELDS: dict[str, str] = {
    "agent_type": "legacy_agent_type",
    "agent_id": "legacy_agent_id",
    "agent_fee": "legacy_agent_fee",
}

PAYMENT_SUMMARY_FIELDS: dict[str, str] = {
    "student_paid": "student_paid",
    "student_due": "student_due",
    "agent_paid": "agent_paid",
    "agent_due": "agent_due",
}

# Keys an update request may set; everything else in a group is derived.
WRITABLE_GROUP_FIELDS: dict[str, dict[str, str]] = {
    "fees": FEE_FIELDS,
    "service_charge": {"agreed": "service_charge_agreed"},
    "agent": LEGACY_AGENT_FIELDS,
    **{
        f"agents.{SLOT_GROUP_KEY[role]}": {
            "agent_id": f"{SLOT_PREFIX[role]}_id",
            "agent_fee": f"{SLOT_PREFIX[role]}_fee",
        }
        for role in SLOT_ORDER
    },
}


class Admission(SoftDeleteMixin, TrackedBase):
    """
    A student's admission to a college course, with its money summary.

    Guarantees:
        - ``apply_derivation`` keeps total_fee, the service-charge received
          and due, the college balance, the student and agent dues and the
          per-slot agent dues consistent with the stored inputs.
        - ``agent_allocations`` is the only reader of the two agent shapes.
    """

    __tablename__ = "admissions"

    __table_args__ = (
        UniqueConstraint("admission_no", name="uq_admission_no"),
        Index("idx_admission_branch", "branch_id"),
        Index("idx_admission_college", "college_id"),
    )

    admission_no: Mapped[str] = mapped_column(String(20), nullable=False)

    branch_id: Mapped[UUID] = mapped_column(ForeignKey("branches.id"), nullable=False)
    college_id: Mapped[UUID | None] = mapped_column(nullable=True)
    course_id: Mapped[UUID | None] = mapped_column(nullable=True)
    academic_year: Mapped[str | None] = mapped_column(String(20), nullable=True)
    admission_date: Mapped[date] = mapped_column(Date, nullable=False)
    admission_status: Mapped[AdmissionStatus] = mapped_column(
        String(20),
        nullable=False,
        default=AdmissionStatus.PENDING.value,
    )

    student_name: Mapped[str] = mapped_column(String(255), nullable=False)
    student_phone: Mapped[str | None] = mapped_column(String(30), nullable=True)
    student_email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    remarks: Mapped[str | None] = mapped_column(String(2000), nullable=True)

    # Fees
    offered_fee: Mapped[Decimal] = _amount()
    admission_fee: Mapped[Decimal] = _amount()
    tuition_fee_year1: Mapped[Decimal] = _amount()
    tuition_fee_year2: Mapped[Decimal] = _amount()
    tuition_fee_year3: Mapped[Decimal] = _amount()
    tuition_fee_year4: Mapped[Decimal] = _amount()
    hostel_included: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    hostel_fee_year1: Mapped[Decimal] = _amount()
    hostel_fee_year2: Mapped[Decimal] = _amount()
    hostel_fee_year3: Mapped[Decimal] = _amount()
    hostel_fee_year4: Mapped[Decimal] = _amount()
    total_fee: Mapped[Decimal] = _amount()

    # Service charge
    service_charge_agreed: Mapped[Decimal] = _amount()
    service_charge_received_from_college: Mapped[Decimal] = _amount()
    service_charge_deducted_from_student: Mapped[Decimal] = _amount()
    service_charge_deducted_by_agent: Mapped[Decimal] = _amount()
    service_charge_paid_back_to_college: Mapped[Decimal] = _amount()
    service_charge_received: Mapped[Decimal] = _amount()
    service_charge_due: Mapped[Decimal] = _amount()

    # College payment
    total_due_to_college: Mapped[Decimal] = _amount()
    paid_to_college: Mapped[Decimal] = _amount()
    balance_due_to_college: Mapped[Decimal] = _amount()

    # Agent slots
    main_agent_id: Mapped[UUID | None] = mapped_column(ForeignKey("agents.id"), nullable=True)
    main_agent_fee: Mapped[Decimal] = _amount()
    main_agent_fee_paid: Mapped[Decimal] = _amount()
    main_agent_fee_due: Mapped[Decimal] = _amount()
    college_agent_id: Mapped[UUID | None] = mapped_column(ForeignKey("agents.id"), nullable=True)
    college_agent_fee: Mapped[Decimal] = _amount()
    college_agent_fee_paid: Mapped[Decimal] = _amount()
    college_agent_fee_due: Mapped[Decimal] = _amount()
    sub_agent_id: Mapped[UUID | None] = mapped_column(ForeignKey("agents.id"), nullable=True)
    sub_agent_fee: Mapped[Decimal] = _amount()
    sub_agent_fee_paid: Mapped[Decimal] = _amount()
    sub_agent_fee_due: Mapped[Decimal] = _amount()
    total_agent_fee: Mapped[Decimal] = _amount()
    total_agent_fee_paid: Mapped[Decimal] = _amount()
    total_agent_fee_due: Mapped[Decimal] = _amount()

    # Legacy single agent
    legacy_agent_type: Mapped[AgentType | None] = mapped_column(String(20), nullable=True)
    legacy_agent_id: Mapped[UUID | None] = mapped_column(ForeignKey("agents.id"), nullable=True)
    legacy_agent_fee: Mapped[Decimal] = _amount()

    # Payment summary
    student_paid: Mapped[Decimal] = _amount()
    student_due: Mapped[Decimal] = _amount()
    agent_paid: Mapped[Decimal] = _amount()
    agent_due: Mapped[Decimal] = _amount()

    # -- agents -------------------------------------------------------------

    def slot_allocations(self) -> list[AgentAllocation]:
        slots = []
        for role in SLOT_ORDER:
            prefix = SLOT_PREFIX[role]
            slots.append(
                AgentAllocation(
                    role=role,
                    agent_id=getattr(self, f"{prefix}_id"),
                    agent_fee=to_money(getattr(self, f"{prefix}_fee")),
                    fee_paid=to_money(getattr(self, f"{prefix}_fee_paid")),
                    fee_due=to_money(getattr(self, f"{prefix}_fee_due")),
                )
            )
        return slots

    def legacy_agent(self) -> LegacyAgent | None:
        if self.legacy_agent_id is None and not to_money(self.legacy_agent_fee):
            return None
        return LegacyAgent(
            agent_type=AgentType(self.legacy_agent_type) if self.legacy_agent_type else None,
            agent_id=self.legacy_agent_id,
            agent_fee=to_money(self.legacy_agent_fee),
        )

    def agent_allocations(self) -> list[AgentAllocation]:
        return normalize_agent_allocations(self.slot_allocations(), self.legacy_agent())

    def set_slot_fee_paid(self, role: AgentType, value: Decimal) -> None:
        setattr(self, f"{SLOT_PREFIX[role]}_fee_paid", value)

    # -- derivation ---------------------------------------------------------

    def fee_inputs(self) -> FeeInputs:
        return FeeInputs(
            offered_fee=to_money(self.offered_fee),
            admission_fee=to_money(self.admission_fee),
            tuition_fees=tuple(to_money(getattr(self, f"tuition_fee_year{y}")) for y in YEARS),
            hostel_included=bool(self.hostel_included),
            hostel_fees=tuple(to_money(getattr(self, f"hostel_fee_year{y}")) for y in YEARS),
            service_charge_agreed=to_money(self.service_charge_agreed),
            service_charge_received_from_college=to_money(self.service_charge_received_from_college),
            service_charge_deducted_from_student=to_money(self.service_charge_deducted_from_student),
            service_charge_deducted_by_agent=to_money(self.service_charge_deducted_by_agent),
            service_charge_paid_back_to_college=to_money(self.service_charge_paid_back_to_college),
            total_due_to_college=to_money(self.total_due_to_college),
            paid_to_college=to_money(self.paid_to_college),
            student_paid=to_money(self.student_paid),
            agent_paid=to_money(self.agent_paid),
            allocations=self.agent_allocations(),
        )

    def apply_derivation(self) -> AdmissionFinancials:
        """Recompute every derived column from the stored inputs."""
        financials = derive_admission_financials(self.fee_inputs())

        self.total_fee = financials.total_fee
        self.service_charge_received = financials.service_charge_received
        self.service_charge_due = financials.service_charge_due
        self.balance_due_to_college = financials.balance_due_to_college
        self.student_due = financials.student_due
        self.agent_due = financials.agent_due

        for role in SLOT_ORDER:
            setattr(
                self,
                f"{SLOT_PREFIX[role]}_fee_due",
                financials.slot_fee_due.get(role, ZERO),
            )
        self.total_agent_fee = financials.slots_total_fee
        self.total_agent_fee_paid = financials.slots_total_fee_paid
        self.total_agent_fee_due = financials.slots_total_fee_due
        return financials

    def flow_state(self) -> AdmissionFlowState:
        """Figures the payment flow classifier reads when deriving a payment."""
        allocations = self.agent_allocations()
        return AdmissionFlowState(
            service_charge_agreed=to_money(self.service_charge_agreed),
            service_charge_due=to_money(self.service_charge_due),
            total_agent_fee=sum((a.agent_fee for a in allocations), ZERO),
        )

    # -- nested view ----------------------------------------------------------

    def to_groups(self, include_service_charge: bool = True) -> dict[str, Any]:
        """Rebuild the nested group shape of the admission record."""

        def pick(fields: dict[str, str]) -> dict[str, Any]:
            return {key: getattr(self, attr) for key, attr in fields.items()}

        fees = pick(FEE_FIELDS)
        fees["total_fee"] = self.total_fee

        agents: dict[str, Any] = {}
        for role in SLOT_ORDER:
            prefix = SLOT_PREFIX[role]
            agents[SLOT_GROUP_KEY[role]] = {
                "agent_id": getattr(self, f"{prefix}_id"),
                "agent_fee": getattr(self, f"{prefix}_fee"),
                "fee_paid": getattr(self, f"{prefix}_fee_paid"),
                "fee_due": getattr(self, f"{prefix}_fee_due"),
            }
        agents["total_agent_fee"] = self.total_agent_fee
        agents["total_agent_fee_paid"] = self.total_agent_fee_paid
        agents["total_agent_fee_due"] = self.total_agent_fee_due

        groups: dict[str, Any] = {
            "fees": fees,
            "college_payment": pick(COLLEGE_PAYMENT_FIELDS),
            "agents": agents,
            "agent": pick(LEGACY_AGENT_FIELDS),
            "payment_summary": pick(PAYMENT_SUMMARY_FIELDS),
        }
        if include_service_charge:
            groups["service_charge"] = pick(SERVICE_CHARGE_FIELDS)
        return groups

    def __repr__(self) -> str:
        return f"<Admission {self.admission_no}: {self.student_name}>"

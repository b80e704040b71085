"""
Pure domain layer.

Flow classification, fee and service-charge derivation, agent allocation
and reconciliation live here, with NO dependencies on:
- ORM (SQLAlchemy)
- Database
- I/O

Everything except SystemClock is deterministic.
"""

from admissions_kernel.domain.agent_allocation import (
    AgentAllocation,
    LegacyAgent,
    normalize_agent_allocations,
)
from admissions_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from admissions_kernel.domain.fee_derivation import (
    AdmissionFinancials,
    FeeInputs,
    derive_admission_financials,
)
from admissions_kernel.domain.flow_classifier import (
    AdmissionFlowState,
    CashbookSide,
    FlowDerivation,
    FlowKind,
    RecordingPlan,
    classify_flow,
    derive_payment_fields,
    recording_plan,
)
from admissions_kernel.domain.reconciliation import FlowTotals, ReconciledTotals, reconcile
from admissions_kernel.domain.values import (
    Actor,
    AgentType,
    Attachment,
    DaybookCategory,
    DaybookType,
    PayerType,
    PaymentMode,
    ReceiverType,
    UserRole,
    VoucherType,
)

__all__ = [
    "Actor",
    "AdmissionFinancials",
    "AdmissionFlowState",
    "AgentAllocation",
    "AgentType",
    "Attachment",
    "CashbookSide",
    "Clock",
    "DaybookCategory",
    "DaybookType",
    "DeterministicClock",
    "FeeInputs",
    "FlowDerivation",
    "FlowKind",
    "FlowTotals",
    "LegacyAgent",
    "PayerType",
    "PaymentMode",
    "ReceiverType",
    "ReconciledTotals",
    "RecordingPlan",
    "SystemClock",
    "UserRole",
    "VoucherType",
    "classify_flow",
    "derive_admission_financials",
    "derive_payment_fields",
    "normalize_agent_allocations",
    "reconcile",
    "recording_plan",
]

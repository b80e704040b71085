"""ORM models for the admissions kernel."""

from admissions_kernel.models.admission import Admission
from admissions_kernel.models.audit_log import (
    AuditAction,
    AuditLog,
    PendingRecompute,
    SequenceCounter,
)
from admissions_kernel.models.branch import Agent, Branch
from admissions_kernel.models.daybook import CashbookEntry, DaybookEntry
from admissions_kernel.models.payment import AgentPayment, Payment
from admissions_kernel.models.voucher import Voucher

__all__ = [
    "Admission",
    "Agent",
    "AgentPayment",
    "AuditAction",
    "AuditLog",
    "Branch",
    "CashbookEntry",
    "DaybookEntry",
    "Payment",
    "PendingRecompute",
    "SequenceCounter",
    "Voucher",
]

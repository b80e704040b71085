"""Read-only query selectors."""

from admissions_kernel.selectors.admission_selector import (
    AdmissionSelector,
    AgentSelector,
    BranchSelector,
)
from admissions_kernel.selectors.base import BaseSelector
from admissions_kernel.selectors.ledger_selector import (
    CashbookSelector,
    DaybookSelector,
    VoucherSelector,
)
from admissions_kernel.selectors.payment_selector import AgentPaymentSelector, PaymentSelector

__all__ = [
    "AdmissionSelector",
    "AgentPaymentSelector",
    "AgentSelector",
    "BaseSelector",
    "BranchSelector",
    "CashbookSelector",
    "DaybookSelector",
    "PaymentSelector",
    "VoucherSelector",
]

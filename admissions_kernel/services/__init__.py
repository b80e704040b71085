"""Services for the admissions kernel (write side)."""

from admissions_kernel.services.admission_service import AdmissionService
from admissions_kernel.services.agent_payment_service import (
    AgentPaymentService,
    RecordedAgentPayment,
)
from admissions_kernel.services.aggregator_service import AggregatorService
from admissions_kernel.services.audit_sink import (
    AuditEvent,
    AuditSink,
    DatabaseAuditSink,
    LoggingAuditSink,
    NullAuditSink,
)
from admissions_kernel.services.branch_service import BranchService
from admissions_kernel.services.cashbook_service import CashbookService
from admissions_kernel.services.daybook_service import DaybookService, RecordedEntries
from admissions_kernel.services.numbering_service import NumberingService
from admissions_kernel.services.payment_service import PaymentService, RecordedPayment
from admissions_kernel.services.retry_service import DrainResult, RetryService
from admissions_kernel.services.sequence_service import SequenceService
from admissions_kernel.services.voucher_service import VoucherService

__all__ = [
    "AdmissionService",
    "AgentPaymentService",
    "AggregatorService",
    "AuditEvent",
    "AuditSink",
    "BranchService",
    "CashbookService",
    "DatabaseAuditSink",
    "DaybookService",
    "DrainResult",
    "LoggingAuditSink",
    "NullAuditSink",
    "NumberingService",
    "PaymentService",
    "RecordedAgentPayment",
    "RecordedEntries",
    "RecordedPayment",
    "RetryService",
    "SequenceService",
    "VoucherService",
]

"""
Typed Exception Hierarchy for the Admissions Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers (the ledger facade, HTTP controllers, operational tooling) must be
able to tell "the admission is gone" from "this transaction reference was
already used" without parsing message strings.  Every error therefore has:
  1. A TYPED exception class (catch by type, not message)
  2. A CODE attribute (machine-readable, API-safe)
  3. Structured DATA attributes (not just a message string)

Example:
    try:
        ledger.create_payment(data, actor)
    except DuplicateTransactionRefError as e:
        return {"success": False, "code": e.code, "message": str(e)}

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

All exceptions inherit from AdmissionsKernelError:

    AdmissionsKernelError (base)
    |
    +-- NotFoundError
    |   +-- AdmissionNotFoundError
    |   +-- PaymentNotFoundError
    |   +-- AgentPaymentNotFoundError
    |   +-- AgentNotFoundError
    |   +-- BranchNotFoundError
    |   +-- VoucherNotFoundError
    |   +-- CashbookEntryNotFoundError
    |   +-- DaybookEntryNotFoundError
    |
    +-- ConflictError
    |   +-- DuplicateTransactionRefError
    |   +-- SequenceConflictError
    |   +-- DuplicateBranchCodeError
    |
    +-- ValidationError
    |   +-- InvalidAmountError
    |   +-- InvalidFlowError
    |
    +-- ForbiddenError
    |   +-- ServiceChargeEditForbiddenError
    |
    +-- ReconciliationError
        +-- RecomputeRetryExhaustedError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                        | When Raised
----------------|-----------------------------|-----------------------------------------
Not found       | ADMISSION_NOT_FOUND         | Admission missing or soft-deleted
                | PAYMENT_NOT_FOUND           | Payment missing or soft-deleted
                | AGENT_PAYMENT_NOT_FOUND     | Agent payment missing or soft-deleted
                | AGENT_NOT_FOUND             | Agent missing or soft-deleted
                | BRANCH_NOT_FOUND            | Branch missing (numbering needs code)
                | VOUCHER_NOT_FOUND           | Voucher id / number unknown
                | CASHBOOK_ENTRY_NOT_FOUND    | Cashbook row unknown
                | DAYBOOK_ENTRY_NOT_FOUND     | Daybook row unknown
----------------|-----------------------------|-----------------------------------------
Conflict        | DUPLICATE_TRANSACTION_REF   | Live payment already uses the reference
                | SEQUENCE_CONFLICT           | Minted number collides with existing row
                | DUPLICATE_BRANCH_CODE       | Branch code already registered
----------------|-----------------------------|-----------------------------------------
Validation      | VALIDATION_ERROR            | Generic field validation failure
                | INVALID_AMOUNT              | Amount <= 0 or negative ledger value
                | INVALID_FLOW                | Unknown party / self-transfer pair
----------------|-----------------------------|-----------------------------------------
Forbidden       | FORBIDDEN                   | Role may not perform the action
                | SERVICE_CHARGE_EDIT_FORBIDDEN | Staff editing service charge
----------------|-----------------------------|-----------------------------------------
Reconciliation  | RECOMPUTE_RETRY_EXHAUSTED   | Pending recompute hit the retry limit

===============================================================================
DESIGN DECISIONS
===============================================================================

1. Inherit from Exception, not ValueError/KeyError: domain errors must be
   catchable as a group without swallowing programming errors.

2. ``code`` is a class attribute so it is available without instantiation
   (API documentation, response mapping).

3. ``http_status`` lives on the four top-level categories only; the response
   mapper in ``admissions_services.responses`` reads it from the instance.
"""

from typing import Any
from uuid import UUID


class AdmissionsKernelError(Exception):
    """
    Base exception for all admissions kernel errors.

    All subclasses must have a ``code`` class attribute for machine-readable
    error identification.
    """

    code: str = "ADMISSIONS_KERNEL_ERROR"
    http_status: int = 500


# Not found


class NotFoundError(AdmissionsKernelError):
    """Base exception for missing (or soft-deleted) records."""

    code: str = "NOT_FOUND"
    http_status: int = 404
    entity: str = "Record"

    def __init__(self, entity_id: UUID | str | None):
        self.entity_id = entity_id
        super().__init__(f"{self.entity} not found: {entity_id}")


class AdmissionNotFoundError(NotFoundError):
    """Admission does not exist or is soft-deleted."""

    code: str = "ADMISSION_NOT_FOUND"
    entity = "Admission"


class PaymentNotFoundError(NotFoundError):
    code: str = "PAYMENT_NOT_FOUND"
    entity = "Payment"


class AgentPaymentNotFoundError(NotFoundError):
    code: str = "AGENT_PAYMENT_NOT_FOUND"
    entity = "Agent payment"


class AgentNotFoundError(NotFoundError):
    code: str = "AGENT_NOT_FOUND"
    entity = "Agent"


class BranchNotFoundError(NotFoundError):
    """Branch lookup failed; voucher numbering cannot proceed without a code."""

    code: str = "BRANCH_NOT_FOUND"
    entity = "Branch"


class VoucherNotFoundError(NotFoundError):
    code: str = "VOUCHER_NOT_FOUND"
    entity = "Voucher"


class CashbookEntryNotFoundError(NotFoundError):
    code: str = "CASHBOOK_ENTRY_NOT_FOUND"
    entity = "Cashbook entry"


class DaybookEntryNotFoundError(NotFoundError):
    code: str = "DAYBOOK_ENTRY_NOT_FOUND"
    entity = "Daybook entry"


# Conflicts


class ConflictError(AdmissionsKernelError):
    """Base exception for uniqueness and serialization conflicts."""

    code: str = "CONFLICT"
    http_status: int = 409


class DuplicateTransactionRefError(ConflictError):
    """
    A live payment already carries this transaction reference.

    Raised before any write, so a double-submitted form never produces a
    second payment, voucher or cashbook row.
    """

    code: str = "DUPLICATE_TRANSACTION_REF"

    def __init__(self, transaction_ref: str, existing_payment_id: UUID | None = None):
        self.transaction_ref = transaction_ref
        self.existing_payment_id = existing_payment_id
        super().__init__(
            f"Payment with transaction reference '{transaction_ref}' already exists"
        )


class SequenceConflictError(ConflictError):
    """A minted number collided with an existing row."""

    code: str = "SEQUENCE_CONFLICT"

    def __init__(self, scope: str, value: str):
        self.scope = scope
        self.value = value
        super().__init__(f"Sequence conflict in scope {scope}: {value} already issued")


class DuplicateBranchCodeError(ConflictError):
    code: str = "DUPLICATE_BRANCH_CODE"

    def __init__(self, branch_code: str):
        self.branch_code = branch_code
        super().__init__(f"Branch code already exists: {branch_code}")


# Validation


class ValidationError(AdmissionsKernelError):
    """
    Request failed validation.

    ``field_errors`` is a list of ``{"field": ..., "message": ...}`` dicts so
    the response mapper can surface per-field messages.
    """

    code: str = "VALIDATION_ERROR"
    http_status: int = 422

    def __init__(self, message: str, field_errors: list[dict[str, Any]] | None = None):
        self.field_errors = field_errors or []
        super().__init__(message)


class InvalidAmountError(ValidationError):
    """Amount must be strictly positive."""

    code: str = "INVALID_AMOUNT"

    def __init__(self, field: str, amount: Any):
        self.field = field
        self.amount = amount
        super().__init__(
            f"{field} must be greater than 0, got {amount}",
            field_errors=[{"field": field, "message": "Amount must be greater than 0"}],
        )


class InvalidFlowError(ValidationError):
    """Payer/receiver combination is not a money flow."""

    code: str = "INVALID_FLOW"

    def __init__(self, payer_type: str, receiver_type: str, reason: str):
        self.payer_type = payer_type
        self.receiver_type = receiver_type
        self.reason = reason
        super().__init__(
            f"Invalid payment flow {payer_type} -> {receiver_type}: {reason}",
            field_errors=[{"field": "receiver_type", "message": reason}],
        )


# Authorization


class ForbiddenError(AdmissionsKernelError):
    """Actor's role does not permit the requested change."""

    code: str = "FORBIDDEN"
    http_status: int = 403

    def __init__(self, role: str, action: str):
        self.role = role
        self.action = action
        super().__init__(f"Role '{role}' is not allowed to {action}")


class ServiceChargeEditForbiddenError(ForbiddenError):
    """Staff users may not alter an admission's service charge."""

    code: str = "SERVICE_CHARGE_EDIT_FORBIDDEN"

    def __init__(self, role: str):
        super().__init__(role, "edit the service charge")


# Reconciliation


class ReconciliationError(AdmissionsKernelError):
    code: str = "RECONCILIATION_ERROR"
    http_status: int = 500


class RecomputeRetryExhaustedError(ReconciliationError):
    """
    A pending admission recompute has failed ``attempts`` times.

    The payment history is intact; only the cached summary is stale.
    """

    code: str = "RECOMPUTE_RETRY_EXHAUSTED"

    def __init__(self, admission_id: UUID, attempts: int, last_error: str | None):
        self.admission_id = admission_id
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(
            f"Recompute for admission {admission_id} exhausted after "
            f"{attempts} attempts: {last_error}"
        )

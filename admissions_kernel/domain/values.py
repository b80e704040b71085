"""
Values -- enumerations and small immutable value objects.

Responsibility:
    Names the closed vocabularies of the ledger (parties, payment modes,
    voucher and daybook kinds, roles) and the small value objects passed
    between layers (Actor, Attachment, VoucherReference).

Architecture position:
    Kernel > Domain -- pure, zero I/O.  Imported by models, selectors,
    services and the facade.

Failure modes:
    - ValidationError from ``coerce_enum`` on an unknown enum value.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, TypeVar
from uuid import UUID

from admissions_kernel.exceptions import ValidationError


class PayerType(str, Enum):
    STUDENT = "Student"
    COLLEGE = "College"
    CONSULTANCY = "Consultancy"
    AGENT = "Agent"


class ReceiverType(str, Enum):
    CONSULTANCY = "Consultancy"
    COLLEGE = "College"
    AGENT = "Agent"


class PaymentMode(str, Enum):
    CASH = "Cash"
    UPI = "UPI"
    CARD = "Card"
    BANK_TRANSFER = "BankTransfer"
    CHEQUE = "Cheque"


class VoucherType(str, Enum):
    """Voucher classification.  ``payment`` means money left the consultancy."""

    RECEIPT = "receipt"
    PAYMENT = "payment"
    AGENT_PAYMENT = "agent_payment"
    EXPENSE = "expense"


class ReferenceKind(str, Enum):
    """What a voucher was issued for."""

    PAYMENT = "Payment"
    AGENT_PAYMENT = "AgentPayment"
    DAYBOOK = "Daybook"


class DaybookType(str, Enum):
    """
    Daybook entry type.

    ``memo`` records money that moved between third parties (student paid the
    agent directly, student paid the college directly).  Memo rows never
    count towards income or expense.
    """

    INCOME = "income"
    EXPENSE = "expense"
    MEMO = "memo"


class DaybookCategory(str, Enum):
    ELECTRICITY_BILL = "electricity_bill"
    WATER_BILL = "water_bill"
    OFFICE_RENT = "office_rent"
    SALARY = "salary"
    PAID_TO_COLLEGE = "paid_to_college"
    PAID_TO_AGENT = "paid_to_agent"
    RECEIVED_FROM_STUDENT = "received_from_student"
    RECEIVED_FROM_COLLEGE_SERVICE_CHARGE = "received_from_college_service_charge"
    SERVICE_CHARGE_INCOME = "service_charge_income"
    MISC = "misc"


class AgentType(str, Enum):
    """Agent slot on an admission, also the agent's own classification."""

    MAIN = "Main"
    COLLEGE = "College"
    SUB = "Sub"


class AdmissionStatus(str, Enum):
    CONFIRMED = "Confirmed"
    PENDING = "Pending"
    CANCELLED = "Cancelled"


class UserRole(str, Enum):
    SUPER_ADMIN = "super_admin"
    ADMIN = "admin"
    STAFF = "staff"


E = TypeVar("E", bound=Enum)


def coerce_enum(enum_cls: type[E], value: Any, field: str) -> E:
    """
    Convert a raw request value into ``enum_cls``.

    Raises:
        ValidationError: If ``value`` is not one of the enum's values.
    """
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(str(m.value) for m in enum_cls)
        raise ValidationError(
            f"Invalid {field}: {value!r}",
            field_errors=[{"field": field, "message": f"Must be one of: {allowed}"}],
        ) from None


@dataclass(frozen=True, slots=True)
class Actor:
    """The authenticated user performing an operation."""

    id: UUID
    role: UserRole = UserRole.STAFF
    name: str | None = None

    @property
    def is_staff(self) -> bool:
        return self.role == UserRole.STAFF

    @property
    def can_view_service_charge(self) -> bool:
        return not self.is_staff


@dataclass(frozen=True, slots=True)
class Attachment:
    """Opaque file metadata stored alongside a payment; never interpreted."""

    filename: str
    original_name: str | None = None
    mime_type: str | None = None
    size: int | None = None
    path: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> Attachment | None:
        if not data or not data.get("filename"):
            return None
        return cls(
            filename=data["filename"],
            original_name=data.get("original_name"),
            mime_type=data.get("mime_type"),
            size=data.get("size"),
            path=data.get("path"),
        )


@dataclass(frozen=True, slots=True)
class VoucherReference:
    """Tagged reference from a voucher to the record it was issued for."""

    kind: ReferenceKind
    id: UUID

    def __str__(self) -> str:
        return f"{self.kind.value}:{self.id}"

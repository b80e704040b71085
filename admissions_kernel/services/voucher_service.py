"""
VoucherService -- issues numbered vouchers and tracks reprints.

Responsibility:
    Creates exactly one voucher per recorded payment, agent payment or
    manual daybook entry, numbered from the branch's voucher sequence.
    After issue a voucher only changes through ``record_print``.

Architecture position:
    Kernel > Services -- imperative shell.

Failure modes:
    - BranchNotFoundError when the branch has no code to number with.
    - SequenceConflictError when the minted number is already taken.
    - VoucherNotFoundError on lookups of unknown ids / numbers.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy.exc import IntegrityError

from admissions_kernel.db.types import round_money
from admissions_kernel.domain.values import PaymentMode, VoucherReference, VoucherType
from admissions_kernel.exceptions import SequenceConflictError, VoucherNotFoundError
from admissions_kernel.logging_config import get_logger
from admissions_kernel.models import Voucher
from admissions_kernel.selectors import VoucherSelector
from admissions_kernel.services.base import BaseService
from admissions_kernel.services.numbering_service import NumberingService

logger = get_logger("services.voucher")


class VoucherService(BaseService[Voucher]):
    def __init__(self, session, clock=None, numbering: NumberingService | None = None):
        super().__init__(session, clock)
        self._numbering = numbering or NumberingService(session, self.clock)
        self._selector = VoucherSelector(session)

    def issue(
        self,
        *,
        branch_id: UUID,
        voucher_date: date,
        voucher_type: VoucherType,
        reference: VoucherReference,
        amount: Decimal,
        actor_id: UUID,
        admission_id: UUID | None = None,
        payment_mode: PaymentMode | None = None,
        transaction_ref: str | None = None,
        description: str | None = None,
        party_name: str | None = None,
        party_type: str | None = None,
    ) -> Voucher:
        """Mint the next branch number and insert the voucher."""
        voucher_no = self._numbering.next_voucher_number_for_branch(branch_id, voucher_date.year)

        voucher = Voucher(
            voucher_no=voucher_no,
            branch_id=branch_id,
            voucher_date=voucher_date,
            voucher_type=VoucherType(voucher_type).value,
            reference_kind=reference.kind.value,
            reference_id=reference.id,
            admission_id=admission_id,
            amount=round_money(amount),
            payment_mode=PaymentMode(payment_mode).value if payment_mode else None,
            transaction_ref=transaction_ref,
            description=description,
            party_name=party_name,
            party_type=party_type,
            print_count=0,
            created_by_id=actor_id,
        )

        savepoint = self.session.begin_nested()
        try:
            self.session.add(voucher)
            self.session.flush()
            savepoint.commit()
        except IntegrityError:
            savepoint.rollback()
            logger.error(
                "voucher_number_conflict",
                extra={"voucher_no": voucher_no, "branch_id": str(branch_id)},
            )
            raise SequenceConflictError(f"voucher:{branch_id}", voucher_no) from None

        logger.info(
            "voucher_issued",
            extra={
                "voucher_id": str(voucher.id),
                "voucher_no": voucher_no,
                "voucher_type": voucher.voucher_type,
                "reference": str(reference),
                "amount": str(voucher.amount),
            },
        )
        return voucher

    def get(self, voucher_id: UUID) -> Voucher:
        voucher = self._selector.get(voucher_id)
        if voucher is None:
            raise VoucherNotFoundError(voucher_id)
        return voucher

    def get_by_number(self, voucher_no: str) -> Voucher:
        voucher = self._selector.get_by_number(voucher_no)
        if voucher is None:
            raise VoucherNotFoundError(voucher_no)
        return voucher

    def record_print(self, voucher_id: UUID, actor_id: UUID) -> Voucher:
        """Count one more print of the voucher."""
        voucher = self.get(voucher_id)
        voucher.print_count = (voucher.print_count or 0) + 1
        voucher.last_printed_at = self.clock.now()
        voucher.last_printed_by_id = actor_id
        self.session.flush()
        logger.info(
            "voucher_printed",
            extra={"voucher_no": voucher.voucher_no, "print_count": voucher.print_count},
        )
        return voucher


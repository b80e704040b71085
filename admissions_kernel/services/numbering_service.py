"""
NumberingService -- human-readable voucher and admission numbers.

Formats:
    voucher    {BRANCH_CODE}-{YEAR}-{SEQ:06d}   e.g. HQ-2024-000042
    admission  ADM-{YEAR}-{SEQ:05d}            e.g. ADM-2024-00007

Each scope is one SequenceService counter.  The first number minted in a
scope continues from the count of numbers already issued under its prefix,
so rows created before the counter existed are never re-used.  A minted
number that nevertheless collides with an existing row raises
SequenceConflictError instead of being handed out.
"""

from uuid import UUID

from sqlalchemy.orm import Session

from admissions_kernel.domain.clock import Clock, SystemClock
from admissions_kernel.exceptions import BranchNotFoundError, SequenceConflictError
from admissions_kernel.logging_config import get_logger
from admissions_kernel.selectors import AdmissionSelector, BranchSelector, VoucherSelector
from admissions_kernel.services.sequence_service import SequenceService

logger = get_logger("services.numbering")

ADMISSION_PREFIX = "ADM"


def voucher_scope(branch_code: str, year: int) -> str:
    return f"voucher:{branch_code}:{year}"


def admission_scope(year: int) -> str:
    return f"admission:{year}"


class NumberingService:
    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        sequences: SequenceService | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._sequences = sequences or SequenceService(session)
        self._vouchers = VoucherSelector(session)
        self._admissions = AdmissionSelector(session)
        self._branches = BranchSelector(session)

    def next_voucher_number(self, branch_code: str, year: int | None = None) -> str:
        code = branch_code.strip().upper()
        year = year or self._clock.current_year()
        prefix = f"{code}-{year}-"

        seq = self._sequences.next_value(
            voucher_scope(code, year),
            seed=lambda: self._vouchers.count_numbers_with_prefix(prefix),
        )
        number = f"{prefix}{seq:06d}"
        if self._vouchers.number_exists(number):
            raise SequenceConflictError(voucher_scope(code, year), number)

        logger.info("voucher_number_minted", extra={"voucher_no": number, "seq": seq})
        return number

    def next_voucher_number_for_branch(self, branch_id: UUID, year: int | None = None) -> str:
        branch = self._branches.get_branch(branch_id)
        if branch is None:
            raise BranchNotFoundError(branch_id)
        return self.next_voucher_number(branch.code, year)

    def next_admission_number(self, year: int | None = None) -> str:
        year = year or self._clock.current_year()
        prefix = f"{ADMISSION_PREFIX}-{year}-"

        seq = self._sequences.next_value(
            admission_scope(year),
            seed=lambda: self._admissions.count_numbers_with_prefix(prefix),
        )
        number = f"{prefix}{seq:05d}"
        if self._admissions.number_exists(number):
            raise SequenceConflictError(admission_scope(year), number)

        logger.info("admission_number_minted", extra={"admission_no": number, "seq": seq})
        return number

"""
CashbookService -- per-branch cash ledger with a running balance.

Responsibility:
    Appends cash movements to a branch's cashbook, computing each row's
    running balance from the branch's latest row, and supports the
    maintenance operations of the cashbook screen (edit, delete, clear).

Architecture position:
    Kernel > Services -- imperative shell.

Invariants enforced:
    - Appends to one branch are serialized: the branch's sequence counter
      row ("cashbook:{branch_id}") is locked until the caller's transaction
      ends, and the allocated value becomes the row's ``seq``.
    - running_balance = previous running_balance (or 0) + credited - debited.
    - credited and debited are never negative.

Known limitation:
    Editing or deleting a row does not re-run the balances of later rows.
    ``update_entry`` recomputes only the edited row from its predecessor.
"""

from datetime import date
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import delete, update

from admissions_kernel.db.types import ZERO, round_money, to_money
from admissions_kernel.domain.parsing import parse_amount
from admissions_kernel.exceptions import CashbookEntryNotFoundError, InvalidAmountError
from admissions_kernel.logging_config import get_logger
from admissions_kernel.models import CashbookEntry
from admissions_kernel.selectors import CashbookSelector
from admissions_kernel.services.base import BaseService
from admissions_kernel.services.sequence_service import SequenceService

logger = get_logger("services.cashbook")

EDITABLE_FIELDS = ("entry_date", "category", "description", "credited", "debited", "remarks")


def cashbook_scope(branch_id: UUID) -> str:
    return f"cashbook:{branch_id}"


class CashbookService(BaseService[CashbookEntry]):
    def __init__(self, session, clock=None, sequences: SequenceService | None = None):
        super().__init__(session, clock)
        self._sequences = sequences or SequenceService(session)
        self._selector = CashbookSelector(session)

    def append(
        self,
        branch_id: UUID,
        entry_date: date,
        actor_id: UUID,
        *,
        credited: Decimal | int | str = ZERO,
        debited: Decimal | int | str = ZERO,
        category: str | None = None,
        description: str | None = None,
        remarks: str | None = None,
        voucher_id: UUID | None = None,
        daybook_id: UUID | None = None,
    ) -> CashbookEntry:
        """
        Append one movement to the branch's cashbook.

        Raises:
            InvalidAmountError: negative amount, or both amounts zero.
            ValidationError: an amount that is not a finite number.
        """
        credited = parse_amount(credited, "credited", positive=False)
        debited = parse_amount(debited, "debited", positive=False)
        if credited == ZERO and debited == ZERO:
            raise InvalidAmountError("credited", credited)

        # Locks the branch counter: later appends wait here until commit.
        seq = self._sequences.next_value(cashbook_scope(branch_id))

        previous = self._selector.latest(branch_id)
        opening = to_money(previous.running_balance) if previous else ZERO
        running = round_money(opening + credited - debited)

        entry = CashbookEntry(
            branch_id=branch_id,
            entry_date=entry_date,
            seq=seq,
            category=category,
            description=description,
            credited=credited,
            debited=debited,
            running_balance=running,
            remarks=remarks,
            voucher_id=voucher_id,
            daybook_id=daybook_id,
            created_by_id=actor_id,
        )
        self.session.add(entry)
        self.session.flush()

        logger.info(
            "cashbook_appended",
            extra={
                "branch_id": str(branch_id),
                "seq": seq,
                "credited": str(credited),
                "debited": str(debited),
                "running_balance": str(running),
            },
        )
        return entry

    def balance_at(self, branch_id: UUID) -> Decimal:
        return self._selector.balance_at(branch_id)

    def _require(self, entry_id: UUID) -> CashbookEntry:
        entry = self._selector.get(entry_id)
        if entry is None:
            raise CashbookEntryNotFoundError(entry_id)
        return entry

    def update_entry(self, entry_id: UUID, actor_id: UUID, **changes: Any) -> CashbookEntry:
        """Edit a row and recompute its running balance from its predecessor."""
        entry = self._require(entry_id)
        for name in EDITABLE_FIELDS:
            if name not in changes:
                continue
            value = changes[name]
            if name in ("credited", "debited"):
                value = parse_amount(value, name, positive=False)
            setattr(entry, name, value)

        predecessor = self._selector.predecessor(entry)
        opening = to_money(predecessor.running_balance) if predecessor else ZERO
        entry.running_balance = round_money(
            opening + to_money(entry.credited) - to_money(entry.debited)
        )
        entry.updated_by_id = actor_id
        self.session.flush()

        logger.info(
            "cashbook_entry_updated",
            extra={"entry_id": str(entry.id), "running_balance": str(entry.running_balance)},
        )
        return entry

    def delete_entry(self, entry_id: UUID, actor_id: UUID) -> CashbookEntry:
        entry = self._require(entry_id)
        entry.mark_deleted(actor_id, self.clock.now())
        self.session.flush()
        logger.info("cashbook_entry_deleted", extra={"entry_id": str(entry.id)})
        return entry

    def clear_all(self, actor_id: UUID, branch_id: UUID | None = None) -> int:
        """Soft-delete every live row, of one branch when given.  Returns the count."""
        stmt = (
            update(CashbookEntry)
            .where(CashbookEntry.is_deleted.is_(False))
            .values(is_deleted=True, deleted_at=self.clock.now(), deleted_by_id=actor_id)
            .execution_options(synchronize_session="fetch")
        )
        if branch_id is not None:
            stmt = stmt.where(CashbookEntry.branch_id == branch_id)
        count = self.session.execute(stmt).rowcount
        self.session.flush()
        logger.warning(
            "cashbook_cleared",
            extra={"branch_id": str(branch_id) if branch_id else None, "count": count},
        )
        return count

    def hard_clear_all(self, branch_id: UUID | None = None) -> int:
        """Permanently delete rows, of one branch when given.  Returns the count."""
        stmt = delete(CashbookEntry).execution_options(synchronize_session="fetch")
        if branch_id is not None:
            stmt = stmt.where(CashbookEntry.branch_id == branch_id)
        count = self.session.execute(stmt).rowcount
        self.session.flush()
        logger.warning(
            "cashbook_hard_cleared",
            extra={"branch_id": str(branch_id) if branch_id else None, "count": count},
        )
        return count

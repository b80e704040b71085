"""
Module: admissions_kernel.selectors.ledger_selector
Responsibility: Read access to the voucher book, the daybook and the
    per-branch cashbook, including the summaries shown on the ledger screens.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - Cashbook order within a branch is (entry_date, seq).
    - Memo daybook rows never count as income or expense.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import and_, func, or_, select

from admissions_kernel.db.types import ZERO, round_money
from admissions_kernel.domain.dtos import (
    CashbookEntryInfo,
    CashbookSummary,
    DaybookEntryInfo,
    DaybookSummary,
    Page,
    VoucherInfo,
)
from admissions_kernel.domain.values import DaybookType, ReferenceKind, VoucherType
from admissions_kernel.models import CashbookEntry, DaybookEntry, Voucher
from admissions_kernel.selectors.base import BaseSelector, date_range


class VoucherSelector(BaseSelector[Voucher]):
    model = Voucher

    def get_by_number(self, voucher_no: str) -> Voucher | None:
        stmt = self._live(select(Voucher).where(Voucher.voucher_no == voucher_no))
        return self.session.execute(stmt).scalar_one_or_none()

    def count_numbers_with_prefix(self, prefix: str) -> int:
        """Voucher numbers already issued under ``prefix``, deleted rows included."""
        return self.session.execute(
            select(func.count())
            .select_from(Voucher)
            .where(Voucher.voucher_no.startswith(prefix, autoescape=True))
        ).scalar_one()

    def number_exists(self, voucher_no: str) -> bool:
        return (
            self.session.execute(
                select(Voucher.id).where(Voucher.voucher_no == voucher_no).limit(1)
            ).first()
            is not None
        )

    def for_reference(self, kind: ReferenceKind, reference_id: UUID) -> Voucher | None:
        stmt = self._live(
            select(Voucher).where(
                Voucher.reference_kind == kind.value,
                Voucher.reference_id == reference_id,
            )
        )
        return self.session.execute(stmt.limit(1)).scalar_one_or_none()

    def list_for_admission(self, admission_id: UUID) -> list[Voucher]:
        stmt = self._live(
            select(Voucher)
            .where(Voucher.admission_id == admission_id)
            .order_by(Voucher.voucher_date, Voucher.voucher_no)
        )
        return list(self.session.execute(stmt).scalars())

    def list_vouchers(
        self,
        *,
        branch_id: UUID | None = None,
        voucher_type: VoucherType | None = None,
        admission_id: UUID | None = None,
        start_date: date | None = None,
        end_date: date | None = None,
        search: str | None = None,
        page: int | None = None,
        limit: int | None = None,
    ) -> Page[VoucherInfo]:
        stmt = self._live(select(Voucher))
        if branch_id is not None:
            stmt = stmt.where(Voucher.branch_id == branch_id)
        if voucher_type is not None:
            stmt = stmt.where(Voucher.voucher_type == VoucherType(voucher_type).value)
        if admission_id is not None:
            stmt = stmt.where(Voucher.admission_id == admission_id)
        if search:
            pattern = f"%{search}%"
            stmt = stmt.where(
                or_(Voucher.voucher_no.ilike(pattern), Voucher.party_name.ilike(pattern))
            )
        stmt = date_range(stmt, Voucher.voucher_date, start_date, end_date)
        stmt = stmt.order_by(Voucher.voucher_date.desc(), Voucher.voucher_no.desc())

        rows, total, page, limit = self._paginate(stmt, page, limit)
        return Page(tuple(VoucherInfo.from_model(v) for v in rows), total, page, limit)


class DaybookSelector(BaseSelector[DaybookEntry]):
    model = DaybookEntry

    def for_payment(self, payment_id: UUID) -> DaybookEntry | None:
        stmt = self._live(select(DaybookEntry).where(DaybookEntry.payment_id == payment_id))
        return self.session.execute(stmt.limit(1)).scalar_one_or_none()

    def list_entries(
        self,
        *,
        branch_id: UUID | None = None,
        entry_type: DaybookType | None = None,
        category: str | None = None,
        start_date: date | None = None,
        end_date: date | None = None,
        page: int | None = None,
        limit: int | None = None,
    ) -> Page[DaybookEntryInfo]:
        stmt = self._live(select(DaybookEntry))
        if branch_id is not None:
            stmt = stmt.where(DaybookEntry.branch_id == branch_id)
        if entry_type is not None:
            stmt = stmt.where(DaybookEntry.entry_type == DaybookType(entry_type).value)
        if category:
            stmt = stmt.where(DaybookEntry.category == category)
        stmt = date_range(stmt, DaybookEntry.entry_date, start_date, end_date)
        stmt = stmt.order_by(DaybookEntry.entry_date.desc(), DaybookEntry.created_at.desc())

        rows, total, page, limit = self._paginate(stmt, page, limit)
        return Page(tuple(DaybookEntryInfo.from_model(e) for e in rows), total, page, limit)

    def summary(
        self,
        branch_id: UUID | None = None,
        start_date: date | None = None,
        end_date: date | None = None,
    ) -> DaybookSummary:
        """Income, expense and net over the range, with a per-category breakdown."""
        stmt = self._live(
            select(
                DaybookEntry.entry_type,
                DaybookEntry.category,
                func.coalesce(func.sum(DaybookEntry.amount), 0),
            ).where(DaybookEntry.entry_type != DaybookType.MEMO.value)
        )
        if branch_id is not None:
            stmt = stmt.where(DaybookEntry.branch_id == branch_id)
        stmt = date_range(stmt, DaybookEntry.entry_date, start_date, end_date)
        stmt = stmt.group_by(DaybookEntry.entry_type, DaybookEntry.category)

        income = expense = ZERO
        by_category: dict[str, Decimal] = {}
        for entry_type, category, total in self.session.execute(stmt):
            total = round_money(total or ZERO)
            by_category[category] = round_money(by_category.get(category, ZERO) + total)
            if entry_type == DaybookType.INCOME.value:
                income += total
            else:
                expense += total
        return DaybookSummary(
            total_income=round_money(income),
            total_expense=round_money(expense),
            net=round_money(income - expense),
            by_category=by_category,
        )


class CashbookSelector(BaseSelector[CashbookEntry]):
    model = CashbookEntry

    def latest(self, branch_id: UUID) -> CashbookEntry | None:
        """Last live entry of the branch in (entry_date, seq) order."""
        stmt = self._live(
            select(CashbookEntry)
            .where(CashbookEntry.branch_id == branch_id)
            .order_by(CashbookEntry.entry_date.desc(), CashbookEntry.seq.desc())
        )
        return self.session.execute(stmt.limit(1)).scalar_one_or_none()

    def predecessor(self, entry: CashbookEntry) -> CashbookEntry | None:
        """Live entry immediately before ``entry`` in its branch."""
        stmt = self._live(
            select(CashbookEntry)
            .where(
                CashbookEntry.branch_id == entry.branch_id,
                CashbookEntry.id != entry.id,
                or_(
                    CashbookEntry.entry_date < entry.entry_date,
                    and_(
                        CashbookEntry.entry_date == entry.entry_date,
                        CashbookEntry.seq < entry.seq,
                    ),
                ),
            )
            .order_by(CashbookEntry.entry_date.desc(), CashbookEntry.seq.desc())
        )
        return self.session.execute(stmt.limit(1)).scalar_one_or_none()

    def balance_at(self, branch_id: UUID) -> Decimal:
        latest = self.latest(branch_id)
        return round_money(latest.running_balance) if latest else ZERO

    def list_entries(
        self,
        *,
        branch_id: UUID | None = None,
        start_date: date | None = None,
        end_date: date | None = None,
        page: int | None = None,
        limit: int | None = None,
    ) -> Page[CashbookEntryInfo]:
        stmt = self._live(select(CashbookEntry))
        if branch_id is not None:
            stmt = stmt.where(CashbookEntry.branch_id == branch_id)
        stmt = date_range(stmt, CashbookEntry.entry_date, start_date, end_date)
        stmt = stmt.order_by(CashbookEntry.entry_date, CashbookEntry.seq)

        rows, total, page, limit = self._paginate(stmt, page, limit)
        return Page(tuple(CashbookEntryInfo.from_model(e) for e in rows), total, page, limit)

    def summary(
        self,
        branch_id: UUID | None = None,
        start_date: date | None = None,
        end_date: date | None = None,
    ) -> CashbookSummary:
        stmt = self._live(
            select(
                func.coalesce(func.sum(CashbookEntry.credited), 0),
                func.coalesce(func.sum(CashbookEntry.debited), 0),
                func.count(CashbookEntry.id),
            )
        )
        if branch_id is not None:
            stmt = stmt.where(CashbookEntry.branch_id == branch_id)
        stmt = date_range(stmt, CashbookEntry.entry_date, start_date, end_date)
        credited, debited, count = self.session.execute(stmt).one()

        if branch_id is not None:
            balance = self.balance_at(branch_id)
        else:
            balance = round_money(sum(self.balances_by_branch().values(), ZERO))
        return CashbookSummary(
            total_credited=round_money(credited or ZERO),
            total_debited=round_money(debited or ZERO),
            entry_count=count,
            current_balance=balance,
        )

    def balances_by_branch(self, branch_ids: list[UUID] | None = None) -> dict[UUID, Decimal]:
        """Current balance per branch; branches without entries report 0."""
        if branch_ids is None:
            branch_ids = list(
                self.session.execute(
                    self._live(select(CashbookEntry.branch_id).distinct())
                ).scalars()
            )
        return {branch_id: self.balance_at(branch_id) for branch_id in branch_ids}

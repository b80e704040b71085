"""
admissions_services.ledger_facade -- the transaction boundary of the ledger.

Responsibility:
    Wires the kernel services together for one Session and exposes every
    ledger operation as a single call that either commits completely or
    rolls back completely.  A payment create, for example, writes the
    payment, its voucher, its daybook row, its cashbook row and the owning
    admission's recomputed summary in one transaction.

Architecture position:
    Services -- orchestration over the kernel.  The only place that calls
    ``session.commit()`` / ``session.rollback()``.

Invariants enforced:
    - Every write commits on success and rolls back (then re-raises) on any
      exception.
    - The admission recompute after a write runs in a savepoint.  If it
      fails only that savepoint is rolled back; the failure is logged, the
      admission is queued in PendingRecompute within the same transaction
      and the outcome reports ``recompute_pending=True``.
    - Each write hands a before/after snapshot to the audit sink.

Usage:
    with session_scope() as session:
        ledger = AdmissionsLedger(session, settings=get_active_settings())
        outcome = ledger.create_payment({...}, actor)
"""

from __future__ import annotations

from collections.abc import Generator
from contextlib import contextmanager
from decimal import Decimal
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy.orm import Session

from admissions_config import AdmissionsSettings
from admissions_kernel.domain.clock import Clock, SystemClock
from admissions_kernel.domain.dtos import (
    AdmissionDetails,
    AdmissionInfo,
    AdmissionSummary,
    AgentPaymentInfo,
    AgentPaymentOutcome,
    AgentPaymentRequest,
    CashbookEntryInfo,
    CashbookSummary,
    DaybookEntryInfo,
    DaybookOutcome,
    DaybookSummary,
    Page,
    PaymentInfo,
    PaymentOutcome,
    PaymentRequest,
    TransactionRefCheck,
    VoucherInfo,
)
from admissions_kernel.domain.parsing import parse_amount, parse_date, parse_uuid
from admissions_kernel.domain.values import Actor
from admissions_kernel.logging_config import LogContext, get_logger
from admissions_kernel.models import AuditAction
from admissions_kernel.selectors import (
    AgentPaymentSelector,
    BranchSelector,
    CashbookSelector,
    DaybookSelector,
    PaymentSelector,
    VoucherSelector,
)
from admissions_kernel.services import (
    AdmissionService,
    AgentPaymentService,
    AggregatorService,
    AuditEvent,
    AuditSink,
    BranchService,
    CashbookService,
    DatabaseAuditSink,
    DaybookService,
    DrainResult,
    NumberingService,
    PaymentService,
    RecordedEntries,
    RetryService,
    SequenceService,
    VoucherService,
)
from admissions_kernel.services.audit_sink import snapshot

logger = get_logger("services.ledger")


def _entries_info(entries: RecordedEntries) -> dict[str, Any]:
    return {
        "voucher": VoucherInfo.from_model(entries.voucher),
        "daybook_entry": DaybookEntryInfo.from_model(entries.daybook_entry),
        "cashbook_entry": (
            CashbookEntryInfo.from_model(entries.cashbook_entry)
            if entries.cashbook_entry is not None
            else None
        ),
    }


class AdmissionsLedger:
    """
    Public entrypoint of the admissions ledger.

    Contract:
        Receives a Session (the caller owns its lifecycle) and constructs
        every kernel service exactly once around it.  Each public method is
        one transaction.

    Non-goals:
        - Does NOT authenticate; ``actor`` is trusted.
        - Does NOT format HTTP responses (see ``responses.to_error_response``).
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        settings: AdmissionsSettings | None = None,
        audit_sink: AuditSink | None = None,
    ):
        self.session = session
        self.clock = clock or SystemClock()
        self.settings = settings or AdmissionsSettings()
        self.audit_sink = audit_sink or DatabaseAuditSink(session)

        self.sequences = SequenceService(session)
        self.numbering = NumberingService(session, self.clock, self.sequences)
        self.cashbook = CashbookService(session, self.clock, self.sequences)
        self.vouchers = VoucherService(session, self.clock, self.numbering)
        self.daybook = DaybookService(
            session,
            self.clock,
            vouchers=self.vouchers,
            cashbook=self.cashbook,
            cash_payment_mode=self.settings.cash_payment_mode,
        )
        self.payments = PaymentService(session, self.clock, recorder=self.daybook)
        self.agent_payments = AgentPaymentService(session, self.clock, recorder=self.daybook)
        self.admissions = AdmissionService(session, self.clock, numbering=self.numbering)
        self.branches = BranchService(session, self.clock)
        self.aggregator = AggregatorService(session, self.clock)
        self.retry = RetryService(
            session,
            self.clock,
            aggregator=self.aggregator,
            max_attempts=self.settings.max_recompute_attempts,
        )

        paging = {
            "max_limit": self.settings.max_page_limit,
            "default_limit": self.settings.default_page_limit,
        }
        self._payment_reader = PaymentSelector(session, **paging)
        self._agent_payment_reader = AgentPaymentSelector(session, **paging)
        self._voucher_reader = VoucherSelector(session, **paging)
        self._daybook_reader = DaybookSelector(session, **paging)
        self._cashbook_reader = CashbookSelector(session, **paging)
        self._branch_reader = BranchSelector(session)

    # -- transaction plumbing -------------------------------------------------

    @contextmanager
    def _transaction(
        self, operation: str, actor: Actor | None = None, **context: Any
    ) -> Generator[None, None, None]:
        with LogContext.bind(
            correlation_id=str(uuid4()),
            actor_id=actor.id if actor else None,
            **context,
        ):
            try:
                yield
                self.session.commit()
            except Exception:
                self.session.rollback()
                logger.warning(
                    "operation_rolled_back", extra={"operation": operation}, exc_info=True
                )
                raise

    def _recompute_or_queue(
        self, admission_id: UUID, actor_id: UUID | None = None
    ) -> tuple[AdmissionSummary | None, bool]:
        """Recompute in a savepoint; on failure queue it instead of failing the write."""
        savepoint = self.session.begin_nested()
        try:
            summary = self.aggregator.recompute(admission_id)
            savepoint.commit()
        except Exception as exc:
            savepoint.rollback()
            logger.error(
                "recompute_failed",
                extra={"admission_id": str(admission_id)},
                exc_info=True,
            )
            self.retry.enqueue(admission_id, exc, actor_id)
            return None, True
        self.retry.discard(admission_id)
        return summary, False

    def _audit(
        self,
        actor: Actor,
        action: AuditAction,
        entity_type: str,
        entity_id: UUID | None,
        *,
        branch_id: UUID | None = None,
        before: dict[str, Any] | None = None,
        after: dict[str, Any] | None = None,
    ) -> None:
        self.audit_sink.record(
            AuditEvent(
                actor_id=actor.id,
                action=action,
                entity_type=entity_type,
                entity_id=entity_id,
                branch_id=branch_id,
                before=before,
                after=after,
            )
        )

    # -- payments -------------------------------------------------------------

    def create_payment(self, data: dict[str, Any], actor: Actor) -> PaymentOutcome:
        request = PaymentRequest.from_dict(data, today=self.clock.today())
        with self._transaction("create_payment", actor, admission_id=request.admission_id):
            recorded = self.payments.create(request, actor.id)
            payment = recorded.payment
            summary, pending = self._recompute_or_queue(payment.admission_id, actor.id)
            self._audit(
                actor,
                AuditAction.CREATE,
                "payment",
                payment.id,
                branch_id=payment.branch_id,
                after=snapshot(payment),
            )
            outcome = PaymentOutcome(
                payment=PaymentInfo.from_model(payment),
                summary=summary,
                recompute_pending=pending,
                **_entries_info(recorded.entries),
            )
        return outcome

    def update_payment(self, payment_id: UUID, data: dict[str, Any], actor: Actor) -> PaymentOutcome:
        with self._transaction("update_payment", actor, payment_id=payment_id):
            before = snapshot(self.payments.get(payment_id))
            payment = self.payments.update(payment_id, data, actor.id)
            summary, pending = self._recompute_or_queue(payment.admission_id, actor.id)
            self._audit(
                actor,
                AuditAction.UPDATE,
                "payment",
                payment.id,
                branch_id=payment.branch_id,
                before=before,
                after=snapshot(payment),
            )
            outcome = PaymentOutcome(
                payment=PaymentInfo.from_model(payment),
                summary=summary,
                recompute_pending=pending,
            )
        return outcome

    def delete_payment(self, payment_id: UUID, actor: Actor) -> PaymentOutcome:
        with self._transaction("delete_payment", actor, payment_id=payment_id):
            before = snapshot(self.payments.get(payment_id))
            payment = self.payments.delete(payment_id, actor.id)
            summary, pending = self._recompute_or_queue(payment.admission_id, actor.id)
            self._audit(
                actor,
                AuditAction.DELETE,
                "payment",
                payment.id,
                branch_id=payment.branch_id,
                before=before,
            )
            outcome = PaymentOutcome(
                payment=PaymentInfo.from_model(payment),
                summary=summary,
                recompute_pending=pending,
            )
        return outcome

    def check_transaction_ref(
        self, transaction_ref: str | None, exclude_id: UUID | None = None
    ) -> TransactionRefCheck:
        return self.payments.check_transaction_ref(transaction_ref, exclude_id)

    def get_payment(self, payment_id: UUID) -> PaymentInfo:
        return PaymentInfo.from_model(self.payments.get(payment_id))

    def list_payments(self, **filters: Any) -> Page[PaymentInfo]:
        return self._payment_reader.list_payments(**filters)

    # -- agent payments -------------------------------------------------------

    def create_agent_payment(self, data: dict[str, Any], actor: Actor) -> AgentPaymentOutcome:
        request = AgentPaymentRequest.from_dict(data, today=self.clock.today())
        with self._transaction("create_agent_payment", actor, admission_id=request.admission_id):
            recorded = self.agent_payments.create(request, actor.id)
            agent_payment = recorded.agent_payment
            summary, pending = self._recompute_or_queue(agent_payment.admission_id, actor.id)
            self._audit(
                actor,
                AuditAction.CREATE,
                "agent_payment",
                agent_payment.id,
                branch_id=agent_payment.branch_id,
                after=snapshot(agent_payment),
            )
            outcome = AgentPaymentOutcome(
                agent_payment=AgentPaymentInfo.from_model(agent_payment),
                summary=summary,
                recompute_pending=pending,
                **_entries_info(recorded.entries),
            )
        return outcome

    def update_agent_payment(
        self, agent_payment_id: UUID, data: dict[str, Any], actor: Actor
    ) -> AgentPaymentOutcome:
        with self._transaction("update_agent_payment", actor):
            before = snapshot(self.agent_payments.get(agent_payment_id))
            agent_payment = self.agent_payments.update(agent_payment_id, data, actor.id)
            summary, pending = self._recompute_or_queue(agent_payment.admission_id, actor.id)
            self._audit(
                actor,
                AuditAction.UPDATE,
                "agent_payment",
                agent_payment.id,
                branch_id=agent_payment.branch_id,
                before=before,
                after=snapshot(agent_payment),
            )
            outcome = AgentPaymentOutcome(
                agent_payment=AgentPaymentInfo.from_model(agent_payment),
                summary=summary,
                recompute_pending=pending,
            )
        return outcome

    def delete_agent_payment(self, agent_payment_id: UUID, actor: Actor) -> AgentPaymentOutcome:
        with self._transaction("delete_agent_payment", actor):
            before = snapshot(self.agent_payments.get(agent_payment_id))
            agent_payment = self.agent_payments.delete(agent_payment_id, actor.id)
            summary, pending = self._recompute_or_queue(agent_payment.admission_id, actor.id)
            self._audit(
                actor,
                AuditAction.DELETE,
                "agent_payment",
                agent_payment.id,
                branch_id=agent_payment.branch_id,
                before=before,
            )
            outcome = AgentPaymentOutcome(
                agent_payment=AgentPaymentInfo.from_model(agent_payment),
                summary=summary,
                recompute_pending=pending,
            )
        return outcome

    def list_agent_payments(self, **filters: Any) -> Page[AgentPaymentInfo]:
        return self._agent_payment_reader.list_agent_payments(**filters)

    # -- admissions -----------------------------------------------------------

    def create_admission(self, data: dict[str, Any], actor: Actor) -> AdmissionInfo:
        with self._transaction("create_admission", actor):
            admission = self.admissions.create(data, actor)
            self._audit(
                actor,
                AuditAction.CREATE,
                "admission",
                admission.id,
                branch_id=admission.branch_id,
                after=snapshot(admission),
            )
            info = AdmissionInfo.from_model(admission, actor.can_view_service_charge)
        return info

    def update_admission(self, admission_id: UUID, data: dict[str, Any], actor: Actor) -> AdmissionInfo:
        with self._transaction("update_admission", actor, admission_id=admission_id):
            before = snapshot(self.admissions.get(admission_id))
            admission = self.admissions.update(admission_id, data, actor)
            # Agent slot changes move per-slot fee_paid attribution.
            self._recompute_or_queue(admission.id, actor.id)
            self._audit(
                actor,
                AuditAction.UPDATE,
                "admission",
                admission.id,
                branch_id=admission.branch_id,
                before=before,
                after=snapshot(admission),
            )
            info = AdmissionInfo.from_model(admission, actor.can_view_service_charge)
        return info

    def delete_admission(self, admission_id: UUID, actor: Actor) -> AdmissionInfo:
        with self._transaction("delete_admission", actor, admission_id=admission_id):
            admission = self.admissions.delete(admission_id, actor)
            self._audit(
                actor,
                AuditAction.DELETE,
                "admission",
                admission.id,
                branch_id=admission.branch_id,
                before=snapshot(admission),
            )
            info = AdmissionInfo.from_model(admission, actor.can_view_service_charge)
        return info

    def get_admission_details(self, admission_id: UUID, actor: Actor) -> AdmissionDetails:
        """Admission with its payments, agent payments and vouchers."""
        admission = self.admissions.get(admission_id)
        payments = self._payment_reader.list_for_admission(admission.id)
        agent_payments = self._agent_payment_reader.list_for_admission(admission.id)
        vouchers = self._voucher_reader.list_for_admission(admission.id)
        return AdmissionDetails(
            admission=AdmissionInfo.from_model(admission, actor.can_view_service_charge),
            payments=tuple(PaymentInfo.from_model(p) for p in payments),
            agent_payments=tuple(AgentPaymentInfo.from_model(a) for a in agent_payments),
            vouchers=tuple(VoucherInfo.from_model(v) for v in vouchers),
        )

    def recompute_admission_summary(self, admission_id: UUID) -> AdmissionSummary | None:
        with self._transaction("recompute_admission_summary", admission_id=admission_id):
            summary = self.aggregator.recompute(admission_id)
            if summary is not None:
                self.retry.discard(admission_id)
        return summary

    def drain_pending_recomputes(self) -> DrainResult:
        with self._transaction("drain_pending_recomputes"):
            result = self.retry.drain()
        return result

    # -- cashbook -------------------------------------------------------------

    def append_cashbook_entry(self, data: dict[str, Any], actor: Actor) -> CashbookEntryInfo:
        branch_id = parse_uuid(data.get("branch_id"), "branch_id", required=True)
        entry_date = parse_date(data.get("entry_date"), "entry_date", self.clock.today())
        credited = parse_amount(data.get("credited"), "credited", positive=False)
        debited = parse_amount(data.get("debited"), "debited", positive=False)
        with self._transaction("append_cashbook_entry", actor, branch_id=branch_id):
            entry = self.cashbook.append(
                branch_id,
                entry_date,
                actor.id,
                credited=credited,
                debited=debited,
                category=data.get("category"),
                description=data.get("description"),
                remarks=data.get("remarks"),
            )
            self._audit(
                actor,
                AuditAction.CREATE,
                "cashbook_entry",
                entry.id,
                branch_id=branch_id,
                after=snapshot(entry),
            )
            info = CashbookEntryInfo.from_model(entry)
        return info

    def update_cashbook_entry(self, entry_id: UUID, data: dict[str, Any], actor: Actor) -> CashbookEntryInfo:
        changes = dict(data)
        if "entry_date" in changes:
            changes["entry_date"] = parse_date(changes["entry_date"], "entry_date")
        with self._transaction("update_cashbook_entry", actor):
            entry = self.cashbook.update_entry(entry_id, actor.id, **changes)
            self._audit(
                actor,
                AuditAction.UPDATE,
                "cashbook_entry",
                entry.id,
                branch_id=entry.branch_id,
                after=snapshot(entry),
            )
            info = CashbookEntryInfo.from_model(entry)
        return info

    def delete_cashbook_entry(self, entry_id: UUID, actor: Actor) -> CashbookEntryInfo:
        with self._transaction("delete_cashbook_entry", actor):
            entry = self.cashbook.delete_entry(entry_id, actor.id)
            self._audit(
                actor,
                AuditAction.DELETE,
                "cashbook_entry",
                entry.id,
                branch_id=entry.branch_id,
                before=snapshot(entry),
            )
            info = CashbookEntryInfo.from_model(entry)
        return info

    def clear_cashbook(self, actor: Actor, branch_id: UUID | None = None, *, hard: bool = False) -> int:
        with self._transaction("clear_cashbook", actor, branch_id=branch_id):
            if hard:
                count = self.cashbook.hard_clear_all(branch_id)
            else:
                count = self.cashbook.clear_all(actor.id, branch_id)
            self._audit(
                actor,
                AuditAction.CLEAR,
                "cashbook",
                None,
                branch_id=branch_id,
                after={"count": count, "hard": hard},
            )
        return count

    def get_cash_balance(self, branch_id: UUID) -> Decimal:
        return self.cashbook.balance_at(branch_id)

    def cash_balances_by_branch(self, branch_ids: list[UUID] | None = None) -> dict[UUID, Decimal]:
        if branch_ids is None:
            branch_ids = self._branch_reader.list_branch_ids()
        return self._cashbook_reader.balances_by_branch(branch_ids)

    def list_cashbook(self, **filters: Any) -> Page[CashbookEntryInfo]:
        return self._cashbook_reader.list_entries(**filters)

    def cashbook_summary(self, branch_id: UUID | None = None, start_date=None, end_date=None) -> CashbookSummary:
        return self._cashbook_reader.summary(branch_id, start_date, end_date)

    # -- numbering and vouchers -----------------------------------------------

    def next_voucher_number(self, branch_code: str, year: int | None = None) -> str:
        """Mint (and consume) the next voucher number of a branch."""
        with self._transaction("next_voucher_number"):
            number = self.numbering.next_voucher_number(branch_code, year)
        return number

    def next_admission_number(self, year: int | None = None) -> str:
        with self._transaction("next_admission_number"):
            number = self.numbering.next_admission_number(year)
        return number

    def get_voucher(self, voucher_id: UUID) -> VoucherInfo:
        return VoucherInfo.from_model(self.vouchers.get(voucher_id))

    def get_voucher_by_number(self, voucher_no: str) -> VoucherInfo:
        return VoucherInfo.from_model(self.vouchers.get_by_number(voucher_no))

    def list_vouchers(self, **filters: Any) -> Page[VoucherInfo]:
        return self._voucher_reader.list_vouchers(**filters)

    def record_voucher_print(self, voucher_id: UUID, actor: Actor) -> VoucherInfo:
        with self._transaction("record_voucher_print", actor):
            voucher = self.vouchers.record_print(voucher_id, actor.id)
            self._audit(
                actor,
                AuditAction.PRINT,
                "voucher",
                voucher.id,
                branch_id=voucher.branch_id,
                after={"print_count": voucher.print_count},
            )
            info = VoucherInfo.from_model(voucher)
        return info

    # -- daybook --------------------------------------------------------------

    def create_daybook_entry(self, data: dict[str, Any], actor: Actor) -> DaybookOutcome:
        with self._transaction("create_daybook_entry", actor):
            recorded = self.daybook.create_entry(data, actor.id)
            self._audit(
                actor,
                AuditAction.CREATE,
                "daybook_entry",
                recorded.daybook_entry.id,
                branch_id=recorded.daybook_entry.branch_id,
                after=snapshot(recorded.daybook_entry),
            )
            outcome = DaybookOutcome(**_entries_info(recorded))
        return outcome

    def update_daybook_entry(self, entry_id: UUID, data: dict[str, Any], actor: Actor) -> DaybookEntryInfo:
        with self._transaction("update_daybook_entry", actor):
            entry = self.daybook.update_entry(entry_id, data, actor.id)
            self._audit(
                actor,
                AuditAction.UPDATE,
                "daybook_entry",
                entry.id,
                branch_id=entry.branch_id,
                after=snapshot(entry),
            )
            info = DaybookEntryInfo.from_model(entry)
        return info

    def delete_daybook_entry(self, entry_id: UUID, actor: Actor) -> DaybookEntryInfo:
        with self._transaction("delete_daybook_entry", actor):
            entry = self.daybook.delete_entry(entry_id, actor.id)
            self._audit(
                actor,
                AuditAction.DELETE,
                "daybook_entry",
                entry.id,
                branch_id=entry.branch_id,
                before=snapshot(entry),
            )
            info = DaybookEntryInfo.from_model(entry)
        return info

    def list_daybook(self, **filters: Any) -> Page[DaybookEntryInfo]:
        return self._daybook_reader.list_entries(**filters)

    def daybook_summary(self, branch_id: UUID | None = None, start_date=None, end_date=None) -> DaybookSummary:
        return self._daybook_reader.summary(branch_id, start_date, end_date)

    # -- master data ----------------------------------------------------------

    def register_branch(self, code: str, name: str, actor: Actor) -> UUID:
        with self._transaction("register_branch", actor):
            branch_id = self.branches.register_branch(code, name, actor.id).id
        return branch_id

    def register_agent(self, name: str, actor: Actor, agent_type: str = "Main") -> UUID:
        with self._transaction("register_agent", actor):
            agent_id = self.branches.register_agent(name, actor.id, agent_type).id
        return agent_id

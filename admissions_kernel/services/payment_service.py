"""
PaymentService -- records, edits and removes payments on an admission.

Responsibility:
    Validates a payment request, derives its flow figures from the current
    admission state, persists the payment and hands it to the recorder
    for its voucher, daybook and cashbook rows.  Recomputing the admission
    summary is the caller's job (the ledger facade runs it after every
    write so it can be retried independently).

Architecture position:
    Kernel > Services -- imperative shell.

Invariants enforced:
    - Every check (amount, flow, duplicate transaction_ref, admission
      existence) runs before the first write.
    - payer_type and receiver_type are immutable after creation.
    - An amount edit re-derives the payment's figures; the payment may
      re-claim the service charge it had already deducted.

Failure modes:
    - DuplicateTransactionRefError: a live payment already carries the ref.
    - AdmissionNotFoundError: admission missing or soft-deleted.
    - PaymentNotFoundError: update/delete of an unknown or deleted payment.
    - InvalidFlowError / InvalidAmountError / ValidationError: bad request.
"""

from dataclasses import dataclass, replace
from typing import Any
from uuid import UUID

from sqlalchemy.exc import IntegrityError

from admissions_kernel.db.types import to_money
from admissions_kernel.domain.dtos import (
    PaymentInfo,
    PaymentRequest,
    TransactionRefCheck,
)
from admissions_kernel.domain.parsing import clean_ref, parse_amount, parse_date
from admissions_kernel.domain.flow_classifier import (
    FlowDerivation,
    derive_payment_fields,
    recording_plan,
)
from admissions_kernel.domain.values import (
    Attachment,
    PayerType,
    PaymentMode,
    ReceiverType,
    coerce_enum,
)
from admissions_kernel.exceptions import (
    AdmissionNotFoundError,
    DuplicateTransactionRefError,
    PaymentNotFoundError,
    ValidationError,
)
from admissions_kernel.logging_config import get_logger
from admissions_kernel.models import Admission, Payment
from admissions_kernel.selectors import AdmissionSelector, AgentSelector, PaymentSelector
from admissions_kernel.services.base import BaseService
from admissions_kernel.services.daybook_service import DaybookService, RecordedEntries

logger = get_logger("services.payment")

IMMUTABLE_FIELDS = ("payer_type", "receiver_type", "admission_id")


@dataclass
class RecordedPayment:
    payment: Payment
    entries: RecordedEntries


class PaymentService(BaseService[Payment]):
    def __init__(self, session, clock=None, recorder: DaybookService | None = None):
        super().__init__(session, clock)
        self._recorder = recorder or DaybookService(session, self.clock)
        self._payments = PaymentSelector(session)
        self._admissions = AdmissionSelector(session)
        self._agents = AgentSelector(session)

    # -- checks ---------------------------------------------------------------

    def check_transaction_ref(
        self, transaction_ref: str | None, exclude_id: UUID | None = None
    ) -> TransactionRefCheck:
        existing = self._payments.find_by_transaction_ref(transaction_ref, exclude_id)
        if existing is None:
            return TransactionRefCheck(exists=False)
        return TransactionRefCheck(exists=True, payment=PaymentInfo.from_model(existing))

    def _guard_transaction_ref(self, transaction_ref: str | None, exclude_id: UUID | None = None):
        existing = self._payments.find_by_transaction_ref(transaction_ref, exclude_id)
        if existing is not None:
            logger.warning(
                "duplicate_transaction_ref",
                extra={"transaction_ref": transaction_ref, "existing_payment_id": str(existing.id)},
            )
            raise DuplicateTransactionRefError(transaction_ref, existing.id)

    def _require_admission(self, admission_id: UUID) -> Admission:
        admission = self._admissions.get(admission_id)
        if admission is None:
            raise AdmissionNotFoundError(admission_id)
        return admission

    def get(self, payment_id: UUID) -> Payment:
        payment = self._payments.get(payment_id)
        if payment is None:
            raise PaymentNotFoundError(payment_id)
        return payment

    # -- create ---------------------------------------------------------------

    def create(self, request: PaymentRequest, actor_id: UUID) -> RecordedPayment:
        """Persist a payment and its voucher, daybook and cashbook rows."""
        self._guard_transaction_ref(request.transaction_ref)
        admission = self._require_admission(request.admission_id)
        derivation = derive_payment_fields(request, admission.flow_state())
        plan = recording_plan(request, derivation.flow)

        payment = Payment(
            admission_id=admission.id,
            branch_id=admission.branch_id,
            payer_type=request.payer_type.value,
            receiver_type=request.receiver_type.value,
            payment_date=request.payment_date,
            amount=request.amount,
            payment_mode=request.payment_mode.value,
            transaction_ref=request.transaction_ref,
            notes=request.notes,
            is_service_charge_payment=request.is_service_charge_payment,
            is_agent_collection=request.is_agent_collection,
            is_agent_fee_payment=request.is_agent_fee_payment,
            deduct_service_charge=request.deduct_service_charge,
            deduct_agent_fee=request.deduct_agent_fee,
            collecting_agent_id=request.collecting_agent_id,
            agent_id_for_fee_payment=request.agent_id_for_fee_payment,
            created_by_id=actor_id,
        )
        payment.attachment = request.attachment
        self._apply_derivation(payment, derivation)

        savepoint = self.session.begin_nested()
        try:
            self.session.add(payment)
            self.session.flush()
            savepoint.commit()
        except IntegrityError:
            # A concurrent writer won the partial unique index on the ref.
            savepoint.rollback()
            raise DuplicateTransactionRefError(request.transaction_ref) from None

        party_name, party_type = self._counterparty(payment, admission)
        entries = self._recorder.record_payment(
            payment,
            plan,
            actor_id,
            party_name=party_name,
            party_type=party_type,
            description=request.notes,
        )

        logger.info(
            "payment_created",
            extra={
                "payment_id": str(payment.id),
                "admission_id": str(admission.id),
                "flow": payment.flow,
                "amount": str(payment.amount),
                "service_charge_deducted": str(payment.service_charge_deducted),
                "amount_due_to_college": str(payment.amount_due_to_college),
                "voucher_no": entries.voucher.voucher_no,
            },
        )
        return RecordedPayment(payment, entries)

    # -- update / delete ------------------------------------------------------

    def update(self, payment_id: UUID, data: dict[str, Any], actor_id: UUID) -> Payment:
        """
        Edit a payment.

        Editable: amount, payment_date, payment_mode, transaction_ref, notes,
        attachment.  Changing the amount re-derives the stored figures.
        """
        payment = self.get(payment_id)

        for name in IMMUTABLE_FIELDS:
            if name in data and str(data[name]) != str(getattr(payment, name)):
                raise ValidationError(
                    f"{name} cannot be changed after creation",
                    field_errors=[{"field": name, "message": "Immutable"}],
                )

        if "transaction_ref" in data:
            ref = clean_ref(data["transaction_ref"])
            self._guard_transaction_ref(ref, exclude_id=payment.id)
            payment.transaction_ref = ref
        if "payment_date" in data:
            payment.payment_date = parse_date(data["payment_date"], "payment_date")
        if "payment_mode" in data:
            payment.payment_mode = coerce_enum(
                PaymentMode, data["payment_mode"], "payment_mode"
            ).value
        if "notes" in data:
            payment.notes = data["notes"]
        if "attachment" in data:
            payment.attachment = Attachment.from_dict(data["attachment"])

        if "amount" in data:
            amount = parse_amount(data["amount"], "amount")
            if amount != to_money(payment.amount):
                self._rederive(payment, amount)

        payment.updated_by_id = actor_id
        self.session.flush()
        logger.info(
            "payment_updated",
            extra={"payment_id": str(payment.id), "amount": str(payment.amount)},
        )
        return payment

    def _rederive(self, payment: Payment, amount) -> None:
        admission = self._require_admission(payment.admission_id)
        state = admission.flow_state()
        # The payment's own deduction is already inside the current due.
        state = replace(
            state,
            service_charge_due=state.service_charge_due + to_money(payment.service_charge_deducted),
        )
        request = PaymentRequest.from_payment(payment, amount=amount)
        payment.amount = amount
        self._apply_derivation(payment, derive_payment_fields(request, state))

    def delete(self, payment_id: UUID, actor_id: UUID) -> Payment:
        """Soft-delete the payment; its voucher and ledger rows stay."""
        payment = self.get(payment_id)
        payment.mark_deleted(actor_id, self.clock.now())
        self.session.flush()
        logger.info(
            "payment_deleted",
            extra={"payment_id": str(payment.id), "admission_id": str(payment.admission_id)},
        )
        return payment

    # -- internals ------------------------------------------------------------

    @staticmethod
    def _apply_derivation(payment: Payment, derivation: FlowDerivation) -> None:
        payment.flow = derivation.flow.value
        payment.service_charge_deducted = derivation.service_charge_deducted
        payment.amount_due_to_college = derivation.amount_due_to_college
        payment.agent_fee_deducted = derivation.agent_fee_deducted
        payment.amount_transferred_to_consultancy = derivation.amount_transferred_to_consultancy
        payment.paid_to_agent_id = derivation.paid_to_agent_id

    def _counterparty(self, payment: Payment, admission: Admission) -> tuple[str | None, str]:
        """The party named on the voucher: the payer on receipts, else the receiver."""
        if payment.payer_type == PayerType.CONSULTANCY.value:
            party = payment.receiver_type
        else:
            party = payment.payer_type

        if party == PayerType.STUDENT.value:
            return admission.student_name, party
        if party == ReceiverType.AGENT.value:
            agent_id = payment.paid_to_agent_id or payment.collecting_agent_id
            return self._agents.name_of(agent_id), party
        return None, party

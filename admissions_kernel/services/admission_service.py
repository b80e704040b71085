"""
AdmissionService -- create, edit and soft-delete admissions.

Responsibility:
    Mints the admission number, writes the top-level fields and the
    writable parts of the nested groups (fees, agreed service charge,
    agent slots, legacy agent), and re-applies the fee derivation on every
    write.  The payment-driven parts of the summary are left to the
    aggregator.

Architecture position:
    Kernel > Services -- imperative shell.

Invariants enforced:
    - admission_no is assigned once and never changes.
    - Group updates are deep merges: keys absent from the request keep their
      stored value.
    - Staff actors may not set or change the agreed service charge.
"""

from typing import Any
from uuid import UUID

from admissions_kernel.db.types import to_money
from admissions_kernel.domain.parsing import parse_amount, parse_date, parse_flag, parse_uuid
from admissions_kernel.domain.values import Actor, AdmissionStatus, AgentType, coerce_enum
from admissions_kernel.exceptions import (
    AdmissionNotFoundError,
    AgentNotFoundError,
    BranchNotFoundError,
    ServiceChargeEditForbiddenError,
    ValidationError,
)
from admissions_kernel.logging_config import get_logger
from admissions_kernel.models import Admission
from admissions_kernel.models.admission import WRITABLE_GROUP_FIELDS
from admissions_kernel.selectors import AdmissionSelector, AgentSelector, BranchSelector
from admissions_kernel.services.base import BaseService
from admissions_kernel.services.numbering_service import NumberingService

logger = get_logger("services.admission")

TEXT_FIELDS = ("academic_year", "student_phone", "student_email", "remarks")
ID_FIELDS = ("college_id", "course_id")


def _group_values(data: dict[str, Any], group: str) -> dict[str, Any] | None:
    """Pick ``data["agents"]["main"]`` for ``agents.main``, ``data["fees"]`` for ``fees``."""
    node: Any = data
    for part in group.split("."):
        if not isinstance(node, dict) or part not in node:
            return None
        node = node[part]
    return node if isinstance(node, dict) else None


class AdmissionService(BaseService[Admission]):
    def __init__(self, session, clock=None, numbering: NumberingService | None = None):
        super().__init__(session, clock)
        self._numbering = numbering or NumberingService(session, self.clock)
        self._admissions = AdmissionSelector(session)
        self._branches = BranchSelector(session)
        self._agents = AgentSelector(session)

    def get(self, admission_id: UUID) -> Admission:
        admission = self._admissions.get(admission_id)
        if admission is None:
            raise AdmissionNotFoundError(admission_id)
        return admission

    def create(self, data: dict[str, Any], actor: Actor) -> Admission:
        branch_id = parse_uuid(data.get("branch_id"), "branch_id", required=True)
        if self._branches.get(branch_id) is None:
            raise BranchNotFoundError(branch_id)
        student_name = (data.get("student_name") or "").strip()
        if not student_name:
            raise ValidationError(
                "student_name is required",
                field_errors=[{"field": "student_name", "message": "Required"}],
            )
        if actor.is_staff and _group_values(data, "service_charge"):
            raise ServiceChargeEditForbiddenError(actor.role.value)

        admission = Admission(
            admission_no=self._numbering.next_admission_number(),
            branch_id=branch_id,
            student_name=student_name,
            admission_date=parse_date(
                data.get("admission_date"), "admission_date", self.clock.today()
            ),
            admission_status=coerce_enum(
                AdmissionStatus,
                data.get("admission_status", AdmissionStatus.PENDING.value),
                "admission_status",
            ).value,
            created_by_id=actor.id,
        )
        self._apply_fields(admission, data)
        self._apply_groups(admission, data)
        admission.apply_derivation()

        self.session.add(admission)
        self.session.flush()
        logger.info(
            "admission_created",
            extra={
                "admission_id": str(admission.id),
                "admission_no": admission.admission_no,
                "total_fee": str(admission.total_fee),
            },
        )
        return admission

    def update(self, admission_id: UUID, data: dict[str, Any], actor: Actor) -> Admission:
        """Deep-merge ``data`` into the admission and re-derive."""
        admission = self.get(admission_id)

        if "admission_no" in data and data["admission_no"] != admission.admission_no:
            raise ValidationError(
                "admission_no cannot be changed",
                field_errors=[{"field": "admission_no", "message": "Immutable"}],
            )
        if actor.is_staff:
            requested = _group_values(data, "service_charge") or {}
            if "agreed" in requested and to_money(requested["agreed"]) != to_money(
                admission.service_charge_agreed
            ):
                raise ServiceChargeEditForbiddenError(actor.role.value)

        if "student_name" in data:
            name = (data["student_name"] or "").strip()
            if not name:
                raise ValidationError(
                    "student_name is required",
                    field_errors=[{"field": "student_name", "message": "Required"}],
                )
            admission.student_name = name
        if "admission_date" in data:
            admission.admission_date = parse_date(data["admission_date"], "admission_date")
        if "admission_status" in data:
            admission.admission_status = coerce_enum(
                AdmissionStatus, data["admission_status"], "admission_status"
            ).value

        self._apply_fields(admission, data)
        self._apply_groups(admission, data)
        admission.apply_derivation()
        admission.updated_by_id = actor.id
        self.session.flush()

        logger.info(
            "admission_updated",
            extra={"admission_id": str(admission.id), "admission_no": admission.admission_no},
        )
        return admission

    def delete(self, admission_id: UUID, actor: Actor) -> Admission:
        admission = self.get(admission_id)
        admission.mark_deleted(actor.id, self.clock.now())
        self.session.flush()
        logger.info(
            "admission_deleted",
            extra={"admission_id": str(admission.id), "admission_no": admission.admission_no},
        )
        return admission

    # -- internals ------------------------------------------------------------

    @staticmethod
    def _apply_fields(admission: Admission, data: dict[str, Any]) -> None:
        for name in TEXT_FIELDS:
            if name in data:
                setattr(admission, name, data[name])
        for name in ID_FIELDS:
            if name in data:
                setattr(admission, name, parse_uuid(data[name], name))

    def _apply_groups(self, admission: Admission, data: dict[str, Any]) -> None:
        for group, fields in WRITABLE_GROUP_FIELDS.items():
            values = _group_values(data, group)
            if not values:
                continue
            for key, attr in fields.items():
                if key not in values:
                    continue
                setattr(admission, attr, self._coerce(f"{group}.{key}", key, values[key]))

    def _coerce(self, path: str, key: str, value: Any) -> Any:
        if key == "hostel_included":
            return parse_flag(value, path)
        if key == "agent_type":
            return coerce_enum(AgentType, value, path).value if value else None
        if key == "agent_id":
            agent_id = parse_uuid(value, path)
            if agent_id is not None and self._agents.get(agent_id) is None:
                raise AgentNotFoundError(agent_id)
            return agent_id
        return parse_amount(value, path, positive=False)

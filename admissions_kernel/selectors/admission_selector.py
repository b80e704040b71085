"""
Module: admissions_kernel.selectors.admission_selector
Responsibility: Read access to admissions and the branch / agent master data
    the ledger consumes.
Architecture position: Kernel > Selectors.
"""

from uuid import UUID

from sqlalchemy import func, select

from admissions_kernel.domain.dtos import BranchRef
from admissions_kernel.models import Admission, Agent, Branch
from admissions_kernel.selectors.base import BaseSelector


class AdmissionSelector(BaseSelector[Admission]):
    model = Admission

    def get_by_number(self, admission_no: str) -> Admission | None:
        stmt = self._live(select(Admission).where(Admission.admission_no == admission_no))
        return self.session.execute(stmt).scalar_one_or_none()

    def count_numbers_with_prefix(self, prefix: str) -> int:
        """Admission numbers already issued under ``prefix``, deleted rows included."""
        return self.session.execute(
            select(func.count())
            .select_from(Admission)
            .where(Admission.admission_no.startswith(prefix, autoescape=True))
        ).scalar_one()

    def number_exists(self, admission_no: str) -> bool:
        return (
            self.session.execute(
                select(Admission.id).where(Admission.admission_no == admission_no).limit(1)
            ).first()
            is not None
        )


class BranchSelector(BaseSelector[Branch]):
    model = Branch

    def get_branch(self, branch_id: UUID) -> BranchRef | None:
        branch = self.get(branch_id)
        if branch is None:
            return None
        return BranchRef(id=branch.id, code=branch.code, name=branch.name)

    def get_by_code(self, code: str) -> Branch | None:
        stmt = self._live(select(Branch).where(Branch.code == code.upper()))
        return self.session.execute(stmt).scalar_one_or_none()

    def list_branch_ids(self) -> list[UUID]:
        stmt = self._live(select(Branch.id).order_by(Branch.code))
        return list(self.session.execute(stmt).scalars())


class AgentSelector(BaseSelector[Agent]):
    model = Agent

    def name_of(self, agent_id: UUID | None) -> str | None:
        if agent_id is None:
            return None
        agent = self.get(agent_id, include_deleted=True)
        return agent.name if agent else None

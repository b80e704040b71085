"""
BranchService -- the minimal branch and agent records the ledger depends on.

Branch and agent maintenance belongs to the master-data service; this is
only what is needed to seed them (tests, data imports, a fresh install).
"""

import re
from uuid import UUID

from admissions_kernel.domain.values import AgentType, coerce_enum
from admissions_kernel.exceptions import DuplicateBranchCodeError, ValidationError
from admissions_kernel.logging_config import get_logger
from admissions_kernel.models import Agent, Branch
from admissions_kernel.selectors import BranchSelector
from admissions_kernel.services.base import BaseService

logger = get_logger("services.branch")

_BRANCH_CODE = re.compile(r"^[A-Z0-9]{1,5}$")


class BranchService(BaseService[Branch]):
    def register_branch(self, code: str, name: str, actor_id: UUID) -> Branch:
        code = (code or "").strip().upper()
        if not _BRANCH_CODE.match(code):
            raise ValidationError(
                f"Invalid branch code: {code!r}",
                field_errors=[{"field": "code", "message": "1-5 letters or digits"}],
            )
        if BranchSelector(self.session).get_by_code(code) is not None:
            raise DuplicateBranchCodeError(code)

        branch = Branch(code=code, name=name, is_active=True, created_by_id=actor_id)
        self.session.add(branch)
        self.session.flush()
        logger.info("branch_registered", extra={"branch_id": str(branch.id), "branch_code": code})
        return branch

    def register_agent(
        self,
        name: str,
        actor_id: UUID,
        agent_type: AgentType | str = AgentType.MAIN,
        phone: str | None = None,
    ) -> Agent:
        agent = Agent(
            name=name,
            agent_type=coerce_enum(AgentType, agent_type, "agent_type").value,
            phone=phone,
            is_active=True,
            created_by_id=actor_id,
        )
        self.session.add(agent)
        self.session.flush()
        logger.info("agent_registered", extra={"agent_id": str(agent.id), "agent_type": agent.agent_type})
        return agent

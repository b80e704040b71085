"""
Module: admissions_kernel.models.branch
Responsibility: Minimal branch and agent master data.  Branches are
    maintained by an external master-data service; the ledger needs only the
    branch code (for voucher numbers) and the agent's name and type (for
    voucher party names and slot attribution).
Architecture position: Kernel > Models.  May import from db/ and domain/values.
"""

from sqlalchemy import Boolean, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from admissions_kernel.db.base import SoftDeleteMixin, TrackedBase
from admissions_kernel.domain.values import AgentType


class Branch(SoftDeleteMixin, TrackedBase):
    """
    Office of the consultancy.

    Guarantees:
        - code is unique, upper-case and at most five characters; it is the
          prefix of every voucher number minted for the branch.
    """

    __tablename__ = "branches"

    __table_args__ = (UniqueConstraint("code", name="uq_branch_code"),)

    code: Mapped[str] = mapped_column(String(5), nullable=False)

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    def __repr__(self) -> str:
        return f"<Branch {self.code}: {self.name}>"


class Agent(SoftDeleteMixin, TrackedBase):
    """Referral agent that brings students to the consultancy."""

    __tablename__ = "agents"

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    agent_type: Mapped[AgentType] = mapped_column(
        String(20),
        nullable=False,
        default=AgentType.MAIN.value,
    )

    phone: Mapped[str | None] = mapped_column(String(30), nullable=True)

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    def __repr__(self) -> str:
        return f"<Agent {self.name} ({self.agent_type})>"

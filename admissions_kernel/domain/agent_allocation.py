"""
Agent allocation -- one normalized view over the two agent shapes.

An admission can carry agents in two ways: the three named slots (main,
college, sub) and the older single ``agent`` record.  Everything downstream
(fee derivation, the aggregator, the details view) reads agents through
``normalize_agent_allocations`` so that the precedence rule lives in one
place: the slots win whenever any of them is in use, otherwise the legacy
record is honored.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID

from admissions_kernel.db.types import ZERO
from admissions_kernel.domain.values import AgentType

SLOT_ORDER: tuple[AgentType, ...] = (AgentType.MAIN, AgentType.COLLEGE, AgentType.SUB)


@dataclass(frozen=True, slots=True)
class AgentAllocation:
    """A single agent's share of an admission."""

    role: AgentType
    agent_id: UUID | None
    agent_fee: Decimal = ZERO
    fee_paid: Decimal = ZERO
    fee_due: Decimal = ZERO
    legacy: bool = False

    @property
    def in_use(self) -> bool:
        return self.agent_id is not None or self.agent_fee > ZERO


@dataclass(frozen=True, slots=True)
class LegacyAgent:
    agent_type: AgentType | None
    agent_id: UUID | None
    agent_fee: Decimal = ZERO

    @property
    def in_use(self) -> bool:
        return self.agent_id is not None or self.agent_fee > ZERO


def slots_in_use(slots: list[AgentAllocation]) -> bool:
    return any(slot.in_use for slot in slots)


def normalize_agent_allocations(
    slots: list[AgentAllocation],
    legacy: LegacyAgent | None,
) -> list[AgentAllocation]:
    """
    Return the allocations that govern the admission.

    All three slots are returned (in main, college, sub order) when any slot
    is in use.  Otherwise the legacy agent becomes a single allocation, and
    an admission with neither has no allocations.
    """
    if slots_in_use(slots):
        by_role = {slot.role: slot for slot in slots}
        return [by_role.get(role, AgentAllocation(role=role, agent_id=None)) for role in SLOT_ORDER]
    if legacy is not None and legacy.in_use:
        return [
            AgentAllocation(
                role=legacy.agent_type or AgentType.MAIN,
                agent_id=legacy.agent_id,
                agent_fee=legacy.agent_fee,
                legacy=True,
            )
        ]
    return []


def effective_agent_fee(allocations: list[AgentAllocation]) -> Decimal:
    return sum((a.agent_fee for a in allocations), ZERO)

"""Unit tests for agent allocation normalization (slots vs. the legacy agent)."""

from decimal import Decimal
from uuid import uuid4

from admissions_kernel.domain.agent_allocation import (
    SLOT_ORDER,
    AgentAllocation,
    LegacyAgent,
    effective_agent_fee,
    normalize_agent_allocations,
    slots_in_use,
)
from admissions_kernel.domain.values import AgentType


def _empty_slots():
    return [AgentAllocation(role=role, agent_id=None) for role in SLOT_ORDER]


class TestNormalize:
    def test_nothing_configured(self):
        assert normalize_agent_allocations(_empty_slots(), None) == []
        assert normalize_agent_allocations([], LegacyAgent(None, None)) == []

    def test_slots_win_over_legacy(self):
        sub = uuid4()
        slots = _empty_slots()
        slots[2] = AgentAllocation(AgentType.SUB, sub, Decimal("8000"))
        legacy = LegacyAgent(AgentType.MAIN, uuid4(), Decimal("20000"))

        result = normalize_agent_allocations(slots, legacy)

        assert [a.role for a in result] == [AgentType.MAIN, AgentType.COLLEGE, AgentType.SUB]
        assert not any(a.legacy for a in result)
        assert effective_agent_fee(result) == Decimal("8000")

    def test_missing_slots_filled_in_order(self):
        college = uuid4()
        result = normalize_agent_allocations(
            [AgentAllocation(AgentType.COLLEGE, college, Decimal("5000"))], None
        )
        assert len(result) == 3
        assert result[0].agent_id is None
        assert result[1].agent_id == college

    def test_fee_without_agent_counts_as_in_use(self):
        slots = [AgentAllocation(AgentType.MAIN, None, Decimal("1000"))]
        assert slots_in_use(slots)

    def test_legacy_used_when_slots_empty(self):
        agent = uuid4()
        result = normalize_agent_allocations(
            _empty_slots(), LegacyAgent(AgentType.SUB, agent, Decimal("20000"))
        )
        assert len(result) == 1
        assert result[0].legacy
        assert result[0].role == AgentType.SUB
        assert result[0].agent_id == agent

    def test_legacy_without_type_is_main(self):
        result = normalize_agent_allocations([], LegacyAgent(None, uuid4()))
        assert result[0].role == AgentType.MAIN

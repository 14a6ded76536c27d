"""
Tests para la máquina de estados de pistas.
"""

import asyncio
from unittest.mock import AsyncMock

import pytest

from mathcoach.agents.coach.hint_tiers import HintTierStateMachine
from mathcoach.agents.coach.session_manager import SessionManager
from mathcoach.core.exceptions import SessionEndedError
from mathcoach.core.types import DecisionKind, HintState, PolicyDecision
from mathcoach.guardrails.templates import NO_HINT_AVAILABLE


@pytest.fixture
def manager() -> SessionManager:
    return SessionManager()


@pytest.fixture
def machine(manager, policy, metrics) -> HintTierStateMachine:
    return HintTierStateMachine(manager, policy, metrics)


def _producer() -> AsyncMock:
    return AsyncMock(side_effect=lambda session, tier: PolicyDecision.hint(tier, f"hint {tier}"))


class TestTransition:
    """Tests de la transición pura."""

    @pytest.mark.parametrize("granted,tier", [(0, 1), (1, 2), (2, 3)])
    def test_grants_next_tier(self, granted, tier):
        new_state, granted_tier = HintTierStateMachine.transition(HintState(hints_granted=granted))

        assert granted_tier == tier
        assert new_state.hints_granted == granted + 1

    def test_exhausted(self):
        assert HintTierStateMachine.transition(HintState(hints_granted=3)) is None


class TestRequestHint:
    """Tests de concesión de pistas."""

    @pytest.mark.asyncio
    async def test_tiers_in_order_then_rejected(self, machine, manager, metrics):
        session = await manager.create_session("If 3x + 7 = 22, what is x?")
        produce = _producer()

        decisions = [await machine.request_hint(session.session_id, produce) for _ in range(4)]

        assert [d.hint_tier for d in decisions[:3]] == [1, 2, 3]
        assert [d.text for d in decisions[:3]] == ["hint 1", "hint 2", "hint 3"]
        assert decisions[3].kind == DecisionKind.HINT_REJECTED
        assert decisions[3].text == NO_HINT_AVAILABLE
        assert produce.await_count == 3
        assert session.hint_state.hints_granted == 3
        assert metrics.collector.get_counter("hints_given", {"tier": "3"}) == 1
        assert metrics.collector.get_counter("hints_rejected") == 1

    @pytest.mark.asyncio
    async def test_rejection_recorded_in_transcript(self, machine, manager):
        session = await manager.create_session("2 + 2")
        session.hint_state = HintState(hints_granted=3)

        await machine.request_hint(session.session_id, _producer())

        last = session.transcript.turns[-1]
        assert last.content == NO_HINT_AVAILABLE
        assert last.hint_tier is None
        assert last.decision_kind == DecisionKind.HINT_REJECTED

    @pytest.mark.asyncio
    async def test_hint_turn_recorded(self, machine, manager):
        session = await manager.create_session("2 + 2")

        await machine.request_hint(session.session_id, _producer())

        assert [t.hint_tier for t in session.transcript.hint_turns()] == [1]

    @pytest.mark.asyncio
    async def test_concurrent_requests_serialize(self, machine, manager):
        """Cinco peticiones simultáneas conceden exactamente los niveles 1, 2 y 3."""
        session = await manager.create_session("If 3x + 7 = 22, what is x?")

        async def slow_produce(session, tier):
            await asyncio.sleep(0.01)
            return PolicyDecision.hint(tier, f"hint {tier}")

        decisions = await asyncio.gather(
            *(machine.request_hint(session.session_id, slow_produce) for _ in range(5))
        )

        granted = sorted(d.hint_tier for d in decisions if d.kind == DecisionKind.HINT)
        rejected = [d for d in decisions if d.kind == DecisionKind.HINT_REJECTED]

        assert granted == [1, 2, 3]
        assert len(rejected) == 2
        assert session.hint_state.hints_granted == 3
        assert len(session.transcript.hint_turns()) == 3

    @pytest.mark.asyncio
    async def test_session_ended_during_generation(self, machine, manager):
        session = await manager.create_session("2 + 2")

        async def produce_then_end(session, tier):
            await manager.end_session(session.session_id)
            return PolicyDecision.hint(tier, "late hint")

        with pytest.raises(SessionEndedError):
            await machine.request_hint(session.session_id, produce_then_end)

        assert session.hint_state.hints_granted == 0
        assert session.transcript.hint_turns() == []

"""Tests for the conversation stage graph."""

import pytest

from outbound_engine.agents.state_machine import ConversationStateMachine
from outbound_engine.core.errors import InvalidStageTransition
from outbound_engine.models import ConversationStage, ConversationState

Stage = ConversationStage


@pytest.fixture
def machine():
    return ConversationStateMachine()


class TestTransitions:
    """Forward edges, objection detours and the absorbing closing stage."""

    def test_forward_path(self, machine):
        for stage in (Stage.DISCOVERY, Stage.QUALIFICATION, Stage.BOOKING, Stage.CLOSING):
            machine.transition(stage)

        assert machine.stage == Stage.CLOSING
        assert machine.is_closed

    def test_skipping_a_stage_is_rejected(self, machine):
        with pytest.raises(InvalidStageTransition) as exc_info:
            machine.transition(Stage.QUALIFICATION)

        assert exc_info.value.current == "opening"
        assert exc_info.value.target == "qualification"
        assert machine.stage == Stage.OPENING

    def test_cannot_move_backwards(self, machine):
        machine.transition(Stage.DISCOVERY)
        assert not machine.can_transition(Stage.OPENING)

    def test_objection_returns_to_interrupted_stage(self, machine):
        machine.transition(Stage.DISCOVERY)
        machine.transition(Stage.OBJECTION)
        assert machine.interrupted == Stage.DISCOVERY

        machine.resume()

        assert machine.stage == Stage.DISCOVERY
        assert machine.interrupted is None

    def test_objection_may_return_to_earlier_visited_stage(self, machine):
        machine.transition(Stage.DISCOVERY)
        machine.transition(Stage.OBJECTION)

        assert machine.can_transition(Stage.OPENING)
        assert not machine.can_transition(Stage.BOOKING)

    def test_objection_cannot_nest(self, machine):
        machine.transition(Stage.OBJECTION)
        with pytest.raises(InvalidStageTransition):
            machine.transition(Stage.OBJECTION)

    def test_closing_is_absorbing(self, machine):
        machine.advance_to(Stage.CLOSING)

        for stage in Stage:
            assert not machine.can_transition(stage)
        with pytest.raises(InvalidStageTransition):
            machine.transition(Stage.OBJECTION)


class TestHelpers:
    def test_advance_walks_every_edge(self, machine):
        machine.advance_to(Stage.BOOKING)

        assert machine.stage == Stage.BOOKING
        assert machine.has_reached(Stage.DISCOVERY)
        assert machine.has_reached(Stage.QUALIFICATION)

    def test_advance_never_moves_backwards(self, machine):
        machine.advance_to(Stage.BOOKING)
        machine.advance_to(Stage.DISCOVERY)
        assert machine.stage == Stage.BOOKING

    def test_advance_leaves_objection_first(self, machine):
        machine.transition(Stage.DISCOVERY)
        machine.raise_objection("too expensive")

        machine.advance_to(Stage.QUALIFICATION)

        assert machine.stage == Stage.QUALIFICATION

    def test_raise_objection_records_and_moves(self, machine):
        machine.raise_objection("not interested")
        machine.raise_objection("don't have time")

        assert machine.stage == Stage.OBJECTION
        assert machine.state.objections_raised == ["not interested", "don't have time"]

    def test_raise_objection_after_closing_only_records(self, machine):
        machine.advance_to(Stage.CLOSING)
        machine.raise_objection("not interested")

        assert machine.stage == Stage.CLOSING
        assert machine.state.objections_raised == ["not interested"]

    def test_resume_outside_objection_is_noop(self, machine):
        machine.resume()
        assert machine.stage == Stage.OPENING

    def test_turns_and_sentiment(self):
        machine = ConversationStateMachine(ConversationState(turn_count=2))
        machine.record_turn()
        machine.set_sentiment(1.4)

        assert machine.state.turn_count == 3
        assert machine.state.sentiment == 1.0

        machine.set_sentiment(-0.2)
        assert machine.state.sentiment == 0.0

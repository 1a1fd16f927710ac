"""Conversation stage graph for a single outbound call."""

import logging
from typing import List, Optional

from outbound_engine.core.errors import InvalidStageTransition
from outbound_engine.models import ConversationStage, ConversationState

logger = logging.getLogger(__name__)

FORWARD_STAGES: List[ConversationStage] = [
    ConversationStage.OPENING,
    ConversationStage.DISCOVERY,
    ConversationStage.QUALIFICATION,
    ConversationStage.BOOKING,
    ConversationStage.CLOSING,
]

NEXT_STAGE = {
    current: following
    for current, following in zip(FORWARD_STAGES, FORWARD_STAGES[1:])
}


class ConversationStateMachine:
    """
    Enforces the stage graph of a call.

    opening -> discovery -> qualification -> booking -> closing, with
    objection reachable from any non-closing stage. An objection returns
    to the stage it interrupted, or to any stage visited before it.
    Closing is absorbing.
    """

    def __init__(self, state: Optional[ConversationState] = None):
        self.state = state or ConversationState()
        self.history: List[ConversationStage] = [self.state.stage]
        self.interrupted: Optional[ConversationStage] = None

    @property
    def stage(self) -> ConversationStage:
        return self.state.stage

    @property
    def is_closed(self) -> bool:
        return self.state.stage == ConversationStage.CLOSING

    def has_reached(self, stage: ConversationStage) -> bool:
        """Whether the call has ever been in the given stage."""
        return stage in self.history

    def can_transition(self, target: ConversationStage) -> bool:
        current = self.state.stage
        if current == ConversationStage.CLOSING:
            return False
        if target == ConversationStage.OBJECTION:
            return current != ConversationStage.OBJECTION
        if current == ConversationStage.OBJECTION:
            return target in self.history
        return NEXT_STAGE.get(current) == target

    def transition(self, target: ConversationStage) -> None:
        current = self.state.stage
        if not self.can_transition(target):
            raise InvalidStageTransition(current.value, target.value)

        if target == ConversationStage.OBJECTION:
            self.interrupted = current
        elif current == ConversationStage.OBJECTION:
            self.interrupted = None

        self.state.stage = target
        self.history.append(target)
        logger.debug(f"Conversation stage {current.value} -> {target.value}")

    def raise_objection(self, objection: str) -> None:
        """Record an objection and move into the objection stage when possible."""
        self.state.objections_raised.append(objection)
        if self.state.stage not in (ConversationStage.OBJECTION, ConversationStage.CLOSING):
            self.transition(ConversationStage.OBJECTION)

    def resume(self, target: Optional[ConversationStage] = None) -> None:
        """Leave the objection stage, by default back to the interrupted stage."""
        if self.state.stage != ConversationStage.OBJECTION:
            return
        self.transition(target or self.interrupted or ConversationStage.OPENING)

    def advance_to(self, target: ConversationStage) -> None:
        """
        Walk forward one edge at a time until the target stage is reached.

        Never moves backwards: if the call is already past the target,
        nothing changes.
        """
        self.resume()
        order = FORWARD_STAGES.index
        while order(self.state.stage) < order(target):
            self.transition(NEXT_STAGE[self.state.stage])

    def record_turn(self) -> None:
        self.state.turn_count += 1

    def set_sentiment(self, sentiment: float) -> None:
        self.state.sentiment = max(0.0, min(1.0, sentiment))

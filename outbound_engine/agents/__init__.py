"""Call agent - conversation state, tools and outcome classification."""

from outbound_engine.agents.state_machine import ConversationStateMachine, FORWARD_STAGES
from outbound_engine.agents.tools import (
    BookMeetingParams,
    CheckAvailabilityParams,
    EndCallParams,
    QualificationParams,
    function_definitions,
)
from outbound_engine.agents.call_agent import (
    CallAgent,
    CallClassification,
    CallSession,
    NEXT_ACTIONS,
)

__all__ = [
    # State machine
    "ConversationStateMachine",
    "FORWARD_STAGES",
    # Tools
    "BookMeetingParams",
    "CheckAvailabilityParams",
    "EndCallParams",
    "QualificationParams",
    "function_definitions",
    # Agent
    "CallAgent",
    "CallClassification",
    "CallSession",
    "NEXT_ACTIONS",
]

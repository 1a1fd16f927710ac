"""Call Agent - prompt construction, tool dispatch and outcome classification."""

import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple
from pydantic import BaseModel, ValidationError

from outbound_engine.agents.state_machine import ConversationStateMachine
from outbound_engine.agents.tools import (
    PARAMETER_MODELS,
    BookMeetingParams,
    CheckAvailabilityParams,
    EndCallParams,
    QualificationParams,
    function_definitions,
)
from outbound_engine.core.config import get_settings
from outbound_engine.core.errors import BookingNotPermitted, ToolError, UnknownTool
from outbound_engine.integrations.base import CalendarCollaborator, NO_CONTEXT_AVAILABLE
from outbound_engine.models import (
    CallContext,
    CallOutcome,
    CallStatus,
    ConversationStage,
    ConversationState,
    EndCallReason,
    MeetingDetails,
    QualificationData,
    ToolInvocation,
    ToolName,
)

logger = logging.getLogger(__name__)

NEXT_ACTIONS = {
    CallOutcome.MEETING_BOOKED: "Send meeting confirmation and prep materials",
    CallOutcome.FOLLOW_UP: "Send follow-up email with relevant case studies",
    CallOutcome.CALLBACK: "Schedule callback for discussed timeframe",
    CallOutcome.NOT_INTERESTED: "Mark as unqualified, no further outreach",
}

BANT_POINTS_PER_ITEM = 25
DEFAULT_MEETING_MINUTES = 30


class CallClassification(BaseModel):
    """Everything in a CallResult except the call id and duration."""
    status: CallStatus = CallStatus.COMPLETED
    transcript: str
    sentiment_score: float
    outcome: CallOutcome
    meeting_booked: bool
    meeting_details: Optional[MeetingDetails] = None
    next_action: str


class CallSession:
    """
    Job-local state of one call: context, stage machine and tool log.

    Owned by the worker running the call; discarded when the call ends.
    """

    def __init__(self, agent: "CallAgent", context: CallContext):
        self.agent = agent
        self.context = context
        self.machine = ConversationStateMachine(context.conversation_state.model_copy(deep=True))
        self.invocations: List[ToolInvocation] = []
        self.call_id: Optional[str] = None
        self.ended = False
        self.end_reason: Optional[EndCallReason] = None
        self.meeting_link: Optional[str] = None
        self.fatal_error: Optional[Exception] = None
        # objections already raised from the last transcript line seen
        self.tail_objections: List[str] = []

    @property
    def state(self) -> ConversationState:
        return self.machine.state

    async def handle_tool_call(
        self,
        name: str,
        parameters: Optional[Dict[str, Any]] = None,
        tool_call_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        return await self.agent.handle_tool_call(self, name, parameters, tool_call_id)


ToolHandler = Callable[[CallSession, Any], Awaitable[Dict[str, Any]]]


class CallAgent:
    """
    The reasoning side of an outbound call.

    Builds the stage-aware instructions sent to the voice platform,
    executes the fixed set of tools the model may call, and classifies
    the finished conversation.
    """

    def __init__(self, calendar: CalendarCollaborator, settings=None):
        self._calendar = calendar
        self._settings = settings
        self._handlers: Dict[ToolName, ToolHandler] = {
            ToolName.CHECK_CALENDAR_AVAILABILITY: self._check_calendar_availability,
            ToolName.BOOK_MEETING: self._book_meeting,
            ToolName.END_CALL: self._end_call,
            ToolName.UPDATE_QUALIFICATION_STATUS: self._update_qualification_status,
        }

    @property
    def settings(self):
        """Lazy load settings."""
        if self._settings is None:
            self._settings = get_settings()
        return self._settings

    def open_session(self, context: CallContext) -> CallSession:
        return CallSession(self, context)

    # ===========================================
    # Instructions
    # ===========================================

    def build_instructions(
        self,
        context: CallContext,
        historical_context: Optional[str] = None
    ) -> str:
        """
        Build the system prompt for a call.

        Args:
            context: Call context with research, account manager and state
            historical_context: Summary of past interactions, if any

        Returns:
            Deterministic instruction text for the voice model
        """
        research = context.prospect_info
        prospect = research.prospect
        manager = context.account_manager
        state = context.conversation_state
        agent_name = self.settings.AGENT_NAME
        company = self.settings.COMPANY_NAME

        return f"""You are {agent_name}, an AI Sales Development Representative making an outbound call to book meetings for senior account managers.

PERSONALITY & TONE:
- Professional yet warm and conversational (not robotic)
- Confident but not pushy
- Listen actively and adapt to the prospect's energy and tone
- Mirror the prospect's communication style (formal vs casual)

YOUR OBJECTIVE:
{context.call_objective.capitalize()}: a qualified meeting between {prospect.name} and {manager.name}, our {manager.specialty or 'account manager'}.

PROSPECT CONTEXT:
Name: {prospect.name}
Role: {prospect.role or 'Unknown'}
Company: {prospect.company}
Industry: {research.crm_data.industry}
Approach: {research.approach_strategy.value}

HISTORICAL CONTEXT:
{historical_context or NO_CONTEXT_AVAILABLE}

KEY INSIGHTS:
{self._format_talking_points(research.talking_points)}

LIKELY PAIN POINTS:
{self._format_pain_points(research.pain_points)}

CONVERSATION FRAMEWORK:

1. OPENING (First 15 seconds - CRITICAL)
   - Confirm identity: "Hi, is this {prospect.name}?"
   - Brief introduction: "This is {agent_name} with {company}"
   - Permission-based opener: "Did I catch you at a good time for a quick call?"
   - If no: Offer to call back at a better time

2. VALUE PROPOSITION (15-30 seconds)
   - Lead with relevance: use one key insight from the list above
   - Do not sound like a typical sales call

3. DISCOVERY (2-3 minutes)
   - Ask open-ended questions about their challenges
   - Listen for confirmation of pain points
   - Build rapport through active listening

4. QUALIFICATION (BANT - Must complete before booking)
   Budget: "What's your typical budget range for a solution like this?"
   Authority: "Who else would be involved in evaluating this?"
   Need: Confirmed through discovery questions
   Timeline: "When are you looking to have something in place?"
   Record progress with update_qualification_status.

5. MEETING BOOKING (Only if qualified)
   - Transition: "This sounds like exactly what {manager.name} specializes in..."
   - Offer options on Tuesday or Thursday where possible
   - Confirm details: email, timezone, topics to cover

OBJECTION HANDLING:
{self._format_objection_strategies(research.objection_strategies)}

CRITICAL RULES:
- Never exceed 3 sentences in a single response unless explaining something complex
- If the prospect says "not interested" or equivalent twice, gracefully end the call
- Never make promises about product capabilities you're unsure of
- Always confirm email address and timing before finalizing a meeting
- If the prospect is clearly busy, offer a callback instead of pushing
- Use check_calendar_availability before suggesting specific times
- Use book_meeting only after BANT qualification is complete
- Always finish with end_call and the matching reason

CURRENT CONVERSATION STATE:
Stage: {state.stage.value}
Turn: {state.turn_count}
Sentiment: {state.sentiment:.2f}
Objections raised: {', '.join(state.objections_raised) if state.objections_raised else 'None'}

Your responses should be natural, conversational, and human-like. You're having a conversation, not reading a script."""

    def first_message(self, context: CallContext) -> str:
        return f"Hi, is this {context.prospect_info.prospect.name}?"

    def voicemail_message(self, context: CallContext) -> str:
        prospect = context.prospect_info.prospect
        return (
            f"Hi {prospect.name}, this is {self.settings.AGENT_NAME} from {self.settings.COMPANY_NAME}. "
            f"I was hoping to connect to {context.call_objective}. I'll send you a quick email as well, "
            "but feel free to reach me back at this number. Thanks!"
        )

    # ===========================================
    # Tool Framework
    # ===========================================

    def tool_definitions(self) -> List[Dict[str, Any]]:
        """Tools in OpenAI function-calling format."""
        return function_definitions()

    async def handle_tool_call(
        self,
        session: CallSession,
        name: str,
        parameters: Optional[Dict[str, Any]] = None,
        tool_call_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Dispatch a tool call through the registry.

        Rejected calls are still logged on the session, marked with the
        error, so the provider's copy of them is never mistaken for a
        call the session missed.

        Raises:
            UnknownTool: The name is not registered; also marks the session failed
            ToolError: Parameters do not match the tool's schema
        """
        try:
            tool = ToolName(name)
        except ValueError:
            error = UnknownTool(name)
            session.fatal_error = error
            logger.error(f"Call {session.call_id}: {error}")
            raise error

        raw = parameters or {}
        try:
            params = PARAMETER_MODELS[tool](**raw)
            result = await self._handlers[tool](session, params)
        except ValidationError as e:
            error = ToolError(f"Invalid parameters for {tool.value}: {e}")
            self._record_rejection(session, tool, raw, tool_call_id, error)
            raise error from e
        except Exception as e:
            logger.error(f"Tool execution error for {tool.value}: {e}")
            self._record_rejection(session, tool, raw, tool_call_id, e)
            raise

        session.invocations.append(
            ToolInvocation(
                name=tool.value,
                parameters=raw,
                result=result,
                tool_call_id=tool_call_id,
            )
        )
        logger.info(f"Call {session.call_id}: {tool.value} -> stage {session.state.stage.value}")
        return result

    @staticmethod
    def _record_rejection(
        session: CallSession,
        tool: ToolName,
        parameters: Dict[str, Any],
        tool_call_id: Optional[str],
        error: Exception
    ) -> None:
        session.invocations.append(
            ToolInvocation(
                name=tool.value,
                parameters=parameters,
                tool_call_id=tool_call_id,
                error=f"{type(error).__name__}: {error}",
            )
        )

    async def _check_calendar_availability(
        self,
        session: CallSession,
        params: CheckAvailabilityParams
    ) -> Dict[str, Any]:
        machine = session.machine
        machine.resume()
        if machine.stage == ConversationStage.QUALIFICATION:
            machine.advance_to(ConversationStage.BOOKING)

        slots = await self._calendar.find_available_slots(
            session.context.account_manager,
            params.preferred_dates,
            params.duration_minutes,
        )
        return {
            "available_slots": [
                {"datetime": slot.start.isoformat(), "available": slot.available}
                for slot in slots
            ]
        }

    async def _book_meeting(self, session: CallSession, params: BookMeetingParams) -> Dict[str, Any]:
        machine = session.machine
        if not machine.has_reached(ConversationStage.QUALIFICATION):
            raise BookingNotPermitted(
                f"book_meeting requires BANT qualification first (stage: {machine.stage.value})"
            )
        machine.advance_to(ConversationStage.BOOKING)

        context = session.context
        confirmation = await self._calendar.book_meeting(
            context.account_manager,
            params.prospect_email,
            context.prospect_info.prospect.name,
            params.meeting_time,
            DEFAULT_MEETING_MINUTES,
            params.meeting_type,
            params.notes,
        )
        session.meeting_link = confirmation.get("meeting_link")
        return {
            "booking_confirmed": True,
            "calendar_invite_sent": True,
            "meeting_id": confirmation.get("meeting_id"),
            "meeting_link": session.meeting_link,
        }

    async def _end_call(self, session: CallSession, params: EndCallParams) -> Dict[str, Any]:
        machine = session.machine
        if machine.stage == ConversationStage.OBJECTION and machine.interrupted == ConversationStage.BOOKING:
            machine.resume()
        if machine.stage == ConversationStage.BOOKING:
            machine.transition(ConversationStage.CLOSING)

        session.ended = True
        session.end_reason = params.reason
        return {
            "call_ended": True,
            "follow_up_scheduled": params.callback_datetime is not None,
        }

    async def _update_qualification_status(
        self,
        session: CallSession,
        params: QualificationParams
    ) -> Dict[str, Any]:
        session.machine.advance_to(ConversationStage.QUALIFICATION)

        state = session.state
        current = state.qualification_data or QualificationData()
        updates = params.model_dump(exclude_none=True)
        merged = current.model_copy(update=updates)
        confirmed = sum([
            merged.budget_confirmed,
            merged.authority_confirmed,
            merged.need_identified,
            merged.timeline_discussed,
        ])
        merged.bant_score = confirmed * BANT_POINTS_PER_ITEM
        state.qualification_data = merged

        return {"qualification_updated": True, "bant_score": merged.bant_score}

    # ===========================================
    # Outcome Classification
    # ===========================================

    def classify_outcome(
        self,
        transcript: str,
        final_state: ConversationState,
        tool_invocations: List[ToolInvocation],
        account_manager_id: str = "",
        meeting_link: Optional[str] = None,
    ) -> CallClassification:
        """
        Classify a finished call.

        Precedence: a successful book_meeting invocation wins, then closing
        with positive sentiment, then more than two objections, else callback.
        Rejected bookings and bookings with unusable parameters are ignored.
        """
        booking, params = self._find_booking(tool_invocations)

        if booking is not None:
            outcome = CallOutcome.MEETING_BOOKED
        elif final_state.stage == ConversationStage.CLOSING and final_state.sentiment > 0.5:
            outcome = CallOutcome.FOLLOW_UP
        elif len(final_state.objections_raised) > 2:
            outcome = CallOutcome.NOT_INTERESTED
        else:
            outcome = CallOutcome.CALLBACK

        meeting_details = None
        if booking is not None:
            meeting_details = MeetingDetails(
                start_time=params.meeting_time,
                duration_minutes=DEFAULT_MEETING_MINUTES,
                meeting_type=params.meeting_type,
                account_manager_id=account_manager_id,
                prospect_email=params.prospect_email,
                meeting_link=meeting_link or (booking.result or {}).get("meeting_link"),
            )

        return CallClassification(
            transcript=transcript,
            sentiment_score=final_state.sentiment,
            outcome=outcome,
            meeting_booked=booking is not None,
            meeting_details=meeting_details,
            next_action=self.next_action_for(outcome),
        )

    @staticmethod
    def _find_booking(
        tool_invocations: List[ToolInvocation]
    ) -> Tuple[Optional[ToolInvocation], Optional[BookMeetingParams]]:
        for invocation in tool_invocations:
            if invocation.name != ToolName.BOOK_MEETING.value or not invocation.succeeded:
                continue
            try:
                return invocation, BookMeetingParams(**invocation.parameters)
            except ValidationError as e:
                logger.warning(f"Ignoring book_meeting {invocation.tool_call_id} with invalid parameters: {e}")
        return None, None

    @staticmethod
    def next_action_for(outcome: CallOutcome) -> str:
        return NEXT_ACTIONS[outcome]

    # Helper formatting methods
    @staticmethod
    def _format_talking_points(points: List[str]) -> str:
        if not points:
            return "No specific talking points prepared."
        return "\n".join(f"{i}. {point}" for i, point in enumerate(points, start=1))

    @staticmethod
    def _format_pain_points(points: List[str]) -> str:
        if not points:
            return "- None identified"
        return "\n".join(f"- {point}" for point in points)

    @staticmethod
    def _format_objection_strategies(strategies: Dict[str, str]) -> str:
        if not strategies:
            return "No specific objection strategies prepared. Acknowledge, ask a clarifying question, and offer a callback."
        return "\n".join(
            f'Objection: "{objection}"\nResponse: {strategy}\n'
            for objection, strategy in strategies.items()
        )

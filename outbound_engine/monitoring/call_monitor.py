"""Call Monitor - polls an in-flight call until it reaches a terminal state."""

import asyncio
import json
import logging
from typing import Any, Dict, List, Optional
from pydantic import ValidationError

from outbound_engine.agents.call_agent import CallAgent, CallSession
from outbound_engine.agents.tools import PARAMETER_MODELS
from outbound_engine.core.config import get_settings
from outbound_engine.core.errors import CallNotAnswered, CallTimeout, RemoteCallFailure
from outbound_engine.integrations.base import TelephonyCollaborator
from outbound_engine.models import (
    CallResult,
    CallStatus,
    RemoteCallStatus,
    RemoteStatus,
    ToolInvocation,
    ToolName,
)
from outbound_engine.monitoring.heuristics import (
    analyze_sentiment,
    extract_objections,
    is_prospect_line,
    speaker_of,
    split_utterances,
)

logger = logging.getLogger(__name__)


class CallMonitor:
    """
    Watches one call at a time on behalf of a worker.

    While polling, the transcript-so-far drives the session's conversation
    state: sentiment is recomputed, turns are counted and prospect
    objections move the state machine into the objection stage.
    """

    def __init__(
        self,
        telephony: TelephonyCollaborator,
        agent: CallAgent,
        poll_interval: Optional[float] = None,
        settings=None
    ):
        self._telephony = telephony
        self._agent = agent
        self._settings = settings
        self._poll_interval = poll_interval

    @property
    def settings(self):
        """Lazy load settings."""
        if self._settings is None:
            self._settings = get_settings()
        return self._settings

    @property
    def poll_interval(self) -> float:
        if self._poll_interval is None:
            return self.settings.CALL_POLL_INTERVAL_SECONDS
        return self._poll_interval

    async def await_completion(
        self,
        call_id: str,
        session: CallSession,
        timeout: Optional[float] = None
    ) -> CallResult:
        """
        Poll the remote call until ended, failed or no-answer.

        Args:
            call_id: Provider call ID
            session: Session whose state is updated as the transcript grows
            timeout: Seconds before the call is abandoned

        Returns:
            CallResult for an ended call

        Raises:
            CallTimeout: Deadline passed; the call has been ended remotely
            RemoteCallFailure: Provider reported failure
            CallNotAnswered: Nobody picked up
        """
        if timeout is None:
            timeout = self.settings.CALL_TIMEOUT_SECONDS

        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        seen = 0

        while True:
            status = await self._telephony.get_status(call_id)
            seen = self.observe(session, status.transcript, seen)

            if session.fatal_error is not None:
                logger.error(f"Call {call_id} aborted: {session.fatal_error}")
                await self._end_quietly(call_id)
                raise session.fatal_error

            if status.is_terminal:
                return await self._finish(call_id, session, status)

            remaining = deadline - loop.time()
            if remaining <= 0:
                logger.warning(f"Call {call_id} exceeded {timeout}s, ending")
                await self._end_quietly(call_id)
                raise CallTimeout(call_id, timeout)

            await asyncio.sleep(min(self.poll_interval, remaining))

    def observe(self, session: CallSession, transcript: str, seen: int = 0) -> int:
        """
        Feed the transcript-so-far into the session state.

        The last utterance of a live transcript can still be growing, so the
        final line seen on the previous poll is scanned again and only the
        objections it did not already produce are raised.

        Returns:
            Number of utterances processed, to pass back on the next poll
        """
        machine = session.machine
        utterances = split_utterances(transcript)

        for index in range(max(seen - 1, 0), len(utterances)):
            utterance = utterances[index]
            if index >= seen:
                machine.record_turn()
                already: List[str] = []
            else:
                already = session.tail_objections

            found: List[str] = []
            if is_prospect_line(utterance):
                _, text = speaker_of(utterance)
                found = extract_objections(text)
                for objection in found:
                    if objection not in already:
                        machine.raise_objection(objection)
            session.tail_objections = found

        if transcript:
            machine.set_sentiment(analyze_sentiment(transcript))
        return max(seen, len(utterances))

    async def _finish(
        self,
        call_id: str,
        session: CallSession,
        status: RemoteCallStatus
    ) -> CallResult:
        if status.status == RemoteStatus.FAILED:
            raise RemoteCallFailure(
                f"Call {call_id} failed: {status.ended_reason or 'unknown reason'}",
                call_id=call_id,
            )
        if status.status == RemoteStatus.NO_ANSWER:
            raise CallNotAnswered(f"Call {call_id} was not answered", call_id=call_id)

        invocations = merge_tool_invocations(session.invocations, status.messages)
        classification = self._agent.classify_outcome(
            status.transcript,
            session.state,
            invocations,
            account_manager_id=session.context.account_manager.id,
            meeting_link=session.meeting_link,
        )

        call_status = CallStatus.COMPLETED
        if status.ended_reason and "voicemail" in status.ended_reason.lower():
            call_status = CallStatus.VOICEMAIL

        recording_url = status.recording_url
        if recording_url is None:
            recording_url = await self._telephony.get_recording_url(call_id)

        logger.info(
            f"Call {call_id} ended ({call_status.value}): outcome={classification.outcome.value}, "
            f"sentiment={classification.sentiment_score:.2f}"
        )
        return CallResult(
            call_id=call_id,
            status=call_status,
            duration_seconds=status.duration,
            transcript=classification.transcript,
            sentiment_score=classification.sentiment_score,
            outcome=classification.outcome,
            meeting_booked=classification.meeting_booked,
            meeting_details=classification.meeting_details,
            next_action=classification.next_action,
            recording_url=recording_url,
        )

    async def _end_quietly(self, call_id: str) -> None:
        try:
            await self._telephony.end_call(call_id)
        except RemoteCallFailure as e:
            logger.warning(f"Could not end call {call_id}: {e}")


def merge_tool_invocations(
    invocations: List[ToolInvocation],
    messages: List[Dict[str, Any]]
) -> List[ToolInvocation]:
    """
    Add tool calls from the provider's message log that the session missed.

    Calls are matched on tool_call_id, including calls the session rejected.
    Unregistered tool names and arguments that fail the tool's schema are
    skipped.
    """
    merged = list(invocations)
    known = {tc.tool_call_id for tc in invocations if tc.tool_call_id}
    tool_names = {tool.value for tool in ToolName}

    for message in messages or []:
        for call in message.get("toolCalls") or message.get("tool_calls") or []:
            call_id = call.get("id")
            function = call.get("function") or {}
            name = function.get("name")
            if name not in tool_names or (call_id and call_id in known):
                continue

            arguments = function.get("arguments") or {}
            if isinstance(arguments, str):
                try:
                    arguments = json.loads(arguments)
                except json.JSONDecodeError:
                    logger.warning(f"Unparseable arguments for tool call {call_id}")
                    continue

            try:
                PARAMETER_MODELS[ToolName(name)](**arguments)
            except (TypeError, ValidationError) as e:
                logger.warning(f"Skipping logged {name} call {call_id} with invalid arguments: {e}")
                continue

            merged.append(ToolInvocation(name=name, parameters=arguments, tool_call_id=call_id))
            if call_id:
                known.add(call_id)

    return merged

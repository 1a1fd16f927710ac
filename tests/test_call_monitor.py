"""Tests for call monitoring and tool-call reconciliation."""

import json
import pytest

from outbound_engine.core.errors import (
    BookingNotPermitted,
    CallNotAnswered,
    CallTimeout,
    RemoteCallFailure,
    UnknownTool,
)
from outbound_engine.models import (
    CallOutcome,
    CallStatus,
    ConversationStage,
    RemoteStatus,
    ToolInvocation,
)
from outbound_engine.monitoring.call_monitor import merge_tool_invocations


@pytest.fixture
def session(call_agent, call_context):
    session = call_agent.open_session(call_context)
    session.call_id = "call-1"
    return session


class TestAwaitCompletion:
    """Tests for CallMonitor.await_completion()."""

    @pytest.mark.asyncio
    async def test_ended_call_is_completed(self, call_monitor, fake_telephony, session, make_status):
        fake_telephony.script = [
            make_status(RemoteStatus.RINGING),
            make_status(RemoteStatus.IN_PROGRESS, "AI: Hi, is this Prospect p1?"),
            make_status(RemoteStatus.ENDED, "AI: Hi, is this Prospect p1?\nUser: yes, sounds good", duration=42),
        ]

        result = await call_monitor.await_completion("call-1", session)

        assert result.status == CallStatus.COMPLETED
        assert result.call_id == "call-1"
        assert result.duration_seconds == 42
        assert result.outcome == CallOutcome.CALLBACK
        assert result.sentiment_score == pytest.approx(0.6)
        assert result.recording_url == "https://recordings.test/call-1.wav"
        assert fake_telephony.polls["call-1"] == 3
        assert session.state.turn_count == 2

    @pytest.mark.asyncio
    async def test_provider_recording_url_used(self, call_monitor, fake_telephony, session, make_status):
        fake_telephony.script = [
            make_status(RemoteStatus.ENDED, "User: ok", recording_url="https://cdn.test/rec.mp3")
        ]

        result = await call_monitor.await_completion("call-1", session)
        assert result.recording_url == "https://cdn.test/rec.mp3"

    @pytest.mark.asyncio
    async def test_voicemail(self, call_monitor, fake_telephony, session, make_status):
        fake_telephony.script = [make_status(RemoteStatus.ENDED, ended_reason="voicemail")]

        result = await call_monitor.await_completion("call-1", session)
        assert result.status == CallStatus.VOICEMAIL

    @pytest.mark.asyncio
    async def test_failed_call_raises(self, call_monitor, fake_telephony, session, make_status):
        fake_telephony.script = [make_status(RemoteStatus.FAILED, ended_reason="pipeline-error")]

        with pytest.raises(RemoteCallFailure) as exc_info:
            await call_monitor.await_completion("call-1", session)

        assert exc_info.value.call_id == "call-1"
        assert "pipeline-error" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_no_answer_raises(self, call_monitor, fake_telephony, session, make_status):
        fake_telephony.script = [make_status(RemoteStatus.NO_ANSWER)]

        with pytest.raises(CallNotAnswered):
            await call_monitor.await_completion("call-1", session)

    @pytest.mark.asyncio
    async def test_timeout_ends_remote_call(self, call_monitor, fake_telephony, session, make_status):
        fake_telephony.script = [make_status(RemoteStatus.IN_PROGRESS, "User: hello")]

        with pytest.raises(CallTimeout) as exc_info:
            await call_monitor.await_completion("call-1", session, timeout=0)

        assert exc_info.value.call_id == "call-1"
        assert fake_telephony.ended == ["call-1"]

    @pytest.mark.asyncio
    async def test_repeated_refusal_is_not_interested(self, call_monitor, fake_telephony, session, make_status):
        transcript = "\n".join([
            "AI: Hi, is this Prospect p1?",
            "User: Sorry, not interested",
            "AI: Totally understand, may I ask one question?",
            "User: I said not interested",
            "User: Really, not interested",
        ])
        fake_telephony.script = [make_status(RemoteStatus.ENDED, transcript)]

        result = await call_monitor.await_completion("call-1", session)

        assert result.outcome == CallOutcome.NOT_INTERESTED
        assert session.state.objections_raised == ["not interested"] * 3
        assert session.state.stage == ConversationStage.OBJECTION

    @pytest.mark.asyncio
    async def test_agent_lines_do_not_raise_objections(self, call_monitor, fake_telephony, session, make_status):
        fake_telephony.script = [
            make_status(RemoteStatus.ENDED, "AI: Is it too expensive?\nUser: no, we have the budget")
        ]

        await call_monitor.await_completion("call-1", session)
        assert session.state.objections_raised == []

    @pytest.mark.asyncio
    async def test_tool_calls_from_message_log(self, call_monitor, fake_telephony, session, make_status):
        messages = [{
            "role": "assistant",
            "toolCalls": [{
                "id": "tc-1",
                "function": {
                    "name": "book_meeting",
                    "arguments": json.dumps({
                        "datetime": "2026-10-22T15:00:00Z",
                        "prospect_email": "p1@acme.io",
                        "meeting_type": "demo",
                    }),
                },
            }],
        }]
        fake_telephony.script = [make_status(RemoteStatus.ENDED, "User: great", messages=messages)]

        result = await call_monitor.await_completion("call-1", session)

        assert result.outcome == CallOutcome.MEETING_BOOKED
        assert result.meeting_details.account_manager_id == "am-001"

    @pytest.mark.asyncio
    async def test_rejected_booking_in_message_log_is_not_booked(
        self, call_monitor, fake_telephony, fake_calendar, session, make_status
    ):
        booking = {"datetime": "2026-10-22T15:00:00Z", "prospect_email": "p1@acme.io", "meeting_type": "demo"}
        with pytest.raises(BookingNotPermitted):
            await session.handle_tool_call("book_meeting", booking, tool_call_id="tc-1")

        messages = [{"role": "assistant", "toolCalls": [
            {"id": "tc-1", "function": {"name": "book_meeting", "arguments": json.dumps(booking)}},
        ]}]
        fake_telephony.script = [make_status(RemoteStatus.ENDED, "User: ok", messages=messages)]

        result = await call_monitor.await_completion("call-1", session)

        assert result.meeting_booked is False
        assert result.meeting_details is None
        assert result.outcome == CallOutcome.CALLBACK
        assert fake_calendar.bookings == []

    @pytest.mark.asyncio
    async def test_malformed_logged_booking_is_ignored(self, call_monitor, fake_telephony, session, make_status):
        messages = [{"role": "assistant", "toolCalls": [
            {"id": "tc-1", "function": {"name": "book_meeting", "arguments": {"datetime": "tomorrow"}}},
        ]}]
        fake_telephony.script = [make_status(RemoteStatus.ENDED, "User: ok", messages=messages)]

        result = await call_monitor.await_completion("call-1", session)

        assert result.status == CallStatus.COMPLETED
        assert result.meeting_booked is False
        assert result.outcome == CallOutcome.CALLBACK

    @pytest.mark.asyncio
    async def test_unknown_tool_aborts_call(self, call_monitor, fake_telephony, session, make_status):
        fake_telephony.script = [make_status(RemoteStatus.IN_PROGRESS, "User: hi")]

        async def bad_tool(call_id, index):
            if index == 1:
                with pytest.raises(UnknownTool):
                    await session.handle_tool_call("launch_rockets", {})

        fake_telephony.on_poll = bad_tool

        with pytest.raises(UnknownTool):
            await call_monitor.await_completion("call-1", session)

        assert fake_telephony.ended == ["call-1"]


class TestObserve:
    def test_counts_only_new_utterances(self, call_monitor, session):
        seen = call_monitor.observe(session, "AI: Hello\nUser: hi", 0)
        seen = call_monitor.observe(session, "AI: Hello\nUser: hi\nUser: not now", seen)

        assert seen == 3
        assert session.state.turn_count == 3
        assert session.state.sentiment == pytest.approx(0.42)

    def test_growing_last_line_is_rescanned(self, call_monitor, session):
        seen = call_monitor.observe(session, "AI: Hi\nUser: Honestly I'm", 0)
        seen = call_monitor.observe(
            session,
            "AI: Hi\nUser: Honestly I'm not interested, we already have a vendor and it's too expensive",
            seen,
        )
        seen = call_monitor.observe(
            session,
            "AI: Hi\nUser: Honestly I'm not interested, we already have a vendor and it's too expensive\nAI: I see",
            seen,
        )

        assert seen == 3
        assert session.state.turn_count == 3
        assert session.state.objections_raised == ["not interested", "already have", "too expensive"]
        assert session.state.stage == ConversationStage.OBJECTION

    def test_unchanged_last_line_does_not_repeat_objections(self, call_monitor, session):
        transcript = "AI: Hi\nUser: not interested"
        seen = call_monitor.observe(session, transcript, 0)
        call_monitor.observe(session, transcript, seen)

        assert session.state.objections_raised == ["not interested"]
        assert session.state.turn_count == 2

    def test_empty_transcript_keeps_sentiment(self, call_monitor, session):
        assert call_monitor.observe(session, "", 0) == 0
        assert session.state.sentiment == 0.5


class TestMergeToolInvocations:
    def test_skips_known_and_unregistered(self):
        known = ToolInvocation(name="end_call", parameters={}, tool_call_id="tc-1")
        messages = [
            {"tool_calls": [
                {"id": "tc-1", "function": {"name": "end_call", "arguments": {}}},
                {"id": "tc-2", "function": {"name": "transfer", "arguments": {}}},
                {"id": "tc-3", "function": {"name": "update_qualification_status",
                                            "arguments": {"budget_confirmed": True}}},
                {"id": "tc-4", "function": {"name": "end_call", "arguments": "{broken"}},
            ]},
            {"role": "user", "message": "hi"},
        ]

        merged = merge_tool_invocations([known], messages)

        assert [tc.tool_call_id for tc in merged] == ["tc-1", "tc-3"]
        assert merged[1].parameters == {"budget_confirmed": True}

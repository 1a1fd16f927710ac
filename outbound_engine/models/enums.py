"""Enumeration types for the campaign pipeline."""

from enum import Enum


class AccountStatus(str, Enum):
    """CRM account status of a prospect."""
    NEW = "new"
    CONTACTED = "contacted"
    QUALIFIED = "qualified"
    UNQUALIFIED = "unqualified"


class InteractionType(str, Enum):
    """Kind of past touchpoint recorded in the CRM."""
    CALL = "call"
    EMAIL = "email"
    MEETING = "meeting"


class ApproachStrategy(str, Enum):
    """How the agent should pitch a given prospect."""
    CONSULTATIVE = "consultative"
    DIRECT = "direct"
    EDUCATIONAL = "educational"


class ConversationStage(str, Enum):
    """Stages of the outbound conversation state machine."""
    OPENING = "opening"
    DISCOVERY = "discovery"
    QUALIFICATION = "qualification"
    BOOKING = "booking"
    OBJECTION = "objection"
    CLOSING = "closing"


class CallStatus(str, Enum):
    """Final status of a call attempt."""
    COMPLETED = "completed"
    FAILED = "failed"
    NO_ANSWER = "no-answer"
    VOICEMAIL = "voicemail"


class RemoteStatus(str, Enum):
    """Normalized in-flight status reported by the telephony provider."""
    QUEUED = "queued"
    RINGING = "ringing"
    IN_PROGRESS = "in-progress"
    ENDED = "ended"
    FAILED = "failed"
    NO_ANSWER = "no-answer"


class CallOutcome(str, Enum):
    """Terminal classification of a completed call."""
    MEETING_BOOKED = "meeting_booked"
    FOLLOW_UP = "follow_up"
    NOT_INTERESTED = "not_interested"
    CALLBACK = "callback"


class ToolName(str, Enum):
    """Closed set of tools the call agent may invoke."""
    CHECK_CALENDAR_AVAILABILITY = "check_calendar_availability"
    BOOK_MEETING = "book_meeting"
    END_CALL = "end_call"
    UPDATE_QUALIFICATION_STATUS = "update_qualification_status"


class EndCallReason(str, Enum):
    """Reasons accepted by the end_call tool."""
    MEETING_BOOKED = "meeting_booked"
    NOT_INTERESTED = "not_interested"
    CALLBACK_REQUESTED = "callback_requested"
    NOT_QUALIFIED = "not_qualified"


class JobState(str, Enum):
    """Lifecycle of a queued call job."""
    WAITING = "waiting"
    DELAYED = "delayed"
    ACTIVE = "active"
    COMPLETED = "completed"
    FAILED = "failed"


class CampaignState(str, Enum):
    """Lifecycle of a campaign run."""
    CREATED = "created"
    RUNNING = "running"
    PAUSED = "paused"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class ActivityType(str, Enum):
    """Activity kinds written to the CRM."""
    CALL = "call"
    CALL_FAILED = "call_failed"

"""Call-related models - Conversation state, tool invocations and results."""

from datetime import datetime, timezone
from typing import Optional, List, Dict, Any
from pydantic import BaseModel, Field

from outbound_engine.models.enums import (
    CallOutcome,
    CallStatus,
    ConversationStage,
    RemoteStatus,
)
from outbound_engine.models.prospect import ResearchContext


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AccountManager(BaseModel):
    """Senior rep the agent books meetings for."""
    id: str
    name: str
    email: str
    specialty: str = ""
    calendar_link: str = ""


class TimeSlot(BaseModel):
    """A candidate meeting slot on the account manager's calendar."""
    start: datetime
    end: datetime
    timezone: str = "UTC"
    available: bool = True


class QualificationData(BaseModel):
    """BANT qualification gathered during the call."""
    budget_confirmed: bool = False
    authority_confirmed: bool = False
    need_identified: bool = False
    timeline_discussed: bool = False
    bant_score: int = Field(0, ge=0, le=100, description="25 points per confirmed BANT item")
    notes: Optional[str] = None


class ConversationState(BaseModel):
    """Live state of one outbound call. Owned by a single call session."""
    stage: ConversationStage = ConversationStage.OPENING
    turn_count: int = 0
    sentiment: float = Field(0.5, ge=0.0, le=1.0)
    objections_raised: List[str] = Field(default_factory=list)
    qualification_data: Optional[QualificationData] = None


class CallContext(BaseModel):
    """Inputs the call agent needs to run one attempt."""
    prospect_info: ResearchContext
    call_objective: str = "book a discovery meeting"
    account_manager: AccountManager
    conversation_state: ConversationState = Field(default_factory=ConversationState)
    campaign_id: str


class ToolInvocation(BaseModel):
    """Record of a tool called during a conversation."""
    name: str
    parameters: Dict[str, Any] = Field(default_factory=dict)
    result: Optional[Dict[str, Any]] = None
    tool_call_id: Optional[str] = None
    error: Optional[str] = Field(default=None, description="Set when the tool rejected the call")
    invoked_at: datetime = Field(default_factory=_utcnow)

    @property
    def succeeded(self) -> bool:
        return self.error is None


class MeetingDetails(BaseModel):
    """A meeting booked through the book_meeting tool."""
    start_time: datetime = Field(..., description="Meeting start (UTC)")
    duration_minutes: int = 30
    meeting_type: str
    account_manager_id: str = ""
    prospect_email: str
    meeting_link: Optional[str] = None


class CallResult(BaseModel):
    """Immutable result of a single call attempt."""
    call_id: str
    status: CallStatus
    duration_seconds: int = 0
    transcript: str = ""
    sentiment_score: float = Field(0.5, ge=0.0, le=1.0)
    outcome: CallOutcome
    meeting_booked: bool = False
    meeting_details: Optional[MeetingDetails] = None
    next_action: str = ""
    recording_url: Optional[str] = None

    class Config:
        frozen = True


class RemoteCallStatus(BaseModel):
    """Normalized call status as reported by the telephony provider."""
    call_id: str
    status: RemoteStatus
    transcript: str = ""
    duration: int = 0
    ended_reason: Optional[str] = None
    messages: List[Dict[str, Any]] = Field(default_factory=list)
    recording_url: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in (RemoteStatus.ENDED, RemoteStatus.FAILED, RemoteStatus.NO_ANSWER)

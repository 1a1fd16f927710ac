"""Campaign-related models - Configuration, queued jobs and reporting."""

from datetime import datetime, timezone
from typing import Optional
from pydantic import BaseModel, Field

from outbound_engine.core.errors import CampaignConfigError
from outbound_engine.models.enums import ActivityType, JobState
from outbound_engine.models.call import AccountManager, CallResult
from outbound_engine.models.prospect import Prospect, ProspectFilters, ResearchContext


class CallHours(BaseModel):
    """Window of UTC hours in which calls may be placed (inclusive)."""
    start: int = Field(9, description="First allowed hour, UTC")
    end: int = Field(17, description="Last allowed hour, UTC")


class CampaignConfig(BaseModel):
    """Caller-owned description of a campaign run."""
    id: str = Field(..., description="Campaign ID")
    name: str = Field(..., description="Human readable name")
    filters: ProspectFilters = Field(default_factory=ProspectFilters)
    min_probability: float = Field(0, description="Minimum success probability to call")
    max_calls_per_day: int = Field(..., description="Rate bound used to space calls")
    call_hours: CallHours = Field(default_factory=CallHours)
    script_template: Optional[str] = None
    target_completion_date: Optional[datetime] = None

    class Config:
        frozen = True

    def check(self) -> None:
        """Raise CampaignConfigError if the configuration cannot be launched."""
        problems = []
        if not self.id or not self.id.strip():
            problems.append("id must not be empty")
        if not 0 <= self.min_probability <= 100:
            problems.append("min_probability must be within 0-100")
        if self.max_calls_per_day <= 0:
            problems.append("max_calls_per_day must be positive")
        hours = self.call_hours
        if not (0 <= hours.start <= 23 and 0 <= hours.end <= 23):
            problems.append("call_hours must be within 0-23")
        elif hours.start > hours.end:
            problems.append("call_hours.start must not be after call_hours.end")

        if problems:
            raise CampaignConfigError(f"Invalid campaign {self.id!r}: {'; '.join(problems)}")

    @property
    def spacing_ms(self) -> float:
        """Milliseconds between consecutive calls at the configured rate."""
        return 86_400_000 / self.max_calls_per_day


class CallJob(BaseModel):
    """One queued, schedulable call attempt."""
    job_id: str = Field(..., description="Deduplicating key call-{campaign}-{prospect}")
    prospect: Prospect
    research_context: ResearchContext
    campaign_id: str
    account_manager: AccountManager
    scheduled_time: datetime
    priority: int = Field(..., ge=0, le=100)
    attempt_count: int = 0
    state: JobState = JobState.WAITING
    visible_at: Optional[datetime] = None
    sequence: int = 0
    last_error: Optional[str] = None
    result: Optional[CallResult] = None

    @staticmethod
    def make_id(campaign_id: str, prospect_id: str) -> str:
        return f"call-{campaign_id}-{prospect_id}"


class LaunchResult(BaseModel):
    """Summary returned by launch."""
    campaign_id: str
    total_prospects: int
    queued_calls: int


class CampaignStats(BaseModel):
    """Job counts for one campaign."""
    waiting: int = 0
    active: int = 0
    completed: int = 0
    failed: int = 0


class ActivityRecord(BaseModel):
    """Activity written to the CRM for every terminal job state."""
    prospect_id: str
    campaign_id: Optional[str] = None
    activity_type: ActivityType
    outcome: Optional[str] = None
    duration_seconds: Optional[int] = None
    transcript: Optional[str] = None
    sentiment_score: Optional[float] = None
    meeting_booked: Optional[bool] = None
    recording_url: Optional[str] = None
    notes: Optional[str] = None
    attempts: Optional[int] = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

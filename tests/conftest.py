"""Pytest fixtures and configuration for Outbound Engine tests."""

import os
import pytest
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional

# Set test environment variables before importing the app
os.environ.setdefault("SUPABASE_URL", "https://test.supabase.co")
os.environ.setdefault("SUPABASE_KEY", "test-key")
os.environ.setdefault("OPENAI_API_KEY", "sk-test")
os.environ.setdefault("VAPI_API_KEY", "vapi-test")
os.environ.setdefault("VAPI_PHONE_NUMBER_ID", "phone-test")
os.environ.setdefault("APOLLO_API_KEY", "apollo-test")
os.environ.setdefault("DEBUG", "true")

from outbound_engine.agents.call_agent import CallAgent
from outbound_engine.core.config import Settings
from outbound_engine.core.errors import EnrichmentError
from outbound_engine.intelligence.research import ResearchAgent
from outbound_engine.models import (
    AccountManager,
    ActivityRecord,
    CallContext,
    CallJob,
    CRMData,
    EnrichmentData,
    Prospect,
    ProspectFilters,
    ProspectInsights,
    RemoteCallStatus,
    RemoteStatus,
    ResearchContext,
    TimeSlot,
)
from outbound_engine.monitoring.call_monitor import CallMonitor
from outbound_engine.orchestration.orchestrator import CampaignOrchestrator
from outbound_engine.orchestration.queue import InMemoryJobQueue

# Tuesday
FIXED_NOW = datetime(2026, 10, 20, 12, 0, tzinfo=timezone.utc)


# ===========================================
# Clock & Settings
# ===========================================

class FakeClock:
    """Manually advanced clock."""

    def __init__(self, now: datetime = FIXED_NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now = self.now + timedelta(seconds=seconds)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def settings() -> Settings:
    """Settings tuned for fast tests."""
    return Settings(
        WORKER_CONCURRENCY=2,
        MAX_CALL_ATTEMPTS=3,
        RETRY_BACKOFF_BASE_SECONDS=60.0,
        CALL_POLL_INTERVAL_SECONDS=0.0,
        CALL_TIMEOUT_SECONDS=5.0,
        QUEUE_IDLE_POLL_SECONDS=0.01,
        RESEARCH_BATCH_SIZE=2,
    )


# ===========================================
# Sample Data Fixtures
# ===========================================

@pytest.fixture
def account_manager() -> AccountManager:
    return AccountManager(
        id="am-001",
        name="John Smith",
        email="john.smith@company.com",
        specialty="Enterprise Sales",
    )


@pytest.fixture
def make_prospect() -> Callable[..., Prospect]:
    def _make(prospect_id: str = "p1", **overrides) -> Prospect:
        data = {
            "id": prospect_id,
            "crm_id": f"crm-{prospect_id}",
            "name": f"Prospect {prospect_id}",
            "email": f"{prospect_id}@acme.io",
            "phone": "+14155551234",
            "company": "Acme",
            "role": "VP Operations",
            "timezone": "UTC",
        }
        data.update(overrides)
        return Prospect(**data)
    return _make


@pytest.fixture
def make_research(make_prospect) -> Callable[..., ResearchContext]:
    def _make(prospect_id: str = "p1", probability: int = 70, industry: str = "Software") -> ResearchContext:
        return ResearchContext(
            prospect=make_prospect(prospect_id),
            crm_data=CRMData(industry=industry),
            enrichment_data=EnrichmentData(company_size=250, funding_stage="Series B"),
            talking_points=["Recently raised a Series B"],
            pain_points=["Manual reporting"],
            objection_strategies={"Too expensive": "Focus on ROI"},
            success_probability=probability,
        )
    return _make


@pytest.fixture
def call_context(make_research, account_manager) -> CallContext:
    return CallContext(
        prospect_info=make_research("p1", 80),
        account_manager=account_manager,
        campaign_id="camp-1",
    )


def remote_status(
    status: RemoteStatus,
    transcript: str = "",
    call_id: str = "call-1",
    **extra
) -> RemoteCallStatus:
    return RemoteCallStatus(call_id=call_id, status=status, transcript=transcript, **extra)


@pytest.fixture
def make_status() -> Callable[..., RemoteCallStatus]:
    return remote_status


# ===========================================
# Fake Collaborators
# ===========================================

class FakeCRM:
    """In-memory CRM collaborator."""

    def __init__(self, prospects: Optional[List[Prospect]] = None):
        self.prospects = prospects or []
        self.crm_data: Dict[str, CRMData] = {}
        self.activities: List[ActivityRecord] = []
        self.stages: List[tuple] = []
        self.filters: List[ProspectFilters] = []

    async def query_prospects(self, filters: ProspectFilters) -> List[Prospect]:
        self.filters.append(filters)
        return list(self.prospects)

    async def fetch_prospect_data(self, crm_id: str) -> CRMData:
        return self.crm_data.get(crm_id, CRMData())

    async def log_activity(self, record: ActivityRecord) -> None:
        self.activities.append(record)

    async def update_stage(self, prospect_id: str, stage: str) -> None:
        self.stages.append((prospect_id, stage))


class FakeEnrichment:
    def __init__(self, failing: Optional[set] = None):
        self.failing = failing or set()

    async def enrich(self, prospect: Prospect) -> EnrichmentData:
        if prospect.id in self.failing:
            raise EnrichmentError(prospect.id, "provider unavailable")
        return EnrichmentData(company_size=120, funding_stage="Series A")


class FakeInsights:
    """Stands in for the CrewAI insight crew."""

    def __init__(self, insights: Optional[ProspectInsights] = None):
        self.insights = insights or ProspectInsights(talking_points=["Growing fast"])
        self.calls = 0

    async def run_async(self, prospect, crm_data, enrichment) -> ProspectInsights:
        self.calls += 1
        return self.insights


class FakeResearch:
    """Returns precomputed research contexts."""

    def __init__(self, contexts: List[ResearchContext]):
        self.contexts = contexts

    async def batch_analyze(self, prospects) -> List[ResearchContext]:
        return list(self.contexts)


class FakeTelephony:
    """
    Scripted telephony collaborator.

    get_status walks through `script`, repeating the last status. An
    optional on_poll coroutine runs before each status is returned.
    """

    def __init__(self, script: Optional[List[RemoteCallStatus]] = None):
        self.script = script or [remote_status(RemoteStatus.ENDED, "User: sounds good")]
        self.started: List[Dict[str, Any]] = []
        self.ended: List[str] = []
        self.polls: Dict[str, int] = {}
        self.start_error: Optional[Exception] = None
        self.on_poll = None

    async def start_call(self, phone_number, instructions, tools, metadata=None, first_message=None,
                         voicemail_message=None) -> str:
        if self.start_error is not None:
            raise self.start_error
        call_id = f"call-{len(self.started) + 1}"
        self.started.append({
            "call_id": call_id,
            "phone_number": phone_number,
            "instructions": instructions,
            "tools": tools,
            "metadata": metadata,
            "first_message": first_message,
            "voicemail_message": voicemail_message,
        })
        return call_id

    async def get_status(self, call_id: str) -> RemoteCallStatus:
        index = self.polls.get(call_id, 0)
        self.polls[call_id] = index + 1
        if self.on_poll is not None:
            await self.on_poll(call_id, index)
        status = self.script[min(index, len(self.script) - 1)]
        return status.model_copy(update={"call_id": call_id})

    async def end_call(self, call_id: str) -> None:
        self.ended.append(call_id)

    async def get_recording_url(self, call_id: str) -> Optional[str]:
        return f"https://recordings.test/{call_id}.wav"


class FakeCalendar:
    def __init__(self):
        self.bookings: List[Dict[str, Any]] = []
        self.queries: List[List[datetime]] = []

    async def find_available_slots(self, account_manager, preferred_dates, duration_minutes=30):
        self.queries.append(list(preferred_dates))
        return [
            TimeSlot(start=d, end=d + timedelta(minutes=duration_minutes), available=i % 2 == 0)
            for i, d in enumerate(preferred_dates)
        ]

    async def book_meeting(self, account_manager, attendee_email, attendee_name, start_time,
                           duration_minutes, meeting_type, notes=None):
        self.bookings.append({
            "account_manager_id": account_manager.id,
            "attendee_email": attendee_email,
            "start_time": start_time,
            "meeting_type": meeting_type,
        })
        return {"meeting_id": f"mtg-{len(self.bookings)}", "meeting_link": "https://meet.test/abc"}


class FakeContext:
    def __init__(self, text: str = "- 2026-09-01 call: callback", error: Optional[Exception] = None):
        self.text = text
        self.error = error

    async def get_historical_context(self, prospect_id: str) -> str:
        if self.error is not None:
            raise self.error
        return self.text


@pytest.fixture
def fake_crm() -> FakeCRM:
    return FakeCRM()


@pytest.fixture
def fake_telephony() -> FakeTelephony:
    return FakeTelephony()


@pytest.fixture
def fake_calendar() -> FakeCalendar:
    return FakeCalendar()


@pytest.fixture
def fake_insights() -> FakeInsights:
    return FakeInsights()


@pytest.fixture
def make_research_agent(fake_crm, fake_insights, settings, clock):
    """Build a ResearchAgent whose enrichment fails for the given prospect ids."""
    def _make(failing: Optional[set] = None) -> ResearchAgent:
        return ResearchAgent(
            fake_crm,
            FakeEnrichment(failing),
            insights=fake_insights,
            settings=settings,
            clock=clock,
        )
    return _make


@pytest.fixture
def make_context_service() -> Callable[..., FakeContext]:
    return FakeContext


@pytest.fixture
def call_agent(fake_calendar, settings) -> CallAgent:
    return CallAgent(fake_calendar, settings=settings)


@pytest.fixture
def call_monitor(fake_telephony, call_agent, settings) -> CallMonitor:
    return CallMonitor(fake_telephony, call_agent, settings=settings)


@pytest.fixture
def job_queue(settings, clock) -> InMemoryJobQueue:
    return InMemoryJobQueue(
        max_attempts=settings.MAX_CALL_ATTEMPTS,
        backoff_base_seconds=settings.RETRY_BACKOFF_BASE_SECONDS,
        idle_poll_seconds=settings.QUEUE_IDLE_POLL_SECONDS,
        clock=clock,
    )


@pytest.fixture
def make_job(make_research, account_manager, clock) -> Callable[..., CallJob]:
    def _make(prospect_id: str, priority: int = 50, delay_seconds: float = 0, campaign_id: str = "camp-1") -> CallJob:
        research = make_research(prospect_id, priority)
        return CallJob(
            job_id=CallJob.make_id(campaign_id, prospect_id),
            prospect=research.prospect,
            research_context=research,
            campaign_id=campaign_id,
            account_manager=account_manager,
            scheduled_time=clock() + timedelta(seconds=delay_seconds),
            priority=priority,
        )
    return _make


@pytest.fixture
def make_orchestrator(fake_crm, fake_telephony, call_agent, call_monitor, job_queue, settings, clock):
    """Build an orchestrator whose timing planner returns the fixed clock time."""
    def _make(contexts: List[ResearchContext], **overrides) -> CampaignOrchestrator:
        options = dict(
            crm=fake_crm,
            research=FakeResearch(contexts),
            agent=call_agent,
            telephony=fake_telephony,
            monitor=call_monitor,
            queue=job_queue,
            timing=lambda tz, role, hours, now: now,
            settings=settings,
            clock=clock,
        )
        options.update(overrides)
        return CampaignOrchestrator(**options)
    return _make


# ===========================================
# Pytest Configuration
# ===========================================

def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )

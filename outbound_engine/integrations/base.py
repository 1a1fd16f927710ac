"""Collaborator contracts consumed by the campaign pipeline.

Each contract has one concrete adapter in this package; tests use
in-memory fakes with the same shape.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional, Protocol

from outbound_engine.models import (
    AccountManager,
    ActivityRecord,
    CRMData,
    EnrichmentData,
    Prospect,
    ProspectFilters,
    RemoteCallStatus,
    TimeSlot,
)

NO_CONTEXT_AVAILABLE = "No previous context available"


class CRMCollaborator(Protocol):
    async def query_prospects(self, filters: ProspectFilters) -> List[Prospect]: ...

    async def fetch_prospect_data(self, crm_id: str) -> CRMData: ...

    async def log_activity(self, record: ActivityRecord) -> None: ...

    async def update_stage(self, prospect_id: str, stage: str) -> None: ...


class EnrichmentCollaborator(Protocol):
    async def enrich(self, prospect: Prospect) -> EnrichmentData: ...


class TelephonyCollaborator(Protocol):
    async def start_call(
        self,
        phone_number: str,
        instructions: str,
        tools: List[Dict[str, Any]],
        metadata: Optional[Dict[str, Any]] = None,
        first_message: Optional[str] = None,
        voicemail_message: Optional[str] = None,
    ) -> str: ...

    async def get_status(self, call_id: str) -> RemoteCallStatus: ...

    async def end_call(self, call_id: str) -> None: ...

    async def get_recording_url(self, call_id: str) -> Optional[str]: ...


class SemanticContextCollaborator(Protocol):
    async def get_historical_context(self, prospect_id: str) -> str: ...


class CalendarCollaborator(Protocol):
    async def find_available_slots(
        self,
        account_manager: AccountManager,
        preferred_dates: List[datetime],
        duration_minutes: int = 30,
    ) -> List[TimeSlot]: ...

    async def book_meeting(
        self,
        account_manager: AccountManager,
        attendee_email: str,
        attendee_name: str,
        start_time: datetime,
        duration_minutes: int,
        meeting_type: str,
        notes: Optional[str] = None,
    ) -> Dict[str, Any]: ...

"""Google Calendar integration for account manager availability and booking."""

import asyncio
import logging
import os
from datetime import datetime, time, timedelta, timezone
from typing import Any, Dict, List, Optional, Tuple
from dateutil import parser as date_parser
from google.oauth2 import service_account
from googleapiclient.discovery import build

from outbound_engine.core.config import get_settings
from outbound_engine.core.errors import ToolError
from outbound_engine.models import AccountManager, TimeSlot

logger = logging.getLogger(__name__)

SCOPES = ["https://www.googleapis.com/auth/calendar"]
DEFAULT_SLOT_HOURS = (10, 14)


class GoogleCalendarService:
    """
    Service for Google Calendar operations.

    Uses a service account with domain-wide delegation to read free/busy
    data and book meetings on account managers' calendars. The Google
    client is synchronous, so calls run in a worker thread.
    """

    def __init__(self, settings=None, service=None):
        """Initialize service."""
        self._settings = settings
        self._service = service

    @property
    def settings(self):
        """Lazy load settings."""
        if self._settings is None:
            self._settings = get_settings()
        return self._settings

    @property
    def service(self):
        """Lazy initialize Google Calendar service."""
        if self._service is None:
            self._service = self._build_service()
        return self._service

    def _build_service(self):
        """Build Google Calendar service with service account."""
        credentials_path = self.settings.GOOGLE_CREDENTIALS_PATH
        if not os.path.exists(credentials_path):
            raise ToolError(f"Google credentials not found: {credentials_path}")

        credentials = service_account.Credentials.from_service_account_file(
            credentials_path,
            scopes=SCOPES
        )

        # Delegate to calendar owner
        delegated_credentials = credentials.with_subject(self.settings.GOOGLE_CALENDAR_ID)

        service = build("calendar", "v3", credentials=delegated_credentials)
        logger.info("Google Calendar service initialized")
        return service

    def _calendar_id(self, account_manager: AccountManager) -> str:
        return account_manager.email or self.settings.GOOGLE_CALENDAR_ID

    # ===========================================
    # Availability
    # ===========================================

    async def find_available_slots(
        self,
        account_manager: AccountManager,
        preferred_dates: List[datetime],
        duration_minutes: int = 30
    ) -> List[TimeSlot]:
        """
        Check the account manager's calendar around the preferred dates.

        A date given without a time of day expands to the default 10:00 and
        14:00 UTC slots.

        Args:
            account_manager: Whose calendar to check
            preferred_dates: Candidate start times or dates
            duration_minutes: Meeting length

        Returns:
            One TimeSlot per candidate, flagged available or not
        """
        candidates = self.candidate_starts(preferred_dates)
        if not candidates:
            return []

        duration = timedelta(minutes=duration_minutes)
        busy = await asyncio.to_thread(
            self._query_busy,
            self._calendar_id(account_manager),
            candidates[0],
            candidates[-1] + duration,
        )

        slots = [
            TimeSlot(
                start=start,
                end=start + duration,
                timezone="UTC",
                available=is_free(start, start + duration, busy),
            )
            for start in candidates
        ]
        logger.info(
            f"{sum(s.available for s in slots)}/{len(slots)} slots free for {account_manager.name}"
        )
        return slots

    @staticmethod
    def candidate_starts(preferred_dates: List[datetime]) -> List[datetime]:
        starts = []
        for value in preferred_dates:
            moment = value if value.tzinfo else value.replace(tzinfo=timezone.utc)
            moment = moment.astimezone(timezone.utc)
            if moment.time() == time(0, 0):
                starts.extend(moment.replace(hour=hour) for hour in DEFAULT_SLOT_HOURS)
            else:
                starts.append(moment)
        return sorted(set(starts))

    def _query_busy(
        self,
        calendar_id: str,
        start: datetime,
        end: datetime
    ) -> List[Tuple[datetime, datetime]]:
        body = {
            "timeMin": start.isoformat(),
            "timeMax": end.isoformat(),
            "items": [{"id": calendar_id}]
        }
        result = self.service.freebusy().query(body=body).execute()
        busy_times = result.get("calendars", {}).get(calendar_id, {}).get("busy", [])
        return [
            (date_parser.parse(busy["start"]), date_parser.parse(busy["end"]))
            for busy in busy_times
        ]

    # ===========================================
    # Booking
    # ===========================================

    async def book_meeting(
        self,
        account_manager: AccountManager,
        attendee_email: str,
        attendee_name: str,
        start_time: datetime,
        duration_minutes: int,
        meeting_type: str,
        notes: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Create a calendar event with a Meet link.

        Returns:
            Dict with meeting_id and meeting_link
        """
        return await asyncio.to_thread(
            self._create_event,
            account_manager,
            attendee_email,
            attendee_name,
            start_time,
            duration_minutes,
            meeting_type,
            notes,
        )

    def _create_event(
        self,
        account_manager: AccountManager,
        attendee_email: str,
        attendee_name: str,
        start_time: datetime,
        duration_minutes: int,
        meeting_type: str,
        notes: Optional[str]
    ) -> Dict[str, Any]:
        if start_time.tzinfo is None:
            start_time = start_time.replace(tzinfo=timezone.utc)
        end_time = start_time + timedelta(minutes=duration_minutes)

        event = {
            "summary": f"{meeting_type.title()} call: {attendee_name} x {account_manager.name}",
            "description": notes or f"{meeting_type.title()} call booked by the outbound agent.",
            "start": {"dateTime": start_time.isoformat(), "timeZone": "UTC"},
            "end": {"dateTime": end_time.isoformat(), "timeZone": "UTC"},
            "attendees": [
                {"email": attendee_email},
                {"email": account_manager.email}
            ],
            "conferenceData": {
                "createRequest": {
                    "requestId": f"outbound-{account_manager.id}-{int(start_time.timestamp())}",
                    "conferenceSolutionKey": {"type": "hangoutsMeet"}
                }
            },
            "reminders": {
                "useDefault": False,
                "overrides": [
                    {"method": "email", "minutes": 60},
                    {"method": "popup", "minutes": 15}
                ]
            }
        }

        result = self.service.events().insert(
            calendarId=self._calendar_id(account_manager),
            body=event,
            conferenceDataVersion=1,
            sendUpdates="all"
        ).execute()

        meeting_link = result.get("hangoutLink") or result.get("htmlLink")
        logger.info(f"Meeting created for {account_manager.name}: {meeting_link}")
        return {"meeting_id": result.get("id"), "meeting_link": meeting_link}


def is_free(
    start: datetime,
    end: datetime,
    busy: List[Tuple[datetime, datetime]]
) -> bool:
    """Whether [start, end) overlaps none of the busy intervals."""
    return all(end <= busy_start or start >= busy_end for busy_start, busy_end in busy)

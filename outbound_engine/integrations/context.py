"""Historical context for a prospect built from the CRM activity log."""

import logging
from typing import Any, Dict, List

from outbound_engine.integrations.base import NO_CONTEXT_AVAILABLE
from outbound_engine.integrations.crm import SupabaseCRMService

logger = logging.getLogger(__name__)

HISTORY_LIMIT = 5


class ActivityHistoryContextService:
    """Summarizes a prospect's recent activities into a short text block."""

    def __init__(self, crm: SupabaseCRMService, limit: int = HISTORY_LIMIT):
        self._crm = crm
        self._limit = limit

    async def get_historical_context(self, prospect_id: str) -> str:
        activities = await self._crm.get_activities(prospect_id, limit=self._limit)
        if not activities:
            return NO_CONTEXT_AVAILABLE
        return summarize_activities(activities)


def summarize_activities(activities: List[Dict[str, Any]]) -> str:
    lines = []
    for activity in activities:
        when = str(activity.get("timestamp") or "unknown date")[:10]
        kind = activity.get("activity_type") or "activity"
        outcome = activity.get("outcome") or "no outcome"
        line = f"- {when} {kind}: {outcome}"
        if activity.get("notes"):
            line += f" ({activity['notes']})"
        lines.append(line)
    return "\n".join(lines)

"""Typed parameters and function-calling schemas for the call agent's tools."""

from datetime import datetime
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field

from outbound_engine.models import EndCallReason, ToolName


class CheckAvailabilityParams(BaseModel):
    """Parameters for check_calendar_availability."""
    preferred_dates: List[datetime] = Field(..., min_length=1)
    duration_minutes: int = Field(30, gt=0, le=240)


class BookMeetingParams(BaseModel):
    """Parameters for book_meeting."""
    meeting_time: datetime = Field(..., alias="datetime")
    prospect_email: str
    meeting_type: str
    notes: Optional[str] = None

    class Config:
        populate_by_name = True


class EndCallParams(BaseModel):
    """Parameters for end_call."""
    reason: EndCallReason
    follow_up_action: str
    callback_datetime: Optional[datetime] = None


class QualificationParams(BaseModel):
    """Parameters for update_qualification_status."""
    budget_confirmed: Optional[bool] = None
    authority_confirmed: Optional[bool] = None
    need_identified: Optional[bool] = None
    timeline_discussed: Optional[bool] = None
    notes: Optional[str] = None


PARAMETER_MODELS = {
    ToolName.CHECK_CALENDAR_AVAILABILITY: CheckAvailabilityParams,
    ToolName.BOOK_MEETING: BookMeetingParams,
    ToolName.END_CALL: EndCallParams,
    ToolName.UPDATE_QUALIFICATION_STATUS: QualificationParams,
}

TOOL_DESCRIPTIONS = {
    ToolName.CHECK_CALENDAR_AVAILABILITY: "Check account manager availability for potential meeting times",
    ToolName.BOOK_MEETING: "Book a meeting after qualification is complete",
    ToolName.END_CALL: "End the call gracefully with appropriate follow-up action",
    ToolName.UPDATE_QUALIFICATION_STATUS: "Update BANT qualification status during discovery",
}

TOOL_SCHEMAS: Dict[ToolName, Dict[str, Any]] = {
    ToolName.CHECK_CALENDAR_AVAILABILITY: {
        "type": "object",
        "properties": {
            "preferred_dates": {
                "type": "array",
                "items": {"type": "string"},
                "description": "Array of preferred dates in ISO format",
            },
            "duration_minutes": {
                "type": "number",
                "description": "Meeting duration in minutes",
                "default": 30,
            },
        },
        "required": ["preferred_dates"],
    },
    ToolName.BOOK_MEETING: {
        "type": "object",
        "properties": {
            "datetime": {"type": "string", "description": "Meeting datetime in ISO format"},
            "prospect_email": {"type": "string", "description": "Prospect email address"},
            "meeting_type": {
                "type": "string",
                "description": "Type of meeting (demo, discovery, consultation)",
            },
            "notes": {
                "type": "string",
                "description": "Any specific topics or notes for the meeting",
            },
        },
        "required": ["datetime", "prospect_email", "meeting_type"],
    },
    ToolName.END_CALL: {
        "type": "object",
        "properties": {
            "reason": {
                "type": "string",
                "enum": [reason.value for reason in EndCallReason],
                "description": "Reason for ending call",
            },
            "follow_up_action": {
                "type": "string",
                "description": "What should happen next (send email, schedule callback, etc)",
            },
            "callback_datetime": {
                "type": "string",
                "description": "If callback requested, when to call back (ISO format)",
            },
        },
        "required": ["reason", "follow_up_action"],
    },
    ToolName.UPDATE_QUALIFICATION_STATUS: {
        "type": "object",
        "properties": {
            "budget_confirmed": {"type": "boolean"},
            "authority_confirmed": {"type": "boolean"},
            "need_identified": {"type": "boolean"},
            "timeline_discussed": {"type": "boolean"},
            "notes": {"type": "string"},
        },
    },
}


def function_definitions() -> List[Dict[str, Any]]:
    """All tools in OpenAI function-calling format."""
    return [
        {
            "type": "function",
            "function": {
                "name": tool.value,
                "description": TOOL_DESCRIPTIONS[tool],
                "parameters": TOOL_SCHEMAS[tool],
            },
        }
        for tool in ToolName
    ]

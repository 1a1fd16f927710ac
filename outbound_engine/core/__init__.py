"""Core module - Configuration and error taxonomy."""

from outbound_engine.core.config import get_settings, Settings, format_phone_number
from outbound_engine.core.errors import (
    OutboundEngineError,
    CampaignConfigError,
    CampaignNotFound,
    ScoringError,
    EnrichmentError,
    ToolError,
    UnknownTool,
    BookingNotPermitted,
    InvalidStageTransition,
    RemoteCallFailure,
    CallNotAnswered,
    CallTimeout,
    QueueExhausted,
)

__all__ = [
    "get_settings",
    "Settings",
    "format_phone_number",
    "OutboundEngineError",
    "CampaignConfigError",
    "CampaignNotFound",
    "ScoringError",
    "EnrichmentError",
    "ToolError",
    "UnknownTool",
    "BookingNotPermitted",
    "InvalidStageTransition",
    "RemoteCallFailure",
    "CallNotAnswered",
    "CallTimeout",
    "QueueExhausted",
]

"""Models package - All Pydantic models organized by domain."""

from outbound_engine.models.enums import (
    AccountStatus,
    InteractionType,
    ApproachStrategy,
    ConversationStage,
    CallStatus,
    RemoteStatus,
    CallOutcome,
    ToolName,
    EndCallReason,
    JobState,
    CampaignState,
    ActivityType,
)
from outbound_engine.models.prospect import (
    Prospect,
    Interaction,
    CRMData,
    EnrichmentData,
    ProspectInsights,
    ResearchContext,
    ProspectFilters,
)
from outbound_engine.models.call import (
    AccountManager,
    TimeSlot,
    QualificationData,
    ConversationState,
    CallContext,
    ToolInvocation,
    MeetingDetails,
    CallResult,
    RemoteCallStatus,
)
from outbound_engine.models.campaign import (
    CallHours,
    CampaignConfig,
    CallJob,
    LaunchResult,
    CampaignStats,
    ActivityRecord,
)

__all__ = [
    # Enums
    "AccountStatus",
    "InteractionType",
    "ApproachStrategy",
    "ConversationStage",
    "CallStatus",
    "RemoteStatus",
    "CallOutcome",
    "ToolName",
    "EndCallReason",
    "JobState",
    "CampaignState",
    "ActivityType",
    # Prospect models
    "Prospect",
    "Interaction",
    "CRMData",
    "EnrichmentData",
    "ProspectInsights",
    "ResearchContext",
    "ProspectFilters",
    # Call models
    "AccountManager",
    "TimeSlot",
    "QualificationData",
    "ConversationState",
    "CallContext",
    "ToolInvocation",
    "MeetingDetails",
    "CallResult",
    "RemoteCallStatus",
    # Campaign models
    "CallHours",
    "CampaignConfig",
    "CallJob",
    "LaunchResult",
    "CampaignStats",
    "ActivityRecord",
]

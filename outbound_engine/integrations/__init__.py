"""Integrations module - External service connectors."""

from outbound_engine.integrations.base import (
    CRMCollaborator,
    EnrichmentCollaborator,
    TelephonyCollaborator,
    SemanticContextCollaborator,
    CalendarCollaborator,
    NO_CONTEXT_AVAILABLE,
)
from outbound_engine.integrations.crm import SupabaseCRMService
from outbound_engine.integrations.enrichment import ApolloEnrichmentService
from outbound_engine.integrations.telephony import VapiTelephonyService
from outbound_engine.integrations.calendar import GoogleCalendarService
from outbound_engine.integrations.context import ActivityHistoryContextService

__all__ = [
    # Contracts
    "CRMCollaborator",
    "EnrichmentCollaborator",
    "TelephonyCollaborator",
    "SemanticContextCollaborator",
    "CalendarCollaborator",
    "NO_CONTEXT_AVAILABLE",
    # Adapters
    "SupabaseCRMService",
    "ApolloEnrichmentService",
    "VapiTelephonyService",
    "GoogleCalendarService",
    "ActivityHistoryContextService",
]

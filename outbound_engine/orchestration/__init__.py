"""Orchestration module - Campaign lifecycle, job queue and worker pool."""

from outbound_engine.orchestration.queue import JobQueue, InMemoryJobQueue
from outbound_engine.orchestration.supabase_queue import SupabaseJobQueue
from outbound_engine.orchestration.orchestrator import CampaignOrchestrator, CampaignRun

__all__ = [
    "JobQueue",
    "InMemoryJobQueue",
    "SupabaseJobQueue",
    "CampaignOrchestrator",
    "CampaignRun",
]

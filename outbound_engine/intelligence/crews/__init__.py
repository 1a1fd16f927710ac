"""Crew orchestrators for multi-agent workflows."""

from outbound_engine.intelligence.crews.insights import InsightCrew

__all__ = [
    "InsightCrew",
]

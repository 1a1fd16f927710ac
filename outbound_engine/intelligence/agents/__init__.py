"""Agent factories for CrewAI agents."""

from outbound_engine.intelligence.agents.insights import InsightsAgentFactory

__all__ = [
    "InsightsAgentFactory",
]

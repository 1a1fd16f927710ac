"""Intelligence module - Scoring, research and AI insight crews."""

from outbound_engine.intelligence.scoring import score
from outbound_engine.intelligence.research import ResearchAgent
from outbound_engine.intelligence.crews.insights import InsightCrew

__all__ = [
    "score",
    "ResearchAgent",
    "InsightCrew",
]

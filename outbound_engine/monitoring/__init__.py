"""Monitoring module - Call polling and transcript heuristics."""

from outbound_engine.monitoring.heuristics import (
    analyze_sentiment,
    extract_objections,
    split_utterances,
    is_prospect_line,
    POSITIVE_PHRASES,
    NEGATIVE_PHRASES,
    OBJECTION_PATTERNS,
)
from outbound_engine.monitoring.call_monitor import CallMonitor, merge_tool_invocations

__all__ = [
    # Heuristics
    "analyze_sentiment",
    "extract_objections",
    "split_utterances",
    "is_prospect_line",
    "POSITIVE_PHRASES",
    "NEGATIVE_PHRASES",
    "OBJECTION_PATTERNS",
    # Monitor
    "CallMonitor",
    "merge_tool_invocations",
]

"""Scheduling module - Contact timing heuristics."""

from outbound_engine.scheduling.timing import next_contact_time, resolve_timezone, preferred_hour

__all__ = [
    "next_contact_time",
    "resolve_timezone",
    "preferred_hour",
]

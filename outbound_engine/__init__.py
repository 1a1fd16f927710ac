"""Outbound Engine - campaign scheduling and call execution for AI outbound sales."""

__version__ = "1.0.0"

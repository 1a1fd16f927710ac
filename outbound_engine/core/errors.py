"""Exception taxonomy for the campaign pipeline."""

from typing import Optional


class OutboundEngineError(Exception):
    """Base class for all pipeline errors."""


class CampaignConfigError(OutboundEngineError):
    """Invalid campaign configuration. Fatal to launch."""


class CampaignNotFound(OutboundEngineError):
    """No campaign with the given id was launched on this orchestrator."""


class ScoringError(OutboundEngineError):
    """Malformed signal input for a single prospect."""


class EnrichmentError(OutboundEngineError):
    """Enrichment failed for a single prospect."""

    def __init__(self, prospect_id: str, message: str):
        self.prospect_id = prospect_id
        super().__init__(f"Enrichment failed for {prospect_id}: {message}")


class ToolError(OutboundEngineError):
    """Base class for call-agent tool failures."""


class UnknownTool(ToolError):
    """A tool name outside the registry was invoked."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Tool not found: {name}")


class BookingNotPermitted(ToolError):
    """book_meeting was invoked before qualification."""


class InvalidStageTransition(OutboundEngineError):
    """A conversation stage change outside the allowed graph."""

    def __init__(self, current: str, target: str):
        self.current = current
        self.target = target
        super().__init__(f"Cannot move conversation from {current} to {target}")


class RemoteCallFailure(OutboundEngineError):
    """Network or provider error while placing or monitoring a call."""

    def __init__(self, message: str, call_id: Optional[str] = None):
        self.call_id = call_id
        super().__init__(message)


class CallNotAnswered(RemoteCallFailure):
    """The remote party never picked up."""


class CallTimeout(OutboundEngineError):
    """A call did not reach a terminal state before its deadline."""

    def __init__(self, call_id: str, timeout: float):
        self.call_id = call_id
        self.timeout = timeout
        super().__init__(f"Call {call_id} timed out after {timeout:.0f}s")


class QueueExhausted(OutboundEngineError):
    """A job failed on every allowed attempt."""

    def __init__(self, job_id: str, attempts: int, last_error: Optional[str] = None):
        self.job_id = job_id
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(
            f"Job {job_id} failed after {attempts} attempts: {last_error or 'unknown error'}"
        )

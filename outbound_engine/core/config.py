"""Configuration management for the Outbound Engine."""

from functools import lru_cache
from typing import Any, Dict, List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # ===========================================
    # Supabase Configuration (CRM + activity log)
    # ===========================================
    SUPABASE_URL: str = Field(default="", description="Supabase project URL")
    SUPABASE_KEY: str = Field(default="", description="Supabase service key")
    PROSPECTS_TABLE: str = Field(default="prospects", description="Prospect table name")
    ACTIVITIES_TABLE: str = Field(default="prospect_activities", description="Activity log table name")
    OPPORTUNITIES_TABLE: str = Field(default="opportunities", description="Opportunity stage table name")
    JOBS_TABLE: str = Field(default="call_jobs", description="Durable call job queue table name")

    # ===========================================
    # OpenAI Configuration (for CrewAI)
    # ===========================================
    OPENAI_API_KEY: str = Field(default="", description="OpenAI API key")
    OPENAI_MODEL: str = Field(default="gpt-4o", description="Model for CrewAI agents")

    # ===========================================
    # Vapi Configuration
    # ===========================================
    VAPI_API_KEY: str = Field(default="", description="Vapi API key")
    VAPI_PHONE_NUMBER_ID: str = Field(default="", description="Outbound phone number ID")
    VAPI_API_URL: str = Field(default="https://api.vapi.ai", description="Vapi API base URL")
    VAPI_MAX_CALL_SECONDS: int = Field(default=600, description="Hard cap on call length")

    # ===========================================
    # Apollo Enrichment Configuration
    # ===========================================
    APOLLO_API_KEY: str = Field(default="", description="Apollo API key")
    APOLLO_API_URL: str = Field(default="https://api.apollo.io/v1", description="Apollo API base URL")

    # ===========================================
    # Google Service Account Configuration
    # ===========================================
    GOOGLE_CREDENTIALS_PATH: str = Field(
        default="./credentials/google-service-account.json",
        description="Path to Google service account JSON"
    )
    GOOGLE_CALENDAR_ID: str = Field(default="", description="Calendar ID to book meetings on")

    # ===========================================
    # Server Configuration
    # ===========================================
    WEBHOOK_BASE_URL: str = Field(
        default="http://localhost:8000",
        description="Base URL the telephony provider calls back for tool invocations"
    )
    DEBUG: bool = Field(default=False, description="Debug mode")

    # ===========================================
    # Pipeline Tuning
    # ===========================================
    WORKER_CONCURRENCY: int = Field(default=5, ge=1, description="Concurrent call workers")
    MAX_CALL_ATTEMPTS: int = Field(default=3, ge=1, description="Total attempts per job")
    RETRY_BACKOFF_BASE_SECONDS: float = Field(
        default=3600.0,
        description="Base of the exponential retry backoff"
    )
    CALL_POLL_INTERVAL_SECONDS: float = Field(default=5.0, description="Call status poll interval")
    CALL_TIMEOUT_SECONDS: float = Field(default=600.0, description="Per-call completion timeout")
    QUEUE_IDLE_POLL_SECONDS: float = Field(
        default=1.0,
        description="Max time a worker sleeps before re-checking delayed jobs"
    )
    RESEARCH_BATCH_SIZE: int = Field(default=10, ge=1, description="Prospects researched concurrently")
    CALL_OBJECTIVE: str = Field(default="book a discovery meeting", description="Objective given to the agent")
    AGENT_NAME: str = Field(default="Katie", description="Persona name used on calls")
    COMPANY_NAME: str = Field(default="our team", description="Company the agent represents")

    # ===========================================
    # Account Managers
    # ===========================================
    ACCOUNT_MANAGERS: List[Dict[str, Any]] = Field(
        default_factory=lambda: [
            {
                "id": "am-001",
                "name": "John Smith",
                "email": "john.smith@company.com",
                "specialty": "Enterprise Sales",
                "calendar_link": "https://calendar.com/john-smith",
            }
        ],
        description="Account manager roster used for meeting assignment"
    )

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


def format_phone_number(phone: Optional[str]) -> Optional[str]:
    """
    Format phone number to E.164 for the telephony provider.

    Args:
        phone: Raw phone number string

    Returns:
        Formatted phone number or None
    """
    if not phone:
        return None

    raw = str(phone).strip()
    digits = "".join(c for c in raw if c.isdigit())

    if not digits:
        return None

    # Already international
    if raw.startswith("+") and len(digits) >= 8:
        return f"+{digits}"

    if len(digits) == 10:
        return f"+1{digits}"
    elif len(digits) == 11 and digits.startswith("1"):
        return f"+{digits}"
    elif len(digits) >= 10:
        return f"+1{digits[-10:]}"
    else:
        return None


@lru_cache()
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings()

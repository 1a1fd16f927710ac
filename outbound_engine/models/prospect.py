"""Prospect-related models - CRM signals, enrichment and research output."""

from datetime import datetime
from typing import Optional, List, Dict, Any
from pydantic import BaseModel, Field

from outbound_engine.models.enums import AccountStatus, ApproachStrategy, InteractionType


class Prospect(BaseModel):
    """A contact loaded from the CRM for a campaign run."""
    id: str = Field(..., description="Internal prospect ID")
    crm_id: str = Field(..., description="ID of the record in the CRM")
    name: str = Field(..., description="Contact name")
    email: str = Field(..., description="Contact email")
    phone: str = Field(..., description="Contact phone number")
    company: str = Field(..., description="Company name")
    role: str = Field("", description="Job title")
    timezone: str = Field("UTC", description="IANA timezone of the contact")
    linkedin_url: Optional[str] = Field(None, description="LinkedIn profile URL")

    class Config:
        frozen = True


class Interaction(BaseModel):
    """A past touchpoint with the prospect."""
    id: str = Field(..., description="Interaction ID")
    type: InteractionType = Field(..., description="Channel of the interaction")
    date: datetime = Field(..., description="When it happened")
    summary: str = Field("", description="Short summary")
    outcome: Optional[str] = Field(None, description="Recorded outcome")
    sentiment: Optional[float] = Field(None, description="Sentiment in [0, 1]")


class CRMData(BaseModel):
    """Structured CRM signals for a prospect."""
    account_status: AccountStatus = Field(AccountStatus.NEW, description="Account status")
    past_interactions: List[Interaction] = Field(
        default_factory=list,
        description="Past interactions, most recent first"
    )
    deal_value: Optional[float] = Field(None, description="Open deal value in USD")
    industry: str = Field("Unknown", description="Industry")
    company_size: Optional[int] = Field(None, description="Headcount from the CRM")
    last_contact_date: Optional[datetime] = Field(None, description="Last contact date")


class EnrichmentData(BaseModel):
    """Signals gathered from external enrichment providers."""
    company_size: int = Field(0, description="Estimated employee count")
    recent_news: List[str] = Field(default_factory=list, description="Recent headlines")
    funding_stage: str = Field("Unknown", description="Latest funding stage")
    tech_stack: List[str] = Field(default_factory=list, description="Known technologies")
    employee_growth_rate: Optional[float] = Field(None, description="Headcount growth, percent")
    revenue_estimate: Optional[str] = Field(None, description="Revenue band")


class ProspectInsights(BaseModel):
    """Synthesized call preparation from the insight crew."""
    talking_points: List[str] = Field(
        default_factory=list,
        description="3-5 key talking points tailored to this prospect"
    )
    pain_points: List[str] = Field(
        default_factory=list,
        description="Likely pain points based on role, industry and company stage"
    )
    approach_strategy: ApproachStrategy = Field(
        ApproachStrategy.CONSULTATIVE,
        description="Best approach strategy for this prospect"
    )
    objection_strategies: Dict[str, str] = Field(
        default_factory=dict,
        description="Likely objections mapped to handling strategies"
    )
    reasoning: str = Field("", description="Brief reasoning for recommendations")


class ResearchContext(BaseModel):
    """Everything known about a prospect before dialing."""
    prospect: Prospect
    crm_data: CRMData
    enrichment_data: EnrichmentData
    talking_points: List[str] = Field(default_factory=list)
    pain_points: List[str] = Field(default_factory=list)
    approach_strategy: ApproachStrategy = ApproachStrategy.CONSULTATIVE
    objection_strategies: Dict[str, str] = Field(default_factory=dict)
    success_probability: int = Field(..., ge=0, le=100, description="Success probability 0-100")

    class Config:
        frozen = True


class ProspectFilters(BaseModel):
    """Criteria used to pull prospects from the CRM."""
    industries: Optional[List[str]] = None
    company_size_min: Optional[int] = None
    company_size_max: Optional[int] = None
    roles: Optional[List[str]] = None
    account_status: Optional[List[str]] = None
    custom_query: Optional[Dict[str, Any]] = None

"""Insights Agent for pre-call preparation."""

import logging
from crewai import Agent, Task

from outbound_engine.models import CRMData, EnrichmentData, Prospect, ProspectInsights

logger = logging.getLogger(__name__)


class InsightsAgentFactory:
    """Factory for creating the Sales Insights Agent."""

    @staticmethod
    def create() -> Agent:
        """Create an agent that turns CRM and enrichment signals into call prep."""
        return Agent(
            role="Sales Intelligence Analyst",
            goal="""Turn CRM history and company signals into concrete talking
            points, pain points and objection strategies for an outbound call.""",
            backstory="""You are a veteran SDR team lead who has reviewed
            thousands of account plans. You know that a cold call lands when the
            opener references something real about the prospect's business.

            Your preparation approach:
            - Start from what the CRM already knows about the relationship
            - Use funding, growth and news signals to find timely hooks
            - Anticipate objections from the prospect's role and company stage
            - Pick the approach that fits where the account is today

            You write short, speakable guidance for a voice agent.""",
            verbose=True,
            allow_delegation=False,
            memory=True
        )

    @staticmethod
    def create_insights_task(
        agent: Agent,
        prospect: Prospect,
        crm_data: CRMData,
        enrichment: EnrichmentData
    ) -> Task:
        """Create the insight synthesis task."""
        interactions = "\n".join(
            f"        - {i.date.date()} {i.type.value}: {i.summary or 'No summary'}"
            for i in crm_data.past_interactions[:5]
        ) or "        - None"

        description = f"""
        Prepare an outbound call to {prospect.name}, {prospect.role or 'unknown role'} at {prospect.company}.

        **CRM Data:**
        - Account Status: {crm_data.account_status.value}
        - Industry: {crm_data.industry}
        - Deal Value: {crm_data.deal_value if crm_data.deal_value is not None else 'None'}
        - Past Interactions:
{interactions}

        **Company Signals:**
        - Company Size: {enrichment.company_size}
        - Funding Stage: {enrichment.funding_stage}
        - Employee Growth: {enrichment.employee_growth_rate if enrichment.employee_growth_rate is not None else 'Unknown'}
        - Tech Stack: {', '.join(enrichment.tech_stack[:10]) if enrichment.tech_stack else 'Unknown'}
        - Recent News: {'; '.join(enrichment.recent_news[:3]) if enrichment.recent_news else 'None found'}

        **Produce:**
        1. talking_points: 3-5 key talking points tailored to this prospect
        2. pain_points: likely pain points based on role, industry and company stage
        3. approach_strategy: one of consultative, direct, educational
        4. objection_strategies: likely objections mapped to handling strategies
        5. reasoning: brief reasoning for the recommendations
        """

        return Task(
            description=description,
            expected_output="Structured JSON matching ProspectInsights schema",
            agent=agent,
            output_pydantic=ProspectInsights
        )

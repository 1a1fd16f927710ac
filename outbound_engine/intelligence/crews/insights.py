"""Insight Crew - LLM call preparation with a deterministic fallback."""

import logging
import asyncio
from typing import Optional
from crewai import Agent, Crew, Process

from outbound_engine.intelligence.agents.insights import InsightsAgentFactory
from outbound_engine.models import (
    AccountStatus,
    ApproachStrategy,
    CRMData,
    EnrichmentData,
    Prospect,
    ProspectInsights,
)

logger = logging.getLogger(__name__)

DEFAULT_OBJECTION_STRATEGIES = {
    "Not interested": "Acknowledge, ask what they are focused on this quarter, and offer a short follow-up.",
    "Don't have time": "Offer a specific 15 minute slot later this week or a callback.",
    "Already have a solution": "Ask what they would improve about it and share one relevant outcome.",
    "Too expensive": "Ask how they measure ROI today and focus on the cost of the current problem.",
}


class InsightCrew:
    """
    Single-agent crew that synthesizes ProspectInsights.

    The agent is built on first use, so constructing the crew needs no
    LLM credentials. Uses asyncio.to_thread() around the blocking kickoff.
    """

    def __init__(self):
        self._agent: Optional[Agent] = None

    @property
    def agent(self) -> Agent:
        if self._agent is None:
            self._agent = InsightsAgentFactory.create()
            logger.info("Insight crew initialized")
        return self._agent

    async def run_async(
        self,
        prospect: Prospect,
        crm_data: CRMData,
        enrichment: EnrichmentData
    ) -> ProspectInsights:
        """Execute the crew without blocking the event loop."""
        return await asyncio.to_thread(self.run, prospect, crm_data, enrichment)

    def run(
        self,
        prospect: Prospect,
        crm_data: CRMData,
        enrichment: EnrichmentData
    ) -> ProspectInsights:
        """
        Execute the crew (synchronous).

        Falls back to rule-based insights when the agent fails or returns
        no structured output.
        """
        try:
            logger.info(f"Running Insights Agent for {prospect.name} at {prospect.company}")

            task = InsightsAgentFactory.create_insights_task(
                self.agent,
                prospect,
                crm_data,
                enrichment
            )

            crew = Crew(
                agents=[self.agent],
                tasks=[task],
                process=Process.sequential,
                verbose=True,
                memory=True
            )

            crew.kickoff()

            if task.output and task.output.pydantic:
                insights = task.output.pydantic
                logger.info(f"Insights completed - Approach: {insights.approach_strategy.value}")
                return insights

            logger.warning("Insights returned no structured output")
            return self._get_fallback_insights(prospect, crm_data, enrichment)

        except Exception as e:
            logger.error(f"Insights Agent failed: {e}")
            return self._get_fallback_insights(prospect, crm_data, enrichment)

    def _get_fallback_insights(
        self,
        prospect: Prospect,
        crm_data: CRMData,
        enrichment: EnrichmentData
    ) -> ProspectInsights:
        """Create rule-based insights when the agent fails."""
        talking_points = []
        if enrichment.recent_news:
            talking_points.append(f"Recent news: {enrichment.recent_news[0]}")
        if "Series" in enrichment.funding_stage or "Growth" in enrichment.funding_stage:
            talking_points.append(f"Scaling after their {enrichment.funding_stage} round")
        if enrichment.employee_growth_rate is not None and enrichment.employee_growth_rate > 20:
            talking_points.append(
                f"Headcount up {enrichment.employee_growth_rate:.0f}% - processes under pressure"
            )
        talking_points.append(f"How {prospect.company} approaches {crm_data.industry} challenges today")

        if crm_data.account_status == AccountStatus.CONTACTED:
            strategy = ApproachStrategy.CONSULTATIVE
        elif crm_data.account_status == AccountStatus.QUALIFIED:
            strategy = ApproachStrategy.DIRECT
        else:
            strategy = ApproachStrategy.EDUCATIONAL

        return ProspectInsights(
            talking_points=talking_points,
            pain_points=[
                f"Scaling {crm_data.industry} operations efficiently",
                "Limited time to evaluate new tools",
            ],
            approach_strategy=strategy,
            objection_strategies=dict(DEFAULT_OBJECTION_STRATEGIES),
            reasoning="Fallback insights - AI synthesis unavailable"
        )

"""Research Agent - gathers signals for each prospect and scores it."""

import asyncio
import logging
from datetime import datetime
from typing import Callable, List, Optional

from outbound_engine.core.config import get_settings
from outbound_engine.integrations.base import CRMCollaborator, EnrichmentCollaborator
from outbound_engine.intelligence.crews.insights import InsightCrew
from outbound_engine.intelligence.scoring import score
from outbound_engine.models import Prospect, ResearchContext

logger = logging.getLogger(__name__)


class ResearchAgent:
    """
    Builds a ResearchContext per prospect.

    CRM data and enrichment are fetched concurrently, the insight crew
    synthesizes talking points, and the scorer produces the success
    probability.
    """

    def __init__(
        self,
        crm: CRMCollaborator,
        enrichment: EnrichmentCollaborator,
        insights=None,
        settings=None,
        clock: Optional[Callable[[], datetime]] = None
    ):
        self._crm = crm
        self._enrichment = enrichment
        self._insights = insights
        self._settings = settings
        self._clock = clock

    @property
    def settings(self):
        """Lazy load settings."""
        if self._settings is None:
            self._settings = get_settings()
        return self._settings

    @property
    def insights(self):
        if self._insights is None:
            self._insights = InsightCrew()
        return self._insights

    async def analyze(self, prospect: Prospect) -> ResearchContext:
        """
        Research and score a single prospect.

        Raises:
            EnrichmentError: Enrichment provider failed for this prospect
            ScoringError: CRM or enrichment signals are malformed
        """
        crm_data, enrichment = await asyncio.gather(
            self._crm.fetch_prospect_data(prospect.crm_id),
            self._enrichment.enrich(prospect),
        )

        insights = await self.insights.run_async(prospect, crm_data, enrichment)

        as_of = self._clock() if self._clock else None
        probability = score(crm_data, enrichment, insights.approach_strategy, as_of=as_of)

        logger.info(f"Researched {prospect.name} ({prospect.company}): probability {probability}")
        return ResearchContext(
            prospect=prospect,
            crm_data=crm_data,
            enrichment_data=enrichment,
            talking_points=insights.talking_points,
            pain_points=insights.pain_points,
            approach_strategy=insights.approach_strategy,
            objection_strategies=insights.objection_strategies,
            success_probability=probability,
        )

    async def batch_analyze(self, prospects: List[Prospect]) -> List[ResearchContext]:
        """
        Research prospects concurrently in batches.

        A failure drops only that prospect; results keep the input order.
        """
        batch_size = self.settings.RESEARCH_BATCH_SIZE
        results: List[ResearchContext] = []

        for start in range(0, len(prospects), batch_size):
            batch = prospects[start:start + batch_size]
            outcomes = await asyncio.gather(
                *(self.analyze(prospect) for prospect in batch),
                return_exceptions=True,
            )
            for prospect, outcome in zip(batch, outcomes):
                if isinstance(outcome, ResearchContext):
                    results.append(outcome)
                elif isinstance(outcome, Exception):
                    logger.error(f"Failed to research prospect {prospect.id}: {outcome}")
                else:
                    raise outcome

        logger.info(f"Researched {len(results)}/{len(prospects)} prospects")
        return results

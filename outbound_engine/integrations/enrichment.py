"""Apollo integration for company enrichment."""

import logging
from typing import Any, Dict, List, Optional
import httpx

from outbound_engine.core.config import get_settings
from outbound_engine.core.errors import EnrichmentError
from outbound_engine.models import EnrichmentData, Prospect

logger = logging.getLogger(__name__)


class ApolloEnrichmentService:
    """
    Service for Apollo organization enrichment.

    Looks up the prospect's company by domain (from the email address)
    or by name and maps the organization record onto EnrichmentData.
    """

    def __init__(self, settings=None, transport: Optional[httpx.AsyncBaseTransport] = None):
        """Initialize service with settings."""
        self._settings = settings
        self._transport = transport

    @property
    def settings(self):
        """Lazy load settings."""
        if self._settings is None:
            self._settings = get_settings()
        return self._settings

    async def enrich(self, prospect: Prospect) -> EnrichmentData:
        """
        Enrich a prospect's company via Apollo.

        Args:
            prospect: Prospect to enrich

        Returns:
            EnrichmentData for the prospect's company

        Raises:
            EnrichmentError: Provider unreachable or returned no organization
        """
        if not self.settings.APOLLO_API_KEY:
            raise EnrichmentError(prospect.id, "Apollo API key not configured")

        params: Dict[str, Any] = {"name": prospect.company}
        domain = self._email_domain(prospect.email)
        if domain:
            params["domain"] = domain

        headers = {
            "X-Api-Key": self.settings.APOLLO_API_KEY,
            "Content-Type": "application/json",
            "Cache-Control": "no-cache",
        }

        try:
            async with httpx.AsyncClient(timeout=30.0, transport=self._transport) as client:
                response = await client.post(
                    f"{self.settings.APOLLO_API_URL}/organizations/enrich",
                    json=params,
                    headers=headers
                )
        except httpx.TimeoutException as e:
            logger.error(f"Apollo API timeout for {prospect.company}")
            raise EnrichmentError(prospect.id, "Apollo API timeout") from e
        except httpx.HTTPError as e:
            logger.error(f"Apollo API error: {e}")
            raise EnrichmentError(prospect.id, str(e)) from e

        if response.status_code != 200:
            logger.error(f"Apollo API error: {response.status_code} - {response.text}")
            raise EnrichmentError(prospect.id, f"Apollo returned {response.status_code}")

        organization = response.json().get("organization")
        if not organization:
            raise EnrichmentError(prospect.id, f"No organization found for {prospect.company}")

        data = self._to_enrichment(organization)
        logger.info(
            f"Enriched {prospect.company}: size={data.company_size}, funding={data.funding_stage}"
        )
        return data

    @staticmethod
    def _email_domain(email: str) -> Optional[str]:
        if not email or "@" not in email:
            return None
        return email.split("@")[-1].lower()

    @staticmethod
    def _to_enrichment(organization: Dict[str, Any]) -> EnrichmentData:
        technologies: List[str] = [
            tech.get("name") if isinstance(tech, dict) else str(tech)
            for tech in organization.get("current_technologies") or organization.get("technologies") or []
        ]
        news: List[str] = [
            article.get("title") for article in organization.get("news_articles") or []
            if article.get("title")
        ]

        growth = organization.get("employee_growth_rate")
        if growth is None:
            twelve_month = organization.get("organization_headcount_twelve_month_growth")
            growth = twelve_month * 100 if twelve_month is not None else None

        return EnrichmentData(
            company_size=organization.get("estimated_num_employees") or 0,
            recent_news=news[:5],
            funding_stage=organization.get("latest_funding_stage") or organization.get("funding_stage") or "Unknown",
            tech_stack=[tech for tech in technologies if tech],
            employee_growth_rate=growth,
            revenue_estimate=organization.get("annual_revenue_printed") or organization.get("estimated_annual_revenue"),
        )

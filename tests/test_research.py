"""Tests for prospect research and the insight crew."""

import pytest
from unittest.mock import MagicMock, patch

from outbound_engine.intelligence.crews.insights import DEFAULT_OBJECTION_STRATEGIES, InsightCrew
from outbound_engine.intelligence.scoring import score
from outbound_engine.models import (
    AccountStatus,
    ApproachStrategy,
    CRMData,
    EnrichmentData,
    ProspectInsights,
)


class TestResearchAgent:
    """Tests for ResearchAgent."""

    @pytest.mark.asyncio
    async def test_analyze_builds_scored_context(self, make_research_agent, make_prospect, fake_crm, fake_insights, clock):
        fake_crm.crm_data["crm-p1"] = CRMData(account_status=AccountStatus.QUALIFIED, industry="Fintech")
        agent = make_research_agent()

        context = await agent.analyze(make_prospect("p1"))

        assert context.prospect.id == "p1"
        assert context.crm_data.industry == "Fintech"
        assert context.talking_points == ["Growing fast"]
        assert context.success_probability == score(
            context.crm_data,
            context.enrichment_data,
            fake_insights.insights.approach_strategy,
            as_of=clock(),
        )
        assert fake_insights.calls == 1

    @pytest.mark.asyncio
    async def test_batch_drops_failures_and_keeps_order(self, make_research_agent, make_prospect):
        agent = make_research_agent(failing={"p2", "p4"})
        prospects = [make_prospect(f"p{i}") for i in range(1, 6)]

        contexts = await agent.batch_analyze(prospects)

        assert [context.prospect.id for context in contexts] == ["p1", "p3", "p5"]

    @pytest.mark.asyncio
    async def test_batch_with_no_prospects(self, make_research_agent):
        assert await make_research_agent().batch_analyze([]) == []

    @pytest.mark.asyncio
    async def test_malformed_signals_drop_prospect(self, make_research_agent, make_prospect, fake_crm):
        fake_crm.crm_data["crm-p1"] = CRMData(deal_value=-10)
        agent = make_research_agent()

        contexts = await agent.batch_analyze([make_prospect("p1"), make_prospect("p2")])

        assert [context.prospect.id for context in contexts] == ["p2"]


class TestInsightCrew:
    """The crew falls back to rule-based insights when the LLM path fails."""

    @pytest.fixture
    def factory(self):
        with patch("outbound_engine.intelligence.crews.insights.InsightsAgentFactory") as factory:
            factory.create.return_value = MagicMock(name="agent")
            yield factory

    def test_fallback_on_kickoff_error(self, factory, make_prospect):
        crm = CRMData(account_status=AccountStatus.CONTACTED, industry="Logistics")
        enrichment = EnrichmentData(
            funding_stage="Series B",
            recent_news=["Acme opens Berlin office"],
            employee_growth_rate=35,
        )

        with patch("outbound_engine.intelligence.crews.insights.Crew") as crew_cls:
            crew_cls.return_value.kickoff.side_effect = RuntimeError("LLM unavailable")
            insights = InsightCrew().run(make_prospect("p1"), crm, enrichment)

        assert insights.approach_strategy == ApproachStrategy.CONSULTATIVE
        assert insights.talking_points[0] == "Recent news: Acme opens Berlin office"
        assert "Scaling after their Series B round" in insights.talking_points
        assert insights.objection_strategies == DEFAULT_OBJECTION_STRATEGIES
        assert "Logistics" in insights.pain_points[0]

    @pytest.mark.parametrize("status,strategy", [
        (AccountStatus.QUALIFIED, ApproachStrategy.DIRECT),
        (AccountStatus.NEW, ApproachStrategy.EDUCATIONAL),
        (AccountStatus.UNQUALIFIED, ApproachStrategy.EDUCATIONAL),
    ])
    def test_fallback_strategy_by_status(self, status, strategy, make_prospect):
        insights = InsightCrew()._get_fallback_insights(
            make_prospect("p1"), CRMData(account_status=status), EnrichmentData()
        )
        assert insights.approach_strategy == strategy

    def test_structured_output_returned(self, factory, make_prospect):
        expected = ProspectInsights(talking_points=["Hiring 40 engineers"], approach_strategy=ApproachStrategy.DIRECT)
        task = MagicMock()
        task.output.pydantic = expected
        factory.create_insights_task.return_value = task

        with patch("outbound_engine.intelligence.crews.insights.Crew") as crew_cls:
            insights = InsightCrew().run(make_prospect("p1"), CRMData(), EnrichmentData())

        assert insights is expected
        crew_cls.return_value.kickoff.assert_called_once()

    def test_missing_output_falls_back(self, factory, make_prospect):
        task = MagicMock()
        task.output = None
        factory.create_insights_task.return_value = task

        with patch("outbound_engine.intelligence.crews.insights.Crew"):
            insights = InsightCrew().run(make_prospect("p1"), CRMData(), EnrichmentData())

        assert insights.reasoning.startswith("Fallback insights")

    @pytest.mark.asyncio
    async def test_run_async_uses_thread(self, factory, make_prospect):
        crew = InsightCrew()
        with patch.object(crew, "run", return_value=ProspectInsights()) as run:
            await crew.run_async(make_prospect("p1"), CRMData(), EnrichmentData())

        run.assert_called_once()

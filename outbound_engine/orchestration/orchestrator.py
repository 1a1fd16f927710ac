"""Campaign Orchestrator - launches campaigns and runs the call worker pool."""

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, List, Optional

from outbound_engine.agents.call_agent import CallAgent, CallSession
from outbound_engine.core.config import get_settings
from outbound_engine.core.errors import CampaignNotFound, QueueExhausted
from outbound_engine.integrations.base import (
    CRMCollaborator,
    NO_CONTEXT_AVAILABLE,
    SemanticContextCollaborator,
    TelephonyCollaborator,
)
from outbound_engine.intelligence.research import ResearchAgent
from outbound_engine.models import (
    AccountManager,
    ActivityRecord,
    ActivityType,
    CallContext,
    CallJob,
    CallResult,
    CampaignConfig,
    CampaignState,
    CampaignStats,
    LaunchResult,
    ResearchContext,
)
from outbound_engine.monitoring.call_monitor import CallMonitor
from outbound_engine.orchestration.queue import InMemoryJobQueue, JobQueue
from outbound_engine.scheduling.timing import next_contact_time

logger = logging.getLogger(__name__)

MEETING_SCHEDULED_STAGE = "Meeting Scheduled"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CampaignRun:
    """Bookkeeping for one launched campaign."""

    def __init__(self, config: CampaignConfig):
        self.config = config
        self.state = CampaignState.CREATED
        self.total_prospects = 0
        self.queued_calls = 0


class CampaignOrchestrator:
    """
    Top-level control loop of the outbound pipeline.

    launch() researches, filters and schedules prospects onto the job
    queue. A pool of worker tasks pulls ready jobs, places the call through
    the telephony collaborator, monitors it to completion and reports every
    terminal job state to the CRM exactly once.
    """

    def __init__(
        self,
        crm: CRMCollaborator,
        research: ResearchAgent,
        agent: CallAgent,
        telephony: TelephonyCollaborator,
        monitor: Optional[CallMonitor] = None,
        context_service: Optional[SemanticContextCollaborator] = None,
        queue: Optional[JobQueue] = None,
        timing: Callable[..., datetime] = next_contact_time,
        account_managers: Optional[List[AccountManager]] = None,
        settings=None,
        clock: Optional[Callable[[], datetime]] = None
    ):
        self._settings = settings
        self._clock = clock or _utcnow
        self.crm = crm
        self.research = research
        self.agent = agent
        self.telephony = telephony
        self.monitor = monitor or CallMonitor(telephony, agent, settings=self.settings)
        self.context_service = context_service
        self.queue = queue or InMemoryJobQueue(
            max_attempts=self.settings.MAX_CALL_ATTEMPTS,
            backoff_base_seconds=self.settings.RETRY_BACKOFF_BASE_SECONDS,
            idle_poll_seconds=self.settings.QUEUE_IDLE_POLL_SECONDS,
            clock=self._clock,
        )
        self.timing = timing
        self.account_managers = account_managers or [
            AccountManager(**manager) for manager in self.settings.ACCOUNT_MANAGERS
        ]
        self._assignments = 0
        self._campaigns: Dict[str, CampaignRun] = {}
        self._sessions: Dict[str, CallSession] = {}
        self._workers: List[asyncio.Task] = []

    @property
    def settings(self):
        """Lazy load settings."""
        if self._settings is None:
            self._settings = get_settings()
        return self._settings

    # ===========================================
    # Campaign Lifecycle
    # ===========================================

    async def launch(self, config: CampaignConfig) -> LaunchResult:
        """
        Research, filter, schedule and enqueue a campaign's prospects.

        Args:
            config: Campaign configuration

        Returns:
            LaunchResult with prospect and queued-call counts

        Raises:
            CampaignConfigError: The configuration is invalid
        """
        config.check()
        run = self._campaigns.get(config.id) or CampaignRun(config)
        run.config = config
        self._campaigns[config.id] = run

        logger.info(f"Launching campaign {config.id} ({config.name})")
        prospects = await self.crm.query_prospects(config.filters)
        researched = await self.research.batch_analyze(prospects)

        qualified = [
            context for context in researched
            if context.success_probability >= config.min_probability
        ]
        qualified.sort(key=lambda context: context.success_probability, reverse=True)
        logger.info(
            f"Campaign {config.id}: {len(qualified)}/{len(prospects)} prospects "
            f"at or above {config.min_probability}"
        )

        now = self._clock()
        spacing = timedelta(milliseconds=config.spacing_ms)
        queued = 0

        for rank, context in enumerate(qualified):
            prospect = context.prospect
            contact_time = self.timing(prospect.timezone, prospect.role, config.call_hours, now)
            job = CallJob(
                job_id=CallJob.make_id(config.id, prospect.id),
                prospect=prospect,
                research_context=context,
                campaign_id=config.id,
                account_manager=self.assign_account_manager(context),
                scheduled_time=contact_time + rank * spacing,
                priority=int(context.success_probability),
            )
            _, created = await self.queue.add(job)
            if created:
                queued += 1

        run.total_prospects = len(prospects)
        run.queued_calls += queued
        run.state = CampaignState.RUNNING

        logger.info(f"Campaign {config.id} running with {queued} queued calls")
        await self._check_campaign_done(config.id)
        return LaunchResult(
            campaign_id=config.id,
            total_prospects=len(prospects),
            queued_calls=queued,
        )

    async def pause(self, campaign_id: str) -> None:
        """Stop dequeuing. Applies to the whole shared queue."""
        run = self._get_run(campaign_id)
        await self.queue.pause()
        run.state = CampaignState.PAUSED
        logger.info(f"Campaign {campaign_id} paused (queue-wide)")

    async def resume(self, campaign_id: str) -> None:
        run = self._get_run(campaign_id)
        await self.queue.resume()
        if run.state == CampaignState.PAUSED:
            run.state = CampaignState.RUNNING
        logger.info(f"Campaign {campaign_id} resumed")

    async def cancel(self, campaign_id: str) -> int:
        """
        Remove the campaign's not-yet-started jobs.

        In-flight calls finish and report normally.

        Returns:
            Number of jobs removed
        """
        run = self._get_run(campaign_id)
        removed = await self.queue.remove_pending(campaign_id)
        run.state = CampaignState.CANCELLED
        logger.info(f"Campaign {campaign_id} cancelled, {removed} jobs removed")
        return removed

    async def stats(self, campaign_id: str) -> CampaignStats:
        self._get_run(campaign_id)
        return await self.queue.stats(campaign_id)

    def campaign_state(self, campaign_id: str) -> CampaignState:
        return self._get_run(campaign_id).state

    def _get_run(self, campaign_id: str) -> CampaignRun:
        run = self._campaigns.get(campaign_id)
        if run is None:
            raise CampaignNotFound(f"Campaign not found: {campaign_id}")
        return run

    def assign_account_manager(self, context: ResearchContext) -> AccountManager:
        """Round-robin over the roster, preferring specialists in the prospect's industry."""
        industry = (context.crm_data.industry or "").lower()
        specialists = [
            manager for manager in self.account_managers
            if industry and manager.specialty and (
                industry in manager.specialty.lower() or manager.specialty.lower() in industry
            )
        ]
        pool = specialists or self.account_managers
        manager = pool[self._assignments % len(pool)]
        self._assignments += 1
        return manager

    # ===========================================
    # Worker Pool
    # ===========================================

    @property
    def running(self) -> bool:
        return any(not task.done() for task in self._workers)

    async def recover(self) -> int:
        """Reload jobs persisted by a previous process before the workers start."""
        return await self.queue.recover()

    def start(self, concurrency: Optional[int] = None) -> None:
        """Spawn the worker tasks. Must be called from a running event loop."""
        if self.running:
            return
        count = concurrency or self.settings.WORKER_CONCURRENCY
        self._workers = [
            asyncio.create_task(self._worker(n), name=f"call-worker-{n}")
            for n in range(count)
        ]
        logger.info(f"Started {count} call workers")

    async def stop(self) -> None:
        for task in self._workers:
            task.cancel()
        await asyncio.gather(*self._workers, return_exceptions=True)
        self._workers = []
        logger.info("Call workers stopped")

    async def _worker(self, number: int) -> None:
        logger.debug(f"Worker {number} started")
        while True:
            await self.process_next()

    async def process_next(self) -> CallJob:
        """Dequeue the next ready job and run it to a reported outcome."""
        job = await self.queue.next_job()
        await self.run_job(job)
        return job

    async def run_job(self, job: CallJob) -> Optional[CallResult]:
        """
        Execute one attempt of an active job and settle it on the queue.

        Success and terminal failure are reported to the CRM; a retryable
        failure is only logged and rescheduled by the queue.
        """
        try:
            result = await self.execute(job)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Job {job.job_id} attempt {job.attempt_count} failed: {type(e).__name__}: {e}")
            try:
                await self.queue.fail(job.job_id, f"{type(e).__name__}: {e}")
            except QueueExhausted as exhausted:
                await self._report_failure(job, exhausted)
                await self._check_campaign_done(job.campaign_id)
            return None

        await self.queue.complete(job.job_id, result)
        await self._report_success(job, result)
        await self._check_campaign_done(job.campaign_id)
        return result

    async def execute(self, job: CallJob) -> CallResult:
        """Place and monitor a single call for the job."""
        context = CallContext(
            prospect_info=job.research_context,
            call_objective=self.settings.CALL_OBJECTIVE,
            account_manager=job.account_manager,
            campaign_id=job.campaign_id,
        )
        historical = await self._historical_context(job.prospect.id)

        session = self.agent.open_session(context)
        instructions = self.agent.build_instructions(context, historical)

        call_id = await self.telephony.start_call(
            job.prospect.phone,
            instructions,
            self.agent.tool_definitions(),
            metadata={
                "campaign_id": job.campaign_id,
                "prospect_id": job.prospect.id,
                "job_id": job.job_id,
            },
            first_message=self.agent.first_message(context),
            voicemail_message=self.agent.voicemail_message(context),
        )
        session.call_id = call_id
        self._sessions[call_id] = session
        logger.info(f"Call {call_id} started for {job.job_id}")

        try:
            return await self.monitor.await_completion(
                call_id,
                session,
                timeout=self.settings.CALL_TIMEOUT_SECONDS,
            )
        finally:
            self._sessions.pop(call_id, None)

    def get_session(self, call_id: str) -> Optional[CallSession]:
        """Live session for an in-flight call, used by the tool-call webhook."""
        return self._sessions.get(call_id)

    async def _historical_context(self, prospect_id: str) -> str:
        if self.context_service is None:
            return NO_CONTEXT_AVAILABLE
        try:
            return await self.context_service.get_historical_context(prospect_id) or NO_CONTEXT_AVAILABLE
        except Exception as e:
            logger.warning(f"Historical context lookup failed for {prospect_id}: {e}")
            return NO_CONTEXT_AVAILABLE

    # ===========================================
    # Reporting
    # ===========================================

    async def _report_success(self, job: CallJob, result: CallResult) -> None:
        record = ActivityRecord(
            prospect_id=job.prospect.id,
            campaign_id=job.campaign_id,
            activity_type=ActivityType.CALL,
            outcome=result.outcome.value,
            duration_seconds=result.duration_seconds,
            transcript=result.transcript,
            sentiment_score=result.sentiment_score,
            meeting_booked=result.meeting_booked,
            recording_url=result.recording_url,
            notes=result.next_action,
            attempts=job.attempt_count,
        )
        try:
            await self.crm.log_activity(record)
            if result.meeting_booked:
                await self.crm.update_stage(job.prospect.id, MEETING_SCHEDULED_STAGE)
        except Exception as e:
            logger.error(f"Failed to report result of {job.job_id} to CRM: {e}")

    async def _report_failure(self, job: CallJob, error: QueueExhausted) -> None:
        record = ActivityRecord(
            prospect_id=job.prospect.id,
            campaign_id=job.campaign_id,
            activity_type=ActivityType.CALL_FAILED,
            notes=str(error),
            attempts=error.attempts,
        )
        try:
            await self.crm.log_activity(record)
        except Exception as e:
            logger.error(f"Failed to report failure of {job.job_id} to CRM: {e}")

    async def _check_campaign_done(self, campaign_id: str) -> None:
        run = self._campaigns.get(campaign_id)
        if run is None or run.state not in (CampaignState.RUNNING, CampaignState.PAUSED):
            return
        if not await self.queue.has_unfinished(campaign_id):
            run.state = CampaignState.COMPLETED
            logger.info(f"Campaign {campaign_id} completed")

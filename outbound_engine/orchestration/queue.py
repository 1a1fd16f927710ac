"""Job queue - priority queue with delayed visibility and retry backoff."""

import asyncio
import logging
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, List, Optional, Set, Tuple

from outbound_engine.core.errors import QueueExhausted
from outbound_engine.models import CallJob, CallResult, CampaignStats, JobState

logger = logging.getLogger(__name__)

PENDING_STATES = (JobState.WAITING, JobState.DELAYED)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class JobQueue(ABC):
    """Broker contract used by the orchestrator and its workers."""

    @abstractmethod
    async def add(self, job: CallJob) -> Tuple[CallJob, bool]:
        """Enqueue a job; returns (job, created). Existing ids are left untouched."""

    @abstractmethod
    async def next_job(self) -> CallJob:
        """Block until a ready job is available, then mark it active."""

    @abstractmethod
    async def complete(self, job_id: str, result: CallResult) -> CallJob:
        ...

    @abstractmethod
    async def fail(self, job_id: str, error: str) -> CallJob:
        """Record a failed attempt; raises QueueExhausted when no attempt remains."""

    @abstractmethod
    async def remove_pending(self, campaign_id: str) -> int:
        ...

    @abstractmethod
    async def pause(self) -> None:
        ...

    @abstractmethod
    async def resume(self) -> None:
        ...

    @abstractmethod
    async def stats(self, campaign_id: str) -> CampaignStats:
        ...

    @abstractmethod
    async def has_unfinished(self, campaign_id: str) -> bool:
        ...

    async def recover(self) -> int:
        """Reload jobs left over from a previous process; returns how many are pending."""
        return 0


class InMemoryJobQueue(JobQueue):
    """
    In-process JobQueue guarded by an asyncio.Condition.

    Ready jobs are served highest priority first, then in enqueue order.
    A job becomes ready once the clock reaches its visible_at time; failed
    attempts are pushed back by base * 2^(attempt - 1) seconds.
    """

    def __init__(
        self,
        max_attempts: int = 3,
        backoff_base_seconds: float = 3600.0,
        idle_poll_seconds: float = 1.0,
        clock: Optional[Callable[[], datetime]] = None
    ):
        self.max_attempts = max_attempts
        self.backoff_base_seconds = backoff_base_seconds
        self.idle_poll_seconds = idle_poll_seconds
        self._clock = clock or _utcnow
        self._jobs: Dict[str, CallJob] = {}
        self._cancelled: Set[str] = set()
        self._sequence = 0
        self._paused = False
        self._condition = asyncio.Condition()

    @property
    def paused(self) -> bool:
        return self._paused

    def get(self, job_id: str) -> Optional[CallJob]:
        return self._jobs.get(job_id)

    def jobs(self, campaign_id: Optional[str] = None) -> List[CallJob]:
        return [
            job for job in self._jobs.values()
            if campaign_id is None or job.campaign_id == campaign_id
        ]

    # ===========================================
    # Producer Side
    # ===========================================

    async def add(self, job: CallJob) -> Tuple[CallJob, bool]:
        async with self._condition:
            existing = self._jobs.get(job.job_id)
            if existing is not None:
                logger.debug(f"Job {job.job_id} already queued, skipping")
                return existing, False

            self._sequence += 1
            job.sequence = self._sequence
            job.visible_at = job.scheduled_time
            job.state = JobState.DELAYED if job.scheduled_time > self._clock() else JobState.WAITING
            self._cancelled.discard(job.campaign_id)
            self._jobs[job.job_id] = job
            self._condition.notify_all()

        await self._save(job)
        logger.debug(f"Queued {job.job_id} priority={job.priority} at {job.scheduled_time.isoformat()}")
        return job, True

    async def remove_pending(self, campaign_id: str) -> int:
        """Drop the campaign's waiting and delayed jobs. Active jobs are untouched."""
        async with self._condition:
            self._cancelled.add(campaign_id)
            doomed = [
                job_id for job_id, job in self._jobs.items()
                if job.campaign_id == campaign_id and job.state in PENDING_STATES
            ]
            for job_id in doomed:
                del self._jobs[job_id]

        if doomed:
            await self._forget(doomed)
        logger.info(f"Removed {len(doomed)} pending jobs for campaign {campaign_id}")
        return len(doomed)

    # ===========================================
    # Consumer Side
    # ===========================================

    async def next_job(self) -> CallJob:
        async with self._condition:
            while True:
                wait = self.idle_poll_seconds
                if not self._paused:
                    now = self._clock()
                    job = self._pick_ready(now)
                    if job is not None:
                        job.state = JobState.ACTIVE
                        job.attempt_count += 1
                        break
                    wait = self._seconds_until_next(now)

                try:
                    await asyncio.wait_for(self._condition.wait(), timeout=wait)
                except asyncio.TimeoutError:
                    pass

        logger.info(f"Dequeued {job.job_id} (attempt {job.attempt_count})")
        await self._save(job)
        return job

    def _pick_ready(self, now: datetime) -> Optional[CallJob]:
        ready = [
            job for job in self._jobs.values()
            if job.state in PENDING_STATES and job.visible_at <= now
        ]
        if not ready:
            return None
        return min(ready, key=lambda job: (-job.priority, job.sequence))

    def _seconds_until_next(self, now: datetime) -> float:
        upcoming = [
            job.visible_at for job in self._jobs.values()
            if job.state in PENDING_STATES
        ]
        if not upcoming:
            return self.idle_poll_seconds
        delta = (min(upcoming) - now).total_seconds()
        return max(0.0, min(self.idle_poll_seconds, delta))

    async def complete(self, job_id: str, result: CallResult) -> CallJob:
        async with self._condition:
            job = self._jobs[job_id]
            job.state = JobState.COMPLETED
            job.result = result
            self._condition.notify_all()
        await self._save(job)
        return job

    async def fail(self, job_id: str, error: str) -> CallJob:
        async with self._condition:
            job = self._jobs[job_id]
            job.last_error = error

            if job.attempt_count < self.max_attempts and job.campaign_id not in self._cancelled:
                delay = self.backoff_base_seconds * 2 ** (job.attempt_count - 1)
                job.visible_at = self._clock() + timedelta(seconds=delay)
                job.state = JobState.DELAYED
                self._condition.notify_all()
                retrying = True
            else:
                job.state = JobState.FAILED
                self._condition.notify_all()
                retrying = False

        await self._save(job)
        if retrying:
            logger.warning(
                f"Job {job_id} attempt {job.attempt_count} failed, retrying in {delay:.0f}s: {error}"
            )
            return job

        logger.error(f"Job {job_id} failed permanently after {job.attempt_count} attempts")
        raise QueueExhausted(job_id, job.attempt_count, error)

    async def _save(self, job: CallJob) -> None:
        """Called after every job change; durable subclasses write it through."""

    async def _forget(self, job_ids: List[str]) -> None:
        """Called after pending jobs are removed."""

    # ===========================================
    # Control & Reporting
    # ===========================================

    async def pause(self) -> None:
        async with self._condition:
            self._paused = True
        logger.info("Queue paused")

    async def resume(self) -> None:
        async with self._condition:
            self._paused = False
            self._condition.notify_all()
        logger.info("Queue resumed")

    async def stats(self, campaign_id: str) -> CampaignStats:
        counts = {state: 0 for state in JobState}
        for job in self.jobs(campaign_id):
            counts[job.state] += 1
        return CampaignStats(
            waiting=counts[JobState.WAITING] + counts[JobState.DELAYED],
            active=counts[JobState.ACTIVE],
            completed=counts[JobState.COMPLETED],
            failed=counts[JobState.FAILED],
        )

    async def has_unfinished(self, campaign_id: str) -> bool:
        return any(
            job.state in (*PENDING_STATES, JobState.ACTIVE)
            for job in self.jobs(campaign_id)
        )

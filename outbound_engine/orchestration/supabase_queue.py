"""Supabase-backed job queue - jobs survive process restarts."""

import asyncio
import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional
from supabase import Client

from outbound_engine.core.config import get_settings
from outbound_engine.integrations.crm import create_supabase_client
from outbound_engine.models import CallJob, JobState
from outbound_engine.orchestration.queue import InMemoryJobQueue, PENDING_STATES

logger = logging.getLogger(__name__)


class SupabaseJobQueue(InMemoryJobQueue):
    """
    InMemoryJobQueue whose jobs are written through to JOBS_TABLE.

    Ordering, delays and the wake-ups of waiting workers stay in memory;
    the table holds one row per job (upserted on job_id) so that
    recover() can rebuild the queue after a restart. A job that was
    active when the process stopped never settled, so it is delivered
    again and the interrupted attempt is not counted.
    """

    def __init__(
        self,
        settings=None,
        client: Optional[Client] = None,
        clock: Optional[Callable[[], datetime]] = None
    ):
        self._settings = settings
        self._client = client
        self._write_lock = asyncio.Lock()
        super().__init__(
            max_attempts=self.settings.MAX_CALL_ATTEMPTS,
            backoff_base_seconds=self.settings.RETRY_BACKOFF_BASE_SECONDS,
            idle_poll_seconds=self.settings.QUEUE_IDLE_POLL_SECONDS,
            clock=clock,
        )

    @property
    def settings(self):
        """Lazy load settings."""
        if self._settings is None:
            self._settings = get_settings()
        return self._settings

    @property
    def client(self) -> Client:
        """Lazy initialization of Supabase client."""
        if self._client is None:
            self._client = create_supabase_client(self.settings)
        return self._client

    @property
    def table(self):
        return self.client.table(self.settings.JOBS_TABLE)

    async def _execute(self, query) -> List[Dict[str, Any]]:
        response = await asyncio.to_thread(query.execute)
        return response.data or []

    # ===========================================
    # Recovery
    # ===========================================

    async def recover(self) -> int:
        """
        Load every persisted job into memory.

        Finished jobs are loaded too, so relaunching a campaign after a
        restart still deduplicates against calls already made.

        Returns:
            Number of waiting or delayed jobs after recovery
        """
        try:
            rows = await self._execute(self.table.select("payload").order("sequence"))
        except Exception as e:
            logger.error(f"Failed to load persisted jobs: {e}")
            raise

        if not rows:
            logger.info("No persisted jobs to recover")
            return 0

        now = self._clock()
        redelivered: List[CallJob] = []

        async with self._condition:
            for row in rows:
                job = CallJob.model_validate(row["payload"])
                if job.job_id in self._jobs:
                    continue
                if job.state == JobState.ACTIVE:
                    job.attempt_count = max(job.attempt_count - 1, 0)
                    visible_at = job.visible_at or job.scheduled_time
                    job.state = JobState.DELAYED if visible_at > now else JobState.WAITING
                    redelivered.append(job)
                self._jobs[job.job_id] = job
                self._sequence = max(self._sequence, job.sequence)

            pending = sum(1 for job in self._jobs.values() if job.state in PENDING_STATES)
            self._condition.notify_all()

        for job in redelivered:
            await self._save(job)

        logger.info(
            f"Recovered {len(rows)} job(s): {pending} pending, "
            f"{len(redelivered)} interrupted and redelivered"
        )
        return pending

    # ===========================================
    # Write-through
    # ===========================================

    async def _save(self, job: CallJob) -> None:
        async with self._write_lock:
            row = {
                "job_id": job.job_id,
                "campaign_id": job.campaign_id,
                "state": job.state.value,
                "priority": job.priority,
                "sequence": job.sequence,
                "attempt_count": job.attempt_count,
                "visible_at": job.visible_at.isoformat() if job.visible_at else None,
                "payload": job.model_dump(mode="json"),
                "updated_at": self._clock().isoformat(),
            }
            try:
                await self._execute(self.table.upsert(row, on_conflict="job_id"))
            except Exception as e:
                # The in-memory queue stays authoritative for this process.
                logger.error(f"Failed to persist job {job.job_id} ({job.state.value}): {e}")

    async def _forget(self, job_ids: List[str]) -> None:
        async with self._write_lock:
            try:
                await self._execute(self.table.delete().in_("job_id", job_ids))
            except Exception as e:
                logger.error(f"Failed to delete {len(job_ids)} persisted jobs: {e}")

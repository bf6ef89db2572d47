"""
Job registry: the only mutable shared state of the orchestrator.

Maps analysis id -> active job and job id -> job, and hands out one
asyncio.Lock per analysis id so that check-then-create and every
transition are serialized per key. Terminal jobs handed to a store are
discarded, and a lock is dropped once nothing waits on it and its
analysis has no active job.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from tirehealth.models.jobs import ModelGenerationJob

logger = logging.getLogger(__name__)


class JobRegistry:
    """Scoped to one orchestrator; not a process-wide singleton."""

    def __init__(self):
        self._jobs: dict[str, ModelGenerationJob] = {}
        self._active: dict[str, str] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        self._lock_users: dict[str, int] = {}

    def lock_for(self, analysis_id: str) -> asyncio.Lock:
        """
        Lock serializing all mutations for one analysis id.

        There is no await between lookup and insert, so two coroutines
        can never create different locks for the same key.
        """
        lock = self._locks.get(analysis_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[analysis_id] = lock
        return lock

    @asynccontextmanager
    async def locked(self, analysis_id: str) -> AsyncIterator[None]:
        """
        Hold the analysis lock, dropping it afterwards if it is idle.

        Waiters are counted before they await the lock, so a lock with a
        queued waiter is never dropped.
        """
        self._lock_users[analysis_id] = self._lock_users.get(analysis_id, 0) + 1
        try:
            async with self.lock_for(analysis_id):
                yield
        finally:
            users = self._lock_users[analysis_id] - 1
            if users:
                self._lock_users[analysis_id] = users
            else:
                del self._lock_users[analysis_id]
                if analysis_id not in self._active:
                    self._locks.pop(analysis_id, None)

    def add(self, job: ModelGenerationJob) -> None:
        """
        Register a job; an active job claims its analysis slot.

        Raises:
            ValueError: If another job is already active for the analysis
        """
        if job.is_active:
            current = self._active.get(job.analysis_id)
            if current is not None and current != job.id:
                raise ValueError(
                    f"Analysis {job.analysis_id} already has active job {current}"
                )
            self._active[job.analysis_id] = job.id
        self._jobs[job.id] = job

    def get(self, job_id: str) -> Optional[ModelGenerationJob]:
        return self._jobs.get(job_id)

    def active_for(self, analysis_id: str) -> Optional[ModelGenerationJob]:
        job_id = self._active.get(analysis_id)
        return self._jobs.get(job_id) if job_id is not None else None

    def jobs_for(self, analysis_id: str) -> list[ModelGenerationJob]:
        return [j for j in self._jobs.values() if j.analysis_id == analysis_id]

    def release(self, job: ModelGenerationJob) -> None:
        """Free the analysis slot once the job is terminal."""
        if self._active.get(job.analysis_id) == job.id:
            del self._active[job.analysis_id]
            logger.debug("Released active slot for analysis %s", job.analysis_id)

    def discard(self, job: ModelGenerationJob) -> None:
        """Forget a terminal job that persistence now owns."""
        if not job.is_terminal:
            raise ValueError(f"Job {job.id} is still {job.status.value}")
        self.release(job)
        self._jobs.pop(job.id, None)

    @property
    def lock_count(self) -> int:
        return len(self._locks)

    def __len__(self) -> int:
        return len(self._jobs)

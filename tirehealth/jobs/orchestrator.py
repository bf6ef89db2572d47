"""
Model generation job orchestrator.

Owns the pending -> processing -> completed | failed lifecycle of each
3D reconstruction request and the polling loop against the provider.

Concurrency:
- All mutations for one analysis id run under the registry's lock, so
  submit is idempotent and two polls of one job never overlap.
- One cancellable asyncio.Task polls each job.
- Timeout is the retry-count ceiling, never a wall-clock preemption.
"""

import asyncio
import logging
from typing import Optional

from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_fixed

from tirehealth.config import OrchestratorSettings
from tirehealth.exceptions import JobNotFoundError, ProviderError, TransientProviderError
from tirehealth.jobs.provider import (
    ProviderOutcome,
    ProviderState,
    ReconstructionProvider,
    parse_provider_response,
)
from tirehealth.jobs.registry import JobRegistry
from tirehealth.models.jobs import JobStatus, ModelGenerationJob
from tirehealth.notifications import Notifier
from tirehealth.storage import AnalysisStore

logger = logging.getLogger(__name__)


class ModelGenerationOrchestrator:
    """
    Submits, polls and finalizes model generation jobs.

    Public methods return snapshots; the live job record stays owned by
    the orchestrator until it is terminal and handed to the store.
    """

    def __init__(
        self,
        provider: ReconstructionProvider,
        registry: Optional[JobRegistry] = None,
        store: Optional[AnalysisStore] = None,
        notifier: Optional[Notifier] = None,
        settings: Optional[OrchestratorSettings] = None,
    ):
        self.provider = provider
        self.registry = registry if registry is not None else JobRegistry()
        self.store = store
        self.notifier = notifier
        self.settings = settings or OrchestratorSettings()
        self._tasks: dict[str, asyncio.Task] = {}

    # --- submit ---

    async def submit(self, analysis_id: str, image_path: str) -> ModelGenerationJob:
        """
        Start model generation for an analysis.

        Returns the existing job unchanged if one is already active for
        the analysis. A submit fault leaves the new job in failed, never
        in pending.
        """
        async with self.registry.locked(analysis_id):
            existing = self.registry.active_for(analysis_id)
            if existing is not None:
                logger.info(
                    "Analysis %s already has active job %s", analysis_id, existing.id
                )
                return existing.model_copy(deep=True)

            job = ModelGenerationJob(analysis_id=analysis_id)
            self.registry.add(job)

            try:
                external_id = await self._submit_with_retry(image_path)
            except asyncio.CancelledError:
                job.transition_to(JobStatus.FAILED, error_message="Submit cancelled")
                self._finish(job)
                raise
            except Exception as e:
                logger.error("Submit failed for analysis %s: %s", analysis_id, e)
                job.transition_to(JobStatus.FAILED, error_message=f"Submit failed: {e}")
                self._finish(job)
                return job.model_copy(deep=True)

            job.transition_to(JobStatus.PROCESSING, external_job_id=external_id)
            if self.store is not None:
                self.store.save_job(job)
            logger.info(
                "Job %s processing as provider task %s", job.id, external_id
            )
            return job.model_copy(deep=True)

    async def _submit_with_retry(self, image_path: str) -> str:
        """Call the provider, retrying transient faults a fixed number of times."""
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.settings.submit_attempts),
            wait=wait_fixed(self.settings.submit_retry_wait_seconds),
            retry=retry_if_exception_type(TransientProviderError),
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                if attempt.retry_state.attempt_number > 1:
                    logger.warning(
                        "Retrying provider submit (attempt %d)",
                        attempt.retry_state.attempt_number,
                    )
                external_id = await self.provider.submit_job(image_path)
                if not external_id:
                    raise ProviderError("Provider returned an empty task id")
        return external_id

    # --- poll ---

    async def poll(self, job_id: str) -> ModelGenerationJob:
        """
        Poll the provider once for a job.

        Terminal jobs are returned unchanged. Running and out-of-contract
        responses count as a retry; exceeding max_retries fails the job
        with a timeout.

        Raises:
            JobNotFoundError: If the job id is unknown
        """
        job = self.registry.get(job_id)
        if job is None:
            # Terminal jobs move to the store
            return self.get_job(job_id)

        async with self.registry.locked(job.analysis_id):
            if job.is_terminal:
                return job.model_copy(deep=True)

            outcome = await self._query_provider(job)

            if outcome.state == ProviderState.COMPLETED:
                job.transition_to(JobStatus.COMPLETED, model_url=outcome.model_url)
                logger.info("Job %s completed: %s", job.id, job.model_url)
                self._finish(job)
            elif outcome.state == ProviderState.FAILED:
                job.transition_to(JobStatus.FAILED, error_message=outcome.error)
                logger.warning("Job %s failed: %s", job.id, job.error_message)
                self._finish(job)
            else:
                if outcome.state == ProviderState.TRANSIENT:
                    logger.warning("Transient provider response for job %s: %s", job.id, outcome.error)
                retries = job.record_retry()
                if retries > self.settings.max_retries:
                    job.transition_to(
                        JobStatus.FAILED,
                        error_message=(
                            f"Timed out after {self.settings.max_retries} retries "
                            f"({self.settings.timeout_seconds:.0f}s)"
                        ),
                    )
                    logger.warning("Job %s timed out", job.id)
                    self._finish(job)

            return job.model_copy(deep=True)

    async def _query_provider(self, job: ModelGenerationJob) -> ProviderOutcome:
        try:
            response = await self.provider.poll_job(job.external_job_id)
        except Exception as e:
            return ProviderOutcome.transient(f"{type(e).__name__}: {e}")
        return parse_provider_response(response)

    def _finish(self, job: ModelGenerationJob) -> None:
        """Hand a terminal job to the store, free its slot and notify."""
        if self.store is not None:
            self.store.save_job(job)
            self.registry.discard(job)
        else:
            self.registry.release(job)
        if self.notifier is not None:
            self.notifier.job_finished(job)

    # --- polling tasks ---

    def start_polling(self, job_id: str) -> asyncio.Task:
        """
        Start (or return) the polling task for a job.

        Must be called from a running event loop.

        Raises:
            JobNotFoundError: If the job id is unknown
        """
        self.get_job(job_id)

        task = self._tasks.get(job_id)
        if task is not None and not task.done():
            return task

        task = asyncio.create_task(self._poll_until_terminal(job_id), name=f"poll-{job_id}")
        self._tasks[job_id] = task
        task.add_done_callback(lambda t: self._forget_task(job_id, t))
        return task

    def _forget_task(self, job_id: str, task: asyncio.Task) -> None:
        if self._tasks.get(job_id) is task:
            del self._tasks[job_id]

    async def _poll_until_terminal(self, job_id: str) -> ModelGenerationJob:
        while True:
            await asyncio.sleep(self.settings.poll_interval_seconds)
            job = await self.poll(job_id)
            if job.is_terminal:
                return job

    async def wait_for(self, job_id: str) -> ModelGenerationJob:
        """
        Poll a job until it is terminal and return it.

        Raises:
            JobNotFoundError: If the job id is unknown
            asyncio.CancelledError: If polling is cancelled meanwhile
        """
        job = self.get_job(job_id)
        if job.is_terminal:
            return job
        return await self.start_polling(job_id)

    def is_polling(self, job_id: str) -> bool:
        task = self._tasks.get(job_id)
        return task is not None and not task.done()

    # --- cancellation ---

    def cancel(self, job_id: str) -> bool:
        """
        Stop polling a job. The job's status is left as it is, so a
        later poll can still observe the provider's result.

        Returns:
            True if a running polling task was cancelled
        """
        task = self._tasks.pop(job_id, None)
        if task is None or task.done():
            return False
        task.cancel()
        logger.info("Stopped polling job %s", job_id)
        return True

    def abandon(self, analysis_id: str) -> list[str]:
        """Stop polling every job of an analysis; returns the cancelled job ids."""
        return [
            job.id for job in self.registry.jobs_for(analysis_id)
            if self.cancel(job.id)
        ]

    async def close(self) -> None:
        """Cancel all polling tasks and wait for them to unwind."""
        tasks = list(self._tasks.values())
        self._tasks.clear()
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

    # --- lookup ---

    def get_job(self, job_id: str) -> ModelGenerationJob:
        """
        Snapshot of a job, falling back to the store for jobs this
        orchestrator no longer holds.

        Raises:
            JobNotFoundError: If the job id is unknown
        """
        job = self.registry.get(job_id)
        if job is not None:
            return job.model_copy(deep=True)
        if self.store is not None:
            stored = self.store.get_job(job_id)
            if stored is not None:
                return stored
        raise JobNotFoundError(job_id)

    def active_job(self, analysis_id: str) -> Optional[ModelGenerationJob]:
        job = self.registry.active_for(analysis_id)
        return job.model_copy(deep=True) if job is not None else None

"""
Tests for the model generation job orchestrator.

Each test drives its own event loop with asyncio.run.
"""

import asyncio

import pytest

from tirehealth.exceptions import JobNotFoundError, ProviderError
from tirehealth.jobs import (
    JobRegistry,
    ModelGenerationOrchestrator,
    ProviderOutcome,
    ProviderState,
    SimulatedReconstructionProvider,
    parse_provider_response,
)
from tirehealth.models.jobs import JobStatus, ModelGenerationJob

RUNNING = {"status": "running"}
COMPLETED = {"status": "completed", "model_url": "https://models.local/task-1.glb"}


class TestSubmit:
    """Tests for job submission."""

    def test_submit_moves_to_processing(self, orchestrator_factory, provider_factory, store):
        """Test a successful submit records the provider task id."""
        provider = provider_factory(submit_script=["task-1"])
        orchestrator = orchestrator_factory(provider)

        job = asyncio.run(orchestrator.submit("analysis-1", "tread.jpg"))

        assert job.status == JobStatus.PROCESSING
        assert job.external_job_id == "task-1"
        assert job.retry_count == 0
        assert store.get_job(job.id).status == JobStatus.PROCESSING
        assert orchestrator.active_job("analysis-1").id == job.id

    def test_concurrent_submits_share_one_job(self, orchestrator_factory, provider_factory):
        """Test two overlapping submits for one analysis create a single job."""
        provider = provider_factory(submit_delay=0.01)
        orchestrator = orchestrator_factory(provider)

        async def submit_twice():
            return await asyncio.gather(
                orchestrator.submit("analysis-1", "tread.jpg"),
                orchestrator.submit("analysis-1", "tread.jpg"),
            )

        first, second = asyncio.run(submit_twice())

        assert first.id == second.id
        assert provider.submit_calls == 1
        assert len(orchestrator.registry) == 1

    def test_submit_is_idempotent_while_active(self, orchestrator_factory, provider_factory):
        provider = provider_factory()
        orchestrator = orchestrator_factory(provider)

        async def scenario():
            first = await orchestrator.submit("analysis-1", "a.jpg")
            second = await orchestrator.submit("analysis-1", "b.jpg")
            return first, second

        first, second = asyncio.run(scenario())

        assert first.id == second.id
        assert provider.submit_calls == 1

    def test_transient_fault_is_retried(self, orchestrator_factory, provider_factory, transient_error):
        """Test a transient submit fault is retried and then succeeds."""
        provider = provider_factory(submit_script=[transient_error, "task-9"])
        orchestrator = orchestrator_factory(provider)

        job = asyncio.run(orchestrator.submit("analysis-1", "tread.jpg"))

        assert job.status == JobStatus.PROCESSING
        assert job.external_job_id == "task-9"
        assert provider.submit_calls == 2

    def test_exhausted_retries_fail_job(
        self, orchestrator_factory, provider_factory, transient_error, notifier
    ):
        """Test a persistent outage ends in failed, never pending."""
        provider = provider_factory(submit_script=[transient_error])
        orchestrator = orchestrator_factory(provider)

        job = asyncio.run(orchestrator.submit("analysis-1", "tread.jpg"))

        assert job.status == JobStatus.FAILED
        assert job.error_message.startswith("Submit failed")
        assert provider.submit_calls == 3
        assert orchestrator.active_job("analysis-1") is None
        assert [j.id for j in notifier.finished_jobs] == [job.id]

    def test_rejection_is_not_retried(self, orchestrator_factory, provider_factory):
        """Test an explicit provider rejection fails on the first attempt."""
        provider = provider_factory(submit_script=[ProviderError("Unsupported image")])
        orchestrator = orchestrator_factory(provider)

        job = asyncio.run(orchestrator.submit("analysis-1", "tread.jpg"))

        assert job.status == JobStatus.FAILED
        assert "Unsupported image" in job.error_message
        assert provider.submit_calls == 1

    def test_empty_task_id_fails(self, orchestrator_factory, provider_factory):
        provider = provider_factory(submit_script=[""])
        orchestrator = orchestrator_factory(provider)

        job = asyncio.run(orchestrator.submit("analysis-1", "tread.jpg"))

        assert job.status == JobStatus.FAILED

    def test_resubmit_after_terminal_creates_new_job(self, orchestrator_factory, provider_factory):
        """Test a finished job frees the analysis for a fresh submit."""
        provider = provider_factory(poll_script=[{"status": "failed", "error": "bad image"}])
        orchestrator = orchestrator_factory(provider)

        async def scenario():
            first = await orchestrator.submit("analysis-1", "tread.jpg")
            await orchestrator.poll(first.id)
            second = await orchestrator.submit("analysis-1", "tread.jpg")
            return first, second

        first, second = asyncio.run(scenario())

        assert second.id != first.id
        assert second.status == JobStatus.PROCESSING
        assert orchestrator.get_job(first.id).status == JobStatus.FAILED


class TestPoll:
    """Tests for single polls."""

    def test_running_then_completed(self, orchestrator_factory, provider_factory, notifier, store):
        """Test a running response counts a retry and completion sets the URL."""
        provider = provider_factory(poll_script=[RUNNING, COMPLETED])
        orchestrator = orchestrator_factory(provider)

        async def scenario():
            job = await orchestrator.submit("analysis-1", "tread.jpg")
            running = await orchestrator.poll(job.id)
            done = await orchestrator.poll(job.id)
            return running, done

        running, done = asyncio.run(scenario())

        assert running.status == JobStatus.PROCESSING
        assert running.retry_count == 1
        assert done.status == JobStatus.COMPLETED
        assert done.model_url == COMPLETED["model_url"]
        assert done.completed_at is not None
        assert [j.status for j in notifier.finished_jobs] == [JobStatus.COMPLETED]
        assert store.get_job(done.id).status == JobStatus.COMPLETED
        assert orchestrator.active_job("analysis-1") is None

    def test_provider_failure(self, orchestrator_factory, provider_factory):
        """Test a provider failure carries its reason."""
        provider = provider_factory(
            poll_script=[{"status": "FAILED", "task_error": {"message": "No tire found in image"}}]
        )
        orchestrator = orchestrator_factory(provider)

        async def scenario():
            job = await orchestrator.submit("analysis-1", "tread.jpg")
            return await orchestrator.poll(job.id)

        job = asyncio.run(scenario())

        assert job.status == JobStatus.FAILED
        assert job.error_message == "No tire found in image"

    def test_transient_responses_count_as_retries(self, orchestrator_factory, provider_factory):
        """Test exceptions and unknown responses are retried, not fatal."""
        provider = provider_factory(poll_script=[
            RuntimeError("connection reset"),
            {"status": "mystery"},
            {"status": "completed"},  # no URL yet
            COMPLETED,
        ])
        orchestrator = orchestrator_factory(provider)

        async def scenario():
            job = await orchestrator.submit("analysis-1", "tread.jpg")
            snapshots = [await orchestrator.poll(job.id) for _ in range(4)]
            return snapshots

        snapshots = asyncio.run(scenario())

        assert [s.status for s in snapshots[:3]] == [JobStatus.PROCESSING] * 3
        assert [s.retry_count for s in snapshots] == [1, 2, 3, 3]
        assert snapshots[-1].status == JobStatus.COMPLETED

    def test_timeout_after_max_retries(self, orchestrator_factory, provider_factory):
        """Test 120 running responses are tolerated and the 121st fails the job."""
        provider = provider_factory(poll_script=[RUNNING])
        orchestrator = orchestrator_factory(provider)

        async def scenario():
            job = await orchestrator.submit("analysis-1", "tread.jpg")
            for _ in range(120):
                snapshot = await orchestrator.poll(job.id)
            before = snapshot
            after = await orchestrator.poll(job.id)
            again = await orchestrator.poll(job.id)
            return before, after, again

        before, after, again = asyncio.run(scenario())

        assert before.status == JobStatus.PROCESSING
        assert before.retry_count == 120
        assert after.status == JobStatus.FAILED
        assert "Timed out after 120 retries" in after.error_message
        assert again == after
        assert provider.poll_calls == 121

    def test_terminal_job_not_polled_again(self, orchestrator_factory, provider_factory, notifier):
        provider = provider_factory(poll_script=[COMPLETED])
        orchestrator = orchestrator_factory(provider)

        async def scenario():
            job = await orchestrator.submit("analysis-1", "tread.jpg")
            await orchestrator.poll(job.id)
            return await orchestrator.poll(job.id)

        job = asyncio.run(scenario())

        assert job.status == JobStatus.COMPLETED
        assert provider.poll_calls == 1
        assert len(notifier.finished_jobs) == 1

    def test_concurrent_polls_finish_job_once(self, orchestrator_factory, provider_factory, notifier):
        """Test overlapping polls of one job make a single terminal transition."""
        provider = provider_factory(poll_script=[COMPLETED])
        orchestrator = orchestrator_factory(provider)

        async def scenario():
            job = await orchestrator.submit("analysis-1", "tread.jpg")
            return await asyncio.gather(orchestrator.poll(job.id), orchestrator.poll(job.id))

        first, second = asyncio.run(scenario())

        assert first.status == JobStatus.COMPLETED
        assert second == first
        assert provider.poll_calls == 1
        assert [j.id for j in notifier.finished_jobs] == [first.id]

    def test_completed_outcome_without_url_is_retried(self, orchestrator_factory, provider_factory):
        provider = provider_factory(
            poll_script=[ProviderOutcome(state=ProviderState.COMPLETED), COMPLETED]
        )
        orchestrator = orchestrator_factory(provider)

        async def scenario():
            job = await orchestrator.submit("analysis-1", "tread.jpg")
            missing_url = await orchestrator.poll(job.id)
            done = await orchestrator.poll(job.id)
            return missing_url, done

        missing_url, done = asyncio.run(scenario())

        assert missing_url.status == JobStatus.PROCESSING
        assert missing_url.retry_count == 1
        assert done.model_url == COMPLETED["model_url"]

    def test_unknown_job(self, orchestrator_factory, provider_factory):
        orchestrator = orchestrator_factory(provider_factory())

        with pytest.raises(JobNotFoundError):
            asyncio.run(orchestrator.poll("missing"))
        with pytest.raises(JobNotFoundError):
            orchestrator.get_job("missing")


class TestPollingTasks:
    """Tests for background polling, cancellation and shutdown."""

    def test_wait_for_simulated_provider(self, orchestrator_factory):
        """Test the simulated provider completes after its running polls."""
        provider = SimulatedReconstructionProvider(running_polls=2)
        orchestrator = orchestrator_factory(provider)

        async def scenario():
            job = await orchestrator.submit("analysis-1", "tread.jpg")
            return await orchestrator.wait_for(job.id)

        job = asyncio.run(scenario())

        assert job.status == JobStatus.COMPLETED
        assert job.retry_count == 2
        assert job.model_url.endswith(f"{job.external_job_id}.glb")

    def test_simulated_outage_then_success(self, orchestrator_factory):
        provider = SimulatedReconstructionProvider(running_polls=0, submit_failures=2)
        orchestrator = orchestrator_factory(provider)

        async def scenario():
            job = await orchestrator.submit("analysis-1", "tread.jpg")
            return await orchestrator.wait_for(job.id)

        job = asyncio.run(scenario())

        assert provider.submit_calls == 3
        assert job.status == JobStatus.COMPLETED

    def test_simulated_failure(self, orchestrator_factory):
        provider = SimulatedReconstructionProvider(running_polls=1, fail_reason="Image too blurry")
        orchestrator = orchestrator_factory(provider)

        async def scenario():
            job = await orchestrator.submit("analysis-1", "tread.jpg")
            return await orchestrator.wait_for(job.id)

        job = asyncio.run(scenario())

        assert job.status == JobStatus.FAILED
        assert job.error_message == "Image too blurry"

    def test_cancel_leaves_status_unchanged(self, orchestrator_factory, provider_factory):
        """Test cancelling stops polling without forcing a terminal state."""
        provider = provider_factory(poll_script=[RUNNING])
        orchestrator = orchestrator_factory(
            provider, poll_interval_seconds=0.01, max_retries=10_000
        )

        async def scenario():
            job = await orchestrator.submit("analysis-1", "tread.jpg")
            task = orchestrator.start_polling(job.id)
            await asyncio.sleep(0.05)
            assert orchestrator.is_polling(job.id)
            cancelled = orchestrator.cancel(job.id)
            await asyncio.gather(task, return_exceptions=True)
            return job.id, cancelled, task

        job_id, cancelled, task = asyncio.run(scenario())

        assert cancelled
        assert task.cancelled()
        assert not orchestrator.is_polling(job_id)
        assert orchestrator.get_job(job_id).status == JobStatus.PROCESSING
        assert orchestrator.cancel(job_id) is False

    def test_start_polling_reuses_task(self, orchestrator_factory, provider_factory):
        provider = provider_factory(poll_script=[RUNNING])
        orchestrator = orchestrator_factory(
            provider, poll_interval_seconds=0.01, max_retries=10_000
        )

        async def scenario():
            job = await orchestrator.submit("analysis-1", "tread.jpg")
            first = orchestrator.start_polling(job.id)
            second = orchestrator.start_polling(job.id)
            await orchestrator.close()
            return first, second

        first, second = asyncio.run(scenario())

        assert first is second
        assert first.cancelled()

    def test_abandon_analysis(self, orchestrator_factory, provider_factory):
        """Test abandoning an analysis stops only its polling."""
        provider = provider_factory(submit_script=["task-a", "task-b"], poll_script=[RUNNING])
        orchestrator = orchestrator_factory(
            provider, poll_interval_seconds=0.01, max_retries=10_000
        )

        async def scenario():
            job_a = await orchestrator.submit("analysis-a", "a.jpg")
            job_b = await orchestrator.submit("analysis-b", "b.jpg")
            orchestrator.start_polling(job_a.id)
            orchestrator.start_polling(job_b.id)
            await asyncio.sleep(0.02)
            cancelled = orchestrator.abandon("analysis-a")
            await asyncio.sleep(0)
            still_polling = orchestrator.is_polling(job_b.id)
            await orchestrator.close()
            return job_a, cancelled, still_polling

        job_a, cancelled, still_polling = asyncio.run(scenario())

        assert cancelled == [job_a.id]
        assert still_polling

    def test_wait_for_terminal_job_returns_immediately(self, orchestrator_factory, provider_factory):
        provider = provider_factory(poll_script=[COMPLETED])
        orchestrator = orchestrator_factory(provider)

        async def scenario():
            job = await orchestrator.submit("analysis-1", "tread.jpg")
            await orchestrator.poll(job.id)
            return await orchestrator.wait_for(job.id)

        job = asyncio.run(scenario())

        assert job.status == JobStatus.COMPLETED
        assert provider.poll_calls == 1


class TestLookup:
    """Tests for job lookup through the store."""

    def test_get_job_falls_back_to_store(self, orchestrator_factory, provider_factory, store, fast_settings):
        """Test a job finished by one orchestrator is visible to another sharing the store."""
        provider = provider_factory(poll_script=[COMPLETED])
        orchestrator = orchestrator_factory(provider)

        async def scenario():
            job = await orchestrator.submit("analysis-1", "tread.jpg")
            return await orchestrator.poll(job.id)

        finished = asyncio.run(scenario())
        other = ModelGenerationOrchestrator(
            provider=provider, registry=JobRegistry(), store=store, settings=fast_settings
        )

        assert other.get_job(finished.id) == finished

    def test_terminal_jobs_leave_registry(self, orchestrator_factory, provider_factory, store):
        """Test a stored terminal job and its idle lock are dropped from memory."""
        provider = provider_factory(poll_script=[COMPLETED])
        orchestrator = orchestrator_factory(provider)

        async def scenario():
            job = await orchestrator.submit("analysis-1", "tread.jpg")
            held = (len(orchestrator.registry), orchestrator.registry.lock_count)
            done = await orchestrator.poll(job.id)
            again = await orchestrator.poll(job.id)
            waited = await orchestrator.wait_for(job.id)
            return held, done, again, waited

        held, done, again, waited = asyncio.run(scenario())

        assert held == (1, 1)
        assert len(orchestrator.registry) == 0
        assert orchestrator.registry.lock_count == 0
        assert orchestrator.get_job(done.id) == done
        assert again == done
        assert waited == done
        assert provider.poll_calls == 1

    def test_terminal_jobs_kept_without_store(self, provider_factory, fast_settings):
        provider = provider_factory(poll_script=[COMPLETED])
        orchestrator = ModelGenerationOrchestrator(provider=provider, settings=fast_settings)

        async def scenario():
            job = await orchestrator.submit("analysis-1", "tread.jpg")
            return await orchestrator.poll(job.id)

        done = asyncio.run(scenario())

        assert orchestrator.get_job(done.id) == done

    def test_snapshots_are_copies(self, orchestrator_factory, provider_factory):
        """Test mutating a returned snapshot does not touch the live job."""
        orchestrator = orchestrator_factory(provider_factory())

        job = asyncio.run(orchestrator.submit("analysis-1", "tread.jpg"))
        job.retry_count = 99

        assert orchestrator.get_job(job.id).retry_count == 0


class TestJobRegistry:
    """Tests for the registry's single-active-job rule."""

    def test_second_active_job_rejected(self):
        registry = JobRegistry()
        registry.add(ModelGenerationJob(analysis_id="a1"))

        with pytest.raises(ValueError):
            registry.add(ModelGenerationJob(analysis_id="a1"))

    def test_release_frees_slot(self):
        registry = JobRegistry()
        job = ModelGenerationJob(analysis_id="a1")
        registry.add(job)
        job.transition_to(JobStatus.FAILED, error_message="boom")

        registry.release(job)

        assert registry.active_for("a1") is None
        assert registry.get(job.id) is job

    def test_discard_rejects_active_job(self):
        registry = JobRegistry()
        job = ModelGenerationJob(analysis_id="a1")
        registry.add(job)

        with pytest.raises(ValueError):
            registry.discard(job)

    def test_idle_lock_dropped_after_use(self):
        registry = JobRegistry()

        async def scenario():
            async with registry.locked("a1"):
                inside = registry.lock_count
            return inside

        assert asyncio.run(scenario()) == 1
        assert registry.lock_count == 0

    def test_lock_kept_while_analysis_active(self):
        registry = JobRegistry()
        registry.add(ModelGenerationJob(analysis_id="a1"))

        async def scenario():
            async with registry.locked("a1"):
                pass

        asyncio.run(scenario())

        assert registry.lock_count == 1

    def test_one_lock_per_analysis(self):
        registry = JobRegistry()

        assert registry.lock_for("a1") is registry.lock_for("a1")
        assert registry.lock_for("a1") is not registry.lock_for("a2")


class TestParseProviderResponse:
    """Tests for provider response normalization."""

    @pytest.mark.parametrize("response,state", [
        ({"status": "running"}, ProviderState.RUNNING),
        ({"status": "PENDING"}, ProviderState.RUNNING),
        ({"status": "IN_PROGRESS", "progress": 40}, ProviderState.RUNNING),
        ({"status": "completed", "model_url": "u"}, ProviderState.COMPLETED),
        ({"status": "SUCCEEDED", "model_urls": {"glb": "u"}}, ProviderState.COMPLETED),
        ({"status": "failed"}, ProviderState.FAILED),
        ({"status": "completed"}, ProviderState.TRANSIENT),
        ({"status": "teleported"}, ProviderState.TRANSIENT),
        ({"progress": 20}, ProviderState.TRANSIENT),
        ("SUCCEEDED", ProviderState.TRANSIENT),
        (None, ProviderState.TRANSIENT),
    ])
    def test_states(self, response, state):
        assert parse_provider_response(response).state == state

    def test_task_form_urls_and_errors(self):
        """Test nested model_urls and task_error fields are read."""
        done = parse_provider_response({"status": "SUCCEEDED", "model_urls": {"glb": "https://x/y.glb"}})
        failed = parse_provider_response(
            {"status": "FAILED", "task_error": {"message": "Image too dark"}}
        )

        assert done.model_url == "https://x/y.glb"
        assert failed.error == "Image too dark"

    def test_failed_without_reason_gets_default(self):
        assert parse_provider_response({"status": "error"}).error == "Model generation failed"

    def test_progress_clamped(self):
        assert parse_provider_response({"status": "running", "progress": 140}).progress == 100

    def test_outcome_passthrough(self):
        outcome = ProviderOutcome(state=ProviderState.RUNNING)

        assert parse_provider_response(outcome) is outcome

    def test_completed_outcome_without_url_is_transient(self):
        outcome = parse_provider_response(ProviderOutcome(state=ProviderState.COMPLETED))

        assert outcome.state == ProviderState.TRANSIENT

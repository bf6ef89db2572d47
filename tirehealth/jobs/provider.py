"""
Boundary to the external 3D reconstruction provider.

The provider accepts an image reference and returns a task id; polling a
task returns running, completed-with-model-url or failed-with-reason.
Anything else is normalized to a transient outcome.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Mapping, Optional
from uuid import uuid4

from pydantic import BaseModel, Field

from tirehealth.exceptions import ProviderError, TransientProviderError

logger = logging.getLogger(__name__)

RUNNING_STATUSES = {"running", "pending", "queued", "processing", "in_progress"}
COMPLETED_STATUSES = {"completed", "succeeded", "success"}
FAILED_STATUSES = {"failed", "error", "canceled", "cancelled", "expired"}


class ProviderState(str, Enum):
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    TRANSIENT = "transient"


class ProviderOutcome(BaseModel):
    """Normalized result of one provider poll."""
    state: ProviderState
    model_url: Optional[str] = None
    error: Optional[str] = None
    progress: Optional[int] = Field(default=None, ge=0, le=100)

    model_config = {"protected_namespaces": ()}

    @classmethod
    def transient(cls, reason: str) -> "ProviderOutcome":
        return cls(state=ProviderState.TRANSIENT, error=reason)


def _nested(data: Mapping[str, Any], outer: str, inner: str) -> Any:
    value = data.get(outer)
    if isinstance(value, Mapping):
        return value.get(inner)
    return None


def _progress(data: Mapping[str, Any]) -> Optional[int]:
    value = data.get("progress")
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return max(0, min(100, int(value)))
    return None


def parse_provider_response(response: Any) -> ProviderOutcome:
    """
    Normalize a raw poll response.

    Accepts a ProviderOutcome or a mapping with a "status" field, either
    the plain form {"status": "completed", "model_url": ...} or the
    task form {"status": "SUCCEEDED", "model_urls": {"glb": ...}}.
    A completed result without a model URL is transient in either form.
    """
    if isinstance(response, ProviderOutcome):
        if response.state == ProviderState.COMPLETED and not response.model_url:
            return ProviderOutcome.transient("Completed response without a model URL")
        return response
    if not isinstance(response, Mapping):
        return ProviderOutcome.transient(f"Unexpected response type {type(response).__name__}")

    status = response.get("status")
    if not isinstance(status, str):
        return ProviderOutcome.transient("Response has no status")

    key = status.strip().lower()
    if key in RUNNING_STATUSES:
        return ProviderOutcome(state=ProviderState.RUNNING, progress=_progress(response))

    if key in COMPLETED_STATUSES:
        url = response.get("model_url") or _nested(response, "model_urls", "glb")
        if not url:
            return ProviderOutcome.transient("Completed response without a model URL")
        return ProviderOutcome(state=ProviderState.COMPLETED, model_url=str(url), progress=100)

    if key in FAILED_STATUSES:
        reason = (
            response.get("error")
            or _nested(response, "task_error", "message")
            or "Model generation failed"
        )
        return ProviderOutcome(state=ProviderState.FAILED, error=str(reason))

    return ProviderOutcome.transient(f"Unrecognized status {status!r}")


class ReconstructionProvider(ABC):
    """Abstract image-to-3D service."""

    @abstractmethod
    async def submit_job(self, image_path: str) -> str:
        """
        Start a reconstruction and return the provider task id.

        Raises:
            TransientProviderError: For faults worth retrying
            ProviderError: For an explicit rejection
        """
        ...

    @abstractmethod
    async def poll_job(self, external_job_id: str) -> Any:
        """Return the raw status response for a task."""
        ...


class SimulatedReconstructionProvider(ReconstructionProvider):
    """
    Deterministic in-process provider for development, tests and the CLI.

    Each task reports IN_PROGRESS for `running_polls` polls, then either
    SUCCEEDED with a model URL or FAILED with `fail_reason`.
    """

    def __init__(
        self,
        running_polls: int = 2,
        fail_reason: Optional[str] = None,
        submit_failures: int = 0,
        reject_submit: Optional[str] = None,
        latency_seconds: float = 0.0,
        model_url_template: str = "https://models.local/{task_id}.glb",
    ):
        self.running_polls = running_polls
        self.fail_reason = fail_reason
        self.reject_submit = reject_submit
        self.latency_seconds = latency_seconds
        self.model_url_template = model_url_template
        self._submit_failures_left = submit_failures
        self.submit_calls = 0
        self.poll_counts: dict[str, int] = {}

    async def submit_job(self, image_path: str) -> str:
        self.submit_calls += 1
        await asyncio.sleep(self.latency_seconds)

        if self.reject_submit:
            raise ProviderError(self.reject_submit)
        if self._submit_failures_left > 0:
            self._submit_failures_left -= 1
            raise TransientProviderError("Simulated provider outage")

        task_id = f"sim-{uuid4().hex[:12]}"
        self.poll_counts[task_id] = 0
        logger.debug("Simulated task %s for %s", task_id, image_path)
        return task_id

    async def poll_job(self, external_job_id: str) -> Any:
        await asyncio.sleep(self.latency_seconds)

        if external_job_id not in self.poll_counts:
            return {"status": "FAILED", "task_error": {"message": "Unknown task"}}

        self.poll_counts[external_job_id] += 1
        count = self.poll_counts[external_job_id]
        if count <= self.running_polls:
            progress = int(100 * count / (self.running_polls + 1))
            return {"status": "IN_PROGRESS", "progress": progress}

        if self.fail_reason:
            return {"status": "FAILED", "task_error": {"message": self.fail_reason}}
        return {
            "status": "SUCCEEDED",
            "progress": 100,
            "model_urls": {"glb": self.model_url_template.format(task_id=external_job_id)},
        }

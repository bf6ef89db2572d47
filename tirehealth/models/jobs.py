"""
Model generation job record.

Tracks one external 3D reconstruction request through
pending -> processing -> completed | failed.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional
from uuid import uuid4

from pydantic import BaseModel, Field

from tirehealth.exceptions import InvalidJobTransitionError


class JobStatus(str, Enum):
    """Lifecycle state of a model generation job."""
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED)


# Allowed forward transitions; terminal states have none
_TRANSITIONS: dict[JobStatus, tuple[JobStatus, ...]] = {
    JobStatus.PENDING: (JobStatus.PROCESSING, JobStatus.FAILED),
    JobStatus.PROCESSING: (JobStatus.COMPLETED, JobStatus.FAILED),
    JobStatus.COMPLETED: (),
    JobStatus.FAILED: (),
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ModelGenerationJob(BaseModel):
    """Lifecycle of one external 3D reconstruction request."""
    id: str = Field(default_factory=lambda: str(uuid4()))
    analysis_id: str = Field(..., description="Owning analysis")
    external_job_id: str = Field(default="", description="Provider task id")
    status: JobStatus = Field(default=JobStatus.PENDING)
    created_at: datetime = Field(default_factory=_utcnow)
    completed_at: Optional[datetime] = None
    retry_count: int = Field(default=0, ge=0)
    model_url: Optional[str] = None
    error_message: Optional[str] = None

    model_config = {"protected_namespaces": ()}

    @property
    def is_active(self) -> bool:
        return not self.status.is_terminal

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    def transition_to(
        self,
        status: JobStatus,
        *,
        external_job_id: Optional[str] = None,
        model_url: Optional[str] = None,
        error_message: Optional[str] = None,
    ) -> None:
        """
        Move the job to a new status in place.

        Raises:
            InvalidJobTransitionError: If the move is not allowed
        """
        if status not in _TRANSITIONS[self.status]:
            raise InvalidJobTransitionError(self.id, self.status.value, status.value)

        self.status = status
        if external_job_id is not None:
            self.external_job_id = external_job_id
        if model_url is not None:
            self.model_url = model_url
        if error_message is not None:
            self.error_message = error_message
        if status.is_terminal:
            self.completed_at = _utcnow()

    def record_retry(self) -> int:
        """Count one more non-terminal poll and return the new count."""
        if self.is_terminal:
            raise InvalidJobTransitionError(self.id, self.status.value, self.status.value)
        self.retry_count += 1
        return self.retry_count

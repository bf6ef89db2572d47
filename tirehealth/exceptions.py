"""
Exception hierarchy for tirehealth.

Decode faults never surface as exceptions; these cover the job
orchestrator and its external provider.
"""


class TireHealthError(Exception):
    """Base exception for tirehealth errors."""
    pass


class ProviderError(TireHealthError):
    """The 3D reconstruction provider rejected a request outright."""
    pass


class TransientProviderError(ProviderError):
    """Provider fault worth retrying (timeouts, 5xx, malformed replies)."""
    pass


class JobNotFoundError(TireHealthError):
    """Raised when a model generation job id is unknown."""
    def __init__(self, job_id: str):
        self.job_id = job_id
        super().__init__(f"Model generation job '{job_id}' not found.")


class InvalidJobTransitionError(TireHealthError):
    """Raised when a job is asked to leave a terminal state or skip a step."""
    def __init__(self, job_id: str, current: str, target: str):
        self.job_id = job_id
        self.current = current
        self.target = target
        super().__init__(
            f"Job '{job_id}' cannot transition from {current} to {target}."
        )

"""Abstract persistence boundary and an in-memory implementation."""

import logging
from abc import ABC, abstractmethod
from typing import Optional

from tirehealth.models.analysis import ComprehensiveTireAnalysis
from tirehealth.models.jobs import ModelGenerationJob

logger = logging.getLogger(__name__)


class AnalysisStore(ABC):
    """Read/write of analyses and model generation jobs, keyed by id."""

    @abstractmethod
    def save_analysis(self, analysis: ComprehensiveTireAnalysis) -> None:
        """Persist an analysis, replacing any record with the same id."""
        ...

    @abstractmethod
    def get_analysis(self, analysis_id: str) -> Optional[ComprehensiveTireAnalysis]:
        """Return the analysis, or None if unknown."""
        ...

    @abstractmethod
    def save_job(self, job: ModelGenerationJob) -> None:
        """Persist a job snapshot."""
        ...

    @abstractmethod
    def get_job(self, job_id: str) -> Optional[ModelGenerationJob]:
        """Return the job, or None if unknown."""
        ...


class InMemoryAnalysisStore(AnalysisStore):
    """Dict-backed store for development and tests."""

    def __init__(self):
        self._analyses: dict[str, ComprehensiveTireAnalysis] = {}
        self._jobs: dict[str, ModelGenerationJob] = {}

    def save_analysis(self, analysis: ComprehensiveTireAnalysis) -> None:
        self._analyses[analysis.id] = analysis
        logger.debug("Stored analysis %s", analysis.id)

    def get_analysis(self, analysis_id: str) -> Optional[ComprehensiveTireAnalysis]:
        return self._analyses.get(analysis_id)

    def save_job(self, job: ModelGenerationJob) -> None:
        # Store a copy so later in-place transitions do not leak in
        self._jobs[job.id] = job.model_copy(deep=True)
        logger.debug("Stored job %s (%s)", job.id, job.status.value)

    def get_job(self, job_id: str) -> Optional[ModelGenerationJob]:
        job = self._jobs.get(job_id)
        return job.model_copy(deep=True) if job is not None else None

    def list_jobs(self, analysis_id: str) -> list[ModelGenerationJob]:
        """All stored jobs for one analysis, oldest first."""
        jobs = [j for j in self._jobs.values() if j.analysis_id == analysis_id]
        return sorted(jobs, key=lambda j: j.created_at)

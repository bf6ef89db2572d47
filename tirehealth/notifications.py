"""
Notification boundary.

The notifier hears about job terminal transitions and analyses whose
action level is "service immediately" or worse. Delivery is external.
"""

import logging
from abc import ABC, abstractmethod

from tirehealth.models.analysis import ComprehensiveTireAnalysis
from tirehealth.models.jobs import JobStatus, ModelGenerationJob

logger = logging.getLogger(__name__)


class Notifier(ABC):
    """Receives events worth telling the tire owner about."""

    @abstractmethod
    def job_finished(self, job: ModelGenerationJob) -> None:
        """Called once when a job reaches completed or failed."""
        ...

    @abstractmethod
    def action_required(self, analysis: ComprehensiveTireAnalysis) -> None:
        """Called for analyses at or above the notification urgency."""
        ...


class LoggingNotifier(Notifier):
    """Writes notifications to the log."""

    def job_finished(self, job: ModelGenerationJob) -> None:
        if job.status == JobStatus.COMPLETED:
            logger.info("3D model ready for analysis %s: %s", job.analysis_id, job.model_url)
        else:
            logger.warning(
                "3D model generation failed for analysis %s: %s",
                job.analysis_id, job.error_message,
            )

    def action_required(self, analysis: ComprehensiveTireAnalysis) -> None:
        logger.warning(
            "Tire %s needs attention: %s (score %d)",
            analysis.id, analysis.action_required.display_name, analysis.overall_health_score,
        )


class RecordingNotifier(Notifier):
    """Keeps every notification in memory."""

    def __init__(self):
        self.finished_jobs: list[ModelGenerationJob] = []
        self.alerts: list[ComprehensiveTireAnalysis] = []

    def job_finished(self, job: ModelGenerationJob) -> None:
        self.finished_jobs.append(job.model_copy(deep=True))

    def action_required(self, analysis: ComprehensiveTireAnalysis) -> None:
        self.alerts.append(analysis)

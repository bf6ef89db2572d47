"""
Output models for tire health assessments.

A ComprehensiveTireAnalysis is created once per capture and never
mutated; a new capture produces a new record.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional
from uuid import uuid4

from pydantic import BaseModel, Field, model_validator

from tirehealth.config import NOTIFY_ACTION_URGENCY
from tirehealth.models.signals import (
    DotCodeInfo,
    TireDefect,
    TireSizeInfo,
    TreadDepthMeasurement,
)


class OverallTireStatus(str, Enum):
    """Composite status mapped from the health score."""
    EXCELLENT = "excellent"
    GOOD = "good"
    FAIR = "fair"
    POOR = "poor"
    CRITICAL = "critical"

    @property
    def display_name(self) -> str:
        return _STATUS_NAMES[self]


_STATUS_NAMES = {
    OverallTireStatus.EXCELLENT: "Excellent - No Issues",
    OverallTireStatus.GOOD: "Good - Minor Wear",
    OverallTireStatus.FAIR: "Fair - Monitor Closely",
    OverallTireStatus.POOR: "Poor - Service Soon",
    OverallTireStatus.CRITICAL: "Critical - Unsafe",
}


class ActionRequired(str, Enum):
    """Ordinal urgency from no action to do-not-drive."""
    NONE = "none"
    MONITOR = "monitor"
    SERVICE_SOON = "service_soon"
    SERVICE_NOW = "service_now"
    REPLACE = "replace"
    DO_NOT_DRIVE = "do_not_drive"

    @property
    def urgency(self) -> int:
        return list(ActionRequired).index(self)

    @property
    def display_name(self) -> str:
        return _ACTION_NAMES[self]

    @classmethod
    def most_urgent(cls, *actions: "ActionRequired") -> "ActionRequired":
        """Highest urgency among the given levels (NONE when empty)."""
        return max(actions, key=lambda a: a.urgency, default=cls.NONE)


_ACTION_NAMES = {
    ActionRequired.NONE: "No Action Needed",
    ActionRequired.MONITOR: "Monitor & Re-check",
    ActionRequired.SERVICE_SOON: "Service Within 30 Days",
    ActionRequired.SERVICE_NOW: "Service Immediately",
    ActionRequired.REPLACE: "Replace Tire",
    ActionRequired.DO_NOT_DRIVE: "Do Not Drive - Unsafe",
}


class ServiceType(str, Enum):
    """Kind of shop service a recommendation asks for."""
    ROTATION = "rotation"
    BALANCING = "balancing"
    ALIGNMENT = "alignment"
    REPAIR = "repair"
    REPLACEMENT = "replacement"
    PRESSURE_ADJUSTMENT = "pressure_adjustment"
    INSPECTION = "inspection"


class CostRange(BaseModel):
    """Estimated cost in whole USD."""
    min: int = Field(..., ge=0, description="Low estimate (USD)")
    max: int = Field(..., ge=0, description="High estimate (USD)")

    @model_validator(mode="after")
    def check_order(self) -> "CostRange":
        if self.max < self.min:
            raise ValueError("CostRange max must be >= min")
        return self

    @property
    def mid(self) -> float:
        return (self.min + self.max) / 2


class TireRecommendation(BaseModel):
    """One remediation step. Priority 5 is the most urgent."""
    title: str
    description: str
    priority: int = Field(..., ge=1, le=5, description="1 lowest .. 5 most urgent")
    estimated_cost: Optional[CostRange] = Field(default=None)
    service_type: ServiceType


class ConcernSource(str, Enum):
    """Signal a concern came from, in evaluation order."""
    TREAD = "tread"
    DEFECT = "defect"
    AGE = "age"


class HealthConcern(BaseModel):
    """One human-readable cause with the priority used for ordering."""
    text: str
    priority: int = Field(..., ge=0, le=4, description="0 informational .. 4 critical")
    source: ConcernSource


class HealthAssessment(BaseModel):
    """
    Scorer output: composite score, status and ordered concerns,
    together with the signals that were scored.
    """
    tread_depth: TreadDepthMeasurement
    tire_size: TireSizeInfo
    dot_code: DotCodeInfo
    defects: list[TireDefect] = Field(default_factory=list)

    overall_health_score: int = Field(..., ge=0, le=100)
    overall_status: OverallTireStatus
    concerns: list[HealthConcern] = Field(default_factory=list)

    @property
    def primary_concerns(self) -> list[str]:
        return [c.text for c in self.concerns]


class RecommendationPlan(BaseModel):
    """Generator output: ordered recommendations and the required action."""
    recommendations: list[TireRecommendation] = Field(default_factory=list)
    action_required: ActionRequired = ActionRequired.NONE
    estimated_cost_range: Optional[CostRange] = None


class ComprehensiveTireAnalysis(BaseModel):
    """
    One complete assessment of one tire capture.

    Combines the decoded signals with the composite score, concerns,
    recommendations and the required action.
    """
    id: str = Field(default_factory=lambda: str(uuid4()))
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    # Source data
    tread_depth: TreadDepthMeasurement
    tire_size: TireSizeInfo
    dot_code: DotCodeInfo
    defects: list[TireDefect] = Field(default_factory=list)

    # Captured images
    tread_image_path: Optional[str] = None
    sidewall_image_path: Optional[str] = None

    # Overall assessment
    overall_health_score: int = Field(..., ge=0, le=100)
    overall_status: OverallTireStatus
    primary_concerns: list[str] = Field(default_factory=list)
    recommendations: list[TireRecommendation] = Field(default_factory=list)

    # Action required
    action_required: ActionRequired
    estimated_cost_range: Optional[CostRange] = None

    # 3D reconstruction side channel
    generation_job_id: Optional[str] = None

    model_config = {"frozen": True}

    @property
    def needs_attention(self) -> bool:
        """Whether the action level warrants notifying the owner."""
        return self.action_required.urgency >= NOTIFY_ACTION_URGENCY

    def with_generation_job(self, job_id: str) -> "ComprehensiveTireAnalysis":
        """Return a copy linked to a model generation job."""
        return self.model_copy(update={"generation_job_id": job_id})

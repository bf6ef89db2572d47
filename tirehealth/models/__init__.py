"""
Pydantic models for tire health inputs, decoded signals and outputs.
"""

from tirehealth.models.inputs import (
    RawTreadReading,
    RawBoundingBox,
    RawDefectDetection,
    RecognitionOutput,
)
from tirehealth.models.signals import (
    TreadStatus,
    TreadWearPattern,
    TireAgeStatus,
    DefectType,
    DefectSeverity,
    TreadDepthMeasurement,
    TireSizeInfo,
    DotCodeInfo,
    BoundingBox,
    TireDefect,
    age_status_for_months,
)
from tirehealth.models.analysis import (
    OverallTireStatus,
    ActionRequired,
    ServiceType,
    CostRange,
    TireRecommendation,
    ConcernSource,
    HealthConcern,
    HealthAssessment,
    RecommendationPlan,
    ComprehensiveTireAnalysis,
)
from tirehealth.models.jobs import JobStatus, ModelGenerationJob

__all__ = [
    "RawTreadReading",
    "RawBoundingBox",
    "RawDefectDetection",
    "RecognitionOutput",
    "TreadStatus",
    "TreadWearPattern",
    "TireAgeStatus",
    "DefectType",
    "DefectSeverity",
    "TreadDepthMeasurement",
    "TireSizeInfo",
    "DotCodeInfo",
    "BoundingBox",
    "TireDefect",
    "age_status_for_months",
    "OverallTireStatus",
    "ActionRequired",
    "ServiceType",
    "CostRange",
    "TireRecommendation",
    "ConcernSource",
    "HealthConcern",
    "HealthAssessment",
    "RecommendationPlan",
    "ComprehensiveTireAnalysis",
    "JobStatus",
    "ModelGenerationJob",
]

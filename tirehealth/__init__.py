"""
Tire Health (tirehealth)

Assesses tire health from low-confidence recognition signals (tread
geometry, defect detections, sidewall size and DOT markings) and tracks
3D model generation jobs against an external provider.

Usage:
    python -m tirehealth make-example
    python -m tirehealth assess --input example_capture.json
    python -m tirehealth generate-model --image tread.jpg
    python -m tirehealth serve --port 8000
"""

__version__ = "0.1.0"
__author__ = "Tire Health Project"

from tirehealth.models import (
    ActionRequired,
    ComprehensiveTireAnalysis,
    DotCodeInfo,
    ModelGenerationJob,
    OverallTireStatus,
    RecognitionOutput,
    TireDefect,
    TireSizeInfo,
    TreadDepthMeasurement,
)
from tirehealth.engine import TireHealthEngine, assess
from tirehealth.jobs import ModelGenerationOrchestrator

__all__ = [
    "ActionRequired",
    "ComprehensiveTireAnalysis",
    "DotCodeInfo",
    "ModelGenerationJob",
    "OverallTireStatus",
    "RecognitionOutput",
    "TireDefect",
    "TireSizeInfo",
    "TreadDepthMeasurement",
    "TireHealthEngine",
    "assess",
    "ModelGenerationOrchestrator",
]

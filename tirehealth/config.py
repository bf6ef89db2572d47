"""
Configuration for the tire health engine and job orchestrator.

Thresholds, lookup tables and orchestrator timing live here.
Change values here, not in the decoding or scoring modules.
"""

import logging
import os
from typing import Mapping, Optional

from pydantic import BaseModel, Field


# --- Tread depth ---

MIN_TREAD_CONFIDENCE: float = 0.7
NEW_TIRE_TREAD_DEPTH_MM: float = 8.0
LEGAL_MIN_TREAD_DEPTH_MM: float = 1.6
# Deeper readings than this are not physical tire tread
MAX_TREAD_DEPTH_MM: float = 50.0

# Minimum depth (mm) at or above which each tread status applies
TREAD_STATUS_THRESHOLDS_MM: dict[str, float] = {
    "excellent": 6.0,
    "good": 4.0,
    "fair": 3.0,
    "low": LEGAL_MIN_TREAD_DEPTH_MM,
}

# Roughly 1 mm of tread per 10,000 km
KM_PER_MM_TREAD: float = 10_000.0

# --- Tire age (months) ---

AGE_BUCKET_LIMITS_MONTHS: dict[str, int] = {
    "new": 36,
    "good": 60,
    "aging": 72,
    "old": 120,
}

# --- Overall status ---
# The single threshold set used for overall status. POOR/CRITICAL at 35
# and GOOD at 70 are also the critical/caution lines reported to callers.

STATUS_THRESHOLDS: dict[str, int] = {
    "excellent": 85,
    "good": 70,
    "fair": 55,
    "poor": 35,
}

# --- Sidewall lookup tables ---

LOOKUP_TABLE_VERSION: str = "2024.1"

# ETRTO load index -> maximum load per tire (kg)
LOAD_INDEX_TABLE: dict[int, int] = {
    70: 335, 71: 345, 72: 355, 73: 365, 74: 375,
    75: 387, 76: 400, 77: 412, 78: 425, 79: 437,
    80: 450, 81: 462, 82: 475, 83: 487, 84: 500,
    85: 515, 86: 530, 87: 545, 88: 560, 89: 580,
    90: 600, 91: 615, 92: 630, 93: 650, 94: 670,
    95: 690, 96: 710, 97: 730, 98: 750, 99: 775,
    100: 800, 101: 825, 102: 850, 103: 875, 104: 900,
}

# Speed rating letter -> maximum speed (km/h). Z is open-ended above 240.
SPEED_RATING_TABLE: dict[str, int] = {
    "L": 120, "M": 130, "N": 140, "P": 150, "Q": 160,
    "R": 170, "S": 180, "T": 190, "U": 200, "H": 210,
    "V": 240, "W": 270, "Y": 300, "Z": 300,
}

# --- Service costs ---

# Typical shop price per tire (USD, min/max) by service type value.
# A type absent from the table has no cost estimate.
SERVICE_COST_USD: dict[str, tuple[int, int]] = {
    "replacement": (120, 250),
    "repair": (20, 45),
    "alignment": (80, 150),
    "balancing": (15, 60),
    "rotation": (20, 50),
    "inspection": (25, 100),
    "pressure_adjustment": (0, 0),
}

# --- Notifications ---

# ActionRequired urgency at or above which the notifier is informed
NOTIFY_ACTION_URGENCY: int = 3

# --- Logging ---

LOG_LEVEL: str = os.environ.get("TIREHEALTH_LOG_LEVEL", "INFO")
LOG_FORMAT: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(level: Optional[str] = None) -> None:
    """Configure root logging once for CLI and API entry points."""
    level_name = (level or LOG_LEVEL).upper()
    logging.basicConfig(
        level=getattr(logging, level_name, logging.INFO),
        format=LOG_FORMAT,
        force=True,
    )
    logging.getLogger("tirehealth").setLevel(getattr(logging, level_name, logging.INFO))


# --- Model generation orchestrator ---

class OrchestratorSettings(BaseModel):
    """
    Timing and retry bounds for model generation jobs.

    The defaults give a 10 minute ceiling (120 polls, 5 s apart).
    """
    poll_interval_seconds: float = Field(default=5.0, ge=0.0)
    max_retries: int = Field(default=120, ge=0)
    submit_attempts: int = Field(default=3, ge=1)
    submit_retry_wait_seconds: float = Field(default=1.0, ge=0.0)

    @property
    def timeout_seconds(self) -> float:
        """Upper bound on time spent polling one job."""
        return self.poll_interval_seconds * self.max_retries

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "OrchestratorSettings":
        """Build settings, letting TIREHEALTH_* variables override defaults."""
        env = os.environ if env is None else env
        overrides = {}
        mapping = {
            "TIREHEALTH_POLL_INTERVAL_S": "poll_interval_seconds",
            "TIREHEALTH_MAX_RETRIES": "max_retries",
            "TIREHEALTH_SUBMIT_ATTEMPTS": "submit_attempts",
            "TIREHEALTH_SUBMIT_RETRY_WAIT_S": "submit_retry_wait_seconds",
        }
        for var, field in mapping.items():
            value = env.get(var)
            if value not in (None, ""):
                overrides[field] = value
        return cls(**overrides)

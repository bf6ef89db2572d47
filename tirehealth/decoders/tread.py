"""
Tread depth decoder.

Turns three raw gauge samples into a TreadDepthMeasurement with wear
percentage, wear pattern, status and a rough remaining-distance
estimate. Malformed input yields TreadDepthMeasurement.empty().
"""

import logging
import math
from typing import Any, Mapping, Optional, Union

from pydantic import ValidationError

from tirehealth.config import (
    KM_PER_MM_TREAD,
    LEGAL_MIN_TREAD_DEPTH_MM,
    MAX_TREAD_DEPTH_MM,
    NEW_TIRE_TREAD_DEPTH_MM,
    TREAD_STATUS_THRESHOLDS_MM,
)
from tirehealth.models.inputs import RawTreadReading
from tirehealth.models.signals import TreadDepthMeasurement, TreadStatus, TreadWearPattern
from tirehealth.units import depth_to_mm

logger = logging.getLogger(__name__)

# Depth differences (mm) used to classify wear patterns
PATTERN_STEP_MM = 1.0
ONE_SIDE_SPREAD_MM = 2.0
EVEN_TOLERANCE_MM = 0.5


def classify_wear_pattern(inner: float, center: float, outer: float) -> TreadWearPattern:
    """
    Classify the wear pattern from three lateral depths (mm).

    - Center shallower than both shoulders: over-inflation
    - Center deeper than both shoulders: under-inflation
    - Large inner/outer spread: alignment
    - All points close together: even wear
    """
    if center < inner - PATTERN_STEP_MM and center < outer - PATTERN_STEP_MM:
        return TreadWearPattern.CENTER_WEAR
    if center > inner + PATTERN_STEP_MM and center > outer + PATTERN_STEP_MM:
        return TreadWearPattern.EDGE_WEAR
    if abs(inner - outer) > ONE_SIDE_SPREAD_MM:
        return TreadWearPattern.ONE_SIDE_WEAR
    if abs(inner - center) < EVEN_TOLERANCE_MM and abs(center - outer) < EVEN_TOLERANCE_MM:
        return TreadWearPattern.EVEN
    return TreadWearPattern.UNKNOWN


def classify_tread_status(minimum_depth_mm: float) -> TreadStatus:
    """Tread status from the shallowest point."""
    if minimum_depth_mm >= TREAD_STATUS_THRESHOLDS_MM["excellent"]:
        return TreadStatus.EXCELLENT
    if minimum_depth_mm >= TREAD_STATUS_THRESHOLDS_MM["good"]:
        return TreadStatus.GOOD
    if minimum_depth_mm >= TREAD_STATUS_THRESHOLDS_MM["fair"]:
        return TreadStatus.FAIR
    if minimum_depth_mm >= TREAD_STATUS_THRESHOLDS_MM["low"]:
        return TreadStatus.LOW
    return TreadStatus.CRITICAL


def wear_percentage(average_depth_mm: float) -> float:
    """Percent of a new tread worn away, clamped to [0, 100]."""
    worn = (NEW_TIRE_TREAD_DEPTH_MM - average_depth_mm) / NEW_TIRE_TREAD_DEPTH_MM * 100
    return max(0.0, min(100.0, worn))


def _coerce_reading(
    raw: Union[RawTreadReading, Mapping[str, Any], None],
) -> Optional[RawTreadReading]:
    if raw is None:
        return None
    if isinstance(raw, RawTreadReading):
        return raw
    try:
        return RawTreadReading.model_validate(raw)
    except ValidationError as e:
        logger.debug("Unreadable tread reading: %s", e)
        return None


def decode_tread_depth(
    raw: Union[RawTreadReading, Mapping[str, Any], None],
) -> TreadDepthMeasurement:
    """
    Decode raw tread samples into a TreadDepthMeasurement.

    Args:
        raw: RawTreadReading or an equivalent mapping

    Returns:
        Decoded measurement, or the empty sentinel for unusable input
    """
    reading = _coerce_reading(raw)
    if reading is None:
        return TreadDepthMeasurement.empty()

    samples = (reading.inner, reading.center, reading.outer)
    if any(not math.isfinite(v) or v < 0 for v in samples):
        logger.debug("Rejecting tread samples out of range: %s", samples)
        return TreadDepthMeasurement.empty()

    try:
        inner, center, outer = (depth_to_mm(v, reading.unit) for v in samples)
    except ValueError as e:
        logger.debug("Rejecting tread reading: %s", e)
        return TreadDepthMeasurement.empty()

    depths = (inner, center, outer)
    if any(not math.isfinite(v) or v > MAX_TREAD_DEPTH_MM for v in depths):
        logger.debug("Rejecting tread depths beyond %.0f mm: %s", MAX_TREAD_DEPTH_MM, depths)
        return TreadDepthMeasurement.empty()

    average = sum(depths) / 3
    minimum = min(depths)
    confidence = max(0.0, min(1.0, reading.confidence)) if math.isfinite(reading.confidence) else 0.0
    remaining_km = int(round(max(0.0, minimum - LEGAL_MIN_TREAD_DEPTH_MM) * KM_PER_MM_TREAD))

    try:
        return TreadDepthMeasurement(
            inner_depth_mm=round(inner, 2),
            center_depth_mm=round(center, 2),
            outer_depth_mm=round(outer, 2),
            average_depth_mm=round(average, 2),
            minimum_depth_mm=round(minimum, 2),
            confidence=confidence,
            quality_score=max(0, min(100, reading.quality_score)),
            wear_percentage=round(wear_percentage(average), 1),
            wear_pattern=classify_wear_pattern(inner, center, outer),
            status=classify_tread_status(minimum),
            estimated_remaining_km=remaining_km,
        )
    except ValidationError as e:
        logger.debug("Rejecting inconsistent tread measurement: %s", e)
        return TreadDepthMeasurement.empty()

"""
Defect decoder.

Maps classifier labels to DefectType, assigns a base severity per type
and downgrades severity one level for low-confidence detections.
"Good"/"normal" labels and unrecognized labels produce no defect.
"""

import logging
import math
from typing import Any, Iterable, Mapping, Optional, Union

from pydantic import ValidationError

from tirehealth.models.inputs import RawDefectDetection
from tirehealth.models.signals import BoundingBox, DefectSeverity, DefectType, TireDefect

logger = logging.getLogger(__name__)

# Detections below this confidence are downgraded one severity level
LOW_CONFIDENCE_THRESHOLD = 0.5

LABEL_ALIASES: dict[str, Optional[DefectType]] = {
    "crack": DefectType.CRACK,
    "cracked": DefectType.CRACK,
    "bulge": DefectType.BULGE,
    "bubble": DefectType.BULGE,
    "cut": DefectType.CUT,
    "slash": DefectType.CUT,
    "puncture": DefectType.PUNCTURE,
    "nail": DefectType.PUNCTURE,
    "worn": DefectType.WORN_TREAD,
    "wear": DefectType.WORN_TREAD,
    "worn_tread": DefectType.WORN_TREAD,
    "sidewall": DefectType.SIDEWALL_DAMAGE,
    "sidewall_damage": DefectType.SIDEWALL_DAMAGE,
    "foreign": DefectType.FOREIGN_OBJECT,
    "object": DefectType.FOREIGN_OBJECT,
    "foreign_object": DefectType.FOREIGN_OBJECT,
    "dry_rot": DefectType.DRY_ROT,
    "age": DefectType.DRY_ROT,
    "aging": DefectType.DRY_ROT,
    "bead": DefectType.BEAD_DAMAGE,
    "bead_damage": DefectType.BEAD_DAMAGE,
    # Explicit "no defect" labels
    "good": None,
    "ok": None,
    "normal": None,
}

BASE_SEVERITY: dict[DefectType, DefectSeverity] = {
    DefectType.BULGE: DefectSeverity.CRITICAL,
    DefectType.SIDEWALL_DAMAGE: DefectSeverity.CRITICAL,
    DefectType.BEAD_DAMAGE: DefectSeverity.CRITICAL,
    DefectType.CUT: DefectSeverity.HIGH,
    DefectType.PUNCTURE: DefectSeverity.HIGH,
    DefectType.CRACK: DefectSeverity.MEDIUM,
    DefectType.DRY_ROT: DefectSeverity.MEDIUM,
    DefectType.WORN_TREAD: DefectSeverity.LOW,
    DefectType.FOREIGN_OBJECT: DefectSeverity.LOW,
}

DEFECT_DESCRIPTIONS: dict[DefectType, str] = {
    DefectType.CRACK: "Crack detected in tire rubber. May indicate age or damage.",
    DefectType.BULGE: "Bulge or bubble detected. This indicates internal damage - replace immediately.",
    DefectType.CUT: "Cut or slash detected. Assess depth to determine if repairable.",
    DefectType.PUNCTURE: "Puncture detected. May be repairable if in tread area.",
    DefectType.WORN_TREAD: "Tread wear detected. Monitor tread depth closely.",
    DefectType.SIDEWALL_DAMAGE: "Sidewall damage detected. Sidewall repairs are not safe - replace the tire.",
    DefectType.FOREIGN_OBJECT: "Foreign object embedded in tire. Have it removed and inspected.",
    DefectType.DRY_ROT: "Dry rot or age cracking detected. Rubber is deteriorating.",
    DefectType.BEAD_DAMAGE: "Bead damage detected. The tire may not seal on the rim - replace the tire.",
}


def normalize_label(label: str) -> str:
    return "_".join(label.strip().lower().replace("-", " ").split())


def map_label(label: str) -> Optional[DefectType]:
    """Defect type for a classifier label, or None for no/unknown defect."""
    key = normalize_label(label)
    if key in LABEL_ALIASES:
        return LABEL_ALIASES[key]
    # Fall back to the first alias contained in a compound label
    for alias, defect_type in LABEL_ALIASES.items():
        if defect_type is not None and alias in key.split("_"):
            return defect_type
    return None


def adjust_severity(base: DefectSeverity, confidence: float) -> DefectSeverity:
    """Downgrade one level for low confidence, never below LOW."""
    if confidence < LOW_CONFIDENCE_THRESHOLD:
        return DefectSeverity.from_priority(max(DefectSeverity.LOW.priority, base.priority - 1))
    return base


def _coerce_detection(
    raw: Union[RawDefectDetection, Mapping[str, Any]],
) -> Optional[RawDefectDetection]:
    if isinstance(raw, RawDefectDetection):
        return raw
    try:
        return RawDefectDetection.model_validate(raw)
    except ValidationError as e:
        logger.debug("Skipping unreadable detection: %s", e)
        return None


def decode_defect(raw: Union[RawDefectDetection, Mapping[str, Any]]) -> Optional[TireDefect]:
    """Decode one detection; None when it is not a defect."""
    detection = _coerce_detection(raw)
    if detection is None:
        return None

    defect_type = map_label(detection.label)
    if defect_type is None:
        logger.debug("No defect for label %r", detection.label)
        return None

    confidence = max(0.0, min(1.0, detection.confidence)) if math.isfinite(detection.confidence) else 0.0
    bounding_box = None
    if detection.bounding_box is not None:
        bounding_box = BoundingBox(**detection.bounding_box.model_dump())

    return TireDefect(
        defect_type=defect_type,
        severity=adjust_severity(BASE_SEVERITY[defect_type], confidence),
        confidence=confidence,
        bounding_box=bounding_box,
        description=DEFECT_DESCRIPTIONS[defect_type],
    )


def decode_defects(
    detections: Optional[Iterable[Union[RawDefectDetection, Mapping[str, Any]]]],
) -> list[TireDefect]:
    """
    Decode classifier detections into TireDefects.

    Order of the input is preserved; non-defects are dropped.
    """
    if not detections:
        return []

    defects = []
    for raw in detections:
        defect = decode_defect(raw)
        if defect is not None:
            defects.append(defect)
    return defects

"""
Decoded signal models.

Typed, confidence-scored facts produced by the signal decoders:
tread depth, sidewall size/rating, DOT manufacture date and defects.
Every model has an empty() sentinel with confidence 0 so downstream
code never has to branch on None.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from tirehealth.config import (
    AGE_BUCKET_LIMITS_MONTHS,
    LOAD_INDEX_TABLE,
    MIN_TREAD_CONFIDENCE,
    SPEED_RATING_TABLE,
)
from tirehealth.units import kg_to_lb, kmh_to_mph


class TreadStatus(str, Enum):
    """Tread depth classification by minimum depth."""
    EXCELLENT = "excellent"
    GOOD = "good"
    FAIR = "fair"
    LOW = "low"
    CRITICAL = "critical"
    UNKNOWN = "unknown"

    @property
    def display_name(self) -> str:
        return _TREAD_STATUS_NAMES[self]


_TREAD_STATUS_NAMES = {
    TreadStatus.EXCELLENT: "Excellent",
    TreadStatus.GOOD: "Good",
    TreadStatus.FAIR: "Fair",
    TreadStatus.LOW: "Low - Replace Soon",
    TreadStatus.CRITICAL: "Critical - Replace Now",
    TreadStatus.UNKNOWN: "Unknown",
}


class TreadWearPattern(str, Enum):
    """Tread wear pattern and its usual mechanical cause."""
    EVEN = "even"
    CENTER_WEAR = "center_wear"
    EDGE_WEAR = "edge_wear"
    ONE_SIDE_WEAR = "one_side_wear"
    CUPPING = "cupping"
    FEATHERING = "feathering"
    DIAGONAL_WEAR = "diagonal_wear"
    FLAT_SPOT = "flat_spot"
    UNKNOWN = "unknown"

    @property
    def display_name(self) -> str:
        return _WEAR_PATTERNS[self][0]

    @property
    def cause(self) -> str:
        return _WEAR_PATTERNS[self][1]

    @property
    def is_abnormal(self) -> bool:
        """Whether the pattern points at a fixable mechanical cause."""
        return self not in (TreadWearPattern.EVEN, TreadWearPattern.UNKNOWN)


_WEAR_PATTERNS = {
    TreadWearPattern.EVEN: ("Even Wear", "Normal driving - tire is wearing correctly"),
    TreadWearPattern.CENTER_WEAR: ("Center Wear", "Over-inflation - reduce pressure"),
    TreadWearPattern.EDGE_WEAR: ("Edge Wear", "Under-inflation - increase pressure"),
    TreadWearPattern.ONE_SIDE_WEAR: ("One-Side Wear", "Wheel alignment issue - check alignment"),
    TreadWearPattern.CUPPING: ("Cupping/Scalloping", "Suspension problem - check shocks/struts"),
    TreadWearPattern.FEATHERING: ("Feathering", "Toe alignment issue - needs adjustment"),
    TreadWearPattern.DIAGONAL_WEAR: ("Diagonal Wear", "Multiple alignment issues"),
    TreadWearPattern.FLAT_SPOT: ("Flat Spots", "Brake lock-up or extended parking"),
    TreadWearPattern.UNKNOWN: ("Unknown Pattern", "Unable to determine wear pattern"),
}


class TireAgeStatus(str, Enum):
    """Age bucket derived from DOT manufacture date."""
    NEW = "new"
    GOOD = "good"
    AGING = "aging"
    OLD = "old"
    EXPIRED = "expired"

    @property
    def display_name(self) -> str:
        return _AGE_STATUS_NAMES[self]

    @property
    def rank(self) -> int:
        """Severity order, 0 for new up to 4 for expired."""
        return list(TireAgeStatus).index(self)


_AGE_STATUS_NAMES = {
    TireAgeStatus.NEW: "New (< 3 years)",
    TireAgeStatus.GOOD: "Good (3-5 years)",
    TireAgeStatus.AGING: "Aging (5-6 years)",
    TireAgeStatus.OLD: "Old (6-10 years)",
    TireAgeStatus.EXPIRED: "Expired (> 10 years)",
}


def age_status_for_months(age_in_months: int) -> TireAgeStatus:
    """Map tire age to its bucket. Boundaries are inclusive-exclusive."""
    if age_in_months < AGE_BUCKET_LIMITS_MONTHS["new"]:
        return TireAgeStatus.NEW
    if age_in_months < AGE_BUCKET_LIMITS_MONTHS["good"]:
        return TireAgeStatus.GOOD
    if age_in_months < AGE_BUCKET_LIMITS_MONTHS["aging"]:
        return TireAgeStatus.AGING
    if age_in_months < AGE_BUCKET_LIMITS_MONTHS["old"]:
        return TireAgeStatus.OLD
    return TireAgeStatus.EXPIRED


class DefectType(str, Enum):
    """Kinds of anomaly the defect classifier can report."""
    CRACK = "crack"
    BULGE = "bulge"
    CUT = "cut"
    PUNCTURE = "puncture"
    WORN_TREAD = "worn_tread"
    SIDEWALL_DAMAGE = "sidewall_damage"
    FOREIGN_OBJECT = "foreign_object"
    DRY_ROT = "dry_rot"
    BEAD_DAMAGE = "bead_damage"

    @property
    def display_name(self) -> str:
        return _DEFECT_TYPE_NAMES[self]


_DEFECT_TYPE_NAMES = {
    DefectType.CRACK: "Crack",
    DefectType.BULGE: "Bulge/Bubble",
    DefectType.CUT: "Cut/Slash",
    DefectType.PUNCTURE: "Puncture",
    DefectType.WORN_TREAD: "Worn Tread",
    DefectType.SIDEWALL_DAMAGE: "Sidewall Damage",
    DefectType.FOREIGN_OBJECT: "Foreign Object",
    DefectType.DRY_ROT: "Dry Rot/Age Cracking",
    DefectType.BEAD_DAMAGE: "Bead Damage",
}


class DefectSeverity(str, Enum):
    """Defect severity; `priority` gives the strict 0-4 ordering."""
    NONE = "none"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def priority(self) -> int:
        return list(DefectSeverity).index(self)

    @property
    def display_name(self) -> str:
        return self.value.capitalize()

    @classmethod
    def from_priority(cls, priority: int) -> "DefectSeverity":
        members = list(cls)
        return members[max(0, min(len(members) - 1, priority))]


class TreadDepthMeasurement(BaseModel):
    """
    Geometric wear reading at three lateral points.

    Depths are in millimetres. The reading is only trusted for scoring
    when `is_valid`; otherwise it is kept for display as "unreliable".
    """
    inner_depth_mm: float = Field(..., ge=0, description="Inner shoulder depth (mm)")
    center_depth_mm: float = Field(..., ge=0, description="Center depth (mm)")
    outer_depth_mm: float = Field(..., ge=0, description="Outer shoulder depth (mm)")
    average_depth_mm: float = Field(..., ge=0, description="Mean of the three points (mm)")
    minimum_depth_mm: float = Field(..., ge=0, description="Shallowest of the three points (mm)")
    confidence: float = Field(..., ge=0, le=1, description="Scanner confidence")
    quality_score: int = Field(default=0, ge=0, le=100, description="Scan quality 0-100")
    wear_percentage: float = Field(default=0.0, ge=0, le=100, description="Percent worn vs. new tread")
    wear_pattern: TreadWearPattern = Field(default=TreadWearPattern.UNKNOWN)
    status: TreadStatus = Field(default=TreadStatus.UNKNOWN)
    estimated_remaining_km: int = Field(default=0, ge=0, description="Rough distance left")

    @model_validator(mode="after")
    def check_depth_ordering(self) -> "TreadDepthMeasurement":
        """min <= avg <= max of the three points."""
        tolerance = 1e-6
        deepest = max(self.inner_depth_mm, self.center_depth_mm, self.outer_depth_mm)
        if not (self.minimum_depth_mm - tolerance <= self.average_depth_mm <= deepest + tolerance):
            raise ValueError("Expected minimum_depth_mm <= average_depth_mm <= deepest point")
        return self

    @property
    def is_valid(self) -> bool:
        return self.confidence >= MIN_TREAD_CONFIDENCE

    @classmethod
    def empty(cls) -> "TreadDepthMeasurement":
        return cls(
            inner_depth_mm=0.0,
            center_depth_mm=0.0,
            outer_depth_mm=0.0,
            average_depth_mm=0.0,
            minimum_depth_mm=0.0,
            confidence=0.0,
        )


class TireSizeInfo(BaseModel):
    """Decoded sidewall size and service description, e.g. 225/45R17 94W."""
    raw_text: str = Field(default="", description="Text as read from the sidewall")
    width: int = Field(default=0, ge=0, description="Section width (mm)")
    aspect_ratio: int = Field(default=0, ge=0, description="Profile height as % of width")
    construction: str = Field(default="R", description="R radial, D diagonal, B bias-belted")
    rim_diameter: int = Field(default=0, ge=0, description="Rim diameter (inches)")
    load_index: int = Field(default=0, ge=0, description="Load index")
    speed_rating: str = Field(default="", max_length=1, description="Speed rating letter")
    confidence: float = Field(default=0.0, ge=0, le=1)
    additional_marks: list[str] = Field(default_factory=list, description="XL, RF, M+S, ...")

    @property
    def formatted_size(self) -> str:
        return f"{self.width}/{self.aspect_ratio}{self.construction}{self.rim_diameter}"

    @property
    def full_specification(self) -> str:
        return f"{self.formatted_size} {self.load_index}{self.speed_rating}"

    @property
    def max_load_kg(self) -> int:
        """Maximum load per tire; 0 for an index outside the table."""
        return LOAD_INDEX_TABLE.get(self.load_index, 0)

    @property
    def max_speed_kmh(self) -> int:
        """Maximum speed; 0 for an unrecognized rating letter."""
        return SPEED_RATING_TABLE.get(self.speed_rating.upper(), 0)

    @property
    def max_load_lb(self) -> float:
        return kg_to_lb(self.max_load_kg)

    @property
    def max_speed_mph(self) -> float:
        return kmh_to_mph(self.max_speed_kmh)

    @classmethod
    def empty(cls) -> "TireSizeInfo":
        return cls()


class DotCodeInfo(BaseModel):
    """Decoded DOT manufacture week/year and derived age."""
    full_dot_code: str = Field(default="", description="DOT code as read")
    plant_code: str = Field(default="", description="Manufacturer plant code")
    size_code: str = Field(default="", description="Manufacturer size code")
    brand_code: str = Field(default="", description="Optional brand characteristics")
    manufacture_week: int = Field(default=0, ge=0, le=53)
    manufacture_year: int = Field(default=0, ge=0)
    age_in_months: int = Field(default=0, ge=0)
    confidence: float = Field(default=0.0, ge=0, le=1)

    @property
    def manufacture_date(self) -> str:
        return f"Week {self.manufacture_week}, {self.manufacture_year}"

    @property
    def age_status(self) -> TireAgeStatus:
        return age_status_for_months(self.age_in_months)

    @property
    def is_expired(self) -> bool:
        return self.age_status == TireAgeStatus.EXPIRED

    @property
    def is_decoded(self) -> bool:
        """False for the empty sentinel. Confidence does not decide this."""
        return self.manufacture_year > 0

    @classmethod
    def empty(cls) -> "DotCodeInfo":
        return cls()


class BoundingBox(BaseModel):
    """Region of a detected defect in normalized image coordinates."""
    left: float
    top: float
    right: float
    bottom: float


class TireDefect(BaseModel):
    """One detected anomaly."""
    defect_type: DefectType = Field(..., description="Kind of defect")
    severity: DefectSeverity = Field(..., description="Severity after confidence adjustment")
    confidence: float = Field(..., ge=0, le=1)
    bounding_box: Optional[BoundingBox] = Field(default=None)
    description: str = Field(default="", description="Human-readable explanation")

    @field_validator("severity")
    @classmethod
    def reject_none_severity(cls, v: DefectSeverity) -> DefectSeverity:
        """A listed defect always has a real severity."""
        if v == DefectSeverity.NONE:
            raise ValueError("A detected defect cannot have severity 'none'")
        return v

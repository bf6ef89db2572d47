"""
Composite health scoring for a single tire.

Combines the decoded signals into one 0-100 score:
- Base score from tread wear
- Penalty per defect, proportional to severity
- Penalty once the tire is aging or older
"""

import logging
from typing import Iterable, Optional

from tirehealth.config import STATUS_THRESHOLDS
from tirehealth.models.analysis import (
    ConcernSource,
    HealthAssessment,
    HealthConcern,
    OverallTireStatus,
)
from tirehealth.models.signals import (
    DotCodeInfo,
    TireAgeStatus,
    TireDefect,
    TireSizeInfo,
    TreadDepthMeasurement,
    TreadStatus,
)

logger = logging.getLogger(__name__)


class HealthScorer:
    """
    Scores one tire from its decoded signals.

    Scoring Philosophy:
    - Tread wear sets the starting point (100 for a lightly worn tire)
    - Defects and age only ever subtract
    - Noisy tread readings fall back to a mid-range base instead of an extreme
    """

    # Wear up to this percentage costs nothing
    FREE_WEAR_PCT = 25.0
    # Points lost per percent of wear beyond FREE_WEAR_PCT
    WEAR_SLOPE = 1.2
    # Base score used when the tread reading is not trustworthy
    INVALID_TREAD_BASE = 60.0

    DEFECT_PENALTY_PER_PRIORITY = 12.0
    DEFECT_PENALTY_CEILING = 70.0

    AGE_PENALTIES = {
        TireAgeStatus.AGING: 10.0,
        TireAgeStatus.OLD: 20.0,
        TireAgeStatus.EXPIRED: 35.0,
    }

    TREAD_CONCERN_PRIORITY = {
        TreadStatus.FAIR: 2,
        TreadStatus.LOW: 3,
        TreadStatus.CRITICAL: 4,
    }
    AGE_CONCERN_PRIORITY = {
        TireAgeStatus.AGING: 1,
        TireAgeStatus.OLD: 2,
        TireAgeStatus.EXPIRED: 3,
    }

    def score(
        self,
        tread: TreadDepthMeasurement,
        size: TireSizeInfo,
        dot: DotCodeInfo,
        defects: Optional[Iterable[TireDefect]] = None,
    ) -> HealthAssessment:
        """
        Score a tire.

        Args:
            tread: Decoded tread measurement (may be the empty sentinel)
            size: Decoded size info; carried through, does not affect the score
            dot: Decoded DOT info; ignored for age when not decoded
            defects: Detected defects

        Returns:
            HealthAssessment with score, status and ordered concerns
        """
        defects = list(defects or [])

        base = self._base_score(tread)
        defect_penalty = self._defect_penalty(defects)
        age_penalty = self._age_penalty(dot)

        raw = base - defect_penalty - age_penalty
        final_score = int(round(max(0.0, min(100.0, raw))))
        status = self.status_for_score(final_score)

        logger.debug(
            "Scored tire: base=%.1f defects=-%.1f age=-%.1f -> %d (%s)",
            base, defect_penalty, age_penalty, final_score, status.value,
        )

        return HealthAssessment(
            tread_depth=tread,
            tire_size=size,
            dot_code=dot,
            defects=defects,
            overall_health_score=final_score,
            overall_status=status,
            concerns=self._collect_concerns(tread, dot, defects),
        )

    @staticmethod
    def status_for_score(score: int) -> OverallTireStatus:
        """Map a 0-100 score to an overall status."""
        if score >= STATUS_THRESHOLDS["excellent"]:
            return OverallTireStatus.EXCELLENT
        if score >= STATUS_THRESHOLDS["good"]:
            return OverallTireStatus.GOOD
        if score >= STATUS_THRESHOLDS["fair"]:
            return OverallTireStatus.FAIR
        if score >= STATUS_THRESHOLDS["poor"]:
            return OverallTireStatus.POOR
        return OverallTireStatus.CRITICAL

    def _base_score(self, tread: TreadDepthMeasurement) -> float:
        """
        Base score from tread wear.

        100 while wear <= FREE_WEAR_PCT, then falls linearly. An invalid
        reading contributes INVALID_TREAD_BASE instead.
        """
        if not tread.is_valid:
            return self.INVALID_TREAD_BASE

        excess = max(0.0, tread.wear_percentage - self.FREE_WEAR_PCT)
        return max(0.0, min(100.0, 100.0 - self.WEAR_SLOPE * excess))

    def _defect_penalty(self, defects: list[TireDefect]) -> float:
        """Sum of per-defect penalties, capped."""
        penalty = sum(
            self.DEFECT_PENALTY_PER_PRIORITY * d.severity.priority for d in defects
        )
        return min(self.DEFECT_PENALTY_CEILING, penalty)

    def _age_penalty(self, dot: DotCodeInfo) -> float:
        if not dot.is_decoded:
            return 0.0
        return self.AGE_PENALTIES.get(dot.age_status, 0.0)

    def _collect_concerns(
        self,
        tread: TreadDepthMeasurement,
        dot: DotCodeInfo,
        defects: list[TireDefect],
    ) -> list[HealthConcern]:
        """
        Gather concerns in evaluation order (tread, defects, age), then
        order by priority. The sort is stable so ties keep that order.
        """
        concerns: list[HealthConcern] = []

        if not tread.is_valid:
            concerns.append(HealthConcern(
                text="Tread depth reading unreliable - re-scan the tread",
                priority=1,
                source=ConcernSource.TREAD,
            ))
        else:
            if tread.status in self.TREAD_CONCERN_PRIORITY:
                concerns.append(HealthConcern(
                    text=(
                        f"Tread depth {tread.status.display_name.lower()}: "
                        f"{tread.minimum_depth_mm:.1f} mm at the shallowest point"
                    ),
                    priority=self.TREAD_CONCERN_PRIORITY[tread.status],
                    source=ConcernSource.TREAD,
                ))
            if tread.wear_pattern.is_abnormal:
                concerns.append(HealthConcern(
                    text=f"{tread.wear_pattern.display_name}: {tread.wear_pattern.cause}",
                    priority=1,
                    source=ConcernSource.TREAD,
                ))

        for defect in defects:
            concerns.append(HealthConcern(
                text=defect.description or defect.defect_type.display_name,
                priority=defect.severity.priority,
                source=ConcernSource.DEFECT,
            ))

        if dot.is_decoded and dot.age_status in self.AGE_CONCERN_PRIORITY:
            concerns.append(HealthConcern(
                text=(
                    f"Tire age {dot.age_status.display_name.lower()}: "
                    f"manufactured {dot.manufacture_date}"
                ),
                priority=self.AGE_CONCERN_PRIORITY[dot.age_status],
                source=ConcernSource.AGE,
            ))

        return sorted(concerns, key=lambda c: -c.priority)


def score_tire(
    tread: TreadDepthMeasurement,
    size: TireSizeInfo,
    dot: DotCodeInfo,
    defects: Optional[Iterable[TireDefect]] = None,
) -> HealthAssessment:
    """Convenience wrapper around HealthScorer().score()."""
    return HealthScorer().score(tread, size, dot, defects)

"""
Recommendation generator.

Maps each contributing cause (tread status, wear pattern, defect, age,
overall status) to a service recommendation, de-duplicates per service
type and decides the required action level.
"""

import logging
from typing import NamedTuple, Optional

from tirehealth.config import SERVICE_COST_USD
from tirehealth.models.analysis import (
    ActionRequired,
    CostRange,
    HealthAssessment,
    OverallTireStatus,
    RecommendationPlan,
    ServiceType,
    TireRecommendation,
)
from tirehealth.models.signals import (
    DefectSeverity,
    DefectType,
    TireAgeStatus,
    TireDefect,
    TreadStatus,
    TreadWearPattern,
)

logger = logging.getLogger(__name__)


class Rule(NamedTuple):
    """Fixed mapping from a cause to a recommendation."""
    service_type: ServiceType
    priority: int
    title: str
    description: str


TREAD_RULES: dict[TreadStatus, Rule] = {
    TreadStatus.FAIR: Rule(
        ServiceType.ROTATION, 2,
        "Rotate Tires",
        "Tread is past half life. Rotate tires to even out wear.",
    ),
    TreadStatus.LOW: Rule(
        ServiceType.REPLACEMENT, 4,
        "Plan Tire Replacement",
        "Tread depth approaching the legal minimum. Replace within 5,000 km.",
    ),
    TreadStatus.CRITICAL: Rule(
        ServiceType.REPLACEMENT, 5,
        "Replace Tire - Critical Tread",
        "Tread depth is below the 1.6 mm legal minimum.",
    ),
}

WEAR_PATTERN_RULES: dict[TreadWearPattern, Rule] = {
    TreadWearPattern.CENTER_WEAR: Rule(
        ServiceType.PRESSURE_ADJUSTMENT, 3,
        "Reduce Tire Pressure",
        "Center wear indicates over-inflation. Reduce pressure to the recommended PSI.",
    ),
    TreadWearPattern.EDGE_WEAR: Rule(
        ServiceType.PRESSURE_ADJUSTMENT, 3,
        "Increase Tire Pressure",
        "Edge wear indicates under-inflation. Inflate to the recommended PSI.",
    ),
    TreadWearPattern.ONE_SIDE_WEAR: Rule(
        ServiceType.ALIGNMENT, 3,
        "Wheel Alignment Service",
        "Uneven wear across the tread suggests a wheel alignment issue.",
    ),
    TreadWearPattern.FEATHERING: Rule(
        ServiceType.ALIGNMENT, 3,
        "Toe Alignment Service",
        "Feathered tread ribs indicate incorrect toe settings.",
    ),
    TreadWearPattern.DIAGONAL_WEAR: Rule(
        ServiceType.ALIGNMENT, 3,
        "Full Alignment Check",
        "Diagonal wear points to multiple alignment issues.",
    ),
    TreadWearPattern.CUPPING: Rule(
        ServiceType.INSPECTION, 3,
        "Suspension Inspection",
        "Cupping wear indicates worn shocks or struts.",
    ),
    TreadWearPattern.FLAT_SPOT: Rule(
        ServiceType.BALANCING, 2,
        "Balance Wheel",
        "Flat spots from brake lock-up or long parking. Balance and re-check for vibration.",
    ),
}

# (service for low/medium severity, service for high/critical severity)
DEFECT_SERVICES: dict[DefectType, tuple[ServiceType, ServiceType]] = {
    DefectType.CRACK: (ServiceType.INSPECTION, ServiceType.REPLACEMENT),
    DefectType.BULGE: (ServiceType.REPLACEMENT, ServiceType.REPLACEMENT),
    DefectType.CUT: (ServiceType.REPAIR, ServiceType.REPLACEMENT),
    DefectType.PUNCTURE: (ServiceType.REPAIR, ServiceType.REPLACEMENT),
    DefectType.WORN_TREAD: (ServiceType.INSPECTION, ServiceType.REPLACEMENT),
    DefectType.SIDEWALL_DAMAGE: (ServiceType.REPLACEMENT, ServiceType.REPLACEMENT),
    DefectType.FOREIGN_OBJECT: (ServiceType.INSPECTION, ServiceType.REPAIR),
    DefectType.DRY_ROT: (ServiceType.INSPECTION, ServiceType.REPLACEMENT),
    DefectType.BEAD_DAMAGE: (ServiceType.REPLACEMENT, ServiceType.REPLACEMENT),
}

DEFECT_SERVICE_TITLES: dict[ServiceType, str] = {
    ServiceType.REPLACEMENT: "Replace Damaged Tire",
    ServiceType.REPAIR: "Tire Repair",
    ServiceType.INSPECTION: "Professional Damage Inspection",
}

AGE_RULES: dict[TireAgeStatus, Rule] = {
    TireAgeStatus.AGING: Rule(
        ServiceType.INSPECTION, 1,
        "Annual Age Inspection",
        "Tire is over 5 years old. Have the rubber inspected yearly.",
    ),
    TireAgeStatus.OLD: Rule(
        ServiceType.REPLACEMENT, 3,
        "Age-Related Replacement",
        "Tire is over 6 years old. Rubber degrades with age regardless of tread.",
    ),
    TireAgeStatus.EXPIRED: Rule(
        ServiceType.REPLACEMENT, 5,
        "Replace Expired Tire",
        "Tire is over 10 years old and should be replaced regardless of tread.",
    ),
}

STATUS_RULES: dict[OverallTireStatus, Rule] = {
    OverallTireStatus.POOR: Rule(
        ServiceType.INSPECTION, 3,
        "Professional Tire Inspection",
        "Overall tire health is poor. Have the tire inspected soon.",
    ),
    OverallTireStatus.CRITICAL: Rule(
        ServiceType.REPLACEMENT, 5,
        "Immediate Tire Replacement",
        "Overall tire health is critical. Replace the tire before further use.",
    ),
}

UNRELIABLE_TREAD_RULE = Rule(
    ServiceType.INSPECTION, 1,
    "Re-measure Tread Depth",
    "The tread scan was not reliable. Re-scan or measure with a gauge.",
)

STATUS_ACTIONS: dict[OverallTireStatus, ActionRequired] = {
    OverallTireStatus.EXCELLENT: ActionRequired.NONE,
    OverallTireStatus.GOOD: ActionRequired.MONITOR,
    OverallTireStatus.FAIR: ActionRequired.SERVICE_SOON,
    OverallTireStatus.POOR: ActionRequired.SERVICE_NOW,
    OverallTireStatus.CRITICAL: ActionRequired.REPLACE,
}


def cost_for(service_type: ServiceType) -> Optional[CostRange]:
    costs = SERVICE_COST_USD.get(service_type.value)
    if costs is None:
        return None
    return CostRange(min=costs[0], max=costs[1])


class RecommendationGenerator:
    """
    Builds the remediation plan for a scored tire.

    Stateless: the same assessment always yields the same plan.
    """

    def generate(self, assessment: HealthAssessment) -> RecommendationPlan:
        """
        Produce recommendations, action level and cost range.

        Args:
            assessment: Output of the HealthScorer

        Returns:
            RecommendationPlan
        """
        recommendations = self.recommendations(assessment)
        plan = RecommendationPlan(
            recommendations=recommendations,
            action_required=self.action_required(assessment),
            estimated_cost_range=self.cost_range(recommendations),
        )
        logger.debug(
            "Generated %d recommendations, action=%s",
            len(plan.recommendations), plan.action_required.value,
        )
        return plan

    def recommendations(self, assessment: HealthAssessment) -> list[TireRecommendation]:
        """All cause recommendations, de-duplicated and sorted."""
        candidates = self._collect(assessment)

        best: dict[ServiceType, TireRecommendation] = {}
        for rec in candidates:
            current = best.get(rec.service_type)
            if current is None or rec.priority > current.priority:
                best[rec.service_type] = rec

        return sorted(best.values(), key=self._sort_key)

    @staticmethod
    def _sort_key(rec: TireRecommendation) -> tuple[int, int, int]:
        # Priority desc, then cost desc, missing cost last within a band
        if rec.estimated_cost is None:
            return (-rec.priority, 1, 0)
        return (-rec.priority, 0, -rec.estimated_cost.max)

    def _collect(self, assessment: HealthAssessment) -> list[TireRecommendation]:
        recs: list[TireRecommendation] = []
        tread = assessment.tread_depth

        if tread.is_valid:
            if tread.status in TREAD_RULES:
                recs.append(self._from_rule(TREAD_RULES[tread.status]))
            if tread.wear_pattern in WEAR_PATTERN_RULES:
                recs.append(self._from_rule(WEAR_PATTERN_RULES[tread.wear_pattern]))
        else:
            recs.append(TireRecommendation(
                title=UNRELIABLE_TREAD_RULE.title,
                description=UNRELIABLE_TREAD_RULE.description,
                priority=UNRELIABLE_TREAD_RULE.priority,
                estimated_cost=None,
                service_type=UNRELIABLE_TREAD_RULE.service_type,
            ))

        for defect in assessment.defects:
            recs.append(self._for_defect(defect))

        dot = assessment.dot_code
        if dot.is_decoded and dot.age_status in AGE_RULES:
            recs.append(self._from_rule(AGE_RULES[dot.age_status]))

        if assessment.overall_status in STATUS_RULES:
            recs.append(self._from_rule(STATUS_RULES[assessment.overall_status]))

        return recs

    @staticmethod
    def _from_rule(rule: Rule) -> TireRecommendation:
        return TireRecommendation(
            title=rule.title,
            description=rule.description,
            priority=rule.priority,
            estimated_cost=cost_for(rule.service_type),
            service_type=rule.service_type,
        )

    @staticmethod
    def _for_defect(defect: TireDefect) -> TireRecommendation:
        minor, major = DEFECT_SERVICES[defect.defect_type]
        is_major = defect.severity.priority >= DefectSeverity.HIGH.priority
        service_type = major if is_major else minor
        return TireRecommendation(
            title=f"{DEFECT_SERVICE_TITLES[service_type]}: {defect.defect_type.display_name}",
            description=defect.description,
            priority=min(5, defect.severity.priority + 1),
            estimated_cost=cost_for(service_type),
            service_type=service_type,
        )

    def action_required(self, assessment: HealthAssessment) -> ActionRequired:
        """
        Highest urgency among status, critical defects, expired age and
        critical tread. Never averaged.
        """
        levels = [STATUS_ACTIONS[assessment.overall_status]]

        if any(d.severity == DefectSeverity.CRITICAL for d in assessment.defects):
            levels.append(ActionRequired.DO_NOT_DRIVE)

        dot = assessment.dot_code
        if dot.is_decoded and dot.is_expired:
            levels.append(ActionRequired.REPLACE)

        tread = assessment.tread_depth
        if tread.is_valid and tread.status == TreadStatus.CRITICAL:
            levels.append(ActionRequired.REPLACE)

        return ActionRequired.most_urgent(*levels)

    @staticmethod
    def cost_range(recommendations: list[TireRecommendation]) -> Optional[CostRange]:
        """
        (cheapest non-zero minimum, sum of maximums) over costed
        recommendations; None when nothing costs money.
        """
        costs = [r.estimated_cost for r in recommendations if r.estimated_cost is not None]
        costs = [c for c in costs if c.max > 0]
        if not costs:
            return None

        minimums = [c.min for c in costs if c.min > 0]
        return CostRange(
            min=min(minimums) if minimums else 0,
            max=sum(c.max for c in costs),
        )

"""
Tire health assessment engine.

Wires the pipeline Decoders -> HealthScorer -> RecommendationGenerator
into one ComprehensiveTireAnalysis per capture.
"""

import logging
from datetime import date, datetime
from typing import Any, Iterable, Mapping, Optional, Union

from tirehealth.decoders import (
    decode_defects,
    decode_dot_code,
    decode_tire_size,
    decode_tread_depth,
)
from tirehealth.models.analysis import ComprehensiveTireAnalysis
from tirehealth.models.inputs import RecognitionOutput
from tirehealth.models.signals import (
    DotCodeInfo,
    TireDefect,
    TireSizeInfo,
    TreadDepthMeasurement,
)
from tirehealth.notifications import Notifier
from tirehealth.recommendations import RecommendationGenerator
from tirehealth.scoring import HealthScorer
from tirehealth.storage import AnalysisStore

logger = logging.getLogger(__name__)


class TireHealthEngine:
    """
    Produces complete tire analyses.

    Scoring is pure; the optional store and notifier only observe the
    finished analysis.
    """

    def __init__(
        self,
        store: Optional[AnalysisStore] = None,
        notifier: Optional[Notifier] = None,
        scorer: Optional[HealthScorer] = None,
        generator: Optional[RecommendationGenerator] = None,
    ):
        self.store = store
        self.notifier = notifier
        self.scorer = scorer or HealthScorer()
        self.generator = generator or RecommendationGenerator()

    def assess(
        self,
        tread: TreadDepthMeasurement,
        size: TireSizeInfo,
        dot: DotCodeInfo,
        defects: Optional[Iterable[TireDefect]] = None,
        tread_image_path: Optional[str] = None,
        sidewall_image_path: Optional[str] = None,
    ) -> ComprehensiveTireAnalysis:
        """
        Assess one tire from decoded signals.

        A low score or unreliable reading never blocks the result; the
        analysis is always returned.
        """
        assessment = self.scorer.score(tread, size, dot, defects)
        plan = self.generator.generate(assessment)

        analysis = ComprehensiveTireAnalysis(
            tread_depth=assessment.tread_depth,
            tire_size=assessment.tire_size,
            dot_code=assessment.dot_code,
            defects=assessment.defects,
            tread_image_path=tread_image_path,
            sidewall_image_path=sidewall_image_path,
            overall_health_score=assessment.overall_health_score,
            overall_status=assessment.overall_status,
            primary_concerns=assessment.primary_concerns,
            recommendations=plan.recommendations,
            action_required=plan.action_required,
            estimated_cost_range=plan.estimated_cost_range,
        )

        logger.info(
            "Assessed tire %s: score=%d status=%s action=%s",
            analysis.id,
            analysis.overall_health_score,
            analysis.overall_status.value,
            analysis.action_required.value,
        )

        if self.store is not None:
            self.store.save_analysis(analysis)
        if self.notifier is not None and analysis.needs_attention:
            self.notifier.action_required(analysis)

        return analysis

    def assess_capture(
        self,
        capture: Union[RecognitionOutput, Mapping[str, Any]],
        now: Union[date, datetime, None] = None,
    ) -> ComprehensiveTireAnalysis:
        """
        Decode raw recognition output, then assess it.

        Raises:
            pydantic.ValidationError: If `capture` is a mapping that is not
                a RecognitionOutput at all. Individual malformed parts
                decode to sentinels instead.
        """
        if not isinstance(capture, RecognitionOutput):
            capture = RecognitionOutput.model_validate(capture)

        return self.assess(
            tread=decode_tread_depth(capture.tread),
            size=decode_tire_size(capture.size_text, capture.size_confidence),
            dot=decode_dot_code(capture.dot_text, capture.dot_confidence, now=now),
            defects=decode_defects(capture.defects),
            tread_image_path=capture.tread_image_path,
            sidewall_image_path=capture.sidewall_image_path,
        )


def assess(
    tread: TreadDepthMeasurement,
    size: TireSizeInfo,
    dot: DotCodeInfo,
    defects: Optional[Iterable[TireDefect]] = None,
) -> ComprehensiveTireAnalysis:
    """Assess one tire without persistence or notification."""
    return TireHealthEngine().assess(tread, size, dot, defects)

"""Remediation planning from a scored tire."""

from tirehealth.recommendations.generator import RecommendationGenerator

__all__ = ["RecommendationGenerator"]

"""
Composite health scoring.

Turns decoded tread, defect and age signals into one score and status.
"""

from tirehealth.scoring.scorer import HealthScorer, score_tire

__all__ = ["HealthScorer", "score_tire"]

"""Quality scoring: criteria rubric, scoring engine, and section detection."""

from procgov.scoring.criteria import CriteriaModel, CriterionDefinition, Priority, load_criteria
from procgov.scoring.detector import detect_sections
from procgov.scoring.engine import CriterionScore, Recommendation, ScoreResult, quality_level, round_half_up, score

__all__ = [
    "CriteriaModel",
    "CriterionDefinition",
    "CriterionScore",
    "Priority",
    "Recommendation",
    "ScoreResult",
    "detect_sections",
    "load_criteria",
    "quality_level",
    "round_half_up",
    "score",
]

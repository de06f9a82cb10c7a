"""Deterministic document quality scoring.

The engine consumes an already extracted presence mapping (criterion name to
``True``/``False``) and a ``CriteriaModel``. It never inspects documents
itself, so the scoring rule stays pure and repeatable: identical inputs always
produce an identical ``ScoreResult``, breakdown order included.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Any, Mapping

from procgov.core.config import DEFAULT_MINIMUM_QUALITY_SCORE
from procgov.scoring.criteria import CriteriaModel, Priority

logger = logging.getLogger(__name__)

HIGH_QUALITY_SCORE = 80


@dataclass(slots=True, frozen=True)
class CriterionScore:
    criterion: str
    weight: int
    priority: Priority
    present: bool

    def to_dict(self) -> dict[str, Any]:
        return {
            "criterion": self.criterion,
            "weight": self.weight,
            "priority": self.priority.value,
            "present": self.present,
        }


@dataclass(slots=True, frozen=True)
class Recommendation:
    criterion: str
    priority: Priority
    message: str
    impact: str
    category: str = "Structure"

    def to_dict(self) -> dict[str, Any]:
        return {
            "criterion": self.criterion,
            "priority": self.priority.value,
            "message": self.message,
            "impact": self.impact,
            "category": self.category,
        }


@dataclass(slots=True, frozen=True)
class ScoreResult:
    score: int
    passed: bool
    minimum_score: int
    breakdown: tuple[CriterionScore, ...]
    ignored: tuple[str, ...] = ()
    recommendations: tuple[Recommendation, ...] = ()

    @property
    def quality_level(self) -> str:
        return quality_level(self.score, self.minimum_score)

    @property
    def found(self) -> tuple[str, ...]:
        return tuple(item.criterion for item in self.breakdown if item.present)

    @property
    def missing(self) -> tuple[str, ...]:
        return tuple(item.criterion for item in self.breakdown if not item.present)

    def to_dict(self) -> dict[str, Any]:
        return {
            "score": self.score,
            "passed": self.passed,
            "minimumScore": self.minimum_score,
            "qualityLevel": self.quality_level,
            "breakdown": [item.to_dict() for item in self.breakdown],
            "ignored": list(self.ignored),
            "recommendations": [item.to_dict() for item in self.recommendations],
        }


def quality_level(score: int | None, minimum_score: int = DEFAULT_MINIMUM_QUALITY_SCORE) -> str:
    """Low below the passing minimum, High from 80 (or the minimum if higher)."""

    value = score or 0
    if value >= max(HIGH_QUALITY_SCORE, minimum_score):
        return "High"
    if value >= minimum_score:
        return "Medium"
    return "Low"


def round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def _normalized_score(achieved: int, total: int) -> int:
    # round-half-up of 100 * achieved / total, in exact integer arithmetic
    if total <= 0:
        return 0
    return (200 * achieved + total) // (2 * total)


def _recommendations(breakdown: tuple[CriterionScore, ...]) -> tuple[Recommendation, ...]:
    missing = [item for item in breakdown if not item.present and item.weight > 0]
    ordered = sorted(missing, key=lambda item: -item.priority.rank)
    return tuple(
        Recommendation(
            criterion=item.criterion,
            priority=item.priority,
            message=f"Add a {item.criterion} section: essential {item.criterion.lower()} information",
            impact=f"+{item.weight} points",
        )
        for item in ordered
    )


def score(
    criteria_presence: Mapping[str, bool],
    criteria: CriteriaModel,
    *,
    minimum_score: int = DEFAULT_MINIMUM_QUALITY_SCORE,
) -> ScoreResult:
    """Score a presence mapping against ``criteria``.

    Criteria missing from ``criteria_presence`` count as absent, and only an
    explicit ``True`` counts as present. Names the rubric does not define are
    ignored and reported in ``ScoreResult.ignored``. An empty or zero-weight
    rubric scores 0 and never passes.
    """

    breakdown = tuple(
        CriterionScore(
            criterion=definition.name,
            weight=definition.weight,
            priority=definition.priority,
            present=criteria_presence.get(definition.name) is True,
        )
        for definition in criteria
    )
    ignored = tuple(sorted(str(name) for name in criteria_presence if name not in criteria))
    if ignored:
        logger.warning("Ignoring unknown criteria in presence mapping: %s", ", ".join(ignored))

    total = criteria.total_weight
    achieved = sum(item.weight for item in breakdown if item.present)
    value = _normalized_score(achieved, total)
    passed = total > 0 and value >= minimum_score

    return ScoreResult(
        score=value,
        passed=passed,
        minimum_score=minimum_score,
        breakdown=breakdown,
        ignored=ignored,
        recommendations=_recommendations(breakdown),
    )


__all__ = [
    "CriterionScore",
    "HIGH_QUALITY_SCORE",
    "Recommendation",
    "ScoreResult",
    "quality_level",
    "round_half_up",
    "score",
]

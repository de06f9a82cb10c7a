"""Request and response models for the HTTP adapter."""
from __future__ import annotations

from datetime import date
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from procgov.scoring.engine import ScoreResult


class ScoreRequest(BaseModel):
    """Already-extracted presence mapping for one document."""

    criteria: Dict[str, bool] = Field(default_factory=dict)


class AnalyzeRequest(BaseModel):
    text: str


class ProcedureSubmission(BaseModel):
    name: str = "Unnamed Procedure"
    primary_owner: Optional[str] = None
    secondary_owner: Optional[str] = None
    expiry: Optional[date] = None
    lob: str = "General"
    file_link: str = ""
    original_filename: str = ""
    criteria: Optional[Dict[str, bool]] = None
    text: Optional[str] = None

    @model_validator(mode="after")
    def _require_content(self) -> "ProcedureSubmission":
        if self.criteria is None and not (self.text and self.text.strip()):
            raise ValueError("Either criteria or text must be provided for scoring")
        return self


class ProcedureUpdate(BaseModel):
    """Administrator edit; only the fields sent are changed."""

    model_config = ConfigDict(extra="forbid")

    name: Optional[str] = None
    primary_owner: Optional[str] = None
    secondary_owner: Optional[str] = None
    expiry: Optional[date] = None
    lob: Optional[str] = None
    file_link: Optional[str] = None
    artifact_id: Optional[str] = None
    original_filename: Optional[str] = None
    criteria: Optional[Dict[str, bool]] = None
    text: Optional[str] = None

    def changes(self) -> Dict[str, object]:
        return self.model_dump(exclude_unset=True, exclude={"criteria", "text"})


class CriterionScoreModel(BaseModel):
    model_config = ConfigDict(frozen=True)

    criterion: str
    weight: int
    priority: str
    present: bool


class RecommendationModel(BaseModel):
    model_config = ConfigDict(frozen=True)

    criterion: str
    priority: str
    message: str
    impact: str
    category: str


class ScoreResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    procedure_id: int
    score: int
    passed: bool
    minimum_score: int
    quality_level: str
    breakdown: List[CriterionScoreModel]
    ignored: List[str]
    recommendations: List[RecommendationModel]

    @classmethod
    def from_result(cls, procedure_id: int, result: ScoreResult) -> "ScoreResponse":
        return cls(
            procedure_id=procedure_id,
            score=result.score,
            passed=result.passed,
            minimum_score=result.minimum_score,
            quality_level=result.quality_level,
            breakdown=[CriterionScoreModel(**item.to_dict()) for item in result.breakdown],
            ignored=list(result.ignored),
            recommendations=[RecommendationModel(**item.to_dict()) for item in result.recommendations],
        )


__all__ = [
    "AnalyzeRequest",
    "CriterionScoreModel",
    "ProcedureSubmission",
    "ProcedureUpdate",
    "RecommendationModel",
    "ScoreRequest",
    "ScoreResponse",
]

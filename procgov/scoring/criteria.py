"""Weighted criteria rubric used to score procedure documents."""
from __future__ import annotations

import json
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Iterator, Mapping

from procgov.core.errors import ConfigurationError


class Priority(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"

    @property
    def rank(self) -> int:
        return {"LOW": 1, "MEDIUM": 2, "HIGH": 3}[self.value]


@dataclass(slots=True, frozen=True)
class CriterionDefinition:
    name: str
    weight: int
    priority: Priority

    def __post_init__(self) -> None:
        if not isinstance(self.name, str) or not self.name.strip():
            raise ConfigurationError("Criterion name must be a non-empty string")
        if isinstance(self.weight, bool) or not isinstance(self.weight, int):
            raise ConfigurationError("Criterion weight must be an integer", details={"criterion": self.name})
        if not 0 <= self.weight <= 100:
            raise ConfigurationError(
                "Criterion weight must be within 0..100",
                details={"criterion": self.name, "weight": self.weight},
            )
        if not isinstance(self.priority, Priority):
            try:
                object.__setattr__(self, "priority", Priority(str(self.priority).upper()))
            except ValueError as exc:
                raise ConfigurationError(
                    "Unknown criterion priority",
                    details={"criterion": self.name, "priority": self.priority},
                ) from exc


DEFAULT_QUALITY_WEIGHTS: dict[str, dict[str, Any]] = {
    "Table of Contents": {"weight": 10, "priority": "MEDIUM"},
    "Purpose": {"weight": 15, "priority": "HIGH"},
    "Scope": {"weight": 15, "priority": "HIGH"},
    "Document Control": {"weight": 12, "priority": "HIGH"},
    "Responsibilities": {"weight": 10, "priority": "MEDIUM"},
    "Procedures": {"weight": 20, "priority": "HIGH"},
    "Risk Assessment": {"weight": 10, "priority": "MEDIUM"},
    "Approval": {"weight": 8, "priority": "LOW"},
    "Review Date": {"weight": 5, "priority": "LOW"},
}


class CriteriaModel:
    """Immutable, ordered set of criterion definitions.

    Declared order is preserved everywhere a breakdown is produced. Weights do
    not need to sum to 100; scores are normalised against ``total_weight``.
    """

    __slots__ = ("_definitions", "_by_name")

    def __init__(self, definitions: tuple[CriterionDefinition, ...] | list[CriterionDefinition]) -> None:
        ordered = tuple(definitions)
        by_name: dict[str, CriterionDefinition] = {}
        for definition in ordered:
            if definition.name in by_name:
                raise ConfigurationError("Duplicate criterion name", details={"criterion": definition.name})
            by_name[definition.name] = definition
        self._definitions = ordered
        self._by_name = by_name

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Mapping[str, Any]]) -> "CriteriaModel":
        definitions = []
        for name, entry in mapping.items():
            if not isinstance(entry, Mapping) or "weight" not in entry:
                raise ConfigurationError("Criterion entry must define a weight", details={"criterion": name})
            definitions.append(
                CriterionDefinition(
                    name=name,
                    weight=entry["weight"],
                    priority=entry.get("priority", Priority.MEDIUM),
                )
            )
        return cls(definitions)

    @classmethod
    def default(cls) -> "CriteriaModel":
        return cls.from_mapping(DEFAULT_QUALITY_WEIGHTS)

    @property
    def definitions(self) -> tuple[CriterionDefinition, ...]:
        return self._definitions

    @property
    def total_weight(self) -> int:
        return sum(definition.weight for definition in self._definitions)

    def names(self) -> tuple[str, ...]:
        return tuple(definition.name for definition in self._definitions)

    def get(self, name: str) -> CriterionDefinition | None:
        return self._by_name.get(name)

    def __contains__(self, name: object) -> bool:
        return name in self._by_name

    def __iter__(self) -> Iterator[CriterionDefinition]:
        return iter(self._definitions)

    def __len__(self) -> int:
        return len(self._definitions)

    def __repr__(self) -> str:
        return f"<CriteriaModel criteria={len(self)} total_weight={self.total_weight}>"


def load_criteria(path: Path | None = None) -> CriteriaModel:
    """Load the rubric from a JSON mapping file, or the default rubric."""

    if path is None:
        return CriteriaModel.default()
    try:
        payload = json.loads(Path(path).read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        raise ConfigurationError("Unable to read criteria file", details={"path": str(path)}) from exc
    if not isinstance(payload, Mapping):
        raise ConfigurationError("Criteria file must contain a JSON object", details={"path": str(path)})
    return CriteriaModel.from_mapping(payload)


__all__ = [
    "CriteriaModel",
    "CriterionDefinition",
    "DEFAULT_QUALITY_WEIGHTS",
    "Priority",
    "load_criteria",
]

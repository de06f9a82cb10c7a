"""Text-level section detection producing a criteria presence mapping."""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable

from procgov.core.errors import ScoringInputError

PROCEDURES_MIN_LENGTH = 1000


@dataclass(slots=True, frozen=True)
class SectionRule:
    criterion: str
    pattern: re.Pattern[str]
    min_length: int = 0

    def matches(self, text: str) -> bool:
        return len(text) > self.min_length and self.pattern.search(text) is not None


def _rule(criterion: str, pattern: str, *, min_length: int = 0, flags: int = re.IGNORECASE) -> SectionRule:
    return SectionRule(criterion=criterion, pattern=re.compile(pattern, flags), min_length=min_length)


DEFAULT_SECTION_RULES: tuple[SectionRule, ...] = (
    _rule(
        "Table of Contents",
        r"table\s+of\s+contents|contents\s+page|^contents$|index$",
        flags=re.IGNORECASE | re.MULTILINE,
    ),
    _rule("Purpose", r"purpose|objectives?|aims?"),
    _rule("Scope", r"scope|applies?\s+to|coverage"),
    _rule("Document Control", r"document\s+control|version\s+control|document\s+management|revision\s+history"),
    _rule("Responsibilities", r"responsibilities|responsible\s+parties?|accountable|raci"),
    _rule("Procedures", r"procedure|process|step|workflow|method", min_length=PROCEDURES_MIN_LENGTH),
    _rule("Risk Assessment", r"risk\s+assessment|risk\s+analysis|risk\s+management|risk\s+matrix"),
    _rule("Approval", r"approval|approved\s+by|sign[\s-]*off|authorized"),
    _rule("Review Date", r"review\s+date|next\s+review|review\s+frequency"),
)


def detect_sections(text: str, rules: Iterable[SectionRule] = DEFAULT_SECTION_RULES) -> dict[str, bool]:
    """Return ``{criterion: found}`` for every rule, in rule order."""

    if not text or not text.strip():
        raise ScoringInputError("No text content could be extracted from the document")
    return {rule.criterion: rule.matches(text) for rule in rules}


__all__ = ["DEFAULT_SECTION_RULES", "PROCEDURES_MIN_LENGTH", "SectionRule", "detect_sections"]

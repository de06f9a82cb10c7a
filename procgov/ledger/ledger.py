"""Append-only audit ledger used by the governance facade.

``append`` is best effort relative to the caller's primary action: storage
failures are logged and reported as ``None``, never raised. ``read_all`` and
``query`` do raise ``LedgerCorruptError`` when the store cannot be read, since
they are the primary action of their callers.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Mapping, Sequence

from procgov.core.errors import LedgerWriteFailed
from procgov.core.time import parse_canonical_datetime
from procgov.ledger.backends import AuditBackend
from procgov.ledger.entry import AuditAction, AuditEntry

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 500


@dataclass(slots=True, frozen=True)
class AuditPage:
    entries: tuple[AuditEntry, ...]
    page: int
    limit: int
    total_records: int
    action: str | None = None
    user_id: str | None = None

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total_records / self.limit) if self.total_records else 0

    @property
    def has_next(self) -> bool:
        return self.page * self.limit < self.total_records

    @property
    def has_previous(self) -> bool:
        return self.page > 1

    def to_dict(self) -> dict[str, Any]:
        return {
            "logs": [entry.to_dict() for entry in self.entries],
            "pagination": {
                "currentPage": self.page,
                "totalPages": self.total_pages,
                "totalRecords": self.total_records,
                "hasNext": self.has_next,
                "hasPrevious": self.has_previous,
            },
            "filters": {"action": self.action, "userId": self.user_id},
        }


@dataclass(slots=True, frozen=True)
class LedgerVerification:
    entry_count: int
    duplicate_ids: tuple[int, ...] = field(default_factory=tuple)
    non_increasing_ids: tuple[int, ...] = field(default_factory=tuple)

    @property
    def ok(self) -> bool:
        return not self.duplicate_ids and not self.non_increasing_ids

    def to_dict(self) -> dict[str, Any]:
        return {
            "entries": self.entry_count,
            "ok": self.ok,
            "duplicateIds": list(self.duplicate_ids),
            "nonIncreasingIds": list(self.non_increasing_ids),
        }


def verify_entries(entries: Sequence[AuditEntry]) -> LedgerVerification:
    """Report ids that repeat or fail to increase along insertion order."""

    seen: set[int] = set()
    duplicates: list[int] = []
    non_increasing: list[int] = []
    previous: int | None = None
    for entry in entries:
        if entry.id in seen:
            duplicates.append(entry.id)
        seen.add(entry.id)
        if previous is not None and entry.id <= previous:
            non_increasing.append(entry.id)
        previous = entry.id
    return LedgerVerification(
        entry_count=len(entries),
        duplicate_ids=tuple(duplicates),
        non_increasing_ids=tuple(non_increasing),
    )


class AuditLedger:
    def __init__(self, backend: AuditBackend) -> None:
        self.backend = backend

    def append(
        self,
        action: AuditAction | str,
        user_id: str,
        details: Mapping[str, Any] | None = None,
        *,
        now: datetime | None = None,
    ) -> AuditEntry | None:
        try:
            entry = self.backend.append(AuditAction(action), user_id or "", details or {}, now=now)
        except (LedgerWriteFailed, OSError, TypeError, ValueError) as exc:
            logger.error(
                "LedgerWriteFailed: could not record %s for user %r: %s",
                getattr(action, "value", action),
                user_id,
                exc,
            )
            return None
        logger.debug("Audit entry %s recorded: %s by %r", entry.id, entry.action.value, entry.user_id)
        return entry

    def read_all(self) -> list[AuditEntry]:
        return self.backend.read_all()

    def query(
        self,
        *,
        action: str | None = None,
        user_id: str | None = None,
        page: int = 1,
        limit: int = DEFAULT_PAGE_SIZE,
    ) -> AuditPage:
        """Filter and paginate newest first; equal timestamps keep newest insertion first."""

        page = max(1, int(page))
        limit = min(max(1, int(limit)), MAX_PAGE_SIZE)
        indexed = list(enumerate(self.read_all()))
        if action:
            indexed = [(idx, entry) for idx, entry in indexed if entry.action.value == action]
        if user_id:
            indexed = [(idx, entry) for idx, entry in indexed if entry.user_id == user_id]
        indexed.sort(key=lambda pair: (parse_canonical_datetime(pair[1].timestamp), pair[0]), reverse=True)
        start = (page - 1) * limit
        window = tuple(entry for _, entry in indexed[start : start + limit])
        return AuditPage(
            entries=window,
            page=page,
            limit=limit,
            total_records=len(indexed),
            action=action,
            user_id=user_id,
        )

    def verify(self) -> LedgerVerification:
        return verify_entries(self.read_all())


__all__ = [
    "AuditLedger",
    "AuditPage",
    "DEFAULT_PAGE_SIZE",
    "LedgerVerification",
    "MAX_PAGE_SIZE",
    "verify_entries",
]

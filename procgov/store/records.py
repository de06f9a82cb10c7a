"""Procedure records and their derived lifecycle status."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from pathlib import PurePosixPath
from typing import Any, Iterable, Mapping

from procgov.core.config import DEFAULT_MINIMUM_QUALITY_SCORE
from procgov.core.time import parse_date
from procgov.scoring.engine import quality_level, round_half_up

EXPIRING_SOON_DAYS = 30

_KNOWN_KEYS = frozenset(
    {
        "id",
        "name",
        "file_link",
        "artifact_id",
        "original_filename",
        "primary_owner",
        "secondary_owner",
        "uploaded_by",
        "score",
        "quality_details",
        "expiry",
        "lob",
        "uploaded_at",
    }
)


class ProcedureStatus(str, Enum):
    ACTIVE = "ACTIVE"
    EXPIRING_SOON = "EXPIRING_SOON"
    EXPIRED = "EXPIRED"
    UNSCORED = "UNSCORED"
    BELOW_THRESHOLD = "BELOW_THRESHOLD"


def artifact_key(file_link: str | None) -> str:
    """Stored artifact identifier for a file link (its final path component)."""

    if not file_link:
        return ""
    return PurePosixPath(file_link.replace("\\", "/")).name


@dataclass(frozen=True)
class ProcedureRecord:
    id: int
    name: str
    primary_owner: str = ""
    secondary_owner: str | None = None
    uploaded_by: str = ""
    file_link: str = ""
    artifact_id: str = ""
    original_filename: str = ""
    score: int | None = None
    quality_details: Mapping[str, Any] = field(default_factory=dict)
    expiry: date | None = None
    lob: str = "General"
    uploaded_at: str | None = None
    extra: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.artifact_id and self.file_link:
            object.__setattr__(self, "artifact_id", artifact_key(self.file_link))

    @property
    def download_name(self) -> str:
        return self.original_filename or self.artifact_id

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ProcedureRecord":
        if not isinstance(data, Mapping):
            raise TypeError("Procedure record must be a JSON object")
        record_id = data.get("id")
        if isinstance(record_id, bool) or not isinstance(record_id, int):
            raise ValueError(f"Procedure id must be an integer, received {record_id!r}")
        score = data.get("score")
        if score is not None and (isinstance(score, bool) or not isinstance(score, (int, float))):
            raise ValueError(f"Procedure {record_id} has a non-numeric score")
        return cls(
            id=record_id,
            name=str(data.get("name") or "Unnamed Procedure"),
            primary_owner=str(data.get("primary_owner") or ""),
            secondary_owner=str(data.get("secondary_owner") or "") or None,
            uploaded_by=str(data.get("uploaded_by") or ""),
            file_link=str(data.get("file_link") or ""),
            artifact_id=str(data.get("artifact_id") or ""),
            original_filename=str(data.get("original_filename") or ""),
            score=round_half_up(score) if score is not None else None,
            quality_details=dict(data.get("quality_details") or {}),
            expiry=parse_date(data.get("expiry")),
            lob=str(data.get("lob") or "General"),
            uploaded_at=data.get("uploaded_at"),
            extra={key: value for key, value in data.items() if key not in _KNOWN_KEYS},
        )

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = dict(self.extra)
        payload.update(
            {
                "id": self.id,
                "name": self.name,
                "primary_owner": self.primary_owner,
                "secondary_owner": self.secondary_owner or "",
                "uploaded_by": self.uploaded_by,
                "file_link": self.file_link,
                "artifact_id": self.artifact_id,
                "original_filename": self.original_filename,
                "score": self.score,
                "quality_details": dict(self.quality_details),
                "expiry": self.expiry.isoformat() if self.expiry else None,
                "lob": self.lob,
                "uploaded_at": self.uploaded_at,
            }
        )
        return payload


def days_until_expiry(record: ProcedureRecord, today: date) -> int | None:
    if record.expiry is None:
        return None
    return (record.expiry - today).days


def derive_status(
    record: ProcedureRecord,
    *,
    today: date,
    minimum_score: int = DEFAULT_MINIMUM_QUALITY_SCORE,
) -> ProcedureStatus:
    """Status is computed on read and never stored.

    Precedence: expired, unscored, below threshold, expiring soon, active.
    """

    days = days_until_expiry(record, today)
    if days is not None and days < 0:
        return ProcedureStatus.EXPIRED
    if record.score is None:
        return ProcedureStatus.UNSCORED
    if record.score < minimum_score:
        return ProcedureStatus.BELOW_THRESHOLD
    if days is not None and days <= EXPIRING_SOON_DAYS:
        return ProcedureStatus.EXPIRING_SOON
    return ProcedureStatus.ACTIVE


def describe(
    record: ProcedureRecord,
    *,
    today: date,
    minimum_score: int = DEFAULT_MINIMUM_QUALITY_SCORE,
) -> dict[str, Any]:
    """Record payload enriched with its derived status fields."""

    days = days_until_expiry(record, today)
    payload = record.to_dict()
    payload.update(
        {
            "status": derive_status(record, today=today, minimum_score=minimum_score).value,
            "daysUntilExpiry": days,
            "isExpired": days is not None and days < 0,
            "isExpiringSoon": days is not None and 0 <= days <= EXPIRING_SOON_DAYS,
            "qualityLevel": quality_level(record.score, minimum_score),
        }
    )
    return payload


def _totals(records: list[ProcedureRecord], today: date) -> dict[str, int]:
    days = [days_until_expiry(record, today) for record in records]
    scores = sum(record.score or 0 for record in records)
    return {
        "total": len(records),
        "expired": sum(1 for value in days if value is not None and value < 0),
        "expiringSoon": sum(1 for value in days if value is not None and 0 <= value <= EXPIRING_SOON_DAYS),
        "averageScore": round_half_up(scores / len(records)) if records else 0,
    }


def expiry_timeline(records: Iterable[ProcedureRecord], today: date) -> dict[str, int]:
    """Bucket records by days left until expiry; undated records count as later."""

    timeline = {"expired": 0, "thisWeek": 0, "thisMonth": 0, "later": 0}
    for record in records:
        days = days_until_expiry(record, today)
        if days is None:
            timeline["later"] += 1
        elif days < 0:
            timeline["expired"] += 1
        elif days < 7:
            timeline["thisWeek"] += 1
        elif days < 30:
            timeline["thisMonth"] += 1
        else:
            timeline["later"] += 1
    return timeline


def summarize(
    records: Iterable[ProcedureRecord],
    *,
    today: date,
    minimum_score: int = DEFAULT_MINIMUM_QUALITY_SCORE,
) -> dict[str, Any]:
    """Dashboard counts over ``records``.

    ``averageScore`` counts unscored records as 0. Records without a line of
    business are grouped under ``Unknown``.
    """

    records = list(records)
    by_status = {status.value: 0 for status in ProcedureStatus}
    by_lob: dict[str, list[ProcedureRecord]] = {}
    for record in records:
        by_status[derive_status(record, today=today, minimum_score=minimum_score).value] += 1
        by_lob.setdefault(record.lob or "Unknown", []).append(record)

    summary: dict[str, Any] = _totals(records, today)
    summary["byStatus"] = by_status
    summary["byLob"] = {lob: _totals(group, today) for lob, group in sorted(by_lob.items())}
    summary["expiryTimeline"] = expiry_timeline(records, today)
    return summary


__all__ = [
    "EXPIRING_SOON_DAYS",
    "ProcedureRecord",
    "ProcedureStatus",
    "artifact_key",
    "days_until_expiry",
    "derive_status",
    "describe",
    "expiry_timeline",
    "summarize",
]

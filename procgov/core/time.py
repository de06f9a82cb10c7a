"""Canonical datetime helpers enforcing UTC + ISO-8601 with ``Z`` suffix."""
from __future__ import annotations

from datetime import date, datetime, timezone


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def canonical_datetime(dt: datetime | None = None) -> str:
    reference = dt.astimezone(timezone.utc) if dt else utcnow()
    normalized = reference.replace(microsecond=reference.microsecond // 1000 * 1000)
    return normalized.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_canonical_datetime(value: str) -> datetime:
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def epoch_millis(dt: datetime | None = None) -> int:
    reference = dt or utcnow()
    return int(reference.timestamp() * 1000)


def parse_date(value: str | date | None) -> date | None:
    """Accept ``YYYY-MM-DD`` or a full ISO timestamp; ``None``/empty stays ``None``."""

    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    if "T" in text:
        return parse_canonical_datetime(text).date()
    return date.fromisoformat(text)


__all__ = [
    "canonical_datetime",
    "epoch_millis",
    "parse_canonical_datetime",
    "parse_date",
    "utcnow",
]

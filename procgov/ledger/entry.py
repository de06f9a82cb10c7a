"""Audit entry record shape shared by every ledger backend.

Persisted form (one element of the ledger JSON array)::

    {"id": 1718000000000, "timestamp": "2024-06-10T06:13:20.000Z",
     "action": "FILE_ACCESS", "userId": "43898931", "details": {...}}
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Iterable, Mapping

from procgov.core.errors import LedgerCorruptError
from procgov.core.serialization import FrozenPayload, materialize, snapshot_payload
from procgov.core.time import canonical_datetime, epoch_millis, parse_canonical_datetime


class AuditAction(str, Enum):
    FILE_ACCESS = "FILE_ACCESS"
    FILE_ACCESS_DENIED = "FILE_ACCESS_DENIED"
    SCORE_COMPUTED = "SCORE_COMPUTED"
    PROCEDURE_CREATED = "PROCEDURE_CREATED"
    PROCEDURE_REJECTED = "PROCEDURE_REJECTED"
    PROCEDURE_UPDATED = "PROCEDURE_UPDATED"
    PROCEDURE_DELETED = "PROCEDURE_DELETED"
    DATA_EXPORT = "DATA_EXPORT"
    SERVER_STARTUP = "SERVER_STARTUP"
    SHAREPOINT_UPLOAD = "SHAREPOINT_UPLOAD"
    SHAREPOINT_AUTO_UPLOAD = "SHAREPOINT_AUTO_UPLOAD"
    SHAREPOINT_SYNC_UPLOAD = "SHAREPOINT_SYNC_UPLOAD"


@dataclass(slots=True, frozen=True)
class AuditEntry:
    id: int
    timestamp: str
    action: AuditAction
    user_id: str
    details: FrozenPayload

    @classmethod
    def create(
        cls,
        *,
        action: AuditAction | str,
        user_id: str,
        details: Mapping[str, Any],
        last_id: int | None,
        now: datetime | None = None,
    ) -> "AuditEntry":
        return cls(
            id=next_entry_id(last_id, epoch_millis(now)),
            timestamp=canonical_datetime(now),
            action=AuditAction(action),
            user_id=user_id,
            details=snapshot_payload(details),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "timestamp": self.timestamp,
            "action": self.action.value,
            "userId": self.user_id,
            "details": materialize(self.details),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "AuditEntry":
        if not isinstance(data, Mapping):
            raise LedgerCorruptError("Audit entry must be a JSON object")
        for field in ("id", "timestamp", "action"):
            if field not in data:
                raise LedgerCorruptError(f"Missing audit entry field '{field}'", details={"entry": dict(data)})
        entry_id = data["id"]
        if isinstance(entry_id, bool) or not isinstance(entry_id, int):
            raise LedgerCorruptError("Audit entry id must be an integer", details={"id": entry_id})
        timestamp = data["timestamp"]
        try:
            parse_canonical_datetime(str(timestamp))
        except ValueError as exc:
            raise LedgerCorruptError("Audit entry timestamp is not ISO-8601", details={"id": entry_id}) from exc
        try:
            action = AuditAction(data["action"])
        except ValueError as exc:
            raise LedgerCorruptError(
                "Unknown audit action", details={"id": entry_id, "action": data["action"]}
            ) from exc
        details = data.get("details") or {}
        if not isinstance(details, Mapping):
            raise LedgerCorruptError("Audit entry details must be an object", details={"id": entry_id})
        return cls(
            id=entry_id,
            timestamp=str(timestamp),
            action=action,
            user_id=str(data.get("userId") or ""),
            details=snapshot_payload(details),
        )


def next_entry_id(last_id: int | None, now_ms: int) -> int:
    """Time based id that stays strictly increasing when the clock stalls."""

    if last_id is None:
        return now_ms
    return max(now_ms, last_id + 1)


def max_entry_id(records: Iterable[Mapping[str, Any]]) -> int | None:
    highest: int | None = None
    for record in records:
        entry_id = record.get("id") if isinstance(record, Mapping) else None
        if isinstance(entry_id, bool) or not isinstance(entry_id, int):
            raise LedgerCorruptError("Audit entry id must be an integer", details={"id": entry_id})
        if highest is None or entry_id > highest:
            highest = entry_id
    return highest


__all__ = ["AuditAction", "AuditEntry", "max_entry_id", "next_entry_id"]

"""Procedure store collaborator: a JSON array of procedure records.

The store owns persistence of ``ProcedureRecord``; the governance core reads
records, attaches scores through ``set_score`` and applies administrator edits
through ``update`` and ``delete``. Artifact lookups are exact
matches on ``artifact_id``; a stored link is never matched by substring.
"""
from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from dataclasses import replace
from pathlib import Path
from typing import Any, Iterable, Protocol

from procgov.core.errors import ProcedureNotFoundError, StoreUnavailableError
from procgov.core.time import canonical_datetime
from procgov.scoring.engine import ScoreResult
from procgov.store.records import ProcedureRecord

logger = logging.getLogger(__name__)


class ProcedureStore(Protocol):
    def get(self, procedure_id: int) -> ProcedureRecord | None: ...

    def find_by_artifact(self, name: str) -> ProcedureRecord | None: ...

    def list_all(self) -> list[ProcedureRecord]: ...

    def add(self, record: ProcedureRecord) -> ProcedureRecord: ...

    def set_score(self, procedure_id: int, result: ScoreResult) -> ProcedureRecord: ...

    def update(self, record: ProcedureRecord) -> ProcedureRecord: ...

    def delete(self, procedure_id: int) -> ProcedureRecord: ...


def scored_details(result: ScoreResult) -> dict[str, Any]:
    return {
        "breakdown": [item.to_dict() for item in result.breakdown],
        "foundElements": list(result.found),
        "missingElements": list(result.missing),
        "passed": result.passed,
        "minimumScore": result.minimum_score,
        "scoredAt": canonical_datetime(),
    }


def _match_artifact(records: Iterable[ProcedureRecord], name: str) -> ProcedureRecord | None:
    if not name:
        return None
    matches = [record for record in records if record.artifact_id == name]
    if len(matches) > 1:
        logger.warning(
            "Artifact %r is linked to %d procedures (%s); using the first",
            name,
            len(matches),
            ", ".join(str(record.id) for record in matches),
        )
    return matches[0] if matches else None


def _position(records: list[ProcedureRecord], procedure_id: int) -> int:
    for index, record in enumerate(records):
        if record.id == procedure_id:
            return index
    raise ProcedureNotFoundError("Procedure not found", details={"procedureId": procedure_id})


class InMemoryProcedureStore:
    def __init__(self, records: Iterable[ProcedureRecord] = ()) -> None:
        self._records: list[ProcedureRecord] = list(records)
        self._lock = threading.Lock()

    def get(self, procedure_id: int) -> ProcedureRecord | None:
        with self._lock:
            return next((record for record in self._records if record.id == procedure_id), None)

    def find_by_artifact(self, name: str) -> ProcedureRecord | None:
        with self._lock:
            return _match_artifact(self._records, name)

    def list_all(self) -> list[ProcedureRecord]:
        with self._lock:
            return list(self._records)

    def add(self, record: ProcedureRecord) -> ProcedureRecord:
        with self._lock:
            next_id = self._records[-1].id + 1 if self._records else 1
            stored = replace(record, id=next_id)
            self._records.append(stored)
            return stored

    def set_score(self, procedure_id: int, result: ScoreResult) -> ProcedureRecord:
        with self._lock:
            for index, record in enumerate(self._records):
                if record.id == procedure_id:
                    updated = replace(record, score=result.score, quality_details=scored_details(result))
                    self._records[index] = updated
                    return updated
        raise ProcedureNotFoundError("Procedure not found", details={"procedureId": procedure_id})

    def update(self, record: ProcedureRecord) -> ProcedureRecord:
        with self._lock:
            self._records[_position(self._records, record.id)] = record
            return record

    def delete(self, procedure_id: int) -> ProcedureRecord:
        with self._lock:
            return self._records.pop(_position(self._records, procedure_id))


class JsonProcedureStore:
    """Procedures persisted as one JSON array, rewritten atomically on change."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        self._lock = threading.Lock()

    def _load_raw(self) -> list[dict[str, Any]]:
        if not self.path.exists():
            return []
        try:
            raw = self.path.read_text(encoding="utf-8")
            payload = json.loads(raw) if raw.strip() else []
        except (OSError, UnicodeDecodeError, ValueError) as exc:
            raise StoreUnavailableError("Procedure store is unreadable", details={"path": str(self.path)}) from exc
        if not isinstance(payload, list):
            raise StoreUnavailableError("Procedure store must be a JSON array", details={"path": str(self.path)})
        return payload

    def _load(self) -> list[ProcedureRecord]:
        try:
            return [ProcedureRecord.from_dict(item) for item in self._load_raw()]
        except (TypeError, ValueError) as exc:
            raise StoreUnavailableError(
                f"Procedure store holds an invalid record: {exc}", details={"path": str(self.path)}
            ) from exc

    def _save(self, records: list[ProcedureRecord]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        serialized = json.dumps([record.to_dict() for record in records], indent=4, ensure_ascii=False) + "\n"
        fd, tmp_name = tempfile.mkstemp(prefix=self.path.name, suffix=".tmp", dir=self.path.parent)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(serialized)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_name, self.path)
        except OSError as exc:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise StoreUnavailableError("Unable to persist procedure store", details={"path": str(self.path)}) from exc

    def get(self, procedure_id: int) -> ProcedureRecord | None:
        with self._lock:
            return next((record for record in self._load() if record.id == procedure_id), None)

    def find_by_artifact(self, name: str) -> ProcedureRecord | None:
        with self._lock:
            return _match_artifact(self._load(), name)

    def list_all(self) -> list[ProcedureRecord]:
        with self._lock:
            return self._load()

    def add(self, record: ProcedureRecord) -> ProcedureRecord:
        with self._lock:
            records = self._load()
            next_id = records[-1].id + 1 if records else 1
            stored = replace(record, id=next_id)
            records.append(stored)
            self._save(records)
            return stored

    def set_score(self, procedure_id: int, result: ScoreResult) -> ProcedureRecord:
        with self._lock:
            records = self._load()
            for index, record in enumerate(records):
                if record.id == procedure_id:
                    updated = replace(record, score=result.score, quality_details=scored_details(result))
                    records[index] = updated
                    self._save(records)
                    return updated
        raise ProcedureNotFoundError("Procedure not found", details={"procedureId": procedure_id})

    def update(self, record: ProcedureRecord) -> ProcedureRecord:
        """Replace the stored record with the same id; the id never changes."""

        with self._lock:
            records = self._load()
            records[_position(records, record.id)] = record
            self._save(records)
            return record

    def delete(self, procedure_id: int) -> ProcedureRecord:
        with self._lock:
            records = self._load()
            removed = records.pop(_position(records, procedure_id))
            self._save(records)
            return removed


__all__ = [
    "InMemoryProcedureStore",
    "JsonProcedureStore",
    "ProcedureStore",
    "scored_details",
]

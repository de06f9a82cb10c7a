"""Pluggable audit ledger storage.

Every backend exposes ``append(action, user_id, details) -> AuditEntry`` and
``read_all() -> list[AuditEntry]`` with identical ordering semantics: entries
come back in insertion order and ids strictly increase.

``JsonFileAuditBackend`` keeps the ledger as one JSON array, so each append is
a full read-modify-write and costs O(ledger size). Appends are serialized by a
process-wide lock plus an advisory ``fcntl`` lock on a sidecar file, and the
new array replaces the old one atomically. Without those locks two concurrent
writers could each read the same array and one entry would be lost.
``SqlAuditBackend`` stores one row per entry and appends in a single
transaction.
"""
from __future__ import annotations

import fcntl
import json
import os
import random
import tempfile
import threading
import time
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any, Iterator, Mapping, Protocol

from sqlalchemy import create_engine, func, select
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from procgov.core.config import GovernanceSettings
from procgov.core.errors import LedgerCorruptError, LedgerWriteFailed
from procgov.ledger.entry import AuditAction, AuditEntry, max_entry_id
from procgov.ledger.models import AuditEntryRow, Base


class AuditBackend(Protocol):
    def append(
        self,
        action: AuditAction,
        user_id: str,
        details: Mapping[str, Any],
        *,
        now: datetime | None = None,
    ) -> AuditEntry: ...

    def read_all(self) -> list[AuditEntry]: ...


class InMemoryAuditBackend:
    """Volatile backend for tests and ephemeral runs."""

    def __init__(self) -> None:
        self._records: list[dict[str, Any]] = []
        self._lock = threading.Lock()

    def append(
        self,
        action: AuditAction,
        user_id: str,
        details: Mapping[str, Any],
        *,
        now: datetime | None = None,
    ) -> AuditEntry:
        with self._lock:
            entry = AuditEntry.create(
                action=action,
                user_id=user_id,
                details=details,
                last_id=max_entry_id(self._records),
                now=now,
            )
            self._records.append(entry.to_dict())
        return entry

    def read_all(self) -> list[AuditEntry]:
        with self._lock:
            return [AuditEntry.from_dict(record) for record in self._records]


@contextmanager
def _acquire_file_lock(lock_path: Path, *, max_attempts: int = 10) -> Iterator[None]:
    lock_path.parent.mkdir(parents=True, exist_ok=True)
    with open(lock_path, "a+", encoding="utf-8") as handle:
        delay = 0.01
        max_delay = 0.5
        attempts = 0
        while True:
            try:
                fcntl.flock(handle.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
            except BlockingIOError:
                jitter = random.uniform(0.0, delay)
                time.sleep(delay + jitter)
                attempts += 1
                delay = min(delay * 2, max_delay)
                if attempts > max_attempts:
                    raise LedgerWriteFailed(
                        "Unable to obtain audit ledger lock within backoff window",
                        details={"lock_path": str(lock_path)},
                    )
            else:
                try:
                    yield
                finally:
                    fcntl.flock(handle.fileno(), fcntl.LOCK_UN)
                break


class JsonFileAuditBackend:
    """Whole-file JSON array ledger (read-modify-write per append)."""

    def __init__(self, path: Path, *, lock_attempts: int = 10) -> None:
        self.path = Path(path)
        self.lock_path = self.path.with_name(self.path.name + ".lock")
        self.lock_attempts = lock_attempts
        self._lock = threading.Lock()

    def _load(self) -> list[dict[str, Any]]:
        if not self.path.exists():
            return []
        try:
            raw = self.path.read_bytes()
        except OSError as exc:
            raise LedgerCorruptError("Audit ledger is unreadable", details={"path": str(self.path)}) from exc
        if not raw.strip():
            return []
        try:
            payload = json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, ValueError) as exc:
            raise LedgerCorruptError("Audit ledger is not valid JSON", details={"path": str(self.path)}) from exc
        if not isinstance(payload, list):
            raise LedgerCorruptError("Audit ledger must be a JSON array", details={"path": str(self.path)})
        return payload

    def _save(self, records: list[dict[str, Any]]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        serialized = json.dumps(records, indent=2, ensure_ascii=False) + "\n"
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
            raise LedgerWriteFailed("Unable to persist audit ledger", details={"path": str(self.path)}) from exc

    def append(
        self,
        action: AuditAction,
        user_id: str,
        details: Mapping[str, Any],
        *,
        now: datetime | None = None,
    ) -> AuditEntry:
        with self._lock, _acquire_file_lock(self.lock_path, max_attempts=self.lock_attempts):
            records = self._load()
            entry = AuditEntry.create(
                action=action,
                user_id=user_id,
                details=details,
                last_id=max_entry_id(records),
                now=now,
            )
            records.append(entry.to_dict())
            self._save(records)
        return entry

    def read_all(self) -> list[AuditEntry]:
        with self._lock:
            records = self._load()
        return [AuditEntry.from_dict(record) for record in records]


def _ensure_sqlite_directory(database_url: str) -> None:
    url = make_url(database_url)
    if url.get_backend_name() == "sqlite" and url.database and url.database != ":memory:":
        Path(url.database).parent.mkdir(parents=True, exist_ok=True)


class SqlAuditBackend:
    """Embedded transactional ledger backed by SQLAlchemy."""

    def __init__(self, database_url: str | None = None, *, engine: Engine | None = None) -> None:
        if engine is None:
            if not database_url:
                raise LedgerWriteFailed("A database URL is required for the SQL audit backend")
            _ensure_sqlite_directory(database_url)
            engine = create_engine(database_url, echo=False, future=True)
        self.engine = engine
        self._session_factory = sessionmaker(
            bind=self.engine, autoflush=False, autocommit=False, expire_on_commit=False
        )
        self._lock = threading.Lock()
        Base.metadata.create_all(bind=self.engine)

    def append(
        self,
        action: AuditAction,
        user_id: str,
        details: Mapping[str, Any],
        *,
        now: datetime | None = None,
    ) -> AuditEntry:
        with self._lock:
            session = self._session_factory()
            try:
                last_id = session.execute(select(func.max(AuditEntryRow.entry_id))).scalar()
                entry = AuditEntry.create(
                    action=action,
                    user_id=user_id,
                    details=details,
                    last_id=last_id,
                    now=now,
                )
                record = entry.to_dict()
                session.add(
                    AuditEntryRow(
                        entry_id=record["id"],
                        timestamp=record["timestamp"],
                        action=record["action"],
                        user_id=record["userId"],
                        details=record["details"],
                    )
                )
                session.commit()
                return entry
            except SQLAlchemyError as exc:
                session.rollback()
                raise LedgerWriteFailed(f"Failed to append audit entry: {exc}") from exc
            finally:
                session.close()

    def read_all(self) -> list[AuditEntry]:
        session = self._session_factory()
        try:
            rows = session.execute(select(AuditEntryRow).order_by(AuditEntryRow.seq)).scalars().all()
            return [AuditEntry.from_dict(row.to_record()) for row in rows]
        except SQLAlchemyError as exc:
            raise LedgerCorruptError(f"Failed to read audit entries: {exc}") from exc
        finally:
            session.close()


def build_backend(settings: GovernanceSettings) -> AuditBackend:
    if settings.audit_backend == "memory":
        return InMemoryAuditBackend()
    if settings.audit_backend == "sql":
        return SqlAuditBackend(settings.database_url)
    return JsonFileAuditBackend(settings.audit_log_path)


__all__ = [
    "AuditBackend",
    "InMemoryAuditBackend",
    "JsonFileAuditBackend",
    "SqlAuditBackend",
    "build_backend",
]

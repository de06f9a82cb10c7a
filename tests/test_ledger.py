"""Audit ledger backends, best-effort appends, querying and verification."""

from __future__ import annotations

import json
import logging
import multiprocessing
from collections import Counter
from concurrent.futures import ProcessPoolExecutor, ThreadPoolExecutor
from datetime import date, datetime, timedelta, timezone
from pathlib import Path

import pytest

from procgov.core.errors import LedgerCorruptError
from procgov.ledger.backends import (
    InMemoryAuditBackend,
    JsonFileAuditBackend,
    SqlAuditBackend,
    build_backend,
)
from procgov.ledger.entry import AuditAction, AuditEntry, next_entry_id
from procgov.ledger.ledger import AuditLedger, MAX_PAGE_SIZE, verify_entries

BASE_TIME = datetime(2024, 6, 10, 6, 13, 20, tzinfo=timezone.utc)


def _backend(kind: str, tmp_path: Path):
    if kind == "json":
        return JsonFileAuditBackend(tmp_path / "audit_log.json")
    if kind == "sql":
        return SqlAuditBackend(f"sqlite:///{tmp_path / 'audit.db'}")
    return InMemoryAuditBackend()


def _append_batch(path: str, worker: int, count: int) -> int:
    backend = JsonFileAuditBackend(Path(path), lock_attempts=50)
    for index in range(count):
        backend.append(AuditAction.SCORE_COMPUTED, f"worker-{worker}", {"index": index})
    return count


@pytest.fixture(params=["memory", "json", "sql"])
def any_ledger(request: pytest.FixtureRequest, tmp_path: Path) -> AuditLedger:
    return AuditLedger(_backend(request.param, tmp_path))


def test_append_grows_ledger_with_new_entry_last(any_ledger: AuditLedger) -> None:
    for index in range(3):
        any_ledger.append(AuditAction.SCORE_COMPUTED, "system", {"procedureId": index})
    before = any_ledger.read_all()

    entry = any_ledger.append(AuditAction.FILE_ACCESS, "43898931", {"filename": "payments.pdf"})

    after = any_ledger.read_all()
    assert entry is not None
    assert len(after) == len(before) + 1
    assert after[-1] == entry
    assert after[-1].details["filename"] == "payments.pdf"
    assert [item.id for item in after[:-1]] == [item.id for item in before]


def test_ids_strictly_increase_when_clock_stalls(any_ledger: AuditLedger) -> None:
    entries = [any_ledger.append(AuditAction.FILE_ACCESS, "u", {}, now=BASE_TIME) for _ in range(4)]
    ids = [entry.id for entry in entries if entry is not None]
    assert len(ids) == 4
    assert ids == sorted(set(ids))
    assert ids[0] == int(BASE_TIME.timestamp() * 1000)
    assert ids[-1] == ids[0] + 3


def test_entry_timestamp_is_canonical_utc() -> None:
    entry = AuditLedger(InMemoryAuditBackend()).append(AuditAction.FILE_ACCESS, "u", {}, now=BASE_TIME)
    assert entry is not None
    assert entry.timestamp == "2024-06-10T06:13:20.000Z"


def test_entry_details_are_read_only_snapshots() -> None:
    details = {"filename": "a.pdf", "nested": {"items": [1, 2]}}
    entry = AuditLedger(InMemoryAuditBackend()).append(AuditAction.FILE_ACCESS, "u", details)
    assert entry is not None
    details["filename"] = "changed.pdf"
    assert entry.details["filename"] == "a.pdf"
    with pytest.raises(TypeError):
        entry.details["filename"] = "b.pdf"  # type: ignore[index]
    assert entry.to_dict()["details"] == {"filename": "a.pdf", "nested": {"items": [1, 2]}}


def test_details_are_normalised_to_json_values() -> None:
    ledger = AuditLedger(InMemoryAuditBackend())
    entry = ledger.append(
        AuditAction.PROCEDURE_CREATED,
        "carol",
        {"expiry": date(2025, 1, 31), "at": BASE_TIME, "action": AuditAction.FILE_ACCESS, "ids": (1, 2)},
    )
    assert entry is not None
    assert entry.to_dict()["details"] == {
        "action": "FILE_ACCESS",
        "at": "2024-06-10T06:13:20.000Z",
        "expiry": "2025-01-31",
        "ids": [1, 2],
    }


def test_json_backend_persists_original_shape(tmp_path: Path) -> None:
    path = tmp_path / "audit_log.json"
    ledger = AuditLedger(JsonFileAuditBackend(path))
    ledger.append(AuditAction.FILE_ACCESS_DENIED, "43898931", {"filename": "x.pdf"}, now=BASE_TIME)

    stored = json.loads(path.read_text(encoding="utf-8"))
    assert stored == [
        {
            "id": int(BASE_TIME.timestamp() * 1000),
            "timestamp": "2024-06-10T06:13:20.000Z",
            "action": "FILE_ACCESS_DENIED",
            "userId": "43898931",
            "details": {"filename": "x.pdf"},
        }
    ]
    assert not list(tmp_path.glob("*.tmp"))


def test_json_backend_reads_existing_ledger(tmp_path: Path) -> None:
    path = tmp_path / "audit_log.json"
    path.write_text(
        json.dumps(
            [
                {"id": 5, "timestamp": "2024-01-01T00:00:00.000Z", "action": "SERVER_STARTUP", "userId": "system", "details": {}},
                {"id": 9, "timestamp": "2024-01-02T00:00:00.000Z", "action": "DATA_EXPORT", "details": None},
            ]
        ),
        encoding="utf-8",
    )
    entries = JsonFileAuditBackend(path).read_all()
    assert [entry.action for entry in entries] == [AuditAction.SERVER_STARTUP, AuditAction.DATA_EXPORT]
    assert entries[1].user_id == ""


@pytest.mark.parametrize("content", ["", "   \n"])
def test_json_backend_treats_empty_file_as_empty_ledger(tmp_path: Path, content: str) -> None:
    path = tmp_path / "audit_log.json"
    path.write_text(content, encoding="utf-8")
    ledger = AuditLedger(JsonFileAuditBackend(path))
    assert ledger.read_all() == []
    assert ledger.append(AuditAction.FILE_ACCESS, "u", {}) is not None
    assert len(ledger.read_all()) == 1


def test_concurrent_thread_appends_are_all_kept(tmp_path: Path) -> None:
    path = tmp_path / "audit_log.json"
    shared = JsonFileAuditBackend(path, lock_attempts=50)

    def append(index: int) -> None:
        # odd indexes use their own backend instance so only the file lock orders them
        backend = shared if index % 2 == 0 else JsonFileAuditBackend(path, lock_attempts=50)
        backend.append(AuditAction.FILE_ACCESS, f"user-{index}", {"sequence": index})

    with ThreadPoolExecutor(max_workers=8) as pool:
        for future in [pool.submit(append, index) for index in range(40)]:
            future.result()

    entries = shared.read_all()
    assert len(entries) == 40
    assert sorted(entry.details["sequence"] for entry in entries) == list(range(40))
    assert verify_entries(entries).ok


def test_concurrent_process_appends_are_all_kept(tmp_path: Path) -> None:
    path = tmp_path / "audit_log.json"
    context = multiprocessing.get_context("spawn")

    with ProcessPoolExecutor(max_workers=3, mp_context=context) as pool:
        written = sum(pool.map(_append_batch, [str(path)] * 3, range(3), [10] * 3))

    entries = JsonFileAuditBackend(path).read_all()
    assert written == 30
    assert len(entries) == 30
    assert Counter(entry.user_id for entry in entries) == {"worker-0": 10, "worker-1": 10, "worker-2": 10}
    assert verify_entries(entries).ok


def test_corrupt_json_ledger_is_logged_not_raised_on_append(
    tmp_path: Path, caplog: pytest.LogCaptureFixture
) -> None:
    path = tmp_path / "audit_log.json"
    path.write_text("{not json", encoding="utf-8")
    ledger = AuditLedger(JsonFileAuditBackend(path))

    with caplog.at_level(logging.ERROR, logger="procgov.ledger.ledger"):
        assert ledger.append(AuditAction.FILE_ACCESS, "u", {"filename": "a.pdf"}) is None

    assert "LedgerWriteFailed" in caplog.text
    assert path.read_text(encoding="utf-8") == "{not json"
    with pytest.raises(LedgerCorruptError):
        ledger.read_all()


def test_unserialisable_details_are_swallowed(caplog: pytest.LogCaptureFixture) -> None:
    ledger = AuditLedger(InMemoryAuditBackend())
    with caplog.at_level(logging.ERROR, logger="procgov.ledger.ledger"):
        assert ledger.append(AuditAction.FILE_ACCESS, "u", {"blob": object()}) is None
        assert ledger.append(AuditAction.FILE_ACCESS, "u", {"ratio": float("nan")}) is None
    assert ledger.read_all() == []


def test_entry_from_dict_rejects_bad_shapes() -> None:
    with pytest.raises(LedgerCorruptError):
        AuditEntry.from_dict({"timestamp": "2024-01-01T00:00:00Z", "action": "FILE_ACCESS"})
    with pytest.raises(LedgerCorruptError):
        AuditEntry.from_dict({"id": "1", "timestamp": "2024-01-01T00:00:00Z", "action": "FILE_ACCESS"})
    with pytest.raises(LedgerCorruptError):
        AuditEntry.from_dict({"id": 1, "timestamp": "yesterday", "action": "FILE_ACCESS"})
    with pytest.raises(LedgerCorruptError):
        AuditEntry.from_dict({"id": 1, "timestamp": "2024-01-01T00:00:00Z", "action": "TELEPORT"})


def test_next_entry_id() -> None:
    assert next_entry_id(None, 100) == 100
    assert next_entry_id(99, 100) == 100
    assert next_entry_id(100, 100) == 101
    assert next_entry_id(250, 100) == 251


def test_query_filters_and_paginates_newest_first() -> None:
    ledger = AuditLedger(InMemoryAuditBackend())
    for minute in range(5):
        ledger.append(AuditAction.FILE_ACCESS, "alice", {"n": minute}, now=BASE_TIME + timedelta(minutes=minute))
    ledger.append(AuditAction.FILE_ACCESS_DENIED, "bob", {"n": 99}, now=BASE_TIME + timedelta(minutes=10))

    everything = ledger.query()
    assert everything.entries[0].user_id == "bob"
    assert everything.total_records == 6

    page = ledger.query(action="FILE_ACCESS", page=2, limit=2)
    assert [entry.details["n"] for entry in page.entries] == [2, 1]
    payload = page.to_dict()
    assert payload["pagination"] == {
        "currentPage": 2,
        "totalPages": 3,
        "totalRecords": 5,
        "hasNext": True,
        "hasPrevious": True,
    }
    assert payload["filters"] == {"action": "FILE_ACCESS", "userId": None}

    assert ledger.query(user_id="bob").total_records == 1
    assert ledger.query(user_id="carol").to_dict()["pagination"]["totalPages"] == 0


def test_query_breaks_timestamp_ties_by_insertion_order() -> None:
    ledger = AuditLedger(InMemoryAuditBackend())
    for index in range(3):
        ledger.append(AuditAction.SCORE_COMPUTED, "system", {"n": index}, now=BASE_TIME)
    assert [entry.details["n"] for entry in ledger.query().entries] == [2, 1, 0]


def test_query_clamps_page_and_limit() -> None:
    ledger = AuditLedger(InMemoryAuditBackend())
    ledger.append(AuditAction.FILE_ACCESS, "u", {})
    page = ledger.query(page=0, limit=10_000)
    assert page.page == 1
    assert page.limit == MAX_PAGE_SIZE
    assert len(page.entries) == 1


def test_verify_reports_duplicates_and_regressions() -> None:
    def entry(entry_id: int) -> AuditEntry:
        return AuditEntry.from_dict(
            {"id": entry_id, "timestamp": "2024-01-01T00:00:00.000Z", "action": "FILE_ACCESS", "userId": "u"}
        )

    report = verify_entries([entry(1), entry(3), entry(3), entry(2)])
    assert not report.ok
    assert report.duplicate_ids == (3,)
    assert report.non_increasing_ids == (3, 2)
    assert verify_entries([entry(1), entry(2)]).to_dict() == {
        "entries": 2,
        "ok": True,
        "duplicateIds": [],
        "nonIncreasingIds": [],
    }


def test_build_backend_follows_settings(settings) -> None:
    assert isinstance(build_backend(settings), JsonFileAuditBackend)
    assert isinstance(build_backend(settings.with_overrides(audit_backend="memory")), InMemoryAuditBackend)
    assert isinstance(build_backend(settings.with_overrides(audit_backend="sql")), SqlAuditBackend)

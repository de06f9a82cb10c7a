"""Procedure records, derived status and the JSON procedure store."""

from __future__ import annotations

import json
from datetime import date
from pathlib import Path

import pytest

from procgov.core.errors import ProcedureNotFoundError, StoreUnavailableError
from procgov.scoring.criteria import CriteriaModel
from procgov.scoring.engine import score
from procgov.store.procedures import InMemoryProcedureStore, JsonProcedureStore
from procgov.store.records import ProcedureRecord, ProcedureStatus, derive_status, describe

from tests.factories import TODAY, make_record

LEGACY_RECORD = {
    "id": 7,
    "name": "Trade Settlement",
    "expiry": "2024-07-01",
    "primary_owner": "wilson.ross",
    "primary_owner_email": "wilson.ross@example.com",
    "secondary_owner": "",
    "lob": "Markets",
    "file_link": "/uploads/1718000000000-settlement.docx",
    "original_filename": "Trade Settlement.docx",
    "score": 81,
    "quality_details": {"summary": "legacy"},
    "uploaded_by": "43898931",
    "uploaded_at": "2024-01-05T10:00:00.000Z",
}


def test_record_round_trips_original_shape() -> None:
    record = ProcedureRecord.from_dict(LEGACY_RECORD)
    assert record.artifact_id == "1718000000000-settlement.docx"
    assert record.secondary_owner is None
    assert record.expiry == date(2024, 7, 1)
    assert record.download_name == "Trade Settlement.docx"

    payload = record.to_dict()
    assert payload["primary_owner_email"] == "wilson.ross@example.com"
    assert payload["expiry"] == "2024-07-01"
    assert payload["artifact_id"] == "1718000000000-settlement.docx"


def test_record_rejects_non_integer_id() -> None:
    with pytest.raises(ValueError):
        ProcedureRecord.from_dict({**LEGACY_RECORD, "id": "7"})


def test_numeric_secondary_owner_is_read_as_text() -> None:
    record = ProcedureRecord.from_dict({**LEGACY_RECORD, "secondary_owner": 43898931})
    assert record.secondary_owner == "43898931"
    assert record.to_dict()["secondary_owner"] == "43898931"


@pytest.mark.parametrize("stored, expected", [(60.5, 61), (59.5, 60), (59.4, 59), (72, 72)])
def test_fractional_scores_round_half_up(stored: float, expected: int) -> None:
    assert ProcedureRecord.from_dict({**LEGACY_RECORD, "score": stored}).score == expected


@pytest.mark.parametrize(
    "overrides, status",
    [
        ({"expiry": date(2024, 6, 9)}, ProcedureStatus.EXPIRED),
        ({"expiry": date(2024, 6, 9), "score": None}, ProcedureStatus.EXPIRED),
        ({"score": None}, ProcedureStatus.UNSCORED),
        ({"score": 59}, ProcedureStatus.BELOW_THRESHOLD),
        ({"expiry": date(2024, 7, 10)}, ProcedureStatus.EXPIRING_SOON),
        ({"expiry": date(2024, 6, 10)}, ProcedureStatus.EXPIRING_SOON),
        ({"expiry": date(2024, 7, 11)}, ProcedureStatus.ACTIVE),
        ({"expiry": None}, ProcedureStatus.ACTIVE),
    ],
)
def test_derived_status(overrides: dict, status: ProcedureStatus) -> None:
    assert derive_status(make_record(**overrides), today=TODAY, minimum_score=60) is status


def test_describe_adds_status_fields() -> None:
    payload = describe(make_record(expiry=date(2024, 6, 20)), today=TODAY)
    assert payload["status"] == "EXPIRING_SOON"
    assert payload["daysUntilExpiry"] == 10
    assert payload["isExpiringSoon"] is True
    assert payload["isExpired"] is False
    assert payload["qualityLevel"] == "Medium"


def test_artifact_lookup_is_exact_not_substring() -> None:
    store = InMemoryProcedureStore(
        [
            make_record(id=1, file_link="/uploads/report-final.pdf"),
            make_record(id=2, file_link="/uploads/report.pdf"),
        ]
    )
    assert store.find_by_artifact("report.pdf").id == 2  # type: ignore[union-attr]
    assert store.find_by_artifact("report") is None
    assert store.find_by_artifact("") is None


def test_explicit_artifact_id_wins_over_link() -> None:
    store = InMemoryProcedureStore([make_record(file_link="/uploads/a.pdf", artifact_id="artifact-42")])
    assert store.find_by_artifact("artifact-42") is not None
    assert store.find_by_artifact("a.pdf") is None


def test_duplicate_artifacts_resolve_to_first_record(caplog: pytest.LogCaptureFixture) -> None:
    store = InMemoryProcedureStore(
        [make_record(id=3, file_link="/uploads/shared.pdf"), make_record(id=4, file_link="/uploads/shared.pdf")]
    )
    assert store.find_by_artifact("shared.pdf").id == 3  # type: ignore[union-attr]
    assert "linked to 2 procedures" in caplog.text


def test_json_store_add_and_score(tmp_path: Path) -> None:
    path = tmp_path / "procedures.json"
    path.write_text(json.dumps([LEGACY_RECORD]), encoding="utf-8")
    store = JsonProcedureStore(path)

    added = store.add(make_record(id=0, name="New Procedure"))
    assert added.id == 8

    result = score({"Purpose": True}, CriteriaModel.default())
    updated = store.set_score(7, result)
    assert updated.score == result.score
    assert updated.quality_details["missingElements"][0] == "Table of Contents"

    on_disk = json.loads(path.read_text(encoding="utf-8"))
    assert [item["id"] for item in on_disk] == [7, 8]
    assert on_disk[0]["score"] == result.score
    assert on_disk[0]["primary_owner_email"] == "wilson.ross@example.com"


def test_json_store_missing_file_is_empty(tmp_path: Path) -> None:
    store = JsonProcedureStore(tmp_path / "missing.json")
    assert store.list_all() == []
    assert store.add(make_record(id=0)).id == 1


def test_json_store_unknown_id_raises(tmp_path: Path) -> None:
    store = JsonProcedureStore(tmp_path / "procedures.json")
    with pytest.raises(ProcedureNotFoundError):
        store.set_score(1, score({}, CriteriaModel.default()))


def test_json_store_update_and_delete(tmp_path: Path) -> None:
    path = tmp_path / "procedures.json"
    records = [LEGACY_RECORD, {**LEGACY_RECORD, "id": 8, "name": "FX Confirmations"}]
    path.write_text(json.dumps(records), encoding="utf-8")
    store = JsonProcedureStore(path)

    store.update(ProcedureRecord.from_dict({**LEGACY_RECORD, "lob": "Treasury"}))
    removed = store.delete(8)

    assert removed.name == "FX Confirmations"
    on_disk = json.loads(path.read_text(encoding="utf-8"))
    assert [item["id"] for item in on_disk] == [7]
    assert on_disk[0]["lob"] == "Treasury"
    assert on_disk[0]["primary_owner_email"] == "wilson.ross@example.com"
    with pytest.raises(ProcedureNotFoundError):
        store.delete(8)
    with pytest.raises(ProcedureNotFoundError):
        store.update(make_record(id=42))


@pytest.mark.parametrize("content", ["{broken", json.dumps({"id": 1}), json.dumps([{"id": "x"}])])
def test_json_store_unreadable_raises(tmp_path: Path, content: str) -> None:
    path = tmp_path / "procedures.json"
    path.write_text(content, encoding="utf-8")
    with pytest.raises(StoreUnavailableError):
        JsonProcedureStore(path).find_by_artifact("a.pdf")

"""Record builders shared by the test modules."""

from __future__ import annotations

from datetime import date

from procgov.store.records import ProcedureRecord

TODAY = date(2024, 6, 10)


def make_record(**overrides: object) -> ProcedureRecord:
    fields: dict[str, object] = {
        "id": 1,
        "name": "Payments Reconciliation",
        "primary_owner": "wilson.ross",
        "secondary_owner": None,
        "uploaded_by": "43898931",
        "file_link": "/uploads/1718000000000-payments.pdf",
        "original_filename": "payments-reconciliation.pdf",
        "score": 72,
        "expiry": date(2025, 6, 10),
        "lob": "Payments",
    }
    fields.update(overrides)
    return ProcedureRecord(**fields)  # type: ignore[arg-type]

"""Shared fixtures for the procedure governance test-suite."""

from __future__ import annotations

from pathlib import Path

import pytest

from procgov.core.config import GovernanceSettings
from procgov.governance import ProcedureGovernance
from procgov.ledger.backends import InMemoryAuditBackend
from procgov.ledger.ledger import AuditLedger
from procgov.store.procedures import InMemoryProcedureStore
from tests.factories import TODAY, make_record


@pytest.fixture()
def ledger() -> AuditLedger:
    return AuditLedger(InMemoryAuditBackend())


@pytest.fixture()
def store() -> InMemoryProcedureStore:
    return InMemoryProcedureStore(
        [
            make_record(),
            make_record(
                id=2,
                name="Card Disputes",
                primary_owner="alice",
                secondary_owner="bob",
                uploaded_by="alice",
                file_link="/uploads/1718000000001-disputes.pdf",
                original_filename="card-disputes.pdf",
                score=None,
            ),
        ]
    )


@pytest.fixture()
def governance(store: InMemoryProcedureStore, ledger: AuditLedger) -> ProcedureGovernance:
    return ProcedureGovernance(store=store, ledger=ledger, today=lambda: TODAY)


@pytest.fixture()
def settings(tmp_path: Path) -> GovernanceSettings:
    uploads = tmp_path / "uploads"
    uploads.mkdir()
    data_dir = tmp_path / "data"
    return GovernanceSettings(
        data_dir=data_dir,
        uploads_dir=uploads,
        procedures_path=data_dir / "procedures.json",
        audit_log_path=data_dir / "audit_log.json",
        audit_backend="json",
        database_url=f"sqlite:///{data_dir / 'audit.db'}",
        admins=frozenset({"admin"}),
    )

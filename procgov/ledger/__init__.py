"""Append-only audit ledger and its storage backends."""

from procgov.ledger.backends import (
    InMemoryAuditBackend,
    JsonFileAuditBackend,
    SqlAuditBackend,
    build_backend,
)
from procgov.ledger.entry import AuditAction, AuditEntry
from procgov.ledger.ledger import AuditLedger, AuditPage, LedgerVerification, verify_entries

__all__ = [
    "AuditAction",
    "AuditEntry",
    "AuditLedger",
    "AuditPage",
    "InMemoryAuditBackend",
    "JsonFileAuditBackend",
    "LedgerVerification",
    "SqlAuditBackend",
    "build_backend",
    "verify_entries",
]

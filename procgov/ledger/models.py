"""SQLAlchemy schema for the embedded audit ledger backend.

``seq`` is an autoincrement surrogate that fixes insertion order; ``entry_id``
is the public, time based audit id. Rows are only ever inserted.
"""
from __future__ import annotations

from sqlalchemy import BigInteger, Column, Index, Integer, JSON, String
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class AuditEntryRow(Base):
    __tablename__ = "audit_entries"

    seq = Column(Integer, primary_key=True, autoincrement=True)
    entry_id = Column(BigInteger, nullable=False, unique=True)
    timestamp = Column(String, nullable=False)
    action = Column(String, nullable=False)
    user_id = Column(String, nullable=False, default="")
    details = Column(JSON, nullable=False, default=dict)

    def to_record(self) -> dict:
        return {
            "id": self.entry_id,
            "timestamp": self.timestamp,
            "action": self.action,
            "userId": self.user_id,
            "details": self.details or {},
        }

    def __repr__(self) -> str:  # pragma: no cover - debug helper
        return f"<AuditEntryRow seq={self.seq} id={self.entry_id} action={self.action}>"


Index("idx_audit_action", AuditEntryRow.action)
Index("idx_audit_user", AuditEntryRow.user_id)


__all__ = ["AuditEntryRow", "Base"]

"""Procedure governance core: quality scoring, access policy, and audit ledger."""

from __future__ import annotations

__version__ = "1.0.0"

__all__ = [
    "api",
    "cli",
    "core",
    "governance",
    "ledger",
    "policy",
    "scoring",
    "store",
]

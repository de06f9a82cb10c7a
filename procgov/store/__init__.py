"""Procedure records and the stores that persist them."""

from procgov.store.procedures import InMemoryProcedureStore, JsonProcedureStore, ProcedureStore
from procgov.store.records import ProcedureRecord, ProcedureStatus, derive_status, describe, summarize

__all__ = [
    "InMemoryProcedureStore",
    "JsonProcedureStore",
    "ProcedureRecord",
    "ProcedureStatus",
    "ProcedureStore",
    "derive_status",
    "describe",
    "summarize",
]

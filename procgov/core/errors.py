"""Structured error types for the procedure governance core."""
from __future__ import annotations

from typing import Mapping


class GovernanceError(RuntimeError):
    """Base class for structured governance errors with stable codes."""

    __slots__ = ("code", "message", "details")

    def __init__(self, *, code: str, message: str, details: Mapping[str, object] | None = None) -> None:
        self.code = code
        self.message = message
        self.details = details
        super().__init__(f"[{self.code}] {self.message}")


class ConfigurationError(GovernanceError):
    def __init__(self, message: str, *, details: Mapping[str, object] | None = None):
        super().__init__(code="CONFIG", message=message, details=details)


class ProcedureNotFoundError(GovernanceError):
    def __init__(self, message: str, *, details: Mapping[str, object] | None = None):
        super().__init__(code="NOT_FOUND", message=message, details=details)


class ForbiddenError(GovernanceError):
    def __init__(self, message: str, *, details: Mapping[str, object] | None = None):
        super().__init__(code="FORBIDDEN", message=message, details=details)


class ScoringInputError(GovernanceError):
    def __init__(self, message: str, *, details: Mapping[str, object] | None = None):
        super().__init__(code="SCORING_INPUT_INVALID", message=message, details=details)


class InvalidUpdateError(GovernanceError):
    def __init__(self, message: str, *, details: Mapping[str, object] | None = None):
        super().__init__(code="UPDATE_INVALID", message=message, details=details)


class LedgerWriteFailed(GovernanceError):
    def __init__(
        self,
        message: str,
        *,
        details: Mapping[str, object] | None = None,
        code: str = "LEDGER_WRITE_FAILED",
    ):
        super().__init__(code=code, message=message, details=details)


class LedgerCorruptError(LedgerWriteFailed):
    def __init__(self, message: str, *, details: Mapping[str, object] | None = None):
        super().__init__(message, details=details, code="LEDGER_CORRUPT")


class StoreUnavailableError(GovernanceError):
    def __init__(self, message: str, *, details: Mapping[str, object] | None = None):
        super().__init__(code="STORE_UNAVAILABLE", message=message, details=details)


def classify_failure(error: Exception) -> dict[str, object]:
    if isinstance(error, GovernanceError):
        return {"code": error.code, "message": error.message, "details": dict(error.details or {})}
    return {"code": "GENERIC", "message": str(error), "details": {}}


__all__ = [
    "ConfigurationError",
    "ForbiddenError",
    "GovernanceError",
    "InvalidUpdateError",
    "LedgerCorruptError",
    "LedgerWriteFailed",
    "ProcedureNotFoundError",
    "ScoringInputError",
    "StoreUnavailableError",
    "classify_failure",
]

"""Access policy for per-file procedure retrieval.

The evaluator is framework-agnostic: callers may pass any object exposing
``primary_owner``, ``secondary_owner`` and ``uploaded_by``. A missing record
is passed as ``None``. Evaluation is pure; it performs no lookups and no I/O,
so identical inputs always yield an identical decision.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Protocol

from procgov.core.config import DEFAULT_ADMIN_ROLE
from procgov.core.errors import ConfigurationError


class OwnershipView(Protocol):
    primary_owner: str | None
    secondary_owner: str | None
    uploaded_by: str | None


class AccessReason(str, Enum):
    ADMIN = "ADMIN"
    OWNER_MATCH = "OWNER_MATCH"
    UPLOADER_MATCH = "UPLOADER_MATCH"
    DENIED_NO_MATCH = "DENIED_NO_MATCH"
    DENIED_NOT_FOUND = "DENIED_NOT_FOUND"


@dataclass(slots=True, frozen=True)
class Caller:
    id: str
    role: str = "user"


@dataclass(slots=True, frozen=True)
class AccessDecision:
    allowed: bool
    reason: AccessReason

    @classmethod
    def allow(cls, reason: AccessReason) -> "AccessDecision":
        return cls(allowed=True, reason=reason)

    @classmethod
    def deny(cls, reason: AccessReason) -> "AccessDecision":
        return cls(allowed=False, reason=reason)


@dataclass(slots=True, frozen=True)
class PolicyConfig:
    admin_role: str = DEFAULT_ADMIN_ROLE

    def __post_init__(self) -> None:
        if not self.admin_role:
            raise ConfigurationError("Policy admin_role must be non-empty")


def _matches(identity: str, field: str | None) -> bool:
    return bool(identity) and bool(field) and identity == field


def evaluate(
    caller: Caller,
    procedure: Optional[OwnershipView],
    *,
    admin_role: str = DEFAULT_ADMIN_ROLE,
) -> AccessDecision:
    """Decide whether ``caller`` may retrieve ``procedure``; first rule wins."""

    if procedure is None:
        return AccessDecision.deny(AccessReason.DENIED_NOT_FOUND)
    if caller.role == admin_role:
        return AccessDecision.allow(AccessReason.ADMIN)
    if _matches(caller.id, getattr(procedure, "primary_owner", None)):
        return AccessDecision.allow(AccessReason.OWNER_MATCH)
    if _matches(caller.id, getattr(procedure, "secondary_owner", None)):
        return AccessDecision.allow(AccessReason.OWNER_MATCH)
    if _matches(caller.id, getattr(procedure, "uploaded_by", None)):
        return AccessDecision.allow(AccessReason.UPLOADER_MATCH)
    return AccessDecision.deny(AccessReason.DENIED_NO_MATCH)


class AccessPolicy:
    """Evaluator bound to an explicit, immutable ``PolicyConfig``."""

    __slots__ = ("config",)

    def __init__(self, config: PolicyConfig | None = None) -> None:
        self.config = config or PolicyConfig()

    def evaluate(self, caller: Caller, procedure: Optional[OwnershipView]) -> AccessDecision:
        return evaluate(caller, procedure, admin_role=self.config.admin_role)

    def is_admin(self, caller: Caller) -> bool:
        return caller.role == self.config.admin_role


__all__ = [
    "AccessDecision",
    "AccessPolicy",
    "AccessReason",
    "Caller",
    "OwnershipView",
    "PolicyConfig",
    "evaluate",
]

"""Access policy evaluation for procedure retrieval."""

from procgov.policy.evaluator import (
    AccessDecision,
    AccessPolicy,
    AccessReason,
    Caller,
    PolicyConfig,
    evaluate,
)
from procgov.policy.roles import caller_for, resolve_role

__all__ = [
    "AccessDecision",
    "AccessPolicy",
    "AccessReason",
    "Caller",
    "PolicyConfig",
    "caller_for",
    "evaluate",
    "resolve_role",
]

"""Role resolution for already-identified callers."""
from __future__ import annotations

from typing import Collection

from procgov.core.config import DEFAULT_ADMIN_ROLE
from procgov.policy.evaluator import Caller

USER_ROLE = "user"


def resolve_role(staff_id: str, admins: Collection[str], *, admin_role: str = DEFAULT_ADMIN_ROLE) -> str:
    if staff_id and staff_id in admins:
        return admin_role
    return USER_ROLE


def caller_for(staff_id: str, admins: Collection[str], *, admin_role: str = DEFAULT_ADMIN_ROLE) -> Caller:
    identity = (staff_id or "").strip()
    return Caller(id=identity, role=resolve_role(identity, admins, admin_role=admin_role))


__all__ = ["USER_ROLE", "caller_for", "resolve_role"]

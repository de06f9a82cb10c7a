"""Dashboard counts for the procedures a caller can see."""
from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends

from procgov.api.dependencies import get_caller, get_governance
from procgov.governance import ProcedureGovernance
from procgov.policy.evaluator import Caller

router = APIRouter(prefix="/api/dashboard", tags=["dashboard"])


@router.get("/summary")
def dashboard_summary(
    caller: Caller = Depends(get_caller),
    governance: ProcedureGovernance = Depends(get_governance),
) -> dict[str, Any]:
    return governance.dashboard_summary(caller)


__all__ = ["router"]

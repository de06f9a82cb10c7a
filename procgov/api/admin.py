"""Administrator-only views over the audit ledger and procedure maintenance."""
from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, Depends, Query

from procgov.api.dependencies import ApiError, get_caller, get_governance
from procgov.api.schemas import ProcedureUpdate
from procgov.governance import ProcedureGovernance
from procgov.ledger.ledger import DEFAULT_PAGE_SIZE
from procgov.policy.evaluator import Caller
from procgov.scoring.detector import detect_sections

router = APIRouter(prefix="/api/admin", tags=["admin"])


@router.get("/audit-log")
def audit_log(
    page: int = Query(1),
    limit: int = Query(DEFAULT_PAGE_SIZE),
    action: Optional[str] = Query(None),
    user_id: Optional[str] = Query(None, alias="userId"),
    caller: Caller = Depends(get_caller),
    governance: ProcedureGovernance = Depends(get_governance),
) -> dict[str, Any]:
    return governance.audit_log(caller, action=action, user_id=user_id, page=page, limit=limit).to_dict()


@router.put("/procedures/{procedure_id}")
def update_procedure(
    procedure_id: int,
    payload: ProcedureUpdate,
    caller: Caller = Depends(get_caller),
    governance: ProcedureGovernance = Depends(get_governance),
) -> dict[str, Any]:
    presence = payload.criteria
    if presence is None and payload.text is not None:
        presence = detect_sections(payload.text)
    changes = payload.changes()
    if not changes and presence is None:
        raise ApiError(400, "No changes supplied")
    return governance.update_procedure(procedure_id, changes, caller, criteria_presence=presence).to_dict()


@router.delete("/procedures/{procedure_id}")
def delete_procedure(
    procedure_id: int,
    caller: Caller = Depends(get_caller),
    governance: ProcedureGovernance = Depends(get_governance),
) -> dict[str, Any]:
    removed = governance.delete_procedure(procedure_id, caller)
    return {
        "message": "Procedure deleted successfully",
        "deletedProcedure": {"id": removed.id, "name": removed.name},
    }


__all__ = ["router"]

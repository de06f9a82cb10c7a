"""Procedure listing, scoring and submission endpoints."""
from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from procgov.api.dependencies import ApiError, get_caller, get_governance
from procgov.api.schemas import AnalyzeRequest, ProcedureSubmission, ScoreRequest, ScoreResponse
from procgov.governance import ProcedureGovernance
from procgov.policy.evaluator import AccessReason, Caller
from procgov.scoring.detector import detect_sections
from procgov.store.records import ProcedureRecord

router = APIRouter(prefix="/api/procedures", tags=["procedures"])


def _require_access(governance: ProcedureGovernance, procedure_id: int, caller: Caller) -> None:
    decision, _ = governance.check_access(procedure_id, caller)
    if decision.reason is AccessReason.DENIED_NOT_FOUND:
        raise ApiError(404, "Procedure not found")
    if not decision.allowed:
        raise ApiError(403, "Access denied to this procedure")


@router.get("")
def list_procedures(
    caller: Caller = Depends(get_caller),
    governance: ProcedureGovernance = Depends(get_governance),
) -> list[dict[str, Any]]:
    return governance.accessible_procedures(caller)


@router.post("")
def submit_procedure(
    submission: ProcedureSubmission,
    caller: Caller = Depends(get_caller),
    governance: ProcedureGovernance = Depends(get_governance),
) -> JSONResponse:
    presence = submission.criteria if submission.criteria is not None else detect_sections(submission.text or "")
    draft = ProcedureRecord(
        id=0,
        name=submission.name or "Unnamed Procedure",
        primary_owner=submission.primary_owner or "",
        secondary_owner=submission.secondary_owner or None,
        file_link=submission.file_link,
        original_filename=submission.original_filename,
        expiry=submission.expiry,
        lob=submission.lob or "General",
    )
    outcome = governance.submit_procedure(draft, presence, caller)
    return JSONResponse(status_code=201 if outcome.accepted else 200, content=outcome.to_dict())


@router.post("/{procedure_id}/score", response_model=ScoreResponse)
def score_procedure(
    procedure_id: int,
    payload: ScoreRequest,
    caller: Caller = Depends(get_caller),
    governance: ProcedureGovernance = Depends(get_governance),
) -> ScoreResponse:
    _require_access(governance, procedure_id, caller)
    result = governance.record_score(procedure_id, payload.criteria, actor=caller.id)
    return ScoreResponse.from_result(procedure_id, result)


@router.post("/{procedure_id}/analyze", response_model=ScoreResponse)
def analyze_procedure(
    procedure_id: int,
    payload: AnalyzeRequest,
    caller: Caller = Depends(get_caller),
    governance: ProcedureGovernance = Depends(get_governance),
) -> ScoreResponse:
    _require_access(governance, procedure_id, caller)
    result = governance.analyze_and_score(procedure_id, payload.text, actor=caller.id)
    return ScoreResponse.from_result(procedure_id, result)


__all__ = ["router"]

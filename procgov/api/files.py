"""Governed artifact download endpoint."""
from __future__ import annotations

from pathlib import Path

from fastapi import APIRouter, Depends
from fastapi.responses import FileResponse

from procgov.api.dependencies import ACCESS_DENIED_MESSAGE, ApiError, get_caller, get_governance, get_settings
from procgov.core.config import GovernanceSettings
from procgov.governance import ProcedureGovernance
from procgov.policy.evaluator import AccessReason, Caller

router = APIRouter(prefix="/api", tags=["files"])


def _resolve_upload(uploads_dir: Path, filename: str) -> Path | None:
    if not filename or filename in {".", ".."} or "/" in filename or "\\" in filename or "\x00" in filename:
        return None
    candidate = uploads_dir / filename
    return candidate if candidate.is_file() else None


@router.get("/files/{filename}")
def download_file(
    filename: str,
    caller: Caller = Depends(get_caller),
    settings: GovernanceSettings = Depends(get_settings),
    governance: ProcedureGovernance = Depends(get_governance),
) -> FileResponse:
    path = _resolve_upload(Path(settings.uploads_dir), filename)
    if path is None:
        raise ApiError(404, "File not found")

    outcome = governance.authorize_and_serve(filename, caller)
    if outcome.decision.reason is AccessReason.DENIED_NOT_FOUND:
        raise ApiError(404, "File not associated with any procedure")
    if not outcome.decision.allowed or outcome.procedure is None:
        raise ApiError(403, ACCESS_DENIED_MESSAGE)

    disposition = f'attachment; filename="{outcome.procedure.download_name}"'
    return FileResponse(
        path,
        media_type="application/octet-stream",
        headers={"Content-Disposition": disposition},
    )


__all__ = ["download_file", "router"]

"""Request-scoped dependencies and error mapping for the HTTP adapter."""
from __future__ import annotations

import logging
from typing import Optional

from fastapi import FastAPI, Header, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from procgov.core.config import GovernanceSettings
from procgov.core.errors import (
    ForbiddenError,
    GovernanceError,
    InvalidUpdateError,
    LedgerWriteFailed,
    ProcedureNotFoundError,
    ScoringInputError,
    StoreUnavailableError,
)
from procgov.governance import ProcedureGovernance
from procgov.policy.evaluator import Caller
from procgov.policy.roles import caller_for

logger = logging.getLogger(__name__)

ACCESS_DENIED_MESSAGE = "Access denied to this file"


class ApiError(Exception):
    """Error rendered as ``{"message": ..., "error": ...}`` with ``status_code``."""

    def __init__(self, status_code: int, message: str, error: str | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.message = message
        self.error = error


def error_body(message: str, error: str | None = None) -> dict[str, str]:
    body = {"message": message}
    if error is not None:
        body["error"] = error
    return body


def get_settings(request: Request) -> GovernanceSettings:
    return request.app.state.settings


def get_governance(request: Request) -> ProcedureGovernance:
    return request.app.state.governance


def get_caller(request: Request, x_staff_id: Optional[str] = Header(default=None)) -> Caller:
    """Identity comes from the upstream auth layer; this only resolves the role."""

    if not x_staff_id or not x_staff_id.strip():
        raise ApiError(401, "Caller identity required")
    settings = get_settings(request)
    return caller_for(x_staff_id, settings.admins, admin_role=settings.admin_role)


def _describe_validation(exc: RequestValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(item) for item in error.get("loc", ()) if item != "body")
        parts.append(f"{location}: {error.get('msg', 'invalid')}" if location else str(error.get("msg", "invalid")))
    return "; ".join(parts)


def register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(ApiError)
    async def _api_error(request: Request, exc: ApiError) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content=error_body(exc.message, exc.error))

    @app.exception_handler(RequestValidationError)
    async def _validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse(status_code=400, content=error_body("Invalid request", _describe_validation(exc)))

    @app.exception_handler(GovernanceError)
    async def _governance_error(request: Request, exc: GovernanceError) -> JSONResponse:
        if isinstance(exc, ProcedureNotFoundError):
            return JSONResponse(status_code=404, content=error_body("Procedure not found"))
        if isinstance(exc, ForbiddenError):
            return JSONResponse(status_code=403, content=error_body("Access denied"))
        if isinstance(exc, (ScoringInputError, InvalidUpdateError)):
            return JSONResponse(status_code=400, content=error_body(exc.message))
        if isinstance(exc, (StoreUnavailableError, LedgerWriteFailed)):
            logger.error("Request %s %s failed: %s", request.method, request.url.path, exc)
            return JSONResponse(status_code=500, content=error_body("Error accessing governance store", exc.message))
        logger.error("Unhandled governance error on %s: %s", request.url.path, exc)
        return JSONResponse(status_code=500, content=error_body("Internal error", exc.message))

    @app.exception_handler(Exception)
    async def _unexpected_error(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unexpected error on %s %s", request.method, request.url.path)
        return JSONResponse(status_code=500, content=error_body("Error accessing file", str(exc)))


__all__ = [
    "ACCESS_DENIED_MESSAGE",
    "ApiError",
    "error_body",
    "get_caller",
    "get_governance",
    "get_settings",
    "register_error_handlers",
]

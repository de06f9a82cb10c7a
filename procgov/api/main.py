"""FastAPI entrypoint for the procedure governance service.

Routers and error handlers are registered here; the governance facade is built
once per application from explicit settings and kept on ``app.state``.
"""
from __future__ import annotations

import logging

from fastapi import FastAPI

from procgov import __version__
from procgov.api import admin, dashboard, files, procedures
from procgov.api.dependencies import register_error_handlers
from procgov.core.config import GovernanceSettings
from procgov.core.logging import configure_logging
from procgov.governance import ProcedureGovernance

logger = logging.getLogger(__name__)


def create_app(
    settings: GovernanceSettings | None = None,
    governance: ProcedureGovernance | None = None,
) -> FastAPI:
    settings = settings or GovernanceSettings.from_env()
    configure_logging(settings.log_level)

    app = FastAPI(title="Procedure Governance API", version=__version__, openapi_url="/openapi.json")
    app.state.settings = settings
    app.state.governance = governance or ProcedureGovernance.from_settings(settings)

    register_error_handlers(app)
    app.include_router(files.router)
    app.include_router(procedures.router)
    app.include_router(admin.router)
    app.include_router(dashboard.router)

    logger.info(
        "Governance API ready (audit backend=%s, minimum score=%s)",
        settings.audit_backend,
        settings.minimum_quality_score,
    )
    return app


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("procgov.api.main:create_app", factory=True, host="0.0.0.0", port=8000, reload=False, log_level="info")

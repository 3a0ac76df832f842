"""FastAPI application entry point (admin surface plus the scheduler lifespan)."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from sqlalchemy import text

from clinic_automation.core.config import Settings, settings
from clinic_automation.core.exceptions import register_exception_handlers
from clinic_automation.routers import automation, noshow, scheduler
from clinic_automation.runtime import Runtime, build_runtime

logger = logging.getLogger(__name__)


def create_app(config: Settings = settings, runtime: Runtime | None = None) -> FastAPI:
    """Build the app. A prebuilt runtime (tests) skips wiring from `config`."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app.state.runtime = runtime or build_runtime(config)
        if app.state.runtime.config.SCHEDULER_ENABLED:
            app.state.runtime.scheduler.start()
        try:
            yield
        finally:
            await app.state.runtime.scheduler.shutdown()

    app = FastAPI(
        title="Clinic Automation API",
        description="Automation rules, no-show follow-up and scheduler administration",
        version=config.VERSION,
        docs_url="/docs" if config.ENV == "dev" else None,
        redoc_url="/redoc" if config.ENV == "dev" else None,
        lifespan=lifespan,
    )
    register_exception_handlers(app)

    # ============================================================================
    # Routers
    # ============================================================================

    app.include_router(automation.router)
    app.include_router(noshow.router)
    app.include_router(scheduler.router)

    @app.get("/health")
    def health(request: Request):
        """Liveness plus database connectivity."""
        runtime: Runtime = request.app.state.runtime
        with runtime.session_factory() as db:
            db.execute(text("SELECT 1"))
        return {"status": "ok", "env": runtime.config.ENV, "version": runtime.config.VERSION}

    return app


app = create_app()

"""FastAPI application factory."""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from xlm_settlement.api.accounts import AccountStore
from xlm_settlement.api.routes import accounts_router, health_router
from xlm_settlement.bootstrap import start_runtime
from xlm_settlement.config import Settings, get_settings
from xlm_settlement.engine import XlmSettlementEngine
from xlm_settlement.events import AsyncEventEmitter
from xlm_settlement.metrics import SettlementMetrics

logger = logging.getLogger(__name__)


def create_app(
    settings: Settings | None = None,
    *,
    engine: XlmSettlementEngine | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    With an engine the app only serves it; otherwise the lifespan connects
    one from settings and shuts it down on exit.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        if app.state.engine is not None:
            yield
            return

        emitter = AsyncEventEmitter()
        app.state.metrics.attach(emitter)
        runtime = await start_runtime(settings or get_settings(), emitter)
        app.state.engine = runtime.engine
        try:
            yield
        finally:
            await runtime.shutdown()
            app.state.engine = None

    app = FastAPI(
        title="XLM Settlement Engine",
        description="Settles connector balances on the Stellar ledger",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.state.store = AccountStore()
    app.state.metrics = SettlementMetrics()
    app.state.engine = engine
    if engine is not None:
        app.state.metrics.attach(engine.emitter)

    @app.exception_handler(Exception)
    async def general_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        """Handle unexpected exceptions."""
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "detail": "An unexpected error occurred",
                "code": "INTERNAL_ERROR",
            },
        )

    app.include_router(health_router)
    app.include_router(accounts_router)

    return app

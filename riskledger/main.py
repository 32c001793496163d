"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from riskledger import __version__
from riskledger.api import risk, system, trades
from riskledger.api.deps import status_for
from riskledger.config import Settings, settings as default_settings
from riskledger.errors import AppError
from riskledger.services.risk_service import bootstrap_service
from riskledger.storage.app_storage import AppStorage
from riskledger.storage.factory import create_app_storage
from riskledger.utils.logging import setup_logging

logger = logging.getLogger(__name__)


async def app_error_handler(request: Request, exc: AppError):
    return JSONResponse(status_code=status_for(exc), content=exc.to_dict())


def create_app(storage: AppStorage | None = None, config: Settings | None = None) -> FastAPI:
    """Build the app. ``storage`` overrides the engine picked from settings."""
    config = config or default_settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Startup and shutdown events."""
        setup_logging(config.log_level)
        app_storage = storage or create_app_storage(config)
        await app_storage.initialize()
        try:
            app.state.storage = app_storage
            app.state.service = await bootstrap_service(app_storage, config)
            logger.info(f"Risk policy loaded: {app.state.service.policy}")
            yield
        finally:
            await app_storage.close()

    app = FastAPI(
        title="Risk Ledger",
        description="Trade journal with drawdown-based risk management",
        version=__version__,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(AppError, app_error_handler)

    # Mount routers
    app.include_router(trades.router)
    app.include_router(risk.router)
    app.include_router(system.router)
    return app


app = create_app()

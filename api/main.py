"""Main FastAPI application for the FMCD dashboard."""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from config import DashboardConfig
from dashboard import Dashboard
from api.models import HealthResponse
from api.routes import fmcd, preferences

logger = logging.getLogger(__name__)

VERSION = "1.0.0"


def create_app(
    dashboard: Optional[Dashboard] = None,
    config: Optional[DashboardConfig] = None,
) -> FastAPI:
    """Create the API application.

    Args:
        dashboard: Pre-built dashboard; built from config at startup if omitted
        config: Dashboard configuration (defaults to environment)
    """
    if dashboard is not None:
        config = dashboard.config
    elif config is None:
        config = DashboardConfig.from_env()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Manage application lifecycle."""
        logger.info("Starting FMCD dashboard API...")

        instance = dashboard or Dashboard(config)
        app.state.dashboard = instance
        await instance.start()

        logger.info("FMCD dashboard API started successfully")

        yield

        logger.info("Stopping FMCD dashboard API...")
        await instance.stop()
        app.state.dashboard = None
        logger.info("FMCD dashboard API stopped")

    app = FastAPI(
        title="FMCD Dashboard API",
        description="Team dashboard for Fedimint client daemons",
        version=VERSION,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc"
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(fmcd.router)
    app.include_router(preferences.router)

    @app.get("/", response_model=HealthResponse)
    async def root():
        """API health check."""
        return HealthResponse(
            status="online",
            service="FMCD Dashboard API",
            version=VERSION
        )

    @app.get("/health")
    async def health_check():
        """Simple health check for monitoring."""
        return {"status": "healthy"}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "api.main:app",
        host="0.0.0.0",
        port=8000,
        reload=False,
        log_level="info"
    )

"""
app.py: FastAPI application factory and startup lifecycle.

This is the ASGI application object imported by uvicorn.
It wires the footfall client and report services and registers routers.

Usage (via launcher):
    python main.py

Usage (direct uvicorn):
    uvicorn app:app --reload
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from footfall.controllers.report_controller import router as report_router
from footfall.repository.footfall_client import FootfallClient
from footfall.services.export_service import ReportExportService
from footfall.services.report_service import OccupancyReportService
from footfall.utils.config import Settings, get_settings
from footfall.utils.logger import get_logger


logger = get_logger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    client: Optional[FootfallClient] = None,
) -> FastAPI:
    """
    Build and wire the FastAPI application.

    Services are created here and exposed through app.state for the
    controller dependency providers. Tests pass a fake client in.
    """
    settings = settings or get_settings()

    # --- Upstream access ---
    footfall_client = client or FootfallClient(settings=settings)

    # --- Services ---
    report_service = OccupancyReportService(client=footfall_client, settings=settings)
    export_service = ReportExportService(report_service)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(
            "Startup complete | upstream=%s | display_offset_hours=%d",
            settings.footfall_api_base_url,
            settings.display_offset_hours,
        )
        yield
        logger.info("Shutdown complete")

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        lifespan=lifespan,
    )

    app.include_router(report_router)

    app.state.footfall_client = footfall_client
    app.state.report_service = report_service
    app.state.export_service = export_service

    return app


# Module-level app object for uvicorn
app = create_app()

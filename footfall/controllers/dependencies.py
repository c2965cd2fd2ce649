"""Shared FastAPI dependency providers for controller layer."""

from __future__ import annotations

from fastapi import HTTPException, Request, status

from footfall.services.export_service import ReportExportService
from footfall.services.report_service import OccupancyReportService


def get_report_service(request: Request) -> OccupancyReportService:
    service = getattr(request.app.state, "report_service", None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Report service is not initialized",
        )
    return service


def get_export_service(request: Request) -> ReportExportService:
    service = getattr(request.app.state, "export_service", None)
    if service is None:
        report_service = get_report_service(request)
        service = ReportExportService(report_service)
        request.app.state.export_service = service
    return service

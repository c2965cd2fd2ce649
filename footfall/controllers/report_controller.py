"""Controller layer for occupancy report endpoints.

Handlers are plain functions: the report service blocks on upstream HTTP
calls, so FastAPI runs them in its threadpool.
"""

from __future__ import annotations

from datetime import date
from typing import Any, Callable, Optional, TypeVar

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response, status
from pydantic import BaseModel, Field

from footfall.controllers.dependencies import get_export_service, get_report_service
from footfall.domain.models import Granularity, PeakSummary, ReportScope, ReportWindow, format_hour
from footfall.domain.windows import (
    UnknownGranularityError,
    parse_granularity,
    resolve_window,
    window_label,
)
from footfall.repository.footfall_client import UpstreamPayloadError, UpstreamUnavailableError
from footfall.services.export_service import ReportExportService
from footfall.services.report_service import (
    OccupancyReport,
    OccupancyReportService,
    ReportValidationError,
    ReportViewState,
)
from footfall.utils.logger import get_logger


logger = get_logger(__name__)

router = APIRouter(tags=["occupancy"])

T = TypeVar("T")


class HealthResponse(BaseModel):
    status: str
    version: str


class WindowResponse(BaseModel):
    start_date: date
    end_date: date
    days: int = Field(ge=1)
    granularity: str
    label: str


class HourBucketResponse(BaseModel):
    source_hour: int = Field(ge=0, le=23)
    display_hour: int = Field(ge=0, le=23)
    source_label: str
    display_label: str
    value: float | None = Field(default=None, ge=0.0)


class SummaryResponse(BaseModel):
    scope: str
    zone: str | None = None
    floor: str | None = None
    window: WindowResponse
    average_percentage: float
    remaining_percentage: float = Field(ge=0.0)
    max_capacity: int = Field(ge=0)
    record_count: int = Field(ge=0)


class HourlyResponse(BaseModel):
    scope: str
    zone: str | None = None
    floor: str | None = None
    window: WindowResponse
    value_unit: str
    series: list[HourBucketResponse]
    display_ceiling: int = Field(ge=0)
    max_capacity: int = Field(ge=0)
    display_offset_hours: int


class PeakResponse(BaseModel):
    scope: str
    zone: str | None = None
    floor: str | None = None
    date: date
    peak_occupancy: int
    peak_display_hour: int | None = Field(default=None, ge=0, le=23)
    peak_display_label: str | None = None
    max_capacity: int = Field(gt=0)
    available: int = Field(ge=0)
    is_live_peak: bool


class LiveResponse(BaseModel):
    zone: str
    floor: str | None = None
    total_occupancy: int
    average_percentage: float
    floor_count: int = Field(ge=0)


class FloorLiveResponse(BaseModel):
    floor: str | None = None
    total_occupancy: int
    average_percentage: float
    zone_count: int = Field(ge=0)
    max_capacity: int | None = Field(default=None, ge=0)


class BuildingLiveResponse(BaseModel):
    total_occupancy: int
    average_percentage: float
    zone_count: int = Field(ge=0)
    max_capacity: int = Field(ge=0)
    floors: list[FloorLiveResponse]


def _bad_request(exc: Exception) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail=str(exc),
    )


def _upstream_error(exc: Exception) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_502_BAD_GATEWAY,
        detail=f"Failed to fetch occupancy data: {exc}",
    )


def _run(action: Callable[..., T], failure_detail: str, *args: Any, **kwargs: Any) -> T:
    """Call into the report layer, translating its failures to HTTP errors."""
    try:
        return action(*args, **kwargs)
    except ReportValidationError as exc:
        raise _bad_request(exc) from exc
    except (UpstreamUnavailableError, UpstreamPayloadError) as exc:
        raise _upstream_error(exc) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected report failure | detail=%s", failure_detail)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=failure_detail,
        ) from exc


def _build_view(
    *,
    reference_date: date,
    granularity: str,
    scope: str | ReportScope = ReportScope.ZONE,
    zone: Optional[str] = None,
    floor: Optional[str] = None,
    end_date: Optional[date] = None,
) -> ReportViewState:
    try:
        return ReportViewState.build(
            reference_date=reference_date,
            granularity=granularity,
            zone=zone,
            floor=floor,
            custom_end=end_date,
            scope=scope,
        )
    except ReportValidationError as exc:
        raise _bad_request(exc) from exc


def _window_response(window: ReportWindow, granularity: Granularity) -> WindowResponse:
    return WindowResponse(
        start_date=window.start_date,
        end_date=window.end_date,
        days=window.days,
        granularity=granularity.value,
        label=window_label(window, granularity),
    )


def _summary_response(report: OccupancyReport) -> SummaryResponse:
    view = report.view
    summary = report.summary
    return SummaryResponse(
        scope=view.scope.value,
        zone=view.zone,
        floor=view.floor,
        window=_window_response(report.window, view.granularity),
        average_percentage=summary.average_percentage,
        remaining_percentage=max(0.0, 100.0 - summary.average_percentage),
        max_capacity=summary.max_capacity,
        record_count=summary.record_count,
    )


def _hourly_response(report: OccupancyReport, display_offset_hours: int) -> HourlyResponse:
    view = report.view
    return HourlyResponse(
        scope=view.scope.value,
        zone=view.zone,
        floor=view.floor,
        window=_window_response(report.window, view.granularity),
        value_unit="percent" if view.scope is ReportScope.BUILDING else "people",
        series=[HourBucketResponse(**bucket.to_dict()) for bucket in report.summary.series],
        display_ceiling=report.summary.display_ceiling,
        max_capacity=report.summary.max_capacity,
        display_offset_hours=display_offset_hours,
    )


def _peak_response(view: ReportViewState, peak: PeakSummary) -> PeakResponse:
    return PeakResponse(
        scope=view.scope.value,
        zone=view.zone,
        floor=view.floor,
        date=view.reference_date,
        peak_occupancy=peak.peak_occupancy,
        peak_display_hour=peak.peak_display_hour,
        peak_display_label=(
            format_hour(peak.peak_display_hour) if peak.peak_display_hour is not None else None
        ),
        max_capacity=peak.max_capacity,
        available=max(0, peak.max_capacity - peak.peak_occupancy),
        is_live_peak=peak.is_live_peak,
    )


@router.get("/health", response_model=HealthResponse, status_code=status.HTTP_200_OK)
def health(request: Request) -> HealthResponse:
    return HealthResponse(status="ok", version=request.app.version)


@router.get("/report_window", response_model=WindowResponse, status_code=status.HTTP_200_OK)
def report_window(
    reference_date: date = Query(alias="date"),
    granularity: str = Query(default="day"),
    end_date: Optional[date] = Query(default=None),
) -> WindowResponse:
    try:
        resolved = parse_granularity(granularity)
    except UnknownGranularityError as exc:
        raise _bad_request(exc) from exc
    window = resolve_window(reference_date, resolved, end_date)
    return _window_response(window, resolved)


@router.get("/occupancy/summary", response_model=SummaryResponse, status_code=status.HTTP_200_OK)
def occupancy_summary(
    zone: str,
    reference_date: date = Query(alias="date"),
    granularity: str = Query(default="day"),
    floor: Optional[str] = Query(default=None),
    end_date: Optional[date] = Query(default=None),
    report_service: OccupancyReportService = Depends(get_report_service),
) -> SummaryResponse:
    view = _build_view(
        reference_date=reference_date,
        granularity=granularity,
        zone=zone,
        floor=floor,
        end_date=end_date,
    )
    report = _run(report_service.summary, "Failed to build occupancy summary", view)
    return _summary_response(report)


@router.get("/occupancy/hourly", response_model=HourlyResponse, status_code=status.HTTP_200_OK)
def occupancy_hourly(
    zone: str,
    reference_date: date = Query(alias="date"),
    floor: Optional[str] = Query(default=None),
    report_service: OccupancyReportService = Depends(get_report_service),
) -> HourlyResponse:
    view = _build_view(reference_date=reference_date, granularity="day", zone=zone, floor=floor)
    report = _run(report_service.hourly, "Failed to build hourly occupancy", view)
    return _hourly_response(report, report_service.display_offset_hours)


@router.get("/occupancy/peak", response_model=PeakResponse, status_code=status.HTTP_200_OK)
def occupancy_peak(
    zone: str,
    reference_date: date = Query(alias="date"),
    floor: Optional[str] = Query(default=None),
    include_live: bool = Query(default=True),
    report_service: OccupancyReportService = Depends(get_report_service),
) -> PeakResponse:
    view = _build_view(reference_date=reference_date, granularity="day", zone=zone, floor=floor)
    peak = _run(report_service.peak, "Failed to build peak occupancy", view, include_live)
    return _peak_response(view, peak)


@router.get("/occupancy/live", response_model=LiveResponse, status_code=status.HTTP_200_OK)
def occupancy_live(
    zone: str,
    floor: Optional[str] = Query(default=None),
    report_service: OccupancyReportService = Depends(get_report_service),
) -> LiveResponse:
    totals = _run(report_service.live, "Failed to load live occupancy", zone, floor)
    return LiveResponse(zone=zone.strip(), floor=(floor or "").strip() or None, **totals)


@router.get("/floor/summary", response_model=SummaryResponse, status_code=status.HTTP_200_OK)
def floor_summary(
    floor: str,
    reference_date: date = Query(alias="date"),
    granularity: str = Query(default="day"),
    end_date: Optional[date] = Query(default=None),
    report_service: OccupancyReportService = Depends(get_report_service),
) -> SummaryResponse:
    view = _build_view(
        reference_date=reference_date,
        granularity=granularity,
        scope=ReportScope.FLOOR,
        floor=floor,
        end_date=end_date,
    )
    report = _run(report_service.summary, "Failed to build floor summary", view)
    return _summary_response(report)


@router.get("/floor/hourly", response_model=HourlyResponse, status_code=status.HTTP_200_OK)
def floor_hourly(
    floor: str,
    reference_date: date = Query(alias="date"),
    report_service: OccupancyReportService = Depends(get_report_service),
) -> HourlyResponse:
    view = _build_view(
        reference_date=reference_date,
        granularity="day",
        scope=ReportScope.FLOOR,
        floor=floor,
    )
    report = _run(report_service.hourly, "Failed to build floor hourly occupancy", view)
    return _hourly_response(report, report_service.display_offset_hours)


@router.get("/floor/peak", response_model=PeakResponse, status_code=status.HTTP_200_OK)
def floor_peak(
    floor: str,
    reference_date: date = Query(alias="date"),
    include_live: bool = Query(default=True),
    report_service: OccupancyReportService = Depends(get_report_service),
) -> PeakResponse:
    view = _build_view(
        reference_date=reference_date,
        granularity="day",
        scope=ReportScope.FLOOR,
        floor=floor,
    )
    peak = _run(report_service.peak, "Failed to build floor peak occupancy", view, include_live)
    return _peak_response(view, peak)


@router.get("/floor/live", response_model=FloorLiveResponse, status_code=status.HTTP_200_OK)
def floor_live(
    floor: str,
    report_service: OccupancyReportService = Depends(get_report_service),
) -> FloorLiveResponse:
    totals = _run(report_service.floor_live, "Failed to load live floor occupancy", floor)
    return FloorLiveResponse(floor=floor.strip(), **totals)


@router.get("/building/summary", response_model=SummaryResponse, status_code=status.HTTP_200_OK)
def building_summary(
    reference_date: date = Query(alias="date"),
    granularity: str = Query(default="day"),
    end_date: Optional[date] = Query(default=None),
    report_service: OccupancyReportService = Depends(get_report_service),
) -> SummaryResponse:
    view = _build_view(
        reference_date=reference_date,
        granularity=granularity,
        scope=ReportScope.BUILDING,
        end_date=end_date,
    )
    report = _run(report_service.summary, "Failed to build building summary", view)
    return _summary_response(report)


@router.get("/building/hourly", response_model=HourlyResponse, status_code=status.HTTP_200_OK)
def building_hourly(
    reference_date: date = Query(alias="date"),
    report_service: OccupancyReportService = Depends(get_report_service),
) -> HourlyResponse:
    view = _build_view(reference_date=reference_date, granularity="day", scope=ReportScope.BUILDING)
    report = _run(report_service.hourly, "Failed to build building hourly occupancy", view)
    return _hourly_response(report, report_service.display_offset_hours)


@router.get("/building/peak", response_model=PeakResponse, status_code=status.HTTP_200_OK)
def building_peak(
    reference_date: date = Query(alias="date"),
    include_live: bool = Query(default=True),
    report_service: OccupancyReportService = Depends(get_report_service),
) -> PeakResponse:
    view = _build_view(reference_date=reference_date, granularity="day", scope=ReportScope.BUILDING)
    peak = _run(report_service.peak, "Failed to build building peak occupancy", view, include_live)
    return _peak_response(view, peak)


@router.get("/building/live", response_model=BuildingLiveResponse, status_code=status.HTTP_200_OK)
def building_live(
    report_service: OccupancyReportService = Depends(get_report_service),
) -> BuildingLiveResponse:
    totals = _run(report_service.building_live, "Failed to load live building occupancy")
    return BuildingLiveResponse(
        total_occupancy=totals["total_occupancy"],
        average_percentage=totals["average_percentage"],
        zone_count=totals["zone_count"],
        max_capacity=totals["max_capacity"],
        floors=[FloorLiveResponse(**floor) for floor in totals["floors"]],
    )


@router.get("/occupancy/export", status_code=status.HTTP_200_OK)
def occupancy_export(
    reference_date: date = Query(alias="date"),
    granularity: str = Query(default="day"),
    scope: str = Query(default="zone"),
    zone: Optional[str] = Query(default=None),
    floor: Optional[str] = Query(default=None),
    end_date: Optional[date] = Query(default=None),
    export_service: ReportExportService = Depends(get_export_service),
) -> Response:
    view = _build_view(
        reference_date=reference_date,
        granularity=granularity,
        scope=scope,
        zone=zone,
        floor=floor,
        end_date=end_date,
    )
    export = _run(export_service.export, "Failed to export occupancy report", view)
    return Response(
        content=export.content,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{export.filename}"'},
    )

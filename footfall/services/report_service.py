"""Report orchestration: resolve window -> fetch records -> aggregate."""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date
from threading import RLock
from typing import Optional

from footfall.domain.aggregation import (
    aggregate,
    live_reading_for_zone,
    live_zone_average,
    peak_occupancy,
)
from footfall.domain.building import (
    building_aggregate,
    building_live as building_live_totals,
    building_peak,
    floor_aggregate,
    floor_live as floor_live_totals,
    floor_peak,
)
from footfall.domain.models import (
    AggregateSummary,
    AggregationMode,
    Granularity,
    LiveZoneReading,
    OccupancyRecord,
    PeakSummary,
    ReportScope,
    ReportWindow,
)
from footfall.domain.windows import UnknownGranularityError, parse_granularity, resolve_window
from footfall.repository.footfall_client import FootfallClient, FootfallClientError
from footfall.utils.config import Settings, get_settings
from footfall.utils.logger import get_logger


logger = get_logger(__name__)


class ReportValidationError(Exception):
    """Raised when a report request cannot be satisfied as given."""


def require_name(value: Optional[str], field: str) -> str:
    if value is None or not value.strip():
        raise ReportValidationError(f"{field} must be a non-empty string")
    return value.strip()


def optional_name(value: Optional[str]) -> str | None:
    if value is None or not value.strip():
        return None
    return value.strip()


@dataclass(frozen=True)
class ReportViewState:
    """Everything the dashboard has selected for one report panel."""

    reference_date: date
    granularity: Granularity
    zone: str | None = None
    floor: str | None = None
    custom_end: date | None = None
    scope: ReportScope = ReportScope.ZONE

    @classmethod
    def build(
        cls,
        *,
        reference_date: date,
        granularity: str | Granularity,
        zone: str | None = None,
        floor: str | None = None,
        custom_end: date | None = None,
        scope: str | ReportScope = ReportScope.ZONE,
    ) -> "ReportViewState":
        try:
            resolved_scope = ReportScope(scope)
        except ValueError as exc:
            raise ReportValidationError(f"Unknown report scope: {scope!r}") from exc
        try:
            resolved = parse_granularity(granularity)
        except UnknownGranularityError as exc:
            raise ReportValidationError(str(exc)) from exc
        if custom_end is not None and resolved is not Granularity.CUSTOM:
            raise ReportValidationError("end_date is only accepted for custom reports")

        if resolved_scope is ReportScope.ZONE:
            zone, floor = require_name(zone, "zone"), optional_name(floor)
        elif resolved_scope is ReportScope.FLOOR:
            zone, floor = None, require_name(floor, "floor")
        else:
            zone, floor = None, None

        return cls(
            reference_date=reference_date,
            granularity=resolved,
            zone=zone,
            floor=floor,
            custom_end=custom_end,
            scope=resolved_scope,
        )


@dataclass(frozen=True)
class OccupancyReport:
    view: ReportViewState
    window: ReportWindow
    mode: AggregationMode
    summary: AggregateSummary
    ticket: int


class OccupancyReportService:
    """Builds occupancy reports for a view, publishing only the newest result.

    Each refresh takes a ticket keyed by the complete view (scope, date,
    granularity, zone, floor, custom end) and the aggregation mode. A response
    that arrives after a newer refresh of the same view has been published is
    not stored, and the caller gets that newer report, which answers the
    identical request.
    """

    def __init__(
        self,
        client: Optional[FootfallClient] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._client = client or FootfallClient(settings=self._settings)
        self._lock = RLock()
        self._tickets: dict[tuple, int] = {}
        self._published: dict[tuple, OccupancyReport] = {}

    @property
    def display_offset_hours(self) -> int:
        return self._settings.display_offset_hours

    @staticmethod
    def _view_key(view: ReportViewState, mode: AggregationMode) -> tuple:
        return (view, mode.value)

    def resolve(self, view: ReportViewState) -> ReportWindow:
        return resolve_window(view.reference_date, view.granularity, view.custom_end)

    def _issue_ticket(self, key: tuple) -> int:
        with self._lock:
            ticket = self._tickets.get(key, 0) + 1
            self._tickets[key] = ticket
            return ticket

    def _summarize(
        self,
        view: ReportViewState,
        mode: AggregationMode,
        records: list[OccupancyRecord],
    ) -> AggregateSummary:
        settings = self._settings
        if view.scope is ReportScope.FLOOR:
            return floor_aggregate(
                records,
                view.floor,
                mode,
                display_offset_hours=settings.display_offset_hours,
                default_ceiling=settings.default_display_ceiling,
                ceiling_headroom=settings.display_ceiling_headroom,
                default_capacity=settings.default_max_capacity,
            )
        if view.scope is ReportScope.BUILDING:
            return building_aggregate(
                records,
                mode,
                display_offset_hours=settings.display_offset_hours,
                default_ceiling=settings.default_display_ceiling,
                ceiling_headroom=settings.display_ceiling_headroom,
            )
        return aggregate(
            records,
            view.zone,
            mode,
            floor_filter=view.floor,
            display_offset_hours=settings.display_offset_hours,
            default_ceiling=settings.default_display_ceiling,
            ceiling_headroom=settings.display_ceiling_headroom,
        )

    def refresh(self, view: ReportViewState, mode: AggregationMode) -> OccupancyReport:
        key = self._view_key(view, mode)
        ticket = self._issue_ticket(key)
        window = self.resolve(view)

        records = self._client.fetch_records(window, view.granularity)
        report = OccupancyReport(
            view=view,
            window=window,
            mode=mode,
            summary=self._summarize(view, mode, records),
            ticket=ticket,
        )

        with self._lock:
            if self._tickets.get(key) != ticket:
                latest = self._published.get(key)
                logger.info(
                    "Discarding stale report | scope=%s | zone=%s | floor=%s | ticket=%d | latest=%d",
                    view.scope.value,
                    view.zone,
                    view.floor,
                    ticket,
                    self._tickets.get(key, 0),
                )
                if latest is not None and latest.ticket > ticket:
                    return latest
                return report
            self._published[key] = report
        return report

    def summary(self, view: ReportViewState) -> OccupancyReport:
        return self.refresh(view, AggregationMode.SUMMARY)

    def hourly(self, view: ReportViewState) -> OccupancyReport:
        day_view = replace(view, granularity=Granularity.DAY, custom_end=None)
        return self.refresh(day_view, AggregationMode.HOURLY)

    def latest(self, view: ReportViewState, mode: AggregationMode) -> OccupancyReport | None:
        with self._lock:
            return self._published.get(self._view_key(view, mode))

    def live(self, zone: str, floor: str | None = None) -> dict[str, float | int]:
        zone = require_name(zone, "zone")
        return live_zone_average(self._client.fetch_live(), zone, optional_name(floor))

    def floor_live(self, floor: str) -> dict[str, float | int]:
        return floor_live_totals(self._client.fetch_live(), require_name(floor, "floor"))

    def building_live(self) -> dict:
        return building_live_totals(self._client.fetch_live())

    def _live_or_none(self) -> list[LiveZoneReading] | None:
        try:
            return self._client.fetch_live()
        except FootfallClientError:
            logger.warning("Live occupancy unavailable; using hourly peak only", exc_info=True)
            return None

    def peak(self, view: ReportViewState, include_live: bool = True) -> PeakSummary:
        window = resolve_window(view.reference_date, Granularity.DAY)
        records = self._client.fetch_hourly(window)
        readings = self._live_or_none() if include_live else None
        settings = self._settings

        if view.scope is ReportScope.FLOOR:
            return floor_peak(
                records,
                view.floor,
                live_readings=readings,
                display_offset_hours=settings.display_offset_hours,
                default_capacity=settings.default_max_capacity,
            )
        if view.scope is ReportScope.BUILDING:
            return building_peak(
                records,
                live_readings=readings,
                display_offset_hours=settings.display_offset_hours,
                default_capacity=settings.default_max_capacity,
            )

        live = None
        if readings is not None:
            live = live_reading_for_zone(readings, view.zone, view.floor)
        return peak_occupancy(
            records,
            view.zone,
            floor_filter=view.floor,
            live=live,
            display_offset_hours=settings.display_offset_hours,
            default_capacity=settings.default_max_capacity,
        )

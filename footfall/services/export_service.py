"""CSV export of occupancy reports."""

from __future__ import annotations

import re
from dataclasses import dataclass

import pandas as pd

from footfall.domain.models import AggregationMode, Granularity, ReportScope
from footfall.domain.windows import window_label
from footfall.services.report_service import (
    OccupancyReport,
    OccupancyReportService,
    ReportViewState,
)


SUMMARY_COLUMNS = [
    "Zone",
    "Floor",
    "Period",
    "Average Occupancy (%)",
    "Max Capacity",
    "Readings",
]
HOURLY_COLUMNS = ["Hour (UTC)", "Hour (Local)", "Occupancy (People)"]


@dataclass(frozen=True)
class CsvExport:
    filename: str
    content: str


def export_filename(label: str) -> str:
    cleaned = re.sub(r"[/()]", "", label.replace(" ", "_"))
    return f"Occupancy_Report_{cleaned}.csv"


def _zone_label(view: ReportViewState) -> str:
    if view.zone:
        return view.zone
    if view.scope is ReportScope.BUILDING:
        return "Building"
    return "All Zones"


def render_report_csv(report: OccupancyReport) -> str:
    label = window_label(report.window, report.view.granularity)
    summary_frame = pd.DataFrame(
        [
            [
                _zone_label(report.view),
                report.view.floor or "All Floors",
                label,
                round(report.summary.average_percentage, 2),
                report.summary.max_capacity,
                report.summary.record_count,
            ]
        ],
        columns=SUMMARY_COLUMNS,
    )
    content = summary_frame.to_csv(index=False, lineterminator="\n")

    if report.summary.series:
        hourly_frame = pd.DataFrame(
            [
                [bucket.source_label, bucket.display_label, bucket.value]
                for bucket in report.summary.series
            ],
            columns=HOURLY_COLUMNS,
        )
        content += "\nHourly Data\n"
        content += hourly_frame.to_csv(index=False, lineterminator="\n")
    return content


class ReportExportService:
    def __init__(self, report_service: OccupancyReportService) -> None:
        self._report_service = report_service

    def export(self, view: ReportViewState) -> CsvExport:
        if view.granularity is Granularity.DAY:
            report = self._report_service.refresh(view, AggregationMode.HOURLY)
        else:
            report = self._report_service.refresh(view, AggregationMode.SUMMARY)
        label = window_label(report.window, report.view.granularity)
        return CsvExport(filename=export_filename(label), content=render_report_csv(report))

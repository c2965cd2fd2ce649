"""Domain models for occupancy reporting."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum


class Granularity(str, Enum):
    DAY = "day"
    WEEK = "week"
    MONTH = "month"
    CUSTOM = "custom"


class AggregationMode(str, Enum):
    HOURLY = "hourly"
    SUMMARY = "summary"


class ReportScope(str, Enum):
    """Level a report is computed at: one zone, one floor or the building."""

    ZONE = "zone"
    FLOOR = "floor"
    BUILDING = "building"


@dataclass(frozen=True)
class OccupancyRecord:
    """One timestamped reading for a zone, as delivered by the footfall API."""

    zone_name: str
    timestamp_utc: datetime | None
    occupancy_count: int
    occupancy_percentage: float
    max_capacity: int
    floor_id: str | None = None


@dataclass(frozen=True)
class LiveZoneReading:
    zone_name: str
    floor_id: str | None
    occupancy_count: int
    occupancy_percentage: float
    max_capacity: int


@dataclass(frozen=True)
class ReportWindow:
    start_date: date
    end_date: date

    def __post_init__(self) -> None:
        if self.start_date > self.end_date:
            raise ValueError("start_date must not be after end_date")

    @property
    def days(self) -> int:
        return (self.end_date - self.start_date).days + 1

    def as_query_params(self) -> dict[str, str]:
        return {
            "start_date": self.start_date.isoformat(),
            "end_date": self.end_date.isoformat(),
        }


def format_hour(hour: int) -> str:
    return f"{hour:02d}:00"


@dataclass(frozen=True)
class HourBucket:
    source_hour: int
    display_hour: int
    value: float | None

    @property
    def source_label(self) -> str:
        return format_hour(self.source_hour)

    @property
    def display_label(self) -> str:
        return format_hour(self.display_hour)

    def to_dict(self) -> dict[str, int | float | str | None]:
        return {
            "source_hour": self.source_hour,
            "display_hour": self.display_hour,
            "source_label": self.source_label,
            "display_label": self.display_label,
            "value": self.value,
        }


@dataclass(frozen=True)
class AggregateSummary:
    average_percentage: float
    max_capacity: int
    series: tuple[HourBucket, ...]
    display_ceiling: int
    record_count: int = 0

    @property
    def is_empty(self) -> bool:
        return self.record_count == 0


@dataclass(frozen=True)
class PeakSummary:
    peak_occupancy: int
    peak_display_hour: int | None
    max_capacity: int
    is_live_peak: bool

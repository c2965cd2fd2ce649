"""Occupancy aggregation: zone filtering, hourly bucketing, averages and peaks.

Every function here is a pure transformation of its inputs. Records are
consumed in the order given; that order matters for the last-write-wins
rules on ``max_capacity`` and on records sharing a source hour.
"""

from __future__ import annotations

import math
from datetime import datetime, timezone
from typing import Iterable, Optional, Sequence

import numpy as np

from footfall.domain.models import (
    AggregateSummary,
    AggregationMode,
    HourBucket,
    LiveZoneReading,
    OccupancyRecord,
    PeakSummary,
)


DEFAULT_DISPLAY_OFFSET_HOURS = 8
DEFAULT_DISPLAY_CEILING = 50
DEFAULT_CEILING_HEADROOM = 1.2
DEFAULT_MAX_CAPACITY = 50


def to_display_hour(source_hour: int, offset_hours: int = DEFAULT_DISPLAY_OFFSET_HOURS) -> int:
    return (source_hour + offset_hours) % 24


def source_hour(timestamp: datetime) -> int:
    """UTC hour of ``timestamp``; naive values are taken as UTC already."""
    if timestamp.tzinfo is None:
        return timestamp.hour
    return timestamp.astimezone(timezone.utc).hour


def display_ceiling(
    values: Iterable[float],
    *,
    default_ceiling: int = DEFAULT_DISPLAY_CEILING,
    headroom: float = DEFAULT_CEILING_HEADROOM,
) -> int:
    """Suggested y-axis bound: observed maximum plus headroom, rounded up."""
    observed = [value for value in values if value is not None]
    if not observed:
        return default_ceiling
    return int(math.ceil(max(observed) * headroom))


def filter_zone(
    records: Iterable[OccupancyRecord],
    zone_filter: str,
    floor_filter: Optional[str] = None,
) -> list[OccupancyRecord]:
    return [
        record
        for record in records
        if record.zone_name == zone_filter
        and (floor_filter is None or record.floor_id == floor_filter)
    ]


def last_reported_capacity(records: Iterable[OccupancyRecord]) -> int:
    capacity = 0
    for record in records:
        if record.max_capacity:
            capacity = record.max_capacity
    return capacity


def average_percentage(records: Sequence[OccupancyRecord]) -> float:
    if not records:
        return 0.0
    return float(np.mean([record.occupancy_percentage for record in records]))


def hourly_buckets(
    records: Iterable[OccupancyRecord],
    offset_hours: int = DEFAULT_DISPLAY_OFFSET_HOURS,
) -> tuple[HourBucket, ...]:
    values_by_hour: dict[int, float] = {}
    for record in records:
        if record.timestamp_utc is None:
            continue
        hour = source_hour(record.timestamp_utc)
        values_by_hour[hour] = max(0, record.occupancy_count)

    return tuple(
        HourBucket(
            source_hour=hour,
            display_hour=to_display_hour(hour, offset_hours),
            value=values_by_hour[hour],
        )
        for hour in sorted(values_by_hour)
    )


def aggregate(
    records: Iterable[OccupancyRecord],
    zone_filter: str,
    mode: AggregationMode | str,
    *,
    floor_filter: Optional[str] = None,
    display_offset_hours: int = DEFAULT_DISPLAY_OFFSET_HOURS,
    default_ceiling: int = DEFAULT_DISPLAY_CEILING,
    ceiling_headroom: float = DEFAULT_CEILING_HEADROOM,
) -> AggregateSummary:
    """Reduce raw readings for one zone into a chart-ready summary.

    ``summary`` mode yields only the mean percentage and capacity. ``hourly``
    mode additionally builds one bucket per UTC hour holding the last clamped
    count seen for that hour. Hours without data are left out of the series.
    """
    resolved_mode = AggregationMode(mode)
    matched = filter_zone(records, zone_filter, floor_filter)
    if not matched:
        return AggregateSummary(
            average_percentage=0.0,
            max_capacity=0,
            series=(),
            display_ceiling=default_ceiling,
            record_count=0,
        )

    series: tuple[HourBucket, ...] = ()
    if resolved_mode is AggregationMode.HOURLY:
        series = hourly_buckets(matched, display_offset_hours)

    return AggregateSummary(
        average_percentage=average_percentage(matched),
        max_capacity=last_reported_capacity(matched),
        series=series,
        display_ceiling=display_ceiling(
            (bucket.value for bucket in series),
            default_ceiling=default_ceiling,
            headroom=ceiling_headroom,
        ),
        record_count=len(matched),
    )


def live_reading_for_zone(
    readings: Iterable[LiveZoneReading],
    zone_filter: str,
    floor_filter: Optional[str] = None,
) -> LiveZoneReading | None:
    """First live reading for the zone/floor; later duplicates are ignored."""
    for reading in readings:
        if reading.zone_name != zone_filter:
            continue
        if floor_filter is not None and reading.floor_id != floor_filter:
            continue
        return reading
    return None


def live_zone_average(
    readings: Iterable[LiveZoneReading],
    zone_filter: str,
    floor_filter: Optional[str] = None,
) -> dict[str, float | int]:
    """Totals across floors for one zone, using raw (unclamped) live values."""
    matched = [
        reading
        for reading in readings
        if reading.zone_name == zone_filter
        and (floor_filter is None or reading.floor_id == floor_filter)
    ]
    if not matched:
        return {"total_occupancy": 0, "average_percentage": 0.0, "floor_count": 0}
    return {
        "total_occupancy": sum(reading.occupancy_count for reading in matched),
        "average_percentage": float(np.mean([r.occupancy_percentage for r in matched])),
        "floor_count": len({reading.floor_id for reading in matched}),
    }


def peak_occupancy(
    records: Iterable[OccupancyRecord],
    zone_filter: str,
    *,
    floor_filter: Optional[str] = None,
    live: Optional[LiveZoneReading] = None,
    display_offset_hours: int = DEFAULT_DISPLAY_OFFSET_HOURS,
    default_capacity: int = DEFAULT_MAX_CAPACITY,
) -> PeakSummary:
    matched = filter_zone(records, zone_filter, floor_filter)

    capacity = 0
    for record in matched:
        if not capacity and record.max_capacity:
            capacity = record.max_capacity

    peak = 0
    peak_hour: int | None = None
    seen_timestamps: set[datetime] = set()
    for record in matched:
        if record.timestamp_utc is None or record.timestamp_utc in seen_timestamps:
            continue
        seen_timestamps.add(record.timestamp_utc)
        if record.occupancy_count > peak:
            peak = record.occupancy_count
            peak_hour = to_display_hour(source_hour(record.timestamp_utc), display_offset_hours)

    live_count = live.occupancy_count if live is not None else 0
    if not capacity and live is not None and live.max_capacity:
        capacity = live.max_capacity

    return PeakSummary(
        peak_occupancy=max(peak, live_count),
        peak_display_hour=peak_hour,
        max_capacity=capacity or default_capacity,
        is_live_peak=live_count > peak,
    )

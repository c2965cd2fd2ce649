"""Floor- and building-level occupancy rules.

Floor figures leave out the Main Entrance counter, which measures people
entering the whole building rather than any one floor. The ground floor (1F)
has no zone sensors of its own, so its average is derived: the entrance
average minus the averages of the upper floors, floored at zero.
"""

from __future__ import annotations

from datetime import datetime
from typing import Iterable, Optional, Sequence

import numpy as np

from footfall.domain.aggregation import (
    DEFAULT_CEILING_HEADROOM,
    DEFAULT_DISPLAY_CEILING,
    DEFAULT_DISPLAY_OFFSET_HOURS,
    DEFAULT_MAX_CAPACITY,
    average_percentage,
    display_ceiling,
    source_hour,
    to_display_hour,
)
from footfall.domain.models import (
    AggregateSummary,
    AggregationMode,
    HourBucket,
    LiveZoneReading,
    OccupancyRecord,
    PeakSummary,
)


BUILDING_ZONE = "Main Entrance"
GROUND_FLOOR = "1F"
UPPER_FLOORS = ("MF", "2F", "3F")


def floor_records(records: Iterable[OccupancyRecord], floor_id: str) -> list[OccupancyRecord]:
    return [
        record
        for record in records
        if record.floor_id == floor_id and record.zone_name != BUILDING_ZONE
    ]


def building_records(records: Iterable[OccupancyRecord]) -> list[OccupancyRecord]:
    return [record for record in records if record.zone_name == BUILDING_ZONE]


def series_capacities(records: Iterable[OccupancyRecord]) -> list[int]:
    """Capacity of the first reading of each (zone, floor) series, in order."""
    first_seen: dict[tuple[str, str | None], int] = {}
    for record in records:
        first_seen.setdefault((record.zone_name, record.floor_id), record.max_capacity)
    return list(first_seen.values())


def summed_hourly_buckets(
    records: Iterable[OccupancyRecord],
    offset_hours: int = DEFAULT_DISPLAY_OFFSET_HOURS,
) -> tuple[HourBucket, ...]:
    """People per hour across every zone given; the hourly total is clamped at zero."""
    totals: dict[int, int] = {}
    for record in records:
        if record.timestamp_utc is None:
            continue
        hour = source_hour(record.timestamp_utc)
        totals[hour] = totals.get(hour, 0) + record.occupancy_count
    return tuple(
        HourBucket(
            source_hour=hour,
            display_hour=to_display_hour(hour, offset_hours),
            value=max(0, totals[hour]),
        )
        for hour in sorted(totals)
    )


def mean_percentage_buckets(
    records: Iterable[OccupancyRecord],
    offset_hours: int = DEFAULT_DISPLAY_OFFSET_HOURS,
) -> tuple[HourBucket, ...]:
    percentages: dict[int, list[float]] = {}
    for record in records:
        if record.timestamp_utc is None:
            continue
        percentages.setdefault(source_hour(record.timestamp_utc), []).append(
            record.occupancy_percentage
        )
    return tuple(
        HourBucket(
            source_hour=hour,
            display_hour=to_display_hour(hour, offset_hours),
            value=max(0.0, float(np.mean(percentages[hour]))),
        )
        for hour in sorted(percentages)
    )


def _empty_summary(default_ceiling: int) -> AggregateSummary:
    return AggregateSummary(
        average_percentage=0.0,
        max_capacity=0,
        series=(),
        display_ceiling=default_ceiling,
        record_count=0,
    )


def ground_floor_average(records: Sequence[OccupancyRecord]) -> tuple[float, list[OccupancyRecord]]:
    """Derived 1F average plus the entrance and upper-floor readings it used."""
    groups: dict[str, list[OccupancyRecord]] = {
        key: [] for key in (BUILDING_ZONE, *UPPER_FLOORS)
    }
    for record in records:
        if record.zone_name == BUILDING_ZONE:
            groups[BUILDING_ZONE].append(record)
        elif record.floor_id in UPPER_FLOORS:
            groups[record.floor_id].append(record)

    averages = {key: average_percentage(members) for key, members in groups.items()}
    derived = averages[BUILDING_ZONE] - sum(averages[floor] for floor in UPPER_FLOORS)
    used = [record for members in groups.values() for record in members]
    return max(0.0, derived), used


def floor_aggregate(
    records: Iterable[OccupancyRecord],
    floor_id: str,
    mode: AggregationMode | str,
    *,
    display_offset_hours: int = DEFAULT_DISPLAY_OFFSET_HOURS,
    default_ceiling: int = DEFAULT_DISPLAY_CEILING,
    ceiling_headroom: float = DEFAULT_CEILING_HEADROOM,
    default_capacity: int = DEFAULT_MAX_CAPACITY,
) -> AggregateSummary:
    """Average occupancy of one floor, optionally with people per hour.

    The capacity is the sum of each contributing zone's first reported
    capacity, falling back to ``default_capacity`` when none is reported.
    """
    resolved_mode = AggregationMode(mode)
    records = list(records)

    if floor_id == GROUND_FLOOR:
        if not records:
            return _empty_summary(default_ceiling)
        average, contributing = ground_floor_average(records)
    else:
        contributing = floor_records(records, floor_id)
        if not contributing:
            return _empty_summary(default_ceiling)
        average = average_percentage(contributing)

    series: tuple[HourBucket, ...] = ()
    if resolved_mode is AggregationMode.HOURLY:
        series = summed_hourly_buckets(floor_records(records, floor_id), display_offset_hours)

    return AggregateSummary(
        average_percentage=average,
        max_capacity=sum(series_capacities(contributing)) or default_capacity,
        series=series,
        display_ceiling=display_ceiling(
            (bucket.value for bucket in series),
            default_ceiling=default_ceiling,
            headroom=ceiling_headroom,
        ),
        record_count=len(contributing),
    )


def building_aggregate(
    records: Iterable[OccupancyRecord],
    mode: AggregationMode | str,
    *,
    display_offset_hours: int = DEFAULT_DISPLAY_OFFSET_HOURS,
    default_ceiling: int = DEFAULT_DISPLAY_CEILING,
    ceiling_headroom: float = DEFAULT_CEILING_HEADROOM,
) -> AggregateSummary:
    """Building occupancy from the entrance counter.

    In hourly mode the series holds the mean zone percentage per hour across
    all floors, since the entrance counter has no per-floor breakdown.
    """
    resolved_mode = AggregationMode(mode)
    records = list(records)
    entrance = building_records(records)

    series: tuple[HourBucket, ...] = ()
    if resolved_mode is AggregationMode.HOURLY:
        series = mean_percentage_buckets(
            (record for record in records if record.zone_name != BUILDING_ZONE),
            display_offset_hours,
        )

    capacity = 0
    for value in series_capacities(entrance):
        if value:
            capacity = value

    return AggregateSummary(
        average_percentage=average_percentage(entrance),
        max_capacity=capacity,
        series=series,
        display_ceiling=display_ceiling(
            (bucket.value for bucket in series),
            default_ceiling=default_ceiling,
            headroom=ceiling_headroom,
        ),
        record_count=len(entrance),
    )


def _peak_of_totals(
    totals: dict[datetime, int],
    offset_hours: int,
) -> tuple[int, int | None]:
    peak = 0
    peak_hour: int | None = None
    for timestamp, total in totals.items():
        if total > peak:
            peak = total
            peak_hour = to_display_hour(source_hour(timestamp), offset_hours)
    return peak, peak_hour


def floor_peak(
    records: Iterable[OccupancyRecord],
    floor_id: str,
    *,
    live_readings: Optional[Iterable[LiveZoneReading]] = None,
    display_offset_hours: int = DEFAULT_DISPLAY_OFFSET_HOURS,
    default_capacity: int = DEFAULT_MAX_CAPACITY,
) -> PeakSummary:
    """Busiest reading time on a floor, summing each zone once per timestamp."""
    matched = floor_records(records, floor_id)

    capacity = 0
    totals: dict[datetime, int] = {}
    counted: set[tuple[datetime, str]] = set()
    for record in matched:
        if not capacity and record.max_capacity:
            capacity = record.max_capacity
        if record.timestamp_utc is None:
            continue
        key = (record.timestamp_utc, record.zone_name)
        if key in counted:
            continue
        counted.add(key)
        totals[record.timestamp_utc] = totals.get(record.timestamp_utc, 0) + record.occupancy_count

    peak, peak_hour = _peak_of_totals(totals, display_offset_hours)

    live_count = 0
    live_capacity = 0
    if live_readings is not None:
        seen_zones: set[str] = set()
        for reading in live_readings:
            if reading.floor_id != floor_id or reading.zone_name == BUILDING_ZONE:
                continue
            if reading.zone_name in seen_zones:
                continue
            seen_zones.add(reading.zone_name)
            live_count += reading.occupancy_count
            if not live_capacity and reading.max_capacity:
                live_capacity = reading.max_capacity

    return PeakSummary(
        peak_occupancy=max(peak, live_count),
        peak_display_hour=peak_hour,
        max_capacity=capacity or live_capacity or default_capacity,
        is_live_peak=live_count > peak,
    )


def building_peak(
    records: Iterable[OccupancyRecord],
    *,
    live_readings: Optional[Iterable[LiveZoneReading]] = None,
    display_offset_hours: int = DEFAULT_DISPLAY_OFFSET_HOURS,
    default_capacity: int = DEFAULT_MAX_CAPACITY,
) -> PeakSummary:
    entrance = building_records(records)

    capacity = 0
    for value in series_capacities(entrance):
        if value:
            capacity = value

    peak = 0
    peak_hour: int | None = None
    for record in entrance:
        if record.timestamp_utc is None:
            continue
        if record.occupancy_count > peak:
            peak = record.occupancy_count
            peak_hour = to_display_hour(source_hour(record.timestamp_utc), display_offset_hours)

    live_count = 0
    live_capacity = 0
    for reading in live_readings or ():
        if reading.zone_name != BUILDING_ZONE:
            continue
        live_count += reading.occupancy_count
        if reading.max_capacity:
            live_capacity = reading.max_capacity

    return PeakSummary(
        peak_occupancy=max(peak, live_count),
        peak_display_hour=peak_hour,
        max_capacity=capacity or live_capacity or default_capacity,
        is_live_peak=live_count > peak,
    )


def _live_totals(readings: Sequence[LiveZoneReading]) -> dict[str, float | int]:
    if not readings:
        return {"total_occupancy": 0, "average_percentage": 0.0, "zone_count": 0}
    return {
        "total_occupancy": sum(reading.occupancy_count for reading in readings),
        "average_percentage": float(np.mean([r.occupancy_percentage for r in readings])),
        "zone_count": len(readings),
    }


def floor_live(readings: Iterable[LiveZoneReading], floor_id: str) -> dict[str, float | int]:
    """Live totals for one floor, raw values included even when negative."""
    return _live_totals(
        [
            reading
            for reading in readings
            if reading.floor_id == floor_id and reading.zone_name != BUILDING_ZONE
        ]
    )


def building_live(readings: Iterable[LiveZoneReading]) -> dict:
    """Live totals across all floors plus a per-floor breakdown.

    Building capacity is the sum of each floor's first reported capacity.
    """
    by_floor: dict[str | None, list[LiveZoneReading]] = {}
    for reading in readings:
        if reading.zone_name == BUILDING_ZONE:
            continue
        by_floor.setdefault(reading.floor_id, []).append(reading)

    floors = []
    for floor_id, members in by_floor.items():
        floors.append(
            {
                "floor": floor_id,
                "max_capacity": members[0].max_capacity,
                **_live_totals(members),
            }
        )

    every_reading = [reading for members in by_floor.values() for reading in members]
    return {
        **_live_totals(every_reading),
        "max_capacity": sum(floor["max_capacity"] for floor in floors),
        "floors": floors,
    }

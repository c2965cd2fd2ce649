from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from footfall.domain.aggregation import (
    aggregate,
    display_ceiling,
    live_reading_for_zone,
    live_zone_average,
    peak_occupancy,
    to_display_hour,
)
from footfall.domain.models import AggregationMode, LiveZoneReading, OccupancyRecord


def _record(
    hour: int | None,
    count: int = 0,
    percentage: float = 0.0,
    capacity: int = 0,
    zone: str = "Zone A",
    floor: str | None = "1F",
) -> OccupancyRecord:
    timestamp = None
    if hour is not None:
        timestamp = datetime(2024, 2, 14, hour, tzinfo=timezone.utc)
    return OccupancyRecord(
        zone_name=zone,
        timestamp_utc=timestamp,
        occupancy_count=count,
        occupancy_percentage=percentage,
        max_capacity=capacity,
        floor_id=floor,
    )


# --- summary mode ---

def test_summary_average_is_arithmetic_mean() -> None:
    records = [_record(1, percentage=20.0), _record(2, percentage=40.0), _record(3, percentage=60.0)]
    summary = aggregate(records, "Zone A", AggregationMode.SUMMARY)
    assert summary.average_percentage == pytest.approx(40.0)
    assert summary.record_count == 3
    assert summary.series == ()


def test_summary_ignores_other_zones() -> None:
    records = [
        _record(1, percentage=10.0),
        _record(1, percentage=90.0, zone="Zone B"),
    ]
    summary = aggregate(records, "Zone A", "summary")
    assert summary.average_percentage == pytest.approx(10.0)


@pytest.mark.parametrize("mode", [AggregationMode.SUMMARY, AggregationMode.HOURLY])
def test_no_matching_zone_yields_zero_summary(mode: AggregationMode) -> None:
    summary = aggregate([_record(1, 5, 50.0, 40, zone="Zone C")], "Zone A", mode)
    assert summary.average_percentage == 0.0
    assert summary.max_capacity == 0
    assert summary.series == ()
    assert summary.display_ceiling == 50
    assert summary.is_empty


def test_max_capacity_is_last_non_zero_value() -> None:
    records = [
        _record(1, capacity=40),
        _record(2, capacity=0),
        _record(3, capacity=60),
        _record(4, capacity=0),
    ]
    assert aggregate(records, "Zone A", "summary").max_capacity == 60


def test_floor_filter_narrows_records() -> None:
    records = [_record(1, percentage=10.0, floor="1F"), _record(1, percentage=30.0, floor="2F")]
    summary = aggregate(records, "Zone A", "summary", floor_filter="2F")
    assert summary.average_percentage == pytest.approx(30.0)


# --- hourly mode ---

def test_hourly_clamps_negative_counts_to_zero() -> None:
    summary = aggregate([_record(5, count=-5)], "Zone A", AggregationMode.HOURLY)
    assert summary.series[0].value == 0


def test_hourly_display_hour_wraps_midnight() -> None:
    summary = aggregate([_record(20, 1), _record(23, 2), _record(3, 3)], "Zone A", "hourly")
    by_source = {bucket.source_hour: bucket.display_hour for bucket in summary.series}
    assert by_source == {3: 11, 20: 4, 23: 7}


def test_hourly_series_sorted_by_source_hour_with_gaps_absent() -> None:
    summary = aggregate([_record(9, 4), _record(2, 7), _record(5, 1)], "Zone A", "hourly")
    assert [bucket.source_hour for bucket in summary.series] == [2, 5, 9]
    assert [bucket.source_label for bucket in summary.series] == ["02:00", "05:00", "09:00"]
    assert summary.series[0].display_label == "10:00"


def test_hourly_same_source_hour_keeps_last_value() -> None:
    summary = aggregate([_record(9, 12), _record(9, 7)], "Zone A", "hourly")
    assert len(summary.series) == 1
    assert summary.series[0].value == 7


def test_hourly_skips_records_without_timestamp() -> None:
    summary = aggregate([_record(None, 40), _record(8, 3)], "Zone A", "hourly")
    assert [bucket.source_hour for bucket in summary.series] == [8]
    assert summary.display_ceiling == 4


def test_hourly_uses_utc_hour_of_offset_timestamps() -> None:
    hkt = timezone(timedelta(hours=8))
    record = OccupancyRecord(
        zone_name="Zone A",
        timestamp_utc=datetime(2024, 2, 14, 9, tzinfo=hkt),
        occupancy_count=6,
        occupancy_percentage=12.0,
        max_capacity=50,
    )
    bucket = aggregate([record], "Zone A", "hourly").series[0]
    assert (bucket.source_hour, bucket.display_hour) == (1, 9)


def test_hourly_ceiling_adds_headroom_to_peak_bucket() -> None:
    summary = aggregate([_record(1, 10), _record(2, 25), _record(3, 8)], "Zone A", "hourly")
    assert summary.display_ceiling == 30


def test_display_offset_is_configurable() -> None:
    summary = aggregate([_record(20, 1)], "Zone A", "hourly", display_offset_hours=9)
    assert summary.series[0].display_hour == 5


# --- helpers ---

def test_to_display_hour_default_offset() -> None:
    assert to_display_hour(20) == 4
    assert to_display_hour(23) == 7
    assert to_display_hour(0) == 8


def test_display_ceiling_defaults_when_empty() -> None:
    assert display_ceiling([]) == 50
    assert display_ceiling([10, 25, 8]) == 30


# --- peak ---

def test_peak_tracks_highest_count_and_display_hour() -> None:
    records = [_record(1, 10, capacity=40), _record(2, 25, capacity=60), _record(3, 8)]
    peak = peak_occupancy(records, "Zone A")
    assert peak.peak_occupancy == 25
    assert peak.peak_display_hour == 10
    assert peak.max_capacity == 40
    assert peak.is_live_peak is False


def test_peak_counts_first_reading_per_timestamp() -> None:
    records = [_record(1, 10), _record(1, 90)]
    assert peak_occupancy(records, "Zone A").peak_occupancy == 10


def test_peak_prefers_live_count_when_higher() -> None:
    live = LiveZoneReading("Zone A", "1F", occupancy_count=31, occupancy_percentage=62.0, max_capacity=0)
    peak = peak_occupancy([_record(2, 25)], "Zone A", live=live)
    assert peak.peak_occupancy == 31
    assert peak.is_live_peak is True
    assert peak.peak_display_hour == 10
    assert peak.max_capacity == 50


def test_peak_capacity_falls_back_to_live_capacity() -> None:
    live = LiveZoneReading("Zone A", "1F", occupancy_count=1, occupancy_percentage=1.0, max_capacity=80)
    peak = peak_occupancy([_record(2, 25)], "Zone A", live=live)
    assert peak.max_capacity == 80
    assert peak.is_live_peak is False


def test_peak_without_records_uses_defaults() -> None:
    peak = peak_occupancy([], "Zone A")
    assert peak.peak_occupancy == 0
    assert peak.peak_display_hour is None
    assert peak.max_capacity == 50


# --- live ---

def test_live_reading_for_zone_returns_first_match() -> None:
    readings = [
        LiveZoneReading("Zone B", "1F", 3, 6.0, 50),
        LiveZoneReading("Zone A", "1F", 7, 14.0, 50),
        LiveZoneReading("Zone A", "1F", 9, 18.0, 50),
    ]
    assert live_reading_for_zone(readings, "Zone A", "1F").occupancy_count == 7
    assert live_reading_for_zone(readings, "Zone C") is None


def test_live_zone_average_keeps_raw_values() -> None:
    readings = [
        LiveZoneReading("Zone A", "1F", -2, 10.0, 50),
        LiveZoneReading("Zone A", "2F", 12, 30.0, 50),
    ]
    totals = live_zone_average(readings, "Zone A")
    assert totals["total_occupancy"] == 10
    assert totals["average_percentage"] == pytest.approx(20.0)
    assert totals["floor_count"] == 2

from __future__ import annotations

from dataclasses import replace
from datetime import date, datetime, timezone
from typing import Any

import pytest
import requests

from footfall.domain.models import Granularity, ReportWindow
from footfall.repository.footfall_client import (
    FootfallClient,
    UpstreamPayloadError,
    UpstreamUnavailableError,
    parse_live_readings,
    parse_zone_series,
)
from footfall.utils.config import get_settings


SERIES_PAYLOAD = [
    {
        "floor_id": "1F",
        "zone_name": "South-zone",
        "data": [
            {
                "timestamp": "2024-02-14T01:00:00Z",
                "total_occupancy": 10,
                "occupancy_percentage": 20.0,
                "max_capacity": 50,
            },
            {
                "timestamp": None,
                "total_occupancy": 4,
                "occupancy_percentage": 8.0,
                "max_capacity": 50,
            },
        ],
    },
    {
        "floor_id": "2F",
        "zone_name": "North-Zone",
        "data": [
            {
                "timestamp": "2024-02-14T02:00:00.000Z",
                "total_occupancy": 5,
                "occupancy_percentage": 10.0,
                "max_capacity": 30,
            }
        ],
    },
    {
        "floor_id": "1F",
        "zone_name": "Relocated",
        "data": [{"timestamp": "2024-02-14T01:00:00Z", "total_occupancy": 99}],
    },
    "not-a-zone",
]


class FakeResponse:
    def __init__(self, payload: Any = None, status_code: int = 200, body_error: bool = False) -> None:
        self._payload = payload
        self.status_code = status_code
        self._body_error = body_error

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Server Error")

    def json(self) -> Any:
        if self._body_error:
            raise ValueError("No JSON object could be decoded")
        return self._payload


class FakeSession:
    def __init__(self, response: FakeResponse | None = None, error: Exception | None = None) -> None:
        self._response = response
        self._error = error
        self.calls: list[dict[str, Any]] = []

    def get(self, url: str, params: dict[str, str] | None = None, timeout: float | None = None):
        self.calls.append({"url": url, "params": params, "timeout": timeout})
        if self._error is not None:
            raise self._error
        return self._response


def _build_client(session: FakeSession) -> FootfallClient:
    settings = replace(
        get_settings(),
        footfall_api_base_url="https://footfall.example.test/api",
        footfall_request_timeout_seconds=3.0,
    )
    return FootfallClient(settings=settings, session=session)


def test_parse_zone_series_normalizes_and_flattens() -> None:
    records = parse_zone_series(SERIES_PAYLOAD)

    assert [record.zone_name for record in records] == ["Zone A", "Zone A", "Zone C"]
    assert records[0].floor_id == "1F"
    assert records[0].timestamp_utc == datetime(2024, 2, 14, 1, tzinfo=timezone.utc)
    assert records[1].timestamp_utc is None
    assert records[2].max_capacity == 30


def test_parse_zone_series_rejects_non_list_payload() -> None:
    with pytest.raises(UpstreamPayloadError):
        parse_zone_series({"error": "bad"})


def test_parse_zone_series_rejects_non_numeric_values() -> None:
    payload = [{"zone_name": "South-zone", "data": [{"total_occupancy": "lots"}]}]
    with pytest.raises(UpstreamPayloadError):
        parse_zone_series(payload)


@pytest.mark.parametrize(
    "field, value",
    [
        ("total_occupancy", float("inf")),
        ("total_occupancy", float("-inf")),
        ("total_occupancy", float("nan")),
        ("total_occupancy", 10**400),
        ("occupancy_percentage", float("inf")),
        ("max_capacity", float("-inf")),
    ],
)
def test_parse_zone_series_rejects_non_finite_numbers(field: str, value: Any) -> None:
    entry = {
        "timestamp": "2024-02-14T01:00:00Z",
        "total_occupancy": 10,
        "occupancy_percentage": 20.0,
        "max_capacity": 50,
    }
    entry[field] = value
    with pytest.raises(UpstreamPayloadError):
        parse_zone_series([{"floor_id": "1F", "zone_name": "South-zone", "data": [entry]}])


def test_parse_live_readings_rejects_infinite_count() -> None:
    with pytest.raises(UpstreamPayloadError):
        parse_live_readings(
            [{"floor_id": "1F", "zone_name": "South-zone", "total_occupancy": float("inf")}]
        )


def test_negative_capacity_is_clamped_to_zero() -> None:
    records = parse_zone_series(
        [
            {
                "floor_id": "1F",
                "zone_name": "South-zone",
                "data": [{"timestamp": "2024-02-14T01:00:00Z", "total_occupancy": 4,
                          "occupancy_percentage": 8.0, "max_capacity": -20}],
            }
        ]
    )
    readings = parse_live_readings(
        [{"floor_id": "1F", "zone_name": "South-zone", "total_occupancy": 4,
          "occupancy_percentage": 8.0, "max_capacity": -20}]
    )
    assert records[0].max_capacity == 0
    assert readings[0].max_capacity == 0


def test_parse_live_readings_skips_relocated() -> None:
    readings = parse_live_readings(
        [
            {"floor_id": "1F", "zone_name": "Central-zone", "total_occupancy": 7,
             "occupancy_percentage": 14.0, "max_capacity": 50},
            {"floor_id": "1F", "zone_name": "relocated", "total_occupancy": 3},
        ]
    )
    assert len(readings) == 1
    assert readings[0].zone_name == "Zone B"


def test_day_window_uses_hourly_endpoint() -> None:
    session = FakeSession(FakeResponse(SERIES_PAYLOAD))
    client = _build_client(session)

    window = ReportWindow(date(2024, 2, 14), date(2024, 2, 14))
    records = client.fetch_records(window, Granularity.DAY)

    assert len(records) == 3
    call = session.calls[0]
    assert call["url"] == "https://footfall.example.test/api/floor-zone/hourly"
    assert call["params"] == {"start_date": "2024-02-14", "end_date": "2024-02-14"}
    assert call["timeout"] == 3.0


@pytest.mark.parametrize("granularity", [Granularity.WEEK, Granularity.MONTH, Granularity.CUSTOM])
def test_longer_windows_use_historical_endpoint(granularity: Granularity) -> None:
    session = FakeSession(FakeResponse([]))
    client = _build_client(session)

    client.fetch_records(ReportWindow(date(2024, 2, 11), date(2024, 2, 17)), granularity)

    assert session.calls[0]["url"].endswith("/floor-zone/historical")


def test_fetch_live_hits_live_endpoint() -> None:
    session = FakeSession(FakeResponse([]))
    assert _build_client(session).fetch_live() == []
    assert session.calls[0]["url"].endswith("/floor-zone/live")


def test_connection_error_is_wrapped() -> None:
    session = FakeSession(error=requests.ConnectionError("connection refused"))
    with pytest.raises(UpstreamUnavailableError):
        _build_client(session).fetch_live()


def test_http_error_status_is_wrapped() -> None:
    session = FakeSession(FakeResponse(status_code=503))
    with pytest.raises(UpstreamUnavailableError):
        _build_client(session).fetch_live()


def test_non_json_body_is_payload_error() -> None:
    session = FakeSession(FakeResponse(body_error=True))
    with pytest.raises(UpstreamPayloadError):
        _build_client(session).fetch_live()

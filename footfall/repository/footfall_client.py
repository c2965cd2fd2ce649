"""HTTP access to the upstream footfall API."""

from __future__ import annotations

import math
from datetime import datetime
from typing import Any, Mapping, Optional

import requests

from footfall.domain.models import Granularity, LiveZoneReading, OccupancyRecord, ReportWindow
from footfall.utils.config import Settings, get_settings
from footfall.utils.logger import get_logger


logger = get_logger(__name__)


ZONE_ALIASES: dict[str, str] = {
    "South-zone": "Zone A",
    "South-Zone": "Zone A",
    "Central-zone": "Zone B",
    "Central-Zone": "Zone B",
    "North-zone": "Zone C",
    "North-Zone": "Zone C",
    "Main-Entrance": "Main Entrance",
}

EXCLUDED_ZONES = frozenset({"relocated"})


class FootfallClientError(Exception):
    """Base failure talking to the footfall API."""


class UpstreamUnavailableError(FootfallClientError):
    """Raised on network errors, timeouts and non-2xx responses."""


class UpstreamPayloadError(FootfallClientError):
    """Raised when the response body is not the expected JSON shape."""


def normalize_zone_name(raw_name: str) -> str:
    return ZONE_ALIASES.get(raw_name, raw_name)


def is_excluded_zone(raw_name: str) -> bool:
    return raw_name.strip().lower() in EXCLUDED_ZONES


def parse_timestamp(value: Any) -> datetime | None:
    if not value or not isinstance(value, str):
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


def _as_float(value: Any) -> float:
    if value is None:
        return 0.0
    number = float(value)
    if not math.isfinite(number):
        raise ValueError(f"non-finite number: {value!r}")
    return number


def _as_int(value: Any) -> int:
    return int(round(_as_float(value)))


def _as_capacity(value: Any) -> int:
    return max(0, _as_int(value))


def _floor_id(value: Any) -> str | None:
    return None if value is None else str(value)


def parse_zone_series(payload: Any) -> list[OccupancyRecord]:
    """Flatten ``[{floor_id, zone_name, data: [...]}, ...]`` into records.

    Entries keep their payload order. A missing or unparseable timestamp is
    kept as ``None`` so hourly aggregation can skip it.
    """
    if not isinstance(payload, list):
        raise UpstreamPayloadError("Expected a JSON list of zone series")

    records: list[OccupancyRecord] = []
    for item in payload:
        if not isinstance(item, Mapping) or "zone_name" not in item:
            logger.debug("Dropping malformed zone series item: %r", item)
            continue
        raw_zone = str(item["zone_name"])
        if is_excluded_zone(raw_zone):
            continue
        zone_name = normalize_zone_name(raw_zone)
        floor_id = _floor_id(item.get("floor_id"))
        entries = item.get("data") or []
        if not isinstance(entries, list):
            raise UpstreamPayloadError(f"Zone {raw_zone!r} data must be a list")

        for entry in entries:
            if not isinstance(entry, Mapping):
                logger.debug("Dropping malformed reading for %s: %r", raw_zone, entry)
                continue
            try:
                records.append(
                    OccupancyRecord(
                        zone_name=zone_name,
                        timestamp_utc=parse_timestamp(entry.get("timestamp")),
                        occupancy_count=_as_int(entry.get("total_occupancy")),
                        occupancy_percentage=_as_float(entry.get("occupancy_percentage")),
                        max_capacity=_as_capacity(entry.get("max_capacity")),
                        floor_id=floor_id,
                    )
                )
            except (TypeError, ValueError, OverflowError) as exc:
                raise UpstreamPayloadError(
                    f"Invalid numeric field in reading for zone {raw_zone!r}"
                ) from exc
    return records


def parse_live_readings(payload: Any) -> list[LiveZoneReading]:
    if not isinstance(payload, list):
        raise UpstreamPayloadError("Expected a JSON list of live readings")

    readings: list[LiveZoneReading] = []
    for item in payload:
        if not isinstance(item, Mapping) or "zone_name" not in item:
            continue
        raw_zone = str(item["zone_name"])
        if is_excluded_zone(raw_zone):
            continue
        try:
            readings.append(
                LiveZoneReading(
                    zone_name=normalize_zone_name(raw_zone),
                    floor_id=_floor_id(item.get("floor_id")),
                    occupancy_count=_as_int(item.get("total_occupancy")),
                    occupancy_percentage=_as_float(item.get("occupancy_percentage")),
                    max_capacity=_as_capacity(item.get("max_capacity")),
                )
            )
        except (TypeError, ValueError, OverflowError) as exc:
            raise UpstreamPayloadError(
                f"Invalid numeric field in live reading for zone {raw_zone!r}"
            ) from exc
    return readings


class FootfallClient:
    """Thin wrapper over the footfall floor-zone endpoints."""

    HOURLY_PATH = "/floor-zone/hourly"
    HISTORICAL_PATH = "/floor-zone/historical"
    LIVE_PATH = "/floor-zone/live"

    def __init__(
        self,
        settings: Optional[Settings] = None,
        session: Optional[requests.Session] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._session = session or requests.Session()

    @property
    def base_url(self) -> str:
        return self._settings.footfall_api_base_url

    def _get_json(self, path: str, params: Optional[Mapping[str, str]] = None) -> Any:
        url = f"{self.base_url}{path}"
        try:
            response = self._session.get(
                url,
                params=dict(params or {}),
                timeout=self._settings.footfall_request_timeout_seconds,
            )
            response.raise_for_status()
        except requests.exceptions.RequestException as exc:
            logger.warning("Footfall request failed | url=%s | error=%s", url, exc)
            raise UpstreamUnavailableError(f"Footfall API request failed: {exc}") from exc

        try:
            return response.json()
        except ValueError as exc:
            raise UpstreamPayloadError("Footfall API returned a non-JSON body") from exc

    def path_for(self, granularity: Granularity) -> str:
        if granularity is Granularity.DAY:
            return self.HOURLY_PATH
        return self.HISTORICAL_PATH

    def fetch_records(self, window: ReportWindow, granularity: Granularity) -> list[OccupancyRecord]:
        path = self.path_for(granularity)
        payload = self._get_json(path, window.as_query_params())
        records = parse_zone_series(payload)
        logger.info(
            "Fetched footfall records | path=%s | start=%s | end=%s | records=%d",
            path,
            window.start_date,
            window.end_date,
            len(records),
        )
        return records

    def fetch_hourly(self, window: ReportWindow) -> list[OccupancyRecord]:
        return parse_zone_series(self._get_json(self.HOURLY_PATH, window.as_query_params()))

    def fetch_live(self) -> list[LiveZoneReading]:
        return parse_live_readings(self._get_json(self.LIVE_PATH))


#!/usr/bin/env python3
"""Validate local footfall report environment readiness."""

from __future__ import annotations

import importlib
import sys
from datetime import date, datetime, timezone
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from footfall.domain.aggregation import aggregate
from footfall.domain.models import AggregationMode, Granularity, OccupancyRecord
from footfall.domain.windows import resolve_window
from footfall.repository.footfall_client import FootfallClient, FootfallClientError
from footfall.utils.config import get_settings

SEPARATOR_LINE = "=" * 44


def _print_result(name: str, success: bool, detail: str = "") -> tuple[bool, str]:
    if success:
        return True, f"[PASS] {name}{detail}"
    return False, f"[FAIL] {name}: {detail}"


def main(check_upstream: bool = False) -> int:
    results: list[str] = []
    all_passed = True

    # CHECK 1: Python version >= 3.10
    if sys.version_info >= (3, 10):
        ok, line = _print_result("Python " + sys.version.split()[0], True)
    else:
        ok, line = _print_result(
            "Python version >= 3.10",
            False,
            f"found {sys.version.split()[0]}",
        )
    results.append(line)
    all_passed = all_passed and ok

    # CHECK 2: Required packages importable
    package_specs = [
        "fastapi",
        "uvicorn",
        "pydantic",
        "numpy",
        "pandas",
        "requests",
        "streamlit",
        "httpx",
        "pytest",
    ]
    import_errors: list[str] = []
    for module_name in package_specs:
        try:
            importlib.import_module(module_name)
        except Exception as exc:  # pragma: no cover - runtime guard
            import_errors.append(f"{module_name} ({exc})")
    if import_errors:
        ok, line = _print_result(
            "Required packages",
            False,
            "missing/unimportable -> " + "; ".join(import_errors),
        )
    else:
        ok, line = _print_result("Required packages: all importable", True)
    results.append(line)
    all_passed = all_passed and ok

    # CHECK 3: Settings
    settings = None
    try:
        settings = get_settings()
        ok, line = _print_result("Settings", True, f": upstream={settings.footfall_api_base_url}")
    except Exception as exc:
        ok, line = _print_result("Settings", False, str(exc))
    results.append(line)
    all_passed = all_passed and ok

    # CHECK 4: Window resolution (leap-year month)
    try:
        window = resolve_window(date(2024, 2, 15), Granularity.MONTH)
        if window.end_date != date(2024, 2, 29):
            raise RuntimeError(f"expected 2024-02-29, got {window.end_date}")
        ok, line = _print_result("Window resolution", True)
    except Exception as exc:
        ok, line = _print_result("Window resolution", False, str(exc))
    results.append(line)
    all_passed = all_passed and ok

    # CHECK 5: Hourly aggregation smoke run
    try:
        summary = aggregate(
            [
                OccupancyRecord(
                    zone_name="Zone A",
                    timestamp_utc=datetime(2024, 2, 15, 20, tzinfo=timezone.utc),
                    occupancy_count=25,
                    occupancy_percentage=50.0,
                    max_capacity=50,
                )
            ],
            "Zone A",
            AggregationMode.HOURLY,
        )
        if summary.series[0].display_hour != 4 or summary.display_ceiling != 30:
            raise RuntimeError(f"unexpected summary {summary}")
        ok, line = _print_result("Hourly aggregation", True)
    except Exception as exc:
        ok, line = _print_result("Hourly aggregation", False, str(exc))
    results.append(line)
    all_passed = all_passed and ok

    # CHECK 6: Upstream reachability (opt-in, needs network)
    if check_upstream and settings is not None:
        try:
            readings = FootfallClient(settings=settings).fetch_live()
            ok, line = _print_result("Upstream live endpoint", True, f": {len(readings)} readings")
        except FootfallClientError as exc:
            ok, line = _print_result("Upstream live endpoint", False, str(exc))
        results.append(line)
        all_passed = all_passed and ok

    print(SEPARATOR_LINE)
    print(" Footfall Environment Validation")
    print(SEPARATOR_LINE)
    for line in results:
        print(f" {line}")
    print(SEPARATOR_LINE)
    if all_passed:
        print(" All checks passed. Environment is ready.")
        print(SEPARATOR_LINE)
        return 0
    print(" One or more checks failed.")
    print(SEPARATOR_LINE)
    return 1


if __name__ == "__main__":
    raise SystemExit(main(check_upstream="--check-upstream" in sys.argv[1:]))

"""Streamlit dashboard for footfall occupancy reports."""

from __future__ import annotations

import datetime
from typing import Any, Dict, Optional

import pandas as pd
import requests
import streamlit as st

from footfall.utils.config import get_settings

# ==========================================
# Configuration & Constants
# ==========================================
API_BASE_URL = get_settings().dashboard_api_base_url
ZONES = ["Zone A", "Zone B", "Zone C", "Main Entrance"]
FLOORS = ["All Floors", "1F", "2F", "3F", "MF"]
REPORT_TYPES = {"Daily": "day", "Weekly": "week", "Monthly": "month", "Custom": "custom"}
SCOPES = {"Zone": "zone", "Floor": "floor", "Building": "building"}
ROUTE_PREFIXES = {"zone": "/occupancy", "floor": "/floor", "building": "/building"}
SCOPE_KEYS = {"zone": ("zone", "floor"), "floor": ("floor",), "building": ()}

st.set_page_config(
    page_title="Footfall Dashboard",
    page_icon="🏢",
    layout="wide",
)


# ==========================================
# API Helper Functions
# ==========================================
def fetch_json(path: str, params: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    try:
        response = requests.get(
            f"{API_BASE_URL}{path}",
            params={key: value for key, value in params.items() if value is not None},
            timeout=15,
        )
        response.raise_for_status()
        return response.json()
    except requests.exceptions.RequestException as e:
        st.error(f"Failed to fetch occupancy data. Please try again later. ({e})")
        return None


def fetch_export(params: Dict[str, Any]) -> Optional[requests.Response]:
    try:
        response = requests.get(
            f"{API_BASE_URL}/occupancy/export",
            params={key: value for key, value in params.items() if value is not None},
            timeout=15,
        )
        response.raise_for_status()
        return response
    except requests.exceptions.RequestException as e:
        st.error(f"Export failed: {e}")
        return None


def route(params: Dict[str, Any], name: str) -> str:
    return f"{ROUTE_PREFIXES[params['scope']]}/{name}"


def scoped(params: Dict[str, Any], *extra: str) -> Dict[str, Any]:
    return {key: params[key] for key in (*SCOPE_KEYS[params["scope"]], *extra)}


def hourly_frame(payload: Dict[str, Any]) -> pd.DataFrame:
    rows = [
        {
            "hour": f"{bucket['display_label']} ({bucket['source_label']} UTC)",
            "occupancy": bucket["value"],
        }
        for bucket in payload.get("series", [])
    ]
    return pd.DataFrame(rows, columns=["hour", "occupancy"]).set_index("hour")


# ==========================================
# UI Sections
# ==========================================
def render_average_section(params: Dict[str, Any]) -> None:
    st.subheader("Average Occupancy")
    summary = fetch_json(
        route(params, "summary"),
        scoped(params, "date", "granularity", "end_date"),
    )
    if not summary:
        return

    average = summary.get("average_percentage", 0.0)
    col1, col2 = st.columns(2)
    col1.metric("Average Occupancy", f"{average:.2f}%")
    col2.metric("Max Capacity", summary.get("max_capacity", 0))
    st.progress(min(max(average / 100.0, 0.0), 1.0))
    st.caption(summary["window"]["label"])


def render_peak_section(params: Dict[str, Any]) -> None:
    st.subheader("Peak Occupancy")
    peak = fetch_json(
        route(params, "peak"),
        scoped(params, "date"),
    )
    if not peak:
        return

    col1, col2, col3 = st.columns(3)
    col1.metric("Peak", peak.get("peak_occupancy", 0))
    col2.metric("Available", peak.get("available", 0))
    col3.metric("Peak Hour", peak.get("peak_display_label") or "-")
    if peak.get("is_live_peak"):
        st.info("Live occupancy is above today's hourly peak.")

    live = fetch_json(route(params, "live"), scoped(params))
    if live:
        st.caption(
            f"Live: {live.get('total_occupancy', 0)} people "
            f"({live.get('average_percentage', 0.0):.1f}% average)"
        )


def render_hourly_section(params: Dict[str, Any]) -> None:
    st.subheader(f"Hourly Occupancy - {params['title']}")
    hourly = fetch_json(route(params, "hourly"), scoped(params, "date"))
    if not hourly:
        return

    frame = hourly_frame(hourly)
    if frame.empty:
        st.info("No hourly data available for the selected date.")
        return
    st.line_chart(frame, y="occupancy")
    unit = "%" if hourly.get("value_unit") == "percent" else "people"
    st.caption(f"Suggested axis ceiling: {hourly['display_ceiling']} {unit}")


# ==========================================
# Main App
# ==========================================
def main() -> None:
    st.sidebar.title("Footfall Reports")
    st.sidebar.markdown("---")

    scope = SCOPES[st.sidebar.radio("View", list(SCOPES))]
    zone = st.sidebar.selectbox("Zone", ZONES) if scope == "zone" else None
    floor_options = FLOORS if scope == "zone" else FLOORS[1:]
    floor = st.sidebar.selectbox("Floor", floor_options) if scope != "building" else "All Floors"
    report_type = st.sidebar.radio("Report Type", list(REPORT_TYPES))
    selected_date = st.sidebar.date_input("Date", datetime.date.today())
    end_date = None
    if REPORT_TYPES[report_type] == "custom":
        end_date = st.sidebar.date_input("End Date", selected_date)

    params: Dict[str, Any] = {
        "scope": scope,
        "title": zone or (floor if scope == "floor" else "Building"),
        "zone": zone,
        "floor": None if floor == "All Floors" else floor,
        "date": selected_date.isoformat(),
        "granularity": REPORT_TYPES[report_type],
        "end_date": end_date.isoformat() if end_date else None,
    }

    left, right = st.columns(2)
    with left:
        render_average_section(params)
    with right:
        render_peak_section(params)
    render_hourly_section(params)

    export = fetch_export(scoped(params, "scope", "date", "granularity", "end_date"))
    if export is not None:
        filename = export.headers.get("content-disposition", "").split("filename=")[-1].strip('"')
        st.sidebar.download_button(
            "Export CSV",
            data=export.content,
            file_name=filename or "Occupancy_Report.csv",
            mime="text/csv",
        )


if __name__ == "__main__":
    main()

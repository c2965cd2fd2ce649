"""Report window resolution for day/week/month/custom reports."""

from __future__ import annotations

from datetime import date, timedelta

from footfall.domain.models import Granularity, ReportWindow


_GRANULARITY_ALIASES = {
    "daily": Granularity.DAY,
    "weekly": Granularity.WEEK,
    "monthly": Granularity.MONTH,
}

_MONTH_NAMES = (
    "January",
    "February",
    "March",
    "April",
    "May",
    "June",
    "July",
    "August",
    "September",
    "October",
    "November",
    "December",
)


class UnknownGranularityError(ValueError):
    """Raised when a granularity string cannot be mapped."""


def parse_granularity(value: str | Granularity) -> Granularity:
    if isinstance(value, Granularity):
        return value
    normalized = value.strip().lower()
    if normalized in _GRANULARITY_ALIASES:
        return _GRANULARITY_ALIASES[normalized]
    try:
        return Granularity(normalized)
    except ValueError as exc:
        raise UnknownGranularityError(f"Unknown report granularity: {value!r}") from exc


def week_start(reference_date: date) -> date:
    """Sunday on or before ``reference_date``."""
    # date.weekday(): Monday=0 .. Sunday=6
    return reference_date - timedelta(days=(reference_date.weekday() + 1) % 7)


def month_end(reference_date: date) -> date:
    if reference_date.month == 12:
        first_of_next = date(reference_date.year + 1, 1, 1)
    else:
        first_of_next = date(reference_date.year, reference_date.month + 1, 1)
    return first_of_next - timedelta(days=1)


def resolve_window(
    reference_date: date,
    granularity: Granularity | str,
    custom_end: date | None = None,
) -> ReportWindow:
    """Return the inclusive date range a report for ``reference_date`` covers.

    Week windows always run Sunday through Saturday and month windows cover the
    whole calendar month. Day windows, and custom windows without an explicit
    end, collapse to the reference date itself.
    """
    resolved = parse_granularity(granularity)

    if resolved is Granularity.WEEK:
        start = week_start(reference_date)
        return ReportWindow(start_date=start, end_date=start + timedelta(days=6))

    if resolved is Granularity.MONTH:
        return ReportWindow(
            start_date=reference_date.replace(day=1),
            end_date=month_end(reference_date),
        )

    if resolved is Granularity.CUSTOM and custom_end is not None:
        return ReportWindow(
            start_date=min(reference_date, custom_end),
            end_date=max(reference_date, custom_end),
        )

    return ReportWindow(start_date=reference_date, end_date=reference_date)


def _dmy(value: date) -> str:
    return value.strftime("%d-%m-%Y")


def window_label(window: ReportWindow, granularity: Granularity | str) -> str:
    resolved = parse_granularity(granularity)
    if resolved is Granularity.DAY:
        return _dmy(window.start_date)
    if resolved is Granularity.WEEK:
        return f"{_dmy(window.start_date)} to {_dmy(window.end_date)} (Weekly)"
    if resolved is Granularity.MONTH:
        month_name = _MONTH_NAMES[window.start_date.month - 1]
        return f"{month_name} {window.start_date.year} (Monthly)"
    return f"{_dmy(window.start_date)} to {_dmy(window.end_date)} (Custom)"

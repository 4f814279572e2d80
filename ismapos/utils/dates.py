"""Local-date helpers for report filters (no UTC conversion)."""
from __future__ import annotations

import calendar
from datetime import date, datetime, timedelta
from typing import Literal, Optional, Tuple

ReportType = Literal["daily", "weekly", "monthly", "custom"]


def format_date(value: date) -> str:
    return value.strftime("%Y-%m-%d")


def today_string(today: Optional[date] = None) -> str:
    return format_date(today or date.today())


def local_date(value: str | date) -> date:
    """Accept ``YYYY-MM-DD`` (optionally followed by a time part) or a date."""

    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return datetime.strptime(value.split("T")[0], "%Y-%m-%d").date()


def date_range_for(
    report_type: ReportType,
    start: str | date | None = None,
    end: str | date | None = None,
    *,
    today: Optional[date] = None,
) -> Optional[Tuple[str, str]]:
    """Return the ``(start, end)`` strings a report of ``report_type`` covers.

    ``daily`` covers the base day, ``weekly`` the seven days before it up to
    the base day, ``monthly`` the base day's calendar month. ``custom`` needs
    both bounds and returns ``None`` otherwise.
    """

    base = local_date(start) if start else (today or date.today())
    if report_type == "daily":
        return format_date(base), format_date(base)
    if report_type == "weekly":
        return format_date(base - timedelta(days=7)), format_date(base)
    if report_type == "monthly":
        last_day = calendar.monthrange(base.year, base.month)[1]
        return format_date(base.replace(day=1)), format_date(base.replace(day=last_day))
    if not start or not end:
        return None
    return format_date(local_date(start)), format_date(local_date(end))

"""ISO week identifiers and shift time ranges.

All week arithmetic is done on plain dates: an ISO (year, week) pair maps to
exactly one Monday, and `date.fromisocalendar` already handles week 53 and
weeks that straddle New Year. The operational zone only matters when we
need "now" (default week, audit timestamps).
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo

from shiftdesk.core.config import settings

DEFAULT_SHIFT_DURATION = timedelta(hours=2)

WEEK_TOKEN_RE = re.compile(r"^(\d{4})-W(\d{1,2})$", re.IGNORECASE)


@dataclass(frozen=True)
class WeekId:
    year: int
    iso_week: int

    @property
    def token(self) -> str:
        return format_week_token(self.year, self.iso_week)


@dataclass(frozen=True)
class ShiftRange:
    start: datetime
    end: datetime

    def overlaps(self, other: "ShiftRange") -> bool:
        return self.start < other.end and other.start < self.end


def operational_zone() -> ZoneInfo:
    return ZoneInfo(settings.SCHED_TZ)


def now_local() -> datetime:
    return datetime.now(operational_zone())


def resolve_week_start(year: int, iso_week: int) -> date:
    """Monday of the given ISO week."""
    return date.fromisocalendar(year, iso_week, 1)


def week_dates(year: int, iso_week: int) -> list[date]:
    start = resolve_week_start(year, iso_week)
    return [start + timedelta(days=offset) for offset in range(7)]


def week_of(day: date) -> WeekId:
    iso = day.isocalendar()
    return WeekId(year=iso[0], iso_week=iso[1])


def is_valid_week(year: int, iso_week: int) -> bool:
    try:
        date.fromisocalendar(year, iso_week, 1)
    except ValueError:
        return False
    return True


def format_week_token(year: int, iso_week: int) -> str:
    return f"{year}-W{iso_week:02d}"


def next_week(now: datetime | None = None) -> WeekId:
    current = now or now_local()
    return week_of((current + timedelta(weeks=1)).date())


def parse_week_token(token: str | None, *, now: datetime | None = None) -> WeekId:
    """Parse "YYYY-Www"; anything absent or malformed means next week."""
    if isinstance(token, str):
        match = WEEK_TOKEN_RE.match(token.strip())
        if match:
            year, iso_week = int(match.group(1)), int(match.group(2))
            if 1 <= iso_week <= 53 and is_valid_week(year, iso_week):
                return WeekId(year=year, iso_week=iso_week)
    return next_week(now)


def deadline_for_week(year: int, iso_week: int, lock_day: int, lock_hour: int) -> datetime:
    """Availability lock deadline for the given week.

    `lock_day` uses cron numbering (0=Sunday) inside a Sunday-first week, so
    0 is the Sunday right before the ISO week begins.
    """
    monday = resolve_week_start(year, iso_week)
    day = monday + timedelta(days=lock_day - 1)
    return datetime.combine(day, time(hour=lock_hour), tzinfo=operational_zone())


def shift_range(day: date, start: time, end: time | None) -> ShiftRange:
    """Concrete [start, end) for a shift.

    A missing end, or one equal to the start, means start + 2h. An end before
    the start belongs to the next day (20:45-00:30 crawls).
    """
    start_dt = datetime.combine(day, start)
    if end is None or end == start:
        return ShiftRange(start=start_dt, end=start_dt + DEFAULT_SHIFT_DURATION)
    end_dt = datetime.combine(day, end)
    if end_dt < start_dt:
        end_dt += timedelta(days=1)
    return ShiftRange(start=start_dt, end=end_dt)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)

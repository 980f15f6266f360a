from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session

from shiftdesk.core.config import settings
from shiftdesk.core.errors import ConflictError, NotFoundError
from shiftdesk.core.weeks import WeekId, parse_week_token
from shiftdesk.models.enums import WeekState
from shiftdesk.models.schedule_week import ScheduleWeek


def get_week(db: Session, week_id: int) -> ScheduleWeek:
    week = db.get(ScheduleWeek, week_id)
    if week is None:
        raise NotFoundError("Schedule week not found")
    return week


def get_week_for_update(db: Session, week_id: int) -> ScheduleWeek:
    """Load the week row locked for the rest of the transaction.

    Every writer of a week goes through here first, so concurrent mutations of
    the same week run one after another and each re-validates against the
    other's committed rows.
    """
    week = db.execute(
        select(ScheduleWeek).where(ScheduleWeek.id == week_id).with_for_update()
    ).scalar_one_or_none()
    if week is None:
        raise NotFoundError("Schedule week not found")
    return week


def find_week(db: Session, ident: WeekId) -> ScheduleWeek | None:
    return db.execute(
        select(ScheduleWeek).where(ScheduleWeek.year == ident.year, ScheduleWeek.iso_week == ident.iso_week)
    ).scalar_one_or_none()


def lookup_week(db: Session, token: str | None) -> ScheduleWeek:
    """Resolve a week token (absent or malformed means next week) without creating it."""
    week = find_week(db, parse_week_token(token))
    if week is None:
        raise NotFoundError("Schedule week not found")
    return week


def ensure_week(db: Session, ident: WeekId) -> tuple[ScheduleWeek, bool]:
    """Find-or-create the week for (year, iso_week). Returns (week, created)."""
    week = find_week(db, ident)
    if week is not None:
        return week, False

    week = ScheduleWeek(year=ident.year, iso_week=ident.iso_week, tz=settings.SCHED_TZ, state=WeekState.COLLECTING.value)
    db.add(week)
    # uq_schedule_weeks_year_week rejects a concurrent duplicate here
    db.flush()
    return week, True


def assert_week_mutable(week: ScheduleWeek) -> None:
    if week.state == WeekState.PUBLISHED.value:
        raise ConflictError("Week is already published")

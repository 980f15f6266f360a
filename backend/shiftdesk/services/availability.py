from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session

from shiftdesk.core.db import transaction
from shiftdesk.core.errors import ConflictError, NotFoundError, ValidationError
from shiftdesk.core.weeks import week_dates
from shiftdesk.models.availability import Availability
from shiftdesk.models.enums import WeekState
from shiftdesk.models.shift_type import ShiftType
from shiftdesk.models.user import User
from shiftdesk.schemas import AvailabilityIn
from shiftdesk.services.audit import log_audit
from shiftdesk.services.weeks import get_week_for_update


def _null_or_equal(column, value):
    return column.is_(None) if value is None else column == value


def save_availability(
    db: Session, user_id: int, week_id: int, entries: list[AvailabilityIn]
) -> list[Availability]:
    """Upsert availability rows keyed by (user, week, day, shift type, window)."""
    with transaction(db):
        week = get_week_for_update(db, week_id)
        if week.state != WeekState.COLLECTING.value:
            raise ConflictError("Availability is closed for this week")
        if db.get(User, user_id) is None:
            raise NotFoundError("User not found")

        days = set(week_dates(week.year, week.iso_week))
        saved: list[Availability] = []
        for entry in entries:
            if entry.day not in days:
                raise ValidationError(f"Date {entry.day.isoformat()} is outside week {week.label}")
            if entry.shift_type_id is not None and db.get(ShiftType, entry.shift_type_id) is None:
                raise ValidationError("Shift type not found")
            if entry.start_time and entry.end_time and entry.end_time <= entry.start_time:
                raise ValidationError("Availability window must end after it starts")

            row = db.execute(
                select(Availability).where(
                    Availability.user_id == user_id,
                    Availability.schedule_week_id == week.id,
                    Availability.day == entry.day,
                    _null_or_equal(Availability.shift_type_id, entry.shift_type_id),
                    _null_or_equal(Availability.start_time, entry.start_time),
                    _null_or_equal(Availability.end_time, entry.end_time),
                )
            ).scalar_one_or_none()
            if row is None:
                row = Availability(
                    user_id=user_id,
                    schedule_week_id=week.id,
                    day=entry.day,
                    shift_type_id=entry.shift_type_id,
                    start_time=entry.start_time,
                    end_time=entry.end_time,
                    status=entry.status,
                    notes=entry.notes,
                )
                db.add(row)
            else:
                row.status = entry.status
                row.notes = entry.notes
            db.flush()
            saved.append(row)

        log_audit(
            db,
            actor_id=user_id,
            action="schedule.availability.save",
            entity="schedule_week",
            entity_id=week.id,
            meta={"entries": len(saved)},
        )
    for row in saved:
        db.refresh(row)
    return saved


def list_availability_for_user(db: Session, user_id: int, week_id: int) -> list[Availability]:
    return list(
        db.scalars(
            select(Availability)
            .where(Availability.user_id == user_id, Availability.schedule_week_id == week_id)
            .order_by(Availability.day.asc(), Availability.start_time.asc(), Availability.id.asc())
        ).all()
    )


def list_availability_for_week(db: Session, week_id: int) -> list[Availability]:
    return list(
        db.scalars(
            select(Availability)
            .where(Availability.schedule_week_id == week_id)
            .order_by(Availability.user_id.asc(), Availability.day.asc(), Availability.id.asc())
        ).all()
    )

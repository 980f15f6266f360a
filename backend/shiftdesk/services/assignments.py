from __future__ import annotations

import logging
from datetime import timedelta

from sqlalchemy import delete, func, or_, select
from sqlalchemy.orm import Session, joinedload

from shiftdesk.core.db import transaction
from shiftdesk.core.errors import ConflictError, NotFoundError, ValidationError
from shiftdesk.core.weeks import parse_week_token, resolve_week_start
from shiftdesk.models.availability import Availability
from shiftdesk.models.enums import AvailabilityStatus
from shiftdesk.models.shift_assignment import ShiftAssignment
from shiftdesk.models.shift_instance import ShiftInstance
from shiftdesk.models.shift_role import ShiftRole
from shiftdesk.models.swap_request import SwapRequest
from shiftdesk.models.user import User
from shiftdesk.schemas import AssignmentIn
from shiftdesk.services.audit import log_audit
from shiftdesk.services.validator import VOLUNTEER_DAY_LIMIT
from shiftdesk.services.weeks import assert_week_mutable, get_week_for_update

log = logging.getLogger("shiftdesk.assignments")

# a capped volunteer never drops to this many shifts through a manual delete
MIN_VOLUNTEER_SHIFTS = 3


def _same_role(a: ShiftAssignment, role_id: int | None, role_name: str) -> bool:
    if a.shift_role_id is not None and role_id is not None:
        return a.shift_role_id == role_id
    return (a.role_in_shift or "").strip().lower() == role_name.strip().lower()


def user_week_assignments(db: Session, user_id: int, week_id: int) -> list[ShiftAssignment]:
    return list(
        db.scalars(
            select(ShiftAssignment)
            .join(ShiftInstance, ShiftAssignment.shift_instance_id == ShiftInstance.id)
            .where(ShiftAssignment.user_id == user_id, ShiftInstance.schedule_week_id == week_id)
            .options(joinedload(ShiftAssignment.shift_instance))
            .order_by(ShiftAssignment.id.asc())
        ).all()
    )


def has_available_record(db: Session, user_id: int, week_id: int, day) -> bool:
    row = db.execute(
        select(Availability.id).where(
            Availability.user_id == user_id,
            Availability.schedule_week_id == week_id,
            Availability.day == day,
            Availability.status == AvailabilityStatus.AVAILABLE.value,
        ).limit(1)
    ).first()
    return row is not None


def _create_one(db: Session, entry: AssignmentIn, actor_id: int | None) -> ShiftAssignment:
    instance = db.get(ShiftInstance, entry.shift_instance_id)
    if instance is None:
        raise NotFoundError("Shift instance not found")
    week = get_week_for_update(db, instance.schedule_week_id)
    assert_week_mutable(week)

    user = db.get(User, entry.user_id)
    if user is None:
        raise NotFoundError("User not found")

    role_name = entry.role_in_shift.strip()
    if entry.shift_role_id is not None and db.get(ShiftRole, entry.shift_role_id) is None:
        raise ValidationError("Shift role not found")

    existing = user_week_assignments(db, user.id, week.id)

    for a in existing:
        if a.shift_instance_id == instance.id and _same_role(a, entry.shift_role_id, role_name):
            raise ConflictError(
                f"{user.display_name} already holds {role_name} on this shift",
                user_id=user.id,
                shift_instance_id=instance.id,
            )

    profile = user.staff_profile
    if profile is not None and profile.is_capped_volunteer:
        days = {a.shift_instance.date for a in existing} | {instance.date}
        if len(days) > VOLUNTEER_DAY_LIMIT:
            raise ConflictError(
                f"{user.display_name} would work {len(days)} days this week (max {VOLUNTEER_DAY_LIMIT})",
                code="volunteer-too-many",
                user_id=user.id,
            )

    new_range = instance.time_range
    for a in existing:
        other = a.shift_instance
        if other.id == instance.id:
            continue
        if other.time_range.overlaps(new_range):
            raise ConflictError(
                f"{user.display_name} already works an overlapping shift on {instance.date.isoformat()}",
                code="overlap",
                user_id=user.id,
                shift_instance_id=other.id,
            )

    if not has_available_record(db, user.id, week.id, instance.date):
        reason = (entry.override_reason or "").strip()
        if not reason:
            raise ValidationError(
                f"{user.display_name} is not marked available on {instance.date.isoformat()}; an override reason is required",
                user_id=user.id,
            )
        log_audit(
            db,
            actor_id=actor_id,
            action="schedule.assignment.override",
            entity="shift_instance",
            entity_id=instance.id,
            meta={"user_id": user.id, "reason": reason},
        )

    assignment = ShiftAssignment(
        shift_instance_id=instance.id,
        user_id=user.id,
        role_in_shift=role_name,
        shift_role_id=entry.shift_role_id,
    )
    db.add(assignment)
    # later entries of the same batch validate against this one
    db.flush()
    return assignment


def create_assignments_bulk(db: Session, entries: list[AssignmentIn], actor_id: int | None) -> list[ShiftAssignment]:
    """Create every entry or none of them."""
    if not entries:
        raise ValidationError("No assignments given")

    with transaction(db):
        created = [_create_one(db, entry, actor_id) for entry in entries]
        log_audit(
            db,
            actor_id=actor_id,
            action="schedule.assignment.create-bulk",
            entity="shift_assignment",
            entity_id=created[0].id,
            meta={"count": len(created), "assignment_ids": [a.id for a in created]},
        )
    for a in created:
        db.refresh(a)
    log.info("created %s assignments actor=%s", len(created), actor_id)
    return created


def delete_assignment(db: Session, assignment_id: int, actor_id: int | None) -> None:
    """Remove one assignment and any swaps that reference it.

    A capped volunteer must keep more than MIN_VOLUNTEER_SHIFTS afterwards: the
    guard counts before deleting and rejects when the remainder is <= 3.
    """
    with transaction(db):
        assignment = db.get(ShiftAssignment, assignment_id)
        if assignment is None:
            raise NotFoundError("Assignment not found")
        instance = assignment.shift_instance
        week = get_week_for_update(db, instance.schedule_week_id)
        assert_week_mutable(week)

        profile = assignment.assignee.staff_profile
        if profile is not None and profile.is_capped_volunteer:
            total = db.execute(
                select(func.count(ShiftAssignment.id))
                .join(ShiftInstance, ShiftAssignment.shift_instance_id == ShiftInstance.id)
                .where(ShiftAssignment.user_id == assignment.user_id, ShiftInstance.schedule_week_id == week.id)
            ).scalar_one()
            if total - 1 <= MIN_VOLUNTEER_SHIFTS:
                raise ConflictError(
                    f"{assignment.assignee.display_name} must keep more than {MIN_VOLUNTEER_SHIFTS} shifts this week",
                    user_id=assignment.user_id,
                    remaining=total - 1,
                )

        db.execute(
            delete(SwapRequest).where(
                or_(SwapRequest.from_assignment_id == assignment_id, SwapRequest.to_assignment_id == assignment_id)
            )
        )
        meta = {"user_id": assignment.user_id, "shift_instance_id": instance.id, "role_in_shift": assignment.role_in_shift}
        db.delete(assignment)
        log_audit(db, actor_id=actor_id, action="schedule.assignment.delete", entity="shift_assignment", entity_id=assignment_id, meta=meta)


def list_historical_assignments(
    db: Session, from_token: str | None, to_token: str | None, user_id: int | None = None
) -> list[ShiftAssignment]:
    """Assignments from the Monday of `from_token` through the Sunday of `to_token`."""
    start_week = parse_week_token(from_token)
    end_week = parse_week_token(to_token)
    start = resolve_week_start(start_week.year, start_week.iso_week)
    end = resolve_week_start(end_week.year, end_week.iso_week) + timedelta(days=6)
    if end < start:
        raise ValidationError("Range end is before its start")

    stmt = (
        select(ShiftAssignment)
        .join(ShiftInstance, ShiftAssignment.shift_instance_id == ShiftInstance.id)
        .where(ShiftInstance.date >= start, ShiftInstance.date <= end)
        .options(
            joinedload(ShiftAssignment.shift_instance).joinedload(ShiftInstance.shift_type),
            joinedload(ShiftAssignment.assignee),
        )
        .order_by(ShiftInstance.date.asc(), ShiftInstance.time_start.asc(), ShiftAssignment.id.asc())
    )
    if user_id is not None:
        stmt = stmt.where(ShiftAssignment.user_id == user_id)
    return list(db.scalars(stmt).all())

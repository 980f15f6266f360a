"""Week lifecycle: collecting -> locked -> published, and back via reopen.

Also hosts the periodic jobs the external scheduler triggers (generate next
week, availability reminders, auto-lock).
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from shiftdesk.core.config import settings
from shiftdesk.core.db import transaction
from shiftdesk.core.errors import ConflictError
from shiftdesk.core.roles_registry import MANAGER_ROLE_KEYS
from shiftdesk.core.weeks import deadline_for_week, next_week, parse_week_token
from shiftdesk.models.availability import Availability
from shiftdesk.models.enums import PENDING_SWAP_STATES, WeekState
from shiftdesk.models.export import Export
from shiftdesk.models.schedule_week import ScheduleWeek
from shiftdesk.models.shift_assignment import ShiftAssignment
from shiftdesk.models.shift_instance import ShiftInstance
from shiftdesk.models.staff_profile import StaffProfile
from shiftdesk.models.swap_request import SwapRequest
from shiftdesk.models.user import User
from shiftdesk.services.audit import log_audit
from shiftdesk.services.exports import ExportRenderer
from shiftdesk.services.instances import spawn_instances
from shiftdesk.services.notify import Notifier, notify_many
from shiftdesk.services.validator import blocking, collect_week_violations, load_week_assignments
from shiftdesk.services.weeks import assert_week_mutable, ensure_week, find_week, get_week, get_week_for_update

log = logging.getLogger("shiftdesk.lifecycle")

REMINDER_TEMPLATES = {
    "remind-first": "availability_reminder_first",
    "remind-final": "availability_reminder_final",
}


@dataclass
class GeneratedWeek:
    week: ScheduleWeek
    created: bool
    spawned: int


def generate_week(db: Session, token: str | None, actor_id: int | None, auto_spawn: bool = False) -> GeneratedWeek:
    """Ensure the week exists; a new week (or auto_spawn) fills it from templates."""
    ident = parse_week_token(token)
    try:
        with transaction(db):
            week, created = ensure_week(db, ident)
            spawned = 0
            if created or auto_spawn:
                week = get_week_for_update(db, week.id)
                assert_week_mutable(week)
                spawned = spawn_instances(db, week, actor_id)
            log_audit(
                db,
                actor_id=actor_id,
                action="schedule.week.generate",
                entity="schedule_week",
                entity_id=week.id,
                meta={"week": ident.token, "created": created, "spawned": spawned},
            )
    except IntegrityError:
        # a concurrent request created the same week first
        week = find_week(db, ident)
        if week is None:
            raise
        return GeneratedWeek(week=week, created=False, spawned=0)

    log.info("week %s generated created=%s spawned=%s", ident.token, created, spawned)
    return GeneratedWeek(week=week, created=created, spawned=spawned)


def week_info(week: ScheduleWeek) -> dict[str, Any]:
    return {
        "id": week.id,
        "year": week.year,
        "iso_week": week.iso_week,
        "label": week.label,
        "tz": week.tz,
        "state": week.state,
    }


def get_week_summary(db: Session, week_id: int) -> dict[str, Any]:
    week = get_week(db, week_id)
    violations = collect_week_violations(db, week.id)

    instance_count = db.execute(
        select(func.count(ShiftInstance.id)).where(ShiftInstance.schedule_week_id == week.id)
    ).scalar_one()
    assignment_count = db.execute(
        select(func.count(ShiftAssignment.id))
        .join(ShiftInstance, ShiftAssignment.shift_instance_id == ShiftInstance.id)
        .where(ShiftInstance.schedule_week_id == week.id)
    ).scalar_one()
    pending_swaps = db.execute(
        select(func.count(SwapRequest.id))
        .join(ShiftAssignment, SwapRequest.from_assignment_id == ShiftAssignment.id)
        .join(ShiftInstance, ShiftAssignment.shift_instance_id == ShiftInstance.id)
        .where(ShiftInstance.schedule_week_id == week.id, SwapRequest.status.in_(PENDING_SWAP_STATES))
    ).scalar_one()

    return {
        "week": week_info(week),
        "totals": {
            "shift_instances": instance_count,
            "assignments": assignment_count,
            "volunteers_with_too_many": sum(1 for v in violations if v.code == "volunteer-too-many"),
            "pending_swaps": pending_swaps,
        },
        "violations": [v.to_dict() for v in violations],
    }


def lock_week(db: Session, week_id: int, actor_id: int | None) -> ScheduleWeek:
    with transaction(db):
        week = get_week_for_update(db, week_id)
        if week.state != WeekState.COLLECTING.value:
            raise ConflictError(f"Week is already {week.state}")
        week.state = WeekState.LOCKED.value
        log_audit(db, actor_id=actor_id, action="schedule.week.lock", entity="schedule_week", entity_id=week.id)
    log.info("week %s locked", week.label)
    return week


def _published_recipients(db: Session, week: ScheduleWeek) -> list[tuple[User, dict[str, Any]]]:
    by_user: dict[int, list[ShiftAssignment]] = defaultdict(list)
    users: dict[int, User] = {}
    for a in load_week_assignments(db, week.id):
        if not a.assignee.is_active:
            continue
        by_user[a.user_id].append(a)
        users[a.user_id] = a.assignee

    recipients = []
    for user_id, items in sorted(by_user.items()):
        payload = {
            "week_label": week.label,
            "assignments": [
                {
                    "day": a.shift_instance.date.strftime("%a %d.%m"),
                    "shift_type": a.shift_instance.shift_type.name if a.shift_instance.shift_type else None,
                    "time_start": a.shift_instance.time_start.strftime("%H:%M"),
                    "role_in_shift": a.role_in_shift,
                }
                for a in items
            ],
        }
        recipients.append((users[user_id], payload))
    return recipients


def publish_week(
    db: Session, week_id: int, actor_id: int | None, renderer: ExportRenderer, notifier: Notifier
) -> dict[str, Any]:
    """Validate, render exports, flip to published, then notify assigned staff.

    Blocking violations or a failed render leave the week untouched.
    Notifications go out after commit and never undo the publish.
    """
    with transaction(db):
        week = get_week_for_update(db, week_id)
        if week.state == WeekState.COLLECTING.value:
            raise ConflictError("Lock the week before publishing.")
        if week.state == WeekState.PUBLISHED.value:
            raise ConflictError("Week already published.")

        errors = blocking(collect_week_violations(db, week.id))
        if errors:
            raise ConflictError(
                "Week has blocking violations",
                violations=[v.to_dict() for v in errors],
            )

        files = renderer.render(week)
        for f in files:
            db.add(Export(schedule_week_id=week.id, file_id=f.file_id, url=f.url))
        week.state = WeekState.PUBLISHED.value
        log_audit(
            db,
            actor_id=actor_id,
            action="schedule.week.publish",
            entity="schedule_week",
            entity_id=week.id,
            meta={"exports": [f.file_id for f in files]},
        )

    log.info("week %s published exports=%s", week.label, len(files))
    sent = notify_many(notifier, _published_recipients(db, week), "assignment_published")
    return {
        "exports": [{"file_id": e.file_id, "url": e.url} for e in list_exports(db, week.id)],
        "summary": get_week_summary(db, week.id),
        "notified": sent,
    }


def reopen_week(db: Session, week_id: int, actor_id: int | None) -> ScheduleWeek:
    """Back to collecting; export records are dropped, assignments stay."""
    with transaction(db):
        week = get_week_for_update(db, week_id)
        if week.state != WeekState.PUBLISHED.value:
            raise ConflictError("Only published weeks can be reopened")
        dropped = len(week.exports)
        week.exports.clear()
        week.state = WeekState.COLLECTING.value
        log_audit(
            db,
            actor_id=actor_id,
            action="schedule.week.reopen",
            entity="schedule_week",
            entity_id=week.id,
            meta={"exports_removed": dropped},
        )
    log.info("week %s reopened", week.label)
    return week


def list_exports(db: Session, week_id: int) -> list[Export]:
    get_week(db, week_id)
    return list(
        db.scalars(select(Export).where(Export.schedule_week_id == week_id).order_by(Export.id.asc())).all()
    )


# ---------- Periodic jobs ----------

def generate_next_week(db: Session, now: datetime | None = None) -> GeneratedWeek:
    return generate_week(db, next_week(now).token, actor_id=None, auto_spawn=True)


def send_availability_reminder(db: Session, key: str, notifier: Notifier, now: datetime | None = None) -> int:
    """Remind active staff who have not submitted availability for next week."""
    template_key = REMINDER_TEMPLATES[key]
    ident = next_week(now)
    week = find_week(db, ident)
    if week is None or week.state != WeekState.COLLECTING.value:
        log.info("reminder %s skipped: week %s not collecting", key, ident.token)
        return 0

    submitted = select(Availability.user_id).where(Availability.schedule_week_id == week.id)
    users = db.scalars(
        select(User)
        .join(StaffProfile, StaffProfile.user_id == User.id)
        .where(User.is_active.is_(True), StaffProfile.active.is_(True), User.id.not_in(submitted))
        .order_by(User.id.asc())
    ).all()

    deadline = deadline_for_week(week.year, week.iso_week, settings.SCHED_LOCK_DAY, settings.SCHED_LOCK_HOUR)
    payload = {"week_label": week.label, "deadline": deadline.strftime("%a %d.%m %H:%M")}
    sent = notify_many(notifier, [(u, payload) for u in users], template_key)
    log.info("reminder %s week=%s recipients=%s sent=%s", key, week.label, len(users), sent)
    return sent


def auto_lock_collecting_week(db: Session, notifier: Notifier, now: datetime | None = None) -> ScheduleWeek | None:
    """Lock next week at the availability deadline and tell the managers."""
    ident = next_week(now)
    week = find_week(db, ident)
    if week is None or week.state != WeekState.COLLECTING.value:
        log.info("auto-lock skipped: week %s not collecting", ident.token)
        return None

    week = lock_week(db, week.id, actor_id=None)
    managers = db.scalars(
        select(User)
        .where(User.is_active.is_(True), User.role_key.in_(MANAGER_ROLE_KEYS))
        .order_by(User.id.asc())
    ).all()
    notify_many(notifier, [(u, {"week_label": week.label}) for u in managers], "submissions_locked")
    return week


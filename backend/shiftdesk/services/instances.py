from __future__ import annotations

import logging

from sqlalchemy import and_, or_, select
from sqlalchemy.orm import Session, selectinload

from shiftdesk.core.db import transaction
from shiftdesk.core.errors import NotFoundError, ValidationError
from shiftdesk.core.weeks import week_dates
from shiftdesk.models.schedule_week import ScheduleWeek
from shiftdesk.models.shift_assignment import ShiftAssignment
from shiftdesk.models.shift_instance import ShiftInstance
from shiftdesk.models.shift_template import ShiftTemplate
from shiftdesk.models.shift_type import ShiftType
from shiftdesk.schemas import ShiftInstanceCreateIn, ShiftInstanceUpdateIn
from shiftdesk.services.audit import log_audit
from shiftdesk.services.catalog import normalize_role_requirements
from shiftdesk.services.weeks import assert_week_mutable, get_week_for_update

log = logging.getLogger("shiftdesk.instances")


def spawn_instances(db: Session, week: ScheduleWeek, actor_id: int | None) -> int:
    """Materialize template instances for the week; returns how many were created.

    A (date, template) pair that already has an instance is skipped. Legacy
    instances without a template block their shift type for that date.
    Runs inside the caller's transaction.
    """
    templates = db.scalars(select(ShiftTemplate).order_by(ShiftTemplate.id.asc())).all()
    days = week_dates(week.year, week.iso_week)
    created = 0

    for template in templates:
        if template.default_start_time is None:
            continue
        active = template.active_weekdays
        for day in days:
            if day.isoweekday() not in active:
                continue
            exists = db.execute(
                select(ShiftInstance.id).where(
                    ShiftInstance.schedule_week_id == week.id,
                    ShiftInstance.date == day,
                    or_(
                        ShiftInstance.shift_template_id == template.id,
                        and_(
                            ShiftInstance.shift_template_id.is_(None),
                            ShiftInstance.shift_type_id == template.shift_type_id,
                        ),
                    ),
                ).limit(1)
            ).first()
            if exists is not None:
                continue

            db.add(
                ShiftInstance(
                    schedule_week_id=week.id,
                    shift_type_id=template.shift_type_id,
                    shift_template_id=template.id,
                    date=day,
                    time_start=template.default_start_time,
                    time_end=template.default_end_time,
                    capacity=template.default_capacity,
                    required_roles=template.default_roles,
                    meta=dict(template.default_meta or {}),
                )
            )
            # visible to the next existence check
            db.flush()
            created += 1

    log_audit(
        db,
        actor_id=actor_id,
        action="schedule.week.autospawn",
        entity="schedule_week",
        entity_id=week.id,
        meta={"template_count": len(templates), "created": created},
    )
    log.info("spawned %s instances for week %s", created, week.label)
    return created


def list_shift_instances(db: Session, week_id: int) -> list[ShiftInstance]:
    return list(
        db.scalars(
            select(ShiftInstance)
            .where(ShiftInstance.schedule_week_id == week_id)
            .options(
                selectinload(ShiftInstance.assignments).selectinload(ShiftAssignment.assignee),
                selectinload(ShiftInstance.shift_type),
                selectinload(ShiftInstance.template),
            )
            .order_by(ShiftInstance.date.asc(), ShiftInstance.time_start.asc(), ShiftInstance.id.asc())
        ).all()
    )


def get_instance(db: Session, instance_id: int) -> ShiftInstance:
    instance = db.get(ShiftInstance, instance_id)
    if instance is None:
        raise NotFoundError("Shift instance not found")
    return instance


def create_shift_instance(db: Session, payload: ShiftInstanceCreateIn, actor_id: int | None) -> ShiftInstance:
    with transaction(db):
        week = get_week_for_update(db, payload.schedule_week_id)
        assert_week_mutable(week)
        if db.get(ShiftType, payload.shift_type_id) is None:
            raise ValidationError("Shift type not found")
        if payload.shift_template_id is not None and db.get(ShiftTemplate, payload.shift_template_id) is None:
            raise ValidationError("Shift template not found")
        if payload.date not in week_dates(week.year, week.iso_week):
            raise ValidationError(f"Date {payload.date.isoformat()} is outside week {week.label}")

        instance = ShiftInstance(
            schedule_week_id=week.id,
            shift_type_id=payload.shift_type_id,
            shift_template_id=payload.shift_template_id,
            date=payload.date,
            time_start=payload.time_start,
            time_end=payload.time_end,
            capacity=payload.capacity,
            required_roles=normalize_role_requirements(db, payload.required_roles),
            meta=payload.meta or {},
        )
        db.add(instance)
        db.flush()
        log_audit(db, actor_id=actor_id, action="schedule.instance.create", entity="shift_instance", entity_id=instance.id)
    db.refresh(instance)
    return instance


def update_shift_instance(
    db: Session, instance_id: int, payload: ShiftInstanceUpdateIn, actor_id: int | None
) -> ShiftInstance:
    with transaction(db):
        instance = get_instance(db, instance_id)
        week = get_week_for_update(db, instance.schedule_week_id)
        assert_week_mutable(week)

        if payload.date is not None:
            if payload.date not in week_dates(week.year, week.iso_week):
                raise ValidationError(f"Date {payload.date.isoformat()} is outside week {week.label}")
            instance.date = payload.date
        if payload.time_start is not None:
            instance.time_start = payload.time_start
        if payload.time_end is not None:
            instance.time_end = payload.time_end
        if payload.capacity is not None:
            instance.capacity = payload.capacity
        if payload.required_roles is not None:
            instance.required_roles = normalize_role_requirements(db, payload.required_roles)
        if payload.meta is not None:
            instance.meta = payload.meta

        log_audit(db, actor_id=actor_id, action="schedule.instance.update", entity="shift_instance", entity_id=instance.id)
    db.refresh(instance)
    return instance


def delete_shift_instance(db: Session, instance_id: int, actor_id: int | None) -> None:
    with transaction(db):
        instance = get_instance(db, instance_id)
        week = get_week_for_update(db, instance.schedule_week_id)
        assert_week_mutable(week)

        # assignments go with the instance (delete-orphan cascade)
        db.delete(instance)
        log_audit(db, actor_id=actor_id, action="schedule.instance.delete", entity="shift_instance", entity_id=instance_id)

"""Greedy weekly solver for the accommodation volunteer pool.

Every run is a full re-solve: the pool's assignments for the week are removed
and rebuilt. Staff outside the pool keep their assignments and count as
already covering their slots. Ties between candidates break on
(assigned count, user id), so identical inputs always give identical output.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from sqlalchemy import delete, or_, select
from sqlalchemy.orm import Session, selectinload

from shiftdesk.core.db import transaction
from shiftdesk.core.roles_registry import AUTO_ASSIGN_STAFF_TYPES
from shiftdesk.core.weeks import ShiftRange
from shiftdesk.models.availability import Availability
from shiftdesk.models.enums import AvailabilityStatus
from shiftdesk.models.shift_assignment import ShiftAssignment
from shiftdesk.models.shift_instance import ShiftInstance
from shiftdesk.models.staff_profile import StaffProfile
from shiftdesk.models.swap_request import SwapRequest
from shiftdesk.models.user import User
from shiftdesk.services.audit import log_audit
from shiftdesk.services.catalog import allowed_role_ids_by_user
from shiftdesk.services.role_slots import RoleSlot, compute_open_slots
from shiftdesk.services.weeks import assert_week_mutable, get_week_for_update

log = logging.getLogger("shiftdesk.auto_assign")

WEEKLY_CAP = 4

# roles a manager also covers on templates with manager_covers_team
COVERED_BY_MANAGER = ("leader", "guide")


@dataclass
class AutoAssignResult:
    created: int = 0
    removed: int = 0
    volunteer_count: int = 0
    unfilled: list[dict[str, Any]] = field(default_factory=list)
    loads: list[dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "created": self.created,
            "removed": self.removed,
            "volunteer_count": self.volunteer_count,
            "unfilled": self.unfilled,
            "loads": self.loads,
        }


def load_volunteer_pool(db: Session) -> list[User]:
    return list(
        db.scalars(
            select(User)
            .join(StaffProfile, StaffProfile.user_id == User.id)
            .where(
                User.is_active.is_(True),
                StaffProfile.active.is_(True),
                StaffProfile.lives_in_accom.is_(True),
                StaffProfile.staff_type.in_(AUTO_ASSIGN_STAFF_TYPES),
            )
            .order_by(User.id.asc())
        ).all()
    )


def availability_covers(records: list[Availability], instance: ShiftInstance) -> bool:
    """No records for the day means free; otherwise one `available` record must fit the shift."""
    if not records:
        return True
    rng = instance.time_range
    for rec in records:
        if rec.status != AvailabilityStatus.AVAILABLE.value:
            continue
        if rec.shift_type_id is not None and rec.shift_type_id != instance.shift_type_id:
            continue
        if rec.start_time is not None and datetime.combine(instance.date, rec.start_time) > rng.start:
            continue
        if rec.end_time is not None and datetime.combine(instance.date, rec.end_time) < rng.end:
            continue
        return True
    return False


class _Solver:
    def __init__(self, pool: list[User], allowed: dict[int, set[int]], availability: dict[tuple[int, object], list[Availability]]):
        self.pool = pool
        self.allowed = allowed
        self.availability = availability
        self.counts: dict[int, int] = {u.id: 0 for u in pool}
        self.committed: dict[int, list[ShiftRange]] = defaultdict(list)

    def candidates(self) -> list[User]:
        return sorted(self.pool, key=lambda u: (self.counts[u.id], u.id))

    def eligible(self, user: User, slot: RoleSlot, instance: ShiftInstance, rng: ShiftRange) -> bool:
        if slot.role_id is not None and slot.role_id not in self.allowed.get(user.id, set()):
            return False
        if self.counts[user.id] >= WEEKLY_CAP:
            return False
        if any(r.overlaps(rng) for r in self.committed[user.id]):
            return False
        return availability_covers(self.availability.get((user.id, instance.date), []), instance)

    def pick(self, slot: RoleSlot, instance: ShiftInstance, rng: ShiftRange) -> User | None:
        for user in self.candidates():
            if self.eligible(user, slot, instance, rng):
                return user
        return None


def auto_assign_week(db: Session, week_id: int, actor_id: int | None) -> AutoAssignResult:
    result = AutoAssignResult()

    with transaction(db):
        week = get_week_for_update(db, week_id)
        assert_week_mutable(week)

        pool = load_volunteer_pool(db)
        pool_ids = {u.id for u in pool}
        result.volunteer_count = len(pool)

        stale_ids = []
        if pool_ids:
            stale_ids = list(
                db.scalars(
                    select(ShiftAssignment.id)
                    .join(ShiftInstance, ShiftAssignment.shift_instance_id == ShiftInstance.id)
                    .where(ShiftInstance.schedule_week_id == week.id, ShiftAssignment.user_id.in_(pool_ids))
                ).all()
            )
        if stale_ids:
            db.execute(
                delete(SwapRequest).where(
                    or_(SwapRequest.from_assignment_id.in_(stale_ids), SwapRequest.to_assignment_id.in_(stale_ids))
                )
            )
            db.execute(delete(ShiftAssignment).where(ShiftAssignment.id.in_(stale_ids)))
        result.removed = len(stale_ids)

        instances = db.scalars(
            select(ShiftInstance)
            .where(ShiftInstance.schedule_week_id == week.id)
            .options(selectinload(ShiftInstance.assignments), selectinload(ShiftInstance.template))
            .order_by(ShiftInstance.date.asc(), ShiftInstance.time_start.asc(), ShiftInstance.id.asc())
            .execution_options(populate_existing=True)
        ).all()

        availability: dict[tuple[int, object], list[Availability]] = defaultdict(list)
        if pool_ids:
            for rec in db.scalars(
                select(Availability).where(
                    Availability.schedule_week_id == week.id, Availability.user_id.in_(pool_ids)
                )
            ).all():
                availability[(rec.user_id, rec.day)].append(rec)

        solver = _Solver(pool, allowed_role_ids_by_user(db, sorted(pool_ids)), availability)
        new_rows: list[ShiftAssignment] = []

        for instance in instances:
            rng = instance.time_range
            propagate = instance.template is not None and instance.template.manager_covers_team
            remaining = compute_open_slots(instance, pool_ids)

            while remaining:
                slot = remaining.pop(0)
                user = solver.pick(slot, instance, rng) if pool else None
                if user is None:
                    result.unfilled.append(
                        {
                            "shift_instance_id": instance.id,
                            "role": slot.role_name,
                            "shift_role_id": slot.role_id,
                            "date": instance.date.isoformat(),
                            "time_start": instance.time_start.strftime("%H:%M"),
                        }
                    )
                    continue

                new_rows.append(
                    ShiftAssignment(
                        shift_instance_id=instance.id,
                        user_id=user.id,
                        role_in_shift=slot.role_name,
                        shift_role_id=slot.role_id,
                    )
                )
                solver.counts[user.id] += 1
                solver.committed[user.id].append(rng)

                if propagate and slot.normalized_name == "manager":
                    for covered in COVERED_BY_MANAGER:
                        idx = next((i for i, s in enumerate(remaining) if s.normalized_name == covered), None)
                        if idx is None:
                            continue
                        extra = remaining.pop(idx)
                        new_rows.append(
                            ShiftAssignment(
                                shift_instance_id=instance.id,
                                user_id=user.id,
                                role_in_shift=extra.role_name,
                                shift_role_id=extra.role_id,
                            )
                        )

        db.add_all(new_rows)
        db.flush()
        result.created = len(new_rows)
        result.loads = [
            {"user_id": u.id, "name": u.display_name, "assigned": solver.counts[u.id]} for u in pool
        ]

        log_audit(
            db,
            actor_id=actor_id,
            action="schedule.week.auto-assign",
            entity="schedule_week",
            entity_id=week.id,
            meta={"created": result.created, "removed": result.removed, "unfilled": len(result.unfilled)},
        )

    log.info(
        "auto-assign week=%s created=%s removed=%s unfilled=%s",
        week_id, result.created, result.removed, len(result.unfilled),
    )
    return result

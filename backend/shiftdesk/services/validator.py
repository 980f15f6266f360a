"""Read-only rule checks for a schedule week.

Each check returns its own violations; `collect_week_violations` runs them all.
Only `error` severity blocks publishing.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import asdict, dataclass, field
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session, joinedload

from shiftdesk.core.roles_registry import ASSISTANT_MANAGER_ROLE_KEY
from shiftdesk.core.shift_types_registry import CRAWL_TYPE_KEYS
from shiftdesk.models.shift_assignment import ShiftAssignment
from shiftdesk.models.shift_instance import ShiftInstance
from shiftdesk.models.staff_profile import StaffProfile
from shiftdesk.models.user import User

VOLUNTEER_DAY_LIMIT = 4
ASSISTANT_MANAGER_LOAD_LIMIT = 6

SEVERITY_ERROR = "error"
SEVERITY_WARNING = "warning"


@dataclass
class Violation:
    code: str
    message: str
    severity: str = SEVERITY_ERROR
    meta: dict[str, Any] = field(default_factory=dict)

    @property
    def is_blocking(self) -> bool:
        return self.severity == SEVERITY_ERROR

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def load_week_assignments(db: Session, week_id: int) -> list[ShiftAssignment]:
    return list(
        db.scalars(
            select(ShiftAssignment)
            .join(ShiftInstance, ShiftAssignment.shift_instance_id == ShiftInstance.id)
            .where(ShiftInstance.schedule_week_id == week_id)
            .options(
                joinedload(ShiftAssignment.shift_instance).joinedload(ShiftInstance.shift_type),
                joinedload(ShiftAssignment.assignee).joinedload(User.staff_profile),
            )
            .order_by(ShiftInstance.date.asc(), ShiftInstance.time_start.asc(), ShiftAssignment.id.asc())
        ).unique().all()
    )


def check_volunteer_day_limit(assignments: list[ShiftAssignment]) -> list[Violation]:
    days_by_user: dict[int, set] = defaultdict(set)
    users: dict[int, User] = {}
    for a in assignments:
        profile = a.assignee.staff_profile
        if profile is None or not profile.is_capped_volunteer:
            continue
        days_by_user[a.user_id].add(a.shift_instance.date)
        users[a.user_id] = a.assignee

    out = []
    for user_id, days in sorted(days_by_user.items()):
        if len(days) > VOLUNTEER_DAY_LIMIT:
            out.append(
                Violation(
                    code="volunteer-too-many",
                    message=f"{users[user_id].display_name} is scheduled on {len(days)} days (max {VOLUNTEER_DAY_LIMIT})",
                    meta={"user_id": user_id, "days": len(days)},
                )
            )
    return out


def check_pub_crawl_roles(db: Session, week_id: int) -> list[Violation]:
    instances = db.scalars(
        select(ShiftInstance)
        .where(ShiftInstance.schedule_week_id == week_id)
        .options(joinedload(ShiftInstance.shift_type), joinedload(ShiftInstance.assignments))
        .order_by(ShiftInstance.date.asc(), ShiftInstance.time_start.asc(), ShiftInstance.id.asc())
    ).unique().all()

    out = []
    for inst in instances:
        if inst.shift_type is None or inst.shift_type.key not in CRAWL_TYPE_KEYS:
            continue
        roles = [(a.role_in_shift or "").strip().lower() for a in inst.assignments]
        leaders = roles.count("leader")
        guides = roles.count("guide")
        meta = {"shift_instance_id": inst.id, "date": inst.date.isoformat()}
        if leaders != 1:
            out.append(
                Violation(
                    code="pub-crawl-leader",
                    message=f"{inst.shift_type.name} on {inst.date.isoformat()} needs exactly one leader (has {leaders})",
                    meta={**meta, "leaders": leaders},
                )
            )
        if guides < 1:
            out.append(
                Violation(
                    code="pub-crawl-guide",
                    message=f"{inst.shift_type.name} on {inst.date.isoformat()} needs at least one guide",
                    meta={**meta, "guides": guides},
                )
            )
    return out


def check_assistant_manager_load(assignments: list[ShiftAssignment]) -> list[Violation]:
    counts: dict[int, int] = defaultdict(int)
    users: dict[int, User] = {}
    for a in assignments:
        user = a.assignee
        profile: StaffProfile | None = user.staff_profile
        if user.role_key != ASSISTANT_MANAGER_ROLE_KEY:
            continue
        if profile is None or not (profile.active and profile.lives_in_accom):
            continue
        counts[a.user_id] += 1
        users[a.user_id] = user

    return [
        Violation(
            code="assistant-manager-high-load",
            message=f"{users[uid].display_name} has {n} shifts this week",
            severity=SEVERITY_WARNING,
            meta={"user_id": uid, "assignments": n},
        )
        for uid, n in sorted(counts.items())
        if n > ASSISTANT_MANAGER_LOAD_LIMIT
    ]


def check_overlaps(assignments: list[ShiftAssignment]) -> list[Violation]:
    by_user: dict[int, list[ShiftAssignment]] = defaultdict(list)
    for a in assignments:
        by_user[a.user_id].append(a)

    out = []
    for user_id, items in sorted(by_user.items()):
        for i, first in enumerate(items):
            for second in items[i + 1:]:
                if first.shift_instance_id == second.shift_instance_id:
                    continue
                if not first.shift_instance.time_range.overlaps(second.shift_instance.time_range):
                    continue
                out.append(
                    Violation(
                        code="overlap",
                        message=(
                            f"{first.assignee.display_name} has overlapping shifts on "
                            f"{first.shift_instance.date.isoformat()}"
                        ),
                        meta={
                            "user_id": user_id,
                            "assignment_ids": [first.id, second.id],
                            "shift_instance_ids": [first.shift_instance_id, second.shift_instance_id],
                        },
                    )
                )
    return out


def collect_week_violations(db: Session, week_id: int) -> list[Violation]:
    assignments = load_week_assignments(db, week_id)
    return [
        *check_volunteer_day_limit(assignments),
        *check_pub_crawl_roles(db, week_id),
        *check_assistant_manager_load(assignments),
        *check_overlaps(assignments),
    ]


def blocking(violations: list[Violation]) -> list[Violation]:
    return [v for v in violations if v.is_blocking]

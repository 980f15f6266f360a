from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from shiftdesk.models.shift_assignment import ShiftAssignment
from shiftdesk.models.shift_instance import ShiftInstance

DEFAULT_ROLE_NAME = "Staff"

# Lower fills first; everything unlisted shares the last bucket.
ROLE_PRIORITY = {
    "manager": 0,
    "leader": 1,
    "guide": 2,
    "social media": 3,
}
OTHER_ROLE_PRIORITY = 10


@dataclass(frozen=True)
class RoleSlot:
    role_id: int | None
    role_name: str

    @property
    def key(self) -> str:
        return role_key(self.role_id, self.role_name)

    @property
    def normalized_name(self) -> str:
        return normalize_role_name(self.role_name)


def normalize_role_name(name: str | None) -> str:
    return " ".join((name or "").replace("-", " ").replace("_", " ").split()).lower()


def role_key(role_id: int | None, role_name: str | None) -> str:
    """Identity of a role: the role id when known, otherwise its name (case-insensitive)."""
    if role_id is not None:
        return f"id:{role_id}"
    return f"name:{(role_name or DEFAULT_ROLE_NAME).strip().lower()}"


def role_priority(name: str | None) -> int:
    return ROLE_PRIORITY.get(normalize_role_name(name), OTHER_ROLE_PRIORITY)


def role_requirements(instance: ShiftInstance) -> list[dict]:
    if instance.required_roles:
        return list(instance.required_roles)
    if instance.template is not None and instance.template.default_roles:
        return list(instance.template.default_roles)
    return []


def resolve_role_slots(instance: ShiftInstance) -> list[RoleSlot]:
    """Expand role requirements into one slot per required person.

    Without requirements the instance gets max(1, capacity) generic slots.
    """
    requirements = role_requirements(instance)
    if not requirements:
        return [RoleSlot(None, DEFAULT_ROLE_NAME) for _ in range(max(1, instance.capacity or 1))]

    slots: list[RoleSlot] = []
    for req in requirements:
        role_id = req.get("shift_role_id")
        name = req.get("role") or DEFAULT_ROLE_NAME
        for _ in range(max(1, req.get("required") or 1)):
            slots.append(RoleSlot(role_id, name))
    return slots


def sort_by_priority(slots: Iterable[RoleSlot]) -> list[RoleSlot]:
    """manager < leader < guide < social media < rest; original order breaks ties."""
    indexed = list(enumerate(slots))
    indexed.sort(key=lambda item: (role_priority(item[1].role_name), item[0]))
    return [slot for _, slot in indexed]


def compute_open_slots(
    instance: ShiftInstance,
    excluded_user_ids: set[int],
    assignments: Iterable[ShiftAssignment] | None = None,
) -> list[RoleSlot]:
    """Slots still to fill once assignments held by non-excluded staff are counted.

    Each covering assignment consumes at most one slot with the same role key.
    """
    covering: dict[str, int] = {}
    for a in instance.assignments if assignments is None else assignments:
        if a.user_id in excluded_user_ids:
            continue
        key = role_key(a.shift_role_id, a.role_in_shift)
        covering[key] = covering.get(key, 0) + 1

    open_slots: list[RoleSlot] = []
    for slot in resolve_role_slots(instance):
        if covering.get(slot.key, 0) > 0:
            covering[slot.key] -= 1
            continue
        open_slots.append(slot)
    return sort_by_priority(open_slots)

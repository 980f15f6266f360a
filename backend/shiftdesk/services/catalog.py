from __future__ import annotations

import logging
import re
from datetime import time

from sqlalchemy import delete, select, update
from sqlalchemy.orm import Session

from shiftdesk.core.db import transaction
from shiftdesk.core.errors import ConflictError, NotFoundError, ValidationError
from shiftdesk.core.shift_types_registry import SHIFT_TEMPLATES, SHIFT_TYPES
from shiftdesk.models.shift_instance import ShiftInstance
from shiftdesk.models.shift_role import ShiftRole, UserShiftRole
from shiftdesk.models.shift_template import ShiftTemplate
from shiftdesk.models.shift_type import ShiftType
from shiftdesk.models.user import User
from shiftdesk.schemas import RoleRequirement, ShiftRoleIn, ShiftTemplateIn
from shiftdesk.services.audit import log_audit
from shiftdesk.services.role_slots import DEFAULT_ROLE_NAME

log = logging.getLogger("shiftdesk.catalog")


# ---------- Shift types ----------

def seed_shift_types(db: Session) -> tuple[int, int]:
    """Upsert the registry into shift_types by key. Returns (created, updated)."""
    existing = {t.key: t for t in db.scalars(select(ShiftType)).all()}
    created = 0
    updated = 0
    for definition in SHIFT_TYPES:
        row = existing.get(definition.key)
        if row is None:
            db.add(ShiftType(key=definition.key, name=definition.name, description=definition.description))
            created += 1
            continue
        if row.name != definition.name or row.description != definition.description:
            row.name = definition.name
            row.description = definition.description
            updated += 1
    db.flush()
    return created, updated


def list_shift_types(db: Session) -> list[ShiftType]:
    """All shift types; an empty catalog seeds itself first."""
    with transaction(db):
        has_any = db.execute(select(ShiftType.id).limit(1)).first() is not None
        if not has_any:
            created, updated = seed_shift_types(db)
            log.info("shift types seeded created=%s updated=%s", created, updated)
    return list(db.scalars(select(ShiftType).order_by(ShiftType.name.asc())).all())


def get_shift_type_by_key(db: Session, key: str) -> ShiftType | None:
    return db.execute(select(ShiftType).where(ShiftType.key == key)).scalar_one_or_none()


# ---------- Shift templates ----------

def list_shift_templates(db: Session) -> list[ShiftTemplate]:
    return list(db.scalars(select(ShiftTemplate).order_by(ShiftTemplate.name.asc())).all())


def _clock(value: str | None) -> time | None:
    return time.fromisoformat(value) if value else None


def seed_shift_templates(db: Session) -> int:
    """Create the default templates that are missing by name. Returns how many were created.

    Existing templates (edited or not) are left alone. Shift types are seeded first.
    """
    seed_shift_types(db)
    types = {t.key: t.id for t in db.scalars(select(ShiftType)).all()}
    names = set(db.scalars(select(ShiftTemplate.name)).all())
    created = 0
    for definition in SHIFT_TEMPLATES:
        if definition.name in names:
            continue
        db.add(
            ShiftTemplate(
                shift_type_id=types[definition.shift_type_key],
                name=definition.name,
                default_start_time=_clock(definition.start),
                default_end_time=_clock(definition.end),
                requires_leader=definition.requires_leader,
                default_roles=[
                    {"shift_role_id": None, "role": role, "required": required}
                    for role, required in definition.roles
                ],
                default_meta=dict(definition.meta) if definition.meta else None,
            )
        )
        created += 1
    db.flush()
    return created


def seed_catalog(db: Session) -> int:
    with transaction(db):
        created = seed_shift_templates(db)
    log.info("catalog seeded templates_created=%s", created)
    return created


def normalize_repeat_on(days: list[int] | None) -> list[int] | None:
    if not days:
        return None
    cleaned = sorted({int(d) for d in days if 1 <= int(d) <= 7})
    return cleaned or None


def normalize_role_requirements(db: Session, roles: list[RoleRequirement] | None) -> list[dict] | None:
    """Store requirements as plain dicts; a known role id wins over the free-text name."""
    if not roles:
        return None
    ids = {r.shift_role_id for r in roles if r.shift_role_id is not None}
    by_id: dict[int, ShiftRole] = {}
    if ids:
        by_id = {r.id: r for r in db.scalars(select(ShiftRole).where(ShiftRole.id.in_(ids))).all()}
        missing = ids - set(by_id)
        if missing:
            raise ValidationError(f"Unknown shift role ids: {sorted(missing)}")

    result = []
    for r in roles:
        ref = by_id.get(r.shift_role_id) if r.shift_role_id is not None else None
        result.append(
            {
                "shift_role_id": r.shift_role_id,
                "role": ref.name if ref else ((r.role or "").strip() or DEFAULT_ROLE_NAME),
                "required": r.required,
            }
        )
    return result


def upsert_shift_template(db: Session, payload: ShiftTemplateIn, actor_id: int | None) -> ShiftTemplate:
    with transaction(db):
        if db.get(ShiftType, payload.shift_type_id) is None:
            raise ValidationError("Shift type not found")

        data = {
            "shift_type_id": payload.shift_type_id,
            "name": payload.name.strip(),
            "default_start_time": payload.default_start_time,
            "default_end_time": payload.default_end_time,
            "default_capacity": payload.default_capacity,
            "requires_leader": payload.requires_leader,
            "default_roles": normalize_role_requirements(db, payload.default_roles),
            "default_meta": payload.default_meta,
            "manager_covers_team": payload.manager_covers_team,
        }
        if "repeat_on" in payload.model_fields_set:
            data["repeat_on"] = normalize_repeat_on(payload.repeat_on)

        if payload.id:
            template = db.get(ShiftTemplate, payload.id)
            if template is None:
                raise NotFoundError("Shift template not found")
            for field, value in data.items():
                setattr(template, field, value)
        else:
            template = ShiftTemplate(**data)
            db.add(template)

        clash = db.execute(
            select(ShiftTemplate.id).where(ShiftTemplate.name == data["name"], ShiftTemplate.id != (payload.id or 0))
        ).first()
        if clash is not None:
            raise ConflictError("Shift template with this name already exists")

        db.flush()
        log_audit(
            db,
            actor_id=actor_id,
            action="schedule.template.update" if payload.id else "schedule.template.create",
            entity="shift_template",
            entity_id=template.id,
        )
    db.refresh(template)
    return template


def delete_shift_template(db: Session, template_id: int, actor_id: int | None) -> None:
    with transaction(db):
        template = db.get(ShiftTemplate, template_id)
        if template is None:
            raise NotFoundError("Shift template not found")

        # spawned instances keep their copied defaults
        db.execute(
            update(ShiftInstance)
            .where(ShiftInstance.shift_template_id == template_id)
            .values(shift_template_id=None)
        )
        db.delete(template)
        log_audit(db, actor_id=actor_id, action="schedule.template.delete", entity="shift_template", entity_id=template_id)


# ---------- Shift roles ----------

def _slugify(name: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", name.strip().lower()).strip("-")


def list_shift_roles(db: Session) -> list[ShiftRole]:
    return list(db.scalars(select(ShiftRole).order_by(ShiftRole.name.asc())).all())


def create_shift_role(db: Session, payload: ShiftRoleIn, actor_id: int | None) -> ShiftRole:
    name = payload.name.strip()
    slug = _slugify(name)
    if not slug:
        raise ValidationError("Role name must contain letters or digits")
    with transaction(db):
        exists = db.execute(
            select(ShiftRole.id).where((ShiftRole.name == name) | (ShiftRole.slug == slug))
        ).first()
        if exists is not None:
            raise ConflictError("Shift role already exists")
        role = ShiftRole(name=name, slug=slug)
        db.add(role)
        db.flush()
        log_audit(db, actor_id=actor_id, action="schedule.role.create", entity="shift_role", entity_id=role.id)
    db.refresh(role)
    return role


def set_user_shift_roles(db: Session, user_id: int, role_ids: list[int], actor_id: int | None) -> list[int]:
    """Replace the set of specific roles a user may fill."""
    wanted = sorted(set(role_ids))
    with transaction(db):
        if db.get(User, user_id) is None:
            raise NotFoundError("User not found")
        if wanted:
            known = set(db.scalars(select(ShiftRole.id).where(ShiftRole.id.in_(wanted))).all())
            missing = set(wanted) - known
            if missing:
                raise ValidationError(f"Unknown shift role ids: {sorted(missing)}")

        db.execute(delete(UserShiftRole).where(UserShiftRole.user_id == user_id))
        for role_id in wanted:
            db.add(UserShiftRole(user_id=user_id, shift_role_id=role_id))
        log_audit(
            db,
            actor_id=actor_id,
            action="schedule.user-roles.set",
            entity="user",
            entity_id=user_id,
            meta={"shift_role_ids": wanted},
        )
    return wanted


def allowed_role_ids_by_user(db: Session, user_ids: list[int]) -> dict[int, set[int]]:
    result: dict[int, set[int]] = {uid: set() for uid in user_ids}
    if not user_ids:
        return result
    rows = db.execute(
        select(UserShiftRole.user_id, UserShiftRole.shift_role_id).where(UserShiftRole.user_id.in_(user_ids))
    ).all()
    for uid, role_id in rows:
        result.setdefault(uid, set()).add(role_id)
    return result

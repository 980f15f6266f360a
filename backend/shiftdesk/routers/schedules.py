from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from shiftdesk.auth.deps import get_actor_id, get_export_renderer, get_notifier
from shiftdesk.core.db import get_db
from shiftdesk.models.availability import Availability
from shiftdesk.models.export import Export
from shiftdesk.models.schedule_week import ScheduleWeek
from shiftdesk.models.shift_assignment import ShiftAssignment
from shiftdesk.models.shift_instance import ShiftInstance
from shiftdesk.models.shift_template import ShiftTemplate
from shiftdesk.models.swap_request import SwapRequest
from shiftdesk.schemas import (
    AssignmentIn,
    AvailabilityIn,
    GenerateWeekIn,
    ShiftInstanceCreateIn,
    ShiftInstanceUpdateIn,
    ShiftRoleIn,
    ShiftTemplateIn,
    SwapCreateIn,
    SwapDecisionIn,
    SwapPartnerResponseIn,
    UserShiftRolesIn,
)
from shiftdesk.services import assignments as assignment_service
from shiftdesk.services import availability as availability_service
from shiftdesk.services import catalog, instances, lifecycle, swaps
from shiftdesk.services.auto_assign import auto_assign_week
from shiftdesk.services.exports import ExportRenderer
from shiftdesk.services.notify import Notifier
from shiftdesk.services.weeks import get_week, lookup_week

router = APIRouter(prefix="/schedules", tags=["schedules"])


# ---------- Serializers ----------

def _t(value) -> str | None:
    return value.strftime("%H:%M") if value is not None else None


def _week_out(week: ScheduleWeek) -> dict:
    return lifecycle.week_info(week)


def _template_out(t: ShiftTemplate) -> dict:
    return {
        "id": t.id,
        "shift_type_id": t.shift_type_id,
        "name": t.name,
        "default_start_time": _t(t.default_start_time),
        "default_end_time": _t(t.default_end_time),
        "default_capacity": t.default_capacity,
        "requires_leader": bool(t.requires_leader),
        "default_roles": t.default_roles or [],
        "default_meta": t.default_meta or {},
        "repeat_on": t.repeat_on,
        "manager_covers_team": bool(t.manager_covers_team),
    }


def _assignment_out(a: ShiftAssignment) -> dict:
    return {
        "id": a.id,
        "shift_instance_id": a.shift_instance_id,
        "user_id": a.user_id,
        "user_name": a.assignee.display_name if a.assignee else None,
        "role_in_shift": a.role_in_shift,
        "shift_role_id": a.shift_role_id,
    }


def _instance_out(i: ShiftInstance) -> dict:
    return {
        "id": i.id,
        "schedule_week_id": i.schedule_week_id,
        "shift_type_id": i.shift_type_id,
        "shift_type": i.shift_type.name if i.shift_type else None,
        "shift_template_id": i.shift_template_id,
        "date": i.date.isoformat(),
        "time_start": _t(i.time_start),
        "time_end": _t(i.time_end),
        "capacity": i.capacity,
        "required_roles": i.required_roles or [],
        "meta": i.meta or {},
        "assignments": [_assignment_out(a) for a in i.assignments],
    }


def _availability_out(a: Availability) -> dict:
    return {
        "id": a.id,
        "user_id": a.user_id,
        "day": a.day.isoformat(),
        "start_time": _t(a.start_time),
        "end_time": _t(a.end_time),
        "shift_type_id": a.shift_type_id,
        "status": a.status,
        "notes": a.notes,
    }


def _swap_out(s: SwapRequest) -> dict:
    return {
        "id": s.id,
        "from_assignment_id": s.from_assignment_id,
        "to_assignment_id": s.to_assignment_id,
        "requester_id": s.requester_id,
        "partner_id": s.partner_id,
        "manager_id": s.manager_id,
        "status": s.status,
        "decision_reason": s.decision_reason,
        "created_at": s.created_at.isoformat() if s.created_at else None,
    }


def _export_out(e: Export) -> dict:
    return {"id": e.id, "file_id": e.file_id, "url": e.url}


# ---------- Catalog ----------

@router.get("/shift-types")
def list_shift_types(db: Session = Depends(get_db)):
    return [{"id": t.id, "key": t.key, "name": t.name, "description": t.description} for t in catalog.list_shift_types(db)]


@router.get("/templates")
def list_templates(db: Session = Depends(get_db)):
    return [_template_out(t) for t in catalog.list_shift_templates(db)]


@router.post("/templates")
def upsert_template(
    payload: ShiftTemplateIn,
    db: Session = Depends(get_db),
    actor_id: int = Depends(get_actor_id),
):
    return _template_out(catalog.upsert_shift_template(db, payload, actor_id))


@router.delete("/templates/{template_id}")
def delete_template(template_id: int, db: Session = Depends(get_db), actor_id: int = Depends(get_actor_id)):
    catalog.delete_shift_template(db, template_id, actor_id)
    return {"ok": True}


@router.get("/roles")
def list_roles(db: Session = Depends(get_db)):
    return [{"id": r.id, "name": r.name, "slug": r.slug} for r in catalog.list_shift_roles(db)]


@router.post("/roles")
def create_role(payload: ShiftRoleIn, db: Session = Depends(get_db), actor_id: int = Depends(get_actor_id)):
    role = catalog.create_shift_role(db, payload, actor_id)
    return {"id": role.id, "name": role.name, "slug": role.slug}


@router.put("/users/{user_id}/roles")
def set_user_roles(
    user_id: int,
    payload: UserShiftRolesIn,
    db: Session = Depends(get_db),
    actor_id: int = Depends(get_actor_id),
):
    return {"user_id": user_id, "role_ids": catalog.set_user_shift_roles(db, user_id, payload.role_ids, actor_id)}


# ---------- Weeks ----------

@router.post("/weeks/generate")
def generate(payload: GenerateWeekIn, db: Session = Depends(get_db), actor_id: int = Depends(get_actor_id)):
    result = lifecycle.generate_week(db, payload.week, actor_id, auto_spawn=payload.auto_spawn)
    return {"week": _week_out(result.week), "created": result.created, "spawned": result.spawned}


@router.get("/weeks/lookup")
def week_lookup(week: str | None = Query(default=None), db: Session = Depends(get_db)):
    return {"week": _week_out(lookup_week(db, week)), "created": False}


@router.get("/weeks/{week_id}")
def week_summary(week_id: int, db: Session = Depends(get_db)):
    return lifecycle.get_week_summary(db, week_id)


@router.post("/weeks/{week_id}/lock")
def lock(week_id: int, db: Session = Depends(get_db), actor_id: int = Depends(get_actor_id)):
    return _week_out(lifecycle.lock_week(db, week_id, actor_id))


@router.post("/weeks/{week_id}/publish")
def publish(
    week_id: int,
    db: Session = Depends(get_db),
    actor_id: int = Depends(get_actor_id),
    renderer: ExportRenderer = Depends(get_export_renderer),
    notifier: Notifier = Depends(get_notifier),
):
    return lifecycle.publish_week(db, week_id, actor_id, renderer, notifier)


@router.post("/weeks/{week_id}/reopen")
def reopen(week_id: int, db: Session = Depends(get_db), actor_id: int = Depends(get_actor_id)):
    return _week_out(lifecycle.reopen_week(db, week_id, actor_id))


@router.get("/weeks/{week_id}/exports")
def exports(week_id: int, db: Session = Depends(get_db)):
    return [_export_out(e) for e in lifecycle.list_exports(db, week_id)]


@router.post("/weeks/{week_id}/auto-assign")
def auto_assign(week_id: int, db: Session = Depends(get_db), actor_id: int = Depends(get_actor_id)):
    return auto_assign_week(db, week_id, actor_id).to_dict()


# ---------- Instances ----------

@router.get("/weeks/{week_id}/instances")
def list_instances(week_id: int, db: Session = Depends(get_db)):
    get_week(db, week_id)
    return [_instance_out(i) for i in instances.list_shift_instances(db, week_id)]


@router.post("/instances")
def create_instance(
    payload: ShiftInstanceCreateIn,
    db: Session = Depends(get_db),
    actor_id: int = Depends(get_actor_id),
):
    return _instance_out(instances.create_shift_instance(db, payload, actor_id))


@router.patch("/instances/{instance_id}")
def update_instance(
    instance_id: int,
    payload: ShiftInstanceUpdateIn,
    db: Session = Depends(get_db),
    actor_id: int = Depends(get_actor_id),
):
    return _instance_out(instances.update_shift_instance(db, instance_id, payload, actor_id))


@router.delete("/instances/{instance_id}")
def delete_instance(instance_id: int, db: Session = Depends(get_db), actor_id: int = Depends(get_actor_id)):
    instances.delete_shift_instance(db, instance_id, actor_id)
    return {"ok": True}


# ---------- Assignments ----------

@router.post("/assignments/bulk")
def create_assignments(
    payload: list[AssignmentIn],
    db: Session = Depends(get_db),
    actor_id: int = Depends(get_actor_id),
):
    created = assignment_service.create_assignments_bulk(db, payload, actor_id)
    return [_assignment_out(a) for a in created]


@router.delete("/assignments/{assignment_id}")
def delete_assignment(assignment_id: int, db: Session = Depends(get_db), actor_id: int = Depends(get_actor_id)):
    assignment_service.delete_assignment(db, assignment_id, actor_id)
    return {"ok": True}


@router.get("/history")
def history(
    from_week: str | None = Query(default=None, alias="from"),
    to_week: str | None = Query(default=None, alias="to"),
    user_id: int | None = Query(default=None),
    db: Session = Depends(get_db),
):
    rows = assignment_service.list_historical_assignments(db, from_week, to_week, user_id=user_id)
    return [
        {
            **_assignment_out(a),
            "date": a.shift_instance.date.isoformat(),
            "time_start": _t(a.shift_instance.time_start),
            "shift_type": a.shift_instance.shift_type.name if a.shift_instance.shift_type else None,
        }
        for a in rows
    ]


# ---------- Availability ----------

@router.get("/weeks/{week_id}/availability")
def list_availability(
    week_id: int,
    user_id: int | None = Query(default=None),
    db: Session = Depends(get_db),
):
    get_week(db, week_id)
    if user_id is not None:
        rows = availability_service.list_availability_for_user(db, user_id, week_id)
    else:
        rows = availability_service.list_availability_for_week(db, week_id)
    return [_availability_out(a) for a in rows]


@router.put("/weeks/{week_id}/availability")
def save_availability(
    week_id: int,
    payload: list[AvailabilityIn],
    db: Session = Depends(get_db),
    actor_id: int = Depends(get_actor_id),
):
    rows = availability_service.save_availability(db, actor_id, week_id, payload)
    return [_availability_out(a) for a in rows]


# ---------- Swaps ----------

@router.post("/swaps")
def create_swap(
    payload: SwapCreateIn,
    db: Session = Depends(get_db),
    actor_id: int = Depends(get_actor_id),
    notifier: Notifier = Depends(get_notifier),
):
    return _swap_out(swaps.create_swap(db, payload, actor_id, notifier))


@router.get("/swaps")
def list_swaps(status: str = Query(default="pending_manager"), db: Session = Depends(get_db)):
    return [_swap_out(s) for s in swaps.list_swaps_by_status(db, status)]


@router.get("/swaps/mine")
def my_swaps(db: Session = Depends(get_db), actor_id: int = Depends(get_actor_id)):
    return [_swap_out(s) for s in swaps.list_swaps_for_user(db, actor_id)]


@router.post("/swaps/{swap_id}/respond")
def respond_swap(
    swap_id: int,
    payload: SwapPartnerResponseIn,
    db: Session = Depends(get_db),
    actor_id: int = Depends(get_actor_id),
    notifier: Notifier = Depends(get_notifier),
):
    return _swap_out(swaps.partner_response(db, swap_id, actor_id, payload.accept, notifier))


@router.post("/swaps/{swap_id}/cancel")
def cancel_swap(swap_id: int, db: Session = Depends(get_db), actor_id: int = Depends(get_actor_id)):
    return _swap_out(swaps.cancel_swap(db, swap_id, actor_id))


@router.post("/swaps/{swap_id}/decision")
def decide_swap(
    swap_id: int,
    payload: SwapDecisionIn,
    db: Session = Depends(get_db),
    actor_id: int = Depends(get_actor_id),
    notifier: Notifier = Depends(get_notifier),
):
    return _swap_out(swaps.manager_decision(db, swap_id, actor_id, payload.approve, payload.reason, notifier))

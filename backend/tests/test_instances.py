from datetime import date

import pytest

from conftest import t

from shiftdesk.core.errors import ConflictError, NotFoundError, ValidationError
from shiftdesk.models import AuditLog, ShiftAssignment, ShiftInstance
from shiftdesk.schemas import ShiftInstanceCreateIn, ShiftInstanceUpdateIn, ShiftTemplateIn
from shiftdesk.services import catalog, instances, lifecycle


def _template(db, make, name="Crawl", key="PUB_CRAWL", **kwargs):
    st = make.shift_type(key)
    return catalog.upsert_shift_template(
        db,
        ShiftTemplateIn(shift_type_id=st.id, name=name, **kwargs),
        actor_id=None,
    )


def _week_instances(db, week_id):
    return db.query(ShiftInstance).filter(ShiftInstance.schedule_week_id == week_id).all()


def test_new_week_spawns_from_templates(db, make):
    _template(
        db,
        make,
        default_start_time=t("21:00"),
        default_end_time=t("23:30"),
        default_capacity=3,
        repeat_on=[2, 4],
        default_roles=[{"role": "Leader", "required": 1}],
        default_meta={"meeting_point": "Old Town"},
    )
    result = lifecycle.generate_week(db, "2025-W10", actor_id=None)

    assert result.created is True
    assert result.spawned == 2
    rows = sorted(_week_instances(db, result.week.id), key=lambda i: i.date)
    assert [r.date for r in rows] == [date(2025, 3, 4), date(2025, 3, 6)]
    assert rows[0].time_start == t("21:00")
    assert rows[0].time_end == t("23:30")
    assert rows[0].capacity == 3
    assert rows[0].required_roles == [{"shift_role_id": None, "role": "Leader", "required": 1}]
    assert rows[0].meta == {"meeting_point": "Old Town"}


def test_generation_is_idempotent(db, make):
    _template(db, make, default_start_time=t("21:00"))
    first = lifecycle.generate_week(db, "2025-W10", actor_id=None)
    again = lifecycle.generate_week(db, "2025-W10", actor_id=None, auto_spawn=True)

    assert first.spawned == 7
    assert again.created is False
    assert again.spawned == 0
    assert again.week.id == first.week.id
    assert len(_week_instances(db, first.week.id)) == 7


def test_backfill_picks_up_new_templates(db, make):
    _template(db, make, name="Crawl", default_start_time=t("21:00"), repeat_on=[1])
    week = lifecycle.generate_week(db, "2025-W10", actor_id=None).week
    _template(db, make, name="Cleaning", key="CLEANING", default_start_time=t("10:00"), repeat_on=[1, 2])

    assert lifecycle.generate_week(db, "2025-W10", actor_id=None).spawned == 0
    assert lifecycle.generate_week(db, "2025-W10", actor_id=None, auto_spawn=True).spawned == 2
    assert len(_week_instances(db, week.id)) == 3


def test_templates_without_start_time_are_skipped(db, make):
    _template(db, make, default_start_time=None)
    result = lifecycle.generate_week(db, "2025-W10", actor_id=None)
    assert result.spawned == 0


def test_legacy_instance_blocks_same_type_on_that_day(db, make):
    tpl = _template(db, make, default_start_time=t("21:00"), repeat_on=[2, 3])
    week = make.week()
    make.instance(week, 1, shift_type=tpl.shift_type, start="20:00")

    spawned = instances.spawn_instances(db, week, actor_id=None)
    db.commit()

    assert spawned == 1
    assert len(_week_instances(db, week.id)) == 2
    log = db.query(AuditLog).filter(AuditLog.action == "schedule.week.autospawn").one()
    assert log.meta["created"] == 1


def test_create_update_delete_instance(db, make):
    week = make.week()
    st = make.shift_type("PROMOTION")

    inst = instances.create_shift_instance(
        db,
        ShiftInstanceCreateIn(
            schedule_week_id=week.id,
            shift_type_id=st.id,
            date=date(2025, 3, 5),
            time_start=t("14:00"),
            required_roles=[{"role": "Promoter", "required": 2}],
        ),
        actor_id=None,
    )
    assert inst.required_roles == [{"shift_role_id": None, "role": "Promoter", "required": 2}]

    inst = instances.update_shift_instance(
        db, inst.id, ShiftInstanceUpdateIn(time_start=t("15:00"), capacity=4), actor_id=None
    )
    assert inst.time_start == t("15:00")
    assert inst.capacity == 4
    assert inst.date == date(2025, 3, 5)

    user = make.user("Ola")
    make.assign(inst, user)
    instances.delete_shift_instance(db, inst.id, actor_id=None)

    assert db.get(ShiftInstance, inst.id) is None
    assert db.query(ShiftAssignment).count() == 0
    with pytest.raises(NotFoundError):
        instances.delete_shift_instance(db, inst.id, actor_id=None)


def test_instance_date_must_be_inside_the_week(db, make):
    week = make.week()
    st = make.shift_type("PROMOTION")
    with pytest.raises(ValidationError):
        instances.create_shift_instance(
            db,
            ShiftInstanceCreateIn(schedule_week_id=week.id, shift_type_id=st.id, date=date(2025, 3, 10), time_start=t("14:00")),
            actor_id=None,
        )
    inst = make.instance(week, 0)
    with pytest.raises(ValidationError):
        instances.update_shift_instance(db, inst.id, ShiftInstanceUpdateIn(date=date(2025, 3, 2)), actor_id=None)


def test_published_week_rejects_instance_changes(db, make):
    week = make.week(state="published")
    inst = make.instance(week, 0)
    st = make.shift_type("PROMOTION")

    with pytest.raises(ConflictError):
        instances.create_shift_instance(
            db,
            ShiftInstanceCreateIn(schedule_week_id=week.id, shift_type_id=st.id, date=date(2025, 3, 4), time_start=t("14:00")),
            actor_id=None,
        )
    with pytest.raises(ConflictError):
        instances.update_shift_instance(db, inst.id, ShiftInstanceUpdateIn(capacity=2), actor_id=None)
    with pytest.raises(ConflictError):
        instances.delete_shift_instance(db, inst.id, actor_id=None)
    assert db.get(ShiftInstance, inst.id) is not None


def test_list_orders_by_date_then_start(db, make):
    week = make.week()
    late = make.instance(week, 2, start="21:00")
    early = make.instance(week, 2, start="09:00")
    monday = make.instance(week, 0, start="23:00")

    ids = [i.id for i in instances.list_shift_instances(db, week.id)]
    assert ids == [monday.id, early.id, late.id]

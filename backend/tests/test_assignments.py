import pytest

from shiftdesk.core.errors import ConflictError, NotFoundError, ValidationError
from shiftdesk.models import AuditLog, ShiftAssignment
from shiftdesk.schemas import AssignmentIn
from shiftdesk.services import assignments


def _entry(inst, user, role="Staff", **kwargs):
    return AssignmentIn(shift_instance_id=inst.id, user_id=user.id, role_in_shift=role, **kwargs)


def _count(db):
    return db.query(ShiftAssignment).count()


def test_bulk_create_with_availability(db, make):
    week = make.week()
    vol = make.user("Vera")
    make.available(vol, week, 0)
    make.available(vol, week, 1)
    a = make.instance(week, 0)
    b = make.instance(week, 1)

    created = assignments.create_assignments_bulk(db, [_entry(a, vol, "Guide"), _entry(b, vol, "Guide")], actor_id=None)

    assert [c.shift_instance_id for c in created] == [a.id, b.id]
    assert _count(db) == 2
    assert db.query(AuditLog).filter(AuditLog.action == "schedule.assignment.create-bulk").count() == 1
    assert db.query(AuditLog).filter(AuditLog.action == "schedule.assignment.override").count() == 0


def test_missing_availability_needs_override_reason(db, make):
    week = make.week()
    vol = make.user("Vera")
    inst = make.instance(week, 2)

    with pytest.raises(ValidationError):
        assignments.create_assignments_bulk(db, [_entry(inst, vol)], actor_id=None)
    with pytest.raises(ValidationError):
        assignments.create_assignments_bulk(db, [_entry(inst, vol, override_reason="   ")], actor_id=None)
    assert _count(db) == 0

    assignments.create_assignments_bulk(db, [_entry(inst, vol, override_reason="Covering for Ola")], actor_id=None)
    override = db.query(AuditLog).filter(AuditLog.action == "schedule.assignment.override").one()
    assert override.meta == {"user_id": vol.id, "reason": "Covering for Ola"}


def test_unavailable_record_does_not_count_as_available(db, make):
    week = make.week()
    vol = make.user("Vera")
    make.available(vol, week, 2, status="unavailable")
    inst = make.instance(week, 2)

    with pytest.raises(ValidationError):
        assignments.create_assignments_bulk(db, [_entry(inst, vol)], actor_id=None)


def test_duplicate_role_is_rejected_case_insensitively(db, make):
    week = make.week()
    vol = make.user("Vera", staff_type="other")
    make.available(vol, week, 1)
    inst = make.instance(week, 1)
    make.assign(inst, vol, role="Guide")

    with pytest.raises(ConflictError):
        assignments.create_assignments_bulk(db, [_entry(inst, vol, "guide")], actor_id=None)

    # another role on the same instance is fine
    assignments.create_assignments_bulk(db, [_entry(inst, vol, "Leader")], actor_id=None)
    assert _count(db) == 2


def test_duplicate_by_role_id(db, make):
    week = make.week()
    vol = make.user("Vera", staff_type="other")
    role = make.role("Leader")
    make.available(vol, week, 1)
    inst = make.instance(week, 1)
    make.assign(inst, vol, role="Team lead", shift_role_id=role.id)

    with pytest.raises(ConflictError):
        assignments.create_assignments_bulk(db, [_entry(inst, vol, "Leader", shift_role_id=role.id)], actor_id=None)


def test_duplicates_inside_one_batch_are_caught(db, make):
    week = make.week()
    vol = make.user("Vera", staff_type="other")
    make.available(vol, week, 1)
    inst = make.instance(week, 1)

    with pytest.raises(ConflictError):
        assignments.create_assignments_bulk(db, [_entry(inst, vol, "Guide"), _entry(inst, vol, "GUIDE")], actor_id=None)
    assert _count(db) == 0


def test_fifth_day_for_resident_volunteer_is_rejected(db, make):
    week = make.week()
    vol = make.user("Vera")
    for offset in range(4):
        make.assign(make.instance(week, offset), vol)
    make.available(vol, week, 5)
    fifth = make.instance(week, 5)

    with pytest.raises(ConflictError) as exc:
        assignments.create_assignments_bulk(db, [_entry(fifth, vol)], actor_id=None)

    assert exc.value.extra["code"] == "volunteer-too-many"
    assert _count(db) == 4


def test_day_limit_failure_rolls_back_the_whole_batch(db, make):
    week = make.week()
    vol = make.user("Vera")
    entries = []
    for offset in range(5):
        make.available(vol, week, offset)
        entries.append(_entry(make.instance(week, offset), vol))

    with pytest.raises(ConflictError):
        assignments.create_assignments_bulk(db, entries, actor_id=None)
    assert _count(db) == 0


def test_extra_shift_on_an_existing_day_is_allowed(db, make):
    week = make.week()
    vol = make.user("Vera")
    for offset in range(4):
        make.assign(make.instance(week, offset, start="10:00"), vol)
    make.available(vol, week, 0)
    evening = make.instance(week, 0, start="20:00")

    assignments.create_assignments_bulk(db, [_entry(evening, vol)], actor_id=None)
    assert _count(db) == 5


def test_overlapping_shift_is_rejected(db, make):
    week = make.week()
    worker = make.user("Wiktor", staff_type="other")
    make.available(worker, week, 1)
    make.assign(make.instance(week, 1, start="20:00", end="23:00"), worker)
    clash = make.instance(week, 1, start="22:00")
    later = make.instance(week, 1, start="23:00")

    with pytest.raises(ConflictError) as exc:
        assignments.create_assignments_bulk(db, [_entry(clash, worker)], actor_id=None)
    assert exc.value.extra["code"] == "overlap"

    assignments.create_assignments_bulk(db, [_entry(later, worker)], actor_id=None)


def test_published_week_is_immutable(db, make):
    week = make.week(state="published")
    worker = make.user("Wiktor", staff_type="other")
    make.available(worker, week, 1)
    inst = make.instance(week, 1)
    existing = make.assign(make.instance(week, 2), worker)

    with pytest.raises(ConflictError):
        assignments.create_assignments_bulk(db, [_entry(inst, worker)], actor_id=None)
    with pytest.raises(ConflictError):
        assignments.delete_assignment(db, existing.id, actor_id=None)
    assert _count(db) == 1


def test_unknown_references(db, make):
    week = make.week()
    worker = make.user("Wiktor", staff_type="other")
    inst = make.instance(week, 1)
    with pytest.raises(NotFoundError):
        assignments.create_assignments_bulk(
            db, [AssignmentIn(shift_instance_id=999, user_id=worker.id, role_in_shift="Staff")], actor_id=None
        )
    with pytest.raises(NotFoundError):
        assignments.create_assignments_bulk(
            db, [AssignmentIn(shift_instance_id=inst.id, user_id=999, role_in_shift="Staff")], actor_id=None
        )
    with pytest.raises(ValidationError):
        assignments.create_assignments_bulk(db, [], actor_id=None)


def test_delete_protects_volunteer_minimum(db, make):
    week = make.week()
    vol = make.user("Vera")
    rows = [make.assign(make.instance(week, offset, start="10:00"), vol) for offset in range(4)]

    with pytest.raises(ConflictError):
        assignments.delete_assignment(db, rows[0].id, actor_id=None)
    assert _count(db) == 4

    make.assign(make.instance(week, 0, start="20:00"), vol)
    assignments.delete_assignment(db, rows[0].id, actor_id=None)
    assert _count(db) == 4


def test_delete_for_other_staff_is_unrestricted(db, make):
    week = make.week()
    worker = make.user("Wiktor", staff_type="other")
    row = make.assign(make.instance(week, 1), worker)

    assignments.delete_assignment(db, row.id, actor_id=None)

    assert _count(db) == 0
    assert db.query(AuditLog).filter(AuditLog.action == "schedule.assignment.delete").count() == 1
    with pytest.raises(NotFoundError):
        assignments.delete_assignment(db, row.id, actor_id=None)


def test_history_spans_whole_weeks(db, make):
    w10 = make.week(2025, 10)
    w11 = make.week(2025, 11)
    w12 = make.week(2025, 12)
    anna = make.user("Anna", staff_type="other")
    ben = make.user("Ben", staff_type="other")
    sunday = make.assign(make.instance(w10, 6), anna)
    monday = make.assign(make.instance(w11, 0), ben)
    make.assign(make.instance(w12, 0), anna)

    rows = assignments.list_historical_assignments(db, "2025-W10", "2025-W11")
    assert [r.id for r in rows] == [sunday.id, monday.id]

    mine = assignments.list_historical_assignments(db, "2025-W10", "2025-W11", user_id=ben.id)
    assert [r.id for r in mine] == [monday.id]

    with pytest.raises(ValidationError):
        assignments.list_historical_assignments(db, "2025-W12", "2025-W10")


def test_overlap_with_a_shift_running_past_midnight_is_rejected(db, make):
    week = make.week()
    vol = make.user("Vera")
    make.available(vol, week, 1)
    make.available(vol, week, 2)
    crawl = make.instance(week, 1, start="20:45", end="00:30", shift_type=make.shift_type("PUB_CRAWL"))
    social = make.instance(week, 1, start="21:00", end="22:00", shift_type=make.shift_type("SOCIAL_MEDIA"))
    early = make.instance(week, 2, start="00:00", end="01:00")
    assignments.create_assignments_bulk(db, [_entry(crawl, vol, "Guide")], actor_id=None)

    for inst in (social, early):
        with pytest.raises(ConflictError) as exc:
            assignments.create_assignments_bulk(db, [_entry(inst, vol)], actor_id=None)
        assert exc.value.extra["code"] == "overlap"
    assert _count(db) == 1

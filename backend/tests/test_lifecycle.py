import pytest

from conftest import FakeRenderer, RecordingNotifier, local

from shiftdesk.core.errors import ConflictError, ExternalServiceError, NotFoundError
from shiftdesk.models import AuditLog, Export, ScheduleWeek, ShiftAssignment
from shiftdesk.services import lifecycle
from shiftdesk.services.assignments import delete_assignment


def _crawl_week(make, *, with_leader=True):
    week = make.week(state="locked")
    crawl = make.instance(week, 1, shift_type=make.shift_type("PUB_CRAWL"))
    anna = make.user("Anna", staff_type="other")
    ben = make.user("Ben", staff_type="other")
    make.assign(crawl, anna, role="Leader" if with_leader else "Guide")
    make.assign(crawl, ben, role="Guide")
    return week, anna, ben


def test_lock_only_from_collecting(db, make):
    week = make.week()
    locked = lifecycle.lock_week(db, week.id, actor_id=None)
    assert locked.state == "locked"

    with pytest.raises(ConflictError):
        lifecycle.lock_week(db, week.id, actor_id=None)
    with pytest.raises(NotFoundError):
        lifecycle.lock_week(db, 999, actor_id=None)


def test_publish_requires_lock(db, make, renderer, notifier):
    week = make.week()
    with pytest.raises(ConflictError) as exc:
        lifecycle.publish_week(db, week.id, None, renderer, notifier)

    assert exc.value.detail == "Lock the week before publishing."
    db.refresh(week)
    assert week.state == "collecting"
    assert renderer.calls == []


def test_blocking_violations_stop_publication(db, make, renderer, notifier):
    week, _, _ = _crawl_week(make, with_leader=False)

    with pytest.raises(ConflictError) as exc:
        lifecycle.publish_week(db, week.id, None, renderer, notifier)

    assert [v["code"] for v in exc.value.extra["violations"]] == ["pub-crawl-leader"]
    db.refresh(week)
    assert week.state == "locked"
    assert db.query(Export).count() == 0
    assert renderer.calls == []
    assert notifier.sent == []


def test_publish_with_warnings_only(db, make, renderer, notifier):
    week, anna, ben = _crawl_week(make)
    am = make.user("Maja", staff_type="other", role_key="assistant_manager")
    for offset in range(7):
        make.assign(make.instance(week, offset, start="09:00"), am)

    out = lifecycle.publish_week(db, week.id, None, renderer, notifier)

    db.refresh(week)
    assert week.state == "published"
    assert [e["file_id"] for e in out["exports"]] == ["2025-W10-pdf", "2025-W10-png"]
    assert [v["code"] for v in out["summary"]["violations"]] == ["assistant-manager-high-load"]
    assert out["notified"] == 3
    assert notifier.keys_for(anna.id) == ["assignment_published"]
    payload = next(p for uid, _, p in notifier.sent if uid == am.id)
    assert payload["week_label"] == "2025-W10"
    assert len(payload["assignments"]) == 7
    assert db.query(AuditLog).filter(AuditLog.action == "schedule.week.publish").count() == 1


def test_render_failure_keeps_week_locked(db, make, notifier):
    week, _, _ = _crawl_week(make)
    broken = FakeRenderer(fail=True)

    with pytest.raises(ExternalServiceError):
        lifecycle.publish_week(db, week.id, None, broken, notifier)

    db.refresh(week)
    assert week.state == "locked"
    assert db.query(Export).count() == 0
    assert notifier.sent == []


def test_failed_notification_does_not_undo_publish(db, make, renderer):
    week, anna, ben = _crawl_week(make)
    flaky = RecordingNotifier(fail_for={anna.id})

    out = lifecycle.publish_week(db, week.id, None, renderer, flaky)

    db.refresh(week)
    assert week.state == "published"
    assert out["notified"] == 1
    assert flaky.keys_for(ben.id) == ["assignment_published"]


def test_publish_twice_is_rejected(db, make, renderer, notifier):
    week, _, _ = _crawl_week(make)
    lifecycle.publish_week(db, week.id, None, renderer, notifier)

    with pytest.raises(ConflictError) as exc:
        lifecycle.publish_week(db, week.id, None, renderer, notifier)
    assert exc.value.detail == "Week already published."
    assert len(renderer.calls) == 1


def test_published_week_is_frozen_until_reopened(db, make, renderer, notifier):
    week, anna, _ = _crawl_week(make)
    lifecycle.publish_week(db, week.id, None, renderer, notifier)
    row = db.query(ShiftAssignment).filter(ShiftAssignment.user_id == anna.id).one()

    with pytest.raises(ConflictError):
        delete_assignment(db, row.id, actor_id=None)

    reopened = lifecycle.reopen_week(db, week.id, actor_id=None)
    assert reopened.state == "collecting"
    assert lifecycle.list_exports(db, week.id) == []
    assert db.query(ShiftAssignment).count() == 2

    delete_assignment(db, row.id, actor_id=None)
    assert db.query(ShiftAssignment).count() == 1


def test_reopen_only_from_published(db, make):
    week = make.week(state="locked")
    with pytest.raises(ConflictError):
        lifecycle.reopen_week(db, week.id, actor_id=None)


def test_week_summary_totals(db, make):
    week = make.week()
    vol = make.user("Vera")
    for offset in range(5):
        make.assign(make.instance(week, offset), vol)
    make.instance(week, 6)

    summary = lifecycle.get_week_summary(db, week.id)

    assert summary["week"]["label"] == "2025-W10"
    assert summary["week"]["state"] == "collecting"
    assert summary["totals"] == {
        "shift_instances": 6,
        "assignments": 5,
        "volunteers_with_too_many": 1,
        "pending_swaps": 0,
    }
    assert summary["violations"][0]["severity"] == "error"


def test_generate_defaults_to_next_week(db, monkeypatch):
    monkeypatch.setattr(lifecycle, "parse_week_token", lambda token: lifecycle.next_week(local(2025, 3, 1)))
    result = lifecycle.generate_week(db, None, actor_id=None)
    assert result.week.label == "2025-W10"
    assert result.week.tz == "Europe/Warsaw"


# ---------- Jobs ----------

def test_generate_job_creates_next_week(db):
    result = lifecycle.generate_next_week(db, now=local(2025, 3, 3, 0))
    assert result.week.label == "2025-W11"
    assert result.created is True
    assert db.query(ScheduleWeek).count() == 1


def test_reminders_go_to_staff_without_availability(db, make, notifier):
    week = make.week()
    done = make.user("Done")
    todo = make.user("Todo")
    make.user("Gone", active=False)
    make.user("Guest", profile=False)
    make.available(done, week, 0)

    sent = lifecycle.send_availability_reminder(db, "remind-first", notifier, now=local(2025, 3, 1, 18))

    assert sent == 1
    assert notifier.sent == [
        (todo.id, "availability_reminder_first", {"week_label": "2025-W10", "deadline": "Sun 02.03 18:00"})
    ]


def test_reminders_skip_weeks_that_are_not_collecting(db, make, notifier):
    make.week(state="locked")
    make.user("Todo")
    assert lifecycle.send_availability_reminder(db, "remind-final", notifier, now=local(2025, 3, 2, 12)) == 0
    assert lifecycle.send_availability_reminder(db, "remind-final", notifier, now=local(2025, 6, 2, 12)) == 0
    assert notifier.sent == []


def test_auto_lock_locks_and_tells_managers(db, make, notifier):
    week = make.week()
    owner = make.user("Olga", staff_type="other", role_key="owner")
    make.user("Vera")

    locked = lifecycle.auto_lock_collecting_week(db, notifier, now=local(2025, 3, 2, 18))

    assert locked.id == week.id
    db.refresh(week)
    assert week.state == "locked"
    assert notifier.sent == [(owner.id, "submissions_locked", {"week_label": "2025-W10"})]
    assert lifecycle.auto_lock_collecting_week(db, notifier, now=local(2025, 3, 2, 18)) is None

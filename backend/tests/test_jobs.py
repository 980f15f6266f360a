import pytest
from sqlalchemy.orm import sessionmaker

from shiftdesk.models import ScheduleWeek, ShiftTemplate
from shiftdesk.scripts import run_schedule_job


@pytest.fixture
def job_sessions(engine, monkeypatch):
    monkeypatch.setattr(run_schedule_job, "SessionLocal", sessionmaker(bind=engine, autoflush=False))


def test_generate_job_is_idempotent(db, job_sessions):
    first = run_schedule_job.run("generate", run_schedule_job.DryRunNotifier())
    second = run_schedule_job.run("generate", run_schedule_job.DryRunNotifier())

    assert "created=True" in first
    assert "created=False" in second
    assert db.query(ScheduleWeek).count() == 1


def test_auto_lock_job_without_a_week(job_sessions):
    assert run_schedule_job.run("auto-lock", run_schedule_job.DryRunNotifier()) == "locked=None"


def test_print_cron(capsys):
    assert run_schedule_job.main(["--print-cron"]) == 0
    out = capsys.readouterr().out.splitlines()
    assert "0 18 * * 0  run_schedule_job.py auto-lock" in out
    assert "0 0 * * 1  run_schedule_job.py generate" in out


def test_unknown_job_is_rejected():
    with pytest.raises(SystemExit):
        run_schedule_job.main(["tidy-up"])


def test_seed_job_fills_an_empty_catalog(db, job_sessions):
    assert run_schedule_job.run("seed", run_schedule_job.DryRunNotifier()) == "templates_created=14"
    assert run_schedule_job.run("seed", run_schedule_job.DryRunNotifier()) == "templates_created=0"
    assert db.query(ShiftTemplate).count() == 14

"""Shared fixtures: an in-memory database, object factories, fake collaborators."""

import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SCHED_TZ", "Europe/Warsaw")

from datetime import date, datetime, time, timedelta  # noqa: E402
from zoneinfo import ZoneInfo  # noqa: E402

import pytest  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from shiftdesk.core.db import Base  # noqa: E402
from shiftdesk.core.errors import ExternalServiceError  # noqa: E402
from shiftdesk.core.weeks import resolve_week_start  # noqa: E402
from shiftdesk.models import (  # noqa: E402
    Availability,
    ScheduleWeek,
    ShiftAssignment,
    ShiftInstance,
    ShiftRole,
    ShiftType,
    StaffProfile,
    User,
    UserShiftRole,
)
from shiftdesk.services.exports import ExportFile  # noqa: E402

WARSAW = ZoneInfo("Europe/Warsaw")


def t(value: str) -> time:
    hour, minute = value.split(":")
    return time(int(hour), int(minute))


def local(year, month, day, hour=12) -> datetime:
    return datetime(year, month, day, hour, tzinfo=WARSAW)


@pytest.fixture
def engine():
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def db(engine):
    session = sessionmaker(bind=engine, autoflush=False, autocommit=False)()
    yield session
    session.close()


class Factory:
    def __init__(self, db):
        self.db = db
        self._tg = 1000

    def _save(self, obj):
        self.db.add(obj)
        self.db.commit()
        self.db.refresh(obj)
        return obj

    def shift_type(self, key="PUB_CRAWL", name=None) -> ShiftType:
        existing = self.db.query(ShiftType).filter(ShiftType.key == key).one_or_none()
        if existing is not None:
            return existing
        return self._save(ShiftType(key=key, name=name or key.replace("_", " ").title()))

    def user(
        self,
        name,
        *,
        staff_type="volunteer",
        lives_in_accom=True,
        active=True,
        role_key="staff",
        profile=True,
    ) -> User:
        self._tg += 1
        user = User(full_name=name, short_name=name, role_key=role_key, tg_user_id=self._tg)
        if profile:
            user.staff_profile = StaffProfile(staff_type=staff_type, lives_in_accom=lives_in_accom, active=active)
        return self._save(user)

    def week(self, year=2025, iso_week=10, state="collecting") -> ScheduleWeek:
        return self._save(ScheduleWeek(year=year, iso_week=iso_week, tz="Europe/Warsaw", state=state))

    def day(self, week: ScheduleWeek, offset: int) -> date:
        return resolve_week_start(week.year, week.iso_week) + timedelta(days=offset)

    def instance(
        self,
        week,
        offset=0,
        *,
        start="20:00",
        end=None,
        shift_type=None,
        roles=None,
        capacity=None,
        template=None,
    ) -> ShiftInstance:
        st = shift_type or self.shift_type("PROMOTION")
        return self._save(
            ShiftInstance(
                schedule_week_id=week.id,
                shift_type_id=st.id,
                shift_template_id=template.id if template is not None else None,
                date=self.day(week, offset),
                time_start=t(start),
                time_end=t(end) if end else None,
                capacity=capacity,
                required_roles=roles,
                meta={},
            )
        )

    def assign(self, instance, user, role="Staff", shift_role_id=None) -> ShiftAssignment:
        return self._save(
            ShiftAssignment(
                shift_instance_id=instance.id,
                user_id=user.id,
                role_in_shift=role,
                shift_role_id=shift_role_id,
            )
        )

    def available(self, user, week, offset, *, status="available", shift_type=None, start=None, end=None):
        return self._save(
            Availability(
                user_id=user.id,
                schedule_week_id=week.id,
                day=self.day(week, offset),
                status=status,
                shift_type_id=shift_type.id if shift_type is not None else None,
                start_time=t(start) if start else None,
                end_time=t(end) if end else None,
            )
        )

    def role(self, name) -> ShiftRole:
        return self._save(ShiftRole(name=name, slug=name.lower()))

    def allow(self, user, role):
        return self._save(UserShiftRole(user_id=user.id, shift_role_id=role.id))


@pytest.fixture
def make(db):
    return Factory(db)


class RecordingNotifier:
    def __init__(self, fail_for=()):
        self.sent = []
        self.fail_for = set(fail_for)

    def send(self, user, template_key, payload):
        if user.id in self.fail_for:
            raise RuntimeError("delivery failed")
        self.sent.append((user.id, template_key, payload))
        return True

    def keys_for(self, user_id):
        return [key for uid, key, _ in self.sent if uid == user_id]


class FakeRenderer:
    def __init__(self, fail=False):
        self.fail = fail
        self.calls = []

    def render(self, week):
        self.calls.append(week.id)
        if self.fail:
            raise ExternalServiceError("Export rendering failed: service down")
        return [
            ExportFile(file_id=f"{week.label}-pdf", url=f"https://files.example/{week.label}.pdf"),
            ExportFile(file_id=f"{week.label}-png", url=f"https://files.example/{week.label}.png"),
        ]


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def renderer():
    return FakeRenderer()

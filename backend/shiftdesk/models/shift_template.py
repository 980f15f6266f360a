from __future__ import annotations

from sqlalchemy import JSON, Boolean, ForeignKey, Integer, String, Time
from sqlalchemy.orm import Mapped, mapped_column, relationship

from shiftdesk.core.db import Base

ALL_WEEKDAYS = (1, 2, 3, 4, 5, 6, 7)


class ShiftTemplate(Base):
    """Recurring blueprint that spawns shift instances for each week.

    Notes:
    - default_roles is a list of {"shift_role_id", "role", "required"} dicts.
    - repeat_on holds ISO weekdays (1=Mon..7=Sun); null means every day.
    """

    __tablename__ = "shift_templates"

    id: Mapped[int] = mapped_column(primary_key=True)

    shift_type_id: Mapped[int] = mapped_column(ForeignKey("shift_types.id"), index=True)
    name: Mapped[str] = mapped_column(String(160), unique=True, nullable=False)

    default_start_time: Mapped[object | None] = mapped_column(Time, nullable=True)
    default_end_time: Mapped[object | None] = mapped_column(Time, nullable=True)
    default_capacity: Mapped[int | None] = mapped_column(Integer, nullable=True)
    default_roles: Mapped[list | None] = mapped_column(JSON, nullable=True)
    default_meta: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    repeat_on: Mapped[list | None] = mapped_column(JSON, nullable=True)

    requires_leader: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    # A filled "manager" slot also covers the leader/guide slots of the same instance.
    manager_covers_team: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    shift_type = relationship("ShiftType")

    @property
    def active_weekdays(self) -> set[int]:
        days = {int(d) for d in (self.repeat_on or []) if 1 <= int(d) <= 7}
        return days or set(ALL_WEEKDAYS)

from __future__ import annotations

from sqlalchemy import JSON, Date, ForeignKey, Integer, Time
from sqlalchemy.orm import Mapped, mapped_column, relationship

from shiftdesk.core.db import Base
from shiftdesk.core.weeks import ShiftRange, shift_range


class ShiftInstance(Base):
    """A concrete shift on a specific date, spawned from a template or created by hand."""

    __tablename__ = "shift_instances"

    id: Mapped[int] = mapped_column(primary_key=True)

    schedule_week_id: Mapped[int] = mapped_column(ForeignKey("schedule_weeks.id"), index=True)
    shift_type_id: Mapped[int] = mapped_column(ForeignKey("shift_types.id"), index=True)
    # null for manual or legacy instances
    shift_template_id: Mapped[int | None] = mapped_column(ForeignKey("shift_templates.id"), index=True, nullable=True)

    date: Mapped[object] = mapped_column(Date, nullable=False, index=True)
    time_start: Mapped[object] = mapped_column(Time, nullable=False)
    time_end: Mapped[object | None] = mapped_column(Time, nullable=True)

    capacity: Mapped[int | None] = mapped_column(Integer, nullable=True)
    required_roles: Mapped[list | None] = mapped_column(JSON, nullable=True)
    meta: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    schedule_week = relationship("ScheduleWeek", back_populates="instances")
    shift_type = relationship("ShiftType")
    template = relationship("ShiftTemplate")
    assignments = relationship(
        "ShiftAssignment",
        back_populates="shift_instance",
        cascade="all, delete-orphan",
        order_by="ShiftAssignment.id",
    )

    @property
    def time_range(self) -> ShiftRange:
        return shift_range(self.date, self.time_start, self.time_end)

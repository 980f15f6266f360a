from __future__ import annotations

from sqlalchemy import Date, ForeignKey, String, Text, Time
from sqlalchemy.orm import Mapped, mapped_column

from shiftdesk.core.db import Base


class Availability(Base):
    """Availability submitted by a staff member for one day of a week.

    Optionally narrowed to a shift type and/or a time window.
    """

    __tablename__ = "availabilities"

    id: Mapped[int] = mapped_column(primary_key=True)

    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), index=True)
    schedule_week_id: Mapped[int] = mapped_column(ForeignKey("schedule_weeks.id"), index=True)

    day: Mapped[object] = mapped_column(Date, nullable=False)
    start_time: Mapped[object | None] = mapped_column(Time, nullable=True)
    end_time: Mapped[object | None] = mapped_column(Time, nullable=True)
    shift_type_id: Mapped[int | None] = mapped_column(ForeignKey("shift_types.id"), nullable=True)

    status: Mapped[str] = mapped_column(String(20), nullable=False)  # available | unavailable
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

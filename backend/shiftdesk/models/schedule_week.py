from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from shiftdesk.core.db import Base
from shiftdesk.core.weeks import format_week_token, utcnow


class ScheduleWeek(Base):
    """One ISO week of scheduling; state moves collecting -> locked -> published."""

    __tablename__ = "schedule_weeks"
    __table_args__ = (
        UniqueConstraint("year", "iso_week", name="uq_schedule_weeks_year_week"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    iso_week: Mapped[int] = mapped_column(Integer, nullable=False)
    tz: Mapped[str] = mapped_column(String(64), nullable=False)
    state: Mapped[str] = mapped_column(String(20), nullable=False, default="collecting")

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)

    instances = relationship("ShiftInstance", back_populates="schedule_week")
    exports = relationship("Export", back_populates="schedule_week", cascade="all, delete-orphan")

    @property
    def label(self) -> str:
        return format_week_token(self.year, self.iso_week)

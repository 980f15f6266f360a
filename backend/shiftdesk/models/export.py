from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from shiftdesk.core.db import Base
from shiftdesk.core.weeks import utcnow


class Export(Base):
    """Rendered schedule file (PDF/PNG) archived for a published week."""

    __tablename__ = "schedule_exports"

    id: Mapped[int] = mapped_column(primary_key=True)
    schedule_week_id: Mapped[int] = mapped_column(ForeignKey("schedule_weeks.id"), index=True)
    file_id: Mapped[str] = mapped_column(String(255), nullable=False)
    url: Mapped[str] = mapped_column(String(1000), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)

    schedule_week = relationship("ScheduleWeek", back_populates="exports")

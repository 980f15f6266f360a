from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from shiftdesk.core.db import Base
from shiftdesk.core.weeks import utcnow


class ShiftAssignment(Base):
    """One staff member working one shift instance in a given role."""

    __tablename__ = "shift_assignments"

    id: Mapped[int] = mapped_column(primary_key=True)

    shift_instance_id: Mapped[int] = mapped_column(ForeignKey("shift_instances.id"), index=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), index=True)

    role_in_shift: Mapped[str] = mapped_column(String(80), nullable=False)
    shift_role_id: Mapped[int | None] = mapped_column(ForeignKey("shift_roles.id"), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)

    shift_instance = relationship("ShiftInstance", back_populates="assignments")
    assignee = relationship("User")
    shift_role = relationship("ShiftRole")

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from shiftdesk.core.db import Base
from shiftdesk.core.weeks import utcnow


class SwapRequest(Base):
    """Peer request to trade two assignments, approved by the partner and then a manager."""

    __tablename__ = "swap_requests"

    id: Mapped[int] = mapped_column(primary_key=True)

    from_assignment_id: Mapped[int] = mapped_column(ForeignKey("shift_assignments.id", ondelete="CASCADE"), index=True)
    to_assignment_id: Mapped[int] = mapped_column(ForeignKey("shift_assignments.id", ondelete="CASCADE"), index=True)

    requester_id: Mapped[int] = mapped_column(ForeignKey("users.id"), index=True)
    partner_id: Mapped[int] = mapped_column(ForeignKey("users.id"), index=True)
    manager_id: Mapped[int | None] = mapped_column(ForeignKey("users.id"), nullable=True)

    # pending_partner | pending_manager | approved | denied | canceled
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending_partner")
    decision_reason: Mapped[str | None] = mapped_column(String(500), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)

    from_assignment = relationship("ShiftAssignment", foreign_keys=[from_assignment_id])
    to_assignment = relationship("ShiftAssignment", foreign_keys=[to_assignment_id])
    requester = relationship("User", foreign_keys=[requester_id])
    partner = relationship("User", foreign_keys=[partner_id])
    manager = relationship("User", foreign_keys=[manager_id])

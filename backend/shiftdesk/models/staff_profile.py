from __future__ import annotations

from sqlalchemy import Boolean, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from shiftdesk.core.db import Base
from shiftdesk.models.enums import StaffType


class StaffProfile(Base):
    """Staff classification that drives day limits and auto-assignment."""

    __tablename__ = "staff_profiles"

    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), primary_key=True)

    staff_type: Mapped[str] = mapped_column(String(20), nullable=False)  # volunteer | long_term | other
    lives_in_accom: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    user = relationship("User", back_populates="staff_profile")

    @property
    def is_capped_volunteer(self) -> bool:
        """Active volunteer living in our accommodation (4-day weekly cap applies)."""
        return bool(self.active and self.lives_in_accom and self.staff_type == StaffType.VOLUNTEER.value)

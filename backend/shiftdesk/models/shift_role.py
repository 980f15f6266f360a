from __future__ import annotations

from sqlalchemy import ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from shiftdesk.core.db import Base


class ShiftRole(Base):
    """Named role inside a shift (Manager, Leader, Guide, ...)."""

    __tablename__ = "shift_roles"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(80), unique=True, nullable=False)
    slug: Mapped[str] = mapped_column(String(80), unique=True, nullable=False)


class UserShiftRole(Base):
    """A user is allowed to fill slots that ask for this specific role."""

    __tablename__ = "user_shift_roles"
    __table_args__ = (
        UniqueConstraint("user_id", "shift_role_id", name="uq_user_shift_role"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), index=True)
    shift_role_id: Mapped[int] = mapped_column(ForeignKey("shift_roles.id"), index=True)

    shift_role = relationship("ShiftRole")

from sqlalchemy import BigInteger, Boolean, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from shiftdesk.core.db import Base


class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(primary_key=True)

    full_name: Mapped[str | None] = mapped_column(String(128), nullable=True)
    short_name: Mapped[str | None] = mapped_column(String(64), nullable=True)  # for UI and messages
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # Telegram chat used for outbound notifications (optional)
    tg_user_id: Mapped[int | None] = mapped_column(BigInteger, unique=True, nullable=True)

    # stored as string, validated with UserRole in code
    role_key: Mapped[str] = mapped_column(String(32), default="staff", nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    staff_profile = relationship("StaffProfile", back_populates="user", uselist=False)

    @property
    def display_name(self) -> str:
        return self.short_name or self.full_name or f"User {self.id}"

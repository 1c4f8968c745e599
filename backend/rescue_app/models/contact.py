from sqlalchemy import Boolean, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from rescue_app.db.base import Base, IntegerPrimaryKeyMixin, TimestampMixin


class EmergencyContact(Base, IntegerPrimaryKeyMixin, TimestampMixin):
    __tablename__ = "emergency_contacts"

    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    relationship: Mapped[str] = mapped_column(String(64), nullable=False)
    phone_number: Mapped[str] = mapped_column(String(32), nullable=False)
    alternate_phone: Mapped[str | None] = mapped_column(String(32), nullable=True)
    email: Mapped[str | None] = mapped_column(String(320), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    # At most one primary contact per user.
    is_primary: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

import enum

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from rescue_app.db.base import Base, IntegerPrimaryKeyMixin, TimestampMixin


class UserRole(str, enum.Enum):
    USER = "user"
    ADMIN = "admin"
    DISPATCHER = "dispatcher"
    RESCUER = "rescuer"


class User(Base, IntegerPrimaryKeyMixin, TimestampMixin):
    __tablename__ = "users"

    email: Mapped[str] = mapped_column(String(320), nullable=False, unique=True, index=True)
    first_name: Mapped[str | None] = mapped_column(String(128), nullable=True)
    last_name: Mapped[str | None] = mapped_column(String(128), nullable=True)
    phone_number: Mapped[str | None] = mapped_column(String(32), nullable=True)
    role: Mapped[str] = mapped_column(String(32), nullable=False, default=UserRole.USER.value)

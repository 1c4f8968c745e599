import enum

from sqlalchemy import JSON, Enum, Float, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from rescue_app.db.base import Base, IntegerPrimaryKeyMixin, TimestampMixin


class VehicleStatus(str, enum.Enum):
    AVAILABLE = "available"
    ASSIGNED = "assigned"
    RESPONDING = "responding"
    MAINTENANCE = "maintenance"
    OUT_OF_SERVICE = "out_of_service"


# Vehicles in these states cannot take a new assignment.
UNASSIGNABLE_VEHICLE_STATUSES = frozenset({VehicleStatus.MAINTENANCE, VehicleStatus.OUT_OF_SERVICE})


class Vehicle(Base, IntegerPrimaryKeyMixin, TimestampMixin):
    __tablename__ = "vehicles"

    license_plate: Mapped[str] = mapped_column(String(32), nullable=False, unique=True)
    vehicle_type: Mapped[str] = mapped_column(String(64), nullable=False)
    model: Mapped[str | None] = mapped_column(String(128), nullable=True)
    year: Mapped[int | None] = mapped_column(Integer, nullable=True)
    status: Mapped[VehicleStatus] = mapped_column(
        Enum(VehicleStatus, name="vehicle_status", values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=VehicleStatus.AVAILABLE,
    )
    current_location: Mapped[str | None] = mapped_column(String(512), nullable=True)
    current_latitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    current_longitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    fuel_level: Mapped[float | None] = mapped_column(Float, nullable=True)
    odometer_reading: Mapped[int | None] = mapped_column(Integer, nullable=True)
    equipment_list: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)

    def __repr__(self) -> str:
        return f"Vehicle(id={self.id}, license_plate={self.license_plate}, status={self.status.value})"


class Responder(Base, IntegerPrimaryKeyMixin, TimestampMixin):
    __tablename__ = "responders"

    first_name: Mapped[str] = mapped_column(String(128), nullable=False)
    last_name: Mapped[str] = mapped_column(String(128), nullable=False)
    phone_number: Mapped[str | None] = mapped_column(String(32), nullable=True)
    status: Mapped[str] = mapped_column(String(32), nullable=False, default="available")

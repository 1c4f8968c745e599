import enum
from datetime import datetime
from typing import ClassVar

from sqlalchemy import DateTime, Enum, Float, ForeignKey, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from rescue_app.db.base import Base, IntegerPrimaryKeyMixin, TimestampMixin
from rescue_app.models.fleet import VehicleStatus


class IncidentKind(str, enum.Enum):
    MANUAL_ALERT = "manual_alert"
    AUTO_CRASH = "auto_crash"
    SOS = "sos"


class IncidentStatus(str, enum.Enum):
    PENDING = "pending"
    RESPONDING = "responding"
    RESOLVED = "resolved"
    CANCELLED = "cancelled"


TERMINAL_STATUSES = frozenset({IncidentStatus.RESOLVED, IncidentStatus.CANCELLED})

# Self-transitions are listed so that repeating a status update is a no-op.
ALLOWED_INCIDENT_TRANSITIONS: dict[IncidentStatus, set[IncidentStatus]] = {
    IncidentStatus.PENDING: {IncidentStatus.PENDING, IncidentStatus.RESPONDING, IncidentStatus.CANCELLED},
    IncidentStatus.RESPONDING: {IncidentStatus.RESPONDING, IncidentStatus.RESOLVED, IncidentStatus.CANCELLED},
    IncidentStatus.RESOLVED: {IncidentStatus.RESOLVED},
    IncidentStatus.CANCELLED: {IncidentStatus.CANCELLED},
}

# Status the held vehicle takes when its incident enters the given status.
VEHICLE_STATUS_FOR_INCIDENT_STATUS: dict[IncidentStatus, VehicleStatus] = {
    IncidentStatus.RESPONDING: VehicleStatus.RESPONDING,
    IncidentStatus.RESOLVED: VehicleStatus.AVAILABLE,
    IncidentStatus.CANCELLED: VehicleStatus.AVAILABLE,
}


def allowed_transition_targets(from_status: IncidentStatus, *, strict: bool = True) -> set[IncidentStatus]:
    if not strict:
        return set(IncidentStatus)
    return ALLOWED_INCIDENT_TRANSITIONS.get(from_status, set())


def is_terminal(status: IncidentStatus) -> bool:
    return status in TERMINAL_STATUSES


def _enum_values(enum_cls: type[enum.Enum]) -> list[str]:
    return [member.value for member in enum_cls]


incident_status_type = Enum(IncidentStatus, name="incident_status", values_callable=_enum_values)


class AlertType(str, enum.Enum):
    MEDICAL = "medical"
    FIRE = "fire"
    ACCIDENT = "accident"
    CRIME = "crime"
    NATURAL_DISASTER = "natural_disaster"
    OTHER = "other"


class AlertSeverity(str, enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class IncidentMixin(IntegerPrimaryKeyMixin, TimestampMixin):
    kind: ClassVar[IncidentKind]
    # Column used for timeline ordering and date range filters.
    occurred_at_attr: ClassVar[str]
    # Column matched by the `type` list filter, if the kind has one.
    type_filter_attr: ClassVar[str | None] = None

    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    latitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    longitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    status: Mapped[IncidentStatus] = mapped_column(
        incident_status_type, nullable=False, default=IncidentStatus.PENDING, index=True
    )
    assigned_vehicle_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("vehicles.id", ondelete="SET NULL"), nullable=True, index=True
    )
    assigned_responder_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("responders.id", ondelete="SET NULL"), nullable=True
    )

    @property
    def occurred_at(self) -> datetime:
        return getattr(self, self.occurred_at_attr)

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}("
            f"id={self.id}, user_id={self.user_id}, status={self.status.value}, "
            f"assigned_vehicle_id={self.assigned_vehicle_id}"
            ")"
        )


class Alert(Base, IncidentMixin):
    __tablename__ = "alerts"
    kind = IncidentKind.MANUAL_ALERT
    occurred_at_attr = "reported_at"
    type_filter_attr = "alert_type"

    alert_type: Mapped[AlertType] = mapped_column(
        Enum(AlertType, name="alert_type", values_callable=_enum_values), nullable=False
    )
    severity: Mapped[AlertSeverity] = mapped_column(
        Enum(AlertSeverity, name="alert_severity", values_callable=_enum_values), nullable=False
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    location: Mapped[str] = mapped_column(String(512), nullable=False)
    image_url: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    reported_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False, index=True
    )


class CrashEvent(Base, IncidentMixin):
    __tablename__ = "crash_events"
    kind = IncidentKind.AUTO_CRASH
    occurred_at_attr = "triggered_at"

    event_type: Mapped[str] = mapped_column(String(32), nullable=False, default="AUTO_CRASH")
    impact_force: Mapped[float | None] = mapped_column(Float, nullable=True)
    device_battery: Mapped[int | None] = mapped_column(Integer, nullable=True)
    network_type: Mapped[str | None] = mapped_column(String(32), nullable=True)
    triggered_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False, index=True
    )


class SosRequest(Base, IncidentMixin):
    __tablename__ = "sos_requests"
    kind = IncidentKind.SOS
    occurred_at_attr = "triggered_at"
    type_filter_attr = "type"

    type: Mapped[str] = mapped_column(String(64), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    triggered_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False, index=True
    )


Incident = Alert | CrashEvent | SosRequest

INCIDENT_MODELS: dict[IncidentKind, type[Alert] | type[CrashEvent] | type[SosRequest]] = {
    IncidentKind.MANUAL_ALERT: Alert,
    IncidentKind.AUTO_CRASH: CrashEvent,
    IncidentKind.SOS: SosRequest,
}

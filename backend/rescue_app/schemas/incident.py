from datetime import datetime
from typing import Any, ClassVar, Generic, Literal, TypeVar

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from rescue_app.models.incident import AlertSeverity, AlertType, IncidentKind, IncidentStatus


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str) and not value.strip():
        return None
    return value


class _CreateRequest(BaseModel):
    # `status` and assignment fields are silently ignored on create.
    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)


class _UpdateRequest(BaseModel):
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    # Fields that may be omitted but never explicitly cleared.
    non_nullable_fields: ClassVar[tuple[str, ...]] = ()

    @model_validator(mode="after")
    def _reject_null_required(self) -> "_UpdateRequest":
        cleared = [
            name
            for name in self.non_nullable_fields
            if name in self.model_fields_set and getattr(self, name) is None
        ]
        if cleared:
            raise ValueError(f"Fields cannot be null: {', '.join(cleared)}")
        return self


class AlertCreateRequest(_CreateRequest):
    alert_type: AlertType
    severity: AlertSeverity
    title: str = Field(min_length=1, max_length=255)
    description: str | None = None
    location: str = Field(min_length=1, max_length=512)
    latitude: float | None = Field(default=None, ge=-90, le=90)
    longitude: float | None = Field(default=None, ge=-180, le=180)
    image_url: str | None = Field(default=None, max_length=1024)

    @field_validator("description", "image_url", mode="before")
    @classmethod
    def _blank_optional(cls, v: Any) -> Any:
        return _blank_to_none(v)


class AlertUpdateRequest(_UpdateRequest):
    non_nullable_fields: ClassVar[tuple[str, ...]] = ("alert_type", "severity", "title", "location")

    alert_type: AlertType | None = None
    severity: AlertSeverity | None = None
    title: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = None
    location: str | None = Field(default=None, min_length=1, max_length=512)
    latitude: float | None = Field(default=None, ge=-90, le=90)
    longitude: float | None = Field(default=None, ge=-180, le=180)
    image_url: str | None = Field(default=None, max_length=1024)


class CrashEventCreateRequest(_CreateRequest):
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)
    impact_force: float | None = Field(default=None, ge=0)
    device_battery: int | None = Field(default=None, ge=0, le=100)
    network_type: str | None = Field(default=None, max_length=32)


class CrashEventUpdateRequest(_UpdateRequest):
    non_nullable_fields: ClassVar[tuple[str, ...]] = ("latitude", "longitude")

    latitude: float | None = Field(default=None, ge=-90, le=90)
    longitude: float | None = Field(default=None, ge=-180, le=180)
    impact_force: float | None = Field(default=None, ge=0)
    device_battery: int | None = Field(default=None, ge=0, le=100)
    network_type: str | None = Field(default=None, max_length=32)


class SosCreateRequest(_CreateRequest):
    type: str = Field(min_length=1, max_length=64)
    description: str | None = None
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)

    @field_validator("description", mode="before")
    @classmethod
    def _blank_optional(cls, v: Any) -> Any:
        return _blank_to_none(v)


class SosUpdateRequest(_UpdateRequest):
    non_nullable_fields: ClassVar[tuple[str, ...]] = ("type", "latitude", "longitude")

    type: str | None = Field(default=None, min_length=1, max_length=64)
    description: str | None = None
    latitude: float | None = Field(default=None, ge=-90, le=90)
    longitude: float | None = Field(default=None, ge=-180, le=180)


class IncidentStatusUpdateRequest(BaseModel):
    status: IncidentStatus


class IncidentAssignRequest(BaseModel):
    vehicle_id: int | None = Field(default=None, ge=1)
    responder_id: int | None = Field(default=None, ge=1)


class IncidentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    kind: IncidentKind
    user_id: int
    status: IncidentStatus
    latitude: float | None
    longitude: float | None
    assigned_vehicle_id: int | None
    assigned_responder_id: int | None
    created_at: datetime
    updated_at: datetime


class AlertResponse(IncidentResponse):
    alert_type: AlertType
    severity: AlertSeverity
    title: str
    description: str | None
    location: str
    image_url: str | None
    reported_at: datetime


class CrashEventResponse(IncidentResponse):
    event_type: str
    impact_force: float | None
    device_battery: int | None
    network_type: str | None
    triggered_at: datetime


class SosResponse(IncidentResponse):
    type: str
    description: str | None
    triggered_at: datetime


ResponseT = TypeVar("ResponseT", bound=IncidentResponse)


class IncidentListResponse(BaseModel, Generic[ResponseT]):
    items: list[ResponseT]
    total: int
    limit: int
    offset: int


class IncidentFeedEntry(BaseModel):
    source: Literal["alert", "crash"]
    id: int
    user_id: int
    status: IncidentStatus
    timestamp: datetime
    latitude: float | None
    longitude: float | None
    data: dict[str, Any]


class IncidentFeedResponse(BaseModel):
    items: list[IncidentFeedEntry]
    total: int
    limit: int
    offset: int


class IncidentDeletedResponse(BaseModel):
    message: str
    id: int
    kind: IncidentKind


CREATE_SCHEMAS: dict[IncidentKind, type[_CreateRequest]] = {
    IncidentKind.MANUAL_ALERT: AlertCreateRequest,
    IncidentKind.AUTO_CRASH: CrashEventCreateRequest,
    IncidentKind.SOS: SosCreateRequest,
}

UPDATE_SCHEMAS: dict[IncidentKind, type[_UpdateRequest]] = {
    IncidentKind.MANUAL_ALERT: AlertUpdateRequest,
    IncidentKind.AUTO_CRASH: CrashEventUpdateRequest,
    IncidentKind.SOS: SosUpdateRequest,
}

RESPONSE_SCHEMAS: dict[IncidentKind, type[IncidentResponse]] = {
    IncidentKind.MANUAL_ALERT: AlertResponse,
    IncidentKind.AUTO_CRASH: CrashEventResponse,
    IncidentKind.SOS: SosResponse,
}

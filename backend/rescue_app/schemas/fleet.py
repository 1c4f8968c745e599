from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

from rescue_app.models.fleet import VehicleStatus


class _VehicleDetails(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    model: str | None = Field(default=None, max_length=128)
    year: int | None = Field(default=None, ge=1900, le=2100)
    current_location: str | None = Field(default=None, max_length=512)
    current_latitude: float | None = Field(default=None, ge=-90, le=90)
    current_longitude: float | None = Field(default=None, ge=-180, le=180)
    fuel_level: float | None = Field(default=None, ge=0, le=100)
    odometer_reading: int | None = Field(default=None, ge=0)


class VehicleCreateRequest(_VehicleDetails):
    license_plate: str = Field(min_length=1, max_length=32)
    vehicle_type: str = Field(min_length=1, max_length=64)
    status: VehicleStatus = VehicleStatus.AVAILABLE
    equipment_list: list[str] = Field(default_factory=list)


class VehicleUpdateRequest(_VehicleDetails):
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    vehicle_type: str | None = Field(default=None, min_length=1, max_length=64)
    status: VehicleStatus | None = None
    equipment_list: list[str] | None = None


class VehicleResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    license_plate: str
    vehicle_type: str
    model: str | None
    year: int | None = None
    status: VehicleStatus
    current_location: str | None = None
    current_latitude: float | None = None
    current_longitude: float | None = None
    fuel_level: float | None = None
    odometer_reading: int | None = None
    equipment_list: list[str] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime

    @field_validator("equipment_list", mode="before")
    @classmethod
    def _default_equipment(cls, value: list[str] | None) -> list[str]:
        return value or []


class VehicleDeletedResponse(BaseModel):
    message: str
    id: int


class ResponderCreateRequest(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    first_name: str = Field(min_length=1, max_length=128)
    last_name: str = Field(min_length=1, max_length=128)
    phone_number: str | None = Field(default=None, max_length=32)
    status: str = Field(default="available", min_length=1, max_length=32)


class ResponderUpdateRequest(BaseModel):
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    first_name: str | None = Field(default=None, min_length=1, max_length=128)
    last_name: str | None = Field(default=None, min_length=1, max_length=128)
    phone_number: str | None = Field(default=None, max_length=32)
    status: str | None = Field(default=None, min_length=1, max_length=32)


class ResponderResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    first_name: str
    last_name: str
    phone_number: str | None
    status: str
    created_at: datetime
    updated_at: datetime


class ResponderDeletedResponse(BaseModel):
    message: str
    id: int

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

_REQUIRED_ON_UPDATE = ("name", "relationship", "phone_number", "is_primary")


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str) and not value.strip():
        return None
    return value


class EmergencyContactCreateRequest(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(min_length=1, max_length=255)
    relationship: str = Field(min_length=1, max_length=64)
    phone_number: str = Field(min_length=1, max_length=32)
    alternate_phone: str | None = Field(default=None, max_length=32)
    email: str | None = Field(default=None, max_length=320)
    notes: str | None = None
    is_primary: bool = False
    # Admins may file a contact on behalf of another user.
    user_id: int | None = None

    @field_validator("alternate_phone", "email", "notes", mode="before")
    @classmethod
    def _blank_optional(cls, v: Any) -> Any:
        return _blank_to_none(v)


class EmergencyContactUpdateRequest(BaseModel):
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    name: str | None = Field(default=None, min_length=1, max_length=255)
    relationship: str | None = Field(default=None, min_length=1, max_length=64)
    phone_number: str | None = Field(default=None, min_length=1, max_length=32)
    alternate_phone: str | None = Field(default=None, max_length=32)
    email: str | None = Field(default=None, max_length=320)
    notes: str | None = None
    is_primary: bool | None = None

    @field_validator("alternate_phone", "email", "notes", mode="before")
    @classmethod
    def _blank_optional(cls, v: Any) -> Any:
        return _blank_to_none(v)

    @model_validator(mode="after")
    def _reject_null_required(self) -> "EmergencyContactUpdateRequest":
        cleared = [name for name in _REQUIRED_ON_UPDATE if name in self.model_fields_set and getattr(self, name) is None]
        if cleared:
            raise ValueError(f"Fields cannot be null: {', '.join(cleared)}")
        return self


class EmergencyContactResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    name: str
    relationship: str
    phone_number: str
    alternate_phone: str | None
    email: str | None
    notes: str | None
    is_primary: bool
    created_at: datetime
    updated_at: datetime


class EmergencyContactDeletedResponse(BaseModel):
    message: str
    id: int

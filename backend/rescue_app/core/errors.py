from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(slots=True)
class AppError(Exception):
    code: str
    message: str
    status_code: int
    details: dict[str, Any] | None = None

    def to_response(self, trace_id: str | None) -> dict[str, Any]:
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "details": self.details or {},
                "trace_id": trace_id,
            }
        }


class ErrorCodes:
    VALIDATION_ERROR = "VALIDATION_ERROR"
    UNAUTHENTICATED = "UNAUTHENTICATED"
    ACCESS_DENIED = "ACCESS_DENIED"
    INCIDENT_NOT_FOUND = "INCIDENT_NOT_FOUND"
    INCIDENT_INVALID_TRANSITION = "INCIDENT_INVALID_TRANSITION"
    INCIDENT_TERMINAL = "INCIDENT_TERMINAL"
    VEHICLE_NOT_FOUND = "VEHICLE_NOT_FOUND"
    VEHICLE_ALREADY_ASSIGNED = "VEHICLE_ALREADY_ASSIGNED"
    VEHICLE_UNAVAILABLE = "VEHICLE_UNAVAILABLE"
    VEHICLE_PLATE_CONFLICT = "VEHICLE_PLATE_CONFLICT"
    VEHICLE_IN_USE = "VEHICLE_IN_USE"
    RESPONDER_NOT_FOUND = "RESPONDER_NOT_FOUND"
    CONTACT_NOT_FOUND = "CONTACT_NOT_FOUND"
    USER_NOT_FOUND = "USER_NOT_FOUND"
    STORE_FAILURE = "STORE_FAILURE"

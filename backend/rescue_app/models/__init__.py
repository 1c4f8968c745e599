from rescue_app.models.contact import EmergencyContact
from rescue_app.models.fleet import Responder, Vehicle
from rescue_app.models.incident import Alert, CrashEvent, SosRequest
from rescue_app.models.user import User

__all__ = ["User", "EmergencyContact", "Vehicle", "Responder", "Alert", "CrashEvent", "SosRequest"]

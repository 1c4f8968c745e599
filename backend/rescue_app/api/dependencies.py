import logging

from fastapi import Depends, Request
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from rescue_app.core.config import get_settings
from rescue_app.core.errors import AppError, ErrorCodes
from rescue_app.db.session import get_async_db_session
from rescue_app.schemas.auth import CurrentUser
from rescue_app.services.contact_service import EmergencyContactService
from rescue_app.services.event_publisher import EventPublisher, NoOpEventPublisher
from rescue_app.services.fleet_service import FleetService
from rescue_app.services.incident_service import IncidentService

logger = logging.getLogger(__name__)

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/login", auto_error=False)

_fallback_publisher: EventPublisher | None = None


def _unauthenticated(message: str = "Invalid credentials.") -> AppError:
    return AppError(code=ErrorCodes.UNAUTHENTICATED, message=message, status_code=401)


def decode_access_token(token: str) -> CurrentUser:
    """Resolve a bearer token into the acting user. Claims: ``sub`` (user id) and ``role``."""
    settings = get_settings()
    try:
        payload = jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
    except JWTError as exc:
        raise _unauthenticated() from exc
    subject = payload.get("sub")
    role = payload.get("role")
    if not subject or not role:
        raise _unauthenticated("Token is missing required claims.")
    try:
        return CurrentUser(user_id=int(subject), role=role)
    except (ValueError, ValidationError) as exc:
        raise _unauthenticated("Token claims are invalid.") from exc


def get_current_user(request: Request, token: str | None = Depends(oauth2_scheme)) -> CurrentUser:
    if not token:
        raise _unauthenticated("Not authenticated.")
    current = decode_access_token(token)
    request.state.user_id = current.user_id
    return current


def get_event_publisher(request: Request) -> EventPublisher:
    global _fallback_publisher
    publisher = getattr(request.app.state, "publisher", None)
    if publisher is not None:
        return publisher
    if _fallback_publisher is None:
        logger.critical(
            "event_publisher.missing: application lifespan did not install a publisher; "
            "using NoOpEventPublisher and all incident events will be dropped.",
        )
        _fallback_publisher = NoOpEventPublisher()
    return _fallback_publisher


def get_incident_service(
    db: AsyncSession = Depends(get_async_db_session),
    publisher: EventPublisher = Depends(get_event_publisher),
) -> IncidentService:
    return IncidentService(
        db=db,
        publisher=publisher,
        strict_transitions=get_settings().lifecycle_strict_transitions,
    )


def get_fleet_service(db: AsyncSession = Depends(get_async_db_session)) -> FleetService:
    return FleetService(db=db)


def get_contact_service(db: AsyncSession = Depends(get_async_db_session)) -> EmergencyContactService:
    return EmergencyContactService(db=db)

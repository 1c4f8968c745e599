from datetime import datetime
from typing import Literal

from fastapi import APIRouter, Depends, Query, status

from rescue_app.api.dependencies import get_current_user, get_incident_service
from rescue_app.core.config import get_settings
from rescue_app.models.incident import IncidentKind, IncidentStatus
from rescue_app.repositories.incident_repository import IncidentFilters
from rescue_app.schemas.auth import CurrentUser
from rescue_app.schemas.incident import (
    CREATE_SCHEMAS,
    RESPONSE_SCHEMAS,
    UPDATE_SCHEMAS,
    IncidentAssignRequest,
    IncidentDeletedResponse,
    IncidentFeedResponse,
    IncidentListResponse,
    IncidentStatusUpdateRequest,
)
from rescue_app.services.incident_service import IncidentService


def resolve_page_size(limit: int | None) -> int:
    settings = get_settings()
    if limit is None:
        return settings.default_page_size
    return min(limit, settings.max_page_size)


def build_incident_router(kind: IncidentKind, *, prefix: str, tag: str) -> APIRouter:
    """CRUD, status and assignment routes for one incident kind."""
    router = APIRouter(prefix=prefix, tags=[tag])
    create_schema = CREATE_SCHEMAS[kind]
    update_schema = UPDATE_SCHEMAS[kind]
    response_schema = RESPONSE_SCHEMAS[kind]
    list_schema = IncidentListResponse[response_schema]

    @router.get("", response_model=list_schema)
    async def list_incidents(
        status_filter: IncidentStatus | None = Query(default=None, alias="status"),
        type_filter: str | None = Query(default=None, alias="type"),
        user_id: int | None = Query(default=None, ge=1),
        date_from: datetime | None = Query(default=None),
        date_to: datetime | None = Query(default=None),
        limit: int | None = Query(default=None, ge=1),
        offset: int = Query(default=0, ge=0),
        current_user: CurrentUser = Depends(get_current_user),
        service: IncidentService = Depends(get_incident_service),
    ):
        filters = IncidentFilters(
            user_id=user_id,
            status=status_filter,
            type_value=type_filter,
            date_from=date_from,
            date_to=date_to,
        )
        return await service.list_incidents(
            kind=kind,
            actor=current_user,
            filters=filters,
            limit=resolve_page_size(limit),
            offset=offset,
        )

    @router.get("/{incident_id}", response_model=response_schema)
    async def get_incident(
        incident_id: int,
        current_user: CurrentUser = Depends(get_current_user),
        service: IncidentService = Depends(get_incident_service),
    ):
        return await service.get_incident(kind=kind, incident_id=incident_id, actor=current_user)

    @router.post("", response_model=response_schema, status_code=status.HTTP_201_CREATED)
    async def create_incident(
        payload: create_schema,
        current_user: CurrentUser = Depends(get_current_user),
        service: IncidentService = Depends(get_incident_service),
    ):
        return await service.create_incident(kind=kind, actor=current_user, payload=payload)

    @router.put("/{incident_id}", response_model=response_schema)
    async def update_incident(
        incident_id: int,
        payload: update_schema,
        current_user: CurrentUser = Depends(get_current_user),
        service: IncidentService = Depends(get_incident_service),
    ):
        return await service.update_incident(kind=kind, incident_id=incident_id, actor=current_user, payload=payload)

    @router.patch("/{incident_id}/status", response_model=response_schema)
    async def update_incident_status(
        incident_id: int,
        payload: IncidentStatusUpdateRequest,
        current_user: CurrentUser = Depends(get_current_user),
        service: IncidentService = Depends(get_incident_service),
    ):
        return await service.update_status(
            kind=kind, incident_id=incident_id, actor=current_user, new_status=payload.status
        )

    @router.patch("/{incident_id}/assign", response_model=response_schema)
    async def assign_incident(
        incident_id: int,
        payload: IncidentAssignRequest,
        current_user: CurrentUser = Depends(get_current_user),
        service: IncidentService = Depends(get_incident_service),
    ):
        return await service.assign(
            kind=kind,
            incident_id=incident_id,
            actor=current_user,
            vehicle_id=payload.vehicle_id,
            responder_id=payload.responder_id,
        )

    @router.delete("/{incident_id}", response_model=IncidentDeletedResponse)
    async def delete_incident(
        incident_id: int,
        current_user: CurrentUser = Depends(get_current_user),
        service: IncidentService = Depends(get_incident_service),
    ):
        return await service.delete_incident(kind=kind, incident_id=incident_id, actor=current_user)

    return router


alerts_router = build_incident_router(IncidentKind.MANUAL_ALERT, prefix="/alerts", tag="alerts")
crash_events_router = build_incident_router(IncidentKind.AUTO_CRASH, prefix="/crash-events", tag="crash-events")
sos_router = build_incident_router(IncidentKind.SOS, prefix="/sos", tag="sos")

feed_router = APIRouter(prefix="/incidents", tags=["incidents"])


@feed_router.get("/feed", response_model=IncidentFeedResponse)
async def incident_feed(
    source: Literal["all", "alert", "crash"] = Query(default="all", alias="type"),
    status_filter: IncidentStatus | None = Query(default=None, alias="status"),
    user_id: int | None = Query(default=None, ge=1),
    date_from: datetime | None = Query(default=None),
    date_to: datetime | None = Query(default=None),
    limit: int | None = Query(default=None, ge=1),
    offset: int = Query(default=0, ge=0),
    current_user: CurrentUser = Depends(get_current_user),
    service: IncidentService = Depends(get_incident_service),
) -> IncidentFeedResponse:
    filters = IncidentFilters(user_id=user_id, status=status_filter, date_from=date_from, date_to=date_to)
    return await service.incident_feed(
        actor=current_user,
        source=source,
        filters=filters,
        limit=resolve_page_size(limit),
        offset=offset,
    )

from fastapi import APIRouter, Depends, Query, status

from rescue_app.api.dependencies import get_current_user, get_fleet_service
from rescue_app.models.fleet import VehicleStatus
from rescue_app.schemas.auth import CurrentUser
from rescue_app.schemas.fleet import (
    ResponderCreateRequest,
    ResponderDeletedResponse,
    ResponderResponse,
    ResponderUpdateRequest,
    VehicleCreateRequest,
    VehicleDeletedResponse,
    VehicleResponse,
    VehicleUpdateRequest,
)
from rescue_app.services.fleet_service import FleetService

vehicles_router = APIRouter(prefix="/vehicles", tags=["fleet"])
responders_router = APIRouter(prefix="/responders", tags=["fleet"])


@vehicles_router.get("", response_model=list[VehicleResponse])
async def list_vehicles(
    status_filter: VehicleStatus | None = Query(default=None, alias="status"),
    current_user: CurrentUser = Depends(get_current_user),
    service: FleetService = Depends(get_fleet_service),
) -> list[VehicleResponse]:
    return await service.list_vehicles(actor=current_user, status=status_filter)


@vehicles_router.post("", response_model=VehicleResponse, status_code=status.HTTP_201_CREATED)
async def create_vehicle(
    payload: VehicleCreateRequest,
    current_user: CurrentUser = Depends(get_current_user),
    service: FleetService = Depends(get_fleet_service),
) -> VehicleResponse:
    return await service.create_vehicle(actor=current_user, payload=payload)


@vehicles_router.get("/{vehicle_id}", response_model=VehicleResponse)
async def get_vehicle(
    vehicle_id: int,
    current_user: CurrentUser = Depends(get_current_user),
    service: FleetService = Depends(get_fleet_service),
) -> VehicleResponse:
    return await service.get_vehicle(actor=current_user, vehicle_id=vehicle_id)


@vehicles_router.patch("/{vehicle_id}", response_model=VehicleResponse)
async def update_vehicle(
    vehicle_id: int,
    payload: VehicleUpdateRequest,
    current_user: CurrentUser = Depends(get_current_user),
    service: FleetService = Depends(get_fleet_service),
) -> VehicleResponse:
    return await service.update_vehicle(actor=current_user, vehicle_id=vehicle_id, payload=payload)


@vehicles_router.delete("/{vehicle_id}", response_model=VehicleDeletedResponse)
async def delete_vehicle(
    vehicle_id: int,
    current_user: CurrentUser = Depends(get_current_user),
    service: FleetService = Depends(get_fleet_service),
) -> VehicleDeletedResponse:
    return await service.delete_vehicle(actor=current_user, vehicle_id=vehicle_id)


@responders_router.get("", response_model=list[ResponderResponse])
async def list_responders(
    current_user: CurrentUser = Depends(get_current_user),
    service: FleetService = Depends(get_fleet_service),
) -> list[ResponderResponse]:
    return await service.list_responders(actor=current_user)


@responders_router.post("", response_model=ResponderResponse, status_code=status.HTTP_201_CREATED)
async def create_responder(
    payload: ResponderCreateRequest,
    current_user: CurrentUser = Depends(get_current_user),
    service: FleetService = Depends(get_fleet_service),
) -> ResponderResponse:
    return await service.create_responder(actor=current_user, payload=payload)


@responders_router.get("/{responder_id}", response_model=ResponderResponse)
async def get_responder(
    responder_id: int,
    current_user: CurrentUser = Depends(get_current_user),
    service: FleetService = Depends(get_fleet_service),
) -> ResponderResponse:
    return await service.get_responder(actor=current_user, responder_id=responder_id)


@responders_router.put("/{responder_id}", response_model=ResponderResponse)
async def update_responder(
    responder_id: int,
    payload: ResponderUpdateRequest,
    current_user: CurrentUser = Depends(get_current_user),
    service: FleetService = Depends(get_fleet_service),
) -> ResponderResponse:
    return await service.update_responder(actor=current_user, responder_id=responder_id, payload=payload)


@responders_router.delete("/{responder_id}", response_model=ResponderDeletedResponse)
async def delete_responder(
    responder_id: int,
    current_user: CurrentUser = Depends(get_current_user),
    service: FleetService = Depends(get_fleet_service),
) -> ResponderDeletedResponse:
    return await service.delete_responder(actor=current_user, responder_id=responder_id)

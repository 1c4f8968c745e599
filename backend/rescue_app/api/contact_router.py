from fastapi import APIRouter, Depends, Query, status

from rescue_app.api.dependencies import get_contact_service, get_current_user
from rescue_app.schemas.auth import CurrentUser
from rescue_app.schemas.contact import (
    EmergencyContactCreateRequest,
    EmergencyContactDeletedResponse,
    EmergencyContactResponse,
    EmergencyContactUpdateRequest,
)
from rescue_app.services.contact_service import EmergencyContactService

router = APIRouter(prefix="/emergency-contacts", tags=["emergency-contacts"])


@router.get("", response_model=list[EmergencyContactResponse])
async def list_contacts(
    user_id: int | None = Query(default=None, alias="userId"),
    current_user: CurrentUser = Depends(get_current_user),
    service: EmergencyContactService = Depends(get_contact_service),
) -> list[EmergencyContactResponse]:
    return await service.list_contacts(actor=current_user, user_id=user_id)


@router.post("", response_model=EmergencyContactResponse, status_code=status.HTTP_201_CREATED)
async def create_contact(
    payload: EmergencyContactCreateRequest,
    current_user: CurrentUser = Depends(get_current_user),
    service: EmergencyContactService = Depends(get_contact_service),
) -> EmergencyContactResponse:
    return await service.create_contact(actor=current_user, payload=payload)


@router.get("/{contact_id}", response_model=EmergencyContactResponse)
async def get_contact(
    contact_id: int,
    current_user: CurrentUser = Depends(get_current_user),
    service: EmergencyContactService = Depends(get_contact_service),
) -> EmergencyContactResponse:
    return await service.get_contact(actor=current_user, contact_id=contact_id)


@router.put("/{contact_id}", response_model=EmergencyContactResponse)
async def update_contact(
    contact_id: int,
    payload: EmergencyContactUpdateRequest,
    current_user: CurrentUser = Depends(get_current_user),
    service: EmergencyContactService = Depends(get_contact_service),
) -> EmergencyContactResponse:
    return await service.update_contact(actor=current_user, contact_id=contact_id, payload=payload)


@router.delete("/{contact_id}", response_model=EmergencyContactDeletedResponse)
async def delete_contact(
    contact_id: int,
    current_user: CurrentUser = Depends(get_current_user),
    service: EmergencyContactService = Depends(get_contact_service),
) -> EmergencyContactDeletedResponse:
    return await service.delete_contact(actor=current_user, contact_id=contact_id)

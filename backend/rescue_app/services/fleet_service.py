import logging
from datetime import UTC, datetime
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from rescue_app.core.errors import AppError, ErrorCodes
from rescue_app.db.transaction import store_transaction
from rescue_app.models.fleet import Responder, Vehicle, VehicleStatus
from rescue_app.rbac.policy import Action, enforce
from rescue_app.repositories.fleet_repository import ResponderRepository, VehicleRepository
from rescue_app.repositories.incident_repository import IncidentRepository
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

logger = logging.getLogger(__name__)

# A null in an update payload leaves these columns unchanged.
_KEEP_WHEN_NULL = frozenset({"status", "vehicle_type", "equipment_list", "first_name", "last_name"})


class FleetService:
    def __init__(self, db: AsyncSession) -> None:
        self.db = db
        self.vehicles = VehicleRepository(db)
        self.responders = ResponderRepository(db)
        self.incidents = IncidentRepository(db)

    async def create_vehicle(self, *, actor: CurrentUser, payload: VehicleCreateRequest) -> VehicleResponse:
        enforce(actor.role, Action.MANAGE_FLEET)
        conflict = AppError(
            code=ErrorCodes.VEHICLE_PLATE_CONFLICT,
            message="A vehicle with this license plate already exists.",
            status_code=409,
            details={"license_plate": payload.license_plate},
        )
        async with self._transaction("create_vehicle", on_conflict=conflict):
            created = await self.vehicles.create(vehicle=Vehicle(**payload.model_dump()))
        logger.info("fleet.vehicle.created", extra={"vehicle_id": created.id, "actor_id": actor.user_id})
        return VehicleResponse.model_validate(created)

    async def list_vehicles(self, *, actor: CurrentUser, status: VehicleStatus | None = None) -> list[VehicleResponse]:
        enforce(actor.role, Action.VIEW_ALL)
        async with self._transaction("list_vehicles", commit=False):
            vehicles = await self.vehicles.list(status=status)
        return [VehicleResponse.model_validate(v) for v in vehicles]

    async def get_vehicle(self, *, actor: CurrentUser, vehicle_id: int) -> VehicleResponse:
        enforce(actor.role, Action.VIEW_ALL)
        async with self._transaction("get_vehicle", commit=False, vehicle_id=vehicle_id):
            vehicle = await self._require_vehicle(vehicle_id=vehicle_id)
        return VehicleResponse.model_validate(vehicle)

    async def update_vehicle(
        self, *, actor: CurrentUser, vehicle_id: int, payload: VehicleUpdateRequest
    ) -> VehicleResponse:
        enforce(actor.role, Action.MANAGE_FLEET)
        async with self._transaction("update_vehicle", vehicle_id=vehicle_id):
            vehicle = await self._require_vehicle(vehicle_id=vehicle_id, for_update=True)
            previous_status = vehicle.status
            _apply_changes(vehicle, payload.model_dump(exclude_unset=True))
            vehicle.updated_at = datetime.now(UTC)
            updated = await self.vehicles.save(vehicle=vehicle)
        if updated.status != previous_status:
            logger.info(
                "fleet.vehicle.status_corrected",
                extra={
                    "vehicle_id": vehicle_id,
                    "from_status": previous_status.value,
                    "to_status": updated.status.value,
                    "actor_id": actor.user_id,
                },
            )
        return VehicleResponse.model_validate(updated)

    async def delete_vehicle(self, *, actor: CurrentUser, vehicle_id: int) -> VehicleDeletedResponse:
        enforce(actor.role, Action.DELETE_FLEET)
        async with self._transaction("delete_vehicle", vehicle_id=vehicle_id):
            vehicle = await self._require_vehicle(vehicle_id=vehicle_id, for_update=True)
            holder = await self.incidents.find_active_holder(vehicle_id=vehicle_id)
            if holder is not None:
                raise AppError(
                    code=ErrorCodes.VEHICLE_IN_USE,
                    message="Vehicle is held by an active incident and cannot be deleted.",
                    status_code=409,
                    details={"vehicle_id": vehicle_id, "holder_kind": holder.kind.value, "holder_id": holder.id},
                )
            await self.vehicles.delete(vehicle=vehicle)
        logger.info("fleet.vehicle.deleted", extra={"vehicle_id": vehicle_id, "actor_id": actor.user_id})
        return VehicleDeletedResponse(message="Vehicle deleted successfully", id=vehicle_id)

    async def create_responder(self, *, actor: CurrentUser, payload: ResponderCreateRequest) -> ResponderResponse:
        enforce(actor.role, Action.MANAGE_FLEET)
        async with self._transaction("create_responder"):
            created = await self.responders.create(responder=Responder(**payload.model_dump()))
        logger.info("fleet.responder.created", extra={"responder_id": created.id, "actor_id": actor.user_id})
        return ResponderResponse.model_validate(created)

    async def list_responders(self, *, actor: CurrentUser) -> list[ResponderResponse]:
        enforce(actor.role, Action.VIEW_ALL)
        async with self._transaction("list_responders", commit=False):
            responders = await self.responders.list()
        return [ResponderResponse.model_validate(r) for r in responders]

    async def get_responder(self, *, actor: CurrentUser, responder_id: int) -> ResponderResponse:
        enforce(actor.role, Action.VIEW_ALL)
        async with self._transaction("get_responder", commit=False, responder_id=responder_id):
            responder = await self._require_responder(responder_id=responder_id)
        return ResponderResponse.model_validate(responder)

    async def update_responder(
        self, *, actor: CurrentUser, responder_id: int, payload: ResponderUpdateRequest
    ) -> ResponderResponse:
        enforce(actor.role, Action.MANAGE_FLEET)
        async with self._transaction("update_responder", responder_id=responder_id):
            responder = await self._require_responder(responder_id=responder_id, for_update=True)
            _apply_changes(responder, payload.model_dump(exclude_unset=True))
            responder.updated_at = datetime.now(UTC)
            updated = await self.responders.save(responder=responder)
        logger.info("fleet.responder.updated", extra={"responder_id": responder_id, "actor_id": actor.user_id})
        return ResponderResponse.model_validate(updated)

    async def delete_responder(self, *, actor: CurrentUser, responder_id: int) -> ResponderDeletedResponse:
        enforce(actor.role, Action.DELETE_FLEET)
        async with self._transaction("delete_responder", responder_id=responder_id):
            responder = await self._require_responder(responder_id=responder_id, for_update=True)
            await self.responders.delete(responder=responder)
        logger.info("fleet.responder.deleted", extra={"responder_id": responder_id, "actor_id": actor.user_id})
        return ResponderDeletedResponse(message="Responder deleted", id=responder_id)

    async def _require_vehicle(self, *, vehicle_id: int, for_update: bool = False) -> Vehicle:
        vehicle = await self.vehicles.get_by_id(vehicle_id=vehicle_id, for_update=for_update)
        if vehicle is None:
            raise AppError(
                code=ErrorCodes.VEHICLE_NOT_FOUND,
                message="Vehicle not found.",
                status_code=404,
                details={"vehicle_id": vehicle_id},
            )
        return vehicle

    async def _require_responder(self, *, responder_id: int, for_update: bool = False) -> Responder:
        responder = await self.responders.get_by_id(responder_id=responder_id, for_update=for_update)
        if responder is None:
            raise AppError(
                code=ErrorCodes.RESPONDER_NOT_FOUND,
                message="Responder not found.",
                status_code=404,
                details={"responder_id": responder_id},
            )
        return responder

    def _transaction(self, operation: str, *, commit: bool = True, on_conflict: AppError | None = None, **context: Any):
        return store_transaction(
            self.db, operation, scope="fleet", commit=commit, on_conflict=on_conflict, **context
        )


def _apply_changes(record: Vehicle | Responder, changes: dict[str, Any]) -> None:
    for field_name, value in changes.items():
        if value is None and field_name in _KEEP_WHEN_NULL:
            continue
        setattr(record, field_name, value)

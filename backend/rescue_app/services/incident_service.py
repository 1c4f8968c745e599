import dataclasses
import enum
import logging
from datetime import UTC, datetime
from typing import Any, Literal

from pydantic import BaseModel, ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from rescue_app.core.errors import AppError, ErrorCodes
from rescue_app.db.transaction import store_transaction
from rescue_app.models.fleet import UNASSIGNABLE_VEHICLE_STATUSES, VehicleStatus
from rescue_app.models.incident import (
    INCIDENT_MODELS,
    VEHICLE_STATUS_FOR_INCIDENT_STATUS,
    AlertType,
    CrashEvent,
    Incident,
    IncidentKind,
    IncidentStatus,
    allowed_transition_targets,
    is_terminal,
)
from rescue_app.rbac.policy import Action, can_perform, can_view, enforce
from rescue_app.repositories.fleet_repository import ResponderRepository, VehicleRepository
from rescue_app.repositories.incident_repository import IncidentFilters, IncidentRepository
from rescue_app.schemas.auth import CurrentUser
from rescue_app.schemas.incident import (
    CREATE_SCHEMAS,
    RESPONSE_SCHEMAS,
    UPDATE_SCHEMAS,
    IncidentDeletedResponse,
    IncidentFeedEntry,
    IncidentFeedResponse,
    IncidentListResponse,
    IncidentResponse,
)
from rescue_app.services.event_publisher import EventPublisher, IncidentEvents

logger = logging.getLogger(__name__)

FEED_SOURCES: dict[str, IncidentKind] = {
    "alert": IncidentKind.MANUAL_ALERT,
    "crash": IncidentKind.AUTO_CRASH,
}

# Kinds whose ``type`` filter targets an enumerated column.
TYPE_FILTER_ENUMS: dict[IncidentKind, type[enum.Enum]] = {
    IncidentKind.MANUAL_ALERT: AlertType,
}


class IncidentService:
    def __init__(self, db: AsyncSession, publisher: EventPublisher, *, strict_transitions: bool = True) -> None:
        self.db = db
        self.publisher = publisher
        self.strict_transitions = strict_transitions
        self.repository = IncidentRepository(db)
        self.vehicles = VehicleRepository(db)
        self.responders = ResponderRepository(db)

    async def create_incident(
        self,
        *,
        kind: IncidentKind,
        actor: CurrentUser,
        payload: BaseModel | dict[str, Any],
    ) -> IncidentResponse:
        enforce(actor.role, Action.CREATE)
        data = self._coerce_payload(CREATE_SCHEMAS[kind], payload)

        model = INCIDENT_MODELS[kind]
        now = datetime.now(UTC)
        fields = data.model_dump()
        fields[model.occurred_at_attr] = now
        if model is CrashEvent:
            fields["event_type"] = "AUTO_CRASH"
        incident = model(
            user_id=actor.user_id,
            status=IncidentStatus.PENDING,
            assigned_vehicle_id=None,
            assigned_responder_id=None,
            created_at=now,
            updated_at=now,
            **fields,
        )

        async with self._transaction("create_incident", kind=kind):
            created = await self.repository.create(incident=incident)

        response = self._to_response(created)
        logger.info(
            "incident.created",
            extra={"kind": kind.value, "incident_id": created.id, "reporter_id": actor.user_id},
        )
        await self.publisher.publish(IncidentEvents.NEW, response.model_dump(mode="json"))
        return response

    async def list_incidents(
        self,
        *,
        kind: IncidentKind,
        actor: CurrentUser,
        filters: IncidentFilters,
        limit: int,
        offset: int,
    ) -> IncidentListResponse:
        self._validate_type_filter(kind=kind, type_value=filters.type_value)
        scoped = self._scope_filters(actor=actor, filters=filters)
        async with self._transaction("list_incidents", commit=False, kind=kind):
            incidents, total = await self.repository.list_filtered(
                kind=kind, filters=scoped, limit=limit, offset=offset
            )
        response_cls = RESPONSE_SCHEMAS[kind]
        return IncidentListResponse[response_cls](
            items=[response_cls.model_validate(incident) for incident in incidents],
            total=total,
            limit=limit,
            offset=offset,
        )

    async def get_incident(self, *, kind: IncidentKind, incident_id: int, actor: CurrentUser) -> IncidentResponse:
        async with self._transaction("get_incident", commit=False, kind=kind, incident_id=incident_id):
            incident = await self._require_incident(kind=kind, incident_id=incident_id)
        if not can_view(actor.role, incident.user_id, actor.user_id):
            raise AppError(
                code=ErrorCodes.ACCESS_DENIED,
                message="Access denied.",
                status_code=403,
                details={"incident_id": incident_id},
            )
        return self._to_response(incident)

    async def update_incident(
        self,
        *,
        kind: IncidentKind,
        incident_id: int,
        actor: CurrentUser,
        payload: BaseModel | dict[str, Any],
    ) -> IncidentResponse:
        enforce(actor.role, Action.UPDATE)
        data = self._coerce_payload(UPDATE_SCHEMAS[kind], payload)

        changed_fields: set[str] = set()
        async with self._transaction("update_incident", kind=kind, incident_id=incident_id):
            incident = await self._require_incident(kind=kind, incident_id=incident_id, for_update=True)
            for field_name, value in data.model_dump(exclude_unset=True).items():
                if getattr(incident, field_name) != value:
                    setattr(incident, field_name, value)
                    changed_fields.add(field_name)
            incident.updated_at = datetime.now(UTC)
            updated = await self.repository.save(incident=incident)

        response = self._to_response(updated)
        logger.info(
            "incident.updated",
            extra={
                "kind": kind.value,
                "incident_id": incident_id,
                "changed_fields": sorted(changed_fields),
                "actor_id": actor.user_id,
            },
        )
        await self.publisher.publish(IncidentEvents.UPDATED, response.model_dump(mode="json"))
        return response

    async def update_status(
        self,
        *,
        kind: IncidentKind,
        incident_id: int,
        actor: CurrentUser,
        new_status: IncidentStatus | str,
    ) -> IncidentResponse:
        target_status = self._parse_status(new_status)
        enforce(actor.role, Action.CHANGE_STATUS)

        async with self._transaction("update_status", kind=kind, incident_id=incident_id):
            incident = await self._require_incident(kind=kind, incident_id=incident_id, for_update=True)
            from_status = incident.status
            self._validate_transition(from_status=from_status, to_status=target_status)

            incident.status = target_status
            incident.updated_at = datetime.now(UTC)
            updated = await self.repository.save(incident=incident)

            vehicle_status = VEHICLE_STATUS_FOR_INCIDENT_STATUS.get(target_status)
            # A repeated terminal status leaves the vehicle alone; it may already serve another incident.
            repeated_terminal = from_status == target_status and is_terminal(target_status)
            if updated.assigned_vehicle_id is not None and vehicle_status is not None and not repeated_terminal:
                await self._sync_vehicle(
                    vehicle_id=updated.assigned_vehicle_id,
                    status=vehicle_status,
                    incident=updated,
                )

        response = self._to_response(updated)
        logger.info(
            "incident.status_changed",
            extra={
                "kind": kind.value,
                "incident_id": incident_id,
                "from_status": from_status.value,
                "to_status": target_status.value,
                "actor_id": actor.user_id,
                "actor_role": actor.role.value,
            },
        )
        await self.publisher.publish(IncidentEvents.STATUS_UPDATED, response.model_dump(mode="json"))
        return response

    async def assign(
        self,
        *,
        kind: IncidentKind,
        incident_id: int,
        actor: CurrentUser,
        vehicle_id: int | None = None,
        responder_id: int | None = None,
    ) -> IncidentResponse:
        enforce(actor.role, Action.ASSIGN)

        async with self._transaction("assign", kind=kind, incident_id=incident_id):
            incident = await self._require_incident(kind=kind, incident_id=incident_id, for_update=True)
            if is_terminal(incident.status):
                raise AppError(
                    code=ErrorCodes.INCIDENT_TERMINAL,
                    message=f"Incident is {incident.status.value} and can no longer be assigned.",
                    status_code=409,
                    details={"incident_id": incident_id, "status": incident.status.value},
                )
            if vehicle_id is not None:
                await self._check_vehicle_assignable(kind=kind, incident=incident, vehicle_id=vehicle_id)
            if responder_id is not None and await self.responders.get_by_id(responder_id=responder_id) is None:
                raise AppError(
                    code=ErrorCodes.RESPONDER_NOT_FOUND,
                    message="Responder not found.",
                    status_code=404,
                    details={"responder_id": responder_id},
                )

            previous_vehicle_id = incident.assigned_vehicle_id
            incident.assigned_vehicle_id = vehicle_id
            incident.assigned_responder_id = responder_id
            incident.updated_at = datetime.now(UTC)
            updated = await self.repository.save(incident=incident)

            if previous_vehicle_id is not None and previous_vehicle_id != vehicle_id:
                await self._sync_vehicle(vehicle_id=previous_vehicle_id, status=VehicleStatus.AVAILABLE, incident=updated)
            if vehicle_id is not None:
                await self._sync_vehicle(
                    vehicle_id=vehicle_id,
                    status=VEHICLE_STATUS_FOR_INCIDENT_STATUS.get(updated.status, VehicleStatus.ASSIGNED),
                    incident=updated,
                )

        response = self._to_response(updated)
        logger.info(
            "incident.assigned",
            extra={
                "kind": kind.value,
                "incident_id": incident_id,
                "previous_vehicle_id": previous_vehicle_id,
                "vehicle_id": vehicle_id,
                "responder_id": responder_id,
                "actor_id": actor.user_id,
            },
        )
        await self.publisher.publish(IncidentEvents.ASSIGNED, response.model_dump(mode="json"))
        return response

    async def delete_incident(
        self, *, kind: IncidentKind, incident_id: int, actor: CurrentUser
    ) -> IncidentDeletedResponse:
        enforce(actor.role, Action.DELETE)

        async with self._transaction("delete_incident", kind=kind, incident_id=incident_id):
            incident = await self._require_incident(kind=kind, incident_id=incident_id, for_update=True)
            held_vehicle_id = incident.assigned_vehicle_id
            held_status = incident.status
            await self.repository.delete(incident=incident)

        if held_vehicle_id is not None and not is_terminal(held_status):
            # Vehicle status is left as is; an operator corrects it through the fleet API.
            logger.warning(
                "incident.deleted_with_vehicle",
                extra={"kind": kind.value, "incident_id": incident_id, "vehicle_id": held_vehicle_id},
            )
        logger.info("incident.deleted", extra={"kind": kind.value, "incident_id": incident_id, "actor_id": actor.user_id})
        await self.publisher.publish(IncidentEvents.DELETED, {"id": incident_id, "kind": kind.value})
        return IncidentDeletedResponse(message="Incident deleted successfully", id=incident_id, kind=kind)

    async def incident_feed(
        self,
        *,
        actor: CurrentUser,
        source: Literal["all", "alert", "crash"],
        filters: IncidentFilters,
        limit: int,
        offset: int,
    ) -> IncidentFeedResponse:
        scoped = dataclasses.replace(self._scope_filters(actor=actor, filters=filters), type_value=None)
        kinds = list(FEED_SOURCES.items()) if source == "all" else [(source, FEED_SOURCES[source])]

        # Each source is already ordered newest first, so its top ``offset + limit`` rows cover the page.
        window = offset + limit
        entries: list[IncidentFeedEntry] = []
        total = 0
        async with self._transaction("incident_feed", commit=False):
            for source_name, kind in kinds:
                incidents, count = await self.repository.list_filtered(
                    kind=kind, filters=scoped, limit=window, offset=0
                )
                total += count
                for incident in incidents:
                    entries.append(
                        IncidentFeedEntry(
                            source=source_name,
                            id=incident.id,
                            user_id=incident.user_id,
                            status=incident.status,
                            timestamp=incident.occurred_at,
                            latitude=incident.latitude,
                            longitude=incident.longitude,
                            data=self._to_response(incident).model_dump(mode="json"),
                        )
                    )

        entries.sort(key=lambda entry: (entry.timestamp, entry.id), reverse=True)
        return IncidentFeedResponse(
            items=entries[offset:window],
            total=total,
            limit=limit,
            offset=offset,
        )

    def _scope_filters(self, *, actor: CurrentUser, filters: IncidentFilters) -> IncidentFilters:
        if can_perform(actor.role, Action.VIEW_ALL):
            return filters
        if filters.user_id is not None:
            enforce(actor.role, Action.VIEW_OWN, filters.user_id, actor.user_id)
        return dataclasses.replace(filters, user_id=actor.user_id)

    async def _check_vehicle_assignable(self, *, kind: IncidentKind, incident: Incident, vehicle_id: int) -> None:
        vehicle = await self.vehicles.get_by_id(vehicle_id=vehicle_id, for_update=True)
        if vehicle is None:
            raise AppError(
                code=ErrorCodes.VEHICLE_NOT_FOUND,
                message="Vehicle not found.",
                status_code=404,
                details={"vehicle_id": vehicle_id},
            )
        if vehicle_id == incident.assigned_vehicle_id:
            return
        if vehicle.status in UNASSIGNABLE_VEHICLE_STATUSES:
            raise AppError(
                code=ErrorCodes.VEHICLE_UNAVAILABLE,
                message=f"Vehicle is {vehicle.status.value} and cannot be assigned.",
                status_code=409,
                details={"vehicle_id": vehicle_id, "vehicle_status": vehicle.status.value},
            )
        holder = await self.repository.find_active_holder(vehicle_id=vehicle_id, exclude=(kind, incident.id))
        if holder is not None:
            raise AppError(
                code=ErrorCodes.VEHICLE_ALREADY_ASSIGNED,
                message="Vehicle is already assigned to another active incident.",
                status_code=409,
                details={"vehicle_id": vehicle_id, "holder_kind": holder.kind.value, "holder_id": holder.id},
            )

    async def _sync_vehicle(self, *, vehicle_id: int, status: VehicleStatus, incident: Incident) -> None:
        vehicle = await self.vehicles.set_status(vehicle_id=vehicle_id, status=status)
        if vehicle is None:
            logger.warning(
                "incident.vehicle_sync.missing_vehicle",
                extra={
                    "kind": incident.kind.value,
                    "incident_id": incident.id,
                    "vehicle_id": vehicle_id,
                    "vehicle_status": status.value,
                },
            )

    async def _require_incident(self, *, kind: IncidentKind, incident_id: int, for_update: bool = False) -> Incident:
        incident = await self.repository.get_by_id(kind=kind, incident_id=incident_id, for_update=for_update)
        if incident is None:
            raise AppError(
                code=ErrorCodes.INCIDENT_NOT_FOUND,
                message="Incident not found.",
                status_code=404,
                details={"kind": kind.value, "incident_id": incident_id},
            )
        return incident

    def _validate_transition(self, *, from_status: IncidentStatus, to_status: IncidentStatus) -> None:
        allowed_targets = allowed_transition_targets(from_status, strict=self.strict_transitions)
        if to_status not in allowed_targets:
            raise AppError(
                code=ErrorCodes.INCIDENT_INVALID_TRANSITION,
                message=f"Transition from {from_status.value} to {to_status.value} is not allowed.",
                status_code=409,
                details={
                    "from_status": from_status.value,
                    "to_status": to_status.value,
                    "allowed_targets": sorted(status.value for status in allowed_targets),
                },
            )

    @staticmethod
    def _validate_type_filter(*, kind: IncidentKind, type_value: str | None) -> None:
        allowed = TYPE_FILTER_ENUMS.get(kind)
        if type_value is None or allowed is None:
            return
        try:
            allowed(type_value)
        except ValueError:
            raise AppError(
                code=ErrorCodes.VALIDATION_ERROR,
                message="Invalid type filter.",
                status_code=400,
                details={"type": type_value, "allowed": [member.value for member in allowed]},
            ) from None

    @staticmethod
    def _parse_status(value: IncidentStatus | str) -> IncidentStatus:
        try:
            return IncidentStatus(value)
        except ValueError:
            raise AppError(
                code=ErrorCodes.VALIDATION_ERROR,
                message="Invalid status.",
                status_code=400,
                details={"status": str(value), "allowed": [status.value for status in IncidentStatus]},
            ) from None

    @staticmethod
    def _coerce_payload(schema: type[BaseModel], payload: BaseModel | dict[str, Any]) -> BaseModel:
        if isinstance(payload, schema):
            return payload
        raw = payload.model_dump(exclude_unset=True) if isinstance(payload, BaseModel) else payload
        try:
            return schema.model_validate(raw)
        except ValidationError as exc:
            raise AppError(
                code=ErrorCodes.VALIDATION_ERROR,
                message="Missing or invalid fields.",
                status_code=400,
                details={"errors": exc.errors(include_url=False, include_context=False, include_input=False)},
            ) from exc

    @staticmethod
    def _to_response(incident: Incident) -> IncidentResponse:
        return RESPONSE_SCHEMAS[incident.kind].model_validate(incident)

    def _transaction(self, operation: str, *, commit: bool = True, **context: Any):
        return store_transaction(self.db, operation, scope="incident", commit=commit, **context)

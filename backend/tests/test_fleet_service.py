from datetime import UTC, datetime

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from rescue_app.core.errors import AppError, ErrorCodes
from rescue_app.models.fleet import Responder, Vehicle, VehicleStatus
from rescue_app.models.incident import IncidentStatus
from rescue_app.models.user import UserRole
from rescue_app.schemas.auth import CurrentUser
from rescue_app.schemas.fleet import (
    ResponderCreateRequest,
    ResponderUpdateRequest,
    VehicleCreateRequest,
    VehicleUpdateRequest,
)
from rescue_app.services.fleet_service import FleetService
from test_incident_service import _alert

DISPATCHER = CurrentUser(user_id=10, role=UserRole.DISPATCHER)
RESCUER = CurrentUser(user_id=20, role=UserRole.RESCUER)
USER = CurrentUser(user_id=1, role=UserRole.USER)
ADMIN = CurrentUser(user_id=30, role=UserRole.ADMIN)


class FakeDB:
    def __init__(self, fail_commit: bool = False) -> None:
        self.fail_commit = fail_commit
        self.commits = 0
        self.rollbacks = 0

    async def commit(self) -> None:
        if self.fail_commit:
            raise OperationalError("COMMIT", {}, Exception("connection lost"))
        self.commits += 1

    async def rollback(self) -> None:
        self.rollbacks += 1


class FakeVehicleRepository:
    def __init__(self, vehicles=()) -> None:
        self.vehicles = {vehicle.id: vehicle for vehicle in vehicles}

    async def create(self, *, vehicle: Vehicle) -> Vehicle:
        if any(v.license_plate == vehicle.license_plate for v in self.vehicles.values()):
            raise IntegrityError("INSERT INTO vehicles", {}, Exception("duplicate key"))
        vehicle.id = len(self.vehicles) + 1
        vehicle.created_at = vehicle.updated_at = datetime.now(UTC)
        self.vehicles[vehicle.id] = vehicle
        return vehicle

    async def get_by_id(self, *, vehicle_id, for_update=False):  # noqa: ARG002
        return self.vehicles.get(vehicle_id)

    async def list(self, *, status=None):
        return [v for v in self.vehicles.values() if status is None or v.status == status]

    async def save(self, *, vehicle):
        return vehicle

    async def delete(self, *, vehicle) -> None:
        del self.vehicles[vehicle.id]


class FakeResponderRepository:
    def __init__(self) -> None:
        self.responders = {}

    async def create(self, *, responder):
        responder.id = len(self.responders) + 1
        responder.created_at = responder.updated_at = datetime.now(UTC)
        self.responders[responder.id] = responder
        return responder

    async def get_by_id(self, *, responder_id, for_update=False):  # noqa: ARG002
        return self.responders.get(responder_id)

    async def list(self):
        return list(self.responders.values())

    async def save(self, *, responder):
        return responder

    async def delete(self, *, responder) -> None:
        del self.responders[responder.id]


class FakeIncidentRepository:
    def __init__(self, holders=()) -> None:
        self.holders = list(holders)

    async def find_active_holder(self, *, vehicle_id, exclude=None):  # noqa: ARG002
        for incident in self.holders:
            if incident.assigned_vehicle_id == vehicle_id:
                return incident
        return None


def _vehicle(vehicle_id: int, status: VehicleStatus = VehicleStatus.AVAILABLE) -> Vehicle:
    now = datetime.now(UTC)
    return Vehicle(
        id=vehicle_id,
        license_plate=f"RL-{vehicle_id:03d}",
        vehicle_type="ambulance",
        model="Sprinter",
        status=status,
        created_at=now,
        updated_at=now,
    )


def _service(vehicles=(), holders=(), db=None):
    db = db or FakeDB()
    service = FleetService(db)
    service.vehicles = FakeVehicleRepository(vehicles)
    service.responders = FakeResponderRepository()
    service.incidents = FakeIncidentRepository(holders)
    return service, db


@pytest.mark.asyncio
async def test_create_vehicle_defaults_to_available() -> None:
    service, db = _service()

    created = await service.create_vehicle(
        actor=DISPATCHER, payload=VehicleCreateRequest(license_plate=" RL-900 ", vehicle_type="ambulance")
    )

    assert created.license_plate == "RL-900"
    assert created.status == VehicleStatus.AVAILABLE
    assert db.commits == 1


@pytest.mark.asyncio
async def test_duplicate_license_plate_conflicts() -> None:
    service, db = _service([_vehicle(1)])

    with pytest.raises(AppError) as exc:
        await service.create_vehicle(
            actor=DISPATCHER, payload=VehicleCreateRequest(license_plate="RL-001", vehicle_type="ambulance")
        )

    assert exc.value.code == ErrorCodes.VEHICLE_PLATE_CONFLICT
    assert exc.value.status_code == 409
    assert db.rollbacks == 1


@pytest.mark.asyncio
async def test_rescuer_cannot_manage_fleet() -> None:
    service, _ = _service()

    with pytest.raises(AppError) as exc:
        await service.create_vehicle(
            actor=RESCUER, payload=VehicleCreateRequest(license_plate="RL-901", vehicle_type="ambulance")
        )

    assert exc.value.code == ErrorCodes.ACCESS_DENIED


@pytest.mark.asyncio
async def test_user_cannot_list_fleet() -> None:
    service, _ = _service([_vehicle(1)])

    with pytest.raises(AppError) as exc:
        await service.list_vehicles(actor=USER)

    assert exc.value.code == ErrorCodes.ACCESS_DENIED


@pytest.mark.asyncio
async def test_list_vehicles_filters_by_status() -> None:
    service, _ = _service([_vehicle(1), _vehicle(2, VehicleStatus.MAINTENANCE)])

    vehicles = await service.list_vehicles(actor=RESCUER, status=VehicleStatus.MAINTENANCE)

    assert [v.id for v in vehicles] == [2]


@pytest.mark.asyncio
async def test_manual_status_correction() -> None:
    vehicle = _vehicle(1, VehicleStatus.ASSIGNED)
    service, db = _service([vehicle])

    updated = await service.update_vehicle(
        actor=DISPATCHER, vehicle_id=1, payload=VehicleUpdateRequest(status=VehicleStatus.AVAILABLE)
    )

    assert updated.status == VehicleStatus.AVAILABLE
    assert db.commits == 1


@pytest.mark.asyncio
async def test_null_status_in_update_is_ignored() -> None:
    vehicle = _vehicle(1, VehicleStatus.RESPONDING)
    service, _ = _service([vehicle])

    updated = await service.update_vehicle(
        actor=DISPATCHER, vehicle_id=1, payload=VehicleUpdateRequest(status=None, model="Transit")
    )

    assert updated.status == VehicleStatus.RESPONDING
    assert updated.model == "Transit"


@pytest.mark.asyncio
async def test_update_missing_vehicle_is_not_found() -> None:
    service, _ = _service()

    with pytest.raises(AppError) as exc:
        await service.update_vehicle(actor=DISPATCHER, vehicle_id=5, payload=VehicleUpdateRequest(model="X"))

    assert exc.value.code == ErrorCodes.VEHICLE_NOT_FOUND


@pytest.mark.asyncio
async def test_responder_create_and_get() -> None:
    service, _ = _service()

    created = await service.create_responder(
        actor=DISPATCHER, payload=ResponderCreateRequest(first_name="Dana", last_name="Reyes")
    )
    fetched = await service.get_responder(actor=RESCUER, responder_id=created.id)

    assert fetched.first_name == "Dana"
    assert fetched.status == "available"

    with pytest.raises(AppError) as exc:
        await service.get_responder(actor=RESCUER, responder_id=999)
    assert exc.value.code == ErrorCodes.RESPONDER_NOT_FOUND


@pytest.mark.asyncio
async def test_create_vehicle_with_telemetry_fields() -> None:
    service, _ = _service()

    created = await service.create_vehicle(
        actor=DISPATCHER,
        payload=VehicleCreateRequest(
            license_plate="RESCUE-001",
            vehicle_type="ambulance",
            model="Ford Transit Ambulance",
            year=2023,
            current_location="Main Station",
            current_latitude=13.6218,
            current_longitude=123.1948,
            fuel_level=85,
            odometer_reading=15000,
            equipment_list=["Defibrillator", "Oxygen Tank"],
        ),
    )

    assert created.year == 2023
    assert created.fuel_level == 85
    assert created.equipment_list == ["Defibrillator", "Oxygen Tank"]


def test_vehicle_payload_rejects_out_of_range_fuel_level() -> None:
    with pytest.raises(ValueError):
        VehicleCreateRequest(license_plate="RL-1", vehicle_type="ambulance", fuel_level=120)


@pytest.mark.asyncio
async def test_update_vehicle_location_keeps_equipment_on_null() -> None:
    vehicle = _vehicle(1)
    vehicle.equipment_list = ["Stretcher"]
    service, _ = _service([vehicle])

    updated = await service.update_vehicle(
        actor=DISPATCHER,
        vehicle_id=1,
        payload=VehicleUpdateRequest(current_location="Depot 2", current_latitude=1.5, equipment_list=None),
    )

    assert updated.current_location == "Depot 2"
    assert updated.current_latitude == 1.5
    assert updated.equipment_list == ["Stretcher"]


@pytest.mark.asyncio
async def test_admin_deletes_idle_vehicle() -> None:
    service, db = _service([_vehicle(1)])

    deleted = await service.delete_vehicle(actor=ADMIN, vehicle_id=1)

    assert deleted.message == "Vehicle deleted successfully"
    assert 1 not in service.vehicles.vehicles
    assert db.commits == 1


@pytest.mark.asyncio
async def test_delete_vehicle_held_by_active_incident_conflicts() -> None:
    holder = _alert(incident_id=4, user_id=1, status=IncidentStatus.RESPONDING, vehicle_id=1)
    service, db = _service([_vehicle(1, VehicleStatus.RESPONDING)], holders=[holder])

    with pytest.raises(AppError) as exc:
        await service.delete_vehicle(actor=ADMIN, vehicle_id=1)

    assert exc.value.code == ErrorCodes.VEHICLE_IN_USE
    assert exc.value.status_code == 409
    assert exc.value.details == {"vehicle_id": 1, "holder_kind": "manual_alert", "holder_id": 4}
    assert 1 in service.vehicles.vehicles
    assert db.rollbacks == 1


@pytest.mark.asyncio
async def test_dispatcher_cannot_delete_fleet_records() -> None:
    service, _ = _service([_vehicle(1)])

    with pytest.raises(AppError) as exc:
        await service.delete_vehicle(actor=DISPATCHER, vehicle_id=1)
    assert exc.value.code == ErrorCodes.ACCESS_DENIED

    with pytest.raises(AppError) as exc:
        await service.delete_responder(actor=DISPATCHER, responder_id=1)
    assert exc.value.code == ErrorCodes.ACCESS_DENIED


@pytest.mark.asyncio
async def test_update_and_delete_responder() -> None:
    service, _ = _service()
    service.responders.responders[1] = Responder(
        id=1,
        first_name="Dana",
        last_name="Reyes",
        phone_number=None,
        status="available",
        created_at=datetime.now(UTC),
        updated_at=datetime.now(UTC),
    )

    updated = await service.update_responder(
        actor=DISPATCHER,
        responder_id=1,
        payload=ResponderUpdateRequest(status="busy", phone_number="09199990000", first_name=None),
    )

    assert updated.status == "busy"
    assert updated.phone_number == "09199990000"
    assert updated.first_name == "Dana"

    deleted = await service.delete_responder(actor=ADMIN, responder_id=1)

    assert deleted.message == "Responder deleted"
    assert service.responders.responders == {}


@pytest.mark.asyncio
async def test_update_missing_responder_is_not_found() -> None:
    service, _ = _service()

    with pytest.raises(AppError) as exc:
        await service.update_responder(actor=DISPATCHER, responder_id=9, payload=ResponderUpdateRequest(status="busy"))

    assert exc.value.code == ErrorCodes.RESPONDER_NOT_FOUND


@pytest.mark.asyncio
async def test_fleet_store_failure_rolls_back_with_error_body() -> None:
    service, db = _service([_vehicle(1, VehicleStatus.ASSIGNED)], db=FakeDB(fail_commit=True))

    with pytest.raises(AppError) as exc:
        await service.update_vehicle(
            actor=DISPATCHER, vehicle_id=1, payload=VehicleUpdateRequest(status=VehicleStatus.AVAILABLE)
        )

    assert exc.value.code == ErrorCodes.STORE_FAILURE
    assert exc.value.status_code == 500
    assert exc.value.to_response("trace-1")["error"]["code"] == "STORE_FAILURE"
    assert db.rollbacks == 1


@pytest.mark.asyncio
async def test_responder_create_store_failure_rolls_back() -> None:
    service, db = _service(db=FakeDB(fail_commit=True))

    with pytest.raises(AppError) as exc:
        await service.create_responder(
            actor=DISPATCHER, payload=ResponderCreateRequest(first_name="Sam", last_name="Lee")
        )

    assert exc.value.code == ErrorCodes.STORE_FAILURE
    assert db.rollbacks == 1

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from rescue_app.models.fleet import Responder, Vehicle, VehicleStatus


class VehicleRepository:
    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def create(self, *, vehicle: Vehicle) -> Vehicle:
        self.db.add(vehicle)
        await self.db.flush()
        await self.db.refresh(vehicle)
        return vehicle

    async def get_by_id(self, *, vehicle_id: int, for_update: bool = False) -> Vehicle | None:
        stmt = select(Vehicle).where(Vehicle.id == vehicle_id)
        if for_update:
            stmt = stmt.with_for_update()
        return await self.db.scalar(stmt)

    async def list(self, *, status: VehicleStatus | None = None) -> list[Vehicle]:
        stmt = select(Vehicle).order_by(Vehicle.created_at.desc(), Vehicle.id.desc())
        if status is not None:
            stmt = stmt.where(Vehicle.status == status)
        return list((await self.db.scalars(stmt)).all())

    async def save(self, *, vehicle: Vehicle) -> Vehicle:
        await self.db.flush()
        await self.db.refresh(vehicle)
        return vehicle

    async def set_status(self, *, vehicle_id: int, status: VehicleStatus) -> Vehicle | None:
        vehicle = await self.get_by_id(vehicle_id=vehicle_id, for_update=True)
        if vehicle is None:
            return None
        vehicle.status = status
        await self.db.flush()
        return vehicle

    async def delete(self, *, vehicle: Vehicle) -> None:
        await self.db.delete(vehicle)
        await self.db.flush()


class ResponderRepository:
    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def create(self, *, responder: Responder) -> Responder:
        self.db.add(responder)
        await self.db.flush()
        await self.db.refresh(responder)
        return responder

    async def get_by_id(self, *, responder_id: int, for_update: bool = False) -> Responder | None:
        stmt = select(Responder).where(Responder.id == responder_id)
        if for_update:
            stmt = stmt.with_for_update()
        return await self.db.scalar(stmt)

    async def list(self) -> list[Responder]:
        stmt = select(Responder).order_by(Responder.last_name, Responder.first_name, Responder.id)
        return list((await self.db.scalars(stmt)).all())

    async def save(self, *, responder: Responder) -> Responder:
        await self.db.flush()
        await self.db.refresh(responder)
        return responder

    async def delete(self, *, responder: Responder) -> None:
        await self.db.delete(responder)
        await self.db.flush()

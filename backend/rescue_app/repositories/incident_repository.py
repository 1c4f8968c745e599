from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from rescue_app.models.incident import (
    INCIDENT_MODELS,
    TERMINAL_STATUSES,
    Incident,
    IncidentKind,
    IncidentStatus,
)


@dataclass(slots=True)
class IncidentFilters:
    user_id: int | None = None
    status: IncidentStatus | None = None
    type_value: str | None = None
    date_from: datetime | None = None
    date_to: datetime | None = None


class IncidentRepository:
    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def create(self, *, incident: Incident) -> Incident:
        self.db.add(incident)
        await self.db.flush()
        await self.db.refresh(incident)
        return incident

    async def get_by_id(self, *, kind: IncidentKind, incident_id: int, for_update: bool = False) -> Incident | None:
        model = INCIDENT_MODELS[kind]
        stmt = select(model).where(model.id == incident_id)
        if for_update:
            stmt = stmt.with_for_update()
        return await self.db.scalar(stmt)

    async def list_filtered(
        self, *, kind: IncidentKind, filters: IncidentFilters, limit: int | None, offset: int
    ) -> tuple[list[Incident], int]:
        model = INCIDENT_MODELS[kind]
        occurred_at = getattr(model, model.occurred_at_attr)

        conditions = []
        if filters.user_id is not None:
            conditions.append(model.user_id == filters.user_id)
        if filters.status is not None:
            conditions.append(model.status == filters.status)
        if filters.type_value is not None and model.type_filter_attr is not None:
            conditions.append(getattr(model, model.type_filter_attr) == filters.type_value)
        if filters.date_from is not None:
            conditions.append(occurred_at >= filters.date_from)
        if filters.date_to is not None:
            conditions.append(occurred_at <= filters.date_to)

        list_stmt = select(model).where(*conditions).order_by(occurred_at.desc(), model.id.desc()).offset(offset)
        if limit is not None:
            list_stmt = list_stmt.limit(limit)
        count_stmt = select(func.count()).select_from(model).where(*conditions)

        incidents = list((await self.db.scalars(list_stmt)).all())
        total = int((await self.db.scalar(count_stmt)) or 0)
        return incidents, total

    async def find_active_holder(
        self, *, vehicle_id: int, exclude: tuple[IncidentKind, int] | None = None
    ) -> Incident | None:
        for kind, model in INCIDENT_MODELS.items():
            stmt = select(model).where(
                model.assigned_vehicle_id == vehicle_id,
                model.status.not_in(TERMINAL_STATUSES),
            )
            if exclude is not None and exclude[0] == kind:
                stmt = stmt.where(model.id != exclude[1])
            holder = await self.db.scalar(stmt.limit(1))
            if holder is not None:
                return holder
        return None

    async def save(self, *, incident: Incident) -> Incident:
        await self.db.flush()
        await self.db.refresh(incident)
        return incident

    async def delete(self, *, incident: Incident) -> None:
        await self.db.delete(incident)
        await self.db.flush()

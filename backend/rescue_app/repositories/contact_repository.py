from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from rescue_app.models.contact import EmergencyContact
from rescue_app.models.user import User


class EmergencyContactRepository:
    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def create(self, *, contact: EmergencyContact) -> EmergencyContact:
        self.db.add(contact)
        await self.db.flush()
        await self.db.refresh(contact)
        return contact

    async def get_by_id(self, *, contact_id: int, for_update: bool = False) -> EmergencyContact | None:
        stmt = select(EmergencyContact).where(EmergencyContact.id == contact_id)
        if for_update:
            stmt = stmt.with_for_update()
        return await self.db.scalar(stmt)

    async def list_for_user(self, *, user_id: int) -> list[EmergencyContact]:
        """Primary contact first, then oldest first."""
        stmt = (
            select(EmergencyContact)
            .where(EmergencyContact.user_id == user_id)
            .order_by(EmergencyContact.is_primary.desc(), EmergencyContact.created_at, EmergencyContact.id)
        )
        return list((await self.db.scalars(stmt)).all())

    async def clear_primary(self, *, user_id: int, exclude_id: int | None = None) -> None:
        stmt = (
            update(EmergencyContact)
            .where(EmergencyContact.user_id == user_id, EmergencyContact.is_primary.is_(True))
            .values(is_primary=False)
            .execution_options(synchronize_session="fetch")
        )
        if exclude_id is not None:
            stmt = stmt.where(EmergencyContact.id != exclude_id)
        await self.db.execute(stmt)

    async def user_exists(self, *, user_id: int) -> bool:
        return await self.db.scalar(select(User.id).where(User.id == user_id)) is not None

    async def save(self, *, contact: EmergencyContact) -> EmergencyContact:
        await self.db.flush()
        await self.db.refresh(contact)
        return contact

    async def delete(self, *, contact: EmergencyContact) -> None:
        await self.db.delete(contact)
        await self.db.flush()

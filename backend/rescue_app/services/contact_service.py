import logging
from datetime import UTC, datetime
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from rescue_app.core.errors import AppError, ErrorCodes
from rescue_app.db.transaction import store_transaction
from rescue_app.models.contact import EmergencyContact
from rescue_app.rbac.policy import Action, can_perform, enforce
from rescue_app.repositories.contact_repository import EmergencyContactRepository
from rescue_app.schemas.auth import CurrentUser
from rescue_app.schemas.contact import (
    EmergencyContactCreateRequest,
    EmergencyContactDeletedResponse,
    EmergencyContactResponse,
    EmergencyContactUpdateRequest,
)

logger = logging.getLogger(__name__)


class EmergencyContactService:
    """Owner-scoped emergency contacts. Admins may act on any user's contacts."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db
        self.repository = EmergencyContactRepository(db)

    async def list_contacts(
        self, *, actor: CurrentUser, user_id: int | None = None
    ) -> list[EmergencyContactResponse]:
        owner_id = actor.user_id if user_id is None else user_id
        self._check_owner(actor=actor, owner_id=owner_id)
        async with self._transaction("list_contacts", commit=False, user_id=owner_id):
            contacts = await self.repository.list_for_user(user_id=owner_id)
        return [EmergencyContactResponse.model_validate(contact) for contact in contacts]

    async def create_contact(
        self, *, actor: CurrentUser, payload: EmergencyContactCreateRequest
    ) -> EmergencyContactResponse:
        owner_id = actor.user_id if payload.user_id is None else payload.user_id
        self._check_owner(actor=actor, owner_id=owner_id)
        now = datetime.now(UTC)
        async with self._transaction("create_contact", user_id=owner_id):
            if not await self.repository.user_exists(user_id=owner_id):
                raise AppError(
                    code=ErrorCodes.USER_NOT_FOUND,
                    message="User not found.",
                    status_code=404,
                    details={"user_id": owner_id},
                )
            if payload.is_primary:
                await self.repository.clear_primary(user_id=owner_id)
            contact = EmergencyContact(
                **payload.model_dump(exclude={"user_id"}),
                user_id=owner_id,
                created_at=now,
                updated_at=now,
            )
            created = await self.repository.create(contact=contact)
        logger.info(
            "contact.created",
            extra={"contact_id": created.id, "owner_id": owner_id, "actor_id": actor.user_id},
        )
        return EmergencyContactResponse.model_validate(created)

    async def get_contact(self, *, actor: CurrentUser, contact_id: int) -> EmergencyContactResponse:
        async with self._transaction("get_contact", commit=False, contact_id=contact_id):
            contact = await self._require_contact(contact_id=contact_id)
        self._check_owner(actor=actor, owner_id=contact.user_id)
        return EmergencyContactResponse.model_validate(contact)

    async def update_contact(
        self, *, actor: CurrentUser, contact_id: int, payload: EmergencyContactUpdateRequest
    ) -> EmergencyContactResponse:
        changes = payload.model_dump(exclude_unset=True)
        async with self._transaction("update_contact", contact_id=contact_id):
            contact = await self._require_contact(contact_id=contact_id, for_update=True)
            self._check_owner(actor=actor, owner_id=contact.user_id)
            if changes.get("is_primary"):
                await self.repository.clear_primary(user_id=contact.user_id, exclude_id=contact.id)
            for field_name, value in changes.items():
                setattr(contact, field_name, value)
            contact.updated_at = datetime.now(UTC)
            updated = await self.repository.save(contact=contact)
        logger.info(
            "contact.updated",
            extra={"contact_id": contact_id, "changed_fields": sorted(changes), "actor_id": actor.user_id},
        )
        return EmergencyContactResponse.model_validate(updated)

    async def delete_contact(self, *, actor: CurrentUser, contact_id: int) -> EmergencyContactDeletedResponse:
        async with self._transaction("delete_contact", contact_id=contact_id):
            contact = await self._require_contact(contact_id=contact_id, for_update=True)
            self._check_owner(actor=actor, owner_id=contact.user_id)
            await self.repository.delete(contact=contact)
        logger.info("contact.deleted", extra={"contact_id": contact_id, "actor_id": actor.user_id})
        return EmergencyContactDeletedResponse(message="Contact deleted successfully", id=contact_id)

    @staticmethod
    def _check_owner(*, actor: CurrentUser, owner_id: int) -> None:
        if can_perform(actor.role, Action.MANAGE_ALL_CONTACTS):
            return
        enforce(actor.role, Action.VIEW_OWN, owner_id, actor.user_id)

    async def _require_contact(self, *, contact_id: int, for_update: bool = False) -> EmergencyContact:
        contact = await self.repository.get_by_id(contact_id=contact_id, for_update=for_update)
        if contact is None:
            raise AppError(
                code=ErrorCodes.CONTACT_NOT_FOUND,
                message="Contact not found.",
                status_code=404,
                details={"contact_id": contact_id},
            )
        return contact

    def _transaction(self, operation: str, *, commit: bool = True, **context: Any):
        return store_transaction(self.db, operation, scope="contact", commit=commit, **context)

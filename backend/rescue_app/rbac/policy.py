"""Role based access rules for incidents, the fleet and emergency contacts.

The table is fixed at import time. `can_perform` is a pure decision;
`enforce` turns a denial into an ``ACCESS_DENIED`` error.
"""

import enum

from rescue_app.core.errors import AppError, ErrorCodes
from rescue_app.models.user import UserRole


class Action(str, enum.Enum):
    VIEW_OWN = "view_own"
    VIEW_ALL = "view_all"
    CREATE = "create"
    UPDATE = "update"
    CHANGE_STATUS = "change_status"
    ASSIGN = "assign"
    DELETE = "delete"
    MANAGE_FLEET = "manage_fleet"
    DELETE_FLEET = "delete_fleet"
    MANAGE_ALL_CONTACTS = "manage_all_contacts"


_ALL_ROLES = frozenset(UserRole)
_STAFF = frozenset({UserRole.ADMIN, UserRole.DISPATCHER, UserRole.RESCUER})
_COORDINATORS = frozenset({UserRole.ADMIN, UserRole.DISPATCHER})

ROLE_PERMISSIONS: dict[Action, frozenset[UserRole]] = {
    Action.VIEW_OWN: _ALL_ROLES,
    Action.VIEW_ALL: _STAFF,
    Action.CREATE: _ALL_ROLES,
    Action.UPDATE: _COORDINATORS,
    Action.CHANGE_STATUS: _STAFF,
    Action.ASSIGN: _COORDINATORS,
    Action.DELETE: frozenset({UserRole.ADMIN}),
    Action.MANAGE_FLEET: _COORDINATORS,
    Action.DELETE_FLEET: frozenset({UserRole.ADMIN}),
    Action.MANAGE_ALL_CONTACTS: frozenset({UserRole.ADMIN}),
}

# Actions that additionally require the actor to own the resource.
OWNERSHIP_REQUIRED = frozenset({Action.VIEW_OWN})


def can_perform(
    actor_role: UserRole | str,
    action: Action,
    resource_owner_id: int | None = None,
    actor_id: int | None = None,
) -> bool:
    try:
        role = UserRole(actor_role)
    except ValueError:
        return False
    if role not in ROLE_PERMISSIONS.get(action, frozenset()):
        return False
    if action in OWNERSHIP_REQUIRED:
        return resource_owner_id is not None and resource_owner_id == actor_id
    return True


def can_view(actor_role: UserRole | str, resource_owner_id: int, actor_id: int) -> bool:
    return can_perform(actor_role, Action.VIEW_ALL) or can_perform(
        actor_role, Action.VIEW_OWN, resource_owner_id, actor_id
    )


def enforce(
    actor_role: UserRole | str,
    action: Action,
    resource_owner_id: int | None = None,
    actor_id: int | None = None,
) -> None:
    if not can_perform(actor_role, action, resource_owner_id, actor_id):
        raise AppError(
            code=ErrorCodes.ACCESS_DENIED,
            message="Access denied.",
            status_code=403,
            details={"action": action.value, "role": str(getattr(actor_role, "value", actor_role))},
        )

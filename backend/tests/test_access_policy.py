import pytest

from rescue_app.core.errors import AppError, ErrorCodes
from rescue_app.models.user import UserRole
from rescue_app.rbac.policy import Action, can_perform, can_view, enforce


@pytest.mark.parametrize(
    ("role", "action", "expected"),
    [
        (UserRole.USER, Action.CREATE, True),
        (UserRole.USER, Action.VIEW_ALL, False),
        (UserRole.USER, Action.UPDATE, False),
        (UserRole.USER, Action.CHANGE_STATUS, False),
        (UserRole.USER, Action.ASSIGN, False),
        (UserRole.USER, Action.DELETE, False),
        (UserRole.RESCUER, Action.VIEW_ALL, True),
        (UserRole.RESCUER, Action.CHANGE_STATUS, True),
        (UserRole.RESCUER, Action.ASSIGN, False),
        (UserRole.RESCUER, Action.UPDATE, False),
        (UserRole.DISPATCHER, Action.ASSIGN, True),
        (UserRole.DISPATCHER, Action.UPDATE, True),
        (UserRole.DISPATCHER, Action.MANAGE_FLEET, True),
        (UserRole.DISPATCHER, Action.DELETE, False),
        (UserRole.ADMIN, Action.DELETE, True),
        (UserRole.ADMIN, Action.MANAGE_FLEET, True),
        (UserRole.ADMIN, Action.DELETE_FLEET, True),
        (UserRole.DISPATCHER, Action.DELETE_FLEET, False),
        (UserRole.ADMIN, Action.MANAGE_ALL_CONTACTS, True),
        (UserRole.RESCUER, Action.MANAGE_ALL_CONTACTS, False),
    ],
)
def test_role_permission_table(role: UserRole, action: Action, expected: bool) -> None:
    assert can_perform(role, action) is expected


def test_view_own_requires_matching_owner() -> None:
    assert can_perform(UserRole.USER, Action.VIEW_OWN, resource_owner_id=5, actor_id=5)
    assert not can_perform(UserRole.USER, Action.VIEW_OWN, resource_owner_id=5, actor_id=6)
    assert not can_perform(UserRole.USER, Action.VIEW_OWN, resource_owner_id=None, actor_id=6)


def test_can_view_staff_sees_any_row_user_only_own() -> None:
    assert can_view(UserRole.RESCUER, resource_owner_id=1, actor_id=99)
    assert can_view(UserRole.USER, resource_owner_id=3, actor_id=3)
    assert not can_view(UserRole.USER, resource_owner_id=3, actor_id=4)


def test_unknown_role_is_denied_everything() -> None:
    assert not can_perform("superuser", Action.CREATE)
    assert not can_perform("superuser", Action.VIEW_OWN, resource_owner_id=1, actor_id=1)


def test_enforce_raises_access_denied_with_action_details() -> None:
    with pytest.raises(AppError) as exc:
        enforce(UserRole.DISPATCHER, Action.DELETE)

    assert exc.value.code == ErrorCodes.ACCESS_DENIED
    assert exc.value.status_code == 403
    assert exc.value.details == {"action": "delete", "role": "dispatcher"}


def test_enforce_passes_silently_when_allowed() -> None:
    assert enforce("admin", Action.DELETE) is None

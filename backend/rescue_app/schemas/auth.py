from pydantic import BaseModel

from rescue_app.models.user import UserRole


class CurrentUser(BaseModel):
    user_id: int
    role: UserRole

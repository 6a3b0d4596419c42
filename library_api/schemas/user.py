from datetime import datetime

from pydantic import EmailStr, Field

from library_api.db.models import UserRole
from library_api.schemas.common import CamelModel


class UserCreate(CamelModel):
    email: EmailStr
    password: str = Field(min_length=6)
    name: str = Field(min_length=2)
    role: UserRole = UserRole.USER


class UserSummary(CamelModel):
    """Reduced projection: never carries the password hash."""

    id: str
    name: str
    email: str


class UserRead(UserSummary):
    role: UserRole
    created_at: datetime
    updated_at: datetime

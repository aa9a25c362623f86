# watchlist/models/user.py

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class Role(str, Enum):
    """Account roles. The first account ever created is an admin."""
    ADMIN = "admin"
    USER = "user"


# --- Request Bodies ---
# Fields are optional so that missing values get the API's own 400 message
# instead of a generic validation error.
class SignupRequest(BaseModel):
    """Data required to create an account."""
    name: Optional[str] = Field(None, description="Unique display/login name (case-insensitive).")
    password: Optional[str] = Field(None, description="Plain-text password, hashed before storage.")


class LoginRequest(BaseModel):
    """Data required for login."""
    name: Optional[str] = None
    password: Optional[str] = None


class MakeAdminRequest(BaseModel):
    username: Optional[str] = Field(None, description="Exact name of the user to promote.")


class MakeAdminSimpleRequest(MakeAdminRequest):
    secret: Optional[str] = Field(None, description="Must match ADMIN_SETUP_SECRET.")


# --- Responses ---
class UserRead(BaseModel):
    """Public view of an account."""
    id: str
    name: str
    role: Role = Role.USER


class AdminUserRead(UserRead):
    createdAt: Optional[datetime] = None


class AuthResponse(BaseModel):
    """Returned by signup and login; the session token travels in the cookie."""
    message: str
    user: UserRead


class MeResponse(BaseModel):
    user: UserRead


class UserListResponse(BaseModel):
    users: List[UserRead]


class AdminUserListResponse(BaseModel):
    users: List[AdminUserRead]


class AdminCheckResponse(BaseModel):
    isAdmin: bool
    role: Role


class MakeAdminResponse(BaseModel):
    message: str
    user: Optional[UserRead] = None


class MessageResponse(BaseModel):
    message: str


# --- Internal ---
class CurrentUser(BaseModel):
    """Identity resolved from the session token (or the shared guest)."""
    id: str
    name: str
    role: Role = Role.USER
    is_guest: bool = False

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN

    def to_read(self) -> UserRead:
        return UserRead(id=self.id, name=self.name, role=self.role)

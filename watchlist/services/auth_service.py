# watchlist/services/auth_service.py

import logging
from typing import Any, Dict, List, Optional, Tuple

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import DuplicateKeyError

from watchlist.core.config import settings
from watchlist.core.security import create_access_token, hash_password, verify_password
from watchlist.data_access.mongo_client import UserRepository
from watchlist.models.user import (
    AdminUserRead,
    LoginRequest,
    MakeAdminResponse,
    Role,
    SignupRequest,
    UserRead,
)
from watchlist.utils.helpers import utc_now

logger = logging.getLogger(__name__)

NAME_TAKEN_MESSAGE = "This name is already taken."
INVALID_CREDENTIALS_MESSAGE = "Invalid name or password."


class AuthServiceError(Exception):
    """Custom exception for Auth service errors."""
    def __init__(self, message: str, status_code: int = 400):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class UserNotFoundError(AuthServiceError):
    def __init__(self, username: str):
        super().__init__(f'User "{username}" not found', 404)


def _role_of(user_doc: Dict[str, Any]) -> Role:
    return Role.ADMIN if user_doc.get("role") == Role.ADMIN.value else Role.USER


def _to_user_read(user_doc: Dict[str, Any]) -> UserRead:
    return UserRead(id=str(user_doc["_id"]), name=user_doc.get("name") or "Unknown", role=_role_of(user_doc))


class AuthService:
    """Accounts: signup, login and role management."""

    def __init__(self, db: AsyncIOMotorDatabase):
        self.users = UserRepository(db)

    @staticmethod
    def _check_tokens_configured():
        if settings.JWT_SECRET is None:
            logger.error("Refusing to authenticate: JWT_SECRET is not configured.")
            raise AuthServiceError("Authentication is not configured on this server.", 503)

    async def signup(self, signup_data: SignupRequest) -> Tuple[UserRead, str]:
        """
        Creates an account and issues its session token.

        The very first account becomes an admin; every later one is a plain user.

        Args:
            signup_data: Name and password from the request body.

        Returns:
            The created user and a session token.

        Raises:
            AuthServiceError: 400 on missing/short fields or a taken name.
        """
        self._check_tokens_configured()
        name = (signup_data.name or "").strip()
        password = signup_data.password or ""
        if not name or not password:
            raise AuthServiceError("Name and password are required.")
        if len(password) < settings.MIN_PASSWORD_LENGTH:
            raise AuthServiceError(f"Password must be at least {settings.MIN_PASSWORD_LENGTH} characters.")
        if len(name) < settings.MIN_NAME_LENGTH:
            raise AuthServiceError(f"Name must be at least {settings.MIN_NAME_LENGTH} characters.")

        if await self.users.find_by_name(name):
            logger.info(f"Signup rejected, name already taken: {name}")
            raise AuthServiceError(NAME_TAKEN_MESSAGE)

        role = Role.ADMIN if await self.users.count() == 0 else Role.USER
        now = utc_now()
        user_doc = {
            "name": name,
            "password": hash_password(password),
            "role": role.value,
            "createdAt": now,
            "updatedAt": now,
        }
        try:
            user_id = await self.users.insert_one(user_doc)
        except DuplicateKeyError:
            # Lost a race with a concurrent signup for the same name
            raise AuthServiceError(NAME_TAKEN_MESSAGE)

        logger.info(f"Registered user {user_id} ({name}) with role '{role.value}'")
        user = UserRead(id=user_id, name=name, role=role)
        return user, create_access_token(user.id, user.name, user.role)

    async def login(self, login_data: LoginRequest) -> Tuple[UserRead, str]:
        """
        Verifies credentials and issues a session token.

        Raises:
            AuthServiceError: 400 on missing fields, 401 on bad credentials.
        """
        self._check_tokens_configured()
        name = (login_data.name or "").strip()
        password = login_data.password or ""
        if not name or not password:
            raise AuthServiceError("Name and password are required.")

        user_doc = await self.users.find_by_name(name)
        if not user_doc or not verify_password(password, user_doc.get("password")):
            logger.info(f"Failed login attempt for name: {name}")
            raise AuthServiceError(INVALID_CREDENTIALS_MESSAGE, 401)

        user = _to_user_read(user_doc)
        logger.info(f"User {user.id} ({user.name}) logged in")
        return user, create_access_token(user.id, user.name, user.role)

    async def list_users(self) -> List[UserRead]:
        """The roster, sorted by name."""
        return [_to_user_read(doc) for doc in await self.users.list_all()]

    async def list_users_for_admin(self) -> List[AdminUserRead]:
        docs = await self.users.list_all()
        return [
            AdminUserRead(**_to_user_read(doc).model_dump(), createdAt=doc.get("createdAt"))
            for doc in docs
        ]

    async def make_admin(self, username: Optional[str]) -> MakeAdminResponse:
        """
        Promotes a user (matched by exact name) to admin.

        Raises:
            AuthServiceError: 400 without a username.
            UserNotFoundError: 404 for an unknown name.
        """
        username = (username or "").strip()
        if not username:
            raise AuthServiceError("Username is required")

        user_doc = await self.users.find_by_name(username, case_insensitive=False)
        if not user_doc:
            raise UserNotFoundError(username)

        if _role_of(user_doc) == Role.ADMIN:
            return MakeAdminResponse(message=f'User "{username}" is already an admin', user=_to_user_read(user_doc))

        await self.users.set_role(user_doc["_id"], Role.ADMIN.value, utc_now())
        user_doc["role"] = Role.ADMIN.value
        logger.info(f"Assigned admin role to user {user_doc['_id']} ({username})")
        return MakeAdminResponse(
            message=f'Successfully assigned admin role to "{username}"',
            user=_to_user_read(user_doc),
        )

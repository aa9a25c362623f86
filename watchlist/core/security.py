# Password hashing, session tokens and auth dependencies
# watchlist/core/security.py

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
from fastapi import Depends, HTTPException, Response, status
from fastapi.security import APIKeyCookie, HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from jose.exceptions import ExpiredSignatureError

from watchlist.core.config import GUEST_USER_ID, GUEST_USER_NAME, settings
from watchlist.models.user import CurrentUser, Role

logger = logging.getLogger(__name__)

# The session token normally travels in an httpOnly cookie; API clients may
# send it as "Authorization: Bearer <token>" instead.
token_cookie_scheme = APIKeyCookie(name=settings.AUTH_COOKIE_NAME, auto_error=False)
token_bearer_scheme = HTTPBearer(auto_error=False)

# bcrypt only looks at the first 72 bytes of a password
_BCRYPT_MAX_BYTES = 72


# --- Custom Exceptions ---
class CredentialsException(HTTPException):
    def __init__(self, detail: str = "Authentication required", status_code: int = status.HTTP_401_UNAUTHORIZED):
        super().__init__(status_code=status_code, detail=detail)


class InsufficientPermissionsException(CredentialsException):
    def __init__(self, detail: str = "Unauthorized: Admin access required"):
        super().__init__(detail=detail, status_code=status.HTTP_403_FORBIDDEN)


class TokenConfigurationError(RuntimeError):
    """Raised when a token must be issued but JWT_SECRET is not configured."""


# --- Passwords ---

def hash_password(password: str) -> str:
    """Hashes a password with bcrypt and a fresh salt."""
    hashed = bcrypt.hashpw(password.encode("utf-8")[:_BCRYPT_MAX_BYTES], bcrypt.gensalt())
    return hashed.decode("utf-8")


def verify_password(password: str, password_hash: Optional[str]) -> bool:
    """Checks a password against a stored bcrypt hash. Malformed hashes never match."""
    if not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode("utf-8")[:_BCRYPT_MAX_BYTES], password_hash.encode("utf-8"))
    except ValueError:
        logger.warning("Stored password hash is not a valid bcrypt hash.")
        return False


# --- Tokens ---

def create_access_token(user_id: str, name: str, role: Role) -> str:
    """
    Issues a signed session token.

    Args:
        user_id: The user's ObjectId as string (becomes the 'sub' claim).
        name: Display name, carried so requests need no user lookup.
        role: The user's role at login time.

    Returns:
        The encoded JWT.

    Raises:
        TokenConfigurationError: If JWT_SECRET is not set.
    """
    if settings.JWT_SECRET is None:
        raise TokenConfigurationError("JWT_SECRET is not configured.")
    expires_at = datetime.now(timezone.utc) + timedelta(minutes=settings.JWT_EXPIRES_MINUTES)
    claims = {"sub": user_id, "name": name, "role": role.value, "exp": expires_at}
    return jwt.encode(claims, settings.JWT_SECRET.get_secret_value(), algorithm=settings.JWT_ALGORITHM)


def decode_access_token(token: str) -> Optional[CurrentUser]:
    """
    Verifies a session token.

    Returns:
        The identity carried by the token, or None when the token is missing,
        expired, tampered with, or cannot be verified because no secret is set.
    """
    if not token or settings.JWT_SECRET is None:
        return None
    try:
        payload = jwt.decode(
            token,
            settings.JWT_SECRET.get_secret_value(),
            algorithms=[settings.JWT_ALGORITHM],
        )
    except ExpiredSignatureError:
        logger.info("Session token expired; treating request as anonymous.")
        return None
    except JWTError as e:
        logger.warning(f"Rejected session token: {e}")
        return None

    user_id = payload.get("sub")
    if not isinstance(user_id, str) or not user_id:
        logger.warning("Session token has no usable 'sub' claim.")
        return None
    role = Role.ADMIN if payload.get("role") == Role.ADMIN.value else Role.USER
    return CurrentUser(id=user_id, name=str(payload.get("name") or ""), role=role)


# --- Cookies ---

def set_auth_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        key=settings.AUTH_COOKIE_NAME,
        value=token,
        max_age=settings.JWT_EXPIRES_MINUTES * 60,
        path="/",
        httponly=True,
        secure=settings.AUTH_COOKIE_SECURE,
        samesite=settings.AUTH_COOKIE_SAMESITE,
    )


def clear_auth_cookie(response: Response) -> None:
    # Attributes must match the ones used when setting the cookie
    response.set_cookie(
        key=settings.AUTH_COOKIE_NAME,
        value="",
        max_age=0,
        path="/",
        httponly=True,
        secure=settings.AUTH_COOKIE_SECURE,
        samesite=settings.AUTH_COOKIE_SAMESITE,
    )


# --- FastAPI Dependencies ---

def guest_user() -> CurrentUser:
    return CurrentUser(id=GUEST_USER_ID, name=GUEST_USER_NAME, role=Role.USER, is_guest=True)


async def get_optional_user(
    cookie_token: Optional[str] = Depends(token_cookie_scheme),
    bearer: Optional[HTTPAuthorizationCredentials] = Depends(token_bearer_scheme),
) -> Optional[CurrentUser]:
    """Resolves the caller from the session cookie (or bearer token). None when anonymous."""
    token = cookie_token or (bearer.credentials if bearer else None)
    if not token:
        return None
    return decode_access_token(token)


async def get_current_user(user: Optional[CurrentUser] = Depends(get_optional_user)) -> CurrentUser:
    """Requires a logged-in user."""
    if user is None:
        raise CredentialsException()
    return user


async def get_user_or_guest(user: Optional[CurrentUser] = Depends(get_optional_user)) -> CurrentUser:
    """The logged-in user, or the shared guest identity when guest mode is enabled."""
    if user is not None:
        return user
    if not settings.ALLOW_GUEST:
        raise CredentialsException()
    return guest_user()


async def require_admin(user: Optional[CurrentUser] = Depends(get_optional_user)) -> CurrentUser:
    """Requires a logged-in admin. Anonymous callers get 403 like non-admins."""
    if user is None or not user.is_admin:
        raise InsufficientPermissionsException()
    return user

# watchlist/api/endpoints/auth.py

import logging

from fastapi import APIRouter, Depends, HTTPException, Response, status

from watchlist.api.deps import get_auth_service
from watchlist.core.security import clear_auth_cookie, get_user_or_guest, set_auth_cookie
from watchlist.models.user import (
    AuthResponse,
    CurrentUser,
    LoginRequest,
    MeResponse,
    MessageResponse,
    SignupRequest,
)
from watchlist.services.auth_service import AuthService, AuthServiceError

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post(
    "/signup",
    response_model=AuthResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Sign Up",
    description="Creates an account and starts a session. The first account created becomes an admin.",
    responses={
        400: {"description": "Missing fields, password too short, or name already taken"},
        500: {"description": "Internal server error during signup"},
    }
)
async def signup(
    signup_data: SignupRequest,
    response: Response,
    auth_service: AuthService = Depends(get_auth_service),
):
    try:
        user, token = await auth_service.signup(signup_data)
    except AuthServiceError as e:
        logger.warning(f"Signup failed: {e.message} (Status Code: {e.status_code})")
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except Exception as e:
        logger.error(f"Unexpected error during /signup endpoint: {e}", exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Internal server error")

    set_auth_cookie(response, token)
    return AuthResponse(message="Signup successful", user=user)


@router.post(
    "/login",
    response_model=AuthResponse,
    summary="Log In",
    description="Authenticates with name (case-insensitive) and password and sets the session cookie.",
    responses={
        400: {"description": "Missing name or password"},
        401: {"description": "Invalid name or password"},
        500: {"description": "Internal server error during login"},
    }
)
async def login(
    login_data: LoginRequest,
    response: Response,
    auth_service: AuthService = Depends(get_auth_service),
):
    try:
        user, token = await auth_service.login(login_data)
    except AuthServiceError as e:
        logger.warning(f"Login failed: {e.message} (Status Code: {e.status_code})")
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except Exception as e:
        logger.error(f"Unexpected error during /login endpoint: {e}", exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Internal server error")

    set_auth_cookie(response, token)
    return AuthResponse(message="Login successful", user=user)


@router.post("/logout", response_model=MessageResponse, summary="Log Out")
async def logout(response: Response):
    """Expires the session cookie."""
    clear_auth_cookie(response)
    return MessageResponse(message="Logged out")


@router.get("/me", response_model=MeResponse, summary="Current User")
async def me(user: CurrentUser = Depends(get_user_or_guest)):
    """The logged-in user, or the guest identity for anonymous visitors."""
    return MeResponse(user=user.to_read())

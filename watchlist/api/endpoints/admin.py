# watchlist/api/endpoints/admin.py

import hmac
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from watchlist.api.deps import get_activity_service, get_auth_service
from watchlist.core.config import settings
from watchlist.core.security import get_current_user, require_admin
from watchlist.models.activity import ActivityLogPage
from watchlist.models.user import (
    AdminCheckResponse,
    AdminUserListResponse,
    CurrentUser,
    MakeAdminRequest,
    MakeAdminResponse,
    MakeAdminSimpleRequest,
)
from watchlist.services.activity_service import ActivityService
from watchlist.services.auth_service import AuthService, AuthServiceError

logger = logging.getLogger(__name__)

# Mounted under /api/admin
router = APIRouter()
# Mounted under /api/activity
activity_router = APIRouter()


@router.get(
    "/check",
    response_model=AdminCheckResponse,
    summary="Check Admin Status",
    responses={401: {"description": "Authentication required"}},
)
async def check_admin(user: CurrentUser = Depends(get_current_user)):
    return AdminCheckResponse(isAdmin=user.is_admin, role=user.role)


@router.get(
    "/list-users",
    response_model=AdminUserListResponse,
    summary="List Users With Roles",
    responses={403: {"description": "Admin access required"}},
)
async def list_users(
    admin: CurrentUser = Depends(require_admin),
    auth_service: AuthService = Depends(get_auth_service),
):
    try:
        return AdminUserListResponse(users=await auth_service.list_users_for_admin())
    except Exception as e:
        logger.error(f"Error listing users for admin {admin.id}: {e}", exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to list users")


async def _promote(auth_service: AuthService, username: Optional[str]) -> MakeAdminResponse:
    try:
        return await auth_service.make_admin(username)
    except AuthServiceError as e:
        logger.warning(f"Make-admin failed: {e.message} (Status Code: {e.status_code})")
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except Exception as e:
        logger.error(f"Error making user '{username}' admin: {e}", exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to update user role")


@router.post(
    "/make-admin",
    response_model=MakeAdminResponse,
    summary="Promote User",
    description="Gives another user the admin role. Requires an admin session.",
    responses={
        400: {"description": "Username is required"},
        403: {"description": "Admin access required"},
        404: {"description": "User not found"},
    },
)
async def make_admin(
    request_data: MakeAdminRequest,
    admin: CurrentUser = Depends(require_admin),
    auth_service: AuthService = Depends(get_auth_service),
):
    logger.info(f"Admin {admin.id} promoting '{request_data.username}'")
    return await _promote(auth_service, request_data.username)


@router.post(
    "/make-admin-simple",
    response_model=MakeAdminResponse,
    summary="Bootstrap Admin",
    description=(
        "Promotes a user without an admin session, authorised by ADMIN_SETUP_SECRET. "
        "Disabled when the secret is not configured."
    ),
    responses={
        400: {"description": "Username is required"},
        403: {"description": "Invalid secret or bootstrap disabled"},
        404: {"description": "User not found"},
    },
)
async def make_admin_simple(
    request_data: MakeAdminSimpleRequest,
    auth_service: AuthService = Depends(get_auth_service),
):
    expected = settings.ADMIN_SETUP_SECRET.get_secret_value() if settings.ADMIN_SETUP_SECRET else None
    provided = request_data.secret or ""
    if not expected or not hmac.compare_digest(provided.encode("utf-8"), expected.encode("utf-8")):
        logger.warning(f"Rejected admin bootstrap for '{request_data.username}': invalid secret")
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid secret")
    return await _promote(auth_service, request_data.username)


@activity_router.get(
    "",  # GET /api/activity
    response_model=ActivityLogPage,
    summary="Activity Feed",
    description="Users' movie actions, newest first. Admin only.",
    responses={403: {"description": "Admin access required"}},
)
async def list_activity(
    limit: int = Query(settings.ACTIVITY_PAGE_LIMIT, ge=1, le=500, description="Page size."),
    skip: int = Query(0, ge=0, description="Entries to skip."),
    user_id: Optional[str] = Query(None, alias="userId", description="Only this user's actions."),
    admin: CurrentUser = Depends(require_admin),
    activity_service: ActivityService = Depends(get_activity_service),
):
    try:
        return await activity_service.list_activity(user_id=user_id, limit=limit, skip=skip)
    except Exception as e:
        logger.error(f"Error fetching activity logs for admin {admin.id}: {e}", exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to fetch activity logs")

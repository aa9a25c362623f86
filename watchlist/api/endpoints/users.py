# watchlist/api/endpoints/users.py

import logging

from fastapi import APIRouter, Depends, HTTPException, Response, status

from watchlist.api.deps import get_auth_service
from watchlist.models.user import UserListResponse
from watchlist.services.auth_service import AuthService

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get(
    "",  # GET /api/users
    response_model=UserListResponse,
    summary="List Users",
    description="All registered users sorted by name, used to filter movies by owner.",
)
async def list_users(
    response: Response,
    auth_service: AuthService = Depends(get_auth_service),
):
    # The roster changes on every signup
    response.headers["Cache-Control"] = "no-store"
    try:
        return UserListResponse(users=await auth_service.list_users())
    except Exception as e:
        logger.error(f"Error fetching users: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to fetch users",
            headers={"Cache-Control": "no-store"},
        )

"""
API Router Module - Aggregates all endpoint routers
"""
from fastapi import APIRouter

from watchlist.api.endpoints import admin, auth, health, movies, users

api_router = APIRouter()

# Auth routes sit directly under the API prefix: /api/signup, /api/login, ...
api_router.include_router(auth.router, tags=["Auth"])
api_router.include_router(health.router, prefix="/health", tags=["Health"])
api_router.include_router(movies.router, prefix="/movies", tags=["Movies"])
api_router.include_router(users.router, prefix="/users", tags=["Users"])
api_router.include_router(admin.router, prefix="/admin", tags=["Admin"])
api_router.include_router(admin.activity_router, prefix="/activity", tags=["Admin"])

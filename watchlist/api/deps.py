# FastAPI dependencies (database, services)
# watchlist/api/deps.py

import logging
from typing import AsyncGenerator, Optional

from fastapi import Depends, HTTPException, status
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo.errors import ConfigurationError, PyMongoError

from watchlist.core.config import settings
from watchlist.data_access.mongo_client import ensure_indexes
from watchlist.services.activity_service import ActivityService
from watchlist.services.auth_service import AuthService
from watchlist.services.movie_service import MovieService

logger = logging.getLogger(__name__)

# --- Global Client (initialized by the application lifespan) ---
mongo_client: Optional[AsyncIOMotorClient] = None
db_instance: Optional[AsyncIOMotorDatabase] = None


def resolve_database(client: AsyncIOMotorClient) -> AsyncIOMotorDatabase:
    """The database named in the URI, or MONGODB_DB_NAME when the URI names none."""
    try:
        return client.get_default_database()
    except ConfigurationError:
        return client[settings.MONGODB_DB_NAME]


async def initialize_connections():
    """
    Initializes the MongoDB connection and ensures indexes.
    Called on application startup.
    """
    global mongo_client, db_instance
    logger.info("Initializing external connections...")

    try:
        logger.info(f"Attempting to connect to MongoDB: {settings.MONGODB_URI.get_secret_value()[:15]}...")
        mongo_client = AsyncIOMotorClient(
            settings.MONGODB_URI.get_secret_value(),
            serverSelectionTimeoutMS=5000,
        )
        await mongo_client.admin.command('ping')

        db_instance = resolve_database(mongo_client)
        await ensure_indexes(db_instance)
        logger.info(f"MongoDB client initialized successfully. Using database: '{db_instance.name}'")

    except PyMongoError as e:
        # The API still starts; requests needing the database get 503
        logger.error(f"MongoDB connection failed during initialization: {e}", exc_info=True)
        mongo_client = None
        db_instance = None


async def close_connections():
    """Closes the MongoDB connection. Called on application shutdown."""
    global mongo_client, db_instance
    logger.info("Closing external connections...")
    if mongo_client:
        mongo_client.close()
        logger.info("MongoDB client closed.")
    mongo_client = None
    db_instance = None


# --- Database Dependency ---

async def get_db() -> AsyncGenerator[AsyncIOMotorDatabase, None]:
    """
    FastAPI dependency that yields the application's MongoDB database instance.

    Raises:
        HTTPException 503: If the database instance is not available.
    """
    if db_instance is None:
        logger.critical("MongoDB database instance is not available. Check initialization.")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Database service not available.",
        )
    yield db_instance


# --- Service Dependencies ---

def get_activity_service(db: AsyncIOMotorDatabase = Depends(get_db)) -> ActivityService:
    return ActivityService(db=db)


def get_auth_service(db: AsyncIOMotorDatabase = Depends(get_db)) -> AuthService:
    return AuthService(db=db)


def get_movie_service(
    db: AsyncIOMotorDatabase = Depends(get_db),
    activity_service: ActivityService = Depends(get_activity_service),
) -> MovieService:
    return MovieService(db=db, activity_service=activity_service)

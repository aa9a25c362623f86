# watchlist/services/activity_service.py

import logging
from typing import Any, Dict, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import PyMongoError

from watchlist.data_access.mongo_client import ActivityLogRepository, to_object_id
from watchlist.models.activity import ActivityAction, ActivityLogPage, ActivityLogRead
from watchlist.models.user import CurrentUser
from watchlist.utils.helpers import utc_now

logger = logging.getLogger(__name__)


class ActivityService:
    """Append-only audit trail of user actions, read by the admin feed."""

    def __init__(self, db: AsyncIOMotorDatabase):
        self.repository = ActivityLogRepository(db)

    async def log_activity(
        self,
        user: CurrentUser,
        action: ActivityAction,
        movie_id: Optional[str] = None,
        movie_title: Optional[str] = None,
        details: Optional[str] = None,
    ) -> Optional[str]:
        """
        Records one action. The shared guest identity is not logged.

        Logging must never break the operation being logged, so database errors
        are reported and swallowed here.

        Returns:
            The new log entry's id, or None when nothing was written.
        """
        if user.is_guest:
            return None
        log_doc: Dict[str, Any] = {
            "userId": user.id,
            "userName": user.name,
            "action": action.value,
            "movieId": movie_id,
            "movieTitle": movie_title,
            "details": details,
            "timestamp": utc_now(),
        }
        try:
            log_id = await self.repository.insert_one(log_doc)
            logger.debug(f"Activity logged: {user.name} {action.value} '{movie_title}' ({log_id})")
            return log_id
        except PyMongoError as e:
            logger.error(f"Failed to log activity '{action.value}' for user {user.id}: {e}", exc_info=True)
            return None

    async def list_activity(self, user_id: Optional[str] = None, limit: int = 100, skip: int = 0) -> ActivityLogPage:
        """
        Returns a page of the activity feed, newest first.

        Args:
            user_id: Restrict the feed to one user.
            limit: Page size.
            skip: Number of entries to skip.

        Raises:
            PyMongoError: If a database error occurs.
        """
        query: Dict[str, Any] = {}
        if user_id:
            # Older entries stored userId as an ObjectId
            legacy_id = to_object_id(user_id)
            query["userId"] = {"$in": [user_id, legacy_id]} if legacy_id else user_id

        docs = await self.repository.find_page(query, skip=skip, limit=limit)
        total = await self.repository.count(query)
        logs = [self._to_read(doc) for doc in docs]
        logger.info(f"Fetched {len(logs)} activity logs (skip {skip}, total {total}) with query: {query}")
        return ActivityLogPage(logs=logs, total=total, limit=limit, skip=skip)

    @staticmethod
    def _to_read(doc: Dict[str, Any]) -> ActivityLogRead:
        return ActivityLogRead(
            id=str(doc["_id"]),
            userId=str(doc.get("userId")),
            userName=doc.get("userName") or "Unknown",
            action=doc["action"],
            movieId=doc.get("movieId"),
            movieTitle=doc.get("movieTitle"),
            details=doc.get("details"),
            timestamp=doc["timestamp"],
        )

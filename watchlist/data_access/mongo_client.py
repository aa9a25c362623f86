# MongoDB repositories
# watchlist/data_access/mongo_client.py

import logging
from typing import Any, Dict, Iterable, List, Optional

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorCollection, AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING, ReturnDocument
from pymongo.errors import PyMongoError

from watchlist.utils.helpers import exact_name_pattern

logger = logging.getLogger(__name__)

# --- Collection Names ---
USERS_COLLECTION = "users"
MOVIES_TO_WATCH_COLLECTION = "movies-to-watch"
MOVIES_WATCHED_COLLECTION = "movies-watched"
MOVIES_DELETED_COLLECTION = "movies-deleted"
ACTIVITY_LOGS_COLLECTION = "activitylogs"

# Case-insensitive comparison for user names
NAME_COLLATION = {"locale": "en", "strength": 2}


def to_object_id(id_str: Any) -> Optional[ObjectId]:
    """Parses an ObjectId string; None when the value is not a valid id."""
    if isinstance(id_str, ObjectId):
        return id_str
    if isinstance(id_str, str) and ObjectId.is_valid(id_str):
        return ObjectId(id_str)
    return None


# --- Base Repository ---
class BaseRepository:
    """Common plumbing for the collection repositories."""
    def __init__(self, db: AsyncIOMotorDatabase, collection_name: str):
        self.db = db
        self.collection_name = collection_name
        self.collection: AsyncIOMotorCollection = db[collection_name]
        logger.debug(f"Initialized repository for collection: {collection_name}")

    def _check_db(self):
        if self.db is None or self.collection is None:
            logger.critical(f"Database not available for collection {self.collection_name}")
            raise ConnectionError(f"Database connection not available for {self.collection_name}")


# --- User Repository ---
class UserRepository(BaseRepository):
    def __init__(self, db: AsyncIOMotorDatabase):
        super().__init__(db, collection_name=USERS_COLLECTION)

    async def ensure_indexes(self) -> None:
        await self.collection.create_index(
            [("name", ASCENDING)],
            name="name_ci_unique",
            unique=True,
            collation=NAME_COLLATION,
        )

    async def find_by_name(self, name: str, case_insensitive: bool = True) -> Optional[Dict[str, Any]]:
        """Finds a user by name; the default lookup ignores case."""
        self._check_db()
        query = {"name": exact_name_pattern(name) if case_insensitive else name}
        try:
            return await self.collection.find_one(query)
        except PyMongoError as e:
            logger.error(f"DB error finding user by name '{name}': {e}", exc_info=True)
            raise

    async def find_by_id(self, user_id: str) -> Optional[Dict[str, Any]]:
        self._check_db()
        obj_id = to_object_id(user_id)
        if obj_id is None:
            return None
        try:
            return await self.collection.find_one({"_id": obj_id})
        except PyMongoError as e:
            logger.error(f"DB error finding user {user_id}: {e}", exc_info=True)
            raise

    async def count(self) -> int:
        self._check_db()
        try:
            return await self.collection.count_documents({})
        except PyMongoError as e:
            logger.error(f"DB error counting users: {e}", exc_info=True)
            raise

    async def insert_one(self, user_doc: Dict[str, Any]) -> str:
        """Inserts a user document. DuplicateKeyError propagates for taken names."""
        self._check_db()
        try:
            result = await self.collection.insert_one(user_doc)
            return str(result.inserted_id)
        except PyMongoError as e:
            logger.error(f"DB error inserting user '{user_doc.get('name')}': {e}", exc_info=True)
            raise

    async def set_role(self, user_id: ObjectId, role: str, updated_at) -> None:
        self._check_db()
        try:
            await self.collection.update_one({"_id": user_id}, {"$set": {"role": role, "updatedAt": updated_at}})
        except PyMongoError as e:
            logger.error(f"DB error setting role for user {user_id}: {e}", exc_info=True)
            raise

    async def list_all(self) -> List[Dict[str, Any]]:
        """All users sorted by name, without password hashes."""
        self._check_db()
        try:
            cursor = self.collection.find({}, {"password": 0}).sort("name", ASCENDING)
            return await cursor.to_list(length=None)
        except PyMongoError as e:
            logger.error(f"DB error listing users: {e}", exc_info=True)
            raise

    async def names_by_ids(self, user_ids: Iterable[str]) -> Dict[str, str]:
        """Maps user id strings to names. Ids that are not ObjectIds (e.g. guest) are skipped."""
        self._check_db()
        object_ids = [obj_id for uid in set(user_ids) if (obj_id := to_object_id(uid))]
        if not object_ids:
            return {}
        try:
            cursor = self.collection.find({"_id": {"$in": object_ids}}, {"name": 1})
            docs = await cursor.to_list(length=len(object_ids))
            return {str(doc["_id"]): doc.get("name") for doc in docs}
        except PyMongoError as e:
            logger.error(f"DB error resolving user names: {e}", exc_info=True)
            raise


# --- Movie Repository ---
class MovieRepository(BaseRepository):
    """
    Access to one of the movie collections. Movies are split by status across
    `movies-to-watch` and `movies-watched`; `movies-deleted` keeps soft-deleted ones.
    """
    def __init__(self, db: AsyncIOMotorDatabase, collection_name: str):
        super().__init__(db, collection_name=collection_name)

    async def ensure_indexes(self) -> None:
        await self.collection.create_index([("userId", ASCENDING)])

    async def find_by_owner(self, user_id: Optional[str]) -> List[Dict[str, Any]]:
        """Movies of one user (all users when user_id is None), newest first."""
        self._check_db()
        query = {} if user_id is None else {"userId": user_id}
        try:
            cursor = self.collection.find(query).sort("createdAt", DESCENDING)
            return await cursor.to_list(length=None)
        except PyMongoError as e:
            logger.error(f"DB error listing {self.collection_name} for user {user_id}: {e}", exc_info=True)
            raise

    async def find_owned(self, movie_id: ObjectId, user_id: str) -> Optional[Dict[str, Any]]:
        self._check_db()
        try:
            return await self.collection.find_one({"_id": movie_id, "userId": user_id})
        except PyMongoError as e:
            logger.error(f"DB error finding movie {movie_id} in {self.collection_name}: {e}", exc_info=True)
            raise

    async def insert_one(self, movie_doc: Dict[str, Any]) -> ObjectId:
        self._check_db()
        try:
            result = await self.collection.insert_one(movie_doc)
            return result.inserted_id
        except PyMongoError as e:
            logger.error(f"DB error inserting movie into {self.collection_name}: {e}", exc_info=True)
            raise

    async def update_owned(
        self, movie_id: ObjectId, user_id: str, set_fields: Dict[str, Any], unset_fields: Iterable[str] = ()
    ) -> Optional[Dict[str, Any]]:
        """Applies $set/$unset to a user's movie and returns the updated document."""
        self._check_db()
        update: Dict[str, Any] = {}
        if set_fields:
            update["$set"] = set_fields
        unset_fields = list(unset_fields)
        if unset_fields:
            update["$unset"] = {field: "" for field in unset_fields}
        if not update:
            return await self.find_owned(movie_id, user_id)
        try:
            return await self.collection.find_one_and_update(
                {"_id": movie_id, "userId": user_id},
                update,
                return_document=ReturnDocument.AFTER,
            )
        except PyMongoError as e:
            logger.error(f"DB error updating movie {movie_id} in {self.collection_name}: {e}", exc_info=True)
            raise

    async def delete_by_id(self, movie_id: ObjectId) -> int:
        self._check_db()
        try:
            result = await self.collection.delete_one({"_id": movie_id})
            return result.deleted_count
        except PyMongoError as e:
            logger.error(f"DB error deleting movie {movie_id} from {self.collection_name}: {e}", exc_info=True)
            raise


# --- Activity Log Repository ---
class ActivityLogRepository(BaseRepository):
    def __init__(self, db: AsyncIOMotorDatabase):
        super().__init__(db, collection_name=ACTIVITY_LOGS_COLLECTION)

    async def ensure_indexes(self) -> None:
        await self.collection.create_index([("timestamp", DESCENDING)])
        await self.collection.create_index([("userId", ASCENDING)])

    async def insert_one(self, log_doc: Dict[str, Any]) -> str:
        self._check_db()
        try:
            result = await self.collection.insert_one(log_doc)
            return str(result.inserted_id)
        except PyMongoError as e:
            logger.error(f"DB error inserting activity log: {e}", exc_info=True)
            raise

    async def find_page(self, query: Dict[str, Any], skip: int, limit: int) -> List[Dict[str, Any]]:
        """Newest entries first."""
        self._check_db()
        try:
            cursor = self.collection.find(query).sort("timestamp", DESCENDING).skip(skip).limit(limit)
            return await cursor.to_list(length=limit)
        except PyMongoError as e:
            logger.error(f"DB error listing activity logs with query {query}: {e}", exc_info=True)
            raise

    async def count(self, query: Dict[str, Any]) -> int:
        self._check_db()
        try:
            return await self.collection.count_documents(query)
        except PyMongoError as e:
            logger.error(f"DB error counting activity logs with query {query}: {e}", exc_info=True)
            raise


async def ensure_indexes(db: AsyncIOMotorDatabase) -> None:
    """Creates the indexes the application relies on (idempotent)."""
    await UserRepository(db).ensure_indexes()
    for name in (MOVIES_TO_WATCH_COLLECTION, MOVIES_WATCHED_COLLECTION, MOVIES_DELETED_COLLECTION):
        await MovieRepository(db, name).ensure_indexes()
    await ActivityLogRepository(db).ensure_indexes()
    logger.info("MongoDB indexes ensured.")

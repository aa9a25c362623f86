import unittest
from unittest.mock import AsyncMock, patch

from bson import ObjectId
from mongomock_motor import AsyncMongoMockClient
from pymongo.errors import OperationFailure

from watchlist.data_access.mongo_client import ensure_indexes
from watchlist.models.activity import ActivityAction
from watchlist.models.movie import MovieCreate, MovieUpdate
from watchlist.models.user import CurrentUser, Role
from watchlist.services.activity_service import ActivityService
from watchlist.services.movie_service import InvalidMovieIdError, MovieNotFoundError, MovieService


class TestMovieService(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self) -> None:
        self.db = AsyncMongoMockClient()["watchlist_test"]
        await ensure_indexes(self.db)
        self.service = MovieService(self.db)
        self.user = CurrentUser(id=str(ObjectId()), name="alice", role=Role.USER)

    async def test_move_rolls_back_when_source_delete_fails(self):
        movie = await self.service.create_movie(self.user, MovieCreate(title="Heat"))

        with patch.object(self.service.to_watch, "delete_by_id", AsyncMock(side_effect=OperationFailure("boom"))):
            with self.assertRaises(OperationFailure):
                await self.service.update_movie(self.user, movie.id, MovieUpdate(watched=True))

        # Still exactly where it was, and nowhere else
        self.assertEqual(await self.db["movies-to-watch"].count_documents({"_id": ObjectId(movie.id)}), 1)
        self.assertEqual(await self.db["movies-watched"].count_documents({}), 0)

    async def test_delete_rolls_back_when_source_delete_fails(self):
        movie = await self.service.create_movie(self.user, MovieCreate(title="Alien", watched=True, rating=4))

        with patch.object(self.service.watched, "delete_by_id", AsyncMock(side_effect=OperationFailure("boom"))):
            with self.assertRaises(OperationFailure):
                await self.service.delete_movie(self.user, movie.id)

        self.assertEqual(await self.db["movies-watched"].count_documents({}), 1)
        self.assertEqual(await self.db["movies-deleted"].count_documents({}), 0)

    async def test_watched_at_can_be_given(self):
        movie = await self.service.create_movie(self.user, MovieCreate(title="Heat"))
        update = MovieUpdate.model_validate({"watched": True, "watchedAt": "2023-06-01T20:00:00Z"})
        moved = await self.service.update_movie(self.user, movie.id, update)
        self.assertEqual(moved.watchedAt.year, 2023)
        self.assertEqual(moved.watchedAt.month, 6)

    async def test_lookup_errors(self):
        with self.assertRaises(InvalidMovieIdError):
            await self.service.get_movie(self.user, "123")
        with self.assertRaises(MovieNotFoundError):
            await self.service.get_movie(self.user, str(ObjectId()))

    async def test_no_op_update_is_not_logged(self):
        movie = await self.service.create_movie(self.user, MovieCreate(title="Heat"))
        await self.service.update_movie(self.user, movie.id, MovieUpdate())
        docs = await self.db["activitylogs"].find({}).to_list(length=None)
        actions = [doc["action"] for doc in docs]
        self.assertEqual(actions, [ActivityAction.ADD.value])


class TestActivityService(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self) -> None:
        self.db = AsyncMongoMockClient()["watchlist_test"]
        self.service = ActivityService(self.db)
        self.user = CurrentUser(id=str(ObjectId()), name="alice", role=Role.USER)

    async def test_guest_is_not_logged(self):
        guest = CurrentUser(id="guest", name="Guest", is_guest=True)
        self.assertIsNone(await self.service.log_activity(guest, ActivityAction.ADD, movie_title="Heat"))
        self.assertEqual(await self.db["activitylogs"].count_documents({}), 0)

    async def test_logging_errors_are_swallowed(self):
        with patch.object(self.service.repository, "insert_one", AsyncMock(side_effect=OperationFailure("down"))):
            result = await self.service.log_activity(self.user, ActivityAction.ADD, movie_title="Heat")
        self.assertIsNone(result)

    async def test_legacy_object_id_entries_match_user_filter(self):
        await self.service.log_activity(self.user, ActivityAction.ADD, movie_title="Heat")
        await self.db["activitylogs"].insert_one({
            "userId": ObjectId(self.user.id),
            "userName": "alice",
            "action": "watch",
            "movieTitle": "Heat",
            "timestamp": (await self.db["activitylogs"].find_one({}))["timestamp"],
        })
        await self.service.log_activity(
            CurrentUser(id=str(ObjectId()), name="bob"), ActivityAction.ADD, movie_title="Alien"
        )

        page = await self.service.list_activity(user_id=self.user.id)
        self.assertEqual(page.total, 2)
        self.assertTrue(all(log.userId == self.user.id for log in page.logs))

import asyncio
import unittest

from fastapi.testclient import TestClient
from mongomock_motor import AsyncMongoMockClient

from watchlist.api.deps import get_db
from watchlist.data_access.mongo_client import ensure_indexes
from watchlist.server import app

DEFAULT_PASSWORD = "secret123"


def make_test_db():
    """A fresh in-memory database with the application's indexes."""
    db = AsyncMongoMockClient()["watchlist_test"]
    asyncio.run(ensure_indexes(db))
    return db


class ApiTestCase(unittest.TestCase):
    """Runs the app against an in-memory database. Each TestClient keeps its own cookie jar."""

    def setUp(self) -> None:
        self.db = make_test_db()

        async def _get_test_db():
            yield self.db

        app.dependency_overrides[get_db] = _get_test_db
        # No context manager: the lifespan would try to reach a real MongoDB
        self.client = TestClient(app)

    def tearDown(self) -> None:
        app.dependency_overrides = {}

    def new_client(self) -> TestClient:
        return TestClient(app)

    def signup(self, name: str, password: str = DEFAULT_PASSWORD, client: TestClient = None) -> dict:
        resp = (client or self.client).post("/api/signup", json={"name": name, "password": password})
        self.assertEqual(resp.status_code, 201, resp.text)
        return resp.json()["user"]

    def add_movie(self, client: TestClient = None, **fields) -> dict:
        resp = (client or self.client).post("/api/movies", json=fields)
        self.assertEqual(resp.status_code, 201, resp.text)
        return resp.json()["movie"]

    def run_async(self, coro):
        return asyncio.run(coro)

import asyncio
import unittest
from unittest.mock import MagicMock, patch

from mongomock_motor import AsyncMongoMockClient

from watchlist import cli
from watchlist.models.user import SignupRequest
from watchlist.services.auth_service import AuthService


class TestAdminCli(unittest.TestCase):
    def setUp(self) -> None:
        self.db = AsyncMongoMockClient()["watchlist_test"]
        auth = AuthService(self.db)
        asyncio.run(auth.signup(SignupRequest(name="alice", password="secret123")))
        asyncio.run(auth.signup(SignupRequest(name="bob", password="secret123")))

        self.client = MagicMock()
        patchers = [
            patch("watchlist.cli._connect", return_value=self.client),
            patch("watchlist.api.deps.resolve_database", return_value=self.db),
        ]
        for p in patchers:
            p.start()
            self.addCleanup(p.stop)

    def test_parser(self):
        args = cli._build_parser().parse_args(["make-admin", "bob"])
        self.assertEqual((args.command, args.username), ("make-admin", "bob"))
        with self.assertRaises(SystemExit):
            cli._build_parser().parse_args([])

    def test_make_admin_promotes_user(self):
        self.assertEqual(asyncio.run(cli._make_admin("bob")), 0)
        doc = asyncio.run(self.db["users"].find_one({"name": "bob"}))
        self.assertEqual(doc["role"], "admin")
        self.client.close.assert_called_once()

    def test_make_admin_unknown_user_exits_1(self):
        self.assertEqual(asyncio.run(cli._make_admin("nobody")), 1)

    def test_make_admin_matches_exact_name(self):
        self.assertEqual(asyncio.run(cli._make_admin("BOB")), 1)
        doc = asyncio.run(self.db["users"].find_one({"name": "bob"}))
        self.assertEqual(doc["role"], "user")

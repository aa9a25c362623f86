from unittest.mock import patch

from watchlist.core.config import settings
from watchlist.core.security import create_access_token, decode_access_token
from watchlist.models.user import Role

from tests.support import DEFAULT_PASSWORD, ApiTestCase


class TestSignupAndLogin(ApiTestCase):
    def test_first_signup_becomes_admin_and_sets_cookie(self):
        resp = self.client.post("/api/signup", json={"name": "alice", "password": DEFAULT_PASSWORD})
        self.assertEqual(resp.status_code, 201, resp.text)
        body = resp.json()
        self.assertEqual(body["user"]["name"], "alice")
        self.assertEqual(body["user"]["role"], "admin")
        self.assertIn(settings.AUTH_COOKIE_NAME, resp.cookies)
        set_cookie = resp.headers["set-cookie"].lower()
        self.assertIn("httponly", set_cookie)

        second = self.signup("bob", client=self.new_client())
        self.assertEqual(second["role"], "user")

    def test_signup_validation(self):
        cases = [
            ({"name": "alice"}, "Name and password are required."),
            ({"password": DEFAULT_PASSWORD}, "Name and password are required."),
            ({"name": "alice", "password": "123"}, "Password must be at least 6 characters."),
            ({"name": "al", "password": DEFAULT_PASSWORD}, "Name must be at least 3 characters."),
        ]
        for payload, detail in cases:
            with self.subTest(payload=payload):
                resp = self.client.post("/api/signup", json=payload)
                self.assertEqual(resp.status_code, 400, resp.text)
                self.assertEqual(resp.json()["detail"], detail)

    def test_duplicate_name_is_case_insensitive(self):
        self.signup("Alice")
        resp = self.new_client().post("/api/signup", json={"name": "alice", "password": DEFAULT_PASSWORD})
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.json()["detail"], "This name is already taken.")

    def test_password_is_stored_hashed(self):
        user = self.signup("alice")
        doc = self.run_async(self.db["users"].find_one({"name": "alice"}))
        self.assertEqual(str(doc["_id"]), user["id"])
        self.assertNotEqual(doc["password"], DEFAULT_PASSWORD)
        self.assertTrue(doc["password"].startswith("$2"))

    def test_login_is_case_insensitive(self):
        self.signup("Alice")
        client = self.new_client()
        resp = client.post("/api/login", json={"name": "ALICE", "password": DEFAULT_PASSWORD})
        self.assertEqual(resp.status_code, 200, resp.text)
        self.assertEqual(resp.json()["user"]["name"], "Alice")
        self.assertIn(settings.AUTH_COOKIE_NAME, resp.cookies)

    def test_login_failures(self):
        self.signup("alice")
        client = self.new_client()

        resp = client.post("/api/login", json={"name": "alice"})
        self.assertEqual(resp.status_code, 400)

        resp = client.post("/api/login", json={"name": "alice", "password": "wrong-password"})
        self.assertEqual(resp.status_code, 401)
        self.assertEqual(resp.json()["detail"], "Invalid name or password.")

        resp = client.post("/api/login", json={"name": "nobody", "password": DEFAULT_PASSWORD})
        self.assertEqual(resp.status_code, 401)
        self.assertEqual(resp.json()["detail"], "Invalid name or password.")

    def test_signup_without_jwt_secret_is_unavailable(self):
        with patch.object(settings, "JWT_SECRET", None):
            resp = self.client.post("/api/signup", json={"name": "alice", "password": DEFAULT_PASSWORD})
        self.assertEqual(resp.status_code, 503)


class TestSession(ApiTestCase):
    def test_me_returns_guest_when_anonymous(self):
        resp = self.client.get("/api/me")
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()["user"], {"id": "guest", "name": "Guest", "role": "user"})

    def test_me_returns_logged_in_user(self):
        user = self.signup("alice")
        resp = self.client.get("/api/me")
        self.assertEqual(resp.json()["user"]["id"], user["id"])

    def test_me_requires_login_when_guest_mode_disabled(self):
        with patch.object(settings, "ALLOW_GUEST", False):
            resp = self.client.get("/api/me")
        self.assertEqual(resp.status_code, 401)

    def test_logout_clears_cookie(self):
        self.signup("alice")
        resp = self.client.post("/api/logout")
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()["message"], "Logged out")
        self.assertIn("max-age=0", resp.headers["set-cookie"].lower())

        me = self.client.get("/api/me")
        self.assertEqual(me.json()["user"]["id"], "guest")

    def test_bearer_token_is_accepted(self):
        user = self.signup("alice")
        token = create_access_token(user["id"], user["name"], Role.ADMIN)
        resp = self.new_client().get("/api/me", headers={"Authorization": f"Bearer {token}"})
        self.assertEqual(resp.json()["user"]["id"], user["id"])

    def test_tampered_token_is_anonymous(self):
        token = create_access_token("507f1f77bcf86cd799439011", "mallory", Role.USER)
        self.assertIsNotNone(decode_access_token(token))
        header, payload, signature = token.split(".")
        self.assertIsNone(decode_access_token(f"{header}.{payload}.{'A' * len(signature)}"))

        resp = self.new_client().get("/api/me", headers={"Authorization": "Bearer not-a-token"})
        self.assertEqual(resp.json()["user"]["id"], "guest")


class TestUsersRoster(ApiTestCase):
    def test_users_sorted_by_name_without_passwords(self):
        self.signup("charlie")
        self.signup("alice", client=self.new_client())
        self.signup("bob", client=self.new_client())

        resp = self.new_client().get("/api/users")
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.headers["cache-control"], "no-store")
        users = resp.json()["users"]
        self.assertEqual([u["name"] for u in users], ["alice", "bob", "charlie"])
        self.assertTrue(all(set(u) == {"id", "name", "role"} for u in users))


class TestHealth(ApiTestCase):
    def test_health_and_root(self):
        self.assertEqual(self.client.get("/api/health").json(), {"status": "ok"})
        resp = self.client.get("/")
        self.assertEqual(resp.status_code, 200)
        self.assertIn("message", resp.json())

"""API tests for /auth/* and /admin against the full app with an in-memory SQLite database."""

import os

TEST_SECRET = "api-test-secret-0123456789abcdef0123456789"
os.environ["JWT_SECRET"] = TEST_SECRET
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["BCRYPT_ROUNDS"] = "4"

import asyncio
import time
import unittest
from unittest.mock import patch

import jwt
from fastapi.testclient import TestClient
from sqlalchemy.exc import SQLAlchemyError

from app.api.deps import get_user_store
from app.core.config import Settings
from app.core.database import SessionLocal, get_engine
from app.core.security import (
    ROLE_ADMIN,
    ROLE_USER,
    TokenClaims,
    hash_password,
    hash_password_async,
    verify_password,
    verify_password_async,
)
from app.main import create_app
from app.models import Base, User
from app.services.user_store import UserStore

PASSWORD = "s3cret-password"


def _reset_db() -> None:
    engine = get_engine()
    Base.metadata.drop_all(engine)
    Base.metadata.create_all(engine)


def _create_user(
    email: str = "shopper@example.com",
    password: str = PASSWORD,
    role: str = ROLE_USER,
    name: str | None = "Shopper",
) -> str:
    db = SessionLocal()
    try:
        user = UserStore(db).create(email, hash_password(password, rounds=4), name, role)
        return user.id
    finally:
        db.close()


def _load_user(email: str) -> User | None:
    db = SessionLocal()
    try:
        return UserStore(db).find_by_email(email)
    finally:
        db.close()


class _BrokenStore:
    def find_by_email(self, email: str) -> None:
        raise SQLAlchemyError("database unavailable")


class _SlowStore:
    def find_by_email(self, email: str) -> None:
        time.sleep(0.3)
        return None


def _slow_verify(plain_password: str, hashed: str | None) -> bool:
    time.sleep(0.5)
    return True


class TestLogin(unittest.TestCase):
    """POST /auth/login: token in body and cookie; uniform failure message."""

    def setUp(self) -> None:
        _reset_db()
        self.user_id = _create_user()
        self.app = create_app()
        self.client = TestClient(self.app)

    def test_success_returns_token_user_and_cookie(self) -> None:
        response = self.client.post(
            "/auth/login", json={"email": "shopper@example.com", "password": PASSWORD}
        )
        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertTrue(body["success"])
        self.assertEqual(body["message"], "Login successful")
        self.assertEqual(
            body["user"],
            {"id": self.user_id, "email": "shopper@example.com", "name": "Shopper", "role": ROLE_USER},
        )
        self.assertNotIn("password_hash", body["user"])

        cookie = response.headers["set-cookie"].lower()
        self.assertIn(f"auth-token={body['token']}".lower(), cookie)
        self.assertIn("httponly", cookie)
        self.assertIn("samesite=lax", cookie)
        self.assertIn("max-age=86400", cookie)
        self.assertIn("path=/", cookie)
        self.assertNotIn("; secure", cookie)

    def test_token_expiry_matches_cookie_max_age(self) -> None:
        response = self.client.post(
            "/auth/login", json={"email": "shopper@example.com", "password": PASSWORD}
        )
        payload = jwt.decode(response.json()["token"], TEST_SECRET, algorithms=["HS256"])
        self.assertEqual(payload["exp"] - payload["iat"], 86400)
        self.assertEqual(payload["sub"], self.user_id)
        self.assertEqual(payload["role"], ROLE_USER)

    def test_issued_token_verifies(self) -> None:
        token = self.client.post(
            "/auth/login", json={"email": "shopper@example.com", "password": PASSWORD}
        ).json()["token"]
        claims = asyncio.run(self.app.state.token_service.verify(token))
        self.assertEqual(claims.user_id, self.user_id)
        self.assertEqual(claims.email, "shopper@example.com")

    def test_email_is_case_insensitive(self) -> None:
        response = self.client.post(
            "/auth/login", json={"email": "  Shopper@Example.COM ", "password": PASSWORD}
        )
        self.assertEqual(response.status_code, 200)

    def test_unknown_email_and_wrong_password_are_indistinguishable(self) -> None:
        unknown = self.client.post(
            "/auth/login", json={"email": "nobody@example.com", "password": PASSWORD}
        )
        wrong = self.client.post(
            "/auth/login", json={"email": "shopper@example.com", "password": "not-the-password"}
        )
        self.assertEqual(unknown.status_code, 401)
        self.assertEqual(wrong.status_code, 401)
        self.assertEqual(unknown.json(), wrong.json())
        self.assertEqual(unknown.json(), {"success": False, "message": "Invalid credentials"})
        self.assertNotIn("set-cookie", unknown.headers)
        self.assertNotIn("set-cookie", wrong.headers)

    def test_missing_fields_return_400(self) -> None:
        for body in ({}, {"email": "shopper@example.com"}, {"password": PASSWORD}, {"email": " ", "password": PASSWORD}):
            response = self.client.post("/auth/login", json=body)
            self.assertEqual(response.status_code, 400, body)
            self.assertEqual(
                response.json(),
                {"success": False, "message": "Email and password are required."},
            )

    def test_malformed_json_returns_400(self) -> None:
        response = self.client.post(
            "/auth/login",
            content="{not json",
            headers={"Content-Type": "application/json"},
        )
        self.assertEqual(response.status_code, 400)
        body = response.json()
        self.assertFalse(body["success"])
        self.assertEqual(body["message"], "Invalid request body.")

    def test_wrong_json_type_returns_400(self) -> None:
        response = self.client.post("/auth/login", json=["shopper@example.com", PASSWORD])
        self.assertEqual(response.status_code, 400)
        self.assertFalse(response.json()["success"])

    def test_store_failure_returns_generic_500(self) -> None:
        self.app.dependency_overrides[get_user_store] = lambda: _BrokenStore()
        with self.assertLogs("app.api.routes.auth", level="ERROR"):
            response = self.client.post(
                "/auth/login", json={"email": "shopper@example.com", "password": PASSWORD}
            )
        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.json(), {"success": False, "message": "Internal Server Error"})

    def test_slow_store_is_awaited_past_the_hashing_timeout(self) -> None:
        # The store call holds the request's Session, so it runs to completion.
        app = create_app(Settings(AUTH_OPERATION_TIMEOUT_SEC=0.1))
        app.dependency_overrides[get_user_store] = lambda: _SlowStore()
        response = TestClient(app).post(
            "/auth/login", json={"email": "shopper@example.com", "password": PASSWORD}
        )
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json()["message"], "Invalid credentials")

    def test_slow_hashing_times_out(self) -> None:
        app = create_app(Settings(AUTH_OPERATION_TIMEOUT_SEC=0.05))
        with patch("app.core.security.verify_password", _slow_verify):
            with self.assertLogs("app.api.routes.auth", level="ERROR"):
                response = TestClient(app).post(
                    "/auth/login", json={"email": "shopper@example.com", "password": PASSWORD}
                )
        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.json()["message"], "Internal Server Error")

    def test_unknown_email_verifies_against_dummy_hash(self) -> None:
        with patch(
            "app.api.routes.auth.verify_password_async", wraps=verify_password_async
        ) as verify:
            response = self.client.post(
                "/auth/login", json={"email": "nobody@example.com", "password": PASSWORD}
            )
        self.assertEqual(response.status_code, 401)
        verify.assert_awaited_once_with(PASSWORD, self.app.state.dummy_password_hash)

    def test_dummy_hash_uses_configured_cost(self) -> None:
        app = create_app(Settings(BCRYPT_ROUNDS=5))
        self.assertTrue(app.state.dummy_password_hash.startswith("$2b$05$"))
        response = TestClient(app).post(
            "/auth/register", json={"email": "costly@example.com", "password": PASSWORD}
        )
        self.assertEqual(response.status_code, 201)
        stored = _load_user("costly@example.com").password_hash
        self.assertEqual(stored[:7], app.state.dummy_password_hash[:7])



class TestRegister(unittest.TestCase):
    """POST /auth/register: 201 with token and cookie; 409 on duplicate email."""

    def setUp(self) -> None:
        _reset_db()
        self.client = TestClient(create_app())

    def test_creates_user_with_default_role(self) -> None:
        response = self.client.post(
            "/auth/register",
            json={"email": "New@Example.com", "password": PASSWORD, "name": "New Person"},
        )
        self.assertEqual(response.status_code, 201)
        body = response.json()
        self.assertTrue(body["success"])
        self.assertEqual(body["message"], "User registered successfully.")
        self.assertEqual(body["user"]["email"], "new@example.com")
        self.assertEqual(body["user"]["name"], "New Person")
        self.assertEqual(body["user"]["role"], ROLE_USER)
        self.assertTrue(body["token"])
        self.assertIn("auth-token=", response.headers["set-cookie"])

        stored = _load_user("new@example.com")
        self.assertIsNotNone(stored)
        self.assertNotEqual(stored.password_hash, PASSWORD)
        self.assertTrue(verify_password(PASSWORD, stored.password_hash))

    def test_name_is_optional(self) -> None:
        response = self.client.post(
            "/auth/register", json={"email": "anon@example.com", "password": PASSWORD}
        )
        self.assertEqual(response.status_code, 201)
        self.assertIsNone(response.json()["user"]["name"])

    def test_role_in_body_is_ignored(self) -> None:
        response = self.client.post(
            "/auth/register",
            json={"email": "sneaky@example.com", "password": PASSWORD, "role": ROLE_ADMIN},
        )
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.json()["user"]["role"], ROLE_USER)

    def test_duplicate_email_returns_409_and_keeps_existing_record(self) -> None:
        _create_user(email="taken@example.com", name="Original")
        before = _load_user("taken@example.com")

        response = self.client.post(
            "/auth/register",
            json={"email": "TAKEN@example.com", "password": "another-password", "name": "Impostor"},
        )
        self.assertEqual(response.status_code, 409)
        self.assertEqual(
            response.json(),
            {"success": False, "message": "User with this email already exists."},
        )
        after = _load_user("taken@example.com")
        self.assertEqual(after.id, before.id)
        self.assertEqual(after.name, "Original")
        self.assertEqual(after.password_hash, before.password_hash)
        self.assertTrue(verify_password(PASSWORD, after.password_hash))

    def test_missing_fields_return_400(self) -> None:
        response = self.client.post("/auth/register", json={"name": "No Credentials"})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["message"], "Email and password are required.")

    def test_short_password_returns_400(self) -> None:
        response = self.client.post(
            "/auth/register", json={"email": "short@example.com", "password": "short"}
        )
        self.assertEqual(response.status_code, 400)
        self.assertIsNone(_load_user("short@example.com"))

    def test_password_over_72_bytes_returns_400(self) -> None:
        # 40 characters, 80 UTF-8 bytes
        response = self.client.post(
            "/auth/register", json={"email": "long@example.com", "password": "é" * 40}
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["message"], "Password must be at most 72 bytes.")
        self.assertIsNone(_load_user("long@example.com"))

    def test_hashes_through_async_wrapper_with_configured_cost(self) -> None:
        with patch(
            "app.api.routes.auth.hash_password_async", wraps=hash_password_async
        ) as hasher:
            response = self.client.post(
                "/auth/register", json={"email": "wrapped@example.com", "password": PASSWORD}
            )
        self.assertEqual(response.status_code, 201)
        hasher.assert_awaited_once_with(PASSWORD, 4)

    def test_invalid_email_returns_400(self) -> None:
        response = self.client.post(
            "/auth/register", json={"email": "not-an-email", "password": PASSWORD}
        )
        self.assertEqual(response.status_code, 400)

    def test_registered_user_can_log_in(self) -> None:
        self.client.post("/auth/register", json={"email": "fresh@example.com", "password": PASSWORD})
        response = self.client.post(
            "/auth/login", json={"email": "fresh@example.com", "password": PASSWORD}
        )
        self.assertEqual(response.status_code, 200)


class TestCurrentUserAndLogout(unittest.TestCase):
    """GET /auth/me and POST /auth/logout."""

    def setUp(self) -> None:
        _reset_db()
        self.user_id = _create_user()
        self.app = create_app()
        self.client = TestClient(self.app)

    def _login(self) -> str:
        response = self.client.post(
            "/auth/login", json={"email": "shopper@example.com", "password": PASSWORD}
        )
        return response.json()["token"]

    def test_me_with_cookie(self) -> None:
        self._login()
        response = self.client.get("/auth/me")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["data"]["id"], self.user_id)

    def test_me_with_bearer_header(self) -> None:
        token = self._login()
        client = TestClient(self.app)
        response = client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["data"]["email"], "shopper@example.com")

    def test_me_without_token_returns_401(self) -> None:
        response = self.client.get("/auth/me")
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json(), {"success": False, "message": "Authentication required"})

    def test_me_for_deleted_user_returns_401(self) -> None:
        token = self.app.state.token_service.issue(
            TokenClaims(user_id="no-such-user", email="ghost@example.com", role=ROLE_USER)
        )
        response = self.client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json()["message"], "User not found")

    def test_logout_clears_cookie(self) -> None:
        self._login()
        response = self.client.post("/auth/logout")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["message"], "Logged out")
        self.assertIn("max-age=0", response.headers["set-cookie"].lower())
        self.assertEqual(self.client.get("/auth/me").status_code, 401)


class TestAdminPage(unittest.TestCase):
    """GET /admin through the full app."""

    def setUp(self) -> None:
        _reset_db()
        self.app = create_app()
        self.client = TestClient(self.app)

    def _cookie_for(self, role: str) -> None:
        token = self.app.state.token_service.issue(
            TokenClaims(user_id="u-1", email="someone@example.com", role=role)
        )
        self.client.cookies.set("auth-token", token)

    def test_no_cookie_redirects_to_login(self) -> None:
        response = self.client.get("/admin", follow_redirects=False)
        self.assertEqual(response.status_code, 302)
        self.assertEqual(response.headers["location"], "/login")

    def test_non_admin_redirects_home(self) -> None:
        self._cookie_for(ROLE_USER)
        response = self.client.get("/admin", follow_redirects=False)
        self.assertEqual(response.status_code, 302)
        self.assertEqual(response.headers["location"], "/")

    def test_admin_passes_through(self) -> None:
        self._cookie_for(ROLE_ADMIN)
        response = self.client.get("/admin", follow_redirects=False)
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["message"], "Admin dashboard")
        self.assertEqual(response.json()["data"]["role"], ROLE_ADMIN)


if __name__ == "__main__":
    unittest.main()

"""User account API tests.

Exercise the HTTP surface end to end: status codes, response shapes and
the bearer gate on authenticated routes.
"""

import logging

import pytest
from httpx import AsyncClient
from sqlalchemy import select

from storytime.models.user import User
from storytime.services.notifier import NotificationKind

pytestmark = pytest.mark.usefixtures("fast_bcrypt")

USERS = "/api/v1/users"

REGISTRATION = {
    "first_name": "Ann",
    "last_name": "Lee",
    "email": "ann@x.com",
    "password": "Secret123",
}


async def _register_and_verify(client: AsyncClient, notifier) -> None:
    await client.post(f"{USERS}/register", json=REGISTRATION)
    token = notifier.last(NotificationKind.VERIFY).token
    await client.get(f"{USERS}/verifyEmail/{token}")


async def _login(client: AsyncClient, password: str = "Secret123") -> dict[str, str]:
    response = await client.post(
        f"{USERS}/login", json={"email": "ann@x.com", "password": password}
    )
    return {"Authorization": f"Bearer {response.json()['token']}"}


class TestAccountLifecycle:
    """Register, verify, log in."""

    async def test_register_verify_login(self, async_client, notifier, db_session):
        response = await async_client.post(f"{USERS}/register", json=REGISTRATION)
        assert response.status_code == 201
        assert response.json() == {
            "message": "Registered successfully. Please check your mail to verify the account"
        }

        users = (await db_session.execute(select(User))).scalars().all()
        assert len(users) == 1
        assert users[0].verified is False

        token = notifier.last(NotificationKind.VERIFY).token
        response = await async_client.get(f"{USERS}/verifyEmail/{token}")
        assert response.status_code == 201
        assert response.json() == {"message": "Email is verified. Please log in."}
        assert users[0].verified is True

        response = await async_client.post(
            f"{USERS}/login", json={"email": "ann@x.com", "password": "Secret123"}
        )
        assert response.status_code == 200
        assert response.json()["message"] == "Login successful"
        assert response.json()["token"]

        response = await async_client.post(
            f"{USERS}/login", json={"email": "ann@x.com", "password": "wrong"}
        )
        assert response.status_code == 401
        assert response.json() == {"message": "Invalid email or password."}

    async def test_verify_again_returns_200(self, async_client, notifier):
        await _register_and_verify(async_client, notifier)
        token = notifier.last(NotificationKind.VERIFY).token

        response = await async_client.get(f"{USERS}/verifyEmail/{token}")

        assert response.status_code == 200
        assert response.json() == {"message": "Email is already verified. Please log in."}

    async def test_request_log_hides_verification_token(self, async_client, notifier, caplog):
        caplog.set_level(logging.INFO)
        await async_client.post(f"{USERS}/register", json=REGISTRATION)
        token = notifier.last(NotificationKind.VERIFY).token

        await async_client.get(f"{USERS}/verifyEmail/{token}")

        assert token not in caplog.text
        assert "/verifyEmail/[REDACTED]" in caplog.text

    async def test_verify_unknown_token(self, async_client):
        response = await async_client.get(f"{USERS}/verifyEmail/garbage")

        assert response.status_code == 409
        assert response.json() == {"message": "Invalid token"}

    async def test_register_duplicate(self, async_client):
        await async_client.post(f"{USERS}/register", json=REGISTRATION)

        response = await async_client.post(f"{USERS}/register", json=REGISTRATION)

        assert response.status_code == 409

    async def test_register_missing_fields(self, async_client):
        response = await async_client.post(
            f"{USERS}/register", json={"email": "ann@x.com"}
        )

        assert response.status_code == 400
        assert response.json() == {
            "message": "Firstname, Lastname, Email, and Password are required."
        }

    @pytest.mark.parametrize(
        ("field", "length"),
        [("first_name", 101), ("last_name", 101), ("email", 256)],
    )
    async def test_register_overlong_field(self, async_client, db_session, field, length):
        response = await async_client.post(
            f"{USERS}/register", json={**REGISTRATION, field: "a" * length}
        )

        assert response.status_code == 400
        assert response.json()["message"] == "Invalid request body"
        assert response.json()["details"][0]["loc"] == ["body", field]
        assert (await db_session.execute(select(User))).scalars().all() == []

    async def test_register_email_failure(self, async_client, notifier, db_session):
        notifier.fail = True

        response = await async_client.post(f"{USERS}/register", json=REGISTRATION)

        assert response.status_code == 500
        assert (await db_session.execute(select(User))).scalars().all() == []

    async def test_login_before_verification(self, async_client):
        await async_client.post(f"{USERS}/register", json=REGISTRATION)

        response = await async_client.post(
            f"{USERS}/login", json={"email": "ann@x.com", "password": "Secret123"}
        )

        assert response.status_code == 409

    async def test_malformed_body_is_400(self, async_client):
        response = await async_client.post(
            f"{USERS}/login",
            content=b"not json",
            headers={"Content-Type": "application/json"},
        )

        assert response.status_code == 400
        assert response.json()["message"] == "Invalid request body"


class TestPasswordRecovery:
    """Forgot and reset password over HTTP."""

    async def test_forgot_and_reset(self, async_client, notifier):
        await _register_and_verify(async_client, notifier)

        response = await async_client.post(
            f"{USERS}/forgotpassword", json={"email": "ann@x.com"}
        )
        assert response.status_code == 200
        assert response.json() == {
            "message": "password reset link sent successfully, please check your email"
        }

        token = notifier.last(NotificationKind.RESET).token
        response = await async_client.post(
            f"{USERS}/resetpassword/{token}", json={"password": "NewPass1"}
        )
        assert response.status_code == 200
        assert response.json() == {"message": "Password updated successfully, please login"}

        response = await async_client.post(
            f"{USERS}/resetpassword/{token}", json={"password": "Again222"}
        )
        assert response.status_code == 400

        response = await async_client.post(
            f"{USERS}/login", json={"email": "ann@x.com", "password": "NewPass1"}
        )
        assert response.status_code == 200

    async def test_forgot_unknown_email(self, async_client):
        response = await async_client.post(
            f"{USERS}/forgotpassword", json={"email": "nobody@x.com"}
        )

        assert response.status_code == 400
        assert response.json() == {"message": "Invalid Email or Email Not Found!"}


class TestGate:
    """Authenticated routes reject missing or bad sessions."""

    @pytest.mark.parametrize(
        ("method", "path"),
        [
            ("GET", "/profile"),
            ("PUT", "/profile"),
            ("PUT", "/preferredlanguage"),
            ("PUT", "/updatepassword"),
            ("POST", "/savestory"),
            ("DELETE", "/removestory"),
            ("GET", "/library"),
            ("GET", "/refreshToken"),
        ],
    )
    async def test_requires_session(self, async_client, method, path):
        response = await async_client.request(method, f"{USERS}{path}", json={})

        assert response.status_code == 401
        assert response.json() == {"message": "Not authorized, no token"}
        assert response.headers["WWW-Authenticate"] == "Bearer"

    async def test_invalid_token(self, async_client):
        response = await async_client.get(
            f"{USERS}/library", headers={"Authorization": "Bearer nope"}
        )

        assert response.status_code == 401
        assert response.json() == {"message": "Not authorized, invalid or expired token"}


class TestProfileRoutes:
    """Profile, preferences and password change."""

    async def test_get_profile(self, async_client, notifier):
        await _register_and_verify(async_client, notifier)
        headers = await _login(async_client)

        response = await async_client.get(f"{USERS}/profile", headers=headers)

        assert response.status_code == 200
        profile = response.json()["profileData"]
        assert profile["first_name"] == "Ann"
        assert profile["last_name"] == "Lee"
        assert profile["email"] == "ann@x.com"
        assert profile["languages"] == []
        assert "_id" in profile
        assert "hashed_password" not in profile

    async def test_update_profile_partial(self, async_client, notifier):
        await _register_and_verify(async_client, notifier)
        headers = await _login(async_client)

        response = await async_client.put(
            f"{USERS}/profile", json={"first_name": "Annie"}, headers=headers
        )
        assert response.status_code == 200
        assert response.json() == {"message": "updated successfully"}

        profile = (await async_client.get(f"{USERS}/profile", headers=headers)).json()
        assert profile["profileData"]["first_name"] == "Annie"
        assert profile["profileData"]["last_name"] == "Lee"

    async def test_preferred_languages(self, async_client, notifier):
        await _register_and_verify(async_client, notifier)
        headers = await _login(async_client)

        response = await async_client.put(
            f"{USERS}/preferredlanguage",
            json={"languageIds": ["en", "fr"]},
            headers=headers,
        )
        assert response.status_code == 200
        assert response.json() == {"message": "Preferred Language updated Successfully"}

        profile = (await async_client.get(f"{USERS}/profile", headers=headers)).json()
        assert profile["profileData"]["languages"] == ["en", "fr"]

    async def test_preferred_languages_missing(self, async_client, notifier):
        await _register_and_verify(async_client, notifier)
        headers = await _login(async_client)

        response = await async_client.put(
            f"{USERS}/preferredlanguage", json={}, headers=headers
        )

        assert response.status_code == 400
        assert response.json() == {"message": "languageIds is required!"}

    async def test_update_password(self, async_client, notifier):
        await _register_and_verify(async_client, notifier)
        headers = await _login(async_client)

        response = await async_client.put(
            f"{USERS}/updatepassword", json={"password": "Changed9"}, headers=headers
        )
        assert response.status_code == 200
        assert response.json() == {"message": "password updated successfully!"}

        response = await async_client.post(
            f"{USERS}/login", json={"email": "ann@x.com", "password": "Changed9"}
        )
        assert response.status_code == 200

    async def test_refresh_catalog_token(self, async_client, notifier, catalog_client):
        await _register_and_verify(async_client, notifier)
        headers = await _login(async_client)

        response = await async_client.get(f"{USERS}/refreshToken", headers=headers)

        assert response.status_code == 200
        assert response.json()["catalogToken"]["access_token"] == "catalog-abc"
        assert catalog_client.calls == 1


class TestLibraryRoutes:
    """Save, remove and list stories."""

    async def test_library_flow(self, async_client, notifier):
        await _register_and_verify(async_client, notifier)
        headers = await _login(async_client)

        for story_id in ("s1", "s2", "s3"):
            response = await async_client.post(
                f"{USERS}/savestory", json={"storyId": story_id}, headers=headers
            )
            assert response.status_code == 200
            assert response.json() == {"message": "Story saved successfully"}

        response = await async_client.post(
            f"{USERS}/savestory", json={"storyId": "s1"}, headers=headers
        )
        assert response.status_code == 409
        assert response.json() == {"message": "Story already saved"}

        response = await async_client.request(
            "DELETE", f"{USERS}/removestory", json={"storyId": "s2"}, headers=headers
        )
        assert response.status_code == 200
        assert response.json() == {"message": "Story Deleted Successfully!"}

        response = await async_client.request(
            "DELETE", f"{USERS}/removestory", json={"storyId": "s2"}, headers=headers
        )
        assert response.status_code == 404

        response = await async_client.get(f"{USERS}/library", headers=headers)
        assert response.status_code == 200
        assert response.json() == {"stories": ["s1", "s3"]}

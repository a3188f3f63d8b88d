from datetime import datetime, timedelta, timezone

from devstream.auth import DEFAULT_ADMIN_EMAIL, DEFAULT_ADMIN_PASSWORD, seed_default_admin
from devstream.models import SessionData

PASSWORD = "s3cret-pass"


async def test_health(client):
    response = await client.get("/api/")
    assert response.status_code == 200
    assert response.json() == {"message": "DevStream API is running"}


class TestRegister:
    async def test_returns_user_and_session(self, client):
        response = await client.post("/api/auth/register", json={
            "email": "ada@devstream.io",
            "username": "ada",
            "password": PASSWORD,
            "first_name": "Ada",
        })

        assert response.status_code == 201
        data = response.json()
        assert data["session_token"]
        assert data["user"]["username"] == "ada"
        assert data["user"]["display_name"] == "Ada"
        assert data["user"]["language"] == "en"
        assert "password_hash" not in data["user"]

        cookie = response.headers["set-cookie"]
        assert cookie.startswith("session_token=")
        assert "HttpOnly" in cookie

    async def test_password_is_stored_hashed(self, client, register, storage):
        user, _ = await register("ada")
        stored = await storage.get_user(user["id"])
        assert stored.password_hash
        assert stored.password_hash != PASSWORD

    async def test_duplicate_email(self, client, register):
        await register("ada")
        response = await client.post("/api/auth/register", json={
            "email": "ada@devstream.io", "username": "another", "password": PASSWORD,
        })
        assert response.status_code == 409
        assert response.json()["detail"] == "Email is already registered"

    async def test_duplicate_username_ignores_case(self, client, register):
        await register("ada")
        response = await client.post("/api/auth/register", json={
            "email": "other@devstream.io", "username": "ADA", "password": PASSWORD,
        })
        assert response.status_code == 409
        assert response.json()["detail"] == "Username is already taken"

    async def test_username_defaults_to_email_name(self, client):
        response = await client.post("/api/auth/register", json={
            "email": "grace.hopper@devstream.io", "password": PASSWORD,
        })
        assert response.status_code == 201
        assert response.json()["user"]["username"] == "grace.hopper"

    async def test_derived_username_must_be_free(self, client, register):
        await register("ada")
        response = await client.post("/api/auth/register", json={
            "email": "ada@elsewhere.org", "password": PASSWORD,
        })
        assert response.status_code == 409
        assert response.json()["detail"] == "Username is already taken"

    async def test_rejects_invalid_payload(self, client):
        response = await client.post("/api/auth/register", json={
            "email": "not-an-email", "username": "x", "password": "123",
        })
        assert response.status_code == 422


class TestLogin:
    async def test_login_with_valid_credentials(self, client, register):
        user, _ = await register("ada")
        response = await client.post("/api/auth/login", json={"email": "ada@devstream.io", "password": PASSWORD})

        assert response.status_code == 200
        data = response.json()
        assert data["user"]["id"] == user["id"]

        me = await client.get("/api/auth/me", headers={"Authorization": f"Bearer {data['session_token']}"})
        assert me.json()["id"] == user["id"]

    async def test_wrong_password(self, client, register):
        await register("ada")
        response = await client.post("/api/auth/login", json={"email": "ada@devstream.io", "password": "nope"})
        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid email or password"

    async def test_unknown_email(self, client):
        response = await client.post("/api/auth/login", json={"email": "ghost@devstream.io", "password": PASSWORD})
        assert response.status_code == 401

    async def test_seeded_admin_can_log_in(self, client, storage):
        await seed_default_admin(storage)
        await seed_default_admin(storage)

        response = await client.post(
            "/api/auth/login", json={"email": DEFAULT_ADMIN_EMAIL, "password": DEFAULT_ADMIN_PASSWORD}
        )
        assert response.status_code == 200
        assert response.json()["user"]["username"] == "admin"
        assert len(storage.users) == 1


class TestSession:
    async def test_me_requires_authentication(self, client):
        response = await client.get("/api/auth/me")
        assert response.status_code == 401
        assert response.json()["detail"] == "Not authenticated"

    async def test_unknown_token(self, client):
        response = await client.get("/api/auth/me", headers={"Authorization": "Bearer bogus"})
        assert response.status_code == 401
        assert response.json()["detail"] == "Session expired"

    async def test_session_cookie_is_accepted(self, client, register):
        user, headers = await register("ada")
        token = headers["Authorization"].split(" ", 1)[1]

        response = await client.get("/api/auth/me", headers={"Cookie": f"session_token={token}"})
        assert response.status_code == 200
        assert response.json()["id"] == user["id"]

    async def test_expired_session_is_removed(self, client, register, storage):
        user, _ = await register("ada")
        await storage.create_session(SessionData(
            session_token="stale",
            user_id=user["id"],
            expires_at=datetime.now(timezone.utc) - timedelta(minutes=1),
        ))

        response = await client.get("/api/auth/me", headers={"Authorization": "Bearer stale"})
        assert response.status_code == 401
        assert await storage.get_session("stale") is None

    async def test_logout_ends_every_session(self, client, register):
        _, headers = await register("ada")
        login = await client.post("/api/auth/login", json={"email": "ada@devstream.io", "password": PASSWORD})
        other = {"Authorization": f"Bearer {login.json()['session_token']}"}

        response = await client.post("/api/auth/logout", headers=headers)
        assert response.status_code == 200

        assert (await client.get("/api/auth/me", headers=headers)).status_code == 401
        assert (await client.get("/api/auth/me", headers=other)).status_code == 401

    async def test_public_endpoint_ignores_stale_token(self, client):
        response = await client.get("/api/posts", headers={"Authorization": "Bearer bogus"})
        assert response.status_code == 200
        assert response.json() == []


class TestLanguage:
    async def test_switch_language(self, client, register):
        _, headers = await register("ada")
        response = await client.post("/api/auth/language", json={"language": "ru"}, headers=headers)
        assert response.status_code == 200
        assert response.json()["language"] == "ru"

        me = await client.get("/api/auth/me", headers=headers)
        assert me.json()["language"] == "ru"

    async def test_unsupported_language(self, client, register):
        _, headers = await register("ada")
        response = await client.post("/api/auth/language", json={"language": "de"}, headers=headers)
        assert response.status_code == 422

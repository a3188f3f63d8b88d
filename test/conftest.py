from types import SimpleNamespace
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from devstream.ai import AiAssistant
from devstream.deps import get_assistant, get_storage
from devstream.server import app
from devstream.storage import MemStorage

PASSWORD = "s3cret-pass"


class FakeModels:
    """Stands in for ``client.aio.models`` of google-genai."""

    def __init__(self, text="Use a list comprehension. #Python", error=None):
        self.text = text
        self.error = error
        self.calls = []

    async def generate_content(self, model, contents):
        self.calls.append({"model": model, "contents": contents})
        if self.error is not None:
            raise self.error
        return SimpleNamespace(text=self.text)


@pytest.fixture
def fake_models() -> FakeModels:
    return FakeModels()


@pytest.fixture
def assistant(fake_models) -> AiAssistant:
    client = SimpleNamespace(aio=SimpleNamespace(models=fake_models))
    return AiAssistant(model="gemini-test", client=client)


@pytest.fixture
def storage() -> MemStorage:
    return MemStorage()


@pytest_asyncio.fixture(name="client")
async def client_fixture(storage, assistant) -> AsyncGenerator[AsyncClient, None]:
    """Create an async HTTP client bound to a fresh in-memory storage."""
    app.dependency_overrides[get_storage] = lambda: storage
    app.dependency_overrides[get_assistant] = lambda: assistant

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://localhost") as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture
def register(client):
    """Register a user and return ``(user, auth_headers)``."""

    async def _register(username: str, **extra):
        payload = {
            "email": f"{username}@devstream.io",
            "username": username,
            "password": PASSWORD,
            "first_name": username.capitalize(),
            **extra,
        }
        response = await client.post("/api/auth/register", json=payload)
        assert response.status_code == 201, response.text
        # Requests authenticate through the returned headers only
        client.cookies.clear()
        data = response.json()
        return data["user"], {"Authorization": f"Bearer {data['session_token']}"}

    return _register

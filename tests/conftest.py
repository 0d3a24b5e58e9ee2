"""Pytest configuration and fixtures.

HTTP tests run against create_app() over ASGI with an in-memory MongoDB
(mongomock-motor). Grants are exercised against FakeBlobProvider, a storage
backend whose provider-side clock can be moved forward to expire URLs.
"""

import hashlib
import hmac
from datetime import datetime, timedelta, timezone
from typing import Optional
from urllib.parse import parse_qs, urlsplit

import pytest
from httpx import ASGITransport, AsyncClient
from mongomock_motor import AsyncMongoMockClient

from app.core.config import Settings
from app.main import create_app
from app.storage.base import (
    ObjectStorageBackend,
    ScopedGrant,
    StorageBackendError,
    StoredObject,
    timestamped_key,
)

TEST_SECRET_KEY = "Test-Signing-Key-0123456789-abcdefXYZ!"
TEST_REGISTRATION_SECRET = "let-me-register"


class FakeBlobProvider(ObjectStorageBackend):
    """In-memory blob store that signs and verifies its own grant URLs."""

    name = "fake"
    base_url = "https://blobs.example.test/media"

    def __init__(self, timeout_seconds: float = 5) -> None:
        super().__init__(timeout_seconds)
        self.objects: dict[str, bytes] = {}
        self.now = datetime.now(timezone.utc)
        self.fail_store = False
        self._account_key = b"fake-provider-account-key"

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)

    def _signature(self, key: str, expiry: int, permission: str) -> str:
        message = f"{key}\n{expiry}\n{permission}".encode()
        return hmac.new(self._account_key, message, hashlib.sha256).hexdigest()

    def _store(self, data: bytes, content_type: str, original_name: str) -> StoredObject:
        if self.fail_store:
            raise StorageBackendError("provider unavailable")
        key = timestamped_key(original_name)
        self.objects[key] = data
        return StoredObject(key=key, locator=f"{self.base_url}/{key}", content_type=content_type, size=len(data))

    def _mint_scoped_grant(self, key: str, expires_in: int, client_ip: Optional[str]) -> ScopedGrant:
        expires_at = self.now + timedelta(seconds=expires_in)
        expiry = int(expires_at.timestamp())
        sig = self._signature(key, expiry, "r")
        return ScopedGrant(
            key=key,
            url=f"{self.base_url}/{key}?se={expiry}&sp=r&sig={sig}",
            expires_at=expires_at,
        )

    def fetch(self, url: str) -> tuple[int, bytes]:
        """What the provider answers when a client GETs the URL."""
        parts = urlsplit(url)
        key = parts.path[len(urlsplit(self.base_url).path) + 1:]
        query = {k: v[0] for k, v in parse_qs(parts.query).items()}
        try:
            expiry = int(query["se"])
            permission = query["sp"]
            sig = query["sig"]
        except (KeyError, ValueError):
            return 403, b"AuthenticationFailed"

        if not hmac.compare_digest(sig, self._signature(key, expiry, permission)):
            return 403, b"AuthenticationFailed"
        if permission != "r" or self.now.timestamp() >= expiry:
            return 403, b"AuthenticationFailed"
        if key not in self.objects:
            return 404, b"BlobNotFound"
        return 200, self.objects[key]


def make_settings(**overrides) -> Settings:
    values = dict(
        secret_key=TEST_SECRET_KEY,
        registration_secret=TEST_REGISTRATION_SECRET,
        mongo_database_url="mongodb://localhost:27017",
        mongo_database_name="music_test",
    )
    values.update(overrides)
    return Settings(**values)


@pytest.fixture
def settings(tmp_path) -> Settings:
    return make_settings(upload_directory=str(tmp_path / "uploads"))


@pytest.fixture
def database():
    return AsyncMongoMockClient()["music_test"]


@pytest.fixture
def provider() -> FakeBlobProvider:
    return FakeBlobProvider()


@pytest.fixture
def app(settings, provider, database):
    return create_app(settings=settings, storage=provider, database=database)


@pytest.fixture
async def client(app) -> AsyncClient:
    """Async HTTP client against the FastAPI app (ASGI). HTTPS so secure cookies round-trip."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="https://test") as ac:
        yield ac


async def register_and_login(client: AsyncClient, username: str = "alice", password: str = "correct horse battery") -> dict[str, str]:
    """Register a user, log in, return the Authorization header."""
    resp = await client.post(
        "/register",
        json={"username": username, "password": password, "secret": TEST_REGISTRATION_SECRET},
    )
    assert resp.status_code == 201, resp.text
    resp = await client.post("/login", json={"username": username, "password": password})
    assert resp.status_code == 200, resp.text
    return {"Authorization": f"Bearer {resp.json()['token']}"}


@pytest.fixture
async def auth_headers(client: AsyncClient) -> dict[str, str]:
    return await register_and_login(client)


@pytest.fixture
async def artist(client: AsyncClient, auth_headers) -> dict:
    resp = await client.post("/artists", json={"name": "Nina Simone"}, headers=auth_headers)
    assert resp.status_code == 201, resp.text
    return resp.json()

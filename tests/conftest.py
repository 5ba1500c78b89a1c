"""Pytest configuration and fixtures."""

import base64
import os
from collections.abc import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

# Set test environment before importing app
os.environ["TESTING"] = "1"

from hf_oauth.auth.sealing import decode_base64url, encode_base64url
from hf_oauth.config import Settings, get_settings
from hf_oauth.main import app

TEST_SECRET = base64.urlsafe_b64encode(b"\x11" * 32).rstrip(b"=").decode()
TEST_CLIENT_ID = "test-client-id"


def flip_bit(token: str, segment: int, bit: int) -> str:
    """Flip one bit in the decoded bytes of a sealed token segment."""
    parts = token.split(".")
    raw = bytearray(decode_base64url(parts[segment]))
    raw[(bit // 8) % len(raw)] ^= 1 << (bit % 8)
    parts[segment] = encode_base64url(bytes(raw))
    return ".".join(parts)


def make_settings(**overrides: str | None) -> Settings:
    """Settings for a custom-app (PKCE) deployment, with overrides."""
    env = {
        "TESTING": "1",
        "HF_OAUTH_CLIENT_ID": TEST_CLIENT_ID,
        "HF_SESSION_COOKIE_SECRET": TEST_SECRET,
    }
    env.update(overrides)
    return Settings(env={key: value for key, value in env.items() if value is not None})


@pytest.fixture
def app_settings() -> Settings:
    return make_settings()


@pytest.fixture
def use_settings():
    """Swap the settings seen by the app for the rest of the test."""

    def _use(settings: Settings) -> Settings:
        app.dependency_overrides[get_settings] = lambda: settings
        return settings

    return _use


@pytest_asyncio.fixture
async def client(app_settings: Settings) -> AsyncGenerator[AsyncClient, None]:
    """Create test HTTP client with test settings."""
    app.dependency_overrides[get_settings] = lambda: app_settings

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()

"""Tests for resolving the Hugging Face token for downstream calls."""

import time

import pytest
from fastapi import Depends, FastAPI
from httpx import ASGITransport, AsyncClient

from hf_oauth.auth.credentials import (
    HF_AUTH_MISCONFIGURED_MESSAGE,
    HF_AUTH_MISSING_MESSAGE,
    HF_AUTH_RECONNECT_MESSAGE,
    require_access_token,
    resolve_access_token,
)
from hf_oauth.auth.errors import ConfigurationError, CredentialError, OAuthError
from hf_oauth.auth.session import SESSION_COOKIE_NAME, SessionPayload, seal_session
from hf_oauth.config import get_settings
from hf_oauth.main import oauth_error_handler

from conftest import make_settings

KEY = b"\x11" * 32


def sealed(expires_at: int | None = None) -> dict[str, str]:
    payload = SessionPayload(access_token="hf_session", expires_at=expires_at, issued_at=int(time.time()))
    return {SESSION_COOKIE_NAME: seal_session(payload, KEY)}


def missing_key() -> bytes:
    raise ConfigurationError("no secret", 500)


class TestResolveAccessToken:
    def test_manual_key_wins(self):
        """Test that a manual API key takes precedence over the session cookie."""
        assert resolve_access_token(sealed(), "  hf_manual ", lambda: KEY) == "hf_manual"

    def test_session_token(self):
        assert resolve_access_token(sealed(), None, lambda: KEY) == "hf_session"

    def test_blank_manual_key_uses_session(self):
        """Test that a blank manual key falls through to the session token."""
        assert resolve_access_token(sealed(), "   ", lambda: KEY) == "hf_session"

    def test_nothing_available(self):
        """Test that no credentials at all is a 400."""
        with pytest.raises(CredentialError) as exc_info:
            resolve_access_token({}, None, lambda: KEY)

        assert exc_info.value.status_code == 400
        assert exc_info.value.message == HF_AUTH_MISSING_MESSAGE

    def test_expired_session_asks_to_reconnect(self):
        """Test that an expired session asks the user to reconnect."""
        with pytest.raises(CredentialError) as exc_info:
            resolve_access_token(sealed(expires_at=int(time.time()) - 5), None, lambda: KEY)

        assert exc_info.value.status_code == 401
        assert exc_info.value.message == HF_AUTH_RECONNECT_MESSAGE

    def test_foreign_session_asks_to_reconnect(self):
        """Test that a cookie sealed with another key asks the user to reconnect."""
        with pytest.raises(CredentialError) as exc_info:
            resolve_access_token(sealed(), None, lambda: b"\x22" * 32)

        assert exc_info.value.status_code == 401

    def test_missing_secret(self):
        """Test that a missing session secret is reported as misconfiguration."""
        with pytest.raises(CredentialError) as exc_info:
            resolve_access_token(sealed(), None, missing_key)

        assert exc_info.value.status_code == 500
        assert exc_info.value.message == HF_AUTH_MISCONFIGURED_MESSAGE

    def test_manual_key_does_not_need_secret(self):
        """Test that a manual key works without a session secret."""
        assert resolve_access_token({}, "hf_manual", missing_key) == "hf_manual"


class TestRequireAccessTokenDependency:
    @pytest.fixture
    def downstream_app(self) -> FastAPI:
        downstream = FastAPI()
        downstream.add_exception_handler(OAuthError, oauth_error_handler)
        downstream.dependency_overrides[get_settings] = lambda: make_settings()

        @downstream.get("/whoami")
        async def whoami(token: str = Depends(require_access_token)):
            return {"token": token}

        return downstream

    @pytest.mark.asyncio
    async def test_header_key(self, downstream_app: FastAPI):
        """Test the credential dependency with an Authorization header."""
        transport = ASGITransport(app=downstream_app)
        async with AsyncClient(transport=transport, base_url="http://test") as ac:
            response = await ac.get("/whoami", headers={"X-HF-API-Key": "hf_manual"})

        assert response.json() == {"token": "hf_manual"}

    @pytest.mark.asyncio
    async def test_session_cookie(self, downstream_app: FastAPI):
        """Test the credential dependency with a session cookie."""
        cookie = sealed()[SESSION_COOKIE_NAME]
        transport = ASGITransport(app=downstream_app)
        async with AsyncClient(transport=transport, base_url="http://test") as ac:
            response = await ac.get("/whoami", headers={"Cookie": f"{SESSION_COOKIE_NAME}={cookie}"})

        assert response.json() == {"token": "hf_session"}

    @pytest.mark.asyncio
    async def test_no_credentials(self, downstream_app: FastAPI):
        """Test the credential dependency with nothing to use."""
        transport = ASGITransport(app=downstream_app)
        async with AsyncClient(transport=transport, base_url="http://test") as ac:
            response = await ac.get("/whoami")

        assert response.status_code == 400
        assert response.json() == {"error": HF_AUTH_MISSING_MESSAGE}

"""Sealed Hugging Face OAuth session cookie.

The cookie is the only record of an OAuth connection: it holds the access
token sealed with AES-256-GCM and is checked for expiry on every read.
"""

import math
import time
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from starlette.responses import Response

from .cookies import CookieOptions, clear_cookie, set_cookie
from .errors import SESSION_EXPIRED_MESSAGE, SessionError
from .sealing import SESSION_AAD, SealError, open_json, seal_json
from .values import is_finite_number

SESSION_COOKIE_NAME = "hf_oauth_session"
SESSION_PAYLOAD_VERSION = 1


@dataclass(frozen=True)
class SessionPayload:
    access_token: str
    expires_at: int | None
    issued_at: int
    v: int = SESSION_PAYLOAD_VERSION

    def to_wire(self) -> dict[str, Any]:
        return {
            "v": self.v,
            "accessToken": self.access_token,
            "expiresAt": self.expires_at,
            "issuedAt": self.issued_at,
        }

    def is_expired(self, now_seconds: int | None = None) -> bool:
        now = int(time.time()) if now_seconds is None else now_seconds
        return self.expires_at is not None and self.expires_at <= now


def build_session_payload(
    access_token: str,
    expires_at: int | float | None,
    issued_at: int | None = None,
) -> SessionPayload:
    """Validate user-facing input and build a session payload.

    Raises:
        SessionError: (400) for an empty token or a non-positive expiry.
    """
    access_token = (access_token or "").strip()
    if not access_token:
        raise SessionError("OAuth access token is required.", "invalid", 400)

    if expires_at is not None:
        if not is_finite_number(expires_at) or math.floor(expires_at) <= 0:
            raise SessionError(
                "OAuth token expiration must be a valid unix timestamp.", "invalid", 400
            )
        expires_at = math.floor(expires_at)

    return SessionPayload(
        access_token=access_token,
        expires_at=expires_at,
        issued_at=int(time.time()) if issued_at is None else issued_at,
    )


def seal_session(payload: SessionPayload, key: bytes) -> str:
    return seal_json(payload.to_wire(), key, SESSION_AAD)


def _payload_from_wire(raw: Any) -> SessionPayload:
    if not isinstance(raw, dict) or raw.get("v") != SESSION_PAYLOAD_VERSION:
        raise SessionError()

    access_token = raw.get("accessToken")
    expires_at = raw.get("expiresAt")
    issued_at = raw.get("issuedAt")
    if not isinstance(access_token, str) or not access_token:
        raise SessionError()
    if expires_at is not None and not is_finite_number(expires_at):
        raise SessionError()
    if not is_finite_number(issued_at) or issued_at <= 0:
        raise SessionError()

    return SessionPayload(
        access_token=access_token,
        expires_at=None if expires_at is None else math.floor(expires_at),
        issued_at=math.floor(issued_at),
    )


def unseal_session(token: str, key: bytes) -> SessionPayload:
    """Open a sealed session.

    Any failure raises the same generic invalid-session error.
    """
    try:
        raw = open_json(token, key, SESSION_AAD)
    except SealError:
        raise SessionError() from None
    return _payload_from_wire(raw)


def read_session_from_cookies(
    cookies: Mapping[str, str],
    key: bytes,
    now_seconds: int | None = None,
) -> SessionPayload | None:
    """Return the session in ``cookies``, or ``None`` when there is none.

    Raises:
        SessionError: ``reason="invalid"`` for a cookie that does not open,
            ``reason="expired"`` for a valid cookie past its ``expiresAt``.
    """
    cookie_value = cookies.get(SESSION_COOKIE_NAME)
    if not cookie_value:
        return None

    payload = unseal_session(cookie_value, key)
    if payload.is_expired(now_seconds):
        raise SessionError(SESSION_EXPIRED_MESSAGE, "expired", 401)
    return payload


def set_session_cookie(
    response: Response,
    payload: SessionPayload,
    key: bytes,
    options: CookieOptions,
    now_seconds: int | None = None,
) -> None:
    max_age = None
    if payload.expires_at is not None:
        now = int(time.time()) if now_seconds is None else now_seconds
        max_age = max(payload.expires_at - now, 0)
    set_cookie(response, SESSION_COOKIE_NAME, seal_session(payload, key), options, max_age=max_age)


def clear_session_cookie(response: Response, options: CookieOptions) -> None:
    clear_cookie(response, SESSION_COOKIE_NAME, options)

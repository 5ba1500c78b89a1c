"""Hugging Face credentials for downstream inference calls."""

from collections.abc import Callable, Mapping

from fastapi import Depends, Header, Request

from hf_oauth.config import Settings, get_settings

from .errors import ConfigurationError, CredentialError, SessionError
from .keys import resolve_session_key
from .session import SESSION_COOKIE_NAME, read_session_from_cookies

HF_AUTH_MISSING_MESSAGE = "Provide hfApiKey or connect with Hugging Face OAuth."
HF_AUTH_RECONNECT_MESSAGE = (
    "Hugging Face OAuth session is invalid or expired. Reconnect with Hugging Face OAuth."
)
HF_AUTH_MISCONFIGURED_MESSAGE = "Hugging Face OAuth is not configured on this server."


def resolve_access_token(
    cookies: Mapping[str, str],
    manual_key: str | None,
    session_key: Callable[[], bytes],
) -> str:
    """Return a manual API key if given, else the token in the session cookie.

    Raises:
        CredentialError: 400 when neither exists, 401 when the session must be
            re-established, 500 when no sealing secret is configured.
    """
    manual_key = (manual_key or "").strip()
    if manual_key:
        return manual_key

    if not cookies.get(SESSION_COOKIE_NAME):
        raise CredentialError(HF_AUTH_MISSING_MESSAGE, 400)

    try:
        session = read_session_from_cookies(cookies, session_key())
    except SessionError:
        raise CredentialError(HF_AUTH_RECONNECT_MESSAGE, 401) from None
    except ConfigurationError:
        raise CredentialError(HF_AUTH_MISCONFIGURED_MESSAGE, 500) from None

    if session is None:
        raise CredentialError(HF_AUTH_MISSING_MESSAGE, 400)
    return session.access_token


async def require_access_token(
    request: Request,
    x_hf_api_key: str | None = Header(None),
    settings: Settings = Depends(get_settings),
) -> str:
    """FastAPI dependency resolving the caller's Hugging Face token."""
    return resolve_access_token(
        request.cookies,
        x_hf_api_key,
        lambda: resolve_session_key(settings),
    )

"""Hugging Face OAuth provider configuration."""

import re
from dataclasses import dataclass
from typing import Literal
from urllib.parse import urlsplit

from hf_oauth.config import Settings

DEFAULT_PROVIDER_URL = "https://huggingface.co"
DEFAULT_SCOPES = ("openid", "profile", "inference-api")
REQUIRED_SCOPE = "inference-api"
REDIRECT_PATH = "/oauth/callback"


@dataclass(frozen=True)
class ProviderConfig:
    """OAuth client settings for one deployment.

    ``mode`` is ``space`` when the Hugging Face Space injected the client
    (``OAUTH_CLIENT_ID``), ``custom`` for a self-registered OAuth app.
    """

    enabled: bool
    mode: Literal["space", "custom"]
    client_id: str | None
    client_secret: str | None
    exchange_method: Literal["client_secret", "pkce"]
    scopes: tuple[str, ...]
    provider_url: str
    redirect_path: str = REDIRECT_PATH


def _strip(value: str | None) -> str | None:
    return (value or "").strip() or None


def normalize_origin(value: str | None) -> str | None:
    trimmed = _strip(value)
    if not trimmed:
        return None
    try:
        parsed = urlsplit(trimmed)
    except ValueError:
        return None
    if not parsed.scheme or not parsed.netloc:
        return None
    return f"{parsed.scheme}://{parsed.netloc}"


def normalize_space_host_origin(value: str | None) -> str | None:
    trimmed = _strip(value)
    if not trimmed:
        return None
    host = re.sub(r"^https?://", "", trimmed, flags=re.IGNORECASE).rstrip("/")
    if not host:
        return None
    return f"https://{host}"


def normalize_provider_url(value: str | None) -> str:
    trimmed = _strip(value)
    if not trimmed:
        return DEFAULT_PROVIDER_URL
    try:
        parsed = urlsplit(trimmed)
    except ValueError:
        return DEFAULT_PROVIDER_URL
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        return DEFAULT_PROVIDER_URL
    return f"{parsed.scheme}://{parsed.netloc}{parsed.path.rstrip('/')}"


def parse_scopes(value: str | None) -> tuple[str, ...]:
    """Split a scope list on whitespace/commas; ``inference-api`` is always kept."""
    if not (value or "").strip():
        return DEFAULT_SCOPES

    scopes: list[str] = []
    for scope in re.split(r"[\s,]+", value or ""):
        scope = scope.strip()
        if scope and scope not in scopes:
            scopes.append(scope)

    if not any(scope.lower() == REQUIRED_SCOPE for scope in scopes):
        scopes.append(REQUIRED_SCOPE)

    return tuple(scopes)


def resolve_provider_config(settings: Settings) -> ProviderConfig:
    space_client_id = _strip(settings.OAUTH_CLIENT_ID)
    custom_client_id = _strip(settings.HF_OAUTH_CLIENT_ID)
    uses_space_config = space_client_id is not None
    client_id = space_client_id or custom_client_id

    if uses_space_config:
        client_secret = _strip(settings.OAUTH_CLIENT_SECRET) or _strip(
            settings.HF_OAUTH_CLIENT_SECRET
        )
        scopes_input = (
            settings.OAUTH_SCOPES
            if settings.OAUTH_SCOPES is not None
            else settings.HF_OAUTH_SCOPES
        )
        provider_input = (
            settings.OPENID_PROVIDER_URL
            if settings.OPENID_PROVIDER_URL is not None
            else settings.HF_OAUTH_PROVIDER_URL
        )
    else:
        client_secret = _strip(settings.HF_OAUTH_CLIENT_SECRET)
        scopes_input = settings.HF_OAUTH_SCOPES
        provider_input = settings.HF_OAUTH_PROVIDER_URL

    return ProviderConfig(
        enabled=client_id is not None,
        mode="space" if uses_space_config else "custom",
        client_id=client_id,
        client_secret=client_secret,
        exchange_method="client_secret" if client_secret else "pkce",
        scopes=parse_scopes(scopes_input),
        provider_url=normalize_provider_url(provider_input),
    )


def resolve_redirect_url(request_origin: str, config: ProviderConfig, settings: Settings) -> str:
    """Absolute callback URL: public origin, else Space host, else request origin."""
    base_origin = (
        normalize_origin(settings.HF_PUBLIC_ORIGIN)
        or normalize_space_host_origin(settings.SPACE_HOST)
        or request_origin.rstrip("/")
    )
    return f"{base_origin}{config.redirect_path}"

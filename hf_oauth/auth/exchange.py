"""Authorization-code exchange against the Hugging Face token endpoint.

The exchange runs as a fixed sequence of checks, each of which can end the
request with an :class:`~hf_oauth.auth.errors.OAuthError`:

config -> payload -> state -> redirect URI -> token endpoint -> grant
strategy -> token request -> token response -> session payload.
"""

import base64
import json
import logging
import math
import time
import uuid
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any
from urllib.parse import urlsplit

import httpx

from hf_oauth.config import Settings

from .cookies import PkceCookies
from .errors import (
    REDIRECT_INVALID_MESSAGE,
    REDIRECT_MISMATCH_MESSAGE,
    VERIFIER_MISSING_MESSAGE,
    ConfigurationError,
    InvalidRequestError,
    StateValidationError,
    UpstreamError,
)
from .keys import resolve_state_key
from .pkce import normalize_provider_origin
from .provider import REDIRECT_PATH, ProviderConfig
from .schemas import ExchangeRequest
from .session import SessionPayload, build_session_payload
from .state import ParsedOAuthState, StateFormat, parse_state
from .values import clean_str, is_finite_number

logger = logging.getLogger(__name__)

PROVIDER_DETAIL_MAX_CHARS = 220
EXCHANGE_FAILED_MESSAGE = "Unable to complete Hugging Face OAuth exchange."
OAUTH_NOT_CONFIGURED_MESSAGE = "Hugging Face OAuth is not configured on this deployment."


@dataclass(frozen=True)
class ExchangeResult:
    session: SessionPayload
    state_format: StateFormat
    token_endpoint: str


def resolve_redirect_uri(
    config_redirect_uri: str,
    state_redirect_uri: str | None,
    payload_redirect_uri: str | None,
) -> str:
    """Pick the redirect URI to send with the token request.

    The request body wins, then the state, then the server default. A state
    bound to another redirect URI means the state was reused from another
    request.
    """
    candidate = payload_redirect_uri or state_redirect_uri or config_redirect_uri
    try:
        parsed = urlsplit(candidate)
    except ValueError:
        raise StateValidationError(REDIRECT_INVALID_MESSAGE) from None
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise StateValidationError(REDIRECT_INVALID_MESSAGE)
    if not parsed.path.endswith(REDIRECT_PATH):
        raise StateValidationError(REDIRECT_INVALID_MESSAGE)

    if state_redirect_uri and state_redirect_uri != candidate:
        raise StateValidationError(REDIRECT_MISMATCH_MESSAGE)

    return candidate


async def resolve_token_endpoint(
    client: httpx.AsyncClient,
    provider_origin: str,
    timeout: float,
) -> str:
    """Token endpoint from OIDC discovery, else ``{origin}/oauth/token``.

    Discovery never fails the exchange.
    """
    fallback = f"{provider_origin}/oauth/token"
    well_known_url = f"{provider_origin}/.well-known/openid-configuration"

    try:
        response = await client.get(
            well_known_url,
            headers={"Accept": "application/json", "Cache-Control": "no-cache"},
            timeout=timeout,
        )
        if response.status_code != 200:
            logger.info(
                "OIDC discovery at %s returned %d, using %s",
                well_known_url,
                response.status_code,
                fallback,
            )
            return fallback
        document = response.json()
    except (httpx.HTTPError, ValueError) as e:
        logger.info("OIDC discovery at %s failed (%s), using %s", well_known_url, e, fallback)
        return fallback

    token_endpoint = clean_str(document.get("token_endpoint")) if isinstance(document, dict) else None
    if token_endpoint:
        try:
            parsed = urlsplit(token_endpoint)
        except ValueError:
            parsed = None
        if parsed and parsed.scheme in ("http", "https") and parsed.netloc:
            return token_endpoint

    logger.info("OIDC discovery document has no usable token_endpoint, using %s", fallback)
    return fallback


def extract_provider_error_detail(payload: Any) -> str | None:
    """First of error_description/detail/message/error, trimmed and truncated."""
    if not isinstance(payload, dict):
        return None

    for field in ("error_description", "detail", "message", "error"):
        if payload.get(field) is not None:
            candidate = payload[field]
            break
    else:
        return None

    if not isinstance(candidate, str) or not candidate.strip():
        return None
    return candidate.strip()[:PROVIDER_DETAIL_MAX_CHARS]


def compute_expires_at(token_payload: dict[str, Any], now_seconds: int) -> int | None:
    """Absolute expiry of the access token, or ``None`` when unknown."""
    expires_in = token_payload.get("expires_in")
    if is_finite_number(expires_in) and math.floor(expires_in) > 0:
        return now_seconds + math.floor(expires_in)

    expires_at = token_payload.get("expires_at")
    if is_finite_number(expires_at) and math.floor(expires_at) > now_seconds:
        return math.floor(expires_at)

    return None


def _parse_token_body(text: str) -> dict[str, Any]:
    if not text.strip():
        return {}
    try:
        parsed = json.loads(text)
    except ValueError:
        return {}
    return parsed if isinstance(parsed, dict) else {}


def _build_grant(
    config: ProviderConfig,
    payload: ExchangeRequest,
    state: ParsedOAuthState,
    cookie_pkce: PkceCookies,
) -> tuple[dict[str, str], dict[str, str]]:
    """Strategy-specific form fields and headers for the token request."""
    fields: dict[str, str] = {}
    headers: dict[str, str] = {}

    if config.exchange_method == "client_secret":
        if not config.client_secret:
            raise ConfigurationError(
                "Hugging Face OAuth client secret is missing. Configure "
                "OAUTH_CLIENT_SECRET or HF_OAUTH_CLIENT_SECRET.",
                503,
            )
        credentials = f"{config.client_id}:{config.client_secret}"
        encoded = base64.b64encode(credentials.encode("utf-8")).decode("ascii")
        headers["Authorization"] = f"Basic {encoded}"
        return fields, headers

    code_verifier = (
        clean_str(payload.code_verifier) or state.code_verifier or cookie_pkce.code_verifier
    )
    if not code_verifier:
        raise StateValidationError(VERIFIER_MISSING_MESSAGE)

    fields["client_id"] = config.client_id or ""
    fields["code_verifier"] = code_verifier
    return fields, headers


async def _request_token(
    client: httpx.AsyncClient,
    token_endpoint: str,
    form: dict[str, str],
    headers: dict[str, str],
    timeout: float,
) -> httpx.Response:
    try:
        return await client.post(
            token_endpoint,
            data=form,
            headers={
                "Accept": "application/json",
                "Cache-Control": "no-cache",
                **headers,
            },
            timeout=timeout,
        )
    except httpx.TimeoutException:
        raise UpstreamError(
            "Timed out waiting for the Hugging Face OAuth token endpoint.", 504
        ) from None
    except httpx.HTTPError as e:
        logger.warning("Token request to %s failed: %s", token_endpoint, e)
        raise UpstreamError(EXCHANGE_FAILED_MESSAGE, 502) from None


def ensure_oauth_configured(config: ProviderConfig) -> None:
    if not config.enabled or not config.client_id:
        logger.warning("OAuth exchange rejected: OAuth is not configured")
        raise ConfigurationError(OAUTH_NOT_CONFIGURED_MESSAGE, 503)


async def exchange_authorization_code(
    payload: ExchangeRequest,
    *,
    config: ProviderConfig,
    settings: Settings,
    default_redirect_uri: str,
    cookie_pkce: PkceCookies,
    http_client: httpx.AsyncClient | None = None,
    now_seconds: int | None = None,
    request_id: str | None = None,
) -> ExchangeResult:
    """Trade an authorization code for an access token.

    Args:
        payload: Parsed request body.
        config: Provider configuration for this deployment.
        settings: Timeouts, state lifetime and sealing secrets.
        default_redirect_uri: Redirect URI computed for the current request.
        cookie_pkce: Nonce and verifier from the legacy PKCE cookies.
        http_client: Client for outbound calls; a short-lived one is created
            when omitted.
        now_seconds: Clock override.
        request_id: Correlation id for log lines.

    Returns:
        The session payload to seal, with diagnostics.

    Raises:
        OAuthError: subclass matching the stage that failed.
    """
    request_id = request_id or uuid.uuid4().hex
    ensure_oauth_configured(config)

    code = clean_str(payload.code)
    raw_state = clean_str(payload.state)
    logger.info(
        "OAuth exchange %s received (method=%s, has_code=%s, state_chars=%d, "
        "payload_nonce=%s, payload_verifier=%s, cookie_nonce=%s, cookie_verifier=%s)",
        request_id,
        config.exchange_method,
        code is not None,
        len(raw_state or ""),
        clean_str(payload.nonce) is not None,
        clean_str(payload.code_verifier) is not None,
        cookie_pkce.nonce is not None,
        cookie_pkce.code_verifier is not None,
    )
    if not code or not raw_state:
        raise InvalidRequestError("code and state are required.", 400)

    try:
        state = parse_state(
            raw_state,
            expected_redirect_uri=default_redirect_uri,
            fallback_nonce=clean_str(payload.nonce) or cookie_pkce.nonce,
            state_key=lambda: resolve_state_key(settings),
            max_age_seconds=settings.OAUTH_STATE_MAX_AGE_SECONDS,
            now_seconds=now_seconds,
        )
    except StateValidationError as e:
        logger.warning("OAuth exchange %s rejected: %s", request_id, e.message)
        raise

    logger.info(
        "OAuth exchange %s state validated (format=%s, has_redirect=%s, has_verifier=%s)",
        request_id,
        state.state_format,
        state.redirect_uri is not None,
        state.code_verifier is not None,
    )

    redirect_uri = resolve_redirect_uri(
        default_redirect_uri, state.redirect_uri, clean_str(payload.redirect_uri)
    )

    grant_fields, grant_headers = _build_grant(config, payload, state, cookie_pkce)

    async with _client_scope(http_client) as client:
        return await _exchange_with_client(
            client,
            config=config,
            settings=settings,
            code=code,
            redirect_uri=redirect_uri,
            grant_fields=grant_fields,
            grant_headers=grant_headers,
            state=state,
            now_seconds=now_seconds,
            request_id=request_id,
        )


@asynccontextmanager
async def _client_scope(
    http_client: httpx.AsyncClient | None,
) -> AsyncIterator[httpx.AsyncClient]:
    if http_client is not None:
        yield http_client
        return
    async with httpx.AsyncClient() as client:
        yield client


async def _exchange_with_client(
    client: httpx.AsyncClient,
    *,
    config: ProviderConfig,
    settings: Settings,
    code: str,
    redirect_uri: str,
    grant_fields: dict[str, str],
    grant_headers: dict[str, str],
    state: ParsedOAuthState,
    now_seconds: int | None,
    request_id: str,
) -> ExchangeResult:
    provider_origin = normalize_provider_origin(config.provider_url)
    token_endpoint = await resolve_token_endpoint(
        client, provider_origin, settings.OAUTH_DISCOVERY_TIMEOUT_SECONDS
    )

    form = {
        "grant_type": "authorization_code",
        "code": code,
        "redirect_uri": redirect_uri,
        **grant_fields,
    }
    logger.info(
        "OAuth exchange %s token request to %s (auth=%s, has_verifier=%s)",
        request_id,
        token_endpoint,
        "basic" if "Authorization" in grant_headers else "pkce",
        "code_verifier" in form,
    )

    response = await _request_token(
        client, token_endpoint, form, grant_headers, settings.OAUTH_TOKEN_TIMEOUT_SECONDS
    )
    body_text = response.text
    token_payload = _parse_token_body(body_text)

    if not response.is_success:
        detail = extract_provider_error_detail(token_payload)
        logger.warning(
            "OAuth exchange %s failed upstream (status=%d, content_type=%s, body_chars=%d, detail=%s)",
            request_id,
            response.status_code,
            response.headers.get("content-type", ""),
            len(body_text),
            detail,
        )
        message = (
            f"Unable to complete Hugging Face OAuth exchange: {detail}"
            if detail
            else EXCHANGE_FAILED_MESSAGE
        )
        status_code = response.status_code if 400 <= response.status_code < 500 else 502
        raise UpstreamError(message, status_code)

    access_token = clean_str(token_payload.get("access_token"))
    if not access_token:
        logger.warning("OAuth exchange %s: token response had no access_token", request_id)
        raise UpstreamError("OAuth exchange response did not include an access token.", 502)

    now = int(time.time()) if now_seconds is None else now_seconds
    session = build_session_payload(
        access_token,
        compute_expires_at(token_payload, now),
        issued_at=now,
    )
    logger.info(
        "OAuth exchange %s succeeded (has_expiry=%s)",
        request_id,
        session.expires_at is not None,
    )
    return ExchangeResult(
        session=session,
        state_format=state.state_format,
        token_endpoint=token_endpoint,
    )

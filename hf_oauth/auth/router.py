"""Hugging Face OAuth routes."""

import logging
import time
import uuid
from typing import Any

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, RedirectResponse
from pydantic import ValidationError

from hf_oauth.config import Settings, get_settings

from .cookies import build_cookie_options, clear_pkce_cookies, read_pkce_cookies, set_pkce_cookies
from .errors import ConfigurationError, InvalidRequestError, OAuthError, SessionError
from .exchange import (
    EXCHANGE_FAILED_MESSAGE,
    ensure_oauth_configured,
    exchange_authorization_code,
)
from .keys import resolve_session_key, resolve_session_secret_source, resolve_state_key
from .pkce import build_authorize_url, create_start_state
from .provider import ProviderConfig, resolve_provider_config, resolve_redirect_url
from .rate_limit import limiter
from .schemas import (
    ExchangeRequest,
    OAuthConfigResponse,
    SessionCreateRequest,
    SessionStatusResponse,
)
from .session import (
    SESSION_COOKIE_NAME,
    build_session_payload,
    clear_session_cookie,
    read_session_from_cookies,
    set_session_cookie,
)
from .state import build_legacy_state, build_state_token

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/oauth", tags=["oauth"])


def get_provider_config(settings: Settings = Depends(get_settings)) -> ProviderConfig:
    return resolve_provider_config(settings)


def _request_origin(request: Request) -> str:
    return f"{request.url.scheme}://{request.url.netloc}"


def _status_response(connected: bool, expires_at: int | None = None) -> JSONResponse:
    status = SessionStatusResponse(connected=connected, expires_at=expires_at)
    content = status.model_dump(by_alias=True)
    if not connected:
        content.pop("expiresAt")
    return JSONResponse(content=content)


async def _read_json_body(request: Request) -> dict[str, Any]:
    content_type = request.headers.get("content-type", "")
    if "application/json" not in content_type:
        raise InvalidRequestError("Content-Type must be application/json.", 415)

    try:
        body = await request.json()
    except ValueError:
        raise InvalidRequestError("Request body must be valid JSON.", 400) from None

    if not isinstance(body, dict):
        raise InvalidRequestError("Request body must be a JSON object.", 400)
    return body


@router.get("/config", response_model=OAuthConfigResponse)
async def oauth_config(
    request: Request,
    settings: Settings = Depends(get_settings),
    config: ProviderConfig = Depends(get_provider_config),
):
    """Public OAuth configuration for the front end."""
    return OAuthConfigResponse(
        enabled=config.enabled,
        mode=config.mode,
        client_id=config.client_id,
        scopes=list(config.scopes),
        provider_url=config.provider_url,
        redirect_url=resolve_redirect_url(_request_origin(request), config, settings),
    )


@router.get("/start")
@limiter.limit("10/minute")
async def oauth_start(
    request: Request,
    settings: Settings = Depends(get_settings),
    config: ProviderConfig = Depends(get_provider_config),
):
    """Start the Hugging Face OAuth flow with PKCE."""
    origin = _request_origin(request)
    if not config.enabled or not config.client_id:
        return RedirectResponse(url=f"{origin}/?oauth=disabled", status_code=307)

    redirect_uri = resolve_redirect_url(origin, config, settings)
    pkce = create_start_state()

    if settings.OAUTH_STATE_FORMAT == "legacy":
        state = build_legacy_state(pkce.nonce, redirect_uri)
    else:
        state = build_state_token(
            pkce.nonce,
            redirect_uri,
            resolve_state_key(settings),
            code_verifier=pkce.code_verifier,
        )

    authorize_url = build_authorize_url(
        provider_url=config.provider_url,
        client_id=config.client_id,
        scopes=config.scopes,
        redirect_uri=redirect_uri,
        state=state,
        code_challenge=pkce.code_challenge,
    )

    response = RedirectResponse(url=authorize_url, status_code=307)
    set_pkce_cookies(
        response,
        pkce.nonce,
        pkce.code_verifier,
        build_cookie_options(settings),
        max_age=settings.OAUTH_STATE_MAX_AGE_SECONDS,
    )
    return response


@router.post("/exchange")
@limiter.limit("10/minute")
async def oauth_exchange(
    request: Request,
    settings: Settings = Depends(get_settings),
    config: ProviderConfig = Depends(get_provider_config),
):
    """Exchange an authorization code for a sealed session cookie."""
    request_id = uuid.uuid4().hex
    ensure_oauth_configured(config)
    body = await _read_json_body(request)

    try:
        payload = ExchangeRequest.model_validate(body)
    except ValidationError:
        raise InvalidRequestError("code and state are required.", 400) from None

    session_key = resolve_session_key(settings)

    try:
        result = await exchange_authorization_code(
            payload,
            config=config,
            settings=settings,
            default_redirect_uri=resolve_redirect_url(_request_origin(request), config, settings),
            cookie_pkce=read_pkce_cookies(request.cookies),
            request_id=request_id,
        )
    except OAuthError:
        raise
    except Exception:
        logger.exception("OAuth exchange %s failed unexpectedly", request_id)
        raise OAuthError(EXCHANGE_FAILED_MESSAGE, 500) from None

    options = build_cookie_options(settings)
    response = _status_response(True, result.session.expires_at)
    set_session_cookie(response, result.session, session_key, options)
    clear_pkce_cookies(response, options)
    logger.info(
        "OAuth exchange %s stored session (secret_source=%s)",
        request_id,
        resolve_session_secret_source(settings),
    )
    return response


@router.get("/session")
async def get_session(
    request: Request,
    settings: Settings = Depends(get_settings),
):
    """Report whether the browser holds a usable OAuth session."""
    if not request.cookies.get(SESSION_COOKIE_NAME):
        return _status_response(False)

    try:
        session = read_session_from_cookies(request.cookies, resolve_session_key(settings))
    except SessionError as e:
        response = _status_response(False)
        clear_session_cookie(response, build_cookie_options(settings))
        logger.info("Clearing %s OAuth session cookie", e.reason)
        return response
    except ConfigurationError as e:
        logger.error("Cannot read OAuth session: %s", e.message)
        return _status_response(False)

    if session is None:
        return _status_response(False)
    return _status_response(True, session.expires_at)


@router.post("/session")
async def create_session(
    request: Request,
    settings: Settings = Depends(get_settings),
):
    """Store an access token obtained by a client-side OAuth library."""
    body = await _read_json_body(request)

    try:
        payload = SessionCreateRequest.model_validate(body)
    except ValidationError as e:
        if any(error["loc"] and error["loc"][0] == "expiresAt" for error in e.errors()):
            raise InvalidRequestError(
                "expiresAt must be a unix timestamp (seconds) or null.", 400
            ) from None
        raise InvalidRequestError("accessToken is required.", 400) from None

    if not (payload.access_token or "").strip():
        raise InvalidRequestError("accessToken is required.", 400)

    try:
        session = build_session_payload(payload.access_token, payload.expires_at)
    except SessionError:
        raise InvalidRequestError(
            "expiresAt must be a unix timestamp (seconds) or null.", 400
        ) from None
    if session.is_expired(int(time.time())):
        raise InvalidRequestError("OAuth access token is already expired.", 400)

    session_key = resolve_session_key(settings)
    response = _status_response(True, session.expires_at)
    set_session_cookie(response, session, session_key, build_cookie_options(settings))
    return response


@router.delete("/session")
async def delete_session(settings: Settings = Depends(get_settings)):
    """Disconnect by clearing the session cookie."""
    response = _status_response(False)
    clear_session_cookie(response, build_cookie_options(settings))
    return response

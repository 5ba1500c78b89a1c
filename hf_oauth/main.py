"""HF OAuth Gateway - Main application."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from hf_oauth.auth import router as oauth_router
from hf_oauth.auth.errors import ConfigurationError, OAuthError
from hf_oauth.auth.keys import (
    describe_secret_format,
    resolve_session_secret,
    resolve_session_secret_source,
)
from hf_oauth.auth.provider import resolve_provider_config
from hf_oauth.auth.rate_limit import limiter
from hf_oauth.config import Settings, get_settings

logger = logging.getLogger(__name__)

settings = get_settings()

VERSION = "1.0.0"


def check_sealing_secret(settings: Settings) -> None:
    """Log warnings about the session sealing secret of an enabled deployment."""
    if not resolve_provider_config(settings).enabled:
        return

    try:
        secret = resolve_session_secret(settings)
    except ConfigurationError:
        logger.warning(
            "OAuth is enabled but no session secret is configured; "
            "exchanges will fail until HF_SESSION_COOKIE_SECRET is set"
        )
        return

    if describe_secret_format(secret) == "passphrase":
        logger.warning(
            "Session secret from %s is not a 32-byte key; deriving one with SHA-256",
            resolve_session_secret_source(settings),
        )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan - startup and shutdown."""
    logging.getLogger("hf_oauth").setLevel(settings.LOG_LEVEL)
    check_sealing_secret(settings)
    yield


app = FastAPI(
    title="HF OAuth Gateway",
    description="""
## Hugging Face OAuth API

Connects a browser to Hugging Face with OAuth 2.0 (PKCE or client secret) and
keeps the resulting access token in an encrypted, HttpOnly session cookie.
No session state is stored on the server.

### Authentication Flow

1. Redirect the user to `/oauth/start`
2. User authorizes the app on Hugging Face
3. The callback page posts `code` and `state` to `/oauth/exchange`
4. The access token is sealed into the `hf_oauth_session` cookie
5. Check the connection with `GET /oauth/session`, disconnect with `DELETE /oauth/session`
    """,
    version=VERSION,
    lifespan=lifespan,
)

# Rate limiter
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


@app.exception_handler(OAuthError)
async def oauth_error_handler(request: Request, exc: OAuthError):
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"error": "Internal server error."})


# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(oauth_router)


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "name": "HF OAuth Gateway",
        "version": VERSION,
        "docs": "/docs",
    }


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "healthy"}

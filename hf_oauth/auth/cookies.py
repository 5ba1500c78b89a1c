"""Cookie attributes and the legacy cookie-based PKCE store."""

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Literal

from starlette.responses import Response

from hf_oauth.config import Settings

NONCE_COOKIE_NAME = "hf_oauth_nonce"
CODE_VERIFIER_COOKIE_NAME = "hf_oauth_code_verifier"


@dataclass(frozen=True)
class CookieOptions:
    """Attributes shared by every OAuth cookie."""

    samesite: Literal["lax", "none"]
    secure: bool
    httponly: bool = True
    path: str = "/"


@dataclass(frozen=True)
class PkceCookies:
    nonce: str | None = None
    code_verifier: str | None = None


def build_cookie_options(settings: Settings) -> CookieOptions:
    """Cross-site cookies inside a Space iframe, first-party cookies elsewhere."""
    if settings.is_space_deployment:
        return CookieOptions(samesite="none", secure=True)
    return CookieOptions(samesite="lax", secure=settings.is_production)


def set_cookie(
    response: Response,
    name: str,
    value: str,
    options: CookieOptions,
    max_age: int | None = None,
) -> None:
    response.set_cookie(
        key=name,
        value=value,
        max_age=max_age,
        path=options.path,
        secure=options.secure,
        httponly=options.httponly,
        samesite=options.samesite,
    )


def clear_cookie(response: Response, name: str, options: CookieOptions) -> None:
    """Overwrite a cookie with an empty, already-expired value."""
    response.delete_cookie(
        key=name,
        path=options.path,
        secure=options.secure,
        httponly=options.httponly,
        samesite=options.samesite,
    )


def set_pkce_cookies(
    response: Response,
    nonce: str,
    code_verifier: str,
    options: CookieOptions,
    max_age: int | None = None,
) -> None:
    set_cookie(response, NONCE_COOKIE_NAME, nonce, options, max_age=max_age)
    set_cookie(response, CODE_VERIFIER_COOKIE_NAME, code_verifier, options, max_age=max_age)


def read_pkce_cookies(cookies: Mapping[str, str]) -> PkceCookies:
    nonce = (cookies.get(NONCE_COOKIE_NAME) or "").strip()
    code_verifier = (cookies.get(CODE_VERIFIER_COOKIE_NAME) or "").strip()
    return PkceCookies(nonce=nonce or None, code_verifier=code_verifier or None)


def clear_pkce_cookies(response: Response, options: CookieOptions) -> None:
    clear_cookie(response, NONCE_COOKIE_NAME, options)
    clear_cookie(response, CODE_VERIFIER_COOKIE_NAME, options)

"""OAuth ``state`` parameter codecs.

Two formats are accepted while older clients migrate:

* legacy plaintext JSON ``{"nonce", "redirectUri"?}``, trusted only when its
  nonce equals a side-channel nonce (cookie or request body);
* sealed state tokens (AES-256-GCM, see :mod:`hf_oauth.auth.sealing`) that
  carry nonce, redirect URI, optional code verifier and issue time.

A raw state starting with ``{`` is legacy; anything else must be a token.
"""

import json
import math
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Literal, Protocol

from .errors import (
    REDIRECT_MISMATCH_MESSAGE,
    STATE_EXPIRED_MESSAGE,
    STATE_INVALID_MESSAGE,
    STATE_VALIDATION_FAILED_MESSAGE,
    StateValidationError,
)
from .sealing import STATE_AAD, SealError, open_json, seal_json
from .values import clean_str, is_finite_number

STATE_PAYLOAD_VERSION = 1
MAX_STATE_AGE_SECONDS = 15 * 60

StateFormat = Literal["legacy_json", "state_token"]


@dataclass(frozen=True)
class OAuthStatePayload:
    """Decrypted content of a sealed state token."""

    nonce: str
    redirect_uri: str
    issued_at: int
    code_verifier: str | None = None
    v: int = STATE_PAYLOAD_VERSION

    def to_wire(self) -> dict[str, Any]:
        wire: dict[str, Any] = {"v": self.v, "nonce": self.nonce}
        if self.code_verifier:
            wire["codeVerifier"] = self.code_verifier
        wire["redirectUri"] = self.redirect_uri
        wire["issuedAt"] = self.issued_at
        return wire


@dataclass(frozen=True)
class ParsedOAuthState:
    """State validated by either codec, as consumed by the exchange."""

    nonce: str
    state_format: StateFormat
    redirect_uri: str | None = None
    code_verifier: str | None = None


class StateCodec(Protocol):
    def decode(self, raw_state: str) -> ParsedOAuthState: ...


def _now() -> int:
    return int(time.time())


# Legacy plaintext state


def build_legacy_state(nonce: str, redirect_uri: str | None = None) -> str:
    """Serialize a legacy state as compact JSON text."""
    payload: dict[str, str] = {"nonce": nonce.strip()}
    if redirect_uri and redirect_uri.strip():
        payload["redirectUri"] = redirect_uri.strip()
    return json.dumps(payload, separators=(",", ":"))


def parse_legacy_state(raw_state: str, expected_nonce: str) -> ParsedOAuthState:
    """Decode a legacy state and check its nonce against ``expected_nonce``."""
    try:
        parsed = json.loads(raw_state)
    except ValueError:
        raise StateValidationError(STATE_INVALID_MESSAGE) from None

    if not isinstance(parsed, dict):
        raise StateValidationError(STATE_INVALID_MESSAGE)

    nonce = clean_str(parsed.get("nonce"))
    if not nonce or nonce != expected_nonce:
        raise StateValidationError(STATE_VALIDATION_FAILED_MESSAGE)

    return ParsedOAuthState(
        nonce=nonce,
        state_format="legacy_json",
        redirect_uri=clean_str(parsed.get("redirectUri")),
    )


# Sealed state tokens


def build_state_token(
    nonce: str,
    redirect_uri: str,
    key: bytes,
    code_verifier: str | None = None,
    issued_at: int | None = None,
) -> str:
    nonce = nonce.strip()
    redirect_uri = redirect_uri.strip()
    if not nonce or not redirect_uri:
        raise ValueError("OAuth state token requires nonce and redirect_uri.")

    payload = OAuthStatePayload(
        nonce=nonce,
        redirect_uri=redirect_uri,
        issued_at=_now() if issued_at is None else int(issued_at),
        code_verifier=clean_str(code_verifier),
    )
    return seal_json(payload.to_wire(), key, STATE_AAD)


def parse_state_token(token: str, key: bytes) -> OAuthStatePayload:
    """Open a sealed state token.

    Every failure (structure, decryption, JSON, field types) raises the same
    ``OAuth state payload is invalid.`` error.
    """
    try:
        raw = open_json(token, key, STATE_AAD)
    except SealError:
        raise StateValidationError(STATE_INVALID_MESSAGE) from None

    if not isinstance(raw, dict) or raw.get("v") != STATE_PAYLOAD_VERSION:
        raise StateValidationError(STATE_INVALID_MESSAGE)

    nonce = clean_str(raw.get("nonce"))
    redirect_uri = clean_str(raw.get("redirectUri"))
    issued_at = raw.get("issuedAt")
    code_verifier = raw.get("codeVerifier")
    if not nonce or not redirect_uri or not is_finite_number(issued_at):
        raise StateValidationError(STATE_INVALID_MESSAGE)
    if code_verifier is not None and not clean_str(code_verifier):
        raise StateValidationError(STATE_INVALID_MESSAGE)

    return OAuthStatePayload(
        nonce=nonce,
        redirect_uri=redirect_uri,
        issued_at=math.floor(issued_at),
        code_verifier=clean_str(code_verifier),
    )


def validate_state_payload(
    payload: OAuthStatePayload,
    expected_redirect_uri: str,
    now_seconds: int | None = None,
    max_age_seconds: int = MAX_STATE_AGE_SECONDS,
) -> OAuthStatePayload:
    """Check redirect URI binding and freshness of a decoded state token."""
    if payload.redirect_uri != expected_redirect_uri:
        raise StateValidationError(REDIRECT_MISMATCH_MESSAGE)

    now = _now() if now_seconds is None else now_seconds
    if payload.issued_at > now or now - payload.issued_at > max_age_seconds:
        raise StateValidationError(STATE_EXPIRED_MESSAGE)

    return payload


# Codec dispatch


class LegacyStateCodec:
    """Plaintext JSON state validated against a side-channel nonce."""

    def __init__(self, expected_nonce: str | None, expected_redirect_uri: str):
        self.expected_nonce = (expected_nonce or "").strip()
        self.expected_redirect_uri = expected_redirect_uri

    def decode(self, raw_state: str) -> ParsedOAuthState:
        if not self.expected_nonce:
            raise StateValidationError(STATE_VALIDATION_FAILED_MESSAGE)

        parsed = parse_legacy_state(raw_state, self.expected_nonce)
        if parsed.redirect_uri and parsed.redirect_uri != self.expected_redirect_uri:
            raise StateValidationError(REDIRECT_MISMATCH_MESSAGE)
        return parsed


class TokenStateCodec:
    """Sealed state token, self-authenticating under the state key."""

    def __init__(
        self,
        key: bytes,
        expected_redirect_uri: str,
        max_age_seconds: int = MAX_STATE_AGE_SECONDS,
        now_seconds: int | None = None,
    ):
        self.key = key
        self.expected_redirect_uri = expected_redirect_uri
        self.max_age_seconds = max_age_seconds
        self.now_seconds = now_seconds

    def decode(self, raw_state: str) -> ParsedOAuthState:
        payload = validate_state_payload(
            parse_state_token(raw_state, self.key),
            self.expected_redirect_uri,
            now_seconds=self.now_seconds,
            max_age_seconds=self.max_age_seconds,
        )
        return ParsedOAuthState(
            nonce=payload.nonce,
            state_format="state_token",
            redirect_uri=payload.redirect_uri,
            code_verifier=payload.code_verifier,
        )


def select_state_codec(
    raw_state: str,
    expected_redirect_uri: str,
    fallback_nonce: str | None,
    state_key: Callable[[], bytes],
    max_age_seconds: int = MAX_STATE_AGE_SECONDS,
    now_seconds: int | None = None,
) -> StateCodec:
    """Pick the codec for ``raw_state`` by its shape.

    ``state_key`` is only called for sealed tokens, so legacy states keep
    working on deployments that have no sealing secret.
    """
    if raw_state.startswith("{"):
        return LegacyStateCodec(fallback_nonce, expected_redirect_uri)
    return TokenStateCodec(
        state_key(),
        expected_redirect_uri,
        max_age_seconds=max_age_seconds,
        now_seconds=now_seconds,
    )


def parse_state(
    raw_state: str,
    expected_redirect_uri: str,
    fallback_nonce: str | None,
    state_key: Callable[[], bytes],
    max_age_seconds: int = MAX_STATE_AGE_SECONDS,
    now_seconds: int | None = None,
) -> ParsedOAuthState:
    """Validate a raw ``state`` value in whichever format it arrives."""
    normalized = raw_state.strip()
    if not normalized:
        raise StateValidationError(STATE_INVALID_MESSAGE)

    codec = select_state_codec(
        normalized,
        expected_redirect_uri,
        fallback_nonce,
        state_key,
        max_age_seconds=max_age_seconds,
        now_seconds=now_seconds,
    )
    return codec.decode(normalized)

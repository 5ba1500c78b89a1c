"""Symmetric key derivation for sealed OAuth cookies and state tokens."""

import base64
import binascii
import hashlib
import re

from hf_oauth.config import Settings

from .errors import ConfigurationError

KEY_BYTES = 32

_HEX_KEY_PATTERN = re.compile(r"^[0-9a-fA-F]{64}$")


def _b64decode(value: str, urlsafe: bool) -> bytes | None:
    if urlsafe:
        if "+" in value or "/" in value:
            return None
        value = value.replace("-", "+").replace("_", "/")
    padded = value + "=" * (-len(value) % 4)
    try:
        return base64.b64decode(padded, validate=True)
    except (binascii.Error, ValueError):
        return None


def _decode_secret(secret: str) -> tuple[bytes, str]:
    trimmed = secret.strip()
    if not trimmed:
        raise ConfigurationError("OAuth sealing secret must not be empty.", 500)

    decoded = _b64decode(trimmed, urlsafe=True)
    if decoded is not None and len(decoded) == KEY_BYTES:
        return decoded, "base64url"

    decoded = _b64decode(trimmed, urlsafe=False)
    if decoded is not None and len(decoded) == KEY_BYTES:
        return decoded, "base64"

    if _HEX_KEY_PATTERN.match(trimmed):
        return bytes.fromhex(trimmed), "hex"

    return hashlib.sha256(trimmed.encode("utf-8")).digest(), "passphrase"


def derive_key(secret: str) -> bytes:
    """Turn an operator-supplied secret into a 32-byte AES-256 key.

    Tried in order: base64url, standard base64, 64-character hex. Anything
    else is treated as a passphrase and hashed with SHA-256.
    """
    key, _ = _decode_secret(secret)
    return key


def describe_secret_format(secret: str) -> str:
    """Return which branch of the decoding cascade ``secret`` takes."""
    _, secret_format = _decode_secret(secret)
    return secret_format


def resolve_session_secret(settings: Settings) -> str:
    """Session secret, falling back to the OAuth client secrets."""
    for candidate in (
        settings.HF_SESSION_COOKIE_SECRET,
        settings.OAUTH_CLIENT_SECRET,
        settings.HF_OAUTH_CLIENT_SECRET,
    ):
        if candidate and candidate.strip():
            return candidate.strip()
    raise ConfigurationError(
        "HF_SESSION_COOKIE_SECRET (or OAuth client secret) is required for "
        "Hugging Face OAuth session storage.",
        500,
    )


def resolve_session_secret_source(settings: Settings) -> str:
    """Name of the setting the session secret comes from, for logging."""
    if (settings.HF_SESSION_COOKIE_SECRET or "").strip():
        return "HF_SESSION_COOKIE_SECRET"
    if (settings.OAUTH_CLIENT_SECRET or "").strip():
        return "OAUTH_CLIENT_SECRET"
    if (settings.HF_OAUTH_CLIENT_SECRET or "").strip():
        return "HF_OAUTH_CLIENT_SECRET"
    return "missing"


def resolve_session_key(settings: Settings) -> bytes:
    return derive_key(resolve_session_secret(settings))


def resolve_state_key(settings: Settings) -> bytes:
    """State-token key: a dedicated secret when set, else the session secret."""
    state_secret = (settings.HF_OAUTH_STATE_SECRET or "").strip()
    if state_secret:
        return derive_key(state_secret)
    return resolve_session_key(settings)

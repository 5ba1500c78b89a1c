"""PKCE (Proof Key for Code Exchange) implementation."""

import base64
import hashlib
import secrets
import uuid
from dataclasses import dataclass
from urllib.parse import urlencode, urlsplit

DEFAULT_PROVIDER_ORIGIN = "https://huggingface.co"

PKCE_ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789-._~"
PKCE_VERIFIER_LENGTH = 96


@dataclass(frozen=True)
class StartState:
    """Per-attempt values created when an OAuth flow starts."""

    nonce: str
    code_verifier: str
    code_challenge: str


def generate_code_verifier(length: int = PKCE_VERIFIER_LENGTH) -> str:
    """Generate a cryptographically random code verifier."""
    random = secrets.token_bytes(length)
    return "".join(PKCE_ALPHABET[value % len(PKCE_ALPHABET)] for value in random)


def generate_code_challenge(code_verifier: str) -> str:
    """Generate code challenge from code verifier using S256 method."""
    digest = hashlib.sha256(code_verifier.encode()).digest()
    return base64.urlsafe_b64encode(digest).rstrip(b"=").decode()


def create_start_state() -> StartState:
    """Create the nonce and verifier/challenge pair for a new login attempt."""
    code_verifier = generate_code_verifier()
    return StartState(
        nonce=str(uuid.uuid4()),
        code_verifier=code_verifier,
        code_challenge=generate_code_challenge(code_verifier),
    )


def normalize_provider_origin(provider_url: str) -> str:
    """Scheme and host of ``provider_url``, or the Hugging Face default."""
    try:
        parsed = urlsplit(provider_url.strip())
    except ValueError:
        return DEFAULT_PROVIDER_ORIGIN
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        return DEFAULT_PROVIDER_ORIGIN
    return f"{parsed.scheme}://{parsed.netloc}"


def build_authorize_url(
    provider_url: str,
    client_id: str,
    scopes: list[str] | tuple[str, ...],
    redirect_uri: str,
    state: str,
    code_challenge: str,
) -> str:
    """Get the provider authorization URL with PKCE."""
    params = {
        "client_id": client_id,
        "scope": " ".join(scopes),
        "response_type": "code",
        "redirect_uri": redirect_uri,
        "state": state,
        "code_challenge": code_challenge,
        "code_challenge_method": "S256",
    }
    return f"{normalize_provider_origin(provider_url)}/oauth/authorize?{urlencode(params)}"

"""OAuth error taxonomy.

Every error carries the HTTP status the route boundary should answer with.
Configuration errors are deployment problems, state and session errors ask
the user to restart the OAuth flow, upstream errors come from the provider.
"""

from typing import Literal

SessionErrorReason = Literal["invalid", "expired"]

STATE_INVALID_MESSAGE = "OAuth state payload is invalid."
STATE_VALIDATION_FAILED_MESSAGE = "OAuth state validation failed."
STATE_EXPIRED_MESSAGE = "OAuth state expired. Start OAuth again."
REDIRECT_MISMATCH_MESSAGE = "OAuth redirect URL mismatch."
REDIRECT_INVALID_MESSAGE = "OAuth redirect URL is invalid."
VERIFIER_MISSING_MESSAGE = "OAuth verifier state is missing. Start Hugging Face OAuth again and retry."

SESSION_INVALID_MESSAGE = (
    "Hugging Face OAuth session is invalid. Reconnect with Hugging Face OAuth."
)
SESSION_EXPIRED_MESSAGE = (
    "Hugging Face OAuth session expired. Reconnect with Hugging Face OAuth."
)


class OAuthError(Exception):
    """Base class for errors surfaced as ``{"error": message}`` responses."""

    status_code: int = 400

    def __init__(self, message: str, status_code: int | None = None):
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        super().__init__(message)


class ConfigurationError(OAuthError):
    """Deployment misconfiguration. Never retried by the client."""

    status_code = 500


class InvalidRequestError(OAuthError):
    """Malformed client input (bad JSON, missing fields, wrong content type)."""

    status_code = 400


class StateValidationError(OAuthError):
    """Invalid, expired or mismatched OAuth state, or missing PKCE verifier."""

    status_code = 400


class SessionError(OAuthError):
    """Session cookie could not be built or trusted."""

    status_code = 401

    def __init__(
        self,
        message: str = SESSION_INVALID_MESSAGE,
        reason: SessionErrorReason = "invalid",
        status_code: int | None = None,
    ):
        self.reason = reason
        super().__init__(message, status_code)


class UpstreamError(OAuthError):
    """The identity provider failed, timed out, or answered with an error."""

    status_code = 502


class CredentialError(OAuthError):
    """No usable Hugging Face credential for a downstream call."""

"""Application configuration."""

import os
from collections.abc import Mapping
from functools import lru_cache


def _flag(value: str | None) -> bool:
    return (value or "").lower() in ("1", "true", "yes")


def read_secret(name: str, default: str = "", env: Mapping[str, str] | None = None) -> str:
    """Read secret from Docker secrets or environment variable."""
    secret_path = f"/run/secrets/{name}"
    if os.path.exists(secret_path):
        with open(secret_path) as f:
            return f.read().strip()
    env = os.environ if env is None else env
    return env.get(name.upper(), default)


class Settings:
    """Application settings.

    Values are read once, from ``env`` (``os.environ`` by default). Optional
    OAuth values stay ``None`` when unset so that "unset" and "set to empty"
    remain distinguishable during provider resolution.
    """

    def __init__(self, env: Mapping[str, str] | None = None):
        env = os.environ if env is None else env

        # Environment
        self.TESTING: bool = _flag(env.get("TESTING"))
        self.ENVIRONMENT: str = env.get("ENVIRONMENT", "development")
        self.LOG_LEVEL: str = env.get("LOG_LEVEL", "INFO").upper()

        # OAuth - Hugging Face Space injected values
        self.OAUTH_CLIENT_ID: str | None = env.get("OAUTH_CLIENT_ID")
        self.OAUTH_CLIENT_SECRET: str | None = read_secret("oauth_client_secret", "", env) or None
        self.OAUTH_SCOPES: str | None = env.get("OAUTH_SCOPES")
        self.OPENID_PROVIDER_URL: str | None = env.get("OPENID_PROVIDER_URL")

        # OAuth - custom app
        self.HF_OAUTH_CLIENT_ID: str | None = env.get("HF_OAUTH_CLIENT_ID")
        self.HF_OAUTH_CLIENT_SECRET: str | None = (
            read_secret("hf_oauth_client_secret", "", env) or None
        )
        self.HF_OAUTH_SCOPES: str | None = env.get("HF_OAUTH_SCOPES")
        self.HF_OAUTH_PROVIDER_URL: str | None = env.get("HF_OAUTH_PROVIDER_URL")

        # Sealing secrets
        self.HF_SESSION_COOKIE_SECRET: str | None = (
            read_secret("hf_session_cookie_secret", "", env) or None
        )
        self.HF_OAUTH_STATE_SECRET: str | None = (
            read_secret("hf_oauth_state_secret", "", env) or None
        )

        # Public URLs
        self.HF_PUBLIC_ORIGIN: str | None = env.get("HF_PUBLIC_ORIGIN")
        self.SPACE_HOST: str | None = env.get("SPACE_HOST")

        # OAuth flow
        self.OAUTH_STATE_FORMAT: str = env.get("OAUTH_STATE_FORMAT", "token").lower()
        self.OAUTH_STATE_MAX_AGE_SECONDS: int = int(env.get("OAUTH_STATE_MAX_AGE_SECONDS", "900"))
        self.OAUTH_DISCOVERY_TIMEOUT_SECONDS: float = float(
            env.get("OAUTH_DISCOVERY_TIMEOUT_SECONDS", "5")
        )
        self.OAUTH_TOKEN_TIMEOUT_SECONDS: float = float(
            env.get("OAUTH_TOKEN_TIMEOUT_SECONDS", "15")
        )

        # Rate Limiting
        self.RATE_LIMIT_PER_MINUTE: int = int(env.get("RATE_LIMIT_PER_MINUTE", "20"))
        self.RATE_LIMIT_STORAGE_URI: str = env.get("RATE_LIMIT_STORAGE_URI", "memory://")

        # CORS
        self.CORS_ORIGINS: list[str] = env.get(
            "CORS_ORIGINS", "http://localhost:3000"
        ).split(",")

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT.lower() == "production"

    @property
    def is_space_deployment(self) -> bool:
        return bool((self.SPACE_HOST or "").strip())


@lru_cache
def get_settings() -> Settings:
    return Settings()

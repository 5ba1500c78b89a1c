"""Rate limiting configuration."""

from slowapi import Limiter
from slowapi.util import get_remote_address

from hf_oauth.config import get_settings

settings = get_settings()

# Create limiter instance
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[f"{settings.RATE_LIMIT_PER_MINUTE}/minute"],
    storage_uri=settings.RATE_LIMIT_STORAGE_URI,
    enabled=not settings.TESTING,
)

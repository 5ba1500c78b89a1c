from .credentials import require_access_token, resolve_access_token
from .errors import OAuthError
from .exchange import exchange_authorization_code
from .keys import derive_key
from .router import router
from .session import read_session_from_cookies

__all__ = [
    "router",
    "derive_key",
    "exchange_authorization_code",
    "read_session_from_cookies",
    "require_access_token",
    "resolve_access_token",
    "OAuthError",
]

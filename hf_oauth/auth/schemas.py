"""OAuth request/response schemas."""

from pydantic import BaseModel, ConfigDict, Field, StrictFloat, StrictInt, StrictStr


class ExchangeRequest(BaseModel):
    """Body of ``POST /oauth/exchange`` as posted by the callback page."""

    model_config = ConfigDict(populate_by_name=True)

    code: str | None = Field(None, description="Authorization code from the provider")
    state: str | None = Field(None, description="State value round-tripped by the provider")
    code_verifier: str | None = Field(
        None, alias="codeVerifier", description="PKCE verifier kept by the browser"
    )
    nonce: str | None = Field(None, description="Nonce for legacy plaintext state")
    redirect_uri: str | None = Field(
        None, alias="redirectUri", description="Redirect URI used for authorization"
    )


class SessionCreateRequest(BaseModel):
    """Body of ``POST /oauth/session``."""

    model_config = ConfigDict(populate_by_name=True)

    access_token: StrictStr | None = Field(None, alias="accessToken")
    expires_at: StrictInt | StrictFloat | None = Field(
        None, alias="expiresAt", description="Unix timestamp (seconds) or null"
    )


class SessionStatusResponse(BaseModel):
    """Connection status reported to the front end."""

    model_config = ConfigDict(populate_by_name=True)

    connected: bool
    expires_at: int | None = Field(None, alias="expiresAt")


class OAuthConfigResponse(BaseModel):
    """Public OAuth configuration. Never includes the client secret."""

    model_config = ConfigDict(populate_by_name=True)

    enabled: bool
    mode: str
    client_id: str | None = Field(None, alias="clientId")
    scopes: list[str]
    provider_url: str = Field(..., alias="providerUrl")
    redirect_url: str = Field(..., alias="redirectUrl")


class ErrorResponse(BaseModel):
    error: str

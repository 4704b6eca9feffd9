"""OAuth2 authorization-code federation with external identity providers."""

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from enum import StrEnum
from types import MappingProxyType
from typing import assert_never
from urllib.parse import urlencode

from supply_auth.config import Settings
from supply_auth.services.shared.http_client import HTTPClient, HTTPClientError

from .errors import OAuthExchangeFailedError, UnsupportedProviderError, UpstreamUnavailableError

logger = logging.getLogger(__name__)


class OAuthProvider(StrEnum):
    GOOGLE = "google"
    MICROSOFT = "microsoft"


@dataclass(frozen=True)
class OAuthProviderConfig:
    """Everything needed to talk to one provider. Immutable once built."""

    client_id: str
    client_secret: str
    redirect_uri: str
    scopes: tuple[str, ...]
    authorize_url: str
    token_url: str
    userinfo_url: str


@dataclass(frozen=True)
class ProviderTokens:
    """Result of a successful authorization-code exchange."""

    access_token: str
    refresh_token: str | None = None
    expires_in: int | None = None
    token_type: str | None = None


@dataclass(frozen=True)
class FederatedIdentity:
    """Provider user profile mapped onto one shape."""

    provider: OAuthProvider
    provider_id: str
    email: str
    name: str | None = None
    picture: str | None = None
    # Whether the provider vouches for ownership of ``email``
    email_verified: bool = False


_ENDPOINTS = {
    OAuthProvider.GOOGLE: (
        "https://accounts.google.com/o/oauth2/v2/auth",
        "https://oauth2.googleapis.com/token",
        "https://www.googleapis.com/oauth2/v2/userinfo",
    ),
    OAuthProvider.MICROSOFT: (
        "https://login.microsoftonline.com/common/oauth2/v2.0/authorize",
        "https://login.microsoftonline.com/common/oauth2/v2.0/token",
        "https://graph.microsoft.com/v1.0/me",
    ),
}

_DEFAULT_SCOPES = ("openid", "email", "profile")


def build_provider_configs(settings: Settings) -> Mapping[OAuthProvider, OAuthProviderConfig]:
    """Read-only provider map for every provider with a client id configured."""
    credentials = {
        OAuthProvider.GOOGLE: (
            settings.google_client_id,
            settings.google_client_secret,
            settings.google_redirect_uri,
        ),
        OAuthProvider.MICROSOFT: (
            settings.microsoft_client_id,
            settings.microsoft_client_secret,
            settings.microsoft_redirect_uri,
        ),
    }
    configs = {}
    for provider, (client_id, client_secret, redirect_uri) in credentials.items():
        if not client_id:
            continue
        authorize_url, token_url, userinfo_url = _ENDPOINTS[provider]
        configs[provider] = OAuthProviderConfig(
            client_id=client_id,
            client_secret=client_secret,
            redirect_uri=redirect_uri,
            scopes=_DEFAULT_SCOPES,
            authorize_url=authorize_url,
            token_url=token_url,
            userinfo_url=userinfo_url,
        )
    return MappingProxyType(configs)


class IdentityProviderClient(HTTPClient):
    """Builds authorization URLs and resolves authorization codes to identities."""

    def __init__(
        self,
        configs: Mapping[OAuthProvider, OAuthProviderConfig],
        timeout: float = 10.0,
    ) -> None:
        super().__init__(timeout=timeout, headers={"Accept": "application/json"})
        self._configs = MappingProxyType(dict(configs))

    def _config(self, provider: OAuthProvider) -> OAuthProviderConfig:
        config = self._configs.get(provider)
        if config is None:
            raise UnsupportedProviderError(f"Unsupported OAuth provider: {provider}")
        return config

    def get_authorization_url(self, provider: OAuthProvider, state: str | None = None) -> str:
        """Consent-screen URL. Pure: no network call."""
        config = self._config(provider)
        params = {
            "client_id": config.client_id,
            "redirect_uri": config.redirect_uri,
            "scope": " ".join(config.scopes),
            "response_type": "code",
        }
        if state:
            params["state"] = state
        return f"{config.authorize_url}?{urlencode(params)}"

    def exchange_code(
        self, provider: OAuthProvider, code: str, redirect_uri: str | None = None
    ) -> ProviderTokens:
        """POST the authorization code to the provider's token endpoint."""
        config = self._config(provider)
        try:
            response = self.post(
                config.token_url,
                data={
                    "client_id": config.client_id,
                    "client_secret": config.client_secret,
                    "code": code,
                    "redirect_uri": redirect_uri or config.redirect_uri,
                    "grant_type": "authorization_code",
                },
            )
            payload = response.json()
        except HTTPClientError as e:
            if e.is_transport_failure:
                raise UpstreamUnavailableError() from e
            raise OAuthExchangeFailedError() from e
        except ValueError as e:
            logger.warning(f"{provider} token endpoint returned non-JSON body")
            raise OAuthExchangeFailedError() from e

        if not isinstance(payload, dict) or not payload.get("access_token"):
            logger.warning(f"{provider} token exchange returned no access token")
            raise OAuthExchangeFailedError()

        access_token = payload["access_token"]

        expires_in = payload.get("expires_in")
        return ProviderTokens(
            access_token=access_token,
            refresh_token=payload.get("refresh_token"),
            expires_in=int(expires_in) if expires_in is not None else None,
            token_type=payload.get("token_type"),
        )

    def fetch_identity(self, provider: OAuthProvider, access_token: str) -> FederatedIdentity:
        """Call the user-info endpoint and normalize the profile."""
        config = self._config(provider)
        try:
            response = self.get(
                config.userinfo_url,
                headers={"Authorization": f"Bearer {access_token}"},
            )
            payload = response.json()
        except HTTPClientError as e:
            if e.is_transport_failure:
                raise UpstreamUnavailableError() from e
            raise OAuthExchangeFailedError() from e
        except ValueError as e:
            raise OAuthExchangeFailedError() from e

        if not isinstance(payload, dict):
            raise OAuthExchangeFailedError()
        return self.normalize_identity(provider, payload)

    @staticmethod
    def normalize_identity(provider: OAuthProvider, payload: dict) -> FederatedIdentity:
        """Map a provider-specific profile payload onto ``FederatedIdentity``."""
        match provider:
            case OAuthProvider.GOOGLE:
                provider_id = payload.get("id") or payload.get("sub")
                email = payload.get("email")
                name = payload.get("name")
                picture = payload.get("picture")
                email_verified = payload.get("verified_email", payload.get("email_verified")) is True
            case OAuthProvider.MICROSOFT:
                provider_id = payload.get("id")
                email = payload.get("mail") or payload.get("userPrincipalName")
                name = payload.get("displayName")
                picture = None
                # Graph profiles carry tenant-editable mail and UPN values with no ownership claim
                email_verified = False
            case _:
                assert_never(provider)

        if not provider_id or not email:
            logger.warning(f"{provider} profile is missing id or email")
            raise OAuthExchangeFailedError()

        return FederatedIdentity(
            provider=provider,
            provider_id=str(provider_id),
            email=email.strip().lower(),
            name=name,
            picture=picture,
            email_verified=email_verified,
        )

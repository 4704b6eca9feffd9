"""Tests for the OAuth2 identity provider client."""

from types import MappingProxyType
from unittest.mock import patch
from urllib.parse import parse_qs, urlparse

import httpx
import pytest

from supply_auth.services.auth import IdentityProviderClient, OAuthProvider, build_provider_configs
from supply_auth.services.auth.errors import (
    OAuthExchangeFailedError,
    UnsupportedProviderError,
    UpstreamUnavailableError,
)
from supply_auth.services.shared.http_client import HTTPClientError


def _response(status_code: int, payload, url: str = "https://provider.test/") -> httpx.Response:
    return httpx.Response(status_code, json=payload, request=httpx.Request("POST", url))


@pytest.fixture
def client(settings):
    return IdentityProviderClient(build_provider_configs(settings), timeout=5.0)


class TestProviderConfigs:
    def test_configs_are_read_only(self, settings):
        configs = build_provider_configs(settings)
        assert isinstance(configs, MappingProxyType)
        with pytest.raises(TypeError):
            configs[OAuthProvider.GOOGLE] = None

    def test_unconfigured_provider_is_unsupported(self, settings):
        configs = build_provider_configs(settings.model_copy(update={"microsoft_client_id": ""}))
        client = IdentityProviderClient(configs)

        assert OAuthProvider.MICROSOFT not in configs
        with pytest.raises(UnsupportedProviderError):
            client.get_authorization_url(OAuthProvider.MICROSOFT)


class TestAuthorizationUrl:
    def test_google_url(self, client, settings):
        url = urlparse(client.get_authorization_url(OAuthProvider.GOOGLE, state="xyz"))
        params = parse_qs(url.query)

        assert url.netloc == "accounts.google.com"
        assert params["client_id"] == ["google-client"]
        assert params["redirect_uri"] == [settings.google_redirect_uri]
        assert params["scope"] == ["openid email profile"]
        assert params["response_type"] == ["code"]
        assert params["state"] == ["xyz"]

    def test_state_is_optional_and_url_deterministic(self, client):
        first = client.get_authorization_url(OAuthProvider.MICROSOFT)
        assert first == client.get_authorization_url(OAuthProvider.MICROSOFT)
        assert "state=" not in first
        assert first.startswith("https://login.microsoftonline.com/common/oauth2/v2.0/authorize?")


class TestExchangeCode:
    def test_success(self, client):
        payload = {
            "access_token": "ya29.token",
            "refresh_token": "1//refresh",
            "expires_in": 3599,
            "token_type": "Bearer",
        }
        with patch.object(client, "post", return_value=_response(200, payload)) as mock_post:
            tokens = client.exchange_code(OAuthProvider.GOOGLE, "auth-code")

        assert tokens.access_token == "ya29.token"
        assert tokens.refresh_token == "1//refresh"
        assert tokens.expires_in == 3599
        form = mock_post.call_args.kwargs["data"]
        assert form["grant_type"] == "authorization_code"
        assert form["code"] == "auth-code"
        assert form["client_secret"] == "google-secret"

    def test_missing_access_token(self, client):
        with patch.object(client, "post", return_value=_response(200, {"error": "invalid_grant"})):
            with pytest.raises(OAuthExchangeFailedError):
                client.exchange_code(OAuthProvider.GOOGLE, "auth-code")

    def test_provider_rejects_code(self, client):
        error = HTTPClientError("HTTP 400: Bad Request", status_code=400)
        with patch.object(client, "post", side_effect=error):
            with pytest.raises(OAuthExchangeFailedError):
                client.exchange_code(OAuthProvider.GOOGLE, "auth-code")

    def test_timeout_is_upstream_unavailable(self, client):
        with patch.object(client, "post", side_effect=HTTPClientError("Request timed out")):
            with pytest.raises(UpstreamUnavailableError):
                client.exchange_code(OAuthProvider.GOOGLE, "auth-code")

    def test_http_errors_are_translated_by_base_client(self, client):
        def raise_timeout(*args, **kwargs):
            raise httpx.ConnectTimeout("timed out")

        with patch.object(client.client, "request", side_effect=raise_timeout):
            with pytest.raises(UpstreamUnavailableError):
                client.exchange_code(OAuthProvider.GOOGLE, "auth-code")


class TestFetchIdentity:
    def test_google_profile(self, client):
        payload = {"id": "1089", "email": "Bob@Example.com", "name": "Bob", "picture": "https://p/x.png"}
        with patch.object(client, "get", return_value=_response(200, payload)) as mock_get:
            identity = client.fetch_identity(OAuthProvider.GOOGLE, "ya29.token")

        assert identity.provider_id == "1089"
        assert identity.email == "bob@example.com"
        assert identity.picture == "https://p/x.png"
        assert identity.email_verified is False
        assert mock_get.call_args.kwargs["headers"] == {"Authorization": "Bearer ya29.token"}

    def test_microsoft_profile_falls_back_to_upn(self, client):
        payload = {"id": "ms-42", "mail": None, "userPrincipalName": "carol@contoso.com", "displayName": "Carol"}
        with patch.object(client, "get", return_value=_response(200, payload)):
            identity = client.fetch_identity(OAuthProvider.MICROSOFT, "token")

        assert identity.provider_id == "ms-42"
        assert identity.email == "carol@contoso.com"
        assert identity.name == "Carol"
        assert identity.picture is None
        assert identity.email_verified is False

    @pytest.mark.parametrize(
        "payload, expected",
        [
            ({"id": "1", "email": "bob@example.com", "verified_email": True}, True),
            ({"sub": "1", "email": "bob@example.com", "email_verified": True}, True),
            ({"id": "1", "email": "bob@example.com", "verified_email": False}, False),
            ({"id": "1", "email": "bob@example.com", "verified_email": "true"}, False),
        ],
    )
    def test_google_verified_email_flag(self, payload, expected):
        identity = IdentityProviderClient.normalize_identity(OAuthProvider.GOOGLE, payload)
        assert identity.email_verified is expected

    def test_profile_without_email(self, client):
        with patch.object(client, "get", return_value=_response(200, {"id": "1"})):
            with pytest.raises(OAuthExchangeFailedError):
                client.fetch_identity(OAuthProvider.GOOGLE, "token")

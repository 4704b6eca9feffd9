"""SQLAlchemy ORM models."""

from supply_auth.models.account import Account
from supply_auth.models.api_key import ApiKey
from supply_auth.models.oauth_account import OAuthAccount
from supply_auth.models.refresh_token import RefreshToken
from supply_auth.models.two_factor_token import TwoFactorToken

__all__ = [
    "Account",
    "ApiKey",
    "OAuthAccount",
    "RefreshToken",
    "TwoFactorToken",
]

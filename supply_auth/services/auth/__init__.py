"""Authentication and session issuance.

Password login, second factors, OAuth2 federation, refresh rotation and API keys.
"""

from .api_key_manager import ApiKeyInfo, ApiKeyManager, IssuedApiKey
from .errors import AuthError, ErrorKind
from .identity_provider import (
    FederatedIdentity,
    IdentityProviderClient,
    OAuthProvider,
    OAuthProviderConfig,
    build_provider_configs,
)
from .mfa_service import MfaService
from .multi_factor_verifier import (
    EmailCodePurpose,
    MultiFactorVerifier,
    SecondFactorStatus,
    SecondFactorType,
    TotpEnrollment,
)
from .password_hasher import PasswordHasher
from .session_issuer import AuthMethod, LoginResult, SessionIssuer, TokenPair
from .token_codec import TokenCodec

__all__ = [
    "ApiKeyInfo",
    "ApiKeyManager",
    "AuthError",
    "AuthMethod",
    "EmailCodePurpose",
    "ErrorKind",
    "FederatedIdentity",
    "IdentityProviderClient",
    "IssuedApiKey",
    "LoginResult",
    "MfaService",
    "MultiFactorVerifier",
    "OAuthProvider",
    "OAuthProviderConfig",
    "PasswordHasher",
    "SecondFactorStatus",
    "SecondFactorType",
    "SessionIssuer",
    "TokenCodec",
    "TokenPair",
    "TotpEnrollment",
    "build_provider_configs",
]

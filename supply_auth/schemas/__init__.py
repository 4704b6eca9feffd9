"""Pydantic schemas for API validation."""

from supply_auth.schemas.api_keys import ApiKeyCreate, ApiKeyCreated, ApiKeyList, ApiKeyRead
from supply_auth.schemas.auth import (
    AccountInfo,
    ChangePasswordRequest,
    LoginRequest,
    LoginResponse,
    MessageResponse,
    OAuthCallbackRequest,
    OAuthUrlResponse,
    ProfileUpdate,
    RegisterRequest,
    SecondFactorLoginRequest,
    TempTokenRequest,
    TokenPairResponse,
    TokenRefresh,
    ValidateResponse,
)
from supply_auth.schemas.mfa import (
    BackupCodesResponse,
    EmailCodeSentResponse,
    RegenerateBackupCodesRequest,
    TotpConfirmRequest,
    TotpSetupRequest,
    TotpSetupResponse,
    TwoFactorDisableRequest,
    TwoFactorStatusResponse,
    TwoFactorVerifyRequest,
    TwoFactorVerifyResponse,
)

__all__ = [
    # Auth schemas
    "AccountInfo",
    "ChangePasswordRequest",
    "LoginRequest",
    "LoginResponse",
    "MessageResponse",
    "OAuthCallbackRequest",
    "OAuthUrlResponse",
    "ProfileUpdate",
    "RegisterRequest",
    "SecondFactorLoginRequest",
    "TempTokenRequest",
    "TokenPairResponse",
    "TokenRefresh",
    "ValidateResponse",
    # Second-factor schemas
    "BackupCodesResponse",
    "EmailCodeSentResponse",
    "RegenerateBackupCodesRequest",
    "TotpConfirmRequest",
    "TotpSetupRequest",
    "TotpSetupResponse",
    "TwoFactorDisableRequest",
    "TwoFactorStatusResponse",
    "TwoFactorVerifyRequest",
    "TwoFactorVerifyResponse",
    # API key schemas
    "ApiKeyCreate",
    "ApiKeyCreated",
    "ApiKeyList",
    "ApiKeyRead",
]

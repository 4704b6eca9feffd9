"""Schemas for authentication endpoints."""

import re
from typing import Literal

from pydantic import BaseModel, EmailStr, Field, field_validator

from supply_auth.services.auth import LoginResult, TokenPair
from supply_auth.services.auth.password_hasher import MAX_PASSWORD_BYTES


def _validate_password_strength(v: str) -> str:
    """Shared password validation logic."""
    if len(v.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise ValueError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes")

    errors = []
    if not re.search(r"[a-z]", v):
        errors.append("lowercase letter")
    if not re.search(r"[A-Z]", v):
        errors.append("uppercase letter")
    if not re.search(r"\d", v):
        errors.append("number")

    if errors:
        raise ValueError(f"Password must contain at least one: {', '.join(errors)}")
    return v


class RegisterRequest(BaseModel):
    """Schema for account registration."""

    email: EmailStr
    password: str = Field(min_length=8, max_length=72)
    name: str | None = Field(None, max_length=255)

    @field_validator("password")
    @classmethod
    def validate_password_strength(cls, v: str) -> str:
        return _validate_password_strength(v)


class LoginRequest(BaseModel):
    email: str
    password: str


class AccountInfo(BaseModel):
    """Schema for account info in auth responses."""

    id: str
    email: str
    name: str | None = None
    email_verified: bool = False
    two_factor_enabled: bool = False
    preferred_auth_method: str = "jwt"

    model_config = {"from_attributes": True}


class TokenPairResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int

    @classmethod
    def from_pair(cls, pair: TokenPair) -> "TokenPairResponse":
        return cls(
            access_token=pair.access_token,
            refresh_token=pair.refresh_token,
            token_type=pair.token_type,
            expires_in=pair.expires_in,
        )


class LoginResponse(BaseModel):
    """Either a session (tokens) or a pending second factor (temp_token)."""

    success: bool = True
    requires_two_factor: bool = False
    temp_token: str | None = None
    tokens: TokenPairResponse | None = None
    account: AccountInfo

    @classmethod
    def from_result(cls, result: LoginResult) -> "LoginResponse":
        return cls(
            requires_two_factor=result.requires_two_factor,
            temp_token=result.temp_token,
            tokens=TokenPairResponse.from_pair(result.tokens) if result.tokens else None,
            account=AccountInfo.model_validate(result.account),
        )


class SecondFactorLoginRequest(BaseModel):
    temp_token: str
    code: str = Field(min_length=1, max_length=32)
    factor: Literal["totp", "email_otp", "backup_code"] = "totp"


class TempTokenRequest(BaseModel):
    temp_token: str


class TokenRefresh(BaseModel):
    """Schema for token refresh and logout."""

    refresh_token: str


class MessageResponse(BaseModel):
    """Schema for simple message response."""

    success: bool = True
    message: str


class ValidateResponse(BaseModel):
    success: bool = True
    valid: bool = True
    account: AccountInfo


class ProfileUpdate(BaseModel):
    name: str | None = Field(None, max_length=255)
    preferred_auth_method: Literal["jwt", "oauth2", "api_key"] | None = None


class ChangePasswordRequest(BaseModel):
    """Schema for changing password while logged in."""

    current_password: str
    new_password: str = Field(min_length=8, max_length=72)

    @field_validator("new_password")
    @classmethod
    def validate_password_strength(cls, v: str) -> str:
        return _validate_password_strength(v)


class OAuthUrlResponse(BaseModel):
    success: bool = True
    provider: str
    auth_url: str


class OAuthCallbackRequest(BaseModel):
    code: str
    redirect_uri: str | None = None
    state: str | None = None

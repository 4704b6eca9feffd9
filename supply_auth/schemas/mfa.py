"""Schemas for second-factor endpoints."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

FactorName = Literal["totp", "email_otp", "backup_code"]


class TotpSetupRequest(BaseModel):
    """Password re-authentication; omitted for accounts without one."""

    password: str | None = None


class TotpSetupResponse(BaseModel):
    """Response for TOTP setup initiation."""

    success: bool = True
    secret: str
    otpauth_uri: str
    qr_code_base64: str
    manual_entry_key: str


class TotpConfirmRequest(BaseModel):
    """Request to confirm TOTP setup."""

    secret: str
    code: str = Field(min_length=6, max_length=6)


class BackupCodesResponse(BaseModel):
    """Plaintext backup codes. Shown once."""

    success: bool = True
    backup_codes: list[str]


class TwoFactorDisableRequest(BaseModel):
    password: str | None = None
    code: str | None = None
    factor: FactorName = "totp"


class TwoFactorVerifyRequest(BaseModel):
    code: str = Field(min_length=1, max_length=32)
    factor: FactorName = "totp"


class TwoFactorVerifyResponse(BaseModel):
    success: bool = True
    verified: bool


class EmailCodeSentResponse(BaseModel):
    success: bool = True
    message: str
    expires_in_minutes: int


class RegenerateBackupCodesRequest(BaseModel):
    """Request to regenerate backup codes (requires a current code)."""

    code: str = Field(min_length=1, max_length=32)
    factor: FactorName = "totp"


class TwoFactorStatusResponse(BaseModel):
    success: bool = True
    enabled: bool
    verified_at: datetime | None = None
    backup_codes_remaining: int
    remaining_code_requests: int

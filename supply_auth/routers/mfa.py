"""Second-factor router: TOTP enrollment, backup codes and email codes."""

import logging

from fastapi import APIRouter, Depends, Request

from supply_auth.dependencies.auth import get_current_account
from supply_auth.dependencies.services import get_multi_factor_verifier
from supply_auth.models import Account
from supply_auth.rate_limiter import limiter
from supply_auth.schemas.auth import MessageResponse
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
from supply_auth.services.auth import EmailCodePurpose, MultiFactorVerifier, SecondFactorType

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth/2fa", tags=["two-factor"])


@router.post("/setup", response_model=TotpSetupResponse)
def setup_totp(
    data: TotpSetupRequest,
    current_account: Account = Depends(get_current_account),
    verifier: MultiFactorVerifier = Depends(get_multi_factor_verifier),
) -> TotpSetupResponse:
    """Start TOTP enrollment. Nothing is stored until /enable succeeds."""
    enrollment = verifier.setup(current_account.id, data.password)
    return TotpSetupResponse(
        secret=enrollment.secret,
        otpauth_uri=enrollment.otpauth_uri,
        qr_code_base64=enrollment.qr_code_base64,
        manual_entry_key=enrollment.manual_entry_key,
    )


@router.post("/enable", response_model=BackupCodesResponse)
@limiter.limit("10/minute")
def enable_totp(
    request: Request,
    data: TotpConfirmRequest,
    current_account: Account = Depends(get_current_account),
    verifier: MultiFactorVerifier = Depends(get_multi_factor_verifier),
) -> BackupCodesResponse:
    """Confirm enrollment with a current code; returns backup codes once."""
    codes = verifier.verify_and_enable(current_account.id, data.secret, data.code)
    logger.info(f"Two-factor enabled for account {current_account.id}")
    return BackupCodesResponse(backup_codes=codes)


@router.post("/disable", response_model=MessageResponse)
@limiter.limit("5/minute")
def disable_two_factor(
    request: Request,
    data: TwoFactorDisableRequest,
    current_account: Account = Depends(get_current_account),
    verifier: MultiFactorVerifier = Depends(get_multi_factor_verifier),
) -> MessageResponse:
    verifier.disable(
        current_account.id, data.password, data.code, SecondFactorType(data.factor)
    )
    return MessageResponse(message="Two-factor authentication disabled")


@router.post("/verify", response_model=TwoFactorVerifyResponse)
@limiter.limit("10/minute")
def verify_code(
    request: Request,
    data: TwoFactorVerifyRequest,
    current_account: Account = Depends(get_current_account),
    verifier: MultiFactorVerifier = Depends(get_multi_factor_verifier),
) -> TwoFactorVerifyResponse:
    """Step-up check for a signed-in account."""
    verifier.verify_step_up(current_account.id, data.code, SecondFactorType(data.factor))
    return TwoFactorVerifyResponse(verified=True)


@router.post("/email-code", response_model=EmailCodeSentResponse)
def send_email_code(
    current_account: Account = Depends(get_current_account),
    verifier: MultiFactorVerifier = Depends(get_multi_factor_verifier),
) -> EmailCodeSentResponse:
    expires_in = verifier.send_email_code(current_account.id, EmailCodePurpose.VERIFICATION)
    return EmailCodeSentResponse(message="Verification code sent", expires_in_minutes=expires_in)


@router.post("/backup-codes", response_model=BackupCodesResponse)
@limiter.limit("5/minute")
def regenerate_backup_codes(
    request: Request,
    data: RegenerateBackupCodesRequest,
    current_account: Account = Depends(get_current_account),
    verifier: MultiFactorVerifier = Depends(get_multi_factor_verifier),
) -> BackupCodesResponse:
    """Replace all backup codes. Old codes stop working immediately."""
    codes = verifier.regenerate_backup_codes(
        current_account.id, data.code, SecondFactorType(data.factor)
    )
    return BackupCodesResponse(backup_codes=codes)


@router.get("/status", response_model=TwoFactorStatusResponse)
def get_status(
    current_account: Account = Depends(get_current_account),
    verifier: MultiFactorVerifier = Depends(get_multi_factor_verifier),
) -> TwoFactorStatusResponse:
    status = verifier.status(current_account.id)
    return TwoFactorStatusResponse(
        enabled=status.enabled,
        verified_at=status.verified_at,
        backup_codes_remaining=status.backup_codes_remaining,
        remaining_code_requests=status.remaining_code_requests,
    )

"""Second-factor lifecycle: TOTP enrollment, backup codes and email one-time codes."""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import StrEnum
from typing import assert_never

from supply_auth.config import Settings
from supply_auth.models import Account
from supply_auth.services.email_service import Notification, NotificationDispatcher, NotificationQueue
from supply_auth.services.repositories import AccountStore, CooldownActiveError
from supply_auth.services.security_audit_service import SecurityAuditService, SecurityEventType
from supply_auth.timeutils import utcnow

from .errors import (
    AlreadyEnabledError,
    DispatchFailedError,
    InvalidCredentialsError,
    InvalidOrExpiredCodeError,
    InvalidSecondFactorError,
    NotEnabledError,
    NotFoundError,
    RateLimitedError,
)
from .mfa_service import MfaService, build_fernet
from .password_hasher import PasswordHasher

logger = logging.getLogger(__name__)


class SecondFactorType(StrEnum):
    TOTP = "totp"
    EMAIL_OTP = "email_otp"
    BACKUP_CODE = "backup_code"


class EmailCodePurpose(StrEnum):
    LOGIN = "login"  # second step of a pending login
    VERIFICATION = "verification"  # re-authentication of a signed-in account


@dataclass(frozen=True)
class TotpEnrollment:
    """Material for an authenticator app. Nothing is persisted until confirmed."""

    secret: str
    otpauth_uri: str
    qr_code_base64: str
    manual_entry_key: str


@dataclass(frozen=True)
class SecondFactorStatus:
    enabled: bool
    verified_at: datetime | None
    backup_codes_remaining: int
    remaining_code_requests: int


class MultiFactorVerifier:
    """Generates and checks second factors for an account.

    All store access goes through ``AccountStore``; time comes from ``clock``.
    """

    def __init__(
        self,
        store: AccountStore,
        dispatcher: NotificationDispatcher,
        settings: Settings,
        clock: Callable[[], datetime] = utcnow,
        notifications: NotificationQueue | None = None,
    ) -> None:
        self._store = store
        self._dispatcher = dispatcher
        self._settings = settings
        self._clock = clock
        self._notifications = notifications
        self._fernet = build_fernet(settings.mfa_encryption_key, settings.jwt_secret_key)

    def _get_account(self, account_id: str) -> Account:
        account = self._store.find_account_by_id(account_id)
        if account is None:
            raise NotFoundError("Account not found")
        return account

    def _hash_backup_code(self, code: str) -> str:
        return PasswordHasher.keyed_hash(
            MfaService.normalize_backup_code(code), self._settings.api_key_pepper
        )

    def _issue_backup_codes(self) -> tuple[list[str], list[str]]:
        codes = MfaService.generate_backup_codes(self._settings.backup_code_count)
        return codes, [self._hash_backup_code(code) for code in codes]

    def _require_password(self, account: Account, password: str | None) -> None:
        if account.password_hash is None:
            return
        if not password or not PasswordHasher.verify_password(password, account.password_hash):
            raise InvalidCredentialsError("Invalid password")

    # TOTP enrollment

    def setup(self, account_id: str, password: str | None = None) -> TotpEnrollment:
        """Start TOTP enrollment for an account without an active second factor."""
        account = self._get_account(account_id)
        if account.two_factor_enabled:
            raise AlreadyEnabledError()
        self._require_password(account, password)

        secret = MfaService.generate_totp_secret()
        uri = MfaService.get_totp_uri(secret, account.email, self._settings.totp_issuer)
        return TotpEnrollment(
            secret=secret,
            otpauth_uri=uri,
            qr_code_base64=MfaService.generate_qr_code_base64(uri),
            manual_entry_key=secret,
        )

    def verify_and_enable(self, account_id: str, secret: str, code: str) -> list[str]:
        """Confirm enrollment with a code from the app.

        Returns the plaintext backup codes; only their hashes are stored.
        """
        account = self._get_account(account_id)
        if account.two_factor_enabled:
            raise AlreadyEnabledError()

        now = self._clock()
        if not MfaService.verify_totp(secret, code, now, self._settings.totp_valid_window):
            SecurityAuditService.log_event(
                SecurityEventType.MFA_FAILED, account_id, {"stage": "enable"}
            )
            raise InvalidSecondFactorError()

        codes, hashes = self._issue_backup_codes()
        self._store.enable_two_factor(
            account_id,
            secret_encrypted=MfaService.seal_secret(self._fernet, secret),
            backup_code_hashes=hashes,
            now=now,
        )
        SecurityAuditService.log_event(SecurityEventType.MFA_ENABLED, account_id)
        return codes

    # Verification

    def verify_totp(self, account: Account, code: str) -> bool:
        """Check a code against the stored secret. No mutation."""
        if not account.two_factor_enabled or not account.two_factor_secret_encrypted:
            return False
        secret = MfaService.open_secret(self._fernet, account.two_factor_secret_encrypted)
        if secret is None:
            logger.error(f"Stored TOTP secret for account {account.id} cannot be decrypted")
            return False
        return MfaService.verify_totp(secret, code, self._clock(), self._settings.totp_valid_window)

    def consume_backup_code(self, account: Account, code: str) -> bool:
        """Remove a matching backup code from the stored set. Each code works once."""
        if not code or not account.two_factor_enabled:
            return False
        consumed = self._store.consume_backup_code(account.id, self._hash_backup_code(code))
        if consumed:
            SecurityAuditService.log_event(SecurityEventType.RECOVERY_CODE_USED, account.id)
        return consumed

    def consume_email_code(
        self, account_id: str, code: str, purpose: EmailCodePurpose = EmailCodePurpose.LOGIN
    ) -> bool:
        if not code or not code.isdigit():
            return False
        return self._store.consume_two_factor_token(
            account_id=account_id,
            code_hash=PasswordHasher.hash_token(code),
            purpose=purpose,
            now=self._clock(),
        )

    def verify(
        self,
        account_id: str,
        code: str,
        factor: SecondFactorType = SecondFactorType.TOTP,
        purpose: EmailCodePurpose = EmailCodePurpose.LOGIN,
    ) -> bool:
        """Check one code of the given factor type for an account."""
        account = self._get_account(account_id)
        match factor:
            case SecondFactorType.TOTP:
                verified = self.verify_totp(account, code)
            case SecondFactorType.EMAIL_OTP:
                verified = self.consume_email_code(account.id, code, purpose)
            case SecondFactorType.BACKUP_CODE:
                verified = self.consume_backup_code(account, code)
            case _:
                assert_never(factor)

        event = SecurityEventType.MFA_VERIFIED if verified else SecurityEventType.MFA_FAILED
        SecurityAuditService.log_event(event, account.id, {"factor": factor.value})
        return verified

    # Email one-time codes

    def send_email_code(
        self, account_id: str, purpose: EmailCodePurpose = EmailCodePurpose.LOGIN
    ) -> int:
        """Generate, store and deliver an email code. Returns its lifetime in minutes.

        Raises RateLimitedError inside the cooldown and DispatchFailedError when
        the dispatcher does not accept the message; in that case the stored code
        is removed again.
        """
        account = self._get_account(account_id)
        now = self._clock()
        code = MfaService.generate_email_otp(self._settings.email_otp_length)
        expires_minutes = self._settings.email_otp_expire_minutes

        try:
            token = self._store.create_two_factor_token(
                account_id=account.id,
                code_hash=PasswordHasher.hash_token(code),
                purpose=purpose,
                expires_at=now + timedelta(minutes=expires_minutes),
                now=now,
                cooldown=timedelta(seconds=self._settings.email_otp_cooldown_seconds),
            )
        except CooldownActiveError as e:
            raise RateLimitedError(e.retry_after) from e

        notification = Notification(
            destination=account.email,
            template="email_otp",
            data={"otp": code, "name": account.name, "expires_in": expires_minutes},
        )
        try:
            delivered = self._dispatcher.send(notification)
        except Exception:
            logger.exception(f"Email code dispatch raised for account {account.id}")
            delivered = False

        if not delivered:
            self._store.delete_two_factor_token(token.id)
            raise DispatchFailedError()

        SecurityAuditService.log_event(
            SecurityEventType.EMAIL_CODE_SENT, account.id, {"purpose": purpose.value}
        )
        return expires_minutes

    def verify_email_code(
        self, account_id: str, code: str, purpose: EmailCodePurpose = EmailCodePurpose.LOGIN
    ) -> None:
        """Consume a matching unused, unexpired code or raise InvalidOrExpiredCodeError."""
        verified = self.consume_email_code(account_id, code, purpose)
        event = SecurityEventType.MFA_VERIFIED if verified else SecurityEventType.MFA_FAILED
        SecurityAuditService.log_event(
            event, account_id, {"factor": SecondFactorType.EMAIL_OTP.value, "purpose": purpose.value}
        )
        if not verified:
            raise InvalidOrExpiredCodeError()

    def verify_step_up(self, account_id: str, code: str, factor: SecondFactorType) -> None:
        """Re-check a factor for an already signed-in account.

        Email codes fail with InvalidOrExpiredCodeError, the other factors with
        InvalidSecondFactorError.
        """
        if factor is SecondFactorType.EMAIL_OTP:
            self._get_account(account_id)
            self.verify_email_code(account_id, code, EmailCodePurpose.VERIFICATION)
            return
        if not self.verify(account_id, code, factor):
            raise InvalidSecondFactorError()

    def remaining_code_requests(self, account_id: str) -> int:
        """Email-code sends left in the rolling window."""
        since = self._clock() - timedelta(minutes=self._settings.email_otp_window_minutes)
        used = self._store.count_two_factor_tokens_since(account_id, since)
        return max(0, self._settings.email_otp_max_requests - used)

    def purge_expired_codes(self) -> int:
        return self._store.delete_expired_two_factor_tokens(self._clock())

    # Management

    def disable(
        self,
        account_id: str,
        password: str | None = None,
        code: str | None = None,
        factor: SecondFactorType = SecondFactorType.TOTP,
    ) -> None:
        """Turn the second factor off after re-authentication.

        Accounts with a password must supply it. Accounts without one must
        supply a code. A supplied code must always be valid.
        """
        account = self._get_account(account_id)
        if not account.two_factor_enabled:
            raise NotEnabledError()
        self._require_password(account, password)

        if code or account.password_hash is None:
            if not code or not self.verify(
                account.id, code, factor, EmailCodePurpose.VERIFICATION
            ):
                raise InvalidSecondFactorError()

        self._store.disable_two_factor(account.id)
        SecurityAuditService.log_event(SecurityEventType.MFA_DISABLED, account.id)
        if self._notifications is not None:
            self._notifications.enqueue(
                Notification(
                    destination=account.email,
                    template="two_factor_disabled",
                    data={"name": account.name},
                )
            )

    def regenerate_backup_codes(
        self, account_id: str, code: str, factor: SecondFactorType = SecondFactorType.TOTP
    ) -> list[str]:
        """Replace the whole backup-code set after verifying a current code."""
        account = self._get_account(account_id)
        if not account.two_factor_enabled:
            raise NotEnabledError()
        if not self.verify(account.id, code, factor, EmailCodePurpose.VERIFICATION):
            raise InvalidSecondFactorError()

        codes, hashes = self._issue_backup_codes()
        self._store.replace_backup_codes(account.id, hashes)
        SecurityAuditService.log_event(SecurityEventType.RECOVERY_CODES_REGENERATED, account.id)
        return codes

    def status(self, account_id: str) -> SecondFactorStatus:
        account = self._get_account(account_id)
        return SecondFactorStatus(
            enabled=account.two_factor_enabled,
            verified_at=account.two_factor_verified_at,
            backup_codes_remaining=len(account.backup_code_hashes or []),
            remaining_code_requests=self.remaining_code_requests(account.id),
        )

"""Service for logging security events."""

import logging

logger = logging.getLogger("supply_auth.security")


class SecurityEventType:
    """Constants for security event types."""

    REGISTERED = "registered"
    LOGIN_SUCCESS = "login_success"
    LOGIN_FAILED = "login_failed"
    LOGIN_BLOCKED_DISABLED = "login_blocked_disabled"
    LOGIN_PENDING_SECOND_FACTOR = "login_pending_second_factor"
    OAUTH_LOGIN = "oauth_login"
    OAUTH_ACCOUNT_CREATED = "oauth_account_created"
    LOGOUT = "logout"
    PASSWORD_CHANGED = "password_changed"
    REFRESH_TOKEN_REUSE = "refresh_token_reuse"
    MFA_ENABLED = "mfa_enabled"
    MFA_DISABLED = "mfa_disabled"
    MFA_VERIFIED = "mfa_verified"
    MFA_FAILED = "mfa_failed"
    RECOVERY_CODE_USED = "recovery_code_used"
    RECOVERY_CODES_REGENERATED = "recovery_codes_regenerated"
    EMAIL_CODE_SENT = "email_code_sent"
    API_KEY_CREATED = "api_key_created"
    API_KEY_REVOKED = "api_key_revoked"


class SecurityAuditService:
    """Service for recording security audit events."""

    @staticmethod
    def log_event(
        event_type: str,
        account_id: str | None = None,
        details: dict | None = None,
    ) -> None:
        """Log a security event to the dedicated security logger.

        Never include secrets, codes or tokens in ``details``.
        """
        extra = ""
        if details:
            extra = " | " + " ".join(f"{k}={v}" for k, v in details.items())
        logger.info(f"Security event: {event_type} | account_id={account_id}{extra}")

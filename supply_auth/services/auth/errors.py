"""Expected authentication outcomes.

Each class is a user-facing result of an auth operation rather than a fault.
The transport layer turns them into a typed error envelope; anything that is
not an ``AuthError`` is treated as an internal failure.
"""

from enum import StrEnum


class ErrorKind(StrEnum):
    """Stable, machine-readable error identifiers."""

    INVALID_CREDENTIALS = "invalid_credentials"
    ACCOUNT_DEACTIVATED = "account_deactivated"
    PASSWORD_LOGIN_UNAVAILABLE = "password_login_unavailable"
    PASSWORD_TOO_LONG = "password_too_long"
    EMAIL_ALREADY_REGISTERED = "email_already_registered"
    INVALID_TOKEN = "invalid_token"
    INVALID_OR_EXPIRED_TEMP_TOKEN = "invalid_or_expired_temp_token"
    INVALID_SECOND_FACTOR = "invalid_second_factor"
    RATE_LIMITED = "rate_limited"
    DISPATCH_FAILED = "dispatch_failed"
    INVALID_OR_EXPIRED_CODE = "invalid_or_expired_code"
    OAUTH_EXCHANGE_FAILED = "oauth_exchange_failed"
    UNSUPPORTED_PROVIDER = "unsupported_provider"
    ACCOUNT_LINK_CONFLICT = "account_link_conflict"
    UPSTREAM_UNAVAILABLE = "upstream_unavailable"
    INVALID_REFRESH_TOKEN = "invalid_refresh_token"
    REFRESH_TOKEN_EXPIRED = "refresh_token_expired"
    API_KEY_INVALID = "api_key_invalid"
    NOT_FOUND = "not_found"
    ALREADY_ENABLED = "already_enabled"
    NOT_ENABLED = "not_enabled"
    INTERNAL_FAILURE = "internal_failure"


class AuthError(Exception):
    """Base class for expected authentication failures."""

    kind: ErrorKind = ErrorKind.INTERNAL_FAILURE
    default_message: str = "Authentication failed"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class InvalidCredentialsError(AuthError):
    kind = ErrorKind.INVALID_CREDENTIALS
    default_message = "Invalid email or password"


class AccountDeactivatedError(AuthError):
    kind = ErrorKind.ACCOUNT_DEACTIVATED
    default_message = "Account is deactivated"


class PasswordLoginUnavailableError(AuthError):
    kind = ErrorKind.PASSWORD_LOGIN_UNAVAILABLE
    default_message = "This account signs in with an external provider"


class PasswordTooLongError(AuthError):
    kind = ErrorKind.PASSWORD_TOO_LONG
    default_message = "Password must be at most 72 bytes"


class EmailAlreadyRegisteredError(AuthError):
    kind = ErrorKind.EMAIL_ALREADY_REGISTERED
    default_message = "Email already registered"


class InvalidTokenError(AuthError):
    kind = ErrorKind.INVALID_TOKEN
    default_message = "Invalid or expired token"


class InvalidOrExpiredTempTokenError(AuthError):
    kind = ErrorKind.INVALID_OR_EXPIRED_TEMP_TOKEN
    default_message = "Invalid or expired temporary token"


class InvalidSecondFactorError(AuthError):
    kind = ErrorKind.INVALID_SECOND_FACTOR
    default_message = "Invalid verification code"


class RateLimitedError(AuthError):
    kind = ErrorKind.RATE_LIMITED
    default_message = "Too many requests"

    def __init__(self, retry_after: int, message: str | None = None):
        self.retry_after = retry_after
        super().__init__(message or f"Please wait {retry_after} seconds before requesting a new code")


class DispatchFailedError(AuthError):
    kind = ErrorKind.DISPATCH_FAILED
    default_message = "Failed to send verification code"


class InvalidOrExpiredCodeError(AuthError):
    kind = ErrorKind.INVALID_OR_EXPIRED_CODE
    default_message = "Invalid or expired code"


class OAuthExchangeFailedError(AuthError):
    kind = ErrorKind.OAUTH_EXCHANGE_FAILED
    default_message = "Could not complete sign-in with the provider"


class UnsupportedProviderError(AuthError):
    kind = ErrorKind.UNSUPPORTED_PROVIDER
    default_message = "Unsupported OAuth provider"


class AccountLinkConflictError(AuthError):
    kind = ErrorKind.ACCOUNT_LINK_CONFLICT
    default_message = "Account is already linked to a different identity at this provider"


class UpstreamUnavailableError(AuthError):
    kind = ErrorKind.UPSTREAM_UNAVAILABLE
    default_message = "Identity provider is unavailable, please try again"


class InvalidRefreshTokenError(AuthError):
    kind = ErrorKind.INVALID_REFRESH_TOKEN
    default_message = "Refresh token not found or revoked"


class RefreshTokenExpiredError(AuthError):
    kind = ErrorKind.REFRESH_TOKEN_EXPIRED
    default_message = "Refresh token expired"


class ApiKeyInvalidError(AuthError):
    kind = ErrorKind.API_KEY_INVALID
    default_message = "Invalid API key"


class NotFoundError(AuthError):
    kind = ErrorKind.NOT_FOUND
    default_message = "Not found"


class AlreadyEnabledError(AuthError):
    kind = ErrorKind.ALREADY_ENABLED
    default_message = "Two-factor authentication is already enabled"


class NotEnabledError(AuthError):
    kind = ErrorKind.NOT_ENABLED
    default_message = "Two-factor authentication is not enabled"

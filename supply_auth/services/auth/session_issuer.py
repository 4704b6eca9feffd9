"""Turns verified credentials into sessions: login, second-factor completion, OAuth2 and refresh."""

import logging
import secrets
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import StrEnum

from supply_auth.config import Settings
from supply_auth.models import Account
from supply_auth.services.email_service import Notification, NotificationQueue
from supply_auth.services.repositories import AccountStore, DuplicateError
from supply_auth.services.security_audit_service import SecurityAuditService, SecurityEventType
from supply_auth.timeutils import as_utc, utcnow

from .errors import (
    AccountDeactivatedError,
    AccountLinkConflictError,
    EmailAlreadyRegisteredError,
    InvalidCredentialsError,
    InvalidOrExpiredTempTokenError,
    InvalidRefreshTokenError,
    InvalidSecondFactorError,
    InvalidTokenError,
    NotFoundError,
    PasswordLoginUnavailableError,
    RefreshTokenExpiredError,
    UnsupportedProviderError,
)
from .identity_provider import FederatedIdentity, IdentityProviderClient, OAuthProvider
from .multi_factor_verifier import EmailCodePurpose, MultiFactorVerifier, SecondFactorType
from .password_hasher import PasswordHasher
from .token_codec import TokenCodec

logger = logging.getLogger(__name__)


class AuthMethod(StrEnum):
    JWT = "jwt"
    OAUTH2 = "oauth2"
    API_KEY = "api_key"


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str
    expires_in: int  # access token lifetime, seconds
    token_type: str = "bearer"


@dataclass(frozen=True)
class LoginResult:
    """Either a full session or a pending-second-factor token, never both."""

    account: Account
    tokens: TokenPair | None = None
    temp_token: str | None = None

    @property
    def requires_two_factor(self) -> bool:
        return self.temp_token is not None


def parse_provider(provider: str) -> OAuthProvider:
    try:
        return OAuthProvider(provider.lower())
    except ValueError as e:
        raise UnsupportedProviderError(f"Unsupported OAuth provider: {provider}") from e


def normalize_email(email: str) -> str:
    return email.strip().lower()


class SessionIssuer:
    """Session orchestration over the Account Store.

    Expected failures are raised as ``AuthError`` subclasses.
    """

    def __init__(
        self,
        store: AccountStore,
        codec: TokenCodec,
        verifier: MultiFactorVerifier,
        idp_client: IdentityProviderClient,
        notifications: NotificationQueue,
        settings: Settings,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._store = store
        self._codec = codec
        self._verifier = verifier
        self._idp = idp_client
        self._notifications = notifications
        self._settings = settings
        self._clock = clock

    # Token issuance

    def _issue_pair(self, account: Account) -> TokenPair:
        now = self._clock()
        access_lifetime = timedelta(minutes=self._settings.access_token_expire_minutes)
        access_token = self._codec.create_access_token(
            account.id, account.email, account.name, access_lifetime
        )
        refresh_token = secrets.token_urlsafe(32)
        self._store.create_refresh_token(
            account_id=account.id,
            token_hash=PasswordHasher.hash_token(refresh_token),
            expires_at=now + timedelta(days=self._settings.refresh_token_expire_days),
            now=now,
        )
        return TokenPair(
            access_token=access_token,
            refresh_token=refresh_token,
            expires_in=int(access_lifetime.total_seconds()),
        )

    def _complete_login(self, account: Account) -> LoginResult:
        account = self._store.update_account(account.id, last_login_at=self._clock())
        return LoginResult(account=account, tokens=self._issue_pair(account))

    def _pending(self, account: Account) -> LoginResult:
        temp_token = self._codec.create_pending_token(
            account.id, timedelta(minutes=self._settings.mfa_pending_token_expire_minutes)
        )
        SecurityAuditService.log_event(SecurityEventType.LOGIN_PENDING_SECOND_FACTOR, account.id)
        return LoginResult(account=account, temp_token=temp_token)

    def _get_account(self, account_id: str) -> Account:
        account = self._store.find_account_by_id(account_id)
        if account is None:
            raise NotFoundError("Account not found")
        return account

    # Registration and password login

    def register(self, email: str, password: str, name: str | None = None) -> LoginResult:
        """Create a password account and sign it in."""
        email = normalize_email(email)
        if self._store.find_account_by_email(email) is not None:
            raise EmailAlreadyRegisteredError()

        try:
            account = self._store.create_account(
                email=email,
                password_hash=PasswordHasher.hash_password(password),
                name=name,
                email_verified=False,
                preferred_auth_method=AuthMethod.JWT,
                now=self._clock(),
            )
        except DuplicateError as e:
            raise EmailAlreadyRegisteredError() from e

        SecurityAuditService.log_event(SecurityEventType.REGISTERED, account.id)
        self._notifications.enqueue(
            Notification(destination=account.email, template="welcome", data={"name": account.name})
        )
        return self._complete_login(account)

    def login(self, email: str, password: str) -> LoginResult:
        """Password step of sign-in.

        With a second factor enabled this returns a pending token and leaves
        last-login untouched.
        """
        account = self._store.find_account_by_email(normalize_email(email))
        if account is None:
            PasswordHasher.burn_verification(password)
            SecurityAuditService.log_event(SecurityEventType.LOGIN_FAILED, None, {"reason": "unknown_email"})
            raise InvalidCredentialsError()

        if not account.is_active:
            SecurityAuditService.log_event(SecurityEventType.LOGIN_BLOCKED_DISABLED, account.id)
            raise AccountDeactivatedError()

        if account.password_hash is None:
            raise PasswordLoginUnavailableError()

        if not PasswordHasher.verify_password(password, account.password_hash):
            SecurityAuditService.log_event(SecurityEventType.LOGIN_FAILED, account.id, {"reason": "bad_password"})
            raise InvalidCredentialsError()

        if account.two_factor_enabled:
            return self._pending(account)

        SecurityAuditService.log_event(SecurityEventType.LOGIN_SUCCESS, account.id)
        return self._complete_login(account)

    def _account_from_pending(self, temp_token: str) -> Account:
        payload = self._codec.decode_pending_token(temp_token)
        if payload is None:
            raise InvalidOrExpiredTempTokenError()
        account = self._store.find_account_by_id(payload["sub"])
        if account is None:
            raise InvalidOrExpiredTempTokenError()
        if not account.is_active:
            raise AccountDeactivatedError()
        return account

    def complete_login_with_second_factor(
        self,
        temp_token: str,
        code: str,
        factor: SecondFactorType = SecondFactorType.TOTP,
    ) -> LoginResult:
        """Second step of sign-in. The temp token stays usable until it expires."""
        account = self._account_from_pending(temp_token)
        if not self._verifier.verify(account.id, code, factor, EmailCodePurpose.LOGIN):
            raise InvalidSecondFactorError()

        SecurityAuditService.log_event(
            SecurityEventType.LOGIN_SUCCESS, account.id, {"factor": factor.value}
        )
        return self._complete_login(account)

    def send_login_email_code(self, temp_token: str) -> int:
        """Email a login code to the holder of a pending token."""
        account = self._account_from_pending(temp_token)
        return self._verifier.send_email_code(account.id, EmailCodePurpose.LOGIN)

    def validate_token(self, token: str) -> Account:
        """Resolve a session access token to its active account."""
        payload = self._codec.decode_access_token(token)
        if payload is None:
            raise InvalidTokenError()
        account = self._store.find_account_by_id(payload["sub"])
        if account is None:
            raise InvalidTokenError()
        if not account.is_active:
            raise AccountDeactivatedError()
        return account

    # OAuth2 federation

    def get_oauth_auth_url(self, provider: str, state: str | None = None) -> str:
        return self._idp.get_authorization_url(parse_provider(provider), state)

    def _find_or_create_federated_account(
        self, provider: OAuthProvider, identity: FederatedIdentity
    ) -> Account:
        link = self._store.find_oauth_link(provider, identity.provider_id)
        if link is not None:
            account = self._store.find_account_by_id(link.account_id)
            if account is not None:
                return account

        account = self._store.find_account_by_email(identity.email)
        if account is None:
            try:
                account = self._store.create_account(
                    email=identity.email,
                    password_hash=None,
                    name=identity.name,
                    email_verified=identity.email_verified,
                    preferred_auth_method=AuthMethod.OAUTH2,
                    now=self._clock(),
                )
                SecurityAuditService.log_event(
                    SecurityEventType.OAUTH_ACCOUNT_CREATED, account.id, {"provider": provider.value}
                )
                return account
            except DuplicateError:
                # Concurrent first login with the same email
                account = self._store.find_account_by_email(identity.email)
                if account is None:
                    raise

        existing = self._store.find_oauth_link_for_account(account.id, provider)
        if existing is not None and existing.provider_id != identity.provider_id:
            raise AccountLinkConflictError()
        if not identity.email_verified:
            # Joining an existing account by email needs the provider to vouch for the address
            logger.warning(f"Refusing to link unverified {provider} email to account {account.id}")
            raise AccountLinkConflictError("Sign in with your existing method to link this provider")
        return account

    def oauth_login(
        self, provider: str, code: str, redirect_uri: str | None = None
    ) -> LoginResult:
        """Exchange an authorization code, link the identity and sign in."""
        oauth_provider = parse_provider(provider)
        provider_tokens = self._idp.exchange_code(oauth_provider, code, redirect_uri)
        identity = self._idp.fetch_identity(oauth_provider, provider_tokens.access_token)

        account = self._find_or_create_federated_account(oauth_provider, identity)
        if not account.is_active:
            raise AccountDeactivatedError()

        expires_at = None
        if provider_tokens.expires_in is not None:
            expires_at = self._clock() + timedelta(seconds=provider_tokens.expires_in)
        _, created = self._store.upsert_oauth_link(
            account_id=account.id,
            provider=oauth_provider,
            provider_id=identity.provider_id,
            access_token=provider_tokens.access_token,
            refresh_token=provider_tokens.refresh_token,
            expires_at=expires_at,
            token_type=provider_tokens.token_type,
        )
        SecurityAuditService.log_event(
            SecurityEventType.OAUTH_LOGIN,
            account.id,
            {"provider": oauth_provider.value, "link_created": created},
        )

        if account.two_factor_enabled and not self._settings.oauth_bypasses_second_factor:
            return self._pending(account)
        return self._complete_login(account)

    # Refresh and sign-out

    def refresh_tokens(self, refresh_token: str) -> TokenPair:
        """Rotate a refresh token. Each token value mints at most one new pair."""
        token_hash = PasswordHasher.hash_token(refresh_token)
        record = self._store.find_refresh_token(token_hash)
        if record is None:
            raise InvalidRefreshTokenError()
        if record.is_revoked:
            SecurityAuditService.log_event(SecurityEventType.REFRESH_TOKEN_REUSE, record.account_id)
            raise InvalidRefreshTokenError()
        if as_utc(record.expires_at) <= self._clock():
            raise RefreshTokenExpiredError()

        if not self._store.revoke_refresh_token_if_active(token_hash):
            # Lost the race to a concurrent refresh with the same token
            SecurityAuditService.log_event(SecurityEventType.REFRESH_TOKEN_REUSE, record.account_id)
            raise InvalidRefreshTokenError()

        account = self._store.find_account_by_id(record.account_id)
        if account is None:
            raise InvalidRefreshTokenError()
        if not account.is_active:
            raise AccountDeactivatedError()
        return self._issue_pair(account)

    def logout(self, refresh_token: str) -> None:
        """Revoke a refresh token. Unknown or already revoked tokens are ignored."""
        token_hash = PasswordHasher.hash_token(refresh_token)
        record = self._store.find_refresh_token(token_hash)
        if record is not None and self._store.revoke_refresh_token_if_active(token_hash):
            SecurityAuditService.log_event(SecurityEventType.LOGOUT, record.account_id)

    # Profile

    def change_password(self, account_id: str, current_password: str, new_password: str) -> None:
        """Replace the password and sign out every session of the account."""
        account = self._get_account(account_id)
        if account.password_hash is None:
            raise PasswordLoginUnavailableError()
        if not PasswordHasher.verify_password(current_password, account.password_hash):
            raise InvalidCredentialsError("Current password is incorrect")

        self._store.update_account(
            account.id, password_hash=PasswordHasher.hash_password(new_password)
        )
        revoked = self._store.revoke_all_refresh_tokens(account.id)
        SecurityAuditService.log_event(
            SecurityEventType.PASSWORD_CHANGED, account.id, {"sessions_revoked": revoked}
        )
        self._notifications.enqueue(
            Notification(destination=account.email, template="password_changed", data={"name": account.name})
        )

    def get_profile(self, account_id: str) -> Account:
        return self._get_account(account_id)

    def update_profile(
        self,
        account_id: str,
        name: str | None = None,
        preferred_auth_method: AuthMethod | None = None,
    ) -> Account:
        fields = {}
        if name is not None:
            fields["name"] = name
        if preferred_auth_method is not None:
            fields["preferred_auth_method"] = AuthMethod(preferred_auth_method)
        if not fields:
            return self._get_account(account_id)
        return self._store.update_account(account_id, **fields)

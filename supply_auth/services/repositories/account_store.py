"""Account Store interface consumed by the authentication core.

Naming conventions:
- find_* : Query that may return None or empty list
- create_* : Insert, raises DuplicateError on unique violations
- *_if_* / consume_* / deactivate_* : Conditional update, returns whether a row changed

Every mutating call is its own unit of work. Operations that guard a state
transition (refresh-token revocation, one-time code consumption, backup-code
consumption, OTP cooldown) must be atomic with respect to concurrent callers.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta

from supply_auth.models import Account, ApiKey, OAuthAccount, RefreshToken, TwoFactorToken


class AccountStore(ABC):
    """Persistence operations required by the session, MFA and API key services."""

    # Accounts

    @abstractmethod
    def find_account_by_id(self, account_id: str) -> Account | None:
        """Find account by primary key."""

    @abstractmethod
    def find_account_by_email(self, email: str) -> Account | None:
        """Find account by email (case-insensitive)."""

    @abstractmethod
    def create_account(
        self,
        *,
        email: str,
        password_hash: str | None,
        name: str | None,
        email_verified: bool,
        preferred_auth_method: str,
        now: datetime,
    ) -> Account:
        """Insert a new active account without a second factor."""

    @abstractmethod
    def update_account(self, account_id: str, **fields) -> Account:
        """Set the given columns on an account. Raises NotFoundError."""

    # Second factor

    @abstractmethod
    def enable_two_factor(
        self,
        account_id: str,
        *,
        secret_encrypted: str,
        backup_code_hashes: list[str],
        now: datetime,
    ) -> None:
        """Persist the TOTP secret and backup codes and mark the second factor enabled."""

    @abstractmethod
    def disable_two_factor(self, account_id: str) -> None:
        """Clear secret, backup codes and enabled flag; drop outstanding email codes."""

    @abstractmethod
    def replace_backup_codes(self, account_id: str, code_hashes: list[str]) -> None:
        """Overwrite the whole backup-code set."""

    @abstractmethod
    def consume_backup_code(self, account_id: str, code_hash: str) -> bool:
        """Remove ``code_hash`` from the account's set if present (locked read-modify-write)."""

    # OAuth links

    @abstractmethod
    def find_oauth_link(self, provider: str, provider_id: str) -> OAuthAccount | None:
        """Find the link for a provider identity."""

    @abstractmethod
    def find_oauth_link_for_account(self, account_id: str, provider: str) -> OAuthAccount | None:
        """Find an account's link at a provider."""

    @abstractmethod
    def upsert_oauth_link(
        self,
        *,
        account_id: str,
        provider: str,
        provider_id: str,
        access_token: str,
        refresh_token: str | None,
        expires_at: datetime | None,
        token_type: str | None,
    ) -> tuple[OAuthAccount, bool]:
        """Create or refresh the link keyed by (provider, provider_id).

        Returns the link and whether it was created.
        """

    # Refresh tokens

    @abstractmethod
    def create_refresh_token(
        self, *, account_id: str, token_hash: str, expires_at: datetime, now: datetime
    ) -> RefreshToken:
        """Persist a new, unrevoked refresh token record."""

    @abstractmethod
    def find_refresh_token(self, token_hash: str) -> RefreshToken | None:
        """Find a refresh token record by hash, revoked or not."""

    @abstractmethod
    def revoke_refresh_token_if_active(self, token_hash: str) -> bool:
        """Atomically flip is_revoked from False to True. Returns True only for the winner."""

    @abstractmethod
    def revoke_all_refresh_tokens(self, account_id: str) -> int:
        """Revoke every active refresh token of an account."""

    # Email one-time codes

    @abstractmethod
    def create_two_factor_token(
        self,
        *,
        account_id: str,
        code_hash: str,
        purpose: str,
        expires_at: datetime,
        now: datetime,
        cooldown: timedelta,
    ) -> TwoFactorToken:
        """Insert a code unless the account's latest code is younger than ``cooldown``.

        The cooldown check and the insert are one guarded step.
        Raises CooldownActiveError with the remaining wait in seconds.
        """

    @abstractmethod
    def delete_two_factor_token(self, token_id: str) -> None:
        """Remove a code row (used when dispatch fails)."""

    @abstractmethod
    def consume_two_factor_token(
        self, *, account_id: str, code_hash: str, purpose: str, now: datetime
    ) -> bool:
        """Atomically mark a matching unused, unexpired code as used."""

    @abstractmethod
    def count_two_factor_tokens_since(self, account_id: str, since: datetime) -> int:
        """Count codes issued to an account since ``since``."""

    @abstractmethod
    def delete_expired_two_factor_tokens(self, now: datetime) -> int:
        """Delete expired codes. Returns the number removed."""

    # API keys

    @abstractmethod
    def create_api_key(
        self,
        *,
        account_id: str,
        name: str,
        description: str | None,
        prefix: str,
        key_hash: str,
        expires_at: datetime | None,
        now: datetime,
    ) -> ApiKey:
        """Persist a new active API key."""

    @abstractmethod
    def find_api_key_by_prefix(self, prefix: str) -> ApiKey | None:
        """Find an API key by its public prefix."""

    @abstractmethod
    def list_api_keys(self, account_id: str) -> list[ApiKey]:
        """All keys of an account, newest first."""

    @abstractmethod
    def deactivate_api_key(self, key_id: str, account_id: str) -> bool:
        """Flip is_active to False for an active key owned by ``account_id``."""

    @abstractmethod
    def touch_api_key(self, key_id: str, now: datetime) -> None:
        """Record the last-used timestamp."""

"""In-memory collaborators for service-level tests."""

import math
import threading
from datetime import UTC, datetime, timedelta
from uuid import uuid4

from supply_auth.models import Account, ApiKey, OAuthAccount, RefreshToken, TwoFactorToken
from supply_auth.services.auth.errors import OAuthExchangeFailedError
from supply_auth.services.auth.identity_provider import (
    FederatedIdentity,
    IdentityProviderClient,
    OAuthProvider,
    ProviderTokens,
)
from supply_auth.services.email_service import (
    Notification,
    NotificationDispatcher,
    NotificationQueue,
)
from supply_auth.services.repositories import (
    AccountStore,
    CooldownActiveError,
    DuplicateError,
    NotFoundError,
)


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2026, 3, 2, 9, 0, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


class RecordingDispatcher(NotificationDispatcher):
    """Keeps every notification; ``succeed`` controls the reported outcome."""

    def __init__(self, succeed: bool = True):
        self.succeed = succeed
        self.sent: list[Notification] = []

    def send(self, notification: Notification) -> bool:
        self.sent.append(notification)
        return self.succeed

    def last_otp(self) -> str:
        return next(n.data["otp"] for n in reversed(self.sent) if n.template == "email_otp")


class ListQueue(NotificationQueue):
    def __init__(self):
        self.queued: list[Notification] = []

    def enqueue(self, notification: Notification) -> None:
        self.queued.append(notification)


class StubIdentityProvider(IdentityProviderClient):
    """Identity provider that answers from a table instead of the network.

    ``identities`` maps authorization code -> normalized identity.
    """

    def __init__(self, configs, identities: dict[str, FederatedIdentity] | None = None):
        super().__init__(configs)
        self.identities = identities or {}
        self.exchanged: list[tuple[OAuthProvider, str]] = []

    def exchange_code(self, provider, code, redirect_uri=None) -> ProviderTokens:
        self._config(provider)
        if code not in self.identities:
            raise OAuthExchangeFailedError()
        self.exchanged.append((provider, code))
        return ProviderTokens(
            access_token=f"provider-access-{len(self.exchanged)}",
            refresh_token=f"provider-refresh-{len(self.exchanged)}",
            expires_in=3600,
            token_type="Bearer",
        )

    def fetch_identity(self, provider, access_token) -> FederatedIdentity:
        _, code = self.exchanged[-1]
        return self.identities[code]


class InMemoryAccountStore(AccountStore):
    """AccountStore over plain dicts. Guarded transitions hold one lock."""

    def __init__(self):
        self._lock = threading.Lock()
        self.accounts: dict[str, Account] = {}
        self.oauth_links: dict[str, OAuthAccount] = {}
        self.refresh_tokens: dict[str, RefreshToken] = {}
        self.two_factor_tokens: dict[str, TwoFactorToken] = {}
        self.api_keys: dict[str, ApiKey] = {}

    def _require(self, account_id: str) -> Account:
        account = self.accounts.get(account_id)
        if account is None:
            raise NotFoundError("Account", account_id)
        return account

    # Accounts

    def find_account_by_id(self, account_id):
        return self.accounts.get(account_id)

    def find_account_by_email(self, email):
        email = email.strip().lower()
        return next((a for a in self.accounts.values() if a.email.lower() == email), None)

    def create_account(self, *, email, password_hash, name, email_verified, preferred_auth_method, now):
        with self._lock:
            if any(a.email.lower() == email.lower() for a in self.accounts.values()):
                raise DuplicateError("Account", "email", email)
            account = Account(
                id=str(uuid4()),
                email=email,
                password_hash=password_hash,
                name=name,
                is_active=True,
                email_verified=email_verified,
                preferred_auth_method=preferred_auth_method,
                two_factor_enabled=False,
                two_factor_secret_encrypted=None,
                backup_code_hashes=[],
                two_factor_verified_at=None,
                last_login_at=None,
                created_at=now,
                updated_at=now,
            )
            self.accounts[account.id] = account
            return account

    def update_account(self, account_id, **fields):
        account = self._require(account_id)
        for field, value in fields.items():
            setattr(account, field, value)
        return account

    # Second factor

    def enable_two_factor(self, account_id, *, secret_encrypted, backup_code_hashes, now):
        self.update_account(
            account_id,
            two_factor_enabled=True,
            two_factor_secret_encrypted=secret_encrypted,
            backup_code_hashes=list(backup_code_hashes),
            two_factor_verified_at=now,
        )

    def disable_two_factor(self, account_id):
        self.update_account(
            account_id,
            two_factor_enabled=False,
            two_factor_secret_encrypted=None,
            backup_code_hashes=[],
            two_factor_verified_at=None,
        )
        for token_id, token in list(self.two_factor_tokens.items()):
            if token.account_id == account_id and not token.is_used:
                del self.two_factor_tokens[token_id]

    def replace_backup_codes(self, account_id, code_hashes):
        self.update_account(account_id, backup_code_hashes=list(code_hashes))

    def consume_backup_code(self, account_id, code_hash):
        with self._lock:
            account = self.accounts.get(account_id)
            if account is None or code_hash not in (account.backup_code_hashes or []):
                return False
            remaining = list(account.backup_code_hashes)
            remaining.remove(code_hash)
            account.backup_code_hashes = remaining
            return True

    # OAuth links

    def find_oauth_link(self, provider, provider_id):
        return next(
            (
                link
                for link in self.oauth_links.values()
                if link.provider == provider and link.provider_id == provider_id
            ),
            None,
        )

    def find_oauth_link_for_account(self, account_id, provider):
        return next(
            (
                link
                for link in self.oauth_links.values()
                if link.account_id == account_id and link.provider == provider
            ),
            None,
        )

    def upsert_oauth_link(
        self, *, account_id, provider, provider_id, access_token, refresh_token, expires_at, token_type
    ):
        with self._lock:
            link = self.find_oauth_link(provider, provider_id)
            created = link is None
            if created:
                link = OAuthAccount(
                    id=str(uuid4()),
                    account_id=account_id,
                    provider=provider,
                    provider_id=provider_id,
                    refresh_token=None,
                )
                self.oauth_links[link.id] = link
            link.access_token = access_token
            if refresh_token is not None:
                link.refresh_token = refresh_token
            link.expires_at = expires_at
            link.token_type = token_type
            return link, created

    # Refresh tokens

    def create_refresh_token(self, *, account_id, token_hash, expires_at, now):
        record = RefreshToken(
            id=str(uuid4()),
            account_id=account_id,
            token_hash=token_hash,
            expires_at=expires_at,
            is_revoked=False,
            created_at=now,
        )
        self.refresh_tokens[token_hash] = record
        return record

    def find_refresh_token(self, token_hash):
        return self.refresh_tokens.get(token_hash)

    def revoke_refresh_token_if_active(self, token_hash):
        with self._lock:
            record = self.refresh_tokens.get(token_hash)
            if record is None or record.is_revoked:
                return False
            record.is_revoked = True
            return True

    def revoke_all_refresh_tokens(self, account_id):
        with self._lock:
            revoked = 0
            for record in self.refresh_tokens.values():
                if record.account_id == account_id and not record.is_revoked:
                    record.is_revoked = True
                    revoked += 1
            return revoked

    # Email one-time codes

    def create_two_factor_token(self, *, account_id, code_hash, purpose, expires_at, now, cooldown):
        with self._lock:
            self._require(account_id)
            created = [t.created_at for t in self.two_factor_tokens.values() if t.account_id == account_id]
            if created:
                elapsed = now - max(created)
                if elapsed < cooldown:
                    raise CooldownActiveError(
                        retry_after=max(1, math.ceil((cooldown - elapsed).total_seconds()))
                    )
            token = TwoFactorToken(
                id=str(uuid4()),
                account_id=account_id,
                code_hash=code_hash,
                purpose=purpose,
                expires_at=expires_at,
                is_used=False,
                created_at=now,
            )
            self.two_factor_tokens[token.id] = token
            return token

    def delete_two_factor_token(self, token_id):
        self.two_factor_tokens.pop(token_id, None)

    def consume_two_factor_token(self, *, account_id, code_hash, purpose, now):
        with self._lock:
            for token in self.two_factor_tokens.values():
                if (
                    token.account_id == account_id
                    and token.code_hash == code_hash
                    and token.purpose == purpose
                    and not token.is_used
                    and token.expires_at > now
                ):
                    token.is_used = True
                    return True
            return False

    def count_two_factor_tokens_since(self, account_id, since):
        return sum(
            1
            for t in self.two_factor_tokens.values()
            if t.account_id == account_id and t.created_at > since
        )

    def delete_expired_two_factor_tokens(self, now):
        expired = [tid for tid, t in self.two_factor_tokens.items() if t.expires_at <= now]
        for token_id in expired:
            del self.two_factor_tokens[token_id]
        return len(expired)

    # API keys

    def create_api_key(self, *, account_id, name, description, prefix, key_hash, expires_at, now):
        with self._lock:
            if any(k.prefix == prefix for k in self.api_keys.values()):
                raise DuplicateError("ApiKey", "prefix", prefix)
            api_key = ApiKey(
                id=str(uuid4()),
                account_id=account_id,
                name=name,
                description=description,
                prefix=prefix,
                key_hash=key_hash,
                is_active=True,
                expires_at=expires_at,
                last_used_at=None,
                created_at=now,
            )
            self.api_keys[api_key.id] = api_key
            return api_key

    def find_api_key_by_prefix(self, prefix):
        return next((k for k in self.api_keys.values() if k.prefix == prefix), None)

    def list_api_keys(self, account_id):
        keys = [k for k in self.api_keys.values() if k.account_id == account_id]
        return sorted(keys, key=lambda k: k.created_at, reverse=True)

    def deactivate_api_key(self, key_id, account_id):
        with self._lock:
            api_key = self.api_keys.get(key_id)
            if api_key is None or api_key.account_id != account_id or not api_key.is_active:
                return False
            api_key.is_active = False
            return True

    def touch_api_key(self, key_id, now):
        self.api_keys[key_id].last_used_at = now

"""Long-lived API keys for machine clients."""

import logging
import secrets
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime

from supply_auth.config import Settings
from supply_auth.models import Account, ApiKey
from supply_auth.services.repositories import AccountStore, DuplicateError
from supply_auth.services.security_audit_service import SecurityAuditService, SecurityEventType
from supply_auth.timeutils import as_utc, utcnow

from .errors import AccountDeactivatedError, ApiKeyInvalidError, NotFoundError
from .password_hasher import PasswordHasher

logger = logging.getLogger(__name__)

API_KEY_SCHEME = "sk"
PREFIX_BYTES = 6


@dataclass(frozen=True)
class ApiKeyInfo:
    """Listing view of a key. Carries neither the secret nor its hash."""

    id: str
    name: str
    description: str | None
    prefix: str
    is_active: bool
    expires_at: datetime | None
    last_used_at: datetime | None
    created_at: datetime

    @classmethod
    def from_model(cls, api_key: ApiKey) -> "ApiKeyInfo":
        return cls(
            id=api_key.id,
            name=api_key.name,
            description=api_key.description,
            prefix=api_key.prefix,
            is_active=api_key.is_active,
            expires_at=api_key.expires_at,
            last_used_at=api_key.last_used_at,
            created_at=api_key.created_at,
        )


@dataclass(frozen=True)
class IssuedApiKey:
    info: ApiKeyInfo
    key: str  # shown once, never stored


def split_api_key(raw_key: str) -> tuple[str, str] | None:
    """``sk_<prefix>_<secret>`` -> (prefix, secret), or None if malformed."""
    parts = raw_key.strip().split("_", 2)
    if len(parts) != 3 or parts[0] != API_KEY_SCHEME or not parts[1] or not parts[2]:
        return None
    return parts[1], parts[2]


class ApiKeyManager:
    def __init__(
        self,
        store: AccountStore,
        settings: Settings,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._store = store
        self._settings = settings
        self._clock = clock

    def _hash(self, raw_key: str) -> str:
        return PasswordHasher.keyed_hash(raw_key, self._settings.api_key_pepper)

    def create(
        self,
        account_id: str,
        name: str,
        description: str | None = None,
        expires_at: datetime | None = None,
    ) -> IssuedApiKey:
        """Issue a key. The plaintext is only ever available in the return value."""
        # Prefixes are short; retry once on the unlikely unique collision
        for attempt in range(2):
            prefix = secrets.token_hex(PREFIX_BYTES)
            raw_key = f"{API_KEY_SCHEME}_{prefix}_{secrets.token_urlsafe(32)}"
            try:
                api_key = self._store.create_api_key(
                    account_id=account_id,
                    name=name,
                    description=description,
                    prefix=prefix,
                    key_hash=self._hash(raw_key),
                    expires_at=expires_at,
                    now=self._clock(),
                )
                break
            except DuplicateError:
                if attempt == 1:
                    raise
                logger.warning("API key prefix collision, generating a new key")

        SecurityAuditService.log_event(
            SecurityEventType.API_KEY_CREATED, account_id, {"prefix": prefix}
        )
        return IssuedApiKey(info=ApiKeyInfo.from_model(api_key), key=raw_key)

    def list_keys(self, account_id: str) -> list[ApiKeyInfo]:
        """Metadata of every key of the account, newest first."""
        return [ApiKeyInfo.from_model(k) for k in self._store.list_api_keys(account_id)]

    def revoke(self, account_id: str, key_id: str) -> None:
        """Deactivate one of the caller's own active keys.

        Foreign, unknown and already revoked keys all raise NotFoundError.
        """
        if not self._store.deactivate_api_key(key_id, account_id):
            raise NotFoundError("API key not found")
        SecurityAuditService.log_event(
            SecurityEventType.API_KEY_REVOKED, account_id, {"key_id": key_id}
        )

    def verify(self, raw_key: str) -> Account:
        """Resolve a presented key to its active owner account."""
        parsed = split_api_key(raw_key or "")
        if parsed is None:
            raise ApiKeyInvalidError()

        api_key = self._store.find_api_key_by_prefix(parsed[0])
        if api_key is None or not PasswordHasher.verify_keyed_hash(
            raw_key.strip(), self._settings.api_key_pepper, api_key.key_hash
        ):
            raise ApiKeyInvalidError()

        now = self._clock()
        if not api_key.is_active:
            raise ApiKeyInvalidError("API key has been revoked")
        if api_key.expires_at is not None and as_utc(api_key.expires_at) <= now:
            raise ApiKeyInvalidError("API key has expired")

        account = self._store.find_account_by_id(api_key.account_id)
        if account is None:
            raise ApiKeyInvalidError()
        if not account.is_active:
            raise AccountDeactivatedError()

        self._store.touch_api_key(api_key.id, now)
        return account

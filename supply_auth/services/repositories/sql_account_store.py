"""SQLAlchemy implementation of the Account Store."""

import hmac
import logging
import math
from datetime import datetime, timedelta

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from supply_auth.models import Account, ApiKey, OAuthAccount, RefreshToken, TwoFactorToken
from supply_auth.timeutils import as_utc

from .account_store import AccountStore
from .exceptions import CooldownActiveError, DuplicateError, NotFoundError

logger = logging.getLogger(__name__)


class SqlAccountStore(AccountStore):
    """Account Store backed by a SQLAlchemy session.

    Each mutating method commits its own transaction. Guarded transitions use
    conditional UPDATEs or ``SELECT ... FOR UPDATE`` on the owning account row.
    """

    def __init__(self, db: Session) -> None:
        self._db = db

    def _commit(self, entity_type: str, field: str, value: str) -> None:
        try:
            self._db.commit()
        except IntegrityError as e:
            self._db.rollback()
            raise DuplicateError(entity_type, field, value) from e

    def _lock_account(self, account_id: str) -> Account | None:
        return (
            self._db.query(Account)
            .filter(Account.id == account_id)
            .populate_existing()
            .with_for_update()
            .first()
        )

    # Accounts

    def find_account_by_id(self, account_id: str) -> Account | None:
        return self._db.query(Account).filter(Account.id == account_id).first()

    def find_account_by_email(self, email: str) -> Account | None:
        return (
            self._db.query(Account)
            .filter(func.lower(Account.email) == email.strip().lower())
            .first()
        )

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
        account = Account(
            email=email,
            password_hash=password_hash,
            name=name,
            is_active=True,
            email_verified=email_verified,
            preferred_auth_method=preferred_auth_method,
            two_factor_enabled=False,
            backup_code_hashes=[],
            created_at=now,
            updated_at=now,
        )
        self._db.add(account)
        self._commit("Account", "email", email)
        return account

    def update_account(self, account_id: str, **fields) -> Account:
        account = self.find_account_by_id(account_id)
        if account is None:
            raise NotFoundError("Account", account_id)
        for field, value in fields.items():
            setattr(account, field, value)
        self._db.commit()
        return account

    # Second factor

    def enable_two_factor(
        self,
        account_id: str,
        *,
        secret_encrypted: str,
        backup_code_hashes: list[str],
        now: datetime,
    ) -> None:
        self.update_account(
            account_id,
            two_factor_enabled=True,
            two_factor_secret_encrypted=secret_encrypted,
            backup_code_hashes=list(backup_code_hashes),
            two_factor_verified_at=now,
        )

    def disable_two_factor(self, account_id: str) -> None:
        account = self.find_account_by_id(account_id)
        if account is None:
            raise NotFoundError("Account", account_id)
        account.two_factor_enabled = False
        account.two_factor_secret_encrypted = None
        account.backup_code_hashes = []
        account.two_factor_verified_at = None
        self._db.query(TwoFactorToken).filter(
            TwoFactorToken.account_id == account_id,
            TwoFactorToken.is_used.is_(False),
        ).delete(synchronize_session=False)
        self._db.commit()

    def replace_backup_codes(self, account_id: str, code_hashes: list[str]) -> None:
        self.update_account(account_id, backup_code_hashes=list(code_hashes))

    def consume_backup_code(self, account_id: str, code_hash: str) -> bool:
        account = self._lock_account(account_id)
        if account is None:
            self._db.rollback()
            return False

        remaining = list(account.backup_code_hashes or [])
        match = next((h for h in remaining if hmac.compare_digest(h, code_hash)), None)
        if match is None:
            self._db.rollback()
            return False

        remaining.remove(match)
        # Assign a new list so the JSON column is flagged dirty
        account.backup_code_hashes = remaining
        self._db.commit()
        return True

    # OAuth links

    def find_oauth_link(self, provider: str, provider_id: str) -> OAuthAccount | None:
        return (
            self._db.query(OAuthAccount)
            .filter(OAuthAccount.provider == provider, OAuthAccount.provider_id == provider_id)
            .first()
        )

    def find_oauth_link_for_account(self, account_id: str, provider: str) -> OAuthAccount | None:
        return (
            self._db.query(OAuthAccount)
            .filter(OAuthAccount.account_id == account_id, OAuthAccount.provider == provider)
            .first()
        )

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
        link = self.find_oauth_link(provider, provider_id)
        created = link is None
        if created:
            link = OAuthAccount(
                account_id=account_id,
                provider=provider,
                provider_id=provider_id,
            )
            self._db.add(link)

        link.access_token = access_token
        # Providers only return a refresh token on first consent; keep the old one otherwise
        if refresh_token is not None:
            link.refresh_token = refresh_token
        link.expires_at = expires_at
        link.token_type = token_type

        self._commit("OAuthAccount", "provider", provider)
        return link, created

    # Refresh tokens

    def create_refresh_token(
        self, *, account_id: str, token_hash: str, expires_at: datetime, now: datetime
    ) -> RefreshToken:
        record = RefreshToken(
            account_id=account_id,
            token_hash=token_hash,
            expires_at=expires_at,
            is_revoked=False,
            created_at=now,
        )
        self._db.add(record)
        self._commit("RefreshToken", "token_hash", token_hash[:8])
        return record

    def find_refresh_token(self, token_hash: str) -> RefreshToken | None:
        return (
            self._db.query(RefreshToken)
            .filter(RefreshToken.token_hash == token_hash)
            .populate_existing()
            .first()
        )

    def revoke_refresh_token_if_active(self, token_hash: str) -> bool:
        updated = (
            self._db.query(RefreshToken)
            .filter(
                RefreshToken.token_hash == token_hash,
                RefreshToken.is_revoked == False,  # noqa: E712
            )
            .update({RefreshToken.is_revoked: True}, synchronize_session=False)
        )
        self._db.commit()
        return updated == 1

    def revoke_all_refresh_tokens(self, account_id: str) -> int:
        updated = (
            self._db.query(RefreshToken)
            .filter(
                RefreshToken.account_id == account_id,
                RefreshToken.is_revoked == False,  # noqa: E712
            )
            .update({RefreshToken.is_revoked: True}, synchronize_session=False)
        )
        self._db.commit()
        return updated

    # Email one-time codes

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
        # Serialise concurrent senders for the same account on the account row
        if self._lock_account(account_id) is None:
            self._db.rollback()
            raise NotFoundError("Account", account_id)

        latest = (
            self._db.query(TwoFactorToken.created_at)
            .filter(TwoFactorToken.account_id == account_id)
            .order_by(TwoFactorToken.created_at.desc())
            .limit(1)
            .scalar()
        )
        if latest is not None:
            elapsed = now - as_utc(latest)
            if elapsed < cooldown:
                self._db.rollback()
                raise CooldownActiveError(
                    retry_after=max(1, math.ceil((cooldown - elapsed).total_seconds()))
                )

        token = TwoFactorToken(
            account_id=account_id,
            code_hash=code_hash,
            purpose=purpose,
            expires_at=expires_at,
            is_used=False,
            created_at=now,
        )
        self._db.add(token)
        self._db.commit()
        return token

    def delete_two_factor_token(self, token_id: str) -> None:
        self._db.query(TwoFactorToken).filter(TwoFactorToken.id == token_id).delete(
            synchronize_session=False
        )
        self._db.commit()

    def consume_two_factor_token(
        self, *, account_id: str, code_hash: str, purpose: str, now: datetime
    ) -> bool:
        updated = (
            self._db.query(TwoFactorToken)
            .filter(
                TwoFactorToken.account_id == account_id,
                TwoFactorToken.code_hash == code_hash,
                TwoFactorToken.purpose == purpose,
                TwoFactorToken.is_used == False,  # noqa: E712
                TwoFactorToken.expires_at > now,
            )
            .update({TwoFactorToken.is_used: True}, synchronize_session=False)
        )
        self._db.commit()
        return updated > 0

    def count_two_factor_tokens_since(self, account_id: str, since: datetime) -> int:
        return (
            self._db.query(TwoFactorToken)
            .filter(
                TwoFactorToken.account_id == account_id,
                TwoFactorToken.created_at > since,
            )
            .count()
        )

    def delete_expired_two_factor_tokens(self, now: datetime) -> int:
        deleted = (
            self._db.query(TwoFactorToken)
            .filter(TwoFactorToken.expires_at <= now)
            .delete(synchronize_session=False)
        )
        self._db.commit()
        if deleted:
            logger.info(f"Purged {deleted} expired one-time codes")
        return deleted

    # API keys

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
        api_key = ApiKey(
            account_id=account_id,
            name=name,
            description=description,
            prefix=prefix,
            key_hash=key_hash,
            is_active=True,
            expires_at=expires_at,
            created_at=now,
        )
        self._db.add(api_key)
        self._commit("ApiKey", "prefix", prefix)
        return api_key

    def find_api_key_by_prefix(self, prefix: str) -> ApiKey | None:
        return (
            self._db.query(ApiKey)
            .filter(ApiKey.prefix == prefix)
            .populate_existing()
            .first()
        )

    def list_api_keys(self, account_id: str) -> list[ApiKey]:
        return (
            self._db.query(ApiKey)
            .filter(ApiKey.account_id == account_id)
            .populate_existing()
            .order_by(ApiKey.created_at.desc())
            .all()
        )

    def deactivate_api_key(self, key_id: str, account_id: str) -> bool:
        updated = (
            self._db.query(ApiKey)
            .filter(
                ApiKey.id == key_id,
                ApiKey.account_id == account_id,
                ApiKey.is_active == True,  # noqa: E712
            )
            .update({ApiKey.is_active: False}, synchronize_session=False)
        )
        self._db.commit()
        return updated == 1

    def touch_api_key(self, key_id: str, now: datetime) -> None:
        self._db.query(ApiKey).filter(ApiKey.id == key_id).update(
            {ApiKey.last_used_at: now}, synchronize_session=False
        )
        self._db.commit()

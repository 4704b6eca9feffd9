"""Account model for authentication."""

from datetime import datetime
from typing import TYPE_CHECKING
from uuid import uuid4

from sqlalchemy import JSON, Boolean, DateTime, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from supply_auth.database import Base
from supply_auth.timeutils import utcnow

if TYPE_CHECKING:
    from supply_auth.models.api_key import ApiKey
    from supply_auth.models.oauth_account import OAuthAccount
    from supply_auth.models.refresh_token import RefreshToken
    from supply_auth.models.two_factor_token import TwoFactorToken


class Account(Base):
    """A person who can sign in, with a password, a federated identity, or both."""

    __tablename__ = "accounts"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid4())
    )
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True)
    password_hash: Mapped[str | None] = mapped_column(String(255))  # None for OAuth2-only accounts
    name: Mapped[str | None] = mapped_column(String(255))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    email_verified: Mapped[bool] = mapped_column(Boolean, default=False)
    preferred_auth_method: Mapped[str] = mapped_column(String(20), default="jwt")

    two_factor_enabled: Mapped[bool] = mapped_column(Boolean, default=False)
    two_factor_secret_encrypted: Mapped[str | None] = mapped_column(Text)
    backup_code_hashes: Mapped[list[str]] = mapped_column(JSON, default=list)
    two_factor_verified_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    last_login_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )

    # Relationships
    oauth_accounts: Mapped[list["OAuthAccount"]] = relationship(
        back_populates="account", cascade="all, delete-orphan"
    )
    refresh_tokens: Mapped[list["RefreshToken"]] = relationship(
        back_populates="account", cascade="all, delete-orphan"
    )
    two_factor_tokens: Mapped[list["TwoFactorToken"]] = relationship(
        back_populates="account", cascade="all, delete-orphan"
    )
    api_keys: Mapped[list["ApiKey"]] = relationship(
        back_populates="account", cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<Account(id={self.id}, email='{self.email}')>"

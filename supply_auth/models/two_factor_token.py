"""Email one-time code model."""

from datetime import datetime
from typing import TYPE_CHECKING
from uuid import uuid4

from sqlalchemy import Boolean, DateTime, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from supply_auth.database import Base
from supply_auth.timeutils import utcnow

if TYPE_CHECKING:
    from supply_auth.models.account import Account


class TwoFactorToken(Base):
    """One row per emailed code; the code itself is stored as a SHA-256 hex digest."""

    __tablename__ = "two_factor_tokens"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid4())
    )
    account_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("accounts.id", ondelete="CASCADE"), index=True
    )
    code_hash: Mapped[str] = mapped_column(String(64))
    purpose: Mapped[str] = mapped_column(String(30), default="login")
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    is_used: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, index=True
    )

    account: Mapped["Account"] = relationship(back_populates="two_factor_tokens")

    def __repr__(self) -> str:
        return f"<TwoFactorToken(id={self.id}, account_id={self.account_id}, purpose={self.purpose})>"

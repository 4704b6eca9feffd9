"""One-way hashing for passwords, tokens, backup codes and API keys."""

import hashlib
import hmac
import logging
from functools import lru_cache

import bcrypt

from .errors import PasswordTooLongError

logger = logging.getLogger(__name__)

# bcrypt only reads this many bytes; longer input is refused rather than truncated
MAX_PASSWORD_BYTES = 72


@lru_cache(maxsize=1)
def _dummy_hash() -> bytes:
    # Verified against when the account is missing so both paths cost one bcrypt check
    return bcrypt.hashpw(b"timing-equaliser", bcrypt.gensalt())


class PasswordHasher:
    """Salted bcrypt for low-entropy secrets, SHA-256/HMAC for high-entropy ones."""

    @staticmethod
    def hash_password(password: str) -> str:
        """Hash a password using bcrypt."""
        encoded = password.encode("utf-8")
        if len(encoded) > MAX_PASSWORD_BYTES:
            raise PasswordTooLongError()
        salt = bcrypt.gensalt()
        hashed = bcrypt.hashpw(encoded, salt)
        return hashed.decode("utf-8")

    @staticmethod
    def verify_password(password: str, hashed: str) -> bool:
        """Verify a password against its hash (bcrypt compares in constant time)."""
        try:
            return bcrypt.checkpw(password.encode("utf-8"), hashed.encode("utf-8"))
        except ValueError as e:
            logger.error(f"Password verification error: {e}")
            return False

    @staticmethod
    def burn_verification(password: str) -> None:
        """Spend the same work as a real verification without a stored hash."""
        bcrypt.checkpw(password.encode("utf-8")[:MAX_PASSWORD_BYTES], _dummy_hash())

    @staticmethod
    def hash_token(token: str) -> str:
        """Hash a token using SHA-256 (refresh tokens and emailed codes)."""
        return hashlib.sha256(token.encode("utf-8")).hexdigest()

    @staticmethod
    def keyed_hash(value: str, key: str) -> str:
        """HMAC-SHA256 of ``value`` under a server-side key (API keys, backup codes)."""
        return hmac.new(key.encode("utf-8"), value.encode("utf-8"), hashlib.sha256).hexdigest()

    @staticmethod
    def verify_keyed_hash(value: str, key: str, expected: str) -> bool:
        """Constant-time comparison of a keyed hash."""
        return hmac.compare_digest(PasswordHasher.keyed_hash(value, key), expected)

"""Second-factor primitives: TOTP, backup codes, email codes and secret sealing."""

import base64
import hashlib
import secrets
from datetime import datetime
from io import BytesIO

import pyotp
import qrcode
from cryptography.fernet import Fernet, InvalidToken


def build_fernet(encryption_key: str, fallback_secret: str) -> Fernet:
    """Fernet cipher for TOTP secrets at rest.

    Uses ``encryption_key`` when configured, otherwise derives a key from
    ``fallback_secret``.
    """
    if encryption_key:
        return Fernet(encryption_key.encode())
    digest = hashlib.sha256(fallback_secret.encode("utf-8")).digest()
    return Fernet(base64.urlsafe_b64encode(digest))


class MfaService:
    """Stateless helpers used by the Multi-Factor Verifier."""

    @staticmethod
    def generate_totp_secret() -> str:
        """Generate a new TOTP secret (base32 encoded, 32 characters)."""
        return pyotp.random_base32()

    @staticmethod
    def get_totp_uri(secret: str, email: str, issuer: str) -> str:
        """Get otpauth:// URI for QR code scanning."""
        totp = pyotp.TOTP(secret)
        return totp.provisioning_uri(name=email, issuer_name=issuer)

    @staticmethod
    def generate_qr_code_base64(uri: str) -> str:
        """Generate QR code as base64 PNG for embedding in responses."""
        qr = qrcode.make(uri)
        buffer = BytesIO()
        qr.save(buffer, format="PNG")
        return base64.b64encode(buffer.getvalue()).decode()

    @staticmethod
    def verify_totp(secret: str, code: str, for_time: datetime, valid_window: int = 1) -> bool:
        """Verify a TOTP code, accepting ``valid_window`` steps of drift on each side."""
        if not code or not code.isdigit():
            return False
        totp = pyotp.TOTP(secret)
        try:
            return totp.verify(code, for_time=for_time, valid_window=valid_window)
        except ValueError:
            # Caller-supplied secret that is not valid base32
            return False

    @staticmethod
    def seal_secret(fernet: Fernet, secret: str) -> str:
        """Encrypt TOTP secret for storage using Fernet (AES-128-CBC + HMAC)."""
        return fernet.encrypt(secret.encode()).decode()

    @staticmethod
    def open_secret(fernet: Fernet, sealed: str) -> str | None:
        """Decrypt TOTP secret from storage; None if the key no longer matches."""
        try:
            return fernet.decrypt(sealed.encode()).decode()
        except InvalidToken:
            return None

    @staticmethod
    def generate_backup_codes(count: int = 10) -> list[str]:
        """Generate backup codes in XXXX-XXXX-XXXX format.

        Each code is unique and cryptographically random.
        """
        codes: set[str] = set()
        while len(codes) < count:
            # 3 groups of 4 hex characters (uppercase)
            parts = [secrets.token_hex(2).upper() for _ in range(3)]
            codes.add("-".join(parts))
        return list(codes)

    @staticmethod
    def normalize_backup_code(code: str) -> str:
        """Canonical form so users may type codes in lower case or without dashes."""
        compact = "".join(ch for ch in code.upper() if ch.isalnum())
        return "-".join(compact[i : i + 4] for i in range(0, len(compact), 4))

    @staticmethod
    def generate_email_otp(length: int = 6) -> str:
        """Generate a fixed-length numeric code for email verification."""
        return f"{secrets.randbelow(10**length):0{length}d}"

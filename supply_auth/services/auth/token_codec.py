"""Signed, short-lived tokens (JWT)."""

import logging
from collections.abc import Callable
from datetime import datetime, timedelta
from enum import StrEnum

import jwt

from supply_auth.timeutils import utcnow

logger = logging.getLogger(__name__)

# Set only on pending-second-factor tokens; session checks reject any token carrying it
PENDING_SECOND_FACTOR_CLAIM = "mfa_pending"


class TokenType(StrEnum):
    ACCESS = "access"
    MFA_PENDING = "mfa_pending"


class TokenCodec:
    """Encode and validate JWTs.

    Expiry is checked against the injected clock so that the codec agrees with
    every other time-based decision in the engine.
    """

    def __init__(
        self,
        secret_key: str,
        algorithm: str = "HS256",
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._secret_key = secret_key
        self._algorithm = algorithm
        self._clock = clock

    def encode(self, claims: dict, expires_delta: timedelta) -> str:
        """Sign ``claims`` with iat/exp derived from the clock."""
        now = self._clock()
        payload = {
            **claims,
            "iat": int(now.timestamp()),
            "exp": int((now + expires_delta).timestamp()),
        }
        return jwt.encode(payload, self._secret_key, algorithm=self._algorithm)

    def decode(self, token: str) -> dict | None:
        """Decode a token; None if malformed, tampered or expired."""
        try:
            payload = jwt.decode(
                token,
                self._secret_key,
                algorithms=[self._algorithm],
                options={"require": ["sub", "iat", "exp"], "verify_exp": False, "verify_iat": False},
            )
        except jwt.InvalidTokenError as e:
            logger.debug(f"Invalid token: {e}")
            return None

        if payload["exp"] <= int(self._clock().timestamp()):
            logger.debug("Token expired")
            return None
        return payload

    def create_access_token(
        self, account_id: str, email: str, name: str | None, expires_delta: timedelta
    ) -> str:
        """Session credential carrying the account's identity claims."""
        return self.encode(
            {"sub": account_id, "email": email, "name": name, "type": TokenType.ACCESS.value},
            expires_delta,
        )

    def create_pending_token(self, account_id: str, expires_delta: timedelta) -> str:
        """Bridge between the password step and the second-factor step."""
        return self.encode(
            {
                "sub": account_id,
                "type": TokenType.MFA_PENDING.value,
                PENDING_SECOND_FACTOR_CLAIM: True,
            },
            expires_delta,
        )

    def decode_access_token(self, token: str) -> dict | None:
        """Payload of a valid session token; pending tokens are rejected."""
        payload = self.decode(token)
        if payload is None:
            return None
        if payload.get(PENDING_SECOND_FACTOR_CLAIM) or payload.get("type") != TokenType.ACCESS:
            return None
        return payload

    def decode_pending_token(self, token: str) -> dict | None:
        """Payload of a valid pending-second-factor token; session tokens are rejected."""
        payload = self.decode(token)
        if payload is None:
            return None
        if payload.get(PENDING_SECOND_FACTOR_CLAIM) is not True:
            return None
        if payload.get("type") != TokenType.MFA_PENDING:
            return None
        return payload

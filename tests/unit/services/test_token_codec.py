"""Tests for TokenCodec."""

from datetime import timedelta

import jwt

from supply_auth.services.auth import TokenCodec
from supply_auth.services.auth.token_codec import PENDING_SECOND_FACTOR_CLAIM


class TestAccessTokens:
    def test_access_token_round_trip_claims(self, codec):
        token = codec.create_access_token("acc-1", "alice@example.com", "Alice", timedelta(hours=24))
        payload = codec.decode_access_token(token)

        assert payload["sub"] == "acc-1"
        assert payload["email"] == "alice@example.com"
        assert payload["name"] == "Alice"
        assert payload["type"] == "access"
        assert PENDING_SECOND_FACTOR_CLAIM not in payload

    def test_expiry_follows_injected_clock(self, codec, clock):
        token = codec.create_access_token("acc-1", "a@example.com", None, timedelta(minutes=5))

        clock.advance(minutes=4, seconds=59)
        assert codec.decode_access_token(token) is not None

        clock.advance(seconds=1)
        assert codec.decode_access_token(token) is None

    def test_tampered_token_rejected(self, codec):
        token = codec.create_access_token("acc-1", "a@example.com", None, timedelta(hours=1))
        header, payload, signature = token.split(".")
        tampered = f"{header}.{payload}.{signature[:-2]}xx"
        assert codec.decode(tampered) is None

    def test_other_secret_rejected(self, codec, clock):
        other = TokenCodec("another-secret", clock=clock)
        token = other.create_access_token("acc-1", "a@example.com", None, timedelta(hours=1))
        assert codec.decode(token) is None

    def test_missing_subject_rejected(self, codec, settings, clock):
        now = int(clock.now.timestamp())
        token = jwt.encode(
            {"iat": now, "exp": now + 60, "type": "access"},
            settings.jwt_secret_key,
            algorithm="HS256",
        )
        assert codec.decode(token) is None

    def test_garbage_rejected(self, codec):
        assert codec.decode("not.a.jwt") is None


class TestPendingTokens:
    def test_pending_token_is_not_a_session(self, codec):
        pending = codec.create_pending_token("acc-1", timedelta(minutes=10))

        assert codec.decode_pending_token(pending)["sub"] == "acc-1"
        assert codec.decode_access_token(pending) is None

    def test_session_token_is_not_pending(self, codec):
        access = codec.create_access_token("acc-1", "a@example.com", None, timedelta(hours=1))
        assert codec.decode_pending_token(access) is None

    def test_access_type_with_pending_flag_rejected(self, codec):
        token = codec.encode(
            {"sub": "acc-1", "type": "access", PENDING_SECOND_FACTOR_CLAIM: True},
            timedelta(hours=1),
        )
        assert codec.decode_access_token(token) is None

    def test_pending_token_expires_after_lifetime(self, codec, clock):
        pending = codec.create_pending_token("acc-1", timedelta(minutes=10))
        clock.advance(minutes=10)
        assert codec.decode_pending_token(pending) is None

"""Tests for ApiKeyManager."""

from dataclasses import asdict
from datetime import timedelta

import pytest

from supply_auth.services.auth.api_key_manager import split_api_key
from supply_auth.services.auth.errors import AccountDeactivatedError, ApiKeyInvalidError, NotFoundError


class TestCreateAndList:
    def test_plaintext_returned_once(self, api_key_manager, alice, store):
        issued = api_key_manager.create(alice.id, "Inventory sync", "nightly job")

        assert issued.key.startswith(f"sk_{issued.info.prefix}_")
        stored = store.find_api_key_by_prefix(issued.info.prefix)
        assert stored.key_hash != issued.key
        assert issued.key not in stored.key_hash

    def test_list_never_exposes_secret_or_hash(self, api_key_manager, alice, store):
        issued = api_key_manager.create(alice.id, "Inventory sync")
        key_hash = store.find_api_key_by_prefix(issued.info.prefix).key_hash

        listed = api_key_manager.list_keys(alice.id)

        assert [k.id for k in listed] == [issued.info.id]
        values = {str(v) for v in asdict(listed[0]).values()}
        assert issued.key not in values
        assert key_hash not in values

    def test_list_newest_first(self, api_key_manager, alice, clock):
        first = api_key_manager.create(alice.id, "first")
        clock.advance(minutes=1)
        second = api_key_manager.create(alice.id, "second")

        assert [k.id for k in api_key_manager.list_keys(alice.id)] == [second.info.id, first.info.id]


class TestRevoke:
    def test_revoke_own_key(self, api_key_manager, alice):
        issued = api_key_manager.create(alice.id, "ci")
        api_key_manager.revoke(alice.id, issued.info.id)

        assert api_key_manager.list_keys(alice.id)[0].is_active is False
        with pytest.raises(ApiKeyInvalidError):
            api_key_manager.verify(issued.key)

    def test_revoke_someone_elses_key_is_not_found(self, api_key_manager, alice, issuer):
        mallory = issuer.register("mallory@example.com", "Mall0ry!Pw").account
        issued = api_key_manager.create(alice.id, "ci")

        with pytest.raises(NotFoundError):
            api_key_manager.revoke(mallory.id, issued.info.id)
        assert api_key_manager.list_keys(alice.id)[0].is_active is True

    def test_revoke_twice_is_not_found(self, api_key_manager, alice):
        issued = api_key_manager.create(alice.id, "ci")
        api_key_manager.revoke(alice.id, issued.info.id)

        with pytest.raises(NotFoundError):
            api_key_manager.revoke(alice.id, issued.info.id)


class TestVerify:
    def test_verify_resolves_owner_and_touches(self, api_key_manager, alice, store, clock):
        issued = api_key_manager.create(alice.id, "ci")

        assert api_key_manager.verify(issued.key).id == alice.id
        assert store.find_api_key_by_prefix(issued.info.prefix).last_used_at == clock.now

    def test_wrong_secret_with_valid_prefix(self, api_key_manager, alice):
        issued = api_key_manager.create(alice.id, "ci")
        with pytest.raises(ApiKeyInvalidError):
            api_key_manager.verify(f"sk_{issued.info.prefix}_not-the-secret")

    @pytest.mark.parametrize("raw", ["", "garbage", "sk__x", "pk_abc_def"])
    def test_malformed_keys(self, api_key_manager, raw):
        with pytest.raises(ApiKeyInvalidError):
            api_key_manager.verify(raw)

    def test_expired_key(self, api_key_manager, alice, clock):
        issued = api_key_manager.create(alice.id, "ci", expires_at=clock.now + timedelta(days=1))
        clock.advance(days=1)
        with pytest.raises(ApiKeyInvalidError):
            api_key_manager.verify(issued.key)

    def test_inactive_owner(self, api_key_manager, alice, store):
        issued = api_key_manager.create(alice.id, "ci")
        store.update_account(alice.id, is_active=False)
        with pytest.raises(AccountDeactivatedError):
            api_key_manager.verify(issued.key)

    def test_split_keeps_underscores_in_secret(self):
        assert split_api_key("sk_abc123_se_cr_et") == ("abc123", "se_cr_et")

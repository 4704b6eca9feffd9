"""Integration tests for the API key router."""

from tests.conftest import ALICE_EMAIL, bearer, register_and_login


def _create(test_client, tokens, name="Inventory sync") -> dict:
    response = test_client.post("/api/auth/api-keys", json={"name": name}, headers=bearer(tokens))
    assert response.status_code == 201, response.text
    return response.json()


class TestApiKeys:
    def test_create_and_use(self, auth_client):
        test_client, _ = auth_client
        tokens = register_and_login(test_client)
        created = _create(test_client, tokens)

        assert created["key"].startswith(f"sk_{created['api_key']['prefix']}_")

        verify = test_client.get("/api/auth/api-keys/verify", headers={"X-API-Key": created["key"]})
        me = test_client.get("/api/auth/me", headers={"X-API-Key": created["key"]})

        assert verify.status_code == 200
        assert verify.json()["account"]["email"] == ALICE_EMAIL
        assert me.json()["email"] == ALICE_EMAIL

    def test_list_hides_secret(self, auth_client):
        test_client, _ = auth_client
        tokens = register_and_login(test_client)
        created = _create(test_client, tokens)

        response = test_client.get("/api/auth/api-keys", headers=bearer(tokens))

        assert response.status_code == 200
        (listed,) = response.json()["api_keys"]
        assert listed["id"] == created["api_key"]["id"]
        assert "key" not in listed
        assert "key_hash" not in listed
        assert created["key"] not in response.text

    def test_revoke(self, auth_client):
        test_client, _ = auth_client
        tokens = register_and_login(test_client)
        created = _create(test_client, tokens)

        response = test_client.delete(f"/api/auth/api-keys/{created['api_key']['id']}", headers=bearer(tokens))
        assert response.status_code == 200

        verify = test_client.get("/api/auth/api-keys/verify", headers={"X-API-Key": created["key"]})
        assert verify.status_code == 401
        assert verify.json()["error"] == "api_key_invalid"

        listed = test_client.get("/api/auth/api-keys", headers=bearer(tokens)).json()["api_keys"]
        assert listed[0]["is_active"] is False

    def test_cannot_revoke_another_accounts_key(self, auth_client):
        test_client, _ = auth_client
        alice_key = _create(test_client, register_and_login(test_client))
        mallory = register_and_login(test_client, "mallory@example.com", "Mall0ry!Pw")

        response = test_client.delete(f"/api/auth/api-keys/{alice_key['api_key']['id']}", headers=bearer(mallory))

        assert response.status_code == 404
        assert response.json()["error"] == "not_found"

    def test_unknown_key(self, auth_client):
        test_client, _ = auth_client
        response = test_client.get("/api/auth/api-keys/verify", headers={"X-API-Key": "sk_abc_nope"})
        assert response.status_code == 401
        assert response.json()["error"] == "api_key_invalid"

    def test_api_key_cannot_manage_keys(self, auth_client):
        """Key management needs a session token, not an API key."""
        test_client, _ = auth_client
        created = _create(test_client, register_and_login(test_client))

        response = test_client.get("/api/auth/api-keys", headers={"X-API-Key": created["key"]})

        assert response.status_code == 401

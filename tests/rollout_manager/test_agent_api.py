"""
Tests for the agent HTTP endpoints.
"""

import pytest
from fastapi.testclient import TestClient
from unittest.mock import AsyncMock

from rollout_manager.api import create_app
from rollout_manager.models import DeploymentTarget


class TestAgentAPI:
    """Wire contract of /health, /deploy and /rollback."""

    @pytest.fixture
    def client(self, agent_service, access_token):
        app = create_app(agent_service, access_token)
        return TestClient(app)

    @pytest.fixture
    def auth(self, access_token):
        return {"Authorization": f"Bearer {access_token}"}

    def test_health_needs_no_token(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"success": True}

    def test_health_does_not_leak_token(self, client, access_token):
        assert access_token not in client.get("/health").text

    def test_deploy_success(self, client, auth, store):
        response = client.post(
            "/deploy",
            json={"app": "shop", "tag": "prod", "compose": "services: {}", "env": "A=1\n"},
            headers=auth,
        )

        assert response.status_code == 200
        assert response.json() == {"success": True, "state": "succeeded"}
        slot = store.resolve_slot_path(DeploymentTarget(app="shop", tag="prod"))
        assert (slot / "docker-compose.yml").read_text() == "services: {}"

    def test_deploy_twice_succeeds_both_times(self, client, auth):
        payload = {"app": "shop", "tag": "prod", "compose": "services: {}"}
        assert client.post("/deploy", json=payload, headers=auth).status_code == 200
        assert client.post("/deploy", json=payload, headers=auth).status_code == 200

    @pytest.mark.parametrize(
        "headers",
        [
            {},
            {"Authorization": "Bearer wrong-token"},
            {"Authorization": "test-access-token"},
            {"Authorization": "Basic dGVzdA=="},
        ],
    )
    def test_bad_credentials_rejected_before_slot_access(self, client, store, headers):
        response = client.post(
            "/deploy",
            json={"app": "shop", "tag": "prod", "compose": "services: {}"},
            headers=headers,
        )

        assert response.status_code == 401
        assert "error" in response.json()
        assert not (store.root / "shop").exists()

    def test_auth_checked_before_payload(self, client):
        response = client.post("/deploy", json={"nonsense": True})
        assert response.status_code == 401

    def test_rollback_requires_token(self, client):
        response = client.post("/rollback", json={"app": "shop", "tag": "prod"})
        assert response.status_code == 401

    @pytest.mark.parametrize(
        "payload",
        [
            {"app": "shop", "tag": "prod"},
            {"app": "s", "tag": "prod", "compose": "x"},
            {"app": "shop", "tag": "../etc", "compose": "x"},
            {"app": "a" * 101, "tag": "prod", "compose": "x"},
        ],
    )
    def test_invalid_payload(self, client, auth, store, payload):
        response = client.post("/deploy", json=payload, headers=auth)

        assert response.status_code == 400
        assert response.json()["error"].startswith("Invalid request")
        assert not store.root.exists() or not any(store.root.iterdir())

    def test_unknown_path(self, client, auth):
        response = client.get("/nope", headers=auth)
        assert response.status_code == 404
        assert "error" in response.json()

    def test_deploy_failure_rolled_back(self, client, auth, runtime):
        ok = {"app": "shop", "tag": "prod", "compose": "good"}
        client.post("/deploy", json=ok, headers=auth)
        runtime.fail_up.add("bad")

        response = client.post("/deploy", json={**ok, "compose": "bad"}, headers=auth)

        assert response.status_code == 500
        body = response.json()
        assert body["state"] == "rolled_back"
        assert body["stage"] == "bringing_up"
        assert "previous generation restored" in body["error"]

    def test_deploy_double_failure(self, client, auth, runtime):
        ok = {"app": "shop", "tag": "prod", "compose": "good"}
        client.post("/deploy", json=ok, headers=auth)
        client.post("/deploy", json={**ok, "compose": "next"}, headers=auth)
        runtime.fail_up.update({"next", "bad"})

        response = client.post("/deploy", json={**ok, "compose": "bad"}, headers=auth)

        assert response.status_code == 500
        body = response.json()
        assert body["state"] == "double_failed"
        assert "manual intervention" in body["error"]
        assert body["rollback_error"]

    def test_rollback_restores_previous(self, client, auth, store):
        base = {"app": "shop", "tag": "prod"}
        client.post("/deploy", json={**base, "compose": "A"}, headers=auth)
        client.post("/deploy", json={**base, "compose": "B"}, headers=auth)

        response = client.post("/rollback", json=base, headers=auth)

        assert response.status_code == 200
        assert response.json()["success"] is True
        slot = store.resolve_slot_path(DeploymentTarget(**base))
        assert (slot / "docker-compose.yml").read_text() == "A"

    def test_rollback_without_backup(self, client, auth):
        base = {"app": "shop", "tag": "prod"}
        client.post("/deploy", json={**base, "compose": "A"}, headers=auth)

        response = client.post("/rollback", json=base, headers=auth)

        assert response.status_code == 500
        assert response.json()["code"] == "no_backup_available"

    def test_storage_error_is_500(self, agent_service, access_token, auth):
        from rollout_manager.errors import SlotStorageError

        agent_service.deploy = AsyncMock(side_effect=SlotStorageError("disk gone"))
        client = TestClient(create_app(agent_service, access_token))

        response = client.post(
            "/deploy", json={"app": "shop", "tag": "prod", "compose": "A"}, headers=auth
        )

        assert response.status_code == 500
        assert response.json() == {"error": "disk gone"}

    @pytest.mark.parametrize("body", [b"{not json", b"", b"[1, 2]"])
    def test_unauthenticated_malformed_body_is_401(self, client, store, body):
        response = client.post(
            "/deploy", content=body, headers={"Content-Type": "application/json"}
        )

        assert response.status_code == 401
        assert not store.root.exists() or not any(store.root.iterdir())

    @pytest.mark.parametrize("body", [b"{not json", b"", b"[1, 2]"])
    def test_authenticated_malformed_body_is_400(self, client, auth, body):
        headers = {**auth, "Content-Type": "application/json"}

        response = client.post("/rollback", content=body, headers=headers)

        assert response.status_code == 400
        assert response.json()["error"].startswith("Invalid request")

    def test_rollback_restores_missing_env_exactly(self, client, auth, store):
        base = {"app": "shop", "tag": "prod"}
        client.post("/deploy", json={**base, "compose": "A"}, headers=auth)
        client.post("/deploy", json={**base, "compose": "B", "env": "SECRET=x\n"}, headers=auth)

        response = client.post("/rollback", json=base, headers=auth)

        assert response.status_code == 200
        slot = store.resolve_slot_path(DeploymentTarget(**base))
        assert (slot / "docker-compose.yml").read_text() == "A"
        assert not (slot / ".env").exists()

    def test_self_heal_restores_missing_env_exactly(self, client, auth, runtime, store):
        base = {"app": "shop", "tag": "prod"}
        client.post("/deploy", json={**base, "compose": "A"}, headers=auth)
        runtime.fail_up.add("C")

        response = client.post(
            "/deploy", json={**base, "compose": "C", "env": "SECRET=x\n"}, headers=auth
        )

        assert response.json()["state"] == "rolled_back"
        slot = store.resolve_slot_path(DeploymentTarget(**base))
        assert (slot / "docker-compose.yml").read_text() == "A"
        assert not (slot / ".env").exists()

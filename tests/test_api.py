"""
Tests for the HTTP API: authentication, chat errors and sync endpoints.
"""

import jwt
import pytest
from fastapi.testclient import TestClient

from conftest import JWT_SECRET
from fakes import make_tool, snapshot
from toolstack.api.main import create_app


def bearer(sub: str = "u1", secret: str = JWT_SECRET) -> dict:
    token = jwt.encode({"sub": sub}, secret, algorithm="HS256")
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def client(factory):
    return TestClient(create_app(factory))


class TestChatEndpoint:
    """POST /api/chat."""

    def test_missing_token_is_unauthenticated(self, client, embedder, completion):
        response = client.post("/api/chat", json={"messages": [], "toolQuery": "orm"})

        assert response.status_code == 401
        assert response.json()["error"]["status"] == "unauthenticated"
        assert response.json()["error"]["message"] == "The function must be called while authenticated."
        assert embedder.calls == []
        assert completion.calls == []

    def test_bad_signature_is_unauthenticated(self, client):
        response = client.post(
            "/api/chat",
            json={"messages": [{"role": "user", "content": "hi"}], "toolQuery": "orm"},
            headers=bearer(secret="another-secret-with-at-least-32-bytes"),
        )
        assert response.status_code == 401

    def test_missing_query_is_invalid_argument(self, client, embedder, completion):
        response = client.post(
            "/api/chat",
            json={"messages": [{"role": "user", "content": "hi"}]},
            headers=bearer(),
        )

        assert response.status_code == 400
        body = response.json()["error"]
        assert body["status"] == "invalid-argument"
        assert body["message"] == "Messages and toolQuery are required"
        assert embedder.calls == []
        assert completion.calls == []

    def test_answer(self, client, factory, completion):
        client.post("/api/sync/full")

        response = client.post(
            "/api/chat",
            json={"messages": [{"role": "user", "content": "Which tool?"}], "toolQuery": "Developer tool"},
            headers=bearer(),
        )

        assert response.status_code == 200
        assert response.json() == {"message": "Try Prisma."}
        assert len(completion.calls) == 1

    def test_upstream_failure_is_generic(self, client, completion):
        completion.error = RuntimeError("openai timeout at 10.0.0.3")

        response = client.post(
            "/api/chat",
            json={"messages": [{"role": "user", "content": "Which tool?"}], "toolQuery": "orm"},
            headers=bearer(),
        )

        assert response.status_code == 500
        assert response.json()["error"] == {"status": "internal", "message": "Failed to generate response"}


class TestSyncEndpoints:
    """POST /api/sync/..."""

    def test_incremental_upsert(self, client, text_index, vector_index):
        after = snapshot(make_tool(42))

        response = client.post("/api/sync/tools/t042", json={"before": None, "after": after})

        assert response.status_code == 200
        assert response.json()["action"] == "upsert"
        assert response.json()["text"] is True
        assert "t042" in text_index.docs
        assert "t042" in vector_index.vectors

    def test_incremental_failure_still_200(self, client, text_index):
        text_index.fail_ids.add("t042")

        response = client.post("/api/sync/tools/t042", json={"after": snapshot(make_tool(42))})

        assert response.status_code == 200
        body = response.json()
        assert body["text"] is False
        assert body["vector"] is True
        assert "text" in body["errors"]

    def test_incremental_delete(self, client, text_index):
        client.post("/api/sync/tools/t042", json={"after": snapshot(make_tool(42))})

        response = client.post("/api/sync/tools/t042", json={"before": snapshot(make_tool(42)), "after": None})

        assert response.json()["action"] == "delete"
        assert "t042" not in text_index.docs

    def test_full_sync(self, client, text_index, vector_index):
        response = client.post("/api/sync/full")

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["details"]["totalTools"] == 7
        assert body["details"]["successRate"] == "100.0"
        assert "Success rate: 100.0%" in body["summary"]
        assert len(text_index.docs) == 7
        assert len(vector_index.vectors) == 7

    def test_full_sync_single_target(self, client, text_index, vector_index):
        response = client.post("/api/sync/full/text")

        assert response.json()["details"]["target"] == "text"
        assert len(text_index.docs) == 7
        assert vector_index.vectors == {}

    def test_unknown_target(self, client):
        response = client.post("/api/sync/full/graph")

        assert response.status_code == 400
        assert response.json()["error"]["status"] == "invalid-argument"

    def test_source_unreachable(self, client, store):
        store.fail_fetch_after = 0

        response = client.post("/api/sync/full")

        assert response.status_code == 500
        assert response.json() == {"success": False, "error": "Error during full sync"}

    def test_sync_token_enforced_when_configured(self, client, factory):
        factory.settings.auth.sync_token = "relay-token"

        assert client.post("/api/sync/full").status_code == 401
        assert client.post("/api/sync/full", headers={"X-Sync-Token": "wrong"}).status_code == 401
        assert client.post("/api/sync/full", headers={"X-Sync-Token": "relay-token"}).status_code == 200


class TestHealth:

    def test_healthy(self, client):
        response = client.get("/api/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["environment"] == "dev"
        assert body["textIndex"] == "connected"

    def test_degraded_when_store_unreachable(self, client, store):
        async def unreachable():
            return {"status": "disconnected", "error": "connection timed out"}

        store.check_health = unreachable

        body = client.get("/api/health").json()
        assert body["status"] == "degraded"
        assert body["store"] == "disconnected"
        assert body["vectorIndex"] == "connected"


class TestOpenAPI:
    """Error bodies are part of the published schema."""

    def test_error_responses_documented(self, client):
        schema = client.get("/openapi.json").json()

        chat = schema["paths"]["/api/chat"]["post"]["responses"]
        for status in ("400", "401", "500"):
            assert chat[status]["content"]["application/json"]["schema"]["$ref"].endswith("/ErrorResponse")

        full = schema["paths"]["/api/sync/full"]["post"]["responses"]
        assert full["500"]["content"]["application/json"]["schema"]["$ref"].endswith("/FullSyncErrorResponse")
        assert "ErrorBody" in schema["components"]["schemas"]

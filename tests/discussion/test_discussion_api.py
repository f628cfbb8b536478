"""
Tests for the discussion HTTP API.

Runs the router in a bare FastAPI app with scripted backends and the
in-memory store.
"""

import json
import random

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from src.chorus.core.exceptions import BackendEmptyResponseError, PersistenceError
from src.chorus.core.resilience import RetryPolicy
from src.chorus.discussion.api import (
    clear_chorus_dependencies,
    create_chorus_dependencies,
    router,
)
from src.chorus.discussion.domain.entities import TurnRole
from src.chorus.discussion.memory.turn_store import InMemoryTurnStore
from src.chorus.discussion.orchestrator import RoundOrchestrator, StreamingOrchestrator
from src.chorus.discussion.orchestrator.event_streamer import FATAL_NOTICE


@pytest.fixture
def make_client(registry, store, fake_sleep, make_invoker):
    def factory(backend, store=store):
        invoker = make_invoker(backend, policy=RetryPolicy(max_attempts=1))
        create_chorus_dependencies(
            registry=registry,
            invoker=invoker,
            store=store,
            round_orchestrator=RoundOrchestrator(registry, invoker, store),
            streaming_orchestrator=StreamingOrchestrator(
                registry, invoker, store, rng=random.Random(3), sleep=fake_sleep,
            ),
        )
        app = FastAPI()
        app.include_router(router)
        return TestClient(app)

    yield factory
    clear_chorus_dependencies()


def sse_events(body: str) -> list[dict]:
    return [
        json.loads(line[len("data: "):])
        for line in body.splitlines()
        if line.startswith("data: ")
    ]


class BrokenStore(InMemoryTurnStore):
    async def list_turns(self):
        raise PersistenceError(
            "connect to postgresql://admin:hunter2@db:5432/chorus failed",
            operation="list_turns",
        )


class TestCatalogEndpoints:
    """Tests for the provider endpoints."""

    def test_list_providers(self, make_client, backend):
        response = make_client(backend).get("/api/providers")

        assert response.status_code == 200
        providers = response.json()["providers"]
        assert [p["id"] for p in providers][:2] == ["mistral:7b", "codellama:7b"]
        assert providers[0]["reliability"] == "high"

    def test_provider_health(self, make_client, make_backend):
        backend = make_backend({"llama3.2:1b": [BackendEmptyResponseError()]})
        response = make_client(backend).get("/api/providers/health")

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 4
        assert data["working"] == 3
        failed = [r for r in data["results"] if r["status"] == "failed"]
        assert failed[0]["provider"] == "Llama 3.2 1B"
        assert "response" not in failed[0]

    def test_dependencies_missing(self):
        clear_chorus_dependencies()
        app = FastAPI()
        app.include_router(router)

        response = TestClient(app).get("/api/providers")
        assert response.status_code == 503


class TestChatEndpoint:
    """Tests for POST /api/chat."""

    def test_round(self, make_client, make_backend):
        backend = make_backend({"codellama:7b": [BackendEmptyResponseError()]})
        response = make_client(backend).post(
            "/api/chat",
            json={
                "messages": [{"role": "user", "content": "hello"}],
                "selectedProviders": ["mistral:7b", "codellama:7b"],
            },
        )

        assert response.status_code == 200
        first, second = response.json()["responses"]
        assert first["providerName"] == "Mistral 7B"
        assert "error" not in first
        assert second["error"] is True
        assert "expertise" not in second
        assert second["content"].startswith("Error: Could not get response from codellama:7b")

    def test_default_provider(self, make_client, backend):
        response = make_client(backend).post(
            "/api/chat", json={"messages": [{"role": "user", "content": "hello"}]}
        )
        assert [r["provider"] for r in response.json()["responses"]] == ["llama3.2:3b"]

    def test_empty_messages(self, make_client, backend):
        response = make_client(backend).post("/api/chat", json={"messages": []})
        assert response.status_code == 400

    def test_empty_selection(self, make_client, backend):
        response = make_client(backend).post(
            "/api/chat",
            json={"messages": [{"role": "user", "content": "hello"}], "selectedProviders": []},
        )
        assert response.status_code == 400

    def test_bad_role(self, make_client, backend):
        response = make_client(backend).post(
            "/api/chat", json={"messages": [{"role": "robot", "content": "hello"}]}
        )
        assert response.status_code == 422


class TestInfiniteChat:
    """Tests for the server-sent-events stream."""

    def test_fatal_stream(self, make_client, make_backend):
        backend = make_backend({"mistral:7b": [BackendEmptyResponseError()] * 10})
        response = make_client(backend).get(
            "/api/infinite-chat",
            params={"selectedProviders": "mistral:7b", "topic": "Fusion"},
        )

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/event-stream")
        assert response.headers["x-accel-buffering"] == "no"

        events = sse_events(response.text)
        assert len(events) == 5
        assert [e["messageCount"] for e in events[:4]] == [1, 2, 3, 4]
        assert events[-1] == {
            "type": "error",
            "content": FATAL_NOTICE,
            "color": "#dc2626",
            "terminal": True,
        }

    def test_unknown_providers_rejected(self, make_client, backend):
        response = make_client(backend).get(
            "/api/infinite-chat", params={"selectedProviders": "gpt-99,claude-x"}
        )
        assert response.status_code == 400


class TestHistoryEndpoints:
    """Tests for messages, documents and projects."""

    def test_messages(self, make_client, backend, store):
        client = make_client(backend)
        client.post("/api/chat", json={
            "messages": [{"role": "user", "content": "hello"}],
            "selectedProviders": ["mistral:7b"],
        })

        messages = client.get("/api/messages").json()["messages"]
        assert [m["role"] for m in messages] == ["user", "assistant"]
        assert messages[1]["provider"] == "mistral:7b"

    def test_messages_store_failure_sanitized(self, make_client, backend):
        response = make_client(backend, store=BrokenStore()).get("/api/messages")

        assert response.status_code == 500
        assert "hunter2" not in response.json()["detail"]

    def test_documents(self, make_client, backend, store):
        store.add_document("notes.md", "Remember the rate limits.", "text")
        documents = make_client(backend).get("/api/documents").json()["documents"]
        assert documents[0]["original_name"] == "notes.md"

    def test_create_project_posts_brief(self, make_client, backend, store):
        client = make_client(backend)
        response = client.post("/api/project/create", json={
            "name": "Inventory CLI",
            "description": "Track parts",
            "requirements": "Python",
        })

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["projectBrief"].startswith("NEW PROJECT CREATED: Inventory CLI")

        last = client.get("/api/messages").json()["messages"][-1]
        assert last["role"] == TurnRole.SYSTEM.value
        assert last["provider"] == "project-manager"

        projects = client.get("/api/projects").json()["projects"]
        assert projects[0]["id"] == data["projectId"]

    def test_create_project_requires_name(self, make_client, backend):
        response = make_client(backend).post("/api/project/create", json={"name": ""})
        assert response.status_code == 422

from __future__ import annotations

from decimal import Decimal
from uuid import uuid4

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

import finai.ai.router as ai_router
from finai.ai.gemini_client import GeminiRequestError, GeminiResponseError


class StubGeminiClient:
    def __init__(self, replies):
        self.replies = list(replies)
        self.prompts = []

    async def generate_text(self, prompt):
        self.prompts.append(prompt)
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply


@pytest.fixture
def client_with_overrides(monkeypatch):
    async def override_db_connection():
        yield object()

    user_id = uuid4()
    monkeypatch.setattr(ai_router.settings, "gemini_api_key", "test-key")
    test_app = FastAPI()
    test_app.include_router(ai_router.router)
    test_app.dependency_overrides[ai_router.get_current_user_id] = lambda: user_id
    test_app.dependency_overrides[ai_router.get_db_connection] = override_db_connection

    with TestClient(test_app) as client:
        yield client, user_id

    test_app.dependency_overrides.clear()


@pytest.fixture
def stored(monkeypatch):
    """In-memory stand-ins for the chat store and context loader."""
    messages: list[dict] = []

    async def fake_append(connection, user_id, role, content):
        row = {"id": str(len(messages) + 1), "role": role, "content": content}
        messages.append(row)
        return row

    async def fake_recent(connection, user_id, limit=10):
        return messages[-limit:]

    async def fake_context(connection, user_id):
        return {
            "total_balance": Decimal("500.00"),
            "accounts": [],
            "budget": None,
            "monthly_income": Decimal("0.00"),
            "monthly_expenses": Decimal("42.00"),
            "net_income": Decimal("-42.00"),
            "expenses_by_category": {"groceries": Decimal("42.00")},
            "recent_transactions": [],
        }

    monkeypatch.setattr(ai_router, "append_message", fake_append)
    monkeypatch.setattr(ai_router, "load_recent_messages", fake_recent)
    monkeypatch.setattr(ai_router, "get_user_financial_context", fake_context)
    return messages


def test_send_message_stores_exchange_and_returns_reply(client_with_overrides, stored, monkeypatch) -> None:
    client, _user_id = client_with_overrides
    stub = StubGeminiClient(["**Groceries** is your top category."])
    monkeypatch.setattr(ai_router, "_get_gemini_client", lambda: stub)

    response = client.post("/api/chat", json={"message": "  What's my biggest expense?  "})

    assert response.status_code == 200
    assert response.json() == {
        "success": True,
        "message": "**Groceries** is your top category.",
        "user_message": "What's my biggest expense?",
    }
    assert [(row["role"], row["content"]) for row in stored] == [
        ("USER", "What's my biggest expense?"),
        ("ASSISTANT", "**Groceries** is your top category."),
    ]

    prompt = stub.prompts[0]
    assert "- groceries: $42.00" in prompt
    assert "Previous conversation:\nUSER: What's my biggest expense?" in prompt
    assert prompt.endswith("Current user message: What's my biggest expense?")


def test_history_in_prompt_is_capped(client_with_overrides, stored, monkeypatch) -> None:
    client, _user_id = client_with_overrides
    for index in range(15):
        stored.append({"id": str(index), "role": "USER" if index % 2 == 0 else "ASSISTANT", "content": f"old-{index}"})

    stub = StubGeminiClient(["ok"])
    monkeypatch.setattr(ai_router, "_get_gemini_client", lambda: stub)
    monkeypatch.setattr(ai_router.settings, "chat_history_limit", 4)

    response = client.post("/api/chat", json={"message": "newest"})

    assert response.status_code == 200
    prompt = stub.prompts[0]
    assert "old-11" not in prompt
    assert "USER: old-12\nASSISTANT: old-13\nUSER: old-14\nUSER: newest" in prompt


@pytest.mark.parametrize("body", [{}, {"message": ""}, {"message": "   "}])
def test_send_message_requires_message(client_with_overrides, stored, body) -> None:
    client, _user_id = client_with_overrides

    response = client.post("/api/chat", json=body)

    assert response.status_code == 400
    assert response.json()["detail"] == "Message is required"
    assert stored == []


def test_send_message_rejects_overlong_message(client_with_overrides, stored) -> None:
    client, _user_id = client_with_overrides

    response = client.post("/api/chat", json={"message": "x" * 1001})

    assert response.status_code == 422
    assert stored == []


def test_send_message_returns_503_when_gemini_key_missing(client_with_overrides, stored, monkeypatch) -> None:
    client, _user_id = client_with_overrides
    monkeypatch.setattr(ai_router.settings, "gemini_api_key", "")

    response = client.post("/api/chat", json={"message": "hello"})

    assert response.status_code == 503
    assert "GEMINI_API_KEY" in response.json()["detail"]
    assert stored == []


def test_gemini_failure_keeps_user_message_and_returns_502(client_with_overrides, stored, monkeypatch) -> None:
    client, _user_id = client_with_overrides
    stub = StubGeminiClient([GeminiRequestError(500, "boom")])
    monkeypatch.setattr(ai_router, "_get_gemini_client", lambda: stub)

    response = client.post("/api/chat", json={"message": "hello"})

    assert response.status_code == 502
    assert [row["role"] for row in stored] == ["USER"]


def test_gemini_rate_limit_maps_to_503(client_with_overrides, stored, monkeypatch) -> None:
    client, _user_id = client_with_overrides
    stub = StubGeminiClient([GeminiRequestError(429, "slow down")])
    monkeypatch.setattr(ai_router, "_get_gemini_client", lambda: stub)

    response = client.post("/api/chat", json={"message": "hello"})

    assert response.status_code == 503
    assert "rate-limited" in response.json()["detail"]


def test_unparseable_gemini_reply_returns_502(client_with_overrides, stored, monkeypatch) -> None:
    client, _user_id = client_with_overrides
    stub = StubGeminiClient([GeminiResponseError("no text")])
    monkeypatch.setattr(ai_router, "_get_gemini_client", lambda: stub)

    response = client.post("/api/chat", json={"message": "hello"})

    assert response.status_code == 502
    assert response.json()["detail"] == "AI assistant response could not be processed."


def test_get_history(client_with_overrides, monkeypatch) -> None:
    client, user_id = client_with_overrides
    seen = {}

    async def fake_list(connection, user_id_in, limit=100):
        seen["user_id"] = user_id_in
        seen["limit"] = limit
        return [
            {"id": "1", "content": "hi", "role": "user", "created_at": "2026-03-01T10:00:00+00:00"},
            {"id": "2", "content": "Hello!", "role": "assistant", "created_at": "2026-03-01T10:00:02+00:00"},
        ]

    monkeypatch.setattr(ai_router, "list_messages", fake_list)

    response = client.get("/api/chat")

    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    assert [item["role"] for item in data["messages"]] == ["user", "assistant"]
    assert seen == {"user_id": user_id, "limit": 100}


def test_clear_history(client_with_overrides, monkeypatch) -> None:
    client, _user_id = client_with_overrides

    async def fake_clear(connection, user_id):
        return 7

    monkeypatch.setattr(ai_router, "clear_messages", fake_clear)

    response = client.delete("/api/chat")

    assert response.status_code == 200
    assert response.json() == {"success": True, "deleted": 7}


def test_chat_requires_auth(monkeypatch) -> None:
    monkeypatch.setattr(ai_router.settings, "gemini_api_key", "test-key")
    test_app = FastAPI()
    test_app.include_router(ai_router.router)

    async def override_db_connection():
        yield object()

    test_app.dependency_overrides[ai_router.get_db_connection] = override_db_connection

    with TestClient(test_app) as client:
        post_response = client.post("/api/chat", json={"message": "hello"})
        get_response = client.get("/api/chat")

    assert post_response.status_code == 401
    assert get_response.status_code == 401


@pytest.mark.parametrize("body", [{}, {"message": "  "}])
def test_missing_message_is_rejected_before_auth_and_database(monkeypatch, body) -> None:
    monkeypatch.setattr(ai_router.settings, "gemini_api_key", "test-key")
    test_app = FastAPI()
    test_app.include_router(ai_router.router)

    with TestClient(test_app) as client:
        response = client.post("/api/chat", json=body)

    assert response.status_code == 400
    assert response.json()["detail"] == "Message is required"

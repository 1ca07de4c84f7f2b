"""Tests for the /chat and /api/chat gateway endpoints (Anthropic proxy)."""

from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest
from fastapi.testclient import TestClient

from backend import llm
from backend.app import create_app
from stubs import StubProvider
from worldbuilding.config import ProviderSettings
from worldbuilding.orchestrator import ProviderOrchestrator


def _mock_response(body: dict | list, status: int = 200) -> MagicMock:
    resp = MagicMock()
    resp.status_code = status
    resp.json.return_value = body
    resp.text = str(body)
    resp.raise_for_status = MagicMock(
        side_effect=None if status < 400 else httpx.HTTPStatusError(
            "", request=MagicMock(), response=resp
        )
    )
    return resp


def _reply(text: str) -> dict:
    return {"content": [{"type": "text", "text": text}]}


@pytest.fixture
def client() -> TestClient:
    orch = ProviderOrchestrator(
        ProviderSettings(anthropic_api_key="anthropic-key"),
        providers={"ollama": StubProvider("ollama"), "together": StubProvider("together")},
    )
    return TestClient(create_app(orchestrator=orch))


# ── POST /chat ───────────────────────────────────────────────


def test_chat_happy_path(client):
    mock_post = AsyncMock(return_value=_mock_response(_reply("Greetings, traveller.")))
    with patch("httpx.AsyncClient.post", mock_post):
        resp = client.post("/chat", json={"systemPrompt": "You are Elwin.", "userMessage": "Hello"})
    assert resp.status_code == 200
    assert resp.json() == {"response": "Greetings, traveller."}

    assert mock_post.call_args[0][0] == llm.ANTHROPIC_URL
    body = mock_post.call_args.kwargs["json"]
    assert body["model"] == llm.MODEL
    assert body["temperature"] == 0.7
    assert body["max_tokens"] == 500
    assert body["system"] == "You are Elwin."
    assert body["messages"] == [{"role": "user", "content": "Hello"}]
    assert mock_post.call_args.kwargs["headers"]["x-api-key"] == "anthropic-key"


def test_chat_trims_prompt_and_message(client):
    mock_post = AsyncMock(return_value=_mock_response(_reply("ok")))
    with patch("httpx.AsyncClient.post", mock_post):
        client.post("/chat", json={"systemPrompt": "s" * 5000, "userMessage": "u" * 900})
    body = mock_post.call_args.kwargs["json"]
    assert len(body["system"]) == 4000
    assert len(body["messages"][0]["content"]) == 500


@pytest.mark.parametrize("payload", [
    {"systemPrompt": "You are Elwin."},
    {"userMessage": "Hello"},
    {"systemPrompt": "", "userMessage": "Hello"},
    {"systemPrompt": 42, "userMessage": "Hello"},
])
def test_chat_missing_fields_is_400(client, payload):
    assert client.post("/chat", json=payload).status_code == 400


def test_chat_missing_credential_is_500():
    orch = ProviderOrchestrator(
        ProviderSettings(anthropic_api_key=""),
        providers={"ollama": StubProvider("ollama"), "together": StubProvider("together")},
    )
    client = TestClient(create_app(orchestrator=orch))
    mock_post = AsyncMock()
    with patch("httpx.AsyncClient.post", mock_post):
        resp = client.post("/chat", json={"systemPrompt": "s", "userMessage": "u"})
    assert resp.status_code == 500
    mock_post.assert_not_called()


def test_chat_timeout_is_504(client):
    mock_post = AsyncMock(side_effect=httpx.ReadTimeout("timeout"))
    with patch("httpx.AsyncClient.post", mock_post):
        resp = client.post("/chat", json={"systemPrompt": "s", "userMessage": "u"})
    assert resp.status_code == 504


def test_chat_upstream_error_is_500(client):
    mock_post = AsyncMock(return_value=_mock_response({"error": "overloaded"}, status=529))
    with patch("httpx.AsyncClient.post", mock_post):
        resp = client.post("/chat", json={"systemPrompt": "s", "userMessage": "u"})
    assert resp.status_code == 500
    assert "overloaded" not in resp.text


def test_chat_oversized_headers_pass_through(client):
    mock_post = AsyncMock(return_value=_mock_response({}, status=431))
    with patch("httpx.AsyncClient.post", mock_post):
        resp = client.post("/chat", json={"systemPrompt": "s", "userMessage": "u"})
    assert resp.status_code == 431


def test_chat_network_failure_is_500(client):
    mock_post = AsyncMock(side_effect=httpx.ConnectError("refused"))
    with patch("httpx.AsyncClient.post", mock_post):
        resp = client.post("/chat", json={"systemPrompt": "s", "userMessage": "u"})
    assert resp.status_code == 500


def test_chat_non_json_reply_is_500(client):
    upstream = _mock_response({})
    upstream.json.side_effect = ValueError("not json")
    with patch("httpx.AsyncClient.post", AsyncMock(return_value=upstream)):
        resp = client.post("/chat", json={"systemPrompt": "s", "userMessage": "u"})
    assert resp.status_code == 500
    assert resp.json()["detail"] == "Failed to get response from AI service"


@pytest.mark.parametrize("body", [
    [],
    {"content": []},
    {"content": [{"type": "text"}]},
    {"content": [{"type": "text", "text": None}]},
])
def test_chat_unexpected_reply_shape_is_500(client, body):
    with patch("httpx.AsyncClient.post", AsyncMock(return_value=_mock_response(body))):
        resp = client.post("/chat", json={"systemPrompt": "s", "userMessage": "u"})
    assert resp.status_code == 500
    assert resp.json()["detail"] == "Failed to get response from AI service"


# ── POST /api/chat ───────────────────────────────────────────


def test_messages_happy_path(client):
    mock_post = AsyncMock(return_value=_mock_response(_reply("Hmph.")))
    payload = {
        "character": "Elwin",
        "context": "The forge is hot.",
        "messages": [
            {"role": "user", "content": "Hello"},
            {"role": "assistant", "content": "What?"},
            {"role": "user", "content": "x" * 800},
        ],
    }
    with patch("httpx.AsyncClient.post", mock_post):
        resp = client.post("/api/chat", json=payload)
    assert resp.status_code == 200
    assert resp.json() == {"response": "Hmph."}
    body = mock_post.call_args.kwargs["json"]
    assert body["max_tokens"] == 1000
    assert body["system"].startswith("You are Elwin, a character in a roleplay game.")
    assert body["system"].endswith("The forge is hot.")
    assert [m["role"] for m in body["messages"]] == ["user", "assistant", "user"]
    assert len(body["messages"][2]["content"]) == 500


@pytest.mark.parametrize("payload", [
    {"messages": [{"role": "user", "content": "Hi"}]},
    {"character": "Elwin"},
    {"character": "Elwin", "messages": "Hi"},
    {"character": "Elwin", "messages": []},
    {"character": "Elwin", "messages": [{"role": "system", "content": "Hi"}]},
])
def test_messages_invalid_is_400(client, payload):
    assert client.post("/api/chat", json=payload).status_code == 400

"""Vertex REST client: request building, retries and response parsing."""
import json
import time

import pytest
import requests

from mitr.errors import ModelCallError
from mitr.infrastructure.llm import client as client_module
from mitr.infrastructure.llm.client import VertexRestClient, split_image_data


class FakeResponse:
    def __init__(self, status_code=200, payload=None, lines=None):
        self.status_code = status_code
        self._payload = payload if payload is not None else {}
        self._lines = lines or []
        self.text = json.dumps(self._payload)
        self.closed = False

    def json(self):
        return self._payload

    def iter_lines(self, decode_unicode=False):
        return iter(self._lines)

    def close(self):
        self.closed = True


class FakeSession:
    def __init__(self, outcomes):
        self.outcomes = list(outcomes)
        self.calls = []

    def post(self, url, headers=None, json=None, timeout=None, stream=False):
        self.calls.append({"url": url, "headers": headers, "json": json, "timeout": timeout, "stream": stream})
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


def text_payload(text):
    return {"candidates": [{"content": {"parts": [{"text": text}]}}]}


@pytest.fixture(autouse=True)
def no_sleep(monkeypatch):
    monkeypatch.setattr(client_module.time, "sleep", lambda seconds: None)


def make_client(outcomes, **kwargs):
    session = FakeSession(outcomes)
    client = VertexRestClient(project="proj", session=session, **kwargs)
    client._token = "token"
    client._token_expiry = time.time() + 3600
    return client, session


def test_generate_content_posts_to_model_endpoint():
    client, session = make_client([FakeResponse(payload=text_payload("hello"))], max_retries=0)
    assert client.generate_content("hi", temperature=0.2) == "hello"

    call = session.calls[0]
    assert call["url"].endswith(
        "/projects/proj/locations/us-central1/publishers/google/models/gemini-2.5-flash:generateContent"
    )
    assert call["headers"]["Authorization"] == "Bearer token"
    assert call["json"]["generationConfig"]["temperature"] == 0.2
    assert call["json"]["contents"][0]["parts"] == [{"text": "hi"}]


def test_json_mode_and_inline_images():
    client, session = make_client([FakeResponse(payload=text_payload('{"ok": true}'))])
    result = client.generate_json("describe", images=["data:image/png;base64,AAAA"], name="facial_emotion")

    assert result == {"ok": True}
    body = session.calls[0]["json"]
    assert body["generationConfig"]["responseMimeType"] == "application/json"
    parts = body["contents"][0]["parts"]
    assert parts[0] == {"inlineData": {"mimeType": "image/png", "data": "AAAA"}}
    assert parts[1]["text"].endswith("Respond ONLY with minified JSON.")


def test_retries_on_server_error_then_succeeds():
    client, session = make_client(
        [FakeResponse(status_code=503), FakeResponse(payload=text_payload("ok"))], max_retries=1
    )
    assert client.generate_content("hi") == "ok"
    assert len(session.calls) == 2


def test_retries_on_network_error():
    client, session = make_client(
        [requests.ConnectionError("reset"), FakeResponse(payload=text_payload("ok"))], max_retries=1
    )
    assert client.generate_content("hi") == "ok"


def test_gives_up_after_max_retries():
    client, session = make_client([FakeResponse(status_code=429)] * 3, max_retries=2)
    with pytest.raises(ModelCallError):
        client.generate_content("hi")
    assert len(session.calls) == 3


def test_client_error_is_not_retried():
    client, session = make_client([FakeResponse(status_code=400), FakeResponse()], max_retries=3)
    with pytest.raises(ModelCallError, match="400"):
        client.generate_content("hi")
    assert len(session.calls) == 1


def test_unauthorized_refreshes_token(monkeypatch):
    client, session = make_client(
        [FakeResponse(status_code=401), FakeResponse(payload=text_payload("ok"))], max_retries=1
    )

    def fake_refresh():
        client._token = "fresh"
        client._token_expiry = time.time() + 3600

    monkeypatch.setattr(client, "_refresh_token", fake_refresh)
    assert client.generate_content("hi") == "ok"
    assert session.calls[1]["headers"]["Authorization"] == "Bearer fresh"


def test_streaming_concatenates_chunks():
    lines = [
        "data: " + json.dumps(text_payload("Hel")),
        "",
        "data: not json",
        "data: " + json.dumps(text_payload("lo")),
        "data: [DONE]",
    ]
    stream = FakeResponse(lines=lines)
    client, session = make_client([stream], stream=True)

    assert client.generate_content("hi") == "Hello"
    assert session.calls[0]["url"].endswith(":streamGenerateContent?alt=sse")
    assert session.calls[0]["stream"] is True
    assert stream.closed


def test_blocked_response_raises():
    payload = {"candidates": [{"finishReason": "SAFETY"}], "promptFeedback": {"blockReason": "SAFETY"}}
    client, _ = make_client([FakeResponse(payload=payload)])
    with pytest.raises(ModelCallError, match="finishReason=SAFETY"):
        client.generate_content("hi")


@pytest.mark.parametrize("text", [
    '{"a": 1}',
    '```json\n{"a": 1}\n```',
    'Sure! Here you go: {"a": 1} Hope that helps.',
])
def test_parse_json_text_variants(text):
    assert VertexRestClient.parse_json_text(text) == {"a": 1}


def test_parse_json_text_rejects_garbage_and_arrays():
    with pytest.raises(ModelCallError):
        VertexRestClient.parse_json_text("no json here")
    with pytest.raises(ModelCallError):
        VertexRestClient.parse_json_text("[1, 2]")


def test_generate_image_returns_data_uri():
    payload = {"candidates": [{"content": {"parts": [
        {"text": "here"},
        {"inlineData": {"mimeType": "image/png", "data": "iVBORw0KGgo="}},
    ]}}]}
    client, session = make_client([FakeResponse(payload=payload)])

    assert client.generate_image("a calm avatar") == "data:image/png;base64,iVBORw0KGgo="
    body = session.calls[0]["json"]
    assert body["generationConfig"]["responseModalities"] == ["TEXT", "IMAGE"]
    assert "gemini-2.0-flash-preview-image-generation" in session.calls[0]["url"]


def test_generate_image_without_media_raises():
    client, _ = make_client([FakeResponse(payload=text_payload("sorry"))])
    with pytest.raises(ModelCallError, match="no media"):
        client.generate_image("a calm avatar")


@pytest.mark.asyncio
async def test_async_json_wrapper():
    client, _ = make_client([FakeResponse(payload=text_payload('{"response": "hi"}'))])
    assert await client.agenerate_json("prompt", name="fast_therapist") == {"response": "hi"}


def test_split_image_data():
    assert split_image_data("data:image/webp;base64,QUJD") == ("image/webp", "QUJD")
    assert split_image_data("QUJD") == ("image/jpeg", "QUJD")

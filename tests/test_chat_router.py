"""Tests for POST /api/chat/stream."""

import json

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from fakes import FakeAssistantClient, sse
from models.chat import DONE
from routers import chat
from services.config_manager import RelaySettings
from services.errors import UpstreamError
from services.sse_frames import FrameBuffer

SETTINGS = RelaySettings(api_key="sk-test", assistant_id="asst_test")


class ClientRecorder:
    """Client factory handing out one prepared fake."""

    def __init__(self, fake: FakeAssistantClient):
        self.fake = fake
        self.created = []

    def __call__(self, settings):
        self.created.append(settings)
        self.fake.settings = settings
        return self.fake


@pytest.fixture
def test_app():
    app = FastAPI()
    app.include_router(chat.router, prefix="/api/chat")
    return app


def make_client(test_app, fake, settings=SETTINGS):
    recorder = ClientRecorder(fake)
    test_app.dependency_overrides[chat.get_client_factory] = lambda: recorder
    if settings is not None:
        test_app.dependency_overrides[chat.get_settings] = lambda: settings
    return TestClient(test_app), recorder


def stream_payloads(body: str) -> list:
    buffer = FrameBuffer()
    frames = buffer.feed(body) + buffer.flush()
    return [f.data if f.data == DONE else json.loads(f.data) for f in frames]


class TestChatStream:
    """Tests for the relay endpoint."""

    def test_streams_normalized_events(self, test_app):
        fake = FakeAssistantClient(run_chunks=[
            sse('{"type":"response.output_text.delta","delta":"Olá"}'),
            sse('{"type":"response.output_text.delta","delta":", tudo bem?"}'),
            sse(DONE),
        ])
        client, recorder = make_client(test_app, fake)

        resp = client.post("/api/chat/stream", json={"message": "Qual meu saldo?", "threadId": None})

        assert resp.status_code == 200
        assert "text/event-stream" in resp.headers["content-type"]
        assert stream_payloads(resp.text) == [
            {"threadId": "thread_new"},
            {"delta": "Olá"},
            {"delta": ", tudo bem?"},
            DONE,
        ]
        assert fake.calls == [("open_run", "Qual meu saldo?", None)]
        assert fake.closed

    def test_existing_thread_is_reused(self, test_app):
        fake = FakeAssistantClient(run_chunks=[sse('{"type":"response.output_text.delta","delta":"ok"}')])
        client, _ = make_client(test_app, fake)

        resp = client.post("/api/chat/stream", json={"message": "oi", "threadId": "thread_1"})

        assert stream_payloads(resp.text)[0] == {"threadId": "thread_1"}
        assert fake.calls == [("open_run", "oi", "thread_1")]

    def test_fallback_through_endpoint(self, test_app):
        fake = FakeAssistantClient(
            run_chunks=[sse(DONE)],
            fallback=[{"role": "assistant", "content": [{"type": "output_text", "text": {"value": "42"}}]}],
        )
        client, _ = make_client(test_app, fake)

        resp = client.post("/api/chat/stream", json={"message": "?"})

        assert stream_payloads(resp.text)[1:] == [{"delta": "42"}, DONE]

    def test_missing_api_key_fails_before_any_call(self, test_app):
        fake = FakeAssistantClient()
        client, recorder = make_client(test_app, fake, settings=None)

        resp = client.post("/api/chat/stream", json={"message": "oi"})

        assert resp.status_code == 500
        assert "OPENAI_API_KEY" in resp.json()["error"]
        assert recorder.created == []
        assert fake.calls == []

    def test_missing_assistant_id(self, test_app, monkeypatch):
        monkeypatch.setenv("OPENAI_API_KEY", "sk-env")
        client, recorder = make_client(test_app, FakeAssistantClient(), settings=None)

        resp = client.post("/api/chat/stream", json={"message": "oi"})

        assert resp.status_code == 500
        assert "ASSISTANT_ID" in resp.json()["error"]
        assert "OPENAI_API_KEY" not in resp.json()["error"]
        assert recorder.created == []

    def test_environment_settings_are_used(self, test_app, monkeypatch):
        monkeypatch.setenv("OPENAI_API_KEY", "sk-env")
        monkeypatch.setenv("ASSISTANT_ID", "asst_env")
        client, recorder = make_client(test_app, FakeAssistantClient(), settings=None)

        resp = client.post("/api/chat/stream", json={"message": "oi"})

        assert resp.status_code == 200
        assert recorder.created[0].api_key == "sk-env"
        assert recorder.created[0].assistant_id == "asst_env"

    def test_upstream_setup_failure(self, test_app):
        fake = FakeAssistantClient(fail=UpstreamError(401, '{"error":{"message":"bad key"}}', "create thread"))
        client, _ = make_client(test_app, fake)

        resp = client.post("/api/chat/stream", json={"message": "oi"})

        assert resp.status_code == 500
        assert "bad key" in resp.text
        assert fake.closed

    def test_blank_message_rejected(self, test_app):
        fake = FakeAssistantClient()
        client, _ = make_client(test_app, fake)

        resp = client.post("/api/chat/stream", json={"message": "   "})

        assert resp.status_code == 422
        assert fake.calls == []

    def test_unexpected_setup_error_closes_client(self, test_app):
        fake = FakeAssistantClient(fail=RuntimeError("boom"))
        make_client(test_app, fake)
        client = TestClient(test_app, raise_server_exceptions=False)

        resp = client.post("/api/chat/stream", json={"message": "oi"})

        assert resp.status_code == 500
        assert fake.closed

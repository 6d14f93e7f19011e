"""Tests for health check, CORS headers, and the quiz REST endpoints.

Exercises the FastAPI app through an async HTTP client with the gateway
dependency overridden, verifying camelCase payloads and the error envelope.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest
from httpx import ASGITransport, AsyncClient

from src.api.app import create_app
from src.api.routes import quiz
from src.core.config import Settings
from src.core.exceptions import ProvisioningError, UpstreamError
from src.services.gateway.responses import ResponsesGateway
from src.services.transcription import BaseSTT


@pytest.fixture
def app(mock_gateway):
    """Create a fresh FastAPI application wired to the mock gateway."""
    app = create_app()
    app.dependency_overrides[quiz.get_gateway] = lambda: mock_gateway
    return app


@pytest.fixture
async def client(app):
    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


# ---------------------------------------------------------------------------
# Health check
# ---------------------------------------------------------------------------


async def test_health_returns_200(client):
    """GET /health returns 200 with status, version, and timestamp."""
    resp = await client.get("/health")
    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "ok"
    assert body["version"] == "0.1.0"
    assert "timestamp" in body


async def test_cors_rejects_unknown_origin(client):
    """Origins not in the allow-list receive no CORS header."""
    resp = await client.options(
        "/health",
        headers={
            "Origin": "http://evil.example.com",
            "Access-Control-Request-Method": "GET",
        },
    )
    assert "access-control-allow-origin" not in resp.headers


# ---------------------------------------------------------------------------
# Session endpoints
# ---------------------------------------------------------------------------


async def test_init_returns_agent_id(client):
    resp = await client.post("/api/v1/quiz/init")
    assert resp.status_code == 200
    assert resp.json() == {"agentId": "A1"}


async def test_start_returns_handle_and_question(client, mock_gateway):
    resp = await client.post("/api/v1/quiz/start", json={"agentId": "A1"})
    assert resp.status_code == 200
    assert resp.json() == {"sessionHandle": "S1", "questionText": "Q1"}
    mock_gateway.start_session.assert_awaited_once_with("A1")


async def test_answer_returns_new_handle(client, mock_gateway):
    resp = await client.post(
        "/api/v1/quiz/answer",
        json={"sessionHandle": "S1", "agentId": "A1", "answerText": "the Constitution"},
    )
    assert resp.status_code == 200
    assert resp.json() == {
        "feedbackText": "F1",
        "nextQuestionText": "Q2",
        "newSessionHandle": "S2",
    }
    mock_gateway.submit_answer.assert_awaited_once_with("S1", "A1", "the Constitution")


async def test_answer_text_defaults_to_empty(client, mock_gateway):
    resp = await client.post("/api/v1/quiz/answer", json={"sessionHandle": "S1", "agentId": "A1"})
    assert resp.status_code == 200
    mock_gateway.submit_answer.assert_awaited_once_with("S1", "A1", "")


async def test_start_without_agent_is_invalid(client, mock_gateway):
    """A missing field is a 400 with the INVALID_REQUEST envelope."""
    resp = await client.post("/api/v1/quiz/start", json={})
    assert resp.status_code == 400
    body = resp.json()
    assert body["code"] == "INVALID_REQUEST"
    assert body["error"] == "Missing required field: agentId"
    assert "timestamp" in body
    mock_gateway.start_session.assert_not_awaited()


async def test_answer_with_empty_handle_is_invalid(client):
    resp = await client.post("/api/v1/quiz/answer", json={"sessionHandle": "", "agentId": "A1"})
    assert resp.status_code == 400
    assert "sessionHandle" in resp.json()["error"]


@pytest.mark.parametrize(
    ("path", "method", "error", "status", "code"),
    [
        ("/init", "ensure_agent", ProvisioningError("no corpus"), 502, "PROVISIONING_ERROR"),
        ("/start", "start_session", UpstreamError("Run failed: boom"), 502, "UPSTREAM_ERROR"),
    ],
)
async def test_gateway_errors_use_envelope(client, mock_gateway, path, method, error, status, code):
    getattr(mock_gateway, method).side_effect = error
    resp = await client.post(f"/api/v1/quiz{path}", json={"agentId": "A1"})
    assert resp.status_code == status
    assert resp.json()["code"] == code
    assert resp.json()["error"] == error.detail


async def test_unexpected_error_is_internal(client, mock_gateway):
    mock_gateway.ensure_agent.side_effect = KeyError("secret stack detail")
    resp = await client.post("/api/v1/quiz/init")
    assert resp.status_code == 500
    assert resp.json()["code"] == "INTERNAL_ERROR"
    assert "secret" not in resp.json()["error"]


# ---------------------------------------------------------------------------
# Speech endpoints
# ---------------------------------------------------------------------------


async def test_speak_returns_audio_bytes(client, mock_gateway):
    resp = await client.post("/api/v1/quiz/speak", json={"text": "Q1"})
    assert resp.status_code == 200
    assert resp.content == b"ID3-fake-mp3"
    assert resp.headers["content-type"] == "audio/mpeg"
    assert resp.headers["content-length"] == str(len(b"ID3-fake-mp3"))


async def test_transcribe_uploaded_file(client, mock_gateway):
    resp = await client.post(
        "/api/v1/quiz/transcribe",
        files={"file": ("answer.ogg", b"OggS-fake", "audio/ogg")},
    )
    assert resp.status_code == 200
    assert resp.json() == {"text": "reply"}
    mock_gateway.speech_to_text.assert_awaited_once_with(b"OggS-fake", filename="answer.ogg")


async def test_transcribe_without_file(client, mock_gateway):
    resp = await client.post("/api/v1/quiz/transcribe")
    assert resp.status_code == 400
    assert resp.json() == {
        "error": "No file provided",
        "code": "INVALID_REQUEST",
        "timestamp": resp.json()["timestamp"],
    }
    mock_gateway.speech_to_text.assert_not_awaited()


@pytest.fixture
async def openai_client(app):
    """Client whose gateway is a real ResponsesGateway over a mocked SDK."""
    sdk = MagicMock()
    sdk.audio.speech.create = AsyncMock()
    stt = AsyncMock(spec=BaseSTT)
    gateway = ResponsesGateway(
        client=sdk, stt=stt, settings=Settings(_env_file=None, openai_api_key="sk-test")
    )
    app.dependency_overrides[quiz.get_gateway] = lambda: gateway
    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c, sdk, stt


async def test_transcribe_empty_file_is_recognition_error(openai_client):
    client, _, stt = openai_client
    resp = await client.post("/api/v1/quiz/transcribe", files={"file": ("answer.wav", b"")})
    assert resp.status_code == 400
    assert resp.json()["code"] == "RECOGNITION_ERROR"
    stt.transcribe.assert_not_awaited()


async def test_speak_blank_text_is_synthesis_error(openai_client):
    client, sdk, _ = openai_client
    resp = await client.post("/api/v1/quiz/speak", json={"text": "  "})
    assert resp.status_code == 400
    assert resp.json() == {
        "error": "No text provided",
        "code": "SYNTHESIS_ERROR",
        "timestamp": resp.json()["timestamp"],
    }
    sdk.audio.speech.create.assert_not_awaited()

"""
OpenAI-compatible endpoint integration tests
"""

import json
import struct

import pytest
from httpx import ASGITransport, AsyncClient

from gemini_bridge.api.deps import get_gemini_client
from gemini_bridge.main import app
from gemini_bridge.providers.base import ProviderResponse


@pytest.fixture
def client_override(fake_client):
    app.dependency_overrides[get_gemini_client] = lambda: fake_client
    yield fake_client
    app.dependency_overrides = {}


async def _post(path, payload, headers=None):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        return await ac.post(path, json=payload, headers=headers or {"Authorization": "Bearer test-key"})


@pytest.mark.asyncio
async def test_chat_completion(client_override):
    client_override.generate_response = ProviderResponse(
        status_code=200,
        body={
            "candidates": [{"finishReason": "STOP", "content": {"parts": [{"text": "Hello!"}]}}],
            "usageMetadata": {"promptTokenCount": 2, "candidatesTokenCount": 3, "totalTokenCount": 5},
        },
    )
    response = await _post(
        "/v1/chat/completions",
        {"model": "gemini-2.5-flash", "messages": [{"role": "user", "content": "Hi"}]},
    )

    assert response.status_code == 200
    assert response.headers["access-control-allow-origin"] == "*"
    data = response.json()
    assert data["object"] == "chat.completion"
    assert data["choices"][0]["message"] == {"role": "assistant", "content": "Hello!"}
    assert data["usage"]["total_tokens"] == 5
    assert client_override.calls[0][1]["api_key"] == "test-key"


@pytest.mark.asyncio
async def test_chat_completion_without_v1_prefix(client_override):
    client_override.generate_response = ProviderResponse(
        status_code=200,
        body={"candidates": [{"finishReason": "STOP", "content": {"parts": [{"text": "ok"}]}}]},
    )
    response = await _post("/chat/completions", {"messages": [{"role": "user", "content": "Hi"}]})
    assert response.status_code == 200


@pytest.mark.asyncio
async def test_chat_completion_stream(client_override):
    client_override.stream_chunks = [
        b'data: {"candidates":[{"content":{"parts":[{"text":"Hel"}]}}]}\r\n\r\n'
        b'data: {"candidates":[{"content":{"parts":[{"te',
        b'xt":"lo"}]},"finishReason":"STOP"}],'
        b'"usageMetadata":{"promptTokenCount":1,"candidatesTokenCount":2,"totalTokenCount":3}}\r\n\r\n',
    ]
    response = await _post(
        "/v1/chat/completions",
        {
            "model": "gemini-2.5-flash",
            "stream": True,
            "stream_options": {"include_usage": True},
            "messages": [{"role": "user", "content": "Hi"}],
        },
    )

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/event-stream")
    frames = [frame for frame in response.text.split("\n\n") if frame]
    assert frames[-1] == "data: [DONE]"
    chunks = [json.loads(frame[len("data: "):]) for frame in frames[:-1]]
    assert chunks[0]["choices"][0]["delta"]["role"] == "assistant"
    assert "".join(c["choices"][0]["delta"].get("content") or "" for c in chunks) == "Hello"
    assert [c["choices"][0]["finish_reason"] for c in chunks].count("stop") == 1
    assert chunks[-1]["choices"][0]["finish_reason"] == "stop"
    assert chunks[-1]["usage"] == {"completion_tokens": 2, "prompt_tokens": 1, "total_tokens": 3}


@pytest.mark.asyncio
async def test_chat_completion_stream_upstream_error_passthrough(client_override):
    client_override.stream_status = ProviderResponse(
        status_code=400,
        headers={"content-type": "application/json"},
        body=b'{"error":{"code":400,"message":"API key not valid"}}',
    )
    response = await _post(
        "/v1/chat/completions",
        {"stream": True, "messages": [{"role": "user", "content": "Hi"}]},
    )
    assert response.status_code == 400
    assert response.json() == {"error": {"code": 400, "message": "API key not valid"}}
    assert response.headers["access-control-allow-origin"] == "*"


@pytest.mark.asyncio
async def test_upstream_error_passthrough(client_override):
    client_override.generate_response = ProviderResponse(
        status_code=429,
        headers={"content-type": "application/json", "x-goog-internal": "secret"},
        body={"error": {"code": 429, "status": "RESOURCE_EXHAUSTED"}},
    )
    response = await _post("/v1/chat/completions", {"messages": [{"role": "user", "content": "Hi"}]})
    assert response.status_code == 429
    assert response.json() == {"error": {"code": 429, "status": "RESOURCE_EXHAUSTED"}}
    assert "x-goog-internal" not in response.headers


@pytest.mark.asyncio
async def test_upstream_unreachable(client_override):
    client_override.generate_response = ProviderResponse(status_code=502, error="Request error: refused")
    response = await _post("/v1/chat/completions", {"messages": [{"role": "user", "content": "Hi"}]})
    assert response.status_code == 502
    assert response.json()["error"]["code"] == "upstream_unavailable"


@pytest.mark.asyncio
async def test_validation_error_is_400(client_override):
    response = await _post(
        "/v1/chat/completions",
        {"messages": [{"role": "user", "content": [{"type": "hologram"}]}]},
    )
    assert response.status_code == 400
    error = response.json()["error"]
    assert error["type"] == "invalid_request_error"
    assert "hologram" in error["message"]
    assert response.headers["access-control-allow-origin"] == "*"
    assert client_override.calls == []


@pytest.mark.asyncio
async def test_invalid_json_body_is_400(client_override):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        response = await ac.post(
            "/v1/chat/completions", content=b"{not json", headers={"Content-Type": "application/json"}
        )
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_audio_speech_unsupported_format(client_override, make_audio_response):
    client_override.generate_response = make_audio_response(bytes(100))
    response = await _post("/v1/audio/speech", {"input": "Hello", "voice": "Kore", "response_format": "aac"})

    assert response.status_code == 200
    assert response.headers["content-type"] == "audio/wav"
    assert "aac" in response.headers["x-warning"]
    body = response.content
    assert len(body) == 144
    assert body[:4] == b"RIFF"
    assert struct.unpack("<I", body[24:28])[0] == 24000


@pytest.mark.asyncio
async def test_audio_speech_pcm(client_override, make_audio_response):
    client_override.generate_response = make_audio_response(b"\x01\x02")
    response = await _post("/v1/audio/speech", {"input": "Hello", "voice": "Kore", "response_format": "pcm"})
    assert response.content == b"\x01\x02"
    assert response.headers["content-type"].startswith("audio/L16")
    assert "x-warning" not in response.headers


@pytest.mark.asyncio
async def test_embeddings(client_override):
    client_override.embed_response = ProviderResponse(status_code=200, body={"embeddings": [{"values": [1.0]}]})
    response = await _post("/v1/embeddings", {"model": "gemini-embedding-001", "input": "x"})
    assert response.status_code == 200
    assert response.json()["data"] == [{"object": "embedding", "index": 0, "embedding": [1.0]}]


@pytest.mark.asyncio
async def test_list_models(client_override):
    client_override.models_response = ProviderResponse(
        status_code=200, body={"models": [{"name": "models/gemini-2.5-flash"}]}
    )
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        response = await ac.get("/v1/models", headers={"Authorization": "Bearer k"})
    assert response.status_code == 200
    assert response.json()["data"][0]["id"] == "gemini-2.5-flash"


@pytest.mark.asyncio
async def test_duplicate_tool_call_ids_is_400(client_override):
    call = {"id": "A", "type": "function", "function": {"name": "f", "arguments": "{}"}}
    response = await _post(
        "/v1/chat/completions",
        {
            "messages": [
                {"role": "assistant", "content": None, "tool_calls": [call, call]},
                {"role": "tool", "tool_call_id": "A", "content": "{}"},
            ]
        },
    )
    assert response.status_code == 400
    assert response.json()["error"]["type"] == "invalid_request_error"
    assert client_override.calls == []


@pytest.mark.asyncio
async def test_uncaught_exception_is_generic_500(client_override):
    async def broken_generate_content(model, body, api_key):
        raise RuntimeError("secret internal detail")

    client_override.generate_content = broken_generate_content
    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        response = await ac.post(
            "/v1/chat/completions",
            json={"messages": [{"role": "user", "content": "Hi"}]},
            headers={"Authorization": "Bearer test-key"},
        )

    assert response.status_code == 500
    assert response.json() == {
        "error": {
            "message": "Internal server error",
            "type": "internal_error",
            "code": "internal_error",
        }
    }
    assert "secret internal detail" not in response.text
    assert response.headers["access-control-allow-origin"] == "*"

import json
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from gemini_bridge.providers.gemini_client import GeminiClient


class FakeStreamResponse:
    def __init__(self, status_code=200, chunks=(), body=b"", reason_phrase="OK"):
        self.status_code = status_code
        self.headers = {"content-type": "text/event-stream"}
        self.reason_phrase = reason_phrase
        self._chunks = list(chunks)
        self._body = body

    async def aread(self):
        return self._body

    async def aiter_bytes(self):
        for chunk in self._chunks:
            yield chunk

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False


def _mock_client_cls(mock_client_cls, mock_client):
    mock_client_cls.return_value.__aenter__.return_value = mock_client
    mock_client_cls.return_value.__aexit__.return_value = False


def test_prepare_headers_uses_x_goog_api_key():
    client = GeminiClient()
    headers = client._prepare_headers("secret")
    assert headers["x-goog-api-key"] == "secret"
    assert headers["x-goog-api-client"] == "genai-js/0.21.0"
    assert headers["Content-Type"] == "application/json"
    assert "Authorization" not in headers


def test_prepare_headers_without_key():
    headers = GeminiClient()._prepare_headers(None, json_body=False)
    assert "x-goog-api-key" not in headers
    assert "Content-Type" not in headers


def test_build_url():
    client = GeminiClient(base_url="https://example.test/")
    assert client._build_url("/models") == "https://example.test/v1beta/models"
    assert client._build_url("models") == "https://example.test/v1beta/models"


@pytest.mark.asyncio
async def test_generate_content_url_construction():
    client = GeminiClient(base_url="https://generativelanguage.googleapis.com")
    with patch("httpx.AsyncClient") as mock_client_cls:
        mock_client = AsyncMock()
        mock_client.request.return_value = MagicMock(
            status_code=200,
            headers={"content-type": "application/json"},
            json=lambda: {"candidates": []},
        )
        _mock_client_cls(mock_client_cls, mock_client)

        result = await client.generate_content("gemini-2.5-flash", {"contents": []}, "k")

        call_args = mock_client.request.call_args
        assert call_args.kwargs["method"] == "POST"
        assert (
            call_args.kwargs["url"]
            == "https://generativelanguage.googleapis.com/v1beta/models/gemini-2.5-flash:generateContent"
        )
        assert call_args.kwargs["json"] == {"contents": []}
        assert call_args.kwargs["headers"]["x-goog-api-key"] == "k"
        assert result.is_success
        assert result.body == {"candidates": []}


@pytest.mark.asyncio
async def test_batch_embed_contents_accepts_models_path():
    client = GeminiClient(base_url="https://generativelanguage.googleapis.com")
    with patch("httpx.AsyncClient") as mock_client_cls:
        mock_client = AsyncMock()
        mock_client.request.return_value = MagicMock(status_code=200, headers={}, json=lambda: {"embeddings": []})
        _mock_client_cls(mock_client_cls, mock_client)

        await client.batch_embed_contents("models/text-embedding-004", {"requests": []}, "k")

        assert (
            mock_client.request.call_args.kwargs["url"]
            == "https://generativelanguage.googleapis.com/v1beta/models/text-embedding-004:batchEmbedContents"
        )


@pytest.mark.asyncio
async def test_list_models_path():
    client = GeminiClient(base_url="https://generativelanguage.googleapis.com")
    with patch("httpx.AsyncClient") as mock_client_cls:
        mock_client = AsyncMock()
        mock_client.request.return_value = MagicMock(status_code=200, headers={}, json=lambda: {"models": []})
        _mock_client_cls(mock_client_cls, mock_client)

        await client.list_models("k")

        call_args = mock_client.request.call_args
        assert call_args.kwargs["method"] == "GET"
        assert call_args.kwargs["url"] == "https://generativelanguage.googleapis.com/v1beta/models"
        assert call_args.kwargs["json"] is None


@pytest.mark.asyncio
async def test_non_json_body_kept_as_text():
    client = GeminiClient()
    with patch("httpx.AsyncClient") as mock_client_cls:
        mock_client = AsyncMock()
        response = MagicMock(status_code=502, headers={"content-type": "text/html"}, text="<html>bad gateway</html>")
        response.json.side_effect = json.JSONDecodeError("Expecting value", "<html>", 0)
        mock_client.request.return_value = response
        _mock_client_cls(mock_client_cls, mock_client)

        result = await client.list_models("k")

        assert result.status_code == 502
        assert result.body == "<html>bad gateway</html>"
        assert result.content_type == "text/html"


@pytest.mark.asyncio
async def test_timeout_maps_to_504():
    client = GeminiClient()
    with patch("httpx.AsyncClient") as mock_client_cls:
        mock_client = AsyncMock()
        mock_client.request.side_effect = httpx.ReadTimeout("slow")
        _mock_client_cls(mock_client_cls, mock_client)

        result = await client.generate_content("gemini-2.5-flash", {}, "k")

        assert result.status_code == 504
        assert result.body is None
        assert "timeout" in result.error.lower()


@pytest.mark.asyncio
async def test_connection_error_maps_to_502():
    client = GeminiClient()
    with patch("httpx.AsyncClient") as mock_client_cls:
        mock_client = AsyncMock()
        mock_client.request.side_effect = httpx.ConnectError("refused")
        _mock_client_cls(mock_client_cls, mock_client)

        result = await client.generate_content("gemini-2.5-flash", {}, "k")

        assert result.status_code == 502
        assert result.error.startswith("Request error")


@pytest.mark.asyncio
async def test_stream_yields_status_then_chunks():
    client = GeminiClient(base_url="https://generativelanguage.googleapis.com")
    with patch("httpx.AsyncClient") as mock_client_cls:
        mock_client = MagicMock()
        mock_client.stream.return_value = FakeStreamResponse(chunks=[b"data: {}\n\n", b"data: {}\n\n"])
        _mock_client_cls(mock_client_cls, mock_client)

        items = [item async for item in client.stream_generate_content("gemini-2.5-flash", {}, "k")]

        assert items[0][0] == b""
        assert items[0][1].status_code == 200
        assert [chunk for chunk, _ in items[1:]] == [b"data: {}\n\n", b"data: {}\n\n"]
        assert (
            mock_client.stream.call_args.kwargs["url"]
            == "https://generativelanguage.googleapis.com/v1beta/models/gemini-2.5-flash:streamGenerateContent?alt=sse"
        )


@pytest.mark.asyncio
async def test_stream_error_status_carries_body():
    client = GeminiClient()
    with patch("httpx.AsyncClient") as mock_client_cls:
        mock_client = MagicMock()
        mock_client.stream.return_value = FakeStreamResponse(
            status_code=400, body=b'{"error":{"code":400}}', reason_phrase="Bad Request"
        )
        _mock_client_cls(mock_client_cls, mock_client)

        items = [item async for item in client.stream_generate_content("gemini-2.5-flash", {}, "k")]

        assert len(items) == 1
        _, response = items[0]
        assert response.status_code == 400
        assert response.body == b'{"error":{"code":400}}'
        assert response.error == "400 Bad Request"

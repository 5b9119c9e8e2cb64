"""
Test Configuration Module
"""

import base64
from typing import Any, Optional

import pytest

from gemini_bridge.providers.base import ProviderResponse


class FakeGeminiClient:
    """
    In-memory stand-in for GeminiClient

    Each call is recorded in `calls`; responses are taken from the attributes
    set by the test.
    """

    def __init__(self):
        self.calls: list[tuple[str, Any]] = []
        self.generate_response = ProviderResponse(status_code=200, body={"candidates": []})
        self.embed_response = ProviderResponse(status_code=200, body={"embeddings": []})
        self.models_response = ProviderResponse(status_code=200, body={"models": []})
        self.stream_status = ProviderResponse(status_code=200, headers={"content-type": "text/event-stream"})
        self.stream_chunks: list[bytes] = []

    async def generate_content(self, model: str, body: dict[str, Any], api_key: Optional[str]):
        self.calls.append(("generate_content", {"model": model, "body": body, "api_key": api_key}))
        return self.generate_response

    async def batch_embed_contents(self, model: str, body: dict[str, Any], api_key: Optional[str]):
        self.calls.append(("batch_embed_contents", {"model": model, "body": body, "api_key": api_key}))
        return self.embed_response

    async def list_models(self, api_key: Optional[str]):
        self.calls.append(("list_models", {"api_key": api_key}))
        return self.models_response

    async def stream_generate_content(self, model: str, body: dict[str, Any], api_key: Optional[str]):
        self.calls.append(("stream_generate_content", {"model": model, "body": body, "api_key": api_key}))
        yield b"", self.stream_status
        if not self.stream_status.is_success:
            return
        for chunk in self.stream_chunks:
            yield chunk, self.stream_status


def audio_response(pcm: bytes) -> ProviderResponse:
    """A generateContent reply carrying `pcm` as inline audio."""
    return ProviderResponse(
        status_code=200,
        body={
            "candidates": [
                {
                    "content": {
                        "parts": [
                            {
                                "inlineData": {
                                    "mimeType": "audio/L16;codec=pcm;rate=24000",
                                    "data": base64.b64encode(pcm).decode("ascii"),
                                }
                            }
                        ]
                    }
                }
            ]
        },
    )


@pytest.fixture
def fake_client() -> FakeGeminiClient:
    return FakeGeminiClient()


@pytest.fixture
def make_audio_response():
    return audio_response

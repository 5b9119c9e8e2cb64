"""
OpenAI-Compatible API

Chat completions, embeddings, speech and model listing backed by Gemini.
"""

import json
import logging
from typing import Any

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, Response, StreamingResponse

from gemini_bridge.api.deps import (
    ChatServiceDep,
    EmbeddingsServiceDep,
    ModelServiceDep,
    SpeechServiceDep,
    UpstreamApiKey,
)
from gemini_bridge.common.errors import ValidationError
from gemini_bridge.providers.base import ProviderResponse
from gemini_bridge.services.speech_service import is_speech_request

logger = logging.getLogger(__name__)

router = APIRouter(tags=["OpenAI Compatible"])

# Upstream headers worth keeping on the way back to the client
_FORWARDED_HEADERS = {"x-warning"}


async def _read_json(request: Request) -> Any:
    try:
        return await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise ValidationError("Request body is not valid JSON") from e


def to_http_response(response: ProviderResponse) -> Response:
    """
    Render a service result (or an upstream failure, passed through as-is)
    """
    if response.body is None and response.error:
        return JSONResponse(
            status_code=response.status_code,
            content={
                "error": {
                    "message": response.error,
                    "type": "upstream_error",
                    "code": "upstream_unavailable",
                }
            },
        )

    headers = {
        key: value for key, value in response.headers.items() if key.lower() in _FORWARDED_HEADERS
    }
    content = response.body
    if isinstance(content, (dict, list)):
        return JSONResponse(content=content, status_code=response.status_code, headers=headers)
    return Response(
        content=content if content is not None else b"",
        status_code=response.status_code,
        headers=headers,
        media_type=response.content_type,
    )


@router.post("/chat/completions")
async def chat_completions(
    request: Request,
    api_key: UpstreamApiKey,
    service: ChatServiceDep,
):
    """
    OpenAI Chat Completions API
    """
    body = await _read_json(request)
    if isinstance(body, dict) and body.get("stream") and not is_speech_request(body):
        initial_response, stream_gen = await service.create_completion_stream(body, api_key)
        if stream_gen is None:
            return to_http_response(initial_response)
        return StreamingResponse(stream_gen, media_type="text/event-stream")

    return to_http_response(await service.create_completion(body, api_key))


@router.post("/embeddings")
async def embeddings(
    request: Request,
    api_key: UpstreamApiKey,
    service: EmbeddingsServiceDep,
):
    """
    OpenAI Embeddings API
    """
    body = await _read_json(request)
    return to_http_response(await service.create_embeddings(body, api_key))


@router.post("/audio/speech")
async def audio_speech(
    request: Request,
    api_key: UpstreamApiKey,
    service: SpeechServiceDep,
):
    """
    OpenAI Speech API

    Returns raw audio; unsupported codecs fall back to WAV with an X-Warning header.
    """
    body = await _read_json(request)
    return to_http_response(await service.create_speech(body, api_key))


@router.get("/models")
async def list_models(
    api_key: UpstreamApiKey,
    service: ModelServiceDep,
):
    """
    OpenAI Models API (List)
    """
    return to_http_response(await service.list_models(api_key))

"""
Chat Completion Service

Runs an OpenAI chat completion request against Gemini: adapts the request,
calls upstream, and assembles (or stream-transcodes) the reply.
"""

import logging
from typing import Any, AsyncGenerator, Optional

from gemini_bridge.common.utils import generate_id
from gemini_bridge.providers.base import ProviderResponse
from gemini_bridge.providers.gemini_client import GeminiClient
from gemini_bridge.services.speech_service import SpeechService, is_speech_request
from gemini_bridge.translation.request import adapt_chat_request
from gemini_bridge.translation.response import assemble_completion
from gemini_bridge.translation.stream import transcode_stream

logger = logging.getLogger(__name__)


def new_completion_id() -> str:
    return f"chatcmpl-{generate_id()}"


def _is_generate_response(body: Any) -> bool:
    return isinstance(body, dict) and ("candidates" in body or "promptFeedback" in body)


class ChatService:
    """
    Chat completion orchestration

    No state is kept between requests; the streaming state lives in the
    generator returned by create_completion_stream.
    """

    def __init__(self, client: GeminiClient):
        self.client = client

    async def create_completion(self, req: dict[str, Any], api_key: Optional[str]) -> ProviderResponse:
        """
        Non-streaming chat completion

        Returns:
            ProviderResponse: 200 with a chat.completion body, or the upstream
            response unchanged when upstream failed or returned something that
            is not a generation result
        """
        if is_speech_request(req):
            return await SpeechService(self.client).create_chat_speech(req, api_key)

        upstream = await adapt_chat_request(req)
        response = await self.client.generate_content(upstream.model, upstream.body, api_key)
        if not response.is_success:
            logger.warning("Upstream generateContent failed: status=%s", response.status_code)
            return response

        if not _is_generate_response(response.body):
            logger.error("Error parsing response: invalid completion object %r", response.body)
            return response

        completion = assemble_completion(response.body, upstream.model, new_completion_id())
        return ProviderResponse(
            status_code=200,
            headers={"Content-Type": "application/json"},
            body=completion,
        )

    async def create_completion_stream(
        self,
        req: dict[str, Any],
        api_key: Optional[str],
    ) -> tuple[ProviderResponse, Optional[AsyncGenerator[str, None]]]:
        """
        Streaming chat completion

        Returns:
            tuple: (initial upstream response, SSE line generator). The
            generator is None when upstream rejected the request; the initial
            response then carries the error body.
        """
        upstream = await adapt_chat_request(req)
        stream = self.client.stream_generate_content(upstream.model, upstream.body, api_key)
        _, initial = await anext(stream)
        if not initial.is_success:
            await stream.aclose()
            logger.warning("Upstream streamGenerateContent failed: status=%s", initial.status_code)
            return initial, None

        async def upstream_bytes() -> AsyncGenerator[bytes, None]:
            try:
                async for chunk, _ in stream:
                    yield chunk
            finally:
                await stream.aclose()

        lines = transcode_stream(
            upstream_bytes(),
            completion_id=new_completion_id(),
            model=upstream.model,
            include_usage=upstream.include_usage,
        )
        return initial, lines

"""
Google Gemini Native API Client

Issues generateContent, streamGenerateContent, batchEmbedContents and
model listing calls against the Generative Language API.
"""

import json
import logging
from typing import Any, AsyncGenerator, Optional

import httpx

from gemini_bridge.config import get_settings
from gemini_bridge.providers.base import ProviderResponse

logger = logging.getLogger(__name__)


class GeminiClient:
    """Google Gemini native API client."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_version: Optional[str] = None,
        timeout: Optional[int] = None,
    ):
        settings = get_settings()
        self.base_url = (base_url or settings.GEMINI_BASE_URL).rstrip("/")
        self.api_version = api_version or settings.GEMINI_API_VERSION
        self.timeout = timeout or settings.HTTP_TIMEOUT
        self.api_client = settings.GEMINI_API_CLIENT

    def _prepare_headers(self, api_key: Optional[str], json_body: bool = True) -> dict[str, str]:
        headers = {"x-goog-api-client": self.api_client}
        if api_key:
            headers["x-goog-api-key"] = api_key
        if json_body:
            headers["Content-Type"] = "application/json"
        return headers

    def _build_url(self, path: str) -> str:
        cleaned_path = path if path.startswith("/") else f"/{path}"
        return f"{self.base_url}/{self.api_version}{cleaned_path}"

    @staticmethod
    def _model_path(model: str) -> str:
        return model if model.startswith("models/") else f"models/{model}"

    @staticmethod
    def _parse_body(response: httpx.Response) -> Any:
        try:
            return response.json()
        except json.JSONDecodeError:
            return response.text

    async def _request(
        self,
        method: str,
        path: str,
        api_key: Optional[str],
        body: Optional[dict[str, Any]] = None,
    ) -> ProviderResponse:
        url = self._build_url(path)
        headers = self._prepare_headers(api_key, json_body=body is not None)

        logger.debug(
            "Gemini Request: method=%s url=%s body=%s",
            method,
            url,
            json.dumps(body, ensure_ascii=False) if body is not None else None,
        )

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.request(
                    method=method,
                    url=url,
                    headers=headers,
                    json=body,
                )
                return ProviderResponse(
                    status_code=response.status_code,
                    headers=dict(response.headers),
                    body=self._parse_body(response),
                )

        except httpx.TimeoutException as e:
            return ProviderResponse(status_code=504, error=f"Request timeout: {str(e)}")

        except httpx.RequestError as e:
            return ProviderResponse(status_code=502, error=f"Request error: {str(e)}")

    async def generate_content(
        self,
        model: str,
        body: dict[str, Any],
        api_key: Optional[str],
    ) -> ProviderResponse:
        return await self._request(
            "POST", f"/{self._model_path(model)}:generateContent", api_key, body
        )

    async def batch_embed_contents(
        self,
        model: str,
        body: dict[str, Any],
        api_key: Optional[str],
    ) -> ProviderResponse:
        return await self._request(
            "POST", f"/{self._model_path(model)}:batchEmbedContents", api_key, body
        )

    async def list_models(self, api_key: Optional[str]) -> ProviderResponse:
        return await self._request("GET", "/models", api_key)

    async def stream_generate_content(
        self,
        model: str,
        body: dict[str, Any],
        api_key: Optional[str],
    ) -> AsyncGenerator[tuple[bytes, ProviderResponse], None]:
        """
        Stream a generation as raw SSE bytes

        The first item is always `(b"", response)` once upstream headers are
        known, so callers can inspect the status before committing to a
        streaming reply. For a non-2xx status that first item is also the last
        and carries the full error body in `response.body`.

        Yields:
            tuple[bytes, ProviderResponse]: (Data chunk, Response info)
        """
        url = self._build_url(f"/{self._model_path(model)}:streamGenerateContent?alt=sse")
        headers = self._prepare_headers(api_key)
        started = False

        logger.debug(
            "Gemini Stream Request: url=%s body=%s",
            url,
            json.dumps(body, ensure_ascii=False),
        )

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                async with client.stream(
                    method="POST",
                    url=url,
                    headers=headers,
                    json=body,
                ) as response:
                    provider_response = ProviderResponse(
                        status_code=response.status_code,
                        headers=dict(response.headers),
                    )

                    if response.status_code >= 400:
                        body_bytes = await response.aread()
                        provider_response.body = body_bytes
                        reason = response.reason_phrase or "Upstream error"
                        provider_response.error = f"{response.status_code} {reason}"
                        yield b"", provider_response
                        return

                    yield b"", provider_response
                    started = True
                    async for chunk in response.aiter_bytes():
                        yield chunk, provider_response

        except httpx.TimeoutException as e:
            # Once the stream has started, an upstream abort tears the pipeline down.
            if started:
                raise
            yield b"", ProviderResponse(status_code=504, error=f"Request timeout: {str(e)}")

        except httpx.RequestError as e:
            if started:
                raise
            yield b"", ProviderResponse(status_code=502, error=f"Request error: {str(e)}")

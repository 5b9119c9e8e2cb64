"""
Embeddings Service

OpenAI /embeddings on top of Gemini batchEmbedContents.
"""

import logging
from typing import Any, Optional

from gemini_bridge.common.errors import ValidationError
from gemini_bridge.config import get_settings
from gemini_bridge.providers.base import ProviderResponse
from gemini_bridge.providers.gemini_client import GeminiClient

logger = logging.getLogger(__name__)


def resolve_embeddings_model(requested: str) -> tuple[str, str]:
    """
    Returns:
        tuple[str, str]: (upstream "models/..." path, model name reported back)
    """
    if requested.startswith("models/"):
        return requested, requested
    if not requested.startswith("gemini-"):
        requested = get_settings().DEFAULT_EMBEDDINGS_MODEL
    return f"models/{requested}", requested


class EmbeddingsService:
    def __init__(self, client: GeminiClient):
        self.client = client

    async def create_embeddings(self, req: Any, api_key: Optional[str]) -> ProviderResponse:
        if not isinstance(req, dict) or not isinstance(req.get("model"), str):
            raise ValidationError("model is not specified")

        upstream_model, reported_model = resolve_embeddings_model(req["model"])
        inputs = req.get("input")
        if not isinstance(inputs, list):
            inputs = [inputs]
        if not inputs or not all(isinstance(text, str) for text in inputs):
            raise ValidationError("input must be a string or an array of strings")

        requests = []
        for text in inputs:
            item: dict[str, Any] = {"model": upstream_model, "content": {"parts": [{"text": text}]}}
            if req.get("dimensions") is not None:
                item["outputDimensionality"] = req["dimensions"]
            requests.append(item)

        response = await self.client.batch_embed_contents(upstream_model, {"requests": requests}, api_key)
        if not response.is_success or not isinstance(response.body, dict):
            return response

        embeddings = response.body.get("embeddings") or []
        return ProviderResponse(
            status_code=200,
            headers={"Content-Type": "application/json"},
            body={
                "object": "list",
                "data": [
                    {"object": "embedding", "index": index, "embedding": item.get("values")}
                    for index, item in enumerate(embeddings)
                ],
                "model": reported_model,
            },
        )

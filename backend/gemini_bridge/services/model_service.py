"""
Model Listing Service
"""

from typing import Optional

from gemini_bridge.common.utils import strip_prefix
from gemini_bridge.providers.base import ProviderResponse
from gemini_bridge.providers.gemini_client import GeminiClient


class ModelService:
    def __init__(self, client: GeminiClient):
        self.client = client

    async def list_models(self, api_key: Optional[str]) -> ProviderResponse:
        """
        Upstream model list in OpenAI shape, "models/" prefix stripped
        """
        response = await self.client.list_models(api_key)
        if not response.is_success or not isinstance(response.body, dict):
            return response

        return ProviderResponse(
            status_code=200,
            headers={"Content-Type": "application/json"},
            body={
                "object": "list",
                "data": [
                    {
                        "id": strip_prefix(model.get("name", ""), "models/"),
                        "object": "model",
                        "created": 0,
                        "owned_by": "",
                    }
                    for model in response.body.get("models") or []
                ],
            },
        )

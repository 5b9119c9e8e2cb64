"""
API Dependency Injection Module

Provides the dependencies used by the FastAPI routes.
"""

from functools import lru_cache
from typing import Annotated, Optional

from fastapi import Depends, Header

from gemini_bridge.config import get_settings
from gemini_bridge.providers.gemini_client import GeminiClient
from gemini_bridge.services.chat_service import ChatService
from gemini_bridge.services.embeddings_service import EmbeddingsService
from gemini_bridge.services.model_service import ModelService
from gemini_bridge.services.speech_service import SpeechService


@lru_cache()
def get_gemini_client() -> GeminiClient:
    """Shared upstream client (holds configuration only, no connections)."""
    return GeminiClient()


GeminiClientDep = Annotated[GeminiClient, Depends(get_gemini_client)]


# ============ Service Dependencies ============

def get_chat_service(client: GeminiClientDep) -> ChatService:
    return ChatService(client)


def get_embeddings_service(client: GeminiClientDep) -> EmbeddingsService:
    return EmbeddingsService(client)


def get_model_service(client: GeminiClientDep) -> ModelService:
    return ModelService(client)


def get_speech_service(client: GeminiClientDep) -> SpeechService:
    return SpeechService(client)


# ============ Upstream Credentials ============

def _extract_bearer_token(authorization: str | None) -> str | None:
    if not authorization:
        return None
    if authorization.lower().startswith("bearer "):
        return authorization[7:].strip() or None
    return authorization.strip() or None


async def get_upstream_api_key(
    authorization: str = Header(None, description="Bearer token, forwarded as the Gemini API key"),
) -> Optional[str]:
    """
    The client's bearer token is the upstream API key; GEMINI_API_KEY is used
    when no token is sent.
    """
    return _extract_bearer_token(authorization) or get_settings().GEMINI_API_KEY


# Dependency type aliases
ChatServiceDep = Annotated[ChatService, Depends(get_chat_service)]
EmbeddingsServiceDep = Annotated[EmbeddingsService, Depends(get_embeddings_service)]
ModelServiceDep = Annotated[ModelService, Depends(get_model_service)]
SpeechServiceDep = Annotated[SpeechService, Depends(get_speech_service)]
UpstreamApiKey = Annotated[Optional[str], Depends(get_upstream_api_key)]

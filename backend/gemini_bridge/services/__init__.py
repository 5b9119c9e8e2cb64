"""
Service Layer Module Initialization
"""

from gemini_bridge.services.chat_service import ChatService
from gemini_bridge.services.embeddings_service import EmbeddingsService
from gemini_bridge.services.model_service import ModelService
from gemini_bridge.services.speech_service import SpeechService

__all__ = [
    "ChatService",
    "EmbeddingsService",
    "ModelService",
    "SpeechService",
]

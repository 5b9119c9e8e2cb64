"""
API Router Module Initialization
"""

from gemini_bridge.api.openai import router as openai_router

__all__ = [
    "openai_router",
]

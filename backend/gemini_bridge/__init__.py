"""
Gemini Bridge

OpenAI-compatible API surface translated onto the Google Generative Language API.
"""

__version__ = "0.1.0"

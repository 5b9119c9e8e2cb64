"""
Configuration Management Module

Configures application parameters via environment variables or .env file.
"""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application Configuration Class

    All configuration items can be overridden by environment variables, with names matching fields (uppercase).
    """

    # Application Config
    APP_NAME: str = "Gemini Bridge"
    DEBUG: bool = False
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    # Upstream Config
    GEMINI_BASE_URL: str = "https://generativelanguage.googleapis.com"
    GEMINI_API_VERSION: str = "v1beta"
    # Sent as x-goog-api-client on every upstream request
    GEMINI_API_CLIENT: str = "genai-js/0.21.0"
    # Used only when the client does not send a bearer token
    GEMINI_API_KEY: str | None = None

    # Model Defaults
    DEFAULT_CHAT_MODEL: str = "gemini-2.5-flash"
    DEFAULT_EMBEDDINGS_MODEL: str = "text-embedding-004"
    TTS_MODEL: str = "gemini-2.5-flash-preview-tts"

    # HTTP Client Config
    # Upstream request timeout (seconds)
    HTTP_TIMEOUT: int = 600
    # Timeout for fetching remote images referenced by chat messages (seconds)
    MEDIA_FETCH_TIMEOUT: int = 30

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
    )


@lru_cache()
def get_settings() -> Settings:
    """
    Get application configuration (Singleton)

    Uses lru_cache to ensure configuration is loaded only once.

    Returns:
        Settings: Application configuration instance
    """
    return Settings()

"""
Speech/Audio Adapter

Text-to-speech through Gemini's audio output modality. Gemini returns raw
PCM, which is wrapped in a WAV container or returned as-is; lossy codecs
cannot be produced here and fall back to WAV with an advisory header.
"""

import base64
import binascii
import logging
import time
from typing import Any, Optional

from gemini_bridge.common.errors import UpstreamError, ValidationError
from gemini_bridge.common.utils import generate_id
from gemini_bridge.common.wav import PCM_CONTENT_TYPE, WAV_CONTENT_TYPE, pcm_to_wav
from gemini_bridge.config import get_settings
from gemini_bridge.providers.base import ProviderResponse
from gemini_bridge.providers.gemini_client import GeminiClient
from gemini_bridge.translation.content import TextPart, transform_content

logger = logging.getLogger(__name__)

DEFAULT_SPEECH_FORMAT = "wav"
# Format label used by chat completions audio when PCM is returned unwrapped
CHAT_PCM_FORMAT = "pcm_s16le_24000_mono"


def is_speech_request(req: dict[str, Any]) -> bool:
    modalities = req.get("modalities")
    return isinstance(modalities, list) and "audio" in modalities


def build_speech_body(text: str, voice: str) -> dict[str, Any]:
    return {
        "contents": [{"parts": [{"text": text}]}],
        "generationConfig": {
            "responseModalities": ["AUDIO"],
            "speechConfig": {
                "voiceConfig": {
                    "prebuiltVoiceConfig": {"voiceName": voice},
                },
            },
        },
    }


def extract_audio(body: Any) -> Optional[bytes]:
    """Return the PCM bytes of the first inline payload of the first candidate."""
    if not isinstance(body, dict):
        return None
    candidates = body.get("candidates") or []
    if not candidates:
        return None
    parts = (candidates[0].get("content") or {}).get("parts") or []
    for part in parts:
        data = (part.get("inlineData") or {}).get("data")
        if data:
            try:
                return base64.b64decode(data)
            except (binascii.Error, ValueError):
                logger.error("Upstream audio payload is not valid base64")
                return None
    return None


class SpeechService:
    """
    Speech synthesis
    """

    def __init__(self, client: GeminiClient):
        self.client = client
        self.model = get_settings().TTS_MODEL

    async def _synthesize(
        self, text: str, voice: str, api_key: Optional[str]
    ) -> tuple[Optional[bytes], ProviderResponse]:
        response = await self.client.generate_content(self.model, build_speech_body(text, voice), api_key)
        if not response.is_success:
            logger.error("Gemini TTS API Error: status=%s body=%s", response.status_code, response.body)
            return None, response

        pcm = extract_audio(response.body)
        if pcm is None:
            logger.error("Could not extract audio data from Gemini response: %s", response.body)
            raise UpstreamError("Failed to extract audio data from Gemini response.")
        return pcm, response

    async def create_speech(self, req: Any, api_key: Optional[str]) -> ProviderResponse:
        """
        OpenAI /audio/speech

        Returns:
            ProviderResponse: Raw audio bytes with Content-Type (and X-Warning on
            format fallback), or the failed upstream response
        """
        if not isinstance(req, dict):
            raise ValidationError("Request body must be a JSON object")
        text = req.get("input")
        voice = req.get("voice")
        if not text or not isinstance(text, str):
            raise ValidationError("`input` field is required.")
        if not voice or not isinstance(voice, str):
            raise ValidationError("`voice` field is required.")

        pcm, upstream = await self._synthesize(text, voice, api_key)
        if pcm is None:
            return upstream

        requested = req.get("response_format") or DEFAULT_SPEECH_FORMAT
        headers: dict[str, str] = {}
        if str(requested).lower() == "pcm":
            audio = pcm
            headers["Content-Type"] = PCM_CONTENT_TYPE
        else:
            audio = pcm_to_wav(pcm)
            headers["Content-Type"] = WAV_CONTENT_TYPE
            if str(requested).lower() != "wav":
                logger.info("Unsupported speech format %s, falling back to wav", requested)
                headers["X-Warning"] = f'Unsupported format "{requested}" requested, fallback to "wav".'

        return ProviderResponse(status_code=200, headers=headers, body=audio)

    async def create_chat_speech(self, req: dict[str, Any], api_key: Optional[str]) -> ProviderResponse:
        """
        Chat completion with `"audio"` in modalities

        Speaks the text of the last message and returns a chat.completion whose
        message carries the audio as base64.
        """
        messages = req.get("messages")
        if not isinstance(messages, list) or not messages:
            raise ValidationError("`messages` array is required for TTS.")
        audio_options = req.get("audio") or {}
        voice = audio_options.get("voice") if isinstance(audio_options, dict) else None
        if not voice:
            raise ValidationError("`audio.voice` is required for TTS.")

        last = messages[-1] if isinstance(messages[-1], dict) else {}
        parts = await transform_content(last.get("content"))
        text = " ".join(part.text for part in parts if isinstance(part, TextPart) and part.text)
        if not text:
            raise ValidationError("A non-empty text message is required for TTS.")

        pcm, upstream = await self._synthesize(text, voice, api_key)
        if pcm is None:
            return upstream

        if str(audio_options.get("format") or DEFAULT_SPEECH_FORMAT).lower() == "wav":
            audio_format, audio = "wav", pcm_to_wav(pcm)
        else:
            audio_format, audio = CHAT_PCM_FORMAT, pcm

        completion = {
            "id": f"chatcmpl-tts-{generate_id()}",
            "object": "chat.completion",
            "created": int(time.time()),
            "model": req.get("model"),
            "choices": [
                {
                    "index": 0,
                    "message": {
                        "role": "assistant",
                        "content": None,
                        "audio": {
                            "format": audio_format,
                            "data": base64.b64encode(audio).decode("ascii"),
                            "transcript": text,
                        },
                    },
                    "logprobs": None,
                    "finish_reason": "stop",
                }
            ],
            "usage": None,
        }
        return ProviderResponse(
            status_code=200,
            headers={"Content-Type": "application/json"},
            body=completion,
        )

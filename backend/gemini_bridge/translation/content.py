"""
Request Content Parts

Tagged request-side parts and the decoding of OpenAI message content into
them. Each part renders itself into the upstream `parts[]` shape.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional, Union

from gemini_bridge.common.errors import ValidationError
from gemini_bridge.translation.media import load_file_data, load_image
from gemini_bridge.translation.parts import INLINE_IMAGE_RE, NON_STREAM_SEPARATOR

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TextPart:
    text: str

    def to_upstream(self) -> dict[str, Any]:
        return {"text": self.text}


@dataclass(frozen=True)
class InlineDataPart:
    mime_type: str
    data: str

    def to_upstream(self) -> dict[str, Any]:
        return {"inlineData": {"mimeType": self.mime_type, "data": self.data}}


@dataclass(frozen=True)
class FunctionCallPart:
    name: str
    args: Any
    id: Optional[str] = None

    def to_upstream(self) -> dict[str, Any]:
        call: dict[str, Any] = {"name": self.name, "args": self.args}
        if self.id is not None:
            call["id"] = self.id
        return {"functionCall": call}


@dataclass(frozen=True)
class FunctionResponsePart:
    name: str
    response: dict[str, Any]
    id: Optional[str] = None

    def to_upstream(self) -> dict[str, Any]:
        result: dict[str, Any] = {"name": self.name, "response": self.response}
        if self.id is not None:
            result["id"] = self.id
        return {"functionResponse": result}


ContentPart = Union[TextPart, InlineDataPart, FunctionCallPart, FunctionResponsePart]


def upstream_call_id(tool_call_id: str) -> Optional[str]:
    """Ids synthesized on the way out (call_...) are not sent back upstream."""
    if tool_call_id.startswith("call_"):
        return None
    return tool_call_id


def _trim_separator(text: str, leading: bool, trailing: bool) -> str:
    if leading and text.startswith(NON_STREAM_SEPARATOR):
        text = text[len(NON_STREAM_SEPARATOR):]
    if trailing and text.endswith(NON_STREAM_SEPARATOR):
        text = text[: -len(NON_STREAM_SEPARATOR)]
    return text


def decode_inline_images(text: str) -> list[ContentPart]:
    """
    Split assistant text on embedded `![..](data:<mime>;base64,<data>)` images

    Inverse of parts.inline_image_markdown: each image becomes an InlineDataPart
    with the mime type and payload unchanged; the separators the non-stream
    assembler placed around an image are removed from the neighbouring text.
    """
    parts: list[ContentPart] = []
    pos = 0
    for match in INLINE_IMAGE_RE.finditer(text):
        before = _trim_separator(text[pos:match.start()], leading=pos > 0, trailing=True)
        if before.strip():
            parts.append(TextPart(before))
        parts.append(InlineDataPart(match.group("mime_type"), match.group("data")))
        pos = match.end()
    if pos == 0:
        return [TextPart(text)]
    rest = _trim_separator(text[pos:], leading=True, trailing=False)
    if rest.strip():
        parts.append(TextPart(rest))
    return parts


async def transform_content(content: Any, decode_images: bool = False) -> list[ContentPart]:
    """
    Decode OpenAI message content (string or list of typed items)

    Args:
        content: Message `content` value
        decode_images: Re-parse embedded inline-image markdown in text (assistant turns)

    Returns:
        list[ContentPart]: Parts in content order

    Raises:
        ValidationError: Unknown item type or malformed item
    """
    if isinstance(content, str):
        return decode_inline_images(content) if decode_images else [TextPart(content)]
    if not isinstance(content, list):
        raise ValidationError("Message content must be a string or an array of content parts")

    parts: list[ContentPart] = []
    for item in content:
        if not isinstance(item, dict):
            raise ValidationError("Content parts must be objects")
        item_type = item.get("type")
        if item_type in ("text", "input_text"):
            text = item.get("text")
            if not isinstance(text, str):
                raise ValidationError(f'"{item_type}" content part requires a "text" string')
            parts.extend(decode_inline_images(text) if decode_images else [TextPart(text)])
        elif item_type == "image_url":
            image_url = item.get("image_url")
            url = image_url.get("url") if isinstance(image_url, dict) else image_url
            if not isinstance(url, str):
                raise ValidationError('"image_url" content part requires a url')
            # Remote images are fetched one at a time, in content order.
            mime_type, data = await load_image(url)
            parts.append(InlineDataPart(mime_type, data))
        elif item_type == "input_audio":
            audio = item.get("input_audio") or {}
            if not audio.get("format") or not audio.get("data"):
                raise ValidationError('"input_audio" content part requires "format" and "data"')
            parts.append(InlineDataPart(f"audio/{audio['format']}", audio["data"]))
        elif item_type in ("file", "input_file"):
            source = item.get("file") if item_type == "file" else item
            file_data = source.get("file_data") if isinstance(source, dict) else None
            if not isinstance(file_data, str):
                raise ValidationError(f'"{item_type}" content part requires "file_data"')
            mime_type, data = load_file_data(file_data)
            parts.append(InlineDataPart(mime_type, data))
        else:
            raise ValidationError(f'Unknown "content" item type: "{item_type}"')

    if content and all(item.get("type") == "image_url" for item in content):
        parts.append(TextPart(""))
    return parts

"""
Part Classifier

Maps Gemini response parts onto OpenAI message fields. Both the streaming
delta synthesizer and the non-stream assembler go through this module, so a
given upstream part always lands in the same outbound field.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Optional, Union

from gemini_bridge.common.utils import generate_id

logger = logging.getLogger(__name__)

# Joins content pieces of one candidate in non-stream responses.
NON_STREAM_SEPARATOR = "\n\n|>"
# Streaming deltas concatenate the pieces of one event directly.
STREAM_SEPARATOR = ""

INLINE_IMAGE_TAG = "image"

INLINE_IMAGE_RE = re.compile(
    r"!\[[^\]\n]*\]\(data:(?P<mime_type>[^;,()\s]+);base64,(?P<data>[A-Za-z0-9+/=_-]*)\)"
)

_FINISH_REASONS = {
    "STOP": "stop",
    "MAX_TOKENS": "length",
    "SAFETY": "content_filter",
    "RECITATION": "content_filter",
}

# Part keys that carry no content of their own.
_PART_METADATA_KEYS = {"thought", "thoughtSignature", "videoMetadata", "partMetadata"}


@dataclass(frozen=True)
class TextFragment:
    text: str


@dataclass(frozen=True)
class ReasoningFragment:
    text: str


@dataclass(frozen=True)
class ToolCallFragment:
    id: str
    name: str
    arguments: str

    def to_openai(self, index: Optional[int] = None) -> dict[str, Any]:
        call: dict[str, Any] = {}
        if index is not None:
            call["index"] = index
        call.update(
            {
                "id": self.id,
                "type": "function",
                "function": {"name": self.name, "arguments": self.arguments},
            }
        )
        return call


@dataclass(frozen=True)
class UnrecognizedFragment:
    keys: tuple[str, ...]


Fragment = Union[TextFragment, ReasoningFragment, ToolCallFragment, UnrecognizedFragment]


def inline_image_markdown(mime_type: str, data: str) -> str:
    """Render inline binary as a markdown image so it survives as plain text."""
    return f"![{INLINE_IMAGE_TAG}](data:{mime_type};base64,{data})"


def classify_part(part: dict[str, Any]) -> list[Fragment]:
    """
    Classify one upstream part

    Returns an empty list for parts without content (e.g. an empty text part
    carrying only a thought signature).
    """
    if "functionCall" in part:
        call = part["functionCall"] or {}
        return [
            ToolCallFragment(
                id=call.get("id") or f"call_{generate_id()}",
                name=call.get("name") or "",
                arguments=json.dumps(call.get("args") or {}, ensure_ascii=False),
            )
        ]

    if "inlineData" in part:
        inline = part["inlineData"] or {}
        return [TextFragment(inline_image_markdown(inline.get("mimeType", ""), inline.get("data", "")))]

    if "text" in part:
        text = part.get("text") or ""
        if not text:
            return []
        if part.get("thought"):
            return [ReasoningFragment(text)]
        return [TextFragment(text)]

    if "executableCode" in part:
        code = part["executableCode"] or {}
        language = (code.get("language") or "").lower()
        if language == "language_unspecified":
            language = ""
        return [TextFragment(f"```{language}\n{code.get('code', '')}\n```")]

    if "codeExecutionResult" in part:
        result = part["codeExecutionResult"] or {}
        return [TextFragment(f"```output\n{result.get('output', '')}\n```")]

    keys = tuple(sorted(k for k in part if k not in _PART_METADATA_KEYS))
    if not keys:
        return []
    logger.warning("Unrecognized upstream part with keys %s", ", ".join(keys))
    return [UnrecognizedFragment(keys)]


@dataclass
class CandidateContent:
    """
    Classified content of one candidate (or of one streamed event for a candidate)
    """

    index: int = 0
    texts: list[str] = field(default_factory=list)
    reasoning: list[str] = field(default_factory=list)
    tool_calls: list[ToolCallFragment] = field(default_factory=list)
    grounding_metadata: Optional[dict[str, Any]] = None
    url_context_metadata: Optional[dict[str, Any]] = None
    finish_reason: Optional[str] = None

    def content(self, separator: str) -> Optional[str]:
        return separator.join(self.texts) or None

    def reasoning_content(self) -> Optional[str]:
        return "".join(self.reasoning) or None

    def message_fields(self, separator: str, tool_call_offset: Optional[int] = None) -> dict[str, Any]:
        """
        Build the populated message/delta fields

        `content` is always included (None when empty); the other fields only
        when they carry something. With `tool_call_offset`, tool calls get an
        OpenAI streaming `index` starting at the offset.
        """
        fields: dict[str, Any] = {"content": self.content(separator)}
        if self.tool_calls:
            fields["tool_calls"] = [
                call.to_openai(None if tool_call_offset is None else tool_call_offset + i)
                for i, call in enumerate(self.tool_calls)
            ]
        reasoning = self.reasoning_content()
        if reasoning is not None:
            fields["reasoning_content"] = reasoning
        if self.grounding_metadata:
            fields["grounding_metadata"] = self.grounding_metadata
        if self.url_context_metadata:
            fields["url_context_metadata"] = self.url_context_metadata
        return fields


def classify_candidate(candidate: dict[str, Any]) -> CandidateContent:
    result = CandidateContent(
        index=candidate.get("index") or 0,
        grounding_metadata=candidate.get("groundingMetadata"),
        url_context_metadata=candidate.get("urlContextMetadata"),
        finish_reason=candidate.get("finishReason"),
    )
    content = candidate.get("content") or {}
    for part in content.get("parts") or []:
        for fragment in classify_part(part):
            if isinstance(fragment, TextFragment):
                result.texts.append(fragment.text)
            elif isinstance(fragment, ReasoningFragment):
                result.reasoning.append(fragment.text)
            elif isinstance(fragment, ToolCallFragment):
                result.tool_calls.append(fragment)
    return result


def map_finish_reason(reason: Optional[str], has_tool_calls: bool = False) -> Optional[str]:
    if has_tool_calls:
        return "tool_calls"
    if reason is None:
        return None
    return _FINISH_REASONS.get(reason, reason)

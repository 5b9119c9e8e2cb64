"""
Request Schema Adapter

Translates an OpenAI chat completion request into a Gemini
`generateContent` / `streamGenerateContent` request body.
"""

from __future__ import annotations

import copy
import json
import logging
from dataclasses import dataclass
from typing import Any, Optional

from gemini_bridge.common.errors import ValidationError
from gemini_bridge.config import get_settings
from gemini_bridge.translation.content import (
    ContentPart,
    FunctionCallPart,
    FunctionResponsePart,
    TextPart,
    transform_content,
    upstream_call_id,
)

logger = logging.getLogger(__name__)

HARM_CATEGORIES = [
    "HARM_CATEGORY_HATE_SPEECH",
    "HARM_CATEGORY_SEXUALLY_EXPLICIT",
    "HARM_CATEGORY_DANGEROUS_CONTENT",
    "HARM_CATEGORY_HARASSMENT",
    "HARM_CATEGORY_CIVIC_INTEGRITY",
]

# OpenAI field -> generationConfig field
GENERATION_FIELDS = {
    "frequency_penalty": "frequencyPenalty",
    "max_completion_tokens": "maxOutputTokens",
    "max_tokens": "maxOutputTokens",
    "n": "candidateCount",
    "presence_penalty": "presencePenalty",
    "seed": "seed",
    "stop": "stopSequences",
    "temperature": "temperature",
    "top_k": "topK",
    "top_p": "topP",
}

THINKING_BUDGETS = {
    "low": 1024,
    "medium": 8192,
    "high": 24576,
}
# Low effort on non-pro models turns thinking off entirely.
LOW_EFFORT_NON_FLAGSHIP_BUDGET = 0

MODEL_PREFIXES = ("gemini-", "gemma-", "learnlm-")
SEARCH_SUFFIX = ":search"
SEARCH_PREVIEW_SUFFIX = "-search-preview"

TOOL_CHOICE_MODES = {
    "auto": "AUTO",
    "none": "NONE",
    "required": "ANY",
}


def default_safety_settings() -> list[dict[str, str]]:
    return [{"category": category, "threshold": "BLOCK_NONE"} for category in HARM_CATEGORIES]


def resolve_model(requested: Any) -> tuple[str, bool]:
    """
    Map the requested model name onto an upstream model

    Returns:
        tuple[str, bool]: (upstream model, whether Google Search grounding is requested)
    """
    model = get_settings().DEFAULT_CHAT_MODEL
    if not isinstance(requested, str):
        return model, False
    if requested.startswith("models/"):
        model = requested[len("models/"):]
    elif requested.startswith(MODEL_PREFIXES):
        model = requested

    search = requested.endswith(SEARCH_PREVIEW_SUFFIX)
    if model.endswith(SEARCH_SUFFIX):
        model = model[: -len(SEARCH_SUFFIX)]
        search = True
    return model, search


def is_flagship_model(model: str) -> bool:
    return "-pro" in model


# ============ Schema Adjustment ============

def _adjust_props(node: Any) -> None:
    if isinstance(node, list):
        for item in node:
            _adjust_props(item)
    elif isinstance(node, dict):
        if (
            node.get("type") == "object"
            and node.get("properties")
            and node.get("additionalProperties") is False
        ):
            del node["additionalProperties"]
        for value in node.values():
            _adjust_props(value)


def adjust_schema(holder: dict[str, Any]) -> dict[str, Any]:
    """
    Strip OpenAI strict-mode keys the upstream rejects

    `holder` is a tool (`{"type": "function", "function": {...}}`) or a
    response_format (`{"type": "json_schema", "json_schema": {...}}`). Works on
    a deep copy; the caller's request is left untouched.
    """
    holder = copy.deepcopy(holder)
    inner = holder.get(holder.get("type"))
    if isinstance(inner, dict):
        inner.pop("strict", None)
    _adjust_props(holder)
    return holder


# ============ Generation Config ============

def transform_config(req: dict[str, Any], model: str) -> dict[str, Any]:
    cfg: dict[str, Any] = {}
    for key, target in GENERATION_FIELDS.items():
        if req.get(key) is not None:
            cfg[target] = req[key]
    if isinstance(cfg.get("stopSequences"), str):
        cfg["stopSequences"] = [cfg["stopSequences"]]

    response_format = req.get("response_format")
    if response_format:
        if not isinstance(response_format, dict):
            raise ValidationError("response_format must be an object")
        format_type = response_format.get("type")
        if format_type == "json_schema":
            adjusted = adjust_schema(response_format)
            schema = (adjusted.get("json_schema") or {}).get("schema")
            if schema is not None:
                cfg["responseSchema"] = schema
            if isinstance(schema, dict) and "enum" in schema:
                cfg["responseMimeType"] = "text/x.enum"
            else:
                cfg["responseMimeType"] = "application/json"
        elif format_type == "json_object":
            cfg["responseMimeType"] = "application/json"
        elif format_type == "text":
            cfg["responseMimeType"] = "text/plain"
        else:
            raise ValidationError("Unsupported response_format.type", details={"type": format_type})

    effort = req.get("reasoning_effort")
    if effort is not None:
        if effort not in THINKING_BUDGETS:
            raise ValidationError(f"Unsupported reasoning_effort: {effort}")
        budget = THINKING_BUDGETS[effort]
        if effort == "low" and not is_flagship_model(model):
            budget = LOW_EFFORT_NON_FLAGSHIP_BUDGET
        thinking: dict[str, Any] = {"thinkingBudget": budget}
        if budget > 0:
            thinking["includeThoughts"] = True
        cfg["thinkingConfig"] = thinking
    return cfg


# ============ Tools ============

def transform_tools(req: dict[str, Any]) -> dict[str, Any]:
    result: dict[str, Any] = {}
    tools = req.get("tools")
    if tools:
        declarations = []
        for tool in tools:
            if not isinstance(tool, dict) or tool.get("type") != "function":
                continue
            if not isinstance(tool.get("function"), dict) or not tool["function"].get("name"):
                raise ValidationError("Function tools require a \"function\" object with a name")
            declarations.append(adjust_schema(tool)["function"])
        if declarations:
            result["tools"] = [{"function_declarations": declarations}]

    tool_choice = req.get("tool_choice")
    if isinstance(tool_choice, str):
        mode = TOOL_CHOICE_MODES.get(tool_choice)
        if mode is None:
            raise ValidationError(f"Unsupported tool_choice: {tool_choice}")
        result["tool_config"] = {"function_calling_config": {"mode": mode}}
    elif isinstance(tool_choice, dict) and tool_choice.get("type") == "function":
        name = (tool_choice.get("function") or {}).get("name")
        if not name:
            raise ValidationError("tool_choice.function.name is required")
        result["tool_config"] = {
            "function_calling_config": {"mode": "ANY", "allowed_function_names": [name]}
        }
    return result


# ============ Messages ============

class FunctionCallRegistry:
    """
    Slots for the results of one assistant turn's tool calls

    Registered in tool_calls order; each tool message fills the slot of the
    call it answers, so results are ordered by call, not by arrival.
    """

    def __init__(self) -> None:
        self._calls: dict[str, tuple[int, str]] = {}
        self._results: dict[int, FunctionResponsePart] = {}

    def register(self, tool_call_id: str, name: str) -> None:
        if tool_call_id in self._calls:
            raise ValidationError(f"Duplicated tool_call_id in tool_calls: {tool_call_id}")
        self._calls[tool_call_id] = (len(self._calls), name)

    def fill(self, tool_call_id: str, response: dict[str, Any]) -> None:
        if tool_call_id not in self._calls:
            raise ValidationError(f"Unknown tool_call_id: {tool_call_id}")
        slot, name = self._calls[tool_call_id]
        if slot in self._results:
            raise ValidationError(f"Duplicated tool_call_id: {tool_call_id}")
        self._results[slot] = FunctionResponsePart(
            name=name, response=response, id=upstream_call_id(tool_call_id)
        )

    @property
    def has_results(self) -> bool:
        return bool(self._results)

    def result_parts(self) -> list[FunctionResponsePart]:
        missing = [call_id for call_id, (slot, _) in self._calls.items() if slot not in self._results]
        if missing:
            raise ValidationError(f"Missing tool response for tool_call_id: {', '.join(missing)}")
        return [self._results[slot] for slot in range(len(self._calls))]


def _parse_function_response(message: dict[str, Any]) -> tuple[str, dict[str, Any]]:
    tool_call_id = message.get("tool_call_id")
    if not tool_call_id or not isinstance(tool_call_id, str):
        raise ValidationError("tool_call_id not specified")

    content = message.get("content")
    if isinstance(content, list):
        content = "".join(
            item.get("text", "") for item in content if isinstance(item, dict)
        )
    try:
        response = json.loads(content)
    except (TypeError, json.JSONDecodeError) as e:
        raise ValidationError(f"Invalid function response: {content}") from e
    if not isinstance(response, dict):
        response = {"result": response}
    return tool_call_id, response


def _transform_tool_calls(tool_calls: list[Any], registry: FunctionCallRegistry) -> list[ContentPart]:
    parts: list[ContentPart] = []
    for call in tool_calls:
        if not isinstance(call, dict):
            raise ValidationError("tool_calls items must be objects")
        call_type = call.get("type", "function")
        if call_type != "function":
            raise ValidationError(f'Unsupported tool_call type: "{call_type}"')
        function = call.get("function") or {}
        name = function.get("name")
        call_id = call.get("id")
        if not name or not isinstance(call_id, str) or not call_id:
            raise ValidationError("tool_calls items require an id and function.name")

        arguments = function.get("arguments") or "{}"
        try:
            args = json.loads(arguments) if isinstance(arguments, str) else arguments
        except json.JSONDecodeError as e:
            raise ValidationError(f"Invalid function arguments: {arguments}") from e

        registry.register(call_id, name)
        parts.append(FunctionCallPart(name=name, args=args, id=upstream_call_id(call_id)))
    return parts


class MessageTranscoder:
    """
    Translates one request's message list into `contents` + `system_instruction`

    Holds the state of a single transcoding pass: the turns produced so far,
    the accumulated system parts and the registry of the last assistant turn's
    tool calls.
    """

    def __init__(self) -> None:
        self.contents: list[dict[str, Any]] = []
        self.system_parts: list[ContentPart] = []
        self.registry: Optional[FunctionCallRegistry] = None

    async def transcode(self, messages: Any) -> dict[str, Any]:
        if not isinstance(messages, list) or not messages:
            raise ValidationError("messages must be a non-empty array")

        for message in messages:
            if not isinstance(message, dict):
                raise ValidationError("messages items must be objects")
            role = message.get("role")
            if role == "tool":
                if self.registry is None:
                    raise ValidationError("No function calls found in the previous message")
                self.registry.fill(*_parse_function_response(message))
                continue

            self._close_function_turn()
            if role == "system":
                self.system_parts.extend(await transform_content(message.get("content")))
            elif role == "user":
                self._append("user", await transform_content(message.get("content")))
            elif role == "assistant":
                self._append("model", await self._assistant_parts(message))
            else:
                raise ValidationError(f'Unknown message role: "{role}"')
        self._close_function_turn()

        result: dict[str, Any] = {"contents": self.contents}
        if self.system_parts:
            result["system_instruction"] = {"parts": [p.to_upstream() for p in self.system_parts]}
            first_parts = self.contents[0]["parts"] if self.contents else []
            if not any(part.get("text") for part in first_parts):
                self.contents.insert(0, {"role": "user", "parts": [{"text": " "}]})
        return result

    async def _assistant_parts(self, message: dict[str, Any]) -> list[ContentPart]:
        content = message.get("content")
        tool_calls = message.get("tool_calls")
        if not tool_calls:
            return await transform_content(content, decode_images=True)

        parts: list[ContentPart] = []
        if content:
            parts.extend(
                part for part in await transform_content(content, decode_images=True)
                if not (isinstance(part, TextPart) and not part.text)
            )
        self.registry = FunctionCallRegistry()
        parts.extend(_transform_tool_calls(tool_calls, self.registry))
        return parts

    def _append(self, role: str, parts: list[ContentPart]) -> None:
        self.contents.append({"role": role, "parts": [p.to_upstream() for p in parts]})

    def _close_function_turn(self) -> None:
        if self.registry is not None and self.registry.has_results:
            self._append("function", self.registry.result_parts())
        self.registry = None


# ============ Entry Point ============

@dataclass
class UpstreamChatRequest:
    """Upstream call derived from one chat completion request."""

    model: str
    body: dict[str, Any]
    stream: bool = False
    include_usage: bool = False


async def adapt_chat_request(req: Any) -> UpstreamChatRequest:
    """
    Build the upstream request for a chat completion

    Args:
        req: Parsed OpenAI chat completion request body

    Returns:
        UpstreamChatRequest: Target model, body and streaming flags

    Raises:
        ValidationError: Malformed request
        MediaFetchError: A referenced remote image could not be fetched
    """
    if not isinstance(req, dict):
        raise ValidationError("Request body must be a JSON object")

    model, search = resolve_model(req.get("model"))

    body = await MessageTranscoder().transcode(req.get("messages"))
    body["safetySettings"] = default_safety_settings()
    body["generationConfig"] = transform_config(req, model)
    body.update(transform_tools(req))

    extra_body = req.get("extra_body")
    extra = extra_body.get("google") if isinstance(extra_body, dict) else None
    if isinstance(extra, dict):
        if extra.get("safety_settings"):
            body["safetySettings"] = extra["safety_settings"]
        if extra.get("cached_content"):
            body["cachedContent"] = extra["cached_content"]
        if extra.get("thinking_config"):
            body["generationConfig"]["thinkingConfig"] = extra["thinking_config"]

    if search:
        body.setdefault("tools", []).append({"googleSearch": {}})

    stream_options = req.get("stream_options") or {}
    logger.debug("Adapted chat request: model=%s stream=%s", model, bool(req.get("stream")))
    return UpstreamChatRequest(
        model=model,
        body=body,
        stream=bool(req.get("stream")),
        include_usage=bool(stream_options.get("include_usage")),
    )

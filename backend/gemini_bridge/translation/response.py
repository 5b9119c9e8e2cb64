"""
Non-stream Response Assembler

Translates one complete `generateContent` response into an OpenAI
`chat.completion` object.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Optional

from gemini_bridge.translation.parts import (
    NON_STREAM_SEPARATOR,
    classify_candidate,
    map_finish_reason,
)

logger = logging.getLogger(__name__)


def _modality_tokens(details: Any, modality: str) -> Optional[int]:
    if not isinstance(details, list):
        return None
    counts = [
        item.get("tokenCount")
        for item in details
        if isinstance(item, dict) and item.get("modality") == modality and item.get("tokenCount") is not None
    ]
    if not counts:
        return None
    return sum(counts)


def _compact(values: dict[str, Optional[int]]) -> Optional[dict[str, int]]:
    present = {k: v for k, v in values.items() if v is not None}
    return present or None


def transform_usage(usage_metadata: dict[str, Any]) -> dict[str, Any]:
    """
    Map Gemini usageMetadata to an OpenAI usage object

    completion_tokens covers both visible output and thinking tokens. The
    *_tokens_details objects are only present when at least one of their
    members is reported upstream.
    """
    candidates_tokens = usage_metadata.get("candidatesTokenCount")
    thoughts_tokens = usage_metadata.get("thoughtsTokenCount")
    prompt_tokens = usage_metadata.get("promptTokenCount") or 0

    completion_tokens = (candidates_tokens or 0) + (thoughts_tokens or 0)
    total_tokens = usage_metadata.get("totalTokenCount")
    if total_tokens is None:
        total_tokens = prompt_tokens + completion_tokens

    usage: dict[str, Any] = {
        "completion_tokens": completion_tokens,
        "prompt_tokens": prompt_tokens,
        "total_tokens": total_tokens,
    }

    prompt_details = _compact(
        {
            "cached_tokens": usage_metadata.get("cachedContentTokenCount"),
            "audio_tokens": _modality_tokens(usage_metadata.get("promptTokensDetails"), "AUDIO"),
        }
    )
    if prompt_details:
        usage["prompt_tokens_details"] = prompt_details

    completion_details = _compact(
        {
            "reasoning_tokens": thoughts_tokens,
            "audio_tokens": _modality_tokens(usage_metadata.get("candidatesTokensDetails"), "AUDIO"),
        }
    )
    if completion_details:
        usage["completion_tokens_details"] = completion_details

    return usage


def blocked_choice(prompt_feedback: Any, key: str) -> Optional[dict[str, Any]]:
    """
    Synthesize the content_filter choice for a prompt the upstream refused

    Returns None when there is no block reason.
    """
    if not isinstance(prompt_feedback, dict) or not prompt_feedback.get("blockReason"):
        return None
    block_reason = prompt_feedback["blockReason"]
    logger.info("Prompt block reason: %s", block_reason)
    if block_reason == "SAFETY":
        for rating in prompt_feedback.get("safetyRatings") or []:
            if rating.get("blocked"):
                logger.info("Blocking safety rating: %s", rating)
    return {
        "index": 0,
        key: None,
        "logprobs": None,
        "finish_reason": "content_filter",
    }


def transform_candidate_message(candidate: dict[str, Any]) -> dict[str, Any]:
    content = classify_candidate(candidate)
    message = {"role": "assistant"}
    message.update(content.message_fields(NON_STREAM_SEPARATOR))
    return {
        "index": content.index,
        "message": message,
        "logprobs": None,
        "finish_reason": map_finish_reason(content.finish_reason, bool(content.tool_calls)),
    }


def assemble_completion(data: dict[str, Any], model: str, completion_id: str) -> dict[str, Any]:
    """
    Assemble an OpenAI chat.completion from a Gemini response

    Args:
        data: Parsed generateContent response
        model: Model name used for the request (fallback for modelVersion)
        completion_id: Completion id to report

    Returns:
        dict: chat.completion object
    """
    choices = [transform_candidate_message(c) for c in data.get("candidates") or []]
    if not choices:
        choice = blocked_choice(data.get("promptFeedback"), "message")
        if choice is not None:
            choices.append(choice)

    usage_metadata = data.get("usageMetadata")
    return {
        "id": completion_id,
        "choices": choices,
        "created": int(time.time()),
        "model": data.get("modelVersion") or model,
        "object": "chat.completion",
        "usage": transform_usage(usage_metadata) if usage_metadata else None,
    }

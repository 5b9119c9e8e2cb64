"""
Delta Synthesizer

Turns decoded `streamGenerateContent?alt=sse` events into OpenAI
`chat.completion.chunk` SSE lines.

Every candidate index goes through NOT_STARTED -> STREAMING -> FINISHED:

- the first event for an index emits a role-only opening chunk
- each event emits one chunk holding only the fields that event populated
  (events with nothing new, e.g. a bare finishReason, emit nothing)
- the finish_reason chunk is held back until flush(), so it is emitted exactly
  once per finished index and after all of that index's content
"""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, AsyncIterator, Optional

from gemini_bridge.common.sse import SSE_DELIMITER, SSE_DONE, SSEFrameParser, encode_sse_json
from gemini_bridge.translation.parts import STREAM_SEPARATOR, classify_candidate, map_finish_reason
from gemini_bridge.translation.response import blocked_choice, transform_usage

logger = logging.getLogger(__name__)

_EVENT_KEYS = ("candidates", "promptFeedback", "usageMetadata")


class CandidatePhase(str, Enum):
    NOT_STARTED = "not_started"
    STREAMING = "streaming"
    FINISHED = "finished"


@dataclass
class DeltaState:
    """Per-index record owned by one DeltaSynthesizer."""

    index: int
    phase: CandidatePhase = CandidatePhase.NOT_STARTED
    finish_reason: Optional[str] = None
    has_tool_calls: bool = False
    # Running OpenAI tool_calls[].index for this candidate
    tool_call_count: int = 0


class DeltaSynthesizer:
    """
    Stateful translator for one streamed response

    Args:
        completion_id: id reported on every chunk
        model: Requested model, used until upstream reports modelVersion
        include_usage: stream_options.include_usage from the client request
    """

    def __init__(self, completion_id: str, model: str, include_usage: bool = False) -> None:
        self.completion_id = completion_id
        self.model = model
        self.include_usage = include_usage
        self.states: dict[int, DeltaState] = {}
        self._model_version: Optional[str] = None
        self._usage: Optional[dict[str, Any]] = None

    def feed(self, payload: str, truncated: bool = False) -> list[str]:
        """
        Consume one upstream event payload and return the SSE lines to emit

        Payloads that are not a Gemini response object are forwarded as they
        are rather than dropped; `truncated` marks the parser's unterminated
        residual, which is forwarded without adding a delimiter.
        """
        try:
            data = json.loads(payload)
        except json.JSONDecodeError:
            data = None
        if not isinstance(data, dict) or not any(key in data for key in _EVENT_KEYS):
            logger.error("Error parsing upstream stream payload: %s", payload)
            return [payload if truncated else payload + SSE_DELIMITER]

        if data.get("modelVersion"):
            self._model_version = data["modelVersion"]
        if data.get("usageMetadata"):
            self._usage = transform_usage(data["usageMetadata"])

        candidates = data.get("candidates") or []
        if not candidates:
            choice = blocked_choice(data.get("promptFeedback"), "delta")
            if choice is None:
                return []
            return [self._chunk([choice])]

        lines: list[str] = []
        for candidate in candidates:
            lines.extend(self._step(candidate))
        return lines

    def flush(self) -> list[str]:
        """Emit the deferred finish chunks followed by the [DONE] sentinel."""
        finished = [
            state for _, state in sorted(self.states.items()) if state.phase is CandidatePhase.FINISHED
        ]
        lines: list[str] = []
        for position, state in enumerate(finished):
            is_last = position == len(finished) - 1
            choice = self._choice(
                state.index,
                {},
                map_finish_reason(state.finish_reason, state.has_tool_calls),
            )
            lines.append(self._chunk([choice], usage=self._usage if is_last else None))
        lines.append(SSE_DONE)
        self.states.clear()
        return lines

    def _step(self, candidate: dict[str, Any]) -> list[str]:
        content = classify_candidate(candidate)
        state = self.states.get(content.index)
        if state is None:
            state = self.states[content.index] = DeltaState(index=content.index)

        lines: list[str] = []
        if state.phase is CandidatePhase.NOT_STARTED:
            lines.append(self._chunk([self._choice(state.index, {"role": "assistant", "content": ""})]))
            state.phase = CandidatePhase.STREAMING

        delta = content.message_fields(STREAM_SEPARATOR, tool_call_offset=state.tool_call_count)
        if delta["content"] is None:
            del delta["content"]
        if delta:
            lines.append(self._chunk([self._choice(state.index, delta)]))

        if content.tool_calls:
            state.has_tool_calls = True
            state.tool_call_count += len(content.tool_calls)
        if content.finish_reason:
            state.finish_reason = content.finish_reason
            state.phase = CandidatePhase.FINISHED
        return lines

    @staticmethod
    def _choice(index: int, delta: dict[str, Any], finish_reason: Optional[str] = None) -> dict[str, Any]:
        return {
            "index": index,
            "delta": delta,
            "logprobs": None,
            "finish_reason": finish_reason,
        }

    def _chunk(self, choices: list[dict[str, Any]], usage: Optional[dict[str, Any]] = None) -> str:
        obj: dict[str, Any] = {
            "id": self.completion_id,
            "object": "chat.completion.chunk",
            "created": int(time.time()),
            "model": self._model_version or self.model,
            "choices": choices,
        }
        if self.include_usage:
            obj["usage"] = usage
        return encode_sse_json(obj)


async def transcode_stream(
    upstream: AsyncIterator[bytes],
    completion_id: str,
    model: str,
    include_usage: bool = False,
) -> AsyncIterator[str]:
    """
    Pull chain: upstream bytes -> SSEFrameParser -> DeltaSynthesizer -> SSE lines

    Nothing is read from upstream until the consumer asks for the next line. If
    the consumer stops early the generator is closed and no [DONE] is emitted.
    """
    parser = SSEFrameParser()
    synthesizer = DeltaSynthesizer(completion_id, model, include_usage=include_usage)

    async for chunk in upstream:
        for payload in parser.feed(chunk):
            for line in synthesizer.feed(payload):
                yield line

    for payload in parser.flush():
        for line in synthesizer.feed(payload, truncated=parser.truncated):
            yield line

    for line in synthesizer.flush():
        yield line

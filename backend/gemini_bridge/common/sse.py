"""
Server-Sent Events Framing

Splits an upstream `text/event-stream` body into discrete `data:` payloads and
encodes outbound payloads into SSE lines.
"""

from __future__ import annotations

import codecs
import json
import logging
import re
from typing import Any

logger = logging.getLogger(__name__)

SSE_DELIMITER = "\n\n"
SSE_DONE = "data: [DONE]\n\n"

# A complete frame: "data: " + single-line payload + a blank-line terminator.
_FRAME_RE = re.compile(r"data: ([^\r\n]*)(?:\n\n|\r\r|\r\n\r\n)")


class SSEFrameParser:
    """
    Incremental SSE frame parser.

    One instance belongs to one upstream stream. Chunks may be `bytes` (decoded
    incrementally, so a multi-byte character split across chunks survives) or
    `str`. Frames are returned in arrival order, one payload per frame.

    - feed(): append a chunk and return every payload that is now complete
    - flush(): return the non-terminated residual (if any) as a best-effort
      payload and mark the parser as truncated
    """

    def __init__(self) -> None:
        self._buf = ""
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self.truncated = False

    def feed(self, chunk: str | bytes) -> list[str]:
        if isinstance(chunk, (bytes, bytearray)):
            chunk = self._decoder.decode(bytes(chunk))
        if not chunk:
            return []
        self._buf += chunk
        return self._drain()

    def flush(self) -> list[str]:
        tail = self._decoder.decode(b"", final=True)
        payloads: list[str] = []
        if tail:
            self._buf += tail
            payloads.extend(self._drain())
        if self._buf:
            logger.error("Invalid data at end of upstream stream: %s", self._buf)
            payloads.append(self._buf)
            self._buf = ""
            self.truncated = True
        return payloads

    def _drain(self) -> list[str]:
        payloads: list[str] = []
        pos = 0
        while True:
            match = _FRAME_RE.match(self._buf, pos)
            if not match:
                break
            payloads.append(match.group(1))
            pos = match.end()
        if pos:
            self._buf = self._buf[pos:]
        return payloads


def encode_sse_json(obj: dict[str, Any]) -> str:
    return f"data: {json.dumps(obj, ensure_ascii=False)}{SSE_DELIMITER}"

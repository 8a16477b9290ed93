"""Relay streamed model output into a pollable StreamRecord.

The provider sends Server-Sent-Events frames:

    data: {"choices": [{"delta": {"reasoning": "...", "content": "..."}}]}
    data: [DONE]

Each frame's reasoning and content fragments (in that order) form one chunk.
Chunks accumulate in memory for the final JSON extraction and in a pending
buffer that is written to the store at most once per flush interval, so a
fast stream costs a handful of writes rather than one per frame. After the
read loop the remainder is flushed and a final empty chunk marks the record
completed. Frames that fail to parse are skipped.
"""

import json
import logging
import time
from collections.abc import AsyncIterable, Callable
from typing import Any, Protocol

logger = logging.getLogger(__name__)

FLUSH_INTERVAL = 0.2  # seconds
DONE_SENTINEL = "data: [DONE]"


class StreamStore(Protocol):
    def append_stream(
        self, stream_id: str, chunk: str, *, done: bool = False, error: bool = False
    ) -> Any: ...


def parse_sse_line(line: str) -> str | None:
    """Return the text carried by one SSE line, or None if it carries none."""
    line = line.strip()
    if not line or line == DONE_SENTINEL or not line.startswith("data: "):
        return None
    try:
        payload = json.loads(line[len("data: "):])
        delta = payload["choices"][0].get("delta") or {}
    except (json.JSONDecodeError, KeyError, IndexError, TypeError, AttributeError):
        logger.debug("skipping malformed stream frame: %.80s", line)
        return None
    if not isinstance(delta, dict):
        return None

    chunk = ""
    for key in ("reasoning", "content"):
        fragment = delta.get(key)
        if isinstance(fragment, str):
            chunk += fragment
    return chunk or None


class StreamRelay:
    """Batch chunks of one generation into a StreamRecord.

    With stream_id=None the relay only accumulates text; nothing is written.
    """

    def __init__(
        self,
        store: StreamStore | None,
        stream_id: str | None,
        *,
        flush_interval: float = FLUSH_INTERVAL,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._store = store
        self._stream_id = stream_id
        self._flush_interval = flush_interval
        self._clock = clock
        self._last_flush = clock()
        self._pending = ""
        self._parts: list[str] = []

    @property
    def text(self) -> str:
        return "".join(self._parts)

    def _append(self, chunk: str, *, done: bool = False, error: bool = False) -> None:
        if self._store is not None and self._stream_id is not None:
            self._store.append_stream(self._stream_id, chunk, done=done, error=error)

    def _flush(self) -> None:
        if self._pending:
            self._append(self._pending)
            self._pending = ""
        self._last_flush = self._clock()

    def feed(self, chunk: str) -> None:
        self._parts.append(chunk)
        self._pending += chunk
        if self._clock() - self._last_flush > self._flush_interval:
            self._flush()

    def finish(self) -> str:
        """Flush what is left and mark the record completed."""
        self._flush()
        self._append("", done=True)
        return self.text

    def fail(self, status: int | str) -> None:
        self._flush()
        self._append(f"\n\n[Error from AI Provider: {status}]", error=True)

    async def consume(self, lines: AsyncIterable[str]) -> str:
        """Read every line, relay its chunk in order, and return the full text."""
        async for line in lines:
            chunk = parse_sse_line(line)
            if chunk:
                self.feed(chunk)
        return self.finish()

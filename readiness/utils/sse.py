"""
Server-Sent Events framing for the career chat stream

Producer side: `delta_event` / `done_event` frame text deltas as
OpenAI-style chat completion chunks.
Consumer side: `SSEDecoder` turns arbitrary byte chunks back into deltas.
"""
import codecs
import json
import logging
from typing import Any, List, Optional

logger = logging.getLogger(__name__)

DONE_SENTINEL = "[DONE]"


def sse_event(data: Any) -> str:
    """Frame one `data:` event"""
    payload = data if isinstance(data, str) else json.dumps(data, ensure_ascii=False)
    return f"data: {payload}\n\n"


def delta_event(content: str) -> str:
    return sse_event({"choices": [{"delta": {"content": content}}]})


def done_event() -> str:
    return sse_event(DONE_SENTINEL)


def extract_delta(event: Any) -> Optional[str]:
    """choices[0].delta.content, or None"""
    try:
        content = event["choices"][0]["delta"]["content"]
    except (KeyError, IndexError, TypeError):
        return None
    return content if isinstance(content, str) and content else None


class SSEDecoder:
    """
    Incremental SSE parser yielding chat deltas
    
    Chunks may split lines, and multi-byte UTF-8 characters, anywhere.
    Only complete lines are parsed; the remainder stays buffered until the
    next `feed` or `flush`. A `data:` line whose JSON does not parse is held
    and joined with the following non-`data:` line, for payloads broken by a
    stray newline. After `[DONE]` every further chunk is ignored.
    """
    
    def __init__(self):
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._buffer = ""
        self._pending: Optional[str] = None
        self.done = False
    
    def feed(self, chunk: bytes) -> List[str]:
        if self.done:
            return []
        self._buffer += self._decoder.decode(chunk)
        
        deltas: List[str] = []
        while not self.done:
            newline = self._buffer.find("\n")
            if newline == -1:
                break
            line = self._buffer[:newline]
            self._buffer = self._buffer[newline + 1:]
            deltas.extend(self._handle_line(line))
        return deltas
    
    def flush(self) -> List[str]:
        """Parse whatever is left once the stream has ended"""
        self._buffer += self._decoder.decode(b"", final=True)
        remainder, self._buffer = self._buffer, ""
        
        deltas: List[str] = []
        for line in remainder.split("\n"):
            if self.done:
                break
            deltas.extend(self._handle_line(line))
        
        if self._pending is not None:
            logger.debug(f"Discarding unparseable SSE payload: {self._pending[:80]!r}")
            self._pending = None
        return deltas
    
    def _handle_line(self, line: str) -> List[str]:
        if line.endswith("\r"):
            line = line[:-1]
        
        if self._pending is not None and line.strip() and not line.startswith(("data:", ":")):
            payload, self._pending = self._pending + line, None
            return self._parse(payload)
        
        if not line.strip() or line.startswith(":") or not line.startswith("data:"):
            return []
        
        if self._pending is not None:
            logger.debug(f"Discarding unparseable SSE payload: {self._pending[:80]!r}")
            self._pending = None
        
        payload = line[len("data:"):].strip()
        if payload == DONE_SENTINEL:
            self.done = True
            return []
        return self._parse(payload)
    
    def _parse(self, payload: str) -> List[str]:
        try:
            event = json.loads(payload)
        except json.JSONDecodeError:
            self._pending = payload
            return []
        delta = extract_delta(event)
        return [delta] if delta else []

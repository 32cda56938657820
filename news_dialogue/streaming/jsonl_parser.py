"""Incremental JSON-Lines parser for streamed dialogue output.

Model output arrives as arbitrary text chunks. The parser re-assembles
newline-terminated lines, pulls every balanced JSON object out of each
line, and emits ``StreamMessage`` objects through a synchronous callback
as soon as they are complete. A trailing ``{"summary": ...}`` object is
kept as the stream summary.

Malformed fragments are counted and otherwise ignored; cancellation via
an ``asyncio.Event`` stops consumption but keeps what was already emitted.
"""

import asyncio
import json
import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import AsyncIterable, AsyncIterator, Callable, List, Optional

from ..models import StreamMessage, StreamResult


logger = logging.getLogger(__name__)

MAX_LOGGED_FAILURES = 3

_FENCE_OPEN_JSON_RE = re.compile(r'^```json\s*', re.IGNORECASE)
_FENCE_OPEN_RE = re.compile(r'^```\s*')
_FENCE_CLOSE_RE = re.compile(r'\s*```$')

MessageCallback = Callable[[StreamMessage], None]


class ParserPhase(Enum):
    STREAMING = "streaming"
    FLUSH = "flush"
    DONE = "done"
    ABORTED = "aborted"


@dataclass
class ParserState:
    """Mutable per-stream state. Owned by a single LineStreamParser."""
    buffer: str = ''
    message_count: int = 0
    parse_failure_count: int = 0
    summary: Optional[str] = None
    phase: ParserPhase = ParserPhase.STREAMING


def strip_code_fence(line: str) -> str:
    """Remove a leading ```json / ``` marker and a trailing ``` marker."""
    line = _FENCE_OPEN_JSON_RE.sub('', line)
    line = _FENCE_OPEN_RE.sub('', line)
    line = _FENCE_CLOSE_RE.sub('', line)
    return line


def extract_json_objects(line: str) -> List[str]:
    """Every balanced top-level ``{...}`` substring of ``line``, in order.

    Braces inside JSON strings (including escaped quotes) do not count
    towards nesting, so message text may contain ``{`` and ``}``.
    Text between objects is ignored. When an object is still open at the
    end of the line, scanning resumes just after its opening brace, so a
    truncated fragment does not hide complete objects that follow it.
    """
    objects = []
    position = 0

    while position < len(line):
        depth = 0
        start = -1
        in_string = False
        escaped = False

        for index in range(position, len(line)):
            char = line[index]
            if depth == 0:
                if char == '{':
                    depth = 1
                    start = index
                    in_string = False
                    escaped = False
                continue

            if in_string:
                if escaped:
                    escaped = False
                elif char == '\\':
                    escaped = True
                elif char == '"':
                    in_string = False
                continue

            if char == '"':
                in_string = True
            elif char == '{':
                depth += 1
            elif char == '}':
                depth -= 1
                if depth == 0:
                    objects.append(line[start:index + 1])
                    start = -1

        if depth == 0:
            break
        position = start + 1

    return objects


class LineStreamParser:
    """Turns a chunked text stream into dialogue messages plus a summary.

    Lifecycle: STREAMING (``feed``) -> FLUSH (``finish`` processes the
    unterminated last line) -> DONE. ``abort`` moves straight to ABORTED
    and discards the buffer. Messages are delivered to ``on_message``
    synchronously, in arrival order, before the next object is parsed.
    """

    def __init__(self, on_message: Optional[MessageCallback] = None,
                 cancel_event: Optional[asyncio.Event] = None):
        self.on_message = on_message
        self.cancel_event = cancel_event
        self.state = ParserState()
        self.messages: List[StreamMessage] = []

    @property
    def phase(self) -> ParserPhase:
        return self.state.phase

    @property
    def result(self) -> StreamResult:
        return StreamResult(
            message_count=self.state.message_count,
            parse_failure_count=self.state.parse_failure_count,
            summary=self.state.summary,
            aborted=self.state.phase is ParserPhase.ABORTED,
            messages=list(self.messages),
        )

    def feed(self, chunk: str) -> None:
        """Append a chunk and process every line it completes."""
        if self.state.phase is ParserPhase.ABORTED:
            return
        if self.state.phase is not ParserPhase.STREAMING:
            raise RuntimeError(f"Cannot feed a parser in phase {self.state.phase.value}")
        if not chunk:
            return

        self.state.buffer += chunk
        lines = self.state.buffer.split('\n')
        self.state.buffer = lines.pop()

        for line in lines:
            if self._check_cancelled():
                return
            self.process_line(line)

    def finish(self) -> StreamResult:
        """End of stream: process the residual buffer and finalize counts."""
        if self.state.phase is ParserPhase.STREAMING:
            self.state.phase = ParserPhase.FLUSH
            residual, self.state.buffer = self.state.buffer, ''
            if residual.strip() and not self._check_cancelled():
                self.process_line(residual)

        if self.state.phase is ParserPhase.FLUSH:
            self.state.phase = ParserPhase.DONE
            result = self.result
            logger.info(f"✅ JSON Lines stream complete: {result.message_count} messages, "
                        f"{result.parse_failure_count} parse failures "
                        f"({result.success_rate}% success rate)")

        return self.result

    def abort(self) -> StreamResult:
        """Stop immediately. Already-emitted messages stay valid."""
        if self.state.phase not in (ParserPhase.DONE, ParserPhase.ABORTED):
            self.state.phase = ParserPhase.ABORTED
            self.state.buffer = ''
            logger.info(f"⏹️ Stream aborted after {self.state.message_count} messages")
        return self.result

    def process_line(self, line: str) -> None:
        trimmed = line.strip()
        if not trimmed:
            return

        trimmed = strip_code_fence(trimmed)
        if not trimmed:
            return

        json_objects = extract_json_objects(trimmed)
        if not json_objects:
            self._record_failure(f"No JSON found in line: {trimmed[:50]}")
            return

        for json_str in json_objects:
            if self.state.phase is ParserPhase.ABORTED:
                return
            try:
                parsed = json.loads(json_str)
            except ValueError:
                self._record_failure(f"Parse failed: {json_str[:50]}")
                continue
            self._handle_object(parsed)

    def _handle_object(self, parsed) -> None:
        if not isinstance(parsed, dict):
            return

        summary = parsed.get('summary')
        if summary:
            self.state.summary = str(summary)
            logger.debug(f"📋 Summary received: {self.state.summary[:50]}")
            return

        speaker = parsed.get('speaker')
        content = parsed.get('content')
        if speaker and content:
            if self._check_cancelled():
                return
            message = StreamMessage(speaker=str(speaker), content=str(content))
            self.state.message_count += 1
            self.messages.append(message)
            logger.debug(f"💬 Message {self.state.message_count}: {message.speaker}")
            if self.on_message is not None:
                self.on_message(message)

    def _record_failure(self, detail: str) -> None:
        self.state.parse_failure_count += 1
        if self.state.parse_failure_count <= MAX_LOGGED_FAILURES:
            logger.warning(f"⚠️ {detail} (#{self.state.parse_failure_count})")

    def _check_cancelled(self) -> bool:
        """Abort if the cancel signal is set. Returns True when aborted."""
        if self.state.phase is ParserPhase.ABORTED:
            return True
        if self.cancel_event is not None and self.cancel_event.is_set():
            self.abort()
            return True
        return False

    async def consume(self, chunks: AsyncIterable[str]) -> StreamResult:
        """Pull chunks until the stream ends or the cancel signal is set."""
        iterator = chunks.__aiter__()
        try:
            while not self._check_cancelled():
                try:
                    chunk = await self._next_chunk(iterator)
                except StopAsyncIteration:
                    return self.finish()

                if chunk is None:
                    # cancelled while waiting for the producer
                    self._check_cancelled()
                    break

                self.feed(chunk)
        finally:
            if self.state.phase is ParserPhase.ABORTED:
                await self._close_iterator(iterator)

        return self.result

    async def _next_chunk(self, iterator: AsyncIterator[str]) -> Optional[str]:
        if self.cancel_event is None:
            return await iterator.__anext__()

        next_task = asyncio.ensure_future(iterator.__anext__())
        cancel_task = asyncio.ensure_future(self.cancel_event.wait())
        try:
            done, _ = await asyncio.wait({next_task, cancel_task}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            next_task.cancel()
            cancel_task.cancel()
            raise

        if next_task in done:
            cancel_task.cancel()
            return next_task.result()

        next_task.cancel()
        try:
            await next_task
        except (asyncio.CancelledError, StopAsyncIteration):
            pass
        return None

    @staticmethod
    async def _close_iterator(iterator) -> None:
        aclose = getattr(iterator, 'aclose', None)
        if aclose is None:
            return
        try:
            await aclose()
        except Exception as e:
            logger.debug(f"Closing chunk stream failed: {e}")

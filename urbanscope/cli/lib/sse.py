"""SSE record decoding for the AI summary stream.

Records are separated by a blank line. Inside a record only two line kinds
matter: ``event: <channel>`` and ``data: <payload>``; everything else
(comments such as ``: connected``, ``id:``, ``retry:``) is ignored.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Literal, Optional, Union

logger = logging.getLogger("urbanscope.cli.sse")

DONE_SENTINEL = "[DONE]"
EVENT_PREFIX = "event: "
DATA_PREFIX = "data: "
RECORD_SEPARATOR = "\n\n"

Channel = Literal["content", "reasoning"]


@dataclass(frozen=True)
class SSERecord:
    event: Optional[str] = None
    data: Optional[str] = None


@dataclass(frozen=True)
class StreamFragment:
    channel: Channel
    payload: str


@dataclass(frozen=True)
class StreamDone:
    pass


@dataclass(frozen=True)
class StreamFailure:
    message: str


StreamItem = Union[StreamFragment, StreamDone, StreamFailure]


def parse_record(block: str) -> SSERecord:
    """Parse one record; a repeated ``event:``/``data:`` line replaces the earlier one."""
    event: Optional[str] = None
    data: Optional[str] = None
    for line in block.split("\n"):
        if line.startswith(EVENT_PREFIX):
            event = line[len(EVENT_PREFIX):].strip()
        elif line.startswith(DATA_PREFIX):
            data = line[len(DATA_PREFIX):]
    return SSERecord(event=event, data=data)


class SSERecordDecoder:
    """Incremental splitter: feed decoded text, get complete records back."""

    def __init__(self) -> None:
        self._buffer = ""

    def feed(self, text: str) -> list[SSERecord]:
        if not text:
            return []
        self._buffer += text
        # A CRLF pair may straddle two chunks; hold a trailing CR back.
        normalized = self._buffer.replace("\r\n", "\n")
        held = ""
        if normalized.endswith("\r"):
            normalized, held = normalized[:-1], "\r"
        parts = normalized.split(RECORD_SEPARATOR)
        self._buffer = parts.pop() + held
        return [parse_record(part) for part in parts if part]

    def flush(self) -> list[SSERecord]:
        """Return the trailing record left in the buffer at end of stream."""
        leftover = self._buffer.replace("\r\n", "\n").strip("\n")
        self._buffer = ""
        if not leftover:
            return []
        return [parse_record(leftover)]


def _channel_item(channel: str, payload: str) -> StreamItem:
    if channel == "reasoning":
        return StreamFragment("reasoning", payload)
    if channel == "error":
        return StreamFailure(payload or "stream error")
    return StreamFragment("content", payload)


def resolve_record(record: SSERecord) -> Optional[StreamItem]:
    """
    Resolve a record into what the session should do with it.

    Returns:
        None for records without a ``data:`` line, StreamDone for ``[DONE]``,
        StreamFailure for server ``error`` records, otherwise a StreamFragment.
        A payload that is not a ``{event?, data?}`` JSON object is treated as
        raw text on the record's channel (default content).
    """
    if record.data is None:
        return None

    raw = record.data
    if raw == DONE_SENTINEL:
        return StreamDone()

    try:
        parsed = json.loads(raw)
    except (json.JSONDecodeError, ValueError):
        parsed = None

    if isinstance(parsed, dict):
        event = parsed.get("event")
        data = parsed.get("data")
        if (event is None or isinstance(event, str)) and (data is None or isinstance(data, str)):
            channel = event or record.event or "content"
            if channel == "error":
                message = parsed.get("message") or data
                return StreamFailure(str(message) if message else "stream error")
            return _channel_item(channel, data or "")

    logger.debug("Malformed summary chunk, treating as raw text: %s", raw[:80])
    return _channel_item(record.event or "content", raw)

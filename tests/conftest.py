import asyncio
import itertools
from datetime import datetime, timedelta, timezone
from typing import Callable, Iterable, Optional

import httpx
import pytest


class ScriptedStream(httpx.AsyncByteStream):
    """Response body that yields scripted chunks, optionally pausing on ``hold``."""

    def __init__(
        self,
        chunks: Iterable[str],
        hold: Optional[asyncio.Event] = None,
        tail: Iterable[str] = (),
        error: Optional[Exception] = None,
    ):
        self.chunks = list(chunks)
        self.hold = hold
        self.tail = list(tail)
        self.error = error
        self.closed = False

    async def __aiter__(self):
        for chunk in self.chunks:
            yield chunk.encode("utf-8")
        if self.hold is not None:
            await self.hold.wait()
        for chunk in self.tail:
            yield chunk.encode("utf-8")
        if self.error is not None:
            raise self.error

    async def aclose(self) -> None:
        self.closed = True


@pytest.fixture(autouse=True)
def isolated_db(tmp_path, monkeypatch):
    monkeypatch.setenv("URBANSCOPE_DB_PATH", str(tmp_path / "urbanscope.db"))
    yield tmp_path / "urbanscope.db"


@pytest.fixture
def scripted_stream():
    return ScriptedStream


@pytest.fixture
def sse_response() -> Callable[[httpx.AsyncByteStream], httpx.Response]:
    def _build(stream: httpx.AsyncByteStream, status_code: int = 200) -> httpx.Response:
        return httpx.Response(
            status_code,
            headers={"content-type": "text/event-stream; charset=utf-8"},
            stream=stream,
        )

    return _build


@pytest.fixture
def fake_clock() -> Callable[[], datetime]:
    """Strictly increasing clock: one second per call."""
    base = datetime(2026, 1, 1, tzinfo=timezone.utc)
    counter = itertools.count()
    return lambda: base + timedelta(seconds=next(counter))

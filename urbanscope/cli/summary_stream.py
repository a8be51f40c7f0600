"""
Streaming client for the AI summary endpoint.

One client owns at most one live session. ``start()`` schedules a read task on
the running event loop and returns at once; the session object is updated in
place as records arrive and ends in exactly one terminal phase.

Usage:
    async with StreamingSummaryClient(base_url) as client:
        session = client.start({"countryId": "CHN", "year": 2023})
        await client.wait()
        print(session.phase, session.accumulated_content)
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Mapping, Optional, Union

import httpx

from urbanscope.cli.client import (
    StreamReadError,
    SummaryStreamError,
    TransportError,
    auth_headers,
    mask_headers,
)
from urbanscope.cli.lib.sse import (
    SSERecord,
    SSERecordDecoder,
    StreamDone,
    StreamFailure,
    StreamFragment,
    resolve_record,
)
from urbanscope.schemas.summary import SummaryRequest

logger = logging.getLogger("urbanscope.cli.summary_stream")

SUMMARY_STREAM_PATH = "/ai/summarySSE"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SummaryPhase(str, Enum):
    IDLE = "idle"
    STREAMING = "streaming"
    COMPLETED = "completed"
    ERRORED = "errored"
    CANCELLED = "cancelled"


TERMINAL_PHASES = frozenset({SummaryPhase.COMPLETED, SummaryPhase.ERRORED, SummaryPhase.CANCELLED})


@dataclass(eq=False)
class SummarySession:
    """Live state of one summary request."""

    request: SummaryRequest
    phase: SummaryPhase = SummaryPhase.STREAMING
    reasoning_started_at: Optional[datetime] = None
    reasoning_ended_at: Optional[datetime] = None
    error_message: Optional[str] = None
    error: Optional[SummaryStreamError] = None
    _content: list[str] = field(default_factory=list, repr=False)
    _reasoning: list[str] = field(default_factory=list, repr=False)
    _cancel_handle: Optional[Callable[[], Any]] = field(default=None, repr=False)

    @property
    def accumulated_content(self) -> str:
        return "".join(self._content)

    @property
    def accumulated_reasoning(self) -> str:
        return "".join(self._reasoning)

    @property
    def is_streaming(self) -> bool:
        return self.phase is SummaryPhase.STREAMING

    @property
    def is_terminal(self) -> bool:
        return self.phase in TERMINAL_PHASES

    @property
    def reasoning_seconds(self) -> Optional[float]:
        if self.reasoning_started_at is None or self.reasoning_ended_at is None:
            return None
        return max(0.0, (self.reasoning_ended_at - self.reasoning_started_at).total_seconds())

    def to_dict(self) -> dict[str, Any]:
        def _iso(value: Optional[datetime]) -> Optional[str]:
            return value.isoformat() if value else None

        return {
            "request": self.request.to_payload(),
            "phase": self.phase.value,
            "content": self.accumulated_content,
            "reasoning": self.accumulated_reasoning,
            "reasoning_started_at": _iso(self.reasoning_started_at),
            "reasoning_ended_at": _iso(self.reasoning_ended_at),
            "reasoning_seconds": self.reasoning_seconds,
            "error_message": self.error_message,
        }


SessionListener = Callable[[SummarySession, Optional[StreamFragment]], None]


class StreamingSummaryClient:
    """
    Consumes the summary event stream into a live ``SummarySession``.

    Args:
        base_url: API server base URL
        path: summary stream endpoint path
        token: optional bearer token; no header is sent without one
        timeout: connect/write timeout in seconds (reads never time out)
        http_client: shared ``httpx.AsyncClient``; one is created and owned otherwise
        listener: called with ``(session, fragment)`` for each fragment and
            ``(session, None)`` on every phase change
        clock: source of timestamps for the reasoning window
    """

    def __init__(
        self,
        base_url: str = "http://127.0.0.1:8000",
        path: str = SUMMARY_STREAM_PATH,
        token: Optional[str] = None,
        timeout: float = 30.0,
        http_client: Optional[httpx.AsyncClient] = None,
        listener: Optional[SessionListener] = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.base_url = base_url.rstrip("/")
        self.path = path
        self.token = token
        self.timeout = timeout
        self.listener = listener
        self._clock = clock
        self._http = http_client
        self._owns_http = http_client is None
        self._session: Optional[SummarySession] = None
        self._task: Optional[asyncio.Task] = None

    async def __aenter__(self) -> "StreamingSummaryClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    @property
    def session(self) -> Optional[SummarySession]:
        return self._session

    @property
    def phase(self) -> SummaryPhase:
        return self._session.phase if self._session else SummaryPhase.IDLE

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    def start(self, request: Union[SummaryRequest, Mapping[str, Any]]) -> SummarySession:
        """
        Begin a new session, cancelling the one in progress.

        Raises:
            pydantic.ValidationError: malformed request; no session is created
            RuntimeError: called without a running event loop
        """
        if not isinstance(request, SummaryRequest):
            request = SummaryRequest.model_validate(request)
        loop = asyncio.get_running_loop()

        self.cancel()

        session = SummarySession(request=request)
        task = loop.create_task(self._run(session))
        session._cancel_handle = task.cancel
        self._session = session
        self._task = task
        logger.debug(
            "Summary stream started: countryId=%s year=%s language=%s",
            request.country_id,
            request.year,
            request.language,
        )
        self._notify(session, None)
        return session

    def cancel(self) -> None:
        """Abort the streaming session, if any. No-op otherwise."""
        session = self._session
        if session is None or not session.is_streaming:
            return
        if session._cancel_handle is not None:
            session._cancel_handle()
        session.phase = SummaryPhase.CANCELLED
        self._finalize_reasoning(session)
        logger.debug("Summary stream cancelled")
        self._notify(session, None)

    async def wait(self) -> Optional[SummarySession]:
        """Wait until the current read task finishes; never raises on cancellation."""
        task = self._task
        if task is not None and not task.done():
            await asyncio.wait({task})
        return self._session

    async def aclose(self) -> None:
        self.cancel()
        await self.wait()
        if self._owns_http and self._http is not None:
            await self._http.aclose()
            self._http = None

    # ------------------------------------------------------------------
    # Read loop
    # ------------------------------------------------------------------

    def _client(self) -> httpx.AsyncClient:
        if self._http is None:
            self._http = httpx.AsyncClient(trust_env=False)
        return self._http

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "text/event-stream", "Content-Type": "application/json"}
        headers.update(auth_headers(self.token))
        return headers

    async def _run(self, session: SummarySession) -> None:
        try:
            await self._consume(session)
        except SummaryStreamError as exc:
            self._fail(session, exc)
        except Exception as exc:  # noqa: BLE001
            logger.exception("Unexpected summary stream failure")
            self._fail(session, TransportError(f"Unexpected stream failure: {exc}"))
        else:
            self._complete(session)

    async def _consume(self, session: SummarySession) -> None:
        url = f"{self.base_url}{self.path}"
        headers = self._headers()
        timeout = httpx.Timeout(self.timeout, read=None)
        logger.debug(f"POST {url} | headers: {mask_headers(headers)}")

        try:
            async with self._client().stream(
                "POST", url, json=session.request.to_payload(), headers=headers, timeout=timeout
            ) as response:
                await self._check_response(response)
                decoder = SSERecordDecoder()
                try:
                    async for text in response.aiter_text():
                        for record in decoder.feed(text):
                            if self._apply(session, record):
                                return
                except (httpx.HTTPError, httpx.StreamError) as exc:
                    raise StreamReadError(f"Stream interrupted: {exc}") from exc
                for record in decoder.flush():
                    if self._apply(session, record):
                        return
        except httpx.TimeoutException as exc:
            raise TransportError("Connection timeout: server may be unreachable") from exc
        except httpx.HTTPError as exc:
            raise TransportError(f"Unable to connect to server: {exc}") from exc

    async def _check_response(self, response: httpx.Response) -> None:
        if not response.is_success:
            text = (await response.aread()).decode("utf-8", errors="replace")
            raise TransportError(
                f"HTTP {response.status_code}: {text[:100]}",
                status_code=response.status_code,
                response_text=text,
            )

        content_type = response.headers.get("content-type", "")
        if "text/event-stream" in content_type:
            return

        text = (await response.aread()).decode("utf-8", errors="replace")
        message = None
        if "application/json" in content_type:
            # the server rejected the request inside an envelope
            try:
                body = json.loads(text)
            except json.JSONDecodeError:
                body = None
            message = body.get("msg") if isinstance(body, dict) else None
        raise TransportError(
            str(message or f"Server did not return an event stream (content-type: {content_type or 'none'})"),
            status_code=response.status_code,
            response_text=text,
        )

    def _apply(self, session: SummarySession, record: SSERecord) -> bool:
        """Apply one record; True once the session must stop reading."""
        if not session.is_streaming:
            return True

        item = resolve_record(record)
        if item is None:
            return False
        if isinstance(item, StreamDone):
            self._complete(session)
            return True
        if isinstance(item, StreamFailure):
            self._fail(session, StreamReadError(item.message))
            return True

        if item.channel == "reasoning":
            now = self._clock()
            session._reasoning.append(item.payload)
            if session.reasoning_started_at is None:
                session.reasoning_started_at = now
            session.reasoning_ended_at = now
        else:
            session._content.append(item.payload)
        self._notify(session, item)
        return False

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def _finalize_reasoning(self, session: SummarySession) -> None:
        if session.reasoning_started_at is not None and session.reasoning_ended_at is None:
            session.reasoning_ended_at = self._clock()

    def _complete(self, session: SummarySession) -> None:
        if not session.is_streaming:
            return
        session.phase = SummaryPhase.COMPLETED
        self._finalize_reasoning(session)
        logger.debug(
            "Summary stream completed: content=%s chars, reasoning=%s chars",
            len(session.accumulated_content),
            len(session.accumulated_reasoning),
        )
        self._notify(session, None)

    def _fail(self, session: SummarySession, error: SummaryStreamError) -> None:
        if not session.is_streaming:
            return
        session.phase = SummaryPhase.ERRORED
        session.error = error
        session.error_message = error.message
        logger.error(f"Summary stream failed: {type(error).__name__}: {error.message}")
        self._notify(session, None)

    def _notify(self, session: SummarySession, fragment: Optional[StreamFragment]) -> None:
        if self.listener is None:
            return
        try:
            self.listener(session, fragment)
        except Exception:  # noqa: BLE001
            logger.exception("Summary session listener failed")

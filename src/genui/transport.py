"""Streaming transport: one POST per conversational turn.

Each turn is a :class:`StreamSession`.  Starting a new one cancels the
previous session and waits until its response stream has been released
before the next request goes out, so two sessions never race tokens into
the render pipeline.
"""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from contextlib import aclosing
from enum import Enum
from typing import Any, Callable

import httpx

from genui.accumulator import ResponseAccumulator
from genui.errors import TransportError
from genui.frames import FrameDecoder, adecode_frames
from genui.spec import UISpec
from genui.wire import WireEntry, WireLog

log = logging.getLogger(__name__)

EMPTY_RESPONSE_MESSAGE = "No response received from the AI service. Please try again."


class SessionStatus(str, Enum):
    IDLE = "idle"
    STREAMING = "streaming"
    DONE = "done"
    ERROR = "error"
    CANCELLED = "cancelled"

    @property
    def terminal(self) -> bool:
        return self in (SessionStatus.DONE, SessionStatus.ERROR, SessionStatus.CANCELLED)


def build_request_body(
    prompt: str,
    *,
    previous_response: str | None = None,
    context: dict[str, Any] | None = None,
    system_prompt: str | None = None,
) -> dict[str, Any]:
    body: dict[str, Any] = {"prompt": prompt}
    if previous_response:
        body["previousC1Response"] = previous_response
    if context:
        body["context"] = context
    if system_prompt:
        body["systemPrompt"] = system_prompt
    body["stream"] = True
    return body


class StreamSession:
    """One request/response/render cycle.

    A session moves ``idle → streaming → done | error | cancelled`` and
    makes exactly one terminal transition.  A finished session is never
    restarted; the transport always creates a fresh one.
    """

    def __init__(
        self,
        query: str,
        *,
        previous_response: str | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        self.id = uuid.uuid4().hex[:12]
        self.query = query
        self.previous_response = previous_response
        self.context = context
        self.status = SessionStatus.IDLE
        self.accumulator = ResponseAccumulator()
        self.decoder = FrameDecoder()
        # Last successfully parsed spec for this session's text
        self.spec: UISpec | None = None
        self.error: Exception | None = None
        self.status_code: int | None = None
        self.started_at: float | None = None
        self.finished_at: float | None = None
        self._task: asyncio.Task[None] | None = None

    def __repr__(self) -> str:
        return f"<StreamSession {self.id} {self.status.value} tokens={self.accumulator.tokens}>"

    @property
    def text(self) -> str:
        """Current renderable text."""
        return self.accumulator.text

    @property
    def duration_ms(self) -> float:
        if self.started_at is None:
            return 0.0
        end = self.finished_at or time.monotonic()
        return (end - self.started_at) * 1000

    def cancel(self) -> bool:
        """Abort the request and any outstanding read.

        Returns False when the session had already terminated.
        """
        if not self._finish(SessionStatus.CANCELLED):
            return False
        log.debug("Session %s cancelled", self.id)
        if self._task is not None and not self._task.done():
            self._task.cancel()
        return True

    async def released(self) -> None:
        """Wait until the streaming task has exited and closed its reader."""
        if self._task is not None:
            await asyncio.wait({self._task})

    async def wait(self) -> str:
        """Wait for the session to end and return its renderable text.

        Raises the captured error for sessions that ended in ``error``.
        """
        await self.released()
        if self.status is SessionStatus.ERROR and self.error is not None:
            raise self.error
        return self.text

    # ── state machine ───────────────────────────────────────────────
    def _begin(self, task: asyncio.Task[None]) -> None:
        if self.status is not SessionStatus.IDLE:
            task.cancel()
            raise RuntimeError(
                f"Session {self.id} is {self.status.value}; start a new session instead"
            )
        self.status = SessionStatus.STREAMING
        self.started_at = time.monotonic()
        self._task = task

    def _finish(self, status: SessionStatus) -> bool:
        if self.status.terminal:
            return False
        self.status = status
        self.finished_at = time.monotonic()
        return True


class StreamTransport:
    """Owns the HTTP client and the single live session."""

    def __init__(
        self,
        endpoint: str,
        *,
        client: httpx.AsyncClient | None = None,
        headers: dict[str, str] | None = None,
        wire_log: WireLog | None = None,
    ) -> None:
        self.endpoint = endpoint
        self.headers = {
            "Content-Type": "application/json",
            "Accept": "text/event-stream",
            **(headers or {}),
        }
        self.wire_log = wire_log
        # No timeout: cancellation is always host- or user-initiated.
        self._client = client or httpx.AsyncClient(timeout=None)
        self._owns_client = client is None
        self._lock = asyncio.Lock()
        self.current: StreamSession | None = None

    @property
    def status(self) -> SessionStatus:
        return self.current.status if self.current else SessionStatus.IDLE

    async def start(
        self,
        query: str,
        context: dict[str, Any] | None = None,
        previous_response_text: str | None = None,
        *,
        system_prompt: str | None = None,
        on_token: Callable[[StreamSession, str], None] | None = None,
        on_done: Callable[[StreamSession], None] | None = None,
    ) -> StreamSession:
        """Cancel the live session (if any) and start a new turn."""
        async with self._lock:
            previous = self.current
            if previous is not None:
                previous.cancel()
                await previous.released()

            session = StreamSession(
                query,
                previous_response=previous_response_text,
                context=context,
            )
            body = build_request_body(
                query,
                previous_response=previous_response_text,
                context=context,
                system_prompt=system_prompt,
            )
            self.current = session
            entry = None
            if self.wire_log is not None:
                entry = self.wire_log.request(self.endpoint, body)
            task = asyncio.create_task(
                self._run(session, body, entry, on_token),
                name=f"genui-session-{session.id}",
            )
            session._begin(task)
            # Runs even when the task is cancelled before its first step
            task.add_done_callback(
                lambda t: self._settle(t, session, entry, on_done)
            )
            log.info("Session %s started: %r", session.id, query[:80])
            return session

    def cancel(self) -> bool:
        if self.current is None:
            return False
        return self.current.cancel()

    async def aclose(self) -> None:
        if self.current is not None:
            self.current.cancel()
            await self.current.released()
        if self._owns_client:
            await self._client.aclose()

    # ── streaming ───────────────────────────────────────────────────
    async def _run(
        self,
        session: StreamSession,
        body: dict[str, Any],
        entry: WireEntry | None,
        on_token: Callable[[StreamSession, str], None] | None,
    ) -> None:
        try:
            async with self._client.stream(
                "POST",
                self.endpoint,
                json=body,
                headers=self.headers,
            ) as response:
                session.status_code = response.status_code
                if not response.is_success:
                    detail = await _error_text(response)
                    raise TransportError(
                        f"Generation request failed ({response.status_code}): {detail}",
                        status_code=response.status_code,
                    )
                if response.stream is None:
                    raise TransportError("Response body stream not found")

                async with aclosing(
                    adecode_frames(response.aiter_bytes(), session.decoder)
                ) as tokens:
                    async for token in tokens:
                        if session.status is not SessionStatus.STREAMING:
                            break
                        session.accumulator.append(token)
                        if entry is not None:
                            self.wire_log.chunk(entry, token)
                        if on_token:
                            on_token(session, token)

            if session.status is SessionStatus.STREAMING:
                if session.accumulator.is_empty():
                    raise TransportError(EMPTY_RESPONSE_MESSAGE)
                session._finish(SessionStatus.DONE)
                log.info(
                    "Session %s done: %d tokens, %d skipped frames, %.0fms",
                    session.id,
                    session.accumulator.tokens,
                    len(session.decoder.skipped),
                    session.duration_ms,
                )
        except asyncio.CancelledError:
            session._finish(SessionStatus.CANCELLED)
            raise
        except httpx.HTTPError as exc:
            self._fail(session, TransportError(f"Network error: {exc}"), cause=exc)
        except TransportError as exc:
            self._fail(session, exc)
        except Exception as exc:
            log.exception("Session %s crashed", session.id)
            self._fail(session, exc)

    def _settle(
        self,
        task: asyncio.Task[None],
        session: StreamSession,
        entry: WireEntry | None,
        on_done: Callable[[StreamSession], None] | None,
    ) -> None:
        """Record the finished session and notify the host exactly once."""
        if task.cancelled():
            session._finish(SessionStatus.CANCELLED)
        if entry is not None:
            entry.status_code = session.status_code
            entry.skipped_frames = len(session.decoder.skipped)
            self.wire_log.done(
                entry,
                status=session.status.value,
                full_response=session.accumulator.buffer,
                error=str(session.error) if session.error else None,
            )
        if on_done:
            on_done(session)

    def _fail(
        self,
        session: StreamSession,
        error: Exception,
        cause: BaseException | None = None,
    ) -> None:
        if cause is not None:
            error.__cause__ = cause
        if session._finish(SessionStatus.ERROR):
            session.error = error
            log.warning("Session %s failed: %s", session.id, error)


async def _error_text(response: httpx.Response) -> str:
    try:
        raw = await response.aread()
    except httpx.HTTPError:
        return ""
    return raw.decode("utf-8", errors="replace")

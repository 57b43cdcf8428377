"""Shared fixtures: SSE body builders and a mocked streaming HTTP client."""

import asyncio
import json

import httpx
import pytest


def frame(content: str) -> str:
    """One ``data:`` line carrying *content* as a delta token."""
    event = {"choices": [{"delta": {"content": content}}]}
    return f"data: {json.dumps(event, ensure_ascii=False)}\n\n"


def sse(*tokens: str, done: bool = True) -> bytes:
    body = "".join(frame(t) for t in tokens)
    if done:
        body += "data: [DONE]\n\n"
    return body.encode("utf-8")


async def stream_chunks(chunks, *, hold: asyncio.Event | None = None, closed: list | None = None):
    """Async byte stream; optionally blocks on *hold* after the last chunk."""
    try:
        for chunk in chunks:
            yield chunk
            await asyncio.sleep(0)
        if hold is not None:
            await hold.wait()
    finally:
        if closed is not None:
            closed.append(True)


@pytest.fixture
def sse_body():
    return sse


@pytest.fixture
def sse_frame():
    return frame


@pytest.fixture
def chunked():
    return stream_chunks


@pytest.fixture
def mock_client():
    """Factory: ``mock_client(handler)`` → AsyncClient over MockTransport."""
    def factory(handler) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(handler))

    return factory

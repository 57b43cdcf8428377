"""Incremental decoder for the ``data: <json>`` event stream.

Chunks arrive with arbitrary boundaries: a chunk may end in the middle of a
line or in the middle of a multi-byte UTF-8 character.  The decoder keeps a
persistent text decoder and a partial-line buffer so the token sequence does
not depend on where the network happened to split the body.
"""

from __future__ import annotations

import codecs
import json
import logging
from typing import Any, AsyncIterable, AsyncIterator, Iterable, Iterator

from genui.errors import FrameDecodeError

log = logging.getLogger(__name__)

FRAME_PREFIX = "data:"
DONE_SENTINEL = "[DONE]"


def extract_token(event: Any) -> str | None:
    """Return ``choices[0].delta.content`` when present and non-empty."""
    if not isinstance(event, dict):
        return None
    choices = event.get("choices")
    if not isinstance(choices, list) or not choices:
        return None
    first = choices[0]
    if not isinstance(first, dict):
        return None
    delta = first.get("delta")
    if not isinstance(delta, dict):
        return None
    content = delta.get("content")
    if isinstance(content, str) and content:
        return content
    return None


class FrameDecoder:
    """Turns raw byte chunks into content tokens.

    Attributes:
        done:     True once the ``[DONE]`` sentinel has been seen
        skipped:  every frame that was dropped, as FrameDecodeError
        frames:   number of ``data:`` frames looked at
    """

    def __init__(self) -> None:
        self._text = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._partial = ""
        self.done = False
        self.skipped: list[FrameDecodeError] = []
        self.frames = 0

    def feed(self, chunk: bytes) -> list[str]:
        """Decode one chunk and return the tokens completed by it."""
        if self.done:
            return []
        text = self._partial + self._text.decode(chunk)
        lines = text.split("\n")
        # Last element is an unterminated line (possibly empty)
        self._partial = lines.pop()
        return self._consume(lines)

    def flush(self) -> list[str]:
        """End of input: process whatever is left in the buffers."""
        if self.done:
            return []
        tail = self._partial + self._text.decode(b"", final=True)
        self._partial = ""
        return self._consume(tail.split("\n"))

    def _consume(self, lines: list[str]) -> list[str]:
        tokens: list[str] = []
        for raw in lines:
            if self.done:
                break
            token = self._decode_line(raw.rstrip("\r"))
            if token:
                tokens.append(token)
        return tokens

    def _decode_line(self, line: str) -> str | None:
        if not line.startswith(FRAME_PREFIX):
            return None

        payload = line[len(FRAME_PREFIX):].strip()
        if not payload:
            return None
        self.frames += 1

        if payload == DONE_SENTINEL:
            log.debug("Received [DONE] after %d frames", self.frames)
            self.done = True
            return None

        try:
            event = json.loads(payload)
        except json.JSONDecodeError as exc:
            err = FrameDecodeError(payload, f"invalid JSON ({exc.msg})")
            self.skipped.append(err)
            log.warning("Skipping frame %d: %s", self.frames, err)
            return None

        token = extract_token(event)
        if token is None:
            err = FrameDecodeError(payload, "no choices[0].delta.content")
            self.skipped.append(err)
            log.debug("Skipping frame %d: %s", self.frames, err)
        return token


def decode_frames(
    chunks: Iterable[bytes],
    decoder: FrameDecoder | None = None,
) -> Iterator[str]:
    """Yield tokens from an iterable of byte chunks."""
    decoder = decoder or FrameDecoder()
    for chunk in chunks:
        yield from decoder.feed(chunk)
        if decoder.done:
            return
    yield from decoder.flush()


async def adecode_frames(
    chunks: AsyncIterable[bytes],
    decoder: FrameDecoder | None = None,
) -> AsyncIterator[str]:
    """Async twin of :func:`decode_frames` for streamed response bodies.

    Stops reading as soon as ``[DONE]`` is seen; the caller owns closing the
    underlying stream.
    """
    decoder = decoder or FrameDecoder()
    async for chunk in chunks:
        for token in decoder.feed(chunk):
            yield token
        if decoder.done:
            return
    for token in decoder.flush():
        yield token

"""Accumulate streamed tokens and extract the renderable text."""

from __future__ import annotations

import re

# Matches <content>...</content>, spanning newlines.
_CONTENT_RE = re.compile(r"<content>(?P<body>.*?)</content>", re.DOTALL)

# Order matters: &amp; last so "&amp;lt;" decodes to "&lt;", not "<".
_ENTITIES = (
    ("&quot;", '"'),
    ("&lt;", "<"),
    ("&gt;", ">"),
    ("&amp;", "&"),
)


def append_token(buffer: str, token: str) -> str:
    """Return the buffer with *token* appended."""
    return buffer + token


def decode_entities(text: str) -> str:
    for entity, char in _ENTITIES:
        text = text.replace(entity, char)
    return text


def extract_content(buffer: str) -> str | None:
    """Return the decoded body of the first complete ``<content>`` block.

    A block holding only whitespace yields ``""``, not None.
    """
    m = _CONTENT_RE.search(buffer)
    if not m:
        return None
    return decode_entities(m.group("body").strip())


def renderable_text(buffer: str) -> str:
    """Best-effort display text for *buffer*.

    The decoded block once one is complete, the raw buffer while the
    response is still streaming (or carries no block at all).
    """
    extracted = extract_content(buffer)
    return buffer if extracted is None else extracted


class ResponseAccumulator:
    """Append-only token buffer owned by a single stream session."""

    def __init__(self) -> None:
        self._buffer = ""
        self.tokens = 0

    @property
    def buffer(self) -> str:
        return self._buffer

    @property
    def text(self) -> str:
        return renderable_text(self._buffer)

    @property
    def has_content_block(self) -> bool:
        return extract_content(self._buffer) is not None

    def is_empty(self) -> bool:
        return not self._buffer.strip()

    def append(self, token: str) -> str:
        """Add *token* and return the new renderable text."""
        self._buffer = append_token(self._buffer, token)
        self.tokens += 1
        return self.text

    def reset(self) -> None:
        self._buffer = ""
        self.tokens = 0

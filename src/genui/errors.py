"""Error taxonomy for the streaming pipeline.

Only ``TransportError`` ever reaches the host.  The other three are always
recovered where they happen: logged, and the pipeline carries on.
"""

from __future__ import annotations


class GenUIError(Exception):
    """Base class for pipeline errors."""


class TransportError(GenUIError):
    """Network failure, non-success status, missing body or empty stream."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class FrameDecodeError(GenUIError):
    """A single ``data:`` frame could not be turned into a token."""

    def __init__(self, payload: str, reason: str) -> None:
        super().__init__(f"{reason}: {payload[:120]!r}")
        self.payload = payload
        self.reason = reason


class SpecParseError(GenUIError):
    """Renderable text is not (yet) a complete UISpec document."""


class RenderError(GenUIError):
    """A node could not be rendered; a placeholder is shown instead."""

    def __init__(self, node_type: str, node_id: str | None = None) -> None:
        super().__init__(f"Unsupported component: {node_type or '(missing type)'}")
        self.node_type = node_type
        self.node_id = node_id

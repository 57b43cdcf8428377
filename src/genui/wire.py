"""Wire log: captures each generation request and its streamed response.

The transport reports every request, token and completion here; the terminal
app hooks the callbacks to show raw traffic in its wire panel.
"""

from __future__ import annotations

import json
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable


@dataclass
class WireEntry:
    """One generation call: request body + streamed response."""
    ts: str
    url: str
    body: dict[str, Any]
    entry_id: int = 0
    chunks: list[str] = field(default_factory=list)
    full_response: str = ""
    status: str = "streaming"
    status_code: int | None = None
    skipped_frames: int = 0
    duration_ms: float = 0.0
    error: str | None = None
    _started: float = field(default_factory=time.monotonic, repr=False)


class WireLog:
    """Collects :class:`WireEntry` records.

    Attributes:
        entries:    completed request/response pairs
        on_chunk:   callback fired for each streamed token
        on_request: callback fired when a new request starts
        on_done:    callback fired when a response completes (any outcome)
    """

    def __init__(self, max_entries: int = 200) -> None:
        self.entries: list[WireEntry] = []
        self.max_entries = max_entries
        self._next_id: int = 0

        self.on_chunk: Callable[[WireEntry, str], None] | None = None
        self.on_request: Callable[[WireEntry], None] | None = None
        self.on_done: Callable[[WireEntry], None] | None = None

    # ── request ─────────────────────────────────────────────────────
    def request(self, url: str, body: dict[str, Any]) -> WireEntry:
        self._next_id += 1
        entry = WireEntry(
            ts=datetime.now(timezone.utc).isoformat(),
            url=url,
            body=_safe_body(body),
            entry_id=self._next_id,
        )
        if self.on_request:
            self.on_request(entry)
        return entry

    # ── streaming chunks ────────────────────────────────────────────
    def chunk(self, entry: WireEntry, token: str) -> None:
        entry.chunks.append(token)
        if self.on_chunk:
            self.on_chunk(entry, token)

    # ── completion ──────────────────────────────────────────────────
    def done(
        self,
        entry: WireEntry,
        *,
        status: str,
        full_response: str = "",
        error: str | None = None,
    ) -> None:
        entry.status = status
        entry.full_response = full_response
        entry.error = error
        entry.duration_ms = (time.monotonic() - entry._started) * 1000

        self.entries.append(entry)
        if len(self.entries) > self.max_entries:
            del self.entries[: len(self.entries) - self.max_entries]
        if self.on_done:
            self.on_done(entry)


# ── helpers ─────────────────────────────────────────────────────────

def _safe_body(body: dict[str, Any]) -> dict[str, Any]:
    """Copy of the request body with very long strings trimmed for display."""
    out: dict[str, Any] = {}
    for key, value in body.items():
        if isinstance(value, str) and len(value) > 20_000:
            out[key] = value[:20_000] + f"...[{len(value) - 20_000} more chars]"
        else:
            out[key] = value
    return out


def format_wire_body(body: dict[str, Any]) -> str:
    """Render a request body for the wire panel display."""
    parts: list[str] = []
    for key, value in body.items():
        if isinstance(value, str):
            shown = value
        else:
            shown = json.dumps(value, indent=2, default=str)
        parts.append(f"──── [{key}] ({len(shown):,} chars) ────")
        parts.append(shown)
        parts.append("")
    return "\n".join(parts)

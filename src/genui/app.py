"""Textual TUI: chat input on the left, generated UI on the right."""

from __future__ import annotations

import json
import logging
import os

from rich.markdown import Markdown
from rich.text import Text
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, Vertical, VerticalScroll
from textual.theme import Theme
from textual.widget import Widget
from textual.widgets import Collapsible, Input, Static

from genui import __version__
from genui.assistant import CONTINUATION_ACTIONS, Assistant, query_from_action
from genui.render import GenUIView, RenderTheme
from genui.settings import SettingsManager
from genui.spec import UIAction, UISpec
from genui.transport import SessionStatus, StreamSession
from genui.wire import WireEntry, format_wire_body

log = logging.getLogger(__name__)


# ── Helpers ─────────────────────────────────────────────────────────

PREVIEW_LINE_CHARS = 140
PREVIEW_MAX_LINES = 12

STATUS_STYLES = {
    SessionStatus.IDLE: "#666666",
    SessionStatus.STREAMING: "#f0c674",
    SessionStatus.DONE: "#b5bd68",
    SessionStatus.ERROR: "#cc6666",
    SessionStatus.CANCELLED: "#666666",
}


def _fmt_count(n: int) -> str:
    """Compact counter for the footer: 999, 1.2k, 12k, 3.4M."""
    for scale, suffix in ((1_000_000, "M"), (1000, "k")):
        if n >= scale:
            value = n / scale
            if round(value, 1) < 10:
                return f"{value:.1f}{suffix}"
            return f"{value:.0f}{suffix}"
    return str(n)


def _preview_tail(text: str, max_lines: int = PREVIEW_MAX_LINES) -> str:
    """Last few lines of the streaming text, long lines cut at the width."""
    lines = text.splitlines() or [""]
    hidden = len(lines) - max_lines
    out = [f"… [{hidden} earlier lines]"] if hidden > 0 else []
    for line in lines[-max_lines:]:
        if len(line) > PREVIEW_LINE_CHARS:
            line = line[:PREVIEW_LINE_CHARS - 1] + "…"
        out.append(line)
    return "\n".join(out)


def _wire_outcome(entry: WireEntry) -> Text:
    facts = [entry.status]
    if entry.status_code is not None:
        facts.append(f"HTTP {entry.status_code}")
    facts.append(f"{entry.duration_ms:.0f}ms")
    facts.append(f"{len(entry.chunks)} tokens")
    outcome = Text("◀ " + " · ".join(facts), style="#808080")
    if entry.skipped_frames:
        outcome.append(f" · {entry.skipped_frames} skipped frames", style="#f0c674")
    if entry.error:
        outcome.append(f"\n  {entry.error}", style="bold #cc6666")
    return outcome


def _build_genui_theme(background: str) -> Theme:
    return Theme(
        name="genui",
        primary="#8abeb7",
        secondary="#5f87ff",
        accent="#8abeb7",
        foreground="#d4d4d4",
        background=background,
        panel=background,
        surface="#1e1e24",
        warning="#f0c674",
        error="#cc6666",
        success="#b5bd68",
        dark=True,
    )


# ── Widgets ─────────────────────────────────────────────────────────

class ChatMessage(Static):
    """A single message in the chat."""

    def __init__(self, content: str, role: str = "user", **kwargs) -> None:
        super().__init__(**kwargs)
        self.message = content
        self.role = role
        self.add_class("msg", f"msg-{role}")

    def on_mount(self) -> None:
        if self.role in ("assistant", "system"):
            self.update(Markdown(self.message))
        else:
            self.update(Text(self.message))


class StatusFooter(Widget):
    """2-line footer: endpoint on line 1, session status + stats on line 2."""

    DEFAULT_CSS = """
    StatusFooter {
        height: 2;
        color: #666666;
        padding: 0 1;
    }
    """

    def __init__(self, endpoint: str = "", **kwargs) -> None:
        super().__init__(**kwargs)
        self.endpoint = endpoint
        self.session_status = SessionStatus.IDLE
        self._stats = ""

    def update_stats(
        self,
        status: SessionStatus,
        tokens: int = 0,
        skipped: int = 0,
        duration_ms: float = 0.0,
    ) -> None:
        self.session_status = status
        parts: list[str] = []
        if tokens:
            parts.append(f"↓{_fmt_count(tokens)} tokens")
        if skipped:
            parts.append(f"{skipped} skipped")
        if duration_ms > 0:
            parts.append(f"{duration_ms / 1000:.1f}s")
        self._stats = " ".join(parts)
        self.refresh()

    def render(self) -> Text:
        width = self.content_size.width or 80

        text = Text()
        endpoint = self.endpoint
        if len(endpoint) > width:
            half = width // 2 - 2
            endpoint = endpoint[:half] + "…" + endpoint[-(half - 1):]
        text.append(endpoint, style="#666666")
        text.append("\n")

        left = Text()
        left.append(f"● {self.session_status.value}", style=STATUS_STYLES[self.session_status])
        if self._stats:
            left.append(f"  {self._stats}", style="#666666")

        if self.session_status is SessionStatus.STREAMING:
            right = "esc cancel"
        elif self.session_status is SessionStatus.ERROR:
            right = "ctrl+r retry"
        else:
            right = "ctrl+w wire"

        text.append_text(left)
        gap = width - len(left) - len(right)
        if gap >= 2:
            text.append(" " * gap)
            text.append(right, style="#666666")
        return text


class WireExchange(Vertical):
    """One POST in the wire panel: request body, live tokens, outcome."""

    DEFAULT_CSS = """
    WireExchange {
        height: auto;
        margin: 1 0;
    }
    """

    def __init__(self, entry: WireEntry, **kwargs) -> None:
        super().__init__(**kwargs)
        self.entry = entry
        self.received = ""
        self._stream = Static(
            Text("⏳ waiting for response…", style="italic #666666"),
            classes="wire-stream",
        )
        self._outcome = Static("", classes="wire-footer")

    def compose(self) -> ComposeResult:
        entry = self.entry
        body = format_wire_body(entry.body)
        yield Static(
            Text.assemble(
                (f"▶ #{entry.entry_id} POST ", "bold #5f87ff"),
                (f"{entry.ts[11:19]}  {entry.url}", "#666666"),
            ),
            classes="wire-header",
        )
        yield Collapsible(
            Static(Text(body), classes="wire-msg-content"),
            title=f"📤 body · {len(entry.body)} fields · {len(body):,} chars",
            collapsed=True,
        )
        yield self._stream
        yield self._outcome

    def add_token(self, token: str) -> None:
        self.received += token
        self._stream.update(Text(self.received))

    def finish(self) -> None:
        text = self.received or self.entry.full_response
        if text:
            self._stream.update(Text(text))
        else:
            self._stream.update(Text("(no response text)", style="italic #666666"))
        self._outcome.update(_wire_outcome(self.entry))


# ── App ─────────────────────────────────────────────────────────────

class GenUIApp(App):
    TITLE = "genui"
    CSS_PATH = "app.tcss"

    BINDINGS = [
        Binding("escape", "cancel", "Cancel", show=False),
        Binding("ctrl+r", "retry", "Retry", show=False),
        Binding("ctrl+w", "toggle_wire", "Wire", show=False, priority=True),
        Binding("ctrl+c", "quit", "Quit", show=False, priority=True),
    ]

    def __init__(
        self,
        assistant: Assistant,
        *,
        settings: SettingsManager | None = None,
        theme: RenderTheme | None = None,
        **kwargs,
    ) -> None:
        super().__init__(**kwargs)

        # GENUI_BG=#RRGGBB forces a solid background; "ansi_default" uses
        # the terminal's own.
        bg = (os.environ.get("GENUI_BG") or "#1e1e24").strip() or "#1e1e24"
        self.register_theme(_build_genui_theme(bg))
        self.theme = "genui"

        self.assistant = assistant
        self.settings = settings
        self.render_theme = theme or RenderTheme()
        self._wire_visible = False
        # Exchanges still waiting on their response, by entry_id
        self._wire_exchanges: dict[int, WireExchange] = {}

        assistant.on_update = self._on_update
        assistant.on_status = self._on_status
        assistant.on_action = self._on_host_action

    @property
    def genui_view(self) -> GenUIView:
        return self.query_one("#genui-view", GenUIView)

    def compose(self) -> ComposeResult:
        with Horizontal(id="main-area"):
            with Vertical(id="left-pane"):
                yield VerticalScroll(id="chat-log")
                yield Static(id="raw-preview")
            yield GenUIView(
                self.assistant.spec,
                context={"theme": self.render_theme},
                dispatcher=self.assistant.dispatcher,
                id="genui-view",
            )
            yield VerticalScroll(id="wire-log")
        with Vertical(id="bottom-bar"):
            yield Input(
                placeholder="Ask for a UI… (/refine <feedback>)",
                id="user-input",
            )
            yield StatusFooter(self.assistant.transport.endpoint, id="status-footer")

    def on_mount(self) -> None:
        self.query_one("#user-input", Input).focus()
        self.query_one("#wire-log").display = False
        self.query_one("#raw-preview").display = False

        wire_log = self.assistant.transport.wire_log
        if wire_log is not None:
            wire_log.on_request = self._wire_request
            wire_log.on_chunk = self._wire_chunk
            wire_log.on_done = self._wire_done

        self._chat(
            f"**genui** v{__version__}\n\n"
            "`enter` ask · `esc` cancel · `ctrl+r` retry · "
            "`ctrl+w` wire · `ctrl+c` quit\n"
            "`/refine <feedback>` to adjust the last answer",
            role="system",
        )

    async def on_unmount(self) -> None:
        self.assistant.on_update = None
        self.assistant.on_status = None
        wire_log = self.assistant.transport.wire_log
        if wire_log is not None:
            wire_log.on_request = wire_log.on_chunk = wire_log.on_done = None
        await self.assistant.transport.aclose()

    # ── chat helpers ────────────────────────────────────────────────
    def _chat(self, content: str, role: str = "system") -> None:
        chat = self.query_one("#chat-log")
        chat.mount(ChatMessage(content, role=role))
        chat.scroll_end(animate=False)

    def _update_status(self, session: StreamSession | None = None) -> None:
        session = session or self.assistant.session
        footer = self.query_one("#status-footer", StatusFooter)
        if session is None:
            footer.update_stats(SessionStatus.IDLE)
            return
        footer.update_stats(
            session.status,
            tokens=session.accumulator.tokens,
            skipped=len(session.decoder.skipped),
            duration_ms=session.duration_ms,
        )

    # ── actions ─────────────────────────────────────────────────────
    def action_cancel(self) -> None:
        if self.assistant.cancel():
            self._chat("Cancelled.", role="system")

    def action_retry(self) -> None:
        if not self.assistant.last_query:
            return
        self._chat(self.assistant.last_query, role="user")
        self.run_worker(self.assistant.retry(), group="ask")

    def action_toggle_wire(self) -> None:
        self._wire_visible = not self._wire_visible
        self.query_one("#wire-log").display = self._wire_visible

    # ── input handling ──────────────────────────────────────────────
    def on_input_submitted(self, event: Input.Submitted) -> None:
        text = event.value.strip()
        if not text:
            return
        event.input.value = ""

        if text.startswith("/refine"):
            feedback = text[7:].strip()
            if not feedback or not self.assistant.last_query:
                self._chat("Nothing to refine yet: ask something first.", role="error")
                return
            self._chat(f"Refine: {feedback}", role="user")
            self.run_worker(self.assistant.refine(feedback), group="ask")
            return

        self._chat(text, role="user")
        if self.settings is not None:
            self.settings.add_recent_query(text)
        self.run_worker(self.assistant.ask(text), group="ask")

    # ── assistant callbacks ─────────────────────────────────────────
    def _on_update(
        self,
        session: StreamSession,
        text: str,
        spec: UISpec | None,
        changed: bool,
    ) -> None:
        preview = self.query_one("#raw-preview", Static)
        if spec is None and text:
            preview.display = True
            preview.update(Text(_preview_tail(text), style="#808080"))
        else:
            preview.display = False
        if changed:
            self.run_worker(self.genui_view.show(spec), group="render", exclusive=True)
        self._update_status(session)

    def _on_status(self, session: StreamSession) -> None:
        self._update_status(session)
        self.query_one("#raw-preview").display = False

        if session.status is SessionStatus.DONE:
            spec = self.assistant.spec
            if spec is not None:
                title = spec.title or "Generated UI"
                self._chat(f"✨ **{title}** · {len(spec.components)} components", role="assistant")
            else:
                self._chat(session.text, role="assistant")
        elif session.status is SessionStatus.ERROR:
            self._chat(f"{session.error}\n\nPress ctrl+r to retry.", role="error")

    def _on_host_action(self, action: UIAction) -> None:
        if action.type in CONTINUATION_ACTIONS:
            self._chat(query_from_action(action), role="user")
            self.run_worker(self.assistant.follow_up(action), group="ask")
            return
        payload = json.dumps(action.payload, ensure_ascii=False, default=str)
        log.info("Unhandled host action %r: %s", action.type, payload)
        self._chat(f"Action `{action.type}` · {payload}", role="system")

    # ── wire callbacks ──────────────────────────────────────────────

    def _wire_request(self, entry: WireEntry) -> None:
        exchange = WireExchange(entry)
        self._wire_exchanges[entry.entry_id] = exchange
        wire_log = self.query_one("#wire-log")
        wire_log.mount(exchange)
        wire_log.scroll_end(animate=False)

    def _wire_chunk(self, entry: WireEntry, chunk: str) -> None:
        exchange = self._wire_exchanges.get(entry.entry_id)
        if exchange is not None:
            exchange.add_token(chunk)

    def _wire_done(self, entry: WireEntry) -> None:
        exchange = self._wire_exchanges.pop(entry.entry_id, None)
        if exchange is not None:
            exchange.finish()
            self.query_one("#wire-log").scroll_end(animate=False)

"""Assistant: the session-control surface the host talks to.

Ties the transport, spec parsing, interaction state and action dispatch
together for one assistant instance:

  query → StreamTransport → FrameDecoder → ResponseAccumulator
        → SpecParser → (host renders) → UIAction → ActionDispatcher
        → local state, or host → follow_up() → new session
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable

from genui.actions import ActionDispatcher
from genui.spec import UIAction, UISpec, parse_spec
from genui.state import InteractionState
from genui.transport import SessionStatus, StreamSession, StreamTransport

log = logging.getLogger(__name__)

CONTINUATION_ACTIONS = frozenset({"followUpQuery", "continue_conversation"})


@dataclass
class Message:
    role: str       # "user" | "assistant" | "error"
    content: str
    ts: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    session_id: str | None = None


def query_from_action(action: UIAction) -> str:
    """Turn a continuation action's payload into the next query text."""
    payload = action.payload or {}
    for key in ("message", "query", "prompt", "llmFriendlyMessage"):
        value = payload.get(key)
        if isinstance(value, str) and value.strip():
            return value
    if payload:
        return json.dumps(payload, ensure_ascii=False)
    return action.label or action.type


class Assistant:
    """One live conversation with the generation endpoint.

    Attributes:
        spec:       the currently displayed UISpec (None until one parses)
        state:      interaction state scoped to ``spec``
        last_text:  renderable text of the last session that completed
        history:    user / assistant / error messages, oldest first
        on_update:  ``(session, text, spec, changed)`` on every token
        on_status:  ``(session)`` when a session ends
        on_action:  host handler for non-local UI actions
    """

    def __init__(
        self,
        transport: StreamTransport,
        *,
        context: dict[str, Any] | None = None,
        system_prompt: str | None = None,
        on_update: Callable[[StreamSession, str, UISpec | None, bool], None] | None = None,
        on_status: Callable[[StreamSession], None] | None = None,
        on_action: Callable[[UIAction], None] | None = None,
    ) -> None:
        self.transport = transport
        self.context = context
        self.system_prompt = system_prompt
        self.on_update = on_update
        self.on_status = on_status
        self.on_action = on_action

        self.spec: UISpec | None = None
        self.state = InteractionState()
        self.dispatcher = ActionDispatcher(self.state, on_action=self._host_action)
        self.last_text: str = ""
        self.last_query: str = ""
        self.history: list[Message] = []

    @property
    def session(self) -> StreamSession | None:
        return self.transport.current

    @property
    def status(self) -> SessionStatus:
        return self.transport.status

    # ── turns ───────────────────────────────────────────────────────
    async def ask(
        self,
        query: str,
        context: dict[str, Any] | None = None,
        *,
        previous_response: str | None = None,
    ) -> StreamSession:
        """Start a new turn, superseding any session still in flight."""
        query = query.strip()
        if not query:
            raise ValueError("Query cannot be empty")

        self.last_query = query
        session = await self.transport.start(
            query,
            context if context is not None else self.context,
            previous_response,
            system_prompt=self.system_prompt,
            on_token=self._on_token,
            on_done=self._on_done,
        )
        # The new task has not run yet, so no token can precede this reset
        self.history.append(Message("user", query, session_id=session.id))
        self._show(None, "")
        return session

    async def follow_up(self, action: UIAction) -> StreamSession:
        """Continuation: the action payload becomes the next query."""
        return await self.ask(
            query_from_action(action),
            previous_response=self.last_text or None,
        )

    async def retry(self) -> StreamSession | None:
        """Re-issue the last query (the retry affordance after an error)."""
        if not self.last_query:
            return None
        return await self.ask(self.last_query)

    async def refine(self, feedback: str) -> StreamSession | None:
        if not self.last_query or not feedback.strip():
            return None
        prompt = f"{self.last_query}\n\nRefinement feedback: {feedback.strip()}"
        return await self.ask(prompt, previous_response=self.last_text or None)

    def cancel(self) -> bool:
        return self.transport.cancel()

    def dispatch(self, action: UIAction) -> bool:
        return self.dispatcher.dispatch(action)

    # ── pipeline callbacks ──────────────────────────────────────────
    def _on_token(self, session: StreamSession, token: str) -> None:
        if session is not self.transport.current:
            # Superseded sessions never touch shared render state
            return
        text = session.text
        result = parse_spec(text, session.spec)
        session.spec = result.spec
        if result.changed:
            self._show(result.spec, text)
        elif self.on_update:
            self.on_update(session, text, self.spec, False)

    def _on_done(self, session: StreamSession) -> None:
        if session.status is SessionStatus.DONE:
            self.last_text = session.text
            self.history.append(Message("assistant", session.text, session_id=session.id))
        elif session.status is SessionStatus.ERROR:
            self.history.append(Message("error", str(session.error), session_id=session.id))
        if self.on_status and session is self.transport.current:
            self.on_status(session)

    def _show(self, spec: UISpec | None, text: str) -> None:
        changed = spec is not self.spec
        self.spec = spec
        if changed:
            self.state.reset(spec)
        session = self.transport.current
        if self.on_update and session is not None:
            self.on_update(session, text, spec, changed)

    def _host_action(self, action: UIAction) -> None:
        log.debug("Forwarding action %r to host", action.type)
        if self.on_action:
            self.on_action(action)

"""Route UI actions to local state or to the host."""

from __future__ import annotations

import logging
from typing import Callable

from genui.spec import UIAction
from genui.state import InteractionState

log = logging.getLogger(__name__)

EXPAND = "expand"
FEEDBACK = "feedback"
LOCAL_ACTIONS = frozenset({EXPAND, FEEDBACK})


def expand_action(node_id: str) -> UIAction:
    return UIAction(type=EXPAND, payload={"sectionId": node_id})


def feedback_action(node_id: str, value: str) -> UIAction:
    return UIAction(type=FEEDBACK, payload={"componentId": node_id, "value": value})


class ActionDispatcher:
    """Handles ``expand`` / ``feedback`` locally, forwards everything else.

    Attributes:
        on_action: host callback for non-local actions
        on_change: fired after a local action mutated the state
    """

    def __init__(
        self,
        state: InteractionState,
        on_action: Callable[[UIAction], None] | None = None,
        on_change: Callable[[UIAction], None] | None = None,
    ) -> None:
        self.state = state
        self.on_action = on_action
        self.on_change = on_change

    def dispatch(self, action: UIAction) -> bool:
        """Dispatch *action*; returns True when it was handled locally."""
        if action.type in LOCAL_ACTIONS:
            if self._apply_local(action) and self.on_change:
                self.on_change(action)
            return True

        if self.on_action is None:
            log.debug("No host handler for action %r; dropped", action.type)
            return False
        self.on_action(action)
        return False

    def _apply_local(self, action: UIAction) -> bool:
        payload = action.payload or {}
        if action.type == EXPAND:
            node_id = payload.get("sectionId") or payload.get("id")
            if not node_id:
                log.warning("expand action without a node id: %r", payload)
                return False
            self.state.toggle(str(node_id))
            return True

        node_id = payload.get("componentId") or payload.get("id")
        value = payload.get("value")
        if not node_id:
            log.warning("feedback action without a node id: %r", payload)
            return False
        try:
            self.state.set_feedback(str(node_id), str(value))
        except ValueError as exc:
            log.warning("Ignoring feedback for %s: %s", node_id, exc)
            return False
        return True

"""Client-local interaction state for the currently displayed spec."""

from __future__ import annotations

from dataclasses import dataclass

from genui.spec import UISpec, UISpecNode

COLLAPSIBLE_TYPES = frozenset({"card", "section"})
FEEDBACK_VALUES = frozenset({"positive", "negative"})


def default_expanded(node: UISpecNode) -> bool:
    return node.properties.get("defaultExpanded") is not False


@dataclass
class NodeState:
    expanded: bool = True
    feedback: str | None = None


class InteractionState:
    """node id → :class:`NodeState`, reset whenever a new spec is shown."""

    def __init__(self) -> None:
        self._nodes: dict[str, NodeState] = {}

    def __contains__(self, node_id: str) -> bool:
        return node_id in self._nodes

    def __getitem__(self, node_id: str) -> NodeState:
        return self._nodes[node_id]

    def __len__(self) -> int:
        return len(self._nodes)

    def get(self, node_id: str) -> NodeState | None:
        return self._nodes.get(node_id)

    def reset(self, spec: UISpec | None) -> None:
        """Drop all state and seed expand defaults for *spec*."""
        self._nodes = {}
        if spec is None:
            return
        for node in spec.walk():
            if node.type in COLLAPSIBLE_TYPES:
                self._nodes[node.id] = NodeState(expanded=default_expanded(node))

    def is_expanded(self, node: UISpecNode) -> bool:
        entry = self._nodes.get(node.id)
        if entry is None:
            return default_expanded(node)
        return entry.expanded

    def toggle(self, node_id: str) -> bool:
        """Flip the expanded flag of *node_id* and return the new value."""
        entry = self._nodes.setdefault(node_id, NodeState())
        entry.expanded = not entry.expanded
        return entry.expanded

    def feedback(self, node_id: str) -> str | None:
        entry = self._nodes.get(node_id)
        return entry.feedback if entry else None

    def set_feedback(self, node_id: str, value: str) -> None:
        if value not in FEEDBACK_VALUES:
            raise ValueError(f"feedback must be 'positive' or 'negative', got {value!r}")
        self._nodes.setdefault(node_id, NodeState()).feedback = value

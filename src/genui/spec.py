"""UISpec document model and tolerant parser."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Iterator

from genui.errors import SpecParseError

log = logging.getLogger(__name__)


@dataclass
class UIAction:
    """An event emitted by a rendered node."""

    type: str
    payload: dict[str, Any] | None = None
    label: str | None = None

    @classmethod
    def from_dict(cls, data: Any) -> "UIAction | None":
        if not isinstance(data, dict):
            return None
        atype = data.get("type")
        if not isinstance(atype, str) or not atype:
            return None
        payload = data.get("payload")
        label = data.get("label")
        return cls(
            type=atype,
            payload=payload if isinstance(payload, dict) else None,
            label=str(label) if label is not None else None,
        )

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"type": self.type}
        if self.payload is not None:
            out["payload"] = self.payload
        if self.label is not None:
            out["label"] = self.label
        return out


@dataclass
class UISpecNode:
    id: str
    type: str
    properties: dict[str, Any] = field(default_factory=dict)
    children: list["UISpecNode"] = field(default_factory=list)

    def prop(self, name: str, default: Any = None) -> Any:
        value = self.properties.get(name)
        return default if value is None else value

    def walk(self) -> Iterator["UISpecNode"]:
        """Depth-first iteration over this node and its descendants."""
        yield self
        for child in self.children:
            yield from child.walk()


@dataclass
class UISpec:
    components: list[UISpecNode]
    title: str | None = None
    description: str | None = None

    def walk(self) -> Iterator[UISpecNode]:
        for node in self.components:
            yield from node.walk()

    def node_ids(self) -> set[str]:
        return {node.id for node in self.walk()}


@dataclass
class ParseResult:
    spec: UISpec | None
    changed: bool = False
    error: SpecParseError | None = None


# ── building ────────────────────────────────────────────────────────

def _build_node(raw: Any, fallback_id: str) -> UISpecNode:
    if not isinstance(raw, dict):
        # Kept as a typeless node so the renderer shows a placeholder
        return UISpecNode(id=fallback_id, type="")

    node_id = raw.get("id")
    node_id = str(node_id) if node_id not in (None, "") else fallback_id

    properties = raw.get("properties")
    if not isinstance(properties, dict):
        properties = raw.get("props")
    if not isinstance(properties, dict):
        properties = {}

    raw_children = raw.get("children")
    children: list[UISpecNode] = []
    if isinstance(raw_children, list):
        children = [
            _build_node(child, f"{node_id}-child-{idx}")
            for idx, child in enumerate(raw_children)
        ]

    ntype = raw.get("type")
    return UISpecNode(
        id=node_id,
        type=ntype if isinstance(ntype, str) else "",
        properties=properties,
        children=children,
    )


def _unwrap(doc: Any) -> dict[str, Any]:
    if not isinstance(doc, dict):
        raise SpecParseError("UISpec must be a JSON object")
    if isinstance(doc.get("uiSpec"), dict):
        doc = doc["uiSpec"]
    elif isinstance(doc.get("component"), dict) and "components" not in doc:
        doc = {**doc, "components": [doc["component"]]}
    if not isinstance(doc.get("components"), list):
        raise SpecParseError("UISpec is missing a components list")
    return doc


def spec_from_dict(doc: Any) -> UISpec:
    """Build a :class:`UISpec` from decoded JSON, or raise SpecParseError."""
    doc = _unwrap(doc)
    title = doc.get("title")
    description = doc.get("description")
    return UISpec(
        components=[
            _build_node(raw, f"root-{idx}")
            for idx, raw in enumerate(doc["components"])
        ],
        title=str(title) if title else None,
        description=str(description) if description else None,
    )


def loads_spec(text: str) -> UISpec:
    """Strictly parse *text* as a UISpec document."""
    try:
        doc = json.loads(text)
    except json.JSONDecodeError as exc:
        raise SpecParseError(f"not valid JSON: {exc.msg} at {exc.pos}") from exc
    except RecursionError as exc:
        raise SpecParseError("UISpec is nested too deeply") from exc
    try:
        return spec_from_dict(doc)
    except RecursionError as exc:
        raise SpecParseError("UISpec is nested too deeply") from exc


def _same_spec(spec: UISpec, last: UISpec) -> bool:
    try:
        return spec == last
    except RecursionError:
        # Too deep to compare; treat as a change
        return False


def parse_spec(text: str, last: UISpec | None = None) -> ParseResult:
    """Parse *text*, falling back to *last* on any failure.

    Failures are expected while a block is still streaming and are never
    raised.  When the parsed spec equals *last*, *last* itself is returned
    so callers can rely on identity for "nothing changed".
    """
    try:
        spec = loads_spec(text)
    except SpecParseError as exc:
        log.debug("Spec parse failed (%d chars): %s", len(text), exc)
        return ParseResult(spec=last, changed=False, error=exc)

    if last is not None and _same_spec(spec, last):
        return ParseResult(spec=last, changed=False)
    return ParseResult(spec=spec, changed=True)

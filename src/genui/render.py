"""Tree renderer: turns a UISpec into Textual widgets.

Leaf nodes become :class:`NodeView` statics holding a Rich renderable;
containers (card, section, grid, feedback rows) become Textual containers.
Interactive controls are :class:`ActionButton` widgets carrying the
:class:`UIAction` they emit; :class:`GenUIView` routes presses through the
:class:`ActionDispatcher` and rebuilds the tree when local state changes.

Rendering never raises: unknown types and node handlers that fail render a
visible placeholder, and the rest of the tree carries on.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, fields, replace
from typing import Any, Callable, Iterable

from rich.color import Color, ColorParseError
from rich.columns import Columns
from rich.console import Group, RenderableType
from rich.panel import Panel
from rich.progress_bar import ProgressBar
from rich.table import Table
from rich.text import Text
from textual.app import ComposeResult
from textual.containers import Grid, Horizontal, Vertical, VerticalScroll
from textual.widget import Widget
from textual.widgets import Button, Static

from genui.actions import ActionDispatcher, expand_action, feedback_action
from genui.errors import RenderError
from genui.spec import UIAction, UISpec, UISpecNode
from genui.state import InteractionState

log = logging.getLogger(__name__)


# ── Theme & helpers ─────────────────────────────────────────────────

@dataclass(frozen=True)
class RenderTheme:
    """Colors used by the renderer; passed in explicitly, never global."""
    primary: str = "#8abeb7"
    accent: str = "#5f87ff"
    foreground: str = "#d4d4d4"
    muted: str = "#808080"
    info: str = "#5f87ff"
    success: str = "#b5bd68"
    warning: str = "#f0c674"
    error: str = "#cc6666"

    def variant(self, name: Any, default: str = "info") -> str:
        """Color for a semantic variant name (info/warning/error/success…)."""
        aliases = {
            "danger": "error",
            "destructive": "error",
            "tip": "warning",
            "default": "accent",
            "secondary": "muted",
        }
        key = aliases.get(str(name), str(name))
        if key in {f.name for f in fields(self)}:
            return getattr(self, key)
        return getattr(self, default)

    @classmethod
    def from_context(cls, context: dict[str, Any] | None) -> "RenderTheme":
        raw = (context or {}).get("theme")
        if isinstance(raw, RenderTheme):
            return raw
        if isinstance(raw, dict):
            known = {f.name for f in fields(cls)}
            overrides = {k: v for k, v in raw.items() if k in known and _safe_color(v)}
            return replace(cls(), **overrides)
        return cls()


ICONS = {
    "lightbulb": "💡",
    "trending-up": "📈",
    "alert-circle": "⚠",
    "check-circle": "✔",
    "info": "ℹ",
    "sparkles": "✨",
    "bar-chart": "📊",
    "pie-chart": "◔",
    "target": "🎯",
    "star": "★",
    "map-pin": "📍",
    "building": "🏢",
    "users": "👥",
    "dollar-sign": "$",
    "calendar": "📅",
    "clock": "🕒",
    "zap": "⚡",
    "award": "🏆",
}

INSIGHT_ICONS = {"tip": "💡", "warning": "⚠", "info": "ℹ", "success": "✔"}

BUTTON_VARIANTS = {
    "default": "default",
    "primary": "primary",
    "success": "success",
    "warning": "warning",
    "error": "error",
    "destructive": "error",
}


def icon_glyph(name: Any) -> str:
    """Glyph + trailing space for a known icon name, else ''."""
    glyph = ICONS.get(str(name)) if name else None
    return f"{glyph} " if glyph else ""


def _safe_color(value: Any) -> str | None:
    if not isinstance(value, str) or not value.strip():
        return None
    try:
        Color.parse(value)
    except ColorParseError:
        return None
    return value


def _as_float(value: Any, default: float = 0.0) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _fmt_number(value: Any) -> str:
    """Numbers with one decimal (like the web renderer), others verbatim."""
    if isinstance(value, bool):
        return str(value)
    if isinstance(value, (int, float)):
        return f"{value:.1f}"
    return str(value)


def _text(value: Any) -> str:
    return "" if value is None else str(value)


def bar_percentages(values: Iterable[Any]) -> list[float]:
    """Normalise each value against the series maximum, as 0..100.

    A zero (or negative) maximum yields 0% for every bar.
    """
    nums = [_as_float(v) for v in values]
    top = max(nums, default=0.0)
    if top <= 0:
        return [0.0 for _ in nums]
    return [max(0.0, min(v / top * 100, 100.0)) for v in nums]


def chart_renderable(chart: Any, theme: RenderTheme) -> RenderableType:
    """Render ``properties.chartData`` (bar / progress / metric)."""
    if not isinstance(chart, dict):
        return Text("No chart data", style=f"italic {theme.muted}")

    ctype = chart.get("type")
    data = chart.get("data")
    labels = chart.get("labels") or []
    series = data if isinstance(data, list) else ([] if data is None else [data])

    def label_at(idx: int, prefix: str) -> str:
        if idx < len(labels) and labels[idx] not in (None, ""):
            return str(labels[idx])
        return f"{prefix} {idx + 1}"

    if ctype == "bar":
        table = Table.grid(padding=(0, 1), expand=True)
        table.add_column(width=14, no_wrap=True, style=theme.muted)
        table.add_column(ratio=1)
        table.add_column(justify="right", width=8)
        for idx, (value, pct) in enumerate(zip(series, bar_percentages(series))):
            table.add_row(
                label_at(idx, "Item"),
                ProgressBar(total=100, completed=pct, complete_style=theme.accent),
                _fmt_number(value),
            )
        return table

    if ctype == "progress":
        value = series[0] if series else 0
        pct = max(0.0, min(_as_float(value), 100.0))
        return Group(
            Text.assemble(("Progress", theme.muted), "  ", (f"{_text(value)}%", "bold")),
            ProgressBar(total=100, completed=pct, complete_style=theme.accent),
        )

    if ctype == "metric":
        cells = [
            Text.assemble(
                (_fmt_number(value), "bold"), "\n", (label_at(idx, "Metric"), theme.muted),
                justify="center",
            )
            for idx, value in enumerate(series)
        ]
        return Columns(cells, equal=True, expand=True)

    return Text(f"Unsupported chart type: {ctype}", style=f"italic {theme.muted}")


# ── Widgets ─────────────────────────────────────────────────────────

class NodeView(Static):
    """A leaf node: one Rich renderable."""

    def __init__(self, node: UISpecNode, body: RenderableType, **kwargs) -> None:
        super().__init__(body, **kwargs)
        self.node_id = node.id
        self.node_type = node.type
        self.body = body
        self.placeholder = False


class NodeBox(Vertical):
    """A container node (card, section, recommendation)."""

    def __init__(self, node: UISpecNode, *children: Widget, **kwargs) -> None:
        super().__init__(*children, **kwargs)
        self.node_id = node.id
        self.node_type = node.type


class NodeRow(Horizontal):
    def __init__(self, node: UISpecNode, *children: Widget, **kwargs) -> None:
        super().__init__(*children, **kwargs)
        self.node_id = node.id
        self.node_type = node.type


class NodeGrid(Grid):
    def __init__(self, node: UISpecNode, *children: Widget, columns: int = 2, **kwargs) -> None:
        super().__init__(*children, **kwargs)
        self.node_id = node.id
        self.node_type = node.type
        self.column_count = columns
        self.styles.grid_size_columns = columns


class ActionButton(Button):
    """A button that emits a :class:`UIAction` when pressed."""

    def __init__(
        self,
        label: str | Text,
        ui_action: UIAction,
        *,
        node_id: str | None = None,
        **kwargs,
    ) -> None:
        super().__init__(Text(label) if isinstance(label, str) else label, **kwargs)
        self.ui_action = ui_action
        self.node_id = node_id


# ── Renderer ────────────────────────────────────────────────────────

class TreeRenderer:
    """Recursive ``render(node) → Widget`` with one handler per node type."""

    def __init__(
        self,
        state: InteractionState,
        theme: RenderTheme | None = None,
    ) -> None:
        self.state = state
        self.theme = theme or RenderTheme()
        self._handlers: dict[str, Callable[[UISpecNode], Widget]] = {
            "text": self._text,
            "heading": self._heading,
            "paragraph": self._paragraph,
            "list": self._list,
            "alert": self._alert,
            "card": self._card,
            "section": self._section,
            "grid": self._grid,
            "badge": self._badge,
            "progress": self._progress,
            "chart": self._chart,
            "button": self._button,
            "metric": self._metric,
            "feedback": self._feedback,
            "insight": self._insight,
            "recommendation": self._recommendation,
            "comparison": self._comparison,
        }

    @property
    def supported_types(self) -> frozenset[str]:
        return frozenset(self._handlers)

    def render(self, node: UISpecNode) -> Widget:
        handler = self._handlers.get(node.type)
        if handler is None:
            err = RenderError(node.type, node.id)
            log.warning("%s (node %s)", err, node.id)
            return self._placeholder(node, str(err))
        try:
            return handler(node)
        except Exception:
            log.exception("Failed to render %s node %s", node.type, node.id)
            return self._placeholder(node, f"Could not render component: {node.type}")

    def render_children(self, node: UISpecNode) -> list[Widget]:
        return [self.render(child) for child in node.children]

    def render_spec(self, spec: UISpec) -> list[Widget]:
        return [self.render(node) for node in spec.components]

    def _placeholder(self, node: UISpecNode, message: str) -> NodeView:
        view = NodeView(
            node,
            Text(message, style=f"italic {self.theme.muted}", justify="center"),
            classes="node-unsupported",
        )
        view.placeholder = True
        return view

    # ── text-like ───────────────────────────────────────────────────
    def _text(self, node: UISpecNode) -> Widget:
        style = "bold" if node.prop("variant") == "bold" else ""
        color = _safe_color(node.prop("color"))
        if color:
            style = f"{style} {color}".strip()
        return NodeView(node, Text(_text(node.prop("content")), style=style))

    def _heading(self, node: UISpecNode) -> Widget:
        level = int(_as_float(node.prop("level"), 3))
        style = "bold underline" if level <= 2 else "bold"
        body = Text(icon_glyph(node.prop("icon")) + _text(node.prop("content")), style=style)
        return NodeView(node, body, classes=f"node-heading node-h{level}")

    def _paragraph(self, node: UISpecNode) -> Widget:
        return NodeView(node, Text(_text(node.prop("content"))), classes="node-paragraph")

    def _list(self, node: UISpecNode) -> Widget:
        items = node.prop("items", [])
        if not isinstance(items, list):
            items = [items]
        ordered = bool(node.prop("ordered"))
        body = Text()
        for idx, item in enumerate(items, start=1):
            marker = f"{idx}. " if ordered else "• "
            body.append(marker, style=self.theme.muted if ordered else self.theme.accent)
            body.append(_text(item))
            if idx < len(items):
                body.append("\n")
        return NodeView(node, body)

    def _alert(self, node: UISpecNode) -> Widget:
        color = self.theme.variant(node.prop("variant", "info"))
        body = Text(icon_glyph(node.prop("icon")) + _text(node.prop("content")))
        return NodeView(node, Panel(body, border_style=color), classes="node-alert")

    def _badge(self, node: UISpecNode) -> Widget:
        color = self.theme.variant(node.prop("variant", "default"), default="accent")
        label = f" {icon_glyph(node.prop('icon'))}{_text(node.prop('content'))} "
        return NodeView(node, Text(label, style=f"bold reverse {color}"), classes="node-badge")

    def _insight(self, node: UISpecNode) -> Widget:
        kind = str(node.prop("type", "info"))
        icon = INSIGHT_ICONS.get(kind, INSIGHT_ICONS["info"])
        color = self.theme.variant(kind if kind in INSIGHT_ICONS else "info")
        body = Text()
        body.append(f"{icon} ", style=color)
        title = node.prop("title")
        if title:
            body.append(f"{title}\n", style="bold")
        body.append(_text(node.prop("content")))
        return NodeView(node, body, classes="node-insight")

    # ── numbers ─────────────────────────────────────────────────────
    def _progress(self, node: UISpecNode) -> Widget:
        value = _as_float(node.prop("value"), 0.0)
        parts: list[RenderableType] = []
        label = node.prop("label")
        if label:
            parts.append(Text.assemble((str(label), ""), "  ", (f"{_text(node.prop('value'))}%", "bold")))
        parts.append(ProgressBar(
            total=100,
            completed=max(0.0, min(value, 100.0)),
            complete_style=self.theme.accent,
        ))
        return NodeView(node, Group(*parts), classes="node-progress")

    def _chart(self, node: UISpecNode) -> Widget:
        parts: list[RenderableType] = []
        title = node.prop("title")
        if title:
            parts.append(Text(str(title), style="bold"))
        chart = node.prop("chartData")
        if chart is not None:
            parts.append(chart_renderable(chart, self.theme))
        return NodeView(node, Group(*parts), classes="node-chart")

    def _metric(self, node: UISpecNode) -> Widget:
        body = Text(justify="center")
        color = _safe_color(node.prop("color")) or ""
        body.append(_text(node.prop("value")), style=f"bold {color}".strip())
        label = node.prop("label")
        if label:
            body.append(f"\n{label}", style=self.theme.muted)
        change = node.prop("change")
        if change:
            delta = _as_float(change)
            arrow, style = ("↑", self.theme.success) if delta > 0 else ("↓", self.theme.error)
            body.append(f"\n{arrow} {abs(delta):g}%", style=style)
        return NodeView(node, body, classes="node-metric")

    def _comparison(self, node: UISpecNode) -> Widget:
        items = node.prop("items", [])
        table = Table(
            box=None,
            show_header=False,
            expand=True,
            title=_text(node.prop("title")) or None,
            title_justify="left",
            title_style="bold",
        )
        table.add_column("name", ratio=2)
        table.add_column("value", justify="right", ratio=1)
        table.add_column("trend", width=2)
        for item in items if isinstance(items, list) else []:
            if not isinstance(item, dict):
                continue
            name = Text(_text(item.get("name")), style="bold")
            if item.get("badge"):
                name.append(f"  {item['badge']}", style=f"reverse {self.theme.muted}")
            value = Text(_text(item.get("value")), style="bold")
            if item.get("subtitle"):
                value.append(f"\n{item['subtitle']}", style=self.theme.muted)
            trend = Text()
            if item.get("trend"):
                up = _as_float(item["trend"]) > 0
                trend.append("↑" if up else "↓", style=self.theme.success if up else self.theme.error)
            table.add_row(name, value, trend)
        return NodeView(node, table, classes="node-comparison")

    # ── containers ──────────────────────────────────────────────────
    def _header_label(self, node: UISpecNode, title: Any, expanded: bool) -> str:
        arrow = "▾" if expanded else "▸"
        return f"{arrow} {icon_glyph(node.prop('icon'))}{title}"

    def _card(self, node: UISpecNode) -> Widget:
        collapsible = bool(node.prop("collapsible"))
        expanded = self.state.is_expanded(node)
        title = node.prop("title")

        parts: list[Widget] = []
        if title:
            if collapsible:
                parts.append(ActionButton(
                    self._header_label(node, title, expanded),
                    expand_action(node.id),
                    node_id=node.id,
                    classes="node-header",
                ))
            else:
                parts.append(Static(
                    Text(icon_glyph(node.prop("icon")) + str(title), style="bold"),
                    classes="node-header",
                ))
        if not collapsible or expanded:
            content = node.prop("content")
            if content:
                parts.append(Static(Text(str(content)), classes="node-paragraph"))
            parts.extend(self.render_children(node))
        return NodeBox(node, *parts, classes="node-box node-card")

    def _section(self, node: UISpecNode) -> Widget:
        expanded = self.state.is_expanded(node)
        title = node.prop("title")

        parts: list[Widget] = []
        if title:
            parts.append(ActionButton(
                self._header_label(node, title, expanded),
                expand_action(node.id),
                node_id=node.id,
                classes="node-header",
            ))
        if expanded and node.children:
            parts.append(Vertical(*self.render_children(node), classes="node-section-body"))
        return NodeBox(node, *parts, classes="node-box node-section")

    def _grid(self, node: UISpecNode) -> Widget:
        columns = max(1, int(_as_float(node.prop("columns"), 2)))
        return NodeGrid(node, *self.render_children(node), columns=columns, classes="node-grid")

    # ── interactive ─────────────────────────────────────────────────
    def _button(self, node: UISpecNode) -> Widget:
        label = icon_glyph(node.prop("icon")) + (_text(node.prop("content")) or "Continue")
        variant = BUTTON_VARIANTS.get(str(node.prop("variant", "default")), "default")
        action = UIAction.from_dict(node.prop("action"))
        if action is None:
            return Button(Text(label), variant=variant, disabled=True, classes="node-button")
        return ActionButton(label, action, node_id=node.id, variant=variant, classes="node-button")

    def _feedback_buttons(self, node: UISpecNode) -> list[Widget]:
        current = self.state.feedback(node.id)
        return [
            ActionButton(
                "👍",
                feedback_action(node.id, "positive"),
                node_id=node.id,
                variant="success" if current == "positive" else "default",
                classes="feedback-button feedback-positive",
            ),
            ActionButton(
                "👎",
                feedback_action(node.id, "negative"),
                node_id=node.id,
                variant="error" if current == "negative" else "default",
                classes="feedback-button feedback-negative",
            ),
        ]

    def _feedback(self, node: UISpecNode) -> Widget:
        question = _text(node.prop("question")) or "Was this helpful?"
        return NodeRow(
            node,
            Static(Text(question, style=self.theme.muted), classes="feedback-question"),
            *self._feedback_buttons(node),
            classes="node-row node-feedback",
        )

    def _recommendation(self, node: UISpecNode) -> Widget:
        body = Text()
        body.append("🎯 Recommendation", style=f"bold {self.theme.accent}")
        confidence = node.prop("confidence")
        if confidence:
            body.append(f"  {round(_as_float(confidence) * 100)}% confidence", style=self.theme.muted)
        body.append(f"\n{_text(node.prop('content'))}")
        reasons = node.prop("reasons", [])
        for reason in reasons if isinstance(reasons, list) else []:
            body.append("\n• ", style=self.theme.accent)
            body.append(_text(reason), style=self.theme.muted)

        buttons: list[Widget] = []
        actions = node.prop("actions", [])
        for raw in actions if isinstance(actions, list) else []:
            action = UIAction.from_dict(raw)
            if action is not None:
                buttons.append(ActionButton(
                    action.label or action.type,
                    action,
                    node_id=node.id,
                    classes="node-button",
                ))
        buttons.extend(self._feedback_buttons(node))

        return NodeBox(
            node,
            Static(body, classes="recommendation-body"),
            NodeRow(node, *buttons, classes="node-row"),
            classes="node-box node-recommendation",
        )


# ── View ────────────────────────────────────────────────────────────

class GenUIView(VerticalScroll):
    """Render entry point: ``GenUIView(spec, context=…, on_action=…)``.

    Standalone, the view owns its interaction state and resets it whenever
    a different spec is shown.  Given a *dispatcher* (an Assistant's), the
    state belongs to the dispatcher's owner and is reset there.
    """

    DEFAULT_CSS = """
    GenUIView {
        height: 1fr;
        padding: 0 1;
    }
    GenUIView .node-box {
        height: auto;
        margin: 0 0 1 0;
    }
    GenUIView .node-card {
        border: round #5f87ff;
        padding: 0 1;
    }
    GenUIView .node-recommendation {
        border-left: thick #5f87ff;
        padding: 0 1;
    }
    GenUIView .node-section-body {
        height: auto;
        padding-left: 2;
    }
    GenUIView .node-row {
        height: auto;
    }
    GenUIView .node-grid {
        height: auto;
        grid-gutter: 0 2;
    }
    GenUIView .node-header {
        width: 100%;
    }
    GenUIView .node-unsupported {
        border: dashed #808080;
    }
    GenUIView .feedback-question {
        width: auto;
        padding: 1 1 0 0;
    }
    GenUIView .feedback-button {
        min-width: 6;
    }
    GenUIView .spec-title {
        text-style: bold;
        margin: 0 0 1 0;
    }
    GenUIView .spec-empty, GenUIView .spec-attribution {
        color: #666666;
        text-align: center;
    }
    """

    def __init__(
        self,
        spec: UISpec | None = None,
        *,
        context: dict[str, Any] | None = None,
        on_action: Callable[[UIAction], None] | None = None,
        dispatcher: ActionDispatcher | None = None,
        **kwargs,
    ) -> None:
        super().__init__(**kwargs)
        self.spec = spec
        self.context = context or {}
        self._owns_state = dispatcher is None
        if dispatcher is None:
            state = InteractionState()
            state.reset(spec)
            dispatcher = ActionDispatcher(state, on_action=on_action)
        self.dispatcher = dispatcher
        self.renderer = TreeRenderer(dispatcher.state, RenderTheme.from_context(self.context))
        self._rebuild_lock = asyncio.Lock()

    @property
    def state(self) -> InteractionState:
        return self.dispatcher.state

    def compose(self) -> ComposeResult:
        yield from self._build()

    def _build(self) -> list[Widget]:
        spec = self.spec
        if spec is None or not spec.components and not spec.title:
            return [Static("✨ No UI specification provided", classes="spec-empty")]

        widgets: list[Widget] = []
        if spec.title:
            widgets.append(Static(Text(f"✨ {spec.title}"), classes="spec-title"))
        if spec.description:
            widgets.append(Static(Text(spec.description, style="#808080")))
        widgets.extend(self.renderer.render_spec(spec))
        if self.context.get("attribution", True):
            widgets.append(Static("⚡ AI-generated content", classes="spec-attribution"))
        return widgets

    async def show(self, spec: UISpec | None) -> None:
        """Display *spec*, replacing the current tree wholesale."""
        if self._owns_state and spec is not self.spec:
            self.state.reset(spec)
        self.spec = spec
        await self.rebuild()

    async def rebuild(self) -> None:
        # Local toggles and new specs both land here; one swap at a time
        async with self._rebuild_lock:
            await self.remove_children()
            await self.mount_all(self._build())

    async def on_button_pressed(self, event: Button.Pressed) -> None:
        button = event.button
        if not isinstance(button, ActionButton):
            return
        event.stop()
        if self.dispatcher.dispatch(button.ui_action):
            await self.rebuild()

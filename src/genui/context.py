"""Host-supplied request context (record catalog, preferences) and prompts.

The catalog and preferences are opaque data to the pipeline: they are
trimmed, sent as the request ``context`` and echoed into the system prompt.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

CATALOG_LIMIT = 10

DEFAULT_SYSTEM_PROMPT = """\
You are an assistant embedded in an admin console. Answer every request with
a single UI specification: a JSON object of the form
{"title": str, "description": str, "components": [Node, ...]} where
Node = {"id": str, "type": str, "properties": {...}, "children": [Node, ...]}.

Supported node types: text, heading, paragraph, list, alert, card, section,
grid, badge, progress, chart, button, metric, feedback, insight,
recommendation, comparison.

Wrap the JSON document in <content>...</content> tags. Buttons that should
continue the conversation use the action
{"type": "followUpQuery", "payload": {"message": "<next question>"}}.
"""


def build_context(
    catalog: list[dict[str, Any]] | None = None,
    preferences: dict[str, Any] | None = None,
    *,
    limit: int = CATALOG_LIMIT,
    **extra: Any,
) -> dict[str, Any]:
    """Assemble the request context; the catalog is capped at *limit* records."""
    ctx: dict[str, Any] = {}
    if catalog:
        ctx["availableRecords"] = list(catalog[:limit])
    if preferences:
        ctx["userPreferences"] = dict(preferences)
    for key, value in extra.items():
        if value is not None:
            ctx[key] = value
    return ctx


def compose_system_prompt(base: str, context: dict[str, Any] | None = None) -> str:
    """Append the pretty-printed context to *base*."""
    if not context:
        return base
    return (
        f"{base.rstrip()}\n\n"
        f"Available context:\n{json.dumps(context, indent=2, default=str)}\n\n"
        "Tailor the generated components to this context."
    )


def load_context_file(path: str | Path) -> dict[str, Any]:
    """Read ``{"catalog": [...], "preferences": {...}}`` from a JSON file."""
    p = Path(path).expanduser()
    data = json.loads(p.read_text())
    if not isinstance(data, dict):
        raise ValueError(f"{p}: expected a JSON object")

    catalog = data.pop("catalog", None)
    preferences = data.pop("preferences", None)
    if catalog is not None and not isinstance(catalog, list):
        raise ValueError(f"{p}: 'catalog' must be a list")
    if preferences is not None and not isinstance(preferences, dict):
        raise ValueError(f"{p}: 'preferences' must be an object")
    return build_context(catalog, preferences, **data)

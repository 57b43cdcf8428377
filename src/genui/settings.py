"""Persistent genui settings.

Stores lightweight preferences in ``~/.genui/settings.json``.
Currently used for:
  - The generation endpoint and a custom system prompt
  - Keeping a small recent-queries list for the input history
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any

SETTINGS_DIR = Path.home() / ".genui"
SETTINGS_FILE = SETTINGS_DIR / "settings.json"
DEFAULT_LOG_FILE = SETTINGS_DIR / "genui.log"
DEFAULT_ENDPOINT = "http://localhost:3001/api/v1/c1/generate"

ENDPOINT_ENV = "GENUI_ENDPOINT"
SYSTEM_PROMPT_ENV = "GENUI_SYSTEM_PROMPT"


class SettingsManager:
    def __init__(self, path: Path = SETTINGS_FILE) -> None:
        self.path = path
        self._data: dict[str, Any] = {}
        self.reload()

    def reload(self) -> None:
        if self.path.exists():
            try:
                self._data = json.loads(self.path.read_text())
            except (json.JSONDecodeError, OSError):
                self._data = {}
        else:
            self._data = {}
        if not isinstance(self._data, dict):
            self._data = {}

    def save(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(self._data, indent=2))
        self.path.chmod(0o600)

    def _get_str(self, key: str) -> str | None:
        v = self._data.get(key)
        return v if isinstance(v, str) and v.strip() else None

    def get_endpoint(self) -> str | None:
        return self._get_str("endpoint")

    def set_endpoint(self, endpoint: str) -> None:
        self._data["endpoint"] = endpoint
        self.save()

    def get_system_prompt(self) -> str | None:
        return self._get_str("system_prompt")

    def set_system_prompt(self, prompt: str) -> None:
        self._data["system_prompt"] = prompt
        self.save()

    def get_recent_queries(self) -> list[str]:
        values = self._data.get("recent_queries", [])
        if not isinstance(values, list):
            return []
        out: list[str] = []
        for v in values:
            if isinstance(v, str) and v.strip() and v not in out:
                out.append(v)
        return out

    def add_recent_query(self, query: str, limit: int = 20) -> None:
        queries = [q for q in self.get_recent_queries() if q != query]
        queries.insert(0, query)
        self._data["recent_queries"] = queries[:limit]
        self.save()


def resolve_endpoint(explicit: str | None, settings: SettingsManager) -> str:
    """explicit arg > GENUI_ENDPOINT env > persisted setting > default."""
    return (
        explicit
        or os.environ.get(ENDPOINT_ENV)
        or settings.get_endpoint()
        or DEFAULT_ENDPOINT
    )


def resolve_system_prompt(explicit: str | None, settings: SettingsManager) -> str:
    """explicit arg > GENUI_SYSTEM_PROMPT env > persisted setting > built-in."""
    from genui.context import DEFAULT_SYSTEM_PROMPT

    return (
        explicit
        or os.environ.get(SYSTEM_PROMPT_ENV)
        or settings.get_system_prompt()
        or DEFAULT_SYSTEM_PROMPT
    )


_settings: SettingsManager | None = None


def get_settings() -> SettingsManager:
    global _settings
    if _settings is None:
        _settings = SettingsManager()
    return _settings

"""Tests for persisted settings, precedence rules and request context."""

import json
import stat

import pytest

from genui.context import (
    CATALOG_LIMIT,
    DEFAULT_SYSTEM_PROMPT,
    build_context,
    compose_system_prompt,
    load_context_file,
)
from genui.settings import (
    DEFAULT_ENDPOINT,
    ENDPOINT_ENV,
    SYSTEM_PROMPT_ENV,
    SettingsManager,
    resolve_endpoint,
    resolve_system_prompt,
)


@pytest.fixture
def settings(tmp_path, monkeypatch):
    monkeypatch.delenv(ENDPOINT_ENV, raising=False)
    monkeypatch.delenv(SYSTEM_PROMPT_ENV, raising=False)
    return SettingsManager(tmp_path / "genui" / "settings.json")


class TestSettingsManager:
    def test_persist_and_reload(self, settings):
        settings.set_endpoint("http://saved/gen")
        settings.set_system_prompt("be brief")

        reloaded = SettingsManager(settings.path)
        assert reloaded.get_endpoint() == "http://saved/gen"
        assert reloaded.get_system_prompt() == "be brief"
        assert stat.S_IMODE(settings.path.stat().st_mode) == 0o600

    def test_corrupt_file_is_ignored(self, settings):
        settings.path.parent.mkdir(parents=True)
        settings.path.write_text("{not json")
        settings.reload()
        assert settings.get_endpoint() is None

    def test_recent_queries(self, settings):
        for q in ["a", "b", "a", "c"]:
            settings.add_recent_query(q, limit=2)
        assert settings.get_recent_queries() == ["c", "a"]


class TestPrecedence:
    def test_endpoint_default(self, settings):
        assert resolve_endpoint(None, settings) == DEFAULT_ENDPOINT

    def test_endpoint_order(self, settings, monkeypatch):
        settings.set_endpoint("http://saved")
        assert resolve_endpoint(None, settings) == "http://saved"
        monkeypatch.setenv(ENDPOINT_ENV, "http://env")
        assert resolve_endpoint(None, settings) == "http://env"
        assert resolve_endpoint("http://cli", settings) == "http://cli"

    def test_system_prompt_order(self, settings, monkeypatch):
        assert resolve_system_prompt(None, settings) == DEFAULT_SYSTEM_PROMPT
        settings.set_system_prompt("saved")
        assert resolve_system_prompt(None, settings) == "saved"
        monkeypatch.setenv(SYSTEM_PROMPT_ENV, "env")
        assert resolve_system_prompt(None, settings) == "env"
        assert resolve_system_prompt("explicit", settings) == "explicit"


class TestContext:
    def test_catalog_is_trimmed(self):
        catalog = [{"id": i} for i in range(25)]
        ctx = build_context(catalog, {"price": "low"})
        assert len(ctx["availableRecords"]) == CATALOG_LIMIT
        assert ctx["availableRecords"][0] == {"id": 0}
        assert ctx["userPreferences"] == {"price": "low"}

    def test_empty_context(self):
        assert build_context() == {}
        assert compose_system_prompt("base", {}) == "base"

    def test_system_prompt_includes_context(self):
        prompt = compose_system_prompt("base\n", {"userPreferences": {"tone": "brief"}})
        assert prompt.startswith("base\n\nAvailable context:\n")
        assert '"tone": "brief"' in prompt

    def test_load_context_file(self, tmp_path):
        path = tmp_path / "ctx.json"
        path.write_text(json.dumps({
            "catalog": [{"name": "Ritz"}],
            "preferences": {"city": "Paris"},
            "locale": "fr",
        }))
        assert load_context_file(path) == {
            "availableRecords": [{"name": "Ritz"}],
            "userPreferences": {"city": "Paris"},
            "locale": "fr",
        }

    @pytest.mark.parametrize(
        "content",
        ['["not", "an", "object"]', '{"catalog": {}}', '{"preferences": []}'],
    )
    def test_load_context_file_rejects_bad_shapes(self, tmp_path, content):
        path = tmp_path / "ctx.json"
        path.write_text(content)
        with pytest.raises(ValueError):
            load_context_file(path)

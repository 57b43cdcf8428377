"""Tests for the UISpec model and the tolerant spec parser."""

import json

import pytest

from genui.errors import SpecParseError
from genui.spec import UIAction, UISpec, UISpecNode, loads_spec, parse_spec


def doc(*components, **extra) -> str:
    return json.dumps({"components": list(components), **extra})


class TestLoadsSpec:
    def test_basic_document(self):
        spec = loads_spec(doc(
            {"id": "h", "type": "heading", "properties": {"content": "Hi", "level": 2}},
            title="Report",
            description="Quarterly",
        ))
        assert spec.title == "Report"
        assert spec.description == "Quarterly"
        assert spec.components == [
            UISpecNode(id="h", type="heading", properties={"content": "Hi", "level": 2})
        ]

    def test_fallback_ids(self):
        spec = loads_spec(doc(
            {"type": "card", "children": [{"type": "text"}, {"id": "named", "type": "text"}]},
            {"type": "text"},
        ))
        card, text = spec.components
        assert card.id == "root-0"
        assert [c.id for c in card.children] == ["root-0-child-0", "named"]
        assert text.id == "root-1"

    def test_props_alias(self):
        spec = loads_spec(doc({"id": "t", "type": "text", "props": {"content": "x"}}))
        assert spec.components[0].prop("content") == "x"

    def test_ui_spec_wrapper(self):
        spec = loads_spec(json.dumps({"uiSpec": {"components": [{"type": "text"}]}}))
        assert len(spec.components) == 1

    def test_single_component_document(self):
        spec = loads_spec(json.dumps({"component": {"id": "only", "type": "metric"}}))
        assert [n.id for n in spec.components] == ["only"]

    def test_non_object_child_becomes_typeless_node(self):
        spec = loads_spec(doc({"id": "c", "type": "card", "children": ["oops"]}))
        child = spec.components[0].children[0]
        assert child.type == ""
        assert child.id == "c-child-0"

    @pytest.mark.parametrize(
        "text",
        ["Hello", "[1, 2]", '{"title": "no components"}', '{"components": {}}', ""],
    )
    def test_rejects_non_specs(self, text):
        with pytest.raises(SpecParseError):
            loads_spec(text)

    def test_walk_and_node_ids(self):
        spec = loads_spec(doc(
            {"id": "a", "type": "section", "children": [{"id": "b", "type": "text"}]},
            {"id": "c", "type": "text"},
        ))
        assert [n.id for n in spec.walk()] == ["a", "b", "c"]
        assert spec.node_ids() == {"a", "b", "c"}


class TestParseSpec:
    def test_failure_keeps_last(self):
        last = UISpec(components=[UISpecNode(id="x", type="text")])
        result = parse_spec('{"components": [', last)
        assert result.spec is last
        assert result.changed is False
        assert isinstance(result.error, SpecParseError)

    def test_failure_without_last(self):
        result = parse_spec("Hello")
        assert result.spec is None
        assert not result.changed

    def test_equal_reparse_returns_same_object(self):
        text = doc({"id": "t", "type": "text", "properties": {"content": "Hi"}})
        first = parse_spec(text)
        assert first.changed
        second = parse_spec(text, first.spec)
        assert second.spec is first.spec
        assert not second.changed

    def test_different_spec_is_changed(self):
        first = parse_spec(doc({"id": "t", "type": "text"})).spec
        result = parse_spec(doc({"id": "t", "type": "text"}, {"id": "u", "type": "text"}), first)
        assert result.changed
        assert result.spec is not first
        assert len(result.spec.components) == 2

    def test_deeply_nested_document_keeps_last(self):
        depth = 3000
        text = (
            '{"components": ['
            + '{"type": "section", "children": [' * depth
            + '{"type": "text"}'
            + "]}" * depth
            + "]}"
        )
        last = UISpec(components=[UISpecNode(id="x", type="text")])

        result = parse_spec(text, last)
        assert result.spec is last
        assert not result.changed
        assert isinstance(result.error, SpecParseError)
        with pytest.raises(SpecParseError):
            loads_spec(text)


class TestUIAction:
    def test_from_dict(self):
        action = UIAction.from_dict(
            {"type": "followUpQuery", "payload": {"message": "more"}, "label": "More"}
        )
        assert action == UIAction("followUpQuery", {"message": "more"}, "More")
        assert action.to_dict() == {
            "type": "followUpQuery",
            "payload": {"message": "more"},
            "label": "More",
        }

    @pytest.mark.parametrize("raw", [None, "go", {}, {"type": ""}, {"payload": {}}])
    def test_invalid_actions(self, raw):
        assert UIAction.from_dict(raw) is None

    def test_non_object_payload_dropped(self):
        assert UIAction.from_dict({"type": "x", "payload": [1]}).payload is None

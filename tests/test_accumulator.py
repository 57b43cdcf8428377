"""Tests for token accumulation and renderable-text extraction."""

from genui.accumulator import (
    ResponseAccumulator,
    decode_entities,
    extract_content,
    renderable_text,
)


ENCODED = (
    "<content>{&quot;components&quot;:[{&quot;type&quot;:&quot;text&quot;,"
    "&quot;properties&quot;:{&quot;content&quot;:&quot;Hi&quot;}}]}</content>"
)


class TestExtraction:
    def test_encoded_block_is_decoded(self):
        assert extract_content(ENCODED) == (
            '{"components":[{"type":"text","properties":{"content":"Hi"}}]}'
        )

    def test_no_block_returns_raw_buffer(self):
        assert extract_content("Hello") is None
        assert renderable_text("Hello") == "Hello"

    def test_incomplete_block_returns_raw_buffer(self):
        partial = '<content>{"components": ['
        assert renderable_text(partial) == partial

    def test_body_is_trimmed(self):
        assert extract_content("<content>\n  {}\n</content>") == "{}"

    def test_blank_block_renders_nothing(self):
        buffer = "preamble <content>   </content>"
        assert extract_content(buffer) == ""
        assert renderable_text(buffer) == ""

    def test_block_spans_lines_and_ignores_surroundings(self):
        buffer = "thinking...\n<content>line one\nline two</content>\ntrailing"
        assert renderable_text(buffer) == "line one\nline two"

    def test_ampersand_decoded_last(self):
        assert decode_entities("&amp;lt;") == "&lt;"
        assert decode_entities("&lt;b&gt; &quot;x&quot; &amp; y") == '<b> "x" & y'


class TestResponseAccumulator:
    def test_tokens_concatenate(self):
        acc = ResponseAccumulator()
        acc.append("He")
        assert acc.append("llo") == "Hello"
        assert acc.buffer == "Hello"
        assert acc.tokens == 2
        assert not acc.has_content_block

    def test_text_is_idempotent(self):
        acc = ResponseAccumulator()
        for piece in (ENCODED[:20], ENCODED[20:60], ENCODED[60:]):
            acc.append(piece)
        assert acc.text == acc.text
        assert acc.text == renderable_text(acc.buffer)
        assert acc.has_content_block

    def test_block_appears_once_closing_tag_arrives(self):
        acc = ResponseAccumulator()
        acc.append("<content>{}")
        assert acc.text == "<content>{}"
        assert acc.append("</content>") == "{}"

    def test_is_empty_and_reset(self):
        acc = ResponseAccumulator()
        assert acc.is_empty()
        acc.append("  \n")
        assert acc.is_empty()
        acc.append("x")
        assert not acc.is_empty()
        acc.reset()
        assert acc.buffer == ""
        assert acc.tokens == 0

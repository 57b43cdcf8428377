"""Tests for the incremental ``data:`` frame decoder."""

import logging

import pytest

from genui.errors import FrameDecodeError
from genui.frames import FrameDecoder, adecode_frames, decode_frames, extract_token


TOKENS = ["héllo ", "wörld ", "👋", " &amp; more"]


class TestExtractToken:
    def test_delta_content(self):
        event = {"choices": [{"delta": {"content": "Hi"}}]}
        assert extract_token(event) == "Hi"

    @pytest.mark.parametrize(
        "event",
        [
            {},
            {"choices": []},
            {"choices": [{"delta": {"role": "assistant"}}]},
            {"choices": [{"delta": {"content": ""}}]},
            {"choices": [{"finish_reason": "stop"}]},
            ["not", "a", "dict"],
        ],
    )
    def test_missing_path_is_none(self, event):
        assert extract_token(event) is None


class TestChunking:
    """Token output must not depend on where the body was split."""

    def test_whole_body(self, sse_body):
        assert list(decode_frames([sse_body(*TOKENS)])) == TOKENS

    def test_every_two_way_split(self, sse_body):
        body = sse_body(*TOKENS)
        for cut in range(len(body) + 1):
            chunks = [body[:cut], body[cut:]]
            assert list(decode_frames(chunks)) == TOKENS, f"split at byte {cut}"

    def test_byte_at_a_time(self, sse_body):
        body = sse_body(*TOKENS)
        chunks = [body[i:i + 1] for i in range(len(body))]
        assert list(decode_frames(chunks)) == TOKENS

    def test_split_inside_multibyte_character(self, sse_frame):
        body = sse_frame("👋").encode("utf-8")
        start = body.index("👋".encode("utf-8"))
        decoder = FrameDecoder()
        assert decoder.feed(body[:start + 2]) == []
        assert decoder.feed(body[start + 2:]) == ["👋"]

    def test_unterminated_last_line_is_flushed(self, sse_frame):
        body = sse_frame("tail").rstrip("\n").encode("utf-8")
        decoder = FrameDecoder()
        assert decoder.feed(body) == []
        assert decoder.flush() == ["tail"]

    def test_crlf_line_endings(self, sse_frame):
        body = sse_frame("a").replace("\n", "\r\n") + sse_frame("b").replace("\n", "\r\n")
        assert list(decode_frames([body.encode("utf-8")])) == ["a", "b"]


class TestFaultIsolation:
    def test_invalid_json_between_valid_frames(self, sse_frame, caplog):
        body = (sse_frame("Hello") + "data: {not valid json}\n\n" + sse_frame(" world")
                + "data: [DONE]\n\n")
        decoder = FrameDecoder()
        with caplog.at_level(logging.WARNING, logger="genui.frames"):
            tokens = list(decode_frames([body.encode("utf-8")], decoder))

        assert "".join(tokens) == "Hello world"
        assert len(decoder.skipped) == 1
        assert isinstance(decoder.skipped[0], FrameDecodeError)
        assert decoder.skipped[0].payload == "{not valid json}"
        warnings = [r for r in caplog.records if r.levelno == logging.WARNING]
        assert len(warnings) == 1

    def test_role_only_frame_skipped_quietly(self, caplog):
        body = b'data: {"choices":[{"delta":{"role":"assistant"}}]}\n\n'
        decoder = FrameDecoder()
        with caplog.at_level(logging.WARNING, logger="genui.frames"):
            assert decoder.feed(body) == []
        assert len(decoder.skipped) == 1
        assert not caplog.records

    def test_non_data_lines_ignored(self, sse_frame):
        body = ": keep-alive\nevent: message\n" + sse_frame("x")
        decoder = FrameDecoder()
        assert decoder.feed(body.encode("utf-8")) == ["x"]
        assert decoder.skipped == []


class TestDone:
    def test_frames_after_done_are_ignored(self, sse_frame):
        body = sse_frame("a") + "data: [DONE]\n\n" + sse_frame("b")
        decoder = FrameDecoder()
        assert list(decode_frames([body.encode("utf-8")], decoder)) == ["a"]
        assert decoder.done
        assert decoder.feed(sse_frame("c").encode("utf-8")) == []

    def test_decode_stops_pulling_chunks_after_done(self, sse_body, sse_frame):
        pulled = []

        def chunks():
            for chunk in [sse_body("a"), sse_frame("never").encode("utf-8")]:
                pulled.append(chunk)
                yield chunk

        assert list(decode_frames(chunks())) == ["a"]
        assert len(pulled) == 1

    @pytest.mark.asyncio
    async def test_async_decoder(self, sse_body, chunked):
        body = sse_body(*TOKENS)
        chunks = [body[i:i + 7] for i in range(0, len(body), 7)]
        tokens = [t async for t in adecode_frames(chunked(chunks))]
        assert tokens == TOKENS

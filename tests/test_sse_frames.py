"""Unit tests for the SSE frame tokenizer."""

from models.chat import SSEFrame
from services.sse_frames import FrameBuffer, parse_frame


class TestParseFrame:
    """Tests for parse_frame."""

    def test_data_only(self):
        frame = parse_frame('data: {"delta":"a"}')
        assert frame == SSEFrame(event=None, data='{"delta":"a"}')

    def test_event_and_data(self):
        frame = parse_frame("event: thread.message.delta\ndata: {}")
        assert frame.event == "thread.message.delta"
        assert frame.data == "{}"

    def test_prefix_without_space(self):
        frame = parse_frame("event:done\ndata:[DONE]")
        assert frame.event == "done"
        assert frame.data == "[DONE]"

    def test_multiple_data_lines_are_joined(self):
        frame = parse_frame("data: first\ndata: second")
        assert frame.data == "first\nsecond"

    def test_empty_data_is_discarded(self):
        assert parse_frame("data: ") is None
        assert parse_frame("event: ping") is None

    def test_comment_is_discarded(self):
        assert parse_frame(": ping - 2024-01-01") is None

    def test_prefixes_are_case_sensitive(self):
        assert parse_frame("DATA: x") is None


class TestFrameBuffer:
    """Tests for incremental frame splitting."""

    def test_complete_frames_in_one_chunk(self):
        buffer = FrameBuffer()
        frames = buffer.feed(b'data: {"delta":"a"}\n\ndata: {"delta":"b"}\n\n')
        assert [f.data for f in frames] == ['{"delta":"a"}', '{"delta":"b"}']

    def test_frame_split_across_chunks(self):
        whole = FrameBuffer().feed(b'data: {"delta":"ab"}\n\n')

        buffer = FrameBuffer()
        assert buffer.feed(b'data: {"delta":"a') == []
        split = buffer.feed(b'b"}\n\n')

        assert split == whole

    def test_separator_split_across_chunks(self):
        buffer = FrameBuffer()
        assert buffer.feed(b"data: x\n") == []
        assert [f.data for f in buffer.feed(b"\ndata: y")] == ["x"]
        assert [f.data for f in buffer.flush()] == ["y"]

    def test_every_split_point_parses_identically(self):
        raw = "event: e\ndata: {\"delta\":\"Olá\"}\n\ndata: [DONE]\n\n".encode()
        expected = FrameBuffer().feed(raw)
        for cut in range(1, len(raw)):
            buffer = FrameBuffer()
            frames = buffer.feed(raw[:cut]) + buffer.feed(raw[cut:])
            assert frames == expected

    def test_multibyte_character_split(self):
        raw = 'data: {"delta":"Olá"}\n\n'.encode()
        cut = raw.index("á".encode()) + 1
        buffer = FrameBuffer()
        frames = buffer.feed(raw[:cut]) + buffer.feed(raw[cut:])
        assert frames[0].data == '{"delta":"Olá"}'

    def test_crlf_separators(self):
        buffer = FrameBuffer()
        frames = buffer.feed(b"data: a\r\n\r\ndata: b\r")
        frames += buffer.feed(b"\n\r\n")
        assert [f.data for f in frames] == ["a", "b"]

    def test_keep_alive_frames_are_skipped(self):
        buffer = FrameBuffer()
        frames = buffer.feed(b": ping\n\ndata: \n\ndata: x\n\n")
        assert [f.data for f in frames] == ["x"]

    def test_flush_without_trailing_frame(self):
        buffer = FrameBuffer()
        buffer.feed(b"data: x\n\n")
        assert buffer.flush() == []

    def test_byte_at_a_time_crlf_stream(self):
        raw = b'event: e\r\ndata: {"delta":"' + b"x" * 500 + b'"}\r\n\r\ndata: [DONE]\r\n\r\n'
        expected = FrameBuffer().feed(raw)

        buffer = FrameBuffer()
        frames = []
        for i in range(len(raw)):
            frames += buffer.feed(raw[i:i + 1])

        assert frames == expected
        assert [f.data for f in frames][-1] == "[DONE]"
        assert buffer.flush() == []

    def test_trailing_carriage_return_is_kept_for_flush(self):
        buffer = FrameBuffer()
        assert buffer.feed(b"data: x\r") == []
        assert [f.data for f in buffer.flush()] == ["x"]

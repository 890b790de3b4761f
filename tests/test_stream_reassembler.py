"""Tests for sentinel.llm.stream_reassembler.StreamReassembler."""

from __future__ import annotations

import pytest

from sentinel.errors import ProtocolViolation, TransportError
from sentinel.llm.backends.scripted import delta_frame, sse_done, sse_frame
from sentinel.llm.stream_reassembler import StreamReassembler, StreamState
from sentinel.llm.types import Done, StreamError, Token, ToolCallArgChunk, ToolCallStart


def feed_all(reassembler: StreamReassembler, *pieces: str) -> list:
    events = []
    for piece in pieces:
        events.extend(reassembler.feed(piece))
    return events


# ---------------------------------------------------------------------------
# Framing
# ---------------------------------------------------------------------------

class TestFraming:

    def test_single_token_frame(self):
        r = StreamReassembler()
        assert r.feed(delta_frame(content="Hello")) == [Token("Hello")]
        assert r.state is StreamState.STREAMING

    def test_frame_split_across_feeds(self):
        """Nothing is emitted until the frame delimiter arrives."""
        frame = delta_frame(content="Hi")
        r = StreamReassembler()
        assert r.feed(frame[:10]) == []
        assert r.feed(frame[10:-1]) == []
        assert r.feed(frame[-1:]) == [Token("Hi")]

    def test_byte_by_byte(self):
        r = StreamReassembler()
        text = delta_frame(content="a") + delta_frame(content="b") + sse_done()
        events = feed_all(r, *text)
        assert events == [Token("a"), Token("b"), Done()]

    def test_multiple_frames_in_one_feed(self):
        r = StreamReassembler()
        events = r.feed(delta_frame(content="one ") + delta_frame(content="two"))
        assert events == [Token("one "), Token("two")]

    def test_crlf_delimiters(self):
        r = StreamReassembler()
        frame = delta_frame(content="x").replace("\n", "\r\n")
        assert r.feed(frame) == [Token("x")]

    def test_crlf_split_between_cr_and_lf(self):
        r = StreamReassembler()
        frame = delta_frame(content="y").replace("\n", "\r\n")
        assert r.feed(frame[:-1]) == []
        assert r.feed(frame[-1:]) == [Token("y")]

    def test_keepalive_comment_skipped(self):
        r = StreamReassembler()
        events = r.feed(": ping\n\n" + delta_frame(content="ok"))
        assert events == [Token("ok")]

    def test_unparseable_frame_skipped(self):
        r = StreamReassembler()
        events = r.feed("data: {not json\n\n" + delta_frame(content="still here"))
        assert events == [Token("still here")]

    def test_frame_without_choices_skipped(self):
        r = StreamReassembler()
        assert r.feed(sse_frame({"id": "chunk-1", "object": "chat.completion.chunk"})) == []

    def test_error_frame_is_terminal(self):
        r = StreamReassembler()
        events = r.feed(sse_frame({"error": {"message": "overloaded", "code": 503}}) + delta_frame(content="z"))
        assert len(events) == 1
        assert isinstance(events[0], StreamError)
        assert isinstance(events[0].cause, TransportError)
        assert events[0].cause.status_code == 503
        assert "overloaded" in str(events[0].cause)
        assert r.state is StreamState.ERRORED

    def test_error_frame_then_close_is_not_done(self):
        r = StreamReassembler()
        events = feed_all(
            r,
            delta_frame(content="The report is"),
            sse_frame({"error": {"message": "upstream reset"}}),
        )
        events.extend(r.finish())
        assert events[0] == Token("The report is")
        assert isinstance(events[-1], StreamError)
        assert not any(isinstance(e, Done) for e in events)
        assert sum(e.is_terminal for e in events) == 1

    def test_string_error_payload(self):
        r = StreamReassembler()
        [event] = r.feed(sse_frame({"error": "rate limited"}))
        assert event.cause.status_code is None
        assert "rate limited" in str(event.cause)

    def test_empty_content_not_emitted(self):
        r = StreamReassembler()
        assert r.feed(delta_frame(content="")) == []


# ---------------------------------------------------------------------------
# Termination
# ---------------------------------------------------------------------------

class TestTermination:

    def test_done_sentinel(self):
        r = StreamReassembler()
        assert r.feed(sse_done()) == [Done()]
        assert r.finished
        assert r.state is StreamState.DONE

    def test_nothing_after_done(self):
        r = StreamReassembler()
        events = r.feed(sse_done() + delta_frame(content="late"))
        assert events == [Done()]
        assert r.feed(delta_frame(content="later")) == []
        assert r.finish() == []

    def test_finish_without_sentinel_emits_done(self):
        r = StreamReassembler()
        r.feed(delta_frame(content="partial"))
        assert r.finish() == [Done()]
        assert r.state is StreamState.DONE

    def test_finish_flushes_unterminated_frame(self):
        r = StreamReassembler()
        frame = delta_frame(content="tail").rstrip("\n")
        assert r.feed(frame) == []
        assert r.finish() == [Token("tail"), Done()]

    def test_finish_on_untouched_reassembler(self):
        r = StreamReassembler()
        assert r.state is StreamState.IDLE
        assert r.finish() == [Done()]

    def test_exactly_one_terminal_event(self):
        r = StreamReassembler()
        events = feed_all(
            r,
            delta_frame(content="a"),
            sse_done(),
            sse_done(),
        )
        events.extend(r.finish())
        terminals = [e for e in events if e.is_terminal]
        assert terminals == [Done()]
        assert events[-1] == Done()


# ---------------------------------------------------------------------------
# Function calls
# ---------------------------------------------------------------------------

class TestFunctionCalls:

    def test_start_then_fragments(self):
        r = StreamReassembler()
        events = feed_all(
            r,
            delta_frame(name="createIncidentReport", arguments=""),
            delta_frame(arguments='{"title": '),
            delta_frame(arguments='"Theft"}'),
        )
        assert events == [
            ToolCallStart("createIncidentReport"),
            ToolCallArgChunk('{"title": '),
            ToolCallArgChunk('"Theft"}'),
        ]

    def test_name_and_arguments_in_one_frame(self):
        r = StreamReassembler()
        events = r.feed(delta_frame(name="setReportReadiness", arguments='{"isReady": true}'))
        assert events == [
            ToolCallStart("setReportReadiness"),
            ToolCallArgChunk('{"isReady": true}'),
        ]

    def test_text_and_call_in_one_frame(self):
        r = StreamReassembler()
        events = r.feed(delta_frame(content="One moment.", name="suggestEmergency"))
        assert events == [Token("One moment."), ToolCallStart("suggestEmergency")]

    def test_second_call_is_protocol_violation(self):
        r = StreamReassembler()
        events = feed_all(
            r,
            delta_frame(name="first", arguments="{}"),
            delta_frame(name="second", arguments="{}"),
            delta_frame(content="ignored"),
        )
        assert events[:2] == [ToolCallStart("first"), ToolCallArgChunk("{}")]
        assert isinstance(events[-1], StreamError)
        assert isinstance(events[-1].cause, ProtocolViolation)
        assert len(events) == 3
        assert r.state is StreamState.ERRORED
        assert r.finish() == []

    @pytest.mark.parametrize("split", [1, 7, 23])
    def test_call_frames_split_anywhere(self, split):
        text = (
            delta_frame(name="createIncidentReport", arguments="")
            + delta_frame(arguments='{"title":"A",')
            + delta_frame(arguments='"description":"B"}')
            + sse_done()
        )
        r = StreamReassembler()
        pieces = [text[i:i + split] for i in range(0, len(text), split)]
        events = feed_all(r, *pieces)
        assert events == [
            ToolCallStart("createIncidentReport"),
            ToolCallArgChunk('{"title":"A",'),
            ToolCallArgChunk('"description":"B"}'),
            Done(),
        ]

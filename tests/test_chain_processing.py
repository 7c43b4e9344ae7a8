"""Tests for selection, streaming and finalization on FilterChain."""
import logging
from unittest.mock import Mock

import pytest

from proxy_filters.chain import ChainState, FilterChain
from proxy_filters.filters import BodyFilter, HeaderFilter

from conftest import RecordingBodyFilter, RecordingHeaderFilter, always, never


class LegacyBodyFilter(BodyFilter):
    """Filter written against the old start() API."""

    def __init__(self):
        self.started = False
        self.seen = []

    def start(self, message):
        self.started = True

    def filter(self, data, message, protocol, buffer):
        self.seen.append(bytes(data))


class FailingBodyFilter(BodyFilter):
    def filter(self, data, message, protocol, buffer):
        raise RuntimeError("boom")


class UppercaseBodyFilter(BodyFilter):
    def filter(self, data, message, protocol, buffer):
        data[:] = bytes(data).upper()


class HeadBodyFilter(BodyFilter):
    """Emits only the first two bytes of each input, keeps the rest."""

    def filter(self, data, message, protocol, buffer):
        if buffer is not None:
            buffer[:] = data[2:]
            del data[2:]


# Selection

def test_select_keeps_matching_filters_in_order(body_chain):
    f1, f2, f3 = (RecordingBodyFilter(n) for n in ("f1", "f2", "f3"))
    body_chain.append((always, f1), (never, f2), (always, f3))

    body_chain.select("message")

    assert body_chain.active_filters == [f1, f3]
    assert body_chain.buffers == [bytearray(), bytearray()]
    assert body_chain.state is ChainState.SELECTED


def test_select_is_idempotent_per_message(body_chain):
    predicate = Mock(return_value=True)
    f = RecordingBodyFilter()
    body_chain.append((predicate, f))

    for _ in range(3):
        body_chain.select("message")

    assert predicate.call_count == 1
    assert f.count("begin") == 1
    assert body_chain.active_filters == [f]


def test_select_passes_message_to_begin(header_chain):
    f = RecordingHeaderFilter()
    header_chain.append((always, f))

    header_chain.select("the message")

    assert f.calls == [("begin", "the message")]


def test_active_filters_none_between_messages(body_chain):
    assert body_chain.active_filters is None
    assert body_chain.state is ChainState.IDLE


def test_predicate_error_propagates(body_chain):
    body_chain.append((Mock(side_effect=ValueError("bad predicate")), RecordingBodyFilter()))

    with pytest.raises(ValueError, match="bad predicate"):
        body_chain.select("message")


# Legacy start() hook

def test_legacy_start_is_logged_not_called():
    owner = Mock()
    chain = FilterChain(is_body=True, owner=owner)
    legacy = LegacyBodyFilter()
    chain.append((always, legacy))

    chain.select("message")

    assert legacy.started is False
    owner.log.assert_called_once()
    level, message = owner.log.call_args[0]
    assert level == logging.ERROR
    assert "DEPRECATION" in message
    assert "begin()" in message

    # The filter still takes part in the processing
    chain.finish_last(b"data", "message")
    assert legacy.seen == [b"data"]


def test_legacy_start_without_owner_uses_module_logger(caplog):
    chain = FilterChain(is_body=True)
    chain.append((always, LegacyBodyFilter()))

    with caplog.at_level(logging.ERROR, logger="proxy_filters.chain"):
        chain.select("message")

    assert any("DEPRECATION" in record.getMessage() for record in caplog.records)


def test_filter_defining_begin_and_start_is_not_legacy():
    class Both(RecordingBodyFilter):
        def start(self, message):
            raise AssertionError("start() must never be called")

    owner = Mock()
    chain = FilterChain(is_body=True, owner=owner)
    f = Both()
    chain.append((always, f))

    chain.select("message")

    assert f.count("begin") == 1
    owner.log.assert_not_called()


# Header mode

def test_header_apply_runs_all_filters_then_resets(header_chain):
    a, b, c = RecordingHeaderFilter("a"), RecordingHeaderFilter("b"), RecordingHeaderFilter("c")
    header_chain.append((always, a), (never, b), (always, c))
    headers = {"Host": "example.com"}

    header_chain.select("message")
    result = header_chain.apply(headers, "message")

    assert result is headers
    assert headers["X-Seen-By"] == "ac"
    assert b.calls == []
    assert header_chain.active_filters is None
    assert header_chain.state is ChainState.IDLE


def test_header_apply_selects_lazily(header_chain):
    f = RecordingHeaderFilter()
    header_chain.append((always, f))

    header_chain.apply({}, "message")

    assert [call for call, _ in f.calls] == ["begin", "filter"]


def test_header_chain_never_modifies_body(header_chain):
    header_chain.append((always, RecordingHeaderFilter()))
    header_chain.select("message")

    assert header_chain.will_modify() is False


def test_header_finish_last_is_noop(header_chain):
    f = RecordingHeaderFilter()
    header_chain.append((always, f))

    assert header_chain.finish_last(b"data", "message") == b"data"
    assert f.calls == []


# Body mode

def test_body_apply_feeds_output_to_next_filter(body_chain):
    upper = UppercaseBodyFilter()
    recorder = RecordingBodyFilter()
    body_chain.append((always, upper), (always, recorder))

    body_chain.select("message")
    data = bytearray(b"hello")
    result = body_chain.apply(data, "message", "proto")

    assert result is data
    assert data == b"HELLO"
    assert recorder.inputs == [b"HELLO"]
    assert recorder.calls[-1] == ("filter", "proto")
    assert body_chain.state is ChainState.STREAMING


def test_body_apply_accepts_bytes(body_chain):
    body_chain.append((always, UppercaseBodyFilter()))

    assert body_chain.apply(b"abc", "message") == bytearray(b"ABC")


def test_non_consuming_filter_sees_growing_buffer(body_chain):
    first = RecordingBodyFilter("first", keep=True)
    second = RecordingBodyFilter("second")
    body_chain.append((always, first), (always, second))
    chunks = [b"d1", b"d2", b"d3"]

    body_chain.select("message")
    outputs = [bytes(body_chain.apply(chunk, "message")) for chunk in chunks]
    last = body_chain.finish_last(b"", "message")

    assert first.inputs == [b"d1", b"d1d2", b"d1d2d3", b"d1d2d3"]
    assert outputs == [b"", b"", b""]
    assert second.inputs == [b"", b"", b"", b"d1d2d3"]
    assert last == b"d1d2d3"


def test_each_filter_has_its_own_buffer(body_chain):
    head = HeadBodyFilter()
    recorder = RecordingBodyFilter()
    body_chain.append((always, head), (always, recorder))

    body_chain.select("message")
    out1 = body_chain.apply(b"abcdef", "message")
    out2 = body_chain.apply(b"gh", "message")
    out3 = body_chain.finish_last(b"", "message")

    assert out1 == b"ab"
    assert out2 == b"cd"
    assert out3 == b"efgh"
    assert recorder.inputs == [b"ab", b"cd", b"efgh"]


def test_buffer_handle_is_the_chain_slot(body_chain):
    f = RecordingBodyFilter()
    body_chain.append((always, f))

    body_chain.select("message")
    body_chain.apply(b"x", "message")

    assert f.buffers[0] is body_chain.buffers[0]


def test_finish_last_passes_no_buffer(body_chain):
    f = RecordingBodyFilter()
    body_chain.append((always, f))

    body_chain.select("message")
    body_chain.apply(b"x", "message")
    body_chain.finish_last(b"y", "message")

    assert f.buffers[0] is not None
    assert f.buffers[1] is None


def test_will_modify(body_chain):
    body_chain.append(
        (always, RecordingBodyFilter("a", modifies=False)),
        (never, RecordingBodyFilter("b", modifies=True)),
    )
    body_chain.select("message")
    assert body_chain.will_modify() is False
    body_chain.finish()

    body_chain.append((always, RecordingBodyFilter("c", modifies=True)))
    body_chain.select("message")
    assert body_chain.will_modify() is True

    body_chain.finish()
    assert body_chain.will_modify() is False


# Lifecycle

def test_lifecycle_counts(body_chain):
    selected = [RecordingBodyFilter("a"), RecordingBodyFilter("c")]
    skipped = RecordingBodyFilter("b")
    body_chain.append((always, selected[0]), (never, skipped), (always, selected[1]))

    body_chain.select("message")
    body_chain.select("message")
    for chunk in (b"1", b"2", b"3"):
        body_chain.apply(chunk, "message")
    body_chain.finish_last(b"4", "message")

    for f in selected:
        assert f.count("begin") == 1
        assert f.count("filter") == 4
        assert f.count("end") == 1
        assert [call for call, _ in f.calls][-1] == "end"
    assert skipped.calls == []


def test_finish_alone_does_not_call_end(body_chain):
    f = RecordingBodyFilter()
    body_chain.append((always, f))

    body_chain.select("message")
    body_chain.apply(b"data", "message")
    body_chain.finish()
    body_chain.finish()

    assert f.count("end") == 0
    assert body_chain.active_filters is None
    assert body_chain.buffers == []
    assert body_chain.state is ChainState.IDLE


def test_next_message_is_selected_again(body_chain):
    current = {"message": "first"}
    f = RecordingBodyFilter(keep=True)
    body_chain.append((lambda: current["message"] == "second", f))

    body_chain.select("first")
    assert body_chain.active_filters == []
    body_chain.finish_last(b"", "first")

    current["message"] = "second"
    body_chain.select("second")
    assert body_chain.active_filters == [f]
    assert body_chain.buffers == [bytearray()]


def test_buffers_do_not_leak_between_messages(body_chain):
    f = RecordingBodyFilter(keep=True)
    body_chain.append((always, f))

    body_chain.select("first")
    body_chain.apply(b"left over", "first")
    body_chain.finish()

    body_chain.select("second")
    body_chain.apply(b"new", "second")

    assert f.inputs[-1] == b"new"


# Errors

def test_filter_error_propagates_and_stops_pass(body_chain):
    after = RecordingBodyFilter()
    body_chain.append((always, FailingBodyFilter()), (always, after))

    body_chain.select("message")
    with pytest.raises(RuntimeError, match="boom"):
        body_chain.apply(b"data", "message")

    assert after.calls == [("begin", "message")]

    body_chain.finish()
    assert body_chain.active_filters is None


def test_header_filter_error_propagates(header_chain):
    class Broken(HeaderFilter):
        def filter(self, headers, message):
            raise KeyError("missing")

    header_chain.append((always, Broken()))

    with pytest.raises(KeyError):
        header_chain.apply({}, "message")


def test_failed_begin_leaves_chain_selected(body_chain):
    class BrokenBegin(RecordingBodyFilter):
        def begin(self, message):
            raise RuntimeError("begin failed")

    body_chain.append((always, BrokenBegin()))

    with pytest.raises(RuntimeError):
        body_chain.select("message")

    assert body_chain.active_filters is not None
    assert body_chain.state is ChainState.SELECTED

    body_chain.finish()
    assert body_chain.state is ChainState.IDLE

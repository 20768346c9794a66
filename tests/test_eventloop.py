import os
import select

import pytest

from netstack.eventloop import Direction, EventLoop, Result
from netstack.file_descriptor import FileDescriptor


@pytest.fixture
def pipe():
    read_fd, write_fd = os.pipe()
    reader, writer = FileDescriptor(read_fd), FileDescriptor(write_fd)
    yield reader, writer
    for fd in (reader, writer):
        if not fd.closed():
            fd.close()


def test_direction_matches_poll_flags(pipe):
    assert Direction(select.POLLIN) is Direction.In
    assert Direction(select.POLLOUT) is Direction.Out
    _reader, writer = pipe
    written = []

    def send():
        written.append(writer.write(b"y"))

    loop = EventLoop()
    loop.add_fd_rule("write", writer, Direction(select.POLLOUT), send, lambda: not written)
    assert loop.wait_next_event(0) == Result.Success
    assert written == [1]


def test_categories_are_numbered_in_order():
    loop = EventLoop()
    assert loop.add_category("first") == 0
    assert loop.add_category("second") == 1


def test_category_limit():
    loop = EventLoop()
    for index in range(64):
        loop.add_category(f"c{index}")
    with pytest.raises(RuntimeError, match="maximum categories"):
        loop.add_category("too many")


def test_bad_category_id():
    loop = EventLoop()
    with pytest.raises(IndexError):
        loop.add_rule(3, lambda: None)


def test_non_fd_rule_runs_while_interested():
    loop = EventLoop()
    remaining = [5]

    def step():
        remaining[0] -= 1

    loop.add_rule("countdown", step, lambda: remaining[0] > 0)
    assert loop.wait_next_event(0) == Result.Success
    assert remaining[0] == 0
    assert loop.wait_next_event(0) == Result.Exit


def test_non_fd_busy_wait_detected():
    loop = EventLoop()
    loop.add_rule("spin", lambda: None)
    with pytest.raises(RuntimeError, match="busy wait"):
        loop.wait_next_event(0)


def test_cancelled_rule_is_dropped(pipe):
    reader, writer = pipe
    writer.write(b"data")
    loop = EventLoop()
    calls = []
    handle = loop.add_fd_rule(
        "read", reader, Direction.In, lambda: calls.append("callback"), cancel=lambda: calls.append("cancel")
    )
    handle.cancel()
    assert loop.wait_next_event(0) == Result.Exit
    assert calls == []


def test_fd_rule_reads_ready_data(pipe):
    reader, writer = pipe
    writer.write(b"hello")
    loop = EventLoop()
    received = []
    loop.add_fd_rule("read", reader, Direction.In, lambda: received.append(reader.read()))
    assert loop.wait_next_event(0) == Result.Success
    assert received == [b"hello"]


def test_fd_rule_times_out_without_data(pipe):
    reader, _writer = pipe
    loop = EventLoop()
    loop.add_fd_rule("read", reader, Direction.In, lambda: reader.read())
    assert loop.wait_next_event(0) == Result.Timeout


def test_uninterested_fd_rule_means_exit(pipe):
    reader, writer = pipe
    writer.write(b"x")
    loop = EventLoop()
    loop.add_fd_rule("read", reader, Direction.In, lambda: reader.read(), lambda: False)
    assert loop.wait_next_event(0) == Result.Exit


def test_fd_busy_wait_detected(pipe):
    reader, writer = pipe
    writer.write(b"x")
    loop = EventLoop()
    loop.add_fd_rule("lazy", reader, Direction.In, lambda: None)
    with pytest.raises(RuntimeError, match="did not read/write"):
        loop.wait_next_event(0)


def test_out_rule_writes(pipe):
    reader, writer = pipe
    done = []

    def send():
        writer.write(b"x")
        done.append(True)

    loop = EventLoop()
    loop.add_fd_rule("write", writer, Direction.Out, send, lambda: not done)
    assert loop.wait_next_event(0) == Result.Success
    assert reader.read() == b"x"
    assert loop.wait_next_event(0) == Result.Exit


def test_hangup_cancels_rule(pipe):
    reader, writer = pipe
    writer.close()
    cancelled = []
    loop = EventLoop()
    loop.add_fd_rule("read", reader, Direction.In, lambda: reader.read(), cancel=lambda: cancelled.append(True))
    result = None
    for _ in range(5):
        result = loop.wait_next_event(0)
        if result == Result.Exit:
            break
    assert result == Result.Exit
    assert cancelled == [True]


def test_closed_fd_cancels_rule(pipe):
    reader, _writer = pipe
    cancelled = []
    loop = EventLoop()
    loop.add_fd_rule("read", reader, Direction.In, lambda: reader.read(), cancel=lambda: cancelled.append(True))
    reader.close()
    assert loop.wait_next_event(0) == Result.Exit
    assert cancelled == [True]
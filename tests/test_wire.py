import pytest

from netstack.wire import Parser, Serializer, parse, serialize


class Pair:
    def __init__(self, first=0, second=0):
        self.first = first
        self.second = second

    def parse(self, parser, extra=0):
        self.first = parser.integer(2) + extra
        self.second = parser.integer(4)

    def serialize(self, serializer):
        serializer.integer(self.first, 2)
        serializer.integer(self.second, 4)


def test_serializer_writes_big_endian():
    s = Serializer()
    s.integer(0x0102, 2)
    assert s.output() == [b"\x01\x02"]


def test_serializer_truncates_to_size():
    s = Serializer()
    s.integer(0x1FF, 1)
    assert s.output() == [b"\xff"]


def test_serializer_buffers_are_separate_and_empty_skipped():
    s = Serializer()
    s.integer(1, 1)
    s.buffer(b"ab")
    s.buffer(b"")
    s.integer(2, 2)
    s.buffer([b"cd", b"ef"])
    assert s.output() == [b"\x01", b"ab", b"\x00\x02", b"cd", b"ef"]


def test_serializer_rejects_str():
    with pytest.raises(TypeError):
        Serializer().buffer("text")


@pytest.mark.parametrize("size", [1, 2, 4, 8])
def test_integer_round_trip(size):
    value = (1 << (8 * size)) - 3
    s = Serializer()
    s.integer(value, size)
    parser = Parser(s.output())
    assert parser.integer(size) == value
    assert not parser.has_error()


def test_integer_spans_buffers():
    parser = Parser([b"\x01", b"", b"\x02\x03"])
    assert parser.integer(2) == 0x0102
    assert parser.integer(1) == 3
    assert not parser.has_error()


def test_underflow_sets_error_and_latches():
    parser = Parser([b"\x01"])
    assert parser.integer(2) == 0
    assert parser.has_error()
    assert parser.integer(1) == 0


def test_set_error():
    parser = Parser([b"\x01\x02"])
    parser.set_error()
    assert parser.has_error()
    assert parser.integer(1) == 0


def test_string_reads_exact_bytes():
    parser = Parser([b"he", b"llo"])
    assert parser.string(3) == b"hel"
    assert parser.all_remaining_bytes() == b"lo"


def test_string_underflow():
    parser = Parser([b"ab"])
    assert parser.string(3) == bytes(3)
    assert parser.has_error()


def test_remove_prefix_and_all_remaining():
    parser = Parser([b"abc", b"def", b"gh"])
    parser.remove_prefix(4)
    assert parser.all_remaining() == [b"ef", b"gh"]
    assert parser.all_remaining() == []


def test_remove_prefix_beyond_input_does_not_error():
    parser = Parser([b"abc"])
    parser.remove_prefix(10)
    assert not parser.has_error()
    assert parser.buffer() == []


def test_buffer_does_not_consume():
    parser = Parser([b"abc", b"de"])
    parser.integer(1)
    assert parser.buffer() == [b"bc", b"de"]
    assert parser.all_remaining_bytes() == b"bcde"


def test_serialize_and_parse_helpers_round_trip():
    wire = serialize(Pair(7, 123456))
    out = Pair()
    assert parse(out, wire)
    assert (out.first, out.second) == (7, 123456)


def test_parse_helper_passes_extra_arguments():
    out = Pair()
    assert parse(out, serialize(Pair(7, 9)), 3)
    assert out.first == 10


def test_parse_helper_reports_failure():
    out = Pair()
    assert not parse(out, [b"\x00\x01\x02"])
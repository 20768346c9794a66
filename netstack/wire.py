"""Big-endian parsing and serialization over lists of byte buffers."""

from __future__ import annotations

from collections import deque
from typing import Any, Iterable, Union

BytesLike = Union[bytes, bytearray, memoryview]


class _BufferList:
    """A queue of byte chunks that can be consumed from the front."""

    def __init__(self, buffers: Iterable[BytesLike]) -> None:
        self._chunks: deque[bytes] = deque()
        self._skip = 0
        self._size = 0
        for chunk in buffers:
            self.append(chunk)

    def __len__(self) -> int:
        return self._size

    def append(self, data: BytesLike) -> None:
        if isinstance(data, str):
            raise TypeError("buffers must be bytes, not str")
        chunk = bytes(data)
        if chunk:
            self._chunks.append(chunk)
            self._size += len(chunk)

    def remove_prefix(self, n: int) -> None:
        while n > 0 and self._chunks:
            front = self._chunks[0]
            step = min(n, len(front) - self._skip)
            self._skip += step
            self._size -= step
            n -= step
            if self._skip == len(front):
                self._chunks.popleft()
                self._skip = 0

    def take(self, n: int) -> bytes:
        pieces = []
        while n > 0 and self._chunks:
            piece = self._chunks[0][self._skip : self._skip + n]
            pieces.append(piece)
            self.remove_prefix(len(piece))
            n -= len(piece)
        return b"".join(pieces)

    def views(self) -> list[bytes]:
        if not self._chunks:
            return []
        first, *rest = self._chunks
        return [first[self._skip :], *rest]

    def dump_all(self) -> list[bytes]:
        out = self.views()
        self._chunks.clear()
        self._skip = 0
        self._size = 0
        return out


class Parser:
    """Reads big-endian fields from a list of buffers, latching an error on underflow."""

    def __init__(self, buffers: Iterable[BytesLike] = ()) -> None:
        self._input = _BufferList(buffers)
        self._error = False

    def has_error(self) -> bool:
        return self._error

    def set_error(self) -> None:
        self._error = True

    def remove_prefix(self, n: int) -> None:
        """Drop up to n bytes of input; does nothing for n <= 0."""
        self._input.remove_prefix(n)

    def _check_size(self, size: int) -> None:
        if size > len(self._input):
            self._error = True

    def integer(self, size: int) -> int:
        """Read an unsigned big-endian integer of size bytes; 0 once in error."""
        if size <= 0:
            raise ValueError(f"integer size must be positive: {size}")
        self._check_size(size)
        if self._error:
            return 0
        return int.from_bytes(self._input.take(size), "big")

    def string(self, length: int) -> bytes:
        """Read exactly length bytes; zeros once in error."""
        if length < 0:
            raise ValueError(f"length must not be negative: {length}")
        self._check_size(length)
        if self._error:
            return bytes(length)
        return self._input.take(length)

    def all_remaining(self) -> list[bytes]:
        """Consume and return the rest of the input as its buffers."""
        return self._input.dump_all()

    def all_remaining_bytes(self) -> bytes:
        """Consume and return the rest of the input as one bytes object."""
        return b"".join(self._input.dump_all())

    def buffer(self) -> list[bytes]:
        """The unread input, without consuming it."""
        return self._input.views()


class Serializer:
    """Writes big-endian fields and whole buffers into a list of buffers."""

    def __init__(self, initial: BytesLike = b"") -> None:
        self._output: list[bytes] = []
        self._pending = bytearray(initial)

    def integer(self, value: int, size: int) -> None:
        """Append the low size bytes of value, big-endian."""
        if size <= 0:
            raise ValueError(f"integer size must be positive: {size}")
        mask = (1 << (8 * size)) - 1
        self._pending += (value & mask).to_bytes(size, "big")

    def buffer(self, data: BytesLike | Iterable[BytesLike]) -> None:
        """Append a bytes-like object, or each of an iterable of them, as its own buffer."""
        if isinstance(data, str):
            raise TypeError("buffers must be bytes, not str")
        if not isinstance(data, (bytes, bytearray, memoryview)):
            for chunk in data:
                self.buffer(chunk)
            return
        self.flush()
        if data:
            self._output.append(bytes(data))

    def flush(self) -> None:
        if self._pending:
            self._output.append(bytes(self._pending))
            self._pending.clear()

    def output(self) -> list[bytes]:
        self.flush()
        return list(self._output)


def serialize(obj: Any) -> list[bytes]:
    """Serialize any object that has a serialize(serializer) method."""
    serializer = Serializer()
    obj.serialize(serializer)
    return serializer.output()


def parse(obj: Any, buffers: Iterable[BytesLike], *args: Any) -> bool:
    """Parse buffers into obj via obj.parse(parser, *args); True if no error occurred."""
    parser = Parser(buffers)
    obj.parse(parser, *args)
    return not parser.has_error()
"""The Internet checksum (ones' complement sum of 16-bit words)."""

from __future__ import annotations

from typing import Iterable, Union

BytesLike = Union[bytes, bytearray, memoryview]

_MASK32 = 0xFFFFFFFF


class InternetChecksum:
    """Accumulates data and yields its Internet checksum."""

    def __init__(self, initial_sum: int = 0) -> None:
        self._sum = initial_sum & _MASK32
        self._odd = False

    def add(self, data: BytesLike | Iterable[BytesLike]) -> None:
        """Add a bytes-like object, or each of an iterable of them, to the sum."""
        if isinstance(data, str):
            raise TypeError("checksum data must be bytes, not str")
        if not isinstance(data, (bytes, bytearray, memoryview)):
            for chunk in data:
                self.add(chunk)
            return

        chunk = bytes(data)
        if not chunk:
            return
        total = 0
        rest = chunk
        if self._odd:
            total += chunk[0]
            rest = chunk[1:]
        total += sum(rest[0::2]) << 8
        total += sum(rest[1::2])
        self._sum = (self._sum + total) & _MASK32
        self._odd ^= len(chunk) % 2 == 1

    def value(self) -> int:
        """The 16-bit checksum of everything added so far."""
        folded = self._sum
        while folded > 0xFFFF:
            folded = (folded >> 16) + (folded & 0xFFFF)
        return ~folded & 0xFFFF
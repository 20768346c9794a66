"""Reference-counted handles on operating-system file descriptors."""

from __future__ import annotations

import errno
import os
import sys
from typing import Any, Callable, Iterable, Optional, TypeVar, Union

from netstack.errors import UnixError

BytesLike = Union[bytes, bytearray, memoryview]
T = TypeVar("T")

_WOULD_BLOCK = frozenset({errno.EAGAIN, errno.EWOULDBLOCK, errno.EINPROGRESS})


def _unix_error(attempt: str, exc: OSError) -> UnixError:
    return UnixError(attempt, exc.errno if exc.errno is not None else errno.EIO)


class _FDWrapper:
    """The kernel descriptor itself, shared by every handle that refers to it."""

    def __init__(self, fd: int) -> None:
        self.closed = True  # a wrapper that fails to build has nothing to close
        if not isinstance(fd, int) or isinstance(fd, bool):
            raise TypeError(f"fd must be an int, not {type(fd).__name__}")
        if fd < 0:
            raise RuntimeError(f"invalid fd number:{fd}")
        try:
            blocking = os.get_blocking(fd)
        except OSError as exc:
            raise _unix_error("fcntl", exc) from exc
        self.fd = fd
        self.eof = False
        self.closed = False
        self.non_blocking = not blocking
        self.read_count = 0
        self.write_count = 0

    def close(self) -> None:
        try:
            os.close(self.fd)
        except OSError as exc:
            raise _unix_error("close", exc) from exc
        self.eof = self.closed = True

    def __del__(self) -> None:
        if getattr(self, "closed", True):
            return
        try:
            self.close()
        except Exception as exc:  # never raise out of a finalizer
            print(f"Exception destructing FDWrapper: {exc}", file=sys.stderr)


class FileDescriptor:
    """A handle on a kernel file descriptor; duplicates share the descriptor and its state.

    The descriptor is closed when close() is called or when the last handle
    referring to it is garbage-collected.
    """

    READ_BUFFER_SIZE = 16384

    def __init__(self, fd: int) -> None:
        self._wrapper = _FDWrapper(fd)

    def _share(self, other: FileDescriptor) -> None:
        self._wrapper = other._wrapper

    def _system_call(self, attempt: str, func: Callable[..., T], *args: Any) -> Optional[T]:
        """Run func; None if a non-blocking descriptor would block, UnixError on failure."""
        try:
            return func(*args)
        except OSError as exc:
            if self._wrapper.non_blocking and exc.errno in _WOULD_BLOCK:
                return None
            raise _unix_error(attempt, exc) from exc

    def _set_eof(self) -> None:
        self._wrapper.eof = True

    def _register_read(self) -> None:
        self._wrapper.read_count += 1

    def _register_write(self) -> None:
        self._wrapper.write_count += 1

    def read(self, size: Optional[int] = None) -> bytes:
        """Read up to size bytes (READ_BUFFER_SIZE if None or 0).

        Returns b"" at end of file, which also sets the EOF flag, and when a
        non-blocking descriptor has nothing to read.
        """
        if size is None or size == 0:
            size = self.READ_BUFFER_SIZE
        if size < 0:
            raise ValueError(f"read size must not be negative: {size}")
        try:
            data = os.read(self.fd_num(), size)
        except OSError as exc:
            if self._wrapper.non_blocking and exc.errno in _WOULD_BLOCK:
                return b""
            raise _unix_error("read", exc) from exc

        self._register_read()
        if not data:
            self._set_eof()
        return data

    def readv(self, sizes: Iterable[int]) -> list[bytes]:
        """Scatter-read into buffers of the given sizes and return what each received.

        The last buffer always takes up to READ_BUFFER_SIZE bytes, whatever
        size was given for it. Buffers past the end of the data come back
        empty. A non-blocking descriptor with nothing to read gives [].
        """
        lengths = list(sizes)
        if not lengths:
            return []
        lengths[-1] = self.READ_BUFFER_SIZE
        if any(length < 0 for length in lengths):
            raise ValueError("buffer sizes must not be negative")

        buffers = [bytearray(length) for length in lengths]
        try:
            bytes_read = os.readv(self.fd_num(), buffers)
        except OSError as exc:
            if self._wrapper.non_blocking and exc.errno in _WOULD_BLOCK:
                return []
            raise _unix_error("read", exc) from exc

        self._register_read()

        pieces = []
        remaining = bytes_read
        for buffer in buffers:
            if remaining >= len(buffer):
                pieces.append(bytes(buffer))
                remaining -= len(buffer)
            else:
                pieces.append(bytes(buffer[:remaining]))
                remaining = 0
        return pieces

    def write(self, data: BytesLike | Iterable[BytesLike]) -> int:
        """Gather-write a bytes-like object or an iterable of them; returns bytes written."""
        if isinstance(data, str):
            raise TypeError("data must be bytes, not str")
        if isinstance(data, (bytes, bytearray, memoryview)):
            buffers = [data]
        else:
            buffers = list(data)
            if any(isinstance(chunk, str) for chunk in buffers):
                raise TypeError("data must be bytes, not str")
        total = sum(memoryview(chunk).nbytes for chunk in buffers)

        written = self._system_call("writev", os.writev, self.fd_num(), buffers or [b""])
        self._register_write()
        written = written or 0

        if written == 0 and total != 0:
            raise RuntimeError("write returned 0 given non-empty input buffer")
        if written > total:
            raise RuntimeError("write wrote more than length of input buffer")
        return written

    def close(self) -> None:
        """Close the underlying descriptor for every handle that shares it."""
        self._wrapper.close()

    def duplicate(self) -> FileDescriptor:
        """Another handle on the same descriptor, sharing its flags and counters."""
        copy = FileDescriptor.__new__(FileDescriptor)
        copy._share(self)
        return copy

    def set_blocking(self, blocking: bool) -> None:
        try:
            os.set_blocking(self.fd_num(), blocking)
        except OSError as exc:
            raise _unix_error("fcntl", exc) from exc
        self._wrapper.non_blocking = not blocking

    def fd_num(self) -> int:
        return self._wrapper.fd

    def eof(self) -> bool:
        return self._wrapper.eof

    def closed(self) -> bool:
        return self._wrapper.closed

    def read_count(self) -> int:
        return self._wrapper.read_count

    def write_count(self) -> int:
        return self._wrapper.write_count

    def __enter__(self) -> FileDescriptor:
        return self

    def __exit__(self, *args: Any) -> None:
        if not self.closed():
            self.close()
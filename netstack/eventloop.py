"""Waits for events on file descriptors and runs the matching callbacks."""

from __future__ import annotations

import enum
import errno
import select
import socket
import sys
import weakref
from dataclasses import dataclass
from typing import Callable, Optional, Union

from netstack.errors import UnixError
from netstack.file_descriptor import FileDescriptor

Callback = Callable[[], None]
Interest = Callable[[], bool]

_MAX_CATEGORIES = 64
_MAX_ITERATIONS = 128
_POLL_ERROR = select.POLLERR | select.POLLNVAL
_POLL_ALWAYS = select.POLLERR | select.POLLHUP | select.POLLNVAL


def _always() -> bool:
    return True


def _nothing() -> None:
    return None


class Direction(enum.IntEnum):
    """Whether a rule waits for its descriptor to be readable or writable."""

    In = select.POLLIN
    Out = select.POLLOUT


class Result(enum.Enum):
    """The outcome of one EventLoop.wait_next_event call."""

    Success = enum.auto()
    Timeout = enum.auto()
    Exit = enum.auto()


@dataclass(eq=False)
class _BasicRule:
    category_id: int
    interest: Interest
    callback: Callback
    cancel_requested: bool = False


@dataclass(eq=False)
class _FDRule:
    category_id: int
    interest: Interest
    callback: Callback
    fd: FileDescriptor
    direction: Direction
    cancel: Callback
    error: Callback
    cancel_requested: bool = False

    def service_count(self) -> int:
        """How often the descriptor has been read or written, per the rule's direction."""
        if self.direction == Direction.In:
            return self.fd.read_count()
        return self.fd.write_count()


class RuleHandle:
    """A handle that can cancel a rule without keeping it alive."""

    def __init__(self, rule: Union[_BasicRule, _FDRule]) -> None:
        self._rule = weakref.ref(rule)

    def cancel(self) -> None:
        """Ask the loop to drop the rule; its cancel callback is not called."""
        rule = self._rule()
        if rule is not None:
            rule.cancel_requested = True


def _socket_error(fd_num: int) -> Optional[int]:
    """The pending error of a socket descriptor, or None if it is not a socket."""
    try:
        sock = socket.socket(fileno=fd_num)
    except OSError as exc:
        if exc.errno == errno.ENOTSOCK:
            return None
        raise UnixError("getsockopt", exc.errno if exc.errno is not None else errno.EIO) from exc
    try:
        return sock.getsockopt(socket.SOL_SOCKET, socket.SO_ERROR)
    except OSError as exc:
        if exc.errno == errno.ENOTSOCK:
            return None
        raise UnixError("getsockopt", exc.errno if exc.errno is not None else errno.EIO) from exc
    finally:
        sock.detach()


class EventLoop:
    """Runs callbacks for rules, serving at most one rule per wait_next_event call."""

    def __init__(self) -> None:
        self._categories: list[str] = []
        self._fd_rules: list[_FDRule] = []
        self._non_fd_rules: list[_BasicRule] = []

    def add_category(self, name: str) -> int:
        """Register a category name and return its id."""
        if len(self._categories) >= _MAX_CATEGORIES:
            raise RuntimeError("maximum categories reached")
        self._categories.append(name)
        return len(self._categories) - 1

    def _category_id(self, category: Union[int, str]) -> int:
        if isinstance(category, str):
            return self.add_category(category)
        if not 0 <= category < len(self._categories):
            raise IndexError("bad category_id")
        return category

    def add_rule(
        self,
        category: Union[int, str],
        callback: Callback,
        interest: Optional[Interest] = None,
    ) -> RuleHandle:
        """Add a rule that runs callback while interest() is true.

        category is a category id, or a name for a new category.
        """
        rule = _BasicRule(self._category_id(category), interest or _always, callback)
        self._non_fd_rules.append(rule)
        return RuleHandle(rule)

    def add_fd_rule(
        self,
        category: Union[int, str],
        fd: FileDescriptor,
        direction: Direction,
        callback: Callback,
        interest: Optional[Interest] = None,
        cancel: Optional[Callback] = None,
        error: Optional[Callback] = None,
    ) -> RuleHandle:
        """Add a rule that runs callback when fd is ready in direction and interest() is true.

        cancel is called when the loop drops the rule (end of file, hangup,
        closure or error); error is called first when the descriptor reports
        an error.
        """
        rule = _FDRule(
            category_id=self._category_id(category),
            interest=interest or _always,
            callback=callback,
            fd=fd.duplicate(),
            direction=Direction(direction),
            cancel=cancel or _nothing,
            error=error or _nothing,
        )
        self._fd_rules.append(rule)
        return RuleHandle(rule)

    def _name(self, rule: Union[_BasicRule, _FDRule]) -> str:
        return self._categories[rule.category_id]

    def _serve_non_fd_rules(self) -> bool:
        for rule in list(self._non_fd_rules):
            if rule.cancel_requested:
                self._non_fd_rules.remove(rule)
                continue
            fired = False
            iterations = 0
            while rule.interest():
                if iterations >= _MAX_ITERATIONS:
                    raise RuntimeError(
                        f'EventLoop: busy wait detected: rule "{self._name(rule)}" '
                        f"is still interested after {iterations + 1} iterations"
                    )
                iterations += 1
                fired = True
                rule.callback()
            if fired:
                return True
        return False

    def _prepare_fd_rules(self) -> list[tuple[_FDRule, int]]:
        polled: list[tuple[_FDRule, int]] = []
        for rule in list(self._fd_rules):
            if rule.cancel_requested:
                self._fd_rules.remove(rule)
                continue
            if (rule.direction == Direction.In and rule.fd.eof()) or rule.fd.closed():
                rule.cancel()
                self._fd_rules.remove(rule)
                continue
            events = int(rule.direction) if rule.interest() else 0
            polled.append((rule, events))
        return polled

    def wait_next_event(self, timeout_ms: int) -> Result:
        """Serve one ready rule, waiting up to timeout_ms (forever if negative)."""
        if self._serve_non_fd_rules():
            return Result.Success

        polled = self._prepare_fd_rules()
        if not any(events for _rule, events in polled):
            return Result.Exit

        masks: dict[int, int] = {}
        for rule, events in polled:
            fd_num = rule.fd.fd_num()
            masks[fd_num] = masks.get(fd_num, 0) | events
        poller = select.poll()
        for fd_num, mask in masks.items():
            poller.register(fd_num, mask)
        try:
            ready = poller.poll(timeout_ms)
        except OSError as exc:
            raise UnixError("poll", exc.errno if exc.errno is not None else errno.EIO) from exc
        if not ready:
            return Result.Timeout
        reported = dict(ready)

        for rule, events in polled:
            revents = reported.get(rule.fd.fd_num(), 0) & (events | _POLL_ALWAYS)

            if revents & _POLL_ERROR:
                socket_error = _socket_error(rule.fd.fd_num())
                if socket_error is None:
                    print(
                        f'error on polled file descriptor for rule "{self._name(rule)}"',
                        file=sys.stderr,
                    )
                elif socket_error:
                    print(
                        f'error on polled socket for rule "{self._name(rule)}": '
                        f"{errno.errorcode.get(socket_error, socket_error)}",
                        file=sys.stderr,
                    )
                rule.error()
                rule.cancel()
                self._fd_rules.remove(rule)
                continue

            poll_ready = bool(revents & events)
            poll_hup = bool(revents & select.POLLHUP)
            if poll_hup and ((events and not poll_ready) or rule.direction == Direction.Out):
                rule.cancel()
                self._fd_rules.remove(rule)
                continue

            if poll_ready:
                count_before = rule.service_count()
                rule.callback()
                if (
                    count_before == rule.service_count()
                    and not rule.fd.closed()
                    and rule.interest()
                ):
                    raise RuntimeError(
                        f'EventLoop: busy wait detected: rule "{self._name(rule)}" '
                        "did not read/write fd and is still interested"
                    )
                return Result.Success

        return Result.Success
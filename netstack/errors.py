"""Exceptions for failed system and resolver calls."""

from __future__ import annotations

import os
from typing import TypeVar

T = TypeVar("T")


class TaggedError(OSError):
    """A failed call, tagged with a description of what was being attempted."""

    def __init__(self, attempt: str, error_code: int, description: str) -> None:
        super().__init__(error_code, description)
        self.attempt = attempt
        self.description = description

    @property
    def error_code(self) -> int:
        return self.errno

    def __str__(self) -> str:
        return f"{self.attempt}: {self.description}"


class UnixError(TaggedError):
    """A failed operating-system call, described by its errno value."""

    def __init__(self, attempt: str, error_code: int) -> None:
        super().__init__(attempt, error_code, os.strerror(error_code))


def check_system_call(attempt: str, return_value: int) -> int:
    """Return a non-negative result; a negative one is taken as a negated errno and raised."""
    if return_value >= 0:
        return return_value
    raise UnixError(attempt, -return_value)


def notnull(context: str, value: T | None) -> T:
    """Return value, raising RuntimeError if it is None."""
    if value is None:
        raise RuntimeError(f"{context}: returned null pointer")
    return value
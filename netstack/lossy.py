"""An adapter wrapper that randomly drops datagrams in each direction."""

from __future__ import annotations

import os
import random
from typing import Any, Optional

from netstack.tcp_over_ip import FdAdapterConfig
from netstack.tcp_segment import TCPMessage

_SEED_BYTES = 1024 * 4


def get_random_engine() -> random.Random:
    """A pseudo-random generator seeded from the operating system's entropy source."""
    return random.Random(int.from_bytes(os.urandom(_SEED_BYTES), "big"))


class LossyFdAdapter:
    """Wraps a datagram adapter, dropping reads and writes at the configured loss rates.

    A loss rate is out of 65536: a datagram is dropped when a random 16-bit
    number falls below it.
    """

    def __init__(self, adapter: Any, rng: Optional[random.Random] = None) -> None:
        self._adapter = adapter
        self._rng = rng if rng is not None else get_random_engine()

    def _should_drop(self, uplink: bool) -> bool:
        config = self._adapter.config
        loss = config.loss_rate_up if uplink else config.loss_rate_dn
        return loss != 0 and self._rng.getrandbits(16) < loss

    def fd(self) -> Any:
        """The underlying adapter's file descriptor."""
        return self._adapter.fd()

    def read(self) -> Optional[TCPMessage]:
        """Read from the underlying adapter; None if nothing was read or it was dropped."""
        message = self._adapter.read()
        if self._should_drop(False):
            return None
        return message

    def write(self, message: TCPMessage) -> None:
        """Write through the underlying adapter unless the message is dropped."""
        if self._should_drop(True):
            return
        self._adapter.write(message)

    def set_listening(self, listening: bool) -> None:
        self._adapter.listening = listening

    @property
    def config(self) -> FdAdapterConfig:
        return self._adapter.config

    @config.setter
    def config(self, value: FdAdapterConfig) -> None:
        self._adapter.config = value

    def tick(self, ms_since_last_tick: int) -> None:
        self._adapter.tick(ms_since_last_tick)
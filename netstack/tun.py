"""File descriptors for Linux TUN and TAP devices."""

from __future__ import annotations

import errno
import fcntl
import os
import struct

from netstack.errors import UnixError
from netstack.file_descriptor import FileDescriptor

CLONE_DEVICE = "/dev/net/tun"
TUNSETIFF = 0x400454CA
IFF_TUN = 0x0001
IFF_TAP = 0x0002
IFF_NO_PI = 0x1000
IFNAMSIZ = 16

_IFREQ = struct.Struct(f"={IFNAMSIZ}sH22x")


def _errno_of(exc: OSError) -> int:
    return exc.errno if exc.errno is not None else errno.EIO


class TunTapFD(FileDescriptor):
    """An open, existing persistent TUN (IP datagrams) or TAP (Ethernet frames) device."""

    def __init__(self, devname: str, is_tun: bool, *, clone_device: str = CLONE_DEVICE) -> None:
        try:
            fd = os.open(clone_device, os.O_RDWR | os.O_CLOEXEC)
        except OSError as exc:
            raise UnixError("open", _errno_of(exc)) from exc
        try:
            super().__init__(fd)
        except BaseException:
            os.close(fd)
            raise

        flags = (IFF_TUN if is_tun else IFF_TAP) | IFF_NO_PI
        name = devname.encode()[: IFNAMSIZ - 1]
        request = _IFREQ.pack(name, flags)
        try:
            fcntl.ioctl(self.fd_num(), TUNSETIFF, request)
        except OSError as exc:
            self.close()
            raise UnixError("ioctl", _errno_of(exc)) from exc


class TunFD(TunTapFD):
    """An open, existing persistent TUN device."""

    def __init__(self, devname: str, *, clone_device: str = CLONE_DEVICE) -> None:
        super().__init__(devname, True, clone_device=clone_device)


class TapFD(TunTapFD):
    """An open, existing persistent TAP device."""

    def __init__(self, devname: str, *, clone_device: str = CLONE_DEVICE) -> None:
        super().__init__(devname, False, clone_device=clone_device)
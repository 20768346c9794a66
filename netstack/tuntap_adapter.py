"""A TCP-over-IPv4 adapter that reads and writes datagrams on a TUN device."""

from __future__ import annotations

from typing import Optional

from netstack.file_descriptor import FileDescriptor
from netstack.ipv4 import IPv4Header, InternetDatagram
from netstack.tcp_over_ip import FdAdapterConfig, TCPOverIPv4Adapter
from netstack.tcp_segment import TCPMessage
from netstack.wire import parse, serialize


class TCPOverIPv4OverTunFdAdapter(TCPOverIPv4Adapter):
    """Exchanges TCP messages as IPv4 datagrams over a TUN device (or any datagram descriptor)."""

    def __init__(self, tun: FileDescriptor, config: Optional[FdAdapterConfig] = None) -> None:
        super().__init__(config)
        self._tun = tun

    @property
    def tun(self) -> FileDescriptor:
        return self._tun

    def read(self) -> Optional[TCPMessage]:
        """Read one datagram; its TCP message if it is valid and for this connection, else None."""
        buffers = self._tun.readv([IPv4Header.LENGTH, FileDescriptor.READ_BUFFER_SIZE])
        ip_dgram = InternetDatagram()
        if parse(ip_dgram, buffers):
            return self.unwrap_tcp_in_ip(ip_dgram)
        return None

    def write(self, message: TCPMessage) -> None:
        """Wrap a TCP message in an IPv4 datagram and write it to the device."""
        self._tun.write(serialize(self.wrap_tcp_in_ip(message)))

    def fd(self) -> FileDescriptor:
        """The underlying device descriptor."""
        return self._tun
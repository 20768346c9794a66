"""Carrying TCP segments inside IPv4 datagrams."""

from __future__ import annotations

import ipaddress
from dataclasses import dataclass, field
from typing import Optional

from netstack.address import Address
from netstack.ipv4 import IPv4Header, InternetDatagram
from netstack.tcp_segment import TCPMessage, TCPSegment
from netstack.wire import parse, serialize

_TCP_HEADER_LENGTH = 20


def _any_address() -> Address:
    return Address.from_ipv4_numeric(0)


def _dotted(ip: int) -> str:
    return str(ipaddress.IPv4Address(ip & 0xFFFFFFFF))


@dataclass
class FdAdapterConfig:
    """Endpoints and loss rates for a datagram adapter."""

    source: Address = field(default_factory=_any_address)
    destination: Address = field(default_factory=_any_address)
    loss_rate_dn: int = 0
    loss_rate_up: int = 0


class FdAdapterBase:
    """Configuration and listening state shared by datagram adapters."""

    def __init__(self, config: Optional[FdAdapterConfig] = None) -> None:
        self.config = config if config is not None else FdAdapterConfig()
        self.listening = False
        self.elapsed_ms = 0

    def tick(self, ms_since_last_tick: int) -> None:
        """Record the time that has passed since the previous tick."""
        self.elapsed_ms += ms_since_last_tick


class TCPOverIPv4Adapter(FdAdapterBase):
    """Converts between TCP messages and IPv4 datagrams for one connection."""

    def unwrap_tcp_in_ip(self, ip_dgram: InternetDatagram) -> Optional[TCPMessage]:
        """The TCP message in a datagram, or None if it is invalid or not for this connection.

        While listening, a SYN (without RST) fixes the connection's endpoints
        and ends listening.
        """
        header = ip_dgram.header
        config = self.config

        if not self.listening and header.dst != config.source.ipv4_numeric():
            return None
        if not self.listening and header.src != config.destination.ipv4_numeric():
            return None
        if header.proto != IPv4Header.PROTO_TCP:
            return None

        seg = TCPSegment()
        if not parse(seg, ip_dgram.payload, header.pseudo_checksum()):
            return None

        if seg.udinfo.dst_port != config.source.port():
            return None

        if self.listening:
            sender = seg.message.sender
            if not (sender.SYN and not sender.RST):
                return None
            config.source = Address(_dotted(header.dst), config.source.port())
            config.destination = Address(_dotted(header.src), seg.udinfo.src_port)
            self.listening = False

        if seg.udinfo.src_port != config.destination.port():
            return None

        return seg.message

    def wrap_tcp_in_ip(self, msg: TCPMessage) -> InternetDatagram:
        """Wrap a TCP message in an IPv4 datagram addressed per the configuration."""
        config = self.config
        seg = TCPSegment(message=msg)
        seg.udinfo.src_port = config.source.port()
        seg.udinfo.dst_port = config.destination.port()

        ip_dgram = InternetDatagram()
        ip_dgram.header.src = config.source.ipv4_numeric()
        ip_dgram.header.dst = config.destination.ipv4_numeric()
        ip_dgram.header.len = (
            ip_dgram.header.hlen * 4 + _TCP_HEADER_LENGTH + len(msg.sender.payload)
        ) & 0xFFFF

        seg.compute_checksum(ip_dgram.header.pseudo_checksum())
        ip_dgram.header.compute_checksum()
        ip_dgram.payload = serialize(seg)
        return ip_dgram
"""Ethernet addresses, frame headers and frames."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import ClassVar, Union

from netstack.wire import Parser, Serializer

BytesLike = Union[bytes, bytearray, memoryview]

ETHERNET_ADDRESS_LENGTH = 6
ETHERNET_BROADCAST = b"\xff" * ETHERNET_ADDRESS_LENGTH
ZERO_ETHERNET_ADDRESS = bytes(ETHERNET_ADDRESS_LENGTH)


def format_ethernet_address(address: BytesLike) -> str:
    """Colon-separated lower-case hex form of an Ethernet address."""
    return ":".join(f"{byte:02x}" for byte in bytes(address))


def _write_address(serializer: Serializer, address: BytesLike, what: str) -> None:
    raw = bytes(address)
    if len(raw) != ETHERNET_ADDRESS_LENGTH:
        raise ValueError(f"{what} must be {ETHERNET_ADDRESS_LENGTH} bytes, got {len(raw)}")
    for byte in raw:
        serializer.integer(byte, 1)


@dataclass
class EthernetHeader:
    """An Ethernet frame header: destination, source and frame type."""

    LENGTH: ClassVar[int] = 14
    TYPE_IPv4: ClassVar[int] = 0x800
    TYPE_ARP: ClassVar[int] = 0x806

    dst: bytes = ZERO_ETHERNET_ADDRESS
    src: bytes = ZERO_ETHERNET_ADDRESS
    type: int = 0

    def parse(self, parser: Parser) -> None:
        self.dst = parser.string(ETHERNET_ADDRESS_LENGTH)
        self.src = parser.string(ETHERNET_ADDRESS_LENGTH)
        self.type = parser.integer(2)

    def serialize(self, serializer: Serializer) -> None:
        _write_address(serializer, self.dst, "destination address")
        _write_address(serializer, self.src, "source address")
        serializer.integer(self.type, 2)

    def __str__(self) -> str:
        if self.type == self.TYPE_IPv4:
            kind = "IPv4"
        elif self.type == self.TYPE_ARP:
            kind = "ARP"
        else:
            kind = f"[unknown type {self.type:x}!]"
        return (
            f"dst={format_ethernet_address(self.dst)}"
            f" src={format_ethernet_address(self.src)}"
            f" type={kind}"
        )


@dataclass
class EthernetFrame:
    """An Ethernet header followed by its payload buffers."""

    header: EthernetHeader = field(default_factory=EthernetHeader)
    payload: list[bytes] = field(default_factory=list)

    def parse(self, parser: Parser) -> None:
        self.header.parse(parser)
        self.payload = parser.all_remaining()

    def serialize(self, serializer: Serializer) -> None:
        self.header.serialize(serializer)
        serializer.buffer(self.payload)
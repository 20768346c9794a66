"""ARP messages for Ethernet and IPv4."""

from __future__ import annotations

import ipaddress
from dataclasses import dataclass
from typing import ClassVar

from netstack.ethernet import (
    ETHERNET_ADDRESS_LENGTH,
    ZERO_ETHERNET_ADDRESS,
    EthernetHeader,
    format_ethernet_address,
)
from netstack.wire import Parser, Serializer

_IPV4_ADDRESS_LENGTH = 4


def _dotted(ip: int) -> str:
    return str(ipaddress.IPv4Address(ip & 0xFFFFFFFF))


def _write_address(serializer: Serializer, address: bytes, what: str) -> None:
    raw = bytes(address)
    if len(raw) != ETHERNET_ADDRESS_LENGTH:
        raise ValueError(f"{what} must be {ETHERNET_ADDRESS_LENGTH} bytes, got {len(raw)}")
    for byte in raw:
        serializer.integer(byte, 1)


@dataclass
class ARPMessage:
    """An ARP request or reply."""

    LENGTH: ClassVar[int] = 28
    TYPE_ETHERNET: ClassVar[int] = 1
    OPCODE_REQUEST: ClassVar[int] = 1
    OPCODE_REPLY: ClassVar[int] = 2

    hardware_type: int = 1
    protocol_type: int = EthernetHeader.TYPE_IPv4
    hardware_address_size: int = ETHERNET_ADDRESS_LENGTH
    protocol_address_size: int = _IPV4_ADDRESS_LENGTH
    opcode: int = 0

    sender_ethernet_address: bytes = ZERO_ETHERNET_ADDRESS
    sender_ip_address: int = 0

    target_ethernet_address: bytes = ZERO_ETHERNET_ADDRESS
    target_ip_address: int = 0

    def supported(self) -> bool:
        """Whether this is an Ethernet/IPv4 request or reply."""
        return (
            self.hardware_type == self.TYPE_ETHERNET
            and self.protocol_type == EthernetHeader.TYPE_IPv4
            and self.hardware_address_size == ETHERNET_ADDRESS_LENGTH
            and self.protocol_address_size == _IPV4_ADDRESS_LENGTH
            and self.opcode in (self.OPCODE_REQUEST, self.OPCODE_REPLY)
        )

    def parse(self, parser: Parser) -> None:
        self.hardware_type = parser.integer(2)
        self.protocol_type = parser.integer(2)
        self.hardware_address_size = parser.integer(1)
        self.protocol_address_size = parser.integer(1)
        self.opcode = parser.integer(2)

        if not self.supported():
            parser.set_error()
            return

        self.sender_ethernet_address = parser.string(ETHERNET_ADDRESS_LENGTH)
        self.sender_ip_address = parser.integer(4)
        self.target_ethernet_address = parser.string(ETHERNET_ADDRESS_LENGTH)
        self.target_ip_address = parser.integer(4)

    def serialize(self, serializer: Serializer) -> None:
        if not self.supported():
            raise ValueError(
                "ARPMessage: unsupported field combination "
                "(must be Ethernet/IP, and request or reply)"
            )
        serializer.integer(self.hardware_type, 2)
        serializer.integer(self.protocol_type, 2)
        serializer.integer(self.hardware_address_size, 1)
        serializer.integer(self.protocol_address_size, 1)
        serializer.integer(self.opcode, 2)
        _write_address(serializer, self.sender_ethernet_address, "sender Ethernet address")
        serializer.integer(self.sender_ip_address, 4)
        _write_address(serializer, self.target_ethernet_address, "target Ethernet address")
        serializer.integer(self.target_ip_address, 4)

    def __str__(self) -> str:
        if self.opcode == self.OPCODE_REQUEST:
            opcode = "REQUEST"
        elif self.opcode == self.OPCODE_REPLY:
            opcode = "REPLY"
        else:
            opcode = "(unknown type)"
        return (
            f"opcode={opcode}"
            f", sender={format_ethernet_address(self.sender_ethernet_address)}"
            f"/{_dotted(self.sender_ip_address)}"
            f", target={format_ethernet_address(self.target_ethernet_address)}"
            f"/{_dotted(self.target_ip_address)}"
        )
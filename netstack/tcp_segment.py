"""TCP messages and their wire form as TCP segments."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from netstack.checksum import InternetChecksum
from netstack.wire import Parser, Serializer

_HEADER_MIN_WORDS = 5

_FLAG_ACK = 0b0001_0000
_FLAG_RST = 0b0000_0100
_FLAG_SYN = 0b0000_0010
_FLAG_FIN = 0b0000_0001


@dataclass
class TCPSenderMessage:
    """What a TCP sender tells its receiver.

    seqno is the raw 32-bit sequence number of the SYN (if set) or of the
    first payload byte.
    """

    seqno: int = 0
    SYN: bool = False
    payload: bytes = b""
    FIN: bool = False
    RST: bool = False

    def sequence_length(self) -> int:
        """How many sequence numbers this message occupies."""
        return int(self.SYN) + len(self.payload) + int(self.FIN)


@dataclass
class TCPReceiverMessage:
    """What a TCP receiver tells its sender.

    ackno is the raw 32-bit acknowledgment number, or None before the
    receiver has learned the initial sequence number.
    """

    ackno: Optional[int] = None
    window_size: int = 0
    RST: bool = False


@dataclass
class TCPMessage:
    """A sender message and a receiver message travelling together."""

    sender: TCPSenderMessage = field(default_factory=TCPSenderMessage)
    receiver: TCPReceiverMessage = field(default_factory=TCPReceiverMessage)


@dataclass
class UserDatagramInfo:
    """The ports and checksum of a TCP (or UDP) header."""

    src_port: int = 0
    dst_port: int = 0
    cksum: int = 0


@dataclass
class TCPSegment:
    """A TCP message together with its port and checksum fields."""

    message: TCPMessage = field(default_factory=TCPMessage)
    udinfo: UserDatagramInfo = field(default_factory=UserDatagramInfo)

    def parse(self, parser: Parser, datagram_layer_pseudo_checksum: int) -> None:
        """Read a segment, verifying its checksum against the pseudo-header sum."""
        check = InternetChecksum(datagram_layer_pseudo_checksum)
        check.add(parser.buffer())
        if check.value():
            parser.set_error()
            return

        self.udinfo.src_port = parser.integer(2)
        self.udinfo.dst_port = parser.integer(2)

        sender = self.message.sender
        receiver = self.message.receiver

        sender.seqno = parser.integer(4)
        ackno = parser.integer(4)

        data_offset = parser.integer(1) >> 4
        flags = parser.integer(1)

        receiver.ackno = ackno if flags & _FLAG_ACK else None
        sender.RST = receiver.RST = bool(flags & _FLAG_RST)
        sender.SYN = bool(flags & _FLAG_SYN)
        sender.FIN = bool(flags & _FLAG_FIN)

        receiver.window_size = parser.integer(2)
        self.udinfo.cksum = parser.integer(2)
        parser.integer(2)  # urgent pointer

        if data_offset < _HEADER_MIN_WORDS:
            parser.set_error()
            parser.all_remaining()
        else:
            parser.remove_prefix((data_offset - _HEADER_MIN_WORDS) * 4)

        sender.payload = parser.all_remaining_bytes()

    def serialize(self, serializer: Serializer) -> None:
        sender = self.message.sender
        receiver = self.message.receiver

        serializer.integer(self.udinfo.src_port, 2)
        serializer.integer(self.udinfo.dst_port, 2)
        serializer.integer(sender.seqno, 4)
        serializer.integer(receiver.ackno if receiver.ackno is not None else 0, 4)
        serializer.integer(_HEADER_MIN_WORDS << 4, 1)

        flags = 0
        if receiver.ackno is not None:
            flags |= _FLAG_ACK
        if sender.RST or receiver.RST:
            flags |= _FLAG_RST
        if sender.SYN:
            flags |= _FLAG_SYN
        if sender.FIN:
            flags |= _FLAG_FIN
        serializer.integer(flags, 1)

        serializer.integer(receiver.window_size, 2)
        serializer.integer(self.udinfo.cksum, 2)
        serializer.integer(0, 2)  # urgent pointer
        serializer.buffer(sender.payload)

    def compute_checksum(self, datagram_layer_pseudo_checksum: int) -> None:
        """Set the checksum field to the correct value for the segment."""
        self.udinfo.cksum = 0
        serializer = Serializer()
        self.serialize(serializer)
        check = InternetChecksum(datagram_layer_pseudo_checksum)
        check.add(serializer.output())
        self.udinfo.cksum = check.value()
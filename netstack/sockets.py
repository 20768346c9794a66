"""Network sockets built on FileDescriptor."""

from __future__ import annotations

import errno
import socket
import struct
from contextlib import contextmanager
from typing import Any, Iterator, Optional, Union

from netstack.address import Address
from netstack.errors import UnixError
from netstack.file_descriptor import FileDescriptor

BytesLike = Union[bytes, bytearray, memoryview]

_SOL_PACKET = getattr(socket, "SOL_PACKET", 263)
_PACKET_ADD_MEMBERSHIP = 1
_PACKET_MR_PROMISC = 1
_SO_BINDTODEVICE = getattr(socket, "SO_BINDTODEVICE", 25)


class Socket(FileDescriptor):
    """Base class for network sockets."""

    def __init__(self, domain: int, sock_type: int, protocol: int = 0) -> None:
        try:
            sock = socket.socket(domain, sock_type, protocol)
        except OSError as exc:
            raise UnixError("socket", exc.errno if exc.errno is not None else errno.EIO) from exc
        super().__init__(sock.detach())

    @classmethod
    def _from_fd(cls, fd: FileDescriptor, domain: int, sock_type: int, protocol: int = 0) -> Any:
        instance = cls.__new__(cls)
        instance._adopt(fd, domain, sock_type, protocol)
        return instance

    def _adopt(self, fd: FileDescriptor, domain: int, sock_type: int, protocol: int) -> None:
        """Take over fd, checking that it is a socket of the expected kind."""
        self._share(fd)
        checks = (
            ("domain", socket.SO_DOMAIN, domain),
            ("type", socket.SO_TYPE, sock_type),
            ("protocol", socket.SO_PROTOCOL, protocol),
        )
        for what, option, expected in checks:
            if self._getsockopt(socket.SOL_SOCKET, option) != expected:
                raise RuntimeError(f"socket {what} mismatch")

    @contextmanager
    def _borrowed(self, attempt: str) -> Iterator[socket.socket]:
        """A socket object over this descriptor that never takes ownership of it."""
        try:
            sock = socket.socket(fileno=self.fd_num())
        except OSError as exc:
            raise UnixError(attempt, exc.errno if exc.errno is not None else errno.EIO) from exc
        try:
            yield sock
        finally:
            sock.detach()

    def _getsockopt(self, level: int, option: int) -> int:
        with self._borrowed("getsockopt") as sock:
            return self._system_call("getsockopt", sock.getsockopt, level, option) or 0

    def _setsockopt(self, level: int, option: int, value: Union[int, bytes]) -> None:
        with self._borrowed("setsockopt") as sock:
            self._system_call("setsockopt", sock.setsockopt, level, option, value)

    def _get_address(self, attempt: str, peer: bool) -> Address:
        with self._borrowed(attempt) as sock:
            getter = sock.getpeername if peer else sock.getsockname
            sockaddr = self._system_call(attempt, getter)
            return Address.from_sockaddr(int(sock.family), sockaddr)

    def bind(self, address: Address) -> None:
        """Bind to a local address, usually before listen and accept."""
        with self._borrowed("bind") as sock:
            self._system_call("bind", sock.bind, address.sockaddr())

    def bind_to_device(self, device_name: str) -> None:
        """Bind to a named network device."""
        name = device_name.encode() if isinstance(device_name, str) else bytes(device_name)
        self._setsockopt(socket.SOL_SOCKET, _SO_BINDTODEVICE, name)

    def connect(self, address: Address) -> None:
        """Connect to a peer; on a non-blocking socket this may still be in progress."""
        with self._borrowed("connect") as sock:
            self._system_call("connect", sock.connect, address.sockaddr())

    def shutdown(self, how: int) -> None:
        """Shut down reading (SHUT_RD), writing (SHUT_WR) or both (SHUT_RDWR)."""
        with self._borrowed("shutdown") as sock:
            self._system_call("shutdown", sock.shutdown, how)
        if how == socket.SHUT_RD:
            self._register_read()
        elif how == socket.SHUT_WR:
            self._register_write()
        elif how == socket.SHUT_RDWR:
            self._register_read()
            self._register_write()
        else:
            raise RuntimeError("Socket.shutdown() called with invalid `how`")

    def local_address(self) -> Address:
        return self._get_address("getsockname", peer=False)

    def peer_address(self) -> Address:
        return self._get_address("getpeername", peer=True)

    def set_reuseaddr(self) -> None:
        """Allow the local address to be reused sooner, at some cost in robustness."""
        self._setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)

    def throw_if_error(self) -> None:
        """Raise UnixError if the socket has a pending error."""
        socket_error = self._getsockopt(socket.SOL_SOCKET, socket.SO_ERROR)
        if socket_error:
            raise UnixError("socket error", socket_error)


class DatagramSocket(Socket):
    """A socket that sends and receives whole datagrams."""

    def recv(self) -> Optional[tuple[Address, bytes]]:
        """Receive one datagram and its sender's address.

        Returns None when the socket is non-blocking and nothing is waiting;
        raises RuntimeError if the datagram was larger than the read buffer.
        """
        buffer = bytearray(self.READ_BUFFER_SIZE)
        with self._borrowed("recvfrom") as sock:
            family = int(sock.family)
            result = self._system_call(
                "recvfrom", sock.recvfrom_into, buffer, len(buffer), socket.MSG_TRUNC
            )
        if result is None:
            self._register_read()
            return None
        length, source = result
        if length > len(buffer):
            raise RuntimeError("recvfrom (oversized datagram)")
        self._register_read()
        return Address.from_sockaddr(family, source), bytes(buffer[:length])

    def sendto(self, destination: Address, payload: BytesLike) -> None:
        """Send a datagram to the given address."""
        with self._borrowed("sendto") as sock:
            self._system_call("sendto", sock.sendto, bytes(payload), destination.sockaddr())
        self._register_write()

    def send(self, payload: BytesLike) -> None:
        """Send a datagram to the connected peer."""
        with self._borrowed("send") as sock:
            self._system_call("send", sock.send, bytes(payload))
        self._register_write()


class UDPSocket(DatagramSocket):
    """An unbound, unconnected UDP socket."""

    def __init__(self) -> None:
        super().__init__(socket.AF_INET, socket.SOCK_DGRAM)


class TCPSocket(Socket):
    """An unbound, unconnected TCP socket."""

    def __init__(self) -> None:
        super().__init__(socket.AF_INET, socket.SOCK_STREAM)

    def listen(self, backlog: int = 16) -> None:
        """Mark the socket as accepting incoming connections."""
        with self._borrowed("listen") as sock:
            self._system_call("listen", sock.listen, backlog)

    def accept(self) -> TCPSocket:
        """Accept a connection, blocking unless the socket is non-blocking."""
        self._register_read()
        with self._borrowed("accept") as sock:
            try:
                connection, _peer = sock.accept()
            except OSError as exc:
                raise UnixError("accept", exc.errno if exc.errno is not None else errno.EIO) from exc
        fd = FileDescriptor(connection.detach())
        return TCPSocket._from_fd(fd, socket.AF_INET, socket.SOCK_STREAM, socket.IPPROTO_TCP)


class PacketSocket(DatagramSocket):
    """A link-layer packet socket."""

    def __init__(self, sock_type: int, protocol: int) -> None:
        super().__init__(socket.AF_PACKET, sock_type, protocol)

    def set_promiscuous(self) -> None:
        """Put the bound interface into promiscuous mode."""
        address = self.local_address()
        if address.family() != getattr(socket, "AF_PACKET", -1):
            raise RuntimeError("address conversion failure: not a packet address")
        ifindex = socket.if_nametoindex(address.sockaddr()[0])
        request = struct.pack("iHH8s", ifindex, _PACKET_MR_PROMISC, 0, b"")
        self._setsockopt(_SOL_PACKET, _PACKET_ADD_MEMBERSHIP, request)


class LocalStreamSocket(Socket):
    """A Unix-domain stream socket over an existing descriptor."""

    def __init__(self, fd: FileDescriptor) -> None:
        self._adopt(fd, socket.AF_UNIX, socket.SOCK_STREAM, 0)


class LocalDatagramSocket(DatagramSocket):
    """An unbound, unconnected Unix-domain datagram socket."""

    def __init__(self) -> None:
        super().__init__(socket.AF_UNIX, socket.SOCK_DGRAM)
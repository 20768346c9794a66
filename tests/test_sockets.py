import errno
import socket

import pytest

from netstack.address import Address
from netstack.errors import UnixError
from netstack.file_descriptor import FileDescriptor
from netstack.sockets import (
    LocalDatagramSocket,
    LocalStreamSocket,
    TCPSocket,
    UDPSocket,
)

LOOPBACK = "127.0.0.1"


def _listening_server():
    server = TCPSocket()
    server.set_reuseaddr()
    server.bind(Address(LOOPBACK, 0))
    server.listen()
    return server


def test_udp_bind_local_address():
    with UDPSocket() as sock:
        sock.bind(Address(LOOPBACK, 0))
        address = sock.local_address()
        assert address.ip() == LOOPBACK
        assert 0 < address.port() <= 0xFFFF


def test_udp_round_trip():
    with UDPSocket() as receiver, UDPSocket() as sender:
        receiver.bind(Address(LOOPBACK, 0))
        sender.bind(Address(LOOPBACK, 0))
        sender.sendto(receiver.local_address(), b"hello")
        source, payload = receiver.recv()
        assert payload == b"hello"
        assert source == sender.local_address()
        assert receiver.read_count() == 1
        assert sender.write_count() == 1


def test_udp_connected_send():
    with UDPSocket() as receiver, UDPSocket() as sender:
        receiver.bind(Address(LOOPBACK, 0))
        sender.connect(receiver.local_address())
        sender.send(b"over connect")
        _source, payload = receiver.recv()
        assert payload == b"over connect"
        assert sender.peer_address() == receiver.local_address()


def test_udp_oversized_datagram():
    with UDPSocket() as receiver, UDPSocket() as sender:
        receiver.bind(Address(LOOPBACK, 0))
        sender.sendto(receiver.local_address(), b"x" * (UDPSocket.READ_BUFFER_SIZE + 100))
        with pytest.raises(RuntimeError, match="oversized datagram"):
            receiver.recv()


def test_non_blocking_recv_with_nothing_waiting():
    with UDPSocket() as sock:
        sock.bind(Address(LOOPBACK, 0))
        sock.set_blocking(False)
        assert sock.recv() is None


def test_tcp_accept_and_exchange():
    with _listening_server() as server, TCPSocket() as client:
        client.connect(server.local_address())
        with server.accept() as conn:
            assert server.read_count() == 1
            assert conn.peer_address() == client.local_address()
            assert conn.local_address() == server.local_address()
            assert client.write(b"ping") == 4
            assert conn.read() == b"ping"


def test_tcp_shutdown_write_gives_peer_eof():
    with _listening_server() as server, TCPSocket() as client:
        client.connect(server.local_address())
        with server.accept() as conn:
            client.shutdown(socket.SHUT_WR)
            assert client.write_count() == 1
            assert client.read_count() == 0
            assert conn.read() == b""
            assert conn.eof()


def test_tcp_shutdown_invalid_how():
    with _listening_server() as server, TCPSocket() as client:
        client.connect(server.local_address())
        with server.accept():
            with pytest.raises(UnixError):
                client.shutdown(99)


def test_non_blocking_accept_without_pending_connection():
    with _listening_server() as server:
        server.set_blocking(False)
        with pytest.raises(UnixError) as info:
            server.accept()
        assert info.value.errno in (errno.EAGAIN, errno.EWOULDBLOCK)


def test_connect_refused():
    probe = TCPSocket()
    probe.bind(Address(LOOPBACK, 0))
    closed_address = probe.local_address()
    probe.close()
    with TCPSocket() as client:
        with pytest.raises(UnixError) as info:
            client.connect(closed_address)
        assert info.value.errno == errno.ECONNREFUSED
        assert str(info.value).startswith("connect: ")


def test_set_reuseaddr_sets_option():
    with TCPSocket() as sock:
        sock.set_reuseaddr()
        probe = socket.socket(fileno=sock.fd_num())
        try:
            value = probe.getsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR)
        finally:
            probe.detach()
        assert value == 1


def test_local_stream_socket_pair():
    left_raw, right_raw = socket.socketpair()
    with LocalStreamSocket(FileDescriptor(left_raw.detach())) as left, LocalStreamSocket(
        FileDescriptor(right_raw.detach())
    ) as right:
        assert left.write(b"abc") == 3
        assert right.read() == b"abc"
        assert str(left.local_address()) == "(non-Internet address)"


def test_local_stream_socket_rejects_wrong_domain():
    raw = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    fd = FileDescriptor(raw.detach())
    try:
        with pytest.raises(RuntimeError, match="socket domain mismatch"):
            LocalStreamSocket(fd)
    finally:
        fd.close()


def test_local_stream_socket_rejects_wrong_type():
    raw = socket.socket(socket.AF_UNIX, socket.SOCK_DGRAM)
    fd = FileDescriptor(raw.detach())
    try:
        with pytest.raises(RuntimeError, match="socket type mismatch"):
            LocalStreamSocket(fd)
    finally:
        fd.close()


def test_local_datagram_round_trip(tmp_path):
    path = str(tmp_path / "sock")
    target = Address.from_sockaddr(socket.AF_UNIX, path)
    with LocalDatagramSocket() as receiver, LocalDatagramSocket() as sender:
        receiver.bind(target)
        sender.sendto(target, b"datagram")
        _source, payload = receiver.recv()
        assert payload == b"datagram"
        assert receiver.read_count() == 1
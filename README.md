# netstack

This package provides building blocks for a TCP/IP stack that runs in user space on Linux.

- It reads and writes the wire formats of Ethernet, ARP, IPv4 and TCP.
- It wraps file descriptors and sockets.
- It provides a small event loop built on `poll`.
- It opens TUN and TAP devices.
- Its adapters carry TCP messages inside IPv4 datagrams through a TUN device.

## Installation

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Modules

- **`netstack.errors`**
  - `TaggedError` is an `OSError` that records what was being attempted.
  - `UnixError` builds a `TaggedError` from an errno value.
  - `check_system_call(attempt, return_value)` treats a negative return value as a negated errno and raises `UnixError`.
  - `notnull(context, value)` raises `RuntimeError` when `value` is `None`.
- **`netstack.checksum`**
  - `InternetChecksum` is the ones' complement Internet checksum.
  - `add()` takes bytes, or an iterable of bytes objects.
  - `value()` returns the 16-bit result.
- **`netstack.wire`**
  - `Parser` reads big-endian fields from a list of byte buffers. When the input runs short, it sets an error flag instead of raising.
  - `Serializer` writes big-endian fields and whole buffers.
  - `serialize(obj)` and `parse(obj, buffers, *args)` are helpers for any object that has `serialize(serializer)` and `parse(parser, ...)` methods. `parse` returns `True` when no error occurred.
- **`netstack.address`**
  - `Address` is a socket address.
  - `Address(ip, port)` builds one from a numeric IPv4 string and does not look up any names.
  - `Address.resolve(hostname, service)` looks up a host name and a service.
  - `Address.from_ipv4_numeric(n)` builds one from a 32-bit number.
  - `Address.from_sockaddr(family, sockaddr)` wraps an address in the form the `socket` module reports it.
  - It also provides `ip()`, `port()`, `ip_port()`, `ipv4_numeric()`, `family()` and `sockaddr()`.
  - `str()` gives `"ip:port"`.
- **`netstack.ethernet`**: `EthernetHeader`, `EthernetFrame`, `format_ethernet_address`, and the constant `ETHERNET_BROADCAST`.
- **`netstack.arp`**
  - `ARPMessage` is an Ethernet/IPv4 ARP request or reply.
  - Parsing any other kind of ARP message sets the parser's error flag.
  - Serializing any other kind raises `ValueError`.
- **`netstack.ipv4`**
  - `IPv4Header` and `IPv4Datagram` (alias `InternetDatagram`).
  - `compute_checksum()` sets the header checksum.
  - `pseudo_checksum()` gives the pseudo-header sum used by TCP.
  - Parsing checks the version, the header length and the checksum. It skips IP options.
- **`netstack.tcp_segment`**
  - `TCPSenderMessage`, `TCPReceiverMessage`, `TCPMessage`, `UserDatagramInfo` and `TCPSegment`.
  - Sequence and acknowledgment numbers are raw 32-bit integers.
  - A missing acknowledgment number is `None`.
- **`netstack.tcp_over_ip`**
  - `FdAdapterConfig` holds the source and destination addresses and the loss rates.
  - `FdAdapterBase` holds a `config`, a `listening` flag and a `tick()` method.
  - `TCPOverIPv4Adapter.wrap_tcp_in_ip(msg)` puts a TCP message into an IPv4 datagram.
  - `TCPOverIPv4Adapter.unwrap_tcp_in_ip(dgram)` returns the TCP message, or `None` if the datagram is invalid or belongs to another connection.
  - While the adapter is listening, a SYN fixes the connection's endpoints.
- **`netstack.lossy`**
  - `LossyFdAdapter` wraps an adapter and drops reads and writes. The loss rates are out of 65536.
  - `get_random_engine()` returns a `random.Random` seeded from `os.urandom`.
- **`netstack.file_descriptor`**
  - `FileDescriptor` is a handle on an OS file descriptor.
  - It provides `read`, `readv`, `write` (gather), `set_blocking`, `duplicate` and `close`.
  - It has EOF and closed flags, and counts reads and writes. Duplicates share these flags and counters.
  - It can be used as a context manager.
- **`netstack.sockets`**: `Socket`, `DatagramSocket`, `UDPSocket`, `TCPSocket`, `PacketSocket`, `LocalStreamSocket` and `LocalDatagramSocket`.
- **`netstack.eventloop`**
  - `EventLoop` is used with `Direction`, `Result` and `RuleHandle`.
  - `add_rule` adds a plain rule and `add_fd_rule` adds a descriptor rule.
  - Each call to `wait_next_event(timeout_ms)` serves at most one rule.
  - It raises `RuntimeError` when it detects busy waiting.
- **`netstack.tun`**: `TunFD` and `TapFD` open an existing persistent TUN or TAP device.
- **`netstack.tuntap_adapter`**: `TCPOverIPv4OverTunFdAdapter` reads and writes TCP messages as IPv4 datagrams on a TUN device.

## Examples

Build an IPv4 datagram, serialize it and parse it back:

```python
from netstack.address import Address
from netstack.ipv4 import IPv4Datagram
from netstack.wire import parse, serialize

dgram = IPv4Datagram()
dgram.header.src = Address("5.6.7.8", 0).ipv4_numeric()
dgram.header.dst = Address("13.12.11.10", 0).ipv4_numeric()
dgram.payload = [b"hello"]
dgram.header.len = dgram.header.hlen * 4 + 5
dgram.header.compute_checksum()

wire_bytes = serialize(dgram)

copy = IPv4Datagram()
assert parse(copy, wire_bytes)
assert b"".join(copy.payload) == b"hello"
```

Carry a TCP message between two adapters:

```python
from netstack.address import Address
from netstack.tcp_over_ip import FdAdapterConfig, TCPOverIPv4Adapter
from netstack.tcp_segment import TCPMessage, TCPSenderMessage

client = TCPOverIPv4Adapter(FdAdapterConfig(Address("10.0.0.1", 1234), Address("10.0.0.2", 80)))
server = TCPOverIPv4Adapter(FdAdapterConfig(Address("10.0.0.2", 80), Address("10.0.0.1", 1234)))

dgram = client.wrap_tcp_in_ip(TCPMessage(sender=TCPSenderMessage(seqno=1000, SYN=True)))
msg = server.unwrap_tcp_in_ip(dgram)
assert msg is not None and msg.sender.SYN and msg.sender.seqno == 1000
```

## What this package does not do

The package has no TCP state machine. It cannot send, retransmit, acknowledge or reassemble a byte stream. It only formats, filters and carries TCP messages that some other code produces.

It also lacks the following:

- a network interface that answers ARP;
- a router;
- a command-line program.

Opening a TUN or TAP device needs a device that already exists and permission to use it. Packet sockets and some socket options work only on Linux.
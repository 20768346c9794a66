"""Socket addresses: numeric IPv4 addresses and DNS resolution."""

from __future__ import annotations

import ipaddress
import socket
from typing import Any

from netstack.errors import TaggedError

_INTERNET_FAMILIES = (socket.AF_INET, socket.AF_INET6)
_NUMERIC_LOOKUP = socket.AI_NUMERICHOST | socket.AI_NUMERICSERV
_RESOLVE_LOOKUP = getattr(socket, "AI_ALL", 0)


def _lookup(node: str, service: str, flags: int) -> tuple[int, Any]:
    try:
        results = socket.getaddrinfo(node, service, socket.AF_INET, 0, 0, flags)
    except socket.gaierror as exc:
        raise TaggedError(f"getaddrinfo({node}, {service})", exc.errno, exc.strerror) from exc
    if not results:
        raise RuntimeError("getaddrinfo returned successfully but with no results")
    family, _type, _proto, _canonname, sockaddr = results[0]
    return family, sockaddr


class Address:
    """An address of a given socket family; usually IPv4 with a port."""

    __slots__ = ("_family", "_sockaddr")

    def __init__(self, ip: str, port: int = 0) -> None:
        """Build from a numeric IPv4 address string and a port, without resolving names."""
        if not 0 <= port <= 0xFFFF:
            raise ValueError(f"port out of range: {port}")
        self._family, self._sockaddr = _lookup(ip, str(port), _NUMERIC_LOOKUP)

    @classmethod
    def _from_parts(cls, family: int, sockaddr: Any) -> Address:
        address = cls.__new__(cls)
        address._family = family
        address._sockaddr = tuple(sockaddr) if isinstance(sockaddr, list) else sockaddr
        return address

    @classmethod
    def resolve(cls, hostname: str, service: str) -> Address:
        """Resolve a host name and a service name (or number) to an IPv4 address."""
        return cls._from_parts(*_lookup(hostname, service, _RESOLVE_LOOKUP))

    @classmethod
    def from_sockaddr(cls, family: int, sockaddr: Any) -> Address:
        """Wrap a socket address as the socket module reports it."""
        return cls._from_parts(family, sockaddr)

    @classmethod
    def from_ipv4_numeric(cls, ip_address: int) -> Address:
        """Build an IPv4 address (port 0) from its 32-bit numeric value."""
        return cls._from_parts(socket.AF_INET, (str(ipaddress.IPv4Address(ip_address)), 0))

    def ip_port(self) -> tuple[str, int]:
        """Numeric host string and port."""
        if self._family not in _INTERNET_FAMILIES:
            raise RuntimeError("ip_port() called on non-Internet address")
        try:
            host, port = socket.getnameinfo(
                self._sockaddr, socket.NI_NUMERICHOST | socket.NI_NUMERICSERV
            )
        except socket.gaierror as exc:
            raise TaggedError("getnameinfo", exc.errno, exc.strerror) from exc
        return host, int(port)

    def ip(self) -> str:
        return self.ip_port()[0]

    def port(self) -> int:
        return self.ip_port()[1]

    def ipv4_numeric(self) -> int:
        """The IPv4 address as an integer in host order."""
        if self._family != socket.AF_INET:
            raise RuntimeError("ipv4_numeric called on non-IPV4 address")
        return int(ipaddress.IPv4Address(self._sockaddr[0]))

    def family(self) -> int:
        return self._family

    def sockaddr(self) -> Any:
        """The address in the form the socket module takes."""
        return self._sockaddr

    def __str__(self) -> str:
        if self._family in _INTERNET_FAMILIES:
            host, port = self.ip_port()
            return f"{host}:{port}"
        return "(non-Internet address)"

    def __repr__(self) -> str:
        return f"<Address {self}>"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Address):
            return NotImplemented
        return self._family == other._family and self._sockaddr == other._sockaddr

    def __hash__(self) -> int:
        return hash((self._family, self._sockaddr))
"""User-space TCP/IP building blocks: wire formats, sockets, an event loop and TUN adapters."""

__version__ = "0.1.0"
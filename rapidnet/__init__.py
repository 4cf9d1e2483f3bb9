"""Asyncio TCP server and client exchanging length-prefixed frames."""

__version__ = "0.1.1"

__all__ = ["config", "events", "errors", "io_core", "inbound", "outbound", "server"]
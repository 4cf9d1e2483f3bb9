"""A connection opened by the application to a server."""

from __future__ import annotations

import asyncio
import ipaddress
import logging
import socket
import uuid
from contextlib import suppress
from dataclasses import replace
from typing import Any

from rapidnet.config import RapidClientConfig
from rapidnet.events import EventKind
from rapidnet.io_core import IoCore, MessageCodec

log = logging.getLogger(__name__)

_QUEUE_SIZE = 100


def _parse_socket_address(address: str) -> tuple[str, int]:
    host, sep, port_text = address.rpartition(":")
    if not sep or not port_text.isdigit():
        raise ValueError(f"invalid socket address: {address!r}")
    if host.startswith("[") and host.endswith("]"):
        host = host[1:-1]
        version = 6
    else:
        version = 4
    try:
        ip = ipaddress.ip_address(host)
    except ValueError:
        raise ValueError(f"invalid socket address: {address!r}") from None
    port = int(port_text)
    if ip.version != version or port > 0xFFFF:
        raise ValueError(f"invalid socket address: {address!r}")
    return str(ip), port


def _set_no_delay(writer: asyncio.StreamWriter, enabled: bool) -> None:
    sock = writer.get_extra_info("socket")
    if sock is None:
        return
    with suppress(OSError):
        sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, int(enabled))


class OutboundClient:
    """A client connection with a queue of incoming messages."""

    retry_delay = 1.0
    max_retry_delay = 60.0

    def __init__(
        self,
        core: IoCore,
        incoming: asyncio.Queue,
        config: RapidClientConfig,
        codec: MessageCodec | None,
    ) -> None:
        self._core = core
        self._incoming = incoming
        self._config = config
        self._codec = codec
        self._ended = False

    @classmethod
    async def connect(
        cls, config: RapidClientConfig, codec: MessageCodec | None = None
    ) -> OutboundClient:
        """Open a connection to ``config.address``.

        Raises ``ValueError`` for an address that is not ``ip:port`` and
        ``OSError`` when the connection fails.
        """
        host, port = _parse_socket_address(config.address)
        reader, writer = await asyncio.open_connection(host, port)
        _set_no_delay(writer, config.no_delay)
        incoming: asyncio.Queue = asyncio.Queue(maxsize=_QUEUE_SIZE)
        core = IoCore(reader, writer, (host, port), codec, to_app=incoming)
        return cls(core, incoming, replace(config), codec)

    @property
    def id(self) -> uuid.UUID:
        """The identifier of the current connection."""
        return self._core.id

    @property
    def addr(self) -> tuple[str, int]:
        """The server's address."""
        return self._core.addr

    def is_alive(self) -> bool:
        """Tell whether the connection still reads and writes."""
        return self._core.is_alive()

    async def send(self, message: Any) -> None:
        """Queue ``message`` for sending to the server."""
        log.debug("sending message on %s", self.id)
        await self._core.send(message)

    async def recv(self) -> Any | None:
        """Wait for the next message; ``None`` once the connection has ended."""
        while not self._ended:
            event = await self._incoming.get()
            if event is None:
                self._ended = True
                break
            if event.kind is EventKind.MESSAGE:
                return event.message
        return None

    async def reconnect(self) -> None:
        """Connect again, retrying with doubling delays until it works."""
        delay = self.retry_delay
        while True:
            try:
                fresh = await type(self).connect(self._config, self._codec)
            except OSError as exc:
                log.warning("reconnect failed: %s; retrying in %.2fs", exc, delay)
                await asyncio.sleep(delay)
                delay = min(delay * 2, self.max_retry_delay)
                continue
            log.info("reconnected to %s", fresh.addr)
            old = self._core
            self._core = fresh._core
            self._incoming = fresh._incoming
            self._config = fresh._config
            self._ended = False
            await old.shutdown()
            return

    async def close(self) -> None:
        """Stop the connection's tasks and close the socket."""
        await self._core.shutdown()
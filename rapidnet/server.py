"""A TCP server that hands connection events to the application."""

from __future__ import annotations

import asyncio
import logging
import socket
import uuid
from collections.abc import Iterable
from contextlib import suppress
from typing import Any

from rapidnet.config import RapidServerConfig
from rapidnet.errors import ClientError, CodecError
from rapidnet.events import ClientEvent, EventKind, ServerEvent
from rapidnet.inbound import InboundClient
from rapidnet.io_core import MessageCodec

log = logging.getLogger(__name__)

_QUEUE_SIZE = 100


class ServerError(Exception):
    """Base class for server operation failures."""


class BroadcastFailedError(ServerError):
    """A broadcast reached none of the remaining clients."""

    def __init__(self, errors: Iterable[tuple[uuid.UUID, Exception]]) -> None:
        self.errors = list(errors)
        super().__init__(f"failed to broadcast message to {len(self.errors)} clients")


class EncodingFailedError(ServerError):
    """A message could not be encoded for broadcasting."""

    def __init__(self) -> None:
        super().__init__("failed to encode message for broadcast")


class ClientNotFoundError(ServerError, KeyError):
    """No connected client has the given id."""

    def __init__(self, client_id: uuid.UUID) -> None:
        super().__init__(f"client with ID {client_id} not found")
        self.client_id = client_id

    def __str__(self) -> str:
        return str(self.args[0])


class SendFailedError(ServerError):
    """A message could not be handed to a client."""

    def __init__(self, client_id: uuid.UUID) -> None:
        super().__init__(f"failed to send message to client {client_id}")
        self.client_id = client_id


def _split_address(address: str) -> tuple[str, int]:
    host, sep, port_text = address.rpartition(":")
    if not sep or not port_text.isdigit() or int(port_text) > 0xFFFF:
        raise ValueError(f"invalid listen address: {address!r}")
    if host.startswith("[") and host.endswith("]"):
        host = host[1:-1]
    return host, int(port_text)


class RapidServer:
    """Accepts connections and forwards their events to an application queue."""

    def __init__(
        self, config: RapidServerConfig, codec: MessageCodec | None = None
    ) -> None:
        self._config = config
        self._codec = codec if codec is not None else MessageCodec()
        self._clients: dict[uuid.UUID, InboundClient] = {}

    async def run(self, events: asyncio.Queue) -> None:
        """Listen on the configured address and serve until cancelled.

        Every accepted connection first yields a ``CONNECTED`` event, then a
        ``MESSAGE`` event for each message it receives.
        """
        host, port = _split_address(self._config.address)
        log.info("starting server on %s", self._config.address)

        async def on_connect(reader, writer):
            await self._serve_connection(reader, writer, events)

        server = await asyncio.start_server(on_connect, host, port)
        try:
            await server.serve_forever()
        finally:
            server.close()
            for client in list(self._clients.values()):
                await client.close()

    async def _serve_connection(
        self,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
        events: asyncio.Queue,
    ) -> None:
        peer = writer.get_extra_info("peername")
        log.debug("accepted connection from %s", peer)
        sock = writer.get_extra_info("socket")
        if sock is not None:
            try:
                sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
            except OSError as exc:
                log.warning("failed to set TCP_NODELAY: %s", exc)

        incoming: asyncio.Queue = asyncio.Queue(maxsize=_QUEUE_SIZE)
        client = InboundClient(reader, writer, peer, self._codec, incoming)
        self._clients[client.id] = client
        try:
            await self._forward_events(client, incoming, events)
        finally:
            log.debug("removing client %s", client.id)
            self._clients.pop(client.id, None)
            with suppress(Exception):
                await client.close()

    async def _forward_events(
        self,
        client: InboundClient,
        incoming: asyncio.Queue,
        events: asyncio.Queue,
    ) -> None:
        await events.put(ServerEvent(EventKind.CONNECTED, client.id))
        log.info("sent connected event for client %s", client.id)
        while True:
            event: ClientEvent | None = await incoming.get()
            if event is None:
                break
            if event.kind is EventKind.MESSAGE:
                forwarded = ServerEvent(EventKind.MESSAGE, client.id, message=event.message)
            elif event.kind is EventKind.CONNECTED:
                log.info("client %s connected (event from client)", client.id)
                continue
            elif event.kind is EventKind.DISCONNECTED:
                log.info("client %s disconnected", client.id)
                forwarded = ServerEvent(EventKind.DISCONNECTED, client.id)
            else:
                log.error("client %s error: %s", client.id, event.error)
                forwarded = ServerEvent(EventKind.ERROR, client.id, error=event.error)
            await events.put(forwarded)

    async def send_to_client(self, client_id: uuid.UUID, message: Any) -> None:
        """Queue ``message`` for the client with ``client_id``."""
        client = self._clients.get(client_id)
        if client is None:
            log.error("client %s not in the server's client list", client_id)
            raise ClientNotFoundError(client_id)
        try:
            await client.send(message)
        except ClientError as exc:
            log.error("failed to send message to client %s: %s", client_id, exc)
            raise SendFailedError(client_id) from exc

    async def broadcast(
        self, message: Any, exclude: Iterable[uuid.UUID] | None = None
    ) -> None:
        """Send ``message`` to every client not in ``exclude``.

        Clients that fail are dropped. The call fails only when the number of
        failures equals the number of clients that remain.
        """
        try:
            encoded = self._codec.encode(message)
        except CodecError as exc:
            raise EncodingFailedError() from exc

        excluded = frozenset(exclude or ())
        targets = [
            (client_id, client)
            for client_id, client in self._clients.items()
            if client_id not in excluded
        ]
        log.debug(
            "broadcast of %d bytes to %d clients (%d excluded)",
            len(encoded), len(targets), len(excluded),
        )
        results = await asyncio.gather(
            *(self._deliver(client_id, client, encoded) for client_id, client in targets)
        )
        errors = [result for result in results if result is not None]
        for client_id, _ in errors:
            self._clients.pop(client_id, None)

        if errors:
            log.warning(
                "broadcast finished: %d errors / %d remaining clients",
                len(errors), len(self._clients),
            )
            if len(errors) == len(self._clients):
                raise BroadcastFailedError(errors)
        else:
            log.info("broadcast reached %d clients", len(targets))

    async def _deliver(
        self, client_id: uuid.UUID, client: InboundClient, encoded: bytes
    ) -> tuple[uuid.UUID, Exception] | None:
        try:
            message = self._codec.decode(encoded)
        except CodecError as exc:
            log.error("broadcast: re-parse for %s failed", client_id)
            return client_id, exc
        try:
            await client.send(message)
        except ClientError as exc:
            log.warning("broadcast to %s failed: %s", client_id, exc)
            return client_id, exc
        return None
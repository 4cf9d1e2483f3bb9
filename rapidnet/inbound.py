"""A connection accepted by a server."""

from __future__ import annotations

import asyncio
import uuid
from typing import Any

from rapidnet.io_core import IoCore, MessageCodec


class InboundClient:
    """One accepted peer: reads frames into ``to_app`` and writes queued messages."""

    def __init__(
        self,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
        addr: Any,
        codec: MessageCodec | None = None,
        to_app: asyncio.Queue | None = None,
    ) -> None:
        self._core = IoCore(reader, writer, addr, codec, to_app)

    @property
    def id(self) -> uuid.UUID:
        """The identifier given to this connection."""
        return self._core.id

    @property
    def addr(self) -> Any:
        """The peer's address."""
        return self._core.addr

    async def send(self, message: Any) -> None:
        """Queue ``message`` for sending to the peer."""
        await self._core.send(message)

    def is_alive(self) -> bool:
        """Tell whether the connection still reads and writes."""
        return self._core.is_alive()

    async def close(self) -> None:
        """Stop the connection's tasks and close the socket."""
        await self._core.shutdown()
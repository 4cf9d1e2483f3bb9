"""Framed reading and writing over one stream connection."""

from __future__ import annotations

import asyncio
import logging
import struct
import uuid
from contextlib import suppress
from typing import Any

from rapidnet.errors import (
    ChannelClosedError,
    ClientError,
    ClientIOError,
    CodecError,
    ConnectionClosedError,
    MessageTooLargeError,
    ReadTimeoutError,
    WriteTimeoutError,
)
from rapidnet.events import ClientEvent, EventKind

log = logging.getLogger(__name__)

MAX_MESSAGE_SIZE = 10 * 1024 * 1024

_HEADER = struct.Struct(">I")
_BODY_TIMEOUT = 5.0
_WRITE_TIMEOUT = 5.0
_BATCH_LIMIT = 10
_QUEUE_SIZE = 100


class MessageCodec:
    """Turns messages into length-prefixed frames and back.

    A frame is a 4-byte big-endian length, which counts the header itself,
    followed by the body. This codec carries raw bytes as the body; subclass
    it to carry structured messages.
    """

    def encode(self, message: Any) -> bytes:
        """Return the whole frame for ``message``."""
        if not isinstance(message, (bytes, bytearray, memoryview)):
            raise CodecError(f"cannot encode {type(message).__name__}")
        body = bytes(message)
        size = len(body) + _HEADER.size
        if size > 0xFFFFFFFF:
            raise CodecError(f"frame of {size} bytes does not fit the header")
        return _HEADER.pack(size) + body

    def decode(self, data: bytes) -> Any:
        """Return the message carried by a whole frame."""
        data = bytes(data)
        if len(data) < _HEADER.size:
            raise CodecError("frame shorter than its header")
        (declared,) = _HEADER.unpack_from(data)
        if declared != len(data):
            raise CodecError(
                f"header announces {declared} bytes but frame has {len(data)}"
            )
        return data[_HEADER.size:]


async def read_frame(reader: asyncio.StreamReader) -> bytes:
    """Read one whole frame, header included, from ``reader``."""
    try:
        header = await reader.readexactly(_HEADER.size)
    except asyncio.IncompleteReadError as exc:
        raise ConnectionClosedError() from exc
    except OSError as exc:
        raise ClientIOError(exc) from exc

    (length,) = _HEADER.unpack(header)
    if length > MAX_MESSAGE_SIZE:
        raise MessageTooLargeError(length)
    if length < _HEADER.size:
        raise CodecError(f"frame length {length} is shorter than its header")

    try:
        body = await asyncio.wait_for(
            reader.readexactly(length - _HEADER.size), _BODY_TIMEOUT
        )
    except asyncio.TimeoutError as exc:
        raise ReadTimeoutError() from exc
    except asyncio.IncompleteReadError as exc:
        raise ConnectionClosedError() from exc
    except OSError as exc:
        raise ClientIOError(exc) from exc
    return header + body


class IoCore:
    """Runs a reading and a writing task for one connection.

    Decoded messages go to ``to_app`` as :class:`ClientEvent` objects; when
    the reading task ends, ``None`` is put there to mark the end of the
    stream. Without ``to_app`` nothing reads the socket, and the core does
    not count as alive.
    """

    def __init__(
        self,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
        addr: Any,
        codec: MessageCodec | None = None,
        to_app: asyncio.Queue | None = None,
    ) -> None:
        self.id = uuid.uuid4()
        self.addr = addr
        self._reader = reader
        self._writer = writer
        self._codec = codec if codec is not None else MessageCodec()
        self._outgoing: asyncio.Queue = asyncio.Queue(maxsize=_QUEUE_SIZE)
        self._end_marker: asyncio.Task | None = None
        self._write_task = asyncio.create_task(
            self._write_loop(), name=f"rapidnet-write-{self.id}"
        )
        self._read_task: asyncio.Task | None = None
        if to_app is not None:
            self._read_task = asyncio.create_task(
                self._read_loop(to_app), name=f"rapidnet-read-{self.id}"
            )

    async def send(self, message: Any) -> None:
        """Queue ``message`` for the writing task."""
        if self._write_task.done():
            raise ChannelClosedError()
        try:
            self._outgoing.put_nowait(message)
            return
        except asyncio.QueueFull:
            pass
        put = asyncio.ensure_future(self._outgoing.put(message))
        done, _ = await asyncio.wait(
            {put, self._write_task}, return_when=asyncio.FIRST_COMPLETED
        )
        if put not in done:
            put.cancel()
            raise ChannelClosedError()

    def is_alive(self) -> bool:
        """Tell whether both the reading and the writing task still run."""
        if self._read_task is None:
            return False
        return not self._write_task.done() and not self._read_task.done()

    async def shutdown(self) -> None:
        """Stop both tasks and close the connection."""
        tasks = [t for t in (self._write_task, self._read_task) if t is not None]
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._writer.close()
        with suppress(OSError):
            await self._writer.wait_closed()

    async def _read_loop(self, to_app: asyncio.Queue) -> None:
        log.info("read task started for client %s", self.id)
        try:
            while True:
                frame = await read_frame(self._reader)
                try:
                    message = self._codec.decode(frame)
                except CodecError as exc:
                    log.warning("error parsing message for client %s: %s", self.id, exc)
                    continue
                await to_app.put(ClientEvent(EventKind.MESSAGE, self.id, message=message))
                log.debug("client %s forwarded message to application", self.id)
        except ClientError as exc:
            log.warning("read task error for client %s: %s", self.id, exc)
        finally:
            self._mark_end(to_app)

    def _mark_end(self, to_app: asyncio.Queue) -> None:
        try:
            to_app.put_nowait(None)
        except asyncio.QueueFull:
            self._end_marker = asyncio.get_running_loop().create_task(to_app.put(None))

    async def _write_loop(self) -> None:
        log.debug("write task waiting for messages for client %s", self.id)
        try:
            while True:
                batch = [await self._outgoing.get()]
                while len(batch) < _BATCH_LIMIT and not self._outgoing.empty():
                    batch.append(self._outgoing.get_nowait())
                frames = []
                for message in batch:
                    try:
                        frames.append(self._codec.encode(message))
                    except CodecError as exc:
                        log.warning("error encoding message: %s", exc)
                if frames:
                    await self._write_frames(frames)
        except ClientError as exc:
            log.warning("write task error for client %s: %s", self.id, exc)

    async def _write_frames(self, frames: list[bytes]) -> None:
        try:
            self._writer.writelines(frames)
            await asyncio.wait_for(self._writer.drain(), _WRITE_TIMEOUT)
        except asyncio.TimeoutError as exc:
            raise WriteTimeoutError() from exc
        except OSError as exc:
            raise ClientIOError(exc) from exc
"""Errors raised by client connections."""

from __future__ import annotations

import uuid


class ClientError(Exception):
    """Base class for everything that can go wrong on a connection."""


class ConnectionClosedError(ClientError):
    """The peer closed the connection unexpectedly."""

    def __init__(self) -> None:
        super().__init__("connection closed unexpectedly")


class ClientIOError(ClientError):
    """An operating-system error on the socket."""

    def __init__(self, error: OSError) -> None:
        super().__init__(f"I/O error: {error}")
        self.error = error


class ReadTimeoutError(ClientError, TimeoutError):
    """Reading from the socket took too long."""

    def __init__(self) -> None:
        super().__init__("timed out reading from the socket")


class WriteTimeoutError(ClientError, TimeoutError):
    """Writing to the socket took too long."""

    def __init__(self) -> None:
        super().__init__("timed out writing to the socket")


class FlushTimeoutError(ClientError, TimeoutError):
    """Flushing the socket took too long."""

    def __init__(self) -> None:
        super().__init__("timed out flushing the socket")


class CodecError(ClientError):
    """A message could not be encoded or a frame could not be decoded."""

    def __init__(self, detail: str) -> None:
        super().__init__(f"codec error: {detail}")
        self.detail = detail


class MessageTooLargeError(ClientError):
    """A frame announced a length above the allowed maximum."""

    def __init__(self, size: int) -> None:
        super().__init__(f"message too large ({size} B)")
        self.size = size


class ChannelClosedError(ClientError):
    """The queue to the writing task no longer accepts messages."""

    def __init__(self) -> None:
        super().__init__("the write channel is closed")


class ChannelSendTimeoutError(ClientError, TimeoutError):
    """Handing a message to the writing task took too long."""

    def __init__(self) -> None:
        super().__init__("timed out sending into the write channel")


class RemoteError(ClientError):
    """The peer reported an error."""

    def __init__(self, peer_id: uuid.UUID, detail: str) -> None:
        super().__init__(f"peer {peer_id} reported an error: {detail}")
        self.peer_id = peer_id
        self.detail = detail
"""Events passed from connections to the application."""

from __future__ import annotations

import enum
import uuid
from dataclasses import dataclass
from typing import Any


class EventKind(enum.Enum):
    """What happened on a connection."""

    MESSAGE = "message"
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    ERROR = "error"


@dataclass(frozen=True)
class _Event:
    kind: EventKind
    client_id: uuid.UUID
    message: Any = None
    error: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "kind", EventKind(self.kind))
        if self.kind is EventKind.MESSAGE and self.message is None:
            raise ValueError("a message event needs a message")
        if self.kind is EventKind.ERROR and self.error is None:
            raise ValueError("an error event needs an error description")


@dataclass(frozen=True)
class ClientEvent(_Event):
    """An event raised by a single connection."""


@dataclass(frozen=True)
class ServerEvent(_Event):
    """An event a server hands to its application."""
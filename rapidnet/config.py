"""Connection settings for servers and clients."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class RapidServerConfig:
    """Where a server listens and whether it disables Nagle's algorithm."""

    address: str = ""
    no_delay: bool = False


@dataclass
class RapidClientConfig:
    """Where a client connects and whether it disables Nagle's algorithm."""

    address: str = ""
    no_delay: bool = False
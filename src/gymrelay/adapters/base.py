"""Base transport interface: queue frames out, close, stop."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any


class TransportBase(ABC):
    """One client connection's outbound side. The hub only talks to this."""

    @property
    @abstractmethod
    def peer(self) -> str:
        """Printable peer address for logs."""
        ...

    @abstractmethod
    def send(self, event: str, data: Any) -> None:
        """Queue one frame for delivery. Must not block the caller."""
        ...

    @abstractmethod
    async def close(self, code: int = 1000, reason: str = "") -> None:
        """Flush queued frames, then terminate the connection."""
        ...

    @abstractmethod
    async def stop(self) -> None:
        """Stop delivery after the peer is gone; queued frames are dropped."""
        ...

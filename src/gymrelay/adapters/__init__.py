"""Client transports. Each implements base.TransportBase."""

from gymrelay.adapters.base import TransportBase
from gymrelay.adapters.websocket import WebSocketTransport

__all__ = ["TransportBase", "WebSocketTransport"]

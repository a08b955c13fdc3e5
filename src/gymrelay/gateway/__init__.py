"""Gateway: auth, tenant routing, presence, relay and connection lifecycle."""

from gymrelay.gateway.auth import Authenticator, Handshake
from gymrelay.gateway.bus import Bus
from gymrelay.gateway.hub import RelayHub
from gymrelay.gateway.presence import InMemoryPresenceStore, PresenceStore, PresenceTracker
from gymrelay.gateway.relay import EventRelay
from gymrelay.gateway.router import Connection, TenantRouter

__all__ = [
    "Authenticator",
    "Bus",
    "Connection",
    "EventRelay",
    "Handshake",
    "InMemoryPresenceStore",
    "PresenceStore",
    "PresenceTracker",
    "RelayHub",
    "TenantRouter",
]

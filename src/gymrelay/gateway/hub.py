"""Connection lifecycle: admit, route frames, tear down."""

from __future__ import annotations

from typing import Any

from loguru import logger

from gymrelay.adapters.base import TransportBase
from gymrelay.core.constants import (
    CLOSE_AUTH_FAILED,
    CLOSE_DUPLICATE_BRIDGE,
    ERROR,
    Role,
)
from gymrelay.core.errors import AuthenticationError, MessageValidationError
from gymrelay.gateway.auth import Authenticator, Handshake
from gymrelay.gateway.presence import PresenceTracker
from gymrelay.gateway.relay import EventRelay, parse_frame
from gymrelay.gateway.router import Connection, TenantRouter


class RelayHub:
    """Ties auth, routing, presence and relay together for each connection.

    State is only touched in the synchronous parts of these methods, so all
    connections can share it from one event loop without locks.
    """

    def __init__(
        self,
        authenticator: Authenticator,
        router: TenantRouter,
        presence: PresenceTracker,
        relay: EventRelay,
    ) -> None:
        self._auth = authenticator
        self._router = router
        self._presence = presence
        self._relay = relay

    @property
    def router(self) -> TenantRouter:
        return self._router

    @property
    def presence(self) -> PresenceTracker:
        return self._presence

    async def connect(self, handshake: Handshake, transport: TransportBase) -> Connection | None:
        """Admit a client or reject it with one error frame. Returns None on rejection."""
        role = handshake.role
        try:
            self._auth.authenticate(handshake)
            if role is Role.BRIDGE:
                self._presence.check_admission(handshake.tenant_id)
        except AuthenticationError as exc:
            logger.info("Auth Failed: {} from {}", exc.message, transport.peer)
            transport.send(ERROR, exc.to_frame())
            code = CLOSE_DUPLICATE_BRIDGE if exc.code == "duplicate_bridge" else CLOSE_AUTH_FAILED
            await transport.close(code=code, reason=exc.message)
            return None

        conn = Connection(tenant_id=handshake.tenant_id, role=role, transport=transport)
        self._router.join(conn)

        if role is Role.BRIDGE:
            self._presence.bridge_connected(conn)
        elif role is Role.ADMIN:
            logger.info("ADMIN viewing Dashboard for Gym: {}", conn.tenant_id)
            self._presence.admin_connected(conn)
        else:
            logger.warning(
                "Unknown Client Type {!r} connected to {}",
                handshake.client_type,
                conn.tenant_id,
            )
        return conn

    def handle_frame(self, conn: Connection, text: str) -> None:
        """Parse and relay one inbound frame; reply with an error frame if it is rejected."""
        try:
            event_name, payload = parse_frame(text)
            self._relay.handle(conn, event_name, payload)
        except MessageValidationError as exc:
            logger.warning("[gym {}] Rejected frame from {}: {}", conn.tenant_id, conn.id, exc.message)
            conn.send(ERROR, exc.to_frame())

    def disconnect(self, conn: Connection, reason: str = "") -> None:
        self._router.leave(conn)
        if conn.role is Role.BRIDGE:
            logger.warning("BRIDGE Lost: {} ({})", conn.tenant_id, reason or "disconnect")
            self._presence.bridge_disconnected(conn)
        else:
            logger.debug("[gym {}] {} left ({})", conn.tenant_id, conn.id, reason or "disconnect")

    def stats(self) -> dict[str, Any]:
        return {
            "connections": self._router.connection_count,
            "tenants": len(self._router.all_groups()),
            "bridges_online": self._presence.online_count,
        }

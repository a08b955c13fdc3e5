"""Bridge presence per gym: store abstraction + tracker state machine."""

from __future__ import annotations

from typing import Protocol

from loguru import logger

from gymrelay.core.constants import BRIDGE_STATUS, OFFLINE, ONLINE, BridgeStatus
from gymrelay.core.errors import AuthenticationError
from gymrelay.gateway.router import Connection, TenantRouter

DUPLICATE_BRIDGE = "Bridge already connected for this gym"


class PresenceStore(Protocol):
    """Maps gym id -> tracked bridge connection id. At most one entry per gym."""

    def get(self, tenant_id: str) -> str | None: ...

    def set(self, tenant_id: str, connection_id: str) -> None: ...

    def delete(self, tenant_id: str) -> None: ...

    def __len__(self) -> int: ...


class InMemoryPresenceStore:
    """Process-local presence map. Only mutated from the event loop."""

    def __init__(self) -> None:
        self._bridges: dict[str, str] = {}

    def get(self, tenant_id: str) -> str | None:
        return self._bridges.get(tenant_id)

    def set(self, tenant_id: str, connection_id: str) -> None:
        self._bridges[tenant_id] = connection_id

    def delete(self, tenant_id: str) -> None:
        self._bridges.pop(tenant_id, None)

    def __len__(self) -> int:
        return len(self._bridges)


class PresenceTracker:
    """OFFLINE <-> ONLINE per gym, broadcast as bridge-status to the gym's group.

    policy controls a second bridge for a gym that already has one:
    "replace" overwrites the record and any bridge disconnect clears it,
    "primary" overwrites it but only the tracked bridge's disconnect clears it,
    "reject" refuses the newcomer at admission.
    """

    def __init__(
        self,
        router: TenantRouter,
        store: PresenceStore | None = None,
        *,
        policy: str = "replace",
    ) -> None:
        self._router = router
        self._store: PresenceStore = store if store is not None else InMemoryPresenceStore()
        self._policy = policy

    def status(self, tenant_id: str) -> BridgeStatus:
        return ONLINE if self._store.get(tenant_id) is not None else OFFLINE

    def tracked_bridge(self, tenant_id: str) -> str | None:
        return self._store.get(tenant_id)

    @property
    def online_count(self) -> int:
        return len(self._store)

    def check_admission(self, tenant_id: str) -> None:
        """Raise AuthenticationError when policy is "reject" and a bridge is already tracked."""
        if self._policy == "reject" and self._store.get(tenant_id) is not None:
            raise AuthenticationError(DUPLICATE_BRIDGE, code="duplicate_bridge")

    def bridge_connected(self, conn: Connection) -> None:
        previous = self._store.get(conn.tenant_id)
        if previous is not None and previous != conn.id:
            logger.warning(
                "[gym {}] Bridge {} replaces tracked bridge {}",
                conn.tenant_id,
                conn.id,
                previous,
            )
        self._store.set(conn.tenant_id, conn.id)
        logger.info("BRIDGE Online for Gym: {}", conn.tenant_id)
        self._router.broadcast(conn.group, BRIDGE_STATUS, {"status": ONLINE})

    def bridge_disconnected(self, conn: Connection) -> bool:
        """Clear presence and broadcast OFFLINE. Returns False if policy kept the record."""
        tracked = self._store.get(conn.tenant_id)
        if self._policy == "primary" and tracked is not None and tracked != conn.id:
            logger.info(
                "[gym {}] Displaced bridge {} left; {} stays online",
                conn.tenant_id,
                conn.id,
                tracked,
            )
            return False
        self._store.delete(conn.tenant_id)
        self._router.broadcast(conn.group, BRIDGE_STATUS, {"status": OFFLINE})
        return True

    def admin_connected(self, conn: Connection) -> None:
        """Send the current status snapshot to this admin only."""
        conn.send(BRIDGE_STATUS, {"status": self.status(conn.tenant_id)})

"""Tenant router: one isolated broadcast group per gym."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from typing import Any

from loguru import logger

from gymrelay.adapters.base import TransportBase
from gymrelay.core.constants import GROUP_PREFIX, Role


@dataclass(eq=False)
class Connection:
    """An admitted client: identity, owning gym, declared role and transport."""

    tenant_id: str
    role: Role | None
    transport: TransportBase
    id: str = field(default_factory=lambda: uuid.uuid4().hex)

    @property
    def group(self) -> str:
        return TenantRouter.group_key(self.tenant_id)

    def send(self, event: str, data: Any) -> None:
        self.transport.send(event, data)


class TenantRouter:
    """Tracks group membership. A group exists only while it has members."""

    def __init__(self) -> None:
        self._groups: dict[str, dict[str, Connection]] = {}

    @staticmethod
    def group_key(tenant_id: str) -> str:
        """Deterministic group name for a gym."""
        return f"{GROUP_PREFIX}{tenant_id}"

    def join(self, conn: Connection) -> str:
        """Add a connection to its gym's group. Returns the group key."""
        key = conn.group
        members = self._groups.setdefault(key, {})
        if not members:
            logger.debug("Router: group {} created", key)
        members[conn.id] = conn
        return key

    def leave(self, conn: Connection) -> None:
        """Remove a connection; drop the group when it empties."""
        key = conn.group
        members = self._groups.get(key)
        if members is None:
            return
        members.pop(conn.id, None)
        if not members:
            del self._groups[key]
            logger.debug("Router: group {} removed (empty)", key)

    def members(self, key: str) -> list[Connection]:
        """Connections currently in a group (insertion order)."""
        return list(self._groups.get(key, {}).values())

    def peers(self, conn: Connection) -> list[Connection]:
        """Group members other than conn."""
        return [m for m in self.members(conn.group) if m.id != conn.id]

    def broadcast(
        self,
        key: str,
        event: str,
        data: Any,
        *,
        exclude: Connection | None = None,
    ) -> int:
        """Queue a frame to every member of a group. Returns recipient count."""
        sent = 0
        for member in self.members(key):
            if exclude is not None and member.id == exclude.id:
                continue
            member.send(event, data)
            sent += 1
        return sent

    def has_group(self, key: str) -> bool:
        return key in self._groups

    def all_groups(self) -> list[str]:
        return list(self._groups)

    @property
    def connection_count(self) -> int:
        return sum(len(m) for m in self._groups.values())

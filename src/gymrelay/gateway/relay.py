"""Event relay: inbound frame -> rest of the sender's gym group (+ bus for side consumers)."""

from __future__ import annotations

import json
from typing import Any

from loguru import logger

from gymrelay.core.constants import CLOUD_COMMAND, HARDWARE_EVENT, RELAYED_EVENTS
from gymrelay.core.errors import MessageValidationError
from gymrelay.events import cloud_command, hardware_event
from gymrelay.gateway.bus import Bus
from gymrelay.gateway.router import Connection, TenantRouter


def parse_frame(text: str) -> tuple[str, Any]:
    """Split a JSON {"event": ..., "data": ...} frame. Raises MessageValidationError."""
    try:
        obj = json.loads(text)
    except (json.JSONDecodeError, TypeError) as exc:
        raise MessageValidationError(
            "Malformed frame: not valid JSON",
            code="malformed_frame",
            original_error=exc,
        ) from exc
    if not isinstance(obj, dict) or not isinstance(obj.get("event"), str):
        raise MessageValidationError(
            "Malformed frame: expected an object with a string 'event'",
            code="malformed_frame",
        )
    return obj["event"], obj.get("data")


def _require_field(event_name: str, payload: Any, key: str) -> None:
    if not isinstance(payload, dict) or not payload.get(key):
        raise MessageValidationError(
            f"Invalid {event_name}: '{key}' is required",
            code="invalid_payload",
            details={"event": event_name, "field": key},
        )


class EventRelay:
    """Relays cloud-command and hardware-event to the sender's group, excluding the sender.

    Payloads are forwarded as received. Hardware events are also published on the
    bus as HardwareEvent; the relay never waits on whoever consumes them.
    """

    def __init__(self, router: TenantRouter, bus: Bus, *, strict: bool = False) -> None:
        self._router = router
        self._bus = bus
        self._strict = strict

    def handle(self, conn: Connection, event_name: str, payload: Any) -> int:
        """Relay one inbound event. Returns the number of recipients."""
        if event_name not in RELAYED_EVENTS:
            raise MessageValidationError(
                f"Unknown event: {event_name}",
                code="unknown_event",
                details={"event": event_name},
            )
        if event_name == CLOUD_COMMAND:
            return self._relay_command(conn, payload)
        return self._relay_hardware_event(conn, payload)

    def _relay_command(self, conn: Connection, payload: Any) -> int:
        """Commands are relayed only, never published on the bus."""
        if self._strict:
            _require_field(CLOUD_COMMAND, payload, "action")
        if isinstance(payload, dict):
            cmd = cloud_command(conn.tenant_id, payload)
            logger.info("[gym {}] Command: {} (user {})", conn.tenant_id, cmd.action, cmd.user_id)
        else:
            logger.info("[gym {}] Command with non-object payload", conn.tenant_id)
        return self._router.broadcast(conn.group, CLOUD_COMMAND, payload, exclude=conn)

    def _relay_hardware_event(self, conn: Connection, payload: Any) -> int:
        if self._strict:
            _require_field(HARDWARE_EVENT, payload, "type")
        kind = payload.get("type") if isinstance(payload, dict) else None
        logger.info("[gym {}] Hardware Event: {}", conn.tenant_id, kind)

        delivered = self._router.broadcast(conn.group, HARDWARE_EVENT, payload, exclude=conn)
        if isinstance(payload, dict):
            evt = hardware_event(conn.tenant_id, payload)
            self._bus.publish("relay", evt)
        else:
            logger.warning(
                "[gym {}] Hardware event payload is not an object; relayed but not persisted",
                conn.tenant_id,
            )
        return delivered

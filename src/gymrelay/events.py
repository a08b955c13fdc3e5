"""Event types and dispatcher: typed relay events, central dispatcher."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Protocol

from loguru import logger


def utc_now_iso() -> str:
    """Current UTC time as ISO-8601 with millisecond precision and a Z suffix."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


@dataclass
class HardwareEvent:
    """Event produced by a gym's hardware bridge (scan, door, attendance...)."""

    tenant_id: str
    type: str | None
    user_id: Any
    timestamp: Any
    raw: dict[str, Any] = field(default_factory=dict)

    def to_record(self) -> dict[str, Any]:
        """Fields submitted to the external store."""
        return {
            "type": self.type,
            "userId": self.user_id,
            "gymId": self.tenant_id,
            "timestamp": self.timestamp,
        }


@dataclass
class CloudCommand:
    """Command issued from an admin dashboard towards the gym's hardware."""

    tenant_id: str
    action: str | None
    user_id: Any
    raw: dict[str, Any] = field(default_factory=dict)


class EventTarget(Protocol):
    """Bus target interface: accept_event + push_event."""

    def accept_event(self, source: str, evt: object) -> bool:
        """Return True if this target wants the event."""
        ...

    def push_event(self, source: str, evt: object) -> None:
        """Handle the event (may hand off to a task)."""
        ...


def hardware_event(tenant_id: str, payload: dict[str, Any]) -> HardwareEvent:
    """Build a HardwareEvent from a bridge payload. Timestamp is kept as sent; now (UTC) if absent."""
    timestamp = payload.get("timestamp")
    return HardwareEvent(
        tenant_id=tenant_id,
        type=payload.get("type"),
        user_id=payload.get("userId"),
        timestamp=timestamp if timestamp is not None else utc_now_iso(),
        raw=dict(payload),
    )


def cloud_command(tenant_id: str, payload: dict[str, Any]) -> CloudCommand:
    return CloudCommand(
        tenant_id=tenant_id,
        action=payload.get("action"),
        user_id=payload.get("userId"),
        raw=dict(payload),
    )


class Dispatcher:
    """Hands each event to every target whose accept_event() says yes.

    A target that raises is logged and skipped; later targets still get the event.
    """

    def __init__(self) -> None:
        self._targets: list[EventTarget] = []
        self.failures = 0

    def register(self, target: EventTarget) -> None:
        if target not in self._targets:
            self._targets.append(target)

    def unregister(self, target: EventTarget) -> None:
        if target in self._targets:
            self._targets.remove(target)

    @property
    def targets(self) -> tuple[EventTarget, ...]:
        return tuple(self._targets)

    def dispatch(self, source: str, evt: object) -> int:
        """Returns how many targets took the event."""
        taken = 0
        for target in self._targets:
            try:
                if not target.accept_event(source, evt):
                    continue
                target.push_event(source, evt)
            except Exception:
                self.failures += 1
                logger.exception("Target {!r} failed on {} from {}", target, type(evt).__name__, source)
                continue
            taken += 1
        return taken

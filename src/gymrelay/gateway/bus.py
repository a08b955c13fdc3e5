"""Event bus: the relay publishes here; side consumers such as persistence subscribe."""

from gymrelay.events import Dispatcher, EventTarget

__all__ = ["Bus", "EventTarget"]


class Bus:
    """Publish/subscribe front for the dispatcher, with counters for /health."""

    def __init__(self) -> None:
        self._dispatcher = Dispatcher()
        self.published = 0
        self.unclaimed = 0

    def register(self, target: EventTarget) -> None:
        self._dispatcher.register(target)

    def unregister(self, target: EventTarget) -> None:
        self._dispatcher.unregister(target)

    @property
    def targets(self) -> list[EventTarget]:
        return list(self._dispatcher.targets)

    def publish(self, source: str, evt: object) -> int:
        """Dispatch evt; returns the number of targets that took it."""
        self.published += 1
        taken = self._dispatcher.dispatch(source, evt)
        if not taken:
            self.unclaimed += 1
        return taken

    def stats(self) -> dict[str, int]:
        return {
            "published": self.published,
            "unclaimed": self.unclaimed,
            "target_failures": self._dispatcher.failures,
        }

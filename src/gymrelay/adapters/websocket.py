"""WebSocket transport: JSON {"event", "data"} frames over a Starlette WebSocket."""

from __future__ import annotations

import asyncio
import contextlib
import json
from typing import Any

from fastapi import WebSocket, WebSocketDisconnect
from loguru import logger

from gymrelay.adapters.base import TransportBase

DEFAULT_MAX_QUEUE = 1000


def encode_frame(event: str, data: Any) -> str:
    return json.dumps({"event": event, "data": data})


class WebSocketTransport(TransportBase):
    """Outbound queue drained by a writer task, so relaying to a slow peer never blocks.

    The queue holds at most max_queue frames; further frames for a stalled peer
    are dropped and counted.
    """

    def __init__(self, websocket: WebSocket, *, max_queue: int = DEFAULT_MAX_QUEUE) -> None:
        self._ws = websocket
        self._outbound: asyncio.Queue[tuple[str, Any] | None] = asyncio.Queue(maxsize=max_queue)
        self.dropped = 0
        self._writer_task: asyncio.Task | None = None
        self._closed = False

    @property
    def peer(self) -> str:
        client = self._ws.client
        return f"{client.host}:{client.port}" if client else "unknown"

    def start(self) -> None:
        """Start the writer task. Call after the socket is accepted."""
        if self._writer_task is None:
            self._writer_task = asyncio.create_task(self._consume_outbound())

    def send(self, event: str, data: Any) -> None:
        if self._closed:
            logger.debug("Dropped {} frame for closed peer {}", event, self.peer)
            return
        try:
            self._outbound.put_nowait((event, data))
        except asyncio.QueueFull:
            self.dropped += 1
            logger.warning(
                "Outbound queue full for {} ({} frames); dropped {} frame ({} dropped so far)",
                self.peer,
                self._outbound.maxsize,
                event,
                self.dropped,
            )

    async def receive(self) -> str:
        """Wait for the next inbound frame. Raises WebSocketDisconnect when the peer leaves."""
        message = await self._ws.receive()
        if message["type"] == "websocket.disconnect":
            raise WebSocketDisconnect(code=message.get("code", 1000))
        text = message.get("text")
        if text is not None:
            return text
        return (message.get("bytes") or b"").decode("utf-8", errors="replace")

    async def _consume_outbound(self) -> None:
        while True:
            item = await self._outbound.get()
            if item is None:
                return
            event, data = item
            try:
                await self._ws.send_text(encode_frame(event, data))
            except Exception as exc:
                # Peer vanished mid-send; the receive loop handles the disconnect.
                logger.debug("Send to {} failed ({}); stopping writer", self.peer, exc)
                self._closed = True
                return

    async def close(self, code: int = 1000, reason: str = "") -> None:
        """Flush queued frames, then close. A full queue means a stalled peer: close without flushing."""
        if self._closed:
            return
        self._closed = True
        try:
            self._outbound.put_nowait(None)
        except asyncio.QueueFull:
            await self.stop()
        if self._writer_task:
            await self._writer_task
        with contextlib.suppress(RuntimeError):
            await self._ws.close(code=code, reason=reason)

    async def stop(self) -> None:
        self._closed = True
        if self._writer_task:
            self._writer_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._writer_task
            self._writer_task = None

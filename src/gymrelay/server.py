"""FastAPI application: liveness routes and the relay WebSocket endpoint."""

from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse
from loguru import logger

from gymrelay import __version__
from gymrelay.adapters.websocket import DEFAULT_MAX_QUEUE, WebSocketTransport
from gymrelay.config import Config
from gymrelay.gateway import (
    Authenticator,
    Bus,
    EventRelay,
    Handshake,
    InMemoryPresenceStore,
    PresenceTracker,
    RelayHub,
    TenantRouter,
)
from gymrelay.persistence import PersistenceClient, PersistenceSink

LIVENESS_TEXT = "Repset Traffic Control is Online"


def build_hub(config: Config, sink: PersistenceSink, bus: Bus) -> RelayHub:
    """Wire the gateway components for one process."""
    router = TenantRouter()
    presence = PresenceTracker(
        router,
        InMemoryPresenceStore(),
        policy=config.duplicate_bridge_policy,
    )
    relay = EventRelay(router, bus, strict=config.strict_validation)
    bus.register(sink)
    return RelayHub(Authenticator(config.admin_secret), router, presence, relay)


def create_app(config: Config, *, persistence_client: PersistenceClient | None = None) -> FastAPI:
    """Build the FastAPI app. Config must already be validated."""
    client = persistence_client or PersistenceClient(
        config.webhook_url,
        secret=config.webhook_secret,
        max_retries=config.persistence_max_retries,
        timeout=config.persistence_timeout,
        base_delay=config.persistence_base_delay,
        backoff=config.persistence_backoff,
    )
    sink = PersistenceSink(client, max_in_flight=config.persistence_max_in_flight)
    bus = Bus()
    hub = build_hub(config, sink, bus)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        sink.start()
        logger.info("Relay accepting connections (version {})", __version__)
        yield
        logger.info("Relay shutting down")
        await sink.drain(config.persistence_drain_timeout)
        await client.aclose()

    app = FastAPI(title="Gym Relay", version=__version__, lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )
    app.state.hub = hub
    app.state.sink = sink
    app.state.bus = bus

    @app.get("/", response_class=PlainTextResponse)
    async def liveness() -> str:
        return LIVENESS_TEXT

    @app.get("/health")
    async def health() -> dict:
        return {
            "status": "ok",
            "version": __version__,
            **hub.stats(),
            "persistence_in_flight": sink.in_flight,
            "persisted": sink.succeeded,
            "persistence_failed": sink.failed,
            "events": bus.stats(),
        }

    @app.websocket("/ws")
    @app.websocket("/socket")
    async def relay_socket(websocket: WebSocket) -> None:
        await serve_connection(hub, websocket, max_queue=config.outbound_queue_size)

    return app


async def serve_connection(hub: RelayHub, websocket: WebSocket, *, max_queue: int = DEFAULT_MAX_QUEUE) -> None:
    """Run one client connection from handshake to disconnect."""
    handshake = Handshake.from_request(websocket.query_params, websocket.headers)
    await websocket.accept()
    transport = WebSocketTransport(websocket, max_queue=max_queue)
    transport.start()

    conn = await hub.connect(handshake, transport)
    if conn is None:
        return

    reason = "transport closed"
    try:
        while True:
            text = await transport.receive()
            hub.handle_frame(conn, text)
    except WebSocketDisconnect as exc:
        reason = f"client disconnect, code {exc.code}"
    finally:
        hub.disconnect(conn, reason)
        await transport.stop()

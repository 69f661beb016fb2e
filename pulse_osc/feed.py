"""WebSocket feed mirroring readings, link status and beats to overlays."""

import asyncio
import json
import logging
from time import time_ns

from websockets.asyncio.server import ServerConnection, serve
from websockets.exceptions import ConnectionClosedError

from .parser import HeartRateReading

logger = logging.getLogger(__name__)


class PulseFeed:
    """Broadcasts JSON events to every connected overlay client."""

    def __init__(
        self,
        host: str = "127.0.0.1",
        port: int = 8765,
        broadcast_timeout: float = 0.5,
    ):
        self.host = host
        self.port = port
        self._broadcast_timeout = broadcast_timeout
        self._clients: set[ServerConnection] = set()
        self._server = None

    @property
    def client_count(self) -> int:
        return len(self._clients)

    async def _handler(self, websocket: ServerConnection) -> None:
        self._clients.add(websocket)
        logger.info("Overlay connected (%d total)", len(self._clients))
        try:
            async for _ in websocket:
                pass  # Overlays only listen
        except ConnectionClosedError:
            pass
        finally:
            self._clients.discard(websocket)
            logger.info("Overlay disconnected (%d total)", len(self._clients))

    async def broadcast(self, message: dict) -> None:
        """Send a message to all clients, dropping the ones that fail."""
        if not self._clients:
            return
        clients = list(self._clients)
        data = json.dumps(message)
        try:
            results = await asyncio.wait_for(
                asyncio.gather(*[client.send(data) for client in clients], return_exceptions=True),
                timeout=self._broadcast_timeout,
            )
        except TimeoutError:
            logger.warning("Broadcast timeout, slow overlay(s) skipped")
            return

        for client, result in zip(clients, results, strict=True):
            if isinstance(result, Exception):
                self._clients.discard(client)
                logger.debug("Dropped overlay: %s", result)

    async def send_reading(self, reading: HeartRateReading) -> None:
        msg: dict[str, int | list[int]] = {"bpm": reading.bpm, "timestamp": time_ns() // 1_000_000}
        if reading.rr_intervals:
            msg["rr"] = list(reading.rr_intervals)
        await self.broadcast(msg)

    async def send_status(self, status: str, device: str | None = None) -> None:
        msg = {"status": status}
        if device:
            msg["device"] = device
        await self.broadcast(msg)

    async def send_beat(self) -> None:
        await self.broadcast({"beat": True})

    async def start(self) -> None:
        self._server = await serve(self._handler, self.host, self.port)
        logger.info("Overlay feed on ws://%s:%d", self.host, self.port)

    async def stop(self) -> None:
        if self._server:
            self._server.close()
            await self._server.wait_closed()
            self._server = None

"""
WebSocket subscriptions with fixed-delay reconnect.

Each logical subscription is one FeedConnection running as its own asyncio
task, so a slow or dead feed never blocks the others.

Lifecycle per subscription:
    CONNECTING -> CONNECTED -> PENDING_RETRY -> CONNECTING -> ...

Any termination (close frame, error frame, transport exception, failed
handshake) schedules exactly one reconnect after a fixed delay. There is no
backoff growth and no retry limit; the loop runs until its task is
cancelled at process exit. Messages missed while disconnected are lost.

Performance notes:
- Frames are decoded with orjson
- Minimal logging in the hot path (per-message logs only on decode failure)
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Callable

import aiohttp

from ..config import RECONNECT_DELAY_SEC, WS_BASE
from ..types import ConnectionState, FeedStatus
from .messages import DecodeError, json_loads

logger = logging.getLogger(__name__)

MessageHandler = Callable[[dict], None]


class FeedConnection:
    """
    One persistent logical subscription to a named stream.

    on_message receives every decoded frame. It may raise DecodeError to
    reject a payload whose shape is wrong; that message is dropped and
    counted, the subscription continues.
    """

    def __init__(
        self,
        name: str,
        url: str,
        session: aiohttp.ClientSession,
        on_message: MessageHandler,
        reconnect_delay: float = RECONNECT_DELAY_SEC,
    ) -> None:
        self.name = name
        self.url = url
        self.session = session
        self.on_message = on_message
        self.reconnect_delay = reconnect_delay

        self.state = ConnectionState.CONNECTING

        # Health counters for the feeds panel
        self.messages: int = 0
        self.decode_errors: int = 0
        self.reconnects: int = 0
        self.last_message_at: float | None = None

        self._sleep = asyncio.sleep

    async def run(self) -> None:
        """Connect, consume, and reconnect forever."""
        while True:
            self.state = ConnectionState.CONNECTING
            try:
                await self._consume()
            except asyncio.CancelledError:
                raise
            except (aiohttp.ClientError, asyncio.TimeoutError, OSError) as e:
                logger.warning("[%s] connection failed: %s", self.name, e)
            except Exception:
                logger.exception("[%s] unexpected error, dropping connection", self.name)

            self.state = ConnectionState.PENDING_RETRY
            self.reconnects += 1
            logger.warning(
                "[%s] disconnected, reconnecting in %.1fs (attempt %d)",
                self.name, self.reconnect_delay, self.reconnects,
            )
            await self._sleep(self.reconnect_delay)

    async def _consume(self) -> None:
        """Run one connection until the server closes it or it errors."""
        async with self.session.ws_connect(self.url) as ws:
            self.state = ConnectionState.CONNECTED
            logger.info("[%s] connected to %s", self.name, self.url)

            async for msg in ws:
                if msg.type in (aiohttp.WSMsgType.TEXT, aiohttp.WSMsgType.BINARY):
                    self._handle_message(msg.data)
                elif msg.type == aiohttp.WSMsgType.ERROR:
                    logger.warning("[%s] websocket error: %s", self.name, ws.exception())
                    break

        logger.info("[%s] connection closed", self.name)

    def _handle_message(self, raw: bytes | str) -> None:
        """
        Decode one frame and hand it to the handler.

        HOT PATH - called for every message on this feed.
        """
        self.messages += 1
        self.last_message_at = time.monotonic()

        try:
            self.on_message(json_loads(raw))
        except DecodeError as e:
            self.decode_errors += 1
            logger.warning("[%s] dropped malformed message: %s", self.name, e)

    def status(self) -> FeedStatus:
        return FeedStatus(
            name=self.name,
            state=self.state,
            messages=self.messages,
            decode_errors=self.decode_errors,
            reconnects=self.reconnects,
            last_message_at=self.last_message_at,
        )


class StreamManager:
    """
    Owns every subscription of the process.

    Usage:
        async with aiohttp.ClientSession() as session:
            manager = StreamManager(session)
            manager.connect("btcusdt@trade", handle_trade)
            ...
            await manager.close()
    """

    def __init__(
        self,
        session: aiohttp.ClientSession,
        base_url: str = WS_BASE,
        reconnect_delay: float = RECONNECT_DELAY_SEC,
    ) -> None:
        self.session = session
        self.base_url = base_url.rstrip('/')
        self.reconnect_delay = reconnect_delay
        self.connections: dict[str, FeedConnection] = {}
        self._tasks: list[asyncio.Task] = []

    def connect(self, stream_name: str, on_message: MessageHandler) -> FeedConnection:
        """Start a subscription to `stream_name`. Must be called on the running loop."""
        if stream_name in self.connections:
            raise ValueError(f"already subscribed to {stream_name}")

        connection = FeedConnection(
            name=stream_name,
            url=f"{self.base_url}/{stream_name}",
            session=self.session,
            on_message=on_message,
            reconnect_delay=self.reconnect_delay,
        )
        self.connections[stream_name] = connection
        self._tasks.append(asyncio.create_task(connection.run(), name=f"feed:{stream_name}"))
        return connection

    def statuses(self) -> list[FeedStatus]:
        return [conn.status() for conn in self.connections.values()]

    async def close(self) -> None:
        """Cancel every subscription task. The session belongs to the caller."""
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks.clear()

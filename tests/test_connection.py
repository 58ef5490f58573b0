"""Tests for feed subscriptions and reconnect behavior."""

from __future__ import annotations

import asyncio
from typing import NamedTuple

import aiohttp
import pytest

from market_terminal.datafeed.connection import FeedConnection, StreamManager
from market_terminal.datafeed.messages import DecodeError
from market_terminal.types import ConnectionState


class FakeMessage(NamedTuple):
    type: aiohttp.WSMsgType
    data: object = None


def text(data: str) -> FakeMessage:
    return FakeMessage(aiohttp.WSMsgType.TEXT, data)


class FakeWebSocket:
    """Replays a fixed list of messages, then ends (server close)."""

    def __init__(self, messages: list[FakeMessage], block: bool = False) -> None:
        self.messages = messages
        self.block = block

    async def __aenter__(self) -> FakeWebSocket:
        return self

    async def __aexit__(self, *exc) -> None:
        return None

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        for msg in self.messages:
            yield msg
        if self.block:
            await asyncio.Event().wait()

    def exception(self) -> Exception:
        return RuntimeError("socket error")


class FailingConnect:
    def __init__(self, error: Exception) -> None:
        self.error = error

    async def __aenter__(self):
        raise self.error

    async def __aexit__(self, *exc) -> None:
        return None


class FakeSession:
    """
    Hands out one scripted connection per ws_connect() call.

    Each script is a list of messages or an exception raised on connect.
    """

    def __init__(self, scripts: list) -> None:
        self.scripts = list(scripts)
        self.urls: list[str] = []
        self.closed = False

    def ws_connect(self, url: str):
        self.urls.append(url)
        script = self.scripts.pop(0) if self.scripts else []
        if isinstance(script, Exception):
            return FailingConnect(script)
        if isinstance(script, FakeWebSocket):
            return script
        return FakeWebSocket(script)


class SleepRecorder:
    """Stands in for asyncio.sleep; stops the loop after `limit` retries."""

    def __init__(self, connection: FeedConnection, limit: int) -> None:
        self.connection = connection
        self.limit = limit
        self.delays: list[float] = []
        self.states: list[ConnectionState] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)
        self.states.append(self.connection.state)
        if len(self.delays) >= self.limit:
            raise asyncio.CancelledError


def make_connection(session: FakeSession, handler, limit: int = 1) -> tuple[FeedConnection, SleepRecorder]:
    conn = FeedConnection("btcusdt@trade", "wss://example/ws/btcusdt@trade", session, handler)
    recorder = SleepRecorder(conn, limit)
    conn._sleep = recorder
    return conn, recorder


class TestMessageHandling:
    @pytest.mark.asyncio
    async def test_malformed_message_does_not_stop_feed(self) -> None:
        received = []
        session = FakeSession([[text('{"p": "1"}'), text("{broken"), text('{"p": "2"}')]])
        conn, _ = make_connection(session, received.append)

        with pytest.raises(asyncio.CancelledError):
            await conn.run()

        assert received == [{"p": "1"}, {"p": "2"}]
        assert conn.messages == 3
        assert conn.decode_errors == 1

    @pytest.mark.asyncio
    async def test_handler_rejection_is_dropped(self) -> None:
        received = []

        def handler(payload: dict) -> None:
            if "bad" in payload:
                raise DecodeError("wrong shape")
            received.append(payload)

        session = FakeSession([[text('{"bad": 1}'), text('{"ok": 1}')]])
        conn, _ = make_connection(session, handler)

        with pytest.raises(asyncio.CancelledError):
            await conn.run()

        assert received == [{"ok": 1}]
        assert conn.decode_errors == 1

    @pytest.mark.asyncio
    async def test_state_is_connected_while_receiving(self) -> None:
        seen = []
        session = FakeSession([[text("{}")]])
        conn, _ = make_connection(session, lambda payload: seen.append(conn.state))

        with pytest.raises(asyncio.CancelledError):
            await conn.run()

        assert seen == [ConnectionState.CONNECTED]
        assert conn.last_message_at is not None


class TestReconnect:
    @pytest.mark.asyncio
    async def test_close_schedules_one_retry_after_fixed_delay(self) -> None:
        received = []
        session = FakeSession([[text('{"n": 1}')], [text('{"n": 2}')]])
        conn, recorder = make_connection(session, received.append, limit=2)

        with pytest.raises(asyncio.CancelledError):
            await conn.run()

        # Same stream, same handler, one retry per close
        assert session.urls == ["wss://example/ws/btcusdt@trade"] * 2
        assert received == [{"n": 1}, {"n": 2}]
        assert recorder.delays == [2.0, 2.0]
        assert recorder.states == [ConnectionState.PENDING_RETRY] * 2

    @pytest.mark.asyncio
    async def test_sustained_failures_retry_without_backoff_or_limit(self) -> None:
        failures = [aiohttp.ClientConnectionError("refused") for _ in range(25)]
        session = FakeSession(failures)
        conn, recorder = make_connection(session, lambda payload: None, limit=25)

        with pytest.raises(asyncio.CancelledError):
            await conn.run()

        assert len(session.urls) == 25
        assert recorder.delays == [2.0] * 25
        assert conn.reconnects == 25

    @pytest.mark.asyncio
    async def test_error_frame_triggers_reconnect(self) -> None:
        received = []
        session = FakeSession([
            [FakeMessage(aiohttp.WSMsgType.ERROR), text('{"never": 1}')],
            [text('{"n": 2}')],
        ])
        conn, recorder = make_connection(session, received.append, limit=2)

        with pytest.raises(asyncio.CancelledError):
            await conn.run()

        assert received == [{"n": 2}]
        assert len(recorder.delays) == 2

    @pytest.mark.asyncio
    async def test_unexpected_handler_error_reconnects(self) -> None:
        def handler(payload: dict) -> None:
            raise RuntimeError("boom")

        session = FakeSession([[text("{}")], []])
        conn, recorder = make_connection(session, handler, limit=2)

        with pytest.raises(asyncio.CancelledError):
            await conn.run()

        assert len(session.urls) == 2
        assert recorder.delays == [2.0, 2.0]

    @pytest.mark.asyncio
    async def test_timeout_on_connect_is_retried(self) -> None:
        session = FakeSession([asyncio.TimeoutError(), []])
        conn, recorder = make_connection(session, lambda payload: None, limit=2)

        with pytest.raises(asyncio.CancelledError):
            await conn.run()

        assert len(session.urls) == 2


class TestStreamManager:
    @pytest.mark.asyncio
    async def test_connect_builds_url_and_runs_concurrently(self) -> None:
        session = FakeSession([
            FakeWebSocket([text('{"a": 1}')], block=True),
            FakeWebSocket([text('{"b": 2}')], block=True),
        ])
        manager = StreamManager(session, base_url="wss://example/ws/")
        received: dict[str, list] = {"trade": [], "ticker": []}

        manager.connect("btcusdt@trade", received["trade"].append)
        manager.connect("btcusdt@ticker", received["ticker"].append)
        await asyncio.sleep(0.05)

        assert session.urls == ["wss://example/ws/btcusdt@trade", "wss://example/ws/btcusdt@ticker"]
        assert received == {"trade": [{"a": 1}], "ticker": [{"b": 2}]}

        statuses = {s.name: s for s in manager.statuses()}
        assert statuses["btcusdt@trade"].state == ConnectionState.CONNECTED
        assert statuses["btcusdt@ticker"].messages == 1

        await manager.close()

    @pytest.mark.asyncio
    async def test_duplicate_subscription_rejected(self) -> None:
        session = FakeSession([FakeWebSocket([], block=True)])
        manager = StreamManager(session)
        manager.connect("btcusdt@trade", lambda payload: None)

        with pytest.raises(ValueError):
            manager.connect("btcusdt@trade", lambda payload: None)

        await manager.close()

    @pytest.mark.asyncio
    async def test_close_cancels_subscriptions(self) -> None:
        session = FakeSession([FakeWebSocket([], block=True)])
        manager = StreamManager(session)
        manager.connect("btcusdt@trade", lambda payload: None)
        tasks = list(manager._tasks)
        await asyncio.sleep(0)

        await manager.close()

        assert all(task.done() for task in tasks)
        assert manager._tasks == []
        # The caller opened the session and closes it
        assert session.closed is False

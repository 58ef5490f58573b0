"""
Binance Futures feeds for one instrument.

Subscribes to four independent raw streams and routes each decoded message
into the market state:

    <symbol>@trade                 -> MarketState.on_trade
    <symbol>@depth20@100ms         -> MarketState.on_depth
    <symbol>@ticker                -> MarketState.on_ticker
    <symbol>@kline_<interval>      -> MarketState.on_kline

Each stream gets its own connection rather than one combined stream, so a
drop on one feed never interrupts the others.
"""

from __future__ import annotations

import logging

from ..config import DEPTH_STREAM_LEVELS, DEPTH_UPDATE_MS
from ..engine.market_state import MarketState
from ..types import FeedStatus, Instrument
from .connection import FeedConnection, StreamManager
from .messages import decode_depth, decode_kline, decode_ticker, decode_trade

logger = logging.getLogger(__name__)


def stream_names(instrument: Instrument) -> dict[str, str]:
    """Stream name per feed kind."""
    symbol = instrument.symbol.lower()
    return {
        'trade': f"{symbol}@trade",
        'depth': f"{symbol}@depth{DEPTH_STREAM_LEVELS}@{DEPTH_UPDATE_MS}ms",
        'ticker': f"{symbol}@ticker",
        'kline': f"{symbol}@kline_{instrument.interval}",
    }


class BinanceClient:
    """
    Wires the four Binance feeds of one instrument into a MarketState.

    Usage:
        client = BinanceClient(instrument, state, StreamManager(session))
        client.start()
    """

    def __init__(self, instrument: Instrument, state: MarketState, manager: StreamManager) -> None:
        self.instrument = instrument
        self.state = state
        self.manager = manager
        self.streams = stream_names(instrument)

    def start(self) -> list[FeedConnection]:
        """Open all four subscriptions. Must be called on the running loop."""
        handlers = {
            'trade': self._on_trade,
            'depth': self._on_depth,
            'ticker': self._on_ticker,
            'kline': self._on_kline,
        }
        connections = [
            self.manager.connect(self.streams[kind], handler)
            for kind, handler in handlers.items()
        ]
        logger.info("Subscribed to %s", ", ".join(self.streams.values()))
        return connections

    # HOT PATH handlers - one per feed message

    def _on_trade(self, payload: dict) -> None:
        self.state.on_trade(decode_trade(payload))

    def _on_depth(self, payload: dict) -> None:
        self.state.on_depth(decode_depth(payload))

    def _on_ticker(self, payload: dict) -> None:
        self.state.on_ticker(decode_ticker(payload))

    def _on_kline(self, payload: dict) -> None:
        self.state.on_kline(decode_kline(payload))

    def feed_status(self) -> list[FeedStatus]:
        return self.manager.statuses()

    async def stop(self) -> None:
        await self.manager.close()

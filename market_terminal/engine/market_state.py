"""
Bounded in-memory market state.

Four independent mutation paths (trade, depth, ticker, kline) write into one
store; the render cycle reads it back through snapshot().

HOT PATH: on_trade() and on_depth() are called for every feed message.

Notes:
- Bounded buffers are deques with maxlen, so eviction is O(1) and FIFO
- The order book is the feed's top-N partial depth, replaced wholesale on
  every message; no full book is reconstructed
- Every mutation and the snapshot read take the same lock, so the render
  path always sees all four slices from one point in time
"""

from __future__ import annotations

import logging
import threading
from collections import deque

from ..config import MAX_PRICES, MAX_TRADES
from ..datafeed.messages import parse_number
from ..types import DepthEvent, KlineEvent, Level, MarketSnapshot, TickerEvent, TradeEvent
from .views import format_trade

logger = logging.getLogger(__name__)


class MarketState:
    """
    Shared market state for one instrument.

    Created once at startup and lives for the process lifetime. Mutated only
    through on_trade/on_depth/on_ticker/on_kline, read only via snapshot().

    Thread-safety: all access is serialized on one lock.
    """

    __slots__ = (
        'prices', 'volumes', 'trades',
        'bids', 'asks', 'best_bid', 'best_ask',
        'ticker', '_lock',
    )

    def __init__(self, max_prices: int = MAX_PRICES, max_trades: int = MAX_TRADES) -> None:
        # Price and volume are evicted independently and may differ in length
        self.prices: deque[float] = deque(maxlen=max_prices)
        self.volumes: deque[float] = deque(maxlen=max_prices)
        self.trades: deque[str] = deque(maxlen=max_trades)

        self.bids: tuple[Level, ...] = ()
        self.asks: tuple[Level, ...] = ()
        self.best_bid: float = 0.0
        self.best_ask: float = 0.0

        self.ticker: dict = {}

        self._lock = threading.Lock()

    def on_trade(self, event: TradeEvent) -> None:
        """Append one formatted trade to the tape."""
        price = parse_number(event.price)
        if price is None:
            if event.price is not None:
                logger.debug("Skipping trade with invalid price %r", event.price)
            return
        qty = parse_number(event.qty) or 0.0

        record = format_trade(price, qty, event.is_buyer_maker, event.timestamp_ms)
        with self._lock:
            self.trades.append(record)

    def on_depth(self, event: DepthEvent) -> None:
        """Replace the order book from one partial depth message."""
        if event.bids is None or event.asks is None:
            return

        with self._lock:
            self.bids = event.bids
            self.asks = event.asks
            # An empty side keeps the previous best price
            if event.bids:
                self.best_bid = event.bids[0][0]
            if event.asks:
                self.best_ask = event.asks[0][0]

    def on_ticker(self, event: TickerEvent) -> None:
        """Replace the 24h ticker."""
        if not event.payload:
            return
        with self._lock:
            self.ticker = event.payload

    def on_kline(self, event: KlineEvent) -> None:
        """Append candle close and volume, each only if it parses."""
        if event.candle is None:
            return

        close = parse_number(event.candle.get('c'))
        volume = parse_number(event.candle.get('v', 0))

        with self._lock:
            if close is not None:
                self.prices.append(close)
            if volume is not None:
                self.volumes.append(volume)

    def snapshot(self) -> MarketSnapshot:
        """Immutable copy of all state slices, taken under one lock."""
        with self._lock:
            return MarketSnapshot(
                prices=tuple(self.prices),
                volumes=tuple(self.volumes),
                bids=self.bids,
                asks=self.asks,
                best_bid=self.best_bid,
                best_ask=self.best_ask,
                trades=tuple(self.trades),
                ticker=dict(self.ticker),
            )

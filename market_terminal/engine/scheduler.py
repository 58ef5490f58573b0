"""
Render scheduling.

One render cycle = one consistent state snapshot -> every view builder ->
push to the panel sink -> exactly one flush. The cycle is driven by a fixed
timer and never by message arrival, so any burst of updates between two
ticks is painted once.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Callable, Protocol

from ..config import RENDER_INTERVAL_SEC
from ..types import FeedStatus, Instrument
from .market_state import MarketState
from .views import build_feed_status, build_order_book, build_price_chart, build_trade_tape

logger = logging.getLogger(__name__)

# Panel identifiers
MARKET_PANEL = "market"
ORDER_BOOK_PANEL = "orderbook"
TRADES_PANEL = "trades"
FEEDS_PANEL = "feeds"

PANELS = (MARKET_PANEL, ORDER_BOOK_PANEL, TRADES_PANEL, FEEDS_PANEL)


class PanelSink(Protocol):
    """Minimal display surface: per-panel content plus one global flush."""

    def set_content(self, panel: str, content: str) -> None: ...

    def scroll_to_end(self, panel: str) -> None: ...

    def flush(self) -> None: ...


StatusProvider = Callable[[], list[FeedStatus]]


class RenderScheduler:
    """
    Pulls state through the view builders and paints the sink.

    The Textual UI drives render_once() from its own interval timer; run()
    is the same loop for use without Textual.
    """

    def __init__(
        self,
        state: MarketState,
        sink: PanelSink,
        instrument: Instrument,
        status_provider: StatusProvider | None = None,
        interval: float = RENDER_INTERVAL_SEC,
    ) -> None:
        self.state = state
        self.sink = sink
        self.instrument = instrument
        self.status_provider = status_provider or list
        self.interval = interval
        self.cycles: int = 0

    def build_panels(self) -> dict[str, str]:
        """Content for every panel from a single snapshot."""
        snap = self.state.snapshot()
        return {
            MARKET_PANEL: build_price_chart(snap.prices, snap.volumes, snap.ticker, self.instrument),
            ORDER_BOOK_PANEL: build_order_book(snap),
            TRADES_PANEL: build_trade_tape(snap),
            FEEDS_PANEL: build_feed_status(self.status_provider(), time.monotonic()),
        }

    def render_once(self) -> None:
        """One render cycle."""
        for panel, content in self.build_panels().items():
            self.sink.set_content(panel, content)
        self.sink.scroll_to_end(TRADES_PANEL)
        self.sink.flush()
        self.cycles += 1

    async def run(self) -> None:
        """Render every `interval` seconds until cancelled."""
        logger.info("Render loop started (every %.0fms)", self.interval * 1000)
        while True:
            self.render_once()
            await asyncio.sleep(self.interval)

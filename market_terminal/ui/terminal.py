"""
Terminal display using Textual.

Layout (2x2 grid):
- Top left: market info (ticker summary + price/volume sparklines)
- Top right: feed health
- Bottom left: order book bars
- Bottom right: live trade tape

Performance notes:
- Panel content is buffered and applied in one batch_update() per render
  cycle, so the screen repaints once per tick regardless of message rate
- The app never reads feeds directly; it only calls RenderScheduler
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import VerticalScroll
from textual.widgets import Footer, Header, Static

from ..config import RENDER_INTERVAL_SEC
from ..engine.scheduler import (
    FEEDS_PANEL,
    MARKET_PANEL,
    ORDER_BOOK_PANEL,
    TRADES_PANEL,
    RenderScheduler,
    StatusProvider,
)

if TYPE_CHECKING:
    from ..engine.market_state import MarketState
    from ..types import Instrument

logger = logging.getLogger(__name__)

# Grid order: row by row
PANEL_TITLES = (
    (MARKET_PANEL, "MARKET INFO"),
    (FEEDS_PANEL, "FEEDS"),
    (ORDER_BOOK_PANEL, "ORDER BOOK"),
    (TRADES_PANEL, "LIVE TRADES"),
)


class TextualPanelSink:
    """PanelSink over the app's panels. Nothing is painted until flush()."""

    def __init__(self, app: App) -> None:
        self.app = app
        self._pending: dict[str, str] = {}
        self._scroll: set[str] = set()

    def set_content(self, panel: str, content: str) -> None:
        self._pending[panel] = content

    def scroll_to_end(self, panel: str) -> None:
        self._scroll.add(panel)

    def flush(self) -> None:
        with self.app.batch_update():
            for panel, content in self._pending.items():
                self.app.query_one(f"#{panel}-content", Static).update(content)
            for panel in self._scroll:
                self.app.query_one(f"#{panel}-box", VerticalScroll).scroll_end(animate=False)
        self._pending.clear()
        self._scroll.clear()


class TerminalApp(App):
    """Main Market Terminal application."""

    TITLE = "Market Terminal"

    CSS = """
    Screen {
        layout: grid;
        grid-size: 2 2;
        grid-columns: 3fr 2fr;
        background: #0f172a;
    }

    .panel {
        border: round $accent;
        border-title-style: bold;
        padding: 0 1;
    }

    #market-box { border: round cyan; }
    #feeds-box { border: round white; }
    #orderbook-box { border: round red; }
    #trades-box { border: round yellow; }
    """

    BINDINGS = [
        Binding("q", "quit", "Quit"),
        Binding("escape", "quit", "Quit", show=False, priority=True),
        Binding("ctrl+c", "quit", "Quit", show=False, priority=True),
    ]

    def __init__(
        self,
        state: MarketState,
        instrument: Instrument,
        status_provider: StatusProvider | None = None,
        render_interval: float = RENDER_INTERVAL_SEC,
    ) -> None:
        super().__init__()
        self.sub_title = f"{instrument.display_symbol} {instrument.interval}"
        self.sink = TextualPanelSink(self)
        self.scheduler = RenderScheduler(
            state=state,
            sink=self.sink,
            instrument=instrument,
            status_provider=status_provider,
            interval=render_interval,
        )

    def compose(self) -> ComposeResult:
        yield Header()
        for panel, title in PANEL_TITLES:
            box = VerticalScroll(Static("", id=f"{panel}-content"), id=f"{panel}-box", classes="panel")
            box.border_title = title
            yield box
        yield Footer()

    def on_mount(self) -> None:
        """Paint once, then repaint on a fixed timer."""
        self.scheduler.render_once()
        self.set_interval(self.scheduler.interval, self.scheduler.render_once)
        logger.info("UI mounted, repainting every %.0fms", self.scheduler.interval * 1000)


async def run_ui(
    state: MarketState,
    instrument: Instrument,
    status_provider: StatusProvider | None = None,
    render_interval: float = RENDER_INTERVAL_SEC,
) -> None:
    """Run the TUI application until the user quits."""
    app = TerminalApp(state, instrument, status_provider, render_interval)
    await app.run_async()

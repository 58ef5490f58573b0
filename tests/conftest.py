"""Shared fixtures for Market Terminal tests."""

from __future__ import annotations

import pytest

from market_terminal.engine.market_state import MarketState
from market_terminal.types import Instrument


class RecordingSink:
    """PanelSink that records every call in order."""

    def __init__(self) -> None:
        self.calls: list[tuple] = []
        self.content: dict[str, str] = {}

    def set_content(self, panel: str, content: str) -> None:
        self.calls.append(("set_content", panel))
        self.content[panel] = content

    def scroll_to_end(self, panel: str) -> None:
        self.calls.append(("scroll_to_end", panel))

    def flush(self) -> None:
        self.calls.append(("flush",))

    @property
    def flushes(self) -> int:
        return sum(1 for call in self.calls if call[0] == "flush")


@pytest.fixture
def instrument() -> Instrument:
    return Instrument(symbol="btcusdt", interval="1m")


@pytest.fixture
def state() -> MarketState:
    return MarketState()


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()

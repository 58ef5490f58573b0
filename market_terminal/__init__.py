"""
Market Terminal - Real-time market-data dashboard for Binance Futures.

Architecture:
- datafeed/: WebSocket subscriptions and per-feed message decoding
- engine/: Bounded market state, view builders, render scheduling
- ui/: Terminal panels (Textual TUI)
"""

__version__ = "0.1.0"

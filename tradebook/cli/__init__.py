"""CLI commands for TradeBook.

This package provides the ``tradebook`` command and its holdings,
positions, orders, watchlist and market groups.
"""

from tradebook.cli.main import cli, main

__all__ = ["cli", "main"]

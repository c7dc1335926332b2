"""TradeBook - portfolio bookkeeping for holdings, positions, orders and watchlists."""

__version__ = "0.1.0"

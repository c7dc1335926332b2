"""Market data commands for TradeBook CLI."""

import click
from rich.table import Table

from tradebook.cli.common import console, fail
from tradebook.config import get_price_source, load_config
from tradebook.errors import TradeBookError


@click.group()
def market() -> None:
    """Look up simulated market data.

    \b
    Examples:
      tradebook market quote INFY
      tradebook market indices
      tradebook market search bank
    """
    pass


@market.command("quote")
@click.argument("symbols", nargs=-1, required=True)
@click.option("-e", "--exchange", type=click.Choice(["NSE", "BSE"]), default="NSE")
def quote(symbols: tuple[str, ...], exchange: str) -> None:
    """Get quotes for one or more symbols."""
    try:
        source = get_price_source(load_config())
        quotes = [source.get_quote(symbol, exchange) for symbol in symbols]
    except TradeBookError as e:
        fail("Failed to get quote", e)

    table = Table(title="Quotes", show_header=True, header_style="bold cyan")
    table.add_column("Symbol", style="bold")
    table.add_column("LTP", justify="right")
    table.add_column("Change", justify="right")
    table.add_column("High", justify="right")
    table.add_column("Low", justify="right")
    table.add_column("Volume", justify="right", style="dim")

    for q in quotes:
        color = "green" if q.change >= 0 else "red"
        sign = "+" if q.change >= 0 else ""
        table.add_row(
            q.symbol,
            f"₹{q.ltp:.2f}",
            f"[{color}]{sign}{q.change:.2f} ({sign}{q.change_percent:.2f}%)[/{color}]",
            f"₹{q.high:.2f}",
            f"₹{q.low:.2f}",
            f"{q.volume:,}",
        )

    console.print(table)


@market.command("indices")
def indices() -> None:
    """Show the major index levels."""
    try:
        levels = get_price_source(load_config()).get_indices()
    except TradeBookError as e:
        fail("Failed to get indices", e)

    table = Table(title="Indices", show_header=True, header_style="bold cyan")
    table.add_column("Index", style="bold")
    table.add_column("Value", justify="right")
    table.add_column("Change", justify="right")

    for index in levels:
        color = "green" if index.change_percent >= 0 else "red"
        sign = "+" if index.change_percent >= 0 else ""
        table.add_row(
            index.name,
            f"{index.value:,.2f}",
            f"[{color}]{sign}{index.change_percent:.2f}%[/{color}]",
        )

    console.print(table)


@market.command("search")
@click.argument("query")
def search(query: str) -> None:
    """Search instruments by symbol or company name."""
    try:
        results = get_price_source(load_config()).search(query)
    except TradeBookError as e:
        fail("Search failed", e)

    if not results:
        console.print(f"[yellow]No instruments match '{query}'[/yellow]")
        return

    table = Table(title=f"Search: {query}", show_header=True, header_style="bold cyan")
    table.add_column("Symbol", style="bold")
    table.add_column("Name")
    table.add_column("Exchange", style="dim")
    table.add_column("Price", justify="right")

    for info in results:
        table.add_row(info.symbol, info.name, info.exchange, f"₹{info.price:.2f}")

    console.print(table)

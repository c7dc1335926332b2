"""Holding commands for TradeBook CLI."""

from typing import Optional

import click
from rich.panel import Panel
from rich.table import Table

from tradebook.cli.common import AppContext, console, fail, print_bulk_result, read_updates, signed
from tradebook.errors import TradeBookError
from tradebook.services import HoldingService


def _service(app: AppContext) -> HoldingService:
    return HoldingService(app.store.holdings)


def _print_holding(holding: dict) -> None:
    lines = [
        f"[bold]{holding['symbol']}[/bold] [dim]{holding['exchange']} #{holding['id']}[/dim]",
        f"Quantity:      {holding['quantity']} "
        f"[dim](available {holding['available_quantity']})[/dim]",
        f"Avg Price:     ₹{holding['average_price']:.2f}",
        f"Current Price: ₹{holding['current_price']:.2f}",
        f"Invested:      ₹{holding['invested_amount']}",
        f"Value:         ₹{holding['current_value']}",
        f"P&L:           {signed(holding['profit_loss'])} "
        f"({signed(holding['profit_loss_percentage'], '%', prefix='')})",
    ]
    console.print(Panel("\n".join(lines), title="[bold]Holding[/bold]", border_style="cyan"))


@click.group()
def holdings() -> None:
    """Manage delivery holdings.

    \b
    Examples:
      tradebook holdings list
      tradebook holdings add INFY 10 1500 1550
      tradebook holdings update 1 --price 1600
      tradebook holdings bulk-update prices.json
    """
    pass


@holdings.command("list")
def list_holdings() -> None:
    """Show all holdings with portfolio totals."""
    try:
        app = AppContext()
        result = _service(app).list_holdings(app.owner_id)
    except TradeBookError as e:
        fail("Failed to list holdings", e)

    if not result["holdings"]:
        console.print(Panel(
            "[dim]No holdings[/dim]\n\n"
            "Add one with: [cyan]tradebook holdings add SYMBOL QTY AVG PRICE[/cyan]",
            title="[bold]Holdings[/bold]",
            border_style="dim",
        ))
        return

    table = Table(title="Holdings", show_header=True, header_style="bold cyan")
    table.add_column("ID", style="dim", justify="right")
    table.add_column("Symbol", style="bold")
    table.add_column("Qty", justify="right")
    table.add_column("Avg Price", justify="right")
    table.add_column("LTP", justify="right")
    table.add_column("Value", justify="right")
    table.add_column("P&L", justify="right")
    table.add_column("P&L %", justify="right")

    for h in result["holdings"]:
        table.add_row(
            str(h["id"]),
            h["symbol"],
            str(h["quantity"]),
            f"₹{h['average_price']:.2f}",
            f"₹{h['current_price']:.2f}",
            f"₹{h['current_value']}",
            signed(h["profit_loss"]),
            signed(h["profit_loss_percentage"], "%", prefix=""),
        )

    console.print(table)

    metrics = result["metrics"]
    console.print(f"\n[bold]Invested:[/bold]  ₹{metrics['total_investment']}")
    console.print(f"[bold]Value:[/bold]     ₹{metrics['current_value']}")
    console.print(f"[bold]Today:[/bold]     {signed(metrics['todays_pnl'])}")
    console.print(
        f"[bold]Total P&L:[/bold] {signed(metrics['total_pnl'])} "
        f"({signed(metrics['total_pnl_percentage'], '%', prefix='')})"
    )


@holdings.command("show")
@click.argument("holding_id", type=int)
def show_holding(holding_id: int) -> None:
    """Show one holding."""
    try:
        app = AppContext()
        holding = _service(app).get_holding(app.owner_id, holding_id)
    except TradeBookError as e:
        fail("Failed to get holding", e)
    _print_holding(holding)


@holdings.command("add")
@click.argument("symbol")
@click.argument("quantity", type=int)
@click.argument("average_price", type=float)
@click.argument("current_price", type=float)
@click.option("-e", "--exchange", type=click.Choice(["NSE", "BSE"]), default="NSE")
@click.option("--isin", default=None, help="ISIN code.")
@click.option("--company", "company_name", default=None, help="Company name.")
@click.option("--sector", default=None, help="Sector.")
def add_holding(
    symbol: str,
    quantity: int,
    average_price: float,
    current_price: float,
    exchange: str,
    isin: Optional[str],
    company_name: Optional[str],
    sector: Optional[str],
) -> None:
    """Record a holding.

    \b
    Examples:
      tradebook holdings add INFY 10 1500 1550
      tradebook holdings add SBIN 50 600 610 -e BSE
    """
    extra = {"isin": isin, "company_name": company_name, "sector": sector}
    try:
        app = AppContext()
        holding = _service(app).add_holding(
            app.owner_id,
            symbol,
            quantity,
            average_price,
            current_price,
            exchange=exchange,
            **{k: v for k, v in extra.items() if v is not None},
        )
    except TradeBookError as e:
        fail("Failed to add holding", e)

    console.print(f"[green]✓ Added {holding['symbol']} (#{holding['id']})[/green]")
    _print_holding(holding)


@holdings.command("update")
@click.argument("holding_id", type=int)
@click.option("-q", "--qty", "quantity", type=int, default=None, help="New quantity.")
@click.option("-a", "--avg", "average_price", type=float, default=None, help="New average price.")
@click.option("-p", "--price", "current_price", type=float, default=None, help="New current price.")
def update_holding(
    holding_id: int,
    quantity: Optional[int],
    average_price: Optional[float],
    current_price: Optional[float],
) -> None:
    """Update quantity or prices of a holding."""
    try:
        app = AppContext()
        holding = _service(app).update_holding(
            app.owner_id, holding_id, quantity, average_price, current_price
        )
    except TradeBookError as e:
        fail("Failed to update holding", e)
    _print_holding(holding)


@holdings.command("delete")
@click.argument("holding_id", type=int)
def delete_holding(holding_id: int) -> None:
    """Delete a holding."""
    try:
        app = AppContext()
        deleted = _service(app).delete_holding(app.owner_id, holding_id)
    except TradeBookError as e:
        fail("Failed to delete holding", e)
    console.print(f"[green]✓ Deleted {deleted['symbol']} (#{deleted['id']})[/green]")


@holdings.command("bulk-update")
@click.argument("source", type=click.File("r"), default="-")
def bulk_update(source) -> None:
    """Update current prices from a JSON list.

    SOURCE is a file (default: stdin) containing
    [{"id": 1, "price": 1550.5}, ...].
    """
    try:
        app = AppContext()
        result = _service(app).bulk_update_prices(app.owner_id, read_updates(source))
    except TradeBookError as e:
        fail("Bulk update failed", e)
    print_bulk_result(result, "holdings")


@holdings.command("refresh")
def refresh_holdings() -> None:
    """Refresh current prices from the market price source."""
    try:
        app = AppContext()
        result = _service(app).refresh_prices(app.owner_id, app.price_source())
    except TradeBookError as e:
        fail("Failed to refresh prices", e)
    print_bulk_result(result, "holdings")

"""Position commands for TradeBook CLI."""

from typing import Optional

import click
from rich.panel import Panel
from rich.table import Table

from tradebook.cli.common import AppContext, console, fail, print_bulk_result, read_updates, signed
from tradebook.errors import TradeBookError
from tradebook.services import PositionService

PRODUCT_CHOICE = click.Choice(["CNC", "MIS", "NRML"], case_sensitive=False)


def _service(app: AppContext) -> PositionService:
    return PositionService(app.store.positions)


def _print_position(position: dict) -> None:
    side = "LONG" if position["quantity"] > 0 else "SHORT" if position["quantity"] < 0 else "FLAT"
    lines = [
        f"[bold]{position['symbol']}[/bold] [dim]{position['exchange']} "
        f"{position['product']} #{position['id']}[/dim]",
        f"Side:       {side} {abs(position['quantity'])}",
        f"Avg Price:  ₹{position['average_price']:.2f}",
        f"LTP:        ₹{position['last_traded_price']:.2f}",
        f"Bought:     {position['buy_quantity']} / Sold: {position['sell_quantity']}",
        f"Unrealized: {signed(position['unrealized_pnl'])}",
        f"Total P&L:  {signed(position['total_pnl'])}",
    ]
    console.print(Panel("\n".join(lines), title="[bold]Position[/bold]", border_style="cyan"))


@click.group()
def positions() -> None:
    """Manage open positions.

    \b
    Examples:
      tradebook positions list --product MIS
      tradebook positions add RELIANCE MIS 10 2500 2510
      tradebook positions fill 1 SELL 5 2520
      tradebook positions square-off 1
    """
    pass


@positions.command("list")
@click.option("--product", type=PRODUCT_CHOICE, default=None, help="Only this product type.")
def list_positions(product: Optional[str]) -> None:
    """Show open positions with P&L totals."""
    try:
        app = AppContext()
        result = _service(app).list_positions(app.owner_id, product)
    except TradeBookError as e:
        fail("Failed to get positions", e)

    if not result["positions"]:
        console.print(Panel(
            "[dim]No open positions[/dim]",
            title="[bold]Positions[/bold]",
            border_style="dim",
        ))
        return

    table = Table(title="Open Positions", show_header=True, header_style="bold cyan")
    table.add_column("ID", style="dim", justify="right")
    table.add_column("Symbol", style="bold")
    table.add_column("Qty", justify="right")
    table.add_column("Avg Price", justify="right")
    table.add_column("LTP", justify="right")
    table.add_column("P&L", justify="right")
    table.add_column("Realized", justify="right")
    table.add_column("Product", justify="center", style="dim")

    for p in result["positions"]:
        table.add_row(
            str(p["id"]),
            p["symbol"],
            str(p["quantity"]),
            f"₹{p['average_price']:.2f}",
            f"₹{p['last_traded_price']:.2f}",
            signed(p["unrealized_pnl"]),
            signed(f"{p['realized_pnl']:.2f}"),
            p["product"],
        )

    console.print(table)

    metrics = result["metrics"]
    console.print(f"\n[bold]Exposure:[/bold]  ₹{metrics['current_value']}")
    console.print(f"[bold]Day P&L:[/bold]   {signed(metrics['day_pnl'])}")
    console.print(
        f"[bold]Total P&L:[/bold] {signed(metrics['total_pnl'])} "
        f"({signed(metrics['total_pnl_percentage'], '%', prefix='')})"
    )


@positions.command("show")
@click.argument("position_id", type=int)
def show_position(position_id: int) -> None:
    """Show one position."""
    try:
        app = AppContext()
        position = _service(app).get_position(app.owner_id, position_id)
    except TradeBookError as e:
        fail("Failed to get position", e)
    _print_position(position)


@positions.command("add")
@click.argument("symbol")
@click.argument("product", type=PRODUCT_CHOICE)
@click.argument("quantity", type=int)
@click.argument("average_price", type=float)
@click.argument("last_traded_price", type=float)
@click.option("-e", "--exchange", type=click.Choice(["NSE", "BSE"]), default="NSE")
@click.option("-m", "--multiplier", type=float, default=1.0, help="Contract multiplier.")
@click.option("--overnight", is_flag=True, default=False, help="Carried from a previous session.")
def add_position(
    symbol: str,
    product: str,
    quantity: int,
    average_price: float,
    last_traded_price: float,
    exchange: str,
    multiplier: float,
    overnight: bool,
) -> None:
    """Open a position. Use a negative QUANTITY for a short.

    \b
    Examples:
      tradebook positions add RELIANCE MIS 10 2500 2510
      tradebook positions add -- TCS MIS -5 3500 3480
    """
    try:
        app = AppContext()
        position = _service(app).add_position(
            app.owner_id,
            symbol,
            product,
            quantity,
            average_price,
            last_traded_price,
            exchange=exchange,
            multiplier=multiplier,
            overnight=overnight,
        )
    except TradeBookError as e:
        fail("Failed to add position", e)

    console.print(f"[green]✓ Opened {position['symbol']} (#{position['id']})[/green]")
    _print_position(position)


@positions.command("update")
@click.argument("position_id", type=int)
@click.option("-q", "--qty", "quantity", type=int, default=None, help="New signed quantity.")
@click.option("-a", "--avg", "average_price", type=float, default=None, help="New average price.")
@click.option("-p", "--price", "last_traded_price", type=float, default=None, help="New LTP.")
def update_position(
    position_id: int,
    quantity: Optional[int],
    average_price: Optional[float],
    last_traded_price: Optional[float],
) -> None:
    """Update quantity or prices of a position."""
    try:
        app = AppContext()
        position = _service(app).update_position(
            app.owner_id, position_id, quantity, average_price, last_traded_price
        )
    except TradeBookError as e:
        fail("Failed to update position", e)
    _print_position(position)


@positions.command("delete")
@click.argument("position_id", type=int)
def delete_position(position_id: int) -> None:
    """Delete a position without booking P&L."""
    try:
        app = AppContext()
        deleted = _service(app).delete_position(app.owner_id, position_id)
    except TradeBookError as e:
        fail("Failed to delete position", e)
    console.print(f"[green]✓ Deleted {deleted['symbol']} {deleted['product']}[/green]")


@positions.command("square-off")
@click.argument("position_id", type=int)
def square_off(position_id: int) -> None:
    """Close a position at its last traded price."""
    try:
        app = AppContext()
        result = _service(app).square_off(app.owner_id, position_id)
    except TradeBookError as e:
        fail("Failed to square off position", e)

    console.print(Panel(
        f"[bold]{result['symbol']}[/bold] {result['product']} squared off\n\n"
        f"Final P&L: {signed(result['final_pnl'])} "
        f"({signed(result['pnl_percentage'], '%', prefix='')})",
        title="[bold green]Squared Off[/bold green]",
        border_style="green",
    ))


@positions.command("fill")
@click.argument("position_id", type=int)
@click.argument("side", type=click.Choice(["BUY", "SELL"], case_sensitive=False))
@click.argument("quantity", type=int)
@click.argument("price", type=float)
def record_fill(position_id: int, side: str, quantity: int, price: float) -> None:
    """Apply an executed trade to a position."""
    try:
        app = AppContext()
        position = _service(app).record_fill(app.owner_id, position_id, side, quantity, price)
    except TradeBookError as e:
        fail("Failed to record fill", e)
    _print_position(position)


@positions.command("bulk-update")
@click.argument("source", type=click.File("r"), default="-")
def bulk_update(source) -> None:
    """Update last traded prices from a JSON list.

    SOURCE is a file (default: stdin) containing
    [{"id": 1, "price": 2510.0}, ...].
    """
    try:
        app = AppContext()
        result = _service(app).bulk_update_prices(app.owner_id, read_updates(source))
    except TradeBookError as e:
        fail("Bulk update failed", e)
    print_bulk_result(result, "positions")

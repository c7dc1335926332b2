"""Order commands for TradeBook CLI."""

from datetime import datetime
from typing import Optional

import click
from rich.panel import Panel
from rich.table import Table

from tradebook.cli.common import AppContext, console, fail
from tradebook.errors import TradeBookError
from tradebook.services import OrderService

STATUS_COLORS = {
    "PENDING": "yellow",
    "OPEN": "yellow",
    "EXECUTED": "green",
    "CANCELLED": "dim",
    "REJECTED": "red",
}


def _service(app: AppContext) -> OrderService:
    return OrderService(app.store.orders)


def _status(status: str) -> str:
    color = STATUS_COLORS.get(status, "white")
    return f"[{color}]{status}[/{color}]"


def _price(value: Optional[float]) -> str:
    return f"₹{value:.2f}" if value is not None else "-"


def _print_order(order: dict) -> None:
    lines = [
        f"[bold]{order['transaction_type']} {order['symbol']}[/bold] "
        f"[dim]{order['exchange']} {order['product']} #{order['id']}[/dim]",
        f"Status:    {_status(order['status'])}",
        f"Type:      {order['order_type']} ({order['validity']})",
        f"Quantity:  {order['quantity']} "
        f"[dim](filled {order['filled_quantity']}, remaining {order['remaining_quantity']})[/dim]",
        f"Price:     {_price(order['price'])}",
        f"Trigger:   {_price(order['trigger_price'])}",
        f"Value:     ₹{order['order_value']:.2f}",
    ]
    if order["status"] == "EXECUTED":
        lines.append(f"Avg Fill:  ₹{order['average_price']:.2f}")
    if order["rejection_reason"]:
        lines.append(f"Reason:    [red]{order['rejection_reason']}[/red]")
    if order["tags"]:
        lines.append(f"Tags:      {', '.join(order['tags'])}")
    console.print(Panel("\n".join(lines), title="[bold]Order[/bold]", border_style="cyan"))


@click.group()
def orders() -> None:
    """Place and manage orders.

    \b
    Examples:
      tradebook orders place INFY BUY 10                     # MARKET
      tradebook orders place INFY BUY 10 -t LIMIT -p 1500
      tradebook orders place TCS SELL 5 -t SL -p 3400 --trigger 3390
      tradebook orders modify 3 --price 1490
      tradebook orders list --status PENDING
    """
    pass


@orders.command("list")
@click.option("-s", "--status", default=None, help="Only orders in this status.")
@click.option("--side", "transaction_type", default=None, help="BUY or SELL.")
@click.option(
    "-d", "--date", "on_date",
    type=click.DateTime(formats=["%Y-%m-%d"]),
    default=None,
    help="Only orders placed on this day (YYYY-MM-DD).",
)
@click.option("--page", type=int, default=1, show_default=True)
@click.option("--limit", type=int, default=20, show_default=True)
def list_orders(
    status: Optional[str],
    transaction_type: Optional[str],
    on_date: Optional[datetime],
    page: int,
    limit: int,
) -> None:
    """List orders, newest first."""
    try:
        app = AppContext()
        result = _service(app).list_orders(
            app.owner_id,
            status=status,
            transaction_type=transaction_type,
            on_date=on_date.date() if on_date else None,
            page=page,
            limit=limit,
        )
    except TradeBookError as e:
        fail("Failed to list orders", e)

    if not result["orders"]:
        console.print(Panel("[dim]No orders[/dim]", title="[bold]Orders[/bold]", border_style="dim"))
        return

    table = Table(title="Orders", show_header=True, header_style="bold cyan")
    table.add_column("ID", style="dim", justify="right")
    table.add_column("Time", style="dim")
    table.add_column("Symbol", style="bold")
    table.add_column("Side", justify="center")
    table.add_column("Type", justify="center")
    table.add_column("Qty", justify="right")
    table.add_column("Price", justify="right")
    table.add_column("Status", justify="center")

    for o in result["orders"]:
        side_color = "green" if o["transaction_type"] == "BUY" else "red"
        table.add_row(
            str(o["id"]),
            o["created_at"][:16].replace("T", " "),
            o["symbol"],
            f"[{side_color}]{o['transaction_type']}[/{side_color}]",
            o["order_type"],
            str(o["quantity"]),
            _price(o["price"]),
            _status(o["status"]),
        )

    console.print(table)
    pagination = result["pagination"]
    console.print(
        f"[dim]Page {pagination['page']} of {pagination['pages']} "
        f"({pagination['total']} orders)[/dim]"
    )


@orders.command("show")
@click.argument("order_id", type=int)
def show_order(order_id: int) -> None:
    """Show one order."""
    try:
        app = AppContext()
        order = _service(app).get_order(app.owner_id, order_id)
    except TradeBookError as e:
        fail("Failed to get order", e)
    _print_order(order)


@orders.command("place")
@click.argument("symbol")
@click.argument("side", type=click.Choice(["BUY", "SELL"], case_sensitive=False))
@click.argument("quantity", type=int)
@click.option(
    "-t", "--type", "order_type",
    type=click.Choice(["MARKET", "LIMIT", "SL", "SL-M"], case_sensitive=False),
    default="MARKET",
    show_default=True,
)
@click.option("-p", "--price", type=float, default=None, help="Limit price (LIMIT and SL).")
@click.option("--trigger", "trigger_price", type=float, default=None, help="Trigger (SL and SL-M).")
@click.option(
    "--product",
    type=click.Choice(["CNC", "MIS", "NRML"], case_sensitive=False),
    default="CNC",
    show_default=True,
)
@click.option(
    "--validity",
    type=click.Choice(["DAY", "IOC"], case_sensitive=False),
    default="DAY",
    show_default=True,
)
@click.option("-e", "--exchange", type=click.Choice(["NSE", "BSE"]), default="NSE")
@click.option("--tag", "tags", multiple=True, help="Tag the order (repeatable).")
@click.option("--notes", default=None, help="Free-form notes.")
def place_order(
    symbol: str,
    side: str,
    quantity: int,
    order_type: str,
    price: Optional[float],
    trigger_price: Optional[float],
    product: str,
    validity: str,
    exchange: str,
    tags: tuple[str, ...],
    notes: Optional[str],
) -> None:
    """Place an order.

    SIDE is BUY or SELL. MARKET orders need no price; LIMIT needs --price;
    SL needs --price and a lower --trigger; SL-M needs --trigger.
    """
    fields = {
        "symbol": symbol,
        "exchange": exchange,
        "transaction_type": side,
        "order_type": order_type,
        "product": product,
        "quantity": quantity,
        "validity": validity,
        "tags": list(tags),
    }
    if price is not None:
        fields["price"] = price
    if trigger_price is not None:
        fields["trigger_price"] = trigger_price
    if notes:
        fields["notes"] = notes

    try:
        app = AppContext()
        order = _service(app).place_order(app.owner_id, **fields)
    except TradeBookError as e:
        fail("Order placement failed", e)

    console.print(f"[green]✓ Order placed (#{order['id']})[/green]")
    _print_order(order)


@orders.command("modify")
@click.argument("order_id", type=int)
@click.option("-q", "--qty", "quantity", type=int, default=None, help="New quantity.")
@click.option("-p", "--price", type=float, default=None, help="New limit price.")
@click.option("--trigger", "trigger_price", type=float, default=None, help="New trigger price.")
@click.option(
    "--validity",
    type=click.Choice(["DAY", "IOC"], case_sensitive=False),
    default=None,
)
def modify_order(
    order_id: int,
    quantity: Optional[int],
    price: Optional[float],
    trigger_price: Optional[float],
    validity: Optional[str],
) -> None:
    """Modify a pending order."""
    patch = {
        "quantity": quantity,
        "price": price,
        "trigger_price": trigger_price,
        "validity": validity,
    }
    try:
        app = AppContext()
        order = _service(app).modify_order(
            app.owner_id, order_id, **{k: v for k, v in patch.items() if v is not None}
        )
    except TradeBookError as e:
        fail("Failed to modify order", e)

    console.print(f"[green]✓ Order #{order_id} modified[/green]")
    _print_order(order)


@orders.command("cancel")
@click.argument("order_id", type=int)
def cancel_order(order_id: int) -> None:
    """Cancel a pending order."""
    try:
        app = AppContext()
        _service(app).cancel_order(app.owner_id, order_id)
    except TradeBookError as e:
        fail("Failed to cancel order", e)
    console.print(f"[green]✓ Order #{order_id} cancelled[/green]")


@orders.command("execute")
@click.argument("order_id", type=int)
@click.option("-p", "--price", "average_price", type=float, default=None, help="Fill price.")
def execute_order(order_id: int, average_price: Optional[float]) -> None:
    """Mark a pending order as executed."""
    try:
        app = AppContext()
        order = _service(app).execute_order(app.owner_id, order_id, average_price)
    except TradeBookError as e:
        fail("Failed to execute order", e)
    console.print(
        f"[green]✓ Order #{order_id} executed @ ₹{order['average_price']:.2f}[/green]"
    )


@orders.command("reject")
@click.argument("order_id", type=int)
@click.argument("reason")
def reject_order(order_id: int, reason: str) -> None:
    """Mark a pending order as rejected."""
    try:
        app = AppContext()
        _service(app).reject_order(app.owner_id, order_id, reason)
    except TradeBookError as e:
        fail("Failed to reject order", e)
    console.print(f"[yellow]Order #{order_id} rejected: {reason}[/yellow]")

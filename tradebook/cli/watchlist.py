"""Watchlist management commands for TradeBook CLI.

Supports multiple named watchlists; one of them is the default used when
no --list is given.
"""

from typing import Optional

import click
from rich.panel import Panel
from rich.table import Table

from tradebook.cli.common import AppContext, console, fail
from tradebook.errors import NotFoundError, TradeBookError
from tradebook.services import WatchlistManager


def _manager(app: AppContext) -> WatchlistManager:
    return WatchlistManager(app.store.watchlists)


def _resolve_id(manager: WatchlistManager, owner_id: str, list_name: Optional[str]) -> int:
    """Look up a watchlist ID by name, or the default one when name is None."""
    if list_name is None:
        default = manager.get_default(owner_id)
        if default is None:
            raise NotFoundError("Default watchlist")
        return default["id"]
    watchlist = manager.find_by_name(owner_id, list_name)
    if watchlist is None:
        raise NotFoundError("Watchlist", list_name)
    return watchlist.id


def _print_watchlist(watchlist: dict) -> None:
    title = watchlist["name"] + (" ★" if watchlist["is_default"] else "")
    if not watchlist["items"]:
        console.print(Panel(
            "[dim]Watchlist is empty[/dim]\n\n"
            "Add symbols with: [cyan]tradebook watch add SYMBOL[/cyan]",
            title=f"[bold]{title}[/bold]",
            border_style="dim",
        ))
        return

    table = Table(title=f"Watchlist: {title}", show_header=True, header_style="bold cyan")
    table.add_column("#", style="dim", justify="right")
    table.add_column("Symbol", style="bold")
    table.add_column("Exchange", style="dim")
    table.add_column("LTP", justify="right")
    table.add_column("Change", justify="right")
    table.add_column("Notes", style="dim")

    for i, item in enumerate(watchlist["items"], 1):
        if item["last_price"] is None:
            ltp, change = "-", "-"
        else:
            color = "green" if item["change_value"] >= 0 else "red"
            sign = "+" if item["change_value"] >= 0 else ""
            ltp = f"₹{item['last_price']:.2f}"
            change = f"[{color}]{sign}{item['change_percentage']:.2f}%[/{color}]"
        table.add_row(str(i), item["symbol"], item["exchange"], ltp, change, item["notes"] or "")

    console.print(table)
    console.print(f"\n[dim]Total: {watchlist['items_count']} symbols[/dim]")


@click.group()
def watch() -> None:
    """Manage watchlists.

    Add, remove, reorder and view symbols in named watchlists.

    \b
    Examples:
      tradebook watch init                  # Default list with 5 large caps
      tradebook watch add RELIANCE          # Add to the default watchlist
      tradebook watch create tech
      tradebook watch add INFY --list tech
      tradebook watch reorder tech TCS INFY
    """
    pass


@watch.command("list")
def list_watchlists() -> None:
    """List all watchlists."""
    try:
        app = AppContext()
        watchlists = _manager(app).list(app.owner_id)
    except TradeBookError as e:
        fail("Failed to list watchlists", e)

    if not watchlists:
        console.print(Panel(
            "[dim]No watchlists[/dim]\n\n"
            "Create one with: [cyan]tradebook watch init[/cyan]",
            title="[bold]Watchlists[/bold]",
            border_style="dim",
        ))
        return

    table = Table(title="Watchlists", show_header=True, header_style="bold cyan")
    table.add_column("Name", style="bold")
    table.add_column("Symbols", justify="right")
    table.add_column("Default", justify="center")
    table.add_column("Description", style="dim")

    for w in watchlists:
        table.add_row(
            w["name"],
            str(w["items_count"]),
            "★" if w["is_default"] else "",
            w["description"] or "",
        )

    console.print(table)


@watch.command("show")
@click.argument("list_name", required=False)
@click.option("-r", "--refresh", is_flag=True, default=False, help="Refresh prices first.")
def show_watchlist(list_name: Optional[str], refresh: bool) -> None:
    """Show the symbols of a watchlist (default: the default watchlist)."""
    try:
        app = AppContext()
        manager = _manager(app)
        watchlist_id = _resolve_id(manager, app.owner_id, list_name)
        if refresh:
            watchlist = manager.refresh_prices(app.owner_id, watchlist_id, app.price_source())
        else:
            watchlist = manager.get(app.owner_id, watchlist_id)
    except TradeBookError as e:
        fail("Failed to get watchlist", e)
    _print_watchlist(watchlist)


@watch.command("create")
@click.argument("name")
@click.option("-d", "--description", default=None, help="Description.")
@click.option("--default", "is_default", is_flag=True, default=False, help="Make it the default.")
@click.option("--color", default=None, help="Hex color, e.g. #1E88E5.")
def create_watchlist(
    name: str, description: Optional[str], is_default: bool, color: Optional[str]
) -> None:
    """Create an empty watchlist."""
    fields = {"description": description, "color": color}
    try:
        app = AppContext()
        watchlist = _manager(app).create(
            app.owner_id,
            name,
            is_default=is_default,
            **{k: v for k, v in fields.items() if v is not None},
        )
    except TradeBookError as e:
        fail("Failed to create watchlist", e)
    console.print(f"[green]✓ Created watchlist '{watchlist['name']}'[/green]")


@watch.command("delete")
@click.argument("list_name")
def delete_watchlist(list_name: str) -> None:
    """Delete a watchlist."""
    try:
        app = AppContext()
        manager = _manager(app)
        manager.delete(app.owner_id, _resolve_id(manager, app.owner_id, list_name))
    except TradeBookError as e:
        fail("Failed to delete watchlist", e)
    console.print(f"[green]✓ Deleted watchlist '{list_name}'[/green]")


@watch.command("add")
@click.argument("symbol")
@click.option("--list", "list_name", default=None, help="Watchlist name (default: the default).")
@click.option("-e", "--exchange", type=click.Choice(["NSE", "BSE"]), default="NSE")
@click.option("--notes", default=None, help="Notes for this symbol.")
def add_symbol(symbol: str, list_name: Optional[str], exchange: str, notes: Optional[str]) -> None:
    """Add a symbol to a watchlist.

    \b
    Examples:
      tradebook watch add RELIANCE
      tradebook watch add INFY --list tech
    """
    stock = {"symbol": symbol, "exchange": exchange, "notes": notes}
    try:
        app = AppContext()
        manager = _manager(app)
        if list_name is None:
            watchlist = manager.add_to_default(app.owner_id, stock)
        else:
            watchlist = manager.add_stock(
                app.owner_id, _resolve_id(manager, app.owner_id, list_name), stock
            )
    except TradeBookError as e:
        fail("Failed to add symbol", e)
    console.print(
        f"[green]✓ Added {symbol.upper()} to watchlist '{watchlist['name']}'[/green]"
    )


@watch.command("remove")
@click.argument("symbol")
@click.option("--list", "list_name", default=None, help="Watchlist name (default: the default).")
@click.option("-e", "--exchange", type=click.Choice(["NSE", "BSE"]), default="NSE")
def remove_symbol(symbol: str, list_name: Optional[str], exchange: str) -> None:
    """Remove a symbol from a watchlist."""
    try:
        app = AppContext()
        manager = _manager(app)
        if list_name is None:
            watchlist = manager.remove_from_default(app.owner_id, symbol, exchange)
        else:
            watchlist = manager.remove_stock(
                app.owner_id, _resolve_id(manager, app.owner_id, list_name), symbol, exchange
            )
    except TradeBookError as e:
        fail("Failed to remove symbol", e)
    console.print(
        f"[green]✓ Removed {symbol.upper()} from watchlist '{watchlist['name']}'[/green]"
    )


@watch.command("reorder")
@click.argument("list_name")
@click.argument("symbols", nargs=-1, required=True)
def reorder_watchlist(list_name: str, symbols: tuple[str, ...]) -> None:
    """Reorder a watchlist.

    SYMBOLS must name every symbol of the list exactly once, as SYMBOL or
    SYMBOL:EXCHANGE.
    """
    new_order = []
    for value in symbols:
        symbol, _, exchange = value.partition(":")
        new_order.append((symbol, exchange or "NSE"))

    try:
        app = AppContext()
        manager = _manager(app)
        watchlist = manager.reorder(
            app.owner_id, _resolve_id(manager, app.owner_id, list_name), new_order
        )
    except TradeBookError as e:
        fail("Failed to reorder watchlist", e)
    _print_watchlist(watchlist)


@watch.command("default")
@click.argument("list_name")
def set_default(list_name: str) -> None:
    """Make a watchlist the default one."""
    try:
        app = AppContext()
        manager = _manager(app)
        manager.set_default(app.owner_id, _resolve_id(manager, app.owner_id, list_name))
    except TradeBookError as e:
        fail("Failed to set default watchlist", e)
    console.print(f"[green]✓ '{list_name}' is now the default watchlist[/green]")


@watch.command("init")
def init_default() -> None:
    """Create the default watchlist seeded with popular large caps."""
    try:
        app = AppContext()
        watchlist = _manager(app).initialize_default(app.owner_id)
    except TradeBookError as e:
        fail("Failed to initialize watchlist", e)
    console.print(
        f"[green]✓ Created '{watchlist['name']}' with {watchlist['items_count']} symbols[/green]"
    )

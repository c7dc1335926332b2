"""Helpers shared by the CLI command modules."""

import json
from typing import Any, Optional

import click
from rich.console import Console
from rich.panel import Panel

from tradebook.config import get_owner_id, get_price_source, get_store, load_config
from tradebook.errors import TradeBookError, ValidationError

# Console for rich output
console = Console()


class AppContext:
    """Configuration, store and owner resolved for one command run."""

    def __init__(self):
        self.config = load_config()
        self.owner_id = get_owner_id(self.config)
        self.store = get_store(self.config)

    def price_source(self):
        return get_price_source(self.config)


def fail(message: str, error: Exception) -> None:
    """Render an error panel and exit with status 1."""
    console.print(Panel(
        f"[red]{message}:[/red]\n\n{error}",
        title="[bold red]Error[/bold red]",
        border_style="red",
    ))
    raise SystemExit(1)


def signed(value: Optional[str], suffix: str = "", prefix: str = "₹") -> str:
    """Color a two-decimal string green or red by its sign."""
    if value is None:
        return "[dim]-[/dim]"
    negative = value.startswith("-")
    color = "red" if negative else "green"
    sign = "-" if negative else "+"
    return f"[{color}]{sign}{prefix}{value.lstrip('-')}{suffix}[/{color}]"


def read_updates(source: click.File) -> list[Any]:
    """Read a JSON list of ``{"id": .., "price": ..}`` objects.

    Raises:
        ValidationError: If the input is not a JSON list.
    """
    try:
        updates = json.load(source)
    except json.JSONDecodeError as e:
        raise ValidationError("Invalid update data", {"input": f"not valid JSON ({e.msg})"}) from e
    if not isinstance(updates, list):
        raise ValidationError("Invalid update data", {"input": "must be a JSON list"})
    return updates


def print_bulk_result(result: dict, label: str) -> None:
    console.print(f"[green]✓ Updated {len(result['updated'])} {label}[/green]")
    for error in result["errors"]:
        console.print(f"  [yellow]⚠ {error}[/yellow]")

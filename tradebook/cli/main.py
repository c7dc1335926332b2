"""Main CLI entry point for TradeBook.

Command groups are imported on first use so that ``tradebook --help``
does not load the storage and service layers.
"""

import importlib
import logging
from typing import Optional

import click


class LazyGroup(click.Group):
    """A click Group that imports its subcommands on demand."""

    def __init__(self, *args, lazy_subcommands: Optional[dict[str, str]] = None, **kwargs):
        """Initialize the lazy group.

        Args:
            lazy_subcommands: Mapping of command names to module paths.
        """
        super().__init__(*args, **kwargs)
        self._lazy_subcommands = lazy_subcommands or {}

    def list_commands(self, ctx: click.Context) -> list[str]:
        return sorted(set(super().list_commands(ctx)) | set(self._lazy_subcommands))

    def get_command(self, ctx: click.Context, cmd_name: str) -> Optional[click.Command]:
        if cmd_name in self.commands:
            return self.commands[cmd_name]
        if cmd_name in self._lazy_subcommands:
            return self._lazy_load(cmd_name)
        return None

    def _lazy_load(self, cmd_name: str) -> click.Command:
        """Import the module of a command and register the command."""
        module_path = self._lazy_subcommands[cmd_name]
        module = importlib.import_module(module_path)

        cmd = getattr(module, cmd_name, None)
        if not isinstance(cmd, click.Command):
            raise click.ClickException(f"Could not find command '{cmd_name}' in {module_path}")

        self.add_command(cmd, cmd_name)
        return cmd


LAZY_SUBCOMMANDS = {
    "holdings": "tradebook.cli.holdings",
    "positions": "tradebook.cli.positions",
    "orders": "tradebook.cli.orders",
    "watch": "tradebook.cli.watchlist",
    "market": "tradebook.cli.market",
}


CONTEXT_SETTINGS = {"help_option_names": ["-h", "--help"]}


@click.group(cls=LazyGroup, lazy_subcommands=LAZY_SUBCOMMANDS, context_settings=CONTEXT_SETTINGS)
@click.version_option(package_name="tradebook")
@click.option("-v", "--verbose", is_flag=True, default=False, help="Enable debug logging.")
@click.pass_context
def cli(ctx: click.Context, verbose: bool) -> None:
    """TradeBook - portfolio bookkeeping for Indian equities.

    Track holdings and positions, place and manage orders, and keep
    watchlists, all stored locally.

    \b
    Quick Start:
      tradebook holdings add INFY 10 1500 1550   # Record a holding
      tradebook holdings list                    # Holdings with P&L
      tradebook orders place INFY BUY 5 -t LIMIT -p 1500
      tradebook watch init                       # Seed a default watchlist
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    ctx.ensure_object(dict)


def main() -> None:
    """Main entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()

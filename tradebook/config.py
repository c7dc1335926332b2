"""Configuration loading for TradeBook.

Settings live in ``~/.config/tradebook/config.toml``; the ``TRADEBOOK_CONFIG``
environment variable points at another file. Missing keys fall back to
DEFAULTS.

Example config.toml::

    [user]
    id = "local"

    [storage]
    backend = "sqlite"   # or "memory"
    path = "~/.config/tradebook/tradebook.db"

    [market]
    seed = 42
"""

import logging
import os
from copy import deepcopy
from pathlib import Path
from typing import Any, Optional, Union

import toml

from tradebook.errors import ValidationError

logger = logging.getLogger(__name__)

CONFIG_DIR = Path.home() / ".config" / "tradebook"
CONFIG_PATH = CONFIG_DIR / "config.toml"
CONFIG_ENV = "TRADEBOOK_CONFIG"

DEFAULTS: dict[str, dict[str, Any]] = {
    "user": {"id": "local"},
    "storage": {"backend": "sqlite", "path": str(CONFIG_DIR / "tradebook.db")},
    "market": {"seed": None},
}

BACKENDS = ("sqlite", "memory")


def get_config_path() -> Path:
    """Return the config file path, honouring TRADEBOOK_CONFIG."""
    override = os.environ.get(CONFIG_ENV)
    return Path(override).expanduser() if override else CONFIG_PATH


def load_config(path: Optional[Union[str, Path]] = None) -> dict[str, dict[str, Any]]:
    """Load configuration merged over the defaults.

    Args:
        path: Config file to read. Defaults to get_config_path().

    Returns:
        Dictionary with ``user``, ``storage`` and ``market`` sections.
    """
    config = deepcopy(DEFAULTS)
    config_path = Path(path) if path else get_config_path()

    if not config_path.exists():
        logger.debug("No config at %s, using defaults", config_path)
        return config

    try:
        data = toml.load(config_path)
    except (OSError, toml.TomlDecodeError) as e:
        logger.warning("Could not read config %s: %s", config_path, e)
        return config

    for section, values in data.items():
        if isinstance(values, dict):
            config.setdefault(section, {}).update(values)
    return config


def get_owner_id(config: dict) -> str:
    owner_id = str(config.get("user", {}).get("id") or "").strip()
    if not owner_id:
        raise ValidationError("Invalid configuration", {"user.id": "must not be empty"})
    return owner_id


def get_store(config: dict):
    """Build the data store selected by ``[storage] backend``.

    Returns:
        A DataStore for "sqlite", a MemoryStore for "memory".

    Raises:
        ValidationError: If the backend is unknown.
    """
    storage = config.get("storage", {})
    backend = storage.get("backend", "sqlite")

    if backend == "memory":
        from tradebook.db.memory import MemoryStore

        return MemoryStore()
    if backend == "sqlite":
        from tradebook.db.store import DataStore

        return DataStore(Path(storage.get("path") or DEFAULTS["storage"]["path"]).expanduser())

    raise ValidationError(
        "Invalid configuration",
        {"storage.backend": f"must be one of {', '.join(BACKENDS)}"},
    )


def get_price_source(config: dict):
    """Build the simulated price source, seeded from ``[market] seed``."""
    from tradebook.market.simulated import SimulatedPriceSource

    return SimulatedPriceSource(seed=config.get("market", {}).get("seed"))

"""Provider factory functions for CLI.

Centralizes creation of configuration and storage from environment variables.
Hides configuration details from command implementations.
"""

import os
from pathlib import Path

from rich.console import Console

from ..config import EnvConfig
from ..errors import ConfigurationError
from ..storage import KeyValueStore, PersistenceManager, create_key_value_store

# Default console for output
_console = Console()

DEFAULT_STORE_PATH = Path.home() / ".imagechat" / "imagechat.db"


def get_config(console: Console | None = None) -> EnvConfig:
    """Create the environment-backed configuration accessor.

    Warns when URL or key are missing; sends will then fail with a
    configuration error message rather than at startup.

    Environment variables:
        IMAGECHAT_API_URL: API base URL (required to send)
        IMAGECHAT_API_KEY: API key (required to send)
        IMAGECHAT_API_TYPE: gemini or openai (default: gemini)
        IMAGECHAT_MODEL: Model name
        IMAGECHAT_TIMEOUT: Request timeout in seconds
    """
    con = console or _console
    config = EnvConfig()
    try:
        configured = config.get_settings().is_configured()
    except ConfigurationError as e:
        con.print(f"[yellow]Warning: {e}[/yellow]")
        return config
    if not configured:
        con.print("[yellow]Warning: IMAGECHAT_API_URL or IMAGECHAT_API_KEY not set[/yellow]")
    return config


def get_store() -> KeyValueStore:
    """Create the durable store from environment variables.

    Environment variables:
        IMAGECHAT_STORE: Backend type (sqlite or memory; default: sqlite)
        IMAGECHAT_STORE_PATH: SQLite file (default: ~/.imagechat/imagechat.db)
        IMAGECHAT_STORE_LIMIT: Max snapshot size in bytes (default: unlimited)
    """
    backend = os.getenv("IMAGECHAT_STORE", "sqlite").lower()
    limit = os.getenv("IMAGECHAT_STORE_LIMIT")

    if backend == "memory":
        return create_key_value_store(
            "memory",
            quota_bytes=int(limit) if limit else None,
        )
    return create_key_value_store(
        backend,
        path=os.getenv("IMAGECHAT_STORE_PATH", str(DEFAULT_STORE_PATH)),
        max_value_bytes=int(limit) if limit else None,
    )


def get_persistence(store: KeyValueStore) -> PersistenceManager:
    return PersistenceManager(store)

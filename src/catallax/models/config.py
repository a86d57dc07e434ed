"""Configuration models for the client."""

from __future__ import annotations

from dataclasses import dataclass, field

DEFAULT_RELAYS = [
    "wss://relay.primal.net",
    "wss://nos.lol",
    "wss://relay.damus.io",
]


@dataclass
class ClientConfig:
    """Complete client configuration."""

    # Client
    log_level: str = "info"

    # Relays
    relays: list[str] = field(default_factory=lambda: list(DEFAULT_RELAYS))
    query_timeout: float = 10.0  # seconds per query
    receipt_timeout: float = 8.0  # seconds per zap receipt fan-out
    query_limit: int = 1000  # task versions can be numerous
    receipt_limit: int = 500

    # Storage
    db_path: str = "~/.catallax/events.db"
    cache_enabled: bool = True

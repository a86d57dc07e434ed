"""Configuration loading: TOML file + environment variables."""

from __future__ import annotations

import os
from pathlib import Path

try:
    import tomllib  # Python 3.11+
except ModuleNotFoundError:
    import tomli as tomllib  # type: ignore[no-redef]

from catallax.models.config import ClientConfig


def load_config(
    config_path: str | Path | None = None,
    env_prefix: str = "CATALLAX_",
) -> ClientConfig:
    """Load client configuration from a TOML file and env vars.

    Priority (highest wins):
        1. Environment variables (CATALLAX_RELAYS, etc.)
        2. TOML config file
        3. Defaults from ClientConfig
    """
    raw: dict = {}
    if config_path is not None:
        p = Path(config_path).expanduser()
        if p.exists():
            with open(p, "rb") as f:
                raw = tomllib.load(f)

    cfg = ClientConfig()

    # ── Client section ─────────────────────────────────────
    client = raw.get("client", {})
    if v := client.get("log_level"):
        cfg.log_level = str(v)

    # ── Relays section ─────────────────────────────────────
    relays = raw.get("relays", {})
    if "urls" in relays:
        cfg.relays = [str(url) for url in relays["urls"]]
    if v := relays.get("query_timeout"):
        cfg.query_timeout = float(v)
    if v := relays.get("receipt_timeout"):
        cfg.receipt_timeout = float(v)
    if v := relays.get("query_limit"):
        cfg.query_limit = int(v)
    if v := relays.get("receipt_limit"):
        cfg.receipt_limit = int(v)

    # ── Storage section ────────────────────────────────────
    storage = raw.get("storage", {})
    if v := storage.get("db_path"):
        cfg.db_path = str(v)
    if "cache_enabled" in storage:
        cfg.cache_enabled = bool(storage["cache_enabled"])

    # ── Environment variable overrides (highest priority) ──
    if urls := os.environ.get(f"{env_prefix}RELAYS"):
        cfg.relays = _split_relays(urls)
    if timeout := os.environ.get(f"{env_prefix}QUERY_TIMEOUT"):
        cfg.query_timeout = float(timeout)
    if db_path := os.environ.get(f"{env_prefix}DB_PATH"):
        cfg.db_path = db_path
    if level := os.environ.get(f"{env_prefix}LOG_LEVEL"):
        cfg.log_level = level

    # Expand ~ in paths
    if cfg.db_path != ":memory:":
        cfg.db_path = str(Path(cfg.db_path).expanduser())

    return cfg


def _split_relays(value: str) -> list[str]:
    return [url.strip() for url in value.split(",") if url.strip()]

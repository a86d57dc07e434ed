"""Websocket transport for Nostr relays."""

from catallax.nostr.publisher import PublishError, RelayPublisher
from catallax.nostr.relay import RelayPool, merge_unique

__all__ = ["PublishError", "RelayPool", "RelayPublisher", "merge_unique"]

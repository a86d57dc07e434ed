"""EventPublisher and EventSigner protocols - writes to relays."""

from __future__ import annotations

from typing import Protocol

from catallax.models.events import NostrEvent


class EventSigner(Protocol):
    """Turns an unsigned template into a signed event (id, pubkey, sig)."""

    async def get_public_key(self) -> str:
        ...

    async def sign_event(self, template: dict) -> NostrEvent:
        """``template`` has kind, content, tags and created_at."""
        ...


class EventPublisher(Protocol):
    """Publishes a new event, timestamped at call time."""

    async def publish(
        self, kind: int, content: str, tags: list[list[str]],
    ) -> NostrEvent:
        ...

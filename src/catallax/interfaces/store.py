"""EventStore protocol - local cache of every event observed."""

from __future__ import annotations

from typing import Protocol

from catallax.models.events import NostrEvent


class EventStore(Protocol):
    """Accumulates raw events so reconciliation can run over everything seen."""

    # ── Lifecycle ──────────────────────────────────────────

    async def initialize(self) -> None:
        """Create tables if they don't exist."""
        ...

    async def close(self) -> None:
        ...

    # ── Events ─────────────────────────────────────────────

    async def save_events(self, events: list[NostrEvent]) -> int:
        """Insert events not yet stored. Returns how many were new."""
        ...

    async def get_event(self, event_id: str) -> NostrEvent | None:
        ...

    async def get_events(
        self,
        kinds: list[int] | None = None,
        authors: list[str] | None = None,
        tag: tuple[str, str] | None = None,
        limit: int | None = None,
    ) -> list[NostrEvent]:
        """Stored events matching every given criterion, newest first."""
        ...

    async def count_events(self, kind: int | None = None) -> int:
        ...

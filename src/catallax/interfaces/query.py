"""EventQuery protocol - best-effort, time-bounded reads from relays."""

from __future__ import annotations

from typing import Any, Protocol

from catallax.models.events import NostrEvent

# NIP-01 filter: {"kinds": [...], "authors": [...], "ids": [...],
# "#e": [...], "#a": [...], "#t": [...], "limit": n}
Filter = dict[str, Any]


class EventQuery(Protocol):
    """Fetches events matching any of ``filters``.

    Must return within ``timeout`` seconds. A slow or failing source
    contributes nothing rather than raising.
    """

    async def query(
        self, filters: list[Filter], timeout: float | None = None,
    ) -> list[NostrEvent]:
        ...

"""Relay pool - fans NIP-01 subscriptions out to many relays over websockets."""

from __future__ import annotations

import asyncio
import json
import logging
import secrets

import aiohttp

from catallax.interfaces.query import Filter
from catallax.models.events import NostrEvent

log = logging.getLogger(__name__)


def merge_unique(batches: list[list[NostrEvent]]) -> list[NostrEvent]:
    """Set union of several result batches by event id, first-seen order."""
    seen: set[str] = set()
    merged: list[NostrEvent] = []
    for batch in batches:
        for event in batch:
            if event.id not in seen:
                seen.add(event.id)
                merged.append(event)
    return merged


class RelayPool:
    """Implements the EventQuery protocol against a list of relays.

    Every relay gets its own subscription with its own time budget. A relay
    that times out, refuses the connection or sends garbage contributes
    whatever it delivered before failing; it never fails the query.
    """

    def __init__(
        self,
        relays: list[str],
        timeout: float = 10.0,
        session: aiohttp.ClientSession | None = None,
    ) -> None:
        self._relays = list(relays)
        self._timeout = timeout
        self._session = session

    @property
    def relays(self) -> list[str]:
        return list(self._relays)

    async def query(
        self,
        filters: list[Filter],
        timeout: float | None = None,
        relays: list[str] | None = None,
    ) -> list[NostrEvent]:
        """Query every relay concurrently and merge the results."""
        targets = relays or self._relays
        budget = timeout if timeout is not None else self._timeout
        if not targets:
            return []

        if self._session is not None:
            batches = await self._fan_out(self._session, targets, filters, budget)
        else:
            async with aiohttp.ClientSession() as session:
                batches = await self._fan_out(session, targets, filters, budget)

        events = merge_unique(batches)
        log.info(
            "Query %s: %d events from %d relays",
            _describe(filters), len(events), len(targets),
        )
        return events

    async def query_many(
        self,
        filter_sets: list[list[Filter]],
        timeout: float | None = None,
        relays: list[str] | None = None,
    ) -> list[NostrEvent]:
        """Run independent queries concurrently (e.g. one per tag) and merge."""
        batches = await asyncio.gather(
            *(self.query(filters, timeout, relays) for filters in filter_sets)
        )
        return merge_unique(list(batches))

    async def _fan_out(
        self,
        session: aiohttp.ClientSession,
        relays: list[str],
        filters: list[Filter],
        timeout: float,
    ) -> list[list[NostrEvent]]:
        return list(await asyncio.gather(
            *(self._query_relay(session, url, filters, timeout) for url in relays)
        ))

    async def _query_relay(
        self,
        session: aiohttp.ClientSession,
        url: str,
        filters: list[Filter],
        timeout: float,
    ) -> list[NostrEvent]:
        # Events land in ``sink`` as they arrive so a timeout keeps them.
        sink: list[NostrEvent] = []
        try:
            await asyncio.wait_for(self._subscribe(session, url, filters, sink), timeout)
        except asyncio.TimeoutError:
            log.info("Relay %s timed out after %.1fs (%d events)", url, timeout, len(sink))
        except (aiohttp.ClientError, OSError) as exc:
            log.warning("Relay %s unreachable: %s", url, exc)
        return sink

    async def _subscribe(
        self,
        session: aiohttp.ClientSession,
        url: str,
        filters: list[Filter],
        sink: list[NostrEvent],
    ) -> None:
        sub_id = f"catallax-{secrets.token_hex(6)}"
        async with session.ws_connect(url) as ws:
            await ws.send_str(json.dumps(["REQ", sub_id, *filters]))

            async for msg in ws:
                if msg.type != aiohttp.WSMsgType.TEXT:
                    break
                frame = _decode_frame(msg.data)
                if frame is None:
                    continue

                kind = frame[0]
                if kind == "EVENT" and len(frame) >= 3 and frame[1] == sub_id:
                    event = _decode_event(frame[2])
                    if event is not None:
                        sink.append(event)
                elif kind == "EOSE" and len(frame) >= 2 and frame[1] == sub_id:
                    break
                elif kind == "CLOSED":
                    log.info("Relay %s closed subscription: %s", url, frame[2:] or "")
                    break
                elif kind == "NOTICE":
                    log.debug("Relay %s notice: %s", url, frame[1:])

            if not ws.closed:
                await ws.send_str(json.dumps(["CLOSE", sub_id]))


def _decode_frame(data: str) -> list | None:
    try:
        frame = json.loads(data)
    except ValueError:
        return None
    if not isinstance(frame, list) or not frame:
        return None
    return frame


def _decode_event(raw: object) -> NostrEvent | None:
    if not isinstance(raw, dict):
        return None
    try:
        return NostrEvent.from_dict(raw)
    except (KeyError, TypeError, ValueError):
        log.debug("Dropping malformed event frame")
        return None


def _describe(filters: list[Filter]) -> str:
    kinds = sorted({k for f in filters for k in f.get("kinds", [])})
    return f"kinds={kinds}" if kinds else "filters"

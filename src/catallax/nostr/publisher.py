"""Relay publisher - signs event templates and broadcasts them."""

from __future__ import annotations

import asyncio
import json
import logging
import time

import aiohttp

from catallax.interfaces.publisher import EventSigner
from catallax.models.events import NostrEvent

log = logging.getLogger(__name__)


class PublishError(Exception):
    """No relay accepted the event."""

    def __init__(self, event_id: str, reasons: dict[str, str]) -> None:
        self.event_id = event_id
        self.reasons = reasons
        detail = "; ".join(f"{url}: {why}" for url, why in reasons.items())
        super().__init__(f"Event {event_id} rejected by every relay ({detail})")


class RelayPublisher:
    """Implements EventPublisher: sign once, send to every relay, wait for OK."""

    def __init__(
        self,
        relays: list[str],
        signer: EventSigner,
        timeout: float = 10.0,
        session: aiohttp.ClientSession | None = None,
    ) -> None:
        self._relays = list(relays)
        self._signer = signer
        self._timeout = timeout
        self._session = session

    async def publish(
        self, kind: int, content: str, tags: list[list[str]],
    ) -> NostrEvent:
        template = {
            "kind": kind,
            "content": content,
            "tags": [list(tag) for tag in tags],
            "created_at": int(time.time()),
        }
        event = await self._signer.sign_event(template)

        if self._session is not None:
            outcomes = await self._broadcast(self._session, event)
        else:
            async with aiohttp.ClientSession() as session:
                outcomes = await self._broadcast(session, event)

        accepted = [url for url, (ok, _) in outcomes.items() if ok]
        if not accepted:
            raise PublishError(event.id, {url: why for url, (_, why) in outcomes.items()})

        log.info(
            "Published kind %d event %s to %d/%d relays",
            kind, event.id[:12], len(accepted), len(self._relays),
        )
        return event

    async def _broadcast(
        self, session: aiohttp.ClientSession, event: NostrEvent,
    ) -> dict[str, tuple[bool, str]]:
        results = await asyncio.gather(
            *(self._send(session, url, event) for url in self._relays)
        )
        return dict(zip(self._relays, results))

    async def _send(
        self, session: aiohttp.ClientSession, url: str, event: NostrEvent,
    ) -> tuple[bool, str]:
        try:
            return await asyncio.wait_for(self._send_and_wait(session, url, event), self._timeout)
        except asyncio.TimeoutError:
            log.warning("Relay %s did not acknowledge %s", url, event.id[:12])
            return False, "timeout"
        except (aiohttp.ClientError, OSError) as exc:
            log.warning("Relay %s unreachable: %s", url, exc)
            return False, str(exc) or type(exc).__name__

    async def _send_and_wait(
        self, session: aiohttp.ClientSession, url: str, event: NostrEvent,
    ) -> tuple[bool, str]:
        async with session.ws_connect(url) as ws:
            await ws.send_str(json.dumps(["EVENT", event.to_dict()]))
            async for msg in ws:
                if msg.type != aiohttp.WSMsgType.TEXT:
                    break
                try:
                    frame = json.loads(msg.data)
                except ValueError:
                    continue
                if (
                    isinstance(frame, list) and len(frame) >= 3
                    and frame[0] == "OK" and frame[1] == event.id
                ):
                    message = str(frame[3]) if len(frame) > 3 else ""
                    if not frame[2]:
                        log.warning("Relay %s rejected %s: %s", url, event.id[:12], message)
                    return bool(frame[2]), message
        return False, "connection closed"

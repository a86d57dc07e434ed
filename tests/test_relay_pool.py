"""Tests 69-75: Websocket relay pool and publisher against in-process relays."""

from __future__ import annotations

import pytest

from catallax.models.events import KIND_TASK_PROPOSAL, KIND_ZAP_RECEIPT
from catallax.nostr.publisher import PublishError, RelayPublisher
from catallax.nostr.relay import RelayPool, merge_unique
from tests.factories import ARBITER, make_receipt, make_task_event
from tests.mocks import FakeRelay, MockSigner

UNREACHABLE = "ws://127.0.0.1:1/"

TASK_FILTER = [{"kinds": [KIND_TASK_PROPOSAL], "#t": ["catallax"]}]


@pytest.fixture
async def relays():
    """Factory for started FakeRelays, all stopped at teardown."""
    started: list[FakeRelay] = []

    async def _start(events=None, mode="normal") -> FakeRelay:
        relay = FakeRelay(events, mode)
        await relay.start()
        started.append(relay)
        return relay

    yield _start
    for relay in started:
        await relay.stop()


# ── Test 69: Query one relay ──────────────────────────────────────


async def test_query_single_relay(relays):
    """REQ → EVENT* → EOSE, then CLOSE; filters applied by the relay."""
    task = make_task_event()
    receipt = make_receipt(amount_msat=1000)
    relay = await relays([task, receipt])

    events = await RelayPool([relay.url], timeout=2).query(TASK_FILTER)

    assert [e.id for e in events] == [task.id]
    assert events[0] == task
    kinds = [frame[0] for frame in relay.received]
    assert kinds == ["REQ", "CLOSE"]
    assert relay.received[0][2] == TASK_FILTER[0]


# ── Test 70: Union across relays, deduplicated ───────────────────


async def test_union_and_dedupe(relays):
    shared = make_task_event(d="shared")
    only_a = make_task_event(d="a-only")
    only_b = make_task_event(d="b-only")
    relay_a = await relays([shared, only_a])
    relay_b = await relays([shared, only_b])

    events = await RelayPool([relay_a.url, relay_b.url], timeout=2).query(TASK_FILTER)

    assert sorted(e.id for e in events) == sorted([shared.id, only_a.id, only_b.id])


# ── Test 71: Slow relay keeps partial results ─────────────────────


async def test_stalled_relay_returns_partial(relays):
    """Relay never sends EOSE → events so far still count after timeout."""
    task = make_task_event()
    stalled = await relays([task], mode="stall")

    events = await RelayPool([stalled.url], timeout=0.5).query(TASK_FILTER)

    assert [e.id for e in events] == [task.id]


# ── Test 72: Unreachable relay contributes nothing ────────────────


async def test_unreachable_relay_does_not_fail_query(relays):
    task = make_task_event()
    healthy = await relays([task])

    events = await RelayPool([UNREACHABLE, healthy.url], timeout=2).query(TASK_FILTER)

    assert [e.id for e in events] == [task.id]


async def test_all_relays_down_is_empty():
    assert await RelayPool([UNREACHABLE], timeout=1).query(TASK_FILTER) == []


async def test_no_relays_is_empty():
    assert await RelayPool([]).query(TASK_FILTER) == []


# ── Test 73: Garbage frames dropped ───────────────────────────────


async def test_malformed_frames_ignored(relays):
    task = make_task_event()
    noisy = await relays([task], mode="garbage")

    events = await RelayPool([noisy.url], timeout=2).query(TASK_FILTER)

    assert [e.id for e in events] == [task.id]


# ── Test 74: query_many merges independent lookups ────────────────


async def test_query_many_merges(relays):
    by_e = make_receipt(goal_id="f" * 64, amount_msat=1000)
    by_a = make_receipt(address="33401:x:y", amount_msat=1000)
    both = make_receipt(goal_id="f" * 64, address="33401:x:y", amount_msat=1000)
    relay = await relays([by_e, by_a, both])

    events = await RelayPool([relay.url], timeout=2).query_many([
        [{"kinds": [KIND_ZAP_RECEIPT], "#e": ["f" * 64]}],
        [{"kinds": [KIND_ZAP_RECEIPT], "#a": ["33401:x:y"]}],
    ])

    assert sorted(e.id for e in events) == sorted([by_e.id, by_a.id, both.id])
    assert len(merge_unique([events, events])) == 3


# ── Test 75: Publishing ───────────────────────────────────────────


async def test_publish_signs_and_sends(relays):
    """Event is signed once and stored by every accepting relay."""
    relay_a = await relays()
    relay_b = await relays()
    signer = MockSigner(ARBITER)
    publisher = RelayPublisher([relay_a.url, relay_b.url], signer, timeout=2)

    event = await publisher.publish(KIND_TASK_PROPOSAL, "{}", [["d", "x"], ["t", "catallax"]])

    assert event.pubkey == ARBITER
    assert len(signer.signed) == 1
    assert signer.signed[0]["created_at"] > 0
    assert [e.id for e in relay_a.events] == [event.id]
    assert [e.id for e in relay_b.events] == [event.id]


async def test_publish_succeeds_if_any_relay_accepts(relays):
    rejecting = await relays(mode="reject")
    accepting = await relays()
    publisher = RelayPublisher([UNREACHABLE, rejecting.url, accepting.url], MockSigner(), timeout=2)

    event = await publisher.publish(KIND_TASK_PROPOSAL, "{}", [["d", "x"]])

    assert [e.id for e in accepting.events] == [event.id]
    assert rejecting.events == []


async def test_publish_fails_when_all_reject(relays):
    rejecting = await relays(mode="reject")
    publisher = RelayPublisher([rejecting.url, UNREACHABLE], MockSigner(), timeout=2)

    with pytest.raises(PublishError) as exc_info:
        await publisher.publish(KIND_TASK_PROPOSAL, "{}", [["d", "x"]])

    assert set(exc_info.value.reasons) == {rejecting.url, UNREACHABLE}
    assert "blocked" in exc_info.value.reasons[rejecting.url]

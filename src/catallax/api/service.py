"""Catallax service - queries relays, reconciles state and derives views.

Every read goes through the same pipeline: query the relays, fold the
results into the local cache, parse, reconcile, then filter. Filtering by
status or party always happens after reconciliation so that a task whose
latest version left a status no longer shows up under it.
"""

from __future__ import annotations

import asyncio
import logging
from collections import Counter
from typing import Callable

from catallax.interfaces.query import EventQuery, Filter
from catallax.interfaces.store import EventStore
from catallax.events.parsers import (
    parse_all,
    parse_arbiter_announcement,
    parse_funding_goal,
    parse_task_conclusion,
    parse_task_proposal,
)
from catallax.models.config import ClientConfig
from catallax.models.events import (
    CATALLAX_TAG,
    KIND_ARBITER_ANNOUNCEMENT,
    KIND_TASK_CONCLUSION,
    KIND_TASK_PROPOSAL,
    KIND_ZAP_GOAL,
    KIND_ZAP_RECEIPT,
    NostrEvent,
)
from catallax.models.funding import GoalState
from catallax.models.records import (
    ArbiterAnnouncement,
    FeePolicy,
    FeeType,
    ResolutionType,
    TaskConclusion,
    TaskProposal,
    TaskStatus,
)
from catallax.models.snapshots import SettlementSnapshot, settlement_snapshot
from catallax.nostr.relay import merge_unique
from catallax.settlement.calculator import (
    calculate_crowdfunding_refunds,
    calculate_payment_split,
    refund_pool,
)
from catallax.state.reconciler import latest
from catallax.zaps.goal import calculate_goal_progress

log = logging.getLogger(__name__)

NO_FEE = FeePolicy(FeeType.FLAT, "0")

# Resolutions that count towards an arbiter's track record.
EXPERIENCE_RESOLUTIONS = (ResolutionType.SUCCESSFUL, ResolutionType.REJECTED)

ReceiptQueryFactory = Callable[[list[str]], EventQuery]


class CatallaxService:
    """Read side of the client.

    ``receipt_query_factory`` builds a query collaborator bound to a goal's
    relay hints; without it receipts are fetched through ``query``.
    """

    def __init__(
        self,
        query: EventQuery,
        store: EventStore | None = None,
        config: ClientConfig | None = None,
        receipt_query_factory: ReceiptQueryFactory | None = None,
    ) -> None:
        self._query = query
        self._store = store
        self._config = config or ClientConfig()
        self._receipt_query_factory = receipt_query_factory

    # ── Fetching ───────────────────────────────────────────

    async def _fetch(
        self,
        filters: list[Filter],
        kinds: list[int],
        tag: tuple[str, str] | None = None,
        query: EventQuery | None = None,
        timeout: float | None = None,
    ) -> list[NostrEvent]:
        """Relay results plus everything previously cached for the same criteria."""
        source = query or self._query
        events = await source.query(filters, timeout or self._config.query_timeout)
        if self._store is None:
            return events

        added = await self._store.save_events(events)
        if added:
            log.debug("Cached %d new events (kinds=%s)", added, kinds)
        cached = await self._store.get_events(kinds=kinds, tag=tag)
        return merge_unique([events, cached])

    # ── Arbiters ───────────────────────────────────────────

    async def _arbiter_events(self, authors: list[str] | None = None) -> list[NostrEvent]:
        flt: Filter = {
            "kinds": [KIND_ARBITER_ANNOUNCEMENT],
            "#t": [CATALLAX_TAG],
            "limit": self._config.query_limit,
        }
        if authors:
            flt["authors"] = authors
        events = await self._fetch([flt], [KIND_ARBITER_ANNOUNCEMENT], ("t", CATALLAX_TAG))
        if authors:
            events = [e for e in events if e.pubkey in authors]
        return events

    async def get_arbiters(self) -> list[ArbiterAnnouncement]:
        """Current arbiter announcements, newest first."""
        events = await self._arbiter_events()
        return latest(parse_all(events, parse_arbiter_announcement))

    async def get_my_services(self, pubkey: str) -> list[ArbiterAnnouncement]:
        events = await self._arbiter_events(authors=[pubkey])
        return latest(parse_all(events, parse_arbiter_announcement))

    async def get_arbiter_for_task(self, task: TaskProposal) -> ArbiterAnnouncement | None:
        """Resolve the service a task references through its ``a`` tag."""
        if not task.arbiter_service:
            return None
        for arbiter in await self.get_arbiters():
            if arbiter.address == task.arbiter_service:
                return arbiter
        log.info("Arbiter service %s not found for task %s", task.arbiter_service, task.d)
        return None

    # ── Tasks ──────────────────────────────────────────────

    async def _current_tasks(self) -> list[TaskProposal]:
        flt: Filter = {
            "kinds": [KIND_TASK_PROPOSAL],
            "#t": [CATALLAX_TAG],
            "limit": self._config.query_limit,
        }
        events = await self._fetch([flt], [KIND_TASK_PROPOSAL], ("t", CATALLAX_TAG))
        return latest(parse_all(events, parse_task_proposal))

    async def get_tasks(self, status: TaskStatus | str | None = None) -> list[TaskProposal]:
        """Current tasks newest first, optionally only those in ``status``."""
        tasks = await self._current_tasks()
        if status is None:
            return tasks
        wanted = TaskStatus(status)
        return [t for t in tasks if t.status is wanted]

    async def get_tasks_for_patron(self, pubkey: str) -> list[TaskProposal]:
        return [t for t in await self._current_tasks() if t.patron_pubkey == pubkey]

    async def get_tasks_for_worker(self, pubkey: str) -> list[TaskProposal]:
        return [t for t in await self._current_tasks() if t.worker_pubkey == pubkey]

    async def get_tasks_for_arbiter(self, pubkey: str) -> list[TaskProposal]:
        return [t for t in await self._current_tasks() if t.arbiter_pubkey == pubkey]

    async def get_task(self, patron_pubkey: str, d: str) -> TaskProposal | None:
        for task in await self._current_tasks():
            if task.identity == (patron_pubkey, d):
                return task
        return None

    # ── Conclusions ────────────────────────────────────────

    async def get_conclusions(self) -> list[TaskConclusion]:
        flt: Filter = {"kinds": [KIND_TASK_CONCLUSION], "limit": self._config.query_limit}
        events = await self._fetch([flt], [KIND_TASK_CONCLUSION])
        conclusions = parse_all(events, parse_task_conclusion)
        conclusions.sort(key=lambda c: c.created_at, reverse=True)
        return conclusions

    async def get_conclusions_for_task(self, task: TaskProposal) -> list[TaskConclusion]:
        return [
            c for c in await self.get_conclusions()
            if c.task_reference == task.address or c.task_proposal_id == task.id
        ]

    async def get_arbiter_experience(self) -> dict[str, int]:
        """Arbiter pubkey -> number of successful or rejected conclusions."""
        counts: Counter[str] = Counter(
            c.arbiter_pubkey
            for c in await self.get_conclusions()
            if c.arbiter_pubkey and c.resolution in EXPERIENCE_RESOLUTIONS
        )
        return dict(counts)

    # ── Funding ────────────────────────────────────────────

    async def _goal_event(self, goal_id: str) -> NostrEvent | None:
        events = await self._fetch(
            [{"ids": [goal_id], "kinds": [KIND_ZAP_GOAL]}], [KIND_ZAP_GOAL],
        )
        for event in events:
            if event.id == goal_id:
                return event
        return None

    async def get_goal(self, goal_id: str) -> GoalState | None:
        """Zap goal progress from every receipt that references it.

        Receipts are matched by ``#e`` (the goal id) and by ``#a`` (the
        linked task address), on the goal's own relays when it names any.
        """
        event = await self._goal_event(goal_id)
        goal = parse_funding_goal(event) if event else None
        if goal is None:
            log.info("Goal %s not found", goal_id)
            return None

        relays = goal.relays or list(self._config.relays)
        source = (
            self._receipt_query_factory(relays)
            if self._receipt_query_factory is not None
            else self._query
        )
        limit = self._config.receipt_limit
        timeout = self._config.receipt_timeout

        lookups = [
            self._fetch(
                [{"kinds": [KIND_ZAP_RECEIPT], "#e": [goal_id], "limit": limit}],
                [KIND_ZAP_RECEIPT], ("e", goal_id), source, timeout,
            )
        ]
        if goal.linked_address:
            lookups.append(self._fetch(
                [{"kinds": [KIND_ZAP_RECEIPT], "#a": [goal.linked_address], "limit": limit}],
                [KIND_ZAP_RECEIPT], ("a", goal.linked_address), source, timeout,
            ))
        receipts = merge_unique(list(await asyncio.gather(*lookups)))

        progress = calculate_goal_progress(goal, receipts)
        log.info(
            "Goal %s: %d/%d sats from %d receipts",
            goal_id[:12], progress.raised_sats, progress.target_sats, len(receipts),
        )
        return GoalState(goal=goal, receipts=receipts, progress=progress)

    # ── Settlement ─────────────────────────────────────────

    async def _fee_policy(self, task: TaskProposal) -> FeePolicy:
        arbiter = await self.get_arbiter_for_task(task)
        return arbiter.fee_policy if arbiter else NO_FEE

    async def get_payout_splits(self, task: TaskProposal) -> SettlementSnapshot | None:
        """Worker payment plus the arbiter fee line; None while no worker is assigned."""
        if not task.worker_pubkey:
            log.info("Task %s has no worker to pay", task.d)
            return None
        policy = await self._fee_policy(task)
        splits = calculate_payment_split(task, policy, task.worker_pubkey, "worker")
        return settlement_snapshot(task, "payout", splits)

    async def get_refund_splits(
        self, task: TaskProposal, reason: ResolutionType | str,
    ) -> SettlementSnapshot:
        """Refund lines: proportional per contributor, or to the patron."""
        reason = ResolutionType(reason)
        policy = await self._fee_policy(task)

        if not task.is_crowdfunded:
            splits = calculate_payment_split(task, policy, task.patron_pubkey, "patron")
            return settlement_snapshot(task, "refund", splits, reason.value)

        state = await self.get_goal(task.goal_id) if task.goal_id else None
        if state is None:
            log.info("Task %s: no funding goal found, nothing to refund", task.d)
        contributors = state.progress.contributors if state else []
        refunds = calculate_crowdfunding_refunds(contributors, policy, task.amount, reason)
        pool = refund_pool(contributors, policy, task.amount, reason)
        return settlement_snapshot(task, "refund", refunds, reason.value, pool)

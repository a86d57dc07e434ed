"""Goal progress - aggregate zap receipts into per-contributor totals."""

from __future__ import annotations

import logging
from typing import Iterable

from catallax.models.events import NostrEvent
from catallax.models.funding import Contributor, GoalProgress
from catallax.models.records import FundingGoal
from catallax.zaps.receipts import MSAT_PER_SAT, receipt_amount_msat, receipt_sender

log = logging.getLogger(__name__)


def dedupe_events(events: Iterable[NostrEvent]) -> list[NostrEvent]:
    """Drop repeated event ids, keeping first-seen order."""
    seen: set[str] = set()
    unique: list[NostrEvent] = []
    for event in events:
        if event.id in seen:
            continue
        seen.add(event.id)
        unique.append(event)
    return unique


def aggregate_contributions(receipts: Iterable[NostrEvent]) -> list[Contributor]:
    """Sum receipts by payer.

    Receipts without a decodable amount or payer are skipped. Totals stay in
    msat until each contributor's sum is floored to sats. Sorted by amount,
    largest first; ties keep first-seen order.
    """
    totals_msat: dict[str, int] = {}
    latest_at: dict[str, int] = {}
    skipped = 0

    for receipt in dedupe_events(receipts):
        amount = receipt_amount_msat(receipt)
        sender = receipt_sender(receipt)
        if amount <= 0 or sender is None:
            skipped += 1
            continue
        totals_msat[sender] = totals_msat.get(sender, 0) + amount
        latest_at[sender] = max(latest_at.get(sender, 0), receipt.created_at)

    if skipped:
        log.debug("Skipped %d receipts with no amount or sender", skipped)

    sats = {pubkey: msat // MSAT_PER_SAT for pubkey, msat in totals_msat.items()}
    raised = sum(sats.values())
    contributors = [
        Contributor(
            pubkey=pubkey,
            amount_sats=amount,
            percentage=amount / raised if raised > 0 else 0.0,
            latest_at=latest_at[pubkey],
        )
        for pubkey, amount in sats.items()
    ]
    contributors.sort(key=lambda c: c.amount_sats, reverse=True)
    return contributors


def calculate_goal_progress(goal: FundingGoal, receipts: Iterable[NostrEvent]) -> GoalProgress:
    contributors = aggregate_contributions(receipts)
    target = goal.target_sats
    raised = sum(c.amount_sats for c in contributors)

    if target > 0:
        percent = min(100.0, raised / target * 100)
    else:
        percent = 0.0

    return GoalProgress(
        target_sats=target,
        raised_sats=raised,
        percent_complete=percent,
        is_goal_met=raised >= target,
        contributors=contributors,
    )

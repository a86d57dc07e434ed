"""JSON-serializable snapshot models for CLI and other presentation clients."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any

from catallax.models.funding import GoalProgress, PaymentSplit, RefundSplit
from catallax.models.records import (
    ArbiterAnnouncement,
    FeeType,
    TaskConclusion,
    TaskProposal,
)

SATS_PER_BTC = 100_000_000


def to_dict(obj: Any) -> dict:
    """Recursively convert a dataclass to a plain dict."""
    return asdict(obj)


def format_sats(sats: int | str) -> str:
    """Human-readable amount: BTC above one coin, otherwise grouped sats."""
    try:
        amount = int(sats)
    except ValueError:
        return f"{sats} sats"
    if amount >= SATS_PER_BTC:
        return f"{amount / SATS_PER_BTC:.2f} BTC"
    return f"{amount:,} sats"


def format_fee(fee_type: FeeType, fee_amount: str) -> str:
    if fee_type is FeeType.FLAT:
        return format_sats(fee_amount)
    try:
        pct = Decimal(fee_amount) * 100
    except InvalidOperation:
        return fee_amount
    return f"{pct.normalize():f}%"


# ---------------------------------------------------------------------------
# Protocol records
# ---------------------------------------------------------------------------


@dataclass
class ArbiterSnapshot:
    address: str
    arbiter_pubkey: str
    name: str
    fee: str  # "10%" or "500 sats"
    fee_type: str
    fee_amount: str
    min_amount: int | None
    max_amount: int | None
    categories: list[str]
    experience: int
    created_at: int


@dataclass
class TaskSnapshot:
    address: str
    title: str
    status: str
    amount_sats: int
    amount: str
    funding_type: str
    patron_pubkey: str
    arbiter_pubkey: str | None
    worker_pubkey: str | None
    goal_id: str | None
    zap_receipt_id: str | None
    categories: list[str]
    updated_at: int
    updated_by: str


@dataclass
class ConclusionSnapshot:
    id: str
    resolution: str
    details: str
    task_reference: str | None
    payout_zap_receipt_id: str | None
    created_at: int


# ---------------------------------------------------------------------------
# Funding & settlement
# ---------------------------------------------------------------------------


@dataclass
class ContributorSnapshot:
    pubkey: str
    amount_sats: int
    amount: str
    percentage: float
    latest_at: int
    refund_sats: int | None = None


@dataclass
class GoalSnapshot:
    goal_id: str
    target_sats: int
    raised_sats: int
    raised: str
    target: str
    percent_complete: float
    is_goal_met: bool
    receipts_seen: int
    contributors: list[ContributorSnapshot] = field(default_factory=list)


@dataclass
class SplitSnapshot:
    recipient_pubkey: str
    amount_sats: int
    amount: str
    purpose: str


@dataclass
class SettlementSnapshot:
    task_address: str
    kind: str  # "payout" or "refund"
    reason: str | None
    splits: list[SplitSnapshot] = field(default_factory=list)
    total_sats: int = 0
    unallocated_sats: int = 0


def arbiter_snapshot(arbiter: ArbiterAnnouncement, experience: int = 0) -> ArbiterSnapshot:
    return ArbiterSnapshot(
        address=arbiter.address,
        arbiter_pubkey=arbiter.arbiter_pubkey,
        name=arbiter.name,
        fee=format_fee(arbiter.fee_policy.fee_type, arbiter.fee_policy.amount),
        fee_type=arbiter.fee_policy.fee_type.value,
        fee_amount=arbiter.fee_policy.amount,
        min_amount=arbiter.min_amount,
        max_amount=arbiter.max_amount,
        categories=list(arbiter.categories),
        experience=experience,
        created_at=arbiter.created_at,
    )


def task_snapshot(task: TaskProposal) -> TaskSnapshot:
    return TaskSnapshot(
        address=task.address,
        title=task.title,
        status=task.status.value,
        amount_sats=task.amount,
        amount=format_sats(task.amount),
        funding_type=task.funding_type.value,
        patron_pubkey=task.patron_pubkey,
        arbiter_pubkey=task.arbiter_pubkey,
        worker_pubkey=task.worker_pubkey,
        goal_id=task.goal_id,
        zap_receipt_id=task.zap_receipt_id,
        categories=list(task.categories),
        updated_at=task.created_at,
        updated_by=task.pubkey,
    )


def conclusion_snapshot(conclusion: TaskConclusion) -> ConclusionSnapshot:
    return ConclusionSnapshot(
        id=conclusion.id,
        resolution=conclusion.resolution.value,
        details=conclusion.resolution_details,
        task_reference=conclusion.task_reference,
        payout_zap_receipt_id=conclusion.payout_zap_receipt_id,
        created_at=conclusion.created_at,
    )


def goal_snapshot(
    goal_id: str,
    progress: GoalProgress,
    receipts_seen: int,
    refunds: list[RefundSplit] | None = None,
) -> GoalSnapshot:
    refund_map = {r.recipient_pubkey: r.amount_sats for r in refunds or []}
    return GoalSnapshot(
        goal_id=goal_id,
        target_sats=progress.target_sats,
        raised_sats=progress.raised_sats,
        raised=format_sats(progress.raised_sats),
        target=format_sats(progress.target_sats),
        percent_complete=progress.percent_complete,
        is_goal_met=progress.is_goal_met,
        receipts_seen=receipts_seen,
        contributors=[
            ContributorSnapshot(
                pubkey=c.pubkey,
                amount_sats=c.amount_sats,
                amount=format_sats(c.amount_sats),
                percentage=c.percentage,
                latest_at=c.latest_at,
                refund_sats=refund_map.get(c.pubkey),
            )
            for c in progress.contributors
        ],
    )


def settlement_snapshot(
    task: TaskProposal,
    kind: str,
    splits: list[PaymentSplit] | list[RefundSplit],
    reason: str | None = None,
    pool_sats: int | None = None,
) -> SettlementSnapshot:
    lines: list[SplitSnapshot] = []
    for split in splits:
        if isinstance(split, RefundSplit):
            lines.append(SplitSnapshot(
                recipient_pubkey=split.recipient_pubkey,
                amount_sats=split.amount_sats,
                amount=format_sats(split.amount_sats),
                purpose=f"Refund for task: {task.title}",
            ))
        else:
            lines.append(SplitSnapshot(
                recipient_pubkey=split.recipient_pubkey,
                amount_sats=split.amount,
                amount=format_sats(split.amount),
                purpose=split.purpose,
            ))
    total = sum(line.amount_sats for line in lines)
    return SettlementSnapshot(
        task_address=task.address,
        kind=kind,
        reason=reason,
        splits=lines,
        total_sats=total,
        unallocated_sats=(pool_sats - total) if pool_sats is not None else 0,
    )

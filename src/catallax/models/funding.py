"""Derived funding and settlement results. Recomputed on demand, never stored."""

from __future__ import annotations

from dataclasses import dataclass, field

from catallax.models.events import NostrEvent
from catallax.models.records import FundingGoal


@dataclass
class Contributor:
    """One payer's aggregate contribution to a zap goal."""

    pubkey: str
    amount_sats: int
    percentage: float  # share of raised_sats, 0.0-1.0
    latest_at: int  # created_at of the most recent receipt


@dataclass
class GoalProgress:
    target_sats: int
    raised_sats: int
    percent_complete: float  # 0-100
    is_goal_met: bool
    contributors: list[Contributor] = field(default_factory=list)


@dataclass
class PaymentSplit:
    """A single independently payable line item."""

    recipient_pubkey: str
    amount: int  # sats
    weight: int
    purpose: str


@dataclass
class RefundSplit:
    """A contributor's share of a crowdfunding refund."""

    recipient_pubkey: str
    amount_sats: int
    original_contribution: int  # sats
    proportion: float  # original_contribution / total raised


@dataclass
class GoalState:
    """A zap goal together with the receipts it was computed from."""

    goal: FundingGoal
    receipts: list[NostrEvent]
    progress: GoalProgress

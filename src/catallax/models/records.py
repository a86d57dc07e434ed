"""Typed protocol records parsed from raw events."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class TaskStatus(str, Enum):
    """Lifecycle of a task proposal. ``concluded`` is terminal."""

    PROPOSED = "proposed"
    FUNDED = "funded"
    IN_PROGRESS = "in_progress"
    SUBMITTED = "submitted"
    CONCLUDED = "concluded"


class ResolutionType(str, Enum):
    SUCCESSFUL = "successful"
    REJECTED = "rejected"
    CANCELLED = "cancelled"
    ABANDONED = "abandoned"


class FeeType(str, Enum):
    FLAT = "flat"  # fee_amount is sats
    PERCENTAGE = "percentage"  # fee_amount is a fraction, "0.1" = 10%


class FundingType(str, Enum):
    SINGLE = "single"
    CROWDFUNDING = "crowdfunding"


@dataclass(frozen=True)
class FeePolicy:
    """An arbiter's fee policy as announced."""

    fee_type: FeeType
    amount: str  # kept as published; parsed at calculation time


@dataclass
class ArbiterAnnouncement:
    """Parameterized replaceable arbiter service (kind 33400)."""

    id: str
    pubkey: str
    created_at: int
    content: dict
    d: str
    arbiter_pubkey: str
    fee_policy: FeePolicy
    categories: list[str] = field(default_factory=list)
    details_url: str | None = None
    min_amount: int | None = None  # sats
    max_amount: int | None = None  # sats

    @property
    def name(self) -> str:
        return str(self.content.get("name", ""))

    @property
    def identity(self) -> tuple[str, str]:
        return (self.pubkey, self.d)

    @property
    def address(self) -> str:
        return f"33400:{self.pubkey}:{self.d}"

    def parties(self) -> set[str]:
        return {self.pubkey}


@dataclass
class TaskProposal:
    """Parameterized replaceable task (kind 33401).

    Identity is (patron, d). ``pubkey`` is whoever wrote this version, which
    may be the patron, the arbiter or the worker.
    """

    id: str
    pubkey: str
    created_at: int
    content: dict
    d: str
    patron_pubkey: str
    amount: int  # sats
    status: TaskStatus
    arbiter_pubkey: str | None = None
    worker_pubkey: str | None = None
    arbiter_service: str | None = None  # "33400:<arbiter>:<d>"
    funding_type: FundingType = FundingType.SINGLE
    goal_id: str | None = None
    zap_receipt_id: str | None = None
    categories: list[str] = field(default_factory=list)
    details_url: str | None = None

    @property
    def title(self) -> str:
        return str(self.content.get("title", ""))

    @property
    def identity(self) -> tuple[str, str]:
        return (self.patron_pubkey, self.d)

    @property
    def address(self) -> str:
        return f"33401:{self.patron_pubkey}:{self.d}"

    @property
    def is_crowdfunded(self) -> bool:
        return self.funding_type is FundingType.CROWDFUNDING

    def parties(self) -> set[str]:
        """Pubkeys allowed to publish the next version of this task."""
        return {
            p for p in (self.patron_pubkey, self.arbiter_pubkey, self.worker_pubkey) if p
        }


@dataclass
class TaskConclusion:
    """Immutable conclusion of a task (kind 3402)."""

    id: str
    pubkey: str
    created_at: int
    content: dict
    resolution: ResolutionType
    payout_zap_receipt_id: str | None = None
    task_proposal_id: str | None = None
    patron_pubkey: str | None = None
    arbiter_pubkey: str | None = None
    worker_pubkey: str | None = None
    task_reference: str | None = None  # task address

    @property
    def resolution_details(self) -> str:
        return str(self.content.get("resolution_details", ""))


@dataclass
class FundingGoal:
    """NIP-75 zap goal backing a crowdfunded task (kind 9041)."""

    id: str
    pubkey: str
    created_at: int
    content: str
    target_msat: int
    linked_address: str | None = None
    relays: list[str] = field(default_factory=list)
    default_recipient: str | None = None

    @property
    def target_sats(self) -> int:
        return self.target_msat // 1000

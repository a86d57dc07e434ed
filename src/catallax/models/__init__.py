"""Data models for the catallax client."""

from catallax.models.events import NostrEvent
from catallax.models.records import (
    ArbiterAnnouncement,
    FeePolicy,
    FeeType,
    FundingGoal,
    FundingType,
    ResolutionType,
    TaskConclusion,
    TaskProposal,
    TaskStatus,
)
from catallax.models.funding import (
    Contributor,
    GoalProgress,
    GoalState,
    PaymentSplit,
    RefundSplit,
)
from catallax.models.config import ClientConfig
from catallax.models.snapshots import (
    ArbiterSnapshot,
    ConclusionSnapshot,
    ContributorSnapshot,
    GoalSnapshot,
    SettlementSnapshot,
    SplitSnapshot,
    TaskSnapshot,
)

__all__ = [
    "NostrEvent",
    "ArbiterAnnouncement", "FeePolicy", "FeeType", "FundingGoal", "FundingType",
    "ResolutionType", "TaskConclusion", "TaskProposal", "TaskStatus",
    "Contributor", "GoalProgress", "GoalState", "PaymentSplit", "RefundSplit",
    "ClientConfig",
    "ArbiterSnapshot", "ConclusionSnapshot", "ContributorSnapshot", "GoalSnapshot",
    "SettlementSnapshot", "SplitSnapshot", "TaskSnapshot",
]

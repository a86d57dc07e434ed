"""Arbiter selection policy - bounds checks, filtering and sorting."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from functools import cmp_to_key

from catallax.models.records import ArbiterAnnouncement, FeeType
from catallax.settlement.calculator import calculate_arbiter_fee

log = logging.getLogger(__name__)


class ArbiterSortField(str, Enum):
    DATE = "date"
    FEE_PERCENT = "fee_percent"
    FEE_FLAT = "fee_flat"
    EXPERIENCE = "experience"


@dataclass
class ArbiterFilterState:
    sort_field: ArbiterSortField = ArbiterSortField.DATE
    descending: bool = True
    only_following: bool = False


@dataclass
class ArbiterFit:
    """Result of checking a task against an arbiter's announced terms."""

    accepted: bool
    reason: str  # "accepted", "below_min_amount", "above_max_amount", "category_mismatch"
    arbiter_address: str
    task_amount: int
    arbiter_fee: int
    total_cost: int  # task amount + fee


def evaluate_arbiter(
    arbiter: ArbiterAnnouncement,
    task_amount: int,
    categories: list[str] | None = None,
) -> ArbiterFit:
    """Check a prospective task of ``task_amount`` sats against ``arbiter``.

    Checks:
    1. Amount >= arbiter minimum
    2. Amount <= arbiter maximum
    3. At least one shared category, when both sides name any
    """
    fee = calculate_arbiter_fee(task_amount, arbiter.fee_policy)

    def _fit(accepted: bool, reason: str) -> ArbiterFit:
        if not accepted:
            log.debug("Arbiter %s declines %d sats: %s", arbiter.address, task_amount, reason)
        return ArbiterFit(
            accepted=accepted,
            reason=reason,
            arbiter_address=arbiter.address,
            task_amount=task_amount,
            arbiter_fee=fee,
            total_cost=task_amount + fee,
        )

    if arbiter.min_amount is not None and task_amount < arbiter.min_amount:
        return _fit(False, "below_min_amount")
    if arbiter.max_amount is not None and task_amount > arbiter.max_amount:
        return _fit(False, "above_max_amount")
    if not matches_categories(arbiter, categories):
        return _fit(False, "category_mismatch")
    return _fit(True, "accepted")


def accepts_amount(arbiter: ArbiterAnnouncement, task_amount: int) -> bool:
    """True when ``task_amount`` sats is within the arbiter's min/max bounds."""
    if arbiter.min_amount is not None and task_amount < arbiter.min_amount:
        return False
    if arbiter.max_amount is not None and task_amount > arbiter.max_amount:
        return False
    return True


def matches_categories(arbiter: ArbiterAnnouncement, categories: list[str] | None) -> bool:
    wanted = {c for c in categories or [] if c != "catallax"}
    offered = {c for c in arbiter.categories if c != "catallax"}
    if not wanted or not offered:
        return True
    return bool(wanted & offered)


def _compare(a: ArbiterAnnouncement, b: ArbiterAnnouncement, field: ArbiterSortField,
             experience: dict[str, int]) -> Decimal | int:
    if field is ArbiterSortField.DATE:
        return a.created_at - b.created_at
    if field is ArbiterSortField.EXPERIENCE:
        return experience.get(a.arbiter_pubkey, 0) - experience.get(b.arbiter_pubkey, 0)

    # Fee sorts compare within one fee type; the other type sorts after.
    wanted = FeeType.PERCENTAGE if field is ArbiterSortField.FEE_PERCENT else FeeType.FLAT
    a_match = a.fee_policy.fee_type is wanted
    b_match = b.fee_policy.fee_type is wanted
    if a_match and b_match:
        return Decimal(a.fee_policy.amount) - Decimal(b.fee_policy.amount)
    if a_match:
        return -1
    if b_match:
        return 1
    return 0


def apply_arbiter_filters(
    arbiters: list[ArbiterAnnouncement],
    state: ArbiterFilterState,
    follows: list[str] | None = None,
    experience: dict[str, int] | None = None,
    current_user: str | None = None,
) -> list[ArbiterAnnouncement]:
    """Filter by follow list (own services always kept), then sort."""
    filtered = list(arbiters)
    if state.only_following and follows:
        allowed = set(follows)
        filtered = [
            a for a in filtered
            if a.arbiter_pubkey in allowed or a.arbiter_pubkey == current_user
        ]

    exp = experience or {}

    def _cmp(a: ArbiterAnnouncement, b: ArbiterAnnouncement) -> int:
        result = _compare(a, b, state.sort_field, exp)
        if state.descending:
            result = -result
        return (result > 0) - (result < 0)

    filtered.sort(key=cmp_to_key(_cmp))
    return filtered

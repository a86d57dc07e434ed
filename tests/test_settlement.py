"""Tests 41-50: Arbiter fees, payout splits and crowdfunding refunds."""

from __future__ import annotations

import pytest

from catallax.events.parsers import parse_task_proposal
from catallax.models.funding import Contributor
from catallax.models.records import FeePolicy, FeeType, ResolutionType
from catallax.settlement.calculator import (
    calculate_arbiter_fee,
    calculate_crowdfunding_refunds,
    calculate_payment_split,
    refund_fee,
    refund_pool,
)
from tests.factories import ARBITER, PATRON, WORKER, make_task_event

TEN_PERCENT = FeePolicy(FeeType.PERCENTAGE, "0.1")


def _contributors(*amounts: int) -> list[Contributor]:
    total = sum(amounts)
    return [
        Contributor(
            pubkey=f"{i:064x}", amount_sats=a,
            percentage=a / total if total else 0.0, latest_at=0,
        )
        for i, a in enumerate(amounts)
    ]


# ── Test 41: Fee calculation ──────────────────────────────────────


@pytest.mark.parametrize("policy, amount, expected", [
    (FeePolicy(FeeType.FLAT, "500"), 3000, 500),
    (FeePolicy(FeeType.FLAT, "500"), 10, 500),
    (TEN_PERCENT, 3000, 300),
    (FeePolicy(FeeType.PERCENTAGE, "0.29"), 100, 29),
    (FeePolicy(FeeType.PERCENTAGE, "0.05"), 199, 9),
    (FeePolicy(FeeType.PERCENTAGE, "0"), 5000, 0),
])
def test_arbiter_fee(policy, amount, expected):
    assert calculate_arbiter_fee(amount, policy) == expected


# ── Test 42: Worker payout split ──────────────────────────────────


def test_worker_payout_split():
    """Worker gets the full amount; arbiter fee is a separate line."""
    task = parse_task_proposal(make_task_event(status="submitted", worker=WORKER))

    splits = calculate_payment_split(task, TEN_PERCENT, WORKER, "worker")

    assert [(s.recipient_pubkey, s.amount) for s in splits] == [(WORKER, 3000), (ARBITER, 300)]
    assert splits[0].purpose == "Payment for completed work: Fix the bug"
    assert splits[1].purpose == "Arbiter fee for task: Fix the bug"


# ── Test 43: Patron refund split ──────────────────────────────────


def test_patron_refund_split():
    task = parse_task_proposal(make_task_event(status="funded"))
    splits = calculate_payment_split(task, FeePolicy(FeeType.FLAT, "0"), PATRON, "patron")
    assert len(splits) == 1
    assert splits[0].amount == 3000
    assert splits[0].purpose == "Refund for task: Fix the bug"


# ── Test 44: Fee without an arbiter ───────────────────────────────


def test_fee_line_omitted_without_arbiter():
    task = parse_task_proposal(make_task_event(arbiter=None))
    splits = calculate_payment_split(task, TEN_PERCENT, WORKER, "worker")
    assert [s.recipient_pubkey for s in splits] == [WORKER]


# ── Test 45: Scenario C ───────────────────────────────────────────


def test_rejected_refund_two_equal_contributors():
    """fee 300, pool 3700, 1850 each, no residual."""
    contributors = _contributors(2000, 2000)

    refunds = calculate_crowdfunding_refunds(contributors, TEN_PERCENT, 3000, "rejected")

    assert refund_fee(3000, TEN_PERCENT, "rejected") == 300
    assert refund_pool(contributors, TEN_PERCENT, 3000, "rejected") == 3700
    assert [r.amount_sats for r in refunds] == [1850, 1850]
    assert [r.original_contribution for r in refunds] == [2000, 2000]
    assert [r.proportion for r in refunds] == [0.5, 0.5]


# ── Test 46: Scenario D ───────────────────────────────────────────


def test_cancelled_refund_three_equal_contributors():
    """No fee on cancel; 999 each and 3 sats left unallocated."""
    contributors = _contributors(1000, 1000, 1000)

    refunds = calculate_crowdfunding_refunds(
        contributors, TEN_PERCENT, 3000, ResolutionType.CANCELLED,
    )

    assert refund_fee(3000, TEN_PERCENT, ResolutionType.CANCELLED) == 0
    assert refund_pool(contributors, TEN_PERCENT, 3000, "cancelled") == 3000
    assert [r.amount_sats for r in refunds] == [999, 999, 999]
    assert sum(r.amount_sats for r in refunds) == 2997


# ── Test 47: Abandoned withholds the fee ──────────────────────────


def test_abandoned_refund_withholds_fee():
    contributors = _contributors(1000)
    refunds = calculate_crowdfunding_refunds(contributors, TEN_PERCENT, 1000, "abandoned")
    assert refunds[0].amount_sats == 900


# ── Test 48: Refund bound ─────────────────────────────────────────


@pytest.mark.parametrize("amounts", [
    (1, 1, 1),
    (7, 13, 29, 101),
    (333, 333, 334),
    (1, 2_000_000),
    (5,) * 11,
])
def test_refunds_never_exceed_pool(amounts):
    """0 <= pool - sum(refunds) <= number of contributors.

    Inclusive bound: scenario D (pool 3000, three refunds of 999) leaves exactly 3.
    """
    contributors = _contributors(*amounts)
    refunds = calculate_crowdfunding_refunds(contributors, TEN_PERCENT, sum(amounts), "rejected")
    pool = refund_pool(contributors, TEN_PERCENT, sum(amounts), "rejected")
    residual = pool - sum(r.amount_sats for r in refunds)
    assert 0 <= residual <= len(contributors)
    assert all(r.amount_sats >= 0 for r in refunds)


# ── Test 49: Fee larger than raised ───────────────────────────────


def test_pool_never_negative():
    contributors = _contributors(100)
    flat = FeePolicy(FeeType.FLAT, "500")
    assert refund_pool(contributors, flat, 3000, "rejected") == 0
    assert [r.amount_sats for r in calculate_crowdfunding_refunds(
        contributors, flat, 3000, "rejected",
    )] == [0]


# ── Test 50: Nothing raised ───────────────────────────────────────


def test_no_contributions_no_refunds():
    assert calculate_crowdfunding_refunds([], TEN_PERCENT, 3000, "cancelled") == []
    assert calculate_crowdfunding_refunds(_contributors(0), TEN_PERCENT, 3000, "cancelled") == []

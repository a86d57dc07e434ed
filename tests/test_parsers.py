"""Tests 1-14: Event parsing and validation."""

from __future__ import annotations

import json

from catallax.events.parsers import (
    parse_all,
    parse_arbiter_announcement,
    parse_funding_goal,
    parse_task_conclusion,
    parse_task_proposal,
)
from catallax.models.events import KIND_TASK_CONCLUSION, KIND_TASK_PROPOSAL
from catallax.models.records import FeeType, FundingType, ResolutionType, TaskStatus
from tests.factories import (
    ARBITER,
    PATRON,
    WORKER,
    make_announcement_event,
    make_conclusion_event,
    make_event,
    make_goal_event,
    make_task_event,
)


# ── Test 1: Arbiter announcement ──────────────────────────────────


def test_parse_announcement():
    """All fields mapped; min/max parsed as ints."""
    event = make_announcement_event(
        fee_type="flat", fee_amount="500", min_amount=1000, max_amount=50_000,
        categories=["dev"],
    )

    arbiter = parse_arbiter_announcement(event)

    assert arbiter is not None
    assert arbiter.name == "Code Review"
    assert arbiter.arbiter_pubkey == ARBITER
    assert arbiter.fee_policy.fee_type is FeeType.FLAT
    assert arbiter.fee_policy.amount == "500"
    assert arbiter.min_amount == 1000
    assert arbiter.max_amount == 50_000
    assert "dev" in arbiter.categories
    assert arbiter.address == f"33400:{ARBITER}:code-review-service"


# ── Test 2: Announcement missing fee tags ─────────────────────────


def test_announcement_missing_fee_is_invalid():
    """No fee_amount tag → None."""
    event = make_announcement_event()
    stripped = make_event(
        event.kind, [t for t in event.tags if t[0] != "fee_amount"], event.content,
        pubkey=event.pubkey,
    )
    assert parse_arbiter_announcement(stripped) is None


# ── Test 3: Announcement with unusable fee ────────────────────────


def test_announcement_bad_fee_is_invalid():
    """Unknown fee type or non-numeric fee → None."""
    assert parse_arbiter_announcement(make_announcement_event(fee_type="tip")) is None
    assert parse_arbiter_announcement(make_announcement_event(fee_amount="lots")) is None
    assert parse_arbiter_announcement(make_announcement_event(fee_amount="-1")) is None


def test_flat_fee_must_be_whole_sats():
    """Fractional or exponent flat fee → None; percentages stay fractional."""
    for amount in ("100.5", "1e3", "-5"):
        event = make_announcement_event(fee_type="flat", fee_amount=amount)
        assert parse_arbiter_announcement(event) is None

    percent = parse_arbiter_announcement(make_announcement_event(fee_amount="0.125"))
    assert percent.fee_policy.amount == "0.125"


# ── Test 4: Content not JSON ──────────────────────────────────────


def test_announcement_content_not_json():
    """Free-text content → None."""
    event = make_announcement_event()
    broken = make_event(event.kind, event.tags, "not json", pubkey=event.pubkey)
    assert parse_arbiter_announcement(broken) is None


# ── Test 5: Task proposal, positional parties ─────────────────────


def test_parse_task_parties_by_position():
    """p tags are patron, arbiter, worker, in that order."""
    event = make_task_event(status="in_progress", worker=WORKER, author=ARBITER)

    task = parse_task_proposal(event)

    assert task is not None
    assert task.patron_pubkey == PATRON
    assert task.arbiter_pubkey == ARBITER
    assert task.worker_pubkey == WORKER
    assert task.pubkey == ARBITER
    assert task.status is TaskStatus.IN_PROGRESS
    assert task.amount == 3000
    assert task.title == "Fix the bug"
    assert task.identity == (PATRON, "fix-the-bug-123456")
    assert task.parties() == {PATRON, ARBITER, WORKER}


# ── Test 6: Empty arbiter placeholder ─────────────────────────────


def test_parse_task_empty_arbiter_slot():
    """["p", ""] in the arbiter slot means no arbiter, worker still found."""
    task = parse_task_proposal(make_task_event(arbiter=None, worker=WORKER))

    assert task is not None
    assert task.arbiter_pubkey is None
    assert task.worker_pubkey == WORKER


# ── Test 7: Task proposal missing required tags ───────────────────


def test_task_missing_required_tags():
    """Missing d, p, amount or status → None."""
    base = make_task_event()
    for name in ("d", "p", "amount", "status"):
        tags = [t for t in base.tags if t[0] != name]
        event = make_event(KIND_TASK_PROPOSAL, tags, base.content)
        assert parse_task_proposal(event) is None, name


# ── Test 8: Task proposal with bad values ─────────────────────────


def test_task_bad_values():
    """Non-integer amount, unknown status, crowdfunding without goal → None."""
    assert parse_task_proposal(make_task_event(status="paused")) is None
    assert parse_task_proposal(make_task_event(funding_type="crowdfunding")) is None

    base = make_task_event()
    tags = [["amount", "3k"] if t[0] == "amount" else t for t in base.tags]
    assert parse_task_proposal(make_event(KIND_TASK_PROPOSAL, tags, base.content)) is None


# ── Test 9: Crowdfunding fields and zap proof ─────────────────────


def test_parse_crowdfunded_task():
    """funding_type, goal and marked zap receipt are read."""
    task = parse_task_proposal(make_task_event(
        status="funded", funding_type="crowdfunding", goal_id="f" * 64,
        zap_receipt_id="9" * 64,
    ))

    assert task is not None
    assert task.funding_type is FundingType.CROWDFUNDING
    assert task.is_crowdfunded
    assert task.goal_id == "f" * 64
    assert task.zap_receipt_id == "9" * 64


def test_funding_type_defaults_to_single():
    task = parse_task_proposal(make_task_event())
    assert task is not None
    assert task.funding_type is FundingType.SINGLE
    assert task.goal_id is None


# ── Test 10: Conclusion with markers ──────────────────────────────


def test_parse_conclusion_marked_tags():
    """payout/task markers decide which e tag is which."""
    event = make_conclusion_event(task_id="1" * 64, payout_id="2" * 64)

    conclusion = parse_task_conclusion(event)

    assert conclusion is not None
    assert conclusion.resolution is ResolutionType.SUCCESSFUL
    assert conclusion.payout_zap_receipt_id == "2" * 64
    assert conclusion.task_proposal_id == "1" * 64
    assert conclusion.arbiter_pubkey == ARBITER
    assert conclusion.worker_pubkey == WORKER
    assert conclusion.task_reference == f"33401:{PATRON}:fix-the-bug-123456"
    assert conclusion.resolution_details == "All done"


# ── Test 11: Conclusion positional e tags ─────────────────────────


def test_parse_conclusion_positional_tags():
    """Unmarked: first e is the payout receipt, second the task."""
    event = make_event(
        KIND_TASK_CONCLUSION,
        [["resolution", "rejected"], ["e", "pay"], ["e", "task"], ["p", PATRON]],
        json.dumps({"resolution_details": "no"}),
    )

    conclusion = parse_task_conclusion(event)

    assert conclusion is not None
    assert conclusion.payout_zap_receipt_id == "pay"
    assert conclusion.task_proposal_id == "task"
    assert conclusion.arbiter_pubkey is None


def test_conclusion_unknown_resolution():
    assert parse_task_conclusion(make_conclusion_event(resolution="maybe")) is None


# ── Test 12: Goal ─────────────────────────────────────────────────


def test_parse_goal():
    """Target in msat, relay hints, linked address and recipient."""
    event = make_goal_event(target_sats=4000, relays=["wss://a", "wss://b"])

    goal = parse_funding_goal(event)

    assert goal is not None
    assert goal.target_msat == 4_000_000
    assert goal.target_sats == 4000
    assert goal.relays == ["wss://a", "wss://b"]
    assert goal.linked_address == f"33401:{PATRON}:fix-the-bug-123456"
    assert goal.default_recipient == ARBITER


def test_goal_without_amount_is_invalid():
    event = make_goal_event()
    stripped = make_event(event.kind, [t for t in event.tags if t[0] != "amount"], event.content)
    assert parse_funding_goal(stripped) is None


# ── Test 13: Parsing is deterministic ─────────────────────────────


def test_parse_is_deterministic():
    event = make_task_event()
    assert parse_task_proposal(event) == parse_task_proposal(event)


# ── Test 14: parse_all drops invalid events ───────────────────────


def test_parse_all_discards_invalid():
    events = [make_task_event(), make_task_event(status="bogus"), make_task_event(d="other")]
    tasks = parse_all(events, parse_task_proposal)
    assert [t.d for t in tasks] == ["fix-the-bug-123456", "other"]

"""Event parsers - map one raw event to a typed record, or None if invalid.

Relays enforce no schema, so anything malformed is dropped here rather than
raised: one misbehaving writer must not break reconciliation for everyone.
"""

from __future__ import annotations

import json
import logging
from decimal import Decimal, InvalidOperation

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

log = logging.getLogger(__name__)


def _json_object(content: str) -> dict | None:
    try:
        value = json.loads(content)
    except (ValueError, TypeError):
        return None
    return value if isinstance(value, dict) else None


def _int_or_none(value: str | None) -> int | None:
    if value is None:
        return None
    try:
        return int(value)
    except ValueError:
        return None


def _marked_tag_value(event: NostrEvent, name: str, marker: str) -> str | None:
    """Value of the first ``[name, value, relay, marker]`` tag with ``marker``."""
    for tag in event.tags:
        if len(tag) >= 4 and tag[0] == name and tag[3] == marker:
            return tag[1]
    return None


def parse_arbiter_announcement(event: NostrEvent) -> ArbiterAnnouncement | None:
    content = _json_object(event.content)
    if content is None:
        log.debug("Announcement %s: content is not a JSON object", event.id[:8])
        return None

    d = event.tag_value("d")
    arbiter_pubkey = event.tag_value("p")
    fee_type_raw = event.tag_value("fee_type")
    fee_amount = event.tag_value("fee_amount")
    if not d or not arbiter_pubkey or not fee_type_raw or not fee_amount:
        log.debug("Announcement %s: missing required tag", event.id[:8])
        return None

    try:
        fee_type = FeeType(fee_type_raw)
        fee_value = Decimal(fee_amount)
    except (ValueError, InvalidOperation):
        log.debug("Announcement %s: bad fee %r/%r", event.id[:8], fee_type_raw, fee_amount)
        return None
    if not fee_value.is_finite() or fee_value < 0:
        return None
    if fee_type is FeeType.FLAT and _int_or_none(fee_amount) is None:
        log.debug("Announcement %s: flat fee %r is not whole sats", event.id[:8], fee_amount)
        return None

    return ArbiterAnnouncement(
        id=event.id,
        pubkey=event.pubkey,
        created_at=event.created_at,
        content=content,
        d=d,
        arbiter_pubkey=arbiter_pubkey,
        fee_policy=FeePolicy(fee_type=fee_type, amount=fee_amount),
        categories=event.tag_values("t"),
        details_url=event.tag_value("r"),
        min_amount=_int_or_none(event.tag_value("min_amount")),
        max_amount=_int_or_none(event.tag_value("max_amount")),
    )


def parse_task_proposal(event: NostrEvent) -> TaskProposal | None:
    content = _json_object(event.content)
    if content is None:
        log.debug("Task %s: content is not a JSON object", event.id[:8])
        return None

    d = event.tag_value("d")
    p_tags = event.tag_values("p")
    amount_raw = event.tag_value("amount")
    status_raw = event.tag_value("status")
    if not d or not p_tags or not p_tags[0] or not amount_raw or not status_raw:
        log.debug("Task %s: missing required tag", event.id[:8])
        return None

    amount = _int_or_none(amount_raw)
    if amount is None or amount < 0:
        log.debug("Task %s: bad amount %r", event.id[:8], amount_raw)
        return None

    try:
        status = TaskStatus(status_raw)
        funding_type = FundingType(event.tag_value("funding_type") or FundingType.SINGLE.value)
    except ValueError:
        log.debug("Task %s: unknown status or funding type", event.id[:8])
        return None

    goal_id = event.tag_value("goal")
    if funding_type is FundingType.CROWDFUNDING and not goal_id:
        log.debug("Task %s: crowdfunding task without goal", event.id[:8])
        return None

    return TaskProposal(
        id=event.id,
        pubkey=event.pubkey,
        created_at=event.created_at,
        content=content,
        d=d,
        patron_pubkey=p_tags[0],
        amount=amount,
        status=status,
        arbiter_pubkey=p_tags[1] if len(p_tags) > 1 and p_tags[1] else None,
        worker_pubkey=p_tags[2] if len(p_tags) > 2 and p_tags[2] else None,
        arbiter_service=event.tag_value("a"),
        funding_type=funding_type,
        goal_id=goal_id,
        zap_receipt_id=_marked_tag_value(event, "e", "zap"),
        categories=event.tag_values("t"),
        details_url=event.tag_value("r"),
    )


def parse_task_conclusion(event: NostrEvent) -> TaskConclusion | None:
    content = _json_object(event.content)
    if content is None:
        log.debug("Conclusion %s: content is not a JSON object", event.id[:8])
        return None

    resolution_raw = event.tag_value("resolution")
    if not resolution_raw:
        return None
    try:
        resolution = ResolutionType(resolution_raw)
    except ValueError:
        log.debug("Conclusion %s: unknown resolution %r", event.id[:8], resolution_raw)
        return None

    # Marked tags win; otherwise positional: payout receipt first, then the task.
    e_tags = event.tag_values("e")
    payout_id = _marked_tag_value(event, "e", "payout")
    task_id = _marked_tag_value(event, "e", "task")
    if payout_id is None and task_id is None:
        payout_id = e_tags[0] if len(e_tags) > 0 else None
        task_id = e_tags[1] if len(e_tags) > 1 else None
    p_tags = [p or None for p in event.tag_values("p")]

    return TaskConclusion(
        id=event.id,
        pubkey=event.pubkey,
        created_at=event.created_at,
        content=content,
        resolution=resolution,
        payout_zap_receipt_id=payout_id,
        task_proposal_id=task_id,
        patron_pubkey=p_tags[0] if len(p_tags) > 0 else None,
        arbiter_pubkey=p_tags[1] if len(p_tags) > 1 else None,
        worker_pubkey=p_tags[2] if len(p_tags) > 2 else None,
        task_reference=event.tag_value("a"),
    )


def parse_funding_goal(event: NostrEvent) -> FundingGoal | None:
    """Parse a NIP-75 goal. Content is free text, not JSON."""
    target = _int_or_none(event.tag_value("amount"))
    if target is None or target < 0:
        log.debug("Goal %s: missing or bad amount tag", event.id[:8])
        return None

    relays_tag = event.find_tag("relays")
    return FundingGoal(
        id=event.id,
        pubkey=event.pubkey,
        created_at=event.created_at,
        content=event.content,
        target_msat=target,
        linked_address=event.tag_value("a"),
        relays=[r for r in relays_tag[1:] if r] if relays_tag else [],
        default_recipient=event.tag_value("zap"),
    )


def parse_all(events, parser) -> list:
    """Apply ``parser`` to every event, discarding invalid ones."""
    parsed = []
    for event in events:
        record = parser(event)
        if record is not None:
            parsed.append(record)
    return parsed

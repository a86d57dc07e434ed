"""Tag builders for every event kind the client publishes.

Each builder returns a ``(kind, content, tags)`` triple ready for an
``EventPublisher``. Task updates must carry the whole task forward since a
replaceable event fully supersedes the previous version.
"""

from __future__ import annotations

import json
import re
import time

from catallax.models.events import (
    CATALLAX_TAG,
    KIND_ARBITER_ANNOUNCEMENT,
    KIND_TASK_CONCLUSION,
    KIND_TASK_PROPOSAL,
    KIND_ZAP_GOAL,
)
from catallax.models.records import (
    FeeType,
    FundingType,
    ResolutionType,
    TaskProposal,
    TaskStatus,
)

EventTemplate = tuple[int, str, list[list[str]]]


def _slugify(text: str) -> str:
    slug = re.sub(r"[^a-z0-9\s-]", "", text.lower())
    slug = re.sub(r"\s+", "-", slug)
    slug = re.sub(r"-+", "-", slug)
    return slug.strip()


def generate_task_id(title: str, now_ms: int | None = None) -> str:
    """Slug of the title plus the last six digits of the millisecond clock."""
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    return f"{_slugify(title)}-{str(now_ms)[-6:]}"


def generate_service_id(name: str) -> str:
    return f"{_slugify(name)}-service"


def task_address(patron_pubkey: str, d: str) -> str:
    return f"{KIND_TASK_PROPOSAL}:{patron_pubkey}:{d}"


def arbiter_address(arbiter_pubkey: str, d: str) -> str:
    return f"{KIND_ARBITER_ANNOUNCEMENT}:{arbiter_pubkey}:{d}"


def build_arbiter_announcement(
    arbiter_pubkey: str,
    name: str,
    fee_type: FeeType,
    fee_amount: str,
    about: str | None = None,
    policy_text: str | None = None,
    policy_url: str | None = None,
    categories: list[str] | None = None,
    min_amount: int | None = None,
    max_amount: int | None = None,
    details_url: str | None = None,
    service_id: str | None = None,
) -> EventTemplate:
    content = {"name": name}
    if about:
        content["about"] = about
    if policy_text:
        content["policy_text"] = policy_text
    if policy_url:
        content["policy_url"] = policy_url

    tags = [
        ["d", service_id or generate_service_id(name)],
        ["p", arbiter_pubkey],
        ["fee_type", FeeType(fee_type).value],
        ["fee_amount", str(fee_amount)],
        ["t", CATALLAX_TAG],
    ]
    if min_amount is not None:
        tags.append(["min_amount", str(min_amount)])
    if max_amount is not None:
        tags.append(["max_amount", str(max_amount)])
    if details_url:
        tags.append(["r", details_url])
    for category in categories or []:
        if category != CATALLAX_TAG:
            tags.append(["t", category])
    return KIND_ARBITER_ANNOUNCEMENT, json.dumps(content), tags


def build_task_proposal(
    patron_pubkey: str,
    arbiter_pubkey: str,
    arbiter_d: str,
    title: str,
    description: str,
    requirements: str,
    amount: int,
    deadline: int | None = None,
    categories: list[str] | None = None,
    details_url: str | None = None,
    funding_type: FundingType = FundingType.SINGLE,
    goal_id: str | None = None,
    goal_relay: str | None = None,
    task_id: str | None = None,
) -> EventTemplate:
    content: dict = {
        "title": title,
        "description": description,
        "requirements": requirements,
    }
    if deadline is not None:
        content["deadline"] = deadline

    tags = [
        ["d", task_id or generate_task_id(title)],
        ["p", patron_pubkey],
        ["p", arbiter_pubkey],
        ["a", arbiter_address(arbiter_pubkey, arbiter_d)],
        ["amount", str(amount)],
        ["t", CATALLAX_TAG],
        ["status", TaskStatus.PROPOSED.value],
        ["funding_type", FundingType(funding_type).value],
    ]
    if details_url:
        tags.append(["r", details_url])
    for category in categories or []:
        if category != CATALLAX_TAG:
            tags.append(["t", category])
    if goal_id:
        tags.append(["goal", goal_id, goal_relay] if goal_relay else ["goal", goal_id])
    return KIND_TASK_PROPOSAL, json.dumps(content), tags


def build_task_update(
    task: TaskProposal,
    status: TaskStatus,
    zap_receipt_id: str | None = None,
    worker_pubkey: str | None = None,
    keep_worker: bool = True,
) -> EventTemplate:
    """Republish ``task`` with a new status, preserving everything else.

    ``keep_worker=False`` drops the worker (back to funded after a worker
    walks away). ``worker_pubkey`` assigns or replaces the worker.
    """
    tags = [
        ["d", task.d],
        ["p", task.patron_pubkey],
        ["amount", str(task.amount)],
        ["t", CATALLAX_TAG],
        ["status", TaskStatus(status).value],
    ]
    # Party order matters: patron, arbiter, worker.
    if task.arbiter_pubkey:
        tags.append(["p", task.arbiter_pubkey])
    worker = worker_pubkey or (task.worker_pubkey if keep_worker else None)
    if worker:
        if not task.arbiter_pubkey:
            tags.append(["p", ""])
        tags.append(["p", worker])
    if task.arbiter_service:
        tags.append(["a", task.arbiter_service])
    if task.details_url:
        tags.append(["r", task.details_url])
    receipt = zap_receipt_id or task.zap_receipt_id
    if receipt:
        tags.append(["e", receipt, "", "zap"])
    for category in task.categories:
        if category != CATALLAX_TAG:
            tags.append(["t", category])
    if task.is_crowdfunded:
        tags.append(["funding_type", FundingType.CROWDFUNDING.value])
        if task.goal_id:
            tags.append(["goal", task.goal_id])
    return KIND_TASK_PROPOSAL, json.dumps(task.content), tags


def build_task_conclusion(
    task: TaskProposal,
    resolution: ResolutionType,
    resolution_details: str,
    payout_zap_receipt_id: str | None = None,
) -> EventTemplate:
    tags = [
        ["p", task.patron_pubkey],
        ["resolution", ResolutionType(resolution).value],
        ["a", task.address],
        ["t", CATALLAX_TAG],
    ]
    if task.arbiter_pubkey:
        tags.append(["p", task.arbiter_pubkey])
    if task.worker_pubkey:
        if not task.arbiter_pubkey:
            tags.append(["p", ""])
        tags.append(["p", task.worker_pubkey])
    if payout_zap_receipt_id:
        tags.append(["e", payout_zap_receipt_id, "", "payout"])
    tags.append(["e", task.id, "", "task"])
    content = {"resolution_details": resolution_details}
    return KIND_TASK_CONCLUSION, json.dumps(content), tags


def build_goal(
    title: str,
    amount_sats: int,
    patron_pubkey: str,
    task_d: str,
    arbiter_pubkey: str,
    relays: list[str],
) -> EventTemplate:
    """NIP-75 goal for a crowdfunded task; the arbiter is the zap recipient."""
    tags = [
        ["amount", str(amount_sats * 1000)],
        ["relays", *relays],
        ["a", task_address(patron_pubkey, task_d)],
        ["zap", arbiter_pubkey, relays[0] if relays else "", "1"],
        ["t", CATALLAX_TAG],
    ]
    return KIND_ZAP_GOAL, f"Crowdfunding goal for: {title}", tags

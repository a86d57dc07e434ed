"""Settlement calculator - arbiter fees, payout splits and refund splits.

All results are whole sats, floored. Fractions are handled with ``Decimal``
so that e.g. a 0.29 fee on 100 sats is 29, not 28.
"""

from __future__ import annotations

import logging
from decimal import ROUND_FLOOR, Decimal, localcontext
from typing import Literal

from catallax.models.funding import Contributor, PaymentSplit, RefundSplit
from catallax.models.records import FeePolicy, FeeType, ResolutionType, TaskProposal

log = logging.getLogger(__name__)

PaymentKind = Literal["worker", "patron"]


def calculate_arbiter_fee(task_amount: int, policy: FeePolicy) -> int:
    """Arbiter fee in sats for a task of ``task_amount`` sats."""
    if policy.fee_type is FeeType.FLAT:
        return int(Decimal(policy.amount))
    fraction = Decimal(policy.amount)
    return int((Decimal(task_amount) * fraction).to_integral_value(rounding=ROUND_FLOOR))


def calculate_payment_split(
    task: TaskProposal,
    policy: FeePolicy,
    recipient_pubkey: str,
    kind: PaymentKind,
) -> list[PaymentSplit]:
    """Line items for paying out (worker) or refunding (patron) a task.

    The recipient always gets the full task amount; the arbiter fee is a
    separate, additional line item.
    """
    fee = calculate_arbiter_fee(task.amount, policy)
    if kind == "worker":
        purpose = f"Payment for completed work: {task.title}"
    else:
        purpose = f"Refund for task: {task.title}"

    splits = [
        PaymentSplit(
            recipient_pubkey=recipient_pubkey,
            amount=task.amount,
            weight=task.amount,
            purpose=purpose,
        )
    ]
    if fee > 0:
        if task.arbiter_pubkey:
            splits.append(PaymentSplit(
                recipient_pubkey=task.arbiter_pubkey,
                amount=fee,
                weight=fee,
                purpose=f"Arbiter fee for task: {task.title}",
            ))
        else:
            log.warning("Task %s has a fee but no arbiter; fee line omitted", task.d)
    return splits


def refund_fee(
    task_amount: int,
    policy: FeePolicy,
    reason: ResolutionType | str,
) -> int:
    """Fee withheld from a crowdfunding refund: none when cancelled."""
    if ResolutionType(reason) is ResolutionType.CANCELLED:
        return 0
    return calculate_arbiter_fee(task_amount, policy)


def calculate_crowdfunding_refunds(
    contributors: list[Contributor],
    policy: FeePolicy,
    task_amount: int,
    reason: ResolutionType | str,
) -> list[RefundSplit]:
    """Proportional refunds to every contributor.

    Each refund is ``floor(pool * share)`` with ``pool = raised - fee``. The
    floored refunds may sum to less than the pool; that residual is left
    unallocated.
    """
    total = sum(c.amount_sats for c in contributors)
    if total <= 0:
        return []

    fee = refund_fee(task_amount, policy, reason)
    pool = max(0, total - fee)

    refunds: list[RefundSplit] = []
    with localcontext() as ctx:
        # Round shares down so no refund can exceed its exact share.
        ctx.rounding = ROUND_FLOOR
        for contributor in contributors:
            share = Decimal(contributor.amount_sats) / Decimal(total)
            amount = int((Decimal(pool) * share).to_integral_value())
            refunds.append(RefundSplit(
                recipient_pubkey=contributor.pubkey,
                amount_sats=amount,
                original_contribution=contributor.amount_sats,
                proportion=float(share),
            ))
    return refunds


def refund_pool(
    contributors: list[Contributor],
    policy: FeePolicy,
    task_amount: int,
    reason: ResolutionType | str,
) -> int:
    total = sum(c.amount_sats for c in contributors)
    return max(0, total - refund_fee(task_amount, policy, reason))

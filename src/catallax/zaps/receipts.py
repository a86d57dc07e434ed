"""Zap receipt decoding - how much was paid, and by whom.

A NIP-57 receipt (kind 9735) does not reliably carry its amount in one
place. Decoding tries, in order:

1. an ``amount`` tag on the receipt itself
2. the ``amount`` tag of the zap request embedded in ``description``
3. the amount in the human-readable part of the ``bolt11`` invoice

The first tier yielding a positive msat value wins. A receipt nothing can
be decoded from counts as zero.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Callable

from catallax.models.events import NostrEvent

log = logging.getLogger(__name__)

MSAT_PER_SAT = 1000

# msat per unit of each BOLT11 multiplier; no multiplier means whole bitcoin.
# Pico is the only one below a millisat and is handled by division.
_MULTIPLIER_MSAT = {
    "": 100_000_000_000,
    "m": 100_000_000,
    "u": 100_000,
    "n": 100,
}

# Human-readable part: "ln" + network + amount digits + optional multiplier.
# The bech32 separator is the last "1" in the string, so the amount can be
# isolated from the hrp without decoding the data part.
_HRP_RE = re.compile(r"^ln(?:bcrt|bc|tbs|tb)(\d+)([munp]?)$")


def _zap_request(receipt: NostrEvent) -> dict | None:
    """The JSON zap request carried in the receipt's description tag."""
    description = receipt.tag_value("description")
    if not description:
        return None
    try:
        request = json.loads(description)
    except (ValueError, TypeError):
        log.debug("Receipt %s: description is not JSON", receipt.id[:8])
        return None
    return request if isinstance(request, dict) else None


def _positive_int(value: object) -> int | None:
    try:
        amount = int(str(value))
    except (TypeError, ValueError):
        return None
    return amount if amount > 0 else None


def amount_from_tag(receipt: NostrEvent) -> int | None:
    """Tier 1: explicit ``amount`` tag on the receipt."""
    return _positive_int(receipt.tag_value("amount"))


def amount_from_zap_request(receipt: NostrEvent) -> int | None:
    """Tier 2: ``amount`` tag of the embedded zap request."""
    request = _zap_request(receipt)
    if request is None:
        return None
    tags = request.get("tags")
    if not isinstance(tags, list):
        return None
    for tag in tags:
        if isinstance(tag, list) and len(tag) >= 2 and tag[0] == "amount":
            return _positive_int(tag[1])
    return None


def decode_bolt11_amount(invoice: str) -> int | None:
    """Amount in msat encoded in a BOLT11 invoice's human-readable part.

    ``lnbc2500u1...`` -> 250_000_000 msat. ``lnbc1...`` (no amount) -> None.
    """
    invoice = invoice.strip().lower()
    if invoice.startswith("lightning:"):
        invoice = invoice[len("lightning:"):]
    sep = invoice.rfind("1")
    if sep <= 0:
        return None
    match = _HRP_RE.match(invoice[:sep])
    if match is None:
        return None

    digits, multiplier = int(match.group(1)), match.group(2)
    if multiplier == "p":
        msat = digits // 10
    else:
        msat = digits * _MULTIPLIER_MSAT[multiplier]
    return msat if msat > 0 else None


def amount_from_bolt11(receipt: NostrEvent) -> int | None:
    """Tier 3: decode the ``bolt11`` tag."""
    invoice = receipt.tag_value("bolt11")
    if not invoice:
        return None
    return decode_bolt11_amount(invoice)


AMOUNT_TIERS: list[Callable[[NostrEvent], int | None]] = [
    amount_from_tag,
    amount_from_zap_request,
    amount_from_bolt11,
]


def receipt_amount_msat(receipt: NostrEvent) -> int:
    """Paid amount in msat, or 0 if no tier can decode it."""
    for tier in AMOUNT_TIERS:
        amount = tier(receipt)
        if amount:
            return amount
    log.debug("Receipt %s: amount not decodable", receipt.id[:8])
    return 0


def receipt_sender(receipt: NostrEvent) -> str | None:
    """Pubkey of the payer, taken from the embedded zap request."""
    request = _zap_request(receipt)
    if request is None:
        return None
    pubkey = request.get("pubkey")
    if not isinstance(pubkey, str) or not pubkey:
        return None
    return pubkey

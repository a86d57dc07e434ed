"""Zap receipt decoding and zap goal aggregation."""

from catallax.zaps.goal import aggregate_contributions, calculate_goal_progress, dedupe_events
from catallax.zaps.receipts import (
    decode_bolt11_amount,
    receipt_amount_msat,
    receipt_sender,
)

__all__ = [
    "aggregate_contributions",
    "calculate_goal_progress",
    "dedupe_events",
    "decode_bolt11_amount",
    "receipt_amount_msat",
    "receipt_sender",
]

"""Fee-aware payout and refund calculation."""

from catallax.settlement.calculator import (
    calculate_arbiter_fee,
    calculate_crowdfunding_refunds,
    calculate_payment_split,
    refund_fee,
    refund_pool,
)

__all__ = [
    "calculate_arbiter_fee",
    "calculate_crowdfunding_refunds",
    "calculate_payment_split",
    "refund_fee",
    "refund_pool",
]

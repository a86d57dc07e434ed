"""Arbiter selection policy."""

from catallax.policy.arbiters import (
    ArbiterFilterState,
    ArbiterFit,
    ArbiterSortField,
    accepts_amount,
    apply_arbiter_filters,
    evaluate_arbiter,
    matches_categories,
)

__all__ = [
    "ArbiterFilterState",
    "ArbiterFit",
    "ArbiterSortField",
    "accepts_amount",
    "apply_arbiter_filters",
    "evaluate_arbiter",
    "matches_categories",
]

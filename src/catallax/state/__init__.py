"""Replaceable-event state reconciliation."""

from catallax.state.reconciler import can_supersede, latest, reconcile

__all__ = ["can_supersede", "latest", "reconcile"]

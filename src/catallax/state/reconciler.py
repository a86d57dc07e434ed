"""Replaceable state reconciler - one authoritative record per identity.

The same task may be republished many times by several writers and seen in
any order from any relay. ``reconcile`` folds a batch of parsed records into
the current version of each identity:

- records are visited oldest first; equal timestamps keep input order, so
  the first one seen wins the tie
- the first record for an identity is accepted as-is
- a later record replaces the held one only if it is strictly newer AND its
  author is a party of the *held* record

Authorization is checked against the held record, never the candidate's own
party tags. Otherwise an update could name a new worker and thereby
authorize itself.
"""

from __future__ import annotations

import logging
from typing import Hashable, Iterable, Protocol, TypeVar

log = logging.getLogger(__name__)


class Replaceable(Protocol):
    """Shape shared by ``TaskProposal`` and ``ArbiterAnnouncement``."""

    pubkey: str
    created_at: int

    @property
    def identity(self) -> Hashable: ...

    def parties(self) -> set[str]: ...


R = TypeVar("R", bound=Replaceable)


def can_supersede(held: Replaceable, candidate: Replaceable) -> bool:
    """True if ``candidate`` may replace ``held``."""
    if candidate.created_at <= held.created_at:
        return False
    return candidate.pubkey in held.parties()


def reconcile(records: Iterable[R]) -> dict[Hashable, R]:
    """Collapse ``records`` into a map of identity -> current record.

    Pure: the same input always yields the same output, and feeding the
    output back in changes nothing.
    """
    ordered = sorted(records, key=lambda r: r.created_at)
    current: dict[Hashable, R] = {}

    for record in ordered:
        key = record.identity
        held = current.get(key)
        if held is None:
            current[key] = record
            continue
        if can_supersede(held, record):
            current[key] = record
        elif record.created_at > held.created_at:
            log.debug(
                "Ignoring update to %s from unauthorized party %s",
                key, record.pubkey[:16],
            )

    return current


def latest(records: Iterable[R]) -> list[R]:
    """Reconciled records, newest first."""
    return sorted(reconcile(records).values(), key=lambda r: r.created_at, reverse=True)

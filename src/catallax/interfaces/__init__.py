"""Protocol interfaces for the catallax collaborators."""

from catallax.interfaces.query import EventQuery, Filter
from catallax.interfaces.publisher import EventPublisher, EventSigner
from catallax.interfaces.store import EventStore

__all__ = [
    "EventQuery", "Filter",
    "EventPublisher", "EventSigner",
    "EventStore",
]

"""catallax - client for the Catallax contract-work protocol on Nostr."""

__version__ = "0.1.0"

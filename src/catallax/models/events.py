"""Raw Nostr event model as delivered by relays."""

from __future__ import annotations

from dataclasses import dataclass, field

# Catallax protocol kinds
KIND_ARBITER_ANNOUNCEMENT = 33400
KIND_TASK_PROPOSAL = 33401
KIND_TASK_CONCLUSION = 3402

# NIP-57 / NIP-75 kinds used for funding
KIND_ZAP_REQUEST = 9734
KIND_ZAP_RECEIPT = 9735
KIND_ZAP_GOAL = 9041

CATALLAX_TAG = "catallax"


@dataclass(frozen=True)
class NostrEvent:
    """A single signed event (NIP-01).

    Signatures are not verified here; that belongs to the transport layer.
    """

    id: str
    pubkey: str
    created_at: int
    kind: int
    tags: list[list[str]] = field(default_factory=list)
    content: str = ""
    sig: str = ""

    @classmethod
    def from_dict(cls, data: dict) -> NostrEvent:
        return cls(
            id=str(data["id"]),
            pubkey=str(data["pubkey"]),
            created_at=int(data["created_at"]),
            kind=int(data["kind"]),
            tags=[[str(v) for v in tag] for tag in data.get("tags", [])],
            content=str(data.get("content", "")),
            sig=str(data.get("sig", "")),
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "pubkey": self.pubkey,
            "created_at": self.created_at,
            "kind": self.kind,
            "tags": [list(tag) for tag in self.tags],
            "content": self.content,
            "sig": self.sig,
        }

    def tag_value(self, name: str) -> str | None:
        """First value of the first tag called ``name``."""
        for tag in self.tags:
            if len(tag) >= 2 and tag[0] == name:
                return tag[1]
        return None

    def tag_values(self, name: str) -> list[str]:
        """First value of every tag called ``name``, in order."""
        return [tag[1] for tag in self.tags if len(tag) >= 2 and tag[0] == name]

    def find_tag(self, name: str) -> list[str] | None:
        for tag in self.tags:
            if tag and tag[0] == name:
                return tag
        return None

"""SQLite implementation of the EventStore protocol."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path

import aiosqlite

from catallax.models.events import NostrEvent

SCHEMA = """
-- Every raw event observed from any relay
CREATE TABLE IF NOT EXISTS events (
    id TEXT PRIMARY KEY,
    pubkey TEXT NOT NULL,
    created_at INTEGER NOT NULL,
    kind INTEGER NOT NULL,
    tags TEXT NOT NULL,
    content TEXT NOT NULL DEFAULT '',
    sig TEXT NOT NULL DEFAULT '',
    seen_at TEXT NOT NULL DEFAULT (datetime('now'))
);
CREATE INDEX IF NOT EXISTS idx_events_kind ON events(kind, created_at);
CREATE INDEX IF NOT EXISTS idx_events_pubkey ON events(pubkey);

-- Single-letter tag index for #e / #a / #p / #d lookups
CREATE TABLE IF NOT EXISTS event_tags (
    event_id TEXT NOT NULL,
    name TEXT NOT NULL,
    value TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_event_tags_lookup ON event_tags(name, value);
"""


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _row_to_event(row: aiosqlite.Row) -> NostrEvent:
    return NostrEvent(
        id=row["id"],
        pubkey=row["pubkey"],
        created_at=row["created_at"],
        kind=row["kind"],
        tags=json.loads(row["tags"]),
        content=row["content"],
        sig=row["sig"],
    )


class SQLiteEventCache:
    """SQLite-backed implementation of the EventStore protocol.

    The cache only grows. Replaceable events are never overwritten here;
    every version is kept and the reconciler picks the survivor.
    """

    def __init__(self, db_path: str) -> None:
        self._db_path = db_path
        self._db: aiosqlite.Connection | None = None

    async def initialize(self) -> None:
        if self._db_path != ":memory:":
            Path(self._db_path).parent.mkdir(parents=True, exist_ok=True)
        self._db = await aiosqlite.connect(self._db_path)
        self._db.row_factory = aiosqlite.Row
        await self._db.executescript(SCHEMA)
        await self._db.commit()

    async def close(self) -> None:
        if self._db:
            await self._db.close()
            self._db = None

    @property
    def db(self) -> aiosqlite.Connection:
        assert self._db is not None, "Store not initialized. Call initialize() first."
        return self._db

    # ── Events ─────────────────────────────────────────────

    async def save_events(self, events: list[NostrEvent]) -> int:
        added = 0
        seen_at = _now()
        for event in events:
            cur = await self.db.execute(
                "INSERT OR IGNORE INTO events"
                " (id, pubkey, created_at, kind, tags, content, sig, seen_at)"
                " VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    event.id, event.pubkey, event.created_at, event.kind,
                    json.dumps(event.tags), event.content, event.sig, seen_at,
                ),
            )
            if cur.rowcount != 1:
                continue
            added += 1
            await self.db.executemany(
                "INSERT INTO event_tags (event_id, name, value) VALUES (?, ?, ?)",
                [
                    (event.id, tag[0], tag[1])
                    for tag in event.tags
                    if len(tag) >= 2 and len(tag[0]) == 1
                ],
            )
        await self.db.commit()
        return added

    async def get_event(self, event_id: str) -> NostrEvent | None:
        async with self.db.execute(
            "SELECT * FROM events WHERE id=?", (event_id,)
        ) as cur:
            row = await cur.fetchone()
            return _row_to_event(row) if row else None

    async def get_events(
        self,
        kinds: list[int] | None = None,
        authors: list[str] | None = None,
        tag: tuple[str, str] | None = None,
        limit: int | None = None,
    ) -> list[NostrEvent]:
        clauses: list[str] = []
        params: list = []
        if kinds:
            clauses.append(f"kind IN ({', '.join('?' * len(kinds))})")
            params.extend(kinds)
        if authors:
            clauses.append(f"pubkey IN ({', '.join('?' * len(authors))})")
            params.extend(authors)
        if tag is not None:
            clauses.append(
                "id IN (SELECT event_id FROM event_tags WHERE name=? AND value=?)"
            )
            params.extend(tag)

        sql = "SELECT * FROM events"
        if clauses:
            sql += " WHERE " + " AND ".join(clauses)
        sql += " ORDER BY created_at DESC, id"
        if limit is not None:
            sql += " LIMIT ?"
            params.append(limit)

        async with self.db.execute(sql, params) as cur:
            return [_row_to_event(row) async for row in cur]

    async def count_events(self, kind: int | None = None) -> int:
        if kind is None:
            sql, params = "SELECT COUNT(*) AS c FROM events", ()
        else:
            sql, params = "SELECT COUNT(*) AS c FROM events WHERE kind=?", (kind,)
        async with self.db.execute(sql, params) as cur:
            row = await cur.fetchone()
            return row["c"] if row else 0

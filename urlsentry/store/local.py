"""SQLite-backed record store with an in-process change feed.

Used when no hosted backend is configured and throughout the tests. Writes
go through ``update_record`` so subscribers see the same UPDATE stream a
hosted realtime channel would deliver.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from pathlib import Path
from typing import Optional

import aiosqlite

from ..constants import DOMAINS_TABLE
from ..models import utc_now_iso
from .base import ChangeEvent, Subscription

logger = logging.getLogger(__name__)

_COLUMNS = (
    "id",
    "domain",
    "spam_score",
    "status",
    "number_of_checks",
    "critical_urls",
    "message",
    "created_at",
)
_UPDATABLE = {"spam_score", "status", "number_of_checks", "critical_urls", "message"}


class LocalStore:
    """Async SQLite store for the ``domains`` table."""

    def __init__(self, db_path: Path | str):
        self.db_path = db_path
        self.table = DOMAINS_TABLE
        self._connection: Optional[aiosqlite.Connection] = None
        self._lock = asyncio.Lock()
        self._subscriptions: set[Subscription] = set()

    async def connect(self) -> None:
        """Establish database connection and create tables."""
        if isinstance(self.db_path, Path):
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._connection = await aiosqlite.connect(self.db_path)
        self._connection.row_factory = aiosqlite.Row
        # Best-effort because some SQLite builds/settings may reject these pragmas.
        try:
            await self._connection.execute("PRAGMA journal_mode=WAL")
            await self._connection.execute("PRAGMA busy_timeout=5000")
            await self._connection.commit()
        except aiosqlite.Error:
            pass
        await self._create_tables()

    async def close(self) -> None:
        """Close connection and drop any remaining subscribers."""
        for sub in list(self._subscriptions):
            await sub.close()
        self._subscriptions.clear()
        if self._connection:
            await self._connection.close()
            self._connection = None

    async def _create_tables(self) -> None:
        async with self._lock:
            await self._connection.executescript(
                """
                    CREATE TABLE IF NOT EXISTS domains (
                        id TEXT PRIMARY KEY,
                        domain TEXT NOT NULL,
                        spam_score REAL DEFAULT 0,
                        status TEXT DEFAULT 'Clean',
                        number_of_checks INTEGER DEFAULT 0,
                        critical_urls TEXT,
                        message TEXT,
                        created_at TEXT NOT NULL
                    );

                    CREATE INDEX IF NOT EXISTS idx_domains_domain ON domains(domain);
                    CREATE INDEX IF NOT EXISTS idx_domains_created_at ON domains(created_at);
                """
            )
            await self._connection.commit()

    async def _fetchone_dict(self, cursor) -> Optional[dict]:
        row = await cursor.fetchone()
        return dict(row) if row else None

    async def _fetchall_dicts(self, cursor) -> list[dict]:
        rows = await cursor.fetchall()
        return [dict(row) for row in rows]

    # ------------------------------------------------------------------
    # RecordStore
    # ------------------------------------------------------------------

    async def insert(self, row: dict) -> dict:
        """Insert a row and return it with its assigned id and created_at."""
        domain = str(row.get("domain") or "")
        record = {
            "id": str(uuid.uuid4()),
            "domain": domain,
            "spam_score": float(row.get("spam_score") or 0),
            "status": str(row.get("status") or "Clean"),
            "number_of_checks": int(row.get("number_of_checks") or 0),
            "critical_urls": row.get("critical_urls"),
            "message": row.get("message"),
            "created_at": utc_now_iso(),
        }
        placeholders = ",".join("?" for _ in _COLUMNS)
        async with self._lock:
            await self._connection.execute(
                f"INSERT INTO domains ({','.join(_COLUMNS)}) VALUES ({placeholders})",
                tuple(record[c] for c in _COLUMNS),
            )
            await self._connection.commit()
        self._publish(ChangeEvent(type="INSERT", table=self.table, record=dict(record)))
        return record

    async def get(self, record_id: str) -> Optional[dict]:
        async with self._lock:
            cursor = await self._connection.execute(
                "SELECT * FROM domains WHERE id = ?",
                (str(record_id),),
            )
            return await self._fetchone_dict(cursor)

    async def select_by_ids(self, ids: list[str]) -> list[dict]:
        if not ids:
            return []
        placeholders = ",".join("?" for _ in ids)
        async with self._lock:
            cursor = await self._connection.execute(
                f"SELECT * FROM domains WHERE id IN ({placeholders}) ORDER BY created_at ASC, rowid ASC",
                [str(i) for i in ids],
            )
            return await self._fetchall_dicts(cursor)

    async def select_by_domains(self, domains: list[str]) -> list[dict]:
        if not domains:
            return []
        placeholders = ",".join("?" for _ in domains)
        async with self._lock:
            cursor = await self._connection.execute(
                f"SELECT * FROM domains WHERE domain IN ({placeholders}) ORDER BY created_at ASC, rowid ASC",
                list(domains),
            )
            return await self._fetchall_dicts(cursor)

    async def list_recent(self, limit: int = 100) -> list[dict]:
        """Rows newest first."""
        async with self._lock:
            cursor = await self._connection.execute(
                "SELECT * FROM domains ORDER BY created_at DESC, rowid DESC LIMIT ?",
                (int(limit),),
            )
            return await self._fetchall_dicts(cursor)

    async def delete_ids(self, ids: list[str]) -> int:
        if not ids:
            return 0
        placeholders = ",".join("?" for _ in ids)
        async with self._lock:
            cursor = await self._connection.execute(
                f"DELETE FROM domains WHERE id IN ({placeholders})",
                [str(i) for i in ids],
            )
            await self._connection.commit()
            deleted = cursor.rowcount or 0
        for record_id in ids:
            self._publish(ChangeEvent(type="DELETE", table=self.table, old_record={"id": str(record_id)}))
        return deleted

    async def delete_all(self) -> int:
        async with self._lock:
            cursor = await self._connection.execute("DELETE FROM domains")
            await self._connection.commit()
            return cursor.rowcount or 0

    async def update_record(self, record_id: str, **changes) -> Optional[dict]:
        """Apply a partial update and notify UPDATE subscribers with the full row."""
        fields = {k: v for k, v in changes.items() if k in _UPDATABLE}
        unknown = set(changes) - _UPDATABLE
        if unknown:
            raise ValueError(f"Unknown columns: {', '.join(sorted(unknown))}")
        async with self._lock:
            if fields:
                assignments = ", ".join(f"{name} = ?" for name in fields)
                await self._connection.execute(
                    f"UPDATE domains SET {assignments} WHERE id = ?",
                    (*fields.values(), str(record_id)),
                )
                await self._connection.commit()
            cursor = await self._connection.execute(
                "SELECT * FROM domains WHERE id = ?",
                (str(record_id),),
            )
            row = await self._fetchone_dict(cursor)
        if row is None:
            return None
        self._publish(ChangeEvent(type="UPDATE", table=self.table, record=dict(row)))
        return row

    # ------------------------------------------------------------------
    # ChangeFeed
    # ------------------------------------------------------------------

    async def subscribe(
        self,
        table: str,
        *,
        event: str = "UPDATE",
        record_id: str | None = None,
    ) -> Subscription:
        sub = Subscription(table, event=event, record_id=record_id, on_close=self._unsubscribe)
        self._subscriptions.add(sub)
        logger.debug("Local change feed: subscribed to %s %s (%d active)", event, table, len(self._subscriptions))
        return sub

    async def _unsubscribe(self, sub: Subscription) -> None:
        self._subscriptions.discard(sub)

    @property
    def active_subscriptions(self) -> int:
        return len(self._subscriptions)

    def _publish(self, change: ChangeEvent) -> None:
        for sub in list(self._subscriptions):
            sub.publish(change)

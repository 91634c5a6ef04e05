"""Hosted Supabase backend: table rows and Realtime changes through supabase-py."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional

from supabase import AsyncClient, acreate_client

from ..constants import DOMAINS_TABLE
from ..errors import SubscriptionError
from .base import ChangeEvent, Subscription

logger = logging.getLogger(__name__)

_CHANNEL_FAILURES = {"CHANNEL_ERROR", "TIMED_OUT", "CLOSED"}


async def connect_supabase(url: str, api_key: str) -> AsyncClient:
    """Create the async client shared by the store and the change feed."""
    return await acreate_client(url, api_key)


class SupabaseStore:
    """Row access to the ``domains`` table through the PostgREST query builder."""

    def __init__(self, client: AsyncClient, *, table: str = DOMAINS_TABLE):
        self.client = client
        self.table = table

    def _query(self):
        return self.client.table(self.table)

    async def insert(self, row: dict) -> dict:
        response = await self._query().insert(row).execute()
        if not response.data:
            raise RuntimeError(f"Insert into {self.table} returned no row")
        return response.data[0]

    async def select_by_ids(self, ids: list[str]) -> list[dict]:
        if not ids:
            return []
        response = await self._query().select("*").in_("id", list(ids)).order("created_at").execute()
        return list(response.data or [])

    async def select_by_domains(self, domains: list[str]) -> list[dict]:
        if not domains:
            return []
        response = await self._query().select("*").in_("domain", list(domains)).order("created_at").execute()
        return list(response.data or [])

    async def list_recent(self, limit: int = 100) -> list[dict]:
        response = await self._query().select("*").order("created_at", desc=True).limit(int(limit)).execute()
        return list(response.data or [])

    async def delete_ids(self, ids: list[str]) -> int:
        if not ids:
            return 0
        response = await self._query().delete().in_("id", list(ids)).execute()
        return len(response.data or [])

    async def delete_all(self) -> int:
        # PostgREST refuses an unfiltered DELETE.
        response = await self._query().delete().not_.is_("id", "null").execute()
        return len(response.data or [])

    async def close(self) -> None:
        await self.client.postgrest.aclose()


class SupabaseRealtime:
    """Change feed over Supabase Realtime ``postgres_changes`` channels."""

    join_timeout: float = 10.0

    def __init__(self, client: AsyncClient, *, schema: str = "public"):
        self.client = client
        self.schema = schema
        self._channels: dict[Subscription, Any] = {}

    @staticmethod
    def parse_change(payload: dict) -> Optional[ChangeEvent]:
        """Convert a ``postgres_changes`` callback payload to a ChangeEvent."""
        if not isinstance(payload, dict):
            return None
        data = payload.get("data", payload)
        if not isinstance(data, dict):
            return None
        kind = data.get("type") or data.get("eventType")
        if not kind:
            return None
        return ChangeEvent(
            type=str(kind).upper(),
            table=str(data.get("table") or ""),
            record=dict(data.get("record") or data.get("new") or {}),
            old_record=dict(data.get("old_record") or data.get("old") or {}),
        )

    async def subscribe(
        self,
        table: str,
        *,
        event: str = "UPDATE",
        record_id: str | None = None,
    ) -> Subscription:
        """Join a channel and return once the server reports it subscribed."""
        topic = f"{table}_updates"
        if record_id is not None:
            topic = f"{topic}_{record_id}"

        sub = Subscription(table, event=event, record_id=record_id, on_close=self._unsubscribe)
        joined: asyncio.Future[None] = asyncio.get_running_loop().create_future()

        def on_change(payload: dict, *_: Any) -> None:
            change = self.parse_change(payload)
            if change is not None:
                sub.publish(change)

        def on_status(status: Any, err: Optional[Exception] = None) -> None:
            state = str(getattr(status, "value", status))
            if state == "SUBSCRIBED":
                if not joined.done():
                    joined.set_result(None)
                return
            if state not in _CHANNEL_FAILURES:
                return
            error = SubscriptionError(f"Realtime channel {topic} {state.lower()}: {err or 'no detail'}")
            if not joined.done():
                joined.set_exception(error)
            else:
                sub.fail(error)

        filters: dict[str, str] = {"schema": self.schema, "table": table}
        if record_id is not None:
            filters["filter"] = f"id=eq.{record_id}"

        channel = self.client.channel(topic)
        channel.on_postgres_changes(sub.event, callback=on_change, **filters)
        try:
            await channel.subscribe(on_status)
            await asyncio.wait_for(joined, timeout=self.join_timeout)
        except asyncio.TimeoutError as exc:
            await self._remove(channel)
            raise SubscriptionError(f"Realtime join for {table} timed out") from exc
        except SubscriptionError:
            await self._remove(channel)
            raise
        except Exception as exc:
            await self._remove(channel)
            raise SubscriptionError(f"Realtime join failed: {exc}") from exc

        self._channels[sub] = channel
        logger.info("Realtime subscribed to %s %s (%s)", sub.event, table, topic)
        return sub

    async def _remove(self, channel: Any) -> None:
        try:
            await self.client.remove_channel(channel)
        except Exception as exc:
            logger.warning("Realtime channel removal failed: %s", exc)

    async def _unsubscribe(self, sub: Subscription) -> None:
        channel = self._channels.pop(sub, None)
        if channel is None:
            return
        await self._remove(channel)
        logger.info("Realtime unsubscribed from %s", sub.table)

    async def close(self) -> None:
        for sub in list(self._channels):
            await sub.close()

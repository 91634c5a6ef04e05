"""Record store and change-feed interfaces."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Optional, Protocol

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ChangeEvent:
    """One row-change notification delivered by a change feed."""

    type: str  # INSERT | UPDATE | DELETE
    table: str
    record: dict = field(default_factory=dict)
    old_record: dict = field(default_factory=dict)

    @property
    def record_id(self) -> str:
        raw = self.record.get("id")
        if raw is None:
            raw = self.old_record.get("id")
        return "" if raw is None else str(raw)


class RecordStore(Protocol):
    """Row storage for the ``domains`` table."""

    async def insert(self, row: dict) -> dict:
        raise NotImplementedError

    async def select_by_ids(self, ids: list[str]) -> list[dict]:
        raise NotImplementedError

    async def select_by_domains(self, domains: list[str]) -> list[dict]:
        raise NotImplementedError

    async def list_recent(self, limit: int = 100) -> list[dict]:
        raise NotImplementedError

    async def delete_ids(self, ids: list[str]) -> int:
        raise NotImplementedError

    async def delete_all(self) -> int:
        raise NotImplementedError

    async def close(self) -> None:
        return


class ChangeFeed(Protocol):
    """Push-based row-change notifications."""

    async def subscribe(
        self,
        table: str,
        *,
        event: str = "UPDATE",
        record_id: str | None = None,
    ) -> "Subscription":
        raise NotImplementedError

    async def close(self) -> None:
        return


class _Failure:
    __slots__ = ("error",)

    def __init__(self, error: BaseException):
        self.error = error


class Subscription:
    """Async iterator over change events for one table/filter.

    Feeds call ``publish``/``fail`` from their reader side; consumers call
    ``get`` (or iterate) and must ``close`` exactly when the wait is over.
    ``close`` is idempotent and runs the feed's teardown hook once.
    """

    def __init__(
        self,
        table: str,
        *,
        event: str = "UPDATE",
        record_id: str | None = None,
        on_close: Optional[Callable[["Subscription"], Awaitable[None]]] = None,
    ):
        self.table = table
        self.event = (event or "*").upper()
        self.record_id = str(record_id) if record_id is not None else None
        self._on_close = on_close
        self._queue: asyncio.Queue[object] = asyncio.Queue()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def matches(self, change: ChangeEvent) -> bool:
        if change.table != self.table:
            return False
        if self.event != "*" and change.type.upper() != self.event:
            return False
        if self.record_id is not None and change.record_id != self.record_id:
            return False
        return True

    def publish(self, change: ChangeEvent) -> None:
        if self._closed or not self.matches(change):
            return
        self._queue.put_nowait(change)

    def fail(self, error: BaseException) -> None:
        if self._closed:
            return
        self._queue.put_nowait(_Failure(error))

    async def get(self) -> ChangeEvent:
        """Wait for the next event; re-raises a feed failure."""
        item = await self._queue.get()
        if isinstance(item, _Failure):
            raise item.error
        return item  # type: ignore[return-value]

    def __aiter__(self) -> "Subscription":
        return self

    async def __anext__(self) -> ChangeEvent:
        if self._closed:
            raise StopAsyncIteration
        return await self.get()

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._on_close:
            try:
                await self._on_close(self)
            except Exception as exc:
                logger.warning("Subscription teardown for %s failed: %s", self.table, exc)

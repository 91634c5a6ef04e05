"""Final-row fetch and mapping to display results."""

from __future__ import annotations

import logging

from ..errors import FetchError
from ..models import BulkScanResult, DomainRecord, ScanResult, UrlScanResult, utc_now_iso
from ..store.base import RecordStore
from .progress import ScanSession

logger = logging.getLogger(__name__)


class ResultMaterializer:
    """Reads the session's rows once scoring has completed."""

    def __init__(self, store: RecordStore):
        self.store = store

    async def fetch_records(self, record_ids: list[str]) -> list[DomainRecord]:
        try:
            rows = await self.store.select_by_ids(record_ids)
        except Exception as exc:
            raise FetchError(f"Failed to fetch results: {exc}") from exc
        wanted = set(record_ids)
        records = [DomainRecord.from_row(row) for row in rows if str(row.get("id")) in wanted]
        if not records:
            raise FetchError("No results found for this scan")
        # Keep submission order.
        order = {rid: idx for idx, rid in enumerate(record_ids)}
        records.sort(key=lambda r: order.get(r.id, len(order)))
        return records

    async def materialize(self, session: ScanSession, *, bulk: bool | None = None) -> ScanResult:
        """Build the single or bulk result for a completed session."""
        records = await self.fetch_records(session.record_ids)
        fetched_at = utc_now_iso()
        results = [UrlScanResult.from_record(r, timestamp=fetched_at) for r in records]
        if bulk is None:
            bulk = session.total_domains > 1
        if not bulk:
            return results[0]
        logger.info("Materialized %d result(s) for bulk scan", len(results))
        return BulkScanResult(results=results, total_scanned=len(results), timestamp=fetched_at)

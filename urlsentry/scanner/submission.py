"""Pending-row creation and scorer triggering."""

from __future__ import annotations

import logging
from typing import Optional, Protocol

import httpx

from ..constants import DOMAINS_TABLE, ScanStatus
from ..errors import SubmissionError, ValidationError
from ..models import DomainRecord
from ..store.base import RecordStore

logger = logging.getLogger(__name__)


class ScoringTrigger(Protocol):
    """Tells the external scorer that a record is ready."""

    async def notify(self, record_id: str, domain: str) -> None:
        raise NotImplementedError

    async def close(self) -> None:
        return


class WebhookTrigger:
    """POSTs ``{record_id, domain}`` to the scorer's webhook.

    Fire-and-forget apart from HTTP success: the scoring result arrives
    later through the change feed, never in this response.
    """

    user_agent: str = "URLSentry/0.1"

    def __init__(self, url: str, *, timeout_seconds: float = 15.0):
        self.url = url
        self.timeout_seconds = timeout_seconds
        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout_seconds),
                headers={"User-Agent": self.user_agent},
                follow_redirects=True,
            )
        return self._client

    async def close(self) -> None:
        """Close HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def notify(self, record_id: str, domain: str) -> None:
        client = await self._get_client()
        try:
            response = await client.post(self.url, json={"record_id": record_id, "domain": domain})
        except httpx.TimeoutException as exc:
            raise SubmissionError("Webhook call timed out", domain=domain) from exc
        except httpx.HTTPError as exc:
            raise SubmissionError(f"Webhook call failed: {exc}", domain=domain) from exc
        if not response.is_success:
            raise SubmissionError(
                f"Webhook call failed: HTTP {response.status_code}",
                domain=domain,
                status_code=response.status_code,
            )


class SubmissionClient:
    """Creates one pending record per domain and triggers the scorer."""

    def __init__(self, store: RecordStore, trigger: ScoringTrigger, *, table: str = DOMAINS_TABLE):
        self.store = store
        self.trigger = trigger
        self.table = table

    async def create_records(self, domains: list[str]) -> list[DomainRecord]:
        """Insert pending rows; fails fast on the first insert error."""
        if not domains:
            raise ValidationError("No domains to scan")
        records: list[DomainRecord] = []
        for domain in domains:
            try:
                row = await self.store.insert(
                    {
                        "domain": domain,
                        "spam_score": 0,
                        "status": ScanStatus.CLEAN.store_label,
                    }
                )
            except Exception as exc:
                logger.error("Failed to create record for %s: %s", domain, exc)
                await self._rollback(records)
                raise SubmissionError(f"Failed to create record for {domain}: {exc}", domain=domain) from exc
            records.append(DomainRecord.from_row(row))
        return records

    async def trigger_records(self, records: list[DomainRecord]) -> None:
        """Notify the scorer for every record; rolls back all rows on any failure."""
        failures: list[SubmissionError] = []
        for record in records:
            try:
                await self.trigger.notify(record.id, record.domain)
            except SubmissionError as exc:
                logger.warning("Scorer trigger failed for %s (%s): %s", record.domain, record.id, exc)
                failures.append(exc)
            except Exception as exc:
                logger.warning("Scorer trigger crashed for %s (%s): %s", record.domain, record.id, exc)
                failures.append(SubmissionError(f"Failed to trigger scoring: {exc}", domain=record.domain))
        if failures:
            await self._rollback(records)
            first = failures[0]
            raise SubmissionError(
                f"{first.message} ({len(failures)} of {len(records)} domains)",
                domain=first.domain,
                status_code=first.status_code,
            )

    async def submit(self, domains: list[str]) -> list[DomainRecord]:
        records = await self.create_records(domains)
        await self.trigger_records(records)
        logger.info("Submitted %d domain(s) for scoring", len(records))
        return records

    async def _rollback(self, records: list[DomainRecord]) -> None:
        if not records:
            return
        ids = [r.id for r in records]
        try:
            deleted = await self.store.delete_ids(ids)
            logger.info("Rolled back %d pending record(s)", deleted)
        except Exception as exc:
            logger.error("Rollback of %d pending record(s) failed: %s", len(ids), exc)

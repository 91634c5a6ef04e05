"""Scan orchestration: subscribe, submit, aggregate, materialize, record."""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Optional

from ..constants import COMPLETION_THRESHOLD, DOMAINS_TABLE, MAX_CSV_BYTES
from ..errors import ScanError, ScanTimeoutError, SubscriptionError, ValidationError
from ..history import HistoryRecorder
from ..models import BulkScanResult, HistoryItem, ScanResult, UrlScanResult
from ..store.base import ChangeFeed, RecordStore, Subscription
from ..utils.domains import extract_domain, is_valid_url
from .csv_import import parse_domains_csv
from .materializer import ResultMaterializer
from .progress import ProgressUpdate, ScanSession, apply_update
from .submission import ScoringTrigger, SubmissionClient

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[ProgressUpdate], None]


class ScanRunner:
    """Runs one scan session end to end.

    The change subscription is always opened before any record is created
    and closed exactly once when the wait ends, whatever the outcome.
    """

    def __init__(
        self,
        store: RecordStore,
        feed: ChangeFeed,
        trigger: ScoringTrigger,
        *,
        history: HistoryRecorder | None = None,
        table: str = DOMAINS_TABLE,
        idle_timeout: float = 120.0,
        max_duration: float = 900.0,
        threshold: int = COMPLETION_THRESHOLD,
        max_csv_bytes: int = MAX_CSV_BYTES,
    ):
        self.store = store
        self.feed = feed
        self.history = history
        self.table = table
        self.idle_timeout = float(idle_timeout)
        self.max_duration = float(max_duration)
        self.threshold = int(threshold)
        self.max_csv_bytes = int(max_csv_bytes)
        self.submission = SubmissionClient(store, trigger, table=table)
        self.materializer = ResultMaterializer(store)

    def new_session(self) -> ScanSession:
        return ScanSession(threshold=self.threshold)

    @staticmethod
    def validate_url(url: str | None) -> str:
        """Return the domain for a single-scan input or raise ValidationError."""
        raw = (url or "").strip()
        if not raw:
            raise ValidationError("Please enter a URL to scan")
        if not is_valid_url(raw):
            raise ValidationError("Please enter a valid URL (e.g., example.com)")
        domain = extract_domain(raw)
        if not domain:
            raise ValidationError("Please enter a valid URL (e.g., example.com)")
        return domain

    def parse_csv(self, content: bytes | str) -> list[str]:
        return parse_domains_csv(content, max_bytes=self.max_csv_bytes)

    async def scan_url(
        self,
        url: str,
        *,
        on_progress: Optional[ProgressCallback] = None,
        session: ScanSession | None = None,
    ) -> UrlScanResult:
        domain = self.validate_url(url)
        result = await self.scan_domains([domain], bulk=False, on_progress=on_progress, session=session)
        if not isinstance(result, UrlScanResult):
            raise TypeError(f"Expected a single result, got {type(result).__name__}")
        return result

    async def scan_csv(
        self,
        content: bytes | str,
        *,
        on_progress: Optional[ProgressCallback] = None,
        session: ScanSession | None = None,
    ) -> BulkScanResult:
        domains = self.parse_csv(content)
        result = await self.scan_domains(domains, bulk=True, on_progress=on_progress, session=session)
        if not isinstance(result, BulkScanResult):
            raise TypeError(f"Expected a bulk result, got {type(result).__name__}")
        return result

    async def scan_domains(
        self,
        domains: list[str],
        *,
        bulk: bool,
        on_progress: Optional[ProgressCallback] = None,
        session: ScanSession | None = None,
    ) -> ScanResult:
        if not domains:
            raise ValidationError("No domains to scan")
        session = session or self.new_session()
        session.begin_submission()

        try:
            subscription = await self._subscribe()
            try:
                records = await self.submission.submit(domains)
                session.track(records)
                await self._aggregate(session, subscription, on_progress)
            finally:
                await subscription.close()

            result = await self.materializer.materialize(session, bulk=bulk)
        except ScanError as exc:
            session.fail(exc)
            logger.warning("Scan of %d domain(s) failed (%s): %s", len(domains), exc.kind, exc.message)
            raise
        except asyncio.CancelledError:
            session.fail(ScanError("Scan cancelled"))
            logger.info("Scan of %d domain(s) cancelled", len(domains))
            raise

        if self.history is not None:
            self.history.record(HistoryItem.new(result))
        logger.info("Scan of %d domain(s) complete", session.total_domains)
        return result

    async def _subscribe(self) -> Subscription:
        try:
            return await self.feed.subscribe(self.table, event="UPDATE")
        except SubscriptionError:
            raise
        except Exception as exc:
            raise SubscriptionError(f"Failed to subscribe to {self.table} updates: {exc}") from exc

    async def _aggregate(
        self,
        session: ScanSession,
        subscription: Subscription,
        on_progress: Optional[ProgressCallback],
    ) -> None:
        loop = asyncio.get_running_loop()
        started = loop.time()
        last_progress = started

        while not session.is_complete:
            now = loop.time()
            remaining = self.max_duration - (now - started)
            idle_left = self.idle_timeout - (now - last_progress)
            if remaining <= 0:
                raise ScanTimeoutError(
                    f"Scan did not complete within {self.max_duration:g}s",
                    timeout=self.max_duration,
                )
            if idle_left <= 0:
                raise ScanTimeoutError(
                    f"No scoring progress for {self.idle_timeout:g}s",
                    timeout=self.idle_timeout,
                )
            try:
                event = await asyncio.wait_for(subscription.get(), timeout=min(remaining, idle_left))
            except asyncio.TimeoutError:
                continue

            update = apply_update(session, event)
            if update.ignored:
                continue
            last_progress = loop.time()
            logger.debug(
                "Progress %.1f%% (%d/%d complete)",
                update.percent,
                update.completed_domains,
                update.total_domains,
            )
            if on_progress:
                try:
                    on_progress(update)
                except Exception as exc:
                    logger.warning("Progress callback failed: %s", exc)

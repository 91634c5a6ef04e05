"""Offline stand-in for the external scorer.

When no webhook is configured the local backend still needs someone to
advance ``number_of_checks``; this trigger replays three check-ins per
record against the ``LocalStore`` using simple keyword/TLD heuristics.
"""

from __future__ import annotations

import asyncio
import hashlib
import logging
from dataclasses import dataclass
from typing import Optional, Set

import tldextract

from ..constants import COMPLETION_THRESHOLD, ScanStatus
from ..store.local import LocalStore

logger = logging.getLogger(__name__)

DEFAULT_SUSPICIOUS_TLDS: set[str] = {
    "xyz",
    "top",
    "click",
    "online",
    "site",
    "website",
    "link",
    "club",
    "fun",
    "icu",
    "buzz",
    "quest",
}

_DANGEROUS_KEYWORDS = ("spam", "phish", "scam")
_SUSPICIOUS_KEYWORDS = ("suspicious", "unknown")

# Bundled suffix snapshot only; never fetch the public suffix list at runtime.
_extract = tldextract.TLDExtract(suffix_list_urls=())


@dataclass(frozen=True)
class LocalVerdict:
    spam_score: float
    status: ScanStatus
    critical_urls: Optional[str]
    message: str


def score_domain(domain: str, suspicious_tlds: Set[str] | None = None) -> LocalVerdict:
    """Heuristic verdict for a domain."""
    lowered = (domain or "").lower()
    tlds = DEFAULT_SUSPICIOUS_TLDS if suspicious_tlds is None else suspicious_tlds

    if any(k in lowered for k in _DANGEROUS_KEYWORDS):
        return LocalVerdict(
            spam_score=8.5,
            status=ScanStatus.DANGEROUS,
            critical_urls="http://malicious-tracking.com,http://data-stealer.net",
            message="High likelihood of malicious content detected",
        )
    if any(k in lowered for k in _SUSPICIOUS_KEYWORDS):
        return LocalVerdict(
            spam_score=5.7,
            status=ScanStatus.SUSPICIOUS,
            critical_urls="http://analytics-tracker.com",
            message="Some suspicious elements detected",
        )

    suffix = _extract(lowered.split(":", 1)[0]).suffix
    if suffix and suffix.rsplit(".", 1)[-1] in tlds:
        return LocalVerdict(
            spam_score=4.5,
            status=ScanStatus.SUSPICIOUS,
            critical_urls=None,
            message=f"Domain uses a .{suffix} TLD common in spam campaigns",
        )

    # Stable low score in [0, 3) so repeated scans agree.
    digest = hashlib.sha256(lowered.encode()).digest()
    score = round((int.from_bytes(digest[:2], "big") / 65536) * 3, 1)
    return LocalVerdict(
        spam_score=score,
        status=ScanStatus.CLEAN,
        critical_urls=None,
        message="No malicious content detected",
    )


class LocalScorerTrigger:
    """Scores records in-process, one check-in every ``delay`` seconds."""

    def __init__(
        self,
        store: LocalStore,
        *,
        delay: float = 0.5,
        suspicious_tlds: Set[str] | None = None,
        checks: int = COMPLETION_THRESHOLD,
    ):
        self.store = store
        self.delay = max(0.0, float(delay))
        self.suspicious_tlds = suspicious_tlds
        self.checks = max(1, int(checks))
        self._tasks: set[asyncio.Task] = set()

    async def notify(self, record_id: str, domain: str) -> None:
        task = asyncio.create_task(self._score(record_id, domain))
        self._tasks.add(task)
        task.add_done_callback(self._done)

    def _done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc:
            logger.warning("Local scorer task error: %s", exc)

    async def _score(self, record_id: str, domain: str) -> None:
        verdict = score_domain(domain, self.suspicious_tlds)
        for check in range(1, self.checks + 1):
            await asyncio.sleep(self.delay)
            if check < self.checks:
                row = await self.store.update_record(record_id, number_of_checks=check)
            else:
                row = await self.store.update_record(
                    record_id,
                    number_of_checks=check,
                    spam_score=verdict.spam_score,
                    status=verdict.status.store_label,
                    critical_urls=verdict.critical_urls,
                    message=verdict.message,
                )
            if row is None:
                logger.info("Local scorer: record %s disappeared; stopping", record_id)
                return
        logger.debug("Local scorer finished %s -> %s", domain, verdict.status.value)

    async def close(self) -> None:
        for task in list(self._tasks):
            task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks.clear()

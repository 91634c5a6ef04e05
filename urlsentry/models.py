"""Scan data models."""

from __future__ import annotations

import random
import string
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional, Union

from .constants import ScanStatus

_BASE36 = string.digits + string.ascii_lowercase


def utc_now_iso() -> str:
    """Current UTC time as an ISO-8601 string with millisecond precision."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _to_base36(value: int) -> str:
    if value <= 0:
        return "0"
    digits = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(_BASE36[rem])
    return "".join(reversed(digits))


def generate_id() -> str:
    """Short unique id: base-36 millisecond clock plus five random characters."""
    suffix = "".join(random.choice(_BASE36) for _ in range(5))
    return _to_base36(int(time.time() * 1000)) + suffix


def split_critical_urls(value: str | None) -> Optional[list[str]]:
    if not value:
        return None
    return value.split(",")


@dataclass
class DomainRecord:
    """One row of the hosted ``domains`` table."""

    id: str
    domain: str
    spam_score: float = 0.0
    status: ScanStatus = ScanStatus.CLEAN
    number_of_checks: int = 0
    critical_urls: Optional[str] = None
    message: Optional[str] = None
    created_at: Optional[str] = None

    @classmethod
    def from_row(cls, row: dict) -> "DomainRecord":
        """Build from a raw store row; the only place status strings are parsed."""
        try:
            spam_score = float(row.get("spam_score") or 0)
        except (TypeError, ValueError):
            spam_score = 0.0
        try:
            checks = int(row.get("number_of_checks") or 0)
        except (TypeError, ValueError):
            checks = 0
        return cls(
            id=str(row["id"]),
            domain=str(row.get("domain") or ""),
            spam_score=spam_score,
            status=ScanStatus.from_store(row.get("status")),
            number_of_checks=checks,
            critical_urls=row.get("critical_urls") or None,
            message=row.get("message"),
            created_at=str(row["created_at"]) if row.get("created_at") else None,
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "domain": self.domain,
            "spam_score": self.spam_score,
            "status": self.status.store_label,
            "number_of_checks": self.number_of_checks,
            "critical_urls": self.critical_urls,
            "message": self.message,
            "created_at": self.created_at,
        }


@dataclass
class UrlScanResult:
    """Display-ready result for one scanned domain."""

    url: str
    spam_score: float
    status: ScanStatus
    timestamp: str
    critical_urls: Optional[list[str]] = None
    message: Optional[str] = None

    @classmethod
    def from_record(cls, record: DomainRecord, *, timestamp: str | None = None) -> "UrlScanResult":
        return cls(
            url=record.domain,
            spam_score=record.spam_score,
            status=record.status,
            timestamp=timestamp or utc_now_iso(),
            critical_urls=split_critical_urls(record.critical_urls),
            message=record.message,
        )

    def to_dict(self) -> dict:
        data = {
            "url": self.url,
            "spamScore": self.spam_score,
            "status": self.status.value,
            "timestamp": self.timestamp,
        }
        if self.critical_urls is not None:
            data["criticalUrls"] = list(self.critical_urls)
        if self.message is not None:
            data["message"] = self.message
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "UrlScanResult":
        return cls(
            url=str(data.get("url") or ""),
            spam_score=float(data.get("spamScore") or 0),
            status=ScanStatus.from_store(data.get("status")),
            timestamp=str(data.get("timestamp") or ""),
            critical_urls=data.get("criticalUrls"),
            message=data.get("message"),
        )


@dataclass
class BulkScanResult:
    """Results of one CSV batch."""

    results: list[UrlScanResult] = field(default_factory=list)
    total_scanned: int = 0
    timestamp: str = field(default_factory=utc_now_iso)

    def to_dict(self) -> dict:
        return {
            "results": [r.to_dict() for r in self.results],
            "totalScanned": self.total_scanned,
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "BulkScanResult":
        results = [UrlScanResult.from_dict(r) for r in data.get("results") or []]
        return cls(
            results=results,
            total_scanned=int(data.get("totalScanned") or len(results)),
            timestamp=str(data.get("timestamp") or ""),
        )


ScanResult = Union[UrlScanResult, BulkScanResult]


@dataclass
class HistoryItem:
    """A completed scan kept in the local history log."""

    id: str
    type: str  # "single" | "bulk"
    timestamp: str
    data: ScanResult

    @classmethod
    def new(cls, result: ScanResult) -> "HistoryItem":
        kind = "bulk" if isinstance(result, BulkScanResult) else "single"
        return cls(id=generate_id(), type=kind, timestamp=utc_now_iso(), data=result)

    @property
    def results(self) -> list[UrlScanResult]:
        if isinstance(self.data, BulkScanResult):
            return self.data.results
        return [self.data]

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "type": self.type,
            "timestamp": self.timestamp,
            "data": self.data.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "HistoryItem":
        kind = str(data.get("type") or "single")
        raw = data.get("data") or {}
        payload: ScanResult
        if kind == "bulk":
            payload = BulkScanResult.from_dict(raw)
        else:
            payload = UrlScanResult.from_dict(raw)
        return cls(
            id=str(data["id"]),
            type=kind,
            timestamp=str(data.get("timestamp") or ""),
            data=payload,
        )

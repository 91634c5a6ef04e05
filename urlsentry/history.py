"""Local scan history log (newest first, capped)."""

from __future__ import annotations

import csv
import io
import json
import logging
from pathlib import Path

from .constants import HISTORY_LIMIT, HISTORY_STORAGE_KEY
from .models import BulkScanResult, HistoryItem, UrlScanResult

logger = logging.getLogger(__name__)

HISTORY_CSV_HEADER = ["id", "type", "timestamp", "url", "spamScore", "status", "message"]
BULK_CSV_HEADER = ["url", "spamScore", "status", "message"]


def _writer(buffer: io.StringIO):
    return csv.writer(buffer, quoting=csv.QUOTE_NONNUMERIC, lineterminator="\n")


def _result_row(result: UrlScanResult) -> list:
    return [result.url, float(result.spam_score), result.status.value, result.message or ""]


def bulk_results_csv(bulk: BulkScanResult) -> str:
    """Per-batch export: ``url,spamScore,status,message``."""
    buffer = io.StringIO()
    writer = _writer(buffer)
    writer.writerow(BULK_CSV_HEADER)
    for result in bulk.results:
        writer.writerow(_result_row(result))
    return buffer.getvalue()


def history_csv(items: list[HistoryItem]) -> str:
    """Flatten history to CSV; bulk items expand to one row per result."""
    buffer = io.StringIO()
    writer = _writer(buffer)
    writer.writerow(HISTORY_CSV_HEADER)
    for item in items:
        for result in item.results:
            writer.writerow([item.id, item.type, item.timestamp, *_result_row(result)])
    return buffer.getvalue()


class HistoryRecorder:
    """Append-only JSON log of completed scans, keyed under a fixed storage key."""

    def __init__(
        self,
        path: Path,
        *,
        limit: int = HISTORY_LIMIT,
        storage_key: str = HISTORY_STORAGE_KEY,
    ):
        self.path = Path(path)
        self.limit = max(1, int(limit))
        self.storage_key = storage_key

    def _load(self) -> list[dict]:
        if not self.path.exists():
            return []
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning("Failed to read history from %s: %s", self.path, e)
            return []
        entries = data.get(self.storage_key) if isinstance(data, dict) else None
        return [e for e in entries if isinstance(e, dict)] if isinstance(entries, list) else []

    def _save(self, entries: list[dict]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = {self.storage_key: entries}
        self.path.write_text(json.dumps(payload, indent=2), encoding="utf-8")

    def items(self) -> list[HistoryItem]:
        items: list[HistoryItem] = []
        for entry in self._load():
            try:
                items.append(HistoryItem.from_dict(entry))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning("Skipping malformed history entry: %s", e)
        return items

    def record(self, item: HistoryItem) -> None:
        """Prepend ``item``; entries beyond the cap are dropped oldest-first."""
        entries = self._load()
        entries.insert(0, item.to_dict())
        self._save(entries[: self.limit])
        logger.info("Recorded %s scan %s in history", item.type, item.id)

    def clear(self) -> None:
        if self.path.exists():
            self.path.unlink()
        logger.info("Scan history cleared")

    def export_csv(self) -> str:
        return history_csv(self.items())

    def __len__(self) -> int:
        return len(self._load())

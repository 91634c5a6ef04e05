"""Dashboard configuration dataclass."""

from __future__ import annotations

from dataclasses import dataclass

from ..constants import MAX_CSV_BYTES


@dataclass(slots=True)
class DashboardConfig:
    enabled: bool = False
    host: str = "127.0.0.1"
    port: int = 8080
    max_csv_bytes: int = MAX_CSV_BYTES
    max_jobs: int = 100
    domains_page_limit: int = 500

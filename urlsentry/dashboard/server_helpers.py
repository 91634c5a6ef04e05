"""Shared helpers for dashboard handlers."""

from __future__ import annotations

import html
from datetime import datetime, timezone

from aiohttp import web

from ..errors import ScanError


def _escape(value: object) -> str:
    return html.escape("" if value is None else str(value), quote=True)


def _coerce_int(value: object, *, default: int, min_value: int | None = None, max_value: int | None = None) -> int:
    try:
        parsed = int(value)
    except Exception:
        parsed = int(default)
    if min_value is not None:
        parsed = max(min_value, parsed)
    if max_value is not None:
        parsed = min(max_value, parsed)
    return parsed


def _error_payload(error: ScanError) -> dict:
    return {"kind": error.kind, "message": error.message}


def _scan_error_response(error: ScanError, *, status: int = 400) -> web.Response:
    return web.json_response({"error": error.message, "kind": error.kind}, status=status)


def _csv_response(content: str, filename: str) -> web.Response:
    return web.Response(
        text=content,
        content_type="text/csv",
        charset="utf-8",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


def _today() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%d")

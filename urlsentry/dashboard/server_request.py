"""Request helper methods for dashboard server."""

from __future__ import annotations

import json

from aiohttp import web

from .server_helpers import _coerce_int


class DashboardServerRequestMixin:
    """Request helper utilities."""

    async def _read_json(self, request: web.Request, *, allow_empty: bool = False) -> dict:
        if allow_empty:
            if not request.can_read_body or request.content_length in (None, 0):
                return {}
        try:
            data = await request.json()
        except Exception:
            raise web.HTTPBadRequest(text="Invalid JSON payload")
        if not isinstance(data, dict):
            raise web.HTTPBadRequest(text="Invalid JSON payload")
        return data

    def _too_large(self, actual_size: int) -> web.HTTPRequestEntityTooLarge:
        limit = int(self.config.max_csv_bytes)
        return web.HTTPRequestEntityTooLarge(
            max_size=limit,
            actual_size=actual_size,
            text=json.dumps(
                {
                    "error": f"File size should be less than {limit // (1024 * 1024)}MB",
                    "kind": "validation",
                }
            ),
            content_type="application/json",
        )

    async def _read_csv_upload(self, request: web.Request) -> tuple[bytes, str | None]:
        """Return ``(content, filename)`` from a multipart ``file`` field or a raw body."""
        limit = int(self.config.max_csv_bytes)
        if request.content_length is not None and request.content_length > limit + 64 * 1024:
            raise self._too_large(request.content_length)

        if request.content_type.startswith("multipart/"):
            reader = await request.multipart()
            while True:
                part = await reader.next()
                if part is None:
                    break
                if part.name != "file":
                    continue
                chunks: list[bytes] = []
                size = 0
                while True:
                    chunk = await part.read_chunk()
                    if not chunk:
                        break
                    size += len(chunk)
                    if size > limit:
                        raise self._too_large(size)
                    chunks.append(chunk)
                return b"".join(chunks), part.filename
            raise web.HTTPBadRequest(text="Missing 'file' field")

        body = await request.read()
        if len(body) > limit:
            raise self._too_large(len(body))
        filename = (request.query.get("filename") or "").strip() or None
        return body, filename

    def _query_limit(self, request: web.Request, *, default: int) -> int:
        return _coerce_int(
            request.query.get("limit"),
            default=default,
            min_value=1,
            max_value=int(self.config.domains_page_limit),
        )

"""History and stored-domain API handlers."""

from __future__ import annotations

import logging

from aiohttp import web

from ..models import DomainRecord
from .server_helpers import _csv_response, _today

logger = logging.getLogger(__name__)


class DashboardServerHistoryMixin:
    """Scan history log and raw domain rows."""

    def _require_history(self):
        if self.history is None:
            raise web.HTTPServiceUnavailable(text="History is disabled")
        return self.history

    async def _api_history(self, request: web.Request) -> web.Response:
        history = self._require_history()
        items = history.items()
        return web.json_response({"items": [item.to_dict() for item in items], "limit": history.limit})

    async def _api_history_clear(self, request: web.Request) -> web.Response:
        self._require_history().clear()
        return web.json_response({"ok": True})

    async def _api_history_export(self, request: web.Request) -> web.Response:
        content = self._require_history().export_csv()
        return _csv_response(content, f"url-sentry-history-{_today()}.csv")

    async def _api_domains(self, request: web.Request) -> web.Response:
        limit = self._query_limit(request, default=100)
        rows = await self.store.list_recent(limit)
        records = []
        for row in rows:
            try:
                records.append(DomainRecord.from_row(row).to_dict())
            except (KeyError, TypeError, ValueError) as e:
                logger.warning("Skipping malformed domain row: %s", e)
        return web.json_response({"domains": records, "count": len(records)})

    async def _api_domains_clear(self, request: web.Request) -> web.Response:
        deleted = await self.store.delete_all()
        logger.info("Deleted %d stored domain row(s)", deleted)
        return web.json_response({"deleted": deleted})
